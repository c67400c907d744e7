"""Read-only reporting over reconciled datasets."""

from __future__ import annotations

from typing import Any

from pbi_monitor.core.repository import MonitorRepository


class MonitoringStatistics:
    """Aggregate figures for dashboards and the ``stats`` command."""

    def __init__(self, repository: MonitorRepository) -> None:
        self._repository = repository

    def refreshable_dataset_count(self, workspace_id: str) -> int:
        return self._repository.count_refreshable_datasets(workspace_id)

    def failed_dataset_count(self) -> int:
        return self._repository.count_failed_datasets()

    def average_refresh_duration_minutes(self) -> float:
        """
        Tenant-wide average refresh duration.

        This is the mean of each dataset's own average, so a dataset with
        one refresh weighs as much as one with fifty.
        """
        return round(self._repository.average_of_dataset_averages(), 2)

    def summary(self) -> dict[str, Any]:
        workspaces = self._repository.list_workspaces()
        datasets = self._repository.list_datasets()
        return {
            "workspaces": len(workspaces),
            "datasets": len(datasets),
            "refresh_history_entries": self._repository.count_refresh_history(),
            "failed_datasets": self.failed_dataset_count(),
            "average_refresh_duration_minutes": self.average_refresh_duration_minutes(),
            "refreshable_by_workspace": {
                ws.name: self.refreshable_dataset_count(ws.workspace_id)
                for ws in workspaces
            },
        }
