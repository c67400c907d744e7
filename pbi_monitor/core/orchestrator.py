"""
Sync orchestration.

Runs one sweep across workspaces, datasets and refresh history, then
records the attempt on the setup record. ``run_auto_sync`` is called by
the host timer and gates itself on the setup record; ``force_sync`` is
the operator's "sync now".
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable

from pbi_monitor.config.settings import Settings
from pbi_monitor.core.admin_client import AdminApiClient
from pbi_monitor.core.dataset_reconciler import DatasetReconciler
from pbi_monitor.core.models import utc_now
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.core.run_context import SyncResult, SyncRunContext
from pbi_monitor.core.scheduler import is_sync_due
from pbi_monitor.core.workspace_reconciler import WorkspaceReconciler
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)


class SyncOrchestrator:
    """
    Sequences reconciliation across entity kinds.

    Only one sweep runs at a time per orchestrator; a second request while
    one is in flight is reported as skipped.
    """

    def __init__(
        self,
        repository: MonitorRepository,
        workspace_reconciler: WorkspaceReconciler,
        dataset_reconciler: DatasetReconciler,
        workspace_ids: list[str] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._workspaces = workspace_reconciler
        self._datasets = dataset_reconciler
        self._workspace_ids = [ws.lower() for ws in (workspace_ids or [])]
        self._clock = clock
        self._run_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repository: MonitorRepository | None = None,
    ) -> "SyncOrchestrator":
        """Wire an orchestrator from application settings."""
        sync_config = settings.get_sync_config()
        repository = repository or MonitorRepository(sync_config.db_path)
        client = AdminApiClient(settings.get_admin_api_config())
        return cls(
            repository=repository,
            workspace_reconciler=WorkspaceReconciler(
                client, repository, page_size=sync_config.workspace_page_size
            ),
            dataset_reconciler=DatasetReconciler(
                client, repository, history_top=sync_config.history_top
            ),
            workspace_ids=sync_config.workspace_ids,
        )

    @property
    def dataset_reconciler(self) -> DatasetReconciler:
        return self._datasets

    def run_auto_sync(self) -> SyncResult:
        """
        Scheduled entry point.

        Exits quietly when auto sync is disabled or not yet due.
        """
        setup = self._repository.get_setup()

        if not setup.auto_sync_enabled:
            logger.debug("Auto sync disabled, nothing to do")
            return SyncResult.skipped("scheduled", "disabled")

        if not is_sync_due(setup.last_auto_sync, setup.sync_frequency_hours, self._clock()):
            logger.debug("Auto sync not due yet", last_auto_sync=setup.last_auto_sync)
            return SyncResult.skipped("scheduled", "not_due")

        return self._run("scheduled")

    def force_sync(self) -> SyncResult:
        """Operator entry point; runs a sweep regardless of schedule state."""
        return self._run("force")

    def _run(self, trigger: str) -> SyncResult:
        if not self._run_lock.acquire(blocking=False):
            logger.warning("A sync sweep is already running", trigger=trigger)
            return SyncResult.skipped(trigger, "already_running")

        try:
            context = SyncRunContext(trigger=trigger, started_at=self._clock())
            logger.info("Sync sweep started", trigger=trigger)

            try:
                self._sweep(context)
            except Exception as e:
                logger.error(f"Sync sweep aborted: {e}", trigger=trigger)
                context.record_failure("sweep", str(e))

            finished_at = self._clock()
            duration = context.elapsed_seconds(finished_at)

            setup = self._repository.get_setup()
            setup.last_sync_duration_seconds = duration
            if context.success:
                setup.last_auto_sync = finished_at
            self._repository.save_setup(setup)

            result = SyncResult.from_context(context, duration)
            if result.success:
                logger.info("Sync sweep completed", trigger=trigger, duration_seconds=duration)
            else:
                logger.error(
                    "Sync sweep finished with failures",
                    trigger=trigger,
                    failures=len(result.failures),
                )
            return result
        finally:
            self._run_lock.release()

    def _sweep(self, context: SyncRunContext) -> None:
        self._workspaces.synchronize_workspaces(context)

        workspace_ids = self._workspace_ids or [
            ws.workspace_id for ws in self._repository.list_workspaces()
        ]

        for workspace_id in workspace_ids:
            if not self._datasets.synchronize_datasets(workspace_id, context):
                continue

            for dataset in self._repository.list_datasets(workspace_id):
                if dataset.is_refreshable:
                    self._datasets.get_dataset_refresh_history(
                        workspace_id, dataset.dataset_id, context
                    )
