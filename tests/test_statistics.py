"""
Unit tests for the reporting queries.
"""

import pytest

from pbi_monitor.core.models import Workspace
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.core.statistics import MonitoringStatistics


@pytest.fixture
def repo(tmp_path):
    repository = MonitorRepository(db_path=tmp_path / "monitor.duckdb")
    repository.upsert_workspace(Workspace(workspace_id="ws-1", name="Finance"))
    for ds_id, refreshable, status, average in [
        ("ds-1", True, "Completed", 10.0),
        ("ds-2", True, "Failed", 20.0),
        ("ds-3", False, "", 0.0),
    ]:
        repository.upsert_dataset_listing("ws-1", ds_id, ds_id, "", "", refreshable)
        repository.update_dataset_latest_refresh("ws-1", ds_id, None, status, average)
        repository.update_dataset_refresh_stats("ws-1", ds_id, average_minutes=average, refresh_count=1)
    return repository


@pytest.fixture
def stats(repo):
    return MonitoringStatistics(repo)


class TestMonitoringStatistics:
    def test_refreshable_count(self, stats):
        assert stats.refreshable_dataset_count("ws-1") == 2
        assert stats.refreshable_dataset_count("other") == 0

    def test_failed_count(self, stats):
        assert stats.failed_dataset_count() == 1

    def test_average_includes_never_refreshed_datasets(self, stats):
        assert stats.average_refresh_duration_minutes() == 10.0

    def test_average_rounded(self, repo, stats):
        repo.update_dataset_refresh_stats("ws-1", "ds-3", average_minutes=1.0, refresh_count=1)

        # (10 + 20 + 1) / 3
        assert stats.average_refresh_duration_minutes() == 10.33

    def test_average_ignores_refresh_counts(self, repo, stats):
        repo.update_dataset_refresh_stats("ws-1", "ds-1", average_minutes=10.0, refresh_count=1)
        repo.update_dataset_refresh_stats("ws-1", "ds-2", average_minutes=40.0, refresh_count=9)
        repo.update_dataset_refresh_stats("ws-1", "ds-3", average_minutes=1.0, refresh_count=2)

        # Mean of per-dataset averages: (10 + 40 + 1) / 3, not weighted by count
        assert stats.average_refresh_duration_minutes() == 17.0

    def test_failed_count_is_case_sensitive(self, repo, stats):
        repo.update_dataset_latest_refresh("ws-1", "ds-1", None, "failed", 10.0)

        assert stats.failed_dataset_count() == 1

    def test_failed_count_includes_error_statuses(self, repo, stats):
        repo.update_dataset_latest_refresh("ws-1", "ds-3", None, "RefreshError", 0.0)

        assert stats.failed_dataset_count() == 2

    def test_summary(self, stats):
        summary = stats.summary()

        assert summary["workspaces"] == 1
        assert summary["datasets"] == 3
        assert summary["failed_datasets"] == 1
        assert summary["refreshable_by_workspace"] == {"Finance": 2}
        assert summary["refresh_history_entries"] == 0
