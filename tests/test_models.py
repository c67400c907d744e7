"""
Unit tests for the monitoring models module.
"""

import pytest
from datetime import datetime
from pydantic import ValidationError

from pbi_monitor.core.models import (
    Dataset,
    RefreshHistoryEntry,
    RefreshStatus,
    SetupState,
)


class TestRefreshStatus:
    """Tests for status mapping from admin API strings."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("completed", RefreshStatus.COMPLETED),
            ("Completed", RefreshStatus.COMPLETED),
            ("FAILED", RefreshStatus.FAILED),
            ("inprogress", RefreshStatus.IN_PROGRESS),
            ("In Progress", RefreshStatus.IN_PROGRESS),
            ("Disabled", RefreshStatus.DISABLED),
            ("NotStarted", RefreshStatus.NOT_STARTED),
            ("not started", RefreshStatus.NOT_STARTED),
        ],
    )
    def test_known_statuses(self, raw, expected):
        assert RefreshStatus.from_api(raw) == expected

    @pytest.mark.parametrize("raw", ["Unknown", "Cancelled", "", "  ", None, "complete"])
    def test_anything_else_is_unknown(self, raw):
        assert RefreshStatus.from_api(raw) == RefreshStatus.UNKNOWN

    def test_surrounding_whitespace_ignored(self):
        assert RefreshStatus.from_api("  failed ") == RefreshStatus.FAILED


class TestSetupState:
    """Tests for SetupState defaults and validation."""

    def test_defaults(self):
        state = SetupState()

        assert state.auto_sync_enabled is False
        assert state.sync_frequency_hours == 24
        assert state.last_auto_sync is None
        assert state.scheduled_job_id is None
        assert state.api_base_url == "https://api.powerbi.com/v1.0/myorg"

    @pytest.mark.parametrize("hours", [0, 169, -5])
    def test_frequency_out_of_range_rejected(self, hours):
        with pytest.raises(ValidationError):
            SetupState(sync_frequency_hours=hours)


class TestRefreshHistoryEntry:
    """Tests for duration computation."""

    def test_duration_in_minutes(self):
        start = datetime(2024, 5, 1, 10, 0, 0)
        end = datetime(2024, 5, 1, 10, 45, 30)

        assert RefreshHistoryEntry.compute_duration_minutes(start, end) == 45.5

    def test_missing_end_has_zero_duration(self):
        start = datetime(2024, 5, 1, 10, 0, 0)

        assert RefreshHistoryEntry.compute_duration_minutes(start, None) == 0.0

    def test_end_before_start_clamped(self):
        start = datetime(2024, 5, 1, 10, 0, 0)
        end = datetime(2024, 5, 1, 9, 0, 0)

        assert RefreshHistoryEntry.compute_duration_minutes(start, end) == 0.0

    def test_to_dict_uses_status_value(self):
        entry = RefreshHistoryEntry(
            refresh_id="R1",
            dataset_id="ds",
            workspace_id="ws",
            start_time=datetime(2024, 5, 1, 10, 0, 0),
            status=RefreshStatus.FAILED,
        )

        assert entry.to_dict()["status"] == "Failed"


class TestDataset:
    def test_dataset_defaults(self):
        ds = Dataset(workspace_id="ws", dataset_id="ds", name="Sales")

        assert ds.refresh_count == 0
        assert ds.average_refresh_duration_minutes == 0.0
        assert ds.last_refresh_status == ""
        assert ds.is_refreshable is False
