"""
Shared data models for monitoring entities.

Pydantic models for the records reconciled from the admin API and for
the singleton setup record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

NIL_GUID = "00000000-0000-0000-0000-000000000000"


def utc_now() -> datetime:
    """Current time as naive UTC, the representation stored in DuckDB."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RefreshStatus(str, Enum):
    """Normalized refresh outcome."""

    COMPLETED = "Completed"
    FAILED = "Failed"
    IN_PROGRESS = "InProgress"
    DISABLED = "Disabled"
    NOT_STARTED = "NotStarted"
    UNKNOWN = "Unknown"

    @classmethod
    def from_api(cls, value: str | None) -> "RefreshStatus":
        """Map an admin API status string to a RefreshStatus. Never fails."""
        normalized = (value or "").strip().lower()
        mapping = {
            "completed": cls.COMPLETED,
            "failed": cls.FAILED,
            "inprogress": cls.IN_PROGRESS,
            "in progress": cls.IN_PROGRESS,
            "disabled": cls.DISABLED,
            "notstarted": cls.NOT_STARTED,
            "not started": cls.NOT_STARTED,
        }
        return mapping.get(normalized, cls.UNKNOWN)


class SetupState(BaseModel):
    """Singleton configuration and last-run bookkeeping."""

    auto_sync_enabled: bool = Field(default=False)
    sync_frequency_hours: int = Field(default=24, ge=1, le=168)
    last_auto_sync: datetime | None = Field(default=None)
    last_sync_duration_seconds: int = Field(default=0, ge=0)
    scheduled_job_id: str | None = Field(default=None, description="Opaque job handle")
    authority_url: str = Field(default="https://login.microsoftonline.com")
    api_base_url: str = Field(default="https://api.powerbi.com/v1.0/myorg")


class Workspace(BaseModel):
    """A workspace (group) seen in the admin listing."""

    workspace_id: str
    name: str
    type: str = ""
    state: str = ""
    is_on_dedicated_capacity: bool = False
    last_synchronized: datetime | None = None


class Dataset(BaseModel):
    """A dataset keyed by (workspace_id, dataset_id)."""

    workspace_id: str
    dataset_id: str
    name: str
    configured_by: str = ""
    web_url: str = ""
    is_refreshable: bool = False
    last_refresh: datetime | None = None
    last_refresh_status: str = ""
    last_refresh_duration_minutes: float = 0.0
    average_refresh_duration_minutes: float = 0.0
    refresh_count: int = 0
    last_synchronized: datetime | None = None


class RefreshHistoryEntry(BaseModel):
    """One refresh event in the append-only ledger, keyed by refresh_id."""

    refresh_id: str
    dataset_id: str
    dataset_name: str = ""
    workspace_id: str
    workspace_name: str = ""
    start_time: datetime
    end_time: datetime | None = None
    status: RefreshStatus = RefreshStatus.UNKNOWN
    refresh_type: str = ""
    error_message: str = ""
    duration_minutes: float = 0.0

    @staticmethod
    def compute_duration_minutes(start: datetime | None, end: datetime | None) -> float:
        """Minutes between start and end, 0 when either is missing."""
        if start is None or end is None:
            return 0.0
        return round(max(0.0, (end - start).total_seconds() / 60.0), 2)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump()
        data["status"] = self.status.value
        return data
