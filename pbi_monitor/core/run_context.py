"""Per-sweep state passed through the reconciliation call chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pbi_monitor.core.models import utc_now


@dataclass
class SyncRunContext:
    """Timers and counters for one sweep."""

    trigger: str = "scheduled"
    started_at: datetime = field(default_factory=utc_now)
    workspaces_synced: int = 0
    datasets_synced: int = 0
    datasets_skipped: int = 0
    history_entries_added: int = 0
    failures: list[str] = field(default_factory=list)

    def record_failure(self, step: str, message: str) -> None:
        self.failures.append(f"{step}: {message}")

    @property
    def success(self) -> bool:
        return not self.failures

    def elapsed_seconds(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        return max(0, int((now - self.started_at).total_seconds()))


@dataclass
class SyncResult:
    """Outcome of one orchestrator invocation."""

    trigger: str
    ran: bool
    success: bool
    skipped_reason: str | None = None
    started_at: datetime | None = None
    duration_seconds: int = 0
    workspaces_synced: int = 0
    datasets_synced: int = 0
    datasets_skipped: int = 0
    history_entries_added: int = 0
    failures: list[str] = field(default_factory=list)

    @classmethod
    def skipped(cls, trigger: str, reason: str) -> "SyncResult":
        return cls(trigger=trigger, ran=False, success=True, skipped_reason=reason)

    @classmethod
    def from_context(cls, context: SyncRunContext, duration_seconds: int) -> "SyncResult":
        return cls(
            trigger=context.trigger,
            ran=True,
            success=context.success,
            started_at=context.started_at,
            duration_seconds=duration_seconds,
            workspaces_synced=context.workspaces_synced,
            datasets_synced=context.datasets_synced,
            datasets_skipped=context.datasets_skipped,
            history_entries_added=context.history_entries_added,
            failures=list(context.failures),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "ran": self.ran,
            "success": self.success,
            "skipped_reason": self.skipped_reason,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "duration_seconds": self.duration_seconds,
            "workspaces_synced": self.workspaces_synced,
            "datasets_synced": self.datasets_synced,
            "datasets_skipped": self.datasets_skipped,
            "history_entries_added": self.history_entries_added,
            "failures": self.failures,
        }
