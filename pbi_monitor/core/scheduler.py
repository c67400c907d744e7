"""
Due-time decision and scheduled job handles.

The host's timer (cron, systemd timer, Task Scheduler) runs
``pbi-monitor tick`` on a fixed cadence; ``is_sync_due`` decides whether
that tick actually sweeps. Job handles are recorded through a
``JobScheduler`` so the setup record can hold a reference to them.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import duckdb

from pbi_monitor.core.models import utc_now
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.utils.exceptions import ScheduledJobError
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_FREQUENCY_HOURS = 24
TICK_INTERVAL_MINUTES = 60
TICK_COMMAND = "pbi-monitor tick"


def is_sync_due(
    last_sync: datetime | None,
    frequency_hours: int,
    now: datetime | None = None,
) -> bool:
    """
    Decide whether an automatic sync should run.

    Args:
        last_sync: Time of the last successful sync, None if never synced
        frequency_hours: Configured hours between syncs; values <= 0 mean 24
        now: Current time (naive UTC), defaults to the wall clock

    Returns:
        True if never synced or at least ``frequency_hours`` have elapsed
    """
    if last_sync is None:
        return True

    if frequency_hours <= 0:
        frequency_hours = FALLBACK_FREQUENCY_HOURS

    now = now or utc_now()
    elapsed_hours = (now - last_sync).total_seconds() / 3600.0
    return elapsed_hours >= frequency_hours


@dataclass
class JobInfo:
    """A scheduled job as known to the scheduler."""

    job_id: str
    command: str
    interval_minutes: int
    description: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "command": self.command,
            "interval_minutes": self.interval_minutes,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class JobScheduler(ABC):
    """Recurring-job facility the setup service links to by job id."""

    @abstractmethod
    def create_job(self, description: str) -> str:
        """Create the recurring tick job and return its id."""

    @abstractmethod
    def get_job(self, job_id: str) -> JobInfo | None:
        """Return the job, or None if it no longer exists."""

    @abstractmethod
    def update_job(self, job_id: str, description: str) -> bool:
        """Update a job's description. False if the job does not exist."""

    @abstractmethod
    def delete_job(self, job_id: str) -> bool:
        """Delete a job. False if it was already gone."""

    def job_exists(self, job_id: str | None) -> bool:
        if not job_id:
            return False
        return self.get_job(job_id) is not None


class RepositoryJobScheduler(JobScheduler):
    """
    Job registry kept in the monitor database.

    Each job records the command and cadence the host timer should run;
    deleting the row is how the job is cancelled.
    """

    def __init__(
        self,
        repository: MonitorRepository,
        interval_minutes: int = TICK_INTERVAL_MINUTES,
    ) -> None:
        self._repository = repository
        self._interval_minutes = interval_minutes

    def create_job(self, description: str) -> str:
        job_id = str(uuid.uuid4())
        try:
            self._repository.insert_job(job_id, TICK_COMMAND, self._interval_minutes, description)
        except duckdb.Error as e:
            raise ScheduledJobError(f"Could not create scheduled job: {e}", job_id=job_id) from e
        logger.info("Created scheduled job", job_id=job_id)
        return job_id

    def get_job(self, job_id: str) -> JobInfo | None:
        row = self._repository.get_job(job_id)
        return JobInfo(**row) if row else None

    def update_job(self, job_id: str, description: str) -> bool:
        return self._repository.update_job(job_id, description)

    def delete_job(self, job_id: str) -> bool:
        deleted = self._repository.delete_job(job_id)
        if deleted:
            logger.info("Deleted scheduled job", job_id=job_id)
        return deleted
