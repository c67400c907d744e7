"""
Operator-facing configuration actions.

Every change to the setup record that has consequences for the scheduled
job goes through an explicit method here and returns a SetupResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from pbi_monitor.config.settings import MAX_FREQUENCY_HOURS, MIN_FREQUENCY_HOURS
from pbi_monitor.core.models import SetupState
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.core.scheduler import JobScheduler
from pbi_monitor.utils.exceptions import ConfigurationError
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)

JOB_DESCRIPTION = "Power BI monitoring sync (every {hours}h)"


@dataclass
class SetupResult:
    """Outcome of a configuration action."""

    ok: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


def validate_frequency(hours: int) -> int:
    if not MIN_FREQUENCY_HOURS <= hours <= MAX_FREQUENCY_HOURS:
        raise ConfigurationError(
            f"Sync frequency must be between {MIN_FREQUENCY_HOURS} and "
            f"{MAX_FREQUENCY_HOURS} hours",
            details={"value": hours},
        )
    return hours


class SetupService:
    """Enable, disable and repair automatic sync."""

    def __init__(self, repository: MonitorRepository, scheduler: JobScheduler) -> None:
        self._repository = repository
        self._scheduler = scheduler

    def install(
        self,
        authority_url: str | None = None,
        api_base_url: str | None = None,
        frequency_hours: int | None = None,
        default_frequency_hours: int | None = None,
    ) -> SetupResult:
        """
        Create the setup record with defaults, applying any overrides.

        ``default_frequency_hours`` (the configured frequency) only applies
        when the record is created; an explicit ``frequency_hours`` always
        applies.
        """
        created = not self._repository.has_setup()
        state = self._repository.get_setup()

        if authority_url:
            state.authority_url = authority_url.rstrip("/")
        if api_base_url:
            state.api_base_url = api_base_url.rstrip("/")
        if frequency_hours is not None:
            state.sync_frequency_hours = validate_frequency(frequency_hours)
        elif created and default_frequency_hours is not None:
            state.sync_frequency_hours = validate_frequency(default_frequency_hours)
        self._repository.save_setup(state)

        message = "Setup created" if created else "Setup already present"
        return SetupResult(ok=True, message=message, details={"created": created})

    def uninstall(self) -> SetupResult:
        """Cancel the scheduled job and delete the setup record."""
        if not self._repository.has_setup():
            return SetupResult(ok=True, message="Nothing to remove")

        state = self._repository.get_setup()
        if state.scheduled_job_id:
            self._scheduler.delete_job(state.scheduled_job_id)
        self._repository.delete_setup()
        return SetupResult(ok=True, message="Setup removed and scheduled job cancelled")

    def enable_auto_sync(self) -> SetupResult:
        """Turn on automatic sync, creating the scheduled job if needed."""
        state = self._repository.get_setup()
        validate_frequency(state.sync_frequency_hours)

        repair = self.resolve_or_clear()
        state = self._repository.get_setup()

        if not state.scheduled_job_id:
            state.scheduled_job_id = self._scheduler.create_job(
                JOB_DESCRIPTION.format(hours=state.sync_frequency_hours)
            )
        state.auto_sync_enabled = True
        self._repository.save_setup(state)

        message = f"Auto sync enabled every {state.sync_frequency_hours}h"
        if not repair.ok:
            message = f"{repair.message} A new scheduled job was created. {message}"
        logger.info(message, job_id=state.scheduled_job_id)
        return SetupResult(ok=True, message=message, details={"job_id": state.scheduled_job_id})

    def disable_auto_sync(self) -> SetupResult:
        """Turn off automatic sync and cancel the scheduled job."""
        state = self._repository.get_setup()
        if state.scheduled_job_id:
            self._scheduler.delete_job(state.scheduled_job_id)

        state.scheduled_job_id = None
        state.auto_sync_enabled = False
        self._repository.save_setup(state)
        logger.info("Auto sync disabled")
        return SetupResult(ok=True, message="Auto sync disabled")

    def set_frequency(self, hours: int) -> SetupResult:
        """
        Change the sync frequency.

        Raises:
            ConfigurationError: If hours is out of range, or auto sync is
                enabled without a scheduled job reference
        """
        validate_frequency(hours)
        state = self._repository.get_setup()

        if state.auto_sync_enabled and not state.scheduled_job_id:
            raise ConfigurationError(
                "Auto sync is enabled but no scheduled job is linked; "
                "disable and enable auto sync to recreate it"
            )

        state.sync_frequency_hours = hours
        self._repository.save_setup(state)

        if state.auto_sync_enabled and state.scheduled_job_id:
            updated = self._scheduler.update_job(
                state.scheduled_job_id, JOB_DESCRIPTION.format(hours=hours)
            )
            if not updated:
                repair = self.resolve_or_clear()
                return SetupResult(
                    ok=False,
                    message=f"Frequency set to {hours}h. {repair.message}",
                    details={"frequency_hours": hours},
                )

        return SetupResult(
            ok=True,
            message=f"Frequency set to {hours}h",
            details={"frequency_hours": hours},
        )

    def resolve_or_clear(self) -> SetupResult:
        """
        Check the stored job reference against the scheduler.

        A reference that no longer resolves is cleared and auto sync is
        disabled.
        """
        state = self._repository.get_setup()
        job_id = state.scheduled_job_id

        if job_id and self._scheduler.job_exists(job_id):
            return SetupResult(ok=True, message="Scheduled job is linked", details={"job_id": job_id})

        if job_id:
            message = (
                f"Scheduled job {job_id} no longer exists; "
                "the reference was cleared and auto sync was disabled."
            )
        elif state.auto_sync_enabled:
            message = "Auto sync was enabled without a scheduled job; auto sync was disabled."
        else:
            return SetupResult(ok=True, message="No scheduled job linked")

        state.scheduled_job_id = None
        state.auto_sync_enabled = False
        self._repository.save_setup(state)
        logger.warning(message)
        return SetupResult(ok=False, message=message, details={"cleared_job_id": job_id})

    def validate_job_linkage(self) -> SetupResult:
        """Resolve the job reference and report the current schedule state."""
        repair = self.resolve_or_clear()
        state = self._repository.get_setup()
        return SetupResult(ok=repair.ok, message=repair.message, details=self._describe(state))

    def _describe(self, state: SetupState) -> dict[str, Any]:
        job = self._scheduler.get_job(state.scheduled_job_id) if state.scheduled_job_id else None
        # None until a first automatic sync has run
        next_due = None
        if state.auto_sync_enabled and state.last_auto_sync:
            next_due = state.last_auto_sync + timedelta(hours=state.sync_frequency_hours)
        return {
            "auto_sync_enabled": state.auto_sync_enabled,
            "frequency_hours": state.sync_frequency_hours,
            "last_auto_sync": state.last_auto_sync,
            "last_sync_duration_seconds": state.last_sync_duration_seconds,
            "scheduled_job_id": state.scheduled_job_id,
            "job": job.to_dict() if job else None,
            "next_due": next_due,
        }
