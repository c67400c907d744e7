"""
Dataset reconciliation against the admin API.

Listing sync upserts dataset rows; history sync appends new refresh
events to the ledger and recomputes each dataset's refresh aggregates
from the fetched page. Both are safe to re-run.
"""

from __future__ import annotations

from typing import Any

from pbi_monitor.core.admin_client import AdminApiClient
from pbi_monitor.core.models import NIL_GUID, RefreshHistoryEntry, RefreshStatus
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.core.response_parser import (
    first_guid,
    first_text,
    get_bool,
    get_datetime,
    get_guid,
    get_text,
    parse_json_array,
    parse_json_object,
)
from pbi_monitor.core.run_context import SyncRunContext
from pbi_monitor.utils.exceptions import (
    MonitorError,
    RefreshTriggerError,
    ResponseParseError,
)
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)

DATASET_ID_FIELDS = ("objectId", "id")
REFRESH_ID_FIELDS = ("requestId", "id")


class DatasetReconciler:
    """
    Reconciles datasets and their refresh history into the repository.
    """

    def __init__(
        self,
        client: AdminApiClient,
        repository: MonitorRepository,
        history_top: int = 5,
    ) -> None:
        self._client = client
        self._repository = repository
        self._history_top = history_top

    # ----------------------------------------------------------------
    # Listing sync
    # ----------------------------------------------------------------

    def synchronize_datasets(
        self,
        workspace_id: str,
        context: SyncRunContext | None = None,
    ) -> bool:
        """
        Upsert every dataset the admin API lists for a workspace.

        Elements with a missing or nil id, or an empty name, are skipped.

        Args:
            workspace_id: Workspace to list
            context: Optional sweep context receiving counters and failures

        Returns:
            False if the request or parse failed, True otherwise
        """
        context = context or SyncRunContext(trigger="adhoc")

        try:
            body = self._client.get(self._client.datasets_endpoint(workspace_id))
            items = parse_json_array(body)
        except MonitorError as e:
            logger.error(f"Dataset listing failed: {e}", workspace_id=workspace_id)
            context.record_failure(f"datasets[{workspace_id}]", str(e))
            return False

        created = updated = skipped = 0
        for item in items:
            dataset_id = first_guid(item, DATASET_ID_FIELDS)
            name = get_text(item, "name")
            if not dataset_id or dataset_id == NIL_GUID or not name:
                skipped += 1
                continue

            # Tenant-wide listings carry the owning workspace
            item_workspace = get_guid(item, "workspaceId")
            if item_workspace and item_workspace != workspace_id.lower():
                continue

            was_created = self._repository.upsert_dataset_listing(
                workspace_id=workspace_id,
                dataset_id=dataset_id,
                name=name,
                configured_by=get_text(item, "configuredBy"),
                web_url=get_text(item, "webUrl"),
                is_refreshable=get_bool(item, "isRefreshable"),
            )
            if was_created:
                created += 1
            else:
                updated += 1

        context.datasets_synced += created + updated
        context.datasets_skipped += skipped
        logger.info(
            "Datasets synchronized",
            workspace_id=workspace_id,
            created=created,
            updated=updated,
            skipped=skipped,
        )
        return True

    # ----------------------------------------------------------------
    # History sync
    # ----------------------------------------------------------------

    def get_dataset_refresh_history(
        self,
        workspace_id: str,
        dataset_id: str,
        context: SyncRunContext | None = None,
    ) -> bool:
        """
        Ingest the most recent refresh history page for a dataset.

        New refresh ids are appended to the ledger; ids already recorded are
        left as they are. The newest usable element sets the dataset's
        last-refresh fields, and the average duration and refresh count are
        replaced with values computed over the whole page.

        Returns:
            False if the request or parse failed, True otherwise (including
            when the dataset is not known locally)
        """
        context = context or SyncRunContext(trigger="adhoc")

        dataset = self._repository.get_dataset(workspace_id, dataset_id)
        if dataset is None:
            logger.debug(
                "Dataset not found locally, skipping history",
                workspace_id=workspace_id,
                dataset_id=dataset_id,
            )
            return True

        try:
            body = self._client.get(
                self._client.refreshes_endpoint(workspace_id, dataset_id),
                params={"$top": self._history_top},
            )
            items = parse_json_array(body)
        except MonitorError as e:
            logger.error(
                f"Refresh history request failed: {e}",
                workspace_id=workspace_id,
                dataset_id=dataset_id,
            )
            context.record_failure(f"history[{dataset_id}]", str(e))
            return False

        workspace = self._repository.get_workspace(workspace_id)
        workspace_name = workspace.name if workspace else ""

        seen: set[str] = set()
        latest_recorded = False
        total_minutes = 0.0
        timed_count = 0
        added = 0

        for item in items:
            status_text = get_text(item, "status")
            start_time = get_datetime(item, "startTime")
            if not status_text or start_time is None:
                continue

            refresh_id = first_text(item, REFRESH_ID_FIELDS)
            if not refresh_id or refresh_id in seen:
                continue
            seen.add(refresh_id)

            end_time = get_datetime(item, "endTime")
            status = RefreshStatus.from_api(status_text)
            duration = RefreshHistoryEntry.compute_duration_minutes(start_time, end_time)

            if not self._repository.refresh_exists(refresh_id):
                entry = RefreshHistoryEntry(
                    refresh_id=refresh_id,
                    dataset_id=dataset_id,
                    dataset_name=dataset.name,
                    workspace_id=workspace_id,
                    workspace_name=workspace_name,
                    start_time=start_time,
                    end_time=end_time,
                    status=status,
                    refresh_type=get_text(item, "refreshType"),
                    error_message=(
                        extract_error_message(item) if status == RefreshStatus.FAILED else ""
                    ),
                    duration_minutes=duration,
                )
                if self._repository.append_refresh(entry):
                    added += 1

            if not latest_recorded:
                self._repository.update_dataset_latest_refresh(
                    workspace_id,
                    dataset_id,
                    last_refresh=end_time or start_time,
                    status=status.value,
                    duration_minutes=duration,
                )
                latest_recorded = True

            if end_time is not None:
                total_minutes += duration
                timed_count += 1

        average = round(total_minutes / timed_count, 2) if timed_count else 0.0
        self._repository.update_dataset_refresh_stats(
            workspace_id, dataset_id, average_minutes=average, refresh_count=timed_count
        )

        context.history_entries_added += added
        logger.debug(
            "Refresh history ingested",
            dataset_id=dataset_id,
            added=added,
            average_minutes=average,
            refresh_count=timed_count,
        )
        return True

    # ----------------------------------------------------------------
    # Refresh trigger
    # ----------------------------------------------------------------

    def trigger_refresh(self, workspace_id: str, dataset_id: str) -> bool:
        """
        Ask the service to start a dataset refresh.

        Success means the request was accepted; the outcome shows up in a
        later history sync.

        Raises:
            RefreshTriggerError: If the request was not accepted
        """
        try:
            self._client.post(
                self._client.refreshes_endpoint(workspace_id, dataset_id),
                data={"notifyOption": "NoNotification"},
            )
        except MonitorError as e:
            raise RefreshTriggerError(
                f"Failed to trigger refresh for dataset {dataset_id} "
                f"in workspace {workspace_id}: {e.message}",
                workspace_id=workspace_id,
                dataset_id=dataset_id,
                response_body=e.details.get("response") or "",
            ) from e

        logger.info("Refresh triggered", workspace_id=workspace_id, dataset_id=dataset_id)
        return True


def extract_error_message(item: dict[str, Any]) -> str:
    """
    Error text for a failed refresh.

    Prefers the structured ``serviceExceptionJson`` payload and falls back
    to the plain ``error`` field.
    """
    raw = get_text(item, "serviceExceptionJson")
    if raw:
        try:
            payload = parse_json_object(raw)
        except ResponseParseError:
            return raw
        return (
            get_text(payload, "errorDescription")
            or get_text(payload, "errorCode")
            or raw
        )

    error = item.get("error")
    if isinstance(error, dict):
        return get_text(error, "message") or get_text(error, "code")
    return get_text(item, "error")
