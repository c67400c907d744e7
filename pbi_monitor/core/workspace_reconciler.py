"""Workspace reconciliation from the paged admin group listing."""

from __future__ import annotations

from pbi_monitor.core.admin_client import AdminApiClient
from pbi_monitor.core.models import NIL_GUID, Workspace, utc_now
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.core.response_parser import get_bool, get_guid, get_text
from pbi_monitor.core.run_context import SyncRunContext
from pbi_monitor.utils.exceptions import MonitorError
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)


class WorkspaceReconciler:
    """Upserts workspaces keyed by workspace id."""

    def __init__(
        self,
        client: AdminApiClient,
        repository: MonitorRepository,
        page_size: int = 5000,
    ) -> None:
        self._client = client
        self._repository = repository
        self._page_size = page_size

    def synchronize_workspaces(self, context: SyncRunContext | None = None) -> bool:
        """
        Page through the admin workspace listing and upsert each workspace.

        Returns:
            False if any page could not be fetched or parsed
        """
        context = context or SyncRunContext(trigger="adhoc")
        synced = skipped = 0

        try:
            for page in self._client.get_paged(
                self._client.workspaces_endpoint(), page_size=self._page_size
            ):
                for item in page:
                    workspace_id = get_guid(item, "id")
                    name = get_text(item, "name")
                    if not workspace_id or workspace_id == NIL_GUID or not name:
                        skipped += 1
                        continue

                    self._repository.upsert_workspace(
                        Workspace(
                            workspace_id=workspace_id,
                            name=name,
                            type=get_text(item, "type"),
                            state=get_text(item, "state"),
                            is_on_dedicated_capacity=get_bool(item, "isOnDedicatedCapacity"),
                            last_synchronized=utc_now(),
                        )
                    )
                    synced += 1
        except MonitorError as e:
            logger.error(f"Workspace listing failed: {e}")
            context.record_failure("workspaces", str(e))
            return False
        finally:
            context.workspaces_synced += synced

        logger.info("Workspaces synchronized", synced=synced, skipped=skipped)
        return True
