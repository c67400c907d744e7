"""Core modules for pbi-monitor."""

from __future__ import annotations

from pbi_monitor.core.admin_client import AdminApiClient
from pbi_monitor.core.dataset_reconciler import DatasetReconciler
from pbi_monitor.core.models import (
    Dataset,
    RefreshHistoryEntry,
    RefreshStatus,
    SetupState,
    Workspace,
)
from pbi_monitor.core.orchestrator import SyncOrchestrator
from pbi_monitor.core.repository import MonitorRepository
from pbi_monitor.core.run_context import SyncResult, SyncRunContext
from pbi_monitor.core.scheduler import (
    JobInfo,
    JobScheduler,
    RepositoryJobScheduler,
    is_sync_due,
)
from pbi_monitor.core.setup_service import SetupResult, SetupService
from pbi_monitor.core.statistics import MonitoringStatistics
from pbi_monitor.core.workspace_reconciler import WorkspaceReconciler

__all__ = [
    "AdminApiClient",
    "DatasetReconciler",
    "WorkspaceReconciler",
    "Dataset",
    "RefreshHistoryEntry",
    "RefreshStatus",
    "SetupState",
    "Workspace",
    "SyncOrchestrator",
    "MonitorRepository",
    "SyncResult",
    "SyncRunContext",
    "JobInfo",
    "JobScheduler",
    "RepositoryJobScheduler",
    "is_sync_due",
    "SetupResult",
    "SetupService",
    "MonitoringStatistics",
]
