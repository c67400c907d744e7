"""
pbi-monitor - Power BI tenant monitoring sync.

Periodically pulls workspaces, datasets and dataset refresh history from
the Power BI admin REST API into a local DuckDB database, so dataset
health and refresh statistics can be inspected offline.

Key Features:
- Self-gating scheduled sync driven by a host timer
- Idempotent dataset upserts and a write-once refresh history ledger
- Per-dataset refresh statistics (latest status, average duration, count)
- Operator CLI for enabling, disabling and repairing automatic sync
"""

from __future__ import annotations

__version__ = "1.0.0"
__author__ = "Platform Engineering Team"

from pbi_monitor.utils.exceptions import (
    MonitorError,
    ConfigurationError,
    AuthenticationError,
    ConnectionError,
    ResponseParseError,
    RefreshTriggerError,
)

__all__ = [
    "__version__",
    "MonitorError",
    "ConfigurationError",
    "AuthenticationError",
    "ConnectionError",
    "ResponseParseError",
    "RefreshTriggerError",
]
