"""Utility modules for pbi-monitor."""

from pbi_monitor.utils.logger import get_logger, setup_logging
from pbi_monitor.utils.exceptions import (
    MonitorError,
    ConfigurationError,
    AuthenticationError,
    ConnectionError,
    ResponseParseError,
    RefreshTriggerError,
    ScheduledJobError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "MonitorError",
    "ConfigurationError",
    "AuthenticationError",
    "ConnectionError",
    "ResponseParseError",
    "RefreshTriggerError",
    "ScheduledJobError",
]
