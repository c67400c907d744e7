"""Configuration management for pbi-monitor."""

from __future__ import annotations

from pbi_monitor.config.settings import (
    MAX_FREQUENCY_HOURS,
    MIN_FREQUENCY_HOURS,
    AdminApiConfig,
    Settings,
    SyncConfig,
    get_settings,
    load_settings,
)

__all__ = [
    "MAX_FREQUENCY_HOURS",
    "MIN_FREQUENCY_HOURS",
    "AdminApiConfig",
    "Settings",
    "SyncConfig",
    "get_settings",
    "load_settings",
]
