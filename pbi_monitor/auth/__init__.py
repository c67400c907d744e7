"""Authentication modules for pbi-monitor."""

from __future__ import annotations

from pbi_monitor.auth.oauth import AdminOAuthClient, TokenCache

__all__ = [
    "AdminOAuthClient",
    "TokenCache",
]
