"""
OAuth 2.0 client credentials authentication for the Power BI admin API.

Tokens come from MSAL and are cached on disk between scheduled runs so
an hourly tick does not hit Azure AD every time.
"""

from __future__ import annotations

import json
import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import msal

from pbi_monitor.config.settings import AdminApiConfig
from pbi_monitor.utils.exceptions import AuthenticationError
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)

# Tokens expiring within this window are treated as expired
EXPIRY_BUFFER_SECONDS = 300


class TokenCache:
    """
    Thread-safe token cache with filesystem persistence.
    """

    def __init__(self, cache_path: str | Path | None = None) -> None:
        """
        Initialize token cache.

        Args:
            cache_path: Optional path for persistent cache storage.
                       Defaults to ~/.pbi-monitor/.token_cache
        """
        self._lock = threading.RLock()
        self._cache: dict[str, Any] = {}

        if cache_path:
            self._cache_path = Path(cache_path)
        else:
            self._cache_path = Path.home() / ".pbi-monitor" / ".token_cache"

        self._load_cache()

    def _load_cache(self) -> None:
        try:
            if self._cache_path.exists():
                with open(self._cache_path) as f:
                    self._cache = json.load(f)
                    logger.debug("Token cache loaded from disk")
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load token cache: {e}")
            self._cache = {}

    def _save_cache(self) -> None:
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._cache_path, "w") as f:
                json.dump(self._cache, f)
            os.chmod(self._cache_path, 0o600)
        except OSError as e:
            logger.warning(f"Failed to save token cache: {e}")

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached token for ``key``, or None if missing or expiring."""
        with self._lock:
            if key not in self._cache:
                return None

            cached = self._cache[key]
            if time.time() + EXPIRY_BUFFER_SECONDS > cached.get("expires_at", 0):
                logger.debug(f"Token for {key} is expired or expiring soon")
                del self._cache[key]
                self._save_cache()
                return None

            return cached

    def set(
        self,
        key: str,
        access_token: str,
        expires_in: int,
        token_type: str = "Bearer",
    ) -> None:
        with self._lock:
            self._cache[key] = {
                "access_token": access_token,
                "token_type": token_type,
                "expires_at": time.time() + expires_in,
                "cached_at": datetime.now(timezone.utc).isoformat(),
            }
            self._save_cache()
            logger.debug(f"Token cached for {key}, expires in {expires_in}s")

    def clear(self, key: str | None = None) -> None:
        with self._lock:
            if key:
                self._cache.pop(key, None)
            else:
                self._cache = {}
            self._save_cache()


class AdminOAuthClient:
    """
    Client credentials flow against Azure AD for the admin API scope.
    """

    def __init__(
        self,
        config: AdminApiConfig,
        cache: TokenCache | None = None,
    ) -> None:
        self._config = config
        self._cache = cache or TokenCache()
        self._lock = threading.RLock()
        self._msal_app: msal.ConfidentialClientApplication | None = None
        self._cache_key = f"pbi_admin_{config.client_id}"

    @property
    def msal_app(self) -> msal.ConfidentialClientApplication:
        # Built on first token request; construction contacts the authority
        if self._msal_app is None:
            self._msal_app = msal.ConfidentialClientApplication(
                client_id=self._config.client_id,
                client_credential=self._config.client_secret.get_secret_value(),
                authority=self._config.authority,
            )
        return self._msal_app

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, refreshing if necessary.

        Args:
            force_refresh: If True, bypass cache and get new token

        Returns:
            Valid access token string

        Raises:
            AuthenticationError: If token acquisition fails
        """
        with self._lock:
            if not force_refresh:
                cached = self._cache.get(self._cache_key)
                if cached:
                    logger.debug("Using cached access token")
                    return cached["access_token"]

            logger.info("Acquiring new access token from Azure AD")
            try:
                result = self.msal_app.acquire_token_for_client(
                    scopes=self._config.token_scopes
                )
            except Exception as e:
                raise AuthenticationError(
                    f"Token acquisition failed: {e}",
                    provider="Microsoft Entra ID",
                    details={"tenant_id": self._config.tenant_id},
                ) from e

            if "access_token" not in result:
                error = result.get("error", "unknown")
                raise AuthenticationError(
                    f"Token acquisition failed: {error}",
                    provider="Microsoft Entra ID",
                    details={
                        "error": error,
                        "error_description": result.get("error_description", "No description"),
                        "tenant_id": self._config.tenant_id,
                    },
                )

            token = result["access_token"]
            self._cache.set(self._cache_key, token, result.get("expires_in", 3600))
            return token

    def get_authorization_header(self, force_refresh: bool = False) -> dict[str, str]:
        """Get HTTP Authorization header with valid Bearer token."""
        token = self.get_access_token(force_refresh=force_refresh)
        return {"Authorization": f"Bearer {token}"}

    def clear_cache(self) -> None:
        """Clear cached tokens for this client."""
        self._cache.clear(self._cache_key)
        logger.info("Token cache cleared")

    def validate_credentials(self) -> bool:
        """
        Validate OAuth credentials by attempting token acquisition.

        Raises:
            AuthenticationError: If credentials are invalid
        """
        self.get_access_token(force_refresh=True)
        return True
