"""
Power BI admin REST API client.

Issues authenticated GET/POST requests and returns raw response bodies.
Parsing is left to the response parser so that transport failures and
malformed payloads surface as different errors.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterator

import requests
from requests.exceptions import HTTPError, RequestException
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pbi_monitor.auth.oauth import AdminOAuthClient
from pbi_monitor.config.settings import AdminApiConfig
from pbi_monitor.core.response_parser import parse_json_array
from pbi_monitor.utils.exceptions import (
    AuthenticationError,
    ConnectionError,
    RateLimitError,
    ResourceNotFoundError,
)
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)


DEFAULT_RETRY_AFTER_SECONDS = 60


def parse_retry_after(value: str | None) -> int:
    """
    Seconds to wait from a ``Retry-After`` header.

    The header is either a number of seconds or an HTTP date. Anything
    unreadable falls back to DEFAULT_RETRY_AFTER_SECONDS.
    """
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS

    value = value.strip()
    if value.isdigit():
        return int(value)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0, int((retry_at - datetime.now(timezone.utc)).total_seconds()))


def _is_unauthorized(error: BaseException) -> bool:
    return isinstance(error, AuthenticationError) and error.details.get("status_code") == 401


class AdminApiClient:
    """
    REST client for the tenant admin API.

    A 401 forces a token refresh and one more attempt; nothing else is
    retried here. Recovery from other failures is left to the next
    scheduled sweep.
    """

    def __init__(
        self,
        config: AdminApiConfig,
        oauth_client: AdminOAuthClient | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config
        self._oauth = oauth_client or AdminOAuthClient(config)
        self._base_url = config.api_base_url
        self._session = session or requests.Session()

    def _get_headers(self, force_refresh: bool = False) -> dict[str, str]:
        auth_headers = self._oauth.get_authorization_header(force_refresh=force_refresh)
        return {
            **auth_headers,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _check_response(self, response: requests.Response) -> str:
        """
        Raise on error status codes, otherwise return the response body.

        Raises:
            AuthenticationError: On 401/403
            RateLimitError: On 429
            ResourceNotFoundError: On 404
            ConnectionError: On other non-2xx codes
        """
        details = {"status_code": response.status_code, "response": response.text or ""}

        if response.status_code == 401:
            raise AuthenticationError(
                "Admin API authentication failed",
                provider="Power BI API",
                details=details,
            )

        if response.status_code == 403:
            raise AuthenticationError(
                "Admin API access forbidden - check tenant admin permissions",
                provider="Power BI API",
                details=details,
            )

        if response.status_code == 404:
            raise ResourceNotFoundError(
                "Resource not found in Power BI",
                resource_type="pbi_resource",
                details={**details, "url": response.url},
            )

        if response.status_code == 429:
            raise RateLimitError(
                "Admin API rate limit exceeded",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                details=details,
            )

        try:
            response.raise_for_status()
        except HTTPError as e:
            raise ConnectionError(
                f"Admin API request failed: {e}",
                service="Power BI API",
                details=details,
            ) from e

        return response.text or ""

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception(_is_unauthorized),
        reraise=True,
    )
    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> str:
        url = f"{self._base_url}{endpoint}"
        logger.debug(f"API request: {method} {url}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                headers=self._get_headers(),
                json=data,
                params=params,
                timeout=self._config.timeout_seconds,
            )
        except RequestException as e:
            raise ConnectionError(
                f"Failed to connect to admin API: {e}",
                service="Power BI API",
            ) from e

        try:
            return self._check_response(response)
        except AuthenticationError:
            if response.status_code == 401:
                logger.info("Refreshing OAuth token after 401")
                self._oauth.get_access_token(force_refresh=True)
            raise

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> str:
        """GET an endpoint and return the raw body."""
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, data: dict[str, Any] | None = None) -> str:
        """POST a JSON body and return the raw response body."""
        return self._request("POST", endpoint, data=data or {})

    def get_paged(
        self,
        endpoint: str,
        page_size: int,
        params: dict[str, Any] | None = None,
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Yield pages from an endpoint that pages with ``$top``/``$skip``.

        Stops after the first page shorter than ``page_size``.
        """
        skip = 0
        while True:
            page_params = {**(params or {}), "$top": page_size, "$skip": skip}
            page = parse_json_array(self.get(endpoint, params=page_params))
            yield page
            if len(page) < page_size:
                return
            skip += page_size

    # ----------------------------------------------------------------
    # Endpoints
    # ----------------------------------------------------------------

    def workspaces_endpoint(self) -> str:
        return "/admin/groups"

    def datasets_endpoint(self, workspace_id: str) -> str:
        return f"/admin/groups/{workspace_id}/datasets"

    def refreshes_endpoint(self, workspace_id: str, dataset_id: str) -> str:
        return f"/groups/{workspace_id}/datasets/{dataset_id}/refreshes"

    def validate_connection(self) -> bool:
        """
        Validate admin API connectivity with a one-item workspace listing.

        Raises:
            AuthenticationError: If authentication fails
            ConnectionError: If API is unreachable
        """
        self.get(self.workspaces_endpoint(), params={"$top": 1})
        logger.info("Admin API connection validated successfully")
        return True
