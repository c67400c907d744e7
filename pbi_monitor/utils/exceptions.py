"""
Custom exception hierarchy for pbi-monitor.

All exceptions inherit from MonitorError to allow catching
all application-specific errors with a single except clause.
"""

from typing import Any


class MonitorError(Exception):
    """Base exception for all pbi-monitor errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(MonitorError):
    """Raised when configuration is invalid or missing."""

    pass


class AuthenticationError(MonitorError):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if provider:
            details["provider"] = provider
        super().__init__(message, details)
        self.provider = provider


class ConnectionError(MonitorError):
    """Raised when the admin API could not be reached or answered non-2xx."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message, details)
        self.service = service


class ResponseParseError(MonitorError):
    """Raised when a response body is not the expected JSON shape."""

    def __init__(
        self,
        message: str,
        expected: str | None = None,
        body: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if expected:
            details["expected"] = expected
        if body:
            details["body"] = body[:200]
        super().__init__(message, details)
        self.expected = expected
        self.body = body


class ResourceNotFoundError(MonitorError):
    """Raised when a required resource is not found."""

    def __init__(
        self,
        message: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class RateLimitError(MonitorError):
    """Raised when API rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(message, details)
        self.retry_after = retry_after


class RefreshTriggerError(MonitorError):
    """Raised when the admin API rejects a dataset refresh request."""

    def __init__(
        self,
        message: str,
        workspace_id: str | None = None,
        dataset_id: str | None = None,
        response_body: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if workspace_id:
            details["workspace_id"] = workspace_id
        if dataset_id:
            details["dataset_id"] = dataset_id
        if response_body is not None:
            details["response"] = response_body
        super().__init__(message, details)
        self.workspace_id = workspace_id
        self.dataset_id = dataset_id
        self.response_body = response_body


class ScheduledJobError(MonitorError):
    """Raised when the scheduled job linkage cannot be created or updated."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if job_id:
            details["job_id"] = job_id
        super().__init__(message, details)
        self.job_id = job_id
