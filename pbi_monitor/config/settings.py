"""
Configuration settings for pbi-monitor.

Uses Pydantic for validation and environment variable loading.
Supports YAML configuration files with environment variable overrides.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pbi_monitor.utils.exceptions import ConfigurationError

MIN_FREQUENCY_HOURS = 1
MAX_FREQUENCY_HOURS = 168
DEFAULT_FREQUENCY_HOURS = 24

DEFAULT_AUTHORITY_URL = "https://login.microsoftonline.com"
DEFAULT_API_BASE_URL = "https://api.powerbi.com/v1.0/myorg"
DEFAULT_DB_PATH = Path.home() / ".pbi-monitor" / "monitor.duckdb"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AdminApiConfig(BaseModel):
    """Admin REST API connection configuration."""

    tenant_id: str = Field(..., description="Azure AD tenant ID")
    client_id: str = Field(..., description="Azure AD application client ID")
    client_secret: SecretStr = Field(..., description="Azure AD application client secret")
    authority_url: str = Field(
        default=DEFAULT_AUTHORITY_URL,
        description="Azure AD authority host",
    )
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Power BI REST API base URL",
    )
    timeout_seconds: int = Field(default=30, ge=1, le=600)

    @field_validator("tenant_id", "client_id")
    @classmethod
    def validate_not_empty(cls, v: str, info: Any) -> str:
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v.strip()

    @field_validator("authority_url", "api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def authority(self) -> str:
        """Tenant-specific authority for MSAL."""
        return f"{self.authority_url}/{self.tenant_id}"

    @property
    def token_scopes(self) -> list[str]:
        return ["https://analysis.windows.net/powerbi/api/.default"]


class SyncConfig(BaseModel):
    """Sync behavior configuration."""

    frequency_hours: int = Field(
        default=DEFAULT_FREQUENCY_HOURS,
        ge=MIN_FREQUENCY_HOURS,
        le=MAX_FREQUENCY_HOURS,
        description="Hours between automatic syncs",
    )
    history_top: int = Field(default=5, ge=1, le=100, description="Refresh history page size")
    workspace_page_size: int = Field(default=5000, ge=1, le=5000)
    workspace_ids: list[str] = Field(
        default_factory=list,
        description="Restrict the sweep to these workspaces (empty = all)",
    )
    db_path: Path = Field(default=DEFAULT_DB_PATH, description="DuckDB database file")

    @field_validator("workspace_ids", mode="before")
    @classmethod
    def split_workspace_ids(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Admin API credentials
    pbi_tenant_id: str = Field(default="", alias="PBI_TENANT_ID")
    pbi_client_id: str = Field(default="", alias="PBI_CLIENT_ID")
    pbi_client_secret: SecretStr = Field(default=SecretStr(""), alias="PBI_CLIENT_SECRET")
    pbi_authority_url: str = Field(default=DEFAULT_AUTHORITY_URL, alias="PBI_AUTHORITY_URL")
    pbi_api_base_url: str = Field(default=DEFAULT_API_BASE_URL, alias="PBI_API_BASE_URL")
    pbi_timeout: int = Field(default=30, alias="PBI_TIMEOUT")

    # Sync settings
    sync_frequency_hours: int = Field(default=DEFAULT_FREQUENCY_HOURS)
    sync_history_top: int = Field(default=5)
    sync_workspace_page_size: int = Field(default=5000)
    sync_workspace_ids: str = Field(default="")
    sync_db_path: str = Field(default=str(DEFAULT_DB_PATH))

    # Logging
    log_level: str = Field(default="WARNING")
    log_json: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    def get_admin_api_config(self) -> AdminApiConfig:
        """Build AdminApiConfig from settings."""
        try:
            return AdminApiConfig(
                tenant_id=self.pbi_tenant_id,
                client_id=self.pbi_client_id,
                client_secret=self.pbi_client_secret,
                authority_url=self.pbi_authority_url,
                api_base_url=self.pbi_api_base_url,
                timeout_seconds=self.pbi_timeout,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid admin API configuration: {e}") from e

    def get_sync_config(self) -> SyncConfig:
        """Build SyncConfig from settings."""
        try:
            return SyncConfig(
                frequency_hours=self.sync_frequency_hours,
                history_top=self.sync_history_top,
                workspace_page_size=self.sync_workspace_page_size,
                workspace_ids=self.sync_workspace_ids,
                db_path=Path(self.sync_db_path).expanduser(),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid sync configuration: {e}") from e


# Global settings instance
_settings: Settings | None = None


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Load settings from YAML file and environment variables.

    Args:
        config_path: Optional path to YAML configuration file.
                    Environment variables always take precedence.

    Returns:
        Settings instance with merged configuration.
    """
    global _settings

    config_data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    config_data = _flatten_config(yaml_config)

    try:
        if config_data:
            _settings = Settings(**config_data)
        else:
            _settings = Settings()
        return _settings
    except Exception as e:
        raise ConfigurationError(f"Failed to load settings: {e}") from e


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def _flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested YAML config to match Settings field names."""
    result: dict[str, Any] = {}

    for key, value in config.items():
        if isinstance(value, dict):
            # Sections like 'pbi', 'sync', 'log'
            nested_prefix = f"{key}_" if not prefix else f"{prefix}{key}_"
            result.update(_flatten_config(value, nested_prefix))
        elif isinstance(value, list):
            full_key = f"{prefix}{key}" if prefix else key
            result[full_key] = ",".join(str(item) for item in value)
        else:
            full_key = f"{prefix}{key}" if prefix else key
            result[full_key] = value

    return result
