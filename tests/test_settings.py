"""
Unit tests for settings loading and validation.
"""

import pytest
import yaml

from pbi_monitor.config.settings import (
    AdminApiConfig,
    Settings,
    SyncConfig,
    _flatten_config,
    load_settings,
)
from pbi_monitor.utils.exceptions import ConfigurationError


class TestFlattenConfig:
    def test_nested_sections(self):
        flat = _flatten_config({"pbi": {"tenant_id": "t"}, "sync": {"history_top": 10}})

        assert flat == {"pbi_tenant_id": "t", "sync_history_top": 10}

    def test_lists_joined(self):
        flat = _flatten_config({"sync": {"workspace_ids": ["a", "b"]}})

        assert flat == {"sync_workspace_ids": "a,b"}


class TestSyncConfig:
    def test_workspace_ids_split(self):
        config = SyncConfig(workspace_ids=" a , b,,c ")

        assert config.workspace_ids == ["a", "b", "c"]

    @pytest.mark.parametrize("hours", [0, 169])
    def test_frequency_bounds(self, hours):
        with pytest.raises(ValueError):
            SyncConfig(frequency_hours=hours)


class TestAdminApiConfig:
    def test_trailing_slash_stripped(self):
        config = AdminApiConfig(
            tenant_id="t",
            client_id="c",
            client_secret="s",
            api_base_url="https://api.powerbi.com/v1.0/myorg/",
        )

        assert config.api_base_url == "https://api.powerbi.com/v1.0/myorg"

    def test_missing_credentials_raise_configuration_error(self):
        settings = Settings(pbi_tenant_id="", pbi_client_id="", pbi_client_secret="")

        with pytest.raises(ConfigurationError):
            settings.get_admin_api_config()


class TestLoadSettings:
    def test_yaml_values_applied(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "pbi": {"tenant_id": "tenant", "client_id": "client", "client_secret": "s"},
                    "sync": {"history_top": 10, "db_path": str(tmp_path / "x.duckdb")},
                }
            )
        )

        settings = load_settings(path)

        assert settings.get_admin_api_config().tenant_id == "tenant"
        sync = settings.get_sync_config()
        assert sync.history_top == 10
        assert sync.db_path == tmp_path / "x.duckdb"

    def test_invalid_sync_values_raise_configuration_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"sync": {"history_top": 0}}))

        with pytest.raises(ConfigurationError):
            load_settings(path).get_sync_config()


class TestLogSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_JSON", raising=False)

        settings = Settings()

        assert settings.log_level == "WARNING"
        assert settings.log_json is False

    def test_yaml_log_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"log": {"level": "debug", "json": True}}))

        settings = load_settings(path)

        assert settings.log_level == "DEBUG"
        assert settings.log_json is True

    def test_unknown_level_raises_configuration_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"log": {"level": "chatty"}}))

        with pytest.raises(ConfigurationError):
            load_settings(path)
