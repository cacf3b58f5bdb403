# =============================================================================
# tests/unit/test_config.py
# Unit Tests for settings loading and service wiring
# =============================================================================

import pytest


SETTINGS_TOML = """
[api]
base_url = "https://pos.example.com/api"
api_key = "file-key"
restaurant_id = "rest-9"
timeout = 5

[api.headers]
X-Client = "till-3"

[offline]
probe_timeout = 1.5
reprobe_after_failures = 4
seed_table_count = 6
"""


class TestLoadSettings:
    """Test TOML and environment configuration"""

    def test_defaults_without_file(self, tmp_path):
        from pos_core.api import load_settings

        settings = load_settings(tmp_path / "missing.toml", env={})

        assert settings.api.base_url == "http://localhost:5000/api"
        assert settings.api.api_key is None
        assert settings.offline.reprobe_after_failures == 3
        assert settings.offline.probe_timeout == 3.0

    def test_file_values(self, tmp_path):
        from pos_core.api import load_settings

        path = tmp_path / "settings.toml"
        path.write_text(SETTINGS_TOML)

        settings = load_settings(path, env={})

        assert settings.api.base_url == "https://pos.example.com/api"
        assert settings.api.restaurant_id == "rest-9"
        assert settings.api.timeout == 5.0
        assert settings.api.headers == {"X-Client": "till-3"}
        assert settings.offline.probe_timeout == 1.5
        assert settings.offline.reprobe_after_failures == 4
        assert settings.offline.seed_table_count == 6

    def test_environment_overrides_file(self, tmp_path):
        from pos_core.api import load_settings

        path = tmp_path / "settings.toml"
        path.write_text(SETTINGS_TOML)

        settings = load_settings(path, env={
            "POS_API_API_KEY": "env-key",
            "POS_OFFLINE_STREAM_MAX_RETRIES": "9",
            "POS_OFFLINE_BACKOFF_CAP": "12.5",
        })

        assert settings.api.api_key == "env-key"
        assert settings.offline.stream_max_retries == 9
        assert settings.offline.backoff_cap == 12.5

    def test_settings_path_from_environment(self, tmp_path):
        from pos_core.api import load_settings

        path = tmp_path / "custom.toml"
        path.write_text(SETTINGS_TOML)

        settings = load_settings(env={"POS_SETTINGS_PATH": str(path)})

        assert settings.api.api_key == "file-key"

    @pytest.mark.parametrize("content", [
        "[offline]\nprobe_timeout = 0\n",
        "[offline]\nreprobe_after_failures = 0\n",
        "[offline]\nseed_table_count = -1\n",
        "[offline]\nstream_max_retries = true\n",
        "[offline]\nunknown_knob = 1\n",
        "[api]\nbase_url = \"\"\n",
        "api = 3\n",
        "not toml [",
    ])
    def test_invalid_settings(self, tmp_path, content):
        from pos_core.api import load_settings
        from pos_core.errors import ConfigurationError

        path = tmp_path / "settings.toml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            load_settings(path, env={})

    def test_logging_section(self, tmp_path):
        from pos_core.api import load_settings

        path = tmp_path / "settings.toml"
        path.write_text('[logging]\nlevel = "debug"\nlog_to_file = true\nlog_dir = "var/log"\n')

        settings = load_settings(path, env={"POS_LOGGING_LOG_TO_FILE": "off"})

        assert settings.logging.level == "debug"
        assert settings.logging.log_to_file is False
        assert settings.logging.log_dir == "var/log"

    @pytest.mark.parametrize("content, env", [
        ('[logging]\nlevel = "chatty"\n', {}),
        ('[logging]\nlog_to_file = 1\n', {}),
        ("", {"POS_LOGGING_LOG_TO_FILE": "sometimes"}),
    ])
    def test_invalid_logging_settings(self, tmp_path, content, env):
        from pos_core.api import load_settings
        from pos_core.errors import ConfigurationError

        path = tmp_path / "settings.toml"
        path.write_text(content)

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(path, env=env)

        assert exc_info.value.details["config_key"].startswith("logging.")

    def test_invalid_environment_value(self, tmp_path):
        from pos_core.api import load_settings
        from pos_core.errors import ConfigurationError

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(tmp_path / "missing.toml", env={"POS_OFFLINE_PROBE_TIMEOUT": "soon"})

        assert exc_info.value.details["config_key"] == "offline.probe_timeout"


class TestAPIConfigManager:
    """Test construction of the data layer"""

    def test_create_data_service(self, api_config, offline_config, backend):
        from pos_core.api import APIConfigManager, POSSettings
        from pos_core.offline import OperationMode, UnifiedDataService

        manager = APIConfigManager(POSSettings(api=api_config, offline=offline_config))
        service = manager.create_data_service(transport=backend.transport)

        assert isinstance(service, UnifiedDataService)
        assert service.mode is OperationMode.UNDETERMINED
        assert service.live_updates is not None
        assert service.config is offline_config

    def test_services_do_not_share_state(self, api_config, offline_config, backend):
        from pos_core.api import APIConfigManager, POSSettings
        from pos_core.offline import EntityKind, OperationMode

        manager = APIConfigManager(POSSettings(api=api_config, offline=offline_config))
        first = manager.create_data_service(transport=backend.transport)
        second = manager.create_data_service(transport=backend.transport)

        first.force_fallback()

        assert first.context is not second.context
        assert second.mode is OperationMode.UNDETERMINED
        assert first.store.count(EntityKind.TABLES) == 3
        assert second.store.count(EntityKind.TABLES) == 0

    def test_configure_logging_applies_settings(self, api_config, monkeypatch):
        import pos_core.api.config_manager as config_manager
        from pos_core.api import APIConfigManager, POSSettings
        from pos_core.logging import LoggingConfig

        calls = []
        monkeypatch.setattr(config_manager, "setup_logging", lambda **kwargs: calls.append(kwargs))
        settings = POSSettings(api=api_config, logging=LoggingConfig(level="WARNING", log_to_file=True))

        APIConfigManager(settings).configure_logging()

        assert calls == [{"level": "WARNING", "log_to_file": True, "log_dir": None}]

    def test_live_updates_optional(self, api_config, offline_config, backend):
        from pos_core.api import APIConfigManager, POSSettings

        manager = APIConfigManager(POSSettings(api=api_config, offline=offline_config))
        service = manager.create_data_service(transport=backend.transport, live_updates=False)

        assert service.live_updates is None
