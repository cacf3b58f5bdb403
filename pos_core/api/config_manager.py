"""
API Configuration Manager
Loads settings and wires the connector, stream client and data service
"""
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union
import logging

import httpx

from pos_core.errors import ConfigurationError, POSError
from pos_core.logging import LoggingConfig, resolve_level, setup_logging
from pos_core.offline.config import OfflineConfig
from pos_core.offline.context import DataContext
from pos_core.offline.event_stream import EventStreamClient
from pos_core.offline.unified_data_service import UnifiedDataService

from .base_connector import APIConfig
from .pos_connector import POSAPIConnector

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(".pos") / "settings.toml"
DEFAULT_BASE_URL = "http://localhost:5000/api"
ENV_PREFIX = "POS_"

# Settable [api] keys and their types
API_FIELDS = {
    "api_name": str,
    "base_url": str,
    "api_key": str,
    "restaurant_id": str,
    "timeout": float,
    "stream_path": str,
}

# Must be at least 1; other numeric offline settings must be >= 0
_AT_LEAST_ONE = {"reprobe_after_failures"}
_POSITIVE = {"timeout", "probe_timeout", "backoff_base", "backoff_cap"}


def _default_api_config() -> APIConfig:
    return APIConfig(api_name="pos", base_url=DEFAULT_BASE_URL)


@dataclass
class POSSettings:
    """Settings for one restaurant's data layer"""
    api: APIConfig = field(default_factory=_default_api_config)
    offline: OfflineConfig = field(default_factory=OfflineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Environment values for boolean settings
_BOOL_STRINGS = {
    "true": True, "1": True, "yes": True, "on": True,
    "false": False, "0": False, "no": False, "off": False,
}


def _coerce(section: str, key: str, value: Any, expected: type) -> Any:
    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS:
            return _BOOL_STRINGS[value.strip().lower()]
        raise ConfigurationError(
            f"[{section}] {key} must be true or false, got {value!r}",
            config_key=f"{section}.{key}",
            expected_type="bool",
        )
    if isinstance(value, bool):
        raise ConfigurationError(
            f"[{section}] {key} must be {expected.__name__}",
            config_key=f"{section}.{key}",
            expected_type=expected.__name__,
        )
    try:
        coerced = expected(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"[{section}] {key} must be {expected.__name__}, got {value!r}",
            config_key=f"{section}.{key}",
            expected_type=expected.__name__,
        )
    if expected is int and isinstance(value, float) and coerced != value:
        raise ConfigurationError(
            f"[{section}] {key} must be an integer, got {value!r}",
            config_key=f"{section}.{key}",
            expected_type="int",
        )

    if expected in (int, float):
        minimum = 1 if key in _AT_LEAST_ONE else 0
        if coerced < minimum or (key in _POSITIVE and coerced <= 0):
            raise ConfigurationError(
                f"[{section}] {key} is out of range: {value!r}",
                config_key=f"{section}.{key}",
                expected_type=expected.__name__,
            )
    return coerced


def _section_fields(config_cls: type) -> Dict[str, type]:
    return {f.name: type(f.default) for f in fields(config_cls)}


def _apply_section(
    target: Dict[str, Any],
    section: str,
    values: Mapping[str, Any],
    allowed: Mapping[str, type],
) -> None:
    for key, value in values.items():
        if key == "headers" and section == "api":
            if not isinstance(value, Mapping):
                raise ConfigurationError("[api] headers must be a table", config_key="api.headers")
            target["headers"] = {str(k): str(v) for k, v in value.items()}
            continue
        if key not in allowed:
            raise ConfigurationError(f"Unknown setting [{section}] {key}", config_key=f"{section}.{key}")
        target[key] = _coerce(section, key, value, allowed[key])


def load_settings(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> POSSettings:
    """
    Load settings from TOML, then apply environment overrides.

    Expected settings.toml format:
    [api]
    base_url = "https://pos.example.com/api"
    api_key = "your_api_key"
    restaurant_id = "rest-1"

    [offline]
    probe_timeout = 3.0
    reprobe_after_failures = 3

    [logging]
    level = "INFO"
    log_to_file = true

    Environment variables ``POS_<SECTION>_<KEY>`` (e.g. POS_API_BASE_URL,
    POS_OFFLINE_PROBE_TIMEOUT, POS_LOGGING_LEVEL) override file values.
    A missing file means defaults.

    Raises:
        ConfigurationError: on unreadable TOML, unknown keys or bad values
    """
    env = os.environ if env is None else env
    path = Path(path or env.get(f"{ENV_PREFIX}SETTINGS_PATH") or DEFAULT_SETTINGS_PATH)

    raw: Dict[str, Any] = {}
    if path.is_file():
        try:
            with path.open("rb") as fh:
                raw = tomllib.load(fh)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid settings file {path}: {e}", config_key=str(path))
        logger.info(f"Loaded settings from {path}")
    else:
        logger.debug(f"No settings file at {path}, using defaults")

    api_values: Dict[str, Any] = {}
    offline_values: Dict[str, Any] = {}
    logging_values: Dict[str, Any] = {}

    for section, target, allowed in (
        ("api", api_values, API_FIELDS),
        ("offline", offline_values, _section_fields(OfflineConfig)),
        ("logging", logging_values, _section_fields(LoggingConfig)),
    ):
        values = raw.get(section, {})
        if not isinstance(values, Mapping):
            raise ConfigurationError(f"[{section}] must be a table", config_key=section)
        _apply_section(target, section, values, allowed)

        env_prefix = f"{ENV_PREFIX}{section.upper()}_"
        overrides = {
            name[len(env_prefix):].lower(): value
            for name, value in env.items()
            if name.startswith(env_prefix)
        }
        _apply_section(target, section, overrides, allowed)

    api_values.setdefault("api_name", "pos")
    api_values.setdefault("base_url", DEFAULT_BASE_URL)
    if not api_values["base_url"].strip():
        raise ConfigurationError("[api] base_url must not be empty", config_key="api.base_url")
    if "level" in logging_values:
        try:
            resolve_level(logging_values["level"])
        except ValueError as e:
            raise ConfigurationError(f"[logging] {e}", config_key="logging.level")

    return POSSettings(
        api=APIConfig(**api_values),
        offline=OfflineConfig(**offline_values),
        logging=LoggingConfig(**logging_values),
    )


class APIConfigManager:
    """
    Builds the data layer from one settings object

    Usage:
        manager = APIConfigManager(load_settings())
        service = manager.create_data_service()
        await service.start()
    """

    def __init__(self, settings: Optional[POSSettings] = None):
        self.settings = settings or load_settings()

    def configure_logging(self) -> None:
        """Apply the [logging] settings to the process"""
        config = self.settings.logging
        setup_logging(
            level=config.level,
            log_to_file=config.log_to_file,
            log_dir=config.log_dir or None,
        )

    def create_connector(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> POSAPIConnector:
        """
        Args:
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
        """
        return POSAPIConnector(self.settings.api, transport=transport)

    def create_stream_client(self, connector: POSAPIConnector) -> EventStreamClient:
        """Stream client sharing the connector's HTTP client and credentials"""
        return EventStreamClient(
            connector.client,
            self.settings.api.stream_path,
            connect_timeout=self.settings.api.timeout,
        )

    def create_data_service(
        self,
        on_unauthorized: Optional[Callable[[POSError], Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        context: Optional[DataContext] = None,
        live_updates: bool = True,
    ) -> UnifiedDataService:
        """
        Create a data service with its own context.

        Args:
            on_unauthorized: Called when the backend rejects the credential
            transport: Optional httpx transport for the connector
            context: Mode and store to use; a fresh one by default
            live_updates: Subscribe to the kitchen stream while remote
        """
        connector = self.create_connector(transport)
        stream = self.create_stream_client(connector) if live_updates else None
        return UnifiedDataService(
            connector,
            stream=stream,
            context=context or DataContext(),
            config=self.settings.offline,
            on_unauthorized=on_unauthorized,
        )
