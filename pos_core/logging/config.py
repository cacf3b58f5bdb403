# =============================================================================
# pos_core/logging/config.py
# Logging Configuration for the POS data layer
# =============================================================================

import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from datetime import datetime
from typing import Optional, Union


# Log format
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log directory
LOG_DIR = Path("logs")


@dataclass
class LoggingConfig:
    """The [logging] table of settings.toml"""
    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = ""           # empty means LOG_DIR


def resolve_level(level: Union[int, str]) -> int:
    """Map a level name ("debug", "WARNING") or number to a logging level."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure logging for a till process.

    Called once at startup by the host application (see
    APIConfigManager.configure_logging); the data layer itself only logs.

    Args:
        level: Level number or name (default: INFO)
        log_to_file: Also write a dated file, one per day of trading
        log_filename: Custom log filename (default: pos_YYYY-MM-DD.log)
        log_dir: Directory for the file (default: LOG_DIR)
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        directory = Path(log_dir) if log_dir else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        if log_filename is None:
            log_filename = f"pos_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(directory / log_filename))

    logging.basicConfig(
        level=resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    # httpx logs every request and stream reconnect at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("pos_core").info(
        f"Logging initialized at {logging.getLevelName(resolve_level(level))}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a pos_core component; services pass their class name.

    Usage:
        from pos_core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Order created")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Logs start, duration and outcome of one data layer operation.

    Usage:
        with LogContext(logger, "Re-probing backend"):
            await prober.probe()
        # Logs: "Re-probing backend... started"
        # Logs: "Re-probing backend... completed (0.12s)"

    Failures are logged at WARNING without a traceback; the caller decides
    whether the error is worth more.
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time = None

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.log(self.level, f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.monotonic() - self.start_time

        if exc_type is None:
            self.logger.log(self.level, f"{self.operation}... completed ({elapsed:.2f}s)")
        else:
            self.logger.warning(f"{self.operation}... failed ({elapsed:.2f}s): {exc_val}")

        return False
