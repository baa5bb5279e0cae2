"""Root logger wiring for benchmark runs."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from .config import AppConfig
from .errors import ConfigError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "ibenc.log"

# Chatty at DEBUG: one line per connection or per job lookup
NOISY_LOGGERS = ("urllib3", "apscheduler")


def resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ConfigError(f"unknown log level {name!r}")
    return level


def build_handlers(config: AppConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    settings = config.logging
    if settings.file_enabled:
        log_dir = config.paths.logs_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_dir / LOG_FILE_NAME,
                maxBytes=settings.max_bytes,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        )
    return handlers


def configure_logging(config: AppConfig, level: Optional[str] = None) -> None:
    """Send every record to stderr and, unless disabled, to logs_dir/ibenc.log.

    ``level`` wins over ``config.logging.level``; --verbose passes DEBUG.
    Handlers from a previous call are closed and replaced.
    """
    root_level = resolve_level(level or config.logging.level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in build_handlers(config):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(root_level)

    quiet_level = max(root_level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
