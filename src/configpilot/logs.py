"""Logging setup for the configpilot process.

Components never configure logging themselves. They log through an
injected ``logging.Logger`` or their module logger; this module wires
those loggers to stdout and, optionally, a log file.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .models import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(name: Optional[str]) -> int:
    """Map a level name to a logging level, defaulting to INFO."""
    return _LEVELS.get((name or "").strip().lower(), logging.INFO)


def setup_logging(
    config: Optional[LoggingConfig] = None,
    logger_name: str = "configpilot",
) -> logging.Logger:
    """Attach stdout and optional file handlers to the package logger.

    Calling this again replaces the handlers it installed before.

    Args:
        config: Logging settings. Defaults to INFO on stdout only.
        logger_name: Logger to configure.

    Returns:
        The configured logger.
    """
    config = config or LoggingConfig()
    level = parse_level(config.log_level)
    formatter = logging.Formatter(LOG_FORMAT)

    log = logging.getLogger(logger_name)
    for handler in list(log.handlers):
        if getattr(handler, "_configpilot", False):
            log.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.log_to_file and config.log_file_path:
        log_path = config.log_file_path.expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
        except OSError as exc:
            print(f"Failed to open log file {log_path}: {exc}", file=sys.stderr)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        handler._configpilot = True  # type: ignore[attr-defined]
        log.addHandler(handler)

    log.setLevel(level)
    return log
