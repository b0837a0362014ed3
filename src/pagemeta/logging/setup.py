"""Logging setup for the pagemeta logger tree."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pagemeta.config.loader import LoggingSettings

LOGGER_NAME = "pagemeta"
LOG_FILENAME = "pagemeta.log"
LOG_FORMAT = "%(asctime)s %(levelname).1s %(name)s %(message)s"
MAX_BYTES = 2 * 1024 * 1024
BACKUP_COUNT = 5

# Library loggers that are noisy at INFO when manifests are fetched over HTTP.
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    log_path: Path | None = None,
    level: str = "INFO",
    mirror_to_console: bool = True,
) -> logging.Logger:
    """Route every ``pagemeta.*`` logger to ``pagemeta.log`` and, optionally, stderr.

    ``log_path`` may name a file or a directory (``pagemeta.log`` is created inside it);
    relative paths resolve against the working directory. Calling this again replaces the
    handlers installed by the previous call.
    """

    numeric_level = level_number(level)
    target = log_file(log_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        RotatingFileHandler(target, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    ]
    if mirror_to_console:
        handlers.append(logging.StreamHandler(sys.stderr))

    root = logging.getLogger(LOGGER_NAME)
    _reset(root)
    root.setLevel(numeric_level)
    root.propagate = False
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    quiet_level = max(numeric_level, logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
    return root


def configure_from_settings(
    settings: LoggingSettings,
    *,
    log_path: Path | None = None,
    level: str | None = None,
    mirror_to_console: bool = False,
) -> logging.Logger:
    """Apply the ``logging`` section of the configuration, with optional CLI overrides."""

    return configure_logging(
        log_path=log_path or settings.path,
        level=level or settings.level,
        mirror_to_console=mirror_to_console,
    )


def level_number(level: str) -> int:
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    try:
        return logging.getLevelNamesMapping()[name]
    except KeyError:
        raise ValueError(f"Unsupported log level: {level!r}") from None


def log_file(log_path: Path | None) -> Path:
    if log_path is None:
        return Path.cwd() / LOG_FILENAME
    path = log_path if log_path.is_absolute() else Path.cwd() / log_path
    return path / LOG_FILENAME if path.is_dir() or not path.suffix else path


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
