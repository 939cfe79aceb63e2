# src/suitetrack/telemetry/logger/base.py

"""
Logging setup for suitetrack.

Events are emitted through structlog and routed into stdlib logging, so the
runner session, tree store and CLI all share one set of handlers. Console
output always goes to stderr: stdout belongs to command output such as
`suitetrack show --json`. An optional file handler records JSON lines.
"""

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger, Processor

from suitetrack.telemetry.logger.processors import (
    add_emoji_processor,
    remove_extra_keys_processor,
)

BASE_LOGGER_NAME = "suitetrack"

StructLogger = FilteringBoundLogger


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_emoji_processor,
        remove_extra_keys_processor,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]


def _console_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.stdlib.ProcessorFormatter(processor=renderer)


def _replace_root_handlers(level: int) -> logging.Logger:
    """Drops handlers from a previous setup; the CLI reconfigures once the config file is read."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)
    return root_logger


def setup_logging(
    level: int = logging.INFO,
    json_logs: bool = False,
    log_file: str | None = None,
    file_only: bool = False,
) -> None:
    """
    Configures structlog and the root logger.

    Safe to call repeatedly; every call replaces the handlers installed by the
    previous one.
    """
    structlog.configure(
        processors=_shared_processors(),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = _replace_root_handlers(level)
    slog = structlog.get_logger(BASE_LOGGER_NAME)

    if not file_only:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(_console_formatter(json_logs))
        root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            slog.error("Could not open log file", log_file=log_file, error=str(e))
        else:
            file_handler.setFormatter(_console_formatter(json_logs=True))
            file_handler.setLevel(level)
            root_logger.addHandler(file_handler)

    slog.debug(
        "Logging configured",
        level=logging.getLevelName(level),
        json_console=json_logs,
        console=not file_only,
        log_file=log_file,
    )


# 🔼⚙️
