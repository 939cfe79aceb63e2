# src/suitetrack/cli/utils.py

import logging
from pathlib import Path

import click
import structlog

from suitetrack.config import DEFAULT_CONFIG_PATH, SuitetrackConfig
from suitetrack.telemetry import StructLogger
from suitetrack.telemetry import setup_logging as core_setup_logging

log: StructLogger = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging.getLevelNamesMapping().keys()), case_sensitive=False)


def logging_options(f):
    """Decorator to add logging options to any command."""
    f = click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="SUITETRACK_LOG_LEVEL",
        help="Log level; overrides [global] log_level from the config file.",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="SUITETRACK_LOG_FILE",
        help="Also write JSON log lines to this file.",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="SUITETRACK_JSON_LOGS",
        help="Render stderr logs as JSON instead of console format.",
    )(f)
    return f


def config_path_option(f):
    """Decorator adding the shared --config-path option."""
    return click.option(
        "-c",
        "--config-path",
        type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
        default=DEFAULT_CONFIG_PATH,
        show_default=True,
        envvar="SUITETRACK_CONF",
        help="Path to the suitetrack configuration file (env var SUITETRACK_CONF).",
        show_envvar=True,
    )(f)


def _logging_overrides(
    ctx: click.Context,
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
) -> tuple[str | None, str | None, bool]:
    """Command options win over the group's options stored on the context."""
    obj = ctx.obj or {}
    return (
        log_level or obj.get("LOG_LEVEL"),
        log_file or obj.get("LOG_FILE"),
        json_logs if json_logs is not None else obj.get("JSON_LOGS", False),
    )


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "WARNING",
) -> None:
    """Configures logging from CLI options, using `default_log_level` when none was given."""
    level_name, log_file, json_logs = _logging_overrides(ctx, local_log_level, local_log_file, local_json_logs)
    level_name = (level_name or default_log_level).upper()
    numeric_level = logging.getLevelNamesMapping().get(level_name, logging.INFO)

    core_setup_logging(level=numeric_level, json_logs=json_logs, log_file=log_file)
    log.debug("CLI logging configured", level=level_name, log_file=log_file, json_logs=json_logs)


def apply_config_log_level(
    ctx: click.Context,
    config: SuitetrackConfig,
    log_level: str | None = None,
    log_file: str | None = None,
    json_logs: bool | None = None,
) -> None:
    """
    Switches logging to `[global] log_level` once the config file is loaded.
    A level given with -l/--log-level or SUITETRACK_LOG_LEVEL takes precedence.
    """
    if _logging_overrides(ctx, log_level, log_file, json_logs)[0]:
        return
    setup_logging_from_context(
        ctx,
        local_log_file=log_file,
        local_json_logs=json_logs,
        default_log_level=config.global_config.log_level,
    )


# ⚙️🛠️
