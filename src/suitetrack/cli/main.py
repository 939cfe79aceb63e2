# src/suitetrack/cli/main.py

"""
Main CLI entry point for suitetrack using Click.
Handles global options like logging level.
"""

import click
import structlog

from suitetrack import __version__
from suitetrack.cli.config_cmds import config_cli
from suitetrack.cli.run_cmds import run_cli
from suitetrack.cli.show_cmds import show_cli
from suitetrack.cli.utils import logging_options, setup_logging_from_context
from suitetrack.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", package_name="suitetrack")
@logging_options
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    Suitetrack: live test tree state for out-of-process test runners.

    Runs the configured runner, tracks pass/fail/pending state for every suite
    and test, and keeps that state across restarts.
    """
    ctx.ensure_object(dict)

    ctx.obj["LOG_LEVEL"] = log_level
    ctx.obj["LOG_FILE"] = log_file
    ctx.obj["JSON_LOGS"] = json_logs if json_logs is not None else False

    setup_logging_from_context(ctx, default_log_level="WARNING")
    log.debug(
        "Main CLI group initialized",
        log_level=log_level,
        log_file=log_file,
        json_logs=json_logs,
    )


cli.add_command(config_cli)
cli.add_command(run_cli)
cli.add_command(show_cli)

if __name__ == "__main__":
    cli()

# 🖥️⚙️
