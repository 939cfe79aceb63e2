# src/suitetrack/cli/run_cmds.py

import asyncio
from pathlib import Path

import click
import structlog
from rich.console import Console

from suitetrack.cli.display import build_rich_tree, node_label, summary_line
from suitetrack.cli.utils import (
    apply_config_log_level,
    config_path_option,
    logging_options,
    setup_logging_from_context,
)
from suitetrack.config import load_config
from suitetrack.exceptions import ConfigurationError, SessionError
from suitetrack.protocol import Command
from suitetrack.protocol import commands as cmd
from suitetrack.runtime import RunOrchestrator
from suitetrack.state import SessionState
from suitetrack.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")

_RESULT_COMMANDS = (cmd.TEST_SUCCESS, cmd.TEST_FAIL, cmd.TEST_PENDING)


def _run_orchestrator(orchestrator: RunOrchestrator, scope_file: Path | None) -> int:
    """
    Runs the orchestrator with asyncio.run() and maps the outcome to an exit code:
    0 clean run without failures, 1 failures or abnormal end, 2 on an
    unexpected crash, 130 on CTRL-C.
    """
    try:
        state = asyncio.run(orchestrator.run(scope_file))
    except KeyboardInterrupt:
        log.warning("Run interrupted by KeyboardInterrupt (CTRL-C).")
        return 130
    except SessionError as e:
        log.error("Run could not be started", error=str(e))
        click.echo(f"Error: {e}", err=True)
        return 1
    except Exception as e:
        log.critical("The test run crashed unexpectedly.", error=str(e), exc_info=True)
        click.echo(f"An unexpected error occurred during the run: {e}", err=True)
        return 2

    if state is SessionState.FAILED:
        click.echo(f"Error: {orchestrator.session.error}", err=True)
        return 1
    return 1 if orchestrator.tree.root.state_map.fail else 0


@click.command(name="run")
@click.argument("scope_file", required=False, type=click.Path(path_type=Path))
@config_path_option
@click.option("--no-restore", is_flag=True, help="Start from an empty tree instead of the saved state.")
@click.option("--failures-only", is_flag=True, help="Only show failed and terminated tests in the summary.")
@logging_options
@click.pass_context
def run_cli(
    ctx: click.Context,
    scope_file: Path | None,
    config_path: Path,
    no_restore: bool,
    failures_only: bool,
    **kwargs,
):
    """Run the test suite and track its state (optionally only SCOPE_FILE)."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        log.error("Failed to load configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)

    apply_config_log_level(ctx, config, **kwargs)

    orchestrator = RunOrchestrator(config)
    if not no_restore:
        orchestrator.restore()

    console = Console(highlight=False)

    def echo_result(command: Command) -> None:
        if command.name in _RESULT_COMMANDS:
            node = orchestrator.tree.get_by_id(command.node_id)
            if node is not None:
                console.print(node_label(node))

    orchestrator.decoder.on_applied(echo_result)

    log.info("Starting test run", scope_file=str(scope_file) if scope_file else None)
    exit_code = _run_orchestrator(orchestrator, scope_file)

    console.print(build_rich_tree(orchestrator.tree, failures_only=failures_only))
    log.info(
        "'run' command finished.",
        exit_code=exit_code,
        summary=summary_line(orchestrator.tree.root.state_map, orchestrator.tree.total),
    )
    ctx.exit(exit_code)

# 🔼⚙️
