# src/suitetrack/cli/show_cmds.py

import json
from pathlib import Path

import click
import structlog
from rich.console import Console

from suitetrack.cli.display import build_rich_tree
from suitetrack.cli.utils import (
    apply_config_log_level,
    config_path_option,
    logging_options,
    setup_logging_from_context,
)
from suitetrack.config import load_config
from suitetrack.exceptions import ConfigurationError, SnapshotError
from suitetrack.persistence import SnapshotStore
from suitetrack.telemetry import StructLogger
from suitetrack.tree import TestTree

log: StructLogger = structlog.get_logger("cli.show")


@click.command(name="show")
@config_path_option
@click.option("--json", "as_json", is_flag=True, help="Print the raw snapshot document.")
@click.option("--failures-only", is_flag=True, help="Only show failed and terminated tests.")
@logging_options
@click.pass_context
def show_cli(ctx: click.Context, config_path: Path, as_json: bool, failures_only: bool, **kwargs):
    """Show the test state saved by the last run."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)

    apply_config_log_level(ctx, config, **kwargs)

    if config.state.file is None:
        click.echo("Error: State persistence is disabled in the configuration.", err=True)
        ctx.exit(1)

    store = SnapshotStore(config.state.file)
    tree = TestTree(pending_blocks_success=config.state.pending_blocks_success)
    try:
        restored = store.restore(tree)
    except SnapshotError as e:
        log.error("Failed to restore snapshot", error=str(e))
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if not restored:
        click.echo(f"No saved test state at '{config.state.file}'.")
        return

    if as_json:
        click.echo(json.dumps(tree.to_snapshot(), indent=2))
        return

    Console().print(build_rich_tree(tree, failures_only=failures_only))

# 🔼⚙️
