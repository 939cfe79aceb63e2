# src/suitetrack/runtime/orchestrator.py

"""
High-level coordinator for one suitetrack run.
Owns the tree and wires decoder, session and persistence around it.
"""

import asyncio
from functools import partial
from pathlib import Path

import structlog

from suitetrack.config import SuitetrackConfig
from suitetrack.exceptions import SnapshotError
from suitetrack.persistence import SnapshotStore
from suitetrack.protocol import EventDecoder
from suitetrack.runtime.launcher import build_launch_spec
from suitetrack.runtime.session import RunnerSession
from suitetrack.state import SessionState
from suitetrack.telemetry import StructLogger
from suitetrack.tree import TestTree

log: StructLogger = structlog.get_logger("runtime.orchestrator")


class RunOrchestrator:
    """Instantiates and coordinates the runtime components for a run."""

    def __init__(self, config: SuitetrackConfig, tree: TestTree | None = None):
        self.config = config
        self.tree = tree or TestTree(pending_blocks_success=config.state.pending_blocks_success)
        self.decoder = EventDecoder(self.tree)
        self.session = RunnerSession(
            self.tree,
            self.decoder,
            partial(build_launch_spec, config.runner),
            clean_exit_codes=config.runner.clean_exit_codes,
        )
        self.snapshot_store = SnapshotStore(config.state.file) if config.state.file else None

    def restore(self) -> bool:
        """Restores the last saved tree. A broken snapshot is logged and the tree starts empty."""
        if self.snapshot_store is None:
            return False
        try:
            return self.snapshot_store.restore(self.tree)
        except SnapshotError as e:
            log.warning("Discarding unreadable snapshot", error=str(e))
            return False

    def save(self) -> None:
        if self.snapshot_store is None:
            return
        try:
            self.snapshot_store.save(self.tree)
        except SnapshotError as e:
            log.error("Failed to persist tree state", error=str(e))

    async def run(self, scope_file: str | Path | None = None) -> SessionState:
        """Runs the session to completion and persists the resulting tree."""
        log.info("Orchestrator run sequence starting.", scope_file=str(scope_file) if scope_file else None)
        try:
            state = await self.session.run(scope_file)
        except asyncio.CancelledError:
            log.warning("Run was cancelled, stopping runner.")
            self.session.stop()
            self.tree.terminate_in_flight()
            self.tree.refresh_root_aggregate()
            raise
        finally:
            self.save()

        log.info("Orchestrator run finished.", session_state=state.name, **self.tree.root.state_map.as_dict())
        return state

# 🔼⚙️
