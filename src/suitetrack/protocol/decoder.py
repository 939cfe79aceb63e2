# src/suitetrack/protocol/decoder.py
"""
Turns protocol commands into calls against the test tree store.
"""

from collections.abc import Callable
from typing import Any

import structlog

from suitetrack.exceptions import MalformedTreeError, NotAContainerError, TreeError, UnknownNodeError
from suitetrack.protocol import commands as cmd
from suitetrack.protocol.commands import Command
from suitetrack.state import NodeState
from suitetrack.telemetry import StructLogger
from suitetrack.tree import ROOT_ID, TestTree
from suitetrack.tree.nodes import normalize_error

log: StructLogger = structlog.get_logger("protocol.decoder")

# Drops past this count within one run are reported as a desynchronized stream.
DESYNC_WARNING_THRESHOLD = 10

# Keys of a dynamic start payload that are not part of the node shape.
_DYNAMIC_KEYS = ("dynamic", "parent")


class EventDecoder:
    """Applies commands to a TestTree strictly in the order they are given."""

    def __init__(self, tree: TestTree):
        self.tree = tree
        self._handlers: dict[str, Callable[[Command], None]] = {
            cmd.TESTS_TREE: self._on_tests_tree,
            cmd.TESTS_START: self._on_tests_start,
            cmd.TESTS_END: self._on_tests_end,
            cmd.SUITE_START: self._on_node_start,
            cmd.TEST_START: self._on_node_start,
            cmd.TEST_SUCCESS: self._on_test_result,
            cmd.TEST_PENDING: self._on_test_result,
            cmd.TEST_FAIL: self._on_test_fail,
            cmd.TEST_END: self._on_test_end,
            cmd.SUITE_END: self._on_suite_end,
        }
        self._applied_handlers: list[Callable[[Command], None]] = []
        self.reset_counters()

    def reset_counters(self) -> None:
        """Clears per-run bookkeeping. Called at the start of every session."""
        self.applied = 0
        self.dropped = 0
        self.tree_received = False
        self.started = False
        self.finished = False
        self._desync_warned = False

    def on_applied(self, handler: Callable[[Command], None]) -> None:
        """Registers a listener called with every command that was applied."""
        self._applied_handlers.append(handler)

    def apply_record(self, record: Any) -> bool:
        command = Command.from_record(record)
        if command is None:
            log.debug("Ignoring record that is not a command", record_type=type(record).__name__)
            return False
        return self.apply(command)

    def apply(self, command: Command) -> bool:
        """
        Applies one command. Returns True when it changed or confirmed tree
        state, False when it was ignored or dropped.
        """
        handler = self._handlers.get(command.name)
        if handler is None:
            log.debug("Ignoring unrecognized command", command=command.name)
            return False

        try:
            handler(command)
        except UnknownNodeError as e:
            self._record_drop(command, e)
            return False
        except TreeError as e:
            log.warning("Dropping command rejected by the tree", command=command.name, error=str(e))
            self.dropped += 1
            return False

        self.applied += 1
        for listener in list(self._applied_handlers):
            listener(command)
        return True

    def _record_drop(self, command: Command, error: UnknownNodeError) -> None:
        self.dropped += 1
        log.debug("Dropping command for unknown node", command=command.name, node_id=error.node_id)
        if self.dropped >= DESYNC_WARNING_THRESHOLD and not self._desync_warned:
            self._desync_warned = True
            log.warning(
                "Many commands referenced unknown nodes; the runner stream looks out of sync with the tree",
                dropped=self.dropped,
            )

    # --- Global commands ---

    def _on_tests_tree(self, command: Command) -> None:
        self.tree.parse_snapshot(command.payload)
        self.tree_received = True
        self.tree.recompute_aggregate(ROOT_ID)
        self.tree.refresh_root_aggregate()
        log.info("Test tree received", total=self.tree.total)

    def _on_tests_start(self, command: Command) -> None:
        self.started = True
        self.tree.refresh_root_aggregate()

    def _on_tests_end(self, command: Command) -> None:
        self.finished = True
        state_map = self.tree.refresh_root_aggregate()
        log.info("Test run finished", total=self.tree.total, **state_map.as_dict())

    # --- Node commands ---

    def _require_node(self, command: Command):
        node = self.tree.get_by_id(command.node_id)
        if node is None:
            raise UnknownNodeError(command.node_id)
        return node

    def _splice_dynamic(self, command: Command) -> bool:
        """Adds a node discovered mid-run under its announced parent."""
        parent = self.tree.get_by_id(command.parent_id)
        if parent is None or not parent.is_container:
            log.warning(
                "Dropping dynamic node with a missing or non-suite parent",
                command=command.name,
                node_id=command.node_id,
                parent_id=command.parent_id,
            )
            return False

        shape = {key: value for key, value in command.payload.items() if key not in _DYNAMIC_KEYS}
        if command.name == cmd.SUITE_START:
            shape.setdefault("tests", [])
            shape.setdefault("suites", [])
        else:
            shape.pop("tests", None)
            shape.pop("suites", None)

        try:
            self.tree.parse_snapshot(shape, parent.id)
        except (MalformedTreeError, NotAContainerError) as e:
            log.warning("Dropping malformed dynamic node", node_id=command.node_id, error=str(e))
            return False
        log.debug("Dynamic node spliced into tree", node_id=command.node_id, parent_id=parent.id)
        return True

    def _on_node_start(self, command: Command) -> None:
        if command.node_id is None:
            raise MalformedTreeError(f"'{command.name}' without an id")
        if command.node_id not in self.tree and command.is_dynamic:
            if not self._splice_dynamic(command):
                raise UnknownNodeError(command.node_id)
        node = self._require_node(command)
        self.tree.set_state(node.id, NodeState.PROGRESS)
        self.tree.refresh_root_aggregate()

    def _on_test_result(self, command: Command) -> None:
        node = self._require_node(command)
        state = NodeState.SUCCESS if command.name == cmd.TEST_SUCCESS else NodeState.PENDING
        self.tree.set_state(node.id, state)
        self.tree.refresh_root_aggregate()

    def _on_test_fail(self, command: Command) -> None:
        node = self._require_node(command)
        error = normalize_error(command.payload.get("error")) or {"message": ""}
        self.tree.set_state(node.id, NodeState.FAIL, error=error)
        self.tree.refresh_root_aggregate()

    def _on_test_end(self, command: Command) -> None:
        # Results are already final; this only confirms the node exists.
        self._require_node(command)
        self.tree.refresh_root_aggregate()

    def _on_suite_end(self, command: Command) -> None:
        node = self._require_node(command)
        self.tree.recompute_aggregate(node.id)
        self.tree.refresh_root_aggregate()


# 🔼⚙️
