# src/suitetrack/tree/store.py
#
"""
The test tree store: sole owner of the node hierarchy, its id index and the
aggregate bookkeeping. Every mutation of node state goes through here.
"""

import itertools
from collections.abc import Callable, Iterator, Mapping
from typing import Any, TypeAlias

import structlog

from suitetrack.exceptions import MalformedTreeError, NotAContainerError, UnknownNodeError
from suitetrack.state import NodeState
from suitetrack.telemetry import StructLogger
from suitetrack.tree.aggregate import derive_suite_state
from suitetrack.tree.nodes import (
    ROOT_ID,
    Node,
    RootSuite,
    StateMap,
    SuiteNode,
    TestNode,
    normalize_error,
)

log: StructLogger = structlog.get_logger("tree.store")

ChangeHandler: TypeAlias = Callable[[str | None], None]


def _payload_id(data: Mapping[str, Any]) -> str | None:
    raw = data.get("id")
    if raw is None or raw == "":
        return None
    return str(raw)


def _is_suite_shape(data: Mapping[str, Any]) -> bool:
    return "tests" in data or "suites" in data


class TestTree:
    """Owns the root suite, the id-to-node index and the total leaf count."""

    __test__ = False  # not a pytest test class

    def __init__(self, pending_blocks_success: bool = True):
        self.pending_blocks_success = pending_blocks_success
        self._handlers: list[ChangeHandler] = []
        self._root = RootSuite()
        self._index: dict[str, Node] = {}
        self._id_counter = itertools.count()
        self._reset()

    # --- Accessors ---

    @property
    def root(self) -> RootSuite:
        return self._root

    @property
    def total(self) -> int:
        return self._root.total

    def get_by_id(self, node_id: str | None) -> Node | None:
        """O(1) lookup. Returns None for unknown ids."""
        if node_id is None:
            return None
        return self._index.get(str(node_id))

    def iter_leaves(self) -> Iterator[TestNode]:
        return self._root.iter_leaves()

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    # --- Observers ---

    def on_changed(self, handler: ChangeHandler) -> Callable[[], None]:
        """
        Registers an observer called with the id of the changed node, or None
        for a full-tree change. Returns a callable that unregisters it.
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _emit(self, node_id: str | None) -> None:
        for handler in list(self._handlers):
            try:
                handler(node_id)
            except Exception as e:
                log.warning("Tree change observer failed", node_id=node_id, error=str(e), exc_info=True)

    # --- Structure ---

    def reset(self) -> None:
        """Discards the tree and starts over from an empty root."""
        self._reset()
        log.debug("Test tree reset")
        self._emit(None)

    def _reset(self) -> None:
        self._root = RootSuite()
        self._index = {ROOT_ID: self._root}
        self._id_counter = itertools.count()

    def _rebuild_index(self) -> None:
        index: dict[str, Node] = {ROOT_ID: self._root}
        for node in self._root.walk():
            index[node.id] = node
        self._index = index

    def parse_snapshot(
        self,
        data: Mapping[str, Any],
        into_parent: str | SuiteNode | None = None,
    ) -> int:
        """
        Builds nodes from a nested tree-shape payload.

        Without `into_parent` the payload describes the whole tree: the tree is
        reset and the payload's tests and suites become children of the root.
        With `into_parent` the payload describes one new node (a suite when it
        carries `tests` or `suites`, a test otherwise) which is spliced under
        that suite. Children whose id already exists under the same parent are
        merged instead of duplicated.

        Returns the number of leaves introduced.
        """
        full_snapshot = into_parent is None
        parent = self._root if full_snapshot else self._resolve_parent(into_parent)

        reserved = self._validate(data, parent, full_snapshot)

        if full_snapshot:
            self._reset()
            parent = self._root

        try:
            if full_snapshot:
                self._restore_recorded_state(self._root, data)
                introduced = self._build_children(data, self._root, reserved)
            else:
                introduced = self._build_node(data, parent, _is_suite_shape(data), reserved)
        except Exception:
            log.error("Tree build failed midway, resetting tree", exc_info=True)
            self.reset()
            raise

        self._root.total += introduced
        self._rebuild_index()
        log.debug(
            "Tree snapshot ingested",
            parent_id=parent.id,
            full_snapshot=full_snapshot,
            leaves_introduced=introduced,
            total=self._root.total,
        )
        self._emit(None if full_snapshot else parent.id)
        return introduced

    def _resolve_parent(self, into_parent: str | SuiteNode) -> SuiteNode:
        parent_id = into_parent.id if isinstance(into_parent, TestNode) else str(into_parent)
        parent = self._index.get(parent_id)
        if parent is None:
            raise UnknownNodeError(parent_id)
        if isinstance(into_parent, TestNode) and parent is not into_parent:
            raise UnknownNodeError(parent_id)
        if not parent.is_container:
            raise NotAContainerError(parent_id)
        return parent

    def _validate(self, data: Any, parent: SuiteNode, full_snapshot: bool) -> set[str]:
        """
        Checks the whole payload before anything is mutated.
        Returns the set of ids the payload claims.
        """
        seen: set[str] = {ROOT_ID}
        on_path: set[int] = set()

        def check(node_data: Any, tree_parent: SuiteNode | None, as_suite: bool, where: str) -> None:
            if not isinstance(node_data, Mapping):
                raise MalformedTreeError(f"Node at {where} is not an object")
            if id(node_data) in on_path:
                raise MalformedTreeError(f"Cycle detected at {where}")

            title = node_data.get("title")
            if not isinstance(title, str):
                raise MalformedTreeError(f"Node at {where} has no title")

            state = node_data.get("state")
            if state is not None:
                try:
                    NodeState.parse(state)
                except ValueError as e:
                    raise MalformedTreeError(f"Node at {where} has unknown state {state!r}") from e

            existing: Node | None = None
            node_id = _payload_id(node_data)
            if node_id is not None:
                if node_id in seen:
                    raise MalformedTreeError(f"Duplicate node id {node_id!r} at {where}")
                seen.add(node_id)
                existing = None if full_snapshot else self._index.get(node_id)
                if existing is not None and (
                    tree_parent is None or existing.parent is not tree_parent or existing.is_container != as_suite
                ):
                    raise MalformedTreeError(f"Node id {node_id!r} at {where} already belongs elsewhere in the tree")

            if as_suite:
                on_path.add(id(node_data))
                check_children(node_data, existing if isinstance(existing, SuiteNode) else None, where)
                on_path.discard(id(node_data))

        def check_children(node_data: Mapping[str, Any], tree_node: SuiteNode | None, where: str) -> None:
            for key, as_suite in (("tests", False), ("suites", True)):
                children = node_data.get(key)
                if children is None:
                    continue
                if not isinstance(children, list):
                    raise MalformedTreeError(f"'{key}' at {where} must be a list")
                for i, child in enumerate(children):
                    check(child, tree_node, as_suite, f"{where}.{key}[{i}]")

        if not isinstance(data, Mapping):
            raise MalformedTreeError("Tree payload is not an object")

        if full_snapshot:
            state = data.get("state")
            if state is not None:
                try:
                    NodeState.parse(state)
                except ValueError as e:
                    raise MalformedTreeError(f"Root has unknown state {state!r}") from e
            on_path.add(id(data))
            check_children(data, None, "root")
        else:
            check(data, parent, _is_suite_shape(data), parent.id)
        return seen

    def _next_id(self, reserved: set[str]) -> str:
        while True:
            candidate = str(next(self._id_counter))
            if candidate not in reserved and candidate not in self._index:
                reserved.add(candidate)
                return candidate

    def _build_children(self, data: Mapping[str, Any], suite: SuiteNode, reserved: set[str]) -> int:
        introduced = 0
        for test_data in data.get("tests") or []:
            introduced += self._build_node(test_data, suite, False, reserved)
        for suite_data in data.get("suites") or []:
            introduced += self._build_node(suite_data, suite, True, reserved)
        return introduced

    def _build_node(self, data: Mapping[str, Any], parent: SuiteNode, as_suite: bool, reserved: set[str]) -> int:
        node_id = _payload_id(data)
        existing = self._index.get(node_id) if node_id is not None else None

        if existing is not None:
            node = existing
            introduced = 0
        else:
            node_cls = SuiteNode if as_suite else TestNode
            node = node_cls(
                id=node_id if node_id is not None else self._next_id(reserved),
                title=data["title"],
                file=data.get("file"),
            )
            parent.add_child(node)
            introduced = 0 if as_suite else 1

        self._restore_recorded_state(node, data)
        if isinstance(node, SuiteNode):
            introduced += self._build_children(data, node, reserved)
        return introduced

    @staticmethod
    def _restore_recorded_state(node: Node, data: Mapping[str, Any]) -> None:
        # Restored snapshots carry terminal states; fresh protocol trees do not.
        if data.get("state") is not None:
            node.state = NodeState.parse(data["state"])
        if data.get("error") is not None:
            node.error = normalize_error(data["error"])

    # --- State mutation ---

    def _require(self, node_id: str | None) -> Node:
        node = self.get_by_id(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        return node

    @staticmethod
    def _assign(node: Node, state: NodeState, error: Any = None) -> None:
        node.state = state
        if state is NodeState.FAIL:
            if error is not None:
                node.error = normalize_error(error)
        else:
            node.error = None
        if isinstance(node, SuiteNode) and state is NodeState.IDLE:
            node.state_map = StateMap()

    def set_state(self, node_id: str, state: NodeState | str, *, error: Any = None) -> Node:
        """
        Sets a node's state. For a suite every descendant is first put back to
        idle so results from a previous run do not linger under it.
        """
        node = self._require(node_id)
        new_state = NodeState.parse(state)

        if isinstance(node, SuiteNode):
            for descendant in node.walk():
                self._assign(descendant, NodeState.IDLE)
            node.state_map = StateMap()

        old_state = node.state
        self._assign(node, new_state, error)
        log.debug("Node state set", node_id=node.id, old_state=old_state.value, new_state=new_state.value)
        self._emit(node.id)
        return node

    def recompute_aggregate(self, node_id: str) -> NodeState:
        """Derives a suite's state from the leaves below it."""
        node = self._require(node_id)
        if not isinstance(node, SuiteNode):
            raise NotAContainerError(node.id)

        node.state_map = StateMap.from_leaves(node.iter_leaves())
        derived = derive_suite_state(node.state_map, self.pending_blocks_success)
        if derived is not None:
            self._assign(node, derived)

        log.debug(
            "Suite aggregate recomputed",
            node_id=node.id,
            derived_state=derived.value if derived else None,
            **node.state_map.as_dict(),
        )
        self._emit(node.id)
        return node.state

    def refresh_root_aggregate(self) -> StateMap:
        """Recounts every leaf of the tree into the root's state map."""
        self._root.state_map = StateMap.from_leaves(self._root.iter_leaves())
        self._emit(ROOT_ID)
        return self._root.state_map

    def terminate_in_flight(self) -> int:
        """
        Marks every leaf still in progress as terminated, then recomputes the
        affected suites bottom-up and finally the root. Suites still marked
        in progress are settled as well, falling back to idle.
        Returns the number of terminated leaves.
        """
        in_flight = [leaf for leaf in self._root.iter_leaves() if leaf.state is NodeState.PROGRESS]

        affected: dict[str, SuiteNode] = {}
        for leaf in in_flight:
            self._assign(leaf, NodeState.TERMINATED)
            self._emit(leaf.id)
            for ancestor in leaf.ancestors():
                if ancestor is not self._root:
                    affected[ancestor.id] = ancestor
        # Suites entered without a test in flight are stale too.
        for node in self._root.walk():
            if isinstance(node, SuiteNode) and node.state is NodeState.PROGRESS:
                affected[node.id] = node

        # Deepest suites first so parents see their children's final state.
        for suite in sorted(affected.values(), key=lambda s: sum(1 for _ in s.ancestors()), reverse=True):
            self._settle(suite)
        self._settle(self._root)

        if in_flight:
            log.info("Terminated in-flight tests", count=len(in_flight))
        return len(in_flight)

    def _settle(self, suite: SuiteNode) -> None:
        """Recomputes a suite after a sweep; one left in progress goes back to idle."""
        if self.recompute_aggregate(suite.id) is NodeState.PROGRESS:
            suite.state = NodeState.IDLE
            self._emit(suite.id)

    # --- Serialization ---

    def to_snapshot(self) -> dict[str, Any]:
        """Nested tree-shape dict with every field populated."""

        def dump(node: Node) -> dict[str, Any]:
            data: dict[str, Any] = {
                "id": node.id,
                "title": node.title,
                "file": node.file,
                "state": node.state.value,
                "error": node.error,
            }
            if isinstance(node, SuiteNode):
                data["tests"] = [dump(test) for test in node.tests]
                data["suites"] = [dump(suite) for suite in node.suites]
            return data

        return dump(self._root)


# 🔼⚙️
