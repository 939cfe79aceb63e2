# src/suitetrack/tree/nodes.py
#
"""
Passive node models for the test tree.

Nodes only carry data. Every structural change and every state mutation is
performed by `TestTree`; nothing here recurses into children on mutation.
"""

from collections.abc import Iterator
from typing import Any, Optional, TypeAlias

from attrs import field, mutable, setters

from suitetrack.state import TALLIED_STATES, NodeState

ROOT_ID = "root"


@mutable(slots=True)
class StateMap:
    """Tally of descendant leaf states."""

    success: int = field(default=0)
    fail: int = field(default=0)
    pending: int = field(default=0)
    terminated: int = field(default=0)

    @classmethod
    def from_leaves(cls, leaves: "Iterator[TestNode]") -> "StateMap":
        state_map = cls()
        for leaf in leaves:
            state_map.add(leaf.state)
        return state_map

    def add(self, state: NodeState) -> None:
        if state in TALLIED_STATES:
            setattr(self, state.value, getattr(self, state.value) + 1)

    @property
    def finished(self) -> int:
        return self.success + self.fail + self.pending + self.terminated

    def as_dict(self) -> dict[str, int]:
        return {
            "success": self.success,
            "fail": self.fail,
            "pending": self.pending,
            "terminated": self.terminated,
        }


@mutable(slots=True, eq=False)
class TestNode:
    """A leaf of the tree: one test case."""

    __test__ = False  # not a pytest test class

    id: str = field(on_setattr=setters.frozen)
    title: str = field(on_setattr=setters.frozen)
    file: str | None = field(default=None, on_setattr=setters.frozen)
    state: NodeState = field(default=NodeState.IDLE, converter=NodeState.parse)
    error: dict[str, Any] | None = field(default=None)
    # Non-owning back reference; the parent suite owns this node.
    parent: Optional["SuiteNode"] = field(default=None, repr=False)

    @property
    def is_container(self) -> bool:
        return False

    def ancestors(self) -> Iterator["SuiteNode"]:
        """Yields parents from the closest one up to the root."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent


@mutable(slots=True, eq=False)
class SuiteNode(TestNode):
    """A container owning ordered child suites and tests."""

    suites: list["SuiteNode"] = field(factory=list, repr=False)
    tests: list[TestNode] = field(factory=list, repr=False)
    state_map: StateMap = field(factory=StateMap)

    @property
    def is_container(self) -> bool:
        return True

    def add_child(self, node: TestNode) -> None:
        if isinstance(node, SuiteNode):
            self.suites.append(node)
        else:
            self.tests.append(node)
        node.parent = self

    def children(self) -> list[TestNode]:
        return [*self.suites, *self.tests]

    def walk(self) -> Iterator[TestNode]:
        """Depth-first walk over every descendant, suites before their tests."""
        for suite in self.suites:
            yield suite
            yield from suite.walk()
        yield from self.tests

    def iter_leaves(self) -> Iterator[TestNode]:
        for node in self.walk():
            if not node.is_container:
                yield node


@mutable(slots=True, eq=False)
class RootSuite(SuiteNode):
    """The distinguished top-level suite."""

    id: str = field(default=ROOT_ID, on_setattr=setters.frozen)
    title: str = field(default=ROOT_ID, on_setattr=setters.frozen)
    total: int = field(default=0)


Node: TypeAlias = TestNode | SuiteNode


def normalize_error(error: Any) -> dict[str, Any] | None:
    """Coerces a failure detail into a dict that always carries a message."""
    if error is None:
        return None
    if isinstance(error, dict):
        normalized = dict(error)
        normalized["message"] = str(normalized.get("message") or "")
        return normalized
    return {"message": str(error)}

# 🔼⚙️
