# tests/unit/test_tree_store.py

"""Unit tests for the TestTree store."""

import itertools
from typing import Any

import pytest

from suitetrack.exceptions import MalformedTreeError, NotAContainerError, UnknownNodeError
from suitetrack.state import TALLIED_STATES, NodeState
from suitetrack.tree import ROOT_ID, SuiteNode, TestNode, TestTree


def reference_state(leaf_states: list[NodeState]) -> NodeState | None:
    """Suite state computed from the set of finished leaf states."""
    finished = {state for state in leaf_states if state in TALLIED_STATES}
    if NodeState.FAIL in finished:
        return NodeState.FAIL
    if finished == {NodeState.SUCCESS}:
        return NodeState.SUCCESS
    if finished == {NodeState.PENDING}:
        return NodeState.PENDING
    if NodeState.TERMINATED in finished:
        return NodeState.TERMINATED
    return None


class TestResetAndBuild:
    """Tree construction, indexing and reset."""

    def test_reset_is_idempotent(self, tree: TestTree):
        for _ in range(2):
            tree.reset()
            assert tree.total == 0
            assert len(tree) == 1
            assert tree.root.children() == []
            assert tree.get_by_id("test1") is None

    def test_parse_snapshot_builds_indexed_tree(self, tree: TestTree):
        assert tree.total == 4
        assert len(tree) == 8  # root + 3 suites + 4 tests

        suite_a = tree.get_by_id("suiteA")
        assert isinstance(suite_a, SuiteNode)
        assert [t.id for t in suite_a.tests] == ["test1", "test2"]
        assert suite_a.parent is tree.root

        test4 = tree.get_by_id("test4")
        assert isinstance(test4, TestNode) and not test4.is_container
        assert test4.parent.id == "suiteC"
        assert [a.id for a in test4.ancestors()] == ["suiteC", "suiteB", ROOT_ID]
        assert test4.file == "tests/test_b.py"
        assert test4.state is NodeState.IDLE

    def test_unknown_id_is_not_found(self, tree: TestTree):
        assert tree.get_by_id("nope") is None
        assert tree.get_by_id(None) is None
        assert "nope" not in tree

    def test_full_snapshot_replaces_previous_tree(self, tree: TestTree):
        tree.parse_snapshot({"title": "root", "tests": [{"id": "solo", "title": "solo"}], "suites": []})
        assert tree.total == 1
        assert tree.get_by_id("test1") is None
        assert tree.get_by_id("solo").parent is tree.root

    def test_missing_ids_are_assigned(self):
        tree = TestTree()
        tree.parse_snapshot(
            {
                "title": "root",
                "suites": [{"title": "outer", "tests": [{"title": "a"}, {"title": "a"}], "suites": []}],
            }
        )
        outer = tree.root.suites[0]
        ids = [outer.id, *(t.id for t in outer.tests)]
        assert len(set(ids)) == 3
        assert all(tree.get_by_id(node_id) is not None for node_id in ids)
        # Identity never encodes hierarchy or titles.
        assert all(node_id.isdigit() for node_id in ids)

    def test_assigned_ids_skip_ids_claimed_by_payload(self):
        tree = TestTree()
        tree.parse_snapshot({"title": "root", "tests": [{"title": "x"}, {"id": "0", "title": "y"}]})
        assert sorted(leaf.id for leaf in tree.iter_leaves()) == ["0", "1"]

    def test_restored_states_and_errors_are_applied(self):
        tree = TestTree()
        tree.parse_snapshot(
            {
                "id": "root",
                "title": "root",
                "state": "fail",
                "tests": [{"id": "t", "title": "t", "state": "fail", "error": "boom"}],
                "suites": [],
            }
        )
        assert tree.root.state is NodeState.FAIL
        assert tree.get_by_id("t").error == {"message": "boom"}


class TestMalformedPayloads:
    """Validation happens before any mutation."""

    def test_child_without_title_is_rejected(self, tree: TestTree):
        with pytest.raises(MalformedTreeError):
            tree.parse_snapshot({"title": "root", "tests": [{"id": "x"}], "suites": []})
        # Previous tree is untouched.
        assert tree.total == 4
        assert tree.get_by_id("test1") is not None

    def test_cycle_is_rejected(self):
        suite: dict[str, Any] = {"title": "loop", "tests": []}
        suite["suites"] = [suite]
        tree = TestTree()
        with pytest.raises(MalformedTreeError, match="Cycle"):
            tree.parse_snapshot({"title": "root", "suites": [suite]})
        assert tree.total == 0

    def test_duplicate_ids_are_rejected(self):
        tree = TestTree()
        with pytest.raises(MalformedTreeError, match="Duplicate"):
            tree.parse_snapshot({"title": "root", "tests": [{"id": "a", "title": "1"}, {"id": "a", "title": "2"}]})

    def test_unknown_state_is_rejected(self):
        with pytest.raises(MalformedTreeError):
            TestTree().parse_snapshot({"title": "root", "tests": [{"title": "t", "state": "exploded"}]})

    def test_non_list_children_are_rejected(self):
        with pytest.raises(MalformedTreeError):
            TestTree().parse_snapshot({"title": "root", "tests": {"title": "t"}})

    def test_splice_with_id_owned_elsewhere_is_rejected(self, tree: TestTree):
        with pytest.raises(MalformedTreeError):
            tree.parse_snapshot({"id": "test1", "title": "moved"}, "suiteB")
        assert tree.get_by_id("test1").parent.id == "suiteA"

    def test_splice_under_test_or_unknown_parent(self, tree: TestTree):
        with pytest.raises(NotAContainerError):
            tree.parse_snapshot({"title": "x"}, "test1")
        with pytest.raises(UnknownNodeError):
            tree.parse_snapshot({"title": "x"}, "missing")


class TestSplice:
    """Dynamic additions under an existing suite."""

    def test_splice_suite_adds_node_and_counts_leaves(self, tree: TestTree):
        added = tree.parse_snapshot(
            {"id": "dyn", "title": "dynamic", "tests": [{"id": "d1", "title": "d1"}, {"id": "d2", "title": "d2"}]},
            "suiteA",
        )
        assert added == 2
        assert tree.total == 6
        dyn = tree.get_by_id("dyn")
        assert isinstance(dyn, SuiteNode)
        assert dyn.parent.id == "suiteA"
        assert tree.get_by_id("d2").parent is dyn

    def test_splice_test_shape(self, tree: TestTree):
        assert tree.parse_snapshot({"id": "late", "title": "late test"}, tree.get_by_id("suiteC")) == 1
        assert not tree.get_by_id("late").is_container
        assert tree.total == 5

    def test_existing_child_is_merged_not_duplicated(self, tree: TestTree):
        added = tree.parse_snapshot(
            {"id": "suiteC", "title": "Suite C", "tests": [{"id": "test4", "title": "fourth"}, {"id": "test5", "title": "fifth"}]},
            "suiteB",
        )
        assert added == 1
        suite_c = tree.get_by_id("suiteC")
        assert [t.id for t in suite_c.tests] == ["test4", "test5"]
        assert len(tree.get_by_id("suiteB").suites) == 1


class TestStateMutation:
    """set_state cascade, aggregates and the termination sweep."""

    def test_set_state_unknown_node(self, tree: TestTree):
        with pytest.raises(UnknownNodeError):
            tree.set_state("missing", NodeState.SUCCESS)

    def test_cascade_idle_before_progress(self, tree: TestTree):
        tree.set_state("test3", NodeState.SUCCESS)
        tree.set_state("test4", NodeState.FAIL, error={"message": "old"})
        tree.recompute_aggregate("suiteC")
        tree.recompute_aggregate("suiteB")
        assert tree.get_by_id("suiteB").state is NodeState.FAIL

        tree.set_state("suiteB", NodeState.PROGRESS)

        assert tree.get_by_id("suiteB").state is NodeState.PROGRESS
        for node_id in ("test3", "test4", "suiteC"):
            assert tree.get_by_id(node_id).state is NodeState.IDLE
        assert tree.get_by_id("test4").error is None
        # Only descendants are cleared.
        assert tree.get_by_id("suiteA").state is NodeState.IDLE

        tree.set_state("test3", NodeState.PROGRESS)
        assert tree.get_by_id("test3").state is NodeState.PROGRESS
        assert tree.get_by_id("test4").state is NodeState.IDLE

    def test_set_state_accepts_wire_values(self, tree: TestTree):
        tree.set_state("test1", "pending")
        assert tree.get_by_id("test1").state is NodeState.PENDING

    def test_fail_keeps_error_and_leaving_fail_clears_it(self, tree: TestTree):
        tree.set_state("test1", NodeState.FAIL, error={"message": "boom", "stack": "trace"})
        assert tree.get_by_id("test1").error == {"message": "boom", "stack": "trace"}
        tree.set_state("test1", NodeState.PROGRESS)
        assert tree.get_by_id("test1").error is None

    def test_aggregate_matches_reference_for_every_assignment(self, tree: TestTree):
        leaves = ["test1", "test2", "test3", "test4"]
        for states in itertools.product(list(NodeState), repeat=len(leaves)):
            assignment = dict(zip(leaves, states))
            for leaf_id, state in assignment.items():
                tree.set_state(leaf_id, state)

            for suite_id, members in (
                ("suiteA", ["test1", "test2"]),
                ("suiteC", ["test4"]),
                ("suiteB", ["test3", "test4"]),
                (ROOT_ID, leaves),
            ):
                before = tree.get_by_id(suite_id).state
                result = tree.recompute_aggregate(suite_id)
                expected = reference_state([assignment[m] for m in members])
                assert result is (expected or before), (suite_id, assignment)

    def test_pending_does_not_block_success_when_configured(self, tree_payload: dict[str, Any]):
        tree = TestTree(pending_blocks_success=False)
        tree.parse_snapshot(tree_payload)
        tree.set_state("test1", NodeState.SUCCESS)
        tree.set_state("test2", NodeState.PENDING)
        assert tree.recompute_aggregate("suiteA") is NodeState.SUCCESS

        strict = TestTree()
        strict.parse_snapshot(tree_payload)
        strict.set_state("test1", NodeState.SUCCESS)
        strict.set_state("test2", NodeState.PENDING)
        assert strict.recompute_aggregate("suiteA") is NodeState.IDLE

    def test_recompute_on_test_is_rejected(self, tree: TestTree):
        with pytest.raises(NotAContainerError):
            tree.recompute_aggregate("test1")

    def test_refresh_root_aggregate_is_a_flat_tally(self, tree: TestTree):
        tree.set_state("test1", NodeState.SUCCESS)
        tree.set_state("test2", NodeState.PENDING)
        tree.set_state("test3", NodeState.SUCCESS)
        tree.set_state("test4", NodeState.PROGRESS)

        state_map = tree.refresh_root_aggregate()

        assert state_map.as_dict() == {"success": 2, "fail": 0, "pending": 1, "terminated": 0}
        assert tree.root.state is NodeState.IDLE  # not collapsed

    def test_terminate_in_flight_only_touches_progress_leaves(self, tree: TestTree):
        tree.set_state("test1", NodeState.SUCCESS)
        tree.set_state("test2", NodeState.FAIL, error={"message": "x"})
        tree.set_state("test3", NodeState.PROGRESS)
        tree.set_state("test4", NodeState.PROGRESS)

        assert tree.terminate_in_flight() == 2

        assert tree.get_by_id("test1").state is NodeState.SUCCESS
        assert tree.get_by_id("test2").state is NodeState.FAIL
        assert tree.get_by_id("test3").state is NodeState.TERMINATED
        assert tree.get_by_id("test4").state is NodeState.TERMINATED
        assert tree.get_by_id("suiteC").state is NodeState.TERMINATED
        assert tree.get_by_id("suiteB").state is NodeState.TERMINATED
        assert tree.root.state is NodeState.FAIL

    def test_terminate_in_flight_settles_entered_suites(self, tree: TestTree):
        """A suite started without any test in flight must not stay in progress."""
        tree.set_state(ROOT_ID, NodeState.PROGRESS)
        tree.set_state("suiteA", NodeState.PROGRESS)
        tree.set_state("suiteB", NodeState.PROGRESS)
        tree.set_state("test3", NodeState.SUCCESS)
        tree.set_state("suiteC", NodeState.PROGRESS)

        assert tree.terminate_in_flight() == 0

        assert tree.get_by_id("suiteA").state is NodeState.IDLE
        assert tree.get_by_id("suiteC").state is NodeState.IDLE
        assert tree.get_by_id("suiteB").state is NodeState.SUCCESS
        assert tree.root.state is NodeState.SUCCESS
        assert not any(node.state is NodeState.PROGRESS for node in tree.root.walk())

    def test_terminate_in_flight_without_failures_reports_terminated(self, tree: TestTree):
        tree.set_state("test1", NodeState.SUCCESS)
        tree.set_state("test2", NodeState.PROGRESS)
        tree.terminate_in_flight()
        assert tree.root.state is NodeState.TERMINATED
        assert tree.get_by_id("suiteA").state is NodeState.TERMINATED


class TestObservers:
    """Change notifications."""

    def test_observers_called_in_registration_order(self, tree: TestTree):
        calls: list[tuple[str, str | None]] = []
        tree.on_changed(lambda node_id: calls.append(("first", node_id)))
        tree.on_changed(lambda node_id: calls.append(("second", node_id)))

        tree.set_state("test1", NodeState.PROGRESS)
        tree.reset()

        assert calls == [("first", "test1"), ("second", "test1"), ("first", None), ("second", None)]

    def test_unsubscribe(self, tree: TestTree):
        calls: list[str | None] = []
        unsubscribe = tree.on_changed(calls.append)
        unsubscribe()
        tree.set_state("test1", NodeState.PROGRESS)
        assert calls == []

    def test_failing_observer_does_not_break_mutation(self, tree: TestTree):
        seen: list[str | None] = []

        def broken(node_id: str | None) -> None:
            raise RuntimeError("observer bug")

        tree.on_changed(broken)
        tree.on_changed(seen.append)
        tree.set_state("test1", NodeState.SUCCESS)

        assert tree.get_by_id("test1").state is NodeState.SUCCESS
        assert seen == ["test1"]

    def test_splice_notifies_parent(self, tree: TestTree):
        seen: list[str | None] = []
        tree.on_changed(seen.append)
        tree.parse_snapshot({"id": "late", "title": "late"}, "suiteA")
        assert seen == ["suiteA"]
