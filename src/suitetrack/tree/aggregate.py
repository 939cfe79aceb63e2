# src/suitetrack/tree/aggregate.py
#
"""
Rule that collapses a suite's state map into a single suite state.
"""

from suitetrack.state import NodeState
from suitetrack.tree.nodes import StateMap


def derive_suite_state(state_map: StateMap, pending_blocks_success: bool = True) -> NodeState | None:
    """
    Applies the priority rule fail > success > pending > terminated.

    A state is only returned when it is unambiguous:
      - fail wins if any leaf failed;
      - success needs at least one success and no terminated leaf (and, when
        `pending_blocks_success` is set, no pending leaf either);
      - pending needs every finished leaf to be pending;
      - terminated is reported whenever a terminated leaf remains.

    Returns None when nothing conclusive can be said (still running or empty),
    in which case the caller leaves the suite state as it is.
    """
    if state_map.fail:
        return NodeState.FAIL

    if state_map.success and not state_map.terminated:
        if not (pending_blocks_success and state_map.pending):
            return NodeState.SUCCESS

    if state_map.pending and not (state_map.success or state_map.terminated):
        return NodeState.PENDING

    if state_map.terminated:
        return NodeState.TERMINATED

    return None

# 🔼⚙️
