# src/suitetrack/state.py
#
"""
Execution states for test tree nodes and runner sessions.
"""

from enum import Enum, auto


class NodeState(str, Enum):
    """Execution state of a single test or suite. Values are the wire values."""

    IDLE = "idle"  # Not run yet, or cleared before a new run.
    PROGRESS = "progress"  # Currently executing.
    SUCCESS = "success"
    FAIL = "fail"
    PENDING = "pending"  # Skipped by the runner.
    TERMINATED = "terminated"  # Was running when the runner died.

    @classmethod
    def parse(cls, value: "str | NodeState") -> "NodeState":
        """Accepts either a member or its wire value."""
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


# States that are tallied into a state map.
TALLIED_STATES = (NodeState.SUCCESS, NodeState.FAIL, NodeState.PENDING, NodeState.TERMINATED)


class SessionState(Enum):
    """Coarse lifecycle of one runner session."""

    IDLE = auto()
    STARTING = auto()  # Process launched, no protocol event seen yet.
    RUNNING = auto()
    STOPPED = auto()  # Clean exit or explicit stop().
    FAILED = auto()  # Non-zero exit or stream closed before tests::end.

    @property
    def is_active(self) -> bool:
        return self in (SessionState.STARTING, SessionState.RUNNING)


# Display emojis for the CLI tree summary
STATE_EMOJI_MAP = {
    NodeState.IDLE: "⚪",
    NodeState.PROGRESS: "🔄",
    NodeState.SUCCESS: "✅",
    NodeState.FAIL: "❌",
    NodeState.PENDING: "⏸️",
    NodeState.TERMINATED: "💥",
}

# 🔼⚙️
