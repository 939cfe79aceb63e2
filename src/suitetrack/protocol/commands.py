# src/suitetrack/protocol/commands.py
#
"""
Wire format of the runner event protocol: one JSON object per line,
shaped `{"command": str, "payload": {...}}`.
"""

import json
from typing import Any

import attrs
import structlog

from suitetrack.telemetry import StructLogger

log: StructLogger = structlog.get_logger("protocol.commands")

TESTS_TREE = "tests::tree"
TESTS_START = "tests::start"
TESTS_END = "tests::end"
SUITE_START = "suite::start"
SUITE_END = "suite::end"
TEST_START = "test::start"
TEST_SUCCESS = "test::success"
TEST_FAIL = "test::fail"
TEST_PENDING = "test::pending"
TEST_END = "test::end"

KNOWN_COMMANDS = frozenset(
    {
        TESTS_TREE,
        TESTS_START,
        TESTS_END,
        SUITE_START,
        SUITE_END,
        TEST_START,
        TEST_SUCCESS,
        TEST_FAIL,
        TEST_PENDING,
        TEST_END,
    }
)

# Commands that do not point at a node.
GLOBAL_COMMANDS = frozenset({TESTS_TREE, TESTS_START, TESTS_END})


@attrs.define(frozen=True, slots=True)
class Command:
    """One decoded protocol record."""

    name: str
    payload: dict[str, Any] = attrs.field(factory=dict)

    @property
    def node_id(self) -> str | None:
        raw = self.payload.get("id")
        return None if raw is None else str(raw)

    @property
    def is_dynamic(self) -> bool:
        return bool(self.payload.get("dynamic"))

    @property
    def parent_id(self) -> str | None:
        raw = self.payload.get("parent")
        return None if raw is None else str(raw)

    @classmethod
    def from_record(cls, record: Any) -> "Command | None":
        """Builds a command from a decoded JSON value, or None if it is not one."""
        if not isinstance(record, dict):
            return None
        name = record.get("command")
        if not isinstance(name, str):
            return None
        payload = record.get("payload")
        return cls(name=name, payload=payload if isinstance(payload, dict) else {})

    def to_line(self) -> str:
        record: dict[str, Any] = {"command": self.name}
        if self.payload:
            record["payload"] = self.payload
        return json.dumps(record, separators=(",", ":"))


def parse_command_line(line: str | bytes) -> Command | None:
    """
    Decodes one line of runner output. Blank lines, non-JSON diagnostics and
    JSON values that are not command records all yield None.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    text = line.strip()
    if not text or text[0] != "{":
        return None
    try:
        record = json.loads(text)
    except json.JSONDecodeError:
        log.debug("Dropping malformed protocol line", line=text[:200])
        return None
    return Command.from_record(record)

# 🔼⚙️
