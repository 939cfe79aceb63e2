# src/suitetrack/reporters/pytest_reporter.py
"""
pytest plugin that reports a run in the suitetrack event protocol.

Enable it in the runner process with::

    python -m pytest -p suitetrack.reporters.pytest_reporter

Modules and classes become suites, collected items become tests. Ids are
sequential counters assigned while the tree is built.
"""

import itertools
import json
import sys
from typing import Any

import pytest

PLUGIN_NAME = "suitetrack-reporter"


def _error_payload(report: pytest.TestReport) -> dict[str, str]:
    crash = getattr(report.longrepr, "reprcrash", None)
    stack = report.longreprtext or ""
    if crash is not None:
        message = crash.message
    else:
        lines = [line for line in stack.splitlines() if line.strip()]
        message = lines[-1] if lines else f"{report.when} failed"
    return {"message": message, "stack": stack}


class ProtocolReporter:
    """Translates pytest hooks into protocol commands on stdout."""

    def __init__(self, stream: Any = None):
        self._stream = stream
        self._ids = itertools.count()
        self._test_ids: dict[str, str] = {}
        self._suite_chains: dict[str, list[str]] = {}
        self._open_suites: list[str] = []
        self._results: dict[str, str] = {}

    def _send(self, command: str, payload: dict[str, Any] | None = None) -> None:
        record: dict[str, Any] = {"command": command}
        if payload is not None:
            record["payload"] = payload
        stream = self._stream or sys.stdout
        # Leading newline: the terminal reporter may have left a line open.
        stream.write("\n" + json.dumps(record) + "\n")
        stream.flush()

    def _next_id(self) -> str:
        return str(next(self._ids))

    # --- Tree ---

    def pytest_collection_finish(self, session: pytest.Session) -> None:
        root: dict[str, Any] = {"title": "root", "tests": [], "suites": []}
        suites: dict[str, dict[str, Any]] = {}

        for item in session.items:
            parent_shape = root
            chain: list[str] = []
            for collector in item.listchain()[1:-1]:
                if not isinstance(collector, (pytest.Module, pytest.Class)):
                    continue
                shape = suites.get(collector.nodeid)
                if shape is None:
                    shape = {
                        "id": self._next_id(),
                        "title": collector.name,
                        "file": str(collector.path),
                        "tests": [],
                        "suites": [],
                    }
                    suites[collector.nodeid] = shape
                    parent_shape["suites"].append(shape)
                parent_shape = shape
                chain.append(shape["id"])

            test_id = self._next_id()
            parent_shape["tests"].append({"id": test_id, "title": item.name, "file": str(item.path)})
            self._test_ids[item.nodeid] = test_id
            self._suite_chains[item.nodeid] = chain

        self._send("tests::tree", root)

    # --- Run ---

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtestloop(self, session: pytest.Session):
        self._send("tests::start")
        yield
        self._enter_suites([])
        self._send("tests::end")

    def _enter_suites(self, chain: list[str]) -> None:
        """Closes suites the next test is not in, then opens the ones it is in."""
        common = 0
        for open_id, wanted_id in zip(self._open_suites, chain):
            if open_id != wanted_id:
                break
            common += 1
        for suite_id in reversed(self._open_suites[common:]):
            self._send("suite::end", {"id": suite_id})
        for suite_id in chain[common:]:
            self._send("suite::start", {"id": suite_id})
        self._open_suites = list(chain)

    def pytest_runtest_logstart(self, nodeid: str, location: tuple) -> None:
        test_id = self._test_ids.get(nodeid)
        if test_id is None:
            return
        self._enter_suites(self._suite_chains.get(nodeid, []))
        self._send("test::start", {"id": test_id})

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        test_id = self._test_ids.get(report.nodeid)
        if test_id is None:
            return
        # Passing setup/teardown phases say nothing about the outcome.
        if report.passed and report.when != "call":
            return

        if report.failed:
            command, payload = "test::fail", {"id": test_id, "error": _error_payload(report)}
        elif report.skipped:
            command, payload = "test::pending", {"id": test_id}
        else:
            command, payload = "test::success", {"id": test_id}

        if self._results.get(report.nodeid) == command:
            return
        self._results[report.nodeid] = command
        self._send(command, payload)

    def pytest_runtest_logfinish(self, nodeid: str, location: tuple) -> None:
        test_id = self._test_ids.get(nodeid)
        if test_id is not None:
            self._send("test::end", {"id": test_id})


def pytest_configure(config: pytest.Config) -> None:
    if not config.pluginmanager.has_plugin(PLUGIN_NAME):
        config.pluginmanager.register(ProtocolReporter(), PLUGIN_NAME)

# 🔼⚙️
