# tests/conftest.py

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from suitetrack.config import GlobalConfig, RunnerConfig, StateConfig, SuitetrackConfig
from suitetrack.runtime.launcher import LaunchSpec
from suitetrack.telemetry import setup_logging
from suitetrack.tree import TestTree


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> None:
    """Keeps debug chatter from the store out of test output."""
    setup_logging(level=logging.WARNING)


@pytest.fixture
def tree_payload() -> dict[str, Any]:
    """root -> suiteA -> {test1, test2}; root -> suiteB -> {test3, suiteC -> {test4}}"""
    return {
        "title": "root",
        "tests": [],
        "suites": [
            {
                "id": "suiteA",
                "title": "Suite A",
                "file": "tests/test_a.py",
                "tests": [
                    {"id": "test1", "title": "first", "file": "tests/test_a.py"},
                    {"id": "test2", "title": "second", "file": "tests/test_a.py"},
                ],
                "suites": [],
            },
            {
                "id": "suiteB",
                "title": "Suite B",
                "file": "tests/test_b.py",
                "tests": [{"id": "test3", "title": "third", "file": "tests/test_b.py"}],
                "suites": [
                    {
                        "id": "suiteC",
                        "title": "Suite C",
                        "file": "tests/test_b.py",
                        "tests": [{"id": "test4", "title": "fourth", "file": "tests/test_b.py"}],
                        "suites": [],
                    }
                ],
            },
        ],
    }


@pytest.fixture
def tree(tree_payload: dict[str, Any]) -> TestTree:
    test_tree = TestTree()
    test_tree.parse_snapshot(tree_payload)
    return test_tree


@pytest.fixture
def fake_runner(tmp_path: Path) -> Callable[..., Callable[[Any], LaunchSpec]]:
    """
    Builds a launch factory for a Python script that prints the given stdout
    lines, optional stderr text, optionally sleeps, then exits with `exit_code`.
    """

    def make(
        lines: list[str],
        exit_code: int = 0,
        stderr: str | None = None,
        sleep: float = 0.0,
    ) -> Callable[[Any], LaunchSpec]:
        script = tmp_path / "fake_runner.py"
        script.write_text(
            "import sys, time\n"
            f"for line in {lines!r}:\n"
            "    print(line, flush=True)\n"
            f"if {stderr!r}:\n"
            f"    sys.stderr.write({stderr!r})\n"
            "    sys.stderr.flush()\n"
            f"time.sleep({sleep!r})\n"
            f"sys.exit({exit_code!r})\n"
        )

        def launch_factory(scope_file: Any = None) -> LaunchSpec:
            return LaunchSpec(executable=sys.executable, args=[str(script)], cwd=tmp_path)

        return launch_factory

    return make


@pytest.fixture
def minimal_config(tmp_path: Path) -> SuitetrackConfig:
    return SuitetrackConfig(
        runner=RunnerConfig(executable=sys.executable, args=["-c", "pass"], reporter_args=[], working_dir=tmp_path),
        state=StateConfig(file=tmp_path / "state" / "state.json"),
        global_config=GlobalConfig(log_level="DEBUG"),
        config_file_path=None,
    )
