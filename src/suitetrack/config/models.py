#
# config/models.py
#
"""
Attrs-based data models for the suitetrack configuration structure.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from attrs import define, field


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging.getLevelNamesMapping().keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_non_empty_str(inst: Any, attr: Any, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Field '{attr.name}' must be a non-empty string, got {value!r}")


def _validate_str_list(inst: Any, attr: Any, value: list[str]) -> None:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"Field '{attr.name}' must be a list of strings, got {value!r}")


def _validate_int_list(inst: Any, attr: Any, value: list[int]) -> None:
    if not isinstance(value, list) or not all(isinstance(item, int) and not isinstance(item, bool) for item in value):
        raise ValueError(f"Field '{attr.name}' must be a list of integers, got {value!r}")


DEFAULT_REPORTER_ARGS = ["-p", "suitetrack.reporters.pytest_reporter"]


@define(frozen=True, slots=True)
class RunnerConfig:
    """How to launch the external test runner."""

    executable: str = field(factory=lambda: sys.executable or "python", validator=_validate_non_empty_str)
    args: list[str] = field(factory=lambda: ["-m", "pytest"], validator=_validate_str_list)
    # Fixed arguments that make the runner emit the event protocol.
    reporter_args: list[str] = field(factory=lambda: list(DEFAULT_REPORTER_ARGS), validator=_validate_str_list)
    working_dir: Path = field(factory=Path.cwd, converter=Path)
    # Exit codes that still count as a completed run (pytest: 1 = tests failed, 5 = none collected).
    clean_exit_codes: list[int] = field(factory=lambda: [0, 1, 5], validator=_validate_int_list)


@define(frozen=True, slots=True)
class StateConfig:
    """Where tree state is persisted and how suites are aggregated."""

    file: Path | None = field(default=Path(".suitetrack/state.json"), converter=lambda v: None if v is None else Path(v))
    pending_blocks_success: bool = field(default=True)


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for suitetrack."""

    log_level: str = field(default="WARNING", validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level.upper()]


@define(frozen=True, slots=True)
class SuitetrackConfig:
    """Root configuration object for the suitetrack application."""

    runner: RunnerConfig = field(factory=RunnerConfig)
    state: StateConfig = field(factory=StateConfig)
    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})
    config_file_path: Path | None = field(default=None)


# 🔼⚙️
