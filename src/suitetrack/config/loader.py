#
# config/loader.py
#
"""
Loads suitetrack.toml into the attrs configuration models.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from suitetrack.config.models import GlobalConfig, RunnerConfig, StateConfig, SuitetrackConfig
from suitetrack.exceptions import ConfigurationError
from suitetrack.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path("suitetrack.toml")
ENV_LOG_LEVEL = "SUITETRACK_LOG_LEVEL"


def _section(data: Mapping[str, Any], name: str, config_path: Path) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"[{name}] in '{config_path}' must be a table")
    return dict(section)


def _resolve(base_dir: Path, value: Any) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base_dir / path)


def _build_config(data: Mapping[str, Any], config_path: Path | None) -> SuitetrackConfig:
    label = config_path or Path("<defaults>")
    base_dir = config_path.parent.resolve() if config_path else Path.cwd()

    global_data = _section(data, "global", label)
    if env_level := os.environ.get(ENV_LOG_LEVEL):
        log.debug("Log level overridden by environment", env_var=ENV_LOG_LEVEL, value=env_level)
        global_data["log_level"] = env_level

    runner_data = _section(data, "runner", label)
    runner_data["working_dir"] = _resolve(base_dir, runner_data.get("working_dir", "."))

    state_data = _section(data, "state", label)
    if state_data.get("file") == "":
        state_data["file"] = None  # persistence disabled
    elif state_data.get("file") is not None:
        state_data["file"] = _resolve(base_dir, state_data["file"])
    elif "file" not in state_data:
        state_data["file"] = _resolve(base_dir, StateConfig().file)

    try:
        return SuitetrackConfig(
            runner=RunnerConfig(**runner_data),
            state=StateConfig(**state_data),
            global_config=GlobalConfig(**global_data),
            config_file_path=config_path,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration in '{label}': {e}", details=e) from e


def load_config(config_path: Path | None = None) -> SuitetrackConfig:
    """
    Loads and validates configuration. A missing file at the default location
    yields the defaults; an explicitly requested missing file is an error.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.is_file():
        if config_path is not None and config_path != DEFAULT_CONFIG_PATH:
            raise ConfigurationError(f"Configuration file not found: '{config_path}'")
        log.debug("No configuration file found, using defaults", path=str(path))
        return _build_config({}, None)

    log.debug("Loading configuration", path=str(path))
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Could not parse '{path}': {e}", details=e) from e
    except OSError as e:
        raise ConfigurationError(f"Could not read '{path}': {e}", details=e) from e

    config = _build_config(data, path)
    log.info("Configuration loaded", path=str(path), executable=config.runner.executable)
    return config

# 🔼⚙️
