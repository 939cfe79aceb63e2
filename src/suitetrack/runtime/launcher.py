# src/suitetrack/runtime/launcher.py
"""
Assembles the runner command line from configuration.
"""

from pathlib import Path

from attrs import define, field

from suitetrack.config.models import RunnerConfig


@define(frozen=True, slots=True)
class LaunchSpec:
    """A ready-to-exec command: executable, arguments and working directory."""

    executable: str
    args: list[str] = field(factory=list)
    cwd: Path | None = field(default=None)

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.args]


def build_launch_spec(runner: RunnerConfig, scope_file: str | Path | None = None) -> LaunchSpec:
    """Configured args, then the optional file to scope the run to, then the reporter args."""
    args = list(runner.args)
    if scope_file:
        args.append(str(scope_file))
    args.extend(runner.reporter_args)
    return LaunchSpec(executable=runner.executable, args=args, cwd=runner.working_dir)

# 🔼⚙️
