#
# src/suitetrack/runtime/__init__.py
#
"""
Runtime sub-package: runner launch, session lifecycle and run orchestration.
"""
from .launcher import LaunchSpec, build_launch_spec
from .orchestrator import RunOrchestrator
from .session import RunnerSession

__all__ = [
    "LaunchSpec",
    "RunOrchestrator",
    "RunnerSession",
    "build_launch_spec",
]

# 🔼⚙️
