#
# src/suitetrack/telemetry/__init__.py
#
"""
Structured logging for suitetrack.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
