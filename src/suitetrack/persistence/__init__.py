#
# src/suitetrack/persistence/__init__.py
#
from .snapshot import SnapshotStore

__all__ = ["SnapshotStore"]

# 🔼⚙️
