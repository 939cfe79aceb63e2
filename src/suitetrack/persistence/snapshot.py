# src/suitetrack/persistence/snapshot.py
"""
Saves and restores the test tree as a single JSON document.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

from suitetrack.exceptions import SnapshotError, TreeError
from suitetrack.telemetry import StructLogger
from suitetrack.tree import TestTree

log: StructLogger = structlog.get_logger("persistence.snapshot")


class SnapshotStore:
    """Durable record of a tree, in the same nested shape `parse_snapshot` reads."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, tree: TestTree) -> None:
        snapshot = tree.to_snapshot()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file first so a crash never leaves half a document.
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        except OSError as e:
            raise SnapshotError("Failed to write snapshot", path=str(self.path), details=e) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise SnapshotError("Failed to write snapshot", path=str(self.path), details=e) from e
        log.debug("Snapshot saved", path=str(self.path), total=tree.total)

    def load(self) -> dict[str, Any] | None:
        """Returns the saved tree shape, or None when nothing was saved yet."""
        if not self.path.exists():
            log.debug("No snapshot to restore", path=str(self.path))
            return None
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SnapshotError("Snapshot is not valid JSON", path=str(self.path), details=e) from e
        except OSError as e:
            raise SnapshotError("Failed to read snapshot", path=str(self.path), details=e) from e

        if not isinstance(data, dict):
            raise SnapshotError("Snapshot root is not an object", path=str(self.path))
        return data

    def restore(self, tree: TestTree) -> bool:
        """
        Loads the snapshot into `tree`. Returns False when there was nothing to
        restore; a broken snapshot leaves the tree reset and raises.
        """
        data = self.load()
        if data is None:
            tree.reset()
            return False
        try:
            tree.parse_snapshot(data)
        except TreeError as e:
            tree.reset()
            raise SnapshotError("Snapshot does not describe a valid tree", path=str(self.path), details=e) from e
        tree.refresh_root_aggregate()
        log.info("Snapshot restored", path=str(self.path), total=tree.total)
        return True

# 🔼⚙️
