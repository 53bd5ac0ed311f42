"""
discovery/storage.py - Snapshot persistence for discovery state.

One small interface, two implementations:
- JsonFileStore: one JSON file per snapshot name under a data dir
- MemoryStore: dict-backed, for smoke runs and tests
"""

import json
import os
from pathlib import Path
from typing import Any, Protocol

from core.constants import ErrorCode
from core.exceptions import StorageError
from core.logging import get_logger

logger = get_logger(__name__)


class SnapshotStore(Protocol):
    """Reads and writes named JSON-compatible snapshots."""

    def read(self, name: str) -> dict[str, Any] | None:
        """Return the snapshot, None if absent. Raises StorageError if unreadable."""
        ...

    def write(self, name: str, data: dict[str, Any]) -> None:
        """Replace the snapshot. Raises StorageError on failure."""
        ...


class JsonFileStore:
    """Snapshots stored as {data_dir}/{name}.json, replaced atomically."""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def read(self, name: str) -> dict[str, Any] | None:
        state_file = self.path_for(name)
        if not state_file.exists():
            return None

        try:
            with open(state_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(
                f"Snapshot {state_file} is unreadable: {e}",
                details={"path": str(state_file)},
            ) from e

        if not isinstance(data, dict):
            raise StorageError(
                f"Snapshot {state_file} is not a JSON object",
                details={"path": str(state_file)},
            )
        return data

    def write(self, name: str, data: dict[str, Any]) -> None:
        state_file = self.path_for(name)
        tmp_file = state_file.with_suffix(".json.tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_file, state_file)
        except OSError as e:
            raise StorageError(
                f"Failed to write snapshot {state_file}: {e}",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                details={"path": str(state_file)},
            ) from e

        logger.debug(f"Snapshot written: {state_file}")


class MemoryStore:
    """In-process store. Values are deep-copied through JSON to mimic disk."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self.writes = 0

    def read(self, name: str) -> dict[str, Any] | None:
        raw = self._data.get(name)
        return json.loads(raw) if raw is not None else None

    def write(self, name: str, data: dict[str, Any]) -> None:
        self._data[name] = json.dumps(data)
        self.writes += 1
