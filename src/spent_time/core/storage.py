"""Snapshot persistence with atomic writes, validation and migration."""

import json
import logging
import os
import shutil
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

from spent_time.core.models import CURRENT_SCHEMA_VERSION, Snapshot

logger = logging.getLogger(__name__)

BUNDLE_KEY = "mst.appState.bundle"
VERSION_KEY = "mst.store.version"

_UUID_PATTERN = "^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"

SNAPSHOT_SCHEMA = {
    "type": "object",
    "properties": {
        "spheres": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "pattern": _UUID_PATTERN},
                    "name": {"type": "string"},
                    "color": {"type": "string"},
                    "isFavorite": {"type": "boolean"},
                },
                "required": ["id", "name", "color"],
            },
        },
        "timeEntries": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "pattern": _UUID_PATTERN},
                    "date": {"type": "string"},
                    "minutes": {"type": "integer"},
                    "sphereID": {"type": "string", "pattern": _UUID_PATTERN},
                    "timeOfDay": {
                        "type": "string",
                        "enum": ["Any", "Morning", "Day", "Evening", "Night"],
                    },
                },
                "required": ["id", "date", "minutes", "sphereID", "timeOfDay"],
            },
        },
        "version": {"type": "integer", "minimum": 0},
    },
    "required": ["spheres", "timeEntries", "version"],
}


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way.

    Args:
        file_obj: File object to lock
        exclusive: If True, acquire exclusive lock; if False, acquire shared lock
    """
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_NBLCK if exclusive else msvcrt.LK_NBRLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    """Unlock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


def encode_snapshot(snapshot: Snapshot) -> str:
    """Serialize a snapshot to its JSON record."""
    return json.dumps(snapshot.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)


def decode_snapshot(payload: str) -> Snapshot:
    """Deserialize and validate a JSON record.

    Raises:
        ValueError: If the payload is not a valid snapshot record
    """
    try:
        data = json.loads(payload)
        validate(instance=data, schema=SNAPSHOT_SCHEMA)
        return Snapshot.from_dict(data)
    except ValidationError as e:
        raise ValueError(f"Invalid snapshot record: {e.message}")
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError, RecursionError) as e:
        raise ValueError(f"Undecodable snapshot record: {e}")


def migrate(snapshot: Snapshot, target: int = CURRENT_SCHEMA_VERSION) -> Snapshot:
    """Bring a snapshot up to the target schema version.

    Schema version 1 is the only generation so far, so migration only bumps
    the version number. Versions never decrease.

    Args:
        snapshot: Loaded snapshot
        target: Schema version to migrate to

    Returns:
        Snapshot at ``max(snapshot.version, target)``
    """
    if snapshot.version >= target:
        return snapshot

    logger.info(f"Migrating snapshot from version {snapshot.version} to {target}")
    return Snapshot(
        spheres=list(snapshot.spheres),
        time_entries=list(snapshot.time_entries),
        version=target,
    )


class SnapshotStorage(ABC):
    """Durable slot holding one serialized snapshot and its version marker."""

    def load(self) -> Optional[Snapshot]:
        """Load the stored snapshot.

        Returns:
            Snapshot, or None if nothing is stored or the record is unreadable
        """
        try:
            payload = self.read_key(BUNDLE_KEY)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read snapshot: {e}")
            return None

        if payload is None:
            return None

        try:
            snapshot = decode_snapshot(payload)
        except ValueError as e:
            logger.warning(f"Discarding stored snapshot: {e}")
            return None

        logger.debug(
            f"Snapshot loaded: {len(snapshot.spheres)} spheres, "
            f"{len(snapshot.time_entries)} entries"
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> bool:
        """Write the full snapshot and the version marker.

        Failures are logged and reported, never raised or retried.

        Returns:
            True if both keys were written
        """
        try:
            self.write_key(BUNDLE_KEY, encode_snapshot(snapshot))
            self.write_key(VERSION_KEY, str(snapshot.version))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save snapshot: {e}")
            return False

        logger.debug("Snapshot saved")
        return True

    def read_version_marker(self) -> Optional[int]:
        """Read the version stored outside the record.

        Returns:
            Version, or None if missing or invalid
        """
        try:
            raw = self.read_key(VERSION_KEY)
            return int(raw) if raw is not None else None
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read version marker: {e}")
            return None

    @abstractmethod
    def read_key(self, key: str) -> Optional[str]:
        """Read the value stored under ``key`` (None if absent)."""
        pass

    @abstractmethod
    def write_key(self, key: str, value: str) -> None:
        """Overwrite the value stored under ``key``."""
        pass


class MemoryStorage(SnapshotStorage):
    """In-memory slot, used by tests and embedding callers."""

    def __init__(self, values: Optional[dict[str, str]] = None):
        self.values: dict[str, str] = dict(values or {})
        self.write_count = 0

    def read_key(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def write_key(self, key: str, value: str) -> None:
        self.values[key] = value
        self.write_count += 1


class FileStorage(SnapshotStorage):
    """File-backed slot: one file per key inside the data directory."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize file storage.

        Args:
            data_dir: Custom data directory. Defaults to ~/.spent-time/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".spent-time" / "data"

        self.data_dir = data_dir
        self.bundle_file = self.data_dir / f"{BUNDLE_KEY}.json"
        self.version_file = self.data_dir / VERSION_KEY
        self.backup_dir = self.data_dir.parent / "backups"

        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _key_path(self, key: str) -> Path:
        if key == BUNDLE_KEY:
            return self.bundle_file
        if key == VERSION_KEY:
            return self.version_file
        return self.data_dir / key

    def read_key(self, key: str) -> Optional[str]:
        file_path = self._key_path(key)
        if not file_path.exists():
            return None

        with open(file_path, encoding="utf-8") as f:
            _lock_file(f, exclusive=False)
            try:
                return f.read()
            finally:
                _unlock_file(f)

    def write_key(self, key: str, value: str) -> None:
        """Write a key atomically using temporary file and rename."""
        file_path = self._key_path(key)
        temp_file = file_path.with_name(file_path.name + ".tmp")

        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                _lock_file(f, exclusive=True)
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
                _unlock_file(f)

            temp_file.replace(file_path)

        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def backup(self, label: Optional[str] = None) -> Path:
        """Copy the stored snapshot files into a backup directory.

        Args:
            label: Optional label for backup. Defaults to timestamp

        Returns:
            Path to backup directory
        """
        if label is None:
            label = datetime.now().strftime("%Y%m%d_%H%M%S")

        backup_path = self.backup_dir / label
        backup_path.mkdir(parents=True, exist_ok=True)

        for file in [self.bundle_file, self.version_file]:
            if file.exists():
                shutil.copy2(file, backup_path / file.name)

        logger.info(f"Backup created at {backup_path}")
        return backup_path
