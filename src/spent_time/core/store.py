"""State container: sole writer of the snapshot."""

import copy
import logging
import threading
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from spent_time.analysis import aggregation
from spent_time.core import allocator
from spent_time.core.dates import DateLike
from spent_time.core.models import (
    CURRENT_SCHEMA_VERSION,
    PRESET_SPHERES,
    AggregationRange,
    PieSlice,
    Snapshot,
    Sphere,
    TimeEntry,
    TimeOfDay,
)
from spent_time.core.storage import SnapshotStorage, migrate

logger = logging.getLogger(__name__)

Listener = Callable[[Snapshot], None]


class DataStore:
    """Holds the authoritative snapshot and applies every mutation to it.

    Each state-changing mutation is visible to queries as soon as it
    returns, is written to storage once, and is then announced to
    subscribed listeners. Not-found identifiers are silently ignored.
    """

    def __init__(self, storage: SnapshotStorage, week_start: str = "monday"):
        """Initialize the store from storage.

        Args:
            storage: Persistence adapter for the snapshot
            week_start: First day of week used by range queries
        """
        self.storage = storage
        self.week_start = week_start
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

        loaded = storage.load()
        if loaded is None:
            logger.info("No stored snapshot, starting empty")
            self._snapshot = Snapshot(version=CURRENT_SCHEMA_VERSION)
            self.storage.save(self._snapshot)
        else:
            self._snapshot = migrate(loaded, CURRENT_SCHEMA_VERSION)
            if self._snapshot.version != loaded.version:
                self.storage.save(self._snapshot)

    # Read access

    @property
    def snapshot(self) -> Snapshot:
        """Copy of the current snapshot."""
        with self._lock:
            return copy.deepcopy(self._snapshot)

    @property
    def spheres(self) -> list[Sphere]:
        """Spheres in insertion order."""
        with self._lock:
            return copy.deepcopy(self._snapshot.spheres)

    @property
    def time_entries(self) -> list[TimeEntry]:
        """Entries in insertion order."""
        with self._lock:
            return copy.deepcopy(self._snapshot.time_entries)

    @property
    def version(self) -> int:
        return self._snapshot.version

    def get_sphere(self, sphere_id: UUID) -> Optional[Sphere]:
        """Get sphere by ID.

        Returns:
            Sphere or None if not found
        """
        with self._lock:
            for sphere in self._snapshot.spheres:
                if sphere.id == sphere_id:
                    return copy.deepcopy(sphere)
        return None

    def favorite_spheres(self) -> list[Sphere]:
        return [s for s in self.spheres if s.is_favorite]

    # Change notification

    def subscribe(self, listener: Listener) -> None:
        """Register a listener called with the snapshot after each change."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a registered listener. Unknown listeners are ignored."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _commit(self) -> None:
        """Persist the snapshot and notify listeners (assumes lock is held)."""
        self.storage.save(self._snapshot)

        for listener in list(self._listeners):
            try:
                listener(copy.deepcopy(self._snapshot))
            except Exception as e:
                logger.error(f"Snapshot listener {listener!r} failed: {e}")

    # Sphere operations

    def add_sphere(self, name: str, color: str, is_favorite: bool = False) -> Sphere:
        """Append a new sphere. Names are not checked for uniqueness here.

        Args:
            name: Display name
            color: Hex color
            is_favorite: Favorite flag

        Returns:
            Created sphere
        """
        sphere = Sphere(name=name, color=color, is_favorite=is_favorite)
        with self._lock:
            self._snapshot.spheres.append(sphere)
            self._commit()
        return copy.deepcopy(sphere)

    def update_sphere(self, sphere: Sphere) -> None:
        """Replace the sphere with the same ID in place."""
        replacement = Sphere(
            id=sphere.id,
            name=sphere.name,
            color=sphere.color,
            is_favorite=sphere.is_favorite,
        )
        with self._lock:
            for i, existing in enumerate(self._snapshot.spheres):
                if existing.id == sphere.id:
                    self._snapshot.spheres[i] = replacement
                    self._commit()
                    return
        logger.debug(f"update_sphere: unknown sphere {sphere.id}")

    def delete_sphere(self, sphere_id: UUID) -> None:
        """Delete a sphere and every entry that references it."""
        with self._lock:
            spheres = [s for s in self._snapshot.spheres if s.id != sphere_id]
            if len(spheres) == len(self._snapshot.spheres):
                logger.debug(f"delete_sphere: unknown sphere {sphere_id}")
                return

            entries = [e for e in self._snapshot.time_entries if e.sphere_id != sphere_id]
            removed = len(self._snapshot.time_entries) - len(entries)
            self._snapshot.spheres = spheres
            self._snapshot.time_entries = entries
            logger.info(f"Deleted sphere {sphere_id} and {removed} entries")
            self._commit()

    def ensure_preset_spheres(self) -> None:
        """Seed the preset spheres, only while no spheres exist."""
        with self._lock:
            if self._snapshot.spheres:
                return
            self._snapshot.spheres.extend(Sphere(name=n, color=c) for n, c in PRESET_SPHERES)
            logger.info(f"Seeded {len(PRESET_SPHERES)} preset spheres")
            self._commit()

    # Entry operations

    def add_time_entry(
        self,
        date: DateLike,
        minutes: int,
        sphere_id: UUID,
        time_of_day: TimeOfDay = TimeOfDay.ANY,
    ) -> TimeEntry:
        """Record a block of time.

        The date is truncated to midnight and minutes are clamped to >= 1.

        Returns:
            Created entry
        """
        entry = TimeEntry(date=date, minutes=minutes, sphere_id=sphere_id, time_of_day=time_of_day)
        with self._lock:
            self._snapshot.time_entries.append(entry)
            self._commit()
        return copy.deepcopy(entry)

    def update_time_entry(self, entry: TimeEntry) -> None:
        """Replace the entry with the same ID in place."""
        replacement = TimeEntry(
            id=entry.id,
            date=entry.date,
            minutes=entry.minutes,
            sphere_id=entry.sphere_id,
            time_of_day=entry.time_of_day,
        )
        with self._lock:
            for i, existing in enumerate(self._snapshot.time_entries):
                if existing.id == entry.id:
                    self._snapshot.time_entries[i] = replacement
                    self._commit()
                    return
        logger.debug(f"update_time_entry: unknown entry {entry.id}")

    def delete_time_entry(self, entry_id: UUID) -> None:
        """Delete an entry by ID."""
        with self._lock:
            entries = [e for e in self._snapshot.time_entries if e.id != entry_id]
            if len(entries) == len(self._snapshot.time_entries):
                logger.debug(f"delete_time_entry: unknown entry {entry_id}")
                return
            self._snapshot.time_entries = entries
            self._commit()

    # Queries

    def entries_on(self, day: DateLike) -> list[TimeEntry]:
        return aggregation.entries_on(self.snapshot, day)

    def entries_between(self, start: DateLike, end: DateLike) -> list[TimeEntry]:
        return aggregation.entries_between(self.snapshot, start, end)

    def aggregate_by_sphere(self, day: DateLike) -> dict[UUID, int]:
        return aggregation.aggregate_by_sphere(self.snapshot, day)

    def dominant_sphere(self, day: DateLike) -> Optional[Sphere]:
        return aggregation.dominant_sphere(self.snapshot, day)

    def pie_data(
        self,
        range_: AggregationRange,
        ref_date: Optional[DateLike] = None,
    ) -> list[PieSlice]:
        """Per-sphere slices for a Day, Week, Month or Year around ``ref_date`` (default today)."""
        return aggregation.pie_data(
            self.snapshot, range_, ref_date or datetime.now(), self.week_start
        )

    def weekday_histogram(self, ref_date: Optional[DateLike] = None) -> dict[int, int]:
        return aggregation.weekday_histogram(
            self.snapshot, ref_date or datetime.now(), self.week_start
        )

    # Palette and naming

    def is_color_used(self, color: str) -> bool:
        return allocator.is_color_used(self.spheres, color)

    def available_palette_colors(self, exclude_used: bool = True) -> list[str]:
        return allocator.available_palette_colors(self.spheres, exclude_used)

    def next_palette_color(self) -> str:
        return allocator.next_palette_color(self.spheres)

    def create_unique_sphere(self, name: str, color: str, favorite: bool = False) -> Sphere:
        """Add a sphere under a collision-free name (see allocator.unique_sphere_name)."""
        with self._lock:
            return allocator.create_unique_sphere(self, name, color, favorite)
