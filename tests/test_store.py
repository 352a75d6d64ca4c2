"""Tests for the DataStore state container."""

import json
import tempfile
from datetime import date, datetime
from pathlib import Path
from uuid import uuid4

import pytest

from spent_time.core.models import DEFAULT_COLOR, PRESET_SPHERES, Snapshot, Sphere, TimeEntry, TimeOfDay
from spent_time.core.storage import BUNDLE_KEY, VERSION_KEY, FileStorage, MemoryStorage, encode_snapshot
from spent_time.core.store import DataStore


class TestInitialization:
    """Test store startup."""

    def test_empty_storage_creates_and_persists_snapshot(self, memory_storage: MemoryStorage) -> None:
        """Test that a fresh store saves an empty snapshot immediately."""
        store = DataStore(memory_storage)

        assert store.spheres == []
        assert store.time_entries == []
        assert store.version == 1
        assert memory_storage.load() == Snapshot(version=1)
        assert memory_storage.read_version_marker() == 1

    def test_loads_existing_snapshot(self, memory_storage: MemoryStorage) -> None:
        """Test that stored state is picked up."""
        work = Sphere(name="Work", color="#9DAEFE")
        memory_storage.save(Snapshot(spheres=[work]))

        store = DataStore(memory_storage)

        assert store.spheres == [work]

    def test_migrates_old_version_and_persists(self, memory_storage: MemoryStorage) -> None:
        """Test that an old schema version is bumped and written back."""
        memory_storage.save(Snapshot(version=0))

        store = DataStore(memory_storage)

        assert store.version == 1
        assert memory_storage.read_version_marker() == 1
        assert json.loads(memory_storage.values[BUNDLE_KEY])["version"] == 1

    def test_current_version_not_rewritten(self, memory_storage: MemoryStorage) -> None:
        """Test that loading an up-to-date snapshot does not write."""
        memory_storage.save(Snapshot())
        writes = memory_storage.write_count

        DataStore(memory_storage)

        assert memory_storage.write_count == writes

    def test_corrupt_storage_falls_back_to_empty(self) -> None:
        """Test that undecodable state yields a fresh snapshot."""
        storage = MemoryStorage({BUNDLE_KEY: "]]", VERSION_KEY: "1"})

        store = DataStore(storage)

        assert store.spheres == []
        assert storage.load() == Snapshot()

    def test_non_utf8_bundle_falls_back_to_empty(self) -> None:
        """Test that a bundle with invalid UTF-8 bytes does not break startup."""
        with tempfile.TemporaryDirectory() as tmpdir:
            storage = FileStorage(Path(tmpdir) / "data")
            storage.bundle_file.write_bytes(b"\xff\xfe\x00garbage")

            store = DataStore(storage)

            assert store.spheres == []
            assert storage.load() == Snapshot()


class TestSphereOperations:
    """Test sphere mutations."""

    def test_add_sphere(self, store: DataStore) -> None:
        """Test appending spheres in order."""
        first = store.add_sphere("Gym", "#2155FF")
        second = store.add_sphere("Gym", "#7D3CFF", is_favorite=True)

        assert [s.id for s in store.spheres] == [first.id, second.id]
        assert second.is_favorite is True

    def test_add_sphere_persists(self, store: DataStore, memory_storage: MemoryStorage) -> None:
        """Test that the new sphere reaches storage."""
        sphere = store.add_sphere("Gym", "#2155FF")

        loaded = memory_storage.load()
        assert loaded is not None
        assert loaded.spheres == [sphere]

    def test_update_sphere(self, store: DataStore) -> None:
        """Test replacing a sphere in place."""
        store.add_sphere("First", "#E74C3C")
        sphere = store.add_sphere("Gym", "#2155FF")
        store.add_sphere("Last", "#F6A0C1")

        sphere.name = "Fitness"
        sphere.color = "#7cf24b"
        sphere.is_favorite = True
        store.update_sphere(sphere)

        updated = store.spheres[1]
        assert updated.id == sphere.id
        assert updated.name == "Fitness"
        assert updated.color == "#7CF24B"
        assert updated.is_favorite is True

    def test_invalid_color_is_coerced(self, store: DataStore) -> None:
        """Test that sphere mutations replace invalid colors instead of raising."""
        sphere = store.add_sphere("Gym", "blue")
        assert sphere.color == DEFAULT_COLOR

        sphere.color = "not-a-color"
        store.update_sphere(sphere)
        assert store.spheres[0].color == DEFAULT_COLOR

        assert store.create_unique_sphere("gym", "#12").color == DEFAULT_COLOR

    def test_update_unknown_sphere_is_noop(self, store: DataStore, memory_storage: MemoryStorage) -> None:
        """Test that updating an unknown sphere changes nothing and does not write."""
        store.add_sphere("Gym", "#2155FF")
        writes = memory_storage.write_count

        store.update_sphere(Sphere(name="Ghost", color="#000000"))

        assert [s.name for s in store.spheres] == ["Gym"]
        assert memory_storage.write_count == writes

    def test_returned_sphere_is_a_copy(self, store: DataStore) -> None:
        """Test that mutating a returned sphere does not touch the store."""
        sphere = store.add_sphere("Gym", "#2155FF")
        sphere.name = "Changed"

        assert store.spheres[0].name == "Gym"

    def test_delete_sphere_cascades(self, store: DataStore) -> None:
        """Test that deleting a sphere removes its entries only."""
        gym = store.add_sphere("Gym", "#2155FF")
        work = store.add_sphere("Work", "#9DAEFE")
        for minutes in (30, 45, 60):
            store.add_time_entry(date(2024, 3, 1), minutes, gym.id)
        store.add_time_entry(date(2024, 3, 1), 240, work.id)
        before = len(store.time_entries)

        store.delete_sphere(gym.id)

        assert [s.id for s in store.spheres] == [work.id]
        assert len(store.time_entries) == before - 3
        assert all(e.sphere_id != gym.id for e in store.time_entries)

    def test_delete_sphere_writes_once(self, store: DataStore, memory_storage: MemoryStorage) -> None:
        """Test that the cascade is persisted as a single snapshot write."""
        gym = store.add_sphere("Gym", "#2155FF")
        store.add_time_entry(date(2024, 3, 1), 30, gym.id)
        writes = memory_storage.write_count

        store.delete_sphere(gym.id)

        # One save writes the bundle and the version marker
        assert memory_storage.write_count == writes + 2

    def test_delete_unknown_sphere_is_noop(self, store: DataStore) -> None:
        """Test that deleting an unknown sphere does nothing."""
        store.add_sphere("Gym", "#2155FF")

        store.delete_sphere(uuid4())

        assert len(store.spheres) == 1

    def test_get_sphere(self, store: DataStore) -> None:
        """Test looking up a sphere by ID."""
        sphere = store.add_sphere("Gym", "#2155FF")

        assert store.get_sphere(sphere.id) == sphere
        assert store.get_sphere(uuid4()) is None

    def test_favorite_spheres(self, store: DataStore) -> None:
        """Test filtering favorites."""
        store.add_sphere("Gym", "#2155FF")
        fav = store.add_sphere("Family", "#FF8182", is_favorite=True)

        assert store.favorite_spheres() == [fav]


class TestPresets:
    """Test preset seeding."""

    def test_seed_empty_store(self, store: DataStore) -> None:
        """Test that presets are added in fixed order."""
        store.ensure_preset_spheres()

        assert len(store.spheres) == 9
        assert [(s.name, s.color) for s in store.spheres] == PRESET_SPHERES

    def test_seed_is_idempotent(self, store: DataStore) -> None:
        """Test that seeding twice adds nothing."""
        store.ensure_preset_spheres()
        store.ensure_preset_spheres()

        assert len(store.spheres) == 9

    def test_seed_skipped_when_spheres_exist(self, store: DataStore) -> None:
        """Test that presets are only added to an empty collection."""
        store.add_sphere("Gym", "#2155FF")

        store.ensure_preset_spheres()

        assert [s.name for s in store.spheres] == ["Gym"]


class TestEntryOperations:
    """Test time entry mutations."""

    def test_add_time_entry_normalizes(self, store: DataStore) -> None:
        """Test day truncation and minute floor on add."""
        gym = store.add_sphere("Gym", "#2155FF")

        entry = store.add_time_entry(datetime(2024, 3, 1, 18, 30), 0, gym.id, TimeOfDay.EVENING)

        assert entry.date == datetime(2024, 3, 1)
        assert entry.minutes == 1
        assert store.time_entries == [entry]

    def test_update_time_entry(self, store: DataStore) -> None:
        """Test full replacement of an entry."""
        gym = store.add_sphere("Gym", "#2155FF")
        work = store.add_sphere("Work", "#9DAEFE")
        entry = store.add_time_entry(date(2024, 3, 1), 30, gym.id)

        replacement = TimeEntry(
            id=entry.id,
            date=datetime(2024, 3, 2, 7, 0),
            minutes=45,
            sphere_id=work.id,
            time_of_day=TimeOfDay.MORNING,
        )
        store.update_time_entry(replacement)

        [stored] = store.time_entries
        assert stored.id == entry.id
        assert stored.date == datetime(2024, 3, 2)
        assert stored.minutes == 45
        assert stored.sphere_id == work.id
        assert stored.time_of_day is TimeOfDay.MORNING

    def test_update_renormalizes_mutated_entry(self, store: DataStore) -> None:
        """Test that fields assigned after construction are normalized again."""
        gym = store.add_sphere("Gym", "#2155FF")
        entry = store.add_time_entry(date(2024, 3, 1), 30, gym.id)

        entry.minutes = -10
        entry.date = datetime(2024, 3, 5, 22, 15)
        store.update_time_entry(entry)

        [stored] = store.time_entries
        assert stored.minutes == 1
        assert stored.date == datetime(2024, 3, 5)

    def test_update_unknown_entry_is_noop(self, store: DataStore) -> None:
        """Test that unknown entries are ignored."""
        gym = store.add_sphere("Gym", "#2155FF")
        store.add_time_entry(date(2024, 3, 1), 30, gym.id)

        store.update_time_entry(TimeEntry(date=date(2024, 3, 1), minutes=99, sphere_id=gym.id))

        assert [e.minutes for e in store.time_entries] == [30]

    def test_delete_time_entry(self, store: DataStore) -> None:
        """Test deleting an entry by ID."""
        gym = store.add_sphere("Gym", "#2155FF")
        keep = store.add_time_entry(date(2024, 3, 1), 30, gym.id)
        drop = store.add_time_entry(date(2024, 3, 1), 60, gym.id)

        store.delete_time_entry(drop.id)
        store.delete_time_entry(uuid4())

        assert store.time_entries == [keep]


class TestChangeNotification:
    """Test listener registration."""

    def test_listener_receives_snapshot(self, store: DataStore) -> None:
        """Test that listeners see the state after each mutation."""
        received: list[Snapshot] = []
        store.subscribe(received.append)

        gym = store.add_sphere("Gym", "#2155FF")
        store.add_time_entry(date(2024, 3, 1), 30, gym.id)

        assert len(received) == 2
        assert received[-1].spheres == [gym]
        assert len(received[-1].time_entries) == 1

    def test_noop_does_not_notify(self, store: DataStore) -> None:
        """Test that no-op mutations are not announced."""
        received: list[Snapshot] = []
        store.subscribe(received.append)

        store.delete_sphere(uuid4())
        store.delete_time_entry(uuid4())

        assert received == []

    def test_unsubscribe(self, store: DataStore) -> None:
        """Test that unsubscribed listeners are not called."""
        received: list[Snapshot] = []
        store.subscribe(received.append)
        store.unsubscribe(received.append)

        store.add_sphere("Gym", "#2155FF")

        assert received == []

    def test_failing_listener_does_not_block_others(self, store: DataStore) -> None:
        """Test that a raising listener is isolated."""
        received: list[Snapshot] = []

        def broken(snapshot: Snapshot) -> None:
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(received.append)

        sphere = store.add_sphere("Gym", "#2155FF")

        assert len(received) == 1
        assert store.spheres == [sphere]

    def test_listener_snapshot_is_detached(self, store: DataStore) -> None:
        """Test that listeners cannot mutate store state."""
        store.subscribe(lambda snapshot: snapshot.spheres.clear())

        store.add_sphere("Gym", "#2155FF")

        assert len(store.spheres) == 1


class TestSaveFailure:
    """Test behavior when persistence fails."""

    def test_mutation_survives_failed_write(self) -> None:
        """Test that in-memory state stays authoritative after a failed save."""

        class FailingStorage(MemoryStorage):
            fail = False

            def write_key(self, key: str, value: str) -> None:
                if self.fail:
                    raise OSError("read-only")
                super().write_key(key, value)

        storage = FailingStorage()
        store = DataStore(storage)
        storage.fail = True

        sphere = store.add_sphere("Gym", "#2155FF")

        assert store.spheres == [sphere]


@pytest.mark.integration
class TestFileBackedStore:
    """Test the store against real files."""

    def test_state_survives_restart(self) -> None:
        """Test that a second store sees the first store's writes."""
        with tempfile.TemporaryDirectory() as tmpdir:
            data_dir = Path(tmpdir) / "data"
            store = DataStore(FileStorage(data_dir))
            store.ensure_preset_spheres()
            work = store.spheres[3]
            store.add_time_entry(date(2024, 3, 1), 240, work.id, TimeOfDay.DAY)

            reopened = DataStore(FileStorage(data_dir))

            assert reopened.snapshot == store.snapshot
            assert (data_dir / "mst.store.version").read_text() == "1"

    def test_migration_written_to_disk(self) -> None:
        """Test that an old on-disk record is rewritten at the new version."""
        with tempfile.TemporaryDirectory() as tmpdir:
            storage = FileStorage(Path(tmpdir))
            storage.bundle_file.write_text(encode_snapshot(Snapshot(version=0)), encoding="utf-8")

            DataStore(storage)

            assert json.loads(storage.bundle_file.read_text())["version"] == 1
            assert storage.read_version_marker() == 1
