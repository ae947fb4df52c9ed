"""Tests for the memory store and its storage backends."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path

import pytest

from memoryglobe.errors import (
    DataCorruptionError,
    NotFoundError,
    PersistenceError,
    ReentrantMutationError,
    StorageError,
    ValidationError,
)
from memoryglobe.memory.models import Memory
from memoryglobe.memory.storage import FileStorage, InMemoryStorage, Storage
from memoryglobe.memory.store import MemoryStore


def make_memory(identifier: str = "m1", **overrides) -> Memory:
    fields = dict(
        identifier=identifier,
        title=f"Memory {identifier}",
        latitude=10.0,
        longitude=20.0,
        date=date(2024, 6, 1),
        tags=("sun", "sand"),
    )
    fields.update(overrides)
    return Memory(**fields)


class FlakyStorage(InMemoryStorage):
    """In-memory storage whose reads or writes can be made to fail."""

    def __init__(self, payload: str | None = None) -> None:
        super().__init__(payload)
        self.fail_reads = False
        self.fail_writes = False

    def read_all(self) -> str | None:
        if self.fail_reads:
            raise StorageError("disk unplugged")
        return super().read_all()

    def write_all(self, payload: str) -> None:
        if self.fail_writes:
            raise StorageError("quota exceeded")
        super().write_all(payload)


@pytest.fixture
def storage() -> FlakyStorage:
    return FlakyStorage()


@pytest.fixture
def store(storage: FlakyStorage) -> MemoryStore:
    s = MemoryStore(storage)
    s.load()
    return s


@pytest.fixture
def notifications(store: MemoryStore) -> list[tuple[Memory, ...]]:
    received: list[tuple[Memory, ...]] = []
    store.subscribe(received.append)
    return received


class TestStorageProtocol:
    def test_backends_satisfy_protocol(self, tmp_path: Path):
        assert isinstance(InMemoryStorage(), Storage)
        assert isinstance(FileStorage(tmp_path / "m.json"), Storage)


class TestLoad:
    def test_absent_payload_is_empty(self):
        store = MemoryStore(InMemoryStorage())
        assert store.load() is None
        assert store.snapshot() == ()
        assert store.last_load_error is None

    def test_blank_payload_is_empty(self):
        store = MemoryStore(InMemoryStorage("  \n"))
        assert store.load() is None
        assert len(store) == 0

    def test_load_notifies_once(self):
        store = MemoryStore(InMemoryStorage())
        received = []
        store.subscribe(received.append)
        store.load()
        assert received == [()]

    def test_invalid_json(self, caplog):
        storage = InMemoryStorage("{not json")
        store = MemoryStore(storage)
        with caplog.at_level(logging.WARNING):
            error = store.load()
        assert isinstance(error, DataCorruptionError)
        assert store.last_load_error is error
        assert store.snapshot() == ()
        assert "corrupt" in caplog.text
        # Nothing is written until the next mutation
        assert storage.payload == "{not json"

    def test_wrong_shape(self):
        store = MemoryStore(InMemoryStorage('{"identifier": "m1"}'))
        assert isinstance(store.load(), DataCorruptionError)
        assert len(store) == 0

    def test_one_bad_record_empties_everything(self):
        good = make_memory("m1").to_dict()
        bad = make_memory("m2").to_dict()
        bad["latitude"] = 200
        store = MemoryStore(InMemoryStorage(json.dumps([good, bad])))
        assert isinstance(store.load(), DataCorruptionError)
        assert store.snapshot() == ()

    def test_duplicate_identifiers(self):
        record = make_memory("m1").to_dict()
        store = MemoryStore(InMemoryStorage(json.dumps([record, record])))
        error = store.load()
        assert isinstance(error, DataCorruptionError)
        assert "duplicate" in str(error)

    def test_read_failure(self, storage: FlakyStorage):
        storage.fail_reads = True
        store = MemoryStore(storage)
        error = store.load()
        assert isinstance(error, PersistenceError)
        assert store.snapshot() == ()

    def test_load_from_original_app_payload(self):
        payload = json.dumps(
            [
                {
                    "id": "V1StGXR8_Z5jdHi6B-myT",
                    "title": "Kyoto",
                    "description": "Temples",
                    "latitude": 35.0116,
                    "longitude": 135.7681,
                    "date": "2019-04-02",
                    "imageUrl": "",
                    "tags": ["japan"],
                }
            ]
        )
        store = MemoryStore(InMemoryStorage(payload))
        assert store.load() is None
        assert store.get("V1StGXR8_Z5jdHi6B-myT").title == "Kyoto"

    @pytest.mark.parametrize(
        "payload",
        [
            "[" * 100_000 + "]" * 100_000,
            "[" + "1" * 5000 + "]",
        ],
        ids=["deep-nesting", "huge-integer"],
    )
    def test_pathological_json_is_corruption(self, payload):
        store = MemoryStore(InMemoryStorage(payload))
        assert isinstance(store.load(), DataCorruptionError)
        assert store.snapshot() == ()

    def test_huge_coordinate_is_corruption(self):
        record = make_memory("m1").to_dict()
        record["latitude"] = 10**400
        store = MemoryStore(InMemoryStorage(json.dumps([record])))
        assert isinstance(store.load(), DataCorruptionError)

    def test_lone_surrogate_is_corruption(self, storage: FlakyStorage):
        record = make_memory("m1").to_dict()
        payload = json.dumps([record]).replace('"Memory m1"', '"Memory \\ud800"')
        storage.payload = payload
        store = MemoryStore(storage)
        assert isinstance(store.load(), DataCorruptionError)

        # The store stays writable
        store.create(make_memory("m2"))
        assert [r["identifier"] for r in json.loads(storage.payload)] == ["m2"]


class TestCreate:
    def test_appends_persists_notifies(self, store, storage, notifications):
        memory = store.create(make_memory("m1"))
        assert store.snapshot() == (memory,)
        assert json.loads(storage.payload)[0]["identifier"] == "m1"
        assert notifications == [(memory,)]

    def test_insertion_order(self, store):
        for i in range(5):
            store.create(make_memory(f"m{i}"))
        assert [m.identifier for m in store.snapshot()] == ["m0", "m1", "m2", "m3", "m4"]

    @pytest.mark.parametrize(
        "overrides",
        [{"title": ""}, {"latitude": -91.0}, {"longitude": 181.0}, {"tags": ("a", "a")}],
    )
    def test_invalid_rejected_without_side_effects(self, store, storage, notifications, overrides):
        store.create(make_memory("m0"))
        writes = storage.writes
        with pytest.raises(ValidationError):
            store.create(make_memory("m1", **overrides))
        assert len(store) == 1
        assert storage.writes == writes
        assert len(notifications) == 1

    def test_duplicate_identifier(self, store):
        store.create(make_memory("m1"))
        with pytest.raises(ValidationError, match="already exists"):
            store.create(make_memory("m1", title="Other"))
        assert len(store) == 1

    def test_write_failure_rolls_back(self, store, storage, notifications):
        store.create(make_memory("m1"))
        storage.fail_writes = True
        with pytest.raises(PersistenceError):
            store.create(make_memory("m2"))
        assert [m.identifier for m in store.snapshot()] == ["m1"]
        assert len(notifications) == 1
        assert [r["identifier"] for r in json.loads(storage.payload)] == ["m1"]

    def test_usable_after_write_failure(self, store, storage):
        storage.fail_writes = True
        with pytest.raises(PersistenceError):
            store.create(make_memory("m1"))
        storage.fail_writes = False
        store.create(make_memory("m1"))
        assert len(store) == 1

    def test_large_payload_warns(self, storage, caplog):
        store = MemoryStore(storage, max_payload_bytes=100)
        big = make_memory("m1", image_reference="data:image/png;base64," + "A" * 500)
        with caplog.at_level(logging.WARNING):
            store.create(big)
        assert len(store) == 1
        assert "limit 100" in caplog.text

    def test_unexpected_write_error_rolls_back(self):
        class BrokenStorage(InMemoryStorage):
            def write_all(self, payload):
                raise ValueError("serializer bug")

        store = MemoryStore(BrokenStorage())
        received = []
        store.subscribe(received.append)
        with pytest.raises(ValueError, match="serializer bug"):
            store.create(make_memory("m1"))
        assert len(store) == 0
        assert received == []

    def test_unencodable_text_rejected(self, store, storage):
        with pytest.raises(ValidationError, match="not valid Unicode"):
            store.create(make_memory("m1", description="bad \ud800 text"))
        with pytest.raises(ValidationError):
            store.create(make_memory("m1", tags=("ok", "\udcff")))
        assert len(store) == 0
        assert storage.writes == 0


class TestUpdate:
    def test_replaces_in_place(self, store, notifications):
        for i in range(3):
            store.create(make_memory(f"m{i}"))
        updated = make_memory("m1", title="Renamed", tags=("new",))
        store.update(updated)
        assert [m.identifier for m in store.snapshot()] == ["m0", "m1", "m2"]
        assert store.get("m1").title == "Renamed"
        assert notifications[-1] == store.snapshot()

    def test_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.update(make_memory("ghost"))

    def test_invalid_update_leaves_state(self, store):
        original = store.create(make_memory("m1"))
        with pytest.raises(ValidationError):
            store.update(make_memory("m1", title=""))
        assert store.get("m1") == original

    def test_write_failure_rolls_back(self, store, storage):
        original = store.create(make_memory("m1"))
        storage.fail_writes = True
        with pytest.raises(PersistenceError):
            store.update(make_memory("m1", title="Renamed"))
        assert store.get("m1") == original


class TestDelete:
    def test_removes(self, store, storage):
        store.create(make_memory("m1"))
        store.create(make_memory("m2"))
        store.delete("m1")
        assert [m.identifier for m in store.snapshot()] == ["m2"]
        assert [r["identifier"] for r in json.loads(storage.payload)] == ["m2"]

    def test_idempotent(self, store, storage, notifications):
        store.create(make_memory("m1"))
        store.delete("m1")
        after_first = (store.snapshot(), storage.payload, storage.writes, len(notifications))
        store.delete("m1")
        assert (store.snapshot(), storage.payload, storage.writes, len(notifications)) == after_first

    def test_write_failure_rolls_back(self, store, storage):
        store.create(make_memory("m1"))
        storage.fail_writes = True
        with pytest.raises(PersistenceError):
            store.delete("m1")
        assert "m1" in store


class TestSnapshotAndLookup:
    def test_snapshot_is_immutable(self, store):
        store.create(make_memory("m1"))
        snapshot = store.snapshot()
        assert isinstance(snapshot, tuple)
        store.create(make_memory("m2"))
        assert len(snapshot) == 1

    def test_get(self, store):
        memory = store.create(make_memory("m1"))
        assert store.get("m1") is memory
        with pytest.raises(NotFoundError):
            store.get("nope")


class TestNotifications:
    def test_reentrant_mutation_rejected(self, store):
        errors = []

        def listener(memories):
            try:
                store.create(make_memory(f"echo-{len(memories)}"))
            except ReentrantMutationError as e:
                errors.append(e)

        store.subscribe(listener)
        store.create(make_memory("m1"))
        assert len(errors) == 1
        assert [m.identifier for m in store.snapshot()] == ["m1"]

    def test_failing_listener_does_not_starve_others(self, store, caplog):
        received = []

        def broken(memories):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(received.append)
        with caplog.at_level(logging.ERROR):
            store.create(make_memory("m1"))
        assert len(received) == 1
        assert "failed" in caplog.text

    def test_unsubscribe(self, store):
        received = []
        store.subscribe(received.append)
        store.unsubscribe(received.append)
        store.create(make_memory("m1"))
        assert received == []


class TestRoundTrip:
    def test_restart_restores_collection(self, store, storage):
        store.create(make_memory("m1", tags=("z", "a", "m")))
        store.create(make_memory("m2", description="Second", image_reference="https://x/y.jpg"))
        store.update(make_memory("m1", title="First", tags=("z", "a", "m")))

        restarted = MemoryStore(InMemoryStorage(storage.payload))
        assert restarted.load() is None
        assert restarted.snapshot() == store.snapshot()
        assert [m.tags for m in restarted.snapshot()] == [m.tags for m in store.snapshot()]

    def test_file_storage_restart(self, tmp_path: Path):
        path = tmp_path / "data" / "memories.json"
        first = MemoryStore(FileStorage(path))
        first.load()
        first.create(make_memory("m1"))

        second = MemoryStore(FileStorage(path))
        assert second.load() is None
        assert second.snapshot() == first.snapshot()


class TestFileStorage:
    def test_missing_file_reads_none(self, tmp_path: Path):
        assert FileStorage(tmp_path / "nope.json").read_all() is None

    def test_write_creates_parents(self, tmp_path: Path):
        storage = FileStorage(tmp_path / "a" / "b" / "memories.json")
        storage.write_all("[]")
        assert storage.read_all() == "[]"
        assert not (tmp_path / "a" / "b" / "memories.json.tmp").exists()

    def test_write_failure_raises_storage_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        storage = FileStorage(blocker / "memories.json")
        with pytest.raises(StorageError):
            storage.write_all("[]")

    def test_corrupt_payload_quarantined_on_load(self, tmp_path: Path):
        path = tmp_path / "memories.json"
        path.write_text("{broken", encoding="utf-8")
        store = MemoryStore(FileStorage(path))
        assert isinstance(store.load(), DataCorruptionError)
        copies = list(tmp_path.glob("memories.corrupt-*.json"))
        assert len(copies) == 1
        assert copies[0].read_text(encoding="utf-8") == "{broken"

    def test_quarantine_keeps_ten(self, tmp_path: Path):
        storage = FileStorage(tmp_path / "memories.json")
        for i in range(15):
            (tmp_path / f"memories.corrupt-2000{i:04d}T000000000000.json").write_text("x")
        kept = storage.quarantine("latest")
        copies = list(tmp_path.glob("memories.corrupt-*.json"))
        assert len(copies) == 10
        assert kept in copies

    def test_invalid_utf8_quarantined_before_next_write(self, tmp_path: Path):
        path = tmp_path / "memories.json"
        path.write_bytes(b"\xff\xfe")
        store = MemoryStore(FileStorage(path))
        assert isinstance(store.load(), DataCorruptionError)

        copies = list(tmp_path.glob("memories.corrupt-*.json"))
        assert len(copies) == 1
        assert copies[0].read_bytes() == b"\xff\xfe"

        store.create(make_memory("m1"))
        assert json.loads(path.read_text(encoding="utf-8"))[0]["identifier"] == "m1"
        assert copies[0].read_bytes() == b"\xff\xfe"

    def test_invalid_utf8_inside_record_quarantined(self, tmp_path: Path):
        path = tmp_path / "memories.json"
        record = json.dumps([make_memory("m1").to_dict()]).encode("utf-8")
        path.write_bytes(record.replace(b"Memory m1", b"Memory \xc3\x28"))
        store = MemoryStore(FileStorage(path))
        assert isinstance(store.load(), DataCorruptionError)
        copies = list(tmp_path.glob("memories.corrupt-*.json"))
        assert copies[0].read_bytes() == path.read_bytes()
