"""
Test the versioned room store
"""

import pytest

from leggrad.enums import RoomStatus
from leggrad.services.room_store import (
    RoomExistsError,
    RoomNotFoundError,
    RoomStore,
    StaleSnapshotError,
)


def snapshot(version, **extra):
    data = {"version": version}
    data.update(extra)
    return data


def test_create_and_get():
    store = RoomStore()
    record = store.create("ROOM1", "alice", "Alice", snapshot(0))
    assert store.get("ROOM1") is record
    assert record.status == RoomStatus.WAITING
    assert record.version == 0
    assert record.to_dict()["status"] == "waiting"


def test_missing_room():
    store = RoomStore()
    assert store.find("NOPE") is None
    with pytest.raises(RoomNotFoundError):
        store.get("NOPE")
    with pytest.raises(KeyError):
        store.write_snapshot("NOPE", snapshot(1), 0)


def test_room_name_in_use():
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))
    with pytest.raises(RoomExistsError):
        store.create("ROOM1", "carol", "Carol", snapshot(0))

    # A finished room's name can be reused
    store.set_status("ROOM1", RoomStatus.FINISHED)
    record = store.create("ROOM1", "carol", "Carol", snapshot(0))
    assert record.host_id == "carol"


def test_write_with_current_version():
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))
    record = store.write_snapshot("ROOM1", snapshot(1, turn="North"), expected_version=0)
    assert record.version == 1
    assert record.snapshot["turn"] == "North"


def test_first_write_wins():
    """Two writers computed from the same version: the second is rejected"""
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))

    store.write_snapshot("ROOM1", snapshot(1, by="first"), expected_version=0)
    with pytest.raises(StaleSnapshotError) as excinfo:
        store.write_snapshot("ROOM1", snapshot(1, by="second"), expected_version=0)

    assert excinfo.value.current_version == 1
    assert isinstance(excinfo.value, RuntimeError)
    assert store.get("ROOM1").snapshot["by"] == "first"


def test_subscribers_hear_writes_and_status_changes():
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))
    seen = []
    store.subscribe("ROOM1", lambda record: seen.append((record.version, record.status)))

    store.write_snapshot("ROOM1", snapshot(1), 0)
    store.set_status("ROOM1", RoomStatus.ACTIVE)
    store.set_status("ROOM1", RoomStatus.ACTIVE)  # no change, no notification

    assert seen == [(1, RoomStatus.WAITING), (1, RoomStatus.ACTIVE)]


def test_status_change_rides_along_with_the_write():
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))
    seen = []
    store.subscribe("ROOM1", lambda record: seen.append((record.version, record.status)))

    store.write_snapshot("ROOM1", snapshot(1), 0, RoomStatus.ACTIVE)
    store.write_snapshot("ROOM1", snapshot(2), 1, RoomStatus.ACTIVE)

    assert seen == [(1, RoomStatus.ACTIVE), (2, RoomStatus.ACTIVE)]
    assert store.get("ROOM1").status == RoomStatus.ACTIVE


def test_unsubscribe_and_failing_subscriber():
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))
    seen = []

    def broken(record):
        raise RuntimeError("boom")

    def listener(record):
        seen.append(record.version)

    store.subscribe("ROOM1", broken)
    store.subscribe("ROOM1", listener)
    store.write_snapshot("ROOM1", snapshot(1), 0)
    assert seen == [1]

    store.unsubscribe("ROOM1", listener)
    store.write_snapshot("ROOM1", snapshot(2), 1)
    assert seen == [1]


def test_recreated_room_drops_old_subscribers():
    store = RoomStore()
    store.create("ROOM1", "alice", "Alice", snapshot(0))
    seen = []
    store.subscribe("ROOM1", lambda record: seen.append(record.host_id))
    store.set_status("ROOM1", RoomStatus.ABORTED)

    store.create("ROOM1", "carol", "Carol", snapshot(0))
    store.write_snapshot("ROOM1", snapshot(1), 0)
    assert seen == ["alice"]


def test_delete_and_status_queries():
    store = RoomStore()
    store.create("A", "alice", "Alice", snapshot(0))
    store.create("B", "bob", "Bob", snapshot(0))
    store.set_status("B", RoomStatus.ACTIVE)

    assert [r.room_id for r in store.rooms_with_status(RoomStatus.ACTIVE)] == ["B"]
    assert store.delete("A")
    assert not store.delete("A")
    assert store.find("A") is None
