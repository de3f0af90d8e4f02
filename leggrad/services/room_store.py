# leggrad/services/room_store.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime

from leggrad.enums import RoomStatus

logger = logging.getLogger(__name__)


class RoomNotFoundError(KeyError):
    """No room is stored under the requested id."""


class RoomExistsError(ValueError):
    """A room with this id is still waiting or being played."""


class StaleSnapshotError(RuntimeError):
    """A write was based on a snapshot version that is no longer current."""

    def __init__(self, room_id: str, expected_version: int, current_version: int) -> None:
        super().__init__(
            f"Room {room_id}: write based on version {expected_version}, stored version is {current_version}"
        )
        self.room_id = room_id
        self.expected_version = expected_version
        self.current_version = current_version


# ---------- Room Record ----------

class RoomRecord:
    """One game room: who is in it, its lifecycle status and the latest committed snapshot."""

    def __init__(self, room_id: str, host_id: str, host_name: str, snapshot: Dict[str, Any]) -> None:
        self.room_id = room_id
        self.host_id = host_id
        self.host_name = host_name
        self.guest_id: Optional[str] = None
        self.guest_name: Optional[str] = None
        self.status: RoomStatus = RoomStatus.WAITING
        self.snapshot: Dict[str, Any] = snapshot
        self.version: int = int(snapshot.get("version", 0))
        self.created_at: datetime = datetime.now()
        self.updated_at: datetime = datetime.now()

    def to_dict(self) -> dict:
        return {
            "room_id": self.room_id,
            "host_id": self.host_id,
            "host_name": self.host_name,
            "guest_id": self.guest_id,
            "guest_name": self.guest_name,
            "status": self.status.value,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


Subscriber = Callable[[RoomRecord], None]


# ---------- Store ----------

class RoomStore:
    """
    In-memory room storage with change notification.

    Writes are versioned: a snapshot is accepted only if it was computed from
    the version currently stored, so two clients racing from the same base
    state cannot silently overwrite each other. The first write wins and the
    second gets a StaleSnapshotError.
    """

    def __init__(self) -> None:
        self.rooms: Dict[str, RoomRecord] = {}
        self._subscribers: Dict[str, List[Subscriber]] = {}

    def create(self, room_id: str, host_id: str, host_name: str, snapshot: Dict[str, Any]) -> RoomRecord:
        existing = self.rooms.get(room_id)
        if existing and existing.status in (RoomStatus.WAITING, RoomStatus.ACTIVE):
            raise RoomExistsError(f"Room {room_id} is already in use")
        record = RoomRecord(room_id, host_id, host_name, snapshot)
        self.rooms[room_id] = record
        # Listeners of a finished room with the same name belong to the old game
        self._subscribers.pop(room_id, None)
        logger.info(f"Room {room_id} created by {host_id}")
        return record

    def get(self, room_id: str) -> RoomRecord:
        try:
            return self.rooms[room_id]
        except KeyError:
            raise RoomNotFoundError(room_id)

    def find(self, room_id: str) -> Optional[RoomRecord]:
        return self.rooms.get(room_id)

    def write_snapshot(self, room_id: str, snapshot: Dict[str, Any], expected_version: int,
                       status: Optional[RoomStatus] = None) -> RoomRecord:
        """
        Store a new snapshot computed from `expected_version` and notify subscribers.
        A status change that comes with the snapshot goes out in the same notification.
        """
        record = self.get(room_id)
        if record.version != expected_version:
            raise StaleSnapshotError(room_id, expected_version, record.version)
        record.snapshot = snapshot
        record.version = int(snapshot.get("version", record.version))
        if status is not None and record.status != status:
            record.status = status
            logger.info(f"Room {room_id} is now {status.value}")
        record.updated_at = datetime.now()
        self._notify(record)
        return record

    def set_guest(self, room_id: str, guest_id: str, guest_name: str) -> RoomRecord:
        record = self.get(room_id)
        record.guest_id = guest_id
        record.guest_name = guest_name
        record.updated_at = datetime.now()
        return record

    def set_status(self, room_id: str, status: RoomStatus) -> RoomRecord:
        record = self.get(room_id)
        if record.status != status:
            record.status = status
            record.updated_at = datetime.now()
            logger.info(f"Room {room_id} is now {status.value}")
            self._notify(record)
        return record

    def delete(self, room_id: str) -> bool:
        self._subscribers.pop(room_id, None)
        return self.rooms.pop(room_id, None) is not None

    def rooms_with_status(self, *statuses: RoomStatus) -> List[RoomRecord]:
        return [r for r in self.rooms.values() if r.status in statuses]

    # ---------- Subscriptions ----------

    def subscribe(self, room_id: str, callback: Subscriber) -> None:
        self._subscribers.setdefault(room_id, []).append(callback)

    def unsubscribe(self, room_id: str, callback: Subscriber) -> None:
        callbacks = self._subscribers.get(room_id, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def _notify(self, record: RoomRecord) -> None:
        for callback in list(self._subscribers.get(record.room_id, [])):
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Subscriber for room {record.room_id} failed: {e}", exc_info=True)
