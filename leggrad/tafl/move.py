from __future__ import annotations
from typing import Optional

from leggrad.enums import MoveKind
from leggrad.tafl.coordinate import Coordinate


class Move:
    def __init__(self, from_sq: Coordinate, to_sq: Coordinate, kind: MoveKind = MoveKind.NORMAL,
                 jumped_sq: Optional[Coordinate] = None):
        self.from_sq = from_sq
        self.to_sq = to_sq
        self.kind = kind
        # Only jumps carry the square that was hopped over
        self.jumped_sq = jumped_sq if kind == MoveKind.JUMP else None

    @property
    def is_jump(self) -> bool:
        return self.kind == MoveKind.JUMP

    @property
    def is_teleport(self) -> bool:
        return self.kind == MoveKind.TELEPORT

    def __eq__(self, other):
        if not isinstance(other, Move):
            return False
        return (self.from_sq == other.from_sq and
                self.to_sq == other.to_sq and
                self.kind == other.kind)

    def __hash__(self):
        """Allow Move to be used in sets"""
        return hash((self.from_sq, self.to_sq, self.kind))

    def __repr__(self):
        return f"Move({self.from_sq!r} -> {self.to_sq!r}, {self.kind.value})"

    def to_dict(self) -> dict:
        """Convert the move into a dictionary for snapshots and the wire"""
        return {
            "from": self.from_sq.to_dict(),
            "to": self.to_sq.to_dict(),
            "kind": self.kind.value,
            "jumped": self.jumped_sq.to_dict() if self.jumped_sq else None,
        }

    @staticmethod
    def from_dict(data: dict) -> "Move":
        jumped = data.get("jumped")
        return Move(
            Coordinate.from_dict(data["from"]),
            Coordinate.from_dict(data["to"]),
            MoveKind(data.get("kind", MoveKind.NORMAL.value)),
            Coordinate.from_dict(jumped) if jumped else None,
        )
