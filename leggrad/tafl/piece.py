from __future__ import annotations
from typing import Dict, List, Optional, Tuple, Type, TYPE_CHECKING
from abc import ABC, abstractmethod

from leggrad.enums import MoveKind, PieceType, Side
from leggrad.tafl.coordinate import Coordinate
from leggrad.tafl.move import Move

if TYPE_CHECKING:
    from leggrad.tafl.board import Board

ORTHOGONAL: List[Tuple[int, int]] = [(-1, 0), (1, 0), (0, -1), (0, 1)]
DIAGONAL: List[Tuple[int, int]] = [(-1, -1), (-1, 1), (1, -1), (1, 1)]


class Piece(ABC):
    def __init__(self, id: str, owner: Side, piece_type: PieceType):
        self.id = id
        self.owner = owner
        self.type = piece_type

    @abstractmethod
    def _kind_moves(self, board: Board, at: Coordinate) -> List[Move]:
        """Moves given by this piece's own movement pattern."""
        pass

    def get_raw_moves(self, board: Board, at: Coordinate) -> List[Move]:
        """
        Return every pseudo-legal move for this piece standing at `at`.
        Whose turn it is and Jarl throne safety are not considered here.
        """
        return self._kind_moves(board, at) + self._portal_moves(board, at)

    def _can_land(self, board: Board, coord: Coordinate) -> bool:
        """In bounds and not holding a friendly piece."""
        return board.is_in_bounds(coord) and not board.is_friendly(coord, self.owner)

    def _step_moves(self, board: Board, at: Coordinate, steps: List[Tuple[int, int]]) -> List[Move]:
        moves: List[Move] = []
        for dr, dc in steps:
            dest = at.offset(dr, dc)
            if self._can_land(board, dest):
                moves.append(Move(at, dest))
        return moves

    def _slide_moves(self, board: Board, at: Coordinate, directions: List[Tuple[int, int]]) -> List[Move]:
        moves: List[Move] = []
        for dr, dc in directions:
            dest = at.offset(dr, dc)
            while board.is_in_bounds(dest):
                occupant = board.piece_at_coord(dest)
                if occupant is not None:
                    # First piece on the ray stops the slide; enemies are captured
                    if occupant.owner != self.owner:
                        moves.append(Move(at, dest))
                    break
                moves.append(Move(at, dest))
                dest = dest.offset(dr, dc)
        return moves

    def _portal_moves(self, board: Board, at: Coordinate) -> List[Move]:
        """A piece standing on a portal may teleport to the paired one."""
        target = board.other_portal(at)
        if target is None or board.is_friendly(target, self.owner):
            return []
        return [Move(at, target, MoveKind.TELEPORT)]

    def __str__(self):
        return f"{self.owner.value} {self.type.value} ({self.id})"

    def __repr__(self):
        return f"<{type(self).__name__} {self.id} {self.owner.value}>"

    def to_dict(self, at: Optional[Coordinate] = None) -> dict:
        payload = {
            "id": self.id,
            "type": self.type.value,
            "owner": self.owner.value,
        }
        if at is not None:
            payload["position"] = at.to_dict()
        return payload

    @staticmethod
    def from_dict(data: dict) -> "Piece":
        return create_piece(data["id"], Side(data["owner"]), PieceType(data["type"]))


class Jarl(Piece):
    def __init__(self, id: str, owner: Side):
        super().__init__(id, owner, PieceType.JARL)

    def _kind_moves(self, board: Board, at: Coordinate) -> List[Move]:
        """One step in any of the 8 directions."""
        return self._step_moves(board, at, ORTHOGONAL + DIAGONAL)


class Hirdman(Piece):
    def __init__(self, id: str, owner: Side):
        super().__init__(id, owner, PieceType.HIRDMAN)

    def _kind_moves(self, board: Board, at: Coordinate) -> List[Move]:
        return self._step_moves(board, at, ORTHOGONAL)


class Raven(Piece):
    def __init__(self, id: str, owner: Side):
        super().__init__(id, owner, PieceType.RAVEN)

    def _kind_moves(self, board: Board, at: Coordinate) -> List[Move]:
        moves = self._slide_moves(board, at, DIAGONAL)
        moves.extend(self._jump_moves(board, at))
        return moves

    def _jump_moves(self, board: Board, at: Coordinate) -> List[Move]:
        """
        Hop over an adjacent diagonal piece of either side onto the empty
        square directly behind it. The hopped piece is never captured.
        """
        moves: List[Move] = []
        for dr, dc in DIAGONAL:
            over = at.offset(dr, dc)
            land = at.offset(2 * dr, 2 * dc)
            if not board.is_empty(land):
                continue
            if board.piece_at_coord(over) is not None:
                moves.append(Move(at, land, MoveKind.JUMP, jumped_sq=over))
        return moves

    def promoted(self) -> "RookRaven":
        """The promoted form keeps identity and owner."""
        return RookRaven(self.id, self.owner)


class RookRaven(Piece):
    def __init__(self, id: str, owner: Side):
        super().__init__(id, owner, PieceType.ROOK_RAVEN)

    def _kind_moves(self, board: Board, at: Coordinate) -> List[Move]:
        return self._slide_moves(board, at, ORTHOGONAL)


PIECE_CLASSES: Dict[PieceType, Type[Piece]] = {
    PieceType.JARL: Jarl,
    PieceType.HIRDMAN: Hirdman,
    PieceType.RAVEN: Raven,
    PieceType.ROOK_RAVEN: RookRaven,
}


def create_piece(id: str, owner: Side, piece_type: PieceType) -> Piece:
    return PIECE_CLASSES[piece_type](id, owner)
