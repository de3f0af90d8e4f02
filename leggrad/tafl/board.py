from __future__ import annotations
from itertools import count
from typing import Dict, Iterator, Optional, Tuple, TYPE_CHECKING
import copy

from leggrad.enums import PieceType, Side
from leggrad.tafl.coordinate import Coordinate
from leggrad.tafl.move import Move
from leggrad.tafl.piece import Piece, create_piece

if TYPE_CHECKING:
    from leggrad.tafl.variant import Layout, Variant


class Board:
    def __init__(self, rows: int, cols: int, portals: Optional[Tuple[Coordinate, Coordinate]] = None):
        self.rows = rows
        self.cols = cols
        self.portals = portals
        self.squares: Dict[Coordinate, Piece] = {}

    @classmethod
    def from_variant(cls, variant: Variant) -> "Board":
        """Empty board shaped for the variant, then its opening layout."""
        board = cls(variant.rows, variant.cols, variant.portals)
        board.setup(variant.layout)
        return board

    def setup(self, layout: Layout) -> None:
        """
        Place the opening layout. Piece ids (p0, p1, ...) come from a counter
        owned by this call, so two games never share id space.
        """
        self.squares.clear()
        ids = count()
        for owner, piece_type, coords in layout:
            for row, col in coords:
                coord = Coordinate(row, col)
                if not self.is_in_bounds(coord):
                    raise ValueError(f"Layout square {coord!r} is outside a {self.rows}x{self.cols} board")
                self.squares[coord] = create_piece(f"p{next(ids)}", owner, piece_type)

    # ================================================================
    # Lookup
    # ================================================================
    def piece_at_coord(self, coord: Coordinate) -> Optional[Piece]:
        return self.squares.get(coord)

    def is_in_bounds(self, coord: Coordinate) -> bool:
        return 0 <= coord.row < self.rows and 0 <= coord.col < self.cols

    def is_empty(self, coord: Coordinate) -> bool:
        """Return True if the given coordinate has no piece."""
        if not self.is_in_bounds(coord):
            return False  # Out of bounds squares are not empty (they don't exist)
        return coord not in self.squares

    def is_friendly(self, coord: Coordinate, side: Side) -> bool:
        """Return True if the coordinate holds a piece of this side."""
        piece = self.squares.get(coord)
        return piece is not None and piece.owner == side

    def other_portal(self, coord: Coordinate) -> Optional[Coordinate]:
        """The paired portal square if `coord` is a portal, else None."""
        if not self.portals:
            return None
        first, second = self.portals
        if coord == first:
            return second
        if coord == second:
            return first
        return None

    def pieces(self, side: Optional[Side] = None) -> Iterator[Tuple[Coordinate, Piece]]:
        """Iterate (coordinate, piece) pairs, optionally for one side only."""
        for coord, piece in list(self.squares.items()):
            if side is None or piece.owner == side:
                yield coord, piece

    def find_jarl(self, side: Side) -> Optional[Coordinate]:
        for coord, piece in self.squares.items():
            if piece.type == PieceType.JARL and piece.owner == side:
                return coord
        return None

    # ================================================================
    # Attacks
    # ================================================================
    def is_square_attacked(self, coord: Coordinate, by_side: Side) -> bool:
        """
        Return True if any piece of `by_side` has a raw move landing on `coord`.
        Raw moves only: the Jarl throne filter is never consulted here.
        """
        for pos, piece in self.pieces(by_side):
            for move in piece.get_raw_moves(self, pos):
                if move.to_sq == coord:
                    return True
        return False

    # ================================================================
    # Mutation
    # ================================================================
    def move_piece(self, move: Move) -> Optional[Piece]:
        """
        Relocate the piece at move.from_sq and return whatever stood on the
        destination. Jumped-over pieces are left where they are.
        """
        src, dest = move.from_sq, move.to_sq
        moving_piece = self.squares.get(src)
        if not moving_piece:
            raise ValueError(f"No piece at {src!r}")
        if not self.is_in_bounds(dest):
            raise ValueError(f"Destination {dest!r} is off the board")

        captured_piece = self.squares.pop(dest, None)
        self.squares.pop(src)
        self.squares[dest] = moving_piece
        return captured_piece

    def place_piece(self, piece: Piece, coord: Coordinate) -> None:
        """Place a piece on the board."""
        if not self.is_in_bounds(coord):
            raise ValueError(f"Cannot place piece outside the board: {coord!r}")
        self.squares[coord] = piece

    def remove_piece(self, coord: Coordinate) -> Optional[Piece]:
        """Remove a piece from a square if present."""
        return self.squares.pop(coord, None)

    def clone(self) -> "Board":
        """Return a copy of the board."""
        new_board = Board(self.rows, self.cols, self.portals)
        new_board.squares = {coord: copy.copy(piece) for coord, piece in self.squares.items()}
        return new_board

    # ================================================================
    # Serialization
    # ================================================================
    def to_dict(self) -> dict:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "portals": [c.to_dict() for c in self.portals] if self.portals else [],
            "pieces": [piece.to_dict(at=coord) for coord, piece in self.squares.items()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Board":
        portals = data.get("portals") or None
        board = cls(
            int(data["rows"]),
            int(data["cols"]),
            tuple(Coordinate.from_dict(c) for c in portals) if portals else None,
        )
        for piece_data in data.get("pieces", []):
            board.place_piece(Piece.from_dict(piece_data), Coordinate.from_dict(piece_data["position"]))
        return board

    def __str__(self):
        """Plain-text board, North at the top."""
        symbols = {
            PieceType.JARL: "J",
            PieceType.HIRDMAN: "H",
            PieceType.RAVEN: "R",
            PieceType.ROOK_RAVEN: "K",
        }
        lines = []
        for row in range(self.rows):
            cells = []
            for col in range(self.cols):
                piece = self.squares.get(Coordinate(row, col))
                if piece is None:
                    cells.append(".")
                else:
                    symbol = symbols[piece.type]
                    cells.append(symbol.lower() if piece.owner == Side.NORTH else symbol)
            lines.append(f"{self.rows - row:>2} " + " ".join(cells))
        lines.append("   " + " ".join(chr(ord('A') + c) for c in range(self.cols)))
        return "\n".join(lines)
