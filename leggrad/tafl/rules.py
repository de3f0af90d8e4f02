"""
Rules engine: legality filtering, move execution and win evaluation.

Every function here is pure. Boards passed in are never mutated; functions
that change the position hand back a new Board.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from leggrad.enums import Capability, PieceType, Side, WinReason
from leggrad.tafl.board import Board
from leggrad.tafl.coordinate import Coordinate
from leggrad.tafl.move import Move
from leggrad.tafl.piece import Piece, Raven
from leggrad.tafl.variant import Variant


@dataclass
class MoveResult:
    """Outcome of executing one move."""
    board: Board
    piece: Piece  # the piece that moved, as it stands on the new board
    at: Coordinate
    captured: Optional[Piece] = None
    promotion_due: bool = False


def legal_moves(board: Board, at: Coordinate, variant: Variant) -> List[Move]:
    """
    Legal moves for the piece at `at`.

    Only Jarl moves are filtered: a step onto the side's goal throne is
    dropped when the variant requires a secure throne and the opponent
    attacks it on the board as it stands. Any other square is allowed even
    if attacked.
    """
    piece = board.piece_at_coord(at)
    if piece is None:
        return []

    raw_moves = piece.get_raw_moves(board, at)
    if piece.type != PieceType.JARL:
        return raw_moves

    opponent = piece.owner.opponent
    legal: List[Move] = []
    for move in raw_moves:
        if (variant.secure_throne
                and variant.is_goal_throne(piece.owner, move.to_sq)
                and board.is_square_attacked(move.to_sq, opponent)):
            continue
        legal.append(move)
    return legal


def is_promotion_square(piece: Piece, at: Coordinate, variant: Variant) -> bool:
    return (variant.has(Capability.PROMOTION)
            and piece.type == PieceType.RAVEN
            and at.row in variant.promotion_rows(piece.owner))


def execute_move(board: Board, move: Move, variant: Variant) -> MoveResult:
    """
    Apply one move to a copy of the board. The move must come from
    legal_moves(); shapes are not re-validated here.
    """
    new_board = board.clone()
    captured = new_board.move_piece(move)
    piece = new_board.piece_at_coord(move.to_sq)
    return MoveResult(
        board=new_board,
        piece=piece,
        at=move.to_sq,
        captured=captured,
        promotion_due=is_promotion_square(piece, move.to_sq, variant),
    )


def promote_piece(board: Board, at: Coordinate) -> Board:
    """Replace the Raven at `at` with a Rook Raven of the same id and owner."""
    piece = board.piece_at_coord(at)
    if not isinstance(piece, Raven):
        raise ValueError(f"No Raven to promote at {at!r}")
    new_board = board.clone()
    new_board.place_piece(piece.promoted(), at)
    return new_board


def place_reinforcement(board: Board, piece: Piece, at: Coordinate) -> Board:
    """Return a new board with a previously captured piece back in play."""
    if not board.is_empty(at):
        raise ValueError(f"Reinforcements must be placed on an empty square, not {at!r}")
    new_board = board.clone()
    new_board.place_piece(piece, at)
    return new_board


def evaluate_win(board: Board, mover: Side, piece: Optional[Piece], at: Optional[Coordinate],
                 variant: Variant) -> Optional[WinReason]:
    """
    Check the two victory conditions after a turn-ending action.

    1. The piece that just moved (or was placed) is a Jarl on the mover's
       goal throne.
    2. The opponent has no Jarl left on the board.
    """
    if (piece is not None and at is not None
            and piece.type == PieceType.JARL
            and variant.is_goal_throne(mover, at)):
        return WinReason.THRONE
    if board.find_jarl(mover.opponent) is None:
        return WinReason.DECAPITATION
    return None
