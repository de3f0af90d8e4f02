"""
Move generation per piece kind.
Boards are built by hand so each test only has the pieces it talks about.
"""

from leggrad.enums import MoveKind, PieceType, Side
from leggrad.tafl.board import Board
from leggrad.tafl.coordinate import Coordinate as C
from leggrad.tafl.move import Move
from leggrad.tafl.piece import RookRaven, create_piece
from leggrad.tafl.variant import CLASSIC, COMPACT, PORTAL


def place(board, side, piece_type, row, col, piece_id=None):
    piece = create_piece(piece_id or f"t{row}{col}", side, piece_type)
    board.place_piece(piece, C(row, col))
    return piece


def targets(moves):
    return {m.to_sq for m in moves}


# ---------- Jarl ----------

def test_jarl_steps_in_eight_directions():
    board = Board(9, 7)
    jarl = place(board, Side.SOUTH, PieceType.JARL, 2, 2)
    moves = jarl.get_raw_moves(board, C(2, 2))
    assert len(moves) == 8
    assert all(m.kind == MoveKind.NORMAL for m in moves)


def test_jarl_in_corner_has_three_moves():
    board = Board(9, 7)
    jarl = place(board, Side.NORTH, PieceType.JARL, 0, 0)
    assert targets(jarl.get_raw_moves(board, C(0, 0))) == {C(0, 1), C(1, 0), C(1, 1)}


# ---------- Hirdman ----------

def test_hirdman_steps_orthogonally_and_captures():
    board = Board(9, 7)
    hirdman = place(board, Side.SOUTH, PieceType.HIRDMAN, 4, 3)
    place(board, Side.SOUTH, PieceType.HIRDMAN, 3, 3)  # friend blocks north
    place(board, Side.NORTH, PieceType.HIRDMAN, 4, 4)  # enemy can be taken

    assert targets(hirdman.get_raw_moves(board, C(4, 3))) == {C(5, 3), C(4, 2), C(4, 4)}


# ---------- Raven ----------

def test_raven_slides_diagonally_on_empty_board():
    board = Board(9, 7)
    raven = place(board, Side.SOUTH, PieceType.RAVEN, 4, 3)
    moves = raven.get_raw_moves(board, C(4, 3))
    assert len(moves) == 12
    assert C(1, 0) in targets(moves)
    assert C(7, 6) in targets(moves)
    assert not any(m.is_jump for m in moves)


def test_raven_slide_stops_on_enemy_and_before_friend():
    board = Board(9, 7)
    raven = place(board, Side.SOUTH, PieceType.RAVEN, 4, 3)
    place(board, Side.NORTH, PieceType.HIRDMAN, 2, 1)
    place(board, Side.SOUTH, PieceType.HIRDMAN, 2, 5)

    slides = [m for m in raven.get_raw_moves(board, C(4, 3)) if m.kind == MoveKind.NORMAL]
    dests = targets(slides)
    assert C(3, 2) in dests and C(2, 1) in dests
    assert C(1, 0) not in dests
    assert C(3, 4) in dests
    assert C(2, 5) not in dests


def test_raven_jumps_over_friend_and_enemy():
    board = Board(9, 7)
    raven = place(board, Side.SOUTH, PieceType.RAVEN, 4, 3)
    place(board, Side.SOUTH, PieceType.HIRDMAN, 3, 4)
    place(board, Side.NORTH, PieceType.HIRDMAN, 3, 2)

    jumps = [m for m in raven.get_raw_moves(board, C(4, 3)) if m.is_jump]
    assert Move(C(4, 3), C(2, 5), MoveKind.JUMP) in jumps
    assert Move(C(4, 3), C(2, 1), MoveKind.JUMP) in jumps
    by_target = {m.to_sq: m for m in jumps}
    assert by_target[C(2, 5)].jumped_sq == C(3, 4)
    assert by_target[C(2, 1)].jumped_sq == C(3, 2)


def test_raven_cannot_jump_onto_occupied_or_off_board_square():
    board = Board(9, 7)
    raven = place(board, Side.SOUTH, PieceType.RAVEN, 1, 1)
    place(board, Side.NORTH, PieceType.HIRDMAN, 0, 0)  # landing would be off the board
    place(board, Side.NORTH, PieceType.HIRDMAN, 2, 2)
    place(board, Side.NORTH, PieceType.HIRDMAN, 3, 3)  # landing occupied

    assert not any(m.is_jump for m in raven.get_raw_moves(board, C(1, 1)))


def test_promoted_raven_keeps_identity():
    raven = create_piece("p11", Side.SOUTH, PieceType.RAVEN)
    rook = raven.promoted()
    assert isinstance(rook, RookRaven)
    assert rook.id == "p11"
    assert rook.owner == Side.SOUTH


# ---------- Rook Raven ----------

def test_rook_raven_slides_orthogonally_without_jumping():
    board = Board(9, 7)
    rook = place(board, Side.NORTH, PieceType.ROOK_RAVEN, 4, 3)
    assert len(rook.get_raw_moves(board, C(4, 3))) == 14

    place(board, Side.NORTH, PieceType.HIRDMAN, 3, 3)
    place(board, Side.SOUTH, PieceType.HIRDMAN, 6, 3)
    moves = rook.get_raw_moves(board, C(4, 3))
    dests = targets(moves)
    assert C(3, 3) not in dests and C(2, 3) not in dests
    assert C(5, 3) in dests and C(6, 3) in dests and C(7, 3) not in dests
    assert all(m.kind == MoveKind.NORMAL for m in moves)


# ---------- Portals ----------

def test_piece_on_portal_can_teleport():
    board = Board(7, 7, portals=(C(3, 0), C(3, 6)))
    hirdman = place(board, Side.SOUTH, PieceType.HIRDMAN, 3, 0)

    teleports = [m for m in hirdman.get_raw_moves(board, C(3, 0)) if m.is_teleport]
    assert teleports == [Move(C(3, 0), C(3, 6), MoveKind.TELEPORT)]


def test_teleport_blocked_by_friend_but_not_enemy():
    board = Board(7, 7, portals=(C(3, 0), C(3, 6)))
    hirdman = place(board, Side.SOUTH, PieceType.HIRDMAN, 3, 0)

    place(board, Side.SOUTH, PieceType.HIRDMAN, 3, 6, "friend")
    assert not any(m.is_teleport for m in hirdman.get_raw_moves(board, C(3, 0)))

    place(board, Side.NORTH, PieceType.HIRDMAN, 3, 6, "enemy")
    assert any(m.is_teleport for m in hirdman.get_raw_moves(board, C(3, 0)))


def test_no_teleport_off_portal_squares():
    board = Board(7, 7, portals=(C(3, 0), C(3, 6)))
    jarl = place(board, Side.NORTH, PieceType.JARL, 2, 0)
    assert not any(m.is_teleport for m in jarl.get_raw_moves(board, C(2, 0)))


# ---------- Properties over the opening layouts ----------

def test_raw_moves_stay_on_board_and_off_friends():
    for variant in (CLASSIC, COMPACT, PORTAL):
        board = Board.from_variant(variant)
        for coord, piece in board.pieces():
            for move in piece.get_raw_moves(board, coord):
                assert move.from_sq == coord
                assert board.is_in_bounds(move.to_sq)
                assert not board.is_friendly(move.to_sq, piece.owner)


def test_move_equality_ignores_jumped_square():
    a = Move(C(4, 3), C(2, 5), MoveKind.JUMP, jumped_sq=C(3, 4))
    assert a == Move(C(4, 3), C(2, 5), MoveKind.JUMP)
    assert a != Move(C(4, 3), C(2, 5))
    assert Move.from_dict(a.to_dict()).jumped_sq == C(3, 4)
