"""
GameState - the turn state machine for one game

Threads a single board through moves, promotion decisions and reinforcement
placements, runs the win check after every turn-ending action and hands the
turn to the other side. Every public action returns (success, message);
a failed action never touches the replicated part of the state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from leggrad.enums import Capability, GamePhase, PieceType, Side, WinReason
from leggrad.player import Player
from leggrad.tafl import rules
from leggrad.tafl.board import Board
from leggrad.tafl.coordinate import Coordinate
from leggrad.tafl.move import Move
from leggrad.tafl.piece import Piece
from leggrad.tafl.variant import Variant, get_variant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingPromotion:
    """A Raven reached the promotion zone; its owner must decide before the turn ends."""
    piece_id: str
    at: Coordinate

    def to_dict(self) -> dict:
        return {"type": "promotion", "piece_id": self.piece_id, "at": self.at.to_dict()}


@dataclass(frozen=True)
class PendingReinforcement:
    """A piece chosen from the mover's own lost pile, waiting for a square."""
    piece: Piece

    def to_dict(self) -> dict:
        return {"type": "reinforcement", "piece": self.piece.to_dict()}


Pending = Union[PendingPromotion, PendingReinforcement]


def pending_from_dict(data: Optional[dict]) -> Optional[Pending]:
    if not data:
        return None
    if data["type"] == "promotion":
        return PendingPromotion(data["piece_id"], Coordinate.from_dict(data["at"]))
    if data["type"] == "reinforcement":
        return PendingReinforcement(Piece.from_dict(data["piece"]))
    raise ValueError(f"Unknown pending state: {data['type']}")


class GameState:
    def __init__(self, game_id: str, variant: Variant,
                 south_player: Optional[Player] = None, north_player: Optional[Player] = None):
        # Game identification
        self.game_id: str = game_id
        self.variant: Variant = variant
        self.phase: GamePhase = GamePhase.PLAYING

        self.board: Board = Board.from_variant(variant)

        # Players (South moves first)
        self.players: Dict[Side, Player] = {
            Side.SOUTH: south_player or Player(None, None, Side.SOUTH),
            Side.NORTH: north_player or Player(None, None, Side.NORTH),
        }

        # Turn tracking
        self.turn: Side = Side.SOUTH
        self.turn_number: int = 1  # a round is South then North

        # At most one extra decision can hold the turn open
        self.pending: Optional[Pending] = None

        # Local click state, never replicated
        self.selected_at: Optional[Coordinate] = None
        self.valid_moves: List[Move] = []

        # Game end tracking
        self.winner: Optional[Side] = None
        self.win_reason: Optional[WinReason] = None

        # Bumped on every committed transition; the store compares it before accepting a write
        self.version: int = 0
        self.move_history: List[Dict[str, Any]] = []

        # Timestamps
        self.created_at: datetime = datetime.now()
        self.last_update: datetime = datetime.now()

        self.message: str = self.turn_message()

    # --- Helper Methods ---
    @property
    def is_over(self) -> bool:
        return self.phase == GamePhase.GAME_OVER

    def get_current_player(self) -> Player:
        """Get the player whose turn it is"""
        return self.players[self.turn]

    def get_player_by_id(self, player_id: str) -> Optional[Player]:
        """Find a player by their ID"""
        for player in self.players.values():
            if player.id is not None and player.id == player_id:
                return player
        return None

    def get_player_side(self, player_id: str) -> Optional[Side]:
        player = self.get_player_by_id(player_id)
        return player.side if player else None

    def is_players_turn(self, player_id: str) -> bool:
        """Check if it's this player's turn"""
        return self.get_current_player().id == player_id

    def seat(self, player: Player) -> None:
        """Put a player in their side's seat, e.g. when a guest joins."""
        self.players[player.side] = player
        self.message = self.turn_message()
        self._touch()

    def display(self, side: Side) -> str:
        return f"{self.players[side].display_name} ({side.value})"

    def square_name(self, coord: Coordinate) -> str:
        return coord.to_display(self.variant.rows)

    def turn_message(self) -> str:
        return f"Turn {self.turn_number}: {self.display(self.turn)}'s move. Select a piece."

    def _blocked(self) -> Optional[str]:
        """Reason the side to move may not start a new action, if any."""
        if self.is_over:
            return "The game is over."
        if isinstance(self.pending, PendingPromotion):
            return "Decide on the promotion first."
        return None

    def _clear_selection(self) -> None:
        self.selected_at = None
        self.valid_moves = []

    def _touch(self) -> None:
        self.version += 1
        self.last_update = datetime.now()

    def _record(self, action: str, **details: Any) -> None:
        entry = {"turn": self.turn_number, "side": self.turn.value, "action": action}
        entry.update(details)
        self.move_history.append(entry)

    # --- Move Methods ---
    def legal_moves_for(self, coord: Coordinate) -> List[Move]:
        """Get all legal moves for the piece at the given coordinate"""
        if self.board.piece_at_coord(coord) is None:
            return []
        return rules.legal_moves(self.board, coord, self.variant)

    def select_square(self, coord: Coordinate) -> Tuple[bool, str]:
        """
        Interpret a click on a square for the side to move: select a piece,
        move the selected piece there, or place a pending reinforcement.
        """
        if self.is_over:
            return False, "The game is over."
        if isinstance(self.pending, PendingPromotion):
            return False, self.message
        if not self.board.is_in_bounds(coord):
            return False, "That square is not on the board."

        piece = self.board.piece_at_coord(coord)

        if isinstance(self.pending, PendingReinforcement):
            if piece is None:
                return self.place_reinforcement(coord)
            # Clicking any occupied square drops the reinforcement without penalty
            self.pending = None
            self._touch()
            if piece.owner == self.turn:
                return self._select_piece(coord, piece)
            self.message = "Reinforcement cancelled. " + self.turn_message()
            return False, self.message

        if self.selected_at is not None:
            move = next((m for m in self.valid_moves if m.to_sq == coord), None)
            if move is not None:
                return self.apply_move(move)
            if piece is not None and piece.owner == self.turn:
                return self._select_piece(coord, piece)
            self._clear_selection()
            self.message = "Invalid move. Click piece or valid target."
            return False, self.message

        if piece is None or piece.owner != self.turn:
            self.message = f"Select one of {self.display(self.turn)}'s pieces."
            return False, self.message
        return self._select_piece(coord, piece)

    def _select_piece(self, coord: Coordinate, piece: Piece) -> Tuple[bool, str]:
        moves = self.legal_moves_for(coord)
        self.selected_at = coord
        self.valid_moves = moves
        where = self.square_name(coord)
        if moves:
            self.message = f"Selected {piece.type.value} at ({where}). Choose move."
        else:
            self.message = f"Selected {piece.type.value} at ({where}). No valid moves."
        return bool(moves), self.message

    def apply_move(self, m: Move) -> Tuple[bool, str]:
        """
        Apply a move for the side to move.
        Returns (success, message); "promotion_required" when the turn is held open.
        """
        blocked = self._blocked()
        if blocked:
            return False, blocked

        piece = self.board.piece_at_coord(m.from_sq)
        if not piece or piece.owner != self.turn:
            return False, "Invalid piece selection"

        legal = self.legal_moves_for(m.from_sq)
        if m not in legal:
            return False, "Illegal move"
        # Use the generated move so jump details are the engine's own
        move = legal[legal.index(m)]

        # Moving a board piece abandons a reinforcement that was being placed
        self.pending = None

        result = rules.execute_move(self.board, move, self.variant)
        self.board = result.board
        self._clear_selection()

        if result.captured:
            self.players[result.captured.owner].lose_piece(result.captured)
            logger.info(f"{self.game_id}: {piece} captured {result.captured} at {self.square_name(move.to_sq)}")

        self._record(
            "move",
            piece_id=piece.id,
            move=move.to_dict(),
            captured=result.captured.id if result.captured else None,
        )

        if result.promotion_due:
            self.pending = PendingPromotion(result.piece.id, result.at)
            self.message = (f"{self.display(self.turn)}: promote {PieceType.RAVEN.value} at "
                            f"({self.square_name(result.at)}) to {PieceType.ROOK_RAVEN.value}?")
            self._touch()
            return True, "promotion_required"

        self._end_turn(result.piece, result.at)
        return True, self.message

    def resolve_promotion(self, promote: bool) -> Tuple[bool, str]:
        """Finish a turn held open by a Raven in the promotion zone."""
        if self.is_over:
            return False, "The game is over."
        if not isinstance(self.pending, PendingPromotion):
            return False, "No pending promotion"

        at = self.pending.at
        if promote:
            self.board = rules.promote_piece(self.board, at)
        self.pending = None
        self._record("promotion", piece_id=self.board.piece_at_coord(at).id, promoted=promote)

        self._end_turn(self.board.piece_at_coord(at), at)
        return True, self.message

    # --- Reinforcement Methods ---
    def select_reinforcement(self, piece_id: str) -> Tuple[bool, str]:
        """Pick a piece from the mover's own lost pile to bring back."""
        blocked = self._blocked()
        if blocked:
            return False, blocked
        if not self.variant.has(Capability.REINFORCEMENT):
            return False, "Reinforcements are not part of this variant."
        if self.pending is not None:
            return False, "Place or cancel the selected reinforcement first."

        piece = self.get_current_player().find_lost(piece_id)
        if piece is None:
            return False, "That piece is not among your captured pieces."

        self._clear_selection()
        self.pending = PendingReinforcement(piece)
        self.message = f"{self.display(self.turn)}: place {piece.type.value} on any empty square."
        self._touch()
        return True, self.message

    def place_reinforcement(self, coord: Coordinate) -> Tuple[bool, str]:
        if self.is_over:
            return False, "The game is over."
        if not isinstance(self.pending, PendingReinforcement):
            return False, "No reinforcement selected"
        if not self.board.is_empty(coord):
            # Selection stays pending so the player can pick another square
            return False, "Reinforcements must be placed on an empty square."

        piece = self.get_current_player().reclaim(self.pending.piece.id)
        if piece is None:
            return False, "That piece is not among your captured pieces."

        self.board = rules.place_reinforcement(self.board, piece, coord)
        self.pending = None
        self._record("reinforcement", piece_id=piece.id, at=coord.to_dict())
        logger.info(f"{self.game_id}: {piece} re-entered at {self.square_name(coord)}")

        self._end_turn(piece, coord)
        return True, self.message

    def cancel_selection(self) -> Tuple[bool, str]:
        """Drop the selected piece and any reinforcement being placed."""
        if self.is_over:
            return False, "The game is over."
        if isinstance(self.pending, PendingPromotion):
            return False, "Decide on the promotion first."
        self._clear_selection()
        if self.pending is not None:
            self.pending = None
            self._touch()
        self.message = self.turn_message()
        return True, self.message

    # --- Turn Advancement ---
    def _end_turn(self, piece: Optional[Piece], at: Optional[Coordinate]) -> None:
        mover = self.turn
        reason = rules.evaluate_win(self.board, mover, piece, at, self.variant)
        if reason is not None:
            self._finish(mover, reason)
        else:
            self.switch_turn()
            self.message = self.turn_message()
        self._touch()

    def switch_turn(self) -> None:
        """Switch to the other side; a round completes after North moves."""
        if self.turn == Side.NORTH:
            self.turn_number += 1
        self.turn = self.turn.opponent

    def _finish(self, winner: Side, reason: WinReason) -> None:
        self.phase = GamePhase.GAME_OVER
        self.winner = winner
        self.win_reason = reason
        self.pending = None
        self._clear_selection()
        if reason == WinReason.THRONE:
            self.message = f"{self.display(winner)} wins by reaching the Throne!"
        elif reason == WinReason.DECAPITATION:
            self.message = f"{self.display(winner)} wins by Decapitation! {winner.opponent.value}'s Jarl captured."
        else:
            self.message = f"{winner.value} wins! Opponent left the game."
        logger.info(f"GAME OVER {self.game_id}: {self.message}")

    def forfeit(self, side: Side) -> Tuple[bool, str]:
        """The given side leaves; the other side wins."""
        if self.is_over:
            return False, "The game is over."
        self._finish(side.opponent, WinReason.ABANDONED)
        self._touch()
        return True, self.message

    # --- Serialization ---
    def selection_dict(self) -> dict:
        return {
            "selected": self.selected_at.to_dict() if self.selected_at else None,
            "moves": [m.to_dict() for m in self.valid_moves],
            "message": self.message,
        }

    def to_dict(self, perspective_player_id: Optional[str] = None) -> dict:
        """
        Convert game state to a JSON-serializable snapshot.
        If perspective_player_id is provided, add that player's view fields.
        """
        base_dict = {
            "game_id": self.game_id,
            "variant": self.variant.to_dict(),
            "phase": self.phase.value,
            "turn": self.turn.value,
            "turn_number": self.turn_number,
            "winner": self.winner.value if self.winner else None,
            "win_reason": self.win_reason.value if self.win_reason else None,
            "message": self.message,
            "pending": self.pending.to_dict() if self.pending else None,
            "players": {side.value: player.to_dict() for side, player in self.players.items()},
            "board": self.board.to_dict(),
            "version": self.version,
            "move_history": list(self.move_history),
            "created_at": self.created_at.isoformat(),
            "last_update": self.last_update.isoformat(),
        }

        if perspective_player_id:
            side = self.get_player_side(perspective_player_id)
            if side:
                base_dict["your_side"] = side.value
                base_dict["your_turn"] = self.is_players_turn(perspective_player_id)

        return base_dict

    @classmethod
    def from_dict(cls, data: dict) -> "GameState":
        variant_data = data["variant"]
        variant = get_variant(variant_data["name"], variant_data.get("secure_throne"))
        state = cls(
            data["game_id"],
            variant,
            Player.from_dict(data["players"][Side.SOUTH.value]),
            Player.from_dict(data["players"][Side.NORTH.value]),
        )
        state.board = Board.from_dict(data["board"])
        state.phase = GamePhase(data["phase"])
        state.turn = Side(data["turn"])
        state.turn_number = int(data["turn_number"])
        state.winner = Side(data["winner"]) if data.get("winner") else None
        state.win_reason = WinReason(data["win_reason"]) if data.get("win_reason") else None
        state.message = data.get("message", "")
        state.pending = pending_from_dict(data.get("pending"))
        state.version = int(data.get("version", 0))
        state.move_history = list(data.get("move_history", []))
        if data.get("created_at"):
            state.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("last_update"):
            state.last_update = datetime.fromisoformat(data["last_update"])
        return state
