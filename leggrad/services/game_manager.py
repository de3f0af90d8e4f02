"""
GameManager - Handles the complete lifecycle of rooms
- Room creation and joining
- Turn-checked game actions
- Versioned snapshot writes
- Cleanup and statistics

The store's snapshot is the authoritative game. Every action loads a fresh
GameState from it, runs the transition and writes the result back only if the
transition was committed (the state's version moved).
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from leggrad.enums import RoomStatus, Side
from leggrad.player import Player
from leggrad.services.game_state import GameState
from leggrad.services.room_store import (
    RoomExistsError,
    RoomRecord,
    RoomStore,
    StaleSnapshotError,
)
from leggrad.tafl.coordinate import Coordinate
from leggrad.tafl.move import Move
from leggrad.tafl.variant import get_variant

logger = logging.getLogger(__name__)

ActionResult = Tuple[bool, str, Optional[GameState]]

STALE_MESSAGE = "The game changed before your action was saved. Please try again."


def normalize_room_name(name: str) -> str:
    """Room names are upper-case letters and digits only."""
    return re.sub(r"[^A-Z0-9]", "", (name or "").upper())


class GameManager:
    """Manages all rooms and routes player actions to their game"""
    MAX_CONCURRENT_ROOMS = 20

    def __init__(self, store: Optional[RoomStore] = None, max_rooms: Optional[int] = None):
        self.store: RoomStore = store or RoomStore()
        self.max_rooms = max_rooms if max_rooms is not None else self.MAX_CONCURRENT_ROOMS
        # Click selection is per player and never replicated: (room, player) -> (version, coord, moves)
        self._selections: Dict[Tuple[str, str], Tuple[int, Coordinate, List[Move]]] = {}

    # ============================================================================
    # ROOM LIFECYCLE
    # ============================================================================

    def create_room(self, room_name: str, host_id: str, host_name: str,
                    variant_name: str = "classic", secure_throne: bool = True) -> ActionResult:
        """
        Open a room and seat the host as South (first to move).
        Returns (success, message, game_state)
        """
        room_id = normalize_room_name(room_name)
        if not room_id:
            return False, "Room name must contain letters or digits", None

        if len(self.get_open_rooms()) >= self.max_rooms:
            return False, f"Server is full ({self.max_rooms} rooms)", None

        if self.get_player_room(host_id):
            return False, "Already in a room", None

        try:
            variant = get_variant(variant_name, secure_throne)
        except ValueError as e:
            return False, str(e), None

        game = GameState(room_id, variant, south_player=Player(host_id, host_name, Side.SOUTH))
        game.message = f"Turn 1: {game.display(Side.SOUTH)}'s move. Waiting for opponent..."

        try:
            self.store.create(room_id, host_id, host_name, game.to_dict())
        except RoomExistsError:
            return False, f"Room {room_id} is already in use", None

        logger.info(f"Room {room_id} opened by {host_name} ({variant.name})")
        return True, f"Room {room_id} created. Waiting for opponent...", game

    def join_room(self, room_name: str, guest_id: str, guest_name: str) -> ActionResult:
        """Seat the guest as North and start the game."""
        room_id = normalize_room_name(room_name)
        record = self.store.find(room_id)
        if not record:
            return False, "Room not found", None
        if record.host_id == guest_id:
            return False, "You are already in this room", None
        if record.status != RoomStatus.WAITING:
            return False, "Room is not open for joining", None
        if self.get_player_room(guest_id):
            return False, "Already in a room", None

        game = GameState.from_dict(record.snapshot)
        base_version = game.version
        game.seat(Player(guest_id, guest_name, Side.NORTH))

        ok, message = self.commit(room_id, game, base_version, RoomStatus.ACTIVE)
        if not ok:
            return False, message, None
        self.store.set_guest(room_id, guest_id, guest_name)

        logger.info(f"Room {room_id}: {guest_name} joined, game started")
        return True, game.message, game

    def leave_room(self, room_name: str, player_id: str) -> ActionResult:
        """
        A player leaves. Leaving an active game hands the win to the opponent;
        a host leaving a room nobody joined aborts it.
        """
        room_id = normalize_room_name(room_name)
        record = self.store.find(room_id)
        if not record:
            return False, "Room not found", None
        if player_id not in (record.host_id, record.guest_id):
            return False, "Player not in this room", None

        self._drop_selections(room_id)
        game = GameState.from_dict(record.snapshot)

        if record.status == RoomStatus.WAITING:
            self.store.set_status(room_id, RoomStatus.ABORTED)
            logger.info(f"Room {room_id} aborted by its host")
            return True, "Room closed", game

        if record.status == RoomStatus.ACTIVE:
            side = game.get_player_side(player_id)
            base_version = game.version
            game.forfeit(side)
            ok, message = self.commit(room_id, game, base_version)
            if not ok:
                return False, message, None
            logger.info(f"Room {room_id}: {side.value} left, {game.message}")
            return True, game.message, game

        return True, "Left room", game

    def commit(self, room_id: str, game: GameState, base_version: int,
               status: Optional[RoomStatus] = None) -> Tuple[bool, str]:
        """
        Write a transition computed from `base_version`. A concurrent writer
        that got there first makes this write stale and it is discarded.
        A finished game closes the room in the same write.
        """
        if game.is_over:
            status = RoomStatus.FINISHED
        try:
            self.store.write_snapshot(room_id, game.to_dict(), base_version, status)
        except StaleSnapshotError as e:
            logger.warning(f"Rejected stale write: {e}")
            return False, STALE_MESSAGE
        return True, game.message

    # ============================================================================
    # GAME RETRIEVAL
    # ============================================================================

    def get_game(self, room_name: str) -> Optional[GameState]:
        """Get the current game of a room"""
        record = self.store.find(normalize_room_name(room_name))
        return GameState.from_dict(record.snapshot) if record else None

    def get_room(self, room_name: str) -> Optional[RoomRecord]:
        return self.store.find(normalize_room_name(room_name))

    def get_open_rooms(self) -> List[RoomRecord]:
        """Rooms that are waiting for a guest or being played"""
        return self.store.rooms_with_status(RoomStatus.WAITING, RoomStatus.ACTIVE)

    def get_player_room(self, player_id: str) -> Optional[RoomRecord]:
        """Find the open room a player is currently in"""
        for record in self.get_open_rooms():
            if player_id in (record.host_id, record.guest_id):
                return record
        return None

    def get_all_active_games(self) -> List[GameState]:
        """Get all games that are being played"""
        return [
            GameState.from_dict(record.snapshot)
            for record in self.store.rooms_with_status(RoomStatus.ACTIVE)
        ]

    def cleanup_finished_rooms(self) -> int:
        """
        Remove all rooms that have ended.
        Returns number of rooms removed.
        """
        finished = [
            record.room_id
            for record in self.store.rooms_with_status(RoomStatus.FINISHED, RoomStatus.ABORTED)
        ]
        for room_id in finished:
            self.store.delete(room_id)
            self._drop_selections(room_id)
        if finished:
            logger.info(f"Removed {len(finished)} finished room(s)")
        return len(finished)

    # ============================================================================
    # GAME ACTIONS (Delegate to GameState)
    # ============================================================================

    def _act(self, room_name: str, player_id: str,
             action: Callable[[GameState], Tuple[bool, str]]) -> ActionResult:
        """
        Load the room's game, check that it is this player's turn, run the
        action and write the result if it committed anything.
        """
        room_id = normalize_room_name(room_name)
        record = self.store.find(room_id)
        if not record:
            return False, "Room not found", None

        game = GameState.from_dict(record.snapshot)
        if game.get_player_side(player_id) is None:
            return False, "Player not in this room", game
        if record.status == RoomStatus.WAITING:
            return False, "Waiting for opponent...", game
        if record.status != RoomStatus.ACTIVE or game.is_over:
            return False, "The game is over.", game
        if not game.is_players_turn(player_id):
            return False, "Not your turn", game

        self._restore_selection(room_id, player_id, game)
        base_version = game.version
        success, message = action(game)

        if game.version != base_version:
            ok, stale_message = self.commit(room_id, game, base_version)
            if not ok:
                self._selections.pop((room_id, player_id), None)
                return False, stale_message, None
        self._save_selection(room_id, player_id, game)
        return success, message, game

    def make_move(self, room_name: str, player_id: str, from_square: str, to_square: str) -> ActionResult:
        """
        Make a move given in display notation ("D2" -> "D3").
        Returns (success, message, updated_game_state)
        """
        def action(game: GameState) -> Tuple[bool, str]:
            try:
                from_coord = Coordinate.from_display(from_square, game.variant.rows)
                to_coord = Coordinate.from_display(to_square, game.variant.rows)
            except ValueError as e:
                return False, f"Invalid square notation: {e}"

            move = next((m for m in game.legal_moves_for(from_coord) if m.to_sq == to_coord), None)
            if move is None:
                move = Move(from_coord, to_coord)
            return game.apply_move(move)

        return self._act(room_name, player_id, action)

    def select_square(self, room_name: str, player_id: str, square: str) -> ActionResult:
        """Click on a square: select, move or place a reinforcement."""
        def action(game: GameState) -> Tuple[bool, str]:
            try:
                coord = Coordinate.from_display(square, game.variant.rows)
            except ValueError as e:
                return False, f"Invalid square notation: {e}"
            return game.select_square(coord)

        return self._act(room_name, player_id, action)

    def handle_promotion(self, room_name: str, player_id: str, promote: bool) -> ActionResult:
        """
        Resolve a pending Raven promotion.

        Args:
            room_name: The room identifier
            player_id: The player making the choice
            promote: True to turn the Raven into a Rook Raven, False to keep it

        Returns:
            (success, message, updated_game_state)
        """
        return self._act(room_name, player_id, lambda game: game.resolve_promotion(promote))

    def select_reinforcement(self, room_name: str, player_id: str, piece_id: str) -> ActionResult:
        return self._act(room_name, player_id, lambda game: game.select_reinforcement(piece_id))

    def place_reinforcement(self, room_name: str, player_id: str, square: str) -> ActionResult:
        def action(game: GameState) -> Tuple[bool, str]:
            try:
                coord = Coordinate.from_display(square, game.variant.rows)
            except ValueError as e:
                return False, f"Invalid square notation: {e}"
            return game.place_reinforcement(coord)

        return self._act(room_name, player_id, action)

    def cancel_selection(self, room_name: str, player_id: str) -> ActionResult:
        return self._act(room_name, player_id, lambda game: game.cancel_selection())

    # ============================================================================
    # SELECTION CACHE
    # ============================================================================

    def _restore_selection(self, room_id: str, player_id: str, game: GameState) -> None:
        cached = self._selections.get((room_id, player_id))
        # A selection made against an older position is meaningless now
        if cached and cached[0] == game.version:
            _, game.selected_at, game.valid_moves = cached

    def _save_selection(self, room_id: str, player_id: str, game: GameState) -> None:
        if game.selected_at is None:
            self._selections.pop((room_id, player_id), None)
        else:
            self._selections[(room_id, player_id)] = (game.version, game.selected_at, list(game.valid_moves))

    def _drop_selections(self, room_id: str) -> None:
        for key in [k for k in self._selections if k[0] == room_id]:
            del self._selections[key]

    # ============================================================================
    # STATISTICS & INFO
    # ============================================================================

    def get_stats(self) -> dict:
        """Get statistics about current rooms"""
        rooms = list(self.store.rooms.values())
        return {
            "total_rooms": len(rooms),
            "waiting_rooms": sum(1 for r in rooms if r.status == RoomStatus.WAITING),
            "active_games": sum(1 for r in rooms if r.status == RoomStatus.ACTIVE),
            "finished_games": sum(1 for r in rooms if r.status in (RoomStatus.FINISHED, RoomStatus.ABORTED)),
            "max_rooms": self.max_rooms,
        }

    def __repr__(self):
        stats = self.get_stats()
        return f"<GameManager: {stats['active_games']} active, {stats['waiting_rooms']} waiting>"
