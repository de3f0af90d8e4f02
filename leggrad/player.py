from __future__ import annotations
from typing import List, Optional

from leggrad.enums import Side
from leggrad.tafl.piece import Piece


class Player:
    def __init__(self, id: Optional[str], name: Optional[str], side: Side):
        self.id = id
        self.name = name
        self.side = side

        # This side's own pieces taken by the opponent; only this side may reinforce with them
        self.lost: List[Piece] = []

    @property
    def display_name(self) -> str:
        return self.name or self.side.value

    def lose_piece(self, piece: Piece) -> None:
        """
        Files a piece captured from this player into their own pile.
        """
        if piece.owner != self.side:
            raise ValueError(f"{piece} does not belong to {self.side.value}")
        self.lost.append(piece)

    def find_lost(self, piece_id: str) -> Optional[Piece]:
        for piece in self.lost:
            if piece.id == piece_id:
                return piece
        return None

    def reclaim(self, piece_id: str) -> Optional[Piece]:
        """
        Removes a piece from the lost pile so it can re-enter play.
        Returns the piece, or None if it is not in this pile.
        """
        piece = self.find_lost(piece_id)
        if piece:
            self.lost.remove(piece)
        return piece

    def __repr__(self) -> str:
        """
        Returns information about who the player is.
        """
        return f"<Player {self.display_name} ({self.side.value})>"

    def to_dict(self) -> dict:
        """
        Returns a dictionary snapshot of the player's current state.
        """
        return {
            "id": self.id,
            "name": self.name,
            "side": self.side.value,
            "lost": [piece.to_dict() for piece in self.lost],
        }

    @staticmethod
    def from_dict(data: dict) -> "Player":
        player = Player(data.get("id"), data.get("name"), Side(data["side"]))
        player.lost = [Piece.from_dict(p) for p in data.get("lost", [])]
        return player
