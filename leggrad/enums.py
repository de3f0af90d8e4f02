from enum import Enum


class Side(Enum):
    NORTH = "North"
    SOUTH = "South"

    @property
    def opponent(self) -> "Side":
        return Side.SOUTH if self == Side.NORTH else Side.NORTH


class PieceType(Enum):
    JARL = "Jarl"
    HIRDMAN = "Hirdman"
    RAVEN = "Raven"
    ROOK_RAVEN = "Rook Raven"


class MoveKind(Enum):
    NORMAL = "normal"
    JUMP = "jump"
    TELEPORT = "teleport"


class Capability(Enum):
    """Optional rule sets a variant can switch on"""
    PORTALS = "portals"
    PROMOTION = "promotion"
    REINFORCEMENT = "reinforcement"


class GamePhase(Enum):
    PLAYING = "Playing"
    GAME_OVER = "Game Over"


class WinReason(Enum):
    THRONE = "throne"
    DECAPITATION = "decapitation"
    ABANDONED = "abandoned"


class RoomStatus(Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"
    ABORTED = "aborted"
