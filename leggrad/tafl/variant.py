"""
Rule variants.

Every rule set is one engine configured by a Variant value: board size, the
throne each side's Jarl is trying to reach, the optional portal pair, which
special rules are switched on and whether the throne has to be unattacked
before a Jarl may step onto it. Nothing in the engine branches on a variant's
name, only on its capabilities.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Optional, Tuple

from leggrad.enums import Capability, PieceType, Side
from leggrad.tafl.coordinate import Coordinate

# (owner, piece type, starting squares as (row, col))
Layout = Tuple[Tuple[Side, PieceType, Tuple[Tuple[int, int], ...]], ...]


@dataclass(frozen=True)
class Variant:
    name: str
    rows: int
    cols: int
    layout: Layout
    north_goal: Tuple[Coordinate, ...]  # thrones North's Jarl wins on
    south_goal: Tuple[Coordinate, ...]
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)
    portals: Optional[Tuple[Coordinate, Coordinate]] = None
    secure_throne: bool = True

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def goal_thrones(self, side: Side) -> Tuple[Coordinate, ...]:
        return self.north_goal if side == Side.NORTH else self.south_goal

    def is_goal_throne(self, side: Side, coord: Coordinate) -> bool:
        return coord in self.goal_thrones(side)

    def promotion_rows(self, side: Side) -> Tuple[int, int]:
        """The two back ranks of the opposite side."""
        if side == Side.SOUTH:
            return (0, 1)
        return (self.rows - 2, self.rows - 1)

    def with_secure_throne(self, secure_throne: bool) -> "Variant":
        return replace(self, secure_throne=secure_throne)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "rows": self.rows,
            "cols": self.cols,
            "thrones": {
                Side.NORTH.value: [c.to_dict() for c in self.north_goal],
                Side.SOUTH.value: [c.to_dict() for c in self.south_goal],
            },
            "portals": [c.to_dict() for c in self.portals] if self.portals else [],
            "capabilities": sorted(c.value for c in self.capabilities),
            "secure_throne": self.secure_throne,
        }


CLASSIC_THRONE = Coordinate(4, 3)
COMPACT_THRONE = Coordinate(4, 2)

CLASSIC = Variant(
    name="classic",
    rows=9,
    cols=7,
    layout=(
        (Side.NORTH, PieceType.JARL, ((0, 3),)),
        (Side.NORTH, PieceType.RAVEN, ((0, 0), (0, 1), (0, 5), (0, 6))),
        (Side.NORTH, PieceType.HIRDMAN, ((1, 1), (1, 2), (1, 3), (1, 4), (1, 5))),
        (Side.SOUTH, PieceType.JARL, ((8, 3),)),
        (Side.SOUTH, PieceType.RAVEN, ((8, 0), (8, 1), (8, 5), (8, 6))),
        (Side.SOUTH, PieceType.HIRDMAN, ((7, 1), (7, 2), (7, 3), (7, 4), (7, 5))),
    ),
    north_goal=(CLASSIC_THRONE,),
    south_goal=(CLASSIC_THRONE,),
    capabilities=frozenset({Capability.PROMOTION, Capability.REINFORCEMENT}),
)

COMPACT = Variant(
    name="compact",
    rows=9,
    cols=5,
    layout=(
        (Side.NORTH, PieceType.JARL, ((0, 2),)),
        (Side.NORTH, PieceType.HIRDMAN, ((1, 1), (1, 2), (1, 3))),
        (Side.NORTH, PieceType.RAVEN, ((0, 4), (1, 0))),
        (Side.NORTH, PieceType.ROOK_RAVEN, ((0, 0), (1, 4))),
        (Side.SOUTH, PieceType.JARL, ((8, 2),)),
        (Side.SOUTH, PieceType.HIRDMAN, ((7, 1), (7, 2), (7, 3))),
        (Side.SOUTH, PieceType.RAVEN, ((8, 0), (7, 4))),
        (Side.SOUTH, PieceType.ROOK_RAVEN, ((8, 4), (7, 0))),
    ),
    north_goal=(COMPACT_THRONE,),
    south_goal=(COMPACT_THRONE,),
    capabilities=frozenset({Capability.PROMOTION, Capability.REINFORCEMENT}),
)

# Each side defends its own throne; the Jarl wins on the opponent's
NORTH_THRONE = Coordinate(0, 3)
SOUTH_THRONE = Coordinate(6, 3)

PORTAL = Variant(
    name="portal",
    rows=7,
    cols=7,
    layout=(
        (Side.NORTH, PieceType.JARL, ((1, 3),)),
        (Side.NORTH, PieceType.RAVEN, ((0, 0), (0, 6))),
        (Side.NORTH, PieceType.HIRDMAN, ((1, 1), (1, 2), (1, 4), (1, 5))),
        (Side.SOUTH, PieceType.JARL, ((5, 3),)),
        (Side.SOUTH, PieceType.RAVEN, ((6, 0), (6, 6))),
        (Side.SOUTH, PieceType.HIRDMAN, ((5, 1), (5, 2), (5, 4), (5, 5))),
    ),
    north_goal=(SOUTH_THRONE,),
    south_goal=(NORTH_THRONE,),
    capabilities=frozenset({Capability.PORTALS}),
    portals=(Coordinate(3, 0), Coordinate(3, 6)),
)

VARIANTS: Dict[str, Variant] = {v.name: v for v in (CLASSIC, COMPACT, PORTAL)}


def get_variant(name: str, secure_throne: Optional[bool] = None) -> Variant:
    """Look up a preset by name, optionally overriding the throne-safety flag."""
    try:
        variant = VARIANTS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown variant: {name}")
    if secure_throne is not None:
        variant = variant.with_secure_throne(secure_throne)
    return variant
