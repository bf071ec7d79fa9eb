"""
Brickadia Save Data Structures

This module provides the in-memory save representation produced by the
converter and consumed by the exporters:
- Brick: a single axis-aligned procedural brick
- User / BrickOwner: ownership records
- SaveData: headers, asset table, color table and brick list

Coordinate convention: a brick stores its center position and its
half-extents, both in Brickadia world units (doubled lattice). A unit
cell at lattice index i with half-size s sits at i * s * 2 + s.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, NamedTuple, Optional, Tuple


DEFAULT_DESCRIPTION = "Converted .vox file."

# Asset table written to every save. BrickAsset values index into it.
DEFAULT_BRICK_ASSETS = [
    "PB_DefaultBrick",
    "PB_DefaultMicroBrick",
    "PB_DefaultRamp",
    "PB_DefaultWedge",
]


class BrickAsset(IntEnum):
    """Indices into DEFAULT_BRICK_ASSETS."""
    BRICK = 0
    MICRO_BRICK = 1
    RAMP = 2
    WEDGE = 3


class Direction(IntEnum):
    """Brick facing direction."""
    X_POSITIVE = 0
    X_NEGATIVE = 1
    Y_POSITIVE = 2
    Y_NEGATIVE = 3
    Z_POSITIVE = 4
    Z_NEGATIVE = 5


class Rotation(IntEnum):
    """Rotation around the facing axis."""
    DEG_0 = 0
    DEG_90 = 1
    DEG_180 = 2
    DEG_270 = 3


class Color(NamedTuple):
    """8-bit RGBA color."""
    r: int
    g: int
    b: int
    a: int = 255


@dataclass(frozen=True)
class User:
    """A Brickadia user identity."""
    name: str
    id: str


# Identity used for author, host and brick ownership unless the caller
# supplies its own.
PUBLIC_USER = User(name="vox2brs", id="a8033bee-6c37-4118-b4a6-cecc1d966133")


@dataclass
class BrickOwner:
    """Owner table entry: a user and the number of bricks attributed to it."""
    user: User
    bricks: int = 0

    @classmethod
    def from_user_bricks(cls, user: User, bricks: int) -> "BrickOwner":
        return cls(user=user, bricks=bricks)


@dataclass
class Brick:
    """
    A single procedural brick.

    Attributes:
        position: Center position (x, y, z) in world units
        size: Half-extents (w_half, l_half, h_half) in world units
        color: Zero-based index into the save color table
        asset_name_index: Index into the save asset table
        owner_index: Index into the owner table (0 is the public owner,
            owners added to the table start at 1)
    """

    position: Tuple[int, int, int] = (0, 0, 0)
    size: Tuple[int, int, int] = (5, 5, 6)
    color: int = 0
    asset_name_index: int = BrickAsset.BRICK
    owner_index: int = 1
    direction: Direction = Direction.Z_POSITIVE
    rotation: Rotation = Rotation.DEG_0
    collision: bool = True
    visibility: bool = True

    def translated(self, dx: int, dy: int, dz: int) -> "Brick":
        """Return a copy of this brick moved by (dx, dy, dz)."""
        x, y, z = self.position
        return Brick(
            position=(x + dx, y + dy, z + dz),
            size=self.size,
            color=self.color,
            asset_name_index=self.asset_name_index,
            owner_index=self.owner_index,
            direction=self.direction,
            rotation=self.rotation,
            collision=self.collision,
            visibility=self.visibility,
        )


@dataclass
class SaveData:
    """
    In-memory Brickadia save.

    Mirrors the two save headers: header1 carries author, host and
    description; header2 carries the owner table, the asset table and
    the color table.
    """

    author: User = PUBLIC_USER
    host: Optional[User] = None
    description: str = ""
    brick_owners: List[BrickOwner] = field(default_factory=list)
    brick_assets: List[str] = field(default_factory=list)
    colors: List[Color] = field(default_factory=list)
    bricks: List[Brick] = field(default_factory=list)

    @property
    def brick_count(self) -> int:
        return len(self.bricks)


def new_save(owner: User = PUBLIC_USER) -> SaveData:
    """
    Create the base save every conversion starts from.

    Args:
        owner: Identity used as author, host and sole brick owner

    Returns:
        SaveData with headers and asset table filled in and an empty
        color table
    """
    return SaveData(
        author=owner,
        host=owner,
        description=DEFAULT_DESCRIPTION,
        brick_owners=[BrickOwner.from_user_bricks(owner, 0)],
        brick_assets=list(DEFAULT_BRICK_ASSETS),
        colors=[],
        bricks=[],
    )
