"""
Conversion Options

BrickOutputMode selects how one voxel is turned into one brick:

    mode         half-width       half-height      asset
    brick        width * 5        height * 6       PB_DefaultBrick
    plate        width * 5        height * 2       PB_DefaultBrick
    micro-brick  width            height           PB_DefaultMicroBrick

width defaults to 1 in every mode; height defaults to 3 for bricks and
1 otherwise.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple
import logging

from .errors import ConversionError


logger = logging.getLogger(__name__)

DEFAULT_MERGE_LIMIT = 64

# Unit cell used by the ramp pass regardless of the configured brick size.
RAMP_UNIT_SIZE = (5, 2)


class BrickOutputMode(Enum):
    """How voxels are interpreted."""
    BRICK = "brick"
    PLATE = "plate"
    MICRO_BRICK = "micro-brick"


# mode -> (width multiplier, height multiplier, default height)
_MODE_SCALES = {
    BrickOutputMode.BRICK: (5, 6, 3),
    BrickOutputMode.PLATE: (5, 2, 1),
    BrickOutputMode.MICRO_BRICK: (1, 1, 1),
}


@dataclass(frozen=True)
class ConversionOptions:
    """
    Settings for a single conversion.

    Attributes:
        mode: Brick output mode
        width: Brick width in mode units (None = mode default)
        height: Brick height in mode units (None = mode default)
        simplify: Merge same-colored neighbours into larger bricks
        rampify: Run the ramp generator before merging (implies simplify)
        merge_limit: Maximum merged extent along each axis, in cells
    """

    mode: BrickOutputMode = BrickOutputMode.BRICK
    width: Optional[int] = None
    height: Optional[int] = None
    simplify: bool = False
    rampify: bool = False
    merge_limit: int = DEFAULT_MERGE_LIMIT

    def validate(self):
        """Raise ConversionError for option values no conversion can use."""
        if not isinstance(self.mode, BrickOutputMode):
            raise ConversionError(f"Unknown brick output mode: {self.mode!r}")
        if self.width is not None and self.width < 1:
            raise ConversionError(f"Width must be a positive integer, got {self.width}")
        if self.height is not None and self.height < 1:
            raise ConversionError(f"Height must be a positive integer, got {self.height}")
        if self.merge_limit < 1:
            raise ConversionError(f"Merge limit must be at least 1, got {self.merge_limit}")
        if self.rampify and self.mode == BrickOutputMode.MICRO_BRICK:
            raise ConversionError("Micro bricks cannot be rampified; use normalized() options")

    def normalized(self) -> "ConversionOptions":
        """
        Apply the flag policy used by the command line and the web UI.

        Rampify implies simplify, and micro bricks cannot be rampified so
        they fall back to regular bricks.

        Returns:
            Normalized copy of these options
        """
        options = self
        if options.rampify and options.mode == BrickOutputMode.MICRO_BRICK:
            logger.warning("Micro bricks cannot be rampified, using bricks instead")
            options = replace(options, mode=BrickOutputMode.BRICK)
        if options.rampify and not options.simplify:
            options = replace(options, simplify=True)
        return options

    @property
    def brick_size(self) -> Tuple[int, int]:
        """Half-extents (width, height) of a single converted voxel."""
        width_scale, height_scale, default_height = _MODE_SCALES[self.mode]
        width = self.width if self.width is not None else 1
        height = self.height if self.height is not None else default_height
        return (width * width_scale, height * height_scale)

    @property
    def unit_size(self) -> Tuple[int, int]:
        """Half-extents (width, height) of one grid cell during simplification."""
        if self.rampify:
            return RAMP_UNIT_SIZE
        return self.brick_size
