"""
Ramp Generator Hand-off

Rampification is delegated to an external generator. vox2brs only owns
the call contract:

    generator = factory(grid_size, cells, config)
    floor_ramps = generator.generate_ramps(True)
    ceiling_ramps = generator.generate_ramps(False)
    generator.remove_occupied_voxels()
    cells = generator.move_grid()

The cell buffer is moved into the generator and handed back by
move_grid(); the grid holds no reference to it in between. Cells claimed
by ramps must be EMPTY in the returned buffer so the merger does not emit
them again.

Generators are plugged in by passing a factory to the converter, or on
the command line as "package.module:factory".
"""

from dataclasses import dataclass
from typing import Callable, List, Protocol, Tuple
import importlib
import logging
import time
import numpy as np

from .errors import ConversionError
from .grid import VoxelGrid
from .options import RAMP_UNIT_SIZE
from .save import Brick, BrickAsset


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RampifierConfig:
    """
    Settings handed to the ramp generator.

    Attributes:
        ramp_index: Asset table index for ramps
        wedge_index: Asset table index for wedges
        owner_index: Owner table index for generated bricks
        unit_size: (half_width, half_height) of one grid cell
    """

    ramp_index: int = BrickAsset.RAMP
    wedge_index: int = BrickAsset.WEDGE
    owner_index: int = 1
    unit_size: Tuple[int, int] = RAMP_UNIT_SIZE


class RampGenerator(Protocol):
    """Interface a ramp generator must provide."""

    def generate_ramps(self, floor: bool) -> List[Brick]:
        """Generate ramps for floors (True) or ceilings (False), in grid-local units."""
        ...

    def remove_occupied_voxels(self) -> None:
        """Clear every cell claimed by a generated ramp."""
        ...

    def move_grid(self) -> np.ndarray:
        """Hand the (mutated) flat cell buffer back."""
        ...


RampGeneratorFactory = Callable[[Tuple[int, int, int], np.ndarray, RampifierConfig], RampGenerator]


def rampify_grid(
    grid: VoxelGrid,
    factory: RampGeneratorFactory,
    config: RampifierConfig
) -> List[Brick]:
    """
    Run the floor and ceiling ramp passes over a grid.

    The grid's cells are lent to the generator and replaced by the buffer
    it hands back, with claimed cells cleared.

    Args:
        grid: Grid to rampify (mutated)
        factory: Builds a generator from (grid_size, cells, config)
        config: Generator settings

    Returns:
        Floor ramps followed by ceiling ramps, in grid-local units
    """
    cell_count = grid.size_x * grid.size_y * grid.size_z
    start_time = time.time()

    generator = factory(grid.shape, grid.take_cells(), config)

    floor_ramps = list(generator.generate_ramps(True))
    ceiling_ramps = list(generator.generate_ramps(False))

    elapsed = time.time() - start_time
    logger.info("Processed %d voxels", cell_count)
    logger.info("Generated %d ramps in %.3fs", len(floor_ramps) + len(ceiling_ramps), elapsed)

    generator.remove_occupied_voxels()
    grid.restore_cells(generator.move_grid())

    return floor_ramps + ceiling_ramps


def load_ramp_generator(spec: str) -> RampGeneratorFactory:
    """
    Resolve a "module:attribute" reference to a ramp generator factory.

    Args:
        spec: Import path, e.g. "my_ramps:Rampifier"

    Returns:
        The referenced callable
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConversionError(f"Ramp generator must be given as module:attribute, got {spec!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConversionError(f"Cannot import ramp generator module {module_name!r}: {e}") from e

    factory = module
    for part in attr.split("."):
        try:
            factory = getattr(factory, part)
        except AttributeError as e:
            raise ConversionError(f"{module_name!r} has no attribute {attr!r}") from e

    if not callable(factory):
        raise ConversionError(f"Ramp generator {spec!r} is not callable")

    return factory
