"""
Greedy Box Merging with Numba JIT Compilation

This module replaces runs of same-colored unit cells with larger bricks.
It is a greedy heuristic, not an optimal box packing: the result depends
only on the scan order and the grid contents, so it is fully
deterministic.

Algorithm Overview:
1. Scan cells with X outermost, then Y, then Z
2. For each occupied cell of value v, grow the box:
   a. height (Z) first, one cell wide and long
   b. then width (X) at that height
   c. then length (Y) at that width and height
   each extent capped at the merge limit
3. Clear the box from the grid and emit one brick for it

Performance: the kernel runs under Numba; only the final conversion to
Brick records happens in Python.
"""

from typing import List, Tuple
import logging
import numpy as np
from numba import njit

from .grid import EMPTY, VoxelGrid
from .options import DEFAULT_MERGE_LIMIT
from .save import Brick, BrickAsset


logger = logging.getLogger(__name__)


@njit(cache=True)
def _box_is_uniform(
    cells: np.ndarray,
    sx: int, sy: int, sz: int,
    value: int,
    x: int, y: int, z: int,
    w: int, l: int, h: int
) -> bool:
    """Check that the box is inside the grid and every cell equals value."""
    if x + w > sx or y + l > sy or z + h > sz:
        return False

    for k in range(h):
        for j in range(l):
            for i in range(w):
                if cells[(x + i) + (y + j) * sx + (z + k) * sx * sy] != value:
                    return False
    return True


@njit(cache=True)
def _clear_box(
    cells: np.ndarray,
    sx: int, sy: int,
    x: int, y: int, z: int,
    w: int, l: int, h: int
):
    for k in range(h):
        for j in range(l):
            for i in range(w):
                cells[(x + i) + (y + j) * sx + (z + k) * sx * sy] = EMPTY


@njit(cache=True)
def _merge_boxes(
    cells: np.ndarray,
    sx: int, sy: int, sz: int,
    limit: int
) -> np.ndarray:
    """
    Greedily merge a flat cell buffer into boxes, clearing it as it goes.

    Args:
        cells: Flat int16 buffer, index x + y*sx + z*sx*sy
        sx, sy, sz: Grid dimensions
        limit: Maximum extent along each axis

    Returns:
        (N, 7) int64 array of [x, y, z, w, l, h, value] in emission order
    """
    # At most one box per occupied cell
    occupied = 0
    for i in range(cells.shape[0]):
        if cells[i] != EMPTY:
            occupied += 1

    boxes = np.zeros((occupied, 7), dtype=np.int64)
    count = 0

    for x in range(sx):
        for y in range(sy):
            for z in range(sz):
                value = cells[x + y * sx + z * sx * sy]
                if value == EMPTY:
                    continue

                # Height: grow one cell at a time, checking only the new layer
                h = 0
                while h < limit and _box_is_uniform(cells, sx, sy, sz, value, x, y, z + h, 1, 1, 1):
                    h += 1

                if h == 0:
                    continue

                # Width at fixed height
                w = 1
                while w < limit and _box_is_uniform(cells, sx, sy, sz, value, x + w, y, z, 1, 1, h):
                    w += 1

                # Length at fixed width and height
                l = 1
                while l < limit and _box_is_uniform(cells, sx, sy, sz, value, x, y + l, z, w, 1, h):
                    l += 1

                _clear_box(cells, sx, sy, x, y, z, w, l, h)

                boxes[count, 0] = x
                boxes[count, 1] = y
                boxes[count, 2] = z
                boxes[count, 3] = w
                boxes[count, 4] = l
                boxes[count, 5] = h
                boxes[count, 6] = value
                count += 1

    return boxes[:count]


def box_to_brick(
    box: Tuple[int, int, int, int, int, int, int],
    unit_size: Tuple[int, int],
    asset_index: int = BrickAsset.BRICK,
    owner_index: int = 1
) -> Brick:
    """
    Convert a merged box to a brick in grid-local world units.

    Args:
        box: (x, y, z, w, l, h, value) in cells
        unit_size: (half_width, half_height) of one cell

    Returns:
        Brick centered on the box
    """
    x, y, z, w, l, h, value = box
    uw, uh = unit_size
    size = (w * uw, l * uw, h * uh)
    return Brick(
        position=(
            x * uw * 2 + size[0],
            y * uw * 2 + size[1],
            z * uh * 2 + size[2],
        ),
        size=size,
        color=value,
        asset_name_index=asset_index,
        owner_index=owner_index,
    )


class GreedyMerger:
    """
    Greedy box merger for voxel grids.

    This class wraps the Numba-accelerated merge kernel and converts its
    output to bricks.
    """

    def __init__(
        self,
        unit_size: Tuple[int, int],
        limit: int = DEFAULT_MERGE_LIMIT,
        asset_index: int = BrickAsset.BRICK,
        owner_index: int = 1
    ):
        """
        Initialize the merger.

        Args:
            unit_size: (half_width, half_height) of one grid cell
            limit: Maximum merged extent along each axis, in cells
            asset_index: Asset table index for merged bricks
            owner_index: Owner table index for merged bricks
        """
        if limit < 1:
            raise ValueError("Merge limit must be at least 1")

        self.unit_size = unit_size
        self.limit = limit
        self.asset_index = asset_index
        self.owner_index = owner_index

    def merge_boxes(self, grid: VoxelGrid) -> np.ndarray:
        """
        Merge the grid in place into raw boxes.

        Every merged cell is cleared, so the grid is empty afterwards.

        Returns:
            (N, 7) array of [x, y, z, w, l, h, value]
        """
        cells = grid.cells
        if cells.size == 0:
            return np.zeros((0, 7), dtype=np.int64)

        return _merge_boxes(cells, grid.size_x, grid.size_y, grid.size_z, self.limit)

    def merge(self, grid: VoxelGrid) -> List[Brick]:
        """
        Merge the grid in place into bricks.

        Positions are relative to the grid origin; callers add
        grid.min_bounds to restore world coordinates.

        Args:
            grid: Grid to merge (cleared by this call)

        Returns:
            Merged bricks in scan order
        """
        occupied = grid.count_occupied()
        boxes = self.merge_boxes(grid)

        logger.debug("Merged %d cells into %d bricks", occupied, len(boxes))

        return [
            box_to_brick(tuple(box), self.unit_size, self.asset_index, self.owner_index)
            for box in boxes.tolist()
        ]
