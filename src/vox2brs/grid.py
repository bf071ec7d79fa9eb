"""
Dense Voxel Grid

The simplification pass works on a dense grid covering the tight
bounding box of all placed bricks. Cells are stored in a flat buffer
with a fixed stride:

    index = x + y * size_x + z * size_x * size_y

Each cell holds a zero-based palette index, or EMPTY.

Memory consideration: cells are int16, so a 256 x 256 x 256 grid is
32 MB. Typical MagicaVoxel scenes are far smaller.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set, Tuple
import numpy as np

from .save import Brick


EMPTY = -1
CELL_DTYPE = np.int16


@dataclass
class VoxelGrid:
    """
    Dense 3D grid of palette indices.

    Attributes:
        size_x, size_y, size_z: Grid dimensions in cells
        min_bounds: Lattice coordinate of cell (0, 0, 0)
    """

    size_x: int
    size_y: int
    size_z: int
    min_bounds: Tuple[int, int, int] = (0, 0, 0)
    _cells: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        if self._cells is None:
            self._cells = np.full(self.size_x * self.size_y * self.size_z, EMPTY, dtype=CELL_DTYPE)
        elif self._cells.size != self.size_x * self.size_y * self.size_z:
            raise ValueError(
                f"Cell buffer of {self._cells.size} does not match grid {self.shape}"
            )

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Get grid dimensions (x, y, z)."""
        return (self.size_x, self.size_y, self.size_z)

    @property
    def cells(self) -> np.ndarray:
        """Get the flat cell buffer."""
        if self._cells is None:
            raise RuntimeError("Grid cells are currently lent out")
        return self._cells

    @property
    def volume(self) -> np.ndarray:
        """Get a (z, y, x) view of the cell buffer."""
        return self.cells.reshape(self.size_z, self.size_y, self.size_x)

    def index(self, x: int, y: int, z: int) -> int:
        """Flat buffer index of a cell."""
        return x + y * self.size_x + z * self.size_x * self.size_y

    def in_bounds(self, x: int, y: int, z: int) -> bool:
        return (
            0 <= x < self.size_x and
            0 <= y < self.size_y and
            0 <= z < self.size_z
        )

    def get(self, x: int, y: int, z: int) -> Optional[int]:
        """Get the palette index at a cell, or None if empty or out of bounds."""
        if not self.in_bounds(x, y, z):
            return None
        value = int(self.cells[self.index(x, y, z)])
        return None if value == EMPTY else value

    def set(self, x: int, y: int, z: int, value: Optional[int]):
        """Set a cell; None clears it."""
        self.cells[self.index(x, y, z)] = EMPTY if value is None else value

    def fill_box(
        self,
        pos: Tuple[int, int, int],
        size: Tuple[int, int, int],
        value: Optional[int]
    ):
        """Write value into every cell of the box at pos with extent size."""
        x, y, z = pos
        w, l, h = size
        self.volume[z:z + h, y:y + l, x:x + w] = EMPTY if value is None else value

    def count_occupied(self) -> int:
        """Count non-empty cells."""
        if self.cells.size == 0:
            return 0
        return int(np.count_nonzero(self.cells != EMPTY))

    def occupied_by_color(self) -> Dict[int, Set[Tuple[int, int, int]]]:
        """Map each palette index to the set of cells holding it."""
        result: Dict[int, Set[Tuple[int, int, int]]] = {}
        for z, y, x in np.argwhere(self.volume != EMPTY):
            value = int(self.volume[z, y, x])
            result.setdefault(value, set()).add((int(x), int(y), int(z)))
        return result

    def take_cells(self) -> np.ndarray:
        """Move the cell buffer out of the grid; the grid is unusable until restored."""
        cells = self.cells
        self._cells = None
        return cells

    def restore_cells(self, cells: np.ndarray):
        """Install a cell buffer handed back by take_cells' receiver."""
        cells = np.asarray(cells, dtype=CELL_DTYPE).reshape(-1)
        if cells.size != self.size_x * self.size_y * self.size_z:
            raise ValueError(
                f"Returned cell buffer of {cells.size} does not match grid {self.shape}"
            )
        self._cells = cells

    def copy(self) -> "VoxelGrid":
        return VoxelGrid(self.size_x, self.size_y, self.size_z, self.min_bounds, self.cells.copy())


def brick_cell_box(
    brick: Brick,
    unit_size: Tuple[int, int]
) -> Tuple[Tuple[int, int, int], Tuple[int, int, int]]:
    """
    Recover the lattice box covered by a brick.

    Args:
        brick: Brick in world units
        unit_size: (half_width, half_height) of one cell

    Returns:
        (min_cell, extent) in lattice units
    """
    uw, uh = unit_size
    x, y, z = brick.position
    w_half, l_half, h_half = brick.size
    cell = (
        (x - w_half) // (uw * 2),
        (y - l_half) // (uw * 2),
        (z - h_half) // (uh * 2),
    )
    extent = (w_half // uw, l_half // uw, h_half // uh)
    return cell, extent


def build_grid(bricks: Iterable[Brick], unit_size: Tuple[int, int]) -> VoxelGrid:
    """
    Rasterize bricks into a dense grid sized to their tight bounds.

    Overlapping bricks resolve by last write wins.

    Args:
        bricks: Placed bricks
        unit_size: (half_width, half_height) of one cell

    Returns:
        VoxelGrid whose min_bounds is the lattice minimum over all bricks
    """
    boxes = [(brick_cell_box(b, unit_size), b.color) for b in bricks]

    if not boxes:
        return VoxelGrid(0, 0, 0)

    mins = np.array([cell for (cell, _), _ in boxes], dtype=np.int64)
    maxs = mins + np.array([extent for (_, extent), _ in boxes], dtype=np.int64)

    min_bounds = mins.min(axis=0)
    max_bounds = maxs.max(axis=0)
    size = np.maximum(max_bounds - min_bounds, 0)

    grid = VoxelGrid(
        int(size[0]), int(size[1]), int(size[2]),
        min_bounds=(int(min_bounds[0]), int(min_bounds[1]), int(min_bounds[2])),
    )

    for ((cx, cy, cz), extent), color in boxes:
        pos = (cx - grid.min_bounds[0], cy - grid.min_bounds[1], cz - grid.min_bounds[2])
        grid.fill_box(pos, extent, color)

    return grid
