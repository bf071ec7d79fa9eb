"""
Rotation Mathematics for MagicaVoxel Transforms

MagicaVoxel stores a transform's rotation as a single byte encoding a
row-major signed permutation matrix:

    bit | value
    0-1 : r1_i, index of the non-zero entry in the first row
    2-3 : r2_i, index of the non-zero entry in the second row
    4   : sign of the first row    (0 = positive, 1 = negative)
    5   : sign of the second row
    6   : sign of the third row

The third row's non-zero entry is the single index not used by the first
two rows. Example, the identity as written by MagicaVoxel:

    r1_i = 0, r2_i = 1, no signs -> 0b0000100 = 4

    | 1 0 0 |
    | 0 1 0 |
    | 0 0 1 |

A code of 0 is treated as the identity as well. Codes naming the same
index for both rows are malformed and are not validated; the result is
whatever the literal decode yields.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple
import numpy as np


@dataclass(frozen=True)
class RotationMatrix:
    """
    Signed permutation matrix decoded from a rotation byte.

    Attributes:
        code: The 8-bit rotation code
        matrix: 3x3 int32 matrix, row-major
    """

    code: int
    matrix: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "matrix", _decode(self.code))

    def apply(self, position: Tuple[int, int, int]) -> Tuple[int, int, int]:
        """
        Rotate a single position.

        Args:
            position: (x, y, z) integer position

        Returns:
            Rotated (x, y, z)
        """
        x, y, z = position
        m = self.matrix
        return (
            int(m[0, 0] * x + m[0, 1] * y + m[0, 2] * z),
            int(m[1, 0] * x + m[1, 1] * y + m[1, 2] * z),
            int(m[2, 0] * x + m[2, 1] * y + m[2, 2] * z),
        )

    def apply_many(self, positions: np.ndarray) -> np.ndarray:
        """
        Rotate an (N, 3) array of positions.

        Returns:
            (N, 3) int array
        """
        return positions @ self.matrix.T

    @property
    def is_identity(self) -> bool:
        return bool(np.array_equal(self.matrix, np.eye(3, dtype=np.int32)))


def _decode(code: int) -> np.ndarray:
    """Build the 3x3 signed permutation matrix for a rotation code."""
    code &= 0xFF
    if code == 0:
        return np.eye(3, dtype=np.int32)

    r1_i = code & 0b11
    r2_i = (code >> 2) & 0b11

    r1_sign = -1 if (code >> 4) & 1 else 1
    r2_sign = -1 if (code >> 5) & 1 else 1
    r3_sign = -1 if (code >> 6) & 1 else 1

    m = np.zeros((3, 3), dtype=np.int32)
    m[2, :] = r3_sign

    # An index of 3 does not name an axis; leave that row empty.
    if r1_i < 3:
        m[0, r1_i] = r1_sign
        m[2, r1_i] = 0
    if r2_i < 3:
        m[1, r2_i] = r2_sign
        m[2, r2_i] = 0

    return m


def encode_rotation(matrix: np.ndarray) -> int:
    """
    Encode a signed permutation matrix as a rotation code.

    Args:
        matrix: 3x3 matrix with exactly one +1/-1 per row and column

    Returns:
        8-bit rotation code
    """
    m = np.asarray(matrix, dtype=np.int32)
    rows = []
    for i in range(3):
        nonzero = np.flatnonzero(m[i])
        if len(nonzero) != 1:
            raise ValueError(f"Not a signed permutation matrix:\n{m}")
        rows.append(int(nonzero[0]))
    if sorted(rows) != [0, 1, 2]:
        raise ValueError(f"Not a signed permutation matrix:\n{m}")

    code = rows[0] | (rows[1] << 2)
    for bit, row in ((4, 0), (5, 1), (6, 2)):
        if m[row, rows[row]] < 0:
            code |= 1 << bit
    return code


@lru_cache(maxsize=256)
def decode_rotation(code: int) -> RotationMatrix:
    """Decode (and cache) a rotation code."""
    return RotationMatrix(code & 0xFF)


def rotate(position: Tuple[int, int, int], code: int) -> Tuple[int, int, int]:
    """
    Rotate a position by a MagicaVoxel rotation code.

    Args:
        position: (x, y, z) integer position
        code: 8-bit rotation code

    Returns:
        Rotated (x, y, z)
    """
    return decode_rotation(code).apply(position)
