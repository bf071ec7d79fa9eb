"""
Color Correction Module

MagicaVoxel palettes are authored in sRGB (perceptual) space while
Brickadia save colors are interpreted as linear. Without correction the
converted build looks washed out, so every palette channel is pushed
through a 2.2 gamma curve:

    out = int((c / 255) ** 2.2 * 255)

Alpha is forced to fully opaque; Brickadia bricks carry no per-color
transparency from the source palette.
"""

from typing import List, Sequence
import numpy as np
from numba import njit, prange

from .save import Color


DEFAULT_GAMMA = 2.2


@njit(cache=True)
def _gamma_component(c: int, gamma: float) -> int:
    """
    Apply the gamma curve to a single 8-bit channel.

    Args:
        c: Channel value (0-255)
        gamma: Exponent

    Returns:
        Corrected channel value, truncated toward zero
    """
    normalized = c / 255.0
    return int((normalized ** gamma) * 255.0)


@njit(cache=True, parallel=True)
def gamma_correct(colors: np.ndarray, gamma: float = DEFAULT_GAMMA) -> np.ndarray:
    """
    Gamma-correct a palette.

    Args:
        colors: Array of shape (N, 3) or (N, 4) with uint8 values

    Returns:
        Array of shape (N, 4), uint8, alpha set to 255
    """
    n = colors.shape[0]
    channels = colors.shape[1]
    result = np.empty((n, 4), dtype=np.uint8)

    for i in prange(n):
        for c in range(min(channels, 3)):
            result[i, c] = np.uint8(_gamma_component(colors[i, c], gamma))
        result[i, 3] = np.uint8(255)

    return result


def correct_palette(palette: Sequence[Color], gamma: float = DEFAULT_GAMMA) -> List[Color]:
    """
    Gamma-correct a palette of Color records.

    Output order matches input order; palette indices are positional.

    Args:
        palette: Source colors
        gamma: Exponent (default 2.2)

    Returns:
        Corrected colors
    """
    if len(palette) == 0:
        return []

    colors = np.array([tuple(c) for c in palette], dtype=np.uint8).reshape(-1, 4)
    corrected = gamma_correct(colors, gamma)
    return [Color(int(r), int(g), int(b), int(a)) for r, g, b, a in corrected]
