"""
Top-Down Save Preview

Renders a converted save as a flat image seen from above, for the web
interface and for quick sanity checks. Every brick is drawn as its
footprint rectangle; higher bricks cover lower ones. Ramps and wedges
are drawn as boxes.

Save colors are gamma-corrected for Brickadia, so the inverse curve is
applied before drawing to get back to display colors.
"""

from typing import Optional
import numpy as np
from PIL import Image

from .color import DEFAULT_GAMMA
from .save import SaveData


BACKGROUND = (32, 32, 32)
MAX_PREVIEW_SIZE = 1024


def _display_palette(save: SaveData) -> np.ndarray:
    if not save.colors:
        return np.zeros((1, 3), dtype=np.uint8)
    linear = np.array([c[:3] for c in save.colors], dtype=np.float64) / 255.0
    return (np.power(linear, 1.0 / DEFAULT_GAMMA) * 255.0 + 0.5).astype(np.uint8)


def render_top_view(
    save: SaveData,
    max_size: int = MAX_PREVIEW_SIZE,
    output_size: Optional[int] = None
) -> Image.Image:
    """
    Render the save's bricks from above.

    Args:
        save: Converted save
        max_size: Largest allowed image side before downsampling
        output_size: If given, the longer side is scaled to this many pixels

    Returns:
        RGB PIL image
    """
    if not save.bricks:
        return Image.new("RGB", (1, 1), BACKGROUND)

    positions = np.array([b.position for b in save.bricks], dtype=np.int64)
    sizes = np.array([b.size for b in save.bricks], dtype=np.int64)

    mins = positions - sizes
    maxs = positions + sizes
    x0, y0 = mins[:, 0].min(), mins[:, 1].min()
    x1, y1 = maxs[:, 0].max(), maxs[:, 1].max()

    # One pixel per smallest footprint, grown until the image fits
    pixel = max(1, int(sizes[:, :2].min()) * 2)
    while max(x1 - x0, y1 - y0) // pixel > max_size:
        pixel *= 2

    width = max(1, int(-(-(x1 - x0) // pixel)))
    height = max(1, int(-(-(y1 - y0) // pixel)))

    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:, :] = BACKGROUND

    palette = _display_palette(save)
    tops = maxs[:, 2]

    for i in np.argsort(tops, kind="stable"):
        color = save.bricks[i].color
        if not 0 <= color < len(palette):
            continue
        left = (mins[i, 0] - x0) // pixel
        right = max(left + 1, -(-(maxs[i, 0] - x0) // pixel))
        top = (mins[i, 1] - y0) // pixel
        bottom = max(top + 1, -(-(maxs[i, 1] - y0) // pixel))
        image[top:bottom, left:right] = palette[color]

    result = Image.fromarray(image)

    if output_size is not None:
        scale = output_size / max(width, height)
        new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
        result = result.resize(new_size, Image.Resampling.NEAREST)

    return result
