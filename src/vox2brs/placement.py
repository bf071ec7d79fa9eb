"""
Voxel Placement

Turns every voxel of every model instance into one unit brick:

1. Center the voxel on its model: offset = position - size // 2
2. Rotate the offset by the instance rotation, if any
3. Translate by the instance position
4. Scale the lattice coordinate to a brick center

MagicaVoxel and Brickadia disagree on handedness, so the Y axis is
inverted when scaling. Everything after placement works in Brickadia
space and never flips Y again.
"""

from typing import Iterator, List, Tuple
import logging
import numpy as np

from .rotation import decode_rotation
from .save import Brick, BrickAsset
from .scene import ModelInstance, VoxelModel, VoxScene


logger = logging.getLogger(__name__)


def instance_lattice_positions(model: VoxelModel, instance: ModelInstance) -> np.ndarray:
    """
    Compute world lattice positions for every voxel of an instance.

    Args:
        model: The instanced model
        instance: Placement of the model

    Returns:
        (N, 3) int64 array in voxel order
    """
    if not model.voxels:
        return np.zeros((0, 3), dtype=np.int64)

    local = np.array([v.position for v in model.voxels], dtype=np.int64)
    half_size = np.array(model.size, dtype=np.int64) // 2
    offsets = local - half_size

    if instance.rotation is not None:
        offsets = decode_rotation(instance.rotation).apply_many(offsets).astype(np.int64)

    return offsets + np.array(instance.position, dtype=np.int64)


def lattice_to_brick_position(
    lattice: Tuple[int, int, int],
    brick_size: Tuple[int, int]
) -> Tuple[int, int, int]:
    """
    Map a lattice coordinate to a brick center, inverting Y.

    Args:
        lattice: (x, y, z) lattice coordinate
        brick_size: (half_width, half_height)

    Returns:
        Brick center position
    """
    x, y, z = lattice
    w, h = brick_size
    return (
        x * w * 2 + w,
        -y * w * 2 + w,
        z * h * 2 + h,
    )


def iter_instances(scene: VoxScene) -> Iterator[Tuple[ModelInstance, VoxelModel]]:
    """Yield (instance, model) pairs, skipping instances of unknown models."""
    for instance in scene.instances:
        model = scene.get_model(instance.model_id)
        if model is None:
            logger.warning("Instance references unknown model %d, skipping", instance.model_id)
            continue
        yield instance, model


def emit_bricks(
    scene: VoxScene,
    brick_size: Tuple[int, int],
    asset_index: int = BrickAsset.BRICK,
    owner_index: int = 1,
    color_offset: int = 0
) -> List[Brick]:
    """
    Emit one unit brick per voxel.

    Args:
        scene: Scene to convert
        brick_size: (half_width, half_height) of a unit brick
        asset_index: Asset table index for every emitted brick
        owner_index: Owner table index for every emitted brick
        color_offset: Save color table position of the scene's first palette entry

    Returns:
        Bricks in instance order, then voxel order
    """
    w, h = brick_size
    bricks: List[Brick] = []

    for instance, model in iter_instances(scene):
        lattice = instance_lattice_positions(model, instance)

        for voxel, (x, y, z) in zip(model.voxels, lattice.tolist()):
            bricks.append(Brick(
                position=lattice_to_brick_position((x, y, z), brick_size),
                size=(w, w, h),
                color=voxel.color_index - 1 + color_offset,
                asset_name_index=asset_index,
                owner_index=owner_index,
            ))

        if instance.rotation is not None:
            logger.debug("Model %d rotation: %s", instance.model_id, format(instance.rotation, "#010b"))

    return bricks
