"""
Main Conversion Pipeline

This is the primary interface for turning a voxel scene into a
Brickadia save. It orchestrates:
1. Palette gamma correction
2. Voxel placement (one unit brick per voxel)
3. Optional simplification:
   a. Rasterize unit bricks into a dense grid
   b. Optional ramp generation on that grid
   c. Greedy box merging of what is left
   d. Re-basing merged bricks back to world coordinates
4. Owner bookkeeping

Example Usage:
    converter = BrickConverter(ConversionOptions(simplify=True))
    converter.load_vox("castle.vox")
    converter.convert()
    converter.export_json("castle.json")
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging
import time

from .color import correct_palette
from .errors import ConversionError
from .greedy_merge import GreedyMerger
from .grid import build_grid
from .options import BrickOutputMode, ConversionOptions
from .placement import emit_bricks
from .ramps import RampGeneratorFactory, RampifierConfig, rampify_grid
from .save import PUBLIC_USER, Brick, BrickAsset, SaveData, User, new_save
from .scene import VoxScene


logger = logging.getLogger(__name__)


@dataclass
class ConversionStats:
    """Counters collected during one conversion."""
    model_count: int = 0
    instance_count: int = 0
    voxel_count: int = 0
    color_count: int = 0
    unit_brick_count: int = 0
    grid_size: Tuple[int, int, int] = (0, 0, 0)
    ramp_count: int = 0
    merged_count: int = 0
    brick_count: int = 0
    elapsed: float = 0.0

    def as_dict(self) -> dict:
        return dict(self.__dict__)


def _simplify(
    bricks: List[Brick],
    options: ConversionOptions,
    brick_asset: int,
    ramp_asset_index: int,
    wedge_asset_index: int,
    owner_index: int,
    ramp_generator_factory: Optional[RampGeneratorFactory],
    stats: ConversionStats
) -> List[Brick]:
    """Replace unit bricks with ramps and merged boxes, in world coordinates."""
    logger.info("Simplifying BRS...")

    unit_size = options.unit_size
    grid = build_grid(bricks, unit_size)
    stats.grid_size = grid.shape

    simplified: List[Brick] = []

    if options.rampify:
        logger.info("Generating ramps...")
        config = RampifierConfig(
            ramp_index=ramp_asset_index,
            wedge_index=wedge_asset_index,
            owner_index=owner_index,
            unit_size=unit_size,
        )
        ramps = rampify_grid(grid, ramp_generator_factory, config)
        stats.ramp_count = len(ramps)
        simplified.extend(ramps)

    logger.info("Filling gaps...")
    merger = GreedyMerger(unit_size, options.merge_limit, brick_asset, owner_index)
    merged = merger.merge(grid)
    stats.merged_count = len(merged)
    simplified.extend(merged)

    uw, uh = unit_size
    mx, my, mz = grid.min_bounds
    offset = (mx * uw * 2, my * uw * 2, mz * uh * 2)

    logger.info(" - Gaps filled.")
    return [brick.translated(*offset) for brick in simplified]


def convert(
    scene: VoxScene,
    save: SaveData,
    options: ConversionOptions,
    ramp_generator_factory: Optional[RampGeneratorFactory] = None,
    brick_asset_index: int = BrickAsset.BRICK,
    microbrick_asset_index: int = BrickAsset.MICRO_BRICK,
    ramp_asset_index: int = BrickAsset.RAMP,
    wedge_asset_index: int = BrickAsset.WEDGE,
    owner_index: int = 1
) -> Tuple[SaveData, ConversionStats]:
    """
    Convert a voxel scene into bricks appended to a save.

    The input save is not modified; a new SaveData is returned only when
    the whole conversion succeeds.

    Args:
        scene: Palette, models and instances to convert
        save: Base save (see new_save); its colors and bricks are kept
            and the converted ones appended; converted brick colors index
            past the base colors
        options: Conversion settings
        ramp_generator_factory: Required when options.rampify is set
        brick_asset_index: Asset table index of PB_DefaultBrick
        microbrick_asset_index: Asset table index of PB_DefaultMicroBrick
        ramp_asset_index: Asset table index of PB_DefaultRamp
        wedge_asset_index: Asset table index of PB_DefaultWedge
        owner_index: Owner table index stamped on every brick

    Returns:
        (converted save, statistics)

    Raises:
        ConversionError: If the scene holds no usable data or the
            options cannot be honored
    """
    options.validate()

    if not scene.models:
        raise ConversionError("Voxel scene contains no models")
    if not scene.palette:
        raise ConversionError("Voxel scene has no palette")
    if options.rampify and ramp_generator_factory is None:
        raise ConversionError("Rampify requested but no ramp generator is configured")

    start_time = time.time()
    stats = ConversionStats(
        model_count=len(scene.models),
        instance_count=len(scene.instances),
        voxel_count=scene.voxel_count,
    )

    logger.info("Running vox2brs...")
    logger.info("Loading colors...")
    colors = correct_palette(scene.palette)
    stats.color_count = len(colors)
    logger.info(" - Done")

    brick_size = options.brick_size
    if options.mode == BrickOutputMode.MICRO_BRICK:
        brick_asset = microbrick_asset_index
    else:
        brick_asset = brick_asset_index

    logger.info("Converting voxels into bricks...")
    # Converted colors are appended after the base save's own
    bricks = emit_bricks(scene, brick_size, brick_asset, owner_index, color_offset=len(save.colors))
    stats.unit_brick_count = len(bricks)
    logger.info(" - Read %d models.", stats.instance_count)

    if options.simplify or options.rampify:
        bricks = _simplify(
            bricks,
            options,
            brick_asset,
            ramp_asset_index,
            wedge_asset_index,
            owner_index,
            ramp_generator_factory,
            stats,
        )

    all_bricks = list(save.bricks) + bricks
    owners = [replace(owner) for owner in save.brick_owners]
    if 1 <= owner_index <= len(owners):
        owned = sum(1 for b in all_bricks if b.owner_index == owner_index)
        owners[owner_index - 1].bricks = owned
    else:
        logger.warning("Owner index %d has no entry in the owner table", owner_index)

    result = replace(
        save,
        brick_owners=owners,
        brick_assets=list(save.brick_assets),
        colors=list(save.colors) + colors,
        bricks=all_bricks,
    )

    stats.brick_count = len(bricks)
    stats.elapsed = time.time() - start_time

    logger.info("Finished vox2brs in %.3fs.", stats.elapsed)
    logger.info(" - Created %d bricks.", stats.brick_count)

    return result, stats


def vox2brs(
    scene: VoxScene,
    save: SaveData,
    options: ConversionOptions,
    ramp_generator_factory: Optional[RampGeneratorFactory] = None,
    brick_asset_index: int = BrickAsset.BRICK,
    microbrick_asset_index: int = BrickAsset.MICRO_BRICK,
    ramp_asset_index: int = BrickAsset.RAMP,
    wedge_asset_index: int = BrickAsset.WEDGE,
    owner_index: int = 1
) -> SaveData:
    """Convert a voxel scene into a save. See convert() for arguments."""
    result, _ = convert(
        scene,
        save,
        options,
        ramp_generator_factory=ramp_generator_factory,
        brick_asset_index=brick_asset_index,
        microbrick_asset_index=microbrick_asset_index,
        ramp_asset_index=ramp_asset_index,
        wedge_asset_index=wedge_asset_index,
        owner_index=owner_index,
    )
    return result


class BrickConverter:
    """
    High-level interface for vox to brs conversion.

    Attributes:
        options: Conversion settings
        owner: Identity used as author, host and brick owner
        ramp_generator_factory: Factory used when rampifying
    """

    def __init__(
        self,
        options: Optional[ConversionOptions] = None,
        owner: User = PUBLIC_USER,
        ramp_generator_factory: Optional[RampGeneratorFactory] = None
    ):
        self.options = options or ConversionOptions()
        self.owner = owner
        self.ramp_generator_factory = ramp_generator_factory

        self._scene: Optional[VoxScene] = None
        self._save: Optional[SaveData] = None
        self._stats: Optional[ConversionStats] = None

    def load_vox(self, vox_path: Union[str, Path]) -> "BrickConverter":
        """
        Load a MagicaVoxel file.

        Returns:
            self for method chaining
        """
        from .vox_reader import load_vox

        self._scene = load_vox(vox_path)
        self._save = None
        self._stats = None
        return self

    def load_scene(self, scene: VoxScene) -> "BrickConverter":
        """
        Use an in-memory scene.

        Returns:
            self for method chaining
        """
        self._scene = scene
        self._save = None
        self._stats = None
        return self

    def convert(self) -> "BrickConverter":
        """
        Run the conversion.

        Returns:
            self for method chaining
        """
        if self._scene is None:
            raise RuntimeError("No scene loaded. Call load_vox() first.")

        self._save, self._stats = convert(
            self._scene,
            new_save(self.owner),
            self.options,
            ramp_generator_factory=self.ramp_generator_factory,
        )
        return self

    def export_json(self, output_path: Union[str, Path], indent: Optional[int] = None):
        """
        Write the converted save as JSON.

        Args:
            output_path: Output file path
            indent: JSON indentation (None = compact)
        """
        from .exporters import JsonSaveExporter

        if self._save is None:
            self.convert()

        JsonSaveExporter(indent=indent).export(self._save, output_path)

    @property
    def scene(self) -> Optional[VoxScene]:
        return self._scene

    @property
    def save(self) -> Optional[SaveData]:
        return self._save

    @property
    def brick_count(self) -> int:
        if self._save is None:
            return 0
        return self._save.brick_count

    def get_stats(self) -> dict:
        """
        Get conversion statistics.

        Returns:
            Dictionary with conversion statistics
        """
        if self._stats is None:
            return {"error": "Not converted"}
        return self._stats.as_dict()
