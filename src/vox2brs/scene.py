"""
Voxel Scene Data Structures

In-memory form of a voxel file:
- Voxel: local position and 1-based palette index
- VoxelModel: model dimensions and its voxels
- ModelInstance: one placement of a model in world space
- VoxScene: palette, models and instances

Palette index 0 is reserved for "no voxel" in the source format, so a
voxel with color_index i refers to palette[i - 1].
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

from .save import Color


class Voxel(NamedTuple):
    """A single colored unit cube inside a model."""
    x: int
    y: int
    z: int
    color_index: int  # 1-based

    @property
    def position(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)


@dataclass
class VoxelModel:
    """
    A voxel model.

    Attributes:
        size: Model dimensions (w, l, h)
        voxels: Occupied voxels in file order
    """

    size: Tuple[int, int, int]
    voxels: List[Voxel] = field(default_factory=list)

    @property
    def voxel_count(self) -> int:
        return len(self.voxels)


@dataclass
class ModelInstance:
    """
    One placed occurrence of a model.

    Attributes:
        model_id: Index of the model in VoxScene.models
        position: World-space lattice position
        rotation: Optional 8-bit rotation code (None = unrotated)
    """

    model_id: int
    position: Tuple[int, int, int] = (0, 0, 0)
    rotation: Optional[int] = None


@dataclass
class VoxScene:
    """Palette, models and instances read from a voxel file."""

    palette: List[Color] = field(default_factory=list)
    models: List[VoxelModel] = field(default_factory=list)
    instances: List[ModelInstance] = field(default_factory=list)

    def get_model(self, model_id: int) -> Optional[VoxelModel]:
        """Get a model by id, or None if the id is unknown."""
        if 0 <= model_id < len(self.models):
            return self.models[model_id]
        return None

    @property
    def voxel_count(self) -> int:
        """Total voxels over all instances (instanced models count once per instance)."""
        total = 0
        for instance in self.instances:
            model = self.get_model(instance.model_id)
            if model is not None:
                total += model.voxel_count
        return total

    @classmethod
    def single_model(
        cls,
        model: VoxelModel,
        palette: List[Color],
        position: Tuple[int, int, int] = (0, 0, 0),
        rotation: Optional[int] = None
    ) -> "VoxScene":
        """Build a scene holding one instance of one model."""
        return cls(
            palette=list(palette),
            models=[model],
            instances=[ModelInstance(0, position, rotation)],
        )
