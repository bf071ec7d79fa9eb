"""
vox2brs
=======

Convert MagicaVoxel models into Brickadia saves.

Every voxel becomes a brick; optionally, same-colored neighbours are
merged into larger bricks with a deterministic greedy pass, and sloped
surfaces can be handed to an external ramp generator first.

Key Features:
- Gamma-corrected palette conversion
- Instanced and rotated models from the .vox scene graph
- Brick, plate and micro-brick output modes
- Greedy box merging with Numba JIT compilation
- Pluggable ramp generation

Example Usage:
    from vox2brs import BrickConverter, ConversionOptions

    converter = BrickConverter(ConversionOptions(simplify=True))
    converter.load_vox("model.vox")
    converter.convert()
    converter.export_json("model.json")
"""

__version__ = "0.1.0"

from .converter import BrickConverter, ConversionStats, convert, vox2brs
from .options import BrickOutputMode, ConversionOptions
from .save import Brick, BrickAsset, Color, SaveData, User, PUBLIC_USER, new_save
from .scene import ModelInstance, Voxel, VoxelModel, VoxScene
from .grid import VoxelGrid, build_grid
from .greedy_merge import GreedyMerger
from .rotation import RotationMatrix, decode_rotation, rotate
from .color import correct_palette, gamma_correct
from .vox_reader import load_vox, parse_vox
from .errors import ConversionError, Vox2BrsError, VoxFormatError

__all__ = [
    "BrickConverter",
    "ConversionStats",
    "convert",
    "vox2brs",
    "BrickOutputMode",
    "ConversionOptions",
    "Brick",
    "BrickAsset",
    "Color",
    "SaveData",
    "User",
    "PUBLIC_USER",
    "new_save",
    "ModelInstance",
    "Voxel",
    "VoxelModel",
    "VoxScene",
    "VoxelGrid",
    "build_grid",
    "GreedyMerger",
    "RotationMatrix",
    "decode_rotation",
    "rotate",
    "correct_palette",
    "gamma_correct",
    "load_vox",
    "parse_vox",
    "ConversionError",
    "Vox2BrsError",
    "VoxFormatError",
]
