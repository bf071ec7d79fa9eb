"""
MagicaVoxel .vox Format Reader

The .vox format is a RIFF-style chunk-based binary format used by MagicaVoxel.

File Structure:
- Header: "VOX " (4 bytes) + version (4 bytes, int32)
- MAIN chunk (container)
  - PACK chunk (optional, legacy model count)
  - SIZE + XYZI chunk pairs, one per model
  - RGBA chunk: 256-color palette (optional)
  - nTRN / nGRP / nSHP chunks: scene graph (optional)

Each chunk is: id (4 bytes), content size (uint32), children size
(uint32), content, children.

Scene graph:
- nTRN: transform node, one child, frame attributes "_t" (translation
  "x y z") and "_r" (rotation byte)
- nGRP: group node, any number of children
- nSHP: shape node, references model ids

Every shape reached from the root becomes a ModelInstance. Files without
a scene graph place each model once at the origin.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging
import struct
import numpy as np

from .errors import VoxFormatError
from .rotation import decode_rotation, encode_rotation
from .save import Color
from .scene import ModelInstance, Voxel, VoxelModel, VoxScene


logger = logging.getLogger(__name__)

# VOX format constants
VOX_MAGIC = b'VOX '
PALETTE_SIZE = 256


def default_palette() -> List[Color]:
    """
    Build MagicaVoxel's default palette.

    Entry i is the color of voxel color index i + 1: the 6x6x6 color cube
    from white down (black omitted), then ten-step red, green, blue and
    gray ramps, then black.
    """
    steps = [0xFF, 0xCC, 0x99, 0x66, 0x33, 0x00]
    ramp = [0xEE, 0xDD, 0xBB, 0xAA, 0x88, 0x77, 0x55, 0x44, 0x22, 0x11]

    palette = [
        Color(r, g, b, 255)
        for r in steps
        for g in steps
        for b in steps
    ][:-1]

    palette += [Color(v, 0, 0, 255) for v in ramp]
    palette += [Color(0, v, 0, 255) for v in ramp]
    palette += [Color(0, 0, v, 255) for v in ramp]
    palette += [Color(v, v, v, 255) for v in ramp]
    palette.append(Color(0, 0, 0, 255))
    return palette


@dataclass
class _Transform:
    child_id: int
    translation: Tuple[int, int, int] = (0, 0, 0)
    rotation: Optional[int] = None


@dataclass
class _SceneGraph:
    transforms: Dict[int, _Transform] = field(default_factory=dict)
    groups: Dict[int, List[int]] = field(default_factory=dict)
    shapes: Dict[int, List[int]] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not (self.transforms or self.groups or self.shapes)

    def roots(self) -> List[int]:
        children = set()
        for transform in self.transforms.values():
            children.add(transform.child_id)
        for group in self.groups.values():
            children.update(group)

        nodes = set(self.transforms) | set(self.groups) | set(self.shapes)
        return sorted(n for n in nodes if n not in children)


class _ChunkReader:
    """Cursor over a bytes buffer with little-endian helpers."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def read(self, n: int) -> bytes:
        if self.offset + n > len(self.data):
            raise VoxFormatError("Unexpected end of file")
        chunk = self.data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def i32(self) -> int:
        return struct.unpack('<i', self.read(4))[0]

    def u32(self) -> int:
        return struct.unpack('<I', self.read(4))[0]

    def string(self) -> str:
        length = self.u32()
        return self.read(length).decode('utf-8', errors='replace')

    def dict(self) -> Dict[str, str]:
        result = {}
        for _ in range(self.u32()):
            key = self.string()
            result[key] = self.string()
        return result

    def chunk(self) -> Tuple[bytes, bytes, int]:
        """Read a chunk header and content, returning (id, content, children_size)."""
        chunk_id = self.read(4)
        content_size = self.u32()
        children_size = self.u32()
        content = self.read(content_size)
        return chunk_id, content, children_size


def _parse_translation(value: Optional[str]) -> Tuple[int, int, int]:
    if not value:
        return (0, 0, 0)
    parts = value.replace(",", " ").split()
    if len(parts) != 3:
        raise VoxFormatError(f"Bad translation attribute: {value!r}")
    try:
        return (int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError as e:
        raise VoxFormatError(f"Bad translation attribute: {value!r}") from e


def _parse_rotation(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip()) & 0xFF
    except ValueError as e:
        raise VoxFormatError(f"Bad rotation attribute: {value!r}") from e


def _parse_xyzi(content: bytes, size: Tuple[int, int, int]) -> VoxelModel:
    reader = _ChunkReader(content)
    num_voxels = reader.u32()
    raw = np.frombuffer(reader.read(num_voxels * 4), dtype=np.uint8).reshape(-1, 4)

    voxels = [
        Voxel(int(x), int(y), int(z), int(ci))
        for x, y, z, ci in raw
        if ci != 0
    ]
    return VoxelModel(size=size, voxels=voxels)


def _parse_palette(content: bytes) -> List[Color]:
    if len(content) < PALETTE_SIZE * 4:
        raise VoxFormatError(f"RGBA chunk too short: {len(content)} bytes")
    raw = np.frombuffer(content[:PALETTE_SIZE * 4], dtype=np.uint8).reshape(PALETTE_SIZE, 4)
    return [Color(int(r), int(g), int(b), int(a)) for r, g, b, a in raw]


def _parse_transform(content: bytes, graph: _SceneGraph):
    reader = _ChunkReader(content)
    node_id = reader.i32()
    reader.dict()  # node attributes (_name, _hidden)
    child_id = reader.i32()
    reader.i32()  # reserved, always -1
    reader.i32()  # layer id
    num_frames = reader.i32()

    translation = (0, 0, 0)
    rotation = None
    if num_frames > 0:
        frame = reader.dict()
        translation = _parse_translation(frame.get("_t"))
        rotation = _parse_rotation(frame.get("_r"))

    graph.transforms[node_id] = _Transform(child_id, translation, rotation)


def _parse_group(content: bytes, graph: _SceneGraph):
    reader = _ChunkReader(content)
    node_id = reader.i32()
    reader.dict()
    num_children = reader.i32()
    graph.groups[node_id] = [reader.i32() for _ in range(num_children)]


def _parse_shape(content: bytes, graph: _SceneGraph):
    reader = _ChunkReader(content)
    node_id = reader.i32()
    reader.dict()
    num_models = reader.i32()
    model_ids = []
    for _ in range(num_models):
        model_ids.append(reader.i32())
        reader.dict()  # model attributes (_f frame index)
    graph.shapes[node_id] = model_ids


def _collect_instances(graph: _SceneGraph, model_count: int) -> List[ModelInstance]:
    """Walk the scene graph and emit one instance per reachable shape model."""
    instances: List[ModelInstance] = []
    identity = np.eye(3, dtype=np.int32)

    def walk(node_id: int, translation: np.ndarray, matrix: np.ndarray, code: Optional[int], depth: int):
        if depth > 1024:
            raise VoxFormatError("Scene graph is cyclic or too deep")

        if node_id in graph.transforms:
            transform = graph.transforms[node_id]
            local = np.array(transform.translation, dtype=np.int64)
            world_translation = translation + matrix @ local
            if transform.rotation is not None:
                matrix = matrix @ decode_rotation(transform.rotation).matrix
                if code is None:
                    # A lone rotation keeps its raw code, malformed or not
                    code = transform.rotation
                else:
                    try:
                        code = encode_rotation(matrix)
                    except ValueError as e:
                        raise VoxFormatError(f"Cannot compose rotations at node {node_id}") from e
            walk(transform.child_id, world_translation, matrix, code, depth + 1)

        elif node_id in graph.groups:
            for child_id in graph.groups[node_id]:
                walk(child_id, translation, matrix, code, depth + 1)

        elif node_id in graph.shapes:
            for model_id in graph.shapes[node_id]:
                if not 0 <= model_id < model_count:
                    logger.warning("Shape node %d references missing model %d", node_id, model_id)
                    continue
                instances.append(ModelInstance(
                    model_id=model_id,
                    position=(int(translation[0]), int(translation[1]), int(translation[2])),
                    rotation=code,
                ))

    for root in graph.roots():
        walk(root, np.zeros(3, dtype=np.int64), identity, None, 0)

    return instances


def parse_vox(data: bytes) -> VoxScene:
    """
    Parse the contents of a .vox file.

    Args:
        data: Raw file bytes

    Returns:
        VoxScene with palette, models and instances
    """
    reader = _ChunkReader(data)

    magic = reader.read(4)
    if magic != VOX_MAGIC:
        raise VoxFormatError(f"Invalid VOX file: bad magic {magic!r}")
    version = reader.u32()

    main_id, _, main_children_size = reader.chunk()
    if main_id != b'MAIN':
        raise VoxFormatError(f"Expected MAIN chunk, got {main_id!r}")

    end_of_main = reader.offset + main_children_size
    if end_of_main > len(data):
        raise VoxFormatError("MAIN chunk extends past end of file")

    models: List[VoxelModel] = []
    palette: Optional[List[Color]] = None
    graph = _SceneGraph()
    pending_size: Optional[Tuple[int, int, int]] = None

    while reader.offset < end_of_main:
        chunk_id, content, children_size = reader.chunk()

        if chunk_id == b'SIZE':
            if len(content) < 12:
                raise VoxFormatError("SIZE chunk too short")
            pending_size = struct.unpack('<III', content[:12])

        elif chunk_id == b'XYZI':
            if pending_size is None:
                raise VoxFormatError("XYZI chunk without preceding SIZE chunk")
            models.append(_parse_xyzi(content, pending_size))
            pending_size = None

        elif chunk_id == b'RGBA':
            palette = _parse_palette(content)

        elif chunk_id == b'nTRN':
            _parse_transform(content, graph)

        elif chunk_id == b'nGRP':
            _parse_group(content, graph)

        elif chunk_id == b'nSHP':
            _parse_shape(content, graph)

        # Skip children bytes if any
        if children_size > 0:
            reader.read(children_size)

    if palette is None:
        palette = default_palette()

    if graph.empty:
        instances = [ModelInstance(model_id=i) for i in range(len(models))]
    else:
        instances = _collect_instances(graph, len(models))

    logger.debug(
        "Parsed VOX v%d: %d models, %d instances", version, len(models), len(instances)
    )

    return VoxScene(palette=palette, models=models, instances=instances)


def load_vox(file_path: Union[str, Path]) -> VoxScene:
    """
    Load a .vox file.

    Args:
        file_path: Path to .vox file

    Returns:
        VoxScene with palette, models and instances
    """
    file_path = Path(file_path)

    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise VoxFormatError(f"Cannot read {file_path}: {e}") from e

    return parse_vox(data)
