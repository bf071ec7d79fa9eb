"""
Unit tests for the conversion pipeline.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vox2brs import (
    Brick, BrickAsset, BrickOutputMode, Color, ConversionError, ConversionOptions,
    ModelInstance, Voxel, VoxelModel, VoxScene, convert, new_save, vox2brs,
)
from vox2brs.color import correct_palette, gamma_correct
from vox2brs.greedy_merge import GreedyMerger
from vox2brs.grid import EMPTY, VoxelGrid, build_grid
from vox2brs.placement import emit_bricks
from vox2brs.ramps import RampifierConfig, load_ramp_generator
from vox2brs.rotation import decode_rotation, encode_rotation, rotate


PALETTE = [Color(255, 0, 0, 255), Color(0, 255, 0, 255), Color(0, 0, 255, 255)]


def make_scene(size, voxels, instances=None):
    """One model, by default instanced once at the origin."""
    model = VoxelModel(size=size, voxels=[Voxel(*v) for v in voxels])
    scene = VoxScene(palette=list(PALETTE), models=[model])
    scene.instances = instances if instances is not None else [ModelInstance(0)]
    return scene


def boxes_to_cells(boxes):
    """Expand merged boxes to {value: set of cells}, failing on overlap."""
    seen = set()
    cells = {}
    for x, y, z, w, l, h, value in boxes.tolist():
        for i in range(w):
            for j in range(l):
                for k in range(h):
                    cell = (x + i, y + j, z + k)
                    assert cell not in seen, f"cell {cell} covered twice"
                    seen.add(cell)
                    cells.setdefault(value, set()).add(cell)
    return cells


class FakeRampGenerator:
    """Claims every bottom-layer cell of value 0 as a floor ramp."""

    instances = []

    def __init__(self, grid_size, cells, config):
        self.grid_size = grid_size
        self.cells = cells
        self.config = config
        self.claimed = []
        FakeRampGenerator.instances.append(self)

    def generate_ramps(self, floor):
        if not floor:
            return []
        sx, sy, _ = self.grid_size
        ramps = []
        for y in range(sy):
            for x in range(sx):
                index = x + y * sx
                if self.cells[index] == 0:
                    self.claimed.append(index)
                    uw, uh = self.config.unit_size
                    ramps.append(Brick(
                        position=(x * uw * 2 + uw, y * uw * 2 + uw, uh),
                        size=(uw, uw, uh),
                        color=0,
                        asset_name_index=self.config.ramp_index,
                        owner_index=self.config.owner_index,
                    ))
        return ramps

    def remove_occupied_voxels(self):
        for index in self.claimed:
            self.cells[index] = EMPTY

    def move_grid(self):
        cells, self.cells = self.cells, None
        return cells


class NoRampGenerator(FakeRampGenerator):
    """Claims nothing."""

    def generate_ramps(self, floor):
        return []


class TestColorCorrection(unittest.TestCase):
    """Tests for palette gamma correction."""

    def test_mid_gray(self):
        """Test that mid gray maps to about 56."""
        corrected = correct_palette([Color(128, 128, 128, 255)])
        for channel in corrected[0][:3]:
            assert abs(channel - 56) <= 1

    def test_extremes_and_alpha(self):
        """Test black, white and forced alpha."""
        corrected = correct_palette([Color(0, 0, 0, 0), Color(255, 255, 255, 17)])
        assert corrected[0] == Color(0, 0, 0, 255)
        assert corrected[1] == Color(255, 255, 255, 255)

    def test_order_preserved(self):
        """Test that palette positions do not move."""
        corrected = correct_palette(PALETTE)
        assert [c.r for c in corrected] == [255, 0, 0]
        assert [c.g for c in corrected] == [0, 255, 0]
        assert [c.b for c in corrected] == [0, 0, 255]

    def test_rgb_array_input(self):
        """Test three-channel arrays get an opaque alpha column."""
        colors = np.array([[64, 128, 192]], dtype=np.uint8)
        result = gamma_correct(colors)
        assert result.shape == (1, 4)
        assert result[0, 3] == 255
        assert result[0, 0] < result[0, 1] < result[0, 2]

    def test_empty_palette(self):
        assert correct_palette([]) == []


class TestRotation(unittest.TestCase):
    """Tests for rotation byte decoding."""

    def test_zero_is_identity(self):
        """Test that code 0 leaves positions unchanged."""
        for p in [(0, 0, 0), (1, 2, 3), (-4, 5, -6), (7, -8, 9)]:
            assert rotate(p, 0) == p

    def test_magicavoxel_identity(self):
        """Test the identity code MagicaVoxel writes."""
        assert rotate((1, 2, 3), 4) == (1, 2, 3)
        assert decode_rotation(4).is_identity

    def test_axis_swap(self):
        """Test r1 = y, r2 = x swaps the first two axes."""
        assert rotate((1, 2, 3), 1) == (2, 1, 3)

    def test_sign_flips(self):
        """Test each sign bit negates its row."""
        assert rotate((1, 2, 3), 4 | 0b0010000) == (-1, 2, 3)
        assert rotate((1, 2, 3), 4 | 0b0100000) == (1, -2, 3)
        assert rotate((1, 2, 3), 4 | 0b1000000) == (1, 2, -3)

    def test_third_axis_is_implicit(self):
        """Test the third row takes the axis not used by the first two."""
        # r1 = z, r2 = x -> third row is y
        code = 2 | (0 << 2)
        assert rotate((1, 2, 3), code) == (3, 1, 2)

    def test_apply_many_matches_apply(self):
        rotation = decode_rotation(2 | (1 << 2) | 0b0100000)
        points = np.array([[1, 2, 3], [-1, 0, 4]])
        expected = [rotation.apply(tuple(p)) for p in points.tolist()]
        assert [tuple(p) for p in rotation.apply_many(points).tolist()] == expected

    def test_encode_inverts_decode(self):
        for code in (4, 1, 2 | (1 << 2), 9 | 0b1110000):
            assert encode_rotation(decode_rotation(code).matrix) == code

    def test_encode_rejects_non_permutation(self):
        with self.assertRaises(ValueError):
            encode_rotation(np.ones((3, 3), dtype=np.int32))


class TestPlacement(unittest.TestCase):
    """Tests for per-voxel brick emission."""

    def test_single_voxel_brick(self):
        """Test the single voxel scenario."""
        scene = make_scene((1, 1, 1), [(0, 0, 0, 1)])
        bricks = emit_bricks(scene, (5, 6))

        assert len(bricks) == 1
        assert bricks[0].size == (5, 5, 6)
        assert bricks[0].position == (5, 5, 6)
        assert bricks[0].color == 0
        assert bricks[0].asset_name_index == BrickAsset.BRICK
        assert bricks[0].owner_index == 1

    def test_model_is_centered(self):
        """Test voxels are offset by half the model size."""
        scene = make_scene((2, 2, 2), [(0, 0, 0, 2)])
        brick = emit_bricks(scene, (5, 6))[0]

        # lattice (-1, -1, -1); Y is inverted
        assert brick.position == (-5, 15, -6)
        assert brick.color == 1

    def test_instance_position_and_rotation(self):
        """Test rotated instances are offset after rotation."""
        scene = make_scene(
            (3, 1, 1),
            [(0, 0, 0, 1), (1, 0, 0, 1), (2, 0, 0, 1)],
            [ModelInstance(0, position=(2, 0, 0), rotation=1)],
        )
        bricks = emit_bricks(scene, (5, 2))

        # offsets x = -1, 0, 1 become y = -1, 0, 1 after the swap
        assert [b.position for b in bricks] == [(25, 15, 2), (25, 5, 2), (25, -5, 2)]

    def test_voxel_count_preserved(self):
        """Test one brick per voxel per instance."""
        small = VoxelModel((1, 1, 1), [Voxel(0, 0, 0, 1)])
        large = VoxelModel((2, 2, 1), [Voxel(0, 0, 0, 1), Voxel(1, 0, 0, 2), Voxel(1, 1, 0, 3)])
        scene = VoxScene(
            palette=list(PALETTE),
            models=[small, large],
            instances=[
                ModelInstance(0),
                ModelInstance(1, (5, 5, 0)),
                ModelInstance(1, (-5, 0, 0), 1),
            ],
        )

        bricks = emit_bricks(scene, (5, 6))
        assert len(bricks) == scene.voxel_count == 7

    def test_unknown_model_skipped(self):
        scene = make_scene((1, 1, 1), [(0, 0, 0, 1)], [ModelInstance(3), ModelInstance(0)])
        assert len(emit_bricks(scene, (5, 6))) == 1

    def test_mode_sizes(self):
        """Test half-extents for each output mode."""
        assert ConversionOptions(mode=BrickOutputMode.BRICK).brick_size == (5, 18)
        assert ConversionOptions(mode=BrickOutputMode.BRICK, width=1, height=1).brick_size == (5, 6)
        assert ConversionOptions(mode=BrickOutputMode.PLATE).brick_size == (5, 2)
        assert ConversionOptions(mode=BrickOutputMode.PLATE, width=2, height=3).brick_size == (10, 6)
        assert ConversionOptions(mode=BrickOutputMode.MICRO_BRICK).brick_size == (1, 1)
        assert ConversionOptions(mode=BrickOutputMode.MICRO_BRICK, width=4).brick_size == (4, 1)


class TestVoxelGrid(unittest.TestCase):
    """Tests for grid building."""

    def test_create_grid(self):
        grid = VoxelGrid(2, 3, 4)
        assert grid.shape == (2, 3, 4)
        assert grid.count_occupied() == 0
        assert grid.cells.size == 24

    def test_flat_index(self):
        grid = VoxelGrid(2, 3, 4)
        grid.set(1, 2, 3, 7)
        assert grid.cells[1 + 2 * 2 + 3 * 2 * 3] == 7
        assert grid.get(1, 2, 3) == 7
        assert grid.get(0, 0, 0) is None
        assert grid.get(5, 0, 0) is None

    def test_build_from_bricks(self):
        """Test tight bounds and cell contents."""
        bricks = [
            Brick(position=(5, 5, 6), size=(5, 5, 6), color=0),
            Brick(position=(15, -5, 6), size=(5, 5, 6), color=2),
        ]
        grid = build_grid(bricks, (5, 6))

        assert grid.shape == (2, 2, 1)
        assert grid.min_bounds == (0, -1, 0)
        assert grid.get(0, 1, 0) == 0
        assert grid.get(1, 0, 0) == 2
        assert grid.count_occupied() == 2

    def test_large_brick_fills_cells(self):
        """Test bricks larger than one unit cover every cell."""
        grid = build_grid([Brick(position=(10, 5, 12), size=(10, 5, 12), color=1)], (5, 6))
        assert grid.shape == (2, 1, 2)
        assert grid.count_occupied() == 4

    def test_overlap_last_write_wins(self):
        bricks = [
            Brick(position=(5, 5, 6), size=(5, 5, 6), color=0),
            Brick(position=(5, 5, 6), size=(5, 5, 6), color=1),
        ]
        grid = build_grid(bricks, (5, 6))
        assert grid.get(0, 0, 0) == 1

    def test_empty(self):
        grid = build_grid([], (5, 6))
        assert grid.shape == (0, 0, 0)
        assert grid.count_occupied() == 0

    def test_take_and_restore_cells(self):
        grid = VoxelGrid(1, 1, 2)
        cells = grid.take_cells()
        with self.assertRaises(RuntimeError):
            grid.count_occupied()
        cells[1] = 3
        grid.restore_cells(cells)
        assert grid.get(0, 0, 1) == 3
        with self.assertRaises(ValueError):
            grid.restore_cells(np.zeros(5))


class TestGreedyMerger(unittest.TestCase):
    """Tests for greedy box merging."""

    def random_grid(self, seed, shape=(6, 5, 7), colors=3):
        rng = np.random.default_rng(seed)
        values = rng.integers(-1, colors, size=shape[0] * shape[1] * shape[2])
        # Bias toward runs so merging has work to do
        values = np.repeat(values[::2], 2)[:values.size]
        return VoxelGrid(*shape, _cells=values.astype(np.int16))

    def test_solid_block_single_box(self):
        """Test a uniform block becomes one box."""
        grid = VoxelGrid(3, 2, 4)
        grid.fill_box((0, 0, 0), (3, 2, 4), 5)

        boxes = GreedyMerger((5, 6)).merge_boxes(grid)
        assert boxes.tolist() == [[0, 0, 0, 3, 2, 4, 5]]
        assert grid.count_occupied() == 0

    def test_height_grows_first(self):
        """Test extents are grown height, then width, then length."""
        grid = VoxelGrid(2, 1, 2)
        grid.fill_box((0, 0, 0), (2, 1, 1), 0)
        grid.set(0, 0, 1, 0)

        boxes = GreedyMerger((5, 6)).merge_boxes(grid)
        # (0,0,0) grows to height 2; (1,0,1) is empty so width stays 1
        assert boxes.tolist() == [[0, 0, 0, 1, 1, 2, 0], [1, 0, 0, 1, 1, 1, 0]]

    def test_colors_not_merged(self):
        grid = VoxelGrid(2, 1, 1)
        grid.set(0, 0, 0, 0)
        grid.set(1, 0, 0, 1)
        assert len(GreedyMerger((5, 6)).merge_boxes(grid)) == 2

    def test_volume_and_coverage_preserved(self):
        """Test boxes are disjoint and cover exactly the occupied cells."""
        for seed in range(5):
            grid = self.random_grid(seed)
            expected = grid.occupied_by_color()
            occupied = grid.count_occupied()

            boxes = GreedyMerger((5, 6)).merge_boxes(grid)

            volume = int((boxes[:, 3] * boxes[:, 4] * boxes[:, 5]).sum()) if len(boxes) else 0
            assert volume == occupied
            assert boxes_to_cells(boxes) == expected

    def test_deterministic(self):
        """Test repeated merges of the same contents match exactly."""
        first = self.random_grid(42)
        second = first.copy()

        a = GreedyMerger((5, 6)).merge(first)
        b = GreedyMerger((5, 6)).merge(second)
        assert a == b

    def test_merge_limit(self):
        """Test extents are capped at the merge limit."""
        grid = VoxelGrid(1, 1, 100)
        grid.fill_box((0, 0, 0), (1, 1, 100), 0)
        boxes = GreedyMerger((5, 6)).merge_boxes(grid)
        assert boxes[:, 5].tolist() == [64, 36]

        grid = VoxelGrid(5, 1, 1)
        grid.fill_box((0, 0, 0), (5, 1, 1), 0)
        boxes = GreedyMerger((5, 6), limit=2).merge_boxes(grid)
        assert boxes[:, 3].tolist() == [2, 2, 1]

    def test_brick_geometry(self):
        """Test merged boxes become centered bricks."""
        grid = VoxelGrid(4, 4, 4)
        grid.fill_box((1, 2, 3), (2, 1, 1), 4)

        bricks = GreedyMerger((5, 6), asset_index=1, owner_index=2).merge(grid)
        assert len(bricks) == 1
        brick = bricks[0]
        assert brick.size == (10, 5, 6)
        assert brick.position == (20, 25, 42)
        assert brick.color == 4
        assert brick.asset_name_index == 1
        assert brick.owner_index == 2

    def test_empty_grid(self):
        assert GreedyMerger((5, 6)).merge(build_grid([], (5, 6))) == []

    def test_sparse_large_grid(self):
        """Test a mostly empty grid yields one box per isolated cell."""
        grid = VoxelGrid(256, 256, 256)
        grid.set(0, 0, 0, 1)
        grid.set(255, 255, 255, 2)

        boxes = GreedyMerger((5, 6)).merge_boxes(grid)
        assert boxes.tolist() == [[0, 0, 0, 1, 1, 1, 1], [255, 255, 255, 1, 1, 1, 2]]

    def test_far_apart_voxels_convert(self):
        """Test simplifying two voxels at opposite corners of a large model."""
        scene = make_scene((256, 256, 256), [(0, 0, 0, 1), (255, 255, 255, 2)])
        save, stats = convert(scene, new_save(), ConversionOptions(width=1, height=1, simplify=True))

        assert stats.grid_size == (256, 256, 256)
        assert sorted(b.color for b in save.bricks) == [0, 1]
        assert all(b.size == (5, 5, 6) for b in save.bricks)

    def test_invalid_limit(self):
        with self.assertRaises(ValueError):
            GreedyMerger((5, 6), limit=0)


class TestRampHandoff(unittest.TestCase):
    """Tests for the ramp generator contract."""

    def setUp(self):
        FakeRampGenerator.instances = []

    def test_claimed_cells_not_merged(self):
        """Test ramps replace claimed cells and the rest is merged."""
        # 2x1x2 plate model: bottom layer color index 1, top layer index 2
        scene = make_scene(
            (2, 1, 2),
            [(0, 0, 0, 1), (1, 0, 0, 1), (0, 0, 1, 2), (1, 0, 1, 2)],
        )
        options = ConversionOptions(mode=BrickOutputMode.PLATE, rampify=True)
        save, stats = convert(scene, new_save(), options, ramp_generator_factory=FakeRampGenerator)

        generator = FakeRampGenerator.instances[0]
        assert generator.grid_size == (2, 1, 2)
        assert generator.config.ramp_index == BrickAsset.RAMP
        assert generator.config.wedge_index == BrickAsset.WEDGE
        assert generator.config.unit_size == (5, 2)

        ramps = [b for b in save.bricks if b.asset_name_index == BrickAsset.RAMP]
        merged = [b for b in save.bricks if b.asset_name_index == BrickAsset.BRICK]
        assert len(ramps) == stats.ramp_count == 2
        assert len(merged) == 1
        assert merged[0].size == (10, 5, 2)
        assert merged[0].color == 1

        # Volume: 4 occupied cells, 2 claimed
        merged_cells = sum((w // 5) * (l // 5) * (h // 2) for w, l, h in (b.size for b in merged))
        assert merged_cells == 2

        # Ramps are re-based like merged bricks: lattice x starts at -1
        assert sorted(b.position[0] for b in ramps) == [-5, 5]
        assert merged[0].position == (0, 5, 2)

    def test_noop_generator_reproduces_units(self):
        """Test rampify with nothing claimed matches the unit brick."""
        scene = make_scene((1, 1, 1), [(0, 0, 0, 1)])
        options = ConversionOptions(rampify=True).normalized()
        save = vox2brs(scene, new_save(), options, ramp_generator_factory=NoRampGenerator)

        assert len(save.bricks) == 1
        assert save.bricks[0].size == (5, 5, 18)
        assert save.bricks[0].position == (5, 5, 18)

    def test_rampify_requires_generator(self):
        scene = make_scene((1, 1, 1), [(0, 0, 0, 1)])
        with self.assertRaises(ConversionError):
            convert(scene, new_save(), ConversionOptions(rampify=True))

    def test_load_ramp_generator(self):
        assert load_ramp_generator("vox2brs.ramps:RampifierConfig") is RampifierConfig
        for spec in ("vox2brs.ramps", "no_such_module_xyz:f", "vox2brs.ramps:missing"):
            with self.assertRaises(ConversionError):
                load_ramp_generator(spec)


class TestConverter(unittest.TestCase):
    """Integration tests for the conversion entry point."""

    def test_single_voxel_end_to_end(self):
        """Test one voxel converts to one 1x1 brick."""
        scene = make_scene((1, 1, 1), [(0, 0, 0, 1)])
        options = ConversionOptions(mode=BrickOutputMode.BRICK, width=1, height=1)
        save = vox2brs(scene, new_save(), options)

        assert len(save.bricks) == 1
        assert save.bricks[0].size == (5, 5, 6)
        assert save.bricks[0].position == (5, 5, 6)
        assert save.bricks[0].color == 0

    def test_adjacent_voxels_merge(self):
        """Test two neighbours along each axis merge into one brick."""
        options = ConversionOptions(width=1, height=1, simplify=True)
        cases = [
            ((2, 1, 1), [(0, 0, 0, 1), (1, 0, 0, 1)], (10, 5, 6), (0, 5, 6)),
            ((1, 2, 1), [(0, 0, 0, 1), (0, 1, 0, 1)], (5, 10, 6), (5, 10, 6)),
            ((1, 1, 2), [(0, 0, 0, 1), (0, 0, 1, 1)], (5, 5, 12), (5, 5, 0)),
        ]
        for size, voxels, expected_size, expected_position in cases:
            save = vox2brs(make_scene(size, voxels), new_save(), options)
            assert len(save.bricks) == 1
            assert save.bricks[0].size == expected_size
            assert save.bricks[0].position == expected_position

    def test_simplify_preserves_volume(self):
        """Test merged volume equals the voxel count."""
        rng = np.random.default_rng(7)
        voxels = [
            (x, y, z, int(rng.integers(1, 3)))
            for x in range(4) for y in range(3) for z in range(5)
            if rng.random() < 0.7
        ]
        scene = make_scene((4, 3, 5), voxels)
        options = ConversionOptions(mode=BrickOutputMode.PLATE, simplify=True)
        save = vox2brs(scene, new_save(), options)

        w, h = options.brick_size
        volume = sum((bw // w) * (bl // w) * (bh // h) for bw, bl, bh in (b.size for b in save.bricks))
        assert volume == len(voxels)
        assert len(save.bricks) <= len(voxels)

    def test_micro_brick_asset(self):
        scene = make_scene((2, 1, 1), [(0, 0, 0, 1), (1, 0, 0, 1)])
        options = ConversionOptions(mode=BrickOutputMode.MICRO_BRICK, simplify=True)
        save = vox2brs(scene, new_save(), options)
        assert [b.asset_name_index for b in save.bricks] == [BrickAsset.MICRO_BRICK]
        assert save.bricks[0].size == (2, 1, 1)

    def test_save_structure(self):
        """Test headers, colors and owner counts."""
        scene = make_scene((2, 1, 1), [(0, 0, 0, 1), (1, 0, 0, 3)])
        base = new_save()
        save = vox2brs(scene, base, ConversionOptions())

        assert save.description == "Converted .vox file."
        assert save.brick_assets == [
            "PB_DefaultBrick", "PB_DefaultMicroBrick", "PB_DefaultRamp", "PB_DefaultWedge",
        ]
        assert save.author == save.host == save.brick_owners[0].user
        assert save.brick_owners[0].bricks == 2
        assert len(save.colors) == len(PALETTE)
        assert all(c.a == 255 for c in save.colors)
        assert [b.color for b in save.bricks] == [0, 2]

        # The base save is left untouched
        assert base.bricks == [] and base.colors == []
        assert base.brick_owners[0].bricks == 0

    def test_base_save_colors_kept(self):
        """Test converted bricks index past colors already in the base save."""
        base = new_save()
        base.colors.append(Color(1, 2, 3, 255))
        scene = make_scene((2, 1, 1), [(0, 0, 0, 1), (1, 0, 0, 3)])

        save = vox2brs(scene, base, ConversionOptions(simplify=True))

        assert save.colors[0] == Color(1, 2, 3, 255)
        assert save.colors[1:] == correct_palette(PALETTE)
        assert sorted(b.color for b in save.bricks) == [1, 3]
        assert save.colors[save.bricks[0].color] != Color(1, 2, 3, 255)
        assert base.colors == [Color(1, 2, 3, 255)]

    def test_stats(self):
        scene = make_scene((2, 1, 1), [(0, 0, 0, 1), (1, 0, 0, 1)])
        _, stats = convert(scene, new_save(), ConversionOptions(simplify=True))
        assert stats.voxel_count == 2
        assert stats.unit_brick_count == 2
        assert stats.merged_count == 1
        assert stats.brick_count == 1
        assert stats.grid_size == (2, 1, 1)

    def test_no_models(self):
        with self.assertRaises(ConversionError):
            vox2brs(VoxScene(palette=list(PALETTE)), new_save(), ConversionOptions())

    def test_invalid_options(self):
        scene = make_scene((1, 1, 1), [(0, 0, 0, 1)])
        with self.assertRaises(ConversionError):
            vox2brs(scene, new_save(), ConversionOptions(width=0))
        with self.assertRaises(ConversionError):
            vox2brs(
                scene, new_save(),
                ConversionOptions(mode=BrickOutputMode.MICRO_BRICK, rampify=True),
                ramp_generator_factory=NoRampGenerator,
            )

    def test_normalized_options(self):
        options = ConversionOptions(mode=BrickOutputMode.MICRO_BRICK, rampify=True).normalized()
        assert options.mode == BrickOutputMode.BRICK
        assert options.simplify
        assert options.unit_size == (5, 2)


if __name__ == "__main__":
    unittest.main(verbosity=2)
