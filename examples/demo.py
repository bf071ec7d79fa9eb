#!/usr/bin/env python3
"""
vox2brs Demo Script

This script demonstrates the full conversion pipeline by:
1. Creating synthetic voxel scenes (no .vox files needed)
2. Converting them in every output mode, with and without merging
3. Exporting saves and top-down previews
4. Printing statistics and comparisons

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vox2brs import (
    BrickOutputMode, Color, ConversionOptions, GreedyMerger, ModelInstance,
    Voxel, VoxelGrid, VoxelModel, VoxScene, convert, new_save,
)
from vox2brs.exporters import JsonSaveExporter
from vox2brs.logging_config import setup_logging
from vox2brs.preview import render_top_view


PALETTE = [
    Color(100, 150, 200, 255),  # 1: blue
    Color(101, 67, 33, 255),    # 2: brown
    Color(34, 139, 34, 255),    # 3: green
    Color(220, 180, 150, 255),  # 4: skin
]


def create_sphere(size: int = 16) -> VoxScene:
    """A solid single-colored sphere."""
    center = (size - 1) / 2
    radius = size / 2

    voxels = []
    for x in range(size):
        for y in range(size):
            for z in range(size):
                dist = np.sqrt((x - center) ** 2 + (y - center) ** 2 + (z - center) ** 2)
                if dist < radius:
                    voxels.append(Voxel(x, y, z, 1))

    return VoxScene.single_model(VoxelModel((size, size, size), voxels), PALETTE)


def create_tree(size: int = 16) -> VoxScene:
    """
    A trunk with a cone of foliage.

    Returns:
        Scene with one model
    """
    cx = size // 2
    trunk_height = size // 3

    voxels = []
    for z in range(trunk_height):
        for x in range(cx - 1, cx + 1):
            for y in range(cx - 1, cx + 1):
                voxels.append(Voxel(x, y, z, 2))

    for z in range(trunk_height, size):
        progress = (z - trunk_height) / (size - trunk_height)
        half_width = max(1, int((1 - progress) * size // 2))
        for x in range(cx - half_width, cx + half_width):
            for y in range(cx - half_width, cx + half_width):
                if 0 <= x < size and 0 <= y < size:
                    voxels.append(Voxel(x, y, z, 3))

    return VoxScene.single_model(VoxelModel((size, size, size), voxels), PALETTE)


def create_forest(count: int = 4, size: int = 12) -> VoxScene:
    """Several rotated instances of one tree model."""
    tree = create_tree(size)
    tree.instances = [
        ModelInstance(0, position=(i * size, (i % 2) * size, 0), rotation=[4, 1, 20, 40][i % 4])
        for i in range(count)
    ]
    return tree


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("vox2brs - Demo")
    print("=" * 60)
    print()

    setup_logging()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    scenes = [
        ("sphere", create_sphere(16)),
        ("tree", create_tree(24)),
        ("forest", create_forest(6)),
    ]

    exporter = JsonSaveExporter()
    total_start = time.time()

    for name, scene in scenes:
        print(f"\n--- Processing: {name} ---")
        print(f"Voxels: {scene.voxel_count} in {len(scene.instances)} instances")

        print("\nTesting output modes:")

        for mode in BrickOutputMode:
            for simplify in (False, True):
                options = ConversionOptions(mode=mode, simplify=simplify)

                start = time.time()
                save, stats = convert(scene, new_save(), options)
                elapsed = time.time() - start

                label = "merged" if simplify else "unit"
                print(f"  {mode.value} ({label}):")
                print(f"    Conversion: {elapsed*1000:.1f}ms")
                print(f"    Bricks: {stats.brick_count}")

                if simplify:
                    reduction = 100 * (1 - stats.brick_count / max(stats.unit_brick_count, 1))
                    print(f"    Brick reduction: {reduction:.1f}%")

        print(f"\n  Exporting...")
        save, _ = convert(scene, new_save(), ConversionOptions(simplify=True))

        save_path = output_dir / f"{name}.json"
        exporter.export(save, save_path)
        print(f"    Saved: {save_path}")

        preview_path = output_dir / f"{name}.png"
        render_top_view(save, output_size=256).save(preview_path)
        print(f"    Saved: {preview_path}")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_greedy_merge():
    """Benchmark greedy merging performance."""
    print("\n--- Greedy Merge Benchmark ---\n")

    sizes = [16, 32, 64, 128]

    for size in sizes:
        # Random two-colored solid, so merging has to work around seams
        rng = np.random.default_rng(size)
        grid = VoxelGrid(size, size, size)
        grid.cells[:] = rng.integers(0, 2, size=grid.cells.size)

        cells = grid.count_occupied()
        merger = GreedyMerger((5, 6))
        start = time.time()
        boxes = merger.merge_boxes(grid)
        merge_time = time.time() - start

        print(f"Grid size: {size}x{size}x{size}")
        print(f"  Merge: {merge_time*1000:.1f}ms, {cells} cells -> {len(boxes)} bricks")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_greedy_merge()
