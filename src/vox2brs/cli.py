"""
Command-Line Interface for vox2brs

Usage:
    vox2brs model.vox build.json
    vox2brs model.vox build.json plate 2 1 --simplify
    vox2brs model.vox build.json brick --rampify --ramp-generator my_ramps:Rampifier

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time

from . import __version__
from .converter import BrickConverter
from .errors import Vox2BrsError
from .logging_config import setup_logging
from .options import DEFAULT_MERGE_LIMIT, BrickOutputMode, ConversionOptions
from .ramps import load_ramp_generator


def positive_int(value: str) -> int:
    """argparse type for positive integers."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value!r} must be a positive integer")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vox2brs",
        description="Convert MagicaVoxel models into Brickadia saves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vox2brs castle.vox castle.json
      One 1x1x3 brick per voxel

  vox2brs castle.vox castle.json plate 2 --simplify
      2x2 plates, merging same-colored neighbours

  vox2brs castle.vox castle.json --rampify --ramp-generator my_ramps:Rampifier
      Generate ramps before merging (implies --simplify)

Modes:
  brick        - width*5 x width*5 x height*6 half-extents (height defaults to 3)
  plate        - width*5 x width*5 x height*2 half-extents
  micro-brick  - width x width x height half-extents
        """
    )

    parser.add_argument(
        "input",
        help="Input path to .vox file"
    )

    parser.add_argument(
        "output",
        help="Output path of the converted save (.json)"
    )

    parser.add_argument(
        "mode",
        nargs="?",
        choices=[m.value for m in BrickOutputMode],
        default=BrickOutputMode.BRICK.value,
        help="How voxels are interpreted (default: brick)"
    )

    parser.add_argument(
        "width",
        nargs="?",
        type=positive_int,
        help="Width of the output brick"
    )

    parser.add_argument(
        "height",
        nargs="?",
        type=positive_int,
        help="Height of the output brick"
    )

    parser.add_argument(
        "-s", "--simplify",
        action="store_true",
        help="Merge bricks of the same color"
    )

    parser.add_argument(
        "-r", "--rampify",
        action="store_true",
        help="Generate ramps before merging (implies --simplify, disables micro-brick)"
    )

    parser.add_argument(
        "--ramp-generator",
        metavar="MODULE:FACTORY",
        help="Ramp generator factory used by --rampify"
    )

    parser.add_argument(
        "--merge-limit",
        type=positive_int,
        default=DEFAULT_MERGE_LIMIT,
        help=f"Maximum merged size along each axis in cells (default: {DEFAULT_MERGE_LIMIT})"
    )

    parser.add_argument(
        "--indent",
        type=int,
        help="Indent the JSON output"
    )

    parser.add_argument(
        "--log-file",
        help="Also write log messages to this file"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print conversion statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def build_options(args) -> ConversionOptions:
    """Turn parsed arguments into normalized conversion options."""
    options = ConversionOptions(
        mode=BrickOutputMode(args.mode),
        width=args.width,
        height=args.height,
        simplify=args.simplify,
        rampify=args.rampify,
        merge_limit=args.merge_limit,
    )
    return options.normalized()


def validate_paths(args) -> Optional[str]:
    """Return an error message for unusable paths, or None."""
    input_path = Path(args.input)
    if input_path.suffix.lower() != ".vox":
        return "Invalid path to vox."
    if not input_path.exists():
        return "Input file doesn't exist."
    if Path(args.output).suffix.lower() != ".json":
        return "Invalid path to save, expected a .json file."
    return None


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    error = validate_paths(args)
    if error:
        print(f"Error: {error}", file=sys.stderr)
        return 1

    start_time = time.time()

    try:
        options = build_options(args)

        factory = None
        if options.rampify and args.ramp_generator:
            factory = load_ramp_generator(args.ramp_generator)

        converter = BrickConverter(options, ramp_generator_factory=factory)
        converter.load_vox(args.input)
        converter.convert()

        if args.stats or args.verbose:
            stats = converter.get_stats()
            print("\nConversion Statistics:")
            print(f"  Models: {stats['model_count']}")
            print(f"  Instances: {stats['instance_count']}")
            print(f"  Voxels: {stats['voxel_count']}")
            print(f"  Colors: {stats['color_count']}")
            print(f"  Grid size: {stats['grid_size']}")
            print(f"  Ramps: {stats['ramp_count']}")
            print(f"  Bricks: {stats['brick_count']}")

        converter.export_json(args.output, indent=args.indent)

        elapsed = time.time() - start_time
        if args.verbose:
            print(f"\nCompleted in {elapsed:.2f}s")

        return 0

    except Vox2BrsError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
