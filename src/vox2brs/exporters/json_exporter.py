"""
JSON Save Exporter

Writes a SaveData as a JSON document, laid out like the save headers:

    {
      "version": 10,
      "author": {"name": ..., "id": ...},
      "host": {...} | null,
      "description": "...",
      "brick_owners": [{"name", "id", "bricks"}],
      "brick_assets": ["PB_DefaultBrick", ...],
      "colors": [[r, g, b, a], ...],
      "bricks": [{"asset_name_index", "size", "position", "direction",
                  "rotation", "collision", "visibility", "color",
                  "owner_index"}, ...]
    }

Sizes and positions are [x, y, z] integer lists in world units.
"""

from pathlib import Path
from typing import Optional, Union
import json
import logging

from ..errors import Vox2BrsError
from ..save import Brick, SaveData, User


logger = logging.getLogger(__name__)

SAVE_VERSION = 10


def _user_to_dict(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"name": user.name, "id": user.id}


def brick_to_dict(brick: Brick) -> dict:
    """Serialize a single brick."""
    return {
        "asset_name_index": int(brick.asset_name_index),
        "size": [int(v) for v in brick.size],
        "position": [int(v) for v in brick.position],
        "direction": brick.direction.name,
        "rotation": brick.rotation.name,
        "collision": brick.collision,
        "visibility": brick.visibility,
        "color": int(brick.color),
        "owner_index": int(brick.owner_index),
    }


def save_to_dict(save: SaveData) -> dict:
    """Serialize a save to plain JSON-compatible types."""
    return {
        "version": SAVE_VERSION,
        "author": _user_to_dict(save.author),
        "host": _user_to_dict(save.host),
        "description": save.description,
        "brick_owners": [
            {"name": owner.user.name, "id": owner.user.id, "bricks": owner.bricks}
            for owner in save.brick_owners
        ],
        "brick_assets": list(save.brick_assets),
        "colors": [[int(c) for c in color] for color in save.colors],
        "bricks": [brick_to_dict(brick) for brick in save.bricks],
    }


class JsonSaveExporter:
    """
    Export a converted save to JSON.

    Usage:
        exporter = JsonSaveExporter(indent=2)
        exporter.export(save, "output.json")
    """

    def __init__(self, indent: Optional[int] = None):
        """
        Initialize the exporter.

        Args:
            indent: JSON indentation, None for compact output
        """
        self.indent = indent

    def dumps(self, save: SaveData) -> str:
        """Serialize a save to a JSON string."""
        if self.indent is None:
            return json.dumps(save_to_dict(save), separators=(',', ':'))
        return json.dumps(save_to_dict(save), indent=self.indent)

    def export(self, save: SaveData, output_path: Union[str, Path]):
        """
        Write a save to disk.

        Args:
            save: Converted save
            output_path: Output file path
        """
        output_path = Path(output_path)
        text = self.dumps(save)

        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(text)
        except OSError as e:
            raise Vox2BrsError(f"Could not write to {output_path}: {e}") from e

        logger.info("Save written to %s", output_path)
