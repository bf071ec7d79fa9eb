"""
Export modules for converted saves.

Supported formats:
- JSON (.json) - Save headers, color table and brick list as a JSON document
"""

from .json_exporter import JsonSaveExporter, save_to_dict

__all__ = ["JsonSaveExporter", "save_to_dict"]
