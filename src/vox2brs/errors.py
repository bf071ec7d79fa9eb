"""Exceptions raised by vox2brs."""


class Vox2BrsError(Exception):
    """Base class for all vox2brs errors."""


class ConversionError(Vox2BrsError):
    """The conversion could not produce a save (no usable input, bad options)."""


class VoxFormatError(Vox2BrsError):
    """A voxel file is unreadable or malformed."""
