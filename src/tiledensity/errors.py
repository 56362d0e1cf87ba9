"""Exception types raised by the estimation engine."""

from __future__ import annotations


class TileDensityError(Exception):
    """Base class for tiledensity failures."""


class DecodeError(TileDensityError, ValueError):
    """Raised when a density raster asset cannot be decoded."""


class OutOfRangeError(TileDensityError, IndexError):
    """Raised when a pixel coordinate falls outside the raster."""


class RegionError(TileDensityError, ValueError):
    """Raised when a region payload cannot be turned into polygons."""
