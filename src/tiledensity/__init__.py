"""Density-raster node count estimation for drawn map regions."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
