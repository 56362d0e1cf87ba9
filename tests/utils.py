from __future__ import annotations

import warnings
from pathlib import Path

import mercantile
import numpy as np
import rasterio
from rasterio.errors import NotGeoreferencedWarning

from tiledensity.region import PolygonSet


def write_image(path: Path, bands: np.ndarray, *, driver: str = "PNG") -> Path:
    """Write a (count, height, width) array as an ungeoreferenced image."""
    count, height, width = bands.shape
    path.parent.mkdir(parents=True, exist_ok=True)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NotGeoreferencedWarning)
        with rasterio.open(
            path,
            "w",
            driver=driver,
            height=height,
            width=width,
            count=count,
            dtype=bands.dtype,
        ) as dataset:
            dataset.write(bands)
    return path


def density_bands(values: np.ndarray) -> np.ndarray:
    """Encode density values as red/green/blue uint8 bands."""
    values = values.astype(np.uint16)
    red = (values >> 8).astype(np.uint8)
    green = (values & 0xFF).astype(np.uint8)
    blue = np.zeros_like(red)
    return np.stack([red, green, blue])


def write_density_png(path: Path, values: np.ndarray) -> Path:
    return write_image(path, density_bands(values))


def base_tiles_region(x0: int, y0: int, x1: int, y1: int, zoom: int) -> PolygonSet:
    """Return a bbox region covering base tiles x0..x1, y0..y1 exactly."""
    west, _, _, north = mercantile.bounds(x0, y0, zoom)
    _, south, east, _ = mercantile.bounds(x1, y1, zoom)
    return PolygonSet.from_bbox(west, south, east, north)
