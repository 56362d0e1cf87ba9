"""Density raster decoding and pixel lookup."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from rasterio.errors import NotGeoreferencedWarning, RasterioError
from rasterio.io import MemoryFile

from tiledensity.errors import DecodeError, OutOfRangeError

DEFAULT_BASE_ZOOM = 12
MAX_DENSITY_VALUE = 65535

LOGGER = logging.getLogger("tiledensity.raster")


def decode_density(channel0: np.ndarray, channel1: np.ndarray) -> np.ndarray:
    """Combine two 8-bit channels into density values.

    Each pixel stores its density as ``channel0 * 256 + channel1``, so values
    cover the range ``[0, 65535]``.
    """
    if channel0.shape != channel1.shape:
        raise DecodeError(
            f"Channel shapes differ: {channel0.shape} vs {channel1.shape}"
        )
    high = channel0.astype(np.uint16)
    low = channel1.astype(np.uint16)
    return (high << 8) | low


def _base_zoom_for_size(size: int) -> int:
    """Return the zoom whose tile count per side equals size."""
    if size <= 0 or size & (size - 1):
        raise DecodeError(f"Raster side must be a power of two, got {size}")
    return size.bit_length() - 1


@dataclass(frozen=True)
class RasterStats:
    """Summary of a decoded density raster."""

    size: int
    base_zoom: int
    total: int
    max_value: int
    nonzero_pixels: int


@dataclass(frozen=True, eq=False)
class DensityRaster:
    """Read-only grid of per-tile density values at a fixed base zoom.

    Pixel ``(x, y)`` holds the value of web-mercator tile ``(base_zoom, x, y)``.
    Values are stored row-major, so the array is indexed as ``values[y, x]``.
    """

    values: np.ndarray
    base_zoom: int

    def __post_init__(self) -> None:
        if self.values.ndim != 2 or self.values.shape[0] != self.values.shape[1]:
            raise DecodeError(f"Density raster must be square, got {self.values.shape}")
        expected = 1 << self.base_zoom
        if self.values.shape[0] != expected:
            raise DecodeError(
                f"Density raster side {self.values.shape[0]} does not match "
                f"base zoom {self.base_zoom} (expected {expected})"
            )
        self.values.flags.writeable = False

    @classmethod
    def from_values(cls, values: np.ndarray, base_zoom: int | None = None) -> "DensityRaster":
        """Wrap already decoded density values."""
        array = np.array(values, dtype=np.uint16, copy=True)
        if array.ndim != 2:
            raise DecodeError(f"Density values must be 2D, got {array.ndim}D")
        zoom = base_zoom if base_zoom is not None else _base_zoom_for_size(array.shape[0])
        return cls(values=array, base_zoom=zoom)

    @property
    def size(self) -> int:
        return int(self.values.shape[0])

    def _check(self, x: int, y: int) -> None:
        if not (0 <= x < self.size and 0 <= y < self.size):
            raise OutOfRangeError(
                f"Pixel ({x}, {y}) is outside the {self.size}x{self.size} raster"
            )

    def lookup(self, x: int, y: int) -> int:
        """Return the density value of pixel (x, y)."""
        self._check(x, y)
        return int(self.values[y, x])

    def block_sum(self, x0: int, y0: int, span: int) -> int:
        """Return the summed density of the span x span block at (x0, y0)."""
        if span <= 0:
            raise OutOfRangeError(f"Block span must be positive, got {span}")
        self._check(x0, y0)
        self._check(x0 + span - 1, y0 + span - 1)
        block = self.values[y0 : y0 + span, x0 : x0 + span]
        return int(block.sum(dtype=np.int64))

    def stats(self) -> RasterStats:
        """Return summary statistics for the raster."""
        return RasterStats(
            size=self.size,
            base_zoom=self.base_zoom,
            total=int(self.values.sum(dtype=np.int64)),
            max_value=int(self.values.max()) if self.values.size else 0,
            nonzero_pixels=int(np.count_nonzero(self.values)),
        )


def decode_raster(image_bytes: bytes, base_zoom: int = DEFAULT_BASE_ZOOM) -> DensityRaster:
    """Decode an encoded image into a DensityRaster."""
    if not image_bytes:
        raise DecodeError("Density raster image is empty.")
    size = 1 << base_zoom
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NotGeoreferencedWarning)
            with MemoryFile(image_bytes) as memfile:
                with memfile.open() as dataset:
                    if dataset.width != size or dataset.height != size:
                        raise DecodeError(
                            f"Density raster must be {size}x{size}, "
                            f"got {dataset.width}x{dataset.height}"
                        )
                    if dataset.count < 2:
                        raise DecodeError(
                            f"Density raster needs at least two channels, got {dataset.count}"
                        )
                    if dataset.dtypes[0] != "uint8" or dataset.dtypes[1] != "uint8":
                        raise DecodeError(
                            f"Density raster channels must be uint8, got {dataset.dtypes[:2]}"
                        )
                    channel0 = dataset.read(1)
                    channel1 = dataset.read(2)
    except RasterioError as exc:
        raise DecodeError(f"Unreadable density raster: {exc}") from exc
    return DensityRaster(values=decode_density(channel0, channel1), base_zoom=base_zoom)


def load_raster(path: Path, base_zoom: int = DEFAULT_BASE_ZOOM) -> DensityRaster:
    """Read and decode a density raster asset from disk."""
    try:
        image_bytes = Path(path).read_bytes()
    except OSError as exc:
        raise DecodeError(f"Density raster not readable: {path}") from exc
    raster = decode_raster(image_bytes, base_zoom=base_zoom)
    LOGGER.info("Loaded density raster %s (%sx%s, z%s)", path, raster.size, raster.size, base_zoom)
    return raster
