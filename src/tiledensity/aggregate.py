"""Per-tile density estimates across mismatched zoom levels."""

from __future__ import annotations

from enum import Enum

from tiledensity.raster import DensityRaster
from tiledensity.tiles import TileCoordinate


class ZoomRelation(Enum):
    """How a tile's zoom compares to the raster's base zoom."""

    COARSER = "coarser"
    EQUAL = "equal"
    FINER = "finer"


def zoom_relation(zoom: int, base_zoom: int) -> ZoomRelation:
    if zoom < base_zoom:
        return ZoomRelation.COARSER
    if zoom == base_zoom:
        return ZoomRelation.EQUAL
    return ZoomRelation.FINER


def _coarser(raster: DensityRaster, base_zoom: int, tile: TileCoordinate) -> int:
    # Values are additive counts: a coarse tile is the sum of its base pixels.
    span = 1 << (base_zoom - tile.zoom)
    return raster.block_sum(tile.x * span, tile.y * span, span)


def _equal(raster: DensityRaster, base_zoom: int, tile: TileCoordinate) -> int:
    return raster.lookup(tile.x, tile.y)


def _finer(raster: DensityRaster, base_zoom: int, tile: TileCoordinate) -> float:
    # The parent pixel is split evenly among its dz * dz children.
    shift = tile.zoom - base_zoom
    dz = 1 << shift
    return raster.lookup(tile.x >> shift, tile.y >> shift) / float(dz * dz)


_HANDLERS = {
    ZoomRelation.COARSER: _coarser,
    ZoomRelation.EQUAL: _equal,
    ZoomRelation.FINER: _finer,
}


def estimate_tile(
    raster: DensityRaster,
    tile: TileCoordinate,
    base_zoom: int | None = None,
) -> int | float:
    """Return the density estimate for a tile at any zoom.

    Coarser tiles return the integer sum of the base pixels they contain, base
    tiles return their pixel value, and finer tiles return their parent pixel's
    value divided by the number of same-zoom siblings under it.
    """
    base = raster.base_zoom if base_zoom is None else base_zoom
    handler = _HANDLERS[zoom_relation(tile.zoom, base)]
    return handler(raster, base, tile)
