"""Region node count estimates from the density raster."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from tiledensity.aggregate import estimate_tile
from tiledensity.logging_utils import log_context
from tiledensity.raster import DensityRaster
from tiledensity.region import PolygonSet
from tiledensity.tiles import (
    DEFAULT_MAX_TILES,
    DEFAULT_MAX_ZOOM,
    TileCoordinate,
    select_covering,
)

LOGGER = logging.getLogger("tiledensity.estimate")

Number = int | float


@dataclass(frozen=True)
class TileEstimate:
    """A covering tile paired with its density estimate."""

    tile: TileCoordinate
    value: Number

    def to_feature(self, max_value: Number) -> dict[str, Any]:
        share = float(self.value) / float(max_value) if max_value else 0.0
        return {
            "type": "Feature",
            "geometry": self.tile.polygon(),
            "properties": {
                "tile": self.tile.key,
                "value": self.value,
                "share": share,
            },
        }


@dataclass(frozen=True)
class EstimateResult:
    """Estimated node total plus the per-tile breakdown behind it."""

    total: Number = 0
    tiles: tuple[TileEstimate, ...] = field(default_factory=tuple)
    zoom: int | None = None
    max_value: Number = 0

    def exceeds(self, limit: Number) -> bool:
        """Return True when the total is above an extraction node limit."""
        return self.total > limit

    def to_feature_collection(self) -> dict[str, Any]:
        """Return tile footprints tagged with their values as GeoJSON."""
        return {
            "type": "FeatureCollection",
            "features": [item.to_feature(self.max_value) for item in self.tiles],
        }


def estimate_region(
    region: PolygonSet,
    raster: DensityRaster,
    *,
    max_tiles: int = DEFAULT_MAX_TILES,
    max_zoom: int = DEFAULT_MAX_ZOOM,
) -> EstimateResult:
    """Estimate the node count inside a region."""
    zoom, covering = select_covering(region, max_tiles, max_zoom=max_zoom)
    if not covering:
        LOGGER.info(
            "Region has no covering tiles; estimate is zero.",
            extra=log_context(region="empty", zoom=zoom),
        )
        return EstimateResult(total=0, tiles=(), zoom=zoom, max_value=0)

    total: Number = 0
    max_value: Number = 0
    estimates: list[TileEstimate] = []
    for tile in covering:
        value = estimate_tile(raster, tile)
        total += value
        if value > max_value:
            max_value = value
        estimates.append(TileEstimate(tile=tile, value=value))

    LOGGER.info(
        "Estimated %s nodes over %s tiles at z%s",
        total,
        len(estimates),
        zoom,
        extra=log_context(region=f"{len(region.polygons)} polygon(s)", zoom=zoom),
    )
    return EstimateResult(
        total=total,
        tiles=tuple(estimates),
        zoom=zoom,
        max_value=max_value,
    )
