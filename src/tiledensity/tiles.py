"""Web-mercator tile coordinates and polygon tile coverings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Tuple

import mercantile
from shapely.geometry import box
from shapely.prepared import prep

from tiledensity.region import PolygonSet

Bounds = Tuple[float, float, float, float]

DEFAULT_MAX_TILES = 256
DEFAULT_MAX_ZOOM = 14

LOGGER = logging.getLogger("tiledensity.tiles")


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """A tile in the web-mercator quad-tree."""

    zoom: int
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.zoom < 0:
            raise ValueError(f"Tile zoom must be >= 0, got {self.zoom}")

    @classmethod
    def from_mercantile(cls, tile: mercantile.Tile) -> "TileCoordinate":
        return cls(zoom=tile.z, x=tile.x, y=tile.y)

    @property
    def key(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"

    def ancestor(self, zoom: int) -> "TileCoordinate":
        """Return the tile at a coarser (or equal) zoom containing this one."""
        if zoom > self.zoom or zoom < 0:
            raise ValueError(f"Ancestor zoom {zoom} not in [0, {self.zoom}]")
        shift = self.zoom - zoom
        return TileCoordinate(zoom=zoom, x=self.x >> shift, y=self.y >> shift)

    def is_ancestor_of(self, other: "TileCoordinate") -> bool:
        if other.zoom <= self.zoom:
            return False
        return other.ancestor(self.zoom) == self

    def children(self) -> list["TileCoordinate"]:
        x = self.x * 2
        y = self.y * 2
        zoom = self.zoom + 1
        return [
            TileCoordinate(zoom, x, y),
            TileCoordinate(zoom, x + 1, y),
            TileCoordinate(zoom, x + 1, y + 1),
            TileCoordinate(zoom, x, y + 1),
        ]

    def bounds(self) -> Bounds:
        """Return (west, south, east, north) in lon/lat."""
        west, south, east, north = mercantile.bounds(self.x, self.y, self.zoom)
        return (west, south, east, north)

    def polygon(self) -> dict[str, Any]:
        """Return the tile footprint as a GeoJSON Polygon."""
        west, south, east, north = self.bounds()
        return {
            "type": "Polygon",
            "coordinates": [
                [
                    [west, north],
                    [west, south],
                    [east, south],
                    [east, north],
                    [west, north],
                ]
            ],
        }


def tile_cover(region: PolygonSet, zoom: int) -> list[TileCoordinate]:
    """Return the tiles at zoom whose footprint shares area with the region."""
    if region.is_degenerate:
        return []
    geometry = region.geometry
    prepared = prep(geometry)
    west, south, east, north = geometry.bounds
    covering: list[TileCoordinate] = []
    for tile in mercantile.tiles(west, south, east, north, zooms=[zoom]):
        footprint = box(*mercantile.bounds(tile))
        if prepared.intersects(footprint) and not prepared.touches(footprint):
            covering.append(TileCoordinate.from_mercantile(tile))
    return covering


def select_covering(
    region: PolygonSet,
    max_tiles: int = DEFAULT_MAX_TILES,
    *,
    max_zoom: int = DEFAULT_MAX_ZOOM,
) -> tuple[int, list[TileCoordinate]]:
    """Pick the covering zoom for a region under a tile budget.

    Zooms are tried from 0 upward and the first covering whose tile count
    exceeds ``max_tiles`` is returned, so the result may hold more than
    ``max_tiles`` tiles. When no zoom up to ``max_zoom`` exceeds the budget,
    the ``max_zoom`` covering is returned.
    """
    if max_zoom < 0:
        raise ValueError(f"max_zoom must be >= 0, got {max_zoom}")
    if region.is_degenerate:
        LOGGER.debug("Degenerate region; empty covering at z%s", max_zoom)
        return max_zoom, []
    covering: list[TileCoordinate] = []
    for zoom in range(max_zoom + 1):
        covering = tile_cover(region, zoom)
        if len(covering) > max_tiles:
            LOGGER.debug("Selected z%s with %s tiles (budget %s)", zoom, len(covering), max_tiles)
            return zoom, covering
    LOGGER.debug("Budget %s never exceeded; using z%s with %s tiles", max_tiles, max_zoom, len(covering))
    return max_zoom, covering
