"""Hexagonal cell outlines for a region.

This path only describes which H3 cells cover a region. It carries no density
information and always reports zero nodes; use
:func:`tiledensity.estimate.estimate_region` for an actual estimate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import h3
from shapely.geometry import mapping

from tiledensity.region import PolygonSet

DEFAULT_HEX_RESOLUTION = 5


@dataclass(frozen=True)
class HexOutline:
    """Dissolved H3 covering of a region."""

    resolution: int
    cells: frozenset[str] = field(default_factory=frozenset)
    outline: dict[str, Any] = field(
        default_factory=lambda: {"type": "MultiPolygon", "coordinates": []}
    )

    @property
    def nodes(self) -> int:
        return 0

    def to_feature_collection(self) -> dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": self.outline,
                    "properties": {"cells": len(self.cells), "resolution": self.resolution},
                }
            ],
        }


def _as_multipolygon(geo: dict[str, Any]) -> dict[str, Any]:
    coordinates = geo.get("coordinates") or []
    if geo.get("type") == "Polygon":
        coordinates = [coordinates]
    return {
        "type": "MultiPolygon",
        "coordinates": [
            [[list(position) for position in ring] for ring in polygon]
            for polygon in coordinates
        ],
    }


def outline_cells(region: PolygonSet, resolution: int = DEFAULT_HEX_RESOLUTION) -> HexOutline:
    """Cover each polygon with H3 cells and dissolve them into one outline."""
    if not 0 <= resolution <= 15:
        raise ValueError(f"H3 resolution must be in [0, 15], got {resolution}")
    cells: set[str] = set()
    for polygon in region.polygons:
        cells.update(h3.geo_to_cells(mapping(polygon), resolution))
    if not cells:
        return HexOutline(resolution=resolution)
    shape = h3.cells_to_h3shape(sorted(cells), tight=False)
    return HexOutline(
        resolution=resolution,
        cells=frozenset(cells),
        outline=_as_multipolygon(h3.h3shape_to_geo(shape)),
    )
