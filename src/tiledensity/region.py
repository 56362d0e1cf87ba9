"""Region helpers for GeoJSON/bbox polygon sets."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
import shapely
from pyproj import CRS, Transformer
from shapely.geometry import MultiPolygon, Polygon, box, mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from tiledensity.contracts import validate_region_payload
from tiledensity.errors import RegionError

DEFAULT_REGION_CRS = "EPSG:4326"

_BBOX_SPLIT = re.compile(r"[,\s]+")


def _crs_equal(left: str, right: str) -> bool:
    return CRS.from_user_input(left) == CRS.from_user_input(right)


def _extract_geojson_crs(data: Mapping[str, Any]) -> str | None:
    crs = data.get("crs")
    if isinstance(crs, Mapping):
        properties = crs.get("properties")
        if isinstance(properties, Mapping):
            name = properties.get("name")
            if isinstance(name, str):
                return name
    if isinstance(crs, str):
        return crs
    return None


def _extract_geometries(data: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    geometries: list[Mapping[str, Any]] = []
    kind = data.get("type")
    if kind == "FeatureCollection":
        for feature in data.get("features", []):
            geometry = feature.get("geometry")
            if geometry:
                geometries.append(geometry)
    elif kind == "Feature":
        geometry = data.get("geometry")
        if geometry:
            geometries.append(geometry)
    else:
        geometries.append(data)
    return geometries


def _polygons_of(geometry: BaseGeometry) -> list[Polygon]:
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    return []


def _reproject(polygons: list[Polygon], source_crs: str) -> list[Polygon]:
    """Reproject polygons to lon/lat, mapping each coordinate array in one call."""
    tx = Transformer.from_crs(source_crs, DEFAULT_REGION_CRS, always_xy=True)

    def to_lonlat(coords: np.ndarray) -> np.ndarray:
        lon, lat = tx.transform(coords[:, 0], coords[:, 1])
        return np.column_stack([lon, lat])

    return [shapely.transform(polygon, to_lonlat) for polygon in polygons]


@dataclass(frozen=True)
class PolygonSet:
    """Immutable set of lon/lat polygons describing a selected region."""

    polygons: tuple[Polygon, ...] = ()

    @classmethod
    def from_polygons(cls, polygons: Iterable[Polygon]) -> "PolygonSet":
        return cls(polygons=tuple(polygons))

    @classmethod
    def from_rings(cls, rings: Iterable[Sequence[Sequence[float]]]) -> "PolygonSet":
        """Build a set with one polygon per outer ring of (lon, lat) vertices."""
        return cls(polygons=tuple(Polygon(ring) for ring in rings))

    @classmethod
    def from_bbox(
        cls,
        min_lon: float,
        min_lat: float,
        max_lon: float,
        max_lat: float,
    ) -> "PolygonSet":
        if min_lon > max_lon or min_lat > max_lat:
            raise RegionError(
                f"Invalid bbox: ({min_lon}, {min_lat}, {max_lon}, {max_lat})"
            )
        return cls(polygons=(box(min_lon, min_lat, max_lon, max_lat),))

    @classmethod
    def from_geojson(cls, data: Mapping[str, Any], *, crs: str | None = None) -> "PolygonSet":
        """Load polygons from a GeoJSON object, reprojecting to EPSG:4326."""
        if not isinstance(data, Mapping):
            raise RegionError("Region must be a GeoJSON object.")
        validate_region_payload(data)
        source_crs = crs or _extract_geojson_crs(data) or DEFAULT_REGION_CRS
        polygons: list[Polygon] = []
        for geometry in _extract_geometries(data):
            if geometry.get("type") not in {"Polygon", "MultiPolygon"}:
                continue
            polygons.extend(_polygons_of(shape(geometry)))
        if not _crs_equal(source_crs, DEFAULT_REGION_CRS):
            polygons = _reproject(polygons, source_crs)
        return cls(polygons=tuple(polygons))

    @cached_property
    def geometry(self) -> BaseGeometry:
        """Return the union of all polygons, computed once per set."""
        return unary_union(self.polygons)

    @property
    def area(self) -> float:
        return float(self.geometry.area) if self.polygons else 0.0

    @property
    def is_degenerate(self) -> bool:
        """Return True when the set has no polygons or no area."""
        return not self.polygons or self.area <= 0.0

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        if not self.polygons:
            raise RegionError("Empty region has no bounds.")
        return tuple(self.geometry.bounds)  # type: ignore[return-value]

    def to_geojson(self) -> dict[str, Any]:
        """Return the set as a GeoJSON MultiPolygon."""
        coordinates = mapping(MultiPolygon(list(self.polygons)))["coordinates"]
        return {
            "type": "MultiPolygon",
            "coordinates": [
                [[list(position) for position in ring] for ring in polygon]
                for polygon in coordinates
            ],
        }


def _parse_bbox(text: str) -> PolygonSet | None:
    parts = [part for part in _BBOX_SPLIT.split(text.strip()) if part]
    if len(parts) != 4:
        return None
    try:
        values = [float(part) for part in parts]
    except ValueError:
        return None
    return PolygonSet.from_bbox(*values)


def parse_region_text(text: str, *, crs: str | None = None) -> PolygonSet:
    """Parse pasted region text: a bbox "minlon,minlat,maxlon,maxlat" or GeoJSON."""
    region = _parse_bbox(text)
    if region is not None:
        return region
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RegionError("Region text is neither a bbox nor GeoJSON.") from exc
    return PolygonSet.from_geojson(data, crs=crs)


def load_region(path: Path, *, crs: str | None = None) -> PolygonSet:
    """Load a region from a GeoJSON file or a text file holding a bbox."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise RegionError(f"Region file not readable: {path}") from exc
    return parse_region_text(text, crs=crs)


def region_from_task(payload: Mapping[str, Any]) -> PolygonSet:
    """Return the region stored in an extraction task record."""
    kind = payload.get("SanitizedRegionType")
    data = payload.get("SanitizedRegionData")
    if kind == "geojson":
        if isinstance(data, str):
            return parse_region_text(data)
        if isinstance(data, Mapping):
            return PolygonSet.from_geojson(data)
    elif kind == "bbox":
        if isinstance(data, str):
            region = _parse_bbox(data)
            if region is not None:
                return region
        elif isinstance(data, (list, tuple)) and len(data) == 4:
            try:
                values = [float(value) for value in data]
            except (TypeError, ValueError) as exc:
                raise RegionError(f"Task bbox is not numeric: {data!r}") from exc
            return PolygonSet.from_bbox(*values)
    raise RegionError(f"Unsupported task region: {kind!r}")
