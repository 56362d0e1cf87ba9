"""Schema validation helpers for region and estimate payloads."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Mapping

import jsonschema

from tiledensity.errors import RegionError


@lru_cache(maxsize=None)
def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema bundled in the package."""
    with resources.files("tiledensity.schemas").joinpath(name).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def validate_region_payload(payload: Mapping[str, Any]) -> None:
    """Validate a GeoJSON region payload, raising RegionError on failure."""
    schema = _load_schema("region.schema.json")
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        raise RegionError(f"Invalid region GeoJSON: {exc.message}") from exc


def validate_feature_collection(payload: Mapping[str, Any]) -> None:
    """Validate an estimate or outline FeatureCollection payload."""
    schema = _load_schema("feature_collection.schema.json")
    jsonschema.validate(payload, schema)
