"""Estimator configuration loading."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

ENV_CONFIG_PATH = "TILEDENSITY_CONFIG"
DEFAULT_CONFIG_NAME = "tiledensity.json"


@dataclass(frozen=True)
class EstimatorConfig:
    """Settings for raster loading, tile selection and hex outlines."""

    raster_path: Path = Path("z12_red_green.png")
    base_zoom: int = 12
    max_tiles: int = 256
    max_zoom: int = 14
    hex_resolution: int = 5
    node_limit: int = 100_000_000

    def __post_init__(self) -> None:
        if not 0 <= self.base_zoom <= 16:
            raise ValueError(f"base_zoom must be in [0, 16], got {self.base_zoom}")
        if self.max_tiles < 1:
            raise ValueError(f"max_tiles must be >= 1, got {self.max_tiles}")
        if not 0 <= self.max_zoom <= 24:
            raise ValueError(f"max_zoom must be in [0, 24], got {self.max_zoom}")
        if not 0 <= self.hex_resolution <= 15:
            raise ValueError(f"hex_resolution must be in [0, 15], got {self.hex_resolution}")
        if self.node_limit < 0:
            raise ValueError(f"node_limit must be >= 0, got {self.node_limit}")

    def as_dict(self) -> dict[str, Any]:
        return {
            "raster_path": str(self.raster_path),
            "base_zoom": self.base_zoom,
            "max_tiles": self.max_tiles,
            "max_zoom": self.max_zoom,
            "hex_resolution": self.hex_resolution,
            "node_limit": self.node_limit,
        }

    def with_overrides(self, **overrides: Any) -> "EstimatorConfig":
        """Return a copy with non-None overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if "raster_path" in values:
            values["raster_path"] = Path(values["raster_path"])
        return replace(self, **values)


def _coerce_int(key: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Config value {key!r} must be an integer.")
    return value


def normalize_config(payload: Mapping[str, Any], *, base_dir: Path | None = None) -> EstimatorConfig:
    """Normalize a raw config mapping, ignoring unknown keys."""
    known = {item.name for item in fields(EstimatorConfig)}
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if key not in known:
            continue
        if key == "raster_path":
            if not isinstance(value, str):
                raise TypeError("Config value 'raster_path' must be a string.")
            path = Path(value)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            values[key] = path
        else:
            values[key] = _coerce_int(key, value)
    return EstimatorConfig(**values)


def _default_candidate_paths() -> list[Path]:
    return [Path.cwd() / DEFAULT_CONFIG_NAME]


def _resolve_config_path(path: Path | None) -> Path | None:
    if path:
        return path
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return Path(env_path)
    for candidate in _default_candidate_paths():
        if candidate.exists():
            return candidate
    return None


def load_config(path: Path | None = None) -> EstimatorConfig:
    """Load config from a path, $TILEDENSITY_CONFIG, or ./tiledensity.json."""
    resolved = _resolve_config_path(path)
    if resolved is None:
        return EstimatorConfig()
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise TypeError("Config file must be a JSON object.")
    return normalize_config(payload, base_dir=resolved.parent)
