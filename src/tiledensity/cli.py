"""Command-line interface for tiledensity."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from tiledensity import __version__
from tiledensity.config import EstimatorConfig, load_config
from tiledensity.contracts import validate_feature_collection
from tiledensity.errors import DecodeError, RegionError
from tiledensity.estimate import estimate_region
from tiledensity.hexcells import outline_cells
from tiledensity.logging_utils import LogOptions, configure_logging
from tiledensity.raster import load_raster
from tiledensity.region import PolygonSet, load_region, parse_region_text

LOGGER = logging.getLogger("tiledensity.cli")


def _read_region(value: str, crs: str | None) -> PolygonSet:
    """Load a region from a file path or an inline bbox/GeoJSON string."""
    if value.lstrip().startswith("{"):
        return parse_region_text(value, crs=crs)
    path = Path(value)
    try:
        is_file = path.is_file()
    except OSError:
        # Long inline values exceed the OS name limit.
        is_file = False
    if is_file:
        return load_region(path, crs=crs)
    return parse_region_text(value, crs=crs)


def _write_geojson(path: Path, payload: dict[str, Any]) -> None:
    validate_feature_collection(payload)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    LOGGER.info("GeoJSON written to %s", path)


def _add_region_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "region",
        help="GeoJSON/bbox file, or an inline bbox 'minlon,minlat,maxlon,maxlat'.",
    )
    parser.add_argument("--region-crs", help="CRS of the region when not EPSG:4326.")
    parser.add_argument("--geojson", help="Optional output path for the GeoJSON layer.")


def _add_estimate_parser(subparsers: argparse._SubParsersAction) -> None:
    estimate = subparsers.add_parser("estimate", help="Estimate nodes inside a region.")
    _add_region_arguments(estimate)
    estimate.add_argument("--raster", help="Path to the density raster image.")
    estimate.add_argument("--base-zoom", type=int, help="Zoom of the raster pixels.")
    estimate.add_argument("--max-tiles", type=int, help="Tile budget for zoom selection.")
    estimate.add_argument("--max-zoom", type=int, help="Highest zoom tried for coverings.")
    estimate.add_argument("--limit", type=int, help="Node limit for an extraction job.")


def _add_hexes_parser(subparsers: argparse._SubParsersAction) -> None:
    hexes = subparsers.add_parser("hexes", help="Outline a region with H3 cells.")
    _add_region_arguments(hexes)
    hexes.add_argument("--resolution", type=int, help="H3 resolution.")


def _add_inspect_parser(subparsers: argparse._SubParsersAction) -> None:
    inspect = subparsers.add_parser("inspect", help="Print density raster statistics.")
    inspect.add_argument("--raster", help="Path to the density raster image.")
    inspect.add_argument("--base-zoom", type=int, help="Zoom of the raster pixels.")


def _config_from_args(args: argparse.Namespace) -> EstimatorConfig:
    config_value = getattr(args, "config", None)
    config = load_config(Path(config_value) if config_value else None)
    return config.with_overrides(
        raster_path=getattr(args, "raster", None),
        base_zoom=getattr(args, "base_zoom", None),
        max_tiles=getattr(args, "max_tiles", None),
        max_zoom=getattr(args, "max_zoom", None),
        node_limit=getattr(args, "limit", None),
        hex_resolution=getattr(args, "resolution", None),
    )


def _run_estimate(args: argparse.Namespace, config: EstimatorConfig) -> int:
    region = _read_region(args.region, args.region_crs)
    raster = load_raster(config.raster_path, base_zoom=config.base_zoom)
    result = estimate_region(
        region,
        raster,
        max_tiles=config.max_tiles,
        max_zoom=config.max_zoom,
    )
    print(
        json.dumps(
            {
                "nodes": result.total,
                "zoom": result.zoom,
                "tiles": len(result.tiles),
                "max_value": result.max_value,
            }
        )
    )
    if args.geojson:
        _write_geojson(Path(args.geojson), result.to_feature_collection())
    if result.exceeds(config.node_limit):
        LOGGER.error("Estimated %s nodes exceeds the limit of %s.", result.total, config.node_limit)
        return 1
    return 0


def _run_hexes(args: argparse.Namespace, config: EstimatorConfig) -> int:
    region = _read_region(args.region, args.region_crs)
    outline = outline_cells(region, config.hex_resolution)
    print(json.dumps({"cells": len(outline.cells), "resolution": outline.resolution}))
    if args.geojson:
        _write_geojson(Path(args.geojson), outline.to_feature_collection())
    return 0


def _run_inspect(config: EstimatorConfig) -> int:
    stats = load_raster(config.raster_path, base_zoom=config.base_zoom).stats()
    print(
        json.dumps(
            {
                "size": stats.size,
                "base_zoom": stats.base_zoom,
                "total": stats.total,
                "max_value": stats.max_value,
                "nonzero_pixels": stats.nonzero_pixels,
            }
        )
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI entrypoint and return an exit code."""
    parser = argparse.ArgumentParser(
        prog="tiledensity",
        description="Estimate map node counts for a region from a density raster",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument("--log-file", help="Optional path for JSON log output.")
    parser.add_argument("--config", help="Path to a tiledensity JSON config.")

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_estimate_parser(subparsers)
    _add_hexes_parser(subparsers)
    _add_inspect_parser(subparsers)
    subparsers.add_parser("version", help="Print the tiledensity version.")

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    configure_logging(
        LogOptions(
            verbose=getattr(args, "verbose", 0) or 0,
            quiet=bool(getattr(args, "quiet", False)),
            log_file=Path(log_file_value) if log_file_value else None,
            json_console=bool(getattr(args, "log_json", False)),
        )
    )

    if args.command == "version":
        print(__version__)
        return 0

    try:
        config = _config_from_args(args)
    except (OSError, json.JSONDecodeError, TypeError, ValueError) as exc:
        LOGGER.error("Invalid config: %s", exc)
        return 1

    try:
        if args.command == "estimate":
            return _run_estimate(args, config)
        if args.command == "hexes":
            return _run_hexes(args, config)
        if args.command == "inspect":
            return _run_inspect(config)
    except DecodeError as exc:
        LOGGER.error("Density raster unavailable: %s", exc)
        return 1
    except RegionError as exc:
        LOGGER.error("Invalid region: %s", exc)
        return 1
    parser.error(f"Unknown command: {args.command}")
    return 2
