from __future__ import annotations

import json
import runpy
import sys
from pathlib import Path

import numpy as np
import pytest

from tiledensity import __version__, cli
from tests.utils import write_density_png


@pytest.fixture()
def raster_path(tmp_path: Path) -> Path:
    return write_density_png(tmp_path / "density.png", np.ones((8, 8), dtype=np.uint16))


def _last_json(capsys) -> dict[str, object]:
    out = capsys.readouterr().out.strip().splitlines()
    return json.loads(out[-1])


def test_cli_version(capsys) -> None:
    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_cli_requires_command() -> None:
    with pytest.raises(SystemExit):
        cli.main([])


def test_cli_estimate_inline_bbox(raster_path: Path, capsys) -> None:
    result = cli.main(
        [
            "estimate",
            "10,10,20,20",
            "--raster",
            str(raster_path),
            "--base-zoom",
            "3",
            "--max-zoom",
            "3",
        ]
    )

    assert result == 0
    summary = _last_json(capsys)
    assert summary["zoom"] == 3
    assert summary["tiles"] == 1
    assert summary["nodes"] == 1


def test_cli_estimate_writes_geojson(raster_path: Path, tmp_path: Path, capsys) -> None:
    region_path = tmp_path / "region.geojson"
    region_path.write_text(
        json.dumps(
            {
                "type": "Polygon",
                "coordinates": [[[1, 1], [60, 1], [60, 60], [1, 60], [1, 1]]],
            }
        ),
        encoding="utf-8",
    )
    out_path = tmp_path / "out" / "tiles.geojson"

    result = cli.main(
        [
            "estimate",
            str(region_path),
            "--raster",
            str(raster_path),
            "--base-zoom",
            "3",
            "--max-tiles",
            "1",
            "--geojson",
            str(out_path),
        ]
    )

    assert result == 0
    summary = _last_json(capsys)
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert payload["type"] == "FeatureCollection"
    assert len(payload["features"]) == summary["tiles"]
    assert summary["tiles"] > 1


def test_cli_estimate_over_limit(raster_path: Path) -> None:
    result = cli.main(
        [
            "estimate",
            "10,10,20,20",
            "--raster",
            str(raster_path),
            "--base-zoom",
            "3",
            "--limit",
            "0",
        ]
    )

    assert result == 1


def test_cli_estimate_missing_raster(tmp_path: Path) -> None:
    result = cli.main(
        ["estimate", "10,10,20,20", "--raster", str(tmp_path / "missing.png"), "--base-zoom", "3"]
    )

    assert result == 1


def test_cli_estimate_invalid_region(raster_path: Path) -> None:
    result = cli.main(
        ["estimate", "not-a-region", "--raster", str(raster_path), "--base-zoom", "3"]
    )

    assert result == 1


def test_cli_estimate_uses_config_file(raster_path: Path, tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "settings.json"
    config_path.write_text(
        json.dumps({"raster_path": str(raster_path), "base_zoom": 3, "max_zoom": 2}),
        encoding="utf-8",
    )

    result = cli.main(["--config", str(config_path), "estimate", "10,10,20,20"])

    assert result == 0
    summary = _last_json(capsys)
    assert summary["zoom"] == 2
    assert summary["nodes"] == 4


def test_cli_invalid_config(tmp_path: Path) -> None:
    config_path = tmp_path / "settings.json"
    config_path.write_text(json.dumps({"max_tiles": 0}), encoding="utf-8")

    assert cli.main(["--config", str(config_path), "estimate", "10,10,20,20"]) == 1


def test_cli_hexes(tmp_path: Path, capsys) -> None:
    out_path = tmp_path / "hexes.geojson"

    result = cli.main(["hexes", "8,47,9,48", "--resolution", "4", "--geojson", str(out_path)])

    assert result == 0
    summary = _last_json(capsys)
    assert summary["resolution"] == 4
    assert summary["cells"] > 0
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert payload["features"][0]["geometry"]["type"] == "MultiPolygon"


def test_cli_inspect(raster_path: Path, capsys) -> None:
    result = cli.main(["inspect", "--raster", str(raster_path), "--base-zoom", "3"])

    assert result == 0
    stats = _last_json(capsys)
    assert stats["size"] == 8
    assert stats["total"] == 64
    assert stats["nonzero_pixels"] == 64


def test_module_entrypoint(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["tiledensity", "version"])

    with pytest.raises(SystemExit) as excinfo:
        runpy.run_module("tiledensity", run_name="__main__")

    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == __version__


def test_cli_estimate_long_inline_geojson(raster_path: Path, capsys) -> None:
    ring = [[10.0 + step / 100.0, 10.0] for step in range(0, 1000, 10)]
    ring += [[20.0, 10.0], [20.0, 20.0], [10.0, 20.0], [10.0, 10.0]]
    region = json.dumps({"type": "Polygon", "coordinates": [ring]})
    assert len(region) > 1024

    result = cli.main(
        ["estimate", region, "--raster", str(raster_path), "--base-zoom", "3", "--max-zoom", "3"]
    )

    assert result == 0
    summary = _last_json(capsys)
    assert summary["tiles"] == 1
    assert summary["nodes"] == 1


def test_cli_long_inline_bbox_text_is_not_a_path(raster_path: Path) -> None:
    region = "10.0" + "0" * 300 + ",10,20,20"

    result = cli.main(["estimate", region, "--raster", str(raster_path), "--base-zoom", "3"])

    assert result == 0
