"""Raster load handle and event-driven estimation session."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from tiledensity.config import EstimatorConfig
from tiledensity.errors import DecodeError
from tiledensity.estimate import EstimateResult, estimate_region
from tiledensity.hexcells import HexOutline, outline_cells
from tiledensity.raster import DensityRaster, load_raster
from tiledensity.region import PolygonSet

LOGGER = logging.getLogger("tiledensity.session")

RECOMPUTE_EVENTS = frozenset({"finish", "delete"})


class RasterHandle:
    """Load a density raster once, in the background, and cache it."""

    def __init__(self, loader: Callable[[], DensityRaster]) -> None:
        self._loader = loader
        self._future: Future[DensityRaster] | None = None

    @classmethod
    def from_path(cls, path: Path, base_zoom: int) -> "RasterHandle":
        return cls(lambda: load_raster(path, base_zoom=base_zoom))

    @classmethod
    def resolved(cls, raster: DensityRaster) -> "RasterHandle":
        """Return a handle that already holds a raster."""
        handle = cls(lambda: raster)
        future: Future[DensityRaster] = Future()
        future.set_result(raster)
        handle._future = future
        return handle

    def start(self) -> Future[DensityRaster]:
        """Start loading if not started yet and return the shared future."""
        if self._future is None:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="raster-load")
            self._future = executor.submit(self._loader)
            # The submitted load keeps running; no further work is accepted.
            executor.shutdown(wait=False)
        return self._future

    def result(self, timeout: float | None = None) -> DensityRaster:
        """Block until the raster is loaded; re-raises load failures."""
        return self.start().result(timeout=timeout)

    @property
    def failed(self) -> bool:
        future = self._future
        return bool(future is not None and future.done() and future.exception() is not None)


class EstimationSession:
    """Recompute estimates when the drawn selection changes."""

    def __init__(self, handle: RasterHandle, config: EstimatorConfig | None = None) -> None:
        self.handle = handle
        self.config = config or EstimatorConfig()
        self._disabled_reason: str | None = None
        handle.start()

    @classmethod
    def from_config(cls, config: EstimatorConfig) -> "EstimationSession":
        return cls(RasterHandle.from_path(config.raster_path, config.base_zoom), config)

    @property
    def available(self) -> bool:
        if self._disabled_reason is not None:
            return False
        try:
            self.handle.result()
        except DecodeError as exc:
            self._disable(exc)
            return False
        return True

    def _disable(self, exc: DecodeError) -> None:
        if self._disabled_reason is None:
            self._disabled_reason = str(exc)
            LOGGER.error("Density estimation disabled: %s", exc)

    def estimate(self, region: PolygonSet) -> EstimateResult:
        """Estimate a region; raises DecodeError if the raster failed to load."""
        raster = self.handle.result()
        return estimate_region(
            region,
            raster,
            max_tiles=self.config.max_tiles,
            max_zoom=self.config.max_zoom,
        )

    def outline(self, region: PolygonSet) -> HexOutline:
        return outline_cells(region, self.config.hex_resolution)

    def handle_event(self, event: str, region: PolygonSet) -> EstimateResult | None:
        """Recompute on "finish" and "delete" events; ignore incremental edits."""
        if event not in RECOMPUTE_EVENTS:
            return None
        if not self.available:
            return None
        return self.estimate(region)
