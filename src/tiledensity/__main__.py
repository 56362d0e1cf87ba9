"""Module entrypoint for `python -m tiledensity`."""

from __future__ import annotations

from tiledensity.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
