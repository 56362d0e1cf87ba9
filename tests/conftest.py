from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import pytest  # noqa: E402

from tiledensity import config as estimator_config  # noqa: E402
from tiledensity.logging_utils import HumanFormatter, JsonFormatter  # noqa: E402


def pytest_collection_modifyitems(config, items) -> None:
    """Skip integration tests unless explicitly selected via -m integration."""
    markexpr = config.option.markexpr or ""
    if "integration" in markexpr:
        return
    skip_integration = pytest.mark.skip(reason="integration tests run only with -m integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path) -> None:
    """Prevent local tiledensity configs from bleeding into tests."""
    monkeypatch.delenv(estimator_config.ENV_CONFIG_PATH, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_configured_logging():
    """Drop handlers installed by configure_logging during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, (JsonFormatter, HumanFormatter)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
