from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import structlog

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"


def _ensure_path(path: Path) -> None:
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


_ensure_path(SRC_DIR)

from config.settings import PubGraphSettings  # noqa: E402
from pubgraph.utils.paths import resolve_repo_root  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_resolve_repo_root_cache():
    """Ensure resolve_repo_root cache does not leak between tests."""

    resolve_repo_root.cache_clear()
    yield
    resolve_repo_root.cache_clear()


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    PubGraphSettings.clear_cache()
    yield
    PubGraphSettings.clear_cache()


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging side effects so captured streams are not reused."""

    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
