"""Load PubGraph configuration from a `.env` file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional

from dotenv import load_dotenv

DOTENV_OVERRIDE_VAR = "PUBGRAPH_DOTENV_PATH"

_loaded = False
_loaded_path: Optional[Path] = None


def _candidate_dirs() -> Iterator[Path]:
    cwd = Path.cwd().resolve()
    yield cwd
    yield from cwd.parents
    yield Path(__file__).resolve().parents[3]


def find_dotenv_path() -> Optional[Path]:
    """Return the `.env` file to load, if any.

    ``PUBGRAPH_DOTENV_PATH`` wins when set (a missing file then means no
    `.env` at all); otherwise the nearest `.env` from the working directory
    upwards, then the one at the project root.
    """

    override = os.getenv(DOTENV_OVERRIDE_VAR)
    if override:
        path = Path(override).expanduser()
        return path if path.is_file() else None
    return next(
        (directory / ".env" for directory in _candidate_dirs() if (directory / ".env").is_file()),
        None,
    )


def load_project_dotenv(*, refresh: bool = False) -> Path | None:
    """Load the project `.env` once per process and return the file that was applied.

    Variables already present in the environment are left untouched.
    """

    global _loaded, _loaded_path
    if _loaded and not refresh:
        return _loaded_path

    path = find_dotenv_path()
    _loaded_path = path if path is not None and load_dotenv(path, override=False) else None
    _loaded = True
    return _loaded_path


__all__ = ["DOTENV_OVERRIDE_VAR", "find_dotenv_path", "load_project_dotenv"]
