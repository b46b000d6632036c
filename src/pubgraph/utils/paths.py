"""Filesystem locations used by PubGraph tooling."""

from __future__ import annotations

import functools
import shutil
import subprocess
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[3]


@functools.lru_cache(maxsize=1)
def resolve_repo_root() -> Path | None:
    """Return the git work tree containing the project, or None outside a checkout."""

    git = shutil.which("git")
    if git is None:
        return None
    try:
        output = subprocess.check_output(
            [git, "-C", str(PROJECT_ROOT), "rev-parse", "--show-toplevel"],
            text=True,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    top_level = output.strip()
    return Path(top_level) if top_level else None


def ensure_directory(path: Path) -> Path:
    """Create the parent directory of ``path`` and return ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def relative_to_repo(path: Path, *, base: Path | None = None) -> str:
    """Render ``path`` relative to ``base``, the git work tree, the project root or the cwd.

    The first root that contains ``path`` wins; otherwise the absolute path is returned.
    """

    resolved = Path(path).resolve()
    roots = (
        base.resolve() if base is not None else None,
        resolve_repo_root(),
        PROJECT_ROOT,
        Path.cwd(),
    )
    for root in roots:
        if root is not None and resolved.is_relative_to(root):
            return resolved.relative_to(root).as_posix()
    return str(resolved)
