"""Utility helpers for PubGraph scripts and tooling."""

from .env import load_project_dotenv
from .paths import PROJECT_ROOT, ensure_directory, relative_to_repo, resolve_repo_root

__all__ = [
    "PROJECT_ROOT",
    "ensure_directory",
    "load_project_dotenv",
    "relative_to_repo",
    "resolve_repo_root",
]
