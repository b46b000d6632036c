from __future__ import annotations

import subprocess
from pathlib import Path

import pubgraph.utils.paths as paths_mod
from pubgraph.utils.paths import PROJECT_ROOT, ensure_directory, relative_to_repo, resolve_repo_root


def test_project_root_contains_packaging():
    assert (PROJECT_ROOT / "pyproject.toml").exists()
    assert (PROJECT_ROOT / "src" / "pubgraph").is_dir()


def test_ensure_directory_creates_parents(tmp_path):
    target = tmp_path / "nested" / "deeper" / "extract_run.json"
    assert not target.parent.exists()
    assert ensure_directory(target) == target
    assert target.parent.is_dir()


def test_relative_to_repo_prefers_base(tmp_path):
    base = tmp_path / "base"
    file_path = base / "inner" / "publications.csv"
    file_path.parent.mkdir(parents=True)
    file_path.write_text("x", encoding="utf-8")
    assert relative_to_repo(file_path, base=base).replace("\\", "/") == "inner/publications.csv"


def test_relative_to_repo_falls_back_to_absolute(monkeypatch, tmp_path):
    monkeypatch.setattr(paths_mod, "resolve_repo_root", lambda: None)
    outside = tmp_path / "x" / "y.csv"
    outside.parent.mkdir(parents=True)
    outside.write_text("ok", encoding="utf-8")
    rel = relative_to_repo(outside)
    assert Path(rel) == outside.resolve()


def test_resolve_repo_root_none_when_git_missing(monkeypatch):
    monkeypatch.setattr(paths_mod.shutil, "which", lambda _name: None)
    assert resolve_repo_root() is None


def test_resolve_repo_root_parses_git_output(monkeypatch, tmp_path):
    calls = []

    def fake_check_output(command, **kwargs):
        calls.append(command)
        return f"{tmp_path}\n"

    monkeypatch.setattr(paths_mod.shutil, "which", lambda _name: "/usr/bin/git")
    monkeypatch.setattr(paths_mod.subprocess, "check_output", fake_check_output)
    assert resolve_repo_root() == tmp_path
    assert calls[0][1:3] == ["-C", str(PROJECT_ROOT)]


def test_resolve_repo_root_none_when_git_fails(monkeypatch):
    def failing_run(*args, **kwargs):
        raise subprocess.CalledProcessError(128, args[0])

    monkeypatch.setattr(paths_mod.shutil, "which", lambda _name: "/usr/bin/git")
    monkeypatch.setattr(paths_mod.subprocess, "check_output", failing_run)
    assert resolve_repo_root() is None
