"""Pytest fixtures for luastrap tests."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs a POSIX shell")
needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.email=test@example.com", "-c", "user.name=Test User", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_source(tmp_path: Path) -> str:
    """A local repository with one commit, as a file:// URL."""
    repo = tmp_path / "upstream"
    repo.mkdir()
    _git(repo, "init")
    (repo / "init.lua").write_text("return {}\n", encoding="utf-8")
    (repo / "README.md").write_text("# upstream\n", encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "-m", "initial")
    return repo.as_uri()


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


def make_executable(directory: Path, name: str, body: str = "exit 0\n") -> Path:
    script = directory / name
    script.write_text(f"#!/bin/sh\n{body}", encoding="utf-8")
    script.chmod(0o755)
    return script


@pytest.fixture
def project(tmp_path: Path):
    """Write a strap.toml into a fresh project directory and return its path."""
    root = tmp_path / "project"
    root.mkdir()

    def write(contents: str, name: str = "strap.toml") -> Path:
        config_file = root / name
        config_file.write_text(contents, encoding="utf-8")
        return config_file

    return write
