"""Tests for the git dependency installer."""

import os
from pathlib import Path

import pytest

from luastrap.config import GitDependency
from luastrap.deps.git import GitInstaller, parse_progress_line
from luastrap.deps.progress import ProgressEvent, ProgressPhase
from luastrap.errors import DependencyIOError, GitError, GitErrorCode

from conftest import needs_git


@pytest.mark.parametrize("line, phase, current, total", [
    ("Receiving objects:  45% (450/1000), 1.20 MiB | 2.00 MiB/s", ProgressPhase.RECEIVING, 450, 1000),
    ("Receiving objects: 100% (3/3), done.", ProgressPhase.RECEIVING, 3, 3),
    ("Resolving deltas:  10% (1/10)", ProgressPhase.RESOLVING, 1, 10),
    ("Updating files:  50% (5/10)", ProgressPhase.CHECKOUT, 5, 10),
    ("Checking out files: 100% (7/7), done.", ProgressPhase.CHECKOUT, 7, 7),
])
def test_parse_progress_line(line, phase, current, total):
    assert parse_progress_line(line, "deps/lib") == ProgressEvent(
        phase=phase, current=current, total=total, label="deps/lib")


@pytest.mark.parametrize("line", [
    "Cloning into 'deps/lib'...",
    "remote: Counting objects: 100% (3/3), done.",
    "fatal: repository 'x' does not exist",
    "",
])
def test_non_progress_lines_are_ignored(line):
    assert parse_progress_line(line, "deps/lib") is None


@needs_git
def test_install_clones_and_strips_metadata(git_source, tmp_path):
    events = []
    dependency = GitDependency(location="deps/lib", source=git_source)

    target = GitInstaller().install(dependency, sink=events.append, base_dir=tmp_path)

    assert target == tmp_path / "deps" / "lib"
    assert (target / "init.lua").read_text(encoding="utf-8") == "return {}\n"
    assert not (target / ".git").exists()
    assert events
    assert all(isinstance(e, ProgressEvent) and e.label == "deps/lib" for e in events)
    receiving = [e for e in events if e.phase is ProgressPhase.RECEIVING]
    assert receiving
    assert all(0 <= e.current <= e.total for e in receiving)
    assert receiving[-1].current == receiving[-1].total


@needs_git
def test_install_uses_path_override(git_source, tmp_path):
    dependency = GitDependency(location="lib", source=git_source, path="vendor/lib")

    target = GitInstaller().install(dependency, base_dir=tmp_path)

    assert target == tmp_path / "vendor" / "lib"
    assert (target / "README.md").exists()
    assert not (tmp_path / "lib").exists()


@needs_git
def test_second_install_reports_already_exists(git_source, tmp_path):
    dependency = GitDependency(location="lib", source=git_source)
    installer = GitInstaller()
    installer.install(dependency, base_dir=tmp_path)

    with pytest.raises(GitError) as excinfo:
        installer.install(dependency, base_dir=tmp_path)

    assert excinfo.value.code is GitErrorCode.EXISTS
    assert excinfo.value.already_exists


def test_existing_file_at_target_reports_already_exists(tmp_path):
    (tmp_path / "lib").write_text("occupied", encoding="utf-8")
    dependency = GitDependency(location="lib", source="https://example.invalid/lib.git")

    with pytest.raises(GitError) as excinfo:
        GitInstaller(executable="git-that-does-not-exist").install(dependency, base_dir=tmp_path)

    assert excinfo.value.already_exists


@needs_git
def test_empty_target_directory_is_cloned_into(git_source, tmp_path):
    (tmp_path / "lib").mkdir()
    dependency = GitDependency(location="lib", source=git_source)

    target = GitInstaller().install(dependency, base_dir=tmp_path)

    assert (target / "init.lua").exists()


@needs_git
def test_unreachable_source_is_a_clone_failure(tmp_path):
    missing = (tmp_path / "missing-repo").as_uri()
    dependency = GitDependency(location="lib", source=missing)

    with pytest.raises(GitError) as excinfo:
        GitInstaller().install(dependency, base_dir=tmp_path)

    assert excinfo.value.code is GitErrorCode.CLONE_FAILED
    assert not excinfo.value.already_exists
    assert excinfo.value.context["dependency"] == "lib"


def test_missing_git_executable_is_an_io_error(tmp_path):
    dependency = GitDependency(location="lib", source="https://example.invalid/lib.git")

    with pytest.raises(DependencyIOError):
        GitInstaller(executable=str(tmp_path / "no-git")).install(dependency, base_dir=tmp_path)


def test_target_for_absolute_path(tmp_path):
    absolute = tmp_path / "elsewhere"
    dependency = GitDependency(location="lib", source="x", path=str(absolute))

    assert GitInstaller().target_for(dependency, base_dir=Path("/ignored")) == absolute


def _unreadable(self):
    raise PermissionError(13, "Permission denied", str(self))


def test_unreadable_target_is_an_io_error(tmp_path, monkeypatch):
    (tmp_path / "lib").mkdir()
    monkeypatch.setattr(Path, "iterdir", _unreadable)
    dependency = GitDependency(location="lib", source="https://example.invalid/lib.git")

    with pytest.raises(DependencyIOError) as excinfo:
        GitInstaller(executable="git-that-does-not-exist").install(dependency, base_dir=tmp_path)

    assert excinfo.value.context["dependency"] == "lib"
    assert excinfo.value.context["path"] == str(tmp_path / "lib")
    assert isinstance(excinfo.value.__cause__, PermissionError)


@pytest.mark.skipif(not hasattr(os, "geteuid") or os.geteuid() == 0,
                    reason="needs a non-root POSIX user for permission checks")
def test_target_without_read_permission_is_an_io_error(tmp_path):
    target = tmp_path / "lib"
    target.mkdir()
    target.chmod(0)
    dependency = GitDependency(location="lib", source="https://example.invalid/lib.git")

    try:
        with pytest.raises(DependencyIOError):
            GitInstaller().install(dependency, base_dir=tmp_path)
    finally:
        target.chmod(0o755)
