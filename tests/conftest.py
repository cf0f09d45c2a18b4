"""Shared fixtures building real origin/clone repository pairs."""

import os
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

BASE_TS = 1_700_000_000

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


def git(cwd: Path, *args: str, env: dict | None = None) -> str:
    """Runs a git command for test setup and returns its stripped stdout."""
    res = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
        env=env,
    )
    return res.stdout.strip()


def commit(repo: Path, message: str, ts: int) -> str:
    """Creates a commit with fixed author/committer timestamps.

    Args:
        repo (Path): Repository to commit in.
        message (str): Commit message (also written as file content).
        ts (int): Unix timestamp used for both author and committer dates.

    Returns:
        str: The new commit's SHA-1.
    """
    name = f"file-{len(list(repo.glob('file-*')))}.txt"
    (repo / name).write_text(message)
    git(repo, "add", name)
    env = os.environ.copy()
    env["GIT_AUTHOR_DATE"] = f"{ts} +0000"
    env["GIT_COMMITTER_DATE"] = f"{ts} +0000"
    git(repo, "commit", "-q", "-m", message, env=env)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolates HOME and git identity for the duration of a test."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")
    return home_dir


@pytest.fixture
def repos_dir(home: Path) -> Path:
    """The default straight.el repositories directory under the fake HOME."""
    path = home / ".emacs.d" / "straight" / "repos"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_pair(
    tmp_path: Path, repos_dir: Path
) -> Callable[[str], tuple[Path, Path]]:
    """Factory creating an upstream repository and a clone of it.

    The upstream receives one initial commit at BASE_TS; the clone lives in
    the repositories directory so discovery finds it.
    """

    def _make(name: str) -> tuple[Path, Path]:
        upstream = tmp_path / "upstream" / name
        upstream.mkdir(parents=True)
        git(upstream, "init", "-q")
        commit(upstream, f"Initial commit of {name}", BASE_TS)
        clone = repos_dir / name
        git(repos_dir, "clone", "-q", str(upstream), name)
        return upstream, clone

    return _make
