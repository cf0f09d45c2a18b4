import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from straight_sync.git_wrapper import GitError, GitRepo


@pytest.fixture
def repo(tmp_path: Path) -> GitRepo:
    (tmp_path / ".git").mkdir()
    return GitRepo(tmp_path)


def test_rejects_non_repository(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Not a git repository"):
        GitRepo(tmp_path)


def test_accepts_gitfile_worktree(tmp_path: Path) -> None:
    """A `.git` file (worktrees, submodules) is accepted like a directory."""
    (tmp_path / ".git").write_text("gitdir: /elsewhere/.git/worktrees/x\n")
    assert GitRepo(tmp_path).path == tmp_path


def test_run_wraps_process_errors(mocker: MagicMock, repo: GitRepo) -> None:
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(
            128, ["git", "pull"], stderr="fatal: couldn't find remote ref\n"
        ),
    )

    with pytest.raises(GitError, match="fatal: couldn't find remote ref"):
        repo._run(["pull"])


def test_run_wraps_timeouts(mocker: MagicMock, repo: GitRepo) -> None:
    mocker.patch(
        "subprocess.run", side_effect=subprocess.TimeoutExpired(["git", "pull"], 5)
    )

    with pytest.raises(GitError, match="timed out after 5s"):
        repo._run(["pull"], timeout=5)


def test_rev_parse_returns_none_on_failure(mocker: MagicMock, repo: GitRepo) -> None:
    mocker.patch.object(repo, "_run", side_effect=GitError("Git error: unknown"))

    assert repo.rev_parse("refs/tags/Updated.At") is None


def test_pull_disables_prompts(mocker: MagicMock, repo: GitRepo) -> None:
    mock_run = mocker.patch.object(repo, "_run")

    repo.pull("origin", timeout=60)

    args, kwargs = mock_run.call_args
    assert args[0] == ["pull", "--ff-only", "--quiet", "origin"]
    assert kwargs["timeout"] == 60
    assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"


def test_update_ref_logs_and_reraises(
    mocker: MagicMock, caplog: pytest.LogCaptureFixture, repo: GitRepo
) -> None:
    mocker.patch.object(repo, "_run", side_effect=GitError("Git error: locked"))

    with pytest.raises(GitError):
        repo.update_ref("refs/tags/Updated.At", "a" * 40)

    assert "Failed to update ref refs/tags/Updated.At" in caplog.text


def test_log_records_parsing(mocker: MagicMock, repo: GitRepo) -> None:
    """Verifies that multi-line messages survive the NUL-framed split."""
    output = "\0".join(
        [
            "a" * 40,
            "1700000200",
            "2023-11-14",
            "Ann <ann@x>",
            "Subject\n\nBody line\n",
            "b" * 40,
            "1700000100",
            "2023-11-14",
            "Bob <bob@x>",
            "Single",
        ]
    )
    mock_run = mocker.patch.object(repo, "_run", return_value=output)

    records = repo.log_records("a..b")

    cmd = mock_run.call_args.args[0]
    assert "-z" in cmd
    assert cmd[-1] == "a..b"
    assert records == [
        ("a" * 40, 1700000200, "2023-11-14", "Ann <ann@x>", "Subject\n\nBody line"),
        ("b" * 40, 1700000100, "2023-11-14", "Bob <bob@x>", "Single"),
    ]


def test_log_records_keeps_control_separators_in_messages(
    mocker: MagicMock, repo: GitRepo
) -> None:
    """Unit and record separator bytes in a message are plain content."""
    message = "weird\x1fsubject\x1e\nbody"
    output = "\0".join(["c" * 40, "1700000300", "2023-11-14", "Cy <c@x>", message])
    output += "\0"
    mocker.patch.object(repo, "_run", return_value=output)

    assert repo.log_records("HEAD") == [
        ("c" * 40, 1700000300, "2023-11-14", "Cy <c@x>", message)
    ]


def test_log_records_rejects_truncated_output(
    mocker: MagicMock, repo: GitRepo
) -> None:
    mocker.patch.object(repo, "_run", return_value="\0".join(["d" * 40, "1"]))

    with pytest.raises(GitError, match="Unexpected git log output"):
        repo.log_records("HEAD")


def test_log_records_empty(mocker: MagicMock, repo: GitRepo) -> None:
    mocker.patch.object(repo, "_run", return_value="")
    assert repo.log_records("HEAD") == []
