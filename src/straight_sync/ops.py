import enum
import logging
from dataclasses import dataclass

from rich.text import Text

from .constants import (
    APP_NAME,
    COLOR_AUTHOR,
    COLOR_DATE,
    COLOR_HASH,
    COLOR_MESSAGE,
    MESSAGE_INDENT,
    SHORT_HASH_LEN,
)
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


class PullOutcome(enum.Enum):
    """Result of a successful pull. Failures are raised as GitError."""

    UNCHANGED = "unchanged"
    CHANGED = "changed"


@dataclass(frozen=True)
class MarkerInfo:
    """State of a marker tag after `ensure_marker`.

    Attributes:
        name (str): The tag name (without the refs/tags/ prefix).
        sha (str): The commit the tag now points at.
        previous (str | None): The commit it pointed at before, or None if
            the tag was created.
    """

    name: str
    sha: str
    previous: str | None


@dataclass(frozen=True)
class Commit:
    """A single commit as shown in the update summary."""

    sha: str
    timestamp: int
    date: str
    author: str
    message: str

    @property
    def short_sha(self) -> str:
        return self.sha[:SHORT_HASH_LEN]


def marker_ref(name: str) -> str:
    """Returns the fully qualified tag reference for a marker name."""
    return f"refs/tags/{name}"


def read_marker(repo: GitRepo, name: str) -> str | None:
    """Returns the commit a marker points at, or None if it does not exist."""
    return repo.rev_parse(marker_ref(name))


def ensure_marker(repo: GitRepo, name: str, target_sha: str) -> MarkerInfo:
    """Creates the marker tag at `target_sha`, or moves it there if it exists.

    Both paths write the same reference, so the configured name is used for
    creation and for moves alike.

    Args:
        repo (GitRepo): The repository holding the marker.
        name (str): The marker tag name.
        target_sha (str): The commit the marker should point at.

    Returns:
        MarkerInfo: The marker's new and previous targets.

    Raises:
        GitError: If the reference store cannot be read or written.
    """
    previous = read_marker(repo, name)
    if previous != target_sha:
        repo.update_ref(marker_ref(name), target_sha)
        if previous is None:
            logger.debug(f"MARKER {repo.path.name}: created {name} at {target_sha[:8]}")
        else:
            logger.debug(
                f"MARKER {repo.path.name}: moved {name} "
                f"{previous[:8]} -> {target_sha[:8]}"
            )
    return MarkerInfo(name=name, sha=target_sha, previous=previous)


def pull_changes(
    repo: GitRepo, remote: str, timeout: float | None = None
) -> PullOutcome:
    """Pulls from `remote` and reports whether the working tree moved.

    Args:
        repo (GitRepo): The repository to update.
        remote (str): The remote to pull from.
        timeout (float | None, optional): Seconds before the pull is aborted.

    Returns:
        PullOutcome: CHANGED if HEAD moved, UNCHANGED if already up to date.

    Raises:
        GitError: If the pull fails for any other reason.
    """
    before = repo.head()
    repo.pull(remote, timeout=timeout)
    after = repo.head()
    if before == after:
        return PullOutcome.UNCHANGED
    logger.info(f"PULLED {repo.path.name}: {before[:8]} -> {after[:8]}")
    return PullOutcome.CHANGED


def commits_since(repo: GitRepo, marker_sha: str, mode: str = "time") -> list[Commit]:
    """Lists commits reachable from HEAD that arrived after the marker.

    In 'time' mode the marker commit's committer timestamp plus one second is
    the cutoff, and every commit reachable from HEAD committed at or after it
    is returned. A commit sharing the marker's exact second is therefore left
    out, even if it is new. The whole history is filtered, so new commits
    behind an older-dated (clock-skewed) commit are still found. 'range' mode
    uses `marker..HEAD` ancestry instead.

    Args:
        repo (GitRepo): The repository to inspect.
        marker_sha (str): The commit the marker pointed at before pulling.
        mode (str, optional): 'time' or 'range'. Defaults to 'time'.

    Returns:
        list[Commit]: New commits in git's traversal order.
    """
    if mode == "range":
        records = repo.log_records(f"{marker_sha}..HEAD")
    elif mode == "time":
        cutoff = repo.commit_time(marker_sha) + 1
        # No --since: git stops walking at the first commit older than it.
        records = [r for r in repo.log_records("HEAD") if r[1] >= cutoff]
    else:
        raise ValueError(f"Unknown log mode '{mode}'")
    return [Commit(*record) for record in records]


def render_commit(commit: Commit) -> Text:
    """Renders one commit as a two-part colorized block."""
    message = commit.message.rstrip("\n").replace("\n", "\n" + MESSAGE_INDENT)
    text = Text("\t")
    text.append(commit.date, style=COLOR_DATE)
    text.append(" ")
    text.append(commit.short_sha, style=COLOR_HASH)
    text.append(" ")
    text.append(commit.author, style=COLOR_AUTHOR)
    text.append("\n" + MESSAGE_INDENT)
    text.append(message, style=COLOR_MESSAGE)
    text.append("\n")
    return text


def render_commits(commits: list[Commit]) -> Text:
    """Concatenates rendered blocks for a list of commits."""
    text = Text()
    for commit in commits:
        text.append_text(render_commit(commit))
    return text


def collect_new_commits(
    repo: GitRepo, marker_sha: str, mode: str = "time"
) -> tuple[Text, int]:
    """Renders the commits that arrived since `marker_sha`.

    Returns:
        tuple[Text, int]: The rendered summary and the number of commits.
            A count of 0 means nothing new arrived.
    """
    commits = commits_since(repo, marker_sha, mode)
    return render_commits(commits), len(commits)
