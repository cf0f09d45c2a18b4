import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

# NUL-framed `git log -z` output. Commit messages cannot contain NUL.
_LOG_FIELDS = ["%H", "%ct", "%cs", "%an <%ae>", "%B"]
_LOG_FORMAT = "%x00".join(_LOG_FIELDS)


class GitError(RuntimeError):
    """Raised when a git command fails or times out."""


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    This class provides the handful of plumbing operations the updater needs:
    reading HEAD and remotes, managing tags, pulling, and walking history.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git entry.
        """
        self.path = path
        # `.git` is a file for worktrees and submodules.
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(
        self,
        args: list[str],
        capture: bool = True,
        env: dict | None = None,
        timeout: float | None = None,
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional): Whether to capture and return stdout.
                Defaults to True.
            env (dict | None, optional): Environment variables to pass to the
                subprocess. Defaults to None.
            timeout (float | None, optional): Seconds before the command is
                killed. Defaults to None (no limit).

        Returns:
            str: The stripped stdout of the command if capture is True,
                otherwise an empty string.

        Raises:
            GitError: If the git command returns a non-zero exit code or
                exceeds the timeout.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
                env=env,
                timeout=timeout,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.strip() if e.stderr else ""
            raise GitError(f"Git error: {stderr or e}") from e
        except subprocess.TimeoutExpired as e:
            raise GitError(f"Git timed out after {timeout}s: git {' '.join(args)}") from e

    def head(self) -> str:
        """Resolves HEAD to a full SHA-1 hash.

        Raises:
            GitError: If HEAD cannot be resolved (e.g. an empty repository).
        """
        return self._run(["rev-parse", "--verify", "HEAD^{commit}"])

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'refs/tags/v1').

        Returns:
            str | None: The full SHA-1 hash,
                or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except GitError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def remote_url(self, remote: str) -> str:
        """Returns the first configured URL of a remote.

        Raises:
            GitError: If the remote does not exist.
        """
        return self._run(["remote", "get-url", remote]).splitlines()[0]

    def update_ref(self, ref: str, new_oid: str, old_oid: str | None = None) -> None:
        """Creates or moves a reference to a new object ID.

        Args:
            ref (str): The reference to update (e.g., 'refs/tags/Updated.At').
            new_oid (str): The new SHA-1 hash.
            old_oid (str | None, optional): The expected old SHA-1 hash. If provided,
                the update will fail if the current ref does not match this value.
        """
        cmd = ["update-ref", "-m", f"{APP_NAME}: marker", ref, new_oid]
        if old_oid:
            cmd.append(old_oid)
        try:
            self._run(cmd)
        except GitError as e:
            logger.warning(f"Failed to update ref {ref}: {e}")
            raise

    def commit_time(self, rev: str) -> int:
        """Returns the committer timestamp (Unix seconds) of a revision."""
        return int(self._run(["log", "-1", "--format=%ct", rev]))

    def pull(self, remote: str, timeout: float | None = None) -> None:
        """Fast-forwards the current branch from a remote.

        Terminal prompts are disabled so a remote asking for credentials
        fails instead of blocking the run.

        Args:
            remote (str): The remote to pull from.
            timeout (float | None, optional): Seconds before the pull is killed.
        """
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
        self._run(["pull", "--ff-only", "--quiet", remote], env=env, timeout=timeout)

    def log_records(self, *args: str) -> list[tuple[str, int, str, str, str]]:
        """Walks history and returns raw commit records.

        Args:
            *args (str): Revision arguments passed through to `git log`
                (e.g. 'HEAD', 'a..b').

        Returns:
            list[tuple[str, int, str, str, str]]: (sha, committer timestamp,
                committer date, author identity, message) in git's traversal order.
        """
        output = self._run(["log", "-z", f"--format={_LOG_FORMAT}", *args])
        if not output:
            return []

        # Fields and commits are both NUL-separated, so the output is a flat
        # sequence of fixed-size groups. A trailing terminator leaves one extra
        # empty element.
        fields = output.split("\0")
        width = len(_LOG_FIELDS)
        if len(fields) % width == 1 and fields[-1] == "":
            fields.pop()
        if len(fields) % width:
            raise GitError(f"Unexpected git log output in {self.path}")

        records = []
        for i in range(0, len(fields), width):
            sha, ts, date, author, message = fields[i : i + width]
            records.append((sha.strip(), int(ts), date, author, message.rstrip("\n")))
        return records
