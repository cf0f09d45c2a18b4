import logging
import sys
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.text import Text

from . import ops
from .config import Config
from .constants import APP_NAME, LOG_FILE
from .git_wrapper import GitError, GitRepo

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


class RestartFlag:
    """A run-wide flag that workers may only ever set to true."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._set = False

    def set(self) -> None:
        with self._lock:
            self._set = True

    def is_set(self) -> bool:
        with self._lock:
            return self._set


@dataclass
class RepoReport:
    """Outcome of one repository's update cycle.

    Attributes:
        path (Path): The repository path.
        remote_url (str): URL of the remote pulled from (empty if unknown).
        outcome (ops.PullOutcome | None): The pull result, None if the
            cycle failed before or during the pull.
        count (int): Number of new commits since the marker.
        log (Text): Rendered summary of the new commits.
        error (str | None): Failure description, None on success.
    """

    path: Path
    remote_url: str = ""
    outcome: ops.PullOutcome | None = None
    count: int = 0
    log: Text = field(default_factory=Text)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class RunResult:
    """Aggregate of a whole run, available after every worker joined."""

    reports: list[RepoReport] = field(default_factory=list)
    restart_needed: bool = False

    @property
    def failures(self) -> list[RepoReport]:
        return [r for r in self.reports if r.failed]

    @property
    def changed(self) -> list[RepoReport]:
        return [r for r in self.reports if r.count > 0]


def sync_repo(path: Path, config: Config) -> RepoReport:
    """Runs the full update cycle for one repository.

    Steps:
    1. Points the marker tag at the current HEAD.
    2. Pulls from the configured remote.
    3. Collects commits that arrived since the marker.
    4. Advances the marker to the new HEAD.

    Args:
        path (Path): The repository path.
        config (Config): Run configuration.

    Returns:
        RepoReport: The cycle's outcome.

    Raises:
        GitError: If any git operation fails.
        ValueError: If the path is not a git repository.
        OSError: If the git executable cannot be run.
    """
    repo = GitRepo(path)
    report = RepoReport(path=path)

    head = repo.head()
    report.remote_url = repo.remote_url(config.core.remote_name)
    marker = ops.ensure_marker(repo, config.core.marker_name, head)

    report.outcome = ops.pull_changes(
        repo, config.core.remote_name, timeout=config.sync.pull_timeout
    )
    report.log, report.count = ops.collect_new_commits(
        repo, marker.sha, config.sync.log_mode
    )

    if report.outcome is ops.PullOutcome.CHANGED:
        ops.ensure_marker(repo, config.core.marker_name, repo.head())
    return report


def update_repo(path: Path, config: Config, restart: RestartFlag) -> RepoReport:
    """Worker entry point: syncs one repository and records its outcome.

    Failures are captured in the returned report unless fail-fast mode is on,
    in which case they propagate to abort the run.

    Args:
        path (Path): The repository path.
        config (Config): Run configuration.
        restart (RestartFlag): Set when new commits arrived.

    Returns:
        RepoReport: The cycle's outcome.
    """
    try:
        report = sync_repo(path, config)
    except (GitError, ValueError, OSError) as e:
        logger.error(f"FAILED {path.name}: {e}")
        if config.sync.fail_fast:
            raise
        return RepoReport(path=path, error=str(e))

    if report.count > 0:
        restart.set()
        logger.info(f"UPDATED {path.name}: {report.count} new commits")
    else:
        logger.debug(f"UP TO DATE {path.name}")
    return report


def run_updates(
    repos: list[Path],
    config: Config,
    on_report: Callable[[RepoReport], None] | None = None,
) -> RunResult:
    """Updates every repository on a bounded worker pool.

    Returns only once every worker has finished (the barrier). Reports are
    handed to `on_report` on the calling thread as workers complete, so
    output from different repositories never interleaves.

    Args:
        repos (list[Path]): Repository paths to update.
        config (Config): Run configuration.
        on_report (Callable | None): Called with each finished report.

    Returns:
        RunResult: All reports and whether a restart is needed.

    Raises:
        GitError | ValueError | OSError: In fail-fast mode, the first worker failure,
            after workers already started have finished.
    """
    restart = RestartFlag()
    result = RunResult()
    if not repos:
        return result

    workers = min(config.sync.max_workers, len(repos))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(update_repo, path, config, restart) for path in repos
        ]
        for future in as_completed(futures):
            try:
                report = future.result()
            except Exception:
                for other in futures:
                    other.cancel()
                raise
            result.reports.append(report)
            if on_report:
                on_report(report)

    result.restart_needed = restart.is_set()
    return result


def setup_logging(
    verbose: bool = False, max_log_size: int = 5 * 1024 * 1024
) -> RotatingFileHandler | None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, DEBUG records are emitted as well.
        max_log_size (int): Bytes before the log file is rotated.

    Returns:
        RotatingFileHandler | None: The log file handler, or None if the log
            file could not be opened.
    """
    if verbose:
        logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(stream_handler)

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_log_size,
            backupCount=5,
        )
    except OSError as e:
        logger.warning(f"Could not open log file {LOG_FILE}: {e}")
        return None
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return file_handler
