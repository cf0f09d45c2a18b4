import logging
import shlex
import subprocess
from pathlib import Path

from rich.console import Console
from rich.text import Text

from .config import DiscoveryConfig
from .constants import APP_NAME, COLOR_STDERR, COLOR_STDOUT

console = Console()
logger = logging.getLogger(APP_NAME)


class DiscoveryError(RuntimeError):
    """Raised when the repositories directory cannot be located."""


class RestartError(RuntimeError):
    """Raised when a restart command is missing or exits non-zero."""


def get_repos_root(discovery: DiscoveryConfig) -> Path:
    """Resolves the directory that holds the managed repositories.

    Args:
        discovery (DiscoveryConfig): Discovery settings.

    Returns:
        Path: `repos_dir` itself if absolute, otherwise joined onto home.

    Raises:
        DiscoveryError: If the home directory cannot be determined.
    """
    repos_dir = Path(discovery.repos_dir).expanduser()
    if repos_dir.is_absolute():
        return repos_dir
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise DiscoveryError(f"Could not determine home directory: {e}") from e
    return home / repos_dir


def list_repos(discovery: DiscoveryConfig) -> list[Path]:
    """Expands the repository glob, returning matching directories.

    An empty list (not an error) is returned when nothing matches.

    Args:
        discovery (DiscoveryConfig): Discovery settings.

    Returns:
        list[Path]: Sorted repository paths.

    Raises:
        DiscoveryError: If the home directory cannot be determined.
    """
    root = get_repos_root(discovery)
    if not root.is_dir():
        logger.info(f"Repositories directory not found: {root}")
        return []
    return sorted(p for p in root.glob(discovery.repos_glob) if p.is_dir())


def _relay(output: str, style: str) -> None:
    if output:
        console.print(Text(output, style=style), end="", soft_wrap=True)


def run_command(command: str) -> None:
    """Runs one shell-style command, relaying its output in color.

    Stdout is re-emitted in one color and stderr in another.

    Args:
        command (str): The command line, split with shell quoting rules.

    Raises:
        RestartError: If the executable is missing or exits non-zero.
    """
    args = shlex.split(command)
    logger.info(f"RESTART: running '{command}'")
    try:
        res = subprocess.run(args, capture_output=True, text=True)
    except OSError as e:
        raise RestartError(f"Could not run '{command}': {e}") from e

    _relay(res.stdout, COLOR_STDOUT)
    _relay(res.stderr, COLOR_STDERR)

    if res.returncode != 0:
        raise RestartError(f"'{command}' exited with status {res.returncode}")


def restart_companion(commands: list[str]) -> None:
    """Runs the restart commands in order, stopping at the first failure.

    Args:
        commands (list[str]): Commands to run (stop, then relaunch).

    Raises:
        RestartError: If any command fails.
    """
    for command in commands:
        run_command(command)
