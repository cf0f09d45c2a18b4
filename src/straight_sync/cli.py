import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from . import ops, system, updater
from .config import LOG_MODES, Config
from .constants import APP_NAME, COLOR_COUNT
from .git_wrapper import GitError, GitRepo

logger = logging.getLogger(APP_NAME)
console = Console()


def print_report(report: updater.RepoReport) -> None:
    """Prints the summary block of a repository that received new commits."""
    if report.failed:
        console.print(
            f"[bold red]ERROR:[/bold red] {escape(report.path.name)}: {escape(report.error)}",
            highlight=False,
        )
        return
    if report.count == 0:
        return

    header = Text()
    header.append(f"Fetched from {report.remote_url}", style="yellow")
    header.append(" ")
    header.append(f"{report.count} new commits", style=COLOR_COUNT)
    console.print(header, soft_wrap=True)
    console.print(Text(f"local path: {report.path}", style="dim"), soft_wrap=True)
    console.print(report.log, end="", soft_wrap=True)


def print_summary(result: updater.RunResult) -> None:
    """Prints the end-of-run failure summary, if any repository failed."""
    failures = result.failures
    if not failures:
        return

    table = Table(title=f"{len(failures)} repositories failed", title_style="bold red")
    table.add_column("Repository", style="cyan")
    table.add_column("Error", style="red")
    for report in sorted(failures, key=lambda r: r.path):
        table.add_row(Text(report.path.name), Text(report.error))
    console.print(table)


def list_repos(config: Config) -> None:
    """Displays discovered repositories and where their marker points."""
    repos = system.list_repos(config.discovery)
    if not repos:
        console.print(
            f"[yellow]No repositories found in "
            f"{system.get_repos_root(config.discovery)}.[/yellow]"
        )
        return

    table = Table(title=f"Repositories ({len(repos)})")
    table.add_column("Name", style="cyan")
    table.add_column(config.core.marker_name, style="magenta")
    table.add_column("Path", style="dim")

    for path in repos:
        try:
            sha = ops.read_marker(GitRepo(path), config.core.marker_name)
            marker = sha[:8] if sha else "[dim]never synced[/dim]"
        except ValueError:
            marker = "[red]not a git repository[/red]"
        table.add_row(Text(path.name), marker, Text(str(path)))

    console.print(table)


def run_sync(config: Config) -> int:
    """Runs one update pass and returns the process exit status.

    Args:
        config (Config): Run configuration.

    Returns:
        int: 0 on full success, 1 if any repository or the restart failed.
    """
    try:
        repos = system.list_repos(config.discovery)
    except system.DiscoveryError as e:
        logger.critical(str(e))
        console.print(f"[bold red]FATAL:[/bold red] {escape(str(e))}")
        return 1

    logger.info(f"Updating {len(repos)} repositories")
    try:
        result = updater.run_updates(repos, config, on_report=print_report)
    except (GitError, ValueError, OSError) as e:
        logger.critical(f"Aborted: {e}")
        console.print(f"[bold red]FATAL:[/bold red] {escape(str(e))}")
        return 1

    print_summary(result)

    if result.restart_needed and config.restart.enabled:
        try:
            system.restart_companion(config.restart.commands)
        except system.RestartError as e:
            logger.critical(str(e))
            console.print(f"[bold red]FATAL:[/bold red] {escape(str(e))}")
            return 1

    return 1 if result.failures else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Pull updates into local repositories and summarize new commits.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an alternative config.toml",
    )
    parser.add_argument(
        "--no-restart",
        action="store_true",
        help="Do not restart the companion process after updates",
    )
    parser.add_argument(
        "--jobs",
        "-j",
        type=int,
        default=None,
        help="Maximum repositories updated concurrently",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort the run on the first repository failure",
    )
    parser.add_argument(
        "--mode",
        choices=LOG_MODES,
        default=None,
        help="How new commits are selected: by timestamp or by ancestry",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log debug output to stderr"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("list", help="List repositories and their marker")
    subparsers.add_parser("help", help="Show this help message")
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Applies command-line flags on top of the loaded configuration."""
    if args.no_restart:
        config.restart.enabled = False
    if args.jobs is not None:
        if args.jobs < 1:
            raise ValueError("--jobs must be at least 1")
        config.sync.max_workers = args.jobs
    if args.fail_fast:
        config.sync.fail_fast = True
    if args.mode:
        config.sync.log_mode = args.mode
    return config


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the straight-sync CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return

    # Logging comes first so config warnings reach the log file.
    file_handler = updater.setup_logging(args.verbose)
    config = Config.load(args.config)
    if file_handler is not None:
        file_handler.maxBytes = config.limits.max_log_size
    try:
        apply_overrides(config, args)
    except ValueError as e:
        parser.error(str(e))

    if args.command == "list":
        try:
            list_repos(config)
        except system.DiscoveryError as e:
            console.print(f"[bold red]FATAL:[/bold red] {escape(str(e))}")
            sys.exit(1)
        return

    sys.exit(run_sync(config))


if __name__ == "__main__":
    main()
