import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_REMOTE,
    MARKER_TAG,
    REPOS_DIR,
    REPOS_GLOB,
    RESTART_COMMANDS,
)

logger = logging.getLogger(APP_NAME)

LOG_MODES = ("time", "range")


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def parse_log_mode(value: str) -> str:
    """Validates the commit enumeration mode."""
    mode = str(value).strip().lower()
    if mode not in LOG_MODES:
        raise ValueError(f"Invalid log mode '{value}'")
    return mode


def parse_positive(value: int) -> int:
    if not isinstance(value, int) or value < 1:
        raise ValueError(f"Expected a positive integer, got '{value}'")
    return value


@dataclass
class CoreConfig:
    """Core repository settings.

    Attributes:
        marker_name (str): Tag name recording the last-seen HEAD.
        remote_name (str): The git remote to pull from.
    """

    marker_name: str = MARKER_TAG
    remote_name: str = DEFAULT_REMOTE


@dataclass
class DiscoveryConfig:
    """Repository discovery settings.

    Attributes:
        repos_dir (str): Directory holding the repositories. Relative paths
            are resolved against the user's home directory.
        repos_glob (str): Glob selecting repositories inside `repos_dir`.
    """

    repos_dir: str = REPOS_DIR
    repos_glob: str = REPOS_GLOB


@dataclass
class SyncConfig:
    """Per-run synchronization settings.

    Attributes:
        max_workers (int): Upper bound on repositories processed concurrently.
        fail_fast (bool): Abort the whole run on the first repository failure.
        pull_timeout (int): Seconds a single pull may take.
        log_mode (str): 'time' (committer timestamp cutoff) or 'range'
            (marker..HEAD ancestry).
    """

    max_workers: int = 8
    fail_fast: bool = False
    pull_timeout: int = 300
    log_mode: str = "time"


@dataclass
class RestartConfig:
    """Companion process restart settings.

    Attributes:
        enabled (bool): Whether to restart when new commits arrived.
        commands (list[str]): Shell-style commands run in order.
    """

    enabled: bool = True
    commands: list[str] = field(default_factory=lambda: list(RESTART_COMMANDS))


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for the log file before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Core settings.
        discovery (DiscoveryConfig): Repository discovery settings.
        sync (SyncConfig): Synchronization settings.
        restart (RestartConfig): Restart settings.
        limits (LimitsConfig): Resource limits.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    restart: RestartConfig = field(default_factory=RestartConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Args:
            path (Path | None): Explicit config file. Defaults to CONFIG_FILE.

        Returns:
            Config: The populated configuration object.
        """
        instance = cls()
        config_path = path or CONFIG_FILE
        if config_path.exists():
            instance._merge_from_file(config_path)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        for section in ("core", "discovery", "sync", "restart", "limits"):
            if section in data:
                current = getattr(self, section)
                setattr(
                    self,
                    section,
                    self._update_dataclass(section, current, data[section]),
                )

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "pull_timeout":
                    filtered_updates[k] = parse_time(v)
                elif k == "log_mode":
                    filtered_updates[k] = parse_log_mode(v)
                elif k == "max_workers":
                    filtered_updates[k] = parse_positive(v)
                elif k == "commands":
                    if not isinstance(v, list) or not v or not all(
                        isinstance(c, str) and c.strip() for c in v
                    ):
                        raise ValueError("Expected a list of command strings")
                    filtered_updates[k] = list(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
