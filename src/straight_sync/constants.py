import os
from pathlib import Path

"""Global constants and path definitions for straight-sync.

This module defines the filesystem layout (adhering to XDG standards where
applicable), the marker tag name, and the default restart commands used across
the application.
"""

# --- Identity ---
APP_NAME = "straight-sync"
"""str: The human-readable application name."""

MARKER_TAG = "Updated.At"
"""str: The lightweight tag recording the last-seen HEAD of each repository."""

DEFAULT_REMOTE = "origin"
"""str: The remote every managed repository pulls from."""

# --- Repository Discovery ---
REPOS_DIR = ".emacs.d/straight/repos"
"""str: The repositories directory, relative to the user's home directory."""

REPOS_GLOB = "*"
"""str: The glob (one level deep) selecting repositories inside REPOS_DIR."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE or os.path.expanduser("~/.local/state"))

STATE_DIR = _BASE_STATE / "straight-sync"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "sync.log"
"""Path: The file path for the rotating run log."""

CONFIG_DIR: Path = Path(os.path.expanduser("~/.config/straight-sync"))
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Restart ---
RESTART_COMMANDS = [
    "emacsclient -e (kill-emacs)",
    "emacs -nw --daemon",
]
"""list[str]: Commands run in order to restart the Emacs daemon."""

# --- Colors (xterm-256 palette) ---
COLOR_DATE = "color(140)"
COLOR_HASH = "color(104)"
COLOR_AUTHOR = "color(111)"
COLOR_MESSAGE = "color(108)"
COLOR_COUNT = "color(208)"
COLOR_STDOUT = "color(147)"
COLOR_STDERR = "color(175)"

SHORT_HASH_LEN = 6
"""int: Number of hex characters shown for abbreviated commit hashes."""

MESSAGE_INDENT = "\t\t"
"""str: Prefix re-applied after every newline of a rendered commit message."""
