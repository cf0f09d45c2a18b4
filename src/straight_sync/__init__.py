"""straight-sync: Pull updates into local package repositories.

This package provides the command-line interface, the per-repository update
cycle, and the restart hook for keeping a directory of git checkouts (by
default the straight.el repositories of an Emacs installation) up to date.
"""

from . import (
    cli,
    config,
    constants,
    git_wrapper,
    ops,
    system,
    updater,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "git_wrapper",
    "ops",
    "system",
    "updater",
]
