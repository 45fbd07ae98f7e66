"""Shared utility functions."""

from __future__ import annotations

import os
from pathlib import Path

PLUGIN_EXTENSIONS = (".esm", ".esp", ".esl")


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def xdg_data_home() -> Path:
    """Return XDG_DATA_HOME, defaulting to ~/.local/share."""
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def plugin_key(name: str) -> str:
    """Normalize a plugin filename for case-insensitive comparison."""
    return name.strip().casefold()


def is_plugin_file(name: str) -> bool:
    """Check whether a name looks like a Bethesda plugin file."""
    return name.strip().lower().endswith(PLUGIN_EXTENSIONS)


def plural(count: int, noun: str) -> str:
    """Return '1 plugin' / '3 plugins'."""
    return f"{count} {noun}{'s' if count != 1 else ''}"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"
