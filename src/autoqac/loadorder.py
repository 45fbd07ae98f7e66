"""Plain-text load order reading (loadorder.txt / plugins.txt)."""

from __future__ import annotations

import logging
from pathlib import Path

from autoqac.errors import ConfigurationError
from autoqac.games import GameMode, detect_game_mode

log = logging.getLogger(__name__)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as e:
        raise ConfigurationError(f"Cannot read load order file {path}: {e}") from e


def read_load_order(path: Path) -> list[str]:
    """Return plugin filenames in load order.

    ``plugins.txt`` marks active plugins with a leading ``*`` and only
    those are returned; ``loadorder.txt`` lists every plugin. Comments,
    blank lines and ghosted plugins are dropped in both formats.
    """
    text = _read_text(path)
    only_active = path.name.lower() == "plugins.txt"

    plugins: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if only_active and not line.startswith("*"):
            continue
        if ".ghost" in line.lower():
            continue
        plugins.append(line.replace("*", "").strip())

    log.debug("Read %d plugins from %s", len(plugins), path)
    return plugins


def detect_game_from_file(path: Path) -> GameMode | None:
    """Detect the game mode from a load order file's contents."""
    return detect_game_mode(_read_text(path))
