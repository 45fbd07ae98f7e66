"""JSON file storage for the learned skip list and run history."""

from __future__ import annotations

import json
import logging
from typing import Any

from autoqac.errors import PersistenceError
from autoqac.utils import xdg_data_home

log = logging.getLogger(__name__)

_DATA_DIR = xdg_data_home() / "autoqac"

HISTORY_FILE = _DATA_DIR / "history.json"
SKIPLIST_FILE = _DATA_DIR / "skiplist.json"
JOURNAL_FILE = _DATA_DIR / "journal.log"


def _ensure_data_dir() -> None:
    """Create the data directory if it doesn't exist."""
    _DATA_DIR.mkdir(parents=True, exist_ok=True)


def _load_json(path, empty: dict[str, Any]) -> dict[str, Any]:
    if not path.exists():
        return empty
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        log.exception("Failed to load data file: %s", path)
        return empty
    if not isinstance(data, dict):
        log.warning("Ignoring malformed data file: %s", path)
        return empty
    return data


def _save_json(path, data: dict[str, Any]) -> None:
    try:
        _ensure_data_dir()
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        tmp.replace(path)
    except OSError as e:
        raise PersistenceError(f"Failed to save {path}: {e}") from e


def load_history() -> dict[str, Any]:
    """Load the history file, returning empty structure if missing."""
    data = _load_json(HISTORY_FILE, {"sessions": []})
    data.setdefault("sessions", [])
    return data


def save_history(data: dict[str, Any]) -> None:
    """Write the history data to disk."""
    _save_json(HISTORY_FILE, data)


def load_skiplist() -> dict[str, list[str]]:
    """Load learned skip entries keyed by game code."""
    data = _load_json(SKIPLIST_FILE, {})
    return {
        game: [str(name) for name in names]
        for game, names in data.items()
        if isinstance(names, list)
    }


def save_skiplist(data: dict[str, list[str]]) -> None:
    """Write learned skip entries to disk."""
    _save_json(SKIPLIST_FILE, data)
