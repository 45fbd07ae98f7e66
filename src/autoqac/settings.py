"""Generic JSON-backed settings store and the cleaning configuration."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from autoqac.games import GameMode
from autoqac.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "autoqac"
_SETTINGS_FILE = "settings.json"

DEFAULT_TIMEOUT = 300
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_JOURNAL_EXPIRATION = 7

MIN_TIMEOUT = 30


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("cleaning.timeout")  # reads data["cleaning"]["timeout"]
        settings.set("cleaning.timeout", 600)  # writes + saves
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def as_dict(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._data))

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            self._data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            self._data = {}

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


@dataclass(slots=True)
class CleaningConfig:
    """Everything the cleaning core needs from configuration."""

    xedit_path: Path | None = None
    load_order_path: Path | None = None
    game_mode: GameMode | None = None
    timeout: float = DEFAULT_TIMEOUT
    partial_forms: bool = False
    debug_mode: bool = False
    journal_enabled: bool = True
    journal_expiration_days: int = DEFAULT_JOURNAL_EXPIRATION
    poll_interval: float = DEFAULT_POLL_INTERVAL
    invalid_settings: list[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> CleaningConfig:
        xedit = settings.get("xedit.path") or None
        load_order = settings.get("load_order.path") or None
        invalid: list[str] = []

        def number(key: str, default, kind=float):
            value = settings.get(key, default)
            try:
                return kind(value)
            except (TypeError, ValueError):
                invalid.append(f"{key} must be a number, got {value!r}.")
                return default

        return cls(
            xedit_path=Path(xedit) if xedit else None,
            load_order_path=Path(load_order) if load_order else None,
            game_mode=GameMode.parse(settings.get("game.mode")),
            timeout=number("cleaning.timeout", DEFAULT_TIMEOUT),
            partial_forms=bool(settings.get("cleaning.partial_forms", False)),
            debug_mode=bool(settings.get("debug.enabled", False)),
            journal_enabled=bool(settings.get("journal.enabled", True)),
            journal_expiration_days=number("journal.expiration_days", DEFAULT_JOURNAL_EXPIRATION, int),
            poll_interval=number("watchdog.poll_interval", DEFAULT_POLL_INTERVAL),
            invalid_settings=invalid,
        )

    def validate(self) -> list[str]:
        """Return a list of configuration problems, empty when valid."""
        problems: list[str] = list(self.invalid_settings)
        if self.timeout < MIN_TIMEOUT:
            problems.append(f"Cleaning timeout must be at least {MIN_TIMEOUT} seconds.")
        if self.journal_expiration_days < 1:
            problems.append("Journal expiration must be at least 1 day.")
        if self.poll_interval <= 0:
            problems.append("Watchdog poll interval must be positive.")

        if self.xedit_path is not None and not self.xedit_path.is_file():
            problems.append(f"xEdit executable not found at path: {self.xedit_path}")

        if self.load_order_path is not None:
            if not self.load_order_path.is_file():
                problems.append(f"Load order file not found at path: {self.load_order_path}")
            elif self.load_order_path.suffix.lower() != ".txt":
                problems.append("Load order path must point to a text (.txt) file.")
        return problems
