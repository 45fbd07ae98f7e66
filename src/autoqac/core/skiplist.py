"""Per-game skip list: baseline masters plus learned non-cleanable plugins."""

from __future__ import annotations

import logging
from pathlib import PurePath

from autoqac import storage
from autoqac.errors import PersistenceError
from autoqac.games import GameMode, baseline_skip_list, skip_list_partition
from autoqac.utils import plugin_key

log = logging.getLogger(__name__)


def entry_matches(entry: str, plugin: str) -> bool:
    """Check whether one skip entry covers *plugin*.

    Entries with an extension must equal the filename; extension-less
    entries match anywhere inside the plugin's stem. Both comparisons
    ignore case.
    """
    entry_key = plugin_key(entry)
    if not entry_key:
        return False
    plugin_name = plugin_key(plugin)
    if PurePath(entry_key).suffix:
        return entry_key == plugin_name
    return entry_key in PurePath(plugin_name).stem


class SkipListRegistry:
    """Decides which plugins are not worth sending to xEdit.

    Learned entries are persisted through :mod:`autoqac.storage` on every
    change; the baseline comes from :mod:`autoqac.games` and is never
    written out.
    """

    def __init__(self, learned: dict[str, list[str]] | None = None, *, persist: bool = True) -> None:
        self._persist = persist
        self._learned: dict[str, list[str]] = {}
        source = storage.load_skiplist() if learned is None else learned
        for game, names in source.items():
            if GameMode.parse(game) is None:
                log.warning("Ignoring learned skip entries for unknown game '%s'", game)
                continue
            partition = self._partition(game)
            for name in names:
                self._add(partition, name)

    @staticmethod
    def _partition(game: GameMode | str) -> str:
        mode = GameMode.parse(game)
        if mode is None:
            raise ValueError(f"Unknown game mode: {game}")
        return skip_list_partition(mode).value

    def _add(self, partition: str, plugin: str) -> bool:
        names = self._learned.setdefault(partition, [])
        if any(plugin_key(n) == plugin_key(plugin) for n in names):
            return False
        names.append(plugin.strip())
        return True

    def baseline(self, game: GameMode | str) -> tuple[str, ...]:
        return baseline_skip_list(GameMode(self._partition(game)))

    def learned(self, game: GameMode | str) -> list[str]:
        return list(self._learned.get(self._partition(game), []))

    def entries(self, game: GameMode | str) -> list[str]:
        return [*self.baseline(game), *self.learned(game)]

    def should_skip(self, plugin: str, game: GameMode | str) -> bool:
        """Whether *plugin* is excluded for *game*."""
        return any(entry_matches(entry, plugin) for entry in self.entries(game))

    def record_non_cleanable(self, plugin: str, game: GameMode | str) -> bool:
        """Remember that *plugin* is not worth reprocessing.

        Adding an entry that already exists does nothing. Returns False
        only if the entry could not be persisted; it still applies for
        the lifetime of this registry.
        """
        partition = self._partition(game)
        if not self._add(partition, plugin):
            log.debug("'%s' already on the %s skip list", plugin, partition)
            return True
        log.info("Added '%s' to the %s skip list", plugin, partition)
        return self._save()

    def remove(self, plugin: str, game: GameMode | str) -> bool:
        """Forget a learned entry. Returns True if something was removed."""
        partition = self._partition(game)
        names = self._learned.get(partition, [])
        kept = [n for n in names if plugin_key(n) != plugin_key(plugin)]
        if len(kept) == len(names):
            return False
        self._learned[partition] = kept
        self._save()
        return True

    def _save(self) -> bool:
        if not self._persist:
            return True
        try:
            storage.save_skiplist(self._learned)
        except PersistenceError as e:
            log.warning("Skip list not saved: %s", e)
            return False
        return True
