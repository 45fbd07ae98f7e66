"""Game modes, xEdit executable tables and baseline skip lists."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class GameMode(str, Enum):
    """Short game codes, as passed to universal xEdit (``-sse``, ``-fo4``...)."""

    SSE = "sse"
    FO4 = "fo4"
    FO3 = "fo3"
    FNV = "fnv"
    TES4 = "tes4"
    FO4VR = "fo4vr"
    TES5VR = "tes5vr"

    @classmethod
    def parse(cls, value: str | GameMode | None) -> GameMode | None:
        """Return the mode for *value*, or None if it is empty or unknown."""
        if value is None or isinstance(value, GameMode):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Game-specific executables, by lower-case stem.
SPECIFIC_EXECUTABLES: dict[str, GameMode] = {
    "fo3edit": GameMode.FO3,
    "fo3edit64": GameMode.FO3,
    "fnvedit": GameMode.FNV,
    "fnvedit64": GameMode.FNV,
    "fo4edit": GameMode.FO4,
    "fo4edit64": GameMode.FO4,
    "sseedit": GameMode.SSE,
    "sseedit64": GameMode.SSE,
    "fo4vredit": GameMode.FO4VR,
    "fo4vredit64": GameMode.FO4VR,
    "tes5vredit": GameMode.TES5VR,
    "tes5vredit64": GameMode.TES5VR,
    "tes4edit": GameMode.TES4,
    "tes4edit64": GameMode.TES4,
}

# Universal executables need an explicit ``-<game>`` flag.
UNIVERSAL_EXECUTABLES = frozenset({"xedit", "xedit64", "xfoedit", "xfoedit64"})

# VR editions share the flat-screen masters.
_SKIP_LIST_PARTITION: dict[GameMode, GameMode] = {
    GameMode.FO4VR: GameMode.FO4,
    GameMode.TES5VR: GameMode.SSE,
}

BASELINE_SKIP_LISTS: dict[GameMode, tuple[str, ...]] = {
    GameMode.FO3: (
        "Fallout3.esm",
        "Anchorage.esm",
        "ThePitt.esm",
        "BrokenSteel.esm",
        "PointLookout.esm",
        "Zeta.esm",
        "Unofficial Fallout 3 Patch.esm",
    ),
    GameMode.FNV: (
        "FalloutNV.esm",
        "DeadMoney.esm",
        "HonestHearts.esm",
        "OldWorldBlues.esm",
        "LonesomeRoad.esm",
        "GunRunnersArsenal.esm",
        "TribalPack.esm",
        "MercenaryPack.esm",
        "ClassicPack.esm",
        "CaravanPack.esm",
        "YUP - Base Game + All DLC.esm",
        "Unofficial Patch NVSE Plus.esp",
        "TaleOfTwoWastelands.esm",
        "TTWInteriors_Core.esm",
        "TTWInteriorsProject_Combo.esm",
        "TTWInteriorsProject_ComboHotfix.esm",
        "TTWInteriorsProject_Merged.esm",
        "TTWInteriors_Core_Hotfix.esm",
    ),
    GameMode.FO4: (
        "Fallout4.esm",
        "DLCRobot.esm",
        "DLCworkshop01.esm",
        "DLCCoast.esm",
        "DLCworkshop02.esm",
        "DLCworkshop03.esm",
        "DLCNukaWorld.esm",
        "Unofficial Fallout 4 Patch.esp",
        "PPF.esm",
        "PRP.esp",
        "PRP-Compat",
        "SS2.esm",
        "SS2_XPAC_Chapter2.esm",
        "SS2_XPAC_Chapter3.esm",
        "SS2Extended.esp",
    ),
    GameMode.SSE: (
        "Skyrim.esm",
        "Update.esm",
        "Dawnguard.esm",
        "HearthFires.esm",
        "Dragonborn.esm",
        "Unofficial Skyrim Special Edition Patch.esp",
        "_ResourcePack.esl",
    ),
    GameMode.TES4: (
        "Oblivion.esm",
        "Knights.esp",
        "DLCVileLair.esp",
        "DLCThievesDen.esp",
        "DLCSpellTomes.esp",
        "DLCShiveringIsles.esp",
        "DLCOrrery.esp",
        "DLCMehrunesRazor.esp",
        "DLCHorseArmor.esp",
        "DLCFrostCrag.esp",
        "DLCBattlehornCastle.esp",
        "Unofficial Oblivion Patch.esp",
        "UOP Vampire Aging & Face Fix.esp",
        "DLCBattlehornCastle - Unofficial Patch.esp",
        "DLCFrostcrag - Unofficial Patch.esp",
        "DLCHorseArmor - Unofficial Patch.esp",
        "DLCMehrunesRazor - Unofficial Patch.esp",
        "DLCOrrery - Unofficial Patch.esp",
        "DLCSpellTomes - Unofficial Patch.esp",
        "DLCThievesDen - Unofficial Patch - SSSB.esp",
        "DLCThievesDen - Unofficial Patch.esp",
        "DLCVileLair - Unofficial Patch.esp",
        "Unofficial Shivering Isles Patch.esp",
    ),
}

# Master file whose presence in a load order identifies the game.
# First match wins.
_DETECTION_MASTERS: tuple[tuple[str, GameMode], ...] = (
    ("Skyrim.esm", GameMode.SSE),
    ("Fallout3.esm", GameMode.FO3),
    ("FalloutNV.esm", GameMode.FNV),
    ("Fallout4.esm", GameMode.FO4),
    ("Oblivion.esm", GameMode.TES4),
)


def executable_stem(path: Path | str) -> str:
    """Lower-case file stem of an executable path, e.g. 'sseedit'."""
    return Path(str(path).replace("\\", "/")).stem.lower()


def is_universal_executable(path: Path | str) -> bool:
    return executable_stem(path) in UNIVERSAL_EXECUTABLES


def is_known_executable(path: Path | str) -> bool:
    stem = executable_stem(path)
    return stem in UNIVERSAL_EXECUTABLES or stem in SPECIFIC_EXECUTABLES


def game_for_executable(path: Path | str) -> GameMode | None:
    """Game a game-specific xEdit is bound to; None for universal or unknown."""
    return SPECIFIC_EXECUTABLES.get(executable_stem(path))


def skip_list_partition(game: GameMode) -> GameMode:
    """Game whose skip list applies to *game*."""
    return _SKIP_LIST_PARTITION.get(game, game)


def baseline_skip_list(game: GameMode) -> tuple[str, ...]:
    return BASELINE_SKIP_LISTS.get(skip_list_partition(game), ())


def detect_game_mode(load_order_text: str) -> GameMode | None:
    """Guess the game from the contents of a load order file."""
    for master, game in _DETECTION_MASTERS:
        if master in load_order_text:
            return game
    return None
