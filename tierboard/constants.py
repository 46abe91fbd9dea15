"""
Fixed reference sets shared across the ranking core and the bot.

Gamemodes are stored in lowercase; display casing lives here only so the
presentation layer has one place to look it up.
"""

from enum import Enum


class GameMode(str, Enum):
    """The eight competitive categories a player is ranked in separately."""

    CRYSTAL = "crystal"
    SWORD = "sword"
    SMP = "smp"
    UHC = "uhc"
    AXE = "axe"
    NETHPOT = "nethpot"
    BEDWARS = "bedwars"
    MACE = "mace"

    @property
    def display_name(self) -> str:
        return _GAMEMODE_DISPLAY[self]


_GAMEMODE_DISPLAY = {
    GameMode.CRYSTAL: "Crystal",
    GameMode.SWORD: "Sword",
    GameMode.SMP: "SMP",
    GameMode.UHC: "UHC",
    GameMode.AXE: "Axe",
    GameMode.NETHPOT: "NethPot",
    GameMode.BEDWARS: "Bedwars",
    GameMode.MACE: "Mace",
}


class Region(str, Enum):
    NA = "NA"
    EU = "EU"
    ASIA = "ASIA"
    OCE = "OCE"
    SA = "SA"
    AF = "AF"


class Device(str, Enum):
    MOBILE = "Mobile"
    PC = "PC"
    CONSOLE = "Console"


class IgnConstants:
    """Constraints on in-game names."""

    MIN_LENGTH = 1
    MAX_LENGTH = 16
    PATTERN = r"^[A-Za-z0-9_]+$"


class EventNames:
    """Event bus topics emitted by the ranking core."""

    PLACEMENT_COMMITTED = "placement_committed"
    PLACEMENT_REMOVED = "placement_removed"
    PLAYER_DELETED = "player_deleted"
    BATCH_COMPLETED = "batch_completed"
