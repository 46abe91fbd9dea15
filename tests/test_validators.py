import pytest

from tierboard.constants import Device, GameMode, Region
from tierboard.exceptions import ValidationError
from tierboard.utils.validators import (
    normalize_device,
    normalize_gamemode,
    normalize_region,
    validate_ign,
)


@pytest.mark.parametrize("ign", ["Steve", "a", "x_Y_9", "A" * 16])
def test_valid_igns(ign):
    assert validate_ign(ign) == ign


@pytest.mark.parametrize("ign,fragment", [
    ("", "required"),
    ("A" * 17, "too long"),
    ("bad name", "invalid characters"),
    ("dash-name", "invalid characters"),
    ("émile", "invalid characters"),
])
def test_invalid_igns(ign, fragment):
    with pytest.raises(ValidationError) as exc_info:
        validate_ign(ign)
    assert exc_info.value.field == "ign"
    assert fragment in exc_info.value.reason


@pytest.mark.parametrize("raw", ["smp", "SMP", " Smp ", GameMode.SMP])
def test_gamemode_is_case_insensitive(raw):
    assert normalize_gamemode(raw) is GameMode.SMP


def test_all_eight_gamemodes():
    assert {m.value for m in GameMode} == {
        "crystal", "sword", "smp", "uhc", "axe", "nethpot", "bedwars", "mace",
    }
    assert GameMode.NETHPOT.display_name == "NethPot"


@pytest.mark.parametrize("bad", ["minigames", "", None, 3])
def test_unknown_gamemode(bad):
    with pytest.raises(ValidationError) as exc_info:
        normalize_gamemode(bad)
    assert exc_info.value.field == "gamemode"


def test_region():
    assert normalize_region("eu") is Region.EU
    assert normalize_region(None) is None
    assert normalize_region("  ") is None
    with pytest.raises(ValidationError):
        normalize_region("Mars")


def test_device():
    assert normalize_device("pc") is Device.PC
    assert normalize_device("MOBILE") is Device.MOBILE
    assert normalize_device(None) is None
    with pytest.raises(ValidationError):
        normalize_device("fridge")
