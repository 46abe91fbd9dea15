import re
from typing import Optional

from tierboard.constants import Device, GameMode, IgnConstants, Region
from tierboard.exceptions import ValidationError

_IGN_RE = re.compile(IgnConstants.PATTERN)


def validate_ign(ign: str) -> str:
    """Check an in-game name and return it unchanged. Matching is case-sensitive."""
    if not isinstance(ign, str) or not ign:
        raise ValidationError("ign", "ign is required")
    if len(ign) > IgnConstants.MAX_LENGTH:
        raise ValidationError("ign", f"'{ign}' is too long (max {IgnConstants.MAX_LENGTH} characters)")
    if not _IGN_RE.match(ign):
        raise ValidationError("ign", f"'{ign}' contains invalid characters (letters, digits and _ only)")
    return ign


def normalize_gamemode(gamemode) -> GameMode:
    """Accept 'NethPot', 'nethpot' or GameMode.NETHPOT alike."""
    if isinstance(gamemode, GameMode):
        return gamemode
    if not isinstance(gamemode, str):
        raise ValidationError("gamemode", f"unknown gamemode {gamemode!r}")
    try:
        return GameMode(gamemode.strip().lower())
    except ValueError:
        raise ValidationError("gamemode", f"unknown gamemode '{gamemode}'")


def normalize_region(region) -> Optional[Region]:
    if region is None or isinstance(region, Region):
        return region
    if not isinstance(region, str) or not region.strip():
        return None
    try:
        return Region(region.strip().upper())
    except ValueError:
        raise ValidationError("region", f"unknown region '{region}'")


def normalize_device(device) -> Optional[Device]:
    if device is None or isinstance(device, Device):
        return device
    if not isinstance(device, str) or not device.strip():
        return None
    for member in Device:
        if member.value.lower() == device.strip().lower():
            return member
    raise ValidationError("device", f"unknown device '{device}'")
