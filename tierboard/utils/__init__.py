from .embed_builder import EmbedBuilder
from .validators import validate_ign, normalize_gamemode, normalize_region, normalize_device

__all__ = [
    "EmbedBuilder",
    "validate_ign",
    "normalize_gamemode",
    "normalize_region",
    "normalize_device",
]
