from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from tierboard.exceptions import UnknownTierError

NOT_RANKED = "Not Ranked"
RETIRED = "Retired"


@dataclass(frozen=True)
class TierDefinition:
    """One row of the tier catalog. Sentinel codes carry no band."""

    code: str
    points: int
    display_label: str
    band: Optional[int] = None
    sub_band: Optional[str] = None

    @property
    def is_ranked(self) -> bool:
        return self.band is not None


def _ranked(band: int, sub_band: str, points: int) -> TierDefinition:
    return TierDefinition(
        code=f"{sub_band}{band}",
        points=points,
        display_label=f"TIER {band}",
        band=band,
        sub_band=sub_band,
    )


# Band 5 -> 1, Low before High, ascending points. External UIs and historical
# comparisons depend on these exact values.
_DEFINITIONS: Tuple[TierDefinition, ...] = (
    _ranked(5, "LT", 5),
    _ranked(5, "HT", 10),
    _ranked(4, "LT", 15),
    _ranked(4, "HT", 20),
    _ranked(3, "LT", 25),
    _ranked(3, "HT", 30),
    _ranked(2, "LT", 35),
    _ranked(2, "HT", 40),
    _ranked(1, "LT", 45),
    _ranked(1, "HT", 50),
    TierDefinition(code=NOT_RANKED, points=0, display_label=NOT_RANKED),
    TierDefinition(code=RETIRED, points=0, display_label=RETIRED),
)

_BY_CODE: Dict[str, TierDefinition] = {d.code: d for d in _DEFINITIONS}
_BY_FOLDED: Dict[str, TierDefinition] = {d.code.casefold(): d for d in _DEFINITIONS}
_ALIASES: Dict[str, str] = {"unranked": NOT_RANKED}


class TierCatalog:
    """
    Static mapping of tier codes to point values and display labels.

    Defined at import time and never mutated. Lookups accept surrounding
    whitespace, any letter case and the legacy "Unranked" alias; anything
    else raises UnknownTierError.

    Usage:
        >>> TierCatalog.points_for("HT1")
        50
        >>> TierCatalog.display_label_for("lt3")
        'TIER 3'
    """

    @staticmethod
    def normalize(code: str) -> str:
        """Return the canonical spelling of a tier code."""
        return TierCatalog.definition_for(code).code

    @staticmethod
    def definition_for(code: str) -> TierDefinition:
        if not isinstance(code, str):
            raise UnknownTierError(code)

        stripped = code.strip()
        definition = _BY_CODE.get(stripped)
        if definition is not None:
            return definition

        folded = stripped.casefold()
        folded = _ALIASES.get(folded, folded).casefold()
        definition = _BY_FOLDED.get(folded)
        if definition is None:
            raise UnknownTierError(code)
        return definition

    @staticmethod
    def points_for(code: str) -> int:
        return TierCatalog.definition_for(code).points

    @staticmethod
    def display_label_for(code: str) -> str:
        return TierCatalog.definition_for(code).display_label

    @staticmethod
    def is_ranked(code: str) -> bool:
        """False for the Not Ranked / Retired sentinels."""
        return TierCatalog.definition_for(code).is_ranked

    @staticmethod
    def all_codes() -> Tuple[str, ...]:
        """Every code, ranked ones in ascending point order, sentinels last."""
        return tuple(d.code for d in _DEFINITIONS)

    @staticmethod
    def ranked_codes() -> Tuple[str, ...]:
        return tuple(d.code for d in _DEFINITIONS if d.is_ranked)

    @staticmethod
    def definitions() -> Tuple[TierDefinition, ...]:
        return _DEFINITIONS
