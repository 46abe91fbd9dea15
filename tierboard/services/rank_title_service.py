from dataclasses import dataclass
from typing import Optional, Tuple

from tierboard.exceptions import InvalidInputError


@dataclass(frozen=True)
class RankTitle:
    title: str
    min_points: int
    icon_class: str
    visual_tier: str


# Highest threshold first; the last entry must stay at 0 so every
# non-negative total resolves.
RANK_TITLES: Tuple[RankTitle, ...] = (
    RankTitle("Combat Grandmaster", 400, "rank-icon-grandmaster", "grandmaster"),
    RankTitle("Combat Master", 250, "rank-icon-master", "master"),
    RankTitle("Combat Ace", 100, "rank-icon-ace", "ace"),
    RankTitle("Combat Specialist", 50, "rank-icon-specialist", "specialist"),
    RankTitle("Combat Cadet", 20, "rank-icon-cadet", "cadet"),
    RankTitle("Combat Novice", 10, "rank-icon-novice", "novice"),
    RankTitle("Rookie", 0, "rank-icon-rookie", "rookie"),
)


class RankTitleResolver:
    """
    Pure mapping from global points to a cosmetic combat title.

    Independent of rank position: two players with equal points always share
    a title.

    Usage:
        >>> RankTitleResolver.title_for(399).title
        'Combat Master'
        >>> RankTitleResolver.next_title(399).title
        'Combat Grandmaster'
    """

    @staticmethod
    def _check(points: int) -> None:
        if isinstance(points, bool) or not isinstance(points, int):
            raise InvalidInputError(f"points must be an integer, got {points!r}")
        if points < 0:
            raise InvalidInputError(f"points must be non-negative, got {points}")

    @staticmethod
    def title_for(points: int) -> RankTitle:
        RankTitleResolver._check(points)
        for rank_title in RANK_TITLES:
            if rank_title.min_points <= points:
                return rank_title
        raise InvalidInputError(f"no title covers {points} points")

    @staticmethod
    def next_title(points: int) -> Optional[RankTitle]:
        """The bucket above the current one, or None at the top."""
        current = RankTitleResolver.title_for(points)
        index = RANK_TITLES.index(current)
        if index == 0:
            return None
        return RANK_TITLES[index - 1]

    @staticmethod
    def points_to_next(points: int) -> Optional[int]:
        upcoming = RankTitleResolver.next_title(points)
        if upcoming is None:
            return None
        return upcoming.min_points - points
