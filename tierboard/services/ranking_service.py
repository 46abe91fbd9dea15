from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tierboard.database.models.player import Player
from tierboard.database.models.gamemode_score import GamemodeScore
from tierboard.services.rank_title_service import RankTitle, RankTitleResolver
from tierboard.services.score_ledger import ScoreLedger
from tierboard.services.tier_catalog import RETIRED, TierCatalog
from tierboard.utils.validators import normalize_gamemode
from tierboard.exceptions import PlayerNotFoundError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RankedPlayer:
    player_id: int
    ign: str
    rank: int
    points: int


@dataclass(frozen=True)
class TierGroupMember:
    player_id: int
    ign: str
    tier: str


@dataclass
class PlayerStanding:
    """What the presentation layer needs to render one player."""

    player: Player
    points: int
    rank: int
    title: RankTitle
    placements: List[GamemodeScore] = field(default_factory=list)


def assign_ranks(rows: Iterable[Tuple[int, str, int]]) -> List[RankedPlayer]:
    """
    Order (player_id, ign, points) rows and number them from 1.

    Points descending, ties broken by ascending player id, so equal totals
    get consecutive distinct ranks in a repeatable order.
    """
    ordered = sorted(rows, key=lambda row: (-row[2], row[0]))
    return [
        RankedPlayer(player_id=player_id, ign=ign, rank=position, points=points)
        for position, (player_id, ign, points) in enumerate(ordered, start=1)
    ]


def tier_group_key(tier_code: str) -> Optional[str]:
    definition = TierCatalog.definition_for(tier_code)
    if definition.is_ranked:
        return f"tier-{definition.band}"
    if definition.code == RETIRED:
        return "retired"
    return None


class RankingService:
    """
    Pull-based leaderboard views over stored totals.

    Every call reads one snapshot query and sorts in memory; at a few
    thousand players that is cheaper than maintaining an index. assign_ranks
    is the single ordering rule, so an incremental index could replace the
    query without changing what callers see.

    Usage:
        >>> async with DatabaseService.get_session() as session:
        ...     board = await RankingService.rank_all(session)
        ...     smp = await RankingService.rank_by_gamemode(session, "smp")
    """

    @staticmethod
    async def rank_all(session: AsyncSession) -> List[RankedPlayer]:
        """Every player, zero-point players included at the bottom."""
        result = await session.execute(
            select(Player.id, Player.ign, Player.global_points)
            .order_by(Player.global_points.desc(), Player.id)
        )
        return assign_ranks(result.all())

    @staticmethod
    async def rank_by_gamemode(session: AsyncSession, gamemode: str) -> List[RankedPlayer]:
        """Players with a ranked placement in the gamemode, by that placement's score."""
        mode = normalize_gamemode(gamemode)
        result = await session.execute(
            select(Player.id, Player.ign, GamemodeScore.score)
            .join(GamemodeScore, GamemodeScore.player_id == Player.id)
            .where(
                GamemodeScore.gamemode == mode.value,
                GamemodeScore.internal_tier.in_(TierCatalog.ranked_codes()),
            )
            .order_by(GamemodeScore.score.desc(), Player.id)
        )
        return assign_ranks(result.all())

    @staticmethod
    async def rank_of(session: AsyncSession, player_id: int) -> Optional[RankedPlayer]:
        for ranked in await RankingService.rank_all(session):
            if ranked.player_id == player_id:
                return ranked
        return None

    @staticmethod
    async def tier_groups(session: AsyncSession, gamemode: str) -> Dict[str, List[TierGroupMember]]:
        """
        Players of one gamemode bucketed by band.

        Keys are tier-1 .. tier-5 and retired, always present. Within a band
        High sorts before Low, then by player id. Not Ranked placements are
        left out.
        """
        mode = normalize_gamemode(gamemode)
        groups: Dict[str, List[TierGroupMember]] = {f"tier-{band}": [] for band in range(1, 6)}
        groups["retired"] = []

        result = await session.execute(
            select(Player.id, Player.ign, GamemodeScore.internal_tier, GamemodeScore.score)
            .join(GamemodeScore, GamemodeScore.player_id == Player.id)
            .where(GamemodeScore.gamemode == mode.value)
            .order_by(GamemodeScore.score.desc(), Player.id)
        )
        for player_id, ign, tier, _ in result.all():
            key = tier_group_key(tier)
            if key is not None:
                groups[key].append(TierGroupMember(player_id=player_id, ign=ign, tier=tier))
        return groups

    @staticmethod
    async def standing_for(session: AsyncSession, ign: str) -> PlayerStanding:
        """
        Points, rank, title and placements for one player.

        Raises:
            PlayerNotFoundError: If no player has this exact ign
        """
        result = await session.execute(select(Player).where(Player.ign == ign))
        player = result.scalar_one_or_none()
        if player is None:
            raise PlayerNotFoundError(ign=ign)

        ranked = await RankingService.rank_of(session, player.id)
        placements = await ScoreLedger.entries_for_player(session, player.id)
        return PlayerStanding(
            player=player,
            points=player.global_points,
            rank=ranked.rank,
            title=RankTitleResolver.title_for(player.global_points),
            placements=placements,
        )
