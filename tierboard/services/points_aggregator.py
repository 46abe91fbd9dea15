from typing import Dict, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from tierboard.database.models.player import Player
from tierboard.database.models.gamemode_score import GamemodeScore
from tierboard.services.database_service import DatabaseService
from tierboard.services.lock_service import LockService
from tierboard.services.tier_catalog import TierCatalog
from tierboard.services.transaction_logger import TransactionLogger
from tierboard.exceptions import PlayerNotFoundError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


class PointsAggregator:
    """
    The only writer of Player.global_points.

    recompute() must run in the same transaction as the ledger mutation that
    made it necessary. Rank queries read the stored total, not a live sum.
    """

    @staticmethod
    def _ranked_sum():
        return func.coalesce(func.sum(GamemodeScore.score), 0)

    @staticmethod
    async def live_total(session: AsyncSession, player_id: int) -> int:
        """Sum of the player's ranked placements straight from the ledger."""
        result = await session.execute(
            select(PointsAggregator._ranked_sum()).where(
                GamemodeScore.player_id == player_id,
                GamemodeScore.internal_tier.in_(TierCatalog.ranked_codes()),
            )
        )
        return int(result.scalar_one())

    @staticmethod
    async def recompute(session: AsyncSession, player_id: int) -> int:
        """
        Recompute and store a player's global points.

        Idempotent: two calls with no ledger change in between return the
        same value.

        Args:
            session: Database session (part of the caller's transaction)
            player_id: Player ID

        Returns:
            The new global_points value

        Raises:
            PlayerNotFoundError: If the player does not exist
        """
        player = await session.get(Player, player_id, with_for_update=True)
        if player is None:
            raise PlayerNotFoundError(player_id=player_id)

        total = await PointsAggregator.live_total(session, player_id)
        if player.global_points != total:
            logger.debug(f"Points for {player.ign}: {player.global_points} -> {total}")
            player.global_points = total
            player.touch()
        await session.flush()
        return total

    @staticmethod
    async def find_drift() -> List[Tuple[int, int, int]]:
        """
        Players whose cached total disagrees with their ledger.

        Returns:
            (player_id, stored, live) for every mismatch
        """
        async with DatabaseService.get_session() as session:
            live = await PointsAggregator._live_totals(session)
            result = await session.execute(select(Player.id, Player.global_points))
            return [
                (player_id, stored, live.get(player_id, 0))
                for player_id, stored in result.all()
                if stored != live.get(player_id, 0)
            ]

    @staticmethod
    async def _live_totals(session: AsyncSession) -> Dict[int, int]:
        result = await session.execute(
            select(GamemodeScore.player_id, PointsAggregator._ranked_sum())
            .where(GamemodeScore.internal_tier.in_(TierCatalog.ranked_codes()))
            .group_by(GamemodeScore.player_id)
        )
        return {player_id: int(total) for player_id, total in result.all()}

    @staticmethod
    async def recompute_all(context: str = "system:repair") -> int:
        """
        Repair every drifted total, one player lock at a time.

        Returns:
            Number of players whose total changed
        """
        repaired = 0
        for player_id, stored, _ in await PointsAggregator.find_drift():
            async with LockService.player_lock(player_id):
                async with DatabaseService.get_transaction() as session:
                    try:
                        total = await PointsAggregator.recompute(session, player_id)
                    except PlayerNotFoundError:
                        continue
                    if total != stored:
                        repaired += 1
                        await TransactionLogger.log_transaction(
                            session=session,
                            player_id=player_id,
                            transaction_type="points_repaired",
                            details={"old_points": stored, "new_points": total},
                            context=context,
                        )

        if repaired:
            logger.warning(f"Repaired global points for {repaired} players")
        return repaired
