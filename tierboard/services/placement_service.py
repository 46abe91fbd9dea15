from contextlib import nullcontext
from dataclasses import dataclass, replace
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from tierboard.constants import EventNames, GameMode
from tierboard.database.models.player import Player
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import EventBus, PlacementCommitted, PlacementRemoved
from tierboard.services.lock_service import LockService
from tierboard.services.player_service import PlayerService
from tierboard.services.points_aggregator import PointsAggregator
from tierboard.services.ranking_service import RankingService
from tierboard.services.score_ledger import ScoreLedger
from tierboard.services.tier_catalog import TierCatalog, TierDefinition
from tierboard.services.transaction_logger import TransactionLogger
from tierboard.utils.validators import normalize_gamemode, normalize_region, validate_ign
from tierboard.exceptions import PlayerNotFoundError, StorageError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlacementResult:
    player_id: int
    ign: str
    gamemode: str
    tier: str
    points: int
    global_points: int
    rank: Optional[int]


class PlacementService:
    """
    Entry point for every placement change.

    A change happens in two steps. The commit step runs under the player's
    lock in a single transaction: player resolution, ledger write, aggregate
    recompute and audit row commit together or not at all. The announce
    step runs after the commit, reads the new rank and publishes the event.
    Nothing in the announce step can undo or fail the committed change.

    Usage:
        >>> result = await PlacementService.submit_by_ign("Steve", "smp", "HT1")
        >>> result.global_points, result.rank
        (50, 1)

        >>> committed = await PlacementService.commit_by_ign("Steve", "smp", "HT1")
        >>> result = await PlacementService.announce(committed)
    """

    @staticmethod
    async def _write_placement(
        session: AsyncSession,
        player: Player,
        mode: GameMode,
        definition: TierDefinition,
        context: Optional[str]
    ) -> PlacementResult:
        old_points = player.global_points
        entry, previous_tier = await ScoreLedger.upsert_placement(
            session, player.id, mode, definition.code
        )
        total = await PointsAggregator.recompute(session, player.id)

        await TransactionLogger.log_placement_change(
            session=session,
            player_id=player.id,
            gamemode=mode.value,
            old_tier=previous_tier,
            new_tier=definition.code,
            old_points=old_points,
            new_points=total,
            context=context
        )
        return PlacementResult(
            player_id=player.id,
            ign=player.ign,
            gamemode=mode.value,
            tier=definition.code,
            points=entry.score,
            global_points=total,
            rank=None,
        )

    @staticmethod
    async def announce(committed: PlacementResult) -> PlacementResult:
        """
        Look up the new rank of a committed placement and publish it.

        A failed rank read leaves rank as None. Listener errors are logged by
        the event bus and never reach the caller.
        """
        rank = None
        try:
            async with DatabaseService.get_session() as session:
                ranked = await RankingService.rank_of(session, committed.player_id)
            rank = ranked.rank if ranked else None
        except StorageError as e:
            logger.error(f"Rank lookup for {committed.ign} failed after commit: {e}")

        logger.info(
            f"Placement {committed.ign} {committed.gamemode} -> {committed.tier} "
            f"(total {committed.global_points}, rank {rank})"
        )
        await EventBus.publish(
            EventNames.PLACEMENT_COMMITTED,
            PlacementCommitted(
                player_id=committed.player_id,
                ign=committed.ign,
                gamemode=committed.gamemode,
                new_tier=committed.tier,
                new_global_points=committed.global_points,
                new_rank=rank,
            )
        )
        return replace(committed, rank=rank)

    @staticmethod
    async def assign_tier(
        player_id: int,
        gamemode: str,
        tier_code: str,
        context: Optional[str] = None
    ) -> PlacementResult:
        """
        Set a player's placement in one gamemode, replacing any previous one.

        Raises:
            ValidationError: Unknown gamemode
            UnknownTierError: Unknown tier code
            PlayerNotFoundError: Unknown player
            StorageError: Database failure (nothing is committed)
        """
        mode = normalize_gamemode(gamemode)
        definition = TierCatalog.definition_for(tier_code)

        async with LockService.player_lock(player_id):
            async with DatabaseService.get_transaction() as session:
                player = await PlayerService.get_by_id(session, player_id, lock=True)
                if player is None:
                    raise PlayerNotFoundError(player_id=player_id)
                committed = await PlacementService._write_placement(
                    session, player, mode, definition, context
                )

        return await PlacementService.announce(committed)

    @staticmethod
    async def clear_placement(
        player_id: int,
        gamemode: str,
        context: Optional[str] = None
    ) -> int:
        """
        Remove a player's placement in one gamemode. Removing a placement
        that does not exist is a no-op that still returns the total.

        Returns:
            The player's global points after the removal
        """
        mode = normalize_gamemode(gamemode)

        async with LockService.player_lock(player_id):
            async with DatabaseService.get_transaction() as session:
                player = await PlayerService.get_by_id(session, player_id, lock=True)
                if player is None:
                    raise PlayerNotFoundError(player_id=player_id)

                ign = player.ign
                removed_tier = await ScoreLedger.remove_placement(session, player_id, mode)
                total = await PointsAggregator.recompute(session, player_id)
                if removed_tier is not None:
                    await TransactionLogger.log_placement_removed(
                        session=session,
                        player_id=player_id,
                        gamemode=mode.value,
                        old_tier=removed_tier,
                        new_points=total,
                        context=context
                    )

        if removed_tier is not None:
            await EventBus.publish(
                EventNames.PLACEMENT_REMOVED,
                PlacementRemoved(
                    player_id=player_id,
                    ign=ign,
                    gamemode=mode.value,
                    new_global_points=total,
                )
            )
        return total

    @staticmethod
    async def commit_by_ign(
        ign: str,
        gamemode: str,
        tier_code: str,
        region: Optional[str] = None,
        context: Optional[str] = None
    ) -> PlacementResult:
        """
        Resolve (or create) the player by exact ign and assign the tier in
        one transaction. Publishes nothing; the returned rank is None.

        Everything is validated before the transaction opens. If any write
        fails, neither a new player nor a region change is kept.

        Raises:
            ValidationError: Bad ign, gamemode or region
            UnknownTierError: Unknown tier code
            StorageError: Database or lock failure (nothing is committed)
        """
        validate_ign(ign)
        mode = normalize_gamemode(gamemode)
        definition = TierCatalog.definition_for(tier_code)
        normalize_region(region)

        async with LockService.ign_lock(ign):
            async with DatabaseService.get_session() as session:
                existing = await PlayerService.get_by_ign(session, ign)

            # assign_tier on an existing player only takes the player lock.
            # A player created here is not visible to anyone until commit.
            player_lock = LockService.player_lock(existing.id) if existing else nullcontext()
            async with player_lock:
                async with DatabaseService.get_transaction() as session:
                    player, _ = await PlayerService.get_or_create(
                        session, ign, region, context=context
                    )
                    committed = await PlacementService._write_placement(
                        session, player, mode, definition, context
                    )

        return committed

    @staticmethod
    async def submit_by_ign(
        ign: str,
        gamemode: str,
        tier_code: str,
        region: Optional[str] = None,
        context: Optional[str] = None
    ) -> PlacementResult:
        """commit_by_ign followed by announce."""
        committed = await PlacementService.commit_by_ign(
            ign, gamemode, tier_code, region=region, context=context
        )
        return await PlacementService.announce(committed)
