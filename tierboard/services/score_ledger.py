from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from tierboard.database.models.gamemode_score import GamemodeScore
from tierboard.database.models.timestamps import utc_now
from tierboard.services.tier_catalog import TierCatalog
from tierboard.utils.validators import normalize_gamemode
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


class ScoreLedger:
    """
    Owner of the current placement per (player, gamemode).

    The single source of truth for "what tier is player P at in gamemode G
    right now". Methods work inside the caller's session and flush, but never
    commit: PlacementService wraps them together with the aggregate
    recompute in one transaction.

    Sentinel tiers (Not Ranked, Retired) are stored like any other placement
    with a score of 0; aggregation and per-gamemode rankings skip them.

    Usage:
        >>> entry, previous = await ScoreLedger.upsert_placement(session, 42, "SMP", "HT1")
        >>> entry.score
        50
    """

    @staticmethod
    async def get_entry(
        session: AsyncSession,
        player_id: int,
        gamemode: str,
        lock: bool = False
    ) -> Optional[GamemodeScore]:
        mode = normalize_gamemode(gamemode)
        stmt = select(GamemodeScore).where(
            GamemodeScore.player_id == player_id,
            GamemodeScore.gamemode == mode.value,
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_placement(
        session: AsyncSession,
        player_id: int,
        gamemode: str,
        tier_code: str
    ) -> Tuple[GamemodeScore, Optional[str]]:
        """
        Write a placement, replacing any existing one for the pair.

        Args:
            session: Database session (part of the caller's transaction)
            player_id: Player ID
            gamemode: Gamemode in any casing
            tier_code: Tier code accepted by TierCatalog

        Returns:
            (entry, previous tier code or None for a first placement)

        Raises:
            ValidationError: Unknown gamemode
            UnknownTierError: Unknown tier code
        """
        mode = normalize_gamemode(gamemode)
        definition = TierCatalog.definition_for(tier_code)

        entry = await ScoreLedger.get_entry(session, player_id, mode, lock=True)
        previous_tier = entry.internal_tier if entry else None
        now = utc_now()

        if entry is None:
            entry = GamemodeScore(
                player_id=player_id,
                gamemode=mode.value,
                internal_tier=definition.code,
                display_tier=definition.display_label,
                score=definition.points,
                created_at=now,
                updated_at=now,
            )
            session.add(entry)
        else:
            entry.internal_tier = definition.code
            entry.display_tier = definition.display_label
            entry.score = definition.points
            entry.updated_at = now

        await session.flush()

        logger.debug(
            f"Ledger upsert player={player_id} gamemode={mode.value} "
            f"{previous_tier or '-'} -> {definition.code} ({definition.points} pts)"
        )
        return entry, previous_tier

    @staticmethod
    async def remove_placement(
        session: AsyncSession,
        player_id: int,
        gamemode: str
    ) -> Optional[str]:
        """
        Delete the placement for the pair if there is one.

        Returns:
            The removed tier code, or None when nothing was stored (not an error)
        """
        entry = await ScoreLedger.get_entry(session, player_id, gamemode, lock=True)
        if entry is None:
            return None

        removed_tier = entry.internal_tier
        await session.delete(entry)
        await session.flush()

        logger.debug(f"Ledger remove player={player_id} gamemode={entry.gamemode} ({removed_tier})")
        return removed_tier

    @staticmethod
    async def clear_player(session: AsyncSession, player_id: int) -> int:
        """Remove every placement of a player. Returns how many rows went."""
        result = await session.execute(
            delete(GamemodeScore).where(GamemodeScore.player_id == player_id)
        )
        await session.flush()
        return result.rowcount or 0

    @staticmethod
    async def entries_for_player(session: AsyncSession, player_id: int) -> List[GamemodeScore]:
        """All current placements of a player, one per gamemode."""
        result = await session.execute(
            select(GamemodeScore)
            .where(GamemodeScore.player_id == player_id)
            .order_by(GamemodeScore.gamemode)
        )
        return list(result.scalars().all())

    @staticmethod
    async def entries_for_gamemode(session: AsyncSession, gamemode: str) -> List[GamemodeScore]:
        """All current placements across players for one gamemode."""
        mode = normalize_gamemode(gamemode)
        result = await session.execute(
            select(GamemodeScore)
            .where(GamemodeScore.gamemode == mode.value)
            .order_by(GamemodeScore.player_id)
        )
        return list(result.scalars().all())
