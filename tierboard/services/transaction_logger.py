from typing import Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from tierboard.database.models.transaction_log import TransactionLog
from tierboard.database.models.timestamps import utc_now
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


class TransactionLogger:
    """
    Centralized audit logging for every ranking change.

    Records placement changes, removals, player deletions and batch runs in
    the same transaction as the change itself, so a rolled-back write leaves
    no audit row behind.

    Transaction Types:
        - player_registered
        - placement_assigned
        - placement_removed
        - player_deleted
        - points_repaired
        - batch_submitted
        - batch_registered

    Usage:
        >>> async with DatabaseService.get_transaction() as session:
        ...     await TransactionLogger.log_transaction(
        ...         session=session,
        ...         player_id=42,
        ...         transaction_type="placement_assigned",
        ...         details={"gamemode": "smp", "tier": "HT1"},
        ...         context="command:/submit"
        ...     )
    """

    @staticmethod
    async def log_transaction(
        session: AsyncSession,
        player_id: Optional[int],
        transaction_type: str,
        details: Dict[str, Any],
        context: Optional[str] = None
    ) -> None:
        """
        Add a transaction log row to the session.

        Args:
            session: Database session (must be part of active transaction)
            player_id: Player ID, or None for batch-level records
            transaction_type: Type of transaction
            details: Structured data about the transaction
            context: Where the transaction originated (command name, batch, etc.)
        """
        log_entry = TransactionLog(
            player_id=player_id,
            transaction_type=transaction_type,
            details=details,
            context=context or "unknown",
            timestamp=utc_now()
        )

        session.add(log_entry)

        logger.info(
            f"TRANSACTION: player={player_id} type={transaction_type} "
            f"details={details} context={context}"
        )

    @staticmethod
    async def log_placement_change(
        session: AsyncSession,
        player_id: int,
        gamemode: str,
        old_tier: Optional[str],
        new_tier: str,
        old_points: int,
        new_points: int,
        context: Optional[str] = None
    ) -> None:
        """
        Log a placement assignment together with the total it produced.

        Args:
            session: Database session
            player_id: Player ID
            gamemode: Lowercase gamemode key
            old_tier: Previous tier code (None for a first placement)
            new_tier: Tier code just written
            old_points: global_points before the change
            new_points: global_points after recompute
            context: Command/batch that triggered the change
        """
        await TransactionLogger.log_transaction(
            session=session,
            player_id=player_id,
            transaction_type="placement_assigned",
            details={
                "gamemode": gamemode,
                "old_tier": old_tier,
                "new_tier": new_tier,
                "old_points": old_points,
                "new_points": new_points,
                "delta": new_points - old_points,
            },
            context=context
        )

    @staticmethod
    async def log_placement_removed(
        session: AsyncSession,
        player_id: int,
        gamemode: str,
        old_tier: str,
        new_points: int,
        context: Optional[str] = None
    ) -> None:
        await TransactionLogger.log_transaction(
            session=session,
            player_id=player_id,
            transaction_type="placement_removed",
            details={
                "gamemode": gamemode,
                "old_tier": old_tier,
                "new_points": new_points,
            },
            context=context
        )

    @staticmethod
    async def log_batch(
        session: AsyncSession,
        transaction_type: str,
        total: int,
        succeeded: int,
        failed: int,
        context: Optional[str] = None
    ) -> None:
        """Batch-level summary row (player_id is None)."""
        await TransactionLogger.log_transaction(
            session=session,
            player_id=None,
            transaction_type=transaction_type,
            details={"total": total, "succeeded": succeeded, "failed": failed},
            context=context
        )
