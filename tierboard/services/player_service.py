from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tierboard.constants import EventNames
from tierboard.database.models.player import Player
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import EventBus, PlayerDeleted
from tierboard.services.lock_service import LockService
from tierboard.services.score_ledger import ScoreLedger
from tierboard.services.transaction_logger import TransactionLogger
from tierboard.utils.validators import normalize_device, normalize_region, validate_ign
from tierboard.exceptions import DuplicatePlayerError, PlayerNotFoundError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)

_UNSET = object()


class PlayerService:
    """
    Player lifecycle: lookup, registration, profile edits and deletion.

    Lookups and get_or_create work inside the caller's session. The
    remaining writes take their own lock and transaction, because each one
    is a complete user-facing action.

    Players are matched by exact ign; "Steve" and "steve" are different
    players.

    Usage:
        >>> async with LockService.ign_lock("Steve"):
        ...     async with DatabaseService.get_transaction() as session:
        ...         player, created = await PlayerService.get_or_create(session, "Steve", "EU")
    """

    @staticmethod
    async def get_by_ign(
        session: AsyncSession,
        ign: str,
        lock: bool = False
    ) -> Optional[Player]:
        stmt = select(Player).where(Player.ign == ign)
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(
        session: AsyncSession,
        player_id: int,
        lock: bool = False
    ) -> Optional[Player]:
        if lock:
            return await session.get(Player, player_id, with_for_update=True)
        return await session.get(Player, player_id)

    @staticmethod
    async def list_all(session: AsyncSession) -> List[Player]:
        result = await session.execute(select(Player).order_by(Player.id))
        return list(result.scalars().all())

    @staticmethod
    async def get_or_create(
        session: AsyncSession,
        ign: str,
        region: Optional[str] = None,
        context: Optional[str] = None
    ) -> Tuple[Player, bool]:
        """
        Resolve a player by exact ign, creating them with zero points if absent.

        The caller must hold LockService.ign_lock(ign) so two submissions for
        a new name cannot both insert. A region given for an existing player
        replaces the stored one.

        Returns:
            (player, created)

        Raises:
            ValidationError: Bad ign or region
        """
        validate_ign(ign)
        region_value = normalize_region(region)

        player = await PlayerService.get_by_ign(session, ign, lock=True)
        if player is not None:
            if region_value is not None and player.region != region_value.value:
                player.region = region_value.value
                player.touch()
                await session.flush()
            return player, False

        player = Player(
            ign=ign,
            region=region_value.value if region_value else None,
        )
        session.add(player)
        await session.flush()

        await TransactionLogger.log_transaction(
            session=session,
            player_id=player.id,
            transaction_type="player_registered",
            details={"ign": ign, "region": player.region, "implicit": True},
            context=context
        )
        logger.info(f"Created player {ign} (id={player.id})")
        return player, True

    @staticmethod
    async def register_player(
        ign: str,
        java_username: Optional[str] = None,
        region: Optional[str] = None,
        device: Optional[str] = None,
        context: Optional[str] = None
    ) -> Player:
        """
        Explicitly register a new player.

        Raises:
            ValidationError: Bad ign, region or device
            DuplicatePlayerError: ign already registered
        """
        validate_ign(ign)
        region_value = normalize_region(region)
        device_value = normalize_device(device)
        secondary = java_username.strip() if java_username and java_username.strip() else None

        async with LockService.ign_lock(ign):
            async with DatabaseService.get_transaction() as session:
                if await PlayerService.get_by_ign(session, ign) is not None:
                    raise DuplicatePlayerError(ign)

                player = Player(
                    ign=ign,
                    java_username=secondary,
                    region=region_value.value if region_value else None,
                    device=device_value.value if device_value else None,
                )
                session.add(player)
                await session.flush()

                await TransactionLogger.log_transaction(
                    session=session,
                    player_id=player.id,
                    transaction_type="player_registered",
                    details={
                        "ign": ign,
                        "java_username": secondary,
                        "region": player.region,
                        "device": player.device,
                    },
                    context=context
                )

        logger.info(f"Registered player {ign} (id={player.id})")
        return player

    @staticmethod
    async def update_profile(
        player_id: int,
        java_username=_UNSET,
        region=_UNSET,
        device=_UNSET,
        context: Optional[str] = None
    ) -> Player:
        """
        Change profile fields. Arguments left out are untouched; passing None
        or an empty string clears the field.

        Raises:
            PlayerNotFoundError: Unknown player
            ValidationError: Bad region or device
        """
        changes = {}
        if java_username is not _UNSET:
            changes["java_username"] = java_username.strip() if java_username and java_username.strip() else None
        if region is not _UNSET:
            region_value = normalize_region(region)
            changes["region"] = region_value.value if region_value else None
        if device is not _UNSET:
            device_value = normalize_device(device)
            changes["device"] = device_value.value if device_value else None

        async with LockService.player_lock(player_id):
            async with DatabaseService.get_transaction() as session:
                player = await PlayerService.get_by_id(session, player_id, lock=True)
                if player is None:
                    raise PlayerNotFoundError(player_id=player_id)

                for field_name, value in changes.items():
                    setattr(player, field_name, value)
                if changes:
                    player.touch()

                await TransactionLogger.log_transaction(
                    session=session,
                    player_id=player_id,
                    transaction_type="profile_updated",
                    details=changes,
                    context=context
                )

        return player

    @staticmethod
    async def delete_player(player_id: int, context: Optional[str] = None) -> str:
        """
        Delete a player together with all of their placements.

        Publishes PlayerDeleted after commit.

        Returns:
            The deleted player's ign

        Raises:
            PlayerNotFoundError: Unknown player
        """
        async with LockService.player_lock(player_id):
            async with DatabaseService.get_transaction() as session:
                player = await PlayerService.get_by_id(session, player_id, lock=True)
                if player is None:
                    raise PlayerNotFoundError(player_id=player_id)

                ign = player.ign
                removed = await ScoreLedger.clear_player(session, player_id)
                await session.delete(player)
                await session.flush()

                await TransactionLogger.log_transaction(
                    session=session,
                    player_id=player_id,
                    transaction_type="player_deleted",
                    details={"player_id": player_id, "ign": ign, "placements_removed": removed},
                    context=context
                )

        logger.info(f"Deleted player {ign} (id={player_id}, {removed} placements)")
        await EventBus.publish(EventNames.PLAYER_DELETED, PlayerDeleted(player_id=player_id, ign=ign))
        return ign
