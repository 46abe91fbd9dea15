from datetime import timedelta

import pytest
from sqlalchemy import select

from tierboard.constants import EventNames
from tierboard.database.models.gamemode_score import GamemodeScore
from tierboard.database.models.player import Player
from tierboard.database.models.transaction_log import TransactionLog
from tierboard.exceptions import DuplicatePlayerError, PlayerNotFoundError, ValidationError
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import PlayerDeleted
from tierboard.services.lock_service import LockService
from tierboard.services.placement_service import PlacementService
from tierboard.services.player_service import PlayerService


async def test_register_player(database):
    player = await PlayerService.register_player(
        "Steve", java_username=" SteveJava ", region="na", device="pc"
    )

    assert player.id is not None
    assert player.java_username == "SteveJava"
    assert player.region == "NA"
    assert player.device == "PC"
    assert player.global_points == 0


async def test_register_duplicate(database):
    await PlayerService.register_player("Steve")
    with pytest.raises(DuplicatePlayerError):
        await PlayerService.register_player("Steve")


async def test_register_rejects_bad_ign(database):
    with pytest.raises(ValidationError):
        await PlayerService.register_player("way_too_long_name_here")


async def test_get_or_create(database):
    async with LockService.ign_lock("Steve"):
        async with DatabaseService.get_transaction() as session:
            created, was_created = await PlayerService.get_or_create(session, "Steve")
    assert was_created

    async with LockService.ign_lock("Steve"):
        async with DatabaseService.get_transaction() as session:
            found, was_created = await PlayerService.get_or_create(session, "Steve", region="OCE")
    assert not was_created
    assert found.id == created.id
    assert found.region == "OCE"


async def test_lookups(database):
    alex = await PlayerService.register_player("Alex")
    steve = await PlayerService.register_player("Steve")

    async with DatabaseService.get_session() as session:
        assert (await PlayerService.get_by_ign(session, "Alex")).id == alex.id
        assert await PlayerService.get_by_ign(session, "alex") is None
        assert (await PlayerService.get_by_id(session, steve.id)).ign == "Steve"
        assert [p.ign for p in await PlayerService.list_all(session)] == ["Alex", "Steve"]


async def test_update_profile(database):
    player = await PlayerService.register_player("Steve", java_username="SteveJava", region="EU")

    updated = await PlayerService.update_profile(player.id, region="asia", device="Console")
    assert updated.region == "ASIA"
    assert updated.device == "Console"
    assert updated.java_username == "SteveJava"

    cleared = await PlayerService.update_profile(player.id, java_username="", region=None)
    assert cleared.java_username is None
    assert cleared.region is None
    assert cleared.device == "Console"

    with pytest.raises(ValidationError):
        await PlayerService.update_profile(player.id, device="toaster")
    with pytest.raises(PlayerNotFoundError):
        await PlayerService.update_profile(9999, region="EU")


async def test_delete_player_cascades(database, collected_events):
    result = await PlacementService.submit_by_ign("Steve", "smp", "HT1")
    await PlacementService.submit_by_ign("Steve", "axe", "LT2")
    collected_events.clear()

    assert await PlayerService.delete_player(result.player_id) == "Steve"

    async with DatabaseService.get_session() as session:
        assert await PlayerService.get_by_id(session, result.player_id) is None
        rows = await session.execute(
            select(GamemodeScore).where(GamemodeScore.player_id == result.player_id)
        )
        assert rows.scalars().all() == []

    assert collected_events == [
        (EventNames.PLAYER_DELETED, PlayerDeleted(player_id=result.player_id, ign="Steve")),
    ]

    with pytest.raises(PlayerNotFoundError):
        await PlayerService.delete_player(result.player_id)


def test_new_rows_default_to_aware_utc_timestamps():
    player = Player(ign="Steve")
    assert player.created_at.tzinfo is not None
    assert player.created_at.utcoffset() == timedelta(0)

    player.touch()
    assert player.updated_at.utcoffset() == timedelta(0)


async def test_stored_rows_carry_timestamps(database):
    result = await PlacementService.submit_by_ign("Steve", "smp", "HT1", region="EU")
    await PlayerService.update_profile(result.player_id, region="NA")

    async with DatabaseService.get_session() as session:
        player = await PlayerService.get_by_id(session, result.player_id)
        entry = (await session.execute(select(GamemodeScore))).scalar_one()
        logs = (await session.execute(select(TransactionLog))).scalars().all()

    assert player.region == "NA"
    assert player.created_at is not None and player.updated_at is not None
    assert entry.created_at is not None and entry.updated_at is not None
    assert logs and all(log.timestamp is not None for log in logs)
