import random

import pytest
from sqlalchemy import select, update

from tierboard.constants import GameMode
from tierboard.database.models.player import Player
from tierboard.database.models.transaction_log import TransactionLog
from tierboard.exceptions import PlayerNotFoundError
from tierboard.services.database_service import DatabaseService
from tierboard.services.points_aggregator import PointsAggregator
from tierboard.services.score_ledger import ScoreLedger
from tierboard.services.tier_catalog import TierCatalog


async def _player(ign: str) -> int:
    async with DatabaseService.get_transaction() as session:
        player = Player(ign=ign)
        session.add(player)
        await session.flush()
        return player.id


async def _stored_points(player_id: int) -> int:
    async with DatabaseService.get_session() as session:
        player = await session.get(Player, player_id)
        return player.global_points


async def test_total_tracks_arbitrary_ledger_changes(database):
    player_id = await _player("Steve")
    rng = random.Random(7)
    codes = TierCatalog.all_codes()
    expected = {}

    for _ in range(40):
        mode = rng.choice(list(GameMode))
        async with DatabaseService.get_transaction() as session:
            if rng.random() < 0.25:
                await ScoreLedger.remove_placement(session, player_id, mode)
                expected.pop(mode, None)
            else:
                code = rng.choice(codes)
                await ScoreLedger.upsert_placement(session, player_id, mode, code)
                expected[mode] = code
            total = await PointsAggregator.recompute(session, player_id)

        want = sum(TierCatalog.points_for(c) for c in expected.values() if TierCatalog.is_ranked(c))
        assert total == want
        assert await _stored_points(player_id) == want


async def test_sentinels_do_not_count(database):
    player_id = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        await ScoreLedger.upsert_placement(session, player_id, "smp", "HT1")
        await ScoreLedger.upsert_placement(session, player_id, "uhc", "Retired")
        await ScoreLedger.upsert_placement(session, player_id, "axe", "Not Ranked")
        assert await PointsAggregator.recompute(session, player_id) == 50


async def test_recompute_is_idempotent(database):
    player_id = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        await ScoreLedger.upsert_placement(session, player_id, "smp", "HT3")
        await ScoreLedger.upsert_placement(session, player_id, "sword", "LT2")
        first = await PointsAggregator.recompute(session, player_id)
        second = await PointsAggregator.recompute(session, player_id)

    assert first == second == 65
    assert await _stored_points(player_id) == 65


async def test_unknown_player(database):
    with pytest.raises(PlayerNotFoundError):
        async with DatabaseService.get_transaction() as session:
            await PointsAggregator.recompute(session, 9999)


async def test_find_drift_and_repair(database):
    healthy = await _player("Alex")
    drifted = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        await ScoreLedger.upsert_placement(session, healthy, "smp", "LT5")
        await ScoreLedger.upsert_placement(session, drifted, "smp", "HT1")
        await PointsAggregator.recompute(session, healthy)
        await PointsAggregator.recompute(session, drifted)
        await session.execute(update(Player).where(Player.id == drifted).values(global_points=7))

    assert await PointsAggregator.find_drift() == [(drifted, 7, 50)]

    assert await PointsAggregator.recompute_all(context="test") == 1
    assert await PointsAggregator.find_drift() == []
    assert await _stored_points(drifted) == 50

    async with DatabaseService.get_session() as session:
        result = await session.execute(
            select(TransactionLog).where(TransactionLog.transaction_type == "points_repaired")
        )
        logs = result.scalars().all()
    assert len(logs) == 1
    assert logs[0].details == {"old_points": 7, "new_points": 50}
