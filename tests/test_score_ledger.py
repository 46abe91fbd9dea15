import pytest

from tierboard.database.models.player import Player
from tierboard.exceptions import UnknownTierError, ValidationError
from tierboard.services.database_service import DatabaseService
from tierboard.services.score_ledger import ScoreLedger


async def _player(ign: str) -> int:
    async with DatabaseService.get_transaction() as session:
        player = Player(ign=ign)
        session.add(player)
        await session.flush()
        return player.id


async def test_upsert_replaces_instead_of_appending(database):
    player_id = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        _, previous = await ScoreLedger.upsert_placement(session, player_id, "SMP", "HT1")
        assert previous is None

    async with DatabaseService.get_transaction() as session:
        entry, previous = await ScoreLedger.upsert_placement(session, player_id, "smp", "LT3")
        assert previous == "HT1"
        assert entry.score == 25
        assert entry.display_tier == "TIER 3"

    async with DatabaseService.get_session() as session:
        entries = await ScoreLedger.entries_for_player(session, player_id)
    assert len(entries) == 1
    assert entries[0].gamemode == "smp"
    assert entries[0].internal_tier == "LT3"


async def test_entries_for_gamemode(database):
    first = await _player("Alex")
    second = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        await ScoreLedger.upsert_placement(session, first, "crystal", "HT2")
        await ScoreLedger.upsert_placement(session, second, "crystal", "Retired")
        await ScoreLedger.upsert_placement(session, second, "sword", "LT5")

    async with DatabaseService.get_session() as session:
        crystal = await ScoreLedger.entries_for_gamemode(session, "Crystal")
    assert [(e.player_id, e.internal_tier, e.score) for e in crystal] == [
        (first, "HT2", 40),
        (second, "Retired", 0),
    ]


async def test_invalid_input_writes_nothing(database):
    player_id = await _player("Steve")

    with pytest.raises(UnknownTierError):
        async with DatabaseService.get_transaction() as session:
            await ScoreLedger.upsert_placement(session, player_id, "smp", "XT9")

    with pytest.raises(ValidationError):
        async with DatabaseService.get_transaction() as session:
            await ScoreLedger.upsert_placement(session, player_id, "minigames", "HT1")

    async with DatabaseService.get_session() as session:
        assert await ScoreLedger.entries_for_player(session, player_id) == []


async def test_remove_placement(database):
    player_id = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        await ScoreLedger.upsert_placement(session, player_id, "uhc", "HT4")

    async with DatabaseService.get_transaction() as session:
        assert await ScoreLedger.remove_placement(session, player_id, "uhc") == "HT4"
        assert await ScoreLedger.remove_placement(session, player_id, "uhc") is None

    async with DatabaseService.get_session() as session:
        assert await ScoreLedger.entries_for_player(session, player_id) == []


async def test_clear_player(database):
    player_id = await _player("Steve")

    async with DatabaseService.get_transaction() as session:
        for gamemode in ("smp", "axe", "mace"):
            await ScoreLedger.upsert_placement(session, player_id, gamemode, "LT4")

    async with DatabaseService.get_transaction() as session:
        assert await ScoreLedger.clear_player(session, player_id) == 3

    async with DatabaseService.get_session() as session:
        assert await ScoreLedger.entries_for_player(session, player_id) == []
