import asyncio

import pytest
from sqlalchemy import select

from tierboard.config import Config
from tierboard.constants import EventNames
from tierboard.database.models.player import Player
from tierboard.database.models.transaction_log import TransactionLog
from tierboard.exceptions import StorageError, ValidationError
from tierboard.services.bulk_submission_service import (
    BatchResult,
    BulkSubmissionService,
    RegistrationEntry,
    SubmissionEntry,
)
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import EventBus
from tierboard.services.placement_service import PlacementService
from tierboard.services.redis_service import RedisService


async def _points_by_ign():
    async with DatabaseService.get_session() as session:
        result = await session.execute(select(Player.ign, Player.global_points))
        return dict(result.all())


async def test_partial_failure_commits_the_valid_entries(database):
    result = await BulkSubmissionService.submit_batch([
        SubmissionEntry("Alpha", "smp", "HT1"),
        SubmissionEntry("Bravo", "sword", "LT3"),
        SubmissionEntry("Charlie", "uhc", "HT5", region="EU"),
        SubmissionEntry("bad name", "smp", "HT1"),
    ])

    assert result.success_count == 3
    assert result.failure_count == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Line 4 (bad name): ")

    assert await _points_by_ign() == {"Alpha": 50, "Bravo": 25, "Charlie": 10}


async def test_error_messages_name_line_and_reason(database):
    result = await BulkSubmissionService.submit_batch([
        SubmissionEntry("Alpha", "smp", "XT9", line=3),
        SubmissionEntry("Bravo", "minigames", "HT1", line=7),
        SubmissionEntry("Charlie", "smp", "HT1", region="Mars", line=9),
    ])

    assert result.success_count == 0
    assert result.errors == [
        "Line 3 (Alpha): unknown tier code 'XT9'",
        "Line 7 (Bravo): unknown gamemode 'minigames'",
        "Line 9 (Charlie): unknown region 'Mars'",
    ]


async def test_same_player_entries_apply_in_input_order(database):
    result = await BulkSubmissionService.submit_batch([
        SubmissionEntry("Alpha", "smp", "HT1"),
        SubmissionEntry("Bravo", "smp", "LT5"),
        SubmissionEntry("Alpha", "smp", "LT4"),
        SubmissionEntry("Alpha", "axe", "HT2"),
    ])

    assert result.success_count == 4
    assert await _points_by_ign() == {"Alpha": 15 + 40, "Bravo": 5}


async def test_entry_timeout_is_a_per_entry_failure(database, monkeypatch):
    original = PlacementService.commit_by_ign

    async def slow_for_bravo(ign, *args, **kwargs):
        if ign == "Bravo":
            await asyncio.sleep(5)
        return await original(ign, *args, **kwargs)

    monkeypatch.setattr(Config, "BULK_ENTRY_TIMEOUT", 0.2)
    monkeypatch.setattr(PlacementService, "commit_by_ign", staticmethod(slow_for_bravo))

    result = await BulkSubmissionService.submit_batch([
        SubmissionEntry("Alpha", "smp", "HT1"),
        SubmissionEntry("Bravo", "smp", "HT1"),
    ])

    assert result.success_count == 1
    assert result.errors == ["Line 2 (Bravo): timed out after 0.2s"]
    assert await _points_by_ign() == {"Alpha": 50}


async def test_slow_listener_does_not_fail_committed_entry(database, monkeypatch):
    async def slow_listener(_):
        await asyncio.sleep(0.5)

    monkeypatch.setattr(Config, "BULK_ENTRY_TIMEOUT", 0.2)
    EventBus.subscribe(EventNames.PLACEMENT_COMMITTED, slow_listener)

    result = await BulkSubmissionService.submit_batch([SubmissionEntry("Alpha", "smp", "HT1")])

    assert result.success_count == 1
    assert result.errors == []
    assert await _points_by_ign() == {"Alpha": 50}


async def test_storage_error_fails_only_its_line(database, monkeypatch, collected_events):
    original = PlacementService.commit_by_ign

    async def broken_for_bravo(ign, *args, **kwargs):
        if ign == "Bravo":
            raise StorageError("transaction", RuntimeError("disk I/O error"))
        return await original(ign, *args, **kwargs)

    monkeypatch.setattr(PlacementService, "commit_by_ign", staticmethod(broken_for_bravo))

    result = await BulkSubmissionService.submit_batch([
        SubmissionEntry("Alpha", "smp", "HT1"),
        SubmissionEntry("Bravo", "smp", "HT1"),
        SubmissionEntry("Charlie", "smp", "LT3"),
    ])

    assert result.success_count == 2
    assert result.errors == [
        "Line 2 (Bravo): Storage error during transaction: disk I/O error",
    ]
    assert await _points_by_ign() == {"Alpha": 50, "Charlie": 25}
    assert collected_events[-1][0] == EventNames.BATCH_COMPLETED


async def test_unexpected_error_fails_only_its_line(database, monkeypatch, collected_events):
    original = PlacementService.commit_by_ign

    async def broken_for_bravo(ign, *args, **kwargs):
        if ign == "Bravo":
            raise RuntimeError("connection reset")
        return await original(ign, *args, **kwargs)

    monkeypatch.setattr(PlacementService, "commit_by_ign", staticmethod(broken_for_bravo))

    result = await BulkSubmissionService.submit_batch(
        [
            SubmissionEntry("Alpha", "smp", "HT1"),
            SubmissionEntry("Bravo", "smp", "HT1"),
            SubmissionEntry("Bravo", "axe", "HT1"),
            SubmissionEntry("Charlie", "smp", "LT3"),
        ],
        context="test:bulk",
    )

    assert result.success_count == 2
    assert result.errors == [
        "Line 2 (Bravo): connection reset",
        "Line 3 (Bravo): connection reset",
    ]
    assert await _points_by_ign() == {"Alpha": 50, "Charlie": 25}

    async with DatabaseService.get_session() as session:
        rows = await session.execute(
            select(TransactionLog).where(TransactionLog.transaction_type == "batch_submitted")
        )
        log = rows.scalar_one()
    assert log.details == {"total": 4, "succeeded": 2, "failed": 2}

    topic, payload = collected_events[-1]
    assert topic == EventNames.BATCH_COMPLETED
    assert payload.failure_count == 2


async def test_unavailable_lock_backend_fails_lines_not_batch(database, monkeypatch, collected_events):
    monkeypatch.setattr(Config, "DISTRIBUTED_LOCKS", True)
    monkeypatch.setattr(RedisService, "_client", None)

    result = await BulkSubmissionService.submit_batch([
        SubmissionEntry("Alpha", "smp", "HT1"),
        SubmissionEntry("Bravo", "smp", "HT1"),
    ])

    assert result.success_count == 0
    assert result.failure_count == 2
    assert result.errors[0].startswith("Line 1 (Alpha): Storage error during lock ign:Alpha")
    assert result.errors[1].startswith("Line 2 (Bravo): Storage error during lock ign:Bravo")
    assert await _points_by_ign() == {}
    assert collected_events[-1][0] == EventNames.BATCH_COMPLETED


async def test_batch_audit_row_and_event(database, collected_events):
    await BulkSubmissionService.submit_batch(
        [SubmissionEntry("Alpha", "smp", "HT1"), SubmissionEntry("b c", "smp", "HT1")],
        context="test:bulk",
    )

    async with DatabaseService.get_session() as session:
        rows = await session.execute(
            select(TransactionLog).where(TransactionLog.transaction_type == "batch_submitted")
        )
        log = rows.scalar_one()
    assert log.player_id is None
    assert log.details == {"total": 2, "succeeded": 1, "failed": 1}
    assert log.context == "test:bulk"

    topic, payload = collected_events[-1]
    assert topic == EventNames.BATCH_COMPLETED
    assert isinstance(payload, BatchResult)
    assert payload.total == 2


async def test_unreachable_database_fails_the_whole_batch():
    with pytest.raises(StorageError):
        await BulkSubmissionService.submit_batch([SubmissionEntry("Alpha", "smp", "HT1")])


async def test_too_many_entries(database, monkeypatch):
    monkeypatch.setattr(Config, "BULK_MAX_ENTRIES", 2)
    with pytest.raises(ValidationError):
        await BulkSubmissionService.submit_batch([SubmissionEntry("A", "smp", "HT1")] * 3)


async def test_register_batch(database):
    result = await BulkSubmissionService.register_batch([
        RegistrationEntry("Alpha", "AlphaJava"),
        RegistrationEntry("Bravo"),
        RegistrationEntry("Alpha"),
        RegistrationEntry("no way"),
    ])

    assert result.success_count == 2
    assert result.errors == [
        "Line 3 (Alpha): player 'Alpha' is already registered",
        "Line 4 (no way): 'no way' contains invalid characters (letters, digits and _ only)",
    ]
    assert await _points_by_ign() == {"Alpha": 0, "Bravo": 0}
