from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
import asyncio

from tierboard.config import Config
from tierboard.constants import EventNames
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import EventBus
from tierboard.services.placement_service import PlacementResult, PlacementService
from tierboard.services.player_service import PlayerService
from tierboard.services.tier_catalog import TierCatalog
from tierboard.services.transaction_logger import TransactionLogger
from tierboard.utils.validators import normalize_gamemode, normalize_region, validate_ign
from tierboard.exceptions import (
    TierboardException,
    ValidationError,
    StorageError,
)
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubmissionEntry:
    """One parsed placement line. line is the 1-based input line number."""

    ign: str
    gamemode: str
    tier: str
    region: Optional[str] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class RegistrationEntry:
    ign: str
    java_username: Optional[str] = None
    line: Optional[int] = None


@dataclass
class BatchResult:
    success_count: int = 0
    failure_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


def format_line_error(line: int, ign: str, reason: str) -> str:
    return f"Line {line} ({ign}): {reason}"


def _reason(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return error.reason
    if isinstance(error, TierboardException):
        return error.message
    return str(error)


class BulkSubmissionService:
    """
    Applies many placements or registrations with per-entry failure isolation.

    A batch is never rolled back as a unit: each entry commits (or fails) on
    its own and failures come back as "Line N (ign): reason" messages. Only
    a database that is unreachable before the batch starts raises.

    Entries that share an ign are applied one after another in input order,
    so the last line for a (player, gamemode) pair wins. Different players
    run concurrently up to Config.BULK_CONCURRENCY. Each entry's commit is
    bounded by Config.BULK_ENTRY_TIMEOUT seconds; the rank lookup and event
    that follow a commit are not, so a slow listener never fails a line.

    Usage:
        >>> result = await BulkSubmissionService.submit_batch([
        ...     SubmissionEntry("Steve", "smp", "HT1"),
        ...     SubmissionEntry("bad name", "smp", "HT1"),
        ... ])
        >>> result.success_count, result.failure_count
        (1, 1)
    """

    @staticmethod
    async def submit_batch(
        entries: Iterable[SubmissionEntry],
        context: str = "bulk:submit"
    ) -> BatchResult:
        """
        Apply placement entries.

        Raises:
            ValidationError: More than Config.BULK_MAX_ENTRIES entries
            StorageError: Database unreachable at batch start
        """
        numbered = BulkSubmissionService._number(entries)

        async def apply(entry: SubmissionEntry) -> PlacementResult:
            return await PlacementService.commit_by_ign(
                entry.ign, entry.gamemode, entry.tier,
                region=entry.region, context=context
            )

        def check(entry: SubmissionEntry) -> None:
            validate_ign(entry.ign)
            normalize_gamemode(entry.gamemode)
            TierCatalog.definition_for(entry.tier)
            normalize_region(entry.region)

        result = await BulkSubmissionService._run(
            numbered, check, apply, "submit_batch", announce=PlacementService.announce
        )
        await BulkSubmissionService._finish(result, "batch_submitted", context)
        return result

    @staticmethod
    async def register_batch(
        rows: Iterable[RegistrationEntry],
        context: str = "bulk:register"
    ) -> BatchResult:
        """
        Register many players. An ign that already exists, or appears twice
        in the batch, fails that row only.
        """
        numbered = BulkSubmissionService._number(rows)

        async def apply(entry: RegistrationEntry) -> None:
            await PlayerService.register_player(
                entry.ign, java_username=entry.java_username, context=context
            )

        def check(entry: RegistrationEntry) -> None:
            validate_ign(entry.ign)

        result = await BulkSubmissionService._run(numbered, check, apply, "register_batch")
        await BulkSubmissionService._finish(result, "batch_registered", context)
        return result

    @staticmethod
    def _number(entries: Iterable) -> List[Tuple[int, object]]:
        numbered = [
            (entry.line if entry.line is not None else index, entry)
            for index, entry in enumerate(entries, start=1)
        ]
        if len(numbered) > Config.BULK_MAX_ENTRIES:
            raise ValidationError(
                "entries",
                f"{len(numbered)} entries exceed the limit of {Config.BULK_MAX_ENTRIES}"
            )
        return numbered

    @staticmethod
    async def _run(
        numbered: List[Tuple[int, object]],
        check: Callable[[object], None],
        apply: Callable[[object], Awaitable[Any]],
        operation: str,
        announce: Optional[Callable[[Any], Awaitable[Any]]] = None
    ) -> BatchResult:
        if not await DatabaseService.health_check():
            raise StorageError(operation, ConnectionError("database unreachable"))

        failures: Dict[int, str] = {}
        succeeded: List[int] = []
        groups: Dict[str, List[Tuple[int, object]]] = {}

        for line, entry in numbered:
            try:
                check(entry)
            except ValidationError as e:
                failures[line] = format_line_error(line, entry.ign, e.reason)
                continue
            groups.setdefault(entry.ign, []).append((line, entry))

        semaphore = asyncio.Semaphore(max(1, Config.BULK_CONCURRENCY))
        timeout = Config.BULK_ENTRY_TIMEOUT

        async def run_group(items: List[Tuple[int, object]]) -> None:
            async with semaphore:
                for line, entry in items:
                    try:
                        outcome = await asyncio.wait_for(apply(entry), timeout=timeout)
                    except asyncio.TimeoutError:
                        failures[line] = format_line_error(line, entry.ign, f"timed out after {timeout:g}s")
                        continue
                    except TierboardException as e:
                        failures[line] = format_line_error(line, entry.ign, _reason(e))
                        continue
                    except Exception as e:
                        logger.error(
                            f"{operation} line {line} ({entry.ign}) failed unexpectedly: {e}",
                            exc_info=True
                        )
                        failures[line] = format_line_error(line, entry.ign, _reason(e))
                        continue

                    succeeded.append(line)
                    if announce is None:
                        continue
                    # Committed already; announcing is outside the entry timeout.
                    try:
                        await announce(outcome)
                    except Exception as e:
                        logger.error(f"{operation} line {line} ({entry.ign}) announce failed: {e}")

        await asyncio.gather(*(run_group(items) for items in groups.values()))

        return BatchResult(
            success_count=len(succeeded),
            failure_count=len(failures),
            errors=[failures[line] for line in sorted(failures)],
        )

    @staticmethod
    async def _finish(result: BatchResult, transaction_type: str, context: str) -> None:
        logger.info(
            f"{transaction_type}: {result.success_count} succeeded, "
            f"{result.failure_count} failed ({context})"
        )
        try:
            async with DatabaseService.get_transaction() as session:
                await TransactionLogger.log_batch(
                    session=session,
                    transaction_type=transaction_type,
                    total=result.total,
                    succeeded=result.success_count,
                    failed=result.failure_count,
                    context=context
                )
        except StorageError as e:
            # Entries are already committed; a missing summary row is not a batch failure.
            logger.error(f"Could not record {transaction_type} summary: {e}")

        await EventBus.publish(EventNames.BATCH_COMPLETED, result)
