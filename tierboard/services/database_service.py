from typing import AsyncGenerator, Any, Dict, Optional
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from sqlmodel import SQLModel
import asyncio

from tierboard.config import Config
from tierboard.exceptions import StorageError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


class DatabaseService:
    """
    Owner of the async engine and the only way to get a session.

    Two scopes:
        get_transaction(): commits on clean exit, rolls back on any error.
            Every ledger write goes through one of these.
        get_session(): never commits. Leaderboard reads use it so a view is
            built from one snapshot.

    Any SQLAlchemyError leaving either scope is re-raised as StorageError, so
    callers above the service layer never import SQLAlchemy exceptions.

    Usage:
        >>> async with DatabaseService.get_transaction() as session:
        ...     await ScoreLedger.upsert_placement(session, player_id, "smp", "HT1")
        ...     await PointsAggregator.recompute(session, player_id)
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker] = None

    @classmethod
    def _engine_kwargs(cls) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"echo": Config.DATABASE_ECHO, "pool_pre_ping": True}
        # SQLite files and test runs get a fresh connection per checkout.
        if Config.is_testing() or Config.DATABASE_URL.startswith("sqlite"):
            kwargs["poolclass"] = NullPool
        else:
            kwargs.update(
                pool_size=Config.DATABASE_POOL_SIZE,
                max_overflow=Config.DATABASE_MAX_OVERFLOW,
                pool_recycle=Config.DATABASE_POOL_RECYCLE,
            )
        return kwargs

    @classmethod
    async def initialize(cls, max_retries: int = 3, retry_delay: int = 5) -> None:
        """
        Create the engine and verify it with a health check.

        Args:
            max_retries: Connection attempts before giving up
            retry_delay: Seconds between attempts

        Raises:
            StorageError: If every attempt failed
        """
        if cls._engine is not None:
            logger.warning("DatabaseService already initialized")
            return

        last_error: Optional[Exception] = None
        for attempt in range(1, max_retries + 1):
            engine = None
            try:
                engine = create_async_engine(Config.DATABASE_URL, **cls._engine_kwargs())
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except Exception as e:
                last_error = e
                if engine is not None:
                    await engine.dispose()
                logger.error(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
                if attempt < max_retries:
                    await asyncio.sleep(retry_delay)
                continue

            cls._engine = engine
            cls._session_factory = async_sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            logger.info(f"DatabaseService connected on attempt {attempt}")
            return

        logger.critical("DatabaseService could not connect, giving up")
        raise StorageError("initialize", last_error)

    @classmethod
    async def shutdown(cls) -> None:
        engine, cls._engine, cls._session_factory = cls._engine, None, None
        if engine is None:
            return
        try:
            await engine.dispose()
            logger.info("DatabaseService shutdown complete")
        except Exception as e:
            logger.error(f"Error disposing database engine: {e}")

    @classmethod
    async def health_check(cls) -> bool:
        """True when the database answers SELECT 1. Never raises."""
        if cls._engine is None:
            return False
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    @classmethod
    @asynccontextmanager
    async def _scope(cls, commit: bool) -> AsyncGenerator[AsyncSession, None]:
        if cls._session_factory is None:
            raise RuntimeError("DatabaseService not initialized")

        operation = "transaction" if commit else "read"
        async with cls._session_factory() as session:
            try:
                yield session
                if commit:
                    await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database {operation} rolled back: {e}")
                raise StorageError(operation, e) from e
            except Exception:
                await session.rollback()
                raise

    @classmethod
    def get_session(cls):
        """
        Session without commit, for reads.

        Raises:
            RuntimeError: If DatabaseService not initialized
            StorageError: If a database error escapes the block
        """
        return cls._scope(commit=False)

    @classmethod
    def get_transaction(cls):
        """
        Session that commits on clean exit and rolls back otherwise.

        Raises:
            RuntimeError: If DatabaseService not initialized
            StorageError: If a database error escapes the block or the commit fails
        """
        return cls._scope(commit=True)

    @classmethod
    async def create_tables(cls) -> None:
        """Create missing tables. Safe to call on every start."""
        from tierboard.database.models import Player, GamemodeScore, TransactionLog  # noqa: F401

        if cls._engine is None:
            raise RuntimeError("DatabaseService not initialized")

        async with cls._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database tables ready")

    @classmethod
    async def drop_tables(cls) -> None:
        """
        Drop every table. Refused in production.

        Raises:
            RuntimeError: In production, or before initialize()
        """
        if cls._engine is None:
            raise RuntimeError("DatabaseService not initialized")
        if Config.is_production():
            raise RuntimeError("Cannot drop tables in production environment")

        async with cls._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.drop_all)
        logger.warning("Database tables dropped")
