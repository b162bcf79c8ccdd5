from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from campaign_arcs.errors import CampaignArcsError
from campaign_arcs.storage.base import Base, import_all_models

_SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON;",
    "PRAGMA journal_mode=WAL;",
    # Concurrent CLI runs against one file wait instead of failing with "database is locked".
    "PRAGMA busy_timeout=5000;",
)

_db_service: "DatabaseService | None" = None


def sqlite_url(db_path: Path) -> str:
    return f"sqlite+aiosqlite:///{db_path.resolve().as_posix()}"


class DatabaseService:
    """Async engine plus session factory for the story arc database."""

    def __init__(self, db_url: str, *, echo: bool = False):
        self.db_url = db_url
        self.engine: AsyncEngine = create_async_engine(db_url, echo=echo, future=True)
        self._sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

        @event.listens_for(self.engine.sync_engine, "connect")
        def _apply_pragmas(dbapi_connection, _connection_record) -> None:
            cursor = dbapi_connection.cursor()
            for pragma in _SQLITE_PRAGMAS:
                cursor.execute(pragma)
            cursor.close()

    async def init_models(self) -> None:
        import_all_models()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Database schema ready tables={}", sorted(Base.metadata.tables))

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """One transaction: commit on a clean exit, roll back and re-raise otherwise.

        Caller errors (missing arc, stale version, ...) are logged at WARNING;
        anything else is logged with its traceback.
        """
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except CampaignArcsError as exc:
                logger.warning("Rolling back story arc transaction: {}", exc)
                await session.rollback()
                raise
            except Exception:
                logger.exception("Story arc transaction failed; rolling back")
                await session.rollback()
                raise

    async def dispose(self) -> None:
        await self.engine.dispose()


async def init_db_service(db_path: Path) -> DatabaseService:
    """Create the process-wide service on first call; later calls return it unchanged."""
    global _db_service
    if _db_service is None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        service = DatabaseService(sqlite_url(db_path))
        await service.init_models()
        _db_service = service
        logger.debug("Database service initialized path={}", db_path)
    return _db_service


def get_db_service() -> DatabaseService:
    if _db_service is None:
        raise RuntimeError("Database service not initialized. Call init_db_service() first.")
    return _db_service


async def shutdown_db_service() -> None:
    global _db_service
    if _db_service is None:
        return
    await _db_service.dispose()
    _db_service = None


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    async with get_db_service().session_scope() as session:
        yield session
