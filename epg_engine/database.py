"""
SQLite backing for the persisted guide store

The engine is created once by init_db() at startup when store_backend is
'sqlite'. SqliteEPGStore borrows sessions through session_scope().
"""
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from epg_engine.config import settings
from epg_engine.models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory of the guide database; init_db() must have run"""
    if _session_factory is None:
        raise RuntimeError("Guide database is not open, call init_db() first")
    return _session_factory


def _apply_pragmas(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute(f"PRAGMA journal_mode = {settings.sqlite_journal_mode}")
        cursor.execute("PRAGMA synchronous = NORMAL")
    finally:
        cursor.close()


async def init_db(database_path: str | None = None) -> async_sessionmaker[AsyncSession]:
    """
    Open the guide database and create the guide_store table

    Args:
        database_path: SQLite file (defaults to settings.database_path)

    Returns:
        Session factory, also kept as the module default for session_scope()
    """
    global _engine, _session_factory

    path = database_path or settings.database_path
    logger.info("Opening guide database at %s (journal_mode=%s)", path, settings.sqlite_journal_mode)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        pool_pre_ping=True,
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _apply_pragmas)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _engine = engine
    _session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    logger.info("Guide database ready")
    return _session_factory


async def close_db() -> None:
    """Dispose the engine; safe to call when nothing is open"""
    global _engine, _session_factory

    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()
        logger.info("Guide database closed")


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Session inside a transaction: committed on exit, rolled back on error

    Args:
        session_factory: Factory to use instead of the one opened by init_db()
    """
    factory = session_factory or get_session_factory()

    async with factory() as session, session.begin():
        yield session
