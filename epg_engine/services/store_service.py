"""
Guide store operations

Persists whole guides (EPGChannel lists) under a single key. Loading a
missing or corrupt key yields an empty guide instead of an error.
"""
import logging
from collections.abc import Sequence
from typing import Protocol

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from epg_engine.database import session_scope
from epg_engine.models import StoredGuide
from epg_engine.epg_types import EPGChannel


logger = logging.getLogger(__name__)

_guide_adapter = TypeAdapter(list[EPGChannel])


def serialize_guide(channels: Sequence[EPGChannel]) -> str:
    """Encode a guide as JSON text"""
    return _guide_adapter.dump_json(list(channels)).decode("utf-8")


def deserialize_guide(payload: str | bytes) -> list[EPGChannel]:
    """
    Decode a guide from JSON text

    Raises:
        ValidationError: If the payload is not valid JSON or not a guide
    """
    return _guide_adapter.validate_json(payload)


class EPGStore(Protocol):
    """Key/value persistence contract for guides"""

    async def save(self, key: str, channels: Sequence[EPGChannel]) -> None:
        ...

    async def load(self, key: str) -> list[EPGChannel]:
        ...


class MemoryEPGStore:
    """Process-local store keeping serialized guides in a dict"""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def save(self, key: str, channels: Sequence[EPGChannel]) -> None:
        self._data[key] = serialize_guide(channels)
        logger.debug("Saved %s channels under %s (memory)", len(channels), key)

    async def load(self, key: str) -> list[EPGChannel]:
        raw = self._data.get(key)
        if not raw:
            return []
        try:
            return deserialize_guide(raw)
        except ValidationError as exc:
            logger.warning("Corrupt guide under %s, treating as empty: %s", key, exc.error_count())
            return []


class SqliteEPGStore:
    """Guide store backed by the guide_store table"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    async def save(self, key: str, channels: Sequence[EPGChannel]) -> None:
        """
        Store a guide using UPSERT semantics

        Raises:
            SQLAlchemyError: If the write fails
        """
        payload = serialize_guide(channels)
        stmt = insert(StoredGuide).values(key=key, payload=payload)
        stmt = stmt.on_conflict_do_update(
            index_elements=[StoredGuide.key],
            set_={"payload": stmt.excluded.payload, "updated_at": stmt.excluded.updated_at},
        )

        try:
            async with session_scope(self._session_factory) as session:
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Failed to save guide under %s: %s", key, exc, exc_info=True)
            raise

        logger.info("Saved %s channels under %s (%s bytes)", len(channels), key, len(payload))

    async def load(self, key: str) -> list[EPGChannel]:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    select(StoredGuide.payload).where(StoredGuide.key == key)
                )
                raw = result.scalar_one_or_none()
        except (SQLAlchemyError, RuntimeError) as exc:
            logger.warning("Could not read guide under %s, treating as empty: %s", key, exc)
            return []

        if not raw:
            return []

        try:
            return deserialize_guide(raw)
        except ValidationError as exc:
            logger.warning("Corrupt guide under %s, treating as empty: %s", key, exc.error_count())
            return []
