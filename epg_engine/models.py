"""
SQLAlchemy ORM Models for the guide store

A single key/value table holding serialized guides.
"""
from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class StoredGuide(Base):
    """Serialized EPGChannel list stored under a key"""
    __tablename__ = "guide_store"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<StoredGuide(key={self.key}, updated_at={self.updated_at})>"
