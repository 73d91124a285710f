"""
Shared dataclasses used across the guide pipeline.

All records are frozen; transformations build new values with
dataclasses.replace() instead of mutating in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple


@dataclass(frozen=True, slots=True)
class StreamSource:
    """Alternative playback location for a channel."""
    url: str
    media_type: str | None = None
    label: str | None = None


@dataclass(frozen=True, slots=True)
class Channel:
    """Playable roster entry produced by a playlist import."""
    id: str
    name: str
    logo: str | None = None
    poster: str | None = None
    stream_url: str | None = None
    sources: tuple[StreamSource, ...] = ()
    category: str | None = None
    live: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EPGEvent:
    """Scheduled programme; start/end hold canonical UTC instants once normalized."""
    id: str
    channel_id: str
    title: str
    start: str
    end: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class EPGChannel:
    """Schedule for one channel, events ordered by start."""
    id: str
    name: str
    logo: str | None = None
    events: tuple[EPGEvent, ...] = ()
    offset_minutes: int = 0


class NowNext(NamedTuple):
    """Currently airing and following event for a channel."""
    current: EPGEvent | None
    next: EPGEvent | None


__all__ = ["StreamSource", "Channel", "EPGEvent", "EPGChannel", "NowNext"]
