"""
EPG Query Service

Point-in-time and window lookups over an in-memory guide.
Events are expected sorted by start (normalize_epg_dates/merge guarantee it).
"""
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
import logging

from epg_engine.epg_types import EPGChannel, EPGEvent, NowNext
from epg_engine.utils.timezone import to_utc_datetime

logger = logging.getLogger(__name__)


def find_channel(store: Sequence[EPGChannel], channel_id: str) -> EPGChannel | None:
    """First guide channel with the given id"""
    for channel in store:
        if channel.id == channel_id:
            return channel
    return None


def get_now_next(store: Sequence[EPGChannel], channel_id: str, now: datetime | None = None) -> NowNext:
    """
    Get the airing and following event of a channel

    Args:
        store: Guide channels with sorted events
        channel_id: Channel to look up
        now: Query instant (defaults to current UTC time)

    Returns:
        NowNext(current, next); the first event whose [start, end] contains now
        wins, next is the event right after it. Without a current event, next
        is the first event starting after now. Both are None for unknown
        channels and schedules entirely in the past.
    """
    now = _as_utc(now)
    channel = find_channel(store, channel_id)
    if channel is None or not channel.events:
        return NowNext(None, None)

    events = list(_timed_events(channel.events))

    for i, (event, start, end) in enumerate(events):
        if start <= now <= end:
            following = events[i + 1][0] if i + 1 < len(events) else None
            return NowNext(event, following)
        if start > now:
            return NowNext(None, event)

    return NowNext(None, None)


def get_guide_now_next(
    store: Sequence[EPGChannel],
    channel_ids: Iterable[str] | None = None,
    now: datetime | None = None,
) -> dict[str, NowNext]:
    """
    Now/next for many channels at once

    Args:
        store: Guide channels
        channel_ids: Channels to include (defaults to every channel in the store)
        now: Query instant shared by all channels

    Returns:
        Mapping channel id -> NowNext, in request (or store) order
    """
    now = _as_utc(now)
    ids = list(channel_ids) if channel_ids is not None else [channel.id for channel in store]
    snapshot = {channel_id: get_now_next(store, channel_id, now) for channel_id in ids}

    on_air = sum(1 for pair in snapshot.values() if pair.current is not None)
    logger.debug(f"Now/next computed for {len(snapshot)} channels ({on_air} on air) at {now.isoformat()}")

    return snapshot


def get_channel_events(
    store: Sequence[EPGChannel],
    channel_id: str,
    time_from: datetime,
    time_to: datetime,
) -> list[EPGEvent]:
    """
    Events of a channel starting within [time_from, time_to)

    Returns:
        List of events in start order, empty for unknown channels
    """
    channel = find_channel(store, channel_id)
    if channel is None:
        return []

    time_from = _as_utc(time_from)
    time_to = _as_utc(time_to)
    return [
        event
        for event, start, _ in _timed_events(channel.events)
        if time_from <= start < time_to
    ]


def find_event(store: Sequence[EPGChannel], channel_id: str, event_id: str) -> EPGEvent | None:
    """Look up one event of a channel by id"""
    channel = find_channel(store, channel_id)
    if channel is None:
        return None
    for event in channel.events:
        if event.id == event_id:
            return event
    return None


def _timed_events(events: Iterable[EPGEvent]) -> Iterable[tuple[EPGEvent, datetime, datetime]]:
    """Pair events with parsed bounds, skipping events that cannot be parsed"""
    for event in events:
        start = to_utc_datetime(event.start)
        end = to_utc_datetime(event.end)
        if start is None or end is None:
            continue
        yield event, start, end


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
