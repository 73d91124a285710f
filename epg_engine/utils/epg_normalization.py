"""
Guide normalization utilities

Pure, non-mutating transformations over EPGChannel lists: canonical UTC
instants, start ordering, and manual per-channel time shifts.
"""
import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from epg_engine.epg_types import EPGChannel, EPGEvent
from epg_engine.utils.timezone import format_utc_instant, to_utc_datetime

logger = logging.getLogger(__name__)


_UNPARSED = datetime.min.replace(tzinfo=timezone.utc)


def _start_key(event: EPGEvent) -> tuple[bool, datetime]:
    start = to_utc_datetime(event.start)
    return (start is None, start or _UNPARSED)


def sort_events(events: Iterable[EPGEvent]) -> tuple[EPGEvent, ...]:
    """
    Return events ordered ascending by start.

    The sort is stable, so equal starts keep their relative order. Events
    whose start cannot be parsed are placed last.
    """
    return tuple(sorted(events, key=_start_key))


def normalize_event(event: EPGEvent) -> EPGEvent | None:
    """
    Reinterpret an event's start/end as canonical UTC instants.

    Returns:
        New event, or None when either bound is not a valid instant
    """
    start = to_utc_datetime(event.start)
    end = to_utc_datetime(event.end)
    if start is None or end is None:
        return None

    return replace(event, start=format_utc_instant(start), end=format_utc_instant(end))


def normalize_epg_dates(epg_channels: Sequence[EPGChannel]) -> list[EPGChannel]:
    """
    Canonicalize and sort the events of every channel.

    Events with an unparseable start or end are dropped. The input is left
    untouched and applying the function twice gives the same result.

    Args:
        epg_channels: Guide channels as parsed, synthesized or loaded

    Returns:
        New list of channels with canonical, sorted events
    """
    normalized: list[EPGChannel] = []
    dropped = 0

    for channel in epg_channels:
        events = []
        for event in channel.events:
            clean = normalize_event(event)
            if clean is None:
                dropped += 1
                logger.debug(
                    "Dropping event %s on %s with invalid time range (%r -> %r)",
                    event.id,
                    channel.id,
                    event.start,
                    event.end,
                )
                continue
            events.append(clean)

        normalized.append(replace(channel, events=sort_events(events)))

    if dropped:
        logger.info("Normalization dropped %s event(s) with invalid timestamps", dropped)

    return normalized


def adjust_channel_offset(channel: EPGChannel, minutes: int) -> EPGChannel:
    """
    Shift a channel's events by minutes (positive or negative).

    The shift accumulates in offset_minutes. Events that cannot be parsed
    are dropped, as in normalize_epg_dates().
    """
    shift = timedelta(minutes=minutes)
    events = []

    for event in channel.events:
        start = to_utc_datetime(event.start)
        end = to_utc_datetime(event.end)
        if start is None or end is None:
            continue
        events.append(replace(
            event,
            start=format_utc_instant(start + shift),
            end=format_utc_instant(end + shift),
        ))

    return replace(
        channel,
        events=sort_events(events),
        offset_minutes=channel.offset_minutes + minutes,
    )


def adjust_offset(epg_channels: Sequence[EPGChannel], channel_id: str, minutes: int) -> list[EPGChannel]:
    """Apply adjust_channel_offset() to one channel of a guide, returning a new guide"""
    return [
        adjust_channel_offset(channel, minutes) if channel.id == channel_id else channel
        for channel in epg_channels
    ]
