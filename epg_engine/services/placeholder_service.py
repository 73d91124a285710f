"""
Placeholder Schedule Service

Synthesizes deterministic schedules for channels that have no guide data.
"""
import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone
from uuid import uuid4

from epg_engine.schemas import PlaceholderPolicy
from epg_engine.epg_types import Channel, EPGChannel, EPGEvent
from epg_engine.utils.epg_normalization import sort_events
from epg_engine.utils.timezone import format_utc_instant, get_zone

logger = logging.getLogger(__name__)

# Per-channel nudge so different channels never share identical timestamps
CHANNEL_OFFSET = timedelta(milliseconds=500)


def channels_to_placeholder_epg(
    channels: Sequence[Channel],
    policy: PlaceholderPolicy | None = None,
) -> list[EPGChannel]:
    """
    Generate a placeholder schedule for every channel

    Channel i gets slot_count contiguous slots starting at base_day
    start_hour:00:00 (in policy.timezone) plus i * 500 ms.

    Args:
        channels: Roster channels
        policy: Generation policy (defaults: 06:00, 12 slots of 60 minutes, today)

    Returns:
        One EPGChannel per input channel, in input order
    """
    policy = policy or PlaceholderPolicy()
    base = _base_start(policy)

    result = [
        EPGChannel(
            id=channel.id,
            name=channel.name,
            logo=channel.logo,
            events=_placeholder_events(channel.id, channel.name, base, index, policy),
        )
        for index, channel in enumerate(channels)
    ]

    logger.info(
        "Generated placeholder schedule for %s channels (%s slots of %s min from %s)",
        len(result),
        policy.slot_count,
        policy.slot_duration_minutes,
        format_utc_instant(base),
    )
    return result


def fill_empty_channels(
    epg_channels: Sequence[EPGChannel],
    roster: Sequence[Channel],
    policy: PlaceholderPolicy | None = None,
) -> list[EPGChannel]:
    """
    Give placeholder events to guide channels that have none

    Only channels present in the roster are filled; the roster position
    decides the per-channel offset, matching channels_to_placeholder_epg().
    """
    policy = policy or PlaceholderPolicy()
    base = _base_start(policy)
    roster_index = {}
    for index, channel in enumerate(roster):
        roster_index.setdefault(channel.id, index)

    filled = []
    filled_count = 0
    for channel in epg_channels:
        index = roster_index.get(channel.id)
        if channel.events or index is None:
            filled.append(channel)
            continue
        filled.append(replace(
            channel,
            events=_placeholder_events(channel.id, channel.name, base, index, policy),
        ))
        filled_count += 1

    if filled_count:
        logger.info("Filled %s empty channel(s) with placeholder events", filled_count)

    return filled


def _base_start(policy: PlaceholderPolicy) -> datetime:
    """UTC instant of start_hour on the base day"""
    zone = get_zone(policy.timezone)
    base_day = policy.base_day or datetime.now(zone).date()
    local_start = datetime.combine(base_day, time(hour=policy.start_hour), tzinfo=zone)
    return local_start.astimezone(timezone.utc)


def _placeholder_events(
    channel_id: str,
    name: str,
    base: datetime,
    index: int,
    policy: PlaceholderPolicy,
) -> tuple[EPGEvent, ...]:
    slot = timedelta(minutes=policy.slot_duration_minutes)
    first_start = base + index * CHANNEL_OFFSET

    events = []
    for n in range(policy.slot_count):
        start = first_start + n * slot
        events.append(EPGEvent(
            id=str(uuid4()),
            channel_id=channel_id,
            title=f"{name} • Live" if n == 0 else f"{name} • Episode {n}",
            start=format_utc_instant(start),
            end=format_utc_instant(start + slot),
            description=f"{name} placeholder program {n + 1}",
        ))

    return sort_events(events)
