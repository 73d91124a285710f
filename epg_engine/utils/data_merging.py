"""
Data merging utilities

This module reconciles parsed guide channels with the current channel roster.
"""
import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace

from epg_engine.epg_types import Channel, EPGChannel
from epg_engine.utils.epg_normalization import sort_events

logger = logging.getLogger(__name__)


def merge_epg_with_channels(
    epg_channels: Sequence[EPGChannel],
    channels: Sequence[Channel],
    generate_placeholder_shells: bool = True,
) -> list[EPGChannel]:
    """
    Align guide channels with the roster.

    Each roster channel is matched by exact id, then by case-insensitive
    name against guide channels not matched yet. Matches keep their events
    and borrow the roster name/logo where their own are missing. Unmatched
    roster channels become empty stubs when generate_placeholder_shells is
    set. Guide channels left unmatched are appended afterwards so their
    schedules survive a roster change.

    Args:
        epg_channels: Parsed (or placeholder) guide channels
        channels: Current roster, in display order
        generate_placeholder_shells: Emit empty stubs for unmatched roster channels

    Returns:
        New list of guide channels without duplicate ids, events sorted
    """
    first_by_id: dict[str, int] = {}
    for idx, epg_channel in enumerate(epg_channels):
        if epg_channel.id:
            first_by_id.setdefault(epg_channel.id, idx)

    consumed: set[int] = set()
    emitted: set[str] = set()
    result: list[EPGChannel] = []
    matched_count = 0
    stub_count = 0

    for channel in channels:
        idx = first_by_id.get(channel.id)
        if idx is not None and idx in consumed:
            idx = None
        if idx is None:
            idx = _find_by_name(epg_channels, channel.name, consumed)

        if idx is not None:
            consumed.add(idx)
            matched = epg_channels[idx]
            merged = replace(
                matched,
                id=matched.id or channel.id,
                name=matched.name or channel.name,
                logo=matched.logo or channel.logo,
                events=sort_events(matched.events),
            )
            candidate = merged
            matched_count += 1
        elif generate_placeholder_shells:
            candidate = EPGChannel(id=channel.id, name=channel.name, logo=channel.logo)
            stub_count += 1
        else:
            logger.debug("No guide data for roster channel %s, skipping", channel.id)
            continue

        if candidate.id in emitted:
            logger.debug("Roster channel %s resolves to already emitted id %s, skipping", channel.id, candidate.id)
            continue
        emitted.add(candidate.id)
        result.append(candidate)

    orphan_count = 0
    for idx, epg_channel in enumerate(epg_channels):
        if idx in consumed or epg_channel.id in emitted:
            continue
        emitted.add(epg_channel.id)
        result.append(replace(epg_channel, events=sort_events(epg_channel.events)))
        orphan_count += 1

    logger.info(
        "Merged guide with roster: %s matched, %s stubs, %s unmatched guide channels kept",
        matched_count,
        stub_count,
        orphan_count,
    )
    return result


def _find_by_name(epg_channels: Sequence[EPGChannel], name: str, consumed: set[int]) -> int | None:
    """Index of the first unconsumed guide channel whose name equals name, ignoring case"""
    wanted = (name or "").casefold()
    if not wanted:
        return None

    for idx, epg_channel in enumerate(epg_channels):
        if idx not in consumed and (epg_channel.name or "").casefold() == wanted:
            return idx
    return None


def remap_channels(
    epg_channels: Sequence[EPGChannel],
    mapping: Mapping[str, Mapping[str, str]],
) -> list[EPGChannel]:
    """
    Rename guide channels given a mapping {old_id: {"id": new_id, "name": new_name}}.

    Both keys are optional. Events follow the new channel id. An entry whose
    new id is already held by another guide channel is skipped, leaving that
    channel unchanged, so ids stay unique.
    """
    taken = {epg_channel.id for epg_channel in epg_channels}
    remapped = []
    for epg_channel in epg_channels:
        target = mapping.get(epg_channel.id)
        if not target:
            remapped.append(epg_channel)
            continue

        new_id = target.get("id") or epg_channel.id
        events = epg_channel.events
        if new_id != epg_channel.id:
            if new_id in taken:
                logger.warning("Cannot remap channel %s to %s: id already in guide", epg_channel.id, new_id)
                remapped.append(epg_channel)
                continue
            taken.discard(epg_channel.id)
            taken.add(new_id)
            events = tuple(replace(event, channel_id=new_id) for event in events)

        remapped.append(replace(
            epg_channel,
            id=new_id,
            name=target.get("name") or epg_channel.name,
            events=events,
        ))
        logger.debug("Remapped channel %s -> %s", epg_channel.id, new_id)

    return remapped
