from datetime import datetime
from typing import Optional
from uuid import uuid4
import logging

from lxml import etree # type: ignore

from epg_engine.epg_types import EPGChannel, EPGEvent
from epg_engine.utils.epg_normalization import sort_events
from epg_engine.utils.timezone import DateFormatError, format_utc_instant, parse_xmltv_time, to_utc_datetime

logger = logging.getLogger(__name__)


class XMLTVParseError(ValueError):
    """Schedule document that is not well-formed XML"""


class _ChannelShell:
    """Mutable accumulator used while programmes are attached"""

    __slots__ = ("id", "name", "logo", "events")

    def __init__(self, channel_id: str, name: str, logo: Optional[str] = None):
        self.id = channel_id
        self.name = name
        self.logo = logo
        self.events: list[EPGEvent] = []


def parse_xmltv(xml_text: str | bytes, time_from: Optional[datetime] = None, time_to: Optional[datetime] = None) -> list[EPGChannel]:
    """
    Parse XMLTV text and return guide channels with their programmes

    Args:
        xml_text: XMLTV document
        time_from: Keep programmes starting at or after this instant
        time_to: Keep programmes starting at or before this instant

    Returns:
        List of EPGChannel, declared channels first then channels that were
        only referenced by programmes, in first-seen order. Events are sorted by start.

    Raises:
        XMLTVParseError: If XML is malformed
    """
    logger.debug("Parsing XMLTV document...")

    root = _load_root(xml_text)
    logger.debug(f"XMLTV root <{root.tag}> loaded")

    shells = _parse_channels(root)
    declared_count = len(shells)
    logger.debug(f"    Found {declared_count} declared channels")

    programs_count = _attach_programs(root, shells, time_from, time_to)
    implicit_count = len(shells) - declared_count
    if implicit_count:
        logger.debug(f"    Created {implicit_count} implicit channels for undeclared references")

    channels = [
        EPGChannel(
            id=shell.id,
            name=shell.name,
            logo=shell.logo,
            events=sort_events(shell.events),
        )
        for shell in shells.values()
    ]

    logger.info(f"XMLTV parsing complete: {len(channels)} channels, {programs_count} programs")

    return channels


def _load_root(xml_text: str | bytes) -> etree._Element:
    """Parse the document without entity expansion or network access"""
    data = xml_text.encode("utf-8") if isinstance(xml_text, str) else xml_text
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)

    try:
        return etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        logger.error(f"XMLTV document rejected: {e}")
        raise XMLTVParseError(f"Malformed XMLTV document: {e}") from e


def _parse_channels(root: etree._Element) -> dict[str, _ChannelShell]:
    """Extract declared channels from XMLTV root element"""
    shells: dict[str, _ChannelShell] = {}

    for channel in root.findall('channel'):
        display_name = _get_text(channel, 'display-name')
        xmltv_id = channel.get('id') or display_name or f"ch_{uuid4().hex[:7]}"

        icon = channel.find("icon")
        icon_url = (icon.get("src") or None) if icon is not None else None

        if xmltv_id in shells:
            logger.debug(f"Channel {xmltv_id} declared more than once, keeping the latest metadata")
            shells[xmltv_id].name = display_name or xmltv_id
            shells[xmltv_id].logo = icon_url
            continue

        shells[xmltv_id] = _ChannelShell(xmltv_id, display_name or xmltv_id, icon_url)

    return shells


def _attach_programs(root: etree._Element, shells: dict[str, _ChannelShell], time_from: Optional[datetime], time_to: Optional[datetime]) -> int:
    """Attach programme events to their channel shells, creating implicit shells"""
    attached = 0

    for idx, programme in enumerate(root.findall('programme')):
        event = _parse_single_program(programme, idx)
        if event is None:
            continue

        if not _is_in_time_window(event.start, time_from, time_to):
            continue

        shell = shells.get(event.channel_id)
        if shell is None:
            shell = _ChannelShell(event.channel_id, event.channel_id)
            shells[event.channel_id] = shell

        shell.events.append(event)
        attached += 1

    return attached


def _parse_single_program(programme: etree._Element, idx: int) -> Optional[EPGEvent]:
    """Event for one programme element, None when it names no channel"""
    channel_id = programme.get("channel")
    if channel_id is None or not channel_id.strip():
        logger.debug(f"Skipping programme #{idx} with missing channel attribute")
        return None

    return EPGEvent(
        id=programme.get('id') or f"{channel_id}-{idx}",
        channel_id=channel_id,
        title=_get_text(programme, 'title', default="Untitled") or "Untitled",
        start=_convert_time(programme.get('start')),
        end=_convert_time(programme.get('stop')),
        description=_get_text(programme, 'desc'),
    )


def _convert_time(time_str: Optional[str]) -> str:
    """Canonical instant for a programme timestamp; unparseable values pass through raw"""
    if not time_str:
        return ""
    try:
        return format_utc_instant(parse_xmltv_time(time_str))
    except DateFormatError:
        logger.debug(f"Unparseable programme time kept for normalization: {time_str!r}")
        return time_str


def _is_in_time_window(time_value: str, time_from: Optional[datetime], time_to: Optional[datetime]) -> bool:
    """Whether a programme start lies inside the optional import window"""
    if time_from is None and time_to is None:
        return True

    start = to_utc_datetime(time_value)
    if start is None:
        return False
    return (time_from is None or start >= time_from) and (time_to is None or start <= time_to)


def _get_text(element: etree._Element, tag: str, default: Optional[str] = None) -> Optional[str]:
    """Stripped text of the first tag child, default when absent or empty"""
    text = element.findtext(tag)
    if text is None or not text.strip():
        return default
    return text.strip()
