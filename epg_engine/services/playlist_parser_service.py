import logging
import re
from typing import Optional
from uuid import uuid4

from epg_engine.epg_types import Channel, StreamSource

logger = logging.getLogger(__name__)

DIRECTIVE_MARKER = "#EXTINF:"
DEFAULT_CATEGORY = "Uncategorized"
ATTRIBUTE_PATTERN = re.compile(r'([a-zA-Z0-9\-]+?)="([^"]*)"')

_MEDIA_TYPES = {
    ".m3u8": "application/x-mpegURL",
    ".mpd": "application/dash+xml",
    ".mp4": "video/mp4",
    ".ts": "video/mp2t",
}


def parse_m3u(m3u_text: str) -> list[Channel]:
    """
    Parse an M3U playlist into roster channels

    Each '#EXTINF:<attrs>,<name>' line yields one channel, in input order.
    The first following line that is neither blank nor a '#' line is the
    stream URL; the look-ahead stops at the next directive, leaving the URL empty.

    Args:
        m3u_text: Playlist text

    Returns:
        List of Channel records (live=True)
    """
    lines = m3u_text.splitlines()
    channels: list[Channel] = []
    skipped = 0
    i = 0

    while i < len(lines):
        line = lines[i].strip()
        if not line.startswith(DIRECTIVE_MARKER):
            i += 1
            continue

        url, j = _find_stream_url(lines, i + 1)
        channel = _parse_directive(line, url)
        if channel is None:
            skipped += 1
            logger.debug("Skipping malformed directive on line %s: %r", i + 1, line)
        else:
            channels.append(channel)

        # Resume after the URL, or at the directive that ended the look-ahead
        i = j + 1 if url else j

    logger.info(f"M3U parsing complete: {len(channels)} channels, {skipped} malformed directives skipped")

    return channels


def _find_stream_url(lines: list[str], start: int) -> tuple[Optional[str], int]:
    """Return (url, index) of the next stream URL line, or (None, stop index)"""
    j = start
    while j < len(lines):
        candidate = lines[j].strip()
        if candidate.startswith(DIRECTIVE_MARKER):
            return None, j
        if not candidate or candidate.startswith("#"):
            j += 1
            continue
        return candidate, j
    return None, j


def _parse_directive(line: str, url: Optional[str]) -> Optional[Channel]:
    """Build a Channel from a directive line, None if the line has no display-name comma"""
    first_comma = line.find(",")
    if first_comma == -1:
        return None

    attr_part = line[len(DIRECTIVE_MARKER):first_comma].strip()
    display_name = line[first_comma + 1:].strip()

    attrs = parse_attributes(attr_part)
    logo = attrs.get("tvg-logo") or None

    sources: tuple[StreamSource, ...] = ()
    if url:
        sources = (StreamSource(url=url, media_type=guess_media_type(url)),)

    return Channel(
        id=attrs.get("tvg-id") or str(uuid4()),
        name=display_name or attrs.get("tvg-name") or "Unknown",
        logo=logo,
        poster=logo,
        stream_url=url,
        sources=sources,
        category=attrs.get("group-title") or DEFAULT_CATEGORY,
        live=True,
        metadata={"raw_attrs": attrs},
    )


def parse_attributes(attr_part: str) -> dict[str, str]:
    """Extract key="value" pairs; later duplicates win"""
    return {key: value for key, value in ATTRIBUTE_PATTERN.findall(attr_part)}


def guess_media_type(url: str) -> Optional[str]:
    """Guess a stream media type from the URL path extension"""
    path = url.split("?", 1)[0].split("#", 1)[0].lower()
    for extension, media_type in _MEDIA_TYPES.items():
        if path.endswith(extension):
            return media_type
    return None
