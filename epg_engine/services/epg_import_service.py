"""
EPG Import Service

Coordinates parsing, normalization, roster reconciliation and persistence
of guide data. The in-memory guide is replaced only after a successful save.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path

from epg_engine.config import settings
from epg_engine.schemas import PlaceholderPolicy
from epg_engine.epg_types import EPGChannel
from epg_engine.services.placeholder_service import fill_empty_channels
from epg_engine.services.playlist_parser_service import parse_m3u
from epg_engine.services.roster_service import RosterService
from epg_engine.services.store_service import EPGStore
from epg_engine.services.xmltv_parser_service import XMLTVParseError, parse_xmltv
from epg_engine.utils.data_merging import merge_epg_with_channels, remap_channels
from epg_engine.utils.epg_normalization import adjust_offset, normalize_epg_dates
from epg_engine.utils.file_operations import read_text_file
from epg_engine.utils.logging_helpers import (
    log_import_end,
    log_import_start,
    log_merge_summary,
    log_storage_stats,
)


logger = logging.getLogger(__name__)


def default_placeholder_policy() -> PlaceholderPolicy:
    """Placeholder policy built from settings"""
    return PlaceholderPolicy(
        start_hour=settings.placeholder_start_hour,
        slot_count=settings.placeholder_slot_count,
        slot_duration_minutes=settings.placeholder_slot_duration_minutes,
        timezone=settings.guide_timezone,
    )


def count_programs(channels: Sequence[EPGChannel]) -> int:
    return sum(len(channel.events) for channel in channels)


class EPGImportService:
    """Owns the authoritative guide and serializes every write to it."""

    def __init__(
        self,
        store: EPGStore,
        roster: RosterService,
        *,
        store_key: str | None = None,
        policy: PlaceholderPolicy | None = None,
        generate_placeholder_shells: bool | None = None,
    ) -> None:
        self.store = store
        self.roster = roster
        self.store_key = store_key or settings.epg_store_key
        self.policy = policy or default_placeholder_policy()
        self.generate_placeholder_shells = (
            settings.generate_placeholder_shells
            if generate_placeholder_shells is None
            else generate_placeholder_shells
        )
        self._guide: list[EPGChannel] | None = None
        self._write_lock = asyncio.Lock()

    async def get_guide(self) -> list[EPGChannel]:
        """Current guide, loaded from the store on first access"""
        if self._guide is None:
            loaded = await self.store.load(self.store_key)
            self._guide = normalize_epg_dates(loaded)
            logger.info(
                "Loaded guide from %s: %s channels, %s programs",
                self.store_key,
                len(self._guide),
                count_programs(self._guide),
            )
        return self._guide

    async def import_playlist(self, m3u_text: str, policy: PlaceholderPolicy | None = None) -> dict:
        """
        Replace the roster from an M3U playlist and rebuild the guide around it

        Existing guide data is kept for channels that still match; new
        channels get placeholder schedules.

        Returns:
            Dictionary with import statistics or error/skip message.
        """
        return await self._exclusive(lambda: self._import_playlist(m3u_text, policy or self.policy))

    async def import_xmltv(self, xml_text: str | bytes, *, generate_placeholder_shells: bool | None = None) -> dict:
        """
        Import an XMLTV document and reconcile it with the roster

        A malformed document returns an error result and leaves the stored
        guide untouched.

        Returns:
            Dictionary with import statistics or error/skip message.
        """
        shells = self.generate_placeholder_shells if generate_placeholder_shells is None else generate_placeholder_shells
        return await self._exclusive(lambda: self._import_xmltv(xml_text, shells))

    async def import_playlist_file(self, file_path: Path | str) -> dict:
        """Import an M3U playlist from a local file"""
        return await self.import_playlist(await read_text_file(file_path))

    async def import_xmltv_file(self, file_path: Path | str) -> dict:
        """Import an XMLTV document from a local file"""
        return await self.import_xmltv(await read_text_file(file_path))

    async def adjust_offset(self, channel_id: str, minutes: int) -> dict:
        """Shift one channel's schedule and persist the result"""
        async def run() -> dict:
            guide = await self.get_guide()
            if not any(channel.id == channel_id for channel in guide):
                return {"error": f"Channel {channel_id} not found in guide"}
            updated = adjust_offset(guide, channel_id, minutes)
            await self._save(updated)
            logger.info("Shifted %s by %s minutes", channel_id, minutes)
            return self._result(datetime.now(timezone.utc), updated, channel_id=channel_id, minutes=minutes)

        return await self._exclusive(run)

    async def remap(self, mapping: Mapping[str, Mapping[str, str]]) -> dict:
        """Rename guide channel ids/names and persist the result"""
        async def run() -> dict:
            guide = await self.get_guide()
            updated = remap_channels(guide, mapping)
            await self._save(updated)
            return self._result(datetime.now(timezone.utc), updated, remapped=len(mapping))

        return await self._exclusive(run)

    async def _exclusive(self, operation) -> dict:
        if self._write_lock.locked():
            logger.warning("Guide update already in progress, skipping this request")
            return {
                "status": "skipped",
                "message": "Guide update already in progress",
            }

        async with self._write_lock:
            try:
                return await operation()
            except Exception as exc:
                logger.error("Unexpected error during guide update: %s", exc, exc_info=True)
                return {"error": str(exc)}

    async def _import_playlist(self, m3u_text: str, policy: PlaceholderPolicy) -> dict:
        started_at = datetime.now(timezone.utc)
        log_import_start(logger, "Playlist")

        channels = parse_m3u(m3u_text)
        if not channels:
            logger.warning("No channels found in playlist - roster left unchanged")
            return {"error": "No channels found in playlist"}

        existing = await self.get_guide()

        merged = merge_epg_with_channels(existing, channels, generate_placeholder_shells=True)
        guide = normalize_epg_dates(fill_empty_channels(merged, channels, policy))
        log_merge_summary(logger, len(guide), count_programs(guide))

        await self._save(guide)
        self.roster.replace(channels)
        log_import_end(logger, "Playlist")

        return self._result(started_at, guide, channels_parsed=len(channels))

    async def _import_xmltv(self, xml_text: str | bytes, generate_placeholder_shells: bool) -> dict:
        started_at = datetime.now(timezone.utc)
        log_import_start(logger, "XMLTV")

        try:
            parsed = parse_xmltv(xml_text)
        except XMLTVParseError as exc:
            logger.error("XMLTV import aborted, stored guide left untouched: %s", exc)
            return {"error": str(exc)}

        parsed_programs = count_programs(parsed)
        normalized = normalize_epg_dates(parsed)
        dropped = parsed_programs - count_programs(normalized)
        if dropped:
            logger.warning("Dropped %s programme(s) with invalid timestamps", dropped)

        roster = self.roster.channels
        merged = merge_epg_with_channels(normalized, roster, generate_placeholder_shells)
        if generate_placeholder_shells:
            merged = fill_empty_channels(merged, roster, self.policy)
        guide = normalize_epg_dates(merged)
        log_merge_summary(logger, len(guide), count_programs(guide))

        await self._save(guide)
        log_import_end(logger, "XMLTV")

        return self._result(
            started_at,
            guide,
            channels_parsed=len(parsed),
            programs_parsed=parsed_programs,
            programs_dropped=dropped,
        )

    async def _save(self, guide: list[EPGChannel]) -> None:
        log_storage_stats(logger, self.store_key, len(guide), count_programs(guide))
        await self.store.save(self.store_key, guide)
        self._guide = guide

    def _result(self, started_at: datetime, guide: Sequence[EPGChannel], **details) -> dict:
        return {
            "status": "success",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "started_at": started_at.isoformat(),
            "channels_stored": len(guide),
            "programs_stored": count_programs(guide),
            **details,
        }
