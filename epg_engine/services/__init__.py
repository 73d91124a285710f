"""
Services package for EPG Engine

This package contains all business logic and service layer components.
"""
from epg_engine.services.epg_query_service import get_now_next, get_guide_now_next
from epg_engine.services.epg_import_service import EPGImportService
from epg_engine.services.placeholder_service import channels_to_placeholder_epg, fill_empty_channels
from epg_engine.services.playlist_parser_service import parse_m3u
from epg_engine.services.reminder_service import ReminderScheduler
from epg_engine.services.xmltv_parser_service import XMLTVParseError, parse_xmltv

__all__ = [
    'get_now_next',
    'get_guide_now_next',
    'EPGImportService',
    'channels_to_placeholder_epg',
    'fill_empty_channels',
    'parse_m3u',
    'ReminderScheduler',
    'XMLTVParseError',
    'parse_xmltv',
]
