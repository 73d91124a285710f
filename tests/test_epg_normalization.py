"""
Tests for guide normalization and offsets
"""
from datetime import timedelta

from epg_engine.epg_types import EPGChannel, EPGEvent
from epg_engine.utils.epg_normalization import (
    adjust_channel_offset,
    adjust_offset,
    normalize_epg_dates,
    sort_events,
)
from epg_engine.utils.timezone import parse_iso8601_to_utc


def _event(event_id: str, start: str, end: str, channel_id: str = "c1") -> EPGEvent:
    return EPGEvent(id=event_id, channel_id=channel_id, title=event_id, start=start, end=end)


class TestNormalizeEPGDates:
    """Tests for normalize_epg_dates"""

    def test_canonicalizes_instants(self):
        """Offsets and naive values become canonical UTC instants"""
        channel = EPGChannel(id="c1", name="One", events=(
            _event("a", "2025-01-01T12:00:00+02:00", "2025-01-01T13:00:00+02:00"),
            _event("b", "2025-01-01T11:00:00", "2025-01-01T12:00:00"),
        ))

        events = normalize_epg_dates([channel])[0].events

        assert [(e.id, e.start, e.end) for e in events] == [
            ("a", "2025-01-01T10:00:00.000Z", "2025-01-01T11:00:00.000Z"),
            ("b", "2025-01-01T11:00:00.000Z", "2025-01-01T12:00:00.000Z"),
        ]

    def test_one_hour_programme_keeps_duration(self):
        """A one hour programme stays one hour long"""
        channel = EPGChannel(id="c1", name="One", events=(
            _event("a", "2025-01-01T10:00:00.000Z", "2025-01-01T11:00:00.000Z"),
        ))

        event = normalize_epg_dates([channel])[0].events[0]

        assert parse_iso8601_to_utc(event.end) - parse_iso8601_to_utc(event.start) == timedelta(minutes=60)

    def test_keeps_loosely_formatted_events(self):
        """Non-ISO but readable timestamps survive normalization"""
        channel = EPGChannel(id="c1", name="One", events=(
            _event("slashes", "2025/01/01 10:00:00", "2025/01/01 11:00:00"),
            _event("named-zone", "2025-01-01 12:00:00 UTC", "2025-01-01 13:00:00 UTC"),
        ))

        events = normalize_epg_dates([channel])[0].events

        assert [(e.id, e.start, e.end) for e in events] == [
            ("slashes", "2025-01-01T10:00:00.000Z", "2025-01-01T11:00:00.000Z"),
            ("named-zone", "2025-01-01T12:00:00.000Z", "2025-01-01T13:00:00.000Z"),
        ]

    def test_drops_invalid_events(self):
        """Events with an unparseable start or end are removed"""
        channel = EPGChannel(id="c1", name="One", events=(
            _event("good", "2025-01-01T10:00:00Z", "2025-01-01T11:00:00Z"),
            _event("bad-start", "soon", "2025-01-01T11:00:00Z"),
            _event("bad-end", "2025-01-01T10:00:00Z", ""),
        ))

        events = normalize_epg_dates([channel])[0].events

        assert [e.id for e in events] == ["good"]

    def test_sorts_events(self):
        channel = EPGChannel(id="c1", name="One", events=(
            _event("late", "2025-01-01T12:00:00Z", "2025-01-01T13:00:00Z"),
            _event("early", "2025-01-01T08:00:00Z", "2025-01-01T09:00:00Z"),
        ))

        events = normalize_epg_dates([channel])[0].events

        assert [e.id for e in events] == ["early", "late"]

    def test_idempotent(self):
        """Normalizing twice gives the same guide"""
        channels = [EPGChannel(id="c1", name="One", events=(
            _event("b", "2025-01-01T12:00:00+01:00", "2025-01-01T13:00:00+01:00"),
            _event("a", "2025-01-01T09:00:00Z", "2025-01-01T10:00:00Z"),
            _event("x", "nope", "nope"),
        ))]

        once = normalize_epg_dates(channels)

        assert normalize_epg_dates(once) == once

    def test_input_not_mutated(self):
        original = EPGChannel(id="c1", name="One", events=(
            _event("a", "2025-01-01T12:00:00+02:00", "2025-01-01T13:00:00+02:00"),
        ))

        normalize_epg_dates([original])

        assert original.events[0].start == "2025-01-01T12:00:00+02:00"

    def test_channels_without_events_kept(self):
        channels = [EPGChannel(id="empty", name="Empty")]

        assert normalize_epg_dates(channels) == channels


class TestSortEvents:
    """Tests for sort_events"""

    def test_stable_for_equal_starts(self):
        events = [
            _event("first", "2025-01-01T10:00:00Z", "2025-01-01T11:00:00Z"),
            _event("second", "2025-01-01T10:00:00.000Z", "2025-01-01T10:30:00Z"),
        ]

        assert [e.id for e in sort_events(events)] == ["first", "second"]

    def test_unparseable_last(self):
        events = [
            _event("bad", "???", "???"),
            _event("good", "2025-01-01T10:00:00Z", "2025-01-01T11:00:00Z"),
        ]

        assert [e.id for e in sort_events(events)] == ["good", "bad"]


class TestAdjustOffset:
    """Tests for manual channel offsets"""

    def _channel(self) -> EPGChannel:
        return EPGChannel(id="c1", name="One", events=(
            _event("a", "2025-01-01T10:00:00.000Z", "2025-01-01T11:00:00.000Z"),
        ))

    def test_shifts_events_forward(self):
        shifted = adjust_channel_offset(self._channel(), 30)

        assert shifted.events[0].start == "2025-01-01T10:30:00.000Z"
        assert shifted.events[0].end == "2025-01-01T11:30:00.000Z"
        assert shifted.offset_minutes == 30

    def test_negative_offsets_accumulate(self):
        shifted = adjust_channel_offset(adjust_channel_offset(self._channel(), 30), -90)

        assert shifted.events[0].start == "2025-01-01T09:00:00.000Z"
        assert shifted.offset_minutes == -60

    def test_only_target_channel_shifted(self):
        other = EPGChannel(id="c2", name="Two", events=(
            _event("b", "2025-01-01T10:00:00.000Z", "2025-01-01T11:00:00.000Z", channel_id="c2"),
        ))

        guide = adjust_offset([self._channel(), other], "c2", 15)

        assert guide[0] == self._channel()
        assert guide[1].events[0].start == "2025-01-01T10:15:00.000Z"
