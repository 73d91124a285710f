"""
Tests for now/next and window queries
"""
from datetime import datetime, timezone

from epg_engine.epg_types import EPGChannel, EPGEvent, NowNext
from epg_engine.services.epg_query_service import (
    find_event,
    get_channel_events,
    get_guide_now_next,
    get_now_next,
)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 1, hour, minute, tzinfo=timezone.utc)


def _event(event_id: str, start: str, end: str) -> EPGEvent:
    return EPGEvent(id=event_id, channel_id="x", title=event_id, start=start, end=end)


FIRST = _event("first", "2025-01-01T08:00:00.000Z", "2025-01-01T08:30:00.000Z")
SECOND = _event("second", "2025-01-01T09:00:00.000Z", "2025-01-01T10:00:00.000Z")
GUIDE = [EPGChannel(id="x", name="X", events=(FIRST, SECOND))]


class TestGetNowNext:
    """Tests for get_now_next"""

    def test_inside_event(self):
        assert get_now_next(GUIDE, "x", _at(8, 15)) == NowNext(FIRST, SECOND)

    def test_in_gap_between_events(self):
        """Between programmes nothing airs and the next one is reported"""
        assert get_now_next(GUIDE, "x", _at(8, 45)) == NowNext(None, SECOND)

    def test_before_first_event(self):
        assert get_now_next(GUIDE, "x", _at(6)) == NowNext(None, FIRST)

    def test_inside_last_event(self):
        assert get_now_next(GUIDE, "x", _at(9, 30)) == NowNext(SECOND, None)

    def test_after_schedule(self):
        assert get_now_next(GUIDE, "x", _at(12)) == NowNext(None, None)

    def test_bounds_inclusive(self):
        """Start and end instants both count as airing"""
        assert get_now_next(GUIDE, "x", _at(8)).current == FIRST
        assert get_now_next(GUIDE, "x", _at(8, 30)).current == FIRST
        assert get_now_next(GUIDE, "x", _at(10)).current == SECOND

    def test_shared_boundary_first_event_wins(self):
        """With contiguous slots the earlier event owns the shared instant"""
        a = _event("a", "2025-01-01T08:00:00.000Z", "2025-01-01T09:00:00.000Z")
        b = _event("b", "2025-01-01T09:00:00.000Z", "2025-01-01T10:00:00.000Z")
        guide = [EPGChannel(id="x", name="X", events=(a, b))]

        assert get_now_next(guide, "x", _at(9)) == NowNext(a, b)

    def test_unknown_channel(self):
        assert get_now_next(GUIDE, "missing", _at(8, 15)) == NowNext(None, None)

    def test_channel_without_events(self):
        guide = [EPGChannel(id="empty", name="Empty")]

        assert get_now_next(guide, "empty", _at(8)) == NowNext(None, None)

    def test_naive_now_taken_as_utc(self):
        assert get_now_next(GUIDE, "x", datetime(2025, 1, 1, 8, 15)).current == FIRST

    def test_unparseable_events_ignored(self):
        broken = _event("broken", "later", "much later")
        guide = [EPGChannel(id="x", name="X", events=(FIRST, broken))]

        assert get_now_next(guide, "x", _at(8, 45)) == NowNext(None, None)


class TestGetGuideNowNext:
    """Tests for get_guide_now_next"""

    def test_all_channels(self):
        guide = GUIDE + [EPGChannel(id="empty", name="Empty")]

        snapshot = get_guide_now_next(guide, now=_at(8, 15))

        assert list(snapshot) == ["x", "empty"]
        assert snapshot["x"] == NowNext(FIRST, SECOND)
        assert snapshot["empty"] == NowNext(None, None)

    def test_selected_channels(self):
        snapshot = get_guide_now_next(GUIDE, ["missing", "x"], now=_at(8, 45))

        assert snapshot == {"missing": NowNext(None, None), "x": NowNext(None, SECOND)}


class TestChannelEvents:
    """Tests for get_channel_events and find_event"""

    def test_window_is_half_open(self):
        assert get_channel_events(GUIDE, "x", _at(8), _at(9)) == [FIRST]
        assert get_channel_events(GUIDE, "x", _at(8), _at(9, 1)) == [FIRST, SECOND]

    def test_unknown_channel_window(self):
        assert get_channel_events(GUIDE, "missing", _at(0), _at(23)) == []

    def test_find_event(self):
        assert find_event(GUIDE, "x", "second") == SECOND
        assert find_event(GUIDE, "x", "nope") is None
        assert find_event(GUIDE, "missing", "second") is None
