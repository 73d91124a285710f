"""
Tests for settings validation and the roster holder
"""
import pytest
from pydantic import ValidationError

from epg_engine.config import CustomSettings
from epg_engine.epg_types import Channel
from epg_engine.services.roster_service import RosterService


class TestCustomSettings:
    """Validation of CustomSettings"""

    def test_defaults(self):
        config = CustomSettings(_env_file=None)

        assert config.store_backend == "memory"
        assert config.placeholder_start_hour == 6
        assert config.placeholder_slot_count == 12
        assert config.reminder_lead_minutes == 2

    def test_values_normalized(self):
        config = CustomSettings(_env_file=None, store_backend="SQLite", log_level="debug")

        assert config.store_backend == "sqlite"
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("field,value", [
        ("store_backend", "redis"),
        ("guide_timezone", "Nowhere/Special"),
        ("placeholder_start_hour", 24),
        ("placeholder_slot_count", 0),
        ("reminder_lead_minutes", -1),
        ("now_next_refresh_cron", "every minute"),
        ("log_level", "LOUD"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            CustomSettings(_env_file=None, **{field: value})


class TestRosterService:
    """Tests for RosterService"""

    def test_replace_drops_previous_roster(self):
        roster = RosterService([Channel(id="old", name="Old")])

        roster.replace([
            Channel(id="1", name="One", category="News"),
            Channel(id="2", name="Two", category="Sport"),
            Channel(id="3", name="Three", category="News"),
        ])

        assert [c.id for c in roster.channels] == ["1", "2", "3"]
        assert roster.categories() == ["News", "Sport"]
