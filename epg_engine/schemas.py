from datetime import date

from pydantic import BaseModel, Field, field_validator

from epg_engine.utils.timezone import is_valid_timezone


def _validate_timezone_name(v: str) -> str:
    if not is_valid_timezone(v):
        raise ValueError(f"Invalid timezone: {v}. Must be a valid IANA timezone (e.g., 'Europe/London', 'America/New_York') or 'UTC'")
    return v


class PlaceholderPolicy(BaseModel):
    """Generation policy for synthetic schedules"""
    start_hour: int = Field(default=6, ge=0, le=23, description="Wall-clock hour of the first slot")
    slot_count: int = Field(default=12, gt=0, description="Number of slots per channel")
    slot_duration_minutes: int = Field(default=60, gt=0, description="Length of every slot in minutes")
    base_day: date | None = Field(default=None, description="Day to generate for (defaults to today)")
    timezone: str = Field(default="UTC", description="Timezone in which start_hour is interpreted")

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone string"""
        return _validate_timezone_name(v)


class StreamSourceResponse(BaseModel):
    """Alternative playback source"""
    url: str
    media_type: str | None = None
    label: str | None = None


class ChannelResponse(BaseModel):
    """Roster channel"""
    id: str = Field(..., description="Channel identifier (tvg-id or generated)")
    name: str = Field(..., description="Display name of the channel")
    logo: str | None = Field(None, description="URL to channel logo")
    poster: str | None = None
    stream_url: str | None = Field(None, description="Canonical playback URL")
    sources: list[StreamSourceResponse] = Field(default_factory=list)
    category: str | None = None
    live: bool = False


class ChannelListResponse(BaseModel):
    """Current roster"""
    total_channels: int
    categories: list[str]
    channels: list[ChannelResponse]


class ProgramResponse(BaseModel):
    """Single programme data"""
    id: str
    channel_id: str
    title: str
    start: str
    end: str
    description: str | None = None


class EPGChannelResponse(BaseModel):
    """Schedule for one channel"""
    id: str
    name: str
    logo: str | None = None
    offset_minutes: int = 0
    events: list[ProgramResponse]


class EPGResponse(BaseModel):
    """Whole guide response"""
    timestamp: str
    timezone: str = Field(..., description="Timezone used for all timestamps in response")
    total_channels: int
    total_programs: int
    channels: list[EPGChannelResponse]


class NowNextResponse(BaseModel):
    """Currently airing and following programme"""
    channel_id: str
    current: ProgramResponse | None = None
    next: ProgramResponse | None = None


class GuideNowNextResponse(BaseModel):
    """Now/next for every requested channel"""
    timestamp: str
    channels: list[NowNextResponse]


class PlaylistImportRequest(BaseModel):
    """M3U playlist import"""
    content: str = Field(..., min_length=1, description="M3U playlist text")
    policy: PlaceholderPolicy | None = Field(None, description="Placeholder policy override")


class XMLTVImportRequest(BaseModel):
    """XMLTV schedule import"""
    content: str = Field(..., min_length=1, description="XMLTV document text")
    generate_placeholder_shells: bool | None = Field(None, description="Keep unmatched roster channels as placeholder schedules")


class OffsetRequest(BaseModel):
    """Manual schedule shift for a channel"""
    minutes: int = Field(..., ge=-24 * 60, le=24 * 60, description="Minutes to shift (may be negative)")


class ReminderRequest(BaseModel):
    """Reminder for a scheduled programme"""
    channel_id: str
    event_id: str
    lead_minutes: int | None = Field(None, ge=0, description="Minutes before start to notify")


class ReminderResponse(BaseModel):
    """Scheduled reminder"""
    reminder_id: str | None = Field(None, description="Cancellation handle, absent when the reminder fired immediately")
    fire_at: str
    fired_immediately: bool


class ErrorDetail(BaseModel):
    """Standard error detail"""
    code: str = Field(..., description="Error code (e.g., 'PARSE_FAILED', 'NOT_FOUND')")
    message: str = Field(..., description="Human-readable error message")
    context: dict | None = Field(None, description="Additional context about the error")


class StandardErrorResponse(BaseModel):
    """Standardized error response for all endpoints"""
    status: str = Field("error", description="Status indicator")
    timestamp: str = Field(..., description="ISO8601 timestamp of error")
    error: ErrorDetail = Field(..., description="Error details")
