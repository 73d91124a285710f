from datetime import datetime, timedelta, timezone
from typing import Annotated
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from epg_engine.epg_types import EPGEvent, NowNext
from epg_engine.dependencies import (
    get_import_service,
    get_refresh_scheduler,
    get_reminder_scheduler,
    get_roster_service,
)
from epg_engine.schemas import (
    ChannelListResponse,
    ChannelResponse,
    EPGChannelResponse,
    EPGResponse,
    ErrorDetail,
    GuideNowNextResponse,
    NowNextResponse,
    OffsetRequest,
    PlaylistImportRequest,
    ProgramResponse,
    ReminderRequest,
    ReminderResponse,
    StandardErrorResponse,
    XMLTVImportRequest,
)
from epg_engine.services.epg_import_service import EPGImportService, count_programs
from epg_engine.services.epg_query_service import find_event, get_guide_now_next, get_now_next
from epg_engine.services.reminder_service import ReminderScheduler
from epg_engine.services.roster_service import RosterService
from epg_engine.services.scheduler_service import GuideRefreshScheduler
from epg_engine.utils.timezone import (
    DateFormatError,
    convert_to_timezone,
    format_utc_instant,
    is_valid_timezone,
    parse_iso8601_to_utc,
)


logger = logging.getLogger(__name__)

main_router = APIRouter()

ImportServiceDep = Annotated[EPGImportService, Depends(get_import_service)]


def error_response(status_code: int, code: str, message: str, context: dict | None = None) -> JSONResponse:
    """Build a StandardErrorResponse JSON body"""
    body = StandardErrorResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        error=ErrorDetail(code=code, message=message, context=context),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _result_response(result: dict, failure_code: str) -> dict | JSONResponse:
    if result.get("status") == "skipped":
        return error_response(409, "UPDATE_IN_PROGRESS", result["message"])
    if "error" in result:
        return error_response(422, failure_code, result["error"])
    return result


def _parse_at(at: str | None) -> datetime:
    if at is None:
        return datetime.now(timezone.utc)
    try:
        return parse_iso8601_to_utc(at)
    except DateFormatError:
        raise HTTPException(status_code=422, detail=f"Invalid datetime format: {at}. Must be valid ISO8601 format")


def _program(event: EPGEvent | None, tz: str = "UTC") -> ProgramResponse | None:
    if event is None:
        return None
    return ProgramResponse(
        id=event.id,
        channel_id=event.channel_id,
        title=event.title,
        start=convert_to_timezone(event.start, tz),
        end=convert_to_timezone(event.end, tz),
        description=event.description,
    )


def _now_next(channel_id: str, pair: NowNext) -> NowNextResponse:
    return NowNextResponse(channel_id=channel_id, current=_program(pair.current), next=_program(pair.next))


@main_router.get("/")
async def root(refresh: Annotated[GuideRefreshScheduler, Depends(get_refresh_scheduler)]) -> dict:
    """Root endpoint with service information"""
    next_run = refresh.get_next_run_time()

    return {
        "service": "EPG Engine",
        "version": "0.1.0",
        "next_now_next_refresh": next_run.isoformat() if next_run else None,
        "endpoints": {
            "playlist": "/playlist - Import an M3U playlist (POST)",
            "import": "/epg/import - Import an XMLTV document (POST)",
            "epg": "/epg - Current guide",
            "now_next": "/epg/now-next - Now/next for every channel",
            "reminders": "/reminders - Schedule a programme reminder (POST)",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health")
async def health_check(refresh: Annotated[GuideRefreshScheduler, Depends(get_refresh_scheduler)]) -> dict:
    """Health check endpoint"""
    next_run = refresh.get_next_run_time()
    return {
        "status": "ok",
        "scheduler_running": refresh.scheduler.running if refresh.scheduler else False,
        "next_refresh": next_run.isoformat() if next_run else None,
        "last_refresh": refresh.refreshed_at.isoformat() if refresh.refreshed_at else None,
    }


@main_router.get("/channels", response_model=ChannelListResponse)
async def list_channels(roster: Annotated[RosterService, Depends(get_roster_service)]) -> ChannelListResponse:
    """Current channel roster"""
    return ChannelListResponse(
        total_channels=len(roster.channels),
        categories=roster.categories(),
        channels=[ChannelResponse.model_validate(channel, from_attributes=True) for channel in roster.channels],
    )


@main_router.post("/playlist")
async def import_playlist(request: PlaylistImportRequest, service: ImportServiceDep):
    """
    Import an M3U playlist

    Replaces the roster and gives new channels placeholder schedules
    """
    logger.info("Playlist import triggered via API")
    result = await service.import_playlist(request.content, request.policy)
    return _result_response(result, "PLAYLIST_EMPTY")


@main_router.post("/epg/import")
async def import_xmltv(request: XMLTVImportRequest, service: ImportServiceDep):
    """
    Import an XMLTV document and reconcile it with the roster

    A malformed document is rejected and the current guide kept
    """
    logger.info("XMLTV import triggered via API")
    result = await service.import_xmltv(
        request.content,
        generate_placeholder_shells=request.generate_placeholder_shells,
    )
    return _result_response(result, "PARSE_FAILED")


@main_router.get("/epg", response_model=EPGResponse)
async def get_epg(
    service: ImportServiceDep,
    tz: Annotated[str, Query(alias="timezone")] = "UTC",
) -> EPGResponse:
    """
    Get the whole guide

    Args:
        tz: Timezone for response timestamps (IANA name or 'UTC')
    """
    if not is_valid_timezone(tz):
        raise HTTPException(status_code=422, detail=f"Invalid timezone: {tz}")

    guide = await service.get_guide()
    return EPGResponse(
        timestamp=convert_to_timezone(format_utc_instant(datetime.now(timezone.utc)), tz),
        timezone=tz,
        total_channels=len(guide),
        total_programs=count_programs(guide),
        channels=[
            EPGChannelResponse(
                id=channel.id,
                name=channel.name,
                logo=channel.logo,
                offset_minutes=channel.offset_minutes,
                events=[_program(event, tz) for event in channel.events],
            )
            for channel in guide
        ],
    )


@main_router.get("/epg/now-next", response_model=GuideNowNextResponse)
async def get_all_now_next(service: ImportServiceDep, at: str | None = None) -> GuideNowNextResponse:
    """Now/next for every channel in the guide at `at` (default now)"""
    now = _parse_at(at)
    snapshot = get_guide_now_next(await service.get_guide(), now=now)
    return GuideNowNextResponse(
        timestamp=format_utc_instant(now),
        channels=[_now_next(channel_id, pair) for channel_id, pair in snapshot.items()],
    )


@main_router.get("/epg/{channel_id}/now-next", response_model=NowNextResponse)
async def get_channel_now_next(channel_id: str, service: ImportServiceDep, at: str | None = None) -> NowNextResponse:
    """Now/next for one channel; unknown channels give an empty pair"""
    pair = get_now_next(await service.get_guide(), channel_id, _parse_at(at))
    return _now_next(channel_id, pair)


@main_router.post("/epg/{channel_id}/offset")
async def shift_channel(channel_id: str, request: OffsetRequest, service: ImportServiceDep):
    """Shift a channel's schedule by a number of minutes"""
    result = await service.adjust_offset(channel_id, request.minutes)
    if "error" in result:
        return error_response(404, "NOT_FOUND", result["error"], {"channel_id": channel_id})
    return _result_response(result, "NOT_FOUND")


@main_router.post("/reminders", response_model=ReminderResponse)
async def create_reminder(
    request: ReminderRequest,
    service: ImportServiceDep,
    reminders: Annotated[ReminderScheduler, Depends(get_reminder_scheduler)],
):
    """Schedule a reminder before a programme starts"""
    event = find_event(await service.get_guide(), request.channel_id, request.event_id)
    if event is None:
        return error_response(
            404,
            "NOT_FOUND",
            "Programme not found",
            {"channel_id": request.channel_id, "event_id": request.event_id},
        )

    lead = reminders.default_lead_minutes if request.lead_minutes is None else request.lead_minutes
    handle = reminders.schedule(event.start, event.title, lead)
    fire_at = parse_iso8601_to_utc(event.start) - timedelta(minutes=lead)

    return ReminderResponse(
        reminder_id=handle.job_id if handle else None,
        fire_at=format_utc_instant(fire_at),
        fired_immediately=handle is None,
    )


@main_router.delete("/reminders/{reminder_id}")
async def cancel_reminder(
    reminder_id: str,
    reminders: Annotated[ReminderScheduler, Depends(get_reminder_scheduler)],
) -> dict:
    """Cancel a reminder; cancelling twice is not an error"""
    reminders.cancel(reminder_id)
    return {"status": "cancelled", "reminder_id": reminder_id}
