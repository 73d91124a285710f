from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from epg_engine.config import settings, setup_logging
from epg_engine.database import close_db, init_db
from epg_engine.dependencies import configure_services
from epg_engine.routers import error_response, main_router
from epg_engine.services.epg_import_service import EPGImportService
from epg_engine.services.reminder_service import ReminderScheduler
from epg_engine.services.scheduler_service import GuideRefreshScheduler


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the guide store, load the guide and run both schedulers"""
    logger.info("EPG Engine starting (store backend: %s)", settings.store_backend)

    try:
        if settings.store_backend == "sqlite":
            settings.ensure_database_dir()
            await init_db()

        locator = configure_services()
        guide = await locator.get(EPGImportService).get_guide()
        logger.info("Guide ready: %s channels", len(guide))

        reminders = locator.get(ReminderScheduler)
        refresh = locator.get(GuideRefreshScheduler)
        reminders.start()
        refresh.start()
        await refresh.refresh()
    except Exception as e:
        logger.error(f"EPG Engine failed to start: {e}", exc_info=True)
        raise

    logger.info("EPG Engine started")
    yield

    try:
        refresh.shutdown()
        reminders.shutdown()
    except Exception as e:
        logger.error(f"Scheduler shutdown failed: {e}", exc_info=True)

    if settings.store_backend == "sqlite":
        await close_db()

    logger.info("EPG Engine stopped")


app = FastAPI(title="EPG Engine", version="0.1.0", lifespan=lifespan)
app.include_router(main_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report invalid request bodies with the standard error body"""
    problems = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, problems)

    return error_response(422, "VALIDATION_ERROR", "Request validation failed", {"errors": problems})
