"""
Service wiring for the guide engine

One registry holds the store, roster, import service and both schedulers.
Tests register their own instances before the app starts, or reset the
registry between cases.
"""
import logging
from typing import Any, TypeVar

from epg_engine.config import settings
from epg_engine.services.epg_import_service import EPGImportService
from epg_engine.services.reminder_service import ReminderScheduler
from epg_engine.services.roster_service import RosterService
from epg_engine.services.scheduler_service import GuideRefreshScheduler
from epg_engine.services.store_service import EPGStore, MemoryEPGStore, SqliteEPGStore


logger = logging.getLogger(__name__)

S = TypeVar("S")


class ServiceLocator:
    """Registry of shared service instances keyed by their type"""

    def __init__(self):
        self._instances: dict[type, Any] = {}

    def register_singleton(self, service_type: type[S], instance: S) -> None:
        """Register (or replace) the instance used for service_type"""
        self._instances[service_type] = instance
        logger.debug("Service %s -> %s", service_type.__name__, type(instance).__name__)

    def get(self, service_type: type[S]) -> S:
        """
        Registered instance for service_type

        Raises:
            KeyError: If nothing is registered for it
        """
        try:
            return self._instances[service_type]
        except KeyError:
            raise KeyError(f"No {service_type.__name__} registered") from None

    def is_registered(self, service_type: type) -> bool:
        return service_type in self._instances


_service_locator: ServiceLocator | None = None


def get_service_locator() -> ServiceLocator:
    """Process-wide registry, created on first use"""
    global _service_locator
    if _service_locator is None:
        _service_locator = ServiceLocator()
    return _service_locator


def reset_service_locator() -> None:
    """Forget every registered service (tests only)"""
    global _service_locator
    _service_locator = None


def build_store() -> EPGStore:
    """Store for the configured backend (SQLite requires init_db() first)"""
    if settings.store_backend == "sqlite":
        return SqliteEPGStore()
    return MemoryEPGStore()


def configure_services(
    store: EPGStore | None = None,
    reminders: ReminderScheduler | None = None,
) -> ServiceLocator:
    """
    Register the default services, keeping any already registered.

    Args:
        store: Guide store override
        reminders: Reminder scheduler override
    """
    locator = get_service_locator()

    if store is not None or not locator.is_registered(EPGStore):
        locator.register_singleton(EPGStore, store or build_store())
    if not locator.is_registered(RosterService):
        locator.register_singleton(RosterService, RosterService())
    if not locator.is_registered(EPGImportService):
        locator.register_singleton(
            EPGImportService,
            EPGImportService(locator.get(EPGStore), locator.get(RosterService)),
        )
    if reminders is not None or not locator.is_registered(ReminderScheduler):
        locator.register_singleton(
            ReminderScheduler,
            reminders or ReminderScheduler(default_lead_minutes=settings.reminder_lead_minutes),
        )
    if not locator.is_registered(GuideRefreshScheduler):
        import_service = locator.get(EPGImportService)
        locator.register_singleton(GuideRefreshScheduler, GuideRefreshScheduler(import_service.get_guide))

    return locator


def get_import_service() -> EPGImportService:
    """FastAPI dependency for the import service"""
    return configure_services().get(EPGImportService)


def get_roster_service() -> RosterService:
    """FastAPI dependency for the roster"""
    return configure_services().get(RosterService)


def get_reminder_scheduler() -> ReminderScheduler:
    """FastAPI dependency for reminders"""
    return configure_services().get(ReminderScheduler)


def get_refresh_scheduler() -> GuideRefreshScheduler:
    """FastAPI dependency for the now/next refresh scheduler"""
    return configure_services().get(GuideRefreshScheduler)
