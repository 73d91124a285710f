"""
Shared fixtures for the EPG engine tests
"""
import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from epg_engine.dependencies import reset_service_locator


@pytest.fixture
def paused_scheduler():
    """Running but paused APScheduler, so jobs are registered and never executed"""
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.start(paused=True)
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@pytest.fixture(autouse=True)
def clean_service_locator():
    """Each test gets fresh services"""
    reset_service_locator()
    yield
    reset_service_locator()


class RecordingNotifier:
    """Notifier collecting (title, body) pairs"""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    def notify(self, title: str, body: str) -> None:
        self.sent.append((title, body))


@pytest.fixture
def notifier():
    return RecordingNotifier()
