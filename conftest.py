from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from medreminder.core.config import Settings
from medreminder.crud.medicine_plan import PlanStore
from medreminder.db.session import build_engine, init_db, make_session_factory
from medreminder.reminders.backend import LocalNotificationCenter
from medreminder.reminders.config import ReminderSettings
from medreminder.reminders.rollover import DailyRolloverProcessor
from medreminder.reminders.scheduler import NotificationScheduler
from medreminder.reminders.schemas import PermissionStatus

UTC = timezone.utc


class FakeClock:
    """Injectable wall clock; tests move it forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def amoxicillin(**overrides):
    plan = {
        "name": "Amoxicillin",
        "dosage": "500mg",
        "duration": 3,
        "food_timing": "after",
        "notification_time": "08:00",
        "notifications_enabled": True,
    }
    plan.update(overrides)
    return plan


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 30, tzinfo=UTC))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'medicine_reminder.db'}",
        TIMEZONE="UTC",
        ENVIRONMENT="test",
    )


@pytest.fixture
def reminder_settings():
    return ReminderSettings()


@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine, clock):
    return PlanStore(make_session_factory(engine), clock=clock)


@pytest.fixture
def backend(clock):
    return LocalNotificationCenter(permission=PermissionStatus.GRANTED, clock=clock)


@pytest.fixture
def scheduler(backend, reminder_settings, clock):
    return NotificationScheduler(backend, settings=reminder_settings, clock=clock, tz=ZoneInfo("UTC"))


@pytest.fixture
def processor(store, scheduler, reminder_settings):
    return DailyRolloverProcessor(store, scheduler, settings=reminder_settings)
