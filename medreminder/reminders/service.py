"""
Application wiring for the reminder subsystem.

``create_app()`` builds every collaborator explicitly; ``ReminderApp`` ties
their lifecycle to the host application's start and stop.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from medreminder.core.config import Settings, settings as default_core_settings
from medreminder.crud.medicine_plan import PlanStore
from medreminder.db.session import build_engine, init_db, make_session_factory
from medreminder.services.medication_plans import MedicationPlanService
from medreminder.utils.timezone import get_zoneinfo, now_local
from .backend import LocalNotificationCenter, NotificationBackend
from .config import ReminderSettings, settings as default_reminder_settings
from .events import APP_STATE_CHANGED, EventBus, Subscription
from .rollover import DailyRolloverProcessor
from .scheduler import NotificationScheduler
from .schemas import AppState, NotificationPresentation, NotificationResponse
from .worker import RolloverTrigger, RolloverWorker, TriggerKind

logger = logging.getLogger(__name__)


class ReminderApp:
    def __init__(
        self,
        store: PlanStore,
        scheduler: NotificationScheduler,
        processor: DailyRolloverProcessor,
        bus: Optional[EventBus] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.processor = processor
        self.plans = MedicationPlanService(store, scheduler)
        self.bus = bus or EventBus()
        self.worker: Optional[RolloverWorker] = None
        self._response_subscription: Optional[Subscription] = None
        self._state_subscription: Optional[Subscription] = None

    @property
    def started(self) -> bool:
        return self.worker is not None

    async def start(self) -> None:
        if self.started:
            return
        logger.info("Starting medicine reminders...")
        await self.scheduler.request_permissions()

        self.worker = RolloverWorker(self.processor)
        self.worker.start()
        self._response_subscription = self.scheduler.add_response_listener(self._on_notification_response)
        self._state_subscription = self.bus.on(APP_STATE_CHANGED, self._on_app_state_change)

        self.worker.submit(RolloverTrigger(TriggerKind.STARTUP))

    async def stop(self) -> None:
        for subscription in (self._response_subscription, self._state_subscription):
            if subscription is not None:
                subscription.remove()
        self._response_subscription = None
        self._state_subscription = None
        if self.worker is not None:
            await self.worker.stop()
            self.worker = None
        logger.info("Medicine reminders stopped")

    async def wait_idle(self) -> None:
        """Wait for queued rollover triggers to finish."""
        if self.worker is not None:
            await self.worker.join()

    def handle_app_state_change(self, state: AppState) -> None:
        """Entry point for the host's app-state listener."""
        self.bus.emit(APP_STATE_CHANGED, AppState(state))

    def _on_app_state_change(self, state: AppState) -> None:
        if state == AppState.ACTIVE and self.worker is not None:
            self.worker.submit(RolloverTrigger(TriggerKind.FOREGROUND))

    def _on_notification_response(self, response: NotificationResponse) -> None:
        if self.worker is not None:
            self.worker.submit(RolloverTrigger(TriggerKind.NOTIFICATION_TAP, response=response))

    async def __aenter__(self) -> "ReminderApp":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


def create_app(
    settings: Optional[Settings] = None,
    reminder_settings: Optional[ReminderSettings] = None,
    backend: Optional[NotificationBackend] = None,
    alert: Optional[Callable[[str], None]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ReminderApp:
    settings = settings or default_core_settings
    reminder_settings = reminder_settings or default_reminder_settings
    clock = clock or (lambda: now_local(settings))

    engine = build_engine(settings)
    init_db(engine)
    store = PlanStore(make_session_factory(engine), clock=clock)

    if backend is None:
        backend = LocalNotificationCenter(
            presentation=NotificationPresentation(
                show_alert=reminder_settings.SHOW_ALERT,
                play_sound=reminder_settings.PLAY_SOUND,
                set_badge=reminder_settings.SET_BADGE,
            ),
            clock=clock,
        )
    scheduler = NotificationScheduler(
        backend,
        settings=reminder_settings,
        clock=clock,
        alert=alert,
        tz=get_zoneinfo(settings),
    )
    processor = DailyRolloverProcessor(store, scheduler, settings=reminder_settings)
    return ReminderApp(store, scheduler, processor)
