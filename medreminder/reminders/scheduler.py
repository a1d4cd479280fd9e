"""
Notification Scheduler - turns a plan's HH:MM into one-shot local reminders.

Each plan owns two identifiers: ``plan_<id>`` for the next occurrence and
``plan_<id>_next`` pre-armed for the day after, so a forward-looking reminder
exists even if the app stays suspended across a rollover.
"""
import logging
import re
from datetime import datetime, time, timedelta, tzinfo
from typing import Callable, List, Optional

from medreminder.core.exceptions import InvalidTimeFormatError, PermissionDeniedError, SchedulingError
from medreminder.utils.timezone import get_zoneinfo, isoformat_instant, local_datetime, now_local
from .backend import NotificationBackend
from .config import ReminderSettings, settings as default_settings
from .events import Subscription
from .metrics import inc, notifications_failed_total, notifications_scheduled_total
from .schemas import (
    NotificationChannel,
    NotificationContent,
    NotificationData,
    NotificationRequest,
    NotificationResponse,
    PermissionStatus,
)

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
PLAN_ID_PATTERN = re.compile(r"plan_(\d+)")

PLAN_PREFIX = "plan_"
NEXT_DAY_SUFFIX = "_next"


def plan_identifier(plan_id: int) -> str:
    return f"{PLAN_PREFIX}{plan_id}"


def next_day_identifier(identifier: str) -> str:
    return f"{identifier}{NEXT_DAY_SUFFIX}"


def parse_plan_id(identifier: str) -> Optional[int]:
    """Recover the plan id from ``plan_<id>`` or ``plan_<id>_next``."""
    if not identifier or not identifier.startswith(PLAN_PREFIX):
        return None
    match = PLAN_ID_PATTERN.match(identifier)
    return int(match.group(1)) if match else None


def parse_notification_time(value: str) -> time:
    if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
        raise InvalidTimeFormatError(value)
    hours, minutes = (int(part) for part in value.split(":"))
    return time(hours, minutes)


def next_occurrence(at: time, now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Today at ``at`` if still ahead of ``now``, otherwise tomorrow."""
    candidate = local_datetime(now.date(), at, tz)
    if candidate <= now:
        candidate = local_datetime(now.date() + timedelta(days=1), at, tz)
    return candidate


def day_after(occurrence: datetime, at: time, tz: Optional[tzinfo] = None) -> datetime:
    """Same wall-clock time on the following calendar day."""
    return local_datetime(occurrence.date() + timedelta(days=1), at, tz)


class NotificationScheduler:
    def __init__(
        self,
        backend: NotificationBackend,
        settings: Optional[ReminderSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        alert: Optional[Callable[[str], None]] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.backend = backend
        self.settings = settings or default_settings
        self._clock = clock or now_local
        # None follows the device's current zone
        self.tz = tz if tz is not None else get_zoneinfo()
        self._alert = alert
        self._alerted = False
        self.permission_granted: Optional[bool] = None

    async def request_permissions(self) -> bool:
        """
        Ask for notification permission once at startup. A denial is shown to
        the user a single time; plan CRUD keeps working, reminders are suppressed.
        """
        try:
            status = await self.backend.get_permission_status()
            if status != PermissionStatus.GRANTED:
                status = await self.backend.request_permission()
        except Exception as e:
            logger.error(f"❌ [Scheduler] Permission request failed: {e!r}")
            status = PermissionStatus.DENIED

        if status != PermissionStatus.GRANTED:
            self.permission_granted = False
            logger.warning("⚠️  [Scheduler] Notification permission denied - reminders are disabled")
            if self._alert is not None and not self._alerted:
                self._alerted = True
                self._alert(self.settings.PERMISSION_DENIED_MESSAGE)
            return False

        self.permission_granted = True
        try:
            await self.backend.set_notification_channel(
                NotificationChannel(
                    id=self.settings.CHANNEL_ID,
                    name=self.settings.CHANNEL_NAME,
                    importance=self.settings.CHANNEL_IMPORTANCE,
                    vibration_pattern=self.settings.CHANNEL_VIBRATION_PATTERN,
                    light_color=self.settings.CHANNEL_LIGHT_COLOR,
                )
            )
        except Exception as e:
            logger.error(f"❌ [Scheduler] Failed to configure notification channel: {e!r}")
        return True

    async def schedule_notification(self, identifier: str, title: str, body: str, at: str) -> Optional[str]:
        """
        (Re-)arm the reminder ``identifier`` for the next occurrence of ``at``
        plus a ``<identifier>_next`` reminder one day later.

        Returns the identifier, or None when permission was denied.
        Raises InvalidTimeFormatError or SchedulingError.
        """
        await self.cancel_notification(identifier)

        at_time = parse_notification_time(at)

        if self.permission_granted is False:
            logger.info(f"🔕 [Scheduler] Permission denied - not scheduling {identifier}")
            return None

        scheduled_for = next_occurrence(at_time, self._clock(), self.tz)
        plan_id = identifier.replace(PLAN_PREFIX, "", 1)
        content = NotificationContent(
            title=title,
            body=body,
            sound=self.settings.NOTIFICATION_SOUND,
            data=NotificationData(
                plan_id=plan_id,
                original_time=at,
                scheduled_for=isoformat_instant(scheduled_for),
            ),
        )

        logger.info(f"⏰ [Scheduler] Scheduling {identifier} for {scheduled_for.isoformat()}")
        try:
            notification_id = await self.backend.schedule(identifier, content, scheduled_for)
        except PermissionDeniedError:
            # Revoked in system settings after startup
            self.permission_granted = False
            logger.warning(f"⚠️  [Scheduler] Permission revoked - not scheduling {identifier}")
            return None
        except Exception as e:
            inc(notifications_failed_total, self.settings.METRICS_ENABLED)
            logger.error(f"❌ [Scheduler] Error scheduling {identifier}: {e!r}")
            raise SchedulingError(identifier, str(e)) from e
        inc(notifications_scheduled_total, self.settings.METRICS_ENABLED)

        await self._schedule_next_occurrence(identifier, title, body, at, at_time, scheduled_for)
        return notification_id

    async def _schedule_next_occurrence(
        self, identifier: str, title: str, body: str, at: str, at_time: time, current: datetime
    ) -> None:
        next_id = next_day_identifier(identifier)
        next_day = day_after(current, at_time, self.tz)
        content = NotificationContent(
            title=title,
            body=body,
            sound=self.settings.NOTIFICATION_SOUND,
            data=NotificationData(
                plan_id=identifier.replace(PLAN_PREFIX, "", 1),
                original_time=at,
                scheduled_for=isoformat_instant(next_day),
                is_next_day=True,
            ),
        )
        try:
            await self.backend.schedule(next_id, content, next_day)
        except Exception as e:
            # The current-day reminder is already armed; losing the look-ahead is not fatal
            inc(notifications_failed_total, self.settings.METRICS_ENABLED)
            logger.error(f"❌ [Scheduler] Error scheduling next occurrence {next_id}: {e!r}")
            return
        inc(notifications_scheduled_total, self.settings.METRICS_ENABLED)
        logger.info(f"⏰ [Scheduler] Next occurrence {next_id} for {next_day.isoformat()}")

    async def cancel_notification(self, identifier: str) -> None:
        try:
            await self.backend.cancel(identifier)
            logger.debug(f"🗑️  [Scheduler] Cancelled notification: {identifier}")
        except Exception as e:
            inc(notifications_failed_total, self.settings.METRICS_ENABLED)
            logger.error(f"❌ [Scheduler] Error canceling notification {identifier}: {e!r}")

    async def cancel_plan_notifications(self, plan_id: int) -> None:
        identifier = plan_identifier(plan_id)
        await self.cancel_notification(identifier)
        await self.cancel_notification(next_day_identifier(identifier))

    async def cancel_all_notifications(self) -> None:
        try:
            await self.backend.cancel_all()
            logger.info("🗑️  [Scheduler] Cancelled all notifications")
        except Exception as e:
            inc(notifications_failed_total, self.settings.METRICS_ENABLED)
            logger.error(f"❌ [Scheduler] Error canceling all notifications: {e!r}")

    async def get_scheduled_notifications(self) -> List[NotificationRequest]:
        """Diagnostic listing of everything currently armed."""
        try:
            requests = await self.backend.list_scheduled()
        except Exception as e:
            logger.error(f"❌ [Scheduler] Error getting scheduled notifications: {e!r}")
            return []
        logger.info(f"📋 [Scheduler] Total scheduled notifications: {len(requests)}")
        for index, request in enumerate(requests, start=1):
            logger.info(f"📋 [Scheduler] {index}. ID: {request.identifier} at {request.trigger_at.isoformat()}")
        return requests

    def add_response_listener(self, callback: Callable[[NotificationResponse], None]) -> Subscription:
        return self.backend.add_response_listener(callback)
