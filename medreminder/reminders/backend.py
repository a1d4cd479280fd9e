"""
Notification backends - the on-device notification layer.

``NotificationBackend`` is the seam a platform adapter implements.
``LocalNotificationCenter`` is the in-process implementation: date triggers
are armed as asyncio timers on the running loop, deliveries are recorded and
presented through the log, and the host reports taps with ``respond()``.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .events import EventBus, Subscription, NOTIFICATION_RECEIVED, NOTIFICATION_RESPONSE
from .schemas import (
    NotificationChannel,
    NotificationContent,
    NotificationPresentation,
    NotificationRequest,
    NotificationResponse,
    PermissionStatus,
)
from medreminder.core.exceptions import PermissionDeniedError
from medreminder.utils.timezone import now_local

logger = logging.getLogger(__name__)


class NotificationBackend(ABC):
    @abstractmethod
    async def get_permission_status(self) -> PermissionStatus:
        ...

    @abstractmethod
    async def request_permission(self) -> PermissionStatus:
        ...

    @abstractmethod
    async def set_notification_channel(self, channel: NotificationChannel) -> None:
        ...

    @abstractmethod
    async def schedule(self, identifier: str, content: NotificationContent, trigger_at: datetime) -> str:
        """Register a one-shot reminder, replacing any with the same identifier."""

    @abstractmethod
    async def cancel(self, identifier: str) -> None:
        ...

    @abstractmethod
    async def cancel_all(self) -> None:
        ...

    @abstractmethod
    async def list_scheduled(self) -> List[NotificationRequest]:
        ...

    @abstractmethod
    def add_response_listener(self, callback: Callable[[NotificationResponse], None]) -> Subscription:
        ...


class LocalNotificationCenter(NotificationBackend):
    def __init__(
        self,
        permission: PermissionStatus = PermissionStatus.UNDETERMINED,
        grant_on_request: bool = True,
        presentation: Optional[NotificationPresentation] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.permission = permission
        self.grant_on_request = grant_on_request
        self.presentation = presentation or NotificationPresentation()
        self.channels: Dict[str, NotificationChannel] = {}
        self.delivered: List[NotificationRequest] = []
        self._clock = clock or now_local
        self._scheduled: Dict[str, NotificationRequest] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._bus = EventBus()

    async def get_permission_status(self) -> PermissionStatus:
        return self.permission

    async def request_permission(self) -> PermissionStatus:
        if self.permission == PermissionStatus.UNDETERMINED:
            self.permission = PermissionStatus.GRANTED if self.grant_on_request else PermissionStatus.DENIED
        return self.permission

    async def set_notification_channel(self, channel: NotificationChannel) -> None:
        self.channels[channel.id] = channel

    async def schedule(self, identifier: str, content: NotificationContent, trigger_at: datetime) -> str:
        if self.permission != PermissionStatus.GRANTED:
            raise PermissionDeniedError(f"Notification permission is {self.permission.value}")
        self._disarm(identifier)
        request = NotificationRequest(identifier=identifier, content=content, trigger_at=trigger_at)
        self._scheduled[identifier] = request

        delay = max(0.0, (trigger_at - self._clock()).total_seconds())
        loop = asyncio.get_running_loop()
        self._timers[identifier] = loop.call_later(delay, self._deliver, identifier)
        return identifier

    async def cancel(self, identifier: str) -> None:
        self._disarm(identifier)
        self._scheduled.pop(identifier, None)

    async def cancel_all(self) -> None:
        for identifier in list(self._timers):
            self._disarm(identifier)
        self._scheduled.clear()

    async def list_scheduled(self) -> List[NotificationRequest]:
        return sorted(self._scheduled.values(), key=lambda r: r.trigger_at)

    def add_response_listener(self, callback: Callable[[NotificationResponse], None]) -> Subscription:
        return self._bus.on(NOTIFICATION_RESPONSE, callback)

    def add_received_listener(self, callback: Callable[[NotificationRequest], None]) -> Subscription:
        return self._bus.on(NOTIFICATION_RECEIVED, callback)

    def listener_count(self, event: str = NOTIFICATION_RESPONSE) -> int:
        return self._bus.listener_count(event)

    async def respond(self, identifier: str, action: str = "default") -> NotificationResponse:
        """Report a user tap on a delivered (or still pending) reminder."""
        request = next((r for r in reversed(self.delivered) if r.identifier == identifier), None)
        if request is None:
            request = self._scheduled.get(identifier)
        if request is None:
            raise KeyError(f"No notification with identifier {identifier}")
        response = NotificationResponse(request=request, action=action, received_at=self._clock())
        self._bus.emit(NOTIFICATION_RESPONSE, response)
        return response

    def _disarm(self, identifier: str) -> None:
        timer = self._timers.pop(identifier, None)
        if timer is not None:
            timer.cancel()

    def _deliver(self, identifier: str) -> None:
        self._timers.pop(identifier, None)
        request = self._scheduled.pop(identifier, None)
        if request is None:
            return
        self.delivered.append(request)
        if self.presentation.show_alert:
            sound = request.content.sound if self.presentation.play_sound else None
            logger.info(
                f"🔔 [Notifications] {request.content.title}: {request.content.body} "
                f"(id={identifier}, sound={sound})"
            )
        self._bus.emit(NOTIFICATION_RECEIVED, request)
