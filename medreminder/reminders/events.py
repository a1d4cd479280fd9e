"""
Minimal pub/sub used for OS listener callbacks (app state, notification taps).

Every ``on()`` returns a Subscription; calling ``remove()`` on teardown is
how listeners are released.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventCallback = Callable[..., Any]

APP_STATE_CHANGED = "app_state_changed"
NOTIFICATION_RECEIVED = "notification_received"
NOTIFICATION_RESPONSE = "notification_response"


class Subscription:
    """Disposer handle returned by EventBus.on"""

    def __init__(self, bus: "EventBus", event: str, callback: EventCallback):
        self._bus = bus
        self.event = event
        self.callback = callback
        self.active = True

    def remove(self) -> None:
        if self.active:
            self._bus.off(self.event, self.callback)
            self.active = False


class EventBus:
    def __init__(self):
        self._events: Dict[str, List[EventCallback]] = defaultdict(list)

    def on(self, event: str, callback: EventCallback) -> Subscription:
        self._events[event].append(callback)
        return Subscription(self, event, callback)

    def off(self, event: str, callback: Optional[EventCallback] = None) -> None:
        if event not in self._events:
            return
        if callback is None:
            del self._events[event]
            return
        self._events[event] = [cb for cb in self._events[event] if cb is not callback]

    def emit(self, event: str, *args: Any) -> None:
        # Copy so listeners may unsubscribe while being notified
        for callback in list(self._events.get(event, [])):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"❌ [EventBus] Listener for {event} failed: {e!r}")

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, []))
