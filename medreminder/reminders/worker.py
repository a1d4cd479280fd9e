"""
Rollover worker - one asyncio task that drains every rollover trigger in order.

Startup, foreground and tap triggers all land on the same queue, so two
rollover passes never interleave. A daily pass that is already queued absorbs
further daily triggers.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .rollover import DailyRolloverProcessor
from .schemas import NotificationResponse

logger = logging.getLogger(__name__)


class TriggerKind(str, Enum):
    STARTUP = "startup"
    FOREGROUND = "foreground"
    NOTIFICATION_TAP = "notification_tap"


@dataclass
class RolloverTrigger:
    kind: TriggerKind
    response: Optional[NotificationResponse] = None


class RolloverWorker:
    def __init__(self, processor: DailyRolloverProcessor):
        self.processor = processor
        self.queue: "asyncio.Queue[RolloverTrigger]" = asyncio.Queue()
        self.running = False
        self.processed = 0
        self._task: Optional[asyncio.Task] = None
        self._daily_pending = False

    def start(self) -> None:
        if self.running:
            logger.info("⚠️ [RolloverWorker] Already running - skipping duplicate start")
            return
        self.running = True
        self._task = asyncio.create_task(self._run(), name="medreminder-rollover")
        logger.info("🚀 [RolloverWorker] Started")

    def submit(self, trigger: RolloverTrigger) -> bool:
        """Queue a trigger; returns False when it was coalesced into a pending daily pass."""
        if trigger.kind != TriggerKind.NOTIFICATION_TAP:
            if self._daily_pending:
                logger.debug(f"🔁 [RolloverWorker] Daily pass already queued, dropping {trigger.kind.value}")
                return False
            self._daily_pending = True
        self.queue.put_nowait(trigger)
        return True

    async def join(self) -> None:
        """Wait until every queued trigger has been handled."""
        await self.queue.join()

    async def stop(self) -> None:
        if not self._task:
            return
        self.running = False
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"🛑 [RolloverWorker] Stopped after {self.processed} trigger(s)")

    async def _run(self) -> None:
        while self.running:
            trigger = await self.queue.get()
            try:
                await self._handle(trigger)
            except Exception as e:
                logger.error(f"❌ [RolloverWorker] {trigger.kind.value} trigger failed: {e!r}")
            finally:
                self.processed += 1
                self.queue.task_done()

    async def _handle(self, trigger: RolloverTrigger) -> None:
        if trigger.kind == TriggerKind.NOTIFICATION_TAP:
            if trigger.response is not None:
                await self.processor.handle_notification_response(trigger.response)
            return
        # Cleared before the pass so triggers arriving mid-pass queue a fresh one
        self._daily_pending = False
        await self.processor.process_daily_medication_updates()
