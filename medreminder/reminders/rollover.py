"""
Daily Rollover Processor - the only writer of ``duration`` and
``lastNotificationDate``.

Runs on cold start, on every foreground transition and on reminder taps. Each
plan is rolled over through ``PlanStore.rollover_plan`` which decrements and
stamps the day in one conditional UPDATE, so redundant runs on the same
calendar day are no-ops.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from medreminder.core.exceptions import MedReminderError
from medreminder.crud.medicine_plan import PlanStore
from medreminder.schemas.medicine_plan import MedicinePlanRead
from .config import ReminderSettings, settings as default_settings
from .metrics import (
    inc,
    notification_responses_total,
    plans_completed_total,
    plans_rolled_over_total,
    rollover_failures_total,
    rollover_runs_total,
)
from .scheduler import NotificationScheduler, parse_plan_id, plan_identifier
from .schemas import NotificationResponse

logger = logging.getLogger(__name__)


def reminder_body(plan: MedicinePlanRead) -> str:
    return f"Time to take your {plan.name} ({plan.dosage}) {plan.food_timing.value} food"


@dataclass
class RolloverResult:
    day: date
    decremented: List[int] = field(default_factory=list)
    completed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class DailyRolloverProcessor:
    def __init__(
        self,
        store: PlanStore,
        scheduler: NotificationScheduler,
        settings: Optional[ReminderSettings] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.settings = settings or default_settings

    def _inc(self, counter) -> None:
        inc(counter, self.settings.METRICS_ENABLED)

    async def _rollover(self, plan_id: int, today: date) -> Optional[int]:
        return await asyncio.to_thread(self.store.rollover_plan, plan_id, today)

    async def process_daily_medication_updates(self) -> RolloverResult:
        """
        Roll over every active plan not yet processed today. A failure on one
        plan is logged and the pass continues with the next.
        """
        today = self.store.today()
        result = RolloverResult(day=today)
        self._inc(rollover_runs_total)

        try:
            candidates = await asyncio.to_thread(self.store.get_plans_needing_update, today)
        except Exception as e:
            self._inc(rollover_failures_total)
            logger.error(f"❌ [Rollover] Could not load plans for {today.isoformat()}: {e!r}")
            return result
        logger.info(f"🔄 [Rollover] {len(candidates)} plan(s) need update for {today.isoformat()}")

        for plan in candidates:
            try:
                new_duration = await self._rollover(plan.id, today)
                if new_duration is None:
                    # Another trigger got there first
                    result.skipped.append(plan.id)
                    continue

                result.decremented.append(plan.id)
                self._inc(plans_rolled_over_total)
                logger.info(f"💊 [Rollover] Updated plan {plan.name}: {new_duration} days remaining")

                if new_duration == 0:
                    await self.scheduler.cancel_plan_notifications(plan.id)
                    result.completed.append(plan.id)
                    self._inc(plans_completed_total)
                    logger.info(f"✅ [Rollover] Completed medication plan: {plan.name}")
            except MedReminderError as e:
                result.failed.append(plan.id)
                self._inc(rollover_failures_total)
                logger.error(f"❌ [Rollover] Failed to process plan {plan.id}: {e}")

        return result

    async def handle_notification_response(self, response: NotificationResponse) -> Optional[int]:
        """
        Tap-driven rollover for the plan behind ``response``. Returns the new
        duration, or None when nothing was done (unknown identifier, plan
        already rolled over today, or an error that was logged).
        """
        self._inc(notification_responses_total)
        identifier = response.identifier
        logger.info(f"👆 [Rollover] Notification tapped: {identifier}")

        plan_id = parse_plan_id(identifier)
        if plan_id is None:
            return None

        try:
            today = self.store.today()
            candidates = await asyncio.to_thread(self.store.get_plans_needing_update, today)
            plan = next((p for p in candidates if p.id == plan_id), None)
            if plan is None:
                logger.info(f"⏭️  [Rollover] Plan {plan_id} already processed today")
                return None

            new_duration = await self._rollover(plan_id, today)
            if new_duration is None:
                return None
        except MedReminderError as e:
            self._inc(rollover_failures_total)
            logger.error(f"❌ [Rollover] Error handling notification response for plan {plan_id}: {e}")
            return None

        self._inc(plans_rolled_over_total)
        logger.info(f"💊 [Rollover] Processed notification for plan {plan_id}: {new_duration} days remaining")

        if new_duration == 0:
            await self.scheduler.cancel_plan_notifications(plan_id)
            self._inc(plans_completed_total)
            logger.info(f"✅ [Rollover] Medication plan completed: {plan_id}")
        elif response.data.is_next_day and response.data.original_time:
            # Continue the forward chain from the look-ahead reminder
            try:
                await self.scheduler.schedule_notification(
                    plan_identifier(plan_id),
                    self.scheduler.settings.NOTIFICATION_TITLE,
                    reminder_body(plan),
                    response.data.original_time,
                )
            except MedReminderError as e:
                # The rollover itself is committed; the scheduler already counted the failure
                logger.error(f"❌ [Rollover] Could not re-arm reminders for plan {plan_id}: {e}")
        return new_duration
