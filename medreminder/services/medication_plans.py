"""
Host-facing plan operations: store writes paired with the matching reminder
changes, so a plan on screen and its scheduled reminders never drift apart.
"""
import asyncio
import logging
from typing import Any, Dict, List, Union

from medreminder.core.exceptions import NotFoundError, SchedulingError
from medreminder.crud.medicine_plan import PlanStore
from medreminder.reminders.rollover import reminder_body
from medreminder.reminders.scheduler import NotificationScheduler, plan_identifier
from medreminder.schemas.medicine_plan import (
    MedicinePlanCreate,
    MedicinePlanRead,
    MedicinePlanUpdate,
    coerce_plan,
)

logger = logging.getLogger(__name__)


class MedicationPlanService:
    def __init__(self, store: PlanStore, scheduler: NotificationScheduler):
        self.store = store
        self.scheduler = scheduler

    async def list_plans(self) -> List[MedicinePlanRead]:
        return await asyncio.to_thread(self.store.get_all_plans)

    async def get_plan(self, plan_id: int) -> MedicinePlanRead:
        plan = await asyncio.to_thread(self.store.get_plan, plan_id)
        if plan is None:
            raise NotFoundError(plan_id)
        return plan

    async def create_plan(self, data: Union[MedicinePlanCreate, Dict[str, Any]]) -> MedicinePlanRead:
        plan_in = coerce_plan(MedicinePlanCreate, data)
        plan_id = await asyncio.to_thread(self.store.save_plan, plan_in)
        plan = await self.get_plan(plan_id)
        await self._sync_reminders(plan)
        return plan

    async def update_plan(self, data: Union[MedicinePlanUpdate, Dict[str, Any]]) -> MedicinePlanRead:
        plan_in = coerce_plan(MedicinePlanUpdate, data)
        await asyncio.to_thread(self.store.update_plan, plan_in)
        plan = await self.get_plan(plan_in.id)
        await self._sync_reminders(plan)
        return plan

    async def delete_plan(self, plan_id: int) -> None:
        await asyncio.to_thread(self.store.delete_plan, plan_id)
        await self.scheduler.cancel_plan_notifications(plan_id)
        logger.info(f"🗑️  [Plans] Deleted plan {plan_id}")

    async def set_notifications_enabled(self, plan_id: int, enabled: bool) -> MedicinePlanRead:
        await asyncio.to_thread(self.store.toggle_notifications, plan_id, enabled)
        plan = await self.get_plan(plan_id)
        await self._sync_reminders(plan)
        return plan

    async def _sync_reminders(self, plan: MedicinePlanRead) -> None:
        """Arm reminders for an active plan, clear them otherwise."""
        if not plan.is_active:
            await self.scheduler.cancel_plan_notifications(plan.id)
            return
        try:
            await self.scheduler.schedule_notification(
                plan_identifier(plan.id),
                self.scheduler.settings.NOTIFICATION_TITLE,
                reminder_body(plan),
                plan.notification_time,
            )
        except SchedulingError as e:
            # The plan itself is saved; the next edit or toggle retries
            logger.error(f"❌ [Plans] Reminder for plan {plan.id} not armed: {e}")
