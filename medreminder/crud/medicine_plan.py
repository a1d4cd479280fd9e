"""
Plan Store - exclusive owner of medicine plan durability.

All reads degrade to an empty result on storage failure; all writes raise
PersistenceError so callers can react. Every method opens its own short-lived
session, so a single PlanStore can be shared by the UI layer and the rollover
worker.
"""
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import case, false, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from medreminder.core.exceptions import NotFoundError, PersistenceError, ValidationError
from medreminder.db.session import session_scope
from medreminder.models.medicine_plan import MedicinePlan
from medreminder.schemas.medicine_plan import (
    MedicinePlanCreate,
    MedicinePlanRead,
    MedicinePlanUpdate,
    coerce_plan,
)
from medreminder.utils.timezone import now_local

logger = logging.getLogger(__name__)


def _active_filter():
    return (MedicinePlan.notifications_enabled.is_(True), MedicinePlan.duration > 0)


def _not_rolled_over_on(today: date):
    return or_(
        MedicinePlan.last_notification_date.is_(None),
        MedicinePlan.last_notification_date != today,
    )


class PlanStore:
    def __init__(self, session_factory: sessionmaker, clock: Optional[Callable[[], datetime]] = None):
        self._session_factory = session_factory
        self._clock = clock or now_local

    def today(self) -> date:
        return self._clock().date()

    # --- reads ---

    @staticmethod
    def _to_read(row: MedicinePlan) -> Optional[MedicinePlanRead]:
        try:
            return MedicinePlanRead.model_validate(row)
        except PydanticValidationError as e:
            # Rows written by older builds may not fit the current schema
            logger.warning(f"⚠️  [PlanStore] Skipping unreadable plan {row.id}: {e.error_count()} error(s)")
            return None

    def _read_plans(self, what: str, *criteria) -> List[MedicinePlanRead]:
        try:
            with session_scope(self._session_factory) as db:
                stmt = select(MedicinePlan).where(*criteria).order_by(MedicinePlan.id.desc())
                rows = db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error getting {what}: {e}")
            return []
        plans = (self._to_read(r) for r in rows)
        return [p for p in plans if p is not None]

    def get_all_plans(self) -> List[MedicinePlanRead]:
        """All plans, newest id first. Never raises."""
        return self._read_plans("all plans")

    def get_active_plans(self) -> List[MedicinePlanRead]:
        return self._read_plans("active plans", *_active_filter())

    def get_plans_needing_update(self, today: Optional[date] = None) -> List[MedicinePlanRead]:
        """Active plans not yet rolled over on ``today`` (local calendar day)."""
        today = today or self.today()
        return self._read_plans("plans needing update", *_active_filter(), _not_rolled_over_on(today))

    def get_plan(self, plan_id: int) -> Optional[MedicinePlanRead]:
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(MedicinePlan, plan_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error getting plan {plan_id}: {e}")
            return None
        return self._to_read(row) if row is not None else None

    # --- writes ---

    def save_plan(self, plan: Union[MedicinePlanCreate, Dict[str, Any]]) -> int:
        """Insert a new plan and return its assigned id."""
        data = coerce_plan(MedicinePlanCreate, plan)
        try:
            with session_scope(self._session_factory) as db:
                row = MedicinePlan(
                    name=data.name,
                    dosage=data.dosage,
                    duration=data.duration,
                    food_timing=data.food_timing.value,
                    notification_time=data.notification_time,
                    notifications_enabled=data.notifications_enabled and data.duration > 0,
                )
                db.add(row)
                db.flush()
                plan_id = row.id
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error saving plan: {e}")
            raise PersistenceError(f"Error saving plan: {e}") from e
        logger.info(f"💊 [PlanStore] Saved plan {plan_id} ({data.name}, {data.duration} days)")
        return plan_id

    def update_plan(self, plan: Union[MedicinePlanUpdate, Dict[str, Any]]) -> None:
        """Overwrite the user-editable fields of an existing plan by id."""
        data = coerce_plan(MedicinePlanUpdate, plan)
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(MedicinePlan, data.id)
                if row is None:
                    raise NotFoundError(data.id)
                row.name = data.name
                row.dosage = data.dosage
                row.duration = data.duration
                row.food_timing = data.food_timing.value
                row.notification_time = data.notification_time
                # A finished course can never carry enabled reminders
                row.notifications_enabled = data.notifications_enabled and data.duration > 0
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error updating plan {data.id}: {e}")
            raise PersistenceError(f"Error updating plan: {e}") from e

    def delete_plan(self, plan_id: int) -> None:
        """Remove a plan; deleting an unknown id is a no-op."""
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(MedicinePlan, plan_id)
                if row is not None:
                    db.delete(row)
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error deleting plan {plan_id}: {e}")
            raise PersistenceError(f"Error deleting plan: {e}") from e

    def toggle_notifications(self, plan_id: int, enabled: bool) -> None:
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(MedicinePlan, plan_id)
                if row is None:
                    raise NotFoundError(plan_id)
                if enabled and row.duration <= 0:
                    raise ValidationError(f"Plan {plan_id} is complete; notifications cannot be enabled")
                row.notifications_enabled = enabled
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error toggling notifications for plan {plan_id}: {e}")
            raise PersistenceError(f"Error toggling notifications: {e}") from e

    def decrement_duration(self, plan_id: int) -> int:
        """
        Decrease remaining days by one, never below zero, disabling
        notifications in the same transaction when the course ends.
        Returns the new duration.
        """
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(MedicinePlan, plan_id)
                if row is None:
                    raise NotFoundError(plan_id)
                new_duration = max(0, row.duration - 1)
                row.duration = new_duration
                if new_duration == 0:
                    row.notifications_enabled = False
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error decrementing duration for plan {plan_id}: {e}")
            raise PersistenceError(f"Error decrementing duration: {e}") from e
        return new_duration

    def update_last_notification_date(self, plan_id: int, day: date) -> None:
        try:
            with session_scope(self._session_factory) as db:
                result = db.execute(
                    update(MedicinePlan)
                    .where(MedicinePlan.id == plan_id)
                    .values(last_notification_date=day)
                )
                if result.rowcount == 0:
                    raise NotFoundError(plan_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error updating last notification date for plan {plan_id}: {e}")
            raise PersistenceError(f"Error updating last notification date: {e}") from e

    def rollover_plan(self, plan_id: int, today: Optional[date] = None) -> Optional[int]:
        """
        Decrement, auto-disable at zero and stamp ``today`` as one conditional
        UPDATE. Returns the new duration, or None when the plan is inactive,
        missing, or was already rolled over today. Safe to call repeatedly.
        """
        today = today or self.today()
        try:
            with session_scope(self._session_factory) as db:
                # SET expressions see the pre-update row
                result = db.execute(
                    update(MedicinePlan)
                    .where(MedicinePlan.id == plan_id, *_active_filter(), _not_rolled_over_on(today))
                    .values(
                        duration=MedicinePlan.duration - 1,
                        notifications_enabled=case(
                            (MedicinePlan.duration <= 1, false()),
                            else_=MedicinePlan.notifications_enabled,
                        ),
                        last_notification_date=today,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    return None
                return db.execute(
                    select(MedicinePlan.duration).where(MedicinePlan.id == plan_id)
                ).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"❌ [PlanStore] Error rolling over plan {plan_id}: {e}")
            raise PersistenceError(f"Error rolling over plan: {e}") from e
