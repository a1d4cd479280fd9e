"""
Reminder app wiring tests - lifecycle, listener teardown, rollover triggers
and plan operations kept in step with scheduled reminders
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import amoxicillin
from medreminder.core.exceptions import NotFoundError, ValidationError
from medreminder.reminders.backend import LocalNotificationCenter
from medreminder.reminders.events import APP_STATE_CHANGED, NOTIFICATION_RESPONSE, EventBus
from medreminder.reminders.schemas import AppState, PermissionStatus
from medreminder.reminders.service import create_app
from medreminder.reminders.worker import RolloverTrigger, RolloverWorker, TriggerKind

UTC = timezone.utc


@pytest.fixture
def app(settings, reminder_settings, backend, clock):
    return create_app(settings=settings, reminder_settings=reminder_settings, backend=backend, clock=clock)


def test_event_bus_subscription_remove():
    bus = EventBus()
    seen = []
    subscription = bus.on(APP_STATE_CHANGED, seen.append)

    bus.emit(APP_STATE_CHANGED, AppState.ACTIVE)
    subscription.remove()
    subscription.remove()
    bus.emit(APP_STATE_CHANGED, AppState.BACKGROUND)

    assert seen == [AppState.ACTIVE]
    assert subscription.active is False
    assert bus.listener_count(APP_STATE_CHANGED) == 0


def test_event_bus_isolates_failing_listener():
    bus = EventBus()
    seen = []
    bus.on("tick", Mock(side_effect=RuntimeError("boom")))
    bus.on("tick", seen.append)

    bus.emit("tick", 1)

    assert seen == [1]


def test_event_bus_off_without_callback_clears_event():
    bus = EventBus()
    bus.on("tick", Mock())
    bus.on("tick", Mock())

    bus.off("tick")
    bus.off("unknown")

    assert bus.listener_count("tick") == 0


def test_worker_coalesces_pending_daily_triggers():
    processor = Mock()
    processor.process_daily_medication_updates = AsyncMock()
    processor.handle_notification_response = AsyncMock()

    async def scenario():
        worker = RolloverWorker(processor)
        accepted = [
            worker.submit(RolloverTrigger(TriggerKind.STARTUP)),
            worker.submit(RolloverTrigger(TriggerKind.FOREGROUND)),
            worker.submit(RolloverTrigger(TriggerKind.NOTIFICATION_TAP, response=Mock())),
        ]
        worker.start()
        await worker.join()
        after_drain = worker.submit(RolloverTrigger(TriggerKind.FOREGROUND))
        await worker.join()
        await worker.stop()
        return accepted, after_drain, worker.processed

    accepted, after_drain, processed = asyncio.run(scenario())

    assert accepted == [True, False, True]
    assert after_drain is True
    assert processed == 3
    assert processor.process_daily_medication_updates.await_count == 2
    assert processor.handle_notification_response.await_count == 1


def test_worker_survives_failing_pass():
    processor = Mock()
    processor.process_daily_medication_updates = AsyncMock(side_effect=[RuntimeError("boom"), None])

    async def scenario():
        worker = RolloverWorker(processor)
        worker.start()
        worker.submit(RolloverTrigger(TriggerKind.STARTUP))
        await worker.join()
        worker.submit(RolloverTrigger(TriggerKind.FOREGROUND))
        await worker.join()
        await worker.stop()

    asyncio.run(scenario())

    assert processor.process_daily_medication_updates.await_count == 2


def test_start_runs_startup_rollover_and_stop_releases_listeners(app, backend):
    plan_id = app.store.save_plan(amoxicillin(duration=3))

    async def scenario():
        await app.start()
        await app.wait_idle()
        assert app.started
        assert backend.permission == PermissionStatus.GRANTED
        assert backend.listener_count(NOTIFICATION_RESPONSE) == 1
        assert app.bus.listener_count(APP_STATE_CHANGED) == 1
        await app.stop()

    asyncio.run(scenario())

    assert app.store.get_plan(plan_id).duration == 2
    assert app.started is False
    assert backend.listener_count(NOTIFICATION_RESPONSE) == 0
    assert app.bus.listener_count(APP_STATE_CHANGED) == 0


def test_foreground_on_new_day_triggers_rollover(app, clock):
    plan_id = app.store.save_plan(amoxicillin(duration=3))

    async def scenario():
        async with app:
            await app.wait_idle()
            app.handle_app_state_change(AppState.BACKGROUND)
            await app.wait_idle()
            assert app.store.get_plan(plan_id).duration == 2

            app.handle_app_state_change(AppState.ACTIVE)
            await app.wait_idle()
            assert app.store.get_plan(plan_id).duration == 2

            clock.advance(days=1)
            app.handle_app_state_change("active")
            await app.wait_idle()

    asyncio.run(scenario())

    assert app.store.get_plan(plan_id).duration == 1


def test_notification_tap_reaches_rollover(app, backend):
    async def scenario():
        async with app:
            await app.wait_idle()
            plan = await app.plans.create_plan(amoxicillin(duration=2))
            await backend.respond(f"plan_{plan.id}")
            await app.wait_idle()
            return plan.id

    plan_id = asyncio.run(scenario())

    plan = app.store.get_plan(plan_id)
    assert plan.duration == 1
    assert plan.last_notification_date == datetime(2025, 3, 10, tzinfo=UTC).date()


def test_tap_after_stop_is_not_processed(app, backend):
    async def scenario():
        async with app:
            await app.wait_idle()
            plan = await app.plans.create_plan(amoxicillin(duration=2))
        await backend.respond(f"plan_{plan.id}")
        return plan.id

    plan_id = asyncio.run(scenario())

    assert backend.listener_count() == 0
    assert app.store.get_plan(plan_id).duration == 2


def test_permission_denied_keeps_plan_management_working(settings, reminder_settings, clock):
    backend = LocalNotificationCenter(permission=PermissionStatus.DENIED, clock=clock)
    alert = Mock()
    app = create_app(settings=settings, reminder_settings=reminder_settings, backend=backend, alert=alert, clock=clock)

    async def scenario():
        async with app:
            await app.wait_idle()
            plan = await app.plans.create_plan(amoxicillin())
            return plan, await backend.list_scheduled()

    plan, scheduled = asyncio.run(scenario())

    alert.assert_called_once()
    assert plan.id is not None
    assert scheduled == []


def test_plan_service_keeps_reminders_in_step(app, backend):
    async def scenario():
        plan = await app.plans.create_plan(amoxicillin())
        armed = await backend.list_scheduled()

        updated = await app.plans.update_plan(dict(id=plan.id, **amoxicillin(notification_time="21:00")))
        rearmed = await backend.list_scheduled()

        await app.plans.set_notifications_enabled(plan.id, False)
        paused = await backend.list_scheduled()

        await app.plans.set_notifications_enabled(plan.id, True)
        await app.plans.delete_plan(plan.id)
        deleted = await backend.list_scheduled()
        return plan, updated, armed, rearmed, paused, deleted

    plan, updated, armed, rearmed, paused, deleted = asyncio.run(scenario())

    assert [r.identifier for r in armed] == [f"plan_{plan.id}", f"plan_{plan.id}_next"]
    assert updated.notification_time == "21:00"
    assert rearmed[0].trigger_at == datetime(2025, 3, 10, 21, 0, tzinfo=UTC)
    assert paused == []
    assert deleted == []
    assert app.store.get_all_plans() == []


def test_plan_service_finished_course_has_no_reminders(app, backend):
    async def scenario():
        plan = await app.plans.create_plan(amoxicillin())
        await app.plans.update_plan(dict(id=plan.id, **amoxicillin(duration=0)))
        return await backend.list_scheduled()

    assert asyncio.run(scenario()) == []


def test_plan_service_errors(app):
    async def scenario():
        with pytest.raises(NotFoundError):
            await app.plans.get_plan(404)
        with pytest.raises(ValidationError):
            await app.plans.create_plan(amoxicillin(notification_time="7pm"))
        with pytest.raises(NotFoundError):
            await app.plans.set_notifications_enabled(404, True)
        return await app.plans.list_plans()

    assert asyncio.run(scenario()) == []
