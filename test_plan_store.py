"""
Plan Store tests - persistence, validation and the rollover gate
"""
from datetime import date

import pytest
from sqlalchemy import text

from conftest import amoxicillin
from medreminder.core.config import Settings
from medreminder.core.exceptions import NotFoundError, PersistenceError, ValidationError
from medreminder.crud.medicine_plan import PlanStore
from medreminder.db.session import build_engine, init_db, make_session_factory
from medreminder.schemas.medicine_plan import FoodTiming, MedicinePlanCreate, MedicinePlanUpdate

DAY_1 = date(2025, 3, 10)
DAY_2 = date(2025, 3, 11)


def test_save_then_get_all_returns_same_fields(store):
    plan_id = store.save_plan(MedicinePlanCreate(**amoxicillin()))

    plans = store.get_all_plans()
    assert len(plans) == 1
    saved = plans[0]
    assert saved.id == plan_id
    assert saved.model_dump(exclude={"id", "last_notification_date"}) == MedicinePlanCreate(**amoxicillin()).model_dump()
    assert saved.food_timing is FoodTiming.AFTER
    assert saved.last_notification_date is None


def test_get_all_plans_newest_first(store):
    first = store.save_plan(amoxicillin(name="Ibuprofen"))
    second = store.save_plan(amoxicillin(name="Metformin"))

    assert [p.id for p in store.get_all_plans()] == [second, first]


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": ""},
        {"name": "   "},
        {"dosage": ""},
        {"notification_time": ""},
        {"notification_time": "25:00"},
        {"duration": -1},
        {"food_timing": "whenever"},
    ],
)
def test_save_plan_rejects_invalid_input(store, overrides):
    with pytest.raises(ValidationError):
        store.save_plan(amoxicillin(**overrides))
    assert store.get_all_plans() == []


def test_update_plan_overwrites_fields(store):
    plan_id = store.save_plan(amoxicillin())

    store.update_plan(
        MedicinePlanUpdate(id=plan_id, **amoxicillin(name="Amoxicillin forte", dosage="875mg", food_timing="before"))
    )

    plan = store.get_plan(plan_id)
    assert plan.name == "Amoxicillin forte"
    assert plan.dosage == "875mg"
    assert plan.food_timing is FoodTiming.BEFORE


def test_update_plan_keeps_rollover_marker(store):
    plan_id = store.save_plan(amoxicillin())
    store.update_last_notification_date(plan_id, DAY_1)

    store.update_plan(dict(id=plan_id, **amoxicillin(dosage="250mg")))

    assert store.get_plan(plan_id).last_notification_date == DAY_1


def test_update_plan_to_zero_duration_disables_notifications(store):
    plan_id = store.save_plan(amoxicillin())

    store.update_plan(dict(id=plan_id, **amoxicillin(duration=0)))

    assert store.get_plan(plan_id).notifications_enabled is False


def test_update_missing_plan_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.update_plan(dict(id=999, **amoxicillin()))


def test_delete_plan_removes_row_and_ignores_unknown_ids(store):
    plan_id = store.save_plan(amoxicillin())

    store.delete_plan(plan_id)
    store.delete_plan(plan_id)

    assert store.get_all_plans() == []


def test_toggle_notifications(store):
    plan_id = store.save_plan(amoxicillin())

    store.toggle_notifications(plan_id, False)
    assert store.get_plan(plan_id).notifications_enabled is False

    store.toggle_notifications(plan_id, True)
    assert store.get_plan(plan_id).notifications_enabled is True


def test_toggle_notifications_cannot_enable_completed_plan(store):
    plan_id = store.save_plan(amoxicillin(duration=1))
    store.decrement_duration(plan_id)

    with pytest.raises(ValidationError):
        store.toggle_notifications(plan_id, True)


def test_toggle_missing_plan_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.toggle_notifications(42, False)


def test_decrement_duration_floors_at_zero_and_disables(store):
    plan_id = store.save_plan(amoxicillin(duration=2))

    assert store.decrement_duration(plan_id) == 1
    assert store.get_plan(plan_id).notifications_enabled is True

    assert store.decrement_duration(plan_id) == 0
    assert store.get_plan(plan_id).notifications_enabled is False

    assert store.decrement_duration(plan_id) == 0
    assert store.get_plan(plan_id).duration == 0


def test_decrement_missing_plan_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.decrement_duration(7)


def test_update_last_notification_date_missing_plan(store):
    with pytest.raises(NotFoundError):
        store.update_last_notification_date(7, DAY_1)


def test_get_active_plans_excludes_disabled_and_finished(store):
    active = store.save_plan(amoxicillin(name="Active"))
    disabled = store.save_plan(amoxicillin(name="Disabled"))
    finished = store.save_plan(amoxicillin(name="Finished", duration=1))
    store.toggle_notifications(disabled, False)
    store.decrement_duration(finished)

    assert [p.id for p in store.get_active_plans()] == [active]


def test_plans_needing_update_skips_plans_rolled_over_today(store):
    fresh = store.save_plan(amoxicillin(name="Fresh"))
    stale = store.save_plan(amoxicillin(name="Stale"))
    done = store.save_plan(amoxicillin(name="Done"))
    store.update_last_notification_date(stale, DAY_1)
    store.update_last_notification_date(done, DAY_2)

    needing = store.get_plans_needing_update(DAY_2)

    assert sorted(p.id for p in needing) == sorted([fresh, stale])


def test_plans_needing_update_defaults_to_clock_day(store, clock):
    plan_id = store.save_plan(amoxicillin())
    store.update_last_notification_date(plan_id, clock().date())

    assert store.get_plans_needing_update() == []


def test_rollover_plan_applies_at_most_once_per_day(store):
    plan_id = store.save_plan(amoxicillin(duration=3))

    assert store.rollover_plan(plan_id, DAY_1) == 2
    assert store.rollover_plan(plan_id, DAY_1) is None

    plan = store.get_plan(plan_id)
    assert plan.duration == 2
    assert plan.last_notification_date == DAY_1

    assert store.rollover_plan(plan_id, DAY_2) == 1


def test_rollover_plan_disables_on_last_day(store):
    plan_id = store.save_plan(amoxicillin(duration=1))

    assert store.rollover_plan(plan_id, DAY_1) == 0

    plan = store.get_plan(plan_id)
    assert plan.notifications_enabled is False
    assert store.rollover_plan(plan_id, DAY_2) is None


def test_rollover_plan_ignores_disabled_and_missing_plans(store):
    plan_id = store.save_plan(amoxicillin())
    store.toggle_notifications(plan_id, False)

    assert store.rollover_plan(plan_id, DAY_1) is None
    assert store.rollover_plan(12345, DAY_1) is None
    assert store.get_plan(plan_id).duration == 3


def test_storage_failure_reads_are_empty_and_writes_raise(tmp_path):
    missing_dir = tmp_path / "does-not-exist" / "plans.db"
    engine = build_engine(Settings(DATABASE_URL=f"sqlite:///{missing_dir}"))
    broken = PlanStore(make_session_factory(engine))

    assert broken.get_all_plans() == []
    assert broken.get_active_plans() == []
    assert broken.get_plans_needing_update(DAY_1) == []
    assert broken.get_plan(1) is None
    with pytest.raises(PersistenceError):
        broken.save_plan(amoxicillin())
    with pytest.raises(PersistenceError):
        broken.rollover_plan(1, DAY_1)


def test_init_db_upgrades_database_without_rollover_marker(tmp_path, clock):
    engine = build_engine(Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'legacy.db'}"))
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE medicine_plans ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, dosage TEXT NOT NULL, "
            "duration INTEGER NOT NULL, foodTiming TEXT NOT NULL, notificationTime TEXT NOT NULL, "
            "notificationsEnabled INTEGER DEFAULT 1)"
        ))
        conn.execute(text(
            "INSERT INTO medicine_plans (name, dosage, duration, foodTiming, notificationTime, notificationsEnabled) "
            "VALUES ('Vitamin D', '1000IU', 30, 'during', '21:15', 1)"
        ))

    init_db(engine)
    init_db(engine)

    store = PlanStore(make_session_factory(engine), clock=clock)
    [plan] = store.get_all_plans()
    assert plan.name == "Vitamin D"
    assert plan.notifications_enabled is True
    assert plan.last_notification_date is None
    assert store.rollover_plan(plan.id, DAY_1) == 29
    engine.dispose()


def _insert_raw_plan(engine, food_timing):
    with engine.begin() as conn:
        result = conn.execute(
            text(
                "INSERT INTO medicine_plans (name, dosage, duration, foodTiming, notificationTime, notificationsEnabled) "
                "VALUES ('Legacy tablets', '1 tab', 5, :food_timing, '08:00', 1)"
            ),
            {"food_timing": food_timing},
        )
        return result.lastrowid


def test_unreadable_rows_are_skipped_not_raised(engine, store):
    good = store.save_plan(amoxicillin())
    bad = _insert_raw_plan(engine, "Before meals")

    assert [p.id for p in store.get_all_plans()] == [good]
    assert [p.id for p in store.get_active_plans()] == [good]
    assert [p.id for p in store.get_plans_needing_update(DAY_1)] == [good]
    assert store.get_plan(bad) is None
    assert store.get_plan(good).name == "Amoxicillin"


def test_expected_domain_errors_do_not_log_session_failure(store, caplog):
    with caplog.at_level("ERROR", logger="medreminder.db.session"):
        with pytest.raises(NotFoundError):
            store.toggle_notifications(404, True)
        with pytest.raises(NotFoundError):
            store.update_plan(dict(id=404, **amoxicillin()))

    assert "Database session error" not in caplog.text
