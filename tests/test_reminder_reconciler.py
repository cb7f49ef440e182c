"""Tests for src.core.reminder_reconciler: keeping reminders in step with tasks."""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

from src.core.reminder_reconciler import ReminderReconciler, build_reminder_content
from src.data.models import (
    CareBenchmark,
    NewPlant,
    Plant,
    ReminderContent,
    Task,
    TaskType,
)

from fakes import FixedClock

TZ = ZoneInfo("Europe/Zurich")


def _local(*args):
    return datetime(*args, tzinfo=TZ)


PLANT = Plant(id=1, name="Monstera")


def _task(task_id=10, due=None, type_=TaskType.WATER, **kwargs):
    return Task(
        id=task_id,
        plant_id=PLANT.id,
        type=type_,
        title="Water Monstera" if type_ is TaskType.WATER else "Turn towards the light",
        due_date=due or _local(2025, 3, 11, 18, 0),
        interval_days=7,
        **kwargs,
    )


class TestBuildReminderContent:
    def test_water_text(self):
        content = build_reminder_content(_task(), PLANT)
        assert content.title == "💧 Time to water!"
        assert content.body == "Your Monstera needs watering today."
        assert content.data == {"task_id": 10, "plant_id": 1, "plant_name": "Monstera"}

    def test_other_type_text(self):
        content = build_reminder_content(_task(type_=TaskType.LIGHT), PLANT)
        assert content.title == "🌱 Light reminder"
        assert content.body == "Turn towards the light is due today."


class TestScheduleForTask:
    @pytest.mark.asyncio
    async def test_schedules_at_reminder_slot(self, reconciler, reminders):
        # Due date stored at some other hour still fires at 18:00
        handle = await reconciler.schedule_for_task(_task(due=_local(2025, 3, 11, 7, 15)), PLANT)
        assert handle is not None
        assert reminders.scheduled[handle].trigger == _local(2025, 3, 11, 18, 0)
        assert reminders.scheduled[handle].content.task_id == 10

    @pytest.mark.asyncio
    async def test_completed_task_not_scheduled(self, reconciler, reminders):
        assert await reconciler.schedule_for_task(_task(completed=True), PLANT) is None
        assert reminders.scheduled == {}

    @pytest.mark.asyncio
    async def test_past_trigger_not_scheduled(self, reconciler, reminders):
        assert await reconciler.schedule_for_task(_task(due=_local(2025, 3, 9, 18, 0)), PLANT) is None
        assert reminders.scheduled == {}

    @pytest.mark.asyncio
    async def test_trigger_within_lead_is_skipped_before_permission(self, reminders):
        clock = FixedClock(datetime(2025, 3, 10, 17, 59, 30))
        reconciler = ReminderReconciler(reminders, clock)
        handle = await reconciler.schedule_for_task(_task(due=_local(2025, 3, 10, 18, 0)), PLANT)
        assert handle is None
        assert reminders.permission_requests == 0

    @pytest.mark.asyncio
    async def test_permission_denied(self, reconciler, reminders):
        reminders.granted = False
        assert await reconciler.schedule_for_task(_task(), PLANT) is None
        assert reminders.scheduled == {}

    @pytest.mark.asyncio
    async def test_service_error_returns_none(self, reconciler, reminders):
        reminders.fail_schedule = True
        assert await reconciler.schedule_for_task(_task(), PLANT) is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self, reminders, clock):
        reminders.schedule_delay = 1.0
        reconciler = ReminderReconciler(reminders, clock, timeout_seconds=0.05)
        assert await reconciler.schedule_for_task(_task(), PLANT) is None
        assert reminders.scheduled == {}

    @pytest.mark.asyncio
    async def test_replaces_existing_reminder(self, reconciler, reminders):
        first = await reconciler.schedule_for_task(_task(), PLANT)
        second = await reconciler.schedule_for_task(_task(reminder_id=first), PLANT)
        assert first in reminders.cancelled
        assert list(reminders.scheduled) == [second]


class TestScheduleBatch:
    @pytest.mark.asyncio
    async def test_permission_asked_once(self, reconciler, reminders):
        tasks = [_task(i, due=_local(2025, 3, 10 + i, 18, 0)) for i in range(1, 5)]
        handles = await reconciler.schedule_batch(tasks, PLANT)
        assert set(handles) == {1, 2, 3, 4}
        assert reminders.permission_requests == 1

    @pytest.mark.asyncio
    async def test_skips_ineligible(self, reconciler, reminders):
        tasks = [
            _task(1, due=_local(2025, 3, 9, 18, 0)),
            _task(2, completed=True),
            _task(3),
        ]
        assert set(await reconciler.schedule_batch(tasks, PLANT)) == {3}

    @pytest.mark.asyncio
    async def test_nothing_eligible_skips_permission(self, reconciler, reminders):
        assert await reconciler.schedule_batch([_task(completed=True)], PLANT) == {}
        assert reminders.permission_requests == 0


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_for_task(self, reconciler, reminders):
        handle = await reconciler.schedule_for_task(_task(), PLANT)
        assert await reconciler.cancel_for_task(_task(reminder_id=handle)) is True
        assert reminders.scheduled == {}

    @pytest.mark.asyncio
    async def test_cancel_for_task_without_handle(self, reconciler, reminders):
        assert await reconciler.cancel_for_task(_task()) is False
        assert reminders.cancelled == []

    @pytest.mark.asyncio
    async def test_cancel_for_plant_catches_orphans(self, reconciler, reminders):
        await reconciler.schedule_for_task(_task(1), PLANT)
        # Orphan: a reminder no task points to any more
        reminders.inject(
            ReminderContent("x", "y", {"task_id": 99, "plant_id": PLANT.id}),
            _local(2025, 3, 12, 18, 0),
        )
        other = reminders.inject(
            ReminderContent("x", "y", {"task_id": 5, "plant_id": 2}),
            _local(2025, 3, 12, 18, 0),
        )

        assert await reconciler.cancel_for_plant(PLANT.id) == 2
        assert list(reminders.scheduled) == [other]

    @pytest.mark.asyncio
    async def test_list_failure_is_empty(self, reconciler, reminders):
        reminders.fail_list = True
        assert await reconciler.list_scheduled() == []
        assert await reconciler.cancel_for_plant(PLANT.id) == 0

    @pytest.mark.asyncio
    async def test_cancel_all(self, reconciler, reminders):
        await reconciler.schedule_for_task(_task(1), PLANT)
        assert await reconciler.cancel_all() is True
        assert reminders.scheduled == {}

    @pytest.mark.asyncio
    async def test_cancel_all_failure_is_reported(self, reconciler, reminders):
        reminders.cancel_all = AsyncMock(side_effect=RuntimeError("platform down"))
        assert await reconciler.cancel_all() is False


class TestScheduleTest:
    @pytest.mark.asyncio
    async def test_fires_a_few_seconds_from_now(self, reconciler, reminders, clock):
        handle = await reconciler.schedule_test()

        reminder = reminders.scheduled[handle]
        assert reminder.trigger == clock.now() + timedelta(seconds=5)
        assert reminder.content.task_id is None
        assert reminder.content.plant_id is None

    @pytest.mark.asyncio
    async def test_not_touched_by_plant_cancel(self, reconciler, reminders):
        handle = await reconciler.schedule_test()
        await reconciler.cancel_for_plant(PLANT.id)
        assert handle in reminders.scheduled

    @pytest.mark.asyncio
    async def test_permission_denied(self, reconciler, reminders):
        reminders.granted = False
        assert await reconciler.schedule_test() is None

    @pytest.mark.asyncio
    async def test_service_error(self, reconciler, reminders):
        reminders.fail_schedule = True
        assert await reconciler.schedule_test() is None


class TestRescheduleAll:
    @pytest.mark.asyncio
    async def test_rebuild_matches_pending_tasks(self, lifecycle, reconciler, reminders, store):
        plant = await lifecycle.add_plant(
            NewPlant(name="Aloe Vera", watering_benchmark=CareBenchmark("7")),
        )
        # Drift: a duplicate and a stale reminder on the platform
        task = lifecycle.tasks[0]
        reminders.inject(build_reminder_content(task, plant), _local(2025, 3, 10, 18, 0))
        reminders.inject(
            ReminderContent("old", "old", {"task_id": 999, "plant_id": plant.id}),
            _local(2025, 3, 11, 18, 0),
        )

        scheduled = await reconciler.reschedule_all(store)

        tasks = await store.get_tasks()
        assert scheduled == 13
        assert len(reminders.scheduled) == 13
        for t in tasks:
            assert len(reminders.for_task(t.id)) == 1
            assert t.reminder_id in reminders.scheduled

    @pytest.mark.asyncio
    async def test_idempotent(self, lifecycle, reconciler, reminders, store):
        await lifecycle.add_plant(NewPlant(name="Fern", watering_benchmark=CareBenchmark("10")))
        await reconciler.reschedule_all(store)
        first = sorted((r.content.task_id, r.trigger) for r in reminders.scheduled.values())
        await reconciler.reschedule_all(store)
        second = sorted((r.content.task_id, r.trigger) for r in reminders.scheduled.values())
        assert first == second
        assert len(second) == 9

    @pytest.mark.asyncio
    async def test_completed_tasks_lose_reminder(self, lifecycle, reconciler, reminders, store):
        await lifecycle.add_plant(NewPlant(name="Fern", watering_benchmark=CareBenchmark("30")))
        task = lifecycle.tasks[0]
        # Completed behind the reconciler's back, handle left behind
        await store.update_task(task.id, {"completed": True, "reminder_id": "stale"})

        await reconciler.reschedule_all(store)

        stored = {t.id: t for t in await store.get_tasks()}
        assert stored[task.id].reminder_id is None
        assert reminders.for_task(task.id) == []

    @pytest.mark.asyncio
    async def test_permission_denied_clears_handles(self, lifecycle, reconciler, reminders, store):
        await lifecycle.add_plant(NewPlant(name="Fern", watering_benchmark=CareBenchmark("30")))
        reminders.granted = False

        assert await reconciler.reschedule_all(store) == 0
        assert reminders.scheduled == {}
        assert all(t.reminder_id is None for t in await store.get_tasks())

    @pytest.mark.asyncio
    async def test_overdue_tasks_get_no_reminder(self, lifecycle, reconciler, reminders, store, clock):
        await lifecycle.add_plant(NewPlant(name="Fern", watering_benchmark=CareBenchmark("30")))
        clock.advance(days=40)

        # Three tasks: Mar 10, Apr 9 (past) and May 9 (future)
        assert await reconciler.reschedule_all(store) == 1
