"""Tests for the step countdown and its once-only alerts."""
import asyncio
from datetime import timedelta
import pytest

from pizza_timer.schemas.active_pizza import ScheduledStep, StepStatus
from pizza_timer.services.clock import TickSource
from pizza_timer.services.timer_service import PizzaTimer


class Recorder:
    """Collects due and reminder callbacks."""

    def __init__(self):
        self.due = []
        self.reminders = []

    def on_due(self, step):
        self.due.append(step.step_number)

    def on_reminder(self, step, minutes):
        self.reminders.append((step.step_number, minutes))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def timer(granted_gate, recorder, clock):
    timer = PizzaTimer(
        notification_gate=granted_gate,
        reminder_minutes_before=15,
        on_step_due=recorder.on_due,
        on_step_reminder=recorder.on_reminder,
        clock=clock,
    )
    timer.set_enabled(True)
    return timer


@pytest.mark.asyncio
async def test_reminder_then_due_then_overdue(timer, recorder, granted_gate, make_step, clock):
    """Test a step ten minutes out: reminder now, due on time, overdue later."""
    await timer.update_steps([make_step(1, 10, title="Mix the dough")])

    assert recorder.reminders == [(1, 10)]
    assert recorder.due == []

    await timer.tick()
    assert recorder.reminders == [(1, 10)]

    clock.advance(minutes=10)
    await timer.tick()
    assert recorder.due == [1]
    assert timer.minutes_to_next_step == 0
    assert timer.is_overdue is False

    clock.advance(minutes=10)
    await timer.tick()
    assert timer.is_overdue is True
    assert recorder.reminders == [(1, 10)]
    assert recorder.due == [1]

    assert granted_gate.titles == ["🍕 In 10 min: Mix the dough", "🍕 NOW: Mix the dough"]


@pytest.mark.asyncio
async def test_alerts_fire_once_across_many_ticks(timer, recorder, make_step, clock):
    """Test that repeated ticks inside a window do not repeat alerts."""
    await timer.update_steps([make_step(1, 5)])

    for _ in range(120):
        clock.advance(seconds=1)
        await timer.tick()
    assert len(recorder.reminders) == 1

    clock.advance(minutes=3)
    for _ in range(90):
        clock.advance(seconds=1)
        await timer.tick()
    assert recorder.due == [1]


@pytest.mark.asyncio
async def test_repeated_step_updates_do_not_repeat_alerts(timer, recorder, make_step):
    """Test that polling the same schedule again does not re-alert."""
    step = make_step(1, 10)
    for _ in range(5):
        await timer.update_steps([step.model_copy()])

    assert recorder.reminders == [(1, 10)]


@pytest.mark.asyncio
async def test_reschedule_rearms_alerts(timer, recorder, make_step, clock):
    """Test that a step with a new scheduled time can alert again."""
    await timer.update_steps([make_step(1, 10)])
    assert len(recorder.reminders) == 1

    # Same step moved 15 minutes later
    await timer.update_steps([make_step(1, 25)])
    assert len(recorder.reminders) == 1

    clock.advance(minutes=11)
    await timer.tick()
    assert recorder.reminders == [(1, 10), (1, 14)]


@pytest.mark.asyncio
async def test_next_step_is_first_active_by_number(timer, make_step):
    """Test next-step selection skips completed and skipped steps."""
    steps = [
        make_step(4, 40, StepStatus.IN_PROGRESS),
        make_step(2, 20, StepStatus.SKIPPED),
        make_step(3, 30, StepStatus.PENDING),
        make_step(1, 10, StepStatus.COMPLETED),
    ]
    await timer.update_steps(steps)

    assert timer.next_step.step_number == 3
    assert [s.step_number for s in timer.steps] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_no_next_step_when_all_terminal(timer, make_step):
    await timer.update_steps([
        make_step(1, -30, StepStatus.COMPLETED),
        make_step(2, -10, StepStatus.SKIPPED),
    ])

    assert timer.next_step is None
    assert timer.minutes_to_next_step is None
    assert timer.formatted_time_to_next_step == "--:--"
    assert timer.is_overdue is False


@pytest.mark.asyncio
@pytest.mark.parametrize("offset,overdue", [
    (timedelta(0), False),
    (timedelta(minutes=-5), False),
    (timedelta(minutes=-5, seconds=-1), True),
    (timedelta(minutes=-6), True),
    (timedelta(minutes=3), False),
])
async def test_overdue_threshold(timer, clock, offset, overdue):
    """Test overdue is strictly later than five minutes."""
    step = ScheduledStep(step_number=1, title="Bake", scheduled_time=clock.now + offset)
    await timer.update_steps([step])

    assert timer.is_overdue is overdue


@pytest.mark.asyncio
async def test_reminder_window(timer, recorder, make_step, clock):
    """Test the reminder fires on entering (0, 15] minutes and not before."""
    await timer.update_steps([make_step(1, 20)])

    for minutes_left in (19, 18, 17, 16):
        clock.advance(minutes=1)
        await timer.tick()
        assert timer.minutes_to_next_step == minutes_left
        assert recorder.reminders == []

    clock.advance(minutes=1)
    await timer.tick()
    assert timer.minutes_to_next_step == 15
    assert recorder.reminders == [(1, 15)]


@pytest.mark.asyncio
async def test_no_reminder_when_first_seen_inside_due_window(timer, recorder, make_step):
    """Test a step already due only gets the due alert."""
    await timer.update_steps([make_step(1, -1)])

    assert recorder.reminders == []
    assert recorder.due == [1]


@pytest.mark.asyncio
async def test_no_due_alert_in_grace_period(timer, recorder, make_step):
    """Steps three to five minutes late are neither due nor overdue."""
    await timer.update_steps([make_step(1, -4)])

    assert recorder.due == []
    assert timer.is_overdue is False


@pytest.mark.asyncio
async def test_countdown_values_floor(timer, clock):
    step = ScheduledStep(
        step_number=1,
        title="Shape",
        scheduled_time=clock.now - timedelta(milliseconds=500),
    )
    await timer.update_steps([step])

    assert timer.seconds_to_next_step == -1
    assert timer.minutes_to_next_step == -1
    assert timer.formatted_time_to_next_step == "-00:01"


@pytest.mark.asyncio
async def test_formatted_countdown(timer, clock):
    step = ScheduledStep(
        step_number=1,
        title="Shape",
        scheduled_time=clock.now + timedelta(minutes=62, seconds=5),
    )
    await timer.update_steps([step])

    assert timer.seconds_to_next_step == 3725
    assert timer.formatted_time_to_next_step == "1:02:05"


@pytest.mark.asyncio
async def test_step_without_time_has_no_countdown(timer, recorder, make_step):
    await timer.update_steps([make_step(1, None)])

    assert timer.next_step.step_number == 1
    assert timer.minutes_to_next_step is None
    assert timer.formatted_time_to_next_step == "--:--"
    assert recorder.reminders == []
    assert recorder.due == []


@pytest.mark.asyncio
async def test_disabled_timer_fires_nothing(timer, recorder, make_step, clock):
    timer.set_enabled(False)
    await timer.update_steps([make_step(1, 10)])

    clock.advance(minutes=10)
    await timer.tick()

    assert recorder.reminders == []
    assert recorder.due == []


@pytest.mark.asyncio
async def test_callbacks_fire_without_alert_permission(default_gate, recorder, make_step, clock):
    """Test that a missing permission skips alerts but not the callbacks."""
    timer = PizzaTimer(
        notification_gate=default_gate,
        on_step_due=recorder.on_due,
        on_step_reminder=recorder.on_reminder,
        clock=clock,
    )
    timer.set_enabled(True)
    await timer.update_steps([make_step(1, 0)])

    assert recorder.due == [1]
    assert default_gate.delivered == []


@pytest.mark.asyncio
async def test_failing_callback_does_not_break_timer(granted_gate, make_step, clock):
    def explode(step):
        raise ValueError("boom")

    timer = PizzaTimer(notification_gate=granted_gate, on_step_due=explode, clock=clock)
    timer.set_enabled(True)
    await timer.update_steps([make_step(1, 0)])

    assert granted_gate.titles == ["🍕 NOW: Step 1"]
    assert timer.notified_steps.should_fire(make_step(1, 0).identity_key) is False


@pytest.mark.asyncio
async def test_failing_delivery_still_marks_alert_fired(failing_gate, recorder, make_step, clock):
    gate = failing_gate
    timer = PizzaTimer(notification_gate=gate, on_step_due=recorder.on_due, clock=clock)
    timer.set_enabled(True)
    await timer.update_steps([make_step(1, 0)])
    await timer.tick()

    assert recorder.due == [1]
    assert gate.delivered == []


@pytest.mark.asyncio
async def test_snapshot(timer, make_step):
    await timer.update_steps([make_step(1, 10, title="Knead")])
    snapshot = timer.snapshot()

    assert snapshot.enabled is True
    assert snapshot.next_step.title == "Knead"
    assert snapshot.minutes_to_next_step == 10
    assert snapshot.formatted_time_to_next_step == "10:00"
    assert snapshot.notification_permission == "granted"

    data = snapshot.model_dump(by_alias=True)
    assert data["formattedTimeToNextStep"] == "10:00"
    assert data["isOverdue"] is False


@pytest.mark.asyncio
async def test_start_and_stop_drive_tick_loop(granted_gate, clock):
    timer = PizzaTimer(notification_gate=granted_gate, tick_interval_seconds=0.01, clock=clock)

    timer.start()
    assert timer.enabled is True
    await asyncio.sleep(0.03)
    timer.stop()

    assert timer.enabled is False
    assert timer._tick_source.is_running is False


@pytest.mark.asyncio
async def test_tick_source_survives_callback_errors():
    calls = []

    async def callback(now):
        calls.append(now)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    source = TickSource(callback, interval_seconds=0.01)
    source.start()
    source.start()
    await asyncio.sleep(0.05)
    source.stop()

    assert len(calls) >= 2
