"""Countdown to the next step and once-only reminder/due alerts."""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pizza_timer.schemas.active_pizza import ScheduledStep
from pizza_timer.schemas.timer import TimerSnapshot
from pizza_timer.services.alert_tracker import FiredAlertStore
from pizza_timer.services.clock import TickSource, utc_now
from pizza_timer.services.formatting import format_countdown
from pizza_timer.services.notifications import NotificationGate, SoundPlayer

logger = logging.getLogger(__name__)

# Due alert fires while the step is 0 to 2 minutes late
DUE_WINDOW_START_MINUTES = -2
# Steps later than this are overdue; between -2 and -5 is a grace period
OVERDUE_AFTER_MINUTES = -5


class PizzaTimer:
    """
    Timer for the steps of an active pizza.

    On every tick (and whenever the step list changes) it picks the next
    step, computes the time left and decides whether a reminder or a due
    alert fires. Each alert fires at most once per step identity.

    Disabled timers do not tick and fire nothing, but keep their last
    computed values.
    """

    def __init__(
        self,
        notification_gate: NotificationGate,
        sound_player: Optional[SoundPlayer] = None,
        reminder_minutes_before: int = 15,
        on_step_due: Optional[Callable[[ScheduledStep], None]] = None,
        on_step_reminder: Optional[Callable[[ScheduledStep, int], None]] = None,
        tick_interval_seconds: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notification_gate = notification_gate
        self.sound_player = sound_player or SoundPlayer(enabled=False)
        self.reminder_minutes_before = reminder_minutes_before
        self.on_step_due = on_step_due
        self.on_step_reminder = on_step_reminder
        self.clock = clock

        self.now = clock()
        self.enabled = False
        self._steps: List[ScheduledStep] = []

        self.notified_steps = FiredAlertStore("due")
        self.reminder_sent = FiredAlertStore("reminder")

        self._tick_source = TickSource(self.tick, tick_interval_seconds, clock)

    @property
    def steps(self) -> List[ScheduledStep]:
        return list(self._steps)

    @property
    def next_step(self) -> Optional[ScheduledStep]:
        """First PENDING or IN_PROGRESS step by step number."""
        for step in self._steps:
            if step.status.is_active:
                return step
        return None

    def _delta_to_next_step(self) -> Optional[timedelta]:
        step = self.next_step
        if step is None or step.scheduled_time is None:
            return None
        return step.scheduled_time - self.now

    @property
    def seconds_to_next_step(self) -> Optional[int]:
        delta = self._delta_to_next_step()
        if delta is None:
            return None
        return delta // timedelta(seconds=1)

    @property
    def minutes_to_next_step(self) -> Optional[int]:
        delta = self._delta_to_next_step()
        if delta is None:
            return None
        return delta // timedelta(minutes=1)

    @property
    def formatted_time_to_next_step(self) -> str:
        return format_countdown(self.seconds_to_next_step)

    @property
    def is_overdue(self) -> bool:
        minutes = self.minutes_to_next_step
        return minutes is not None and minutes < OVERDUE_AFTER_MINUTES

    @property
    def notification_permission(self):
        return self.notification_gate.permission

    async def request_notification_permission(self) -> bool:
        try:
            return await self.notification_gate.request_permission()
        except Exception as e:
            logger.warning(f"Alert permission request failed: {e}")
            return False

    def play_sound(self) -> None:
        self.sound_player.play()

    async def update_steps(self, steps: List[ScheduledStep]) -> None:
        """Replace the step list and re-evaluate alerts if the timer is running."""
        self._steps = sorted(steps, key=lambda step: step.step_number)
        if self.enabled:
            await self._check_alerts()

    def set_enabled(self, enabled: bool) -> None:
        """Turn evaluation on or off without touching the tick loop."""
        if enabled and not self.enabled:
            self.now = self.clock()
        self.enabled = enabled

    def start(self) -> None:
        """Enable the timer and start the one-second tick loop."""
        self.set_enabled(True)
        self._tick_source.start()

    def stop(self) -> None:
        """Disable the timer and stop the tick loop."""
        self.set_enabled(False)
        self._tick_source.stop()

    async def tick(self, now: Optional[datetime] = None) -> None:
        """Advance the clock and fire any alert that became due."""
        if not self.enabled:
            return
        self.now = now or self.clock()
        await self._check_alerts()

    async def _check_alerts(self) -> None:
        step = self.next_step
        minutes = self.minutes_to_next_step
        if step is None or minutes is None:
            return

        key = step.identity_key

        if 0 < minutes <= self.reminder_minutes_before and self.reminder_sent.should_fire(key):
            await self._fire_reminder(step, minutes)

        if DUE_WINDOW_START_MINUTES <= minutes <= 0 and self.notified_steps.should_fire(key):
            await self._fire_due(step)

    async def _fire_reminder(self, step: ScheduledStep, minutes: int) -> None:
        logger.info(f"Reminder for step {step.step_number} '{step.title}': {minutes} min left")

        await self.notification_gate.notify(
            f"🍕 In {minutes} min: {step.title}",
            step.description or "Get ready for the next step!",
        )
        self.play_sound()

        if self.on_step_reminder:
            try:
                self.on_step_reminder(step, minutes)
            except Exception as e:
                logger.error(f"Error in step reminder callback: {e}")

    async def _fire_due(self, step: ScheduledStep) -> None:
        logger.info(f"Step {step.step_number} '{step.title}' is due")

        await self.notification_gate.notify(
            f"🍕 NOW: {step.title}",
            step.description or "Time for this step!",
        )
        self.play_sound()

        if self.on_step_due:
            try:
                self.on_step_due(step)
            except Exception as e:
                logger.error(f"Error in step due callback: {e}")

    def snapshot(self) -> TimerSnapshot:
        """Current countdown values for the view."""
        return TimerSnapshot(
            now=self.now,
            enabled=self.enabled,
            next_step=self.next_step,
            minutes_to_next_step=self.minutes_to_next_step,
            seconds_to_next_step=self.seconds_to_next_step,
            formatted_time_to_next_step=self.formatted_time_to_next_step,
            is_overdue=self.is_overdue,
            notification_permission=self.notification_permission.value,
        )
