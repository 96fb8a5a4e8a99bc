"""Controller bridging the backend's active pizza to the timer and user actions."""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from pizza_timer.schemas.active_pizza import (
    ActivePizza,
    ActivePizzaStatus,
    CreateActivePizzaRequest,
    ScheduledStep,
    StepStatus,
)
from pizza_timer.schemas.timer import ActionResponse, ActivePizzaView, StepView, TimerSnapshot
from pizza_timer.services.api_client import ActivePizzaClient
from pizza_timer.services.clock import utc_now
from pizza_timer.services.formatting import format_time_distance
from pizza_timer.services.notifications import NotificationGate, SoundPlayer
from pizza_timer.services.step_display import (
    minutes_until,
    step_color,
    step_display_state,
    step_time_display,
)
from pizza_timer.services.timer_service import PizzaTimer
from pizza_timer.services.toasts import ToastQueue
from pizza_timer.utils.exceptions import (
    ActionNotAvailableError,
    AuthenticationRequiredError,
    ConfirmationRequiredError,
    NoActivePizzaError,
    PizzaTimerException,
)

logger = logging.getLogger(__name__)

SESSION_ACTIONS = {
    ActivePizzaStatus.PLANNING: ["start", "cancel", "reschedule"],
    ActivePizzaStatus.IN_PROGRESS: ["pause", "cancel", "reschedule"],
    ActivePizzaStatus.PAUSED: ["resume", "cancel", "reschedule"],
    ActivePizzaStatus.COMPLETED: [],
    ActivePizzaStatus.CANCELLED: [],
}

STEP_ACTIONS = ["complete_step", "skip_step"]


class ActivePizzaController:
    """
    Keeps a read-only copy of the user's active pizza and drives the timer.

    The copy is refreshed by polling and after every successful action; it
    is never patched locally, so the view only shows confirmed server state.
    Failed actions leave the copy untouched and surface an error toast.

    Only built for an authenticated user.
    """

    def __init__(
        self,
        client: ActivePizzaClient,
        notification_gate: NotificationGate,
        toasts: Optional[ToastQueue] = None,
        sound_player: Optional[SoundPlayer] = None,
        poll_interval_seconds: float = 30.0,
        tick_interval_seconds: float = 1.0,
        default_reminder_minutes: int = 15,
        clock: Callable[[], datetime] = utc_now,
    ):
        if not client.is_authenticated:
            raise AuthenticationRequiredError()

        self.client = client
        self.notification_gate = notification_gate
        self.toasts = toasts or ToastQueue(clock=clock)
        self.sound_player = sound_player
        self.poll_interval_seconds = poll_interval_seconds
        self.tick_interval_seconds = tick_interval_seconds
        self.default_reminder_minutes = default_reminder_minutes
        self.clock = clock

        self.active_pizza: Optional[ActivePizza] = None
        self.timer: Optional[PizzaTimer] = None
        self.last_fetched_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.focused_at: Optional[datetime] = None

        self.is_running = False
        self._torn_down = False
        self._poll_task: Optional[asyncio.Task] = None

        self.notification_gate.on_focus = self.focus

    # Lifecycle

    async def start(self) -> None:
        """Fetch the active pizza and start polling."""
        self.is_running = True
        self._torn_down = False
        # Alert clicks focus whichever controller started last
        self.notification_gate.on_focus = self.focus
        await self.refresh()
        if not self.is_running:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Polling active pizza every {self.poll_interval_seconds:g}s")

    async def stop(self) -> None:
        """Stop polling and ticking. Late responses are discarded."""
        self.is_running = False
        self._torn_down = True
        task, self._poll_task = self._poll_task, None
        # Stopping from inside the poll loop just lets the loop run out
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.notification_gate.on_focus == self.focus:
            self.notification_gate.on_focus = None
        if self.timer is not None:
            self.timer.stop()
        logger.info("Active pizza controller stopped")

    async def _poll_loop(self) -> None:
        while self.is_running:
            await asyncio.sleep(self.poll_interval_seconds)
            if not self.is_running:
                break
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Error polling active pizza: {e}")

    def focus(self) -> None:
        """Bring the active pizza view forward (alert clicked)."""
        self.focused_at = self.clock()
        logger.info("Active pizza view focused from alert")

    # Fetching

    async def refresh(self) -> Optional[ActivePizza]:
        """
        Re-fetch the active pizza.

        On failure an error toast is shown and the last known copy stays.
        Losing the login stops polling and ticking until the user logs in again.
        """
        try:
            active_pizza = await self.client.get_current()
        except PizzaTimerException as e:
            if self._torn_down:
                logger.debug(f"Discarding failed fetch after teardown: {e.message}")
                return self.active_pizza
            self.last_error = e.message
            self.toasts.error(e.message)
            if isinstance(e, AuthenticationRequiredError):
                logger.warning("Login lost, stopping active pizza controller")
                await self.stop()
            return self.active_pizza

        if self._torn_down:
            logger.debug("Discarding active pizza fetched after teardown")
            return self.active_pizza

        self.active_pizza = active_pizza
        self.last_fetched_at = self.clock()
        self.last_error = None
        await self._sync_timer()
        return active_pizza

    async def invalidate(self) -> Optional[ActivePizza]:
        """Drop the cached copy's authority and fetch a fresh one."""
        return await self.refresh()

    def _build_timer(self) -> PizzaTimer:
        return PizzaTimer(
            notification_gate=self.notification_gate,
            sound_player=self.sound_player,
            reminder_minutes_before=self.default_reminder_minutes,
            on_step_due=self._on_step_due,
            on_step_reminder=self._on_step_reminder,
            tick_interval_seconds=self.tick_interval_seconds,
            clock=self.clock,
        )

    async def _sync_timer(self) -> None:
        active_pizza = self.active_pizza
        if active_pizza is None:
            if self.timer is not None:
                self.timer.stop()
            return

        # One timer per controller so fired alerts survive pause/resume
        if self.timer is None:
            self.timer = self._build_timer()

        self.timer.reminder_minutes_before = (
            active_pizza.reminder_minutes_before or self.default_reminder_minutes
        )

        if active_pizza.status == ActivePizzaStatus.IN_PROGRESS:
            if self.is_running:
                self.timer.start()
            else:
                self.timer.set_enabled(True)
        else:
            self.timer.stop()

        await self.timer.update_steps(active_pizza.steps)

    def _on_step_due(self, step: ScheduledStep) -> None:
        self.toasts.success(f"Time for: {step.title}!")

    def _on_step_reminder(self, step: ScheduledStep, minutes: int) -> None:
        self.toasts.info(f"In {minutes} min: {step.title}", icon="⏰")

    # Offered actions

    def _require_active_pizza(self) -> ActivePizza:
        if self.active_pizza is None:
            raise NoActivePizzaError()
        return self.active_pizza

    def available_actions(self) -> List[str]:
        """Session-level actions offered for the displayed status."""
        if self.active_pizza is None:
            return []
        return list(SESSION_ACTIONS[self.active_pizza.status])

    @staticmethod
    def step_actions(step: ScheduledStep) -> List[str]:
        """Complete and skip are offered only while the step is active."""
        return list(STEP_ACTIONS) if step.status.is_active else []

    def _require_action(self, action: str) -> ActivePizza:
        active_pizza = self._require_active_pizza()
        if action not in SESSION_ACTIONS[active_pizza.status]:
            raise ActionNotAvailableError(action, active_pizza.status.value)
        return active_pizza

    def _require_step_action(self, action: str, step_number: int) -> ActivePizza:
        active_pizza = self._require_active_pizza()
        step = active_pizza.get_step(step_number)
        if step is None or action not in self.step_actions(step):
            current = step.status.value if step else "MISSING"
            raise ActionNotAvailableError(action, current, step_number=step_number)
        return active_pizza

    async def _dispatch(
        self,
        action: str,
        success_message: str,
        call: Callable[[], Awaitable[object]],
    ) -> ActionResponse:
        """
        Send a mutation and refetch on success.

        The refetch happens only after the mutation succeeded; a failure
        shows an error toast, keeps the cached copy and re-raises.
        """
        try:
            await call()
        except PizzaTimerException as e:
            self.toasts.error(e.message)
            logger.warning(f"Action '{action}' failed: {e.message}")
            raise

        self.toasts.success(success_message)
        await self.invalidate()
        return ActionResponse(
            action=action,
            success=True,
            message=success_message,
            active_pizza=self.active_pizza,
        )

    # Session transitions

    async def start_pizza(self) -> ActionResponse:
        active_pizza = self._require_action("start")
        return await self._dispatch(
            "start", "Pizza started!", lambda: self.client.start(active_pizza.id)
        )

    async def pause(self) -> ActionResponse:
        active_pizza = self._require_action("pause")
        return await self._dispatch(
            "pause", "Pizza paused", lambda: self.client.pause(active_pizza.id)
        )

    async def resume(self) -> ActionResponse:
        active_pizza = self._require_action("resume")
        return await self._dispatch(
            "resume", "Pizza resumed", lambda: self.client.resume(active_pizza.id)
        )

    async def cancel(self, confirmed: bool) -> ActionResponse:
        """Cancel is terminal, so it is never dispatched without confirmation."""
        active_pizza = self._require_action("cancel")
        if not confirmed:
            raise ConfirmationRequiredError("cancel")
        return await self._dispatch(
            "cancel", "Pizza cancelled", lambda: self.client.cancel(active_pizza.id)
        )

    # Step transitions

    async def complete_step(
        self,
        step_number: int,
        status: Optional[StepStatus] = None,
    ) -> ActionResponse:
        active_pizza = self._require_step_action("complete_step", step_number)
        return await self._dispatch(
            "complete_step",
            "Step completed!",
            lambda: self.client.complete_step(active_pizza.id, step_number, status),
        )

    async def skip_step(self, step_number: int) -> ActionResponse:
        active_pizza = self._require_step_action("skip_step", step_number)
        return await self._dispatch(
            "skip_step",
            "Step skipped",
            lambda: self.client.skip_step(active_pizza.id, step_number),
        )

    # Schedule

    async def reschedule_by_minutes(self, minutes: int) -> ActionResponse:
        """Shift the target bake time; the backend recomputes every step time."""
        active_pizza = self._require_action("reschedule")
        return await self._dispatch(
            "reschedule",
            "Schedule shifted",
            lambda: self.client.reschedule_by_minutes(active_pizza.id, minutes),
        )

    async def reschedule(self, new_target_bake_time: datetime) -> ActionResponse:
        active_pizza = self._require_action("reschedule")
        return await self._dispatch(
            "reschedule",
            "Schedule shifted",
            lambda: self.client.reschedule(active_pizza.id, new_target_bake_time),
        )

    # SMS notifications

    async def enable_notifications(
        self,
        phone_number: str,
        reminder_minutes_before: Optional[int] = None,
    ) -> ActionResponse:
        active_pizza = self._require_active_pizza()
        return await self._dispatch(
            "enable_notifications",
            "SMS notifications enabled",
            lambda: self.client.enable_notifications(
                active_pizza.id, phone_number, reminder_minutes_before
            ),
        )

    async def disable_notifications(self) -> ActionResponse:
        active_pizza = self._require_active_pizza()
        return await self._dispatch(
            "disable_notifications",
            "SMS notifications disabled",
            lambda: self.client.disable_notifications(active_pizza.id),
        )

    # Creating and browsing

    async def create_new(self, request: CreateActivePizzaRequest) -> ActionResponse:
        return await self._dispatch(
            "create_new", "Active pizza created", lambda: self.client.create_new(request)
        )

    async def create_from_recipe(self, recipe_id: str, target_bake_time: datetime) -> ActionResponse:
        return await self._dispatch(
            "create_from_recipe",
            "Active pizza created from recipe",
            lambda: self.client.create_from_recipe(recipe_id, target_bake_time),
        )

    async def history(self) -> List[ActivePizza]:
        try:
            return await self.client.get_history()
        except PizzaTimerException as e:
            self.toasts.error(e.message)
            raise

    # Alerts

    async def request_notification_permission(self) -> bool:
        if self.timer is not None:
            return await self.timer.request_notification_permission()
        try:
            return await self.notification_gate.request_permission()
        except Exception as e:
            logger.warning(f"Alert permission request failed: {e}")
            return False

    # View

    def timer_snapshot(self) -> TimerSnapshot:
        if self.timer is not None:
            return self.timer.snapshot()
        return TimerSnapshot(
            now=self.clock(),
            enabled=False,
            notification_permission=self.notification_gate.permission.value,
        )

    def build_view(self) -> ActivePizzaView:
        """Assemble the page: session, countdown, per-step display and actions."""
        active_pizza = self._require_active_pizza()
        timer = self.timer_snapshot()
        now = self.clock()

        steps = [
            StepView(
                step=step,
                display_state=step_display_state(step),
                color=step_color(step, now),
                time_display=step_time_display(step, now),
                actions=self.step_actions(step),
            )
            for step in sorted(active_pizza.steps, key=lambda s: s.step_number)
        ]

        return ActivePizzaView(
            active_pizza=active_pizza,
            timer=timer,
            steps=steps,
            actions=self.available_actions(),
            status_name=active_pizza.status.display_name,
            time_to_bake=format_time_distance(
                minutes_until(active_pizza.adjusted_bake_time, now)
            ),
        )
