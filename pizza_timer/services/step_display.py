"""Display state, color and time label of steps in the schedule list."""
from datetime import datetime
from typing import Optional

from pizza_timer.schemas.active_pizza import ScheduledStep, StepStatus
from pizza_timer.services.formatting import format_time_distance

STEP_DISPLAY_STATES = {
    StepStatus.PENDING: "pending",
    StepStatus.IN_PROGRESS: "active",
    StepStatus.COMPLETED: "completed",
    StepStatus.COMPLETED_EARLY: "completed",
    StepStatus.COMPLETED_LATE: "completed",
    StepStatus.SKIPPED: "skipped",
}

STATE_COLORS = {
    "completed": "success",
    "active": "primary",
    "skipped": "default",
}

# A pending step this late (minutes) is shown as an error rather than a warning
LATE_ERROR_MINUTES = -10
# Within this many minutes after its time a step still reads "now!"
NOW_WINDOW_MINUTES = -5


def minutes_until(scheduled_time: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole minutes from now to the scheduled time, truncated toward zero."""
    if scheduled_time is None:
        return None
    return int((scheduled_time - now).total_seconds() / 60)


def step_display_state(step: ScheduledStep) -> str:
    return STEP_DISPLAY_STATES[step.status]


def step_color(step: ScheduledStep, now: datetime) -> str:
    """Color of the step chip; pending steps turn warning, then error, when late."""
    state = step_display_state(step)
    if state in STATE_COLORS:
        return STATE_COLORS[state]

    diff = minutes_until(step.scheduled_time, now)
    if diff is not None:
        if diff < LATE_ERROR_MINUTES:
            return "error"
        if diff < 0:
            return "warning"
    return "default"


def step_time_display(step: ScheduledStep, now: datetime) -> str:
    diff = minutes_until(step.scheduled_time, now)
    if diff is None:
        return ""
    if diff > 0:
        return format_time_distance(diff)
    if diff > NOW_WINDOW_MINUTES:
        return "now!"
    return f"{abs(diff)} min ago"
