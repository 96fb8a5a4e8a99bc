"""Pydantic schemas for the timer view served to the user."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from pizza_timer.schemas.active_pizza import ActivePizza, CamelModel, ScheduledStep


class TimerSnapshot(CamelModel):
    """State of the countdown at one tick."""

    now: datetime
    enabled: bool
    next_step: Optional[ScheduledStep] = None
    minutes_to_next_step: Optional[int] = None
    seconds_to_next_step: Optional[int] = None
    formatted_time_to_next_step: str = "--:--"
    is_overdue: bool = False
    notification_permission: str = "default"


class StepView(CamelModel):
    """A step with its display state for the schedule list."""

    step: ScheduledStep
    display_state: str
    color: str
    time_display: str
    actions: List[str] = []


class ActivePizzaView(CamelModel):
    """Everything needed to render the active pizza page."""

    active_pizza: ActivePizza
    timer: TimerSnapshot
    steps: List[StepView]
    actions: List[str]
    status_name: str
    time_to_bake: str


class ToastResponse(CamelModel):
    """A transient notification."""

    id: str
    level: str
    message: str
    icon: Optional[str] = None
    created_at: datetime


class AlertResponse(CamelModel):
    """An alert sent through the notification gate."""

    id: str
    title: str
    body: str
    icon: str
    tag: str
    created_at: datetime
    expires_at: datetime
    dismissed: bool


class PermissionResponse(CamelModel):
    """Alert permission state."""

    permission: str
    granted: bool


class CancelRequest(BaseModel):
    """Cancelling is terminal and needs an explicit confirmation."""

    confirm: bool = Field(False, description="Must be true to cancel the pizza")


class ActionResponse(CamelModel):
    """Outcome of a user action on the active pizza."""

    action: str
    success: bool
    message: str
    active_pizza: Optional[ActivePizza] = None
