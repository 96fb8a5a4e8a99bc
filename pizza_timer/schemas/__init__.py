"""Pydantic schemas for request/response validation."""
from pizza_timer.schemas.active_pizza import (
    ActivePizza,
    ActivePizzaStatus,
    CreateActivePizzaRequest,
    CreateFromRecipeRequest,
    EnableNotificationsRequest,
    RescheduleRequest,
    ScheduledStep,
    StepStatus,
    StepType,
)
from pizza_timer.schemas.timer import (
    ActionResponse,
    ActivePizzaView,
    TimerSnapshot,
)

__all__ = [
    # Active pizza schemas
    "ActivePizza",
    "ActivePizzaStatus",
    "CreateActivePizzaRequest",
    "CreateFromRecipeRequest",
    "EnableNotificationsRequest",
    "RescheduleRequest",
    "ScheduledStep",
    "StepStatus",
    "StepType",
    # Timer schemas
    "ActionResponse",
    "ActivePizzaView",
    "TimerSnapshot",
]
