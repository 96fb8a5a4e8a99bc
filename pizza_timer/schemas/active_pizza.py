"""Pydantic schemas for the active pizza and its scheduled steps."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class StepStatus(str, Enum):
    """Status of a single scheduled step."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    COMPLETED_EARLY = "COMPLETED_EARLY"
    COMPLETED_LATE = "COMPLETED_LATE"
    SKIPPED = "SKIPPED"

    @property
    def is_active(self) -> bool:
        """PENDING and IN_PROGRESS steps can still be worked on."""
        return self in (StepStatus.PENDING, StepStatus.IN_PROGRESS)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active

    @property
    def display_name(self) -> str:
        return _STEP_STATUS_NAMES[self]


_STEP_STATUS_NAMES = {
    StepStatus.PENDING: "Pending",
    StepStatus.IN_PROGRESS: "In progress",
    StepStatus.COMPLETED: "Completed",
    StepStatus.COMPLETED_EARLY: "Completed early",
    StepStatus.COMPLETED_LATE: "Completed late",
    StepStatus.SKIPPED: "Skipped",
}


class ActivePizzaStatus(str, Enum):
    """Status of the whole active pizza session."""

    PLANNING = "PLANNING"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (ActivePizzaStatus.COMPLETED, ActivePizzaStatus.CANCELLED)

    @property
    def display_name(self) -> str:
        return _PIZZA_STATUS_NAMES[self]


_PIZZA_STATUS_NAMES = {
    ActivePizzaStatus.PLANNING: "Planning",
    ActivePizzaStatus.IN_PROGRESS: "In progress",
    ActivePizzaStatus.PAUSED: "Paused",
    ActivePizzaStatus.COMPLETED: "Completed",
    ActivePizzaStatus.CANCELLED: "Cancelled",
}


class StepType(str, Enum):
    """Kind of work a step represents."""

    PREPARE_INGREDIENTS = "PREPARE_INGREDIENTS"
    MIX_DOUGH = "MIX_DOUGH"
    AUTOLYSE = "AUTOLYSE"
    KNEAD = "KNEAD"
    BULK_FERMENTATION = "BULK_FERMENTATION"
    FOLD = "FOLD"
    DIVIDE_AND_BALL = "DIVIDE_AND_BALL"
    COLD_PROOF = "COLD_PROOF"
    ROOM_TEMP_PROOF = "ROOM_TEMP_PROOF"
    REMOVE_FROM_FRIDGE = "REMOVE_FROM_FRIDGE"
    WARM_UP = "WARM_UP"
    PREHEAT_OVEN = "PREHEAT_OVEN"
    SHAPE = "SHAPE"
    TOP = "TOP"
    BAKE = "BAKE"
    REST = "REST"
    SERVE = "SERVE"
    CUSTOM = "CUSTOM"

    @classmethod
    def _missing_(cls, value):
        # Step types added on the backend later are shown as custom steps
        return cls.CUSTOM

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").capitalize()


class CamelModel(BaseModel):
    """Base schema speaking the backend's camelCase JSON."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("*", mode="after")
    @classmethod
    def assume_utc(cls, v):
        """Backend timestamps without an offset are UTC."""
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ScheduledStep(CamelModel):
    """One unit of the fermentation/bake plan."""

    step_number: int = Field(..., ge=1, description="Canonical ordering key, unique per schedule")
    type: StepType = StepType.CUSTOM
    title: str
    description: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    actual_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    temperature: Optional[float] = None
    status: StepStatus = StepStatus.PENDING
    notification_sent: bool = False
    note: Optional[str] = None
    icon: Optional[str] = None

    @property
    def identity_key(self) -> str:
        """Step number plus scheduled time; a reschedule yields a new key."""
        scheduled = self.scheduled_time.isoformat() if self.scheduled_time else None
        return f"{self.step_number}-{scheduled}"


class ActivePizza(CamelModel):
    """The active pizza session as owned by the backend."""

    id: str
    user_id: str
    recipe_id: Optional[str] = None
    name: str
    pizza_style: Optional[str] = None
    number_of_pizzas: Optional[int] = None
    target_bake_time: datetime
    adjusted_bake_time: datetime
    steps: List[ScheduledStep] = []
    status: ActivePizzaStatus = ActivePizzaStatus.PLANNING
    notes: Optional[str] = None
    sms_notifications_enabled: bool = False
    notification_phone: Optional[str] = None
    reminder_minutes_before: Optional[int] = 15
    completion_percentage: int = 0
    created_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None

    def get_step(self, step_number: int) -> Optional[ScheduledStep]:
        """Get a step by its number."""
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None


class CreateActivePizzaRequest(CamelModel):
    """Schema for starting a new pizza without a saved recipe."""

    name: str = Field(..., min_length=1, max_length=100)
    pizza_style: str = Field(..., min_length=1)
    number_of_pizzas: int = Field(..., ge=1, le=100)
    target_bake_time: datetime
    fermentation_method: Optional[str] = None
    fermentation_hours: int = Field(..., ge=1, le=168)


class CreateFromRecipeRequest(CamelModel):
    """Schema for starting a pizza from a saved recipe."""

    target_bake_time: datetime


class CompleteStepRequest(CamelModel):
    """Schema for completing a step; the backend infers the status when omitted."""

    status: Optional[StepStatus] = None

    @field_validator("status")
    @classmethod
    def validate_completion_status(cls, v: Optional[StepStatus]) -> Optional[StepStatus]:
        """Only completion statuses can be requested."""
        if v is not None and v not in (
            StepStatus.COMPLETED,
            StepStatus.COMPLETED_EARLY,
            StepStatus.COMPLETED_LATE,
        ):
            raise ValueError(f"Status {v.value} is not a completion status")
        return v


class RescheduleRequest(CamelModel):
    """Schema for moving the target bake time."""

    new_target_bake_time: datetime


class EnableNotificationsRequest(CamelModel):
    """Schema for turning on SMS reminders."""

    phone_number: str = Field(..., min_length=6, max_length=20)
    reminder_minutes_before: Optional[int] = Field(15, ge=1, le=120)


class LoginRequest(CamelModel):
    """Schema for logging in to the backend."""

    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    """Schema for refreshing an access token."""

    refresh_token: str


class AuthResponse(CamelModel):
    """Tokens returned by the backend's auth endpoints."""

    access_token: str
    refresh_token: Optional[str] = None
