"""
Mock Backend Server - Active Pizza Service Simulator

This server simulates the backend that owns the active pizza: login and
token refresh, schedule generation, and the session/step state machine.

Everything is kept in memory; use it for local development and tests.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4
from fastapi import Depends, FastAPI, Header, Query, Request, Response
from fastapi.responses import JSONResponse

from pizza_timer.schemas.active_pizza import (
    ActivePizza,
    ActivePizzaStatus,
    AuthResponse,
    CompleteStepRequest,
    CreateActivePizzaRequest,
    CreateFromRecipeRequest,
    EnableNotificationsRequest,
    LoginRequest,
    RefreshRequest,
    RescheduleRequest,
    ScheduledStep,
    StepStatus,
    StepType,
)
from pizza_timer.utils.exceptions import (
    ActivePizzaAlreadyExistsError,
    ActivePizzaNotFoundError,
    AuthenticationRequiredError,
    ForbiddenError,
    InvalidTransitionError,
    PizzaTimerException,
    StepNotFoundError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EARLY_BEFORE_MINUTES = 5
LATE_AFTER_MINUTES = 15

ACTIVE_STATUSES = (
    ActivePizzaStatus.PLANNING,
    ActivePizzaStatus.IN_PROGRESS,
    ActivePizzaStatus.PAUSED,
)

STEP_ICONS = {
    StepType.PREPARE_INGREDIENTS: "🥣",
    StepType.MIX_DOUGH: "🌀",
    StepType.KNEAD: "👐",
    StepType.BULK_FERMENTATION: "⏳",
    StepType.DIVIDE_AND_BALL: "⚪",
    StepType.REMOVE_FROM_FRIDGE: "🧊",
    StepType.PREHEAT_OVEN: "🔥",
    StepType.SHAPE: "🍕",
    StepType.BAKE: "🔥",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MockBackendState:
    """In-memory users, tokens, recipes and pizzas."""

    users: Dict[str, dict] = field(default_factory=dict)
    access_tokens: Dict[str, str] = field(default_factory=dict)
    refresh_tokens: Dict[str, str] = field(default_factory=dict)
    recipes: Dict[str, dict] = field(default_factory=dict)
    pizzas: Dict[str, ActivePizza] = field(default_factory=dict)
    clock: Callable[[], datetime] = utc_now

    def add_user(self, email: str, password: str, user_id: Optional[str] = None) -> str:
        user_id = user_id or f"user-{uuid4().hex[:8]}"
        self.users[email] = {"id": user_id, "password": password}
        return user_id

    def issue_tokens(self, user_id: str) -> AuthResponse:
        access_token = f"access-{uuid4().hex}"
        refresh_token = f"refresh-{uuid4().hex}"
        self.access_tokens[access_token] = user_id
        self.refresh_tokens[refresh_token] = user_id
        return AuthResponse(access_token=access_token, refresh_token=refresh_token)

    def expire_access_tokens(self) -> None:
        """Invalidate every access token; refresh tokens keep working."""
        self.access_tokens.clear()


def _seed(state: MockBackendState) -> MockBackendState:
    state.add_user("chef@example.com", "pizza123", user_id="user-chef")
    state.recipes["recipe-neapolitan"] = {
        "id": "recipe-neapolitan",
        "name": "Classic Neapolitan",
        "pizza_style": "NEAPOLITAN",
        "number_of_pizzas": 4,
        "fermentation_method": "COLD_RETARD",
        "total_fermentation_hours": 24,
        "ball_weight": 250,
    }
    state.recipes["recipe-same-day"] = {
        "id": "recipe-same-day",
        "name": "Same Day Margherita",
        "pizza_style": "NEW_YORK",
        "number_of_pizzas": 2,
        "fermentation_method": "ROOM_TEMPERATURE",
        "total_fermentation_hours": 8,
        "ball_weight": 280,
    }
    return state


state = _seed(MockBackendState())


def reset_state(clock: Callable[[], datetime] = utc_now) -> MockBackendState:
    """Replace the in-memory store with a freshly seeded one."""
    global state
    state = _seed(MockBackendState(clock=clock))
    return state


# Schedule generation

def _step(step_type: StepType, title: str, scheduled_time: datetime, duration: int,
          description: Optional[str] = None) -> ScheduledStep:
    return ScheduledStep(
        step_number=1,
        type=step_type,
        title=title,
        description=description,
        scheduled_time=scheduled_time,
        duration_minutes=duration,
        icon=STEP_ICONS.get(step_type),
    )


def generate_basic_schedule(fermentation_hours: int, bake_time: datetime) -> List[ScheduledStep]:
    """Eight steps counted back from the bake time."""
    mix_time = bake_time - timedelta(hours=fermentation_hours)
    steps = [
        _step(StepType.PREPARE_INGREDIENTS, "Prepare ingredients",
              bake_time - timedelta(hours=fermentation_hours + 1), 10),
        _step(StepType.MIX_DOUGH, "Mix the dough", mix_time, 5),
        _step(StepType.KNEAD, "Knead", mix_time + timedelta(minutes=5), 10),
        _step(StepType.BULK_FERMENTATION, "Fermentation",
              mix_time + timedelta(minutes=15), fermentation_hours * 60),
        _step(StepType.DIVIDE_AND_BALL, "Divide and ball", bake_time - timedelta(hours=4), 15),
        _step(StepType.PREHEAT_OVEN, "Preheat the oven", bake_time - timedelta(minutes=45), 30),
        _step(StepType.SHAPE, "Shape", bake_time - timedelta(minutes=15), 10),
        _step(StepType.BAKE, "Bake", bake_time, 2),
    ]
    for number, step in enumerate(steps, start=1):
        step.step_number = number
    return steps


def generate_recipe_schedule(recipe: dict, bake_time: datetime) -> List[ScheduledStep]:
    """Steps counted back from the bake time using the recipe's fermentation."""
    fermentation_hours = recipe.get("total_fermentation_hours") or 24
    bulk_start = bake_time - timedelta(hours=fermentation_hours)
    knead_time = bulk_start - timedelta(minutes=15)
    mix_time = knead_time - timedelta(minutes=10)

    steps = [
        _step(StepType.PREPARE_INGREDIENTS, "Prepare ingredients",
              mix_time - timedelta(minutes=15), 10, "Weigh out all ingredients"),
        _step(StepType.MIX_DOUGH, "Mix ingredients", mix_time, 5,
              "Combine flour, water, yeast and salt"),
        _step(StepType.KNEAD, "Knead the dough", knead_time, 10,
              "Knead until smooth"),
        _step(StepType.BULK_FERMENTATION, "Bulk fermentation", bulk_start,
              fermentation_hours * 60 // 2, "Leave the dough to ferment"),
        _step(StepType.DIVIDE_AND_BALL, "Divide and ball",
              bake_time - timedelta(hours=max(4, fermentation_hours // 3)), 15,
              f"Divide the dough into {recipe.get('ball_weight')}g balls"),
    ]
    if "COLD" in (recipe.get("fermentation_method") or ""):
        steps.append(_step(StepType.REMOVE_FROM_FRIDGE, "Take the dough out of the fridge",
                           bake_time - timedelta(hours=2), 120,
                           "Let the dough reach room temperature"))
    steps.extend([
        _step(StepType.PREHEAT_OVEN, "Preheat the oven", bake_time - timedelta(minutes=45), 30,
              "Heat the oven to baking temperature"),
        _step(StepType.SHAPE, "Shape the pizza", bake_time - timedelta(minutes=15), 10,
              "Stretch the dough"),
        _step(StepType.BAKE, "Bake the pizza", bake_time, 2, "Bake in the hot oven"),
    ])

    for number, step in enumerate(steps, start=1):
        step.step_number = number
    return steps


# Store helpers

def completion_percentage(pizza: ActivePizza) -> int:
    if not pizza.steps:
        return 0
    done = sum(1 for step in pizza.steps if step.status.is_terminal)
    return done * 100 // len(pizza.steps)


def _save(pizza: ActivePizza) -> ActivePizza:
    pizza.completion_percentage = completion_percentage(pizza)
    pizza.last_updated_at = state.clock()
    state.pizzas[pizza.id] = pizza
    return pizza


def _find_active(user_id: str) -> Optional[ActivePizza]:
    for pizza in state.pizzas.values():
        if pizza.user_id == user_id and pizza.status in ACTIVE_STATUSES:
            return pizza
    return None


def _ensure_no_active(user_id: str) -> None:
    existing = _find_active(user_id)
    if existing is not None:
        logger.warning(f"User {user_id} already has active pizza {existing.id}")
        raise ActivePizzaAlreadyExistsError(user_id, existing.id)


def _owned_pizza(active_pizza_id: str, user_id: str) -> ActivePizza:
    pizza = state.pizzas.get(active_pizza_id)
    if pizza is None:
        raise ActivePizzaNotFoundError(active_pizza_id)
    if pizza.user_id != user_id:
        raise ForbiddenError(active_pizza_id)
    return pizza


def _owned_step(pizza: ActivePizza, step_number: int) -> ScheduledStep:
    step = pizza.get_step(step_number)
    if step is None:
        raise StepNotFoundError(step_number)
    return step


def _new_pizza(user_id: str, **fields) -> ActivePizza:
    now = state.clock()
    return ActivePizza(
        id=uuid4().hex,
        user_id=user_id,
        status=ActivePizzaStatus.PLANNING,
        created_at=now,
        last_updated_at=now,
        **fields,
    )


def _shift_schedule(pizza: ActivePizza, new_target_bake_time: datetime) -> ActivePizza:
    shift = new_target_bake_time - pizza.adjusted_bake_time
    pizza.adjusted_bake_time = new_target_bake_time

    for step in pizza.steps:
        if step.status == StepStatus.PENDING and step.scheduled_time is not None:
            step.scheduled_time = step.scheduled_time + shift
            step.notification_sent = False

    logger.info(f"Shifted pizza {pizza.id} by {shift}; bake time is now {new_target_bake_time}")
    return _save(pizza)


app = FastAPI(
    title="Mock Active Pizza Backend",
    description="Simulates the backend that plans and tracks active pizzas",
    version="1.0.0"
)


@app.exception_handler(PizzaTimerException)
async def backend_exception_handler(request: Request, exc: PizzaTimerException):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """Resolve the bearer token to a user id."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationRequiredError("Missing bearer token")
    user_id = state.access_tokens.get(authorization[len("Bearer "):])
    if user_id is None:
        raise AuthenticationRequiredError("Access token expired")
    return user_id


# Auth

@app.post("/api/auth/login", response_model=AuthResponse)
async def login(request: LoginRequest):
    user = state.users.get(request.email)
    if user is None or user["password"] != request.password:
        raise AuthenticationRequiredError("Invalid email or password")
    logger.info(f"User {request.email} logged in")
    return state.issue_tokens(user["id"])


@app.post("/api/auth/refresh", response_model=AuthResponse)
async def refresh(request: RefreshRequest):
    user_id = state.refresh_tokens.pop(request.refresh_token, None)
    if user_id is None:
        raise AuthenticationRequiredError("Refresh token is invalid")
    return state.issue_tokens(user_id)


# Queries

@app.get("/api/active-pizza/current", response_model=ActivePizza)
async def get_current(user_id: str = Depends(current_user_id)):
    """The user's pizza in preparation, or 204 when there is none."""
    pizza = _find_active(user_id)
    if pizza is None:
        return Response(status_code=204)
    return pizza


@app.get("/api/active-pizza/history", response_model=List[ActivePizza])
async def get_history(user_id: str = Depends(current_user_id)):
    pizzas = [pizza for pizza in state.pizzas.values() if pizza.user_id == user_id]
    return sorted(pizzas, key=lambda p: p.created_at, reverse=True)


@app.get("/api/active-pizza/{active_pizza_id}", response_model=ActivePizza)
async def get_by_id(active_pizza_id: str, user_id: str = Depends(current_user_id)):
    return _owned_pizza(active_pizza_id, user_id)


# Creation

@app.post("/api/active-pizza/from-recipe/{recipe_id}", response_model=ActivePizza)
async def create_from_recipe(
    recipe_id: str,
    request: CreateFromRecipeRequest,
    user_id: str = Depends(current_user_id),
):
    recipe = state.recipes.get(recipe_id)
    if recipe is None:
        raise PizzaTimerException(f"Recipe '{recipe_id}' not found", status_code=404)
    _ensure_no_active(user_id)

    pizza = _new_pizza(
        user_id,
        recipe_id=recipe_id,
        name=recipe["name"],
        pizza_style=recipe["pizza_style"],
        number_of_pizzas=recipe["number_of_pizzas"],
        target_bake_time=request.target_bake_time,
        adjusted_bake_time=request.target_bake_time,
        steps=generate_recipe_schedule(recipe, request.target_bake_time),
    )
    logger.info(f"Created pizza {pizza.id} from recipe {recipe_id} with {len(pizza.steps)} steps")
    return _save(pizza)


@app.post("/api/active-pizza/new", response_model=ActivePizza)
async def create_new(request: CreateActivePizzaRequest, user_id: str = Depends(current_user_id)):
    _ensure_no_active(user_id)

    pizza = _new_pizza(
        user_id,
        name=request.name,
        pizza_style=request.pizza_style,
        number_of_pizzas=request.number_of_pizzas,
        target_bake_time=request.target_bake_time,
        adjusted_bake_time=request.target_bake_time,
        steps=generate_basic_schedule(request.fermentation_hours, request.target_bake_time),
    )
    logger.info(f"Created pizza {pizza.id} '{request.name}'")
    return _save(pizza)


# Lifecycle

@app.post("/api/active-pizza/{active_pizza_id}/start", response_model=ActivePizza)
async def start(active_pizza_id: str, user_id: str = Depends(current_user_id)):
    pizza = _owned_pizza(active_pizza_id, user_id)
    if pizza.status != ActivePizzaStatus.PLANNING:
        raise InvalidTransitionError(
            "Only a pizza in PLANNING can be started", pizza.status.value
        )

    pizza.status = ActivePizzaStatus.IN_PROGRESS
    if pizza.steps:
        pizza.steps[0].status = StepStatus.IN_PROGRESS
    logger.info(f"Started pizza {active_pizza_id}")
    return _save(pizza)


@app.post("/api/active-pizza/{active_pizza_id}/pause", response_model=ActivePizza)
async def pause(active_pizza_id: str, user_id: str = Depends(current_user_id)):
    pizza = _owned_pizza(active_pizza_id, user_id)
    pizza.status = ActivePizzaStatus.PAUSED
    logger.info(f"Paused pizza {active_pizza_id}")
    return _save(pizza)


@app.post("/api/active-pizza/{active_pizza_id}/resume", response_model=ActivePizza)
async def resume(active_pizza_id: str, user_id: str = Depends(current_user_id)):
    pizza = _owned_pizza(active_pizza_id, user_id)
    if pizza.status != ActivePizzaStatus.PAUSED:
        raise InvalidTransitionError("Only a paused pizza can be resumed", pizza.status.value)

    pizza.status = ActivePizzaStatus.IN_PROGRESS
    logger.info(f"Resumed pizza {active_pizza_id}")
    return _save(pizza)


@app.post("/api/active-pizza/{active_pizza_id}/cancel", response_model=ActivePizza)
async def cancel(active_pizza_id: str, user_id: str = Depends(current_user_id)):
    pizza = _owned_pizza(active_pizza_id, user_id)
    pizza.status = ActivePizzaStatus.CANCELLED
    logger.info(f"Cancelled pizza {active_pizza_id}")
    return _save(pizza)


# Steps

def infer_completion_status(step: ScheduledStep, now: datetime) -> StepStatus:
    """EARLY more than 5 minutes before the scheduled time, LATE more than 15 after."""
    if step.scheduled_time is None:
        return StepStatus.COMPLETED
    if now < step.scheduled_time - timedelta(minutes=EARLY_BEFORE_MINUTES):
        return StepStatus.COMPLETED_EARLY
    if now > step.scheduled_time + timedelta(minutes=LATE_AFTER_MINUTES):
        return StepStatus.COMPLETED_LATE
    return StepStatus.COMPLETED


@app.post(
    "/api/active-pizza/{active_pizza_id}/steps/{step_number}/complete",
    response_model=ActivePizza,
)
async def complete_step(
    active_pizza_id: str,
    step_number: int,
    request: Optional[CompleteStepRequest] = None,
    user_id: str = Depends(current_user_id),
):
    pizza = _owned_pizza(active_pizza_id, user_id)
    step = _owned_step(pizza, step_number)
    now = state.clock()

    completion_status = request.status if request else None
    step.status = completion_status or infer_completion_status(step, now)
    step.actual_time = now
    logger.info(f"Completed step {step_number} of pizza {active_pizza_id}: {step.status.value}")

    next_step = next((s for s in pizza.steps if s.status == StepStatus.PENDING), None)
    if next_step is not None:
        next_step.status = StepStatus.IN_PROGRESS

    if all(s.status.is_terminal for s in pizza.steps):
        pizza.status = ActivePizzaStatus.COMPLETED
        logger.info(f"Pizza {active_pizza_id} completed")

    return _save(pizza)


@app.post(
    "/api/active-pizza/{active_pizza_id}/steps/{step_number}/skip",
    response_model=ActivePizza,
)
async def skip_step(active_pizza_id: str, step_number: int, user_id: str = Depends(current_user_id)):
    pizza = _owned_pizza(active_pizza_id, user_id)
    step = _owned_step(pizza, step_number)

    step.status = StepStatus.SKIPPED
    step.actual_time = state.clock()
    logger.info(f"Skipped step {step_number} of pizza {active_pizza_id}")
    return _save(pizza)


# Schedule

@app.post("/api/active-pizza/{active_pizza_id}/reschedule", response_model=ActivePizza)
async def reschedule(
    active_pizza_id: str,
    request: RescheduleRequest,
    user_id: str = Depends(current_user_id),
):
    pizza = _owned_pizza(active_pizza_id, user_id)
    return _shift_schedule(pizza, request.new_target_bake_time)


@app.post("/api/active-pizza/{active_pizza_id}/reschedule-by-minutes", response_model=ActivePizza)
async def reschedule_by_minutes(
    active_pizza_id: str,
    minutes: int = Query(...),
    user_id: str = Depends(current_user_id),
):
    pizza = _owned_pizza(active_pizza_id, user_id)
    return _shift_schedule(pizza, pizza.adjusted_bake_time + timedelta(minutes=minutes))


# SMS notifications

@app.post("/api/active-pizza/{active_pizza_id}/notifications/enable", response_model=ActivePizza)
async def enable_notifications(
    active_pizza_id: str,
    request: EnableNotificationsRequest,
    user_id: str = Depends(current_user_id),
):
    pizza = _owned_pizza(active_pizza_id, user_id)
    pizza.sms_notifications_enabled = True
    pizza.notification_phone = request.phone_number
    pizza.reminder_minutes_before = request.reminder_minutes_before or 15
    logger.info(f"Enabled SMS notifications for pizza {active_pizza_id}")
    return _save(pizza)


@app.post("/api/active-pizza/{active_pizza_id}/notifications/disable", response_model=ActivePizza)
async def disable_notifications(active_pizza_id: str, user_id: str = Depends(current_user_id)):
    pizza = _owned_pizza(active_pizza_id, user_id)
    pizza.sms_notifications_enabled = False
    logger.info(f"Disabled SMS notifications for pizza {active_pizza_id}")
    return _save(pizza)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Mock Active Pizza Backend",
        "active_pizzas": len(state.pizzas),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8002)
