"""Active pizza API routes: the timer view and user actions."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from pizza_timer.api.deps import get_controller
from pizza_timer.schemas.active_pizza import (
    ActivePizza,
    CompleteStepRequest,
    CreateActivePizzaRequest,
    CreateFromRecipeRequest,
    EnableNotificationsRequest,
    RescheduleRequest,
)
from pizza_timer.schemas.timer import ActionResponse, ActivePizzaView, CancelRequest
from pizza_timer.services.active_pizza_controller import ActivePizzaController
from pizza_timer.utils.exceptions import AuthenticationRequiredError

router = APIRouter()


@router.get(
    "",
    response_model=ActivePizzaView,
    summary="Get the active pizza view",
    description="Cached active pizza with the countdown to the next step, step display states and offered actions.",
    responses={
        401: {"description": "Not logged in"},
        404: {"description": "No active pizza"},
    },
)
async def get_active_pizza(controller: ActivePizzaController = Depends(get_controller)):
    """
    Get the active pizza page.

    The session shown is the last copy confirmed by the backend; it is
    refreshed every 30 seconds and after every successful action.
    """
    return controller.build_view()


@router.post(
    "/refresh",
    response_model=ActivePizzaView,
    summary="Refresh the active pizza",
    description="Fetch the active pizza from the backend now instead of waiting for the next poll.",
)
async def refresh_active_pizza(controller: ActivePizzaController = Depends(get_controller)):
    """Manual refresh; on failure the last known copy is shown with an error toast."""
    await controller.refresh()
    if not controller.client.is_authenticated:
        raise AuthenticationRequiredError()
    return controller.build_view()


@router.get(
    "/history",
    response_model=List[ActivePizza],
    summary="List past pizzas",
)
async def get_history(controller: ActivePizzaController = Depends(get_controller)):
    """All of the user's pizzas, newest first."""
    return await controller.history()


@router.post(
    "/new",
    response_model=ActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start planning a new pizza",
)
async def create_new(
    request: CreateActivePizzaRequest,
    controller: ActivePizzaController = Depends(get_controller),
):
    """
    Plan a new pizza with a basic schedule.

    Example:
    ```json
    {
      "name": "Saturday Neapolitan",
      "pizzaStyle": "NEAPOLITAN",
      "numberOfPizzas": 4,
      "targetBakeTime": "2026-10-24T19:00:00Z",
      "fermentationHours": 24
    }
    ```
    """
    return await controller.create_new(request)


@router.post(
    "/from-recipe/{recipe_id}",
    response_model=ActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start planning a pizza from a recipe",
)
async def create_from_recipe(
    recipe_id: str,
    request: CreateFromRecipeRequest,
    controller: ActivePizzaController = Depends(get_controller),
):
    """Plan a pizza from a saved recipe, counting back from the target bake time."""
    return await controller.create_from_recipe(recipe_id, request.target_bake_time)


@router.post("/start", response_model=ActionResponse, summary="Start the pizza")
async def start_pizza(controller: ActivePizzaController = Depends(get_controller)):
    """PLANNING -> IN_PROGRESS; the first step becomes in progress."""
    return await controller.start_pizza()


@router.post("/pause", response_model=ActionResponse, summary="Pause the pizza")
async def pause_pizza(controller: ActivePizzaController = Depends(get_controller)):
    """IN_PROGRESS -> PAUSED. The countdown stops while paused."""
    return await controller.pause()


@router.post("/resume", response_model=ActionResponse, summary="Resume the pizza")
async def resume_pizza(controller: ActivePizzaController = Depends(get_controller)):
    """PAUSED -> IN_PROGRESS."""
    return await controller.resume()


@router.post(
    "/cancel",
    response_model=ActionResponse,
    summary="Cancel the pizza",
    responses={400: {"description": "Cancellation not confirmed"}},
)
async def cancel_pizza(
    request: Optional[CancelRequest] = None,
    controller: ActivePizzaController = Depends(get_controller),
):
    """
    Cancel the pizza. This is terminal, so it must be confirmed.

    Example:
    ```json
    {"confirm": true}
    ```
    """
    return await controller.cancel(confirmed=bool(request and request.confirm))


@router.post(
    "/steps/{step_number}/complete",
    response_model=ActionResponse,
    summary="Mark a step as done",
)
async def complete_step(
    step_number: int,
    request: Optional[CompleteStepRequest] = None,
    controller: ActivePizzaController = Depends(get_controller),
):
    """
    Complete a pending or in-progress step.

    The backend decides between COMPLETED, COMPLETED_EARLY and
    COMPLETED_LATE unless a status is given.
    """
    completion_status = request.status if request else None
    return await controller.complete_step(step_number, completion_status)


@router.post(
    "/steps/{step_number}/skip",
    response_model=ActionResponse,
    summary="Skip a step",
)
async def skip_step(
    step_number: int,
    controller: ActivePizzaController = Depends(get_controller),
):
    """Skip a pending or in-progress step."""
    return await controller.skip_step(step_number)


@router.post(
    "/reschedule-by-minutes",
    response_model=ActionResponse,
    summary="Shift the schedule",
)
async def reschedule_by_minutes(
    minutes: int = Query(..., ge=-1440, le=1440, description="Signed shift, e.g. -30 or 30"),
    controller: ActivePizzaController = Depends(get_controller),
):
    """Move the target bake time; pending steps move with it and their alerts re-arm."""
    return await controller.reschedule_by_minutes(minutes)


@router.post(
    "/reschedule",
    response_model=ActionResponse,
    summary="Set a new target bake time",
)
async def reschedule(
    request: RescheduleRequest,
    controller: ActivePizzaController = Depends(get_controller),
):
    """Move the target bake time to an absolute time."""
    return await controller.reschedule(request.new_target_bake_time)


@router.post(
    "/notifications/enable",
    response_model=ActionResponse,
    summary="Enable SMS reminders",
)
async def enable_notifications(
    request: EnableNotificationsRequest,
    controller: ActivePizzaController = Depends(get_controller),
):
    """Turn on the backend's SMS channel. Independent of desktop alerts."""
    return await controller.enable_notifications(
        request.phone_number, request.reminder_minutes_before
    )


@router.post(
    "/notifications/disable",
    response_model=ActionResponse,
    summary="Disable SMS reminders",
)
async def disable_notifications(controller: ActivePizzaController = Depends(get_controller)):
    """Turn off the backend's SMS channel."""
    return await controller.disable_notifications()
