"""Login route for the companion service."""
import logging
from fastapi import APIRouter, Depends, Request

from pizza_timer.api.deps import get_client, start_controller
from pizza_timer.config import get_settings
from pizza_timer.schemas.active_pizza import LoginRequest
from pizza_timer.services.api_client import ActivePizzaClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/login",
    summary="Log in to the backend",
    responses={401: {"description": "Invalid email or password"}},
)
async def login(
    request: LoginRequest,
    http_request: Request,
    client: ActivePizzaClient = Depends(get_client),
):
    """
    Log in with the backend account and start tracking the active pizza.

    Example:
    ```json
    {"email": "chef@example.com", "password": "secret"}
    ```
    """
    await client.login(request.email, request.password)
    controller = await start_controller(http_request.app, get_settings())

    return {
        "authenticated": True,
        "email": request.email,
        "hasActivePizza": controller.active_pizza is not None,
    }
