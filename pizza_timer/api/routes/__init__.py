"""API routes."""
from fastapi import APIRouter
from pizza_timer.api.routes import active_pizza, auth, notifications

api_router = APIRouter()

api_router.include_router(
    active_pizza.router,
    prefix="/active-pizza",
    tags=["Active Pizza"]
)

api_router.include_router(
    notifications.router,
    tags=["Notifications"]
)

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth"]
)
