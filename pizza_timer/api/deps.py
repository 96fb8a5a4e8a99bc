"""API dependencies and construction of the per-app timer components."""
import logging

from fastapi import FastAPI, Request

from pizza_timer.config import Settings
from pizza_timer.services.active_pizza_controller import ActivePizzaController
from pizza_timer.services.api_client import ActivePizzaClient
from pizza_timer.services.notifications import (
    NotificationGate,
    NotificationPermission,
    SoundPlayer,
    WebhookNotificationGate,
)
from pizza_timer.services.toasts import ToastQueue
from pizza_timer.utils.exceptions import AuthenticationRequiredError

logger = logging.getLogger(__name__)


def build_notification_gate(settings: Settings) -> WebhookNotificationGate:
    """Alert gate from settings; an unknown preset permission falls back to default."""
    try:
        permission = NotificationPermission(settings.NOTIFICATION_PERMISSION)
    except ValueError:
        logger.warning(
            f"Unknown NOTIFICATION_PERMISSION '{settings.NOTIFICATION_PERMISSION}', using 'default'"
        )
        permission = NotificationPermission.DEFAULT

    return WebhookNotificationGate(
        webhook_url=settings.NOTIFICATION_WEBHOOK_URL,
        permission=permission,
        auto_close_seconds=settings.NOTIFICATION_AUTO_CLOSE_SECONDS,
        default_icon=settings.NOTIFICATION_ICON,
    )


def build_controller(
    client: ActivePizzaClient,
    notification_gate: NotificationGate,
    toasts: ToastQueue,
    settings: Settings,
) -> ActivePizzaController:
    return ActivePizzaController(
        client=client,
        notification_gate=notification_gate,
        toasts=toasts,
        sound_player=SoundPlayer(enabled=settings.SOUND_ENABLED),
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
        tick_interval_seconds=settings.TICK_INTERVAL_SECONDS,
        default_reminder_minutes=settings.DEFAULT_REMINDER_MINUTES,
    )


async def start_controller(app: FastAPI, settings: Settings) -> ActivePizzaController:
    """Build and start the controller for the logged-in user, replacing any previous one."""
    previous = getattr(app.state, "controller", None)
    if previous is not None:
        await previous.stop()

    controller = build_controller(
        app.state.client,
        app.state.notification_gate,
        app.state.toasts,
        settings,
    )
    app.state.controller = controller
    await controller.start()
    return controller


def get_client(request: Request) -> ActivePizzaClient:
    return request.app.state.client


def get_notification_gate(request: Request) -> NotificationGate:
    return request.app.state.notification_gate


def get_toasts(request: Request) -> ToastQueue:
    return request.app.state.toasts


def get_controller(request: Request) -> ActivePizzaController:
    """The controller exists only for a logged-in user; otherwise prompt for login."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None or not controller.client.is_authenticated:
        raise AuthenticationRequiredError()
    return controller
