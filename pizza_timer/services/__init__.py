"""Service layer for the timer, alerts and backend access."""
from pizza_timer.services.active_pizza_controller import ActivePizzaController
from pizza_timer.services.alert_tracker import FiredAlertStore
from pizza_timer.services.api_client import ActivePizzaClient
from pizza_timer.services.clock import TickSource
from pizza_timer.services.notifications import (
    NotificationGate,
    NotificationPermission,
    SoundPlayer,
    WebhookNotificationGate,
)
from pizza_timer.services.timer_service import PizzaTimer
from pizza_timer.services.toasts import ToastQueue

__all__ = [
    "ActivePizzaController",
    "ActivePizzaClient",
    "FiredAlertStore",
    "NotificationGate",
    "NotificationPermission",
    "PizzaTimer",
    "SoundPlayer",
    "TickSource",
    "ToastQueue",
    "WebhookNotificationGate",
]
