"""Desktop alert and toast API routes."""
from typing import List
from fastapi import APIRouter, Depends

from pizza_timer.api.deps import get_notification_gate, get_toasts
from pizza_timer.schemas.timer import AlertResponse, PermissionResponse, ToastResponse
from pizza_timer.services.notifications import Alert, NotificationGate, NotificationPermission
from pizza_timer.services.toasts import ToastQueue
from pizza_timer.utils.exceptions import AlertNotFoundError

router = APIRouter()


def _permission_response(gate: NotificationGate) -> PermissionResponse:
    return PermissionResponse(
        permission=gate.permission.value,
        granted=gate.permission == NotificationPermission.GRANTED,
    )


def _alert_response(alert: Alert) -> AlertResponse:
    return AlertResponse(
        id=alert.id,
        title=alert.title,
        body=alert.body,
        icon=alert.icon,
        tag=alert.tag,
        created_at=alert.created_at,
        expires_at=alert.expires_at,
        dismissed=alert.dismissed,
    )


@router.get(
    "/notifications/permission",
    response_model=PermissionResponse,
    summary="Get desktop alert permission",
)
async def get_permission(gate: NotificationGate = Depends(get_notification_gate)):
    """One of unsupported, default, granted or denied."""
    return _permission_response(gate)


@router.post(
    "/notifications/permission",
    response_model=PermissionResponse,
    summary="Request desktop alert permission",
)
async def request_permission(gate: NotificationGate = Depends(get_notification_gate)):
    """
    Ask the desktop notifier for permission.

    Unsupported hosts stay unsupported; a refusal leaves alerts off
    without affecting the countdown.
    """
    await gate.request_permission()
    return _permission_response(gate)


@router.get(
    "/notifications",
    response_model=List[AlertResponse],
    summary="List visible alerts",
)
async def list_alerts(gate: NotificationGate = Depends(get_notification_gate)):
    """Alerts not yet dismissed and younger than their auto-close time."""
    return [_alert_response(alert) for alert in gate.visible_alerts()]


@router.post(
    "/notifications/{alert_id}/click",
    response_model=AlertResponse,
    summary="Click an alert",
    responses={404: {"description": "Unknown alert"}},
)
async def click_alert(alert_id: str, gate: NotificationGate = Depends(get_notification_gate)):
    """Bring the active pizza view forward and dismiss the alert."""
    alert = gate.click(alert_id)
    if alert is None:
        raise AlertNotFoundError(alert_id)
    return _alert_response(alert)


@router.get(
    "/toasts",
    response_model=List[ToastResponse],
    summary="List visible toasts",
)
async def list_toasts(toasts: ToastQueue = Depends(get_toasts)):
    """Success, info and error messages from the last few seconds."""
    return [
        ToastResponse(
            id=toast.id,
            level=toast.level,
            message=toast.message,
            icon=toast.icon,
            created_at=toast.created_at,
        )
        for toast in toasts.visible()
    ]
