"""Permission-gated desktop alerts and the alert sound."""
import logging
import sys
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, TextIO
from uuid import uuid4

import httpx

from pizza_timer.services.clock import utc_now

logger = logging.getLogger(__name__)


class NotificationPermission(str, Enum):
    """Permission state of the host's alert capability."""

    UNSUPPORTED = "unsupported"
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class Alert:
    """A single alert shown to the user."""

    title: str
    body: str
    icon: str
    created_at: datetime
    auto_close_seconds: int = 30
    tag: str = "pizza-timer"
    id: str = field(default_factory=lambda: uuid4().hex)
    dismissed: bool = False

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.auto_close_seconds)

    def is_visible(self, now: datetime) -> bool:
        """Alerts close themselves after auto_close_seconds."""
        return not self.dismissed and now < self.expires_at

    def dismiss(self) -> None:
        self.dismissed = True

    def click(self, focus: Optional[Callable[[], None]] = None) -> None:
        """Clicking brings the application forward and closes the alert."""
        if focus is not None:
            focus()
        self.dismiss()

    def to_payload(self) -> dict:
        return {
            "alert_id": self.id,
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.icon,
            "tag": self.tag,
            "require_interaction": True,
            "auto_close_seconds": self.auto_close_seconds,
            "created_at": self.created_at.isoformat(),
        }


class NotificationGate(ABC):
    """
    Wraps a permission-gated alert capability.

    Alerts are only attempted once permission is granted; otherwise they
    are skipped silently. Delivery failures are logged and never reach
    the caller, so alerting can not break the countdown.
    """

    def __init__(
        self,
        permission: NotificationPermission = NotificationPermission.DEFAULT,
        auto_close_seconds: int = 30,
        default_icon: str = "/logo192.png",
        history_size: int = 50,
        on_focus: Optional[Callable[[], None]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._permission = permission
        self.auto_close_seconds = auto_close_seconds
        self.default_icon = default_icon
        self.on_focus = on_focus
        self.clock = clock
        self._alerts: deque[Alert] = deque(maxlen=history_size)

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask the host for permission. Returns True when granted."""

    @abstractmethod
    async def _deliver(self, alert: Alert) -> None:
        """Hand an alert to the host. May raise."""

    async def notify(self, title: str, body: str, icon: Optional[str] = None) -> Optional[Alert]:
        """Send an alert if permitted. Returns the alert, or None if skipped or failed."""
        if self._permission != NotificationPermission.GRANTED:
            return None

        alert = Alert(
            title=title,
            body=body,
            icon=icon or self.default_icon,
            created_at=self.clock(),
            auto_close_seconds=self.auto_close_seconds,
        )

        try:
            await self._deliver(alert)
        except Exception as e:
            logger.error(f"Alert error for '{title}': {e}")
            return None

        self._alerts.append(alert)
        return alert

    def visible_alerts(self, now: Optional[datetime] = None) -> List[Alert]:
        """Alerts that are neither dismissed nor expired, newest first."""
        now = now or self.clock()
        return [alert for alert in reversed(self._alerts) if alert.is_visible(now)]

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    def click(self, alert_id: str) -> Optional[Alert]:
        """Handle a click on an alert: focus the application and dismiss it."""
        alert = self.get_alert(alert_id)
        if alert is not None:
            alert.click(self.on_focus)
        return alert


class WebhookNotificationGate(NotificationGate):
    """
    Delivers alerts to a desktop notifier listening on a webhook.

    Without a webhook URL the capability is unsupported. Permission is
    requested by posting a permission_request event: a 2xx answer grants
    it, a 4xx answer denies it.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: float = 10.0,
        permission: NotificationPermission = NotificationPermission.DEFAULT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        if not webhook_url:
            permission = NotificationPermission.UNSUPPORTED
        super().__init__(permission=permission, **kwargs)
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def request_permission(self) -> bool:
        if self._permission == NotificationPermission.UNSUPPORTED:
            return False

        try:
            async with self._client() as client:
                response = await client.post(
                    self.webhook_url,
                    json={"event_type": "permission_request", "tag": "pizza-timer"},
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            logger.warning(f"Permission request to alert webhook failed: {e}")
            return False

        if response.is_success:
            self._permission = NotificationPermission.GRANTED
        elif response.is_client_error:
            self._permission = NotificationPermission.DENIED
        else:
            logger.warning(
                f"Alert webhook answered permission request with HTTP {response.status_code}"
            )
            return False

        logger.info(f"Alert permission is now '{self._permission.value}'")
        return self._permission == NotificationPermission.GRANTED

    async def _deliver(self, alert: Alert) -> None:
        async with self._client() as client:
            response = await client.post(
                self.webhook_url,
                json={"event_type": "alert", **alert.to_payload()},
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()

        logger.info(f"Sent alert '{alert.title}'")


class SoundPlayer:
    """Plays the alert sound as a terminal bell."""

    BELL = "\a"

    def __init__(self, enabled: bool = True, stream: Optional[TextIO] = None):
        self.enabled = enabled
        self.stream = stream

    def play(self) -> None:
        if not self.enabled:
            return

        stream = self.stream or sys.stdout
        try:
            stream.write(self.BELL)
            stream.flush()
        except (OSError, ValueError) as e:
            # Playback problems are not worth surfacing
            logger.debug(f"Could not play alert sound: {e}")
