"""Short-lived user-facing messages (success, info and error toasts)."""
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import uuid4

from pizza_timer.services.clock import utc_now

logger = logging.getLogger(__name__)

TOAST_DURATIONS_SECONDS = {
    "success": 2,
    "info": 4,
    "error": 4,
}


@dataclass
class Toast:
    level: str
    message: str
    created_at: datetime
    icon: Optional[str] = None
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=TOAST_DURATIONS_SECONDS[self.level])


class ToastQueue:
    """Bounded history of toasts; only unexpired ones are visible."""

    def __init__(self, history_size: int = 50, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self._toasts: deque[Toast] = deque(maxlen=history_size)

    def push(self, level: str, message: str, icon: Optional[str] = None) -> Toast:
        toast = Toast(level=level, message=message, created_at=self.clock(), icon=icon)
        self._toasts.append(toast)
        log = logger.warning if level == "error" else logger.info
        log(f"Toast [{level}]: {message}")
        return toast

    def success(self, message: str) -> Toast:
        return self.push("success", message)

    def info(self, message: str, icon: Optional[str] = None) -> Toast:
        return self.push("info", message, icon)

    def error(self, message: str) -> Toast:
        return self.push("error", message)

    def visible(self, now: Optional[datetime] = None) -> List[Toast]:
        now = now or self.clock()
        return [toast for toast in reversed(self._toasts) if now < toast.expires_at]

    def history(self) -> List[Toast]:
        return list(reversed(self._toasts))
