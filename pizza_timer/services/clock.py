"""Wall clock and the one-second tick loop."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class TickSource:
    """
    Awaits a callback with the current time once per interval.

    The callback is awaited before the next sleep, so ticks never overlap.
    """

    def __init__(
        self,
        callback: Callable[[datetime], Awaitable[None]],
        interval_seconds: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start ticking. Calling start on a running source does nothing."""
        if self._task is not None and not self._task.done():
            return
        self.is_running = True
        self._task = asyncio.create_task(self._run())
        logger.debug("Tick source started")

    def stop(self) -> None:
        """Stop ticking and cancel the loop task."""
        self.is_running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Tick source stopped")

    async def _run(self) -> None:
        while self.is_running:
            try:
                await self.callback(self.clock())
            except Exception as e:
                logger.error(f"Error in tick callback: {e}")

            await asyncio.sleep(self.interval_seconds)
