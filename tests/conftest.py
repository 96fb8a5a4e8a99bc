"""Test fixtures and configuration."""
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from mock_backend import server as backend_server
from mock_webhook import server as webhook_server
from pizza_timer.main import app
from pizza_timer.schemas.active_pizza import ScheduledStep, StepStatus
from pizza_timer.services.active_pizza_controller import ActivePizzaController
from pizza_timer.services.api_client import ActivePizzaClient
from pizza_timer.services.notifications import Alert, NotificationGate, NotificationPermission
from pizza_timer.services.toasts import ToastQueue

BACKEND_URL = "http://backend"
CHEF_EMAIL = "chef@example.com"
CHEF_PASSWORD = "pizza123"


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingGate(NotificationGate):
    """Notification gate that keeps delivered alerts in memory."""

    def __init__(self, grant: bool = True, fail: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.grant = grant
        self.fail = fail
        self.delivered: List[Alert] = []
        self.permission_requests = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        self._permission = (
            NotificationPermission.GRANTED if self.grant else NotificationPermission.DENIED
        )
        return self.grant

    async def _deliver(self, alert: Alert) -> None:
        if self.fail:
            raise RuntimeError("notifier crashed")
        self.delivered.append(alert)

    @property
    def titles(self) -> List[str]:
        return [alert.title for alert in self.delivered]


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at a Saturday noon, advanced by the tests."""
    return FakeClock(datetime(2026, 10, 24, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def granted_gate(clock) -> RecordingGate:
    return RecordingGate(permission=NotificationPermission.GRANTED, clock=clock)


@pytest.fixture
def default_gate(clock) -> RecordingGate:
    return RecordingGate(permission=NotificationPermission.DEFAULT, clock=clock)


@pytest.fixture
def make_step(clock):
    """Factory for a step scheduled relative to the fake clock."""

    def _make_step(
        step_number: int,
        minutes_from_now: Optional[float] = None,
        status: StepStatus = StepStatus.PENDING,
        title: Optional[str] = None,
    ) -> ScheduledStep:
        scheduled_time = None
        if minutes_from_now is not None:
            scheduled_time = clock.now + timedelta(minutes=minutes_from_now)
        return ScheduledStep(
            step_number=step_number,
            title=title or f"Step {step_number}",
            scheduled_time=scheduled_time,
            status=status,
        )

    return _make_step


@pytest.fixture
def backend(clock) -> backend_server.MockBackendState:
    """Fresh in-memory backend sharing the fake clock."""
    return backend_server.reset_state(clock=clock)


@pytest.fixture
def backend_transport(backend) -> ASGITransport:
    return ASGITransport(app=backend_server.app)


@pytest_asyncio.fixture
async def api_client(backend_transport) -> AsyncGenerator[ActivePizzaClient, None]:
    """Backend client logged in as the seeded chef."""
    client = ActivePizzaClient(base_url=BACKEND_URL, transport=backend_transport)
    await client.login(CHEF_EMAIL, CHEF_PASSWORD)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def anonymous_client(backend_transport) -> AsyncGenerator[ActivePizzaClient, None]:
    client = ActivePizzaClient(base_url=BACKEND_URL, transport=backend_transport)
    yield client
    await client.close()


@pytest.fixture
def toasts(clock) -> ToastQueue:
    return ToastQueue(clock=clock)


@pytest_asyncio.fixture
async def controller(api_client, granted_gate, toasts, clock) -> AsyncGenerator[ActivePizzaController, None]:
    """Controller that is refreshed by hand instead of polling."""
    controller = ActivePizzaController(
        client=api_client,
        notification_gate=granted_gate,
        toasts=toasts,
        clock=clock,
    )
    yield controller
    await controller.stop()


@pytest.fixture
def webhook_transport() -> ASGITransport:
    """Mock desktop notifier with a clean alert log."""
    webhook_server.received_alerts.clear()
    webhook_server.notifier_settings["grant_permission"] = True
    return ASGITransport(app=webhook_server.app)


@pytest_asyncio.fixture
async def app_client(anonymous_client, default_gate, toasts) -> AsyncGenerator[AsyncClient, None]:
    """Client for the local service with app state set up by hand."""
    app.state.client = anonymous_client
    app.state.notification_gate = default_gate
    app.state.toasts = toasts
    app.state.controller = None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    if app.state.controller is not None:
        await app.state.controller.stop()
    app.state.controller = None


@pytest_asyncio.fixture
async def logged_in_app_client(app_client, api_client, default_gate, toasts, clock) -> AsyncClient:
    """Local service client with a logged-in, manually refreshed controller."""
    controller = ActivePizzaController(
        client=api_client,
        notification_gate=default_gate,
        toasts=toasts,
        clock=clock,
    )
    await controller.refresh()
    app.state.controller = controller
    return app_client


@pytest.fixture
def bake_time_for_first_step(clock):
    """Bake time whose basic schedule puts step 1 the given minutes ahead."""

    def _bake_time(fermentation_hours: int, minutes_ahead: int) -> datetime:
        return clock.now + timedelta(hours=fermentation_hours + 1, minutes=minutes_ahead)

    return _bake_time


@pytest.fixture
def new_pizza_request(bake_time_for_first_step):
    """Basic schedule request with step 1 ten minutes from now."""
    return {
        "name": "Saturday Neapolitan",
        "pizzaStyle": "NEAPOLITAN",
        "numberOfPizzas": 4,
        "targetBakeTime": bake_time_for_first_step(24, 10).isoformat(),
        "fermentationHours": 24,
    }


@pytest.fixture
def failing_gate(clock) -> RecordingGate:
    """Granted gate whose deliveries always raise."""
    return RecordingGate(fail=True, permission=NotificationPermission.GRANTED, clock=clock)
