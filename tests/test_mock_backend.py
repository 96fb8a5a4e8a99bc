"""Tests for the in-memory backend used in development."""
from datetime import timedelta
import pytest
from httpx import AsyncClient

from mock_backend.server import (
    generate_basic_schedule,
    generate_recipe_schedule,
    infer_completion_status,
)
from pizza_timer.schemas.active_pizza import ScheduledStep, StepStatus, StepType
from pizza_timer.utils.exceptions import BackendRequestError


def test_basic_schedule_times(clock):
    bake = clock.now + timedelta(hours=30)
    steps = generate_basic_schedule(8, bake)

    times = {step.type: step.scheduled_time for step in steps}
    assert times[StepType.PREPARE_INGREDIENTS] == bake - timedelta(hours=9)
    assert times[StepType.MIX_DOUGH] == bake - timedelta(hours=8)
    assert times[StepType.KNEAD] == bake - timedelta(hours=8) + timedelta(minutes=5)
    assert times[StepType.BULK_FERMENTATION] == bake - timedelta(hours=8) + timedelta(minutes=15)
    assert times[StepType.DIVIDE_AND_BALL] == bake - timedelta(hours=4)
    assert times[StepType.PREHEAT_OVEN] == bake - timedelta(minutes=45)
    assert times[StepType.SHAPE] == bake - timedelta(minutes=15)
    assert times[StepType.BAKE] == bake
    assert [step.step_number for step in steps] == list(range(1, 9))


def test_recipe_schedule_without_cold_fermentation(clock):
    bake = clock.now + timedelta(hours=12)
    recipe = {"fermentation_method": "ROOM_TEMPERATURE", "total_fermentation_hours": 6, "ball_weight": 260}

    steps = generate_recipe_schedule(recipe, bake)

    assert StepType.REMOVE_FROM_FRIDGE not in [step.type for step in steps]
    assert len(steps) == 8
    bulk = steps[3]
    assert bulk.scheduled_time == bake - timedelta(hours=6)
    assert steps[2].scheduled_time == bulk.scheduled_time - timedelta(minutes=15)
    assert steps[1].scheduled_time == bulk.scheduled_time - timedelta(minutes=25)
    assert steps[0].scheduled_time == bulk.scheduled_time - timedelta(minutes=40)
    # Balling happens at least four hours before baking
    assert steps[4].scheduled_time == bake - timedelta(hours=4)
    assert "260g" in steps[4].description


def test_recipe_schedule_defaults_to_24_hours(clock):
    bake = clock.now + timedelta(hours=30)

    steps = generate_recipe_schedule({"fermentation_method": "COLD_RETARD"}, bake)

    assert steps[3].scheduled_time == bake - timedelta(hours=24)
    fridge = [step for step in steps if step.type == StepType.REMOVE_FROM_FRIDGE][0]
    assert fridge.scheduled_time == bake - timedelta(hours=2)


@pytest.mark.parametrize("offset,expected", [
    (timedelta(minutes=-5), StepStatus.COMPLETED),
    (timedelta(minutes=-5, seconds=-1), StepStatus.COMPLETED_EARLY),
    (timedelta(0), StepStatus.COMPLETED),
    (timedelta(minutes=15), StepStatus.COMPLETED),
    (timedelta(minutes=15, seconds=1), StepStatus.COMPLETED_LATE),
])
def test_infer_completion_status(clock, offset, expected):
    """Test EARLY/LATE boundaries relative to the scheduled time."""
    step = ScheduledStep(step_number=1, title="Knead", scheduled_time=clock.now)

    assert infer_completion_status(step, clock.now + offset) == expected


def test_infer_completion_status_without_time(clock):
    step = ScheduledStep(step_number=1, title="Knead")

    assert infer_completion_status(step, clock.now) == StepStatus.COMPLETED


@pytest.mark.asyncio
async def test_requires_bearer_token(backend_transport):
    async with AsyncClient(transport=backend_transport, base_url="http://backend") as client:
        response = await client.get("/api/active-pizza/current")
        assert response.status_code == 401

        response = await client.get(
            "/api/active-pizza/current",
            headers={"Authorization": "Bearer nope"},
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Access token expired"


@pytest.mark.asyncio
async def test_login_and_current(backend_transport):
    async with AsyncClient(transport=backend_transport, base_url="http://backend") as client:
        response = await client.post(
            "/api/auth/login",
            json={"email": "chef@example.com", "password": "pizza123"},
        )
        assert response.status_code == 200
        token = response.json()["accessToken"]

        response = await client.get(
            "/api/active-pizza/current",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 204
        assert response.content == b""


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(backend, backend_transport):
    tokens = backend.issue_tokens("user-chef")

    async with AsyncClient(transport=backend_transport, base_url="http://backend") as client:
        response = await client.post(
            "/api/auth/refresh", json={"refreshToken": tokens.refresh_token}
        )
        assert response.status_code == 200

        response = await client.post(
            "/api/auth/refresh", json={"refreshToken": tokens.refresh_token}
        )
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_recipe(api_client, clock):
    with pytest.raises(BackendRequestError) as exc_info:
        await api_client.create_from_recipe("recipe-missing", clock.now + timedelta(hours=10))

    assert exc_info.value.upstream_status == 404
