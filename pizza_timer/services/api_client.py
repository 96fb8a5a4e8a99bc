"""HTTP client for the active-pizza backend."""
import logging
from datetime import datetime
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from pizza_timer.schemas.active_pizza import (
    ActivePizza,
    AuthResponse,
    CompleteStepRequest,
    CreateActivePizzaRequest,
    CreateFromRecipeRequest,
    EnableNotificationsRequest,
    LoginRequest,
    RefreshRequest,
    RescheduleRequest,
    StepStatus,
)
from pizza_timer.utils.exceptions import (
    AuthenticationRequiredError,
    BackendRequestError,
    BackendTimeoutError,
)

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        if isinstance(data.get("message"), str):
            return data["message"]
        error = data.get("error")
        if isinstance(error, str):
            return error
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        detail = data.get("detail")
        if isinstance(detail, str):
            return detail

    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


def _json(response: httpx.Response) -> Any:
    """Decode a successful response body; an unreadable body is a backend failure."""
    try:
        return response.json()
    except ValueError:
        logger.warning(f"Backend answered HTTP {response.status_code} with a non-JSON body")
        raise BackendRequestError(
            "Unexpected response from the backend", upstream_status=response.status_code
        )


def _tokens(response: httpx.Response) -> AuthResponse:
    try:
        return AuthResponse.model_validate(_json(response))
    except ValidationError as e:
        raise BackendRequestError(f"Unexpected auth payload: {e.error_count()} errors")


def _body(model) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class ActivePizzaClient:
    """
    Client for the backend's /api/active-pizza endpoints.

    Every call is authenticated with a bearer token. A 401 answer triggers
    a single token refresh and retry; nothing else is retried.
    """

    BASE_PATH = "/api/active-pizza"

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.timeout = timeout
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _auth_headers(self) -> dict:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.request(method, path, headers=self._auth_headers(), **kwargs)
        except httpx.TimeoutException:
            logger.warning(f"Timeout on {method} {path}")
            raise BackendTimeoutError(self.timeout)
        except httpx.RequestError as e:
            logger.warning(f"Request error on {method} {path}: {e}")
            raise BackendRequestError(f"Could not reach the backend: {e}")

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        response = await self._send(method, path, json=json, params=params)

        if response.status_code == 401:
            if not await self.refresh_auth():
                # The rejected token is of no further use
                self.access_token = None
                raise AuthenticationRequiredError()
            response = await self._send(method, path, json=json, params=params)
            if response.status_code == 401:
                self.access_token = None
                raise AuthenticationRequiredError()

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"{method} {path} failed with HTTP {response.status_code}: {message}")
            raise BackendRequestError(message, upstream_status=response.status_code)

        return response

    async def _pizza(self, method: str, path: str, **kwargs) -> ActivePizza:
        response = await self._request(method, path, **kwargs)
        return self._parse(_json(response))

    @staticmethod
    def _parse(data: Any) -> ActivePizza:
        try:
            return ActivePizza.model_validate(data)
        except ValidationError as e:
            raise BackendRequestError(f"Unexpected active pizza payload: {e.error_count()} errors")

    # Auth

    async def login(self, email: str, password: str) -> AuthResponse:
        """Log in and keep the returned tokens for later calls."""
        response = await self._send(
            "POST",
            "/api/auth/login",
            json=_body(LoginRequest(email=email, password=password)),
        )
        if response.status_code in (400, 401, 403):
            raise AuthenticationRequiredError("Invalid email or password")
        if response.is_error:
            raise BackendRequestError(_error_message(response), upstream_status=response.status_code)

        tokens = _tokens(response)
        self.access_token = tokens.access_token
        self.refresh_token = tokens.refresh_token
        logger.info(f"Logged in as '{email}'")
        return tokens

    async def refresh_auth(self) -> bool:
        """Exchange the refresh token for a new access token."""
        if not self.refresh_token:
            return False

        try:
            response = await self._http.post(
                "/api/auth/refresh",
                json=_body(RefreshRequest(refresh_token=self.refresh_token)),
            )
        except httpx.RequestError as e:
            logger.warning(f"Token refresh failed: {e}")
            raise BackendRequestError(f"Could not reach the backend: {e}")

        if response.is_error:
            logger.warning(f"Token refresh rejected with HTTP {response.status_code}")
            self.access_token = None
            self.refresh_token = None
            return False

        tokens = _tokens(response)
        self.access_token = tokens.access_token
        self.refresh_token = tokens.refresh_token or self.refresh_token
        logger.info("Access token refreshed")
        return True

    # Queries

    async def get_current(self) -> Optional[ActivePizza]:
        """The user's active pizza, or None when there is none (204)."""
        response = await self._request("GET", f"{self.BASE_PATH}/current")
        if response.status_code == 204 or not response.content:
            return None
        return self._parse(_json(response))

    async def get_by_id(self, active_pizza_id: str) -> ActivePizza:
        return await self._pizza("GET", f"{self.BASE_PATH}/{active_pizza_id}")

    async def get_history(self) -> List[ActivePizza]:
        response = await self._request("GET", f"{self.BASE_PATH}/history")
        data = _json(response)
        if not isinstance(data, list):
            raise BackendRequestError("Unexpected active pizza history payload")
        return [self._parse(item) for item in data]

    # Creation

    async def create_from_recipe(self, recipe_id: str, target_bake_time: datetime) -> ActivePizza:
        return await self._pizza(
            "POST",
            f"{self.BASE_PATH}/from-recipe/{recipe_id}",
            json=_body(CreateFromRecipeRequest(target_bake_time=target_bake_time)),
        )

    async def create_new(self, request: CreateActivePizzaRequest) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/new", json=_body(request))

    # Lifecycle

    async def start(self, active_pizza_id: str) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/{active_pizza_id}/start")

    async def pause(self, active_pizza_id: str) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/{active_pizza_id}/pause")

    async def resume(self, active_pizza_id: str) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/{active_pizza_id}/resume")

    async def cancel(self, active_pizza_id: str) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/{active_pizza_id}/cancel")

    # Steps

    async def complete_step(
        self,
        active_pizza_id: str,
        step_number: int,
        status: Optional[StepStatus] = None,
    ) -> ActivePizza:
        return await self._pizza(
            "POST",
            f"{self.BASE_PATH}/{active_pizza_id}/steps/{step_number}/complete",
            json=_body(CompleteStepRequest(status=status)),
        )

    async def skip_step(self, active_pizza_id: str, step_number: int) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/{active_pizza_id}/steps/{step_number}/skip")

    # Schedule

    async def reschedule(self, active_pizza_id: str, new_target_bake_time: datetime) -> ActivePizza:
        return await self._pizza(
            "POST",
            f"{self.BASE_PATH}/{active_pizza_id}/reschedule",
            json=_body(RescheduleRequest(new_target_bake_time=new_target_bake_time)),
        )

    async def reschedule_by_minutes(self, active_pizza_id: str, minutes: int) -> ActivePizza:
        return await self._pizza(
            "POST",
            f"{self.BASE_PATH}/{active_pizza_id}/reschedule-by-minutes",
            params={"minutes": minutes},
        )

    # SMS notifications

    async def enable_notifications(
        self,
        active_pizza_id: str,
        phone_number: str,
        reminder_minutes_before: Optional[int] = None,
    ) -> ActivePizza:
        request = EnableNotificationsRequest(
            phone_number=phone_number,
            reminder_minutes_before=reminder_minutes_before,
        )
        return await self._pizza(
            "POST",
            f"{self.BASE_PATH}/{active_pizza_id}/notifications/enable",
            json=_body(request),
        )

    async def disable_notifications(self, active_pizza_id: str) -> ActivePizza:
        return await self._pizza("POST", f"{self.BASE_PATH}/{active_pizza_id}/notifications/disable")
