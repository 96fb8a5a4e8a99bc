"""Custom exceptions for the Pizza Timer with standardized error codes."""
from enum import Enum
from fastapi import status
from typing import Optional, Any


class ErrorCode(str, Enum):
    """Standardized error codes for the API."""

    # Authentication errors
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"

    # Active pizza errors
    NO_ACTIVE_PIZZA = "NO_ACTIVE_PIZZA"
    ACTIVE_PIZZA_NOT_FOUND = "ACTIVE_PIZZA_NOT_FOUND"
    ACTIVE_PIZZA_ALREADY_EXISTS = "ACTIVE_PIZZA_ALREADY_EXISTS"
    ACTION_NOT_AVAILABLE = "ACTION_NOT_AVAILABLE"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    FORBIDDEN = "FORBIDDEN"

    # Step errors
    STEP_NOT_FOUND = "STEP_NOT_FOUND"

    # Notification errors
    ALERT_NOT_FOUND = "ALERT_NOT_FOUND"

    # Backend errors
    BACKEND_ERROR = "BACKEND_ERROR"
    BACKEND_TIMEOUT = "BACKEND_TIMEOUT"

    # Server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PizzaTimerException(Exception):
    """Base exception for the pizza timer with standardized error format."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to standardized error response dict."""
        response = {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response


class AuthenticationRequiredError(PizzaTimerException):
    """Raised when the active pizza is requested without a logged-in user."""

    def __init__(self, message: str = "Log in to manage your active pizza"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=ErrorCode.AUTHENTICATION_REQUIRED,
            details={"login_url": "/api/v1/auth/login"},
        )


class NoActivePizzaError(PizzaTimerException):
    """Raised when the user has no active pizza."""

    def __init__(self):
        super().__init__(
            message="You have no active pizza. Start a new one from a recipe or the calculator.",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.NO_ACTIVE_PIZZA,
        )


class ActivePizzaNotFoundError(PizzaTimerException):
    """Raised when an active pizza id is unknown."""

    def __init__(self, active_pizza_id: str):
        super().__init__(
            message=f"Active pizza '{active_pizza_id}' not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.ACTIVE_PIZZA_NOT_FOUND,
            details={"active_pizza_id": active_pizza_id},
        )


class ActivePizzaAlreadyExistsError(PizzaTimerException):
    """Raised when the user already has a pizza in preparation."""

    def __init__(self, user_id: str, active_pizza_id: str):
        super().__init__(
            message="You already have an active pizza in preparation. Finish it before starting a new one.",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.ACTIVE_PIZZA_ALREADY_EXISTS,
            details={"user_id": user_id, "active_pizza_id": active_pizza_id},
        )


class ForbiddenError(PizzaTimerException):
    """Raised when a user touches another user's active pizza."""

    def __init__(self, active_pizza_id: str):
        super().__init__(
            message="No access to this active pizza",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.FORBIDDEN,
            details={"active_pizza_id": active_pizza_id},
        )


class InvalidTransitionError(PizzaTimerException):
    """Raised when a status transition is not allowed from the current status."""

    def __init__(self, message: str, current_status: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"current_status": current_status},
        )


class StepNotFoundError(PizzaTimerException):
    """Raised when a step number does not exist in the schedule."""

    def __init__(self, step_number: int):
        super().__init__(
            message=f"Step {step_number} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.STEP_NOT_FOUND,
            details={"step_number": step_number},
        )


class ActionNotAvailableError(PizzaTimerException):
    """Raised when an action is not offered for the displayed status."""

    def __init__(self, action: str, current_status: str, step_number: Optional[int] = None):
        details = {"action": action, "current_status": current_status}
        if step_number is not None:
            details["step_number"] = step_number

        super().__init__(
            message=f"Action '{action}' is not available while status is {current_status}",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.ACTION_NOT_AVAILABLE,
            details=details,
        )


class ConfirmationRequiredError(PizzaTimerException):
    """Raised when a destructive action is dispatched without confirmation."""

    def __init__(self, action: str):
        super().__init__(
            message=f"Are you sure? Confirm '{action}' to continue.",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.CONFIRMATION_REQUIRED,
            details={"action": action},
        )


class AlertNotFoundError(PizzaTimerException):
    """Raised when an alert id is not in the gate's history."""

    def __init__(self, alert_id: str):
        super().__init__(
            message=f"Alert '{alert_id}' not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.ALERT_NOT_FOUND,
            details={"alert_id": alert_id},
        )


class BackendRequestError(PizzaTimerException):
    """Raised when the active-pizza backend rejects or fails a request."""

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        details = {}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status

        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=ErrorCode.BACKEND_ERROR,
            details=details if details else None,
        )
        self.upstream_status = upstream_status


class BackendTimeoutError(BackendRequestError):
    """Raised when the backend does not answer within the request timeout."""

    def __init__(self, timeout_seconds: float):
        super().__init__(message=f"Backend did not respond within {timeout_seconds:g} seconds")
        self.status_code = status.HTTP_504_GATEWAY_TIMEOUT
        self.error_code = ErrorCode.BACKEND_TIMEOUT
        self.details = {"timeout_seconds": timeout_seconds}
