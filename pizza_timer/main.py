"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from uuid import uuid4
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pizza_timer.config import get_settings
from pizza_timer.api.deps import build_notification_gate, start_controller
from pizza_timer.api.routes import api_router
from pizza_timer.services.api_client import ActivePizzaClient
from pizza_timer.services.toasts import ToastQueue
from pizza_timer.utils.exceptions import PizzaTimerException

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Pizza Timer...")
    client = ActivePizzaClient(
        base_url=settings.API_BASE_URL,
        access_token=settings.API_TOKEN,
        refresh_token=settings.API_REFRESH_TOKEN,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    app.state.client = client
    app.state.notification_gate = build_notification_gate(settings)
    app.state.toasts = ToastQueue(history_size=settings.TOAST_HISTORY_SIZE)
    app.state.controller = None

    if not client.is_authenticated and settings.API_EMAIL and settings.API_PASSWORD:
        try:
            await client.login(settings.API_EMAIL, settings.API_PASSWORD)
        except PizzaTimerException as e:
            logger.error(f"Login at startup failed: {e.message}")

    if client.is_authenticated:
        await start_controller(app, settings)
        logger.info("Active pizza controller started")
    else:
        logger.info("Not logged in; POST /api/v1/auth/login to start tracking")

    yield

    # Shutdown
    logger.info("Shutting down Pizza Timer...")
    if app.state.controller is not None:
        await app.state.controller.stop()
    await client.close()
    logger.info("Backend client closed")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## Pizza Timer API

Local companion for a pizza-making session planned on the backend.

### Features
- **Countdown**: Time to the next scheduled step, updated every second
- **Alerts**: Reminder before each step and an alert when it is due
- **Actions**: Start, pause, resume, cancel, complete and skip steps, reschedule
- **Polling**: The active pizza is re-fetched every 30 seconds

### Cancelling
Cancelling is terminal and must be confirmed:
```json
{"confirm": true}
```
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler for service exceptions
@app.exception_handler(PizzaTimerException)
async def service_exception_handler(request: Request, exc: PizzaTimerException):
    """Handle service-level exceptions with standardized error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Request ID middleware for tracing
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIDMiddleware)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint with timer state.

    Reports whether the user is logged in, when the active pizza was last
    fetched and whether the countdown is ticking.
    """
    controller = getattr(request.app.state, "controller", None)
    gate = getattr(request.app.state, "notification_gate", None)

    timer_checks = {
        "authenticated": controller is not None and controller.client.is_authenticated,
    }
    if controller is not None:
        timer_checks.update({
            "polling": controller.is_running,
            "last_fetched_at": (
                controller.last_fetched_at.isoformat() if controller.last_fetched_at else None
            ),
            "last_error": controller.last_error,
            "ticking": bool(controller.timer and controller.timer.enabled),
        })

    return {
        "status": "degraded" if controller and controller.last_error else "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": {
            "timer": timer_checks,
            "notifications": {
                "permission": gate.permission.value if gate else None,
            },
        }
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pizza_timer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
