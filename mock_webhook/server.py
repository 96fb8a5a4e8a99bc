"""
Mock Webhook Server - Desktop Notifier Simulator

This server simulates the desktop notifier that shows pizza timer alerts.
It answers permission requests and keeps every alert it receives so they
can be inspected while debugging and in tests.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

MAX_STORED_ALERTS = 100

app = FastAPI(
    title="Mock Desktop Notifier",
    description="Simulates a desktop notifier that displays pizza timer alerts",
    version="1.0.0"
)

# In-memory storage for received alerts
received_alerts: List[Dict[str, Any]] = []

# Whether the simulated user allows alerts
notifier_settings: Dict[str, bool] = {"grant_permission": True}


class PermissionSetting(BaseModel):
    granted: bool


@app.post("/webhook")
async def receive_event(request: Request):
    """
    Receive events from the pizza timer.

    `permission_request` is answered with 200 when alerts are allowed and
    403 when the user blocked them. `alert` events are stored and shown.
    """
    try:
        payload = await request.json()
    except json.JSONDecodeError as e:
        logger.error(f"Invalid event payload: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    event_type = payload.get("event_type", "unknown")

    if event_type == "permission_request":
        if not notifier_settings["grant_permission"]:
            logger.info("Permission request denied")
            return JSONResponse(
                status_code=403,
                content={"status": "denied", "message": "Alerts are blocked"}
            )
        logger.info("Permission request granted")
        return JSONResponse(
            status_code=200,
            content={"status": "granted", "tag": payload.get("tag")}
        )

    if event_type == "alert":
        if not notifier_settings["grant_permission"]:
            return JSONResponse(
                status_code=403,
                content={"status": "denied", "message": "Alerts are blocked"}
            )

        payload["received_at"] = datetime.now(timezone.utc).isoformat()
        received_alerts.append(payload)

        # Keep only the most recent alerts in memory
        if len(received_alerts) > MAX_STORED_ALERTS:
            received_alerts.pop(0)

        logger.info(f"🔔 {payload.get('title')} - {payload.get('body')}")
        return JSONResponse(
            status_code=200,
            content={
                "status": "shown",
                "alert_id": payload.get("alert_id"),
                "auto_close_seconds": payload.get("auto_close_seconds"),
            }
        )

    # Default response for unknown event types
    return JSONResponse(
        status_code=200,
        content={
            "status": "received",
            "message": f"Event '{event_type}' acknowledged"
        }
    )


@app.put("/permission")
async def set_permission(setting: PermissionSetting):
    """Simulate the user allowing or blocking alerts."""
    notifier_settings["grant_permission"] = setting.granted
    return {"grant_permission": setting.granted}


@app.get("/alerts")
async def list_alerts(limit: int = 20):
    """
    List recently received alerts.

    Useful for checking that reminders and due alerts fire once per step.
    """
    return {
        "total": len(received_alerts),
        "showing": min(limit, len(received_alerts)),
        "alerts": received_alerts[-limit:][::-1]  # Most recent first
    }


@app.delete("/alerts")
async def clear_alerts():
    """Clear all stored alerts and allow alerts again."""
    received_alerts.clear()
    notifier_settings["grant_permission"] = True
    return {"message": "All alerts cleared"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Mock Desktop Notifier",
        "alerts_received": len(received_alerts)
    }


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "Mock Desktop Notifier",
        "description": "Simulates a desktop notifier receiving pizza timer alerts",
        "endpoints": {
            "POST /webhook": "Receive permission requests and alerts",
            "PUT /permission": "Allow or block alerts",
            "GET /alerts": "List received alerts",
            "DELETE /alerts": "Clear stored alerts",
            "GET /health": "Health check"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
