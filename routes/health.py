"""
Health Routes - System Health Check

Provides health check endpoint for monitoring server status.
Reports whether a capture session is currently running.
"""

from fastapi import APIRouter
import logging
from routes import get_deps

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """
    Health check endpoint

    Returns server status, version, and capture status.
    Supports both GET and HEAD methods for Docker health checks.
    """
    deps = get_deps()

    capture_status = "busy" if (deps.orchestrator and deps.orchestrator.is_running()) else "idle"

    return {
        "status": "ok",
        "version": "0.1.0",
        "message": "Scroll Capture is running",
        "capture_status": capture_status
    }
