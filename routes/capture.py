"""
Capture Routes - Scroll-and-Stitch Page Capture

Provides endpoints for starting a capture and following its progress:
- POST /api/capture: navigate the page and start a capture session
- GET /api/capture/status: current session record (pull)
- POST /api/capture/cancel: cancel the running session
- WebSocket /api/ws/capture/status: session records as they change (push)
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import logging
from routes import get_deps
from capture_models import CaptureRequest, CaptureSession
from capture_orchestrator import is_capturable_url
from utils.error_handler import (
    CaptureInProgressError,
    TargetNotCapturableError,
    create_success_response,
    handle_api_error,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["capture"])


def _session_payload(session):
    return session.model_dump(mode="json") if session is not None else None


# =============================================================================
# CAPTURE CONTROL
# =============================================================================

@router.post("/capture")
async def start_capture(request: CaptureRequest):
    """Navigate to the URL and capture it as one full-length PNG"""
    deps = get_deps()
    try:
        if not is_capturable_url(request.url):
            raise TargetNotCapturableError(request.url)

        async with deps.capture_lock:
            if deps.orchestrator.is_running():
                raise CaptureInProgressError(deps.orchestrator.active_session_id)

            title = request.title
            if deps.page is not None:
                logger.info(f"[API] Navigating to {request.url}")
                await deps.page.goto(request.url, wait_until="load")
                title = title or await deps.page.title()

            session_id = await deps.orchestrator.start_capture(title=title, url=request.url)
        logger.info(f"[API] Capture session {session_id} started for {request.url}")
        return create_success_response(data={"session_id": session_id}, message="Capture started")
    except Exception as e:
        logger.error(f"[API] Capture start failed: {e}")
        return handle_api_error(e)


@router.get("/capture/status")
async def get_capture_status():
    """Current capture session so a reopened client can resume showing progress"""
    deps = get_deps()
    return create_success_response(data={"session": _session_payload(deps.tracker.query())})


@router.post("/capture/cancel")
async def cancel_capture():
    """Cancel the running capture session"""
    deps = get_deps()
    cancelled = await deps.orchestrator.cancel()
    return create_success_response(
        data={"cancelled": cancelled},
        message="Capture cancelled" if cancelled else "No capture running",
    )


# =============================================================================
# WEBSOCKET STATUS STREAM
# =============================================================================

@router.websocket("/ws/capture/status")
async def stream_capture_status(websocket: WebSocket):
    """
    WebSocket endpoint pushing capture session records.

    Message format (JSON):
    {
        "type": "status",
        "session": {"session_id": "...", "phase": "capturing", "progress": 40, ...}
    }
    """
    deps = get_deps()
    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()

    def on_update(session: CaptureSession):
        queue.put_nowait(session)

    deps.tracker.add_observer(on_update)
    logger.info("[WS-Capture] Client connected")

    try:
        await websocket.send_json({"type": "status", "session": _session_payload(deps.tracker.query())})
        while True:
            try:
                session = await asyncio.wait_for(queue.get(), timeout=30.0)
            except asyncio.TimeoutError:
                # Keepalive
                await websocket.send_json({"type": "ping"})
                continue
            await websocket.send_json({"type": "status", "session": _session_payload(session)})

    except WebSocketDisconnect:
        logger.info("[WS-Capture] Client disconnected")
    finally:
        deps.tracker.remove_observer(on_update)
