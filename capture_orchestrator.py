"""
Scroll Capture - Capture Orchestrator

Drives one capture session end to end:
1. Validate the target and optionally stabilize lazy content
2. Measure the surface and plan offsets
3. Collect frames (scroll, settle, grab with retry)
4. Stitch off the event loop
5. Restore the original scroll position and persist the image

Owns the session id and is the only writer of the session tracker while a
session runs. Any failure ends the session in the error phase; no partial
image is produced.
"""

import asyncio
import logging
import re
import time
import uuid
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from adapters.base import CaptureSink, FrameGrabber, PreCaptureStabilizer, ViewportController
from capture_collector import CaptureCollector, Sleeper
from capture_config import CaptureConfig
from capture_models import CaptureFrame, CaptureOutcome, CapturePhase
from capture_planner import CapturePlanner
from capture_session import CaptureSessionTracker
from screenshot_stitcher import ScreenshotStitcher
from utils.error_handler import (
    CaptureInProgressError,
    ControllerError,
    ErrorContext,
    PersistenceError,
    TargetNotCapturableError,
    get_user_friendly_message,
)

logger = logging.getLogger(__name__)

RESTRICTED_SCHEMES = (
    "chrome://",
    "chrome-extension://",
    "brave://",
    "edge://",
    "opera://",
    "about:",
    "view-source:",
    "file://",
)


def is_capturable_url(url: Optional[str]) -> bool:
    """False for empty and browser-internal URLs"""
    if not url:
        return False
    return not url.startswith(RESTRICTED_SCHEMES)


def sanitize_for_filename(text: Optional[str], max_length: int = 50) -> str:
    """Strip characters invalid in filenames and collapse whitespace to underscores"""
    if not text:
        return ""
    text = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "", text)
    text = re.sub(r"\s+", "_", text)
    text = re.sub(r"_+", "_", text)
    text = text.strip("_")
    return text[:max_length]


def build_capture_filename(
    title: Optional[str] = None,
    url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """<title>_<host>_<timestamp>.png, or capture_<host>_<timestamp>.png without a title"""
    hostname = (urlparse(url).hostname if url else None) or "page"
    timestamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    safe_title = sanitize_for_filename(title, 40)
    if safe_title:
        return f"{safe_title}_{hostname}_{timestamp}.png"
    return f"capture_{hostname}_{timestamp}.png"


class CaptureOrchestrator:
    """
    Runs capture sessions against one controller/grabber pair

    At most one session runs at a time; start_capture() refuses a second.
    """

    def __init__(
        self,
        controller: ViewportController,
        grabber: FrameGrabber,
        sink: CaptureSink,
        tracker: CaptureSessionTracker,
        config: Optional[CaptureConfig] = None,
        stabilizer: Optional[PreCaptureStabilizer] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.controller = controller
        self.grabber = grabber
        self.sink = sink
        self.tracker = tracker
        self.config = config or CaptureConfig()
        self.stabilizer = stabilizer
        self._sleep = sleep

        self.planner = CapturePlanner(self.config)
        self.collector = CaptureCollector(self.config, sleep=sleep)
        self.stitcher = ScreenshotStitcher(max_canvas_dim=self.config.max_canvas_dim)

        self._task: Optional[asyncio.Task] = None
        self._task_session_id: Optional[str] = None
        self._active_session_id: Optional[str] = None

        logger.info("[CaptureOrchestrator] Initialized")

    @property
    def active_session_id(self) -> Optional[str]:
        if self._active_session_id is None and self._task is not None and not self._task.done():
            return self._task_session_id
        return self._active_session_id

    def is_running(self) -> bool:
        return self._active_session_id is not None or (self._task is not None and not self._task.done())

    async def start_capture(self, title: Optional[str] = None, url: Optional[str] = None) -> str:
        """
        Start a capture in the background and return its session id.

        Raises:
            CaptureInProgressError: another session is still running
        """
        if self.is_running():
            raise CaptureInProgressError(self.active_session_id)

        session_id = self._new_session_id()
        # Recorded before the task runs so the id is observable even if cancelled first
        self.tracker.update(session_id, CapturePhase.PREPARING, "Preparing page...")
        self._task_session_id = session_id
        self._task = asyncio.create_task(self._run_logged(session_id, title, url))
        return session_id

    async def cancel(self) -> bool:
        """Cancel the running background capture; True if one was cancelled"""
        if self._task is None or self._task.done():
            return False
        session_id = self._task_session_id
        logger.info(f"[CaptureOrchestrator] Cancelling session {session_id}")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

        # A task cancelled before it started never reached run_capture
        current = self.tracker.query()
        if current is not None and current.session_id == session_id and not current.phase.is_terminal:
            self.tracker.update(session_id, CapturePhase.ERROR, "Capture cancelled")
        return True

    async def run_capture(
        self,
        title: Optional[str] = None,
        url: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> CaptureOutcome:
        """
        Run one capture session to completion.

        Raises:
            CaptureServiceError subclasses for every fatal condition, after
            the session has been recorded in the error phase
        """
        if self._active_session_id is not None:
            raise CaptureInProgressError(self._active_session_id)

        session_id = session_id or self._new_session_id()
        self._active_session_id = session_id
        start_time = time.time()
        frames: List[CaptureFrame] = []
        logger.info(f"[CaptureOrchestrator] Starting capture session {session_id}")

        try:
            if url is not None and not is_capturable_url(url):
                raise TargetNotCapturableError(url)

            self.tracker.update(session_id, CapturePhase.PREPARING, "Preparing page...")
            if self.config.pre_stabilize and self.stabilizer is not None:
                await self._stabilize()

            self.tracker.update(session_id, CapturePhase.CAPTURING, "Getting page dimensions...")
            with ErrorContext("getting page dimensions", raise_as=ControllerError):
                dims = await self.controller.get_dimensions()
            logger.info(f"[CaptureOrchestrator] Page dimensions: {dims.model_dump()}")

            plan = self.planner.plan(dims)
            frames = await self.collector.collect(plan, self.controller, self.grabber, self.tracker, session_id)

            self.tracker.update(session_id, CapturePhase.STITCHING, "Stitching captures together...", 95)
            result = await asyncio.to_thread(self.stitcher.stitch, frames, plan.overlap_height)
            frames.clear()

            await self._restore_scroll(dims.current_scroll_y)

            filename = build_capture_filename(title, url)
            self.tracker.update(session_id, CapturePhase.DOWNLOADING, "Saving image...")
            with ErrorContext(f"saving {filename}", raise_as=PersistenceError):
                path = await self.sink.save(result.image, filename)

            outcome = CaptureOutcome(
                session_id=session_id,
                filename=filename,
                path=path,
                width=result.width,
                height=result.height,
                frame_count=result.frame_count,
                duration_ms=int((time.time() - start_time) * 1000),
            )
            self.tracker.update(session_id, CapturePhase.COMPLETED, "Capture complete!", 100)
            logger.info(
                f"[CaptureOrchestrator] Session {session_id} complete: "
                f"{outcome.width}x{outcome.height} from {outcome.frame_count} captures in {outcome.duration_ms}ms"
            )
            return outcome

        except asyncio.CancelledError:
            logger.warning(f"[CaptureOrchestrator] Session {session_id} cancelled")
            self.tracker.update(session_id, CapturePhase.ERROR, "Capture cancelled")
            raise
        except Exception as e:
            logger.error(f"[CaptureOrchestrator] Capture failed: {e}")
            self.tracker.update(session_id, CapturePhase.ERROR, f"Capture failed: {get_user_friendly_message(e)}")
            raise
        finally:
            frames.clear()
            self._active_session_id = None

    async def _run_logged(self, session_id: str, title: Optional[str], url: Optional[str]):
        """Background wrapper; the outcome is reported through the tracker"""
        try:
            await self.run_capture(title=title, url=url, session_id=session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"[CaptureOrchestrator] Background session {session_id} ended with {e.__class__.__name__}")

    async def _stabilize(self):
        """Best effort; failures are logged, never fatal"""
        try:
            await self.stabilizer.stabilize(self.config.pre_stabilize_max_duration)
        except Exception as e:
            logger.warning(f"[CaptureOrchestrator] DOM stabilization failed: {e}")
        await self._sleep(0.5)

    async def _restore_scroll(self, scroll_y: int):
        try:
            await self.controller.scroll_to(0, scroll_y)
        except Exception as e:
            logger.warning(f"[CaptureOrchestrator] Could not restore scroll position: {e}")

    @staticmethod
    def _new_session_id() -> str:
        return uuid.uuid4().hex[:8]
