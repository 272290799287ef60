"""
Shared fakes for capture pipeline tests.

FakeGrabber renders a synthetic tall page: every surface row y has a distinct
color, so any frame can be checked against the rows it should contain.
"""

import asyncio
import io
from pathlib import Path
from typing import List, Optional

import pytest
from PIL import Image

from adapters.base import CaptureSink, FrameGrabber, PreCaptureStabilizer, ViewportController
from capture_config import CaptureConfig
from capture_models import ScrollPosition, ViewportDimensions
from capture_session import CaptureSessionTracker
from utils.error_handler import FrameGrabError, GrabFailureKind


def row_color(y: int):
    return (y % 256, (y // 256) % 256, (y * 7) % 256)


def render_surface_rows(width: int, top: int, height: int) -> Image.Image:
    """Viewport image of a surface whose row y is painted row_color(y)"""
    img = Image.new("RGB", (width, height))
    for row in range(height):
        img.paste(row_color(top + row), (0, row, width, row + 1))
    return img


def solid_frame_image(color, width: int = 40, height: int = 100) -> Image.Image:
    return Image.new("RGB", (width, height), color)


class FakeController(ViewportController):
    """Scrollable surface that clamps scroll positions like a browser window"""

    def __init__(self, scroll_height: int = 3000, viewport_height: int = 1000, viewport_width: int = 40,
                 current_scroll_y: int = 0, fail_at: Optional[int] = None):
        self.scroll_height = scroll_height
        self.viewport_height = viewport_height
        self.viewport_width = viewport_width
        self.scroll_y = current_scroll_y
        self.fail_at = fail_at
        self.scroll_calls: List[int] = []

    async def get_dimensions(self) -> ViewportDimensions:
        return ViewportDimensions(
            scroll_height=self.scroll_height,
            viewport_height=self.viewport_height,
            viewport_width=self.viewport_width,
            current_scroll_y=self.scroll_y,
            device_pixel_ratio=1.0,
        )

    async def scroll_to(self, x: int, y: int) -> ScrollPosition:
        self.scroll_calls.append(y)
        if self.fail_at is not None and y == self.fail_at:
            raise RuntimeError(f"tab closed at {y}")
        self.scroll_y = max(0, min(y, self.scroll_height - self.viewport_height))
        return ScrollPosition(scrolled_x=0, scrolled_y=self.scroll_y)


class FakeGrabber(FrameGrabber):
    """Renders the controller's visible rows; scripted failures are raised first"""

    def __init__(self, controller: FakeController, failures: Optional[list] = None, as_bytes: bool = False):
        self.controller = controller
        self.failures = list(failures or [])
        self.as_bytes = as_bytes
        self.calls = 0

    async def capture_visible(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        img = render_surface_rows(
            self.controller.viewport_width,
            self.controller.scroll_y,
            min(self.controller.viewport_height, self.controller.scroll_height),
        )
        if self.as_bytes:
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
            return buffer.getvalue()
        return img


class BlockingGrabber(FakeGrabber):
    """Holds every grab until released"""

    def __init__(self, controller: FakeController):
        super().__init__(controller)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def capture_visible(self):
        self.started.set()
        await self.release.wait()
        return await super().capture_visible()


class FakeSink(CaptureSink):
    def __init__(self, fail: bool = False):
        self.saved = []
        self.fail = fail

    async def save(self, image: bytes, filename: str) -> Path:
        if self.fail:
            raise OSError("disk full")
        self.saved.append((image, filename))
        return Path("/captures") / filename


class FakeStabilizer(PreCaptureStabilizer):
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    async def stabilize(self, max_duration: float) -> None:
        self.calls.append(max_duration)
        if self.fail:
            raise RuntimeError("content script missing")


def quota_error():
    return FrameGrabError("MAX_CAPTURE_VISIBLE_TAB_CALLS_PER_SECOND quota exceeded", kind=GrabFailureKind.QUOTA)


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays without waiting"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def config():
    return CaptureConfig()


@pytest.fixture
def tracker():
    return CaptureSessionTracker(retention_seconds=5.0)


@pytest.fixture
def tracker_log(tracker):
    """Every session record written to the tracker, in order"""
    log = []
    tracker.add_observer(log.append)
    return log
