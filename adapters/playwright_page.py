"""
Playwright page adapters.

Drive a browser page as the capture surface: window scrolling and geometry
through page.evaluate, viewport snapshots through page.screenshot.
"""

import asyncio
import logging
import time

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from adapters.base import FrameGrabber, PreCaptureStabilizer, ViewportController
from capture_models import ScrollPosition, ViewportDimensions
from utils.error_handler import ControllerError, FrameGrabError, GrabFailureKind

logger = logging.getLogger(__name__)

_DIMENSIONS_JS = """
() => ({
  scrollHeight: Math.max(
    document.body ? document.body.scrollHeight : 0,
    document.documentElement ? document.documentElement.scrollHeight : 0
  ),
  viewportHeight: window.innerHeight,
  viewportWidth: window.innerWidth,
  currentScrollY: Math.round(window.scrollY || window.pageYOffset || 0),
  devicePixelRatio: window.devicePixelRatio || 1
})
"""

_SCROLL_TO_JS = """
([x, y]) => {
  window.scrollTo(x, y);
  return { x: Math.round(window.scrollX), y: Math.round(window.scrollY) };
}
"""

_SCROLL_HEIGHT_JS = "() => document.documentElement.scrollHeight"

_SCROLL_BOTTOM_JS = "() => window.scrollTo(0, document.documentElement.scrollHeight)"


class PlaywrightViewportController(ViewportController):
    """Scrolls the page window"""

    def __init__(self, page: Page):
        self.page = page

    async def get_dimensions(self) -> ViewportDimensions:
        try:
            dims = await self.page.evaluate(_DIMENSIONS_JS)
        except PlaywrightError as e:
            raise ControllerError(f"Failed to get page dimensions: {e}") from e

        return ViewportDimensions(
            scroll_height=int(dims["scrollHeight"]),
            viewport_height=int(dims["viewportHeight"]),
            viewport_width=int(dims["viewportWidth"]),
            current_scroll_y=int(dims["currentScrollY"]),
            device_pixel_ratio=float(dims["devicePixelRatio"]),
        )

    async def scroll_to(self, x: int, y: int) -> ScrollPosition:
        try:
            landed = await self.page.evaluate(_SCROLL_TO_JS, [x, y])
        except PlaywrightError as e:
            raise ControllerError(f"Failed to scroll to Y={y}: {e}", offset=y) from e
        return ScrollPosition(scrolled_x=int(landed["x"]), scrolled_y=int(landed["y"]))


class PlaywrightFrameGrabber(FrameGrabber):
    """
    Screenshots the visible viewport as PNG.

    Grabs closer together than min_interval are refused with a QUOTA failure,
    mirroring the per-second snapshot limits of browser capture APIs.
    """

    def __init__(self, page: Page, min_interval: float = 0.5):
        self.page = page
        self.min_interval = min_interval
        self._last_grab = 0.0

    async def capture_visible(self) -> bytes:
        now = time.monotonic()
        if self._last_grab and now - self._last_grab < self.min_interval:
            raise FrameGrabError(
                f"Capture quota exceeded ({self.min_interval:.2f}s between grabs)",
                kind=GrabFailureKind.QUOTA,
            )
        self._last_grab = now

        try:
            return await self.page.screenshot(type="png", full_page=False)
        except PlaywrightError as e:
            raise FrameGrabError(f"Failed to capture visible page: {e}") from e


class PlaywrightStabilizer(PreCaptureStabilizer):
    """Scrolls to the bottom until the page height stops growing, to trigger lazy loading"""

    def __init__(self, page: Page, step_delay: float = 0.3, stable_checks: int = 3):
        self.page = page
        self.step_delay = step_delay
        self.stable_checks = stable_checks

    async def stabilize(self, max_duration: float) -> None:
        start = time.monotonic()
        last_height = await self.page.evaluate(_SCROLL_HEIGHT_JS)
        stable_count = 0

        while time.monotonic() - start < max_duration and stable_count < self.stable_checks:
            await self.page.evaluate(_SCROLL_BOTTOM_JS)
            await asyncio.sleep(self.step_delay)

            height = await self.page.evaluate(_SCROLL_HEIGHT_JS)
            if height == last_height:
                stable_count += 1
            else:
                logger.debug(f"[PlaywrightStabilizer] Page height changed: {last_height} -> {height}")
                stable_count = 0
                last_height = height

        await self.page.evaluate("() => window.scrollTo(0, 0)")
        logger.info(f"[PlaywrightStabilizer] Done in {time.monotonic() - start:.1f}s, height={last_height}px")
