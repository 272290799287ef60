"""
Scroll Capture - Capture Collector

Executes a capture plan: scroll, wait for render, grab under a bounded retry
policy, record the frame. Strictly sequential, since stitching assumes
adjacent frames were taken consecutively in scroll order.

Capture backends are typically rate limited (~2 snapshots/sec). The settle
delay paces normal operation; quota failures back off and retry.
"""

import asyncio
import io
import logging
from typing import Awaitable, Callable, List, Union

from PIL import Image, UnidentifiedImageError

from adapters.base import FrameGrabber, ViewportController
from capture_config import CaptureConfig
from capture_models import CaptureFrame, CapturePhase, CapturePlan
from capture_session import CaptureSessionTracker
from utils.error_handler import (
    CaptureError,
    CaptureQuotaError,
    CollectionEmptyError,
    ControllerError,
    ErrorContext,
    FrameGrabError,
)

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class CaptureCollector:
    """Collects ordered viewport frames for a plan"""

    def __init__(self, config: CaptureConfig, sleep: Sleeper = asyncio.sleep):
        """
        Args:
            config: settle delay, attempt budget and backoff
            sleep: suspension used for settle and backoff waits (injectable for tests)
        """
        self.settle_delay = config.settle_delay
        self.capture_attempts = max(1, config.capture_attempts)
        self.retry_backoff = config.retry_backoff
        self._sleep = sleep

    async def collect(
        self,
        plan: CapturePlan,
        controller: ViewportController,
        grabber: FrameGrabber,
        tracker: CaptureSessionTracker,
        session_id: str,
    ) -> List[CaptureFrame]:
        """
        Capture one frame per planned offset, in order.

        Raises:
            ControllerError: scrolling failed
            CaptureError: grabber failed for a non-quota reason
            CaptureQuotaError: grabber stayed rate limited for every attempt
            CollectionEmptyError: no frames were produced
        """
        frames: List[CaptureFrame] = []
        planned = plan.planned_count

        for i, offset in enumerate(plan.offsets):
            progress = round(100 * i / planned)
            tracker.update(
                session_id,
                CapturePhase.CAPTURING,
                f"Capturing viewport {i + 1}/{planned}...",
                progress,
            )

            logger.info(f"[CaptureCollector] Capture {i + 1}/{planned}: Scrolling to Y={offset}")
            with ErrorContext(f"scrolling to Y={offset}", raise_as=ControllerError):
                position = await controller.scroll_to(0, offset)
            scroll_y = position.scrolled_y
            if scroll_y != offset:
                logger.debug(f"[CaptureCollector] Capture {i + 1}: Requested Y={offset}, landed at Y={scroll_y}")

            await self._sleep(self.settle_delay)

            image = await self._grab_with_retry(grabber, offset)
            width, height = image.size
            crop_top = self._repeated_rows(scroll_y, height, frames[-1], plan.overlap_height) if frames else 0
            frame = CaptureFrame(
                image=image,
                scroll_y=scroll_y,
                width=width,
                height=height,
                is_last=scroll_y + height >= plan.scroll_height,
                index=i,
                crop_top=crop_top,
            )
            frames.append(frame)
            logger.info(f"[CaptureCollector] Capture {i + 1}: Stored {width}x{height} at Y={scroll_y}")
            if crop_top:
                logger.debug(f"[CaptureCollector] Capture {i + 1}: {crop_top} leading rows repeat the previous capture")

        if not frames:
            raise CollectionEmptyError()

        logger.info(f"[CaptureCollector] Collected {len(frames)} captures")
        return frames

    async def _grab_with_retry(self, grabber: FrameGrabber, offset: int) -> Image.Image:
        """Grab a frame; quota failures back off and retry, anything else aborts"""
        for attempt in range(1, self.capture_attempts + 1):
            try:
                raw = await grabber.capture_visible()
            except FrameGrabError as e:
                if not e.is_quota:
                    raise CaptureError(f"Failed to capture visible region: {e}", offset=offset) from e
                if attempt == self.capture_attempts:
                    raise CaptureQuotaError(
                        f"Capture quota exceeded after {attempt} attempts at Y={offset}",
                        attempts=attempt,
                        offset=offset,
                    ) from e
                logger.warning(
                    f"[CaptureCollector] Rate limited, waiting and retrying... "
                    f"({self.capture_attempts - attempt} retries left)"
                )
                await self._sleep(self.retry_backoff)
                continue
            except Exception as e:
                raise CaptureError(f"Failed to capture visible region: {e}", offset=offset) from e

            return self._to_image(raw, offset)

    @staticmethod
    def _repeated_rows(scroll_y: int, height: int, previous: CaptureFrame, overlap: int) -> int:
        """
        Leading rows of a frame that repeat the previous frame beyond the overlap band.

        The capped last offset, or a scroll clamped by the browser, lands less
        than one step below the previous frame. At least overlap rows stay visible.
        """
        excess = previous.scroll_y + previous.height - overlap - scroll_y
        return max(0, min(excess, height - overlap))

    @staticmethod
    def _to_image(raw: Union[bytes, Image.Image], offset: int) -> Image.Image:
        if isinstance(raw, Image.Image):
            return raw
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError, TypeError) as e:
            raise CaptureError(f"Grabbed data is not a readable image: {e}", offset=offset) from e
        return image
