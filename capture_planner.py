"""
Scroll Capture - Capture Planner

Computes the ordered scroll offsets needed to cover a surface with
overlapping viewport frames. Pure: no I/O, deterministic for equal geometry.
"""

import logging
import math
from typing import List

from capture_config import CaptureConfig
from capture_models import CapturePlan, ViewportDimensions
from utils.error_handler import PlanningError

logger = logging.getLogger(__name__)


def _require_positive(name: str, value) -> None:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise PlanningError(f"{name} must be a positive number, got {value!r}", **{name: value})


def plan_capture(
    scroll_height: int,
    viewport_height: int,
    overlap_height: int = 75,
    *,
    viewport_width: int = 0,
    device_pixel_ratio: float = 1.0,
    max_captures: int = 100,
    max_safe_height: int = 32000,
) -> CapturePlan:
    """
    Plan scroll offsets for a surface.

    Each step advances by (viewport_height - overlap_height). Once a step would
    land past the last full viewport (scroll_height - viewport_height), the
    plan ends on that last full viewport instead, so the final frame's bottom
    edge reaches scroll_height.

    Raises:
        PlanningError: invalid geometry (viewport not taller than overlap, etc.)
    """
    _require_positive("scroll_height", scroll_height)
    _require_positive("viewport_height", viewport_height)
    if not isinstance(overlap_height, (int, float)) or not math.isfinite(overlap_height) or overlap_height < 0:
        raise PlanningError(f"overlap_height must not be negative, got {overlap_height}")
    if viewport_height <= overlap_height:
        raise PlanningError(
            f"viewport_height ({viewport_height}px) must exceed overlap_height ({overlap_height}px)",
            viewport_height=viewport_height,
            overlap_height=overlap_height,
        )
    if max_captures < 1:
        raise PlanningError(f"max_captures must be at least 1, got {max_captures}")

    scroll_height = int(scroll_height)
    viewport_height = int(viewport_height)
    overlap_height = int(overlap_height)

    exceeds_safe_height = scroll_height > max_safe_height
    if exceeds_safe_height:
        logger.warning(
            f"[CapturePlanner] Page height {scroll_height}px exceeds limit {max_safe_height}px, "
            f"output may be clamped"
        )

    if scroll_height <= viewport_height:
        offsets: List[int] = [0]
        required = 1
    else:
        step = viewport_height - overlap_height
        max_offset = scroll_height - viewport_height
        required = math.ceil(max_offset / step) + 1

        offsets = []
        for i in range(min(required, max_captures)):
            offset = i * step
            if offset > max_offset:
                if offsets[-1] < max_offset:
                    offsets.append(max_offset)
                break
            offsets.append(offset)

    truncated = required > max_captures
    if truncated:
        logger.warning(
            f"[CapturePlanner] {required} captures needed, limited to {max_captures}; "
            f"bottom of page will be missing"
        )

    logger.info(
        f"[CapturePlanner] Will capture {len(offsets)} viewports "
        f"(page height: {scroll_height}, viewport: {viewport_height}, overlap: {overlap_height})"
    )

    return CapturePlan(
        viewport_width=int(viewport_width),
        viewport_height=viewport_height,
        scroll_height=scroll_height,
        device_pixel_ratio=float(device_pixel_ratio),
        overlap_height=overlap_height,
        offsets=tuple(offsets),
        exceeds_safe_height=exceeds_safe_height,
        truncated=truncated,
    )


class CapturePlanner:
    """Plans captures with the limits from CaptureConfig"""

    def __init__(self, config: CaptureConfig):
        self.config = config

    def plan(self, dimensions: ViewportDimensions) -> CapturePlan:
        return plan_capture(
            dimensions.scroll_height,
            dimensions.viewport_height,
            self.config.overlap_height,
            viewport_width=dimensions.viewport_width,
            device_pixel_ratio=dimensions.device_pixel_ratio,
            max_captures=self.config.max_captures,
            max_safe_height=self.config.max_safe_height,
        )
