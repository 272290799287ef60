"""
Scroll Capture - Screenshot Stitcher

Composites an ordered sequence of overlapping viewport frames into one tall
image. Consecutive frames share a fixed overlap band; the band is blended
50/50 to hide seams caused by sub-pixel render differences.

Canvas height = h(frame0) + sum(h(frame_i) - overlap), clamped per dimension
to the PNG canvas ceiling. h counts the rows left after a frame's crop_top.
"""

import io
import logging
import math
from typing import List, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

from capture_models import CaptureFrame, StitchResult
from utils.error_handler import StitchError

logger = logging.getLogger(__name__)

DEFAULT_CANVAS_WIDTH = 800
DEFAULT_CANVAS_HEIGHT = 600


def sanitize_canvas_dimension(value, default: int, max_dim: int = 32767) -> int:
    """
    Coerce a canvas dimension into [1, max_dim].

    None, non-numeric, non-finite and < 1 values fall back to default so a
    renderable canvas is always produced; oversized values are clamped.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default

    int_value = math.floor(number)
    if int_value < 1:
        int_value = default
    if int_value > max_dim:
        int_value = max_dim
    return int_value


class ScreenshotStitcher:
    """
    Stitches captured frames vertically with seam blending
    """

    def __init__(self, max_canvas_dim: int = 32767, seam_threshold: float = 0.8):
        """
        Args:
            max_canvas_dim: ceiling for either canvas dimension
            seam_threshold: seam alignment score below which a warning is logged
        """
        self.max_canvas_dim = max_canvas_dim
        self.seam_threshold = seam_threshold
        self.blend_alpha = 0.5

    @staticmethod
    def seam_overlaps(heights: Sequence[int], overlap_height: int) -> List[int]:
        """
        Overlap used at each seam. Normally overlap_height; a frame shorter
        than the band shrinks it to the frame's height.
        """
        return [
            max(0, min(overlap_height, heights[i], heights[i - 1]))
            for i in range(1, len(heights))
        ]

    def compute_canvas_size(self, frames: Sequence[CaptureFrame], overlap_height: int) -> Tuple[int, int]:
        """Requested (unclamped) canvas size for the frames"""
        heights = [frame.visible_height for frame in frames]
        overlaps = self.seam_overlaps(heights, overlap_height)
        height = heights[0] + sum(h - o for h, o in zip(heights[1:], overlaps))
        return frames[0].width, height

    def stitch(self, frames: Sequence[CaptureFrame], overlap_height: int) -> StitchResult:
        """
        Composite frames top to bottom and encode as PNG.

        Raises:
            StitchError: no frames, or a frame could not be read
        """
        if not frames:
            raise StitchError("No captures to stitch")

        logger.info(f"[ScreenshotStitcher] Stitching {len(frames)} viewport captures with {overlap_height}px overlap")

        images = [self._load_frame(frame) for frame in frames]
        mode = images[0].mode if images[0].mode in ("RGB", "RGBA") else "RGB"
        images = [img if img.mode == mode else img.convert(mode) for img in images]

        heights = [img.height for img in images]
        overlaps = self.seam_overlaps(heights, overlap_height)
        requested_width = images[0].width
        requested_height = heights[0] + sum(h - o for h, o in zip(heights[1:], overlaps))
        width = sanitize_canvas_dimension(requested_width, DEFAULT_CANVAS_WIDTH, self.max_canvas_dim)
        height = sanitize_canvas_dimension(requested_height, DEFAULT_CANVAS_HEIGHT, self.max_canvas_dim)
        if (width, height) != (requested_width, requested_height):
            logger.warning(
                f"[ScreenshotStitcher] Canvas {requested_width}x{requested_height} "
                f"clamped to {width}x{height}"
            )
        logger.info(f"  Canvas dimensions: {width}x{height}")

        canvas = Image.new(mode, (width, height))
        canvas.paste(images[0], (0, 0))
        current_y = images[0].height
        seam_scores: List[float] = []

        for i in range(1, len(images)):
            img = images[i]
            prev = images[i - 1]
            overlap = overlaps[i - 1]
            seam_y = current_y - overlap
            draw_width = min(width, img.width)

            if overlap > 0:
                seam_scores.append(self._score_seam(prev, img, overlap, i))
                self._blend_region(canvas, img.crop((0, 0, draw_width, overlap)), seam_y)

            if img.height > overlap:
                canvas.paste(img.crop((0, overlap, draw_width, img.height)), (0, current_y))

            logger.debug(f"  Drawing image {i + 1} at Y={seam_y} (blend {overlap}px, new {img.height - overlap}px)")
            current_y = seam_y + img.height

        result = StitchResult(
            image=self._encode(canvas),
            width=width,
            height=height,
            frame_count=len(frames),
            seam_scores=seam_scores,
        )
        logger.info(f"[ScreenshotStitcher] Stitched PNG created: {len(result.image)} bytes ({width}x{height})")
        return result

    def _load_frame(self, frame: CaptureFrame) -> Image.Image:
        try:
            frame.image.load()
        except (OSError, ValueError, AttributeError) as e:
            raise StitchError(f"Failed to load capture {frame.index + 1}: {e}", frame_index=frame.index) from e
        if frame.crop_top:
            return frame.image.crop((0, frame.crop_top, frame.image.width, frame.image.height))
        return frame.image

    def _blend_region(self, canvas: Image.Image, strip: Image.Image, y: int):
        """Draw strip at 50% opacity over the canvas rows starting at y"""
        if y >= canvas.height:
            return
        below = canvas.crop((0, y, strip.width, y + strip.height))
        canvas.paste(Image.blend(below, strip, self.blend_alpha), (0, y))

    def _score_seam(self, prev: Image.Image, curr: Image.Image, overlap: int, index: int) -> float:
        """
        Alignment score of the overlap band: normalized correlation of the
        previous frame's bottom rows against the next frame's top rows.

        Returns:
            Float between 0.0 (unrelated) and 1.0 (identical)
        """
        width = min(prev.width, curr.width)
        bottom = prev.crop((0, prev.height - overlap, width, prev.height))
        top = curr.crop((0, 0, width, overlap))
        score = self._compare_images(bottom, top)
        if score < self.seam_threshold:
            logger.warning(f"  Seam {index}: low overlap match {score:.3f} (threshold: {self.seam_threshold})")
        else:
            logger.debug(f"  Seam {index}: overlap match {score:.3f}")
        return score

    @staticmethod
    def _compare_images(img1: Image.Image, img2: Image.Image) -> float:
        gray1 = cv2.cvtColor(np.array(img1.convert("RGB")), cv2.COLOR_RGB2GRAY)
        gray2 = cv2.cvtColor(np.array(img2.convert("RGB")), cv2.COLOR_RGB2GRAY)

        norm1 = gray1.astype(np.float64) - np.mean(gray1)
        norm2 = gray2.astype(np.float64) - np.mean(gray2)

        numerator = np.sum(norm1 * norm2)
        denominator = np.sqrt(np.sum(norm1 ** 2) * np.sum(norm2 ** 2))

        if denominator == 0:
            # Flat strips: identical means aligned
            return 1.0 if np.array_equal(gray1, gray2) else 0.0

        correlation = numerator / denominator
        return float((correlation + 1) / 2)

    @staticmethod
    def _encode(canvas: Image.Image, image_format: str = "PNG") -> bytes:
        buffer = io.BytesIO()
        canvas.save(buffer, format=image_format)
        return buffer.getvalue()
