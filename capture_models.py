"""
Scroll Capture - Models

Plan, frame, session and result types shared by the capture pipeline.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image
from pydantic import BaseModel, Field


class CapturePhase(str, Enum):
    """Capture session phase"""
    PREPARING = "preparing"
    CAPTURING = "capturing"
    STITCHING = "stitching"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (CapturePhase.COMPLETED, CapturePhase.ERROR)


@dataclass(frozen=True)
class CapturePlan:
    """Scroll offsets for one session, computed from measured surface geometry"""
    viewport_width: int
    viewport_height: int
    scroll_height: int
    device_pixel_ratio: float
    overlap_height: int
    offsets: Tuple[int, ...]
    exceeds_safe_height: bool = False
    truncated: bool = False  # Safety ceiling hit before the bottom was reached

    @property
    def planned_count(self) -> int:
        return len(self.offsets)


@dataclass
class CaptureFrame:
    """One grabbed viewport snapshot"""
    image: Image.Image
    scroll_y: int  # Landed scroll position
    width: int
    height: int
    is_last: bool
    index: int = 0
    crop_top: int = 0  # Leading rows already covered by the previous frame beyond the overlap band

    @property
    def visible_height(self) -> int:
        """Rows the stitcher uses, after crop_top"""
        return self.height - self.crop_top


@dataclass
class StitchResult:
    """Encoded composite plus its final (post-clamp) size"""
    image: bytes
    width: int
    height: int
    frame_count: int = 1
    format: str = "PNG"
    seam_scores: List[float] = field(default_factory=list)


@dataclass
class CaptureOutcome:
    """What a finished session produced"""
    session_id: str
    filename: str
    path: Optional[Path]
    width: int
    height: int
    frame_count: int
    duration_ms: int

    def to_dict(self) -> Dict:
        return {
            "session_id": self.session_id,
            "filename": self.filename,
            "path": str(self.path) if self.path else None,
            "width": self.width,
            "height": self.height,
            "frame_count": self.frame_count,
            "duration_ms": self.duration_ms,
        }


class CaptureSession(BaseModel):
    """Observer-visible state of the current capture session"""
    session_id: str
    phase: CapturePhase
    message: str = ""
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    timestamp: float = Field(default_factory=time.time)


class CaptureRequest(BaseModel):
    """Start a capture of a page"""
    url: str
    title: Optional[str] = None


class ViewportDimensions(BaseModel):
    """Surface geometry reported by a viewport controller"""
    scroll_height: int
    viewport_height: int
    viewport_width: int
    current_scroll_y: int = 0
    device_pixel_ratio: float = 1.0


class ScrollPosition(BaseModel):
    """Where a scroll request actually landed"""
    scrolled_x: int = 0
    scrolled_y: int = 0
