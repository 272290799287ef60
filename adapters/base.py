"""
Adapter interfaces consumed by the capture pipeline.

Concrete adapters wrap whatever actually owns the surface (a browser page,
a remote device) and translate its failures into the capture error taxonomy.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from PIL import Image

from capture_models import ScrollPosition, ViewportDimensions


class ViewportController(ABC):
    """Scrolls the target surface and reports its geometry"""

    @abstractmethod
    async def get_dimensions(self) -> ViewportDimensions:
        """Measure the surface; raises if it is inaccessible"""

    @abstractmethod
    async def scroll_to(self, x: int, y: int) -> ScrollPosition:
        """Scroll and return the position actually reached (may be clamped near edges)"""


class FrameGrabber(ABC):
    """Rasterizes the currently visible region"""

    @abstractmethod
    async def capture_visible(self) -> Union[bytes, Image.Image]:
        """
        Grab one snapshot of the viewport.

        Raises:
            FrameGrabError: kind QUOTA for transient rate limiting, OTHER otherwise
        """


class PreCaptureStabilizer(ABC):
    """Expands lazy content before capture (best effort)"""

    @abstractmethod
    async def stabilize(self, max_duration: float) -> None:
        ...


class CaptureSink(ABC):
    """Stores the final encoded image"""

    @abstractmethod
    async def save(self, image: bytes, filename: str) -> Path:
        ...
