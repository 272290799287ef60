"""
Capture Adapters Package

Interfaces the capture pipeline consumes, plus concrete implementations:
- base: controller, grabber, stabilizer and sink interfaces
- file_sink: writes stitched images to disk
- playwright_page: browser page controller, grabber and stabilizer
"""

from .base import CaptureSink, FrameGrabber, PreCaptureStabilizer, ViewportController
from .file_sink import FileCaptureSink

__all__ = [
    'CaptureSink',
    'FrameGrabber',
    'PreCaptureStabilizer',
    'ViewportController',
    'FileCaptureSink',
]
