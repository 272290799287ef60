"""
Route Dependencies

Shared service instances for route modules, set once by server.py at startup.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from capture_orchestrator import CaptureOrchestrator
from capture_session import CaptureSessionTracker


@dataclass
class RouteDependencies:
    tracker: Optional[CaptureSessionTracker] = None
    orchestrator: Optional[CaptureOrchestrator] = None
    page: Optional[object] = None  # Playwright page the orchestrator captures
    # Held from the busy check through navigation until the capture has started
    capture_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


_deps = RouteDependencies()


def set_deps(deps: RouteDependencies):
    global _deps
    _deps = deps


def get_deps() -> RouteDependencies:
    return _deps
