"""
Scroll Capture - Session Progress Tracker

Single-slot store for the observer-visible capture session. The orchestration
driving a session is its only writer; observers read snapshots via query() or
receive each write as a push notification.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from capture_models import CapturePhase, CaptureSession

logger = logging.getLogger(__name__)

SessionObserver = Callable[[CaptureSession], None]


class CaptureSessionTracker:
    """
    Holds the current capture session record.

    Every update replaces the record wholesale. Terminal records (completed,
    error) stay readable for retention_seconds so a late observer still sees
    the outcome once, then are cleared.
    """

    def __init__(self, retention_seconds: float = 5.0):
        self.retention_seconds = retention_seconds
        self._current: Optional[CaptureSession] = None
        self._observers: List[SessionObserver] = []
        self._clear_handle: Optional[asyncio.TimerHandle] = None

    def add_observer(self, observer: SessionObserver):
        self._observers.append(observer)

    def remove_observer(self, observer: SessionObserver):
        if observer in self._observers:
            self._observers.remove(observer)

    def update(
        self,
        session_id: str,
        phase: CapturePhase,
        message: str,
        progress: Optional[int] = None,
    ) -> CaptureSession:
        """Overwrite the current session record and notify observers"""
        session = CaptureSession(
            session_id=session_id,
            phase=phase,
            message=message,
            progress=progress,
        )
        self._current = session
        self._cancel_scheduled_clear()

        logger.debug(f"[SessionTracker] {session_id}: {phase.value} {progress if progress is not None else '-'}% {message}")

        if phase.is_terminal:
            self._schedule_clear(session_id)

        self._notify(session)
        return session

    def query(self) -> Optional[CaptureSession]:
        """Current session record, or None"""
        return self._current

    def is_busy(self) -> bool:
        """True while a non-terminal session is current"""
        return self._current is not None and not self._current.phase.is_terminal

    def clear(self, session_id: Optional[str] = None):
        """Drop the current record; with session_id, only if it still belongs to that session"""
        if self._current is None:
            return
        if session_id is not None and self._current.session_id != session_id:
            return
        logger.debug(f"[SessionTracker] Cleared session {self._current.session_id}")
        self._current = None
        self._cancel_scheduled_clear()

    def _notify(self, session: CaptureSession):
        for observer in list(self._observers):
            try:
                observer(session)
            except Exception as e:
                logger.warning(f"[SessionTracker] Observer failed: {e}")

    def _schedule_clear(self, session_id: str):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # No event loop; record stays until the next update or clear()
        self._clear_handle = loop.call_later(self.retention_seconds, self.clear, session_id)

    def _cancel_scheduled_clear(self):
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
