"""
Centralized Error Handling Module for Scroll Capture

Provides the capture error taxonomy, consistent error responses, logging,
and user-friendly messages.
"""

import logging
import traceback
from enum import Enum
from typing import Dict, Any, Optional
from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger("scroll_capture")


# =============================================================================
# ERROR HINTS - User-friendly troubleshooting suggestions
# =============================================================================

ERROR_HINTS = {
    "planning_failed": {
        "message": "Page geometry is not capturable",
        "hint": "The viewport must be taller than the overlap band. Check CAPTURE_OVERLAP_HEIGHT against the viewport size.",
    },
    "controller_failed": {
        "message": "Could not scroll or measure the page",
        "hint": "The page may have navigated away or closed. Reload it and try again.",
    },
    "capture_quota": {
        "message": "Screenshot rate limit exceeded",
        "hint": "The capture backend allows only a few snapshots per second. Increase CAPTURE_SETTLE_DELAY or CAPTURE_RETRY_BACKOFF.",
    },
    "capture_failed": {
        "message": "Failed to capture viewport",
        "hint": "The page may be hidden or the browser busy. Bring the page to the foreground and retry.",
    },
    "collection_empty": {
        "message": "No viewports were captured",
        "hint": "The page reported no scrollable content. Wait for it to finish loading before capturing.",
    },
    "stitch_failed": {
        "message": "Failed to stitch captures",
        "hint": "One of the captured frames could not be decoded. Retry the capture.",
    },
    "persistence_failed": {
        "message": "Failed to save the captured image",
        "hint": "Check that CAPTURE_OUTPUT_DIR exists and is writable.",
    },
    "capture_in_progress": {
        "message": "A capture is already running",
        "hint": "Wait for the current capture to finish or cancel it first.",
    },
    "not_capturable": {
        "message": "This page cannot be captured",
        "hint": "Browser internal pages cannot be captured. Navigate to a regular website.",
    },
}


def get_error_with_hint(error_type: str, original_message: str = "") -> dict:
    """
    Get error message with troubleshooting hint.

    Args:
        error_type: Key from ERROR_HINTS dictionary
        original_message: Original error message to include

    Returns:
        Dict with error and hint
    """
    hint_info = ERROR_HINTS.get(error_type, {})
    return {
        "error": original_message or hint_info.get("message", "Unknown error"),
        "hint": hint_info.get("hint", ""),
    }


def classify_error(error: Exception) -> str:
    """
    Classify an exception to determine the appropriate hint type.

    Returns:
        Error type key for ERROR_HINTS lookup, or "" when none applies
    """
    for error_class, error_type in _HINT_TYPES:
        if isinstance(error, error_class):
            return error_type
    return ""


class CaptureServiceError(Exception):
    """Base exception for all scroll capture errors"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class PlanningError(CaptureServiceError):
    """Raised when surface geometry cannot produce a capture plan"""

    def __init__(self, message: str, **details):
        super().__init__(message, code="PLANNING_ERROR", details=details)


class CollectionError(CaptureServiceError):
    """Raised when viewport collection aborts"""

    def __init__(self, message: str, code: str = "COLLECTION_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ControllerError(CollectionError):
    """Raised when scrolling or measuring the surface fails"""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message, code="CONTROLLER_ERROR", details={"offset": offset})


class CaptureError(CollectionError):
    """Raised when the frame grabber fails for a non-quota reason"""

    def __init__(self, message: str, offset: Optional[int] = None, code: str = "CAPTURE_ERROR", **details):
        details["offset"] = offset
        super().__init__(message, code=code, details=details)


class CaptureQuotaError(CaptureError):
    """Raised when the grabber stays rate limited for every attempt"""

    def __init__(self, message: str, attempts: int, offset: Optional[int] = None):
        super().__init__(message, offset=offset, code="CAPTURE_QUOTA_ERROR", attempts=attempts)
        self.attempts = attempts


class CollectionEmptyError(CollectionError):
    """Raised when a plan produced no frames"""

    def __init__(self, message: str = "No captures were collected"):
        super().__init__(message, code="COLLECTION_EMPTY")


class StitchError(CaptureServiceError):
    """Raised when frames cannot be composited"""

    def __init__(self, message: str, frame_index: Optional[int] = None):
        super().__init__(message, code="STITCH_ERROR", details={"frame_index": frame_index})


class PersistenceError(CaptureServiceError):
    """Raised when the sink fails to store the final image"""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message, code="PERSISTENCE_ERROR", details={"filename": filename})


class CaptureInProgressError(CaptureServiceError):
    """Raised when a capture is requested while another runs"""

    def __init__(self, session_id: Optional[str] = None):
        super().__init__(
            "Capture already in progress",
            code="CAPTURE_IN_PROGRESS",
            details={"session_id": session_id},
        )


class TargetNotCapturableError(CaptureServiceError):
    """Raised for browser-internal or otherwise restricted URLs"""

    def __init__(self, url: Optional[str] = None):
        super().__init__(
            "Cannot capture this page. Please navigate to a regular website.",
            code="TARGET_NOT_CAPTURABLE",
            details={"url": url},
        )


class GrabFailureKind(str, Enum):
    """Why a frame grab failed"""
    QUOTA = "quota"  # Transient rate limit; retried after backoff
    OTHER = "other"


class FrameGrabError(Exception):
    """Raised by frame grabber adapters with a structured failure kind"""

    def __init__(self, message: str, kind: GrabFailureKind = GrabFailureKind.OTHER):
        self.kind = kind
        super().__init__(message)

    @property
    def is_quota(self) -> bool:
        return self.kind == GrabFailureKind.QUOTA


# Most specific classes first
_HINT_TYPES = (
    (PlanningError, "planning_failed"),
    (ControllerError, "controller_failed"),
    (CaptureQuotaError, "capture_quota"),
    (CaptureError, "capture_failed"),
    (CollectionEmptyError, "collection_empty"),
    (StitchError, "stitch_failed"),
    (PersistenceError, "persistence_failed"),
    (CaptureInProgressError, "capture_in_progress"),
    (TargetNotCapturableError, "not_capturable"),
)


def create_error_response(
    error: Exception,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    include_traceback: bool = False,
) -> JSONResponse:
    """
    Create a standardized error response

    Args:
        error: The exception that occurred
        status_code: HTTP status code
        include_traceback: Include full traceback in response (debug only)

    Returns:
        JSONResponse with error details
    """
    error_response = {
        "success": False,
        "error": {"message": str(error), "type": error.__class__.__name__},
    }

    if isinstance(error, CaptureServiceError):
        error_response["error"]["code"] = error.code
        error_response["error"]["details"] = error.details

    hint = get_error_with_hint(classify_error(error))["hint"]
    if hint:
        error_response["error"]["hint"] = hint

    if include_traceback:
        error_response["error"]["traceback"] = traceback.format_exc()

    logger.error(f"{error.__class__.__name__}: {error}", exc_info=True)

    return JSONResponse(status_code=status_code, content=error_response)


def handle_api_error(error: Exception) -> JSONResponse:
    """
    Handle API errors with appropriate status codes

    Args:
        error: The exception to handle

    Returns:
        JSONResponse with appropriate status code
    """
    if isinstance(error, CaptureInProgressError):
        return create_error_response(error, status.HTTP_409_CONFLICT)

    elif isinstance(error, (TargetNotCapturableError, PlanningError, ValueError)):
        return create_error_response(error, status.HTTP_400_BAD_REQUEST)

    elif isinstance(error, CaptureQuotaError):
        return create_error_response(error, status.HTTP_429_TOO_MANY_REQUESTS)

    elif isinstance(error, ControllerError):
        return create_error_response(error, status.HTTP_503_SERVICE_UNAVAILABLE)

    else:
        return create_error_response(error, status.HTTP_500_INTERNAL_SERVER_ERROR)


def get_user_friendly_message(error: Exception) -> str:
    """
    Get a user-friendly error message for status display

    Args:
        error: The exception

    Returns:
        User-friendly error message
    """
    if isinstance(error, CaptureQuotaError):
        return f"Screenshot rate limit exceeded after {error.attempts} attempts."

    elif isinstance(error, CaptureError):
        return f"Failed to capture viewport: {error.message}"

    elif isinstance(error, ControllerError):
        return f"Could not scroll the page: {error.message}"

    elif isinstance(error, CaptureServiceError):
        return error.message

    else:
        return f"An unexpected error occurred: {str(error)}"


def create_success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a standardized success response

    Returns:
        Dict with success response format: {success: True, data: ..., message: ...}
    """
    response = {"success": True}

    if data is not None:
        response["data"] = data

    if message is not None:
        response["message"] = message

    return response


# Context manager for error handling
class ErrorContext:
    """
    Context manager that re-raises foreign exceptions as capture errors

    Usage:
        with ErrorContext("scrolling to Y=925", raise_as=ControllerError):
            # code that might fail
            pass
    """

    def __init__(self, operation: str, raise_as: type = CaptureServiceError):
        self.operation = operation
        self.raise_as = raise_as

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and issubclass(exc_type, Exception):
            logger.error(f"Error during {self.operation}: {exc_val}")
            if not isinstance(exc_val, CaptureServiceError):
                raise self.raise_as(f"Failed {self.operation}: {exc_val}") from exc_val
        return False  # Don't suppress exception
