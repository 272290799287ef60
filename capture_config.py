"""
Scroll Capture - Configuration

Tuned defaults for scroll-and-stitch capture, overridable from the environment.
"""

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


@dataclass
class CaptureConfig:
    """Capture pipeline settings"""
    overlap_height: int = 75  # Rows shared by consecutive frames to hide seams
    max_captures: int = 100  # Safety limit on frames per session
    max_safe_height: int = 32000  # Surfaces taller than this may be degraded by clamping
    max_canvas_dim: int = 32767  # PNG canvas ceiling per dimension
    settle_delay: float = 0.6  # Seconds after scroll for render (also paces ~2 grabs/sec)
    capture_attempts: int = 3  # Grab attempts per frame when rate limited
    retry_backoff: float = 1.0  # Seconds to wait after a quota failure
    pre_stabilize: bool = False
    pre_stabilize_max_duration: float = 10.0
    status_retention: float = 5.0  # Seconds a completed/error session stays queryable
    output_dir: str = "data/captures"

    @classmethod
    def from_env(cls) -> "CaptureConfig":
        """Build config from CAPTURE_* environment variables"""
        return cls(
            overlap_height=_env_int("CAPTURE_OVERLAP_HEIGHT", cls.overlap_height),
            max_captures=_env_int("CAPTURE_MAX_CAPTURES", cls.max_captures),
            max_safe_height=_env_int("CAPTURE_MAX_SAFE_HEIGHT", cls.max_safe_height),
            max_canvas_dim=_env_int("CAPTURE_MAX_CANVAS_DIM", cls.max_canvas_dim),
            settle_delay=_env_float("CAPTURE_SETTLE_DELAY", cls.settle_delay),
            capture_attempts=_env_int("CAPTURE_ATTEMPTS", cls.capture_attempts),
            retry_backoff=_env_float("CAPTURE_RETRY_BACKOFF", cls.retry_backoff),
            pre_stabilize=_env_bool("CAPTURE_PRE_STABILIZE", cls.pre_stabilize),
            pre_stabilize_max_duration=_env_float(
                "CAPTURE_PRE_STABILIZE_MAX_DURATION", cls.pre_stabilize_max_duration
            ),
            status_retention=_env_float("CAPTURE_STATUS_RETENTION", cls.status_retention),
            output_dir=os.getenv("CAPTURE_OUTPUT_DIR", cls.output_dir),
        )
