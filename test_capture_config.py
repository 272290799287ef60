"""
Tests for environment-driven capture configuration
"""

from capture_config import CaptureConfig


def test_defaults():
    config = CaptureConfig()

    assert config.overlap_height == 75
    assert config.max_captures == 100
    assert config.max_canvas_dim == 32767
    assert config.settle_delay == 0.6
    assert config.capture_attempts == 3
    assert config.retry_backoff == 1.0
    assert config.pre_stabilize is False


def test_from_env_without_overrides(monkeypatch):
    for name in (
        "CAPTURE_OVERLAP_HEIGHT", "CAPTURE_MAX_CAPTURES", "CAPTURE_MAX_SAFE_HEIGHT", "CAPTURE_MAX_CANVAS_DIM",
        "CAPTURE_SETTLE_DELAY", "CAPTURE_ATTEMPTS", "CAPTURE_RETRY_BACKOFF", "CAPTURE_PRE_STABILIZE",
        "CAPTURE_PRE_STABILIZE_MAX_DURATION", "CAPTURE_STATUS_RETENTION", "CAPTURE_OUTPUT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)

    assert CaptureConfig.from_env() == CaptureConfig()


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("CAPTURE_OVERLAP_HEIGHT", "120")
    monkeypatch.setenv("CAPTURE_MAX_CAPTURES", "10")
    monkeypatch.setenv("CAPTURE_SETTLE_DELAY", "0.25")
    monkeypatch.setenv("CAPTURE_ATTEMPTS", "5")
    monkeypatch.setenv("CAPTURE_PRE_STABILIZE", "TRUE")
    monkeypatch.setenv("CAPTURE_STATUS_RETENTION", "2")
    monkeypatch.setenv("CAPTURE_OUTPUT_DIR", "/tmp/shots")

    config = CaptureConfig.from_env()

    assert config.overlap_height == 120
    assert config.max_captures == 10
    assert config.settle_delay == 0.25
    assert config.capture_attempts == 5
    assert config.pre_stabilize is True
    assert config.status_retention == 2.0
    assert config.output_dir == "/tmp/shots"
