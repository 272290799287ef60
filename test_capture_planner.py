"""
Tests for scroll offset planning
"""

import pytest

from capture_config import CaptureConfig
from capture_models import ViewportDimensions
from capture_planner import CapturePlanner, plan_capture
from utils.error_handler import PlanningError


def test_short_page_is_single_capture():
    plan = plan_capture(800, 1000, 75)

    assert plan.offsets == (0,)
    assert plan.planned_count == 1
    assert not plan.truncated


def test_page_equal_to_viewport_is_single_capture():
    assert plan_capture(1000, 1000, 75).offsets == (0,)


def test_tall_page_steps_by_viewport_minus_overlap():
    plan = plan_capture(3000, 1000, 75)

    # 0, 925, 1850 then the last full viewport at 2000
    assert plan.offsets == (0, 925, 1850, 2000)
    assert plan.offsets[-1] + plan.viewport_height == plan.scroll_height


def test_exact_fit_does_not_add_extra_capture():
    # max_offset 1850 is reached exactly by the third step
    plan = plan_capture(2850, 1000, 75)

    assert plan.offsets == (0, 925, 1850)


def test_offsets_are_strictly_increasing_and_within_surface():
    plan = plan_capture(12345, 777, 75)

    assert plan.offsets[0] == 0
    assert all(b > a for a, b in zip(plan.offsets, plan.offsets[1:]))
    assert all(0 <= o <= 12345 - 777 for o in plan.offsets)
    assert plan.offsets[-1] == 12345 - 777


def test_zero_overlap_tiles_without_gaps():
    plan = plan_capture(3000, 1000, 0)

    assert plan.offsets == (0, 1000, 2000)


def test_max_captures_truncates_and_flags():
    plan = plan_capture(100000, 1000, 75, max_captures=5)

    assert plan.offsets == (0, 925, 1850, 2775, 3700)
    assert plan.truncated


def test_max_captures_exactly_sufficient_is_not_truncated():
    plan = plan_capture(3000, 1000, 75, max_captures=4)

    assert plan.planned_count == 4
    assert not plan.truncated


def test_exceeds_safe_height_is_flagged_not_rejected():
    plan = plan_capture(40000, 1000, 75, max_safe_height=32000)

    assert plan.exceeds_safe_height
    assert plan.offsets[-1] == 39000


def test_plan_records_geometry():
    plan = plan_capture(3000, 1000, 75, viewport_width=1280, device_pixel_ratio=2.0)

    assert plan.viewport_width == 1280
    assert plan.device_pixel_ratio == 2.0
    assert plan.overlap_height == 75


@pytest.mark.parametrize("scroll_height,viewport_height,overlap", [
    (0, 1000, 75),
    (-10, 1000, 75),
    (3000, 0, 75),
    (float("nan"), 1000, 75),
    (3000, float("inf"), 75),
    (3000, 1000, -1),
])
def test_invalid_geometry_raises(scroll_height, viewport_height, overlap):
    with pytest.raises(PlanningError):
        plan_capture(scroll_height, viewport_height, overlap)


def test_overlap_not_smaller_than_viewport_raises():
    with pytest.raises(PlanningError) as exc_info:
        plan_capture(3000, 75, 75)

    assert exc_info.value.code == "PLANNING_ERROR"
    assert exc_info.value.details["overlap_height"] == 75


def test_planner_uses_config_limits():
    planner = CapturePlanner(CaptureConfig(overlap_height=100, max_captures=2))
    dims = ViewportDimensions(scroll_height=5000, viewport_height=1000, viewport_width=800)

    plan = planner.plan(dims)

    assert plan.offsets == (0, 900)
    assert plan.truncated
    assert plan.viewport_width == 800
