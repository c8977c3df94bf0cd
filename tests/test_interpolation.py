import pytest

from autoreframe.data_types import AnchoredBox, BoundingBox
from autoreframe.interpolation import fill_track_gaps


def test_interior_gap_is_linear_with_decayed_confidence():
    history = {
        0: BoundingBox(0, 0, 10, 20, confidence=1.0),
        4: BoundingBox(40, 8, 14, 20, confidence=1.0),
    }
    filled = fill_track_gaps(history, 5, gap_decay=0.9)
    assert sorted(filled) == [0, 1, 2, 3, 4]
    assert filled[2].x == pytest.approx(20)
    assert filled[2].y == pytest.approx(4)
    assert filled[2].width == pytest.approx(12)
    assert filled[1].confidence == pytest.approx(0.9)
    assert filled[2].confidence == pytest.approx(0.81)
    assert filled[3].confidence == pytest.approx(0.9)
    assert filled[0] is history[0]


def test_extrapolates_then_holds_after_last_detection():
    history = {
        0: BoundingBox(0, 0, 10, 10, confidence=1.0),
        1: BoundingBox(2, 1, 10, 10, confidence=1.0),
    }
    filled = fill_track_gaps(history, 10, gap_decay=0.5, max_extrapolation=3)
    assert filled[2].x == pytest.approx(4)
    assert filled[4].x == pytest.approx(8)
    assert filled[4].y == pytest.approx(4)
    # Held after max_extrapolation frames
    assert filled[9].x == pytest.approx(8)
    assert filled[3].confidence == pytest.approx(0.25)


def test_holds_first_box_before_first_detection():
    history = {3: BoundingBox(30, 40, 10, 10, confidence=0.8), 5: BoundingBox(50, 40, 10, 10)}
    filled = fill_track_gaps(history, 6, gap_decay=0.5)
    assert filled[0].x == 30 and filled[0].y == 40
    assert filled[1].confidence == pytest.approx(0.8 * 0.25)


def test_anchors_are_interpolated_or_carried():
    history = {
        0: AnchoredBox(0, 0, 10, 20, anchor_x=5, anchor_y=2),
        2: AnchoredBox(20, 0, 10, 20, anchor_x=25, anchor_y=4),
        4: BoundingBox(40, 0, 20, 20),
    }
    filled = fill_track_gaps(history, 5)
    assert filled[1].anchor == pytest.approx((15, 3))
    # Only the left side has an anchor: same relative spot inside the new box.
    mid = filled[3]
    assert mid.width == pytest.approx(15)
    assert mid.anchor == pytest.approx((mid.x + 0.5 * 15, mid.y + 0.2 * 20))


def test_empty_history():
    assert fill_track_gaps({}, 10) == {}
    assert fill_track_gaps({20: BoundingBox(0, 0, 1, 1)}, 10) == {}
