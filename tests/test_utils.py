import numpy as np
import pytest

from autoreframe.utils import (
    angle_between,
    center_distances,
    clamp,
    compute_iou_matrix,
    iou,
    tlbr_to_xyah,
    tlwh_to_tlbr,
    tlwh_to_xyah,
    xyah_to_tlbr,
    xyah_to_tlwh,
)

BOXES = [
    [0, 0, 10, 10],
    [5, 5, 15, 15],
    [20, 20, 30, 40],
    [0, 0, 100, 50],
    [2.5, 3.5, 7.25, 9.0],
]


@pytest.mark.parametrize("a", BOXES)
@pytest.mark.parametrize("b", BOXES)
def test_iou_symmetric_and_bounded(a, b):
    value = iou(a, b)
    assert value == pytest.approx(iou(b, a))
    assert 0.0 <= value <= 1.0


@pytest.mark.parametrize("a", BOXES)
def test_iou_with_itself_is_one(a):
    assert iou(a, a) == pytest.approx(1.0)


def test_iou_known_value():
    # 5x5 overlap, union 100 + 100 - 25
    assert iou([0, 0, 10, 10], [5, 5, 15, 15]) == pytest.approx(25 / 175)


def test_iou_disjoint_and_degenerate():
    assert iou([0, 0, 10, 10], [20, 20, 30, 30]) == 0.0
    assert iou([0, 0, 0, 0], [0, 0, 0, 0]) == 0.0
    assert iou([5, 5, 5, 15], [0, 0, 10, 10]) == 0.0


def test_iou_matrix_matches_pairwise():
    a = np.array(BOXES[:3], dtype=float)
    b = np.array(BOXES[2:], dtype=float)
    mat = compute_iou_matrix(a, b)
    assert mat.shape == (3, 3)
    for i in range(3):
        for j in range(3):
            assert mat[i, j] == pytest.approx(iou(a[i], b[j]))


def test_iou_matrix_empty():
    assert compute_iou_matrix(np.zeros((0, 4)), np.array(BOXES)).shape == (0, len(BOXES))


def test_box_conversions_round_trip():
    tlwh = np.array([12.0, 30.0, 40.0, 80.0])
    assert np.allclose(xyah_to_tlwh(tlwh_to_xyah(tlwh)), tlwh)
    tlbr = tlwh_to_tlbr(tlwh)
    assert np.allclose(tlbr, [12.0, 30.0, 52.0, 110.0])
    assert np.allclose(xyah_to_tlbr(tlbr_to_xyah(tlbr)), tlbr)
    cx, cy, a, h = tlwh_to_xyah(tlwh)
    assert (cx, cy, a, h) == pytest.approx((32.0, 70.0, 0.5, 80.0))


def test_angle_between():
    assert angle_between((1, 0), (0, 1)) == pytest.approx(90.0)
    assert angle_between((1, 0), (-1, 0)) == pytest.approx(180.0)
    assert angle_between((0, 0), (1, 0)) == 0.0


def test_clamp():
    assert clamp(5, 0, 10) == 5
    assert clamp(-1, 0, 10) == 0
    assert clamp(11, 0, 10) == 10
    assert clamp(3, 6, 4) == 5


def test_center_distances():
    a = np.array([[0, 0, 10, 10], [10, 10, 20, 30]])
    b = np.array([[3, 4, 7, 6], [5, 5, 5, 5]])
    d = center_distances(a, b)
    assert d.shape == (2, 2)
    assert d[0, 0] == pytest.approx(0.0)
    assert d[0, 1] == pytest.approx(0.0)
    assert d[1, 0] == pytest.approx(np.hypot(10, 15))
    assert center_distances(np.zeros((0, 4)), b).shape == (0, 2)
