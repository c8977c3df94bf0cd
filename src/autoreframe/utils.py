"""
utils.py
--------
Geometry helpers shared by the tracker and the reframing engine.

Box encodings used throughout the package:
- tlbr:  [x1, y1, x2, y2] (top-left / bottom-right corners)
- tlwh:  [x, y, w, h]     (top-left corner + size)
- xyah:  [cx, cy, a, h]   (center, aspect ratio w/h, height) - Kalman measurement space
"""

import math
from typing import Sequence, Tuple

import numpy as np


# ==============================================================================
# 1. BOX FORMAT CONVERSIONS
# ==============================================================================

def tlwh_to_tlbr(box: Sequence[float]) -> np.ndarray:
    """Converts [x, y, w, h] to [x1, y1, x2, y2]."""
    x, y, w, h = map(float, box)
    return np.array([x, y, x + w, y + h], dtype=np.float64)


def tlbr_to_tlwh(box: Sequence[float]) -> np.ndarray:
    """Converts [x1, y1, x2, y2] to [x, y, w, h]."""
    x1, y1, x2, y2 = map(float, box)
    return np.array([x1, y1, x2 - x1, y2 - y1], dtype=np.float64)


def tlwh_to_xyah(box: Sequence[float]) -> np.ndarray:
    """Converts [x, y, w, h] to the Kalman measurement [cx, cy, w/h, h]."""
    x, y, w, h = map(float, box)
    return np.array([x + w / 2.0, y + h / 2.0, w / h, h], dtype=np.float64)


def xyah_to_tlwh(xyah: Sequence[float]) -> np.ndarray:
    """Converts [cx, cy, a, h] back to [x, y, w, h]."""
    cx, cy, a, h = map(float, xyah)
    w = a * h
    return np.array([cx - w / 2.0, cy - h / 2.0, w, h], dtype=np.float64)


def tlbr_to_xyah(box: Sequence[float]) -> np.ndarray:
    return tlwh_to_xyah(tlbr_to_tlwh(box))


def xyah_to_tlbr(xyah: Sequence[float]) -> np.ndarray:
    return tlwh_to_tlbr(xyah_to_tlwh(xyah))


# ==============================================================================
# 2. OVERLAP & DISTANCE
# ==============================================================================

def calculate_box_area(box: Sequence[float]) -> float:
    """Computes area of a box [x1, y1, x2, y2]."""
    w = max(0.0, float(box[2]) - float(box[0]))
    h = max(0.0, float(box[3]) - float(box[1]))
    return w * h


def iou(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Intersection over Union of two corner-format boxes.

    Returns 0.0 for disjoint boxes and whenever the union is empty
    (both boxes degenerate).
    """
    inter_w = max(0.0, min(float(a[2]), float(b[2])) - max(float(a[0]), float(b[0])))
    inter_h = max(0.0, min(float(a[3]), float(b[3])) - max(float(a[1]), float(b[1])))
    inter = inter_w * inter_h
    union = calculate_box_area(a) + calculate_box_area(b) - inter
    if union <= 0.0:
        return 0.0
    return min(1.0, max(0.0, inter / union))


def compute_iou_matrix(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Computes the Intersection over Union (IoU) matrix between two sets of boxes.

    Args:
        a: Array of shape (N, 4) containing [x1, y1, x2, y2].
        b: Array of shape (M, 4) containing [x1, y1, x2, y2].

    Returns:
        np.ndarray: IoU matrix of shape (N, M).
    """
    a = np.asarray(a, dtype=np.float64).reshape(-1, 4)
    b = np.asarray(b, dtype=np.float64).reshape(-1, 4)
    N, M = a.shape[0], b.shape[0]
    if N == 0 or M == 0:
        return np.zeros((N, M), dtype=np.float64)

    # Broadcast coordinates to shape (N, M)
    x11, y11 = a[:, 0][:, None], a[:, 1][:, None]
    x12, y12 = a[:, 2][:, None], a[:, 3][:, None]
    x21, y21 = b[:, 0][None, :], b[:, 1][None, :]
    x22, y22 = b[:, 2][None, :], b[:, 3][None, :]

    inter_w = np.maximum(0.0, np.minimum(x12, x22) - np.maximum(x11, x21))
    inter_h = np.maximum(0.0, np.minimum(y12, y22) - np.maximum(y11, y21))
    inter = inter_w * inter_h

    area_a = (np.maximum(0.0, a[:, 2] - a[:, 0]) * np.maximum(0.0, a[:, 3] - a[:, 1]))[:, None]
    area_b = (np.maximum(0.0, b[:, 2] - b[:, 0]) * np.maximum(0.0, b[:, 3] - b[:, 1]))[None, :]
    union = area_a + area_b - inter

    out = np.zeros((N, M), dtype=np.float64)
    np.divide(inter, union, out=out, where=union > 0)
    return np.clip(out, 0.0, 1.0)


def center_distances(boxes_a: np.ndarray, boxes_b: np.ndarray) -> np.ndarray:
    """Computes Euclidean distance matrix between box centers (corner format)."""
    boxes_a = np.asarray(boxes_a, dtype=np.float64).reshape(-1, 4)
    boxes_b = np.asarray(boxes_b, dtype=np.float64).reshape(-1, 4)
    acx = (boxes_a[:, 0:1] + boxes_a[:, 2:3]) * 0.5
    acy = (boxes_a[:, 1:2] + boxes_a[:, 3:4]) * 0.5
    bcx = (boxes_b[:, 0:1] + boxes_b[:, 2:3]) * 0.5
    bcy = (boxes_b[:, 1:2] + boxes_b[:, 3:4]) * 0.5
    return np.hypot(acx - bcx.T, acy - bcy.T)


def angle_between(v1: Tuple[float, float], v2: Tuple[float, float]) -> float:
    """Unsigned angle in degrees between two 2D vectors; 0 if either is null."""
    n1 = math.hypot(v1[0], v1[1])
    n2 = math.hypot(v2[0], v2[1])
    if n1 == 0.0 or n2 == 0.0:
        return 0.0
    cos = (v1[0] * v2[0] + v1[1] * v2[1]) / (n1 * n2)
    return math.degrees(math.acos(max(-1.0, min(1.0, cos))))


def clamp(value: float, low: float, high: float) -> float:
    """Clamps value into [low, high]; if the range is inverted, returns its midpoint."""
    if low > high:
        return (low + high) / 2.0
    return max(low, min(high, value))
