"""
matching.py
-----------
Cost matrices and the Hungarian assignment used by the tracker.
"""

from typing import List, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from .utils import compute_iou_matrix

# Cost given to gated-out pairs before solving. Any value above every real
# cost works; assignments landing on it are rejected.
GATED_COST = 1e6

Matches = List[Tuple[int, int]]


def iou_distance(track_boxes: np.ndarray, det_boxes: np.ndarray) -> np.ndarray:
    """cost[i, j] = 1 - IoU(track_i, det_j) for corner-format boxes."""
    return 1.0 - compute_iou_matrix(track_boxes, det_boxes)


def fuse_score(cost: np.ndarray, det_scores: Sequence[float]) -> np.ndarray:
    """
    Folds detection confidence into an IoU cost: 1 - IoU * score.

    Confident detections become cheaper to match than weak ones with the
    same overlap.
    """
    if cost.size == 0:
        return cost
    iou_sim = 1.0 - cost
    scores = np.asarray(det_scores, dtype=np.float64)[None, :]
    return 1.0 - iou_sim * scores


def linear_assignment(cost: np.ndarray, thresh: float) -> Tuple[Matches, List[int], List[int]]:
    """
    Solves the minimum-cost assignment and rejects pairs at or above `thresh`.

    Rectangular matrices are handled directly by scipy's solver (equivalent to
    padding with a sentinel cost). Only pairs with cost strictly below the
    threshold are accepted.

    Returns:
        matches: (track_idx, det_idx) pairs ordered by track index.
        unmatched_tracks: sorted track indices.
        unmatched_dets: sorted detection indices.
    """
    cost = np.asarray(cost, dtype=np.float64)
    n_rows, n_cols = cost.shape if cost.ndim == 2 else (0, 0)
    if n_rows == 0 or n_cols == 0:
        return [], list(range(n_rows)), list(range(n_cols))

    # Apply Gating
    gated = cost.copy()
    gated[~(gated < thresh)] = GATED_COST

    rows, cols = linear_sum_assignment(gated)
    matches = []
    used_r, used_c = set(), set()
    for r, c in zip(rows.tolist(), cols.tolist()):
        if gated[r, c] < thresh:
            matches.append((r, c))
            used_r.add(r)
            used_c.add(c)

    matches.sort()
    un_t = [i for i in range(n_rows) if i not in used_r]
    un_d = [j for j in range(n_cols) if j not in used_c]
    return matches, un_t, un_d
