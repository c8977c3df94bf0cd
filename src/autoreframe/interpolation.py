"""
interpolation.py
----------------
Fills the holes of one track's detection history so that every frame of the
sequence has a box before smoothing.

- Between two known boxes: linear (constant-velocity) interpolation.
- After the last known box: extrapolation with the velocity of the last two
  known boxes for a few frames, then the extrapolated box is held.
- Before the first known box: the first box is held.

Filled boxes get confidence `base * decay ** d`, where d is the distance in
frames to the nearest known box.
"""

from typing import Dict, Optional, Tuple

import numpy as np

from .config import GAP_DECAY, MAX_EXTRAPOLATION
from .data_types import BoundingBox


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _relative_anchor(box: BoundingBox) -> Optional[Tuple[float, float]]:
    if box.anchor is None or box.width <= 0 or box.height <= 0:
        return None
    ax, ay = box.anchor
    return (ax - box.x) / box.width, (ay - box.y) / box.height


def _carry_anchor(source: BoundingBox, x: float, y: float, w: float, h: float) -> Optional[Tuple[float, float]]:
    """Keeps the anchor at the same relative position inside the new box."""
    rel = _relative_anchor(source)
    if rel is None:
        return None
    return x + rel[0] * w, y + rel[1] * h


def _interpolate(prev_box: BoundingBox, next_box: BoundingBox, t: float,
                 confidence: float) -> BoundingBox:
    x = _lerp(prev_box.x, next_box.x, t)
    y = _lerp(prev_box.y, next_box.y, t)
    w = _lerp(prev_box.width, next_box.width, t)
    h = _lerp(prev_box.height, next_box.height, t)
    if prev_box.anchor is not None and next_box.anchor is not None:
        anchor = (_lerp(prev_box.anchor[0], next_box.anchor[0], t),
                  _lerp(prev_box.anchor[1], next_box.anchor[1], t))
    else:
        anchor = _carry_anchor(prev_box if prev_box.anchor is not None else next_box, x, y, w, h)
    return prev_box.with_geometry(x, y, w, h, anchor=anchor, confidence=confidence)


def _extrapolate(prev_prev: Optional[BoundingBox], prev_box: BoundingBox, dt_prev: int,
                 steps: int, confidence: float) -> BoundingBox:
    if prev_prev is None or steps == 0:
        return prev_box.with_geometry(prev_box.x, prev_box.y, prev_box.width, prev_box.height,
                                      anchor=prev_box.anchor, confidence=confidence)
    vx = (prev_box.x - prev_prev.x) / dt_prev
    vy = (prev_box.y - prev_prev.y) / dt_prev
    vw = (prev_box.width - prev_prev.width) / dt_prev
    vh = (prev_box.height - prev_prev.height) / dt_prev

    x = prev_box.x + vx * steps
    y = prev_box.y + vy * steps
    w = max(1.0, prev_box.width + vw * steps)
    h = max(1.0, prev_box.height + vh * steps)
    if prev_box.anchor is not None and prev_prev.anchor is not None:
        vax = (prev_box.anchor[0] - prev_prev.anchor[0]) / dt_prev
        vay = (prev_box.anchor[1] - prev_prev.anchor[1]) / dt_prev
        anchor = (prev_box.anchor[0] + vax * steps, prev_box.anchor[1] + vay * steps)
    else:
        anchor = _carry_anchor(prev_box, x, y, w, h)
    return prev_box.with_geometry(x, y, w, h, anchor=anchor, confidence=confidence)


def fill_track_gaps(history: Dict[int, BoundingBox], total_frames: int,
                    gap_decay: float = GAP_DECAY,
                    max_extrapolation: int = MAX_EXTRAPOLATION) -> Dict[int, BoundingBox]:
    """
    Returns a box for every frame in [0, total_frames).

    Args:
        history: Known boxes of one track keyed by frame number.
        total_frames: Length of the sequence.
        gap_decay: Confidence multiplier per frame of distance to a known box.
        max_extrapolation: Frames past the last known box that keep moving.

    Returns:
        Dict[int, BoundingBox]: Known boxes unchanged, gaps filled. Empty if the
        history has no frame inside the sequence.
    """
    known = sorted(f for f in history if 0 <= f < total_frames)
    if not known:
        return {}

    frames = np.asarray(known)
    filled: Dict[int, BoundingBox] = {}
    for frame in range(total_frames):
        if frame in history:
            filled[frame] = history[frame]
            continue

        pos = int(np.searchsorted(frames, frame))
        if pos == 0:
            first = history[known[0]]
            d = known[0] - frame
            filled[frame] = first.with_confidence(first.confidence * gap_decay ** d)
        elif pos == len(known):
            last_f = known[-1]
            last = history[last_f]
            d = frame - last_f
            prev_prev = history[known[-2]] if len(known) > 1 else None
            dt_prev = last_f - known[-2] if len(known) > 1 else 1
            filled[frame] = _extrapolate(prev_prev, last, dt_prev, min(d, max_extrapolation),
                                         last.confidence * gap_decay ** d)
        else:
            f0, f1 = known[pos - 1], known[pos]
            b0, b1 = history[f0], history[f1]
            t = (frame - f0) / (f1 - f0)
            d = min(frame - f0, f1 - frame)
            base = b0.confidence if frame - f0 <= f1 - frame else b1.confidence
            filled[frame] = _interpolate(b0, b1, t, base * gap_decay ** d)
    return filled
