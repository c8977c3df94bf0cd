"""
smoother.py
-----------
Turns one track's jittery detection history into a calm virtual-camera path.

Pipeline:
1. Fill missing frames (interpolation / extrapolation).
2. Take the focus point of every box (anchor if known, else box center).
3. Light median + moving-average pass against single-frame jitter.
4. Pick sparse key points: a fixed time interval, or earlier on sharp turns.
5. Piecewise cubic Bezier through the key points, Catmull-Rom tangents, shifted
   forward along the velocity so the camera leads the subject.
6. Adaptive stabilization: motion-sized median, Gaussian only where jitter remains.
7. One crop size for the whole sequence, positions clamped inside the frame.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger
from scipy.ndimage import gaussian_filter1d, median_filter, uniform_filter1d

from .config import ReframingConfig, SmootherConfig
from .data_types import BoundingBox, FrameTransform, ReframeDimensions, TrajectoryPoint
from .interpolation import fill_track_gaps
from .reframe_size import calculate_reframe_size, estimate_head_size
from .utils import angle_between, clamp


# ==============================================================================
# 1. PATH PREPARATION
# ==============================================================================

def extract_path(boxes: Dict[int, BoundingBox]) -> List[TrajectoryPoint]:
    """Focus point of every box, ordered by frame."""
    points = []
    for frame in sorted(boxes):
        x, y = boxes[frame].focus()
        points.append(TrajectoryPoint(frame=frame, x=float(x), y=float(y)))
    return points


def pre_smooth(values: np.ndarray, window: int) -> np.ndarray:
    """
    Median of 3 followed by a centered moving average. Both are symmetric so
    the path does not lag; the two endpoints keep their raw values.
    """
    values = np.asarray(values, dtype=np.float64)
    if len(values) < 3:
        return values.copy()
    out = median_filter(values, size=3, mode="nearest")
    if window > 1:
        out = uniform_filter1d(out, size=window, mode="nearest")
    out[0], out[-1] = values[0], values[-1]
    return out


def representative_size(boxes: Sequence[BoundingBox]) -> Tuple[float, float]:
    """
    Robust (width, height) of a track: median of the values inside the
    inter-quartile range, so a few bad detections do not change the crop.
    """
    widths = np.array([b.width for b in boxes], dtype=np.float64)
    heights = np.array([b.height for b in boxes], dtype=np.float64)

    def _iqr_median(values: np.ndarray) -> float:
        q1, q3 = np.percentile(values, [25, 75])
        inner = values[(values >= q1) & (values <= q3)]
        return float(np.median(inner if inner.size else values))

    return _iqr_median(widths), _iqr_median(heights)


# ==============================================================================
# 2. KEY POINTS & BEZIER
# ==============================================================================

def key_interval(fps: float, smoothness: float, config: SmootherConfig) -> int:
    """Frames between regular key points: longer for smoother cameras."""
    seconds = config.min_key_seconds + (config.max_key_seconds - config.min_key_seconds) * smoothness
    return max(1, int(round(fps * seconds)))


def select_key_points(xs: np.ndarray, ys: np.ndarray, interval: int,
                      turn_angle_deg: float, min_speed: float) -> List[int]:
    """
    Indices of the key points along a dense path.

    A key point is placed every `interval` samples, or earlier where the
    heading turns by more than `turn_angle_deg` while the subject moves at
    least `min_speed` per sample. First and last samples are always keys.
    """
    n = len(xs)
    if n == 0:
        return []
    if n == 1:
        return [0]

    look = max(1, interval // 4)
    keys = [0]
    last = 0
    for j in range(1, n - 1):
        since = j - last
        if since >= interval:
            keys.append(j)
            last = j
            continue
        if since < look or j - look < 0 or j + look > n - 1:
            continue
        v_in = (xs[j] - xs[j - look], ys[j] - ys[j - look])
        v_out = (xs[j + look] - xs[j], ys[j + look] - ys[j])
        if math.hypot(*v_in) < min_speed * look or math.hypot(*v_out) < min_speed * look:
            continue
        if angle_between(v_in, v_out) > turn_angle_deg:
            keys.append(j)
            last = j
    if keys[-1] != n - 1:
        keys.append(n - 1)
    return keys


def bezier_control_points(times: np.ndarray, points: np.ndarray,
                          tension: float, lead: float) -> List[Tuple[np.ndarray, np.ndarray]]:
    """
    Inner control points (cp1, cp2) of each cubic segment between key points.

    Tangents are time-scaled Catmull-Rom velocities (one-sided at the ends)
    stretched by `2 * tension`; tension 0.5 is the classic Catmull-Rom spline.
    `lead` then pushes both control points forward along their key's velocity,
    so inside a segment the curve sits ahead of the subject by up to
    `lead * velocity * span / 4` and meets it again at the next key.

    Args:
        times: (K,) frame of each key point.
        points: (K, 2) key point positions.
    """
    k = len(times)
    velocities = np.zeros_like(points, dtype=np.float64)
    for i in range(k):
        lo, hi = max(0, i - 1), min(k - 1, i + 1)
        dt = times[hi] - times[lo]
        if dt > 0:
            velocities[i] = (points[hi] - points[lo]) / dt

    gain = 2.0 * tension
    segments = []
    for i in range(k - 1):
        span = times[i + 1] - times[i]
        cp1 = points[i] + (gain + lead) * velocities[i] * span / 3.0
        cp2 = points[i + 1] - (gain - lead) * velocities[i + 1] * span / 3.0
        segments.append((cp1, cp2))
    return segments


def evaluate_bezier(times: np.ndarray, points: np.ndarray,
                    controls: List[Tuple[np.ndarray, np.ndarray]]) -> np.ndarray:
    """Samples the piecewise Bezier at every integer frame from the first to the last key."""
    start, end = int(times[0]), int(times[-1])
    frames = np.arange(start, end + 1)
    out = np.empty((len(frames), 2), dtype=np.float64)
    seg = 0
    for idx, f in enumerate(frames):
        while seg < len(controls) - 1 and f > times[seg + 1]:
            seg += 1
        t0, t1 = times[seg], times[seg + 1]
        u = (f - t0) / (t1 - t0) if t1 > t0 else 0.0
        p0, p3 = points[seg], points[seg + 1]
        cp1, cp2 = controls[seg]
        mu = 1.0 - u
        out[idx] = mu ** 3 * p0 + 3 * mu ** 2 * u * cp1 + 3 * mu * u ** 2 * cp2 + u ** 3 * p3
    return out


# ==============================================================================
# 3. STABILIZATION
# ==============================================================================

def adaptive_median(values: np.ndarray, half_widths: np.ndarray) -> np.ndarray:
    """Median over a symmetric window whose half-width varies per sample."""
    n = len(values)
    out = values.copy()
    for i in range(n):
        h = int(min(half_widths[i], i, n - 1 - i))
        if h > 0:
            out[i] = np.median(values[i - h:i + h + 1])
    return out


def stabilize(path: np.ndarray, frame_diag: float, smoothness: float,
              config: SmootherConfig) -> np.ndarray:
    """
    Final pass over a dense (N, 2) path.

    Fast motion gets a small median window, near-static stretches a large one.
    A Gaussian is then blended in only where the second difference still
    exceeds `jitter_factor` times the mean step. First and last samples are
    never changed.
    """
    n = len(path)
    if n < 3:
        return path.copy()

    speed = np.hypot(np.gradient(path[:, 0]), np.gradient(path[:, 1]))
    fast = config.fast_motion_frac * frame_diag
    intensity = np.clip(speed / fast, 0.0, 1.0) if fast > 0 else np.ones(n)

    w_min = config.min_stabilize_window
    w_max = w_min + (config.max_stabilize_window - w_min) * smoothness
    windows = np.rint(w_max - (w_max - w_min) * intensity)
    half = (windows // 2).astype(int)

    out = np.column_stack([adaptive_median(path[:, 0], half),
                           adaptive_median(path[:, 1], half)])

    sigma = 1.0 + 3.0 * smoothness
    for axis in range(2):
        col = out[:, axis]
        steps = np.abs(np.diff(col))
        mean_step = float(steps.mean()) if steps.size else 0.0
        jitter = np.zeros(n)
        jitter[1:-1] = np.abs(np.diff(col, 2))
        mask = jitter > config.jitter_factor * mean_step
        mask[0] = mask[-1] = False
        if mask.any():
            blurred = gaussian_filter1d(col, sigma=sigma, mode="nearest")
            col[mask] = blurred[mask]

    out[0], out[-1] = path[0], path[-1]
    return out


# ==============================================================================
# 4. SMOOTHER
# ==============================================================================

class TrajectorySmoother:
    """
    Bezier trajectory smoother with adaptive stabilization.

    All tuning constants come from `SmootherConfig`; the user-facing
    `ReframingConfig.smoothness` picks where inside those ranges a run sits.
    """

    def __init__(self, config: Optional[SmootherConfig] = None):
        self.config = config or SmootherConfig()

    def smooth_path(self, xs: np.ndarray, ys: np.ndarray, frame_diag: float,
                    smoothness: float) -> np.ndarray:
        """Dense (N, 2) smoothed path for a gap-free (N,) x/y series."""
        cfg = self.config
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        raw = np.column_stack([xs, ys])
        if len(xs) < 2:
            return raw

        sx = pre_smooth(xs, cfg.pre_smooth_window)
        sy = pre_smooth(ys, cfg.pre_smooth_window)

        interval = key_interval(cfg.fps, smoothness, cfg)
        keys = select_key_points(sx, sy, interval, cfg.turn_angle_deg,
                                 cfg.turn_min_speed_frac * frame_diag)
        times = np.asarray(keys, dtype=np.float64)
        points = np.column_stack([sx[keys], sy[keys]])

        controls = bezier_control_points(times, points, cfg.tension, cfg.lead)
        dense = evaluate_bezier(times, points, controls)
        out = stabilize(dense, frame_diag, smoothness, cfg)
        out[0], out[-1] = raw[0], raw[-1]
        logger.debug(f"Bezier path: {len(xs)} samples, {len(keys)} key points, interval {interval}")
        return out

    def smooth_trajectory(self, history: Dict[int, BoundingBox], frame_size: Tuple[int, int],
                          reframing: Optional[ReframingConfig] = None,
                          total_frames: Optional[int] = None,
                          initial_target_size: Optional[Tuple[float, float]] = None) -> Dict[int, FrameTransform]:
        """
        Builds one FrameTransform per frame for a single track.

        Args:
            history: Detected boxes of the track keyed by frame number.
            frame_size: (width, height) of the source video.
            reframing: Output ratio, padding, smoothness and manual overrides.
            total_frames: Sequence length; defaults to the last detected frame + 1.
            initial_target_size: Subject (width, height) to size the crop with,
                or the head size when `reframing.head_framing` is set.
                When omitted a robust size is taken from the history (and a head
                size estimated from it in head mode).

        Returns:
            Dict[int, FrameTransform] covering every frame in [0, total_frames),
            or an empty dict when fewer than two detections are available.
        """
        reframing = reframing or ReframingConfig()
        if total_frames is None:
            total_frames = (max(history) + 1) if history else 0
        known = {f: b for f, b in history.items() if 0 <= f < total_frames}
        if len(known) < 2:
            logger.info(f"Not enough detections to smooth ({len(known)}), skipping reframing")
            return {}

        frame_w, frame_h = float(frame_size[0]), float(frame_size[1])
        filled = fill_track_gaps(known, total_frames, self.config.gap_decay, self.config.max_extrapolation)
        path = extract_path(filled)
        xs = np.array([p.x for p in path])
        ys = np.array([p.y for p in path])

        smoothed = self.smooth_path(xs, ys, math.hypot(frame_w, frame_h), reframing.smoothness)

        target = initial_target_size
        if target is None:
            target = representative_size([known[f] for f in sorted(known)])
            if reframing.head_framing:
                target = estimate_head_size(target)
        dims = calculate_reframe_size(target, (frame_w, frame_h), reframing.aspect_ratio, reframing)
        transforms = self.create_frame_transforms([p.frame for p in path], smoothed, dims,
                                                  (frame_w, frame_h), reframing)
        logger.info(
            f"Smoothed trajectory: {len(transforms)} frames, crop {dims.width:.0f}x{dims.height:.0f}, "
            f"scale {dims.scale:.2f}"
        )
        return transforms

    @staticmethod
    def create_frame_transforms(frames: Sequence[int], path: np.ndarray, dims: ReframeDimensions,
                                frame_size: Tuple[float, float],
                                reframing: ReframingConfig) -> Dict[int, FrameTransform]:
        """Applies the manual offset and keeps every crop inside the source frame."""
        frame_w, frame_h = frame_size
        half_w, half_h = dims.width / 2.0, dims.height / 2.0
        off_x, off_y = reframing.reframe_box_offset or (0.0, 0.0)

        transforms = {}
        for frame, (x, y) in zip(frames, path):
            cx = clamp(float(x) - off_x, half_w, frame_w - half_w)
            cy = clamp(float(y) - off_y, half_h, frame_h - half_h)
            transforms[int(frame)] = FrameTransform(x=cx, y=cy, scale=dims.scale, rotation=0.0)
        return transforms
