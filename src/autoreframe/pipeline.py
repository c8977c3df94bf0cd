"""
pipeline.py
-----------
Glue between the tracker and the smoother.

- `load_detections`: reads a cached detection table into per-frame boxes.
- `TrackingSession`: runs the tracker frame by frame and records every track's boxes.
- `select_target_track`: picks the subject when the user did not.
- `reframe_sequence`: tracking + target selection + smoothing in one call.
- `transforms_to_frame`: hands the transforms to a renderer as a DataFrame.
"""

import os
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from tqdm import tqdm

from .byte_tracker import BYTETracker
from .config import ReframingConfig, SmootherConfig, TrackerConfig
from .data_types import BoundingBox, FrameTransform, make_box
from .smoother import TrajectorySmoother
from .utils import center_distances

DETECTION_COLUMNS = ["frame", "x1", "y1", "x2", "y2", "score", "cls"]

History = Dict[int, BoundingBox]


# ==============================================================================
# 1. DATA LOADING
# ==============================================================================

def detections_from_frame(df: pd.DataFrame) -> Dict[int, List[BoundingBox]]:
    """
    Groups a detection table into per-frame box lists.

    Required columns: frame, x1, y1, x2, y2, score, cls. Optional columns
    `class_name`, `anchor_x` and `anchor_y` are carried over when present.
    """
    missing = [c for c in DETECTION_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Detection table missing required columns: {missing}")

    has_name = "class_name" in df.columns
    has_anchor = "anchor_x" in df.columns and "anchor_y" in df.columns

    per_frame = defaultdict(list)
    for row in df.itertuples(index=False):
        anchor = None
        if has_anchor and not (pd.isna(row.anchor_x) or pd.isna(row.anchor_y)):
            anchor = (float(row.anchor_x), float(row.anchor_y))
        x1, y1, x2, y2 = float(row.x1), float(row.y1), float(row.x2), float(row.y2)
        per_frame[int(row.frame)].append(make_box(
            x1, y1, x2 - x1, y2 - y1,
            confidence=float(row.score),
            class_name=str(row.class_name) if has_name else "person",
            class_id=int(row.cls),
            anchor=anchor,
        ))
    return dict(per_frame)


def load_detections(path: str) -> Dict[int, List[BoundingBox]]:
    """
    Loads detections from Parquet or CSV into a per-frame dictionary.
    Keys are frame indices, values are lists of boxes.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Detection file not found: {path}")

    if path.lower().endswith(".parquet"):
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path)
    per_frame = detections_from_frame(df)
    logger.info(f"Loaded {len(df)} detections over {len(per_frame)} frames from {path}")
    return per_frame


# ==============================================================================
# 2. TRACKING SESSION
# ==============================================================================

class TrackingSession:
    """
    One tracker plus the history of every track it has output.

    Frames are numbered from 0 in the order they are fed in.
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.tracker = BYTETracker(config)
        self.histories: Dict[int, History] = defaultdict(dict)
        self.frame_count = 0

    def process_frame(self, detections: Sequence[BoundingBox]) -> List[BoundingBox]:
        """Tracks one frame and records the output boxes under the current frame number."""
        frame = self.frame_count
        tracked = self.tracker.update(detections)
        for box in tracked:
            self.histories[box.track_id][frame] = box
        self.frame_count += 1
        return tracked

    def run(self, detections_by_frame: Dict[int, Sequence[BoundingBox]], total_frames: Optional[int] = None,
            progress: bool = False) -> Dict[int, History]:
        """
        Feeds frames 0 .. total_frames-1, including frames without detections.

        Returns:
            Dict[int, History]: boxes of every track, keyed by track ID then frame.
        """
        if total_frames is None:
            total_frames = (max(detections_by_frame) + 1) if detections_by_frame else 0
        frames: Iterable[int] = range(self.frame_count, total_frames)
        if progress:
            frames = tqdm(frames, desc="Tracking", unit="frame")
        for frame in frames:
            self.process_frame(detections_by_frame.get(frame, []))
        logger.info(f"Tracked {total_frames} frames, {len(self.histories)} tracks")
        return dict(self.histories)

    def track_history(self, track_id: int) -> History:
        return dict(self.histories.get(track_id, {}))

    def reset(self) -> None:
        self.tracker.reset()
        self.histories.clear()
        self.frame_count = 0


# ==============================================================================
# 3. TARGET SELECTION
# ==============================================================================

def _track_score(history: History, strategy: str, frame_size: Tuple[float, float]) -> float:
    boxes = list(history.values())
    if strategy == "largest":
        return float(np.mean([b.area for b in boxes]))
    if strategy == "most-confident":
        return float(np.mean([b.confidence for b in boxes]))
    if strategy == "centered":
        cx, cy = frame_size[0] / 2.0, frame_size[1] / 2.0
        # Focus points as zero-size boxes
        focus = np.array([[*b.focus(), *b.focus()] for b in boxes], dtype=np.float64)
        dist = center_distances(focus, [[cx, cy, cx, cy]])
        return -float(dist.mean())
    raise ValueError(f"Unknown target selection strategy '{strategy}'")


def select_target_track(histories: Dict[int, History], frame_size: Tuple[float, float],
                        strategy: str = "largest") -> Optional[int]:
    """
    Picks the subject track.

    Tracks seen on at least two frames are preferred since a single frame
    cannot be smoothed. Ties go to the lower track ID.
    """
    candidates = {tid: h for tid, h in histories.items() if len(h) >= 2}
    if not candidates:
        candidates = {tid: h for tid, h in histories.items() if h}
    if not candidates:
        return None
    best = max(sorted(candidates), key=lambda tid: _track_score(candidates[tid], strategy, frame_size))
    return best


# ==============================================================================
# 4. FULL SEQUENCE
# ==============================================================================

def reframe_sequence(detections_by_frame: Dict[int, Sequence[BoundingBox]], frame_size: Tuple[int, int],
                     total_frames: Optional[int] = None,
                     reframing: Optional[ReframingConfig] = None,
                     tracker_config: Optional[TrackerConfig] = None,
                     smoother_config: Optional[SmootherConfig] = None,
                     target_track_id: Optional[int] = None,
                     initial_target_size: Optional[Tuple[float, float]] = None,
                     progress: bool = False) -> Tuple[Optional[int], Dict[int, FrameTransform]]:
    """
    Tracks all frames, chooses the subject and smooths its camera path.

    Returns:
        (track_id, transforms): the subject's ID (None if nothing was tracked)
        and its per-frame transforms (empty when it cannot be reframed).
    """
    reframing = reframing or ReframingConfig()
    if total_frames is None:
        total_frames = (max(detections_by_frame) + 1) if detections_by_frame else 0

    session = TrackingSession(tracker_config)
    histories = session.run(detections_by_frame, total_frames, progress=progress)

    if target_track_id is None:
        target_track_id = select_target_track(histories, frame_size, reframing.target_selection)
    if target_track_id is None or target_track_id not in histories:
        logger.warning(f"No usable track to reframe (requested: {target_track_id})")
        return target_track_id, {}

    smoother = TrajectorySmoother(smoother_config)
    transforms = smoother.smooth_trajectory(histories[target_track_id], frame_size, reframing,
                                            total_frames=total_frames,
                                            initial_target_size=initial_target_size)
    return target_track_id, transforms


def transforms_to_frame(transforms: Dict[int, FrameTransform]) -> pd.DataFrame:
    """Per-frame transforms as a DataFrame with columns frame, x, y, scale, rotation."""
    rows = [
        {"frame": f, "x": t.x, "y": t.y, "scale": t.scale, "rotation": t.rotation}
        for f, t in sorted(transforms.items())
    ]
    return pd.DataFrame(rows, columns=["frame", "x", "y", "scale", "rotation"])
