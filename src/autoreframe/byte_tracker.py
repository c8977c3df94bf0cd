"""
byte_tracker.py
---------------
ByteTrack lifecycle manager.

Tracks live in an arena keyed by track ID; which pool a track belongs to
(tracked / lost / removed) is read from its `state` field. Removed tracks
leave the arena and are kept in a bounded deque for inspection only.
"""

from collections import deque
from typing import Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from .config import REMOVED_KEEP, TrackerConfig
from .data_types import BoundingBox, TrackState
from .kalman import KalmanBoxFilter
from .matching import fuse_score, iou_distance, linear_assignment
from .strack import STrack, TrackIdGenerator
from .utils import compute_iou_matrix


def _boxes(tracks: Sequence[STrack]) -> np.ndarray:
    if not tracks:
        return np.zeros((0, 4), dtype=np.float64)
    return np.stack([t.tlbr for t in tracks], axis=0)


class BYTETracker:
    """
    Two-stage (high / low confidence) multi-object tracker.

    Key Features:
    - High-confidence detections are matched first with a score-fused IoU cost.
    - Low-confidence detections only extend tracks that are already confirmed.
    - Lost tracks survive `track_buffer` frames and keep their ID when they come back.
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config or TrackerConfig()
        self.kalman = KalmanBoxFilter()
        self.id_generator = TrackIdGenerator()
        self.tracks: Dict[int, STrack] = {}
        self.removed = deque(maxlen=REMOVED_KEEP)
        self.frame_id = 0

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    @property
    def tracked_stracks(self) -> List[STrack]:
        return [t for t in self.tracks.values() if t.state in (TrackState.NEW, TrackState.TRACKED)]

    @property
    def lost_stracks(self) -> List[STrack]:
        return [t for t in self.tracks.values() if t.state == TrackState.LOST]

    @property
    def removed_stracks(self) -> List[STrack]:
        return list(self.removed)

    def reset(self) -> None:
        """Drops every track and restarts frame and ID numbering."""
        self.tracks.clear()
        self.removed.clear()
        self.frame_id = 0
        self.id_generator.reset()
        logger.info("Tracker reset")

    def _remove(self, track: STrack) -> None:
        track.mark_removed()
        self.tracks.pop(track.track_id, None)
        self.removed.append(track)

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------

    def _split_detections(self, detections: Sequence[BoundingBox]):
        cfg = self.config
        high, low = [], []
        for det in detections:
            if det.width <= 0 or det.height <= 0 or det.width * det.height <= cfg.min_box_area:
                continue
            if det.confidence >= cfg.track_thresh:
                high.append(STrack.from_box(det))
            elif det.confidence >= cfg.low_thresh:
                low.append(STrack.from_box(det))
        return high, low

    def update(self, detections: Sequence[BoundingBox], frame_idx: Optional[int] = None) -> List[BoundingBox]:
        """
        Main update loop for the tracker.

        Steps:
        1. Split detections into high and low confidence, drop tiny boxes.
        2. Predict Kalman states of tracked and lost tracks.
        3. Match confirmed tracks to high detections (score-fused IoU).
        4. Match the leftovers to low detections (IoU only).
        5. Match unconfirmed tracks to the remaining high detections.
        6. Start new tracks from whatever high detections are still unmatched.
        7. Give lost tracks a chance to reclaim those detections; expire old ones.
        8. Drop overlapping duplicates.

        Args:
            detections: Boxes for this frame, in any order.
            frame_idx: Optional explicit frame counter. When given it must be
                exactly one more than the previous call's.

        Returns:
            Confirmed, activated tracks as boxes carrying their track IDs.
        """
        if frame_idx is not None and frame_idx != self.frame_id + 1:
            raise ValueError(
                f"Frames must be consecutive: expected frame {self.frame_id + 1}, got {frame_idx}"
            )
        self.frame_id += 1
        frame_id = self.frame_id
        cfg = self.config

        det_high, det_low = self._split_detections(detections)

        unconfirmed = [t for t in self.tracks.values() if t.state == TrackState.NEW]
        confirmed = [t for t in self.tracks.values() if t.state == TrackState.TRACKED]
        previously_lost = [t for t in self.tracks.values() if t.state == TrackState.LOST]

        for t in confirmed + unconfirmed + previously_lost:
            t.predict(self.kalman)

        # Stage 1: confirmed tracks vs high-confidence detections
        cost = fuse_score(iou_distance(_boxes(confirmed), _boxes(det_high)), [d.score for d in det_high])
        matches, u_track, u_det = linear_assignment(cost, cfg.match_thresh)
        for it, idet in matches:
            confirmed[it].update(self.kalman, det_high[idet], frame_id)

        # Stage 2: leftover confirmed tracks vs low-confidence detections
        remaining = [confirmed[i] for i in u_track]
        matches, u_track2, _ = linear_assignment(
            iou_distance(_boxes(remaining), _boxes(det_low)), cfg.second_match_thresh
        )
        for it, idet in matches:
            remaining[it].update(self.kalman, det_low[idet], frame_id)
        newly_lost = [remaining[i] for i in u_track2]
        for t in newly_lost:
            t.mark_lost()
            logger.debug(f"Frame {frame_id}: track {t.track_id} lost")

        # Stage 3: unconfirmed tracks vs high detections left from stage 1
        left_high = [det_high[i] for i in u_det]
        matches, u_unconf, u_det3 = linear_assignment(
            iou_distance(_boxes(unconfirmed), _boxes(left_high)), cfg.unconfirmed_match_thresh
        )
        for it, idet in matches:
            unconfirmed[it].update(self.kalman, left_high[idet], frame_id)
        for i in u_unconf:
            logger.debug(f"Frame {frame_id}: unconfirmed track {unconfirmed[i].track_id} removed")
            self._remove(unconfirmed[i])

        # Stage 4: new tracks from the remaining high detections
        fresh_dets = [left_high[i] for i in u_det3]
        spawned = []
        for det in fresh_dets:
            det.activate(self.kalman, frame_id, self.id_generator)
            self.tracks[det.track_id] = det
            spawned.append(det)
            logger.debug(f"Frame {frame_id}: track {det.track_id} created")

        # Stage 5: lost tracks reclaim the same detections
        lost_pool = previously_lost + newly_lost
        matches, u_lost, _ = linear_assignment(
            iou_distance(_boxes(lost_pool), _boxes(fresh_dets)), cfg.match_thresh
        )
        for it, idet in matches:
            track = lost_pool[it]
            track.re_activate(self.kalman, fresh_dets[idet], frame_id)
            logger.debug(f"Frame {frame_id}: track {track.track_id} reactivated")
            # The detection belongs to the returning track, not the one spawned from it.
            self._remove(spawned[idet])
        for i in u_lost:
            track = lost_pool[i]
            if frame_id - track.frame_id > cfg.track_buffer:
                logger.debug(f"Frame {frame_id}: track {track.track_id} expired after {frame_id - track.frame_id} frames")
                self._remove(track)

        self._remove_duplicates(frame_id)

        return [t.to_box() for t in self.tracks.values()
                if t.state == TrackState.TRACKED and t.is_activated]

    def _remove_duplicates(self, frame_id: int) -> None:
        """Among overlapping tracked-pool tracks, keeps the older one."""
        pool = self.tracked_stracks
        if len(pool) < 2:
            return
        ious = compute_iou_matrix(_boxes(pool), _boxes(pool))
        drop = set()
        for i in range(len(pool)):
            for j in range(i + 1, len(pool)):
                if ious[i, j] > self.config.duplicate_iou:
                    if pool[i].age(frame_id) < pool[j].age(frame_id):
                        drop.add(i)
                    else:
                        drop.add(j)
        for i in sorted(drop):
            logger.debug(f"Frame {frame_id}: duplicate track {pool[i].track_id} dropped")
            self._remove(pool[i])
