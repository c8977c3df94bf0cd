"""
strack.py
---------
Single-track record used by the lifecycle manager.
"""

from typing import Optional, Tuple

import numpy as np

from .data_types import BoundingBox, TrackState, make_box
from .kalman import KalmanBoxFilter
from .utils import tlwh_to_tlbr, tlwh_to_xyah, xyah_to_tlwh


class TrackIdGenerator:
    """Hands out 1, 2, 3, ... for one tracker instance. IDs are never reused."""

    def __init__(self, start: int = 1):
        self._start = start
        self._next = start

    def next_id(self) -> int:
        tid = self._next
        self._next += 1
        return tid

    def reset(self) -> None:
        self._next = self._start


class STrack:
    """
    Represents a single tracked subject.
    Maintains lifecycle state and the Kalman (mean, covariance) pair.
    """

    def __init__(self, tlwh, score: float, class_name: str = "person", class_id: int = 0,
                 anchor: Optional[Tuple[float, float]] = None):
        self._tlwh = np.asarray(tlwh, dtype=np.float64)
        self.score = float(score)
        self.class_name = class_name
        self.class_id = int(class_id)
        self.anchor_offset = self._relative_anchor(self._tlwh, anchor)

        self.track_id = 0
        self.state = TrackState.NEW
        self.is_activated = False
        self.mean: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None
        self.frame_id = 0
        self.start_frame = 0
        self.tracklet_len = 0

    @classmethod
    def from_box(cls, box: BoundingBox) -> "STrack":
        return cls([box.x, box.y, box.width, box.height], box.confidence,
                   box.class_name, box.class_id, anchor=box.anchor)

    @staticmethod
    def _relative_anchor(tlwh: np.ndarray, anchor) -> Optional[Tuple[float, float]]:
        # Anchor stored as a fraction of the box so it follows the filtered box.
        if anchor is None or tlwh[2] <= 0 or tlwh[3] <= 0:
            return None
        return ((float(anchor[0]) - tlwh[0]) / tlwh[2], (float(anchor[1]) - tlwh[1]) / tlwh[3])

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def tlwh(self) -> np.ndarray:
        """Current box as [x, y, w, h]: filtered state when available, else the detection."""
        if self.mean is None:
            return self._tlwh.copy()
        return xyah_to_tlwh(self.mean[:4])

    @property
    def tlbr(self) -> np.ndarray:
        return tlwh_to_tlbr(self.tlwh)

    @property
    def anchor(self) -> Optional[Tuple[float, float]]:
        if self.anchor_offset is None:
            return None
        x, y, w, h = self.tlwh
        return x + self.anchor_offset[0] * w, y + self.anchor_offset[1] * h

    def age(self, frame_id: int) -> int:
        return frame_id - self.start_frame

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def predict(self, kalman: KalmanBoxFilter) -> None:
        """Advances the Kalman state one frame."""
        mean_state = self.mean.copy()
        if self.state != TrackState.TRACKED:
            # Height velocity is not trusted once the subject is out of sight.
            mean_state[7] = 0.0
        self.mean, self.covariance = kalman.predict(mean_state, self.covariance)

    def activate(self, kalman: KalmanBoxFilter, frame_id: int, id_generator: TrackIdGenerator) -> None:
        """Starts a new tracklet. Tracks born on the very first frame are confirmed at once."""
        self.track_id = id_generator.next_id()
        self.mean, self.covariance = kalman.initiate(tlwh_to_xyah(self._tlwh))
        self.tracklet_len = 0
        if frame_id == 1:
            self.state = TrackState.TRACKED
            self.is_activated = True
        else:
            self.state = TrackState.NEW
            self.is_activated = False
        self.frame_id = frame_id
        self.start_frame = frame_id

    def re_activate(self, kalman: KalmanBoxFilter, new_track: "STrack", frame_id: int,
                    id_generator: Optional[TrackIdGenerator] = None) -> None:
        """Brings a lost track back. A new ID is drawn only when a generator is given."""
        self.mean, self.covariance = kalman.update(
            self.mean, self.covariance, tlwh_to_xyah(new_track.tlwh)
        )
        self._absorb(new_track)
        self.tracklet_len = 0
        self.state = TrackState.TRACKED
        self.is_activated = True
        self.frame_id = frame_id
        if id_generator is not None:
            self.track_id = id_generator.next_id()

    def update(self, kalman: KalmanBoxFilter, new_track: "STrack", frame_id: int) -> None:
        """Corrects the state with a matched detection and confirms the track."""
        self.frame_id = frame_id
        self.tracklet_len += 1
        self.mean, self.covariance = kalman.update(
            self.mean, self.covariance, tlwh_to_xyah(new_track.tlwh)
        )
        self._absorb(new_track)
        self.state = TrackState.TRACKED
        self.is_activated = True

    def _absorb(self, new_track: "STrack") -> None:
        self.score = new_track.score
        self.class_name = new_track.class_name
        self.class_id = new_track.class_id
        if new_track.anchor_offset is not None:
            self.anchor_offset = new_track.anchor_offset

    def mark_lost(self) -> None:
        self.state = TrackState.LOST

    def mark_removed(self) -> None:
        self.state = TrackState.REMOVED

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_box(self) -> BoundingBox:
        x, y, w, h = (float(v) for v in self.tlwh)
        return make_box(x, y, w, h, confidence=self.score, class_name=self.class_name,
                        class_id=self.class_id, track_id=self.track_id, anchor=self.anchor)

    def __repr__(self):
        return f"STrack(id={self.track_id}, state={self.state.name}, frames={self.start_frame}-{self.frame_id})"
