"""
data_types.py
-------------
Plain records exchanged between the tracker, the smoother and the external
detector/renderer layers.

Boxes come in two variants: a plain `BoundingBox` and an `AnchoredBox` that
additionally carries a focus point (e.g. a detected head center). Code that
needs "the point the camera should follow" calls `focus()` and never checks
for the anchor itself.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional, Tuple

import numpy as np


class TrackState(IntEnum):
    """Lifecycle states of a track."""
    NEW = 1
    TRACKED = 2
    LOST = 3
    REMOVED = 4


@dataclass(frozen=True)
class BoundingBox:
    """
    A detection or tracked box in top-left/width/height (tlwh) pixel format.

    `track_id` is None for raw detector output and set by the tracker.
    """
    x: float
    y: float
    width: float
    height: float
    confidence: float = 1.0
    class_name: str = "person"
    class_id: int = 0
    track_id: Optional[int] = None

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def anchor(self) -> Optional[Tuple[float, float]]:
        return None

    def focus(self) -> Tuple[float, float]:
        """The point a camera should keep centered for this box."""
        return self.center

    def tlbr(self) -> np.ndarray:
        """Corner format [x1, y1, x2, y2]."""
        return np.array([self.x, self.y, self.x + self.width, self.y + self.height], dtype=np.float64)

    def with_geometry(self, x: float, y: float, width: float, height: float,
                      anchor: Optional[Tuple[float, float]] = None, **changes) -> "BoundingBox":
        """Copies the box with new geometry, keeping the variant when an anchor is supplied."""
        if anchor is not None:
            return AnchoredBox(x=x, y=y, width=width, height=height,
                               confidence=changes.get("confidence", self.confidence),
                               class_name=changes.get("class_name", self.class_name),
                               class_id=changes.get("class_id", self.class_id),
                               track_id=changes.get("track_id", self.track_id),
                               anchor_x=float(anchor[0]), anchor_y=float(anchor[1]))
        return BoundingBox(x=x, y=y, width=width, height=height,
                           confidence=changes.get("confidence", self.confidence),
                           class_name=changes.get("class_name", self.class_name),
                           class_id=changes.get("class_id", self.class_id),
                           track_id=changes.get("track_id", self.track_id))

    def with_confidence(self, confidence: float) -> "BoundingBox":
        return replace(self, confidence=confidence)


@dataclass(frozen=True)
class AnchoredBox(BoundingBox):
    """A box with an explicit focus point (for instance a head center)."""
    anchor_x: float = 0.0
    anchor_y: float = 0.0

    @property
    def anchor(self) -> Optional[Tuple[float, float]]:
        return self.anchor_x, self.anchor_y

    def focus(self) -> Tuple[float, float]:
        return self.anchor_x, self.anchor_y


def make_box(x: float, y: float, width: float, height: float, confidence: float = 1.0,
             class_name: str = "person", class_id: int = 0, track_id: Optional[int] = None,
             anchor: Optional[Tuple[float, float]] = None) -> BoundingBox:
    """Builds the right box variant depending on whether an anchor is known."""
    if anchor is None:
        return BoundingBox(x, y, width, height, confidence, class_name, class_id, track_id)
    return AnchoredBox(x, y, width, height, confidence, class_name, class_id, track_id,
                       anchor_x=float(anchor[0]), anchor_y=float(anchor[1]))


@dataclass(frozen=True)
class TrajectoryPoint:
    """One sample of a camera path."""
    frame: int
    x: float
    y: float


@dataclass(frozen=True)
class ReframeDimensions:
    """
    Crop size chosen for a whole sequence.

    `zoom` is the clamped quantity: it is measured against the widest
    ratio-exact crop that fits the frame and stays inside the zoom limits.
    `scale` is simply frame_width / width and is not clamped, so for portrait
    outputs it can exceed the zoom limits.
    """
    width: float
    height: float
    scale: float
    zoom: float


@dataclass(frozen=True)
class FrameTransform:
    """Camera state for one output frame: crop center in source pixels plus zoom."""
    x: float
    y: float
    scale: float
    rotation: float = 0.0

    def crop_rect(self, width: float, height: float) -> Tuple[float, float, float, float]:
        """Crop rectangle (x1, y1, x2, y2) for a crop of the given size."""
        return (self.x - width / 2.0, self.y - height / 2.0,
                self.x + width / 2.0, self.y + height / 2.0)
