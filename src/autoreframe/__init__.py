"""
autoreframe
-----------
Subject tracking (ByteTrack) and smooth virtual-camera reframing for video.
"""

from .byte_tracker import BYTETracker
from .config import (
    REFRAMING_PRESETS,
    ReframingConfig,
    SmootherConfig,
    TrackerConfig,
    get_output_dimensions,
    get_preset,
)
from .data_types import AnchoredBox, BoundingBox, FrameTransform, ReframeDimensions, TrackState
from .pipeline import TrackingSession, reframe_sequence, select_target_track, transforms_to_frame
from .reframe_size import calculate_reframe_size
from .smoother import TrajectorySmoother

__version__ = "0.1.0"

__all__ = [
    "AnchoredBox",
    "BYTETracker",
    "BoundingBox",
    "FrameTransform",
    "REFRAMING_PRESETS",
    "ReframeDimensions",
    "ReframingConfig",
    "SmootherConfig",
    "TrackState",
    "TrackerConfig",
    "TrackingSession",
    "TrajectorySmoother",
    "calculate_reframe_size",
    "get_output_dimensions",
    "get_preset",
    "reframe_sequence",
    "select_target_track",
    "transforms_to_frame",
]
