"""
config.py
---------
Centralized hyperparameters and configuration structs for the tracker and
the reframing engine.

The module-level constants are the tuned defaults. The frozen dataclasses
below are what the rest of the package consumes: they are validated once at
construction time and never mutated afterwards.
"""

import math
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

# ==============================================================================
# 1. TRACKER HYPERPARAMETERS
# ==============================================================================

# --- Data Association (ByteTrack Logic) ---
TRACK_THRESH = 0.5            # Detections at or above this score are "high confidence"
LOW_THRESH = 0.1              # Detections below this score are discarded
MATCH_THRESH = 0.8            # Max fused cost for the first (and lost-track) association
SECOND_MATCH_THRESH = 0.5     # Max IoU cost when matching leftover tracks to low-conf detections
UNCONFIRMED_MATCH_THRESH = 0.7
TRACK_BUFFER = 30             # Frames a lost track survives before removal
MIN_BOX_AREA = 10.0           # Smaller detections are treated as noise
DUPLICATE_IOU = 0.15          # Tracked pairs overlapping above this are duplicates
REMOVED_KEEP = 1000           # Removed tracks kept around for inspection

# --- Kalman Noise Weights ---
STD_WEIGHT_POSITION = 1.0 / 20
STD_WEIGHT_VELOCITY = 1.0 / 160

# ==============================================================================
# 2. REFRAMING CONSTANTS
# ==============================================================================

ASPECT_RATIOS: Dict[str, float] = {
    "16:9": 16 / 9,
    "9:16": 9 / 16,
    "1:1": 1.0,
    "4:3": 4 / 3,
    "3:4": 3 / 4,
}

TARGET_SELECTIONS = ("largest", "centered", "most-confident")

# Padding tiers: (max target/frame area ratio, padding factor), per orientation.
# The last tier of each list is the catch-all.
PADDING_TIERS: Dict[str, Tuple[Tuple[float, float], ...]] = {
    "portrait": ((0.02, 3.0), (0.05, 2.5), (0.10, 2.0), (0.20, 1.5), (math.inf, 1.2)),
    "landscape": ((0.02, 2.5), (0.05, 2.0), (0.10, 1.7), (0.20, 1.4), (math.inf, 1.2)),
    "square": ((0.02, 2.2), (0.05, 1.8), (0.10, 1.5), (math.inf, 1.3)),
}

# Zoom limits relative to the largest ratio-exact crop that fits the frame.
# 1.0 means the widest possible crop; 2.0 shows half of that width.
ZOOM_LIMITS: Dict[str, Tuple[float, float]] = {
    "portrait": (1.0, 2.0),
    "landscape": (1.0, 3.0),
    "square": (1.0, 2.5),
}

# Head-based framing: crop extent as a multiple of the head size. Landscape
# outputs scale the head width, portrait and square ones the head height.
HEAD_FRAMING_FACTORS: Dict[str, float] = {
    "landscape": 4.0,
    "portrait": 3.5,
    "square": 3.0,
}
# Zoom never goes below the full-fit crop, which would leave the frame.
HEAD_ZOOM_LIMITS: Tuple[float, float] = (1.0, 2.0)
# Head (width, height) as a fraction of the person box, when no head size is known.
HEAD_SIZE_FRACTION: Tuple[float, float] = (0.35, 0.15)

# ==============================================================================
# 3. SMOOTHER TUNING
# ==============================================================================

DEFAULT_FPS = 30.0
BEZIER_TENSION = 0.5          # Catmull-Rom tangent tension
LEAD_FACTOR = 0.25            # Forward shift of the Bezier controls along the velocity
MIN_KEY_SECONDS = 0.5
MAX_KEY_SECONDS = 2.0
TURN_ANGLE_DEG = 45.0         # Heading change that forces an early key point
TURN_MIN_SPEED_FRAC = 0.001   # Below this speed (fraction of frame diagonal per frame) headings are noise
PRE_SMOOTH_WINDOW = 5
MIN_STABILIZE_WINDOW = 3
MAX_STABILIZE_WINDOW = 25
JITTER_FACTOR = 0.5           # Residual jitter threshold, relative to mean motion
FAST_MOTION_FRAC = 0.005      # Per-frame speed (fraction of frame diagonal) considered "fast"
GAP_DECAY = 0.95              # Confidence decay per missing frame
MAX_EXTRAPOLATION = 5         # Frames extrapolated past the last detection before holding


# ==============================================================================
# 4. CONFIGURATION STRUCTS
# ==============================================================================

def _check_unit(name: str, value: float, allow_zero: bool = False) -> None:
    low_ok = value >= 0.0 if allow_zero else value > 0.0
    if not (low_ok and value <= 1.0):
        raise ValueError(f"{name} must be in {'[0' if allow_zero else '(0'}, 1], got {value}")


@dataclass(frozen=True)
class TrackerConfig:
    """Parameters of the ByteTrack lifecycle manager."""
    track_thresh: float = TRACK_THRESH
    track_buffer: int = TRACK_BUFFER
    match_thresh: float = MATCH_THRESH
    min_box_area: float = MIN_BOX_AREA
    low_thresh: float = LOW_THRESH
    second_match_thresh: float = SECOND_MATCH_THRESH
    unconfirmed_match_thresh: float = UNCONFIRMED_MATCH_THRESH
    duplicate_iou: float = DUPLICATE_IOU

    def __post_init__(self):
        _check_unit("track_thresh", self.track_thresh)
        _check_unit("low_thresh", self.low_thresh, allow_zero=True)
        _check_unit("match_thresh", self.match_thresh)
        _check_unit("second_match_thresh", self.second_match_thresh)
        _check_unit("unconfirmed_match_thresh", self.unconfirmed_match_thresh)
        _check_unit("duplicate_iou", self.duplicate_iou)
        if self.low_thresh > self.track_thresh:
            raise ValueError(
                f"low_thresh ({self.low_thresh}) must not exceed track_thresh ({self.track_thresh})"
            )
        if int(self.track_buffer) != self.track_buffer or self.track_buffer < 0:
            raise ValueError(f"track_buffer must be a non-negative integer, got {self.track_buffer}")
        if self.min_box_area < 0:
            raise ValueError(f"min_box_area must be non-negative, got {self.min_box_area}")


@dataclass(frozen=True)
class ReframingConfig:
    """
    User-facing reframing settings.

    Attributes:
        output_ratio: One of the keys of ASPECT_RATIOS.
        padding: Extra room around the subject, 0.0 to 0.5.
        smoothness: 0.0 follows the subject closely, 1.0 gives the calmest camera.
        target_selection: Strategy used when no track is chosen explicitly.
        reframe_box_size: Optional manual multiplier (0.5 to 1.5) on the crop size.
        reframe_box_offset: Optional (dx, dy) of the subject inside the crop.
        min_zoom, max_zoom: Optional overrides of the orientation zoom limits.
        head_framing: Size the crop from the head instead of the whole body.
    """
    output_ratio: str = "9:16"
    padding: float = 0.2
    smoothness: float = 0.8
    target_selection: str = "largest"
    reframe_box_size: Optional[float] = None
    reframe_box_offset: Optional[Tuple[float, float]] = None
    min_zoom: Optional[float] = None
    max_zoom: Optional[float] = None
    head_framing: bool = False

    def __post_init__(self):
        if self.output_ratio not in ASPECT_RATIOS:
            raise ValueError(
                f"Unsupported output_ratio '{self.output_ratio}'. Expected one of {list(ASPECT_RATIOS)}"
            )
        if not 0.0 <= self.padding <= 0.5:
            raise ValueError(f"padding must be in [0, 0.5], got {self.padding}")
        if not 0.0 <= self.smoothness <= 1.0:
            raise ValueError(f"smoothness must be in [0, 1], got {self.smoothness}")
        if self.target_selection not in TARGET_SELECTIONS:
            raise ValueError(
                f"Unknown target_selection '{self.target_selection}'. Expected one of {TARGET_SELECTIONS}"
            )
        if self.reframe_box_size is not None and not 0.5 <= self.reframe_box_size <= 1.5:
            raise ValueError(f"reframe_box_size must be in [0.5, 1.5], got {self.reframe_box_size}")
        if self.reframe_box_offset is not None and len(self.reframe_box_offset) != 2:
            raise ValueError("reframe_box_offset must be an (x, y) pair")
        for name in ("min_zoom", "max_zoom"):
            value = getattr(self, name)
            if value is not None and value < 1.0:
                raise ValueError(f"{name} must be >= 1.0, got {value}")
        if self.min_zoom is not None and self.max_zoom is not None and self.min_zoom > self.max_zoom:
            raise ValueError(f"min_zoom ({self.min_zoom}) must not exceed max_zoom ({self.max_zoom})")

    @property
    def aspect_ratio(self) -> float:
        """Numeric width/height of the output."""
        return ASPECT_RATIOS[self.output_ratio]

    def with_overrides(self, **changes) -> "ReframingConfig":
        """Returns a validated copy with some fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class SmootherConfig:
    """Tuning constants of the trajectory smoother."""
    fps: float = DEFAULT_FPS
    tension: float = BEZIER_TENSION
    lead: float = LEAD_FACTOR
    min_key_seconds: float = MIN_KEY_SECONDS
    max_key_seconds: float = MAX_KEY_SECONDS
    turn_angle_deg: float = TURN_ANGLE_DEG
    turn_min_speed_frac: float = TURN_MIN_SPEED_FRAC
    pre_smooth_window: int = PRE_SMOOTH_WINDOW
    min_stabilize_window: int = MIN_STABILIZE_WINDOW
    max_stabilize_window: int = MAX_STABILIZE_WINDOW
    jitter_factor: float = JITTER_FACTOR
    fast_motion_frac: float = FAST_MOTION_FRAC
    gap_decay: float = GAP_DECAY
    max_extrapolation: int = MAX_EXTRAPOLATION

    def __post_init__(self):
        if self.fps <= 0:
            raise ValueError(f"fps must be positive, got {self.fps}")
        if not 0.0 <= self.tension <= 1.0:
            raise ValueError(f"tension must be in [0, 1], got {self.tension}")
        # Keeps the Bezier control polygon monotonic on straight segments.
        if not 0.0 <= self.lead <= 0.5:
            raise ValueError(f"lead must be in [0, 0.5], got {self.lead}")
        if not 0 < self.min_key_seconds <= self.max_key_seconds:
            raise ValueError("key interval bounds must satisfy 0 < min_key_seconds <= max_key_seconds")
        if not 0.0 < self.turn_angle_deg < 180.0:
            raise ValueError(f"turn_angle_deg must be in (0, 180), got {self.turn_angle_deg}")
        if self.pre_smooth_window < 1:
            raise ValueError("pre_smooth_window must be >= 1")
        if not 1 <= self.min_stabilize_window <= self.max_stabilize_window:
            raise ValueError("stabilize windows must satisfy 1 <= min <= max")
        if self.turn_min_speed_frac < 0:
            raise ValueError("turn_min_speed_frac must be >= 0")
        if self.jitter_factor < 0 or self.fast_motion_frac <= 0:
            raise ValueError("jitter_factor must be >= 0 and fast_motion_frac > 0")
        if not 0.0 < self.gap_decay <= 1.0:
            raise ValueError(f"gap_decay must be in (0, 1], got {self.gap_decay}")
        if self.max_extrapolation < 0:
            raise ValueError("max_extrapolation must be >= 0")


# ==============================================================================
# 5. PRESETS & OUTPUT SIZE
# ==============================================================================

REFRAMING_PRESETS: Dict[str, ReframingConfig] = {
    "instagram-reel": ReframingConfig("9:16", padding=0.15, smoothness=0.85, target_selection="largest"),
    "youtube-short": ReframingConfig("9:16", padding=0.2, smoothness=0.8, target_selection="centered"),
    "instagram-post": ReframingConfig("1:1", padding=0.1, smoothness=0.9, target_selection="centered"),
    "tiktok": ReframingConfig("9:16", padding=0.15, smoothness=0.75, target_selection="largest"),
    "landscape-to-portrait": ReframingConfig("9:16", padding=0.2, smoothness=0.8, target_selection="most-confident"),
    "portrait-to-landscape": ReframingConfig("16:9", padding=0.25, smoothness=0.85, target_selection="centered"),
    "zoom-meeting": ReframingConfig("16:9", padding=0.3, smoothness=0.95, target_selection="largest"),
    "presentation": ReframingConfig("16:9", padding=0.4, smoothness=0.98, target_selection="centered"),
}


def get_preset(name: str) -> ReframingConfig:
    """Looks up a named preset."""
    try:
        return REFRAMING_PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown preset '{name}'. Available: {sorted(REFRAMING_PRESETS)}") from None


def orientation_of(ratio: float) -> str:
    """Classifies an output aspect ratio as portrait, landscape or square."""
    if ratio < 1.0:
        return "portrait"
    if ratio > 1.5:
        return "landscape"
    return "square"


def get_output_dimensions(input_w: int, input_h: int, output_ratio: str) -> Tuple[int, int]:
    """
    Computes the largest output resolution with the requested ratio that fits the input.

    Returns:
        Tuple[int, int]: (width, height) rounded to whole pixels.
    """
    if output_ratio not in ASPECT_RATIOS:
        raise ValueError(f"Unsupported output_ratio '{output_ratio}'")
    ratio = ASPECT_RATIOS[output_ratio]
    if input_w / input_h > ratio:
        height = float(input_h)
        width = height * ratio
    else:
        width = float(input_w)
        height = width / ratio
    return int(round(width)), int(round(height))
