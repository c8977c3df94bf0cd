"""
reframe_size.py
---------------
Crop size calculator: one consistent crop rectangle size for a whole sequence.

Two sizing modes:
- body (default): the subject box plus tiered padding.
- head: a fixed multiple of the head size, showing head and upper body.
"""

from typing import Optional, Tuple

from .config import (
    HEAD_FRAMING_FACTORS,
    HEAD_SIZE_FRACTION,
    HEAD_ZOOM_LIMITS,
    PADDING_TIERS,
    ZOOM_LIMITS,
    ReframingConfig,
    orientation_of,
)
from .data_types import ReframeDimensions


def padding_multiplier(area_ratio: float, orientation: str, padding: float) -> float:
    """
    Padding factor for a subject covering `area_ratio` of the frame.

    Smaller subjects get more room. `padding` adds a user margin on each side.
    """
    tier_factor = PADDING_TIERS[orientation][-1][1]
    for max_ratio, factor in PADDING_TIERS[orientation]:
        if area_ratio < max_ratio:
            tier_factor = factor
            break
    return (1.0 + 2.0 * padding) * tier_factor


def zoom_limits(orientation: str, config: ReframingConfig) -> Tuple[float, float]:
    low, high = HEAD_ZOOM_LIMITS if config.head_framing else ZOOM_LIMITS[orientation]
    if config.min_zoom is not None:
        low = config.min_zoom
    if config.max_zoom is not None:
        high = config.max_zoom
    return low, max(low, high)


def estimate_head_size(body_size: Tuple[float, float]) -> Tuple[float, float]:
    """Rough head (width, height) for a person box when no head detection is available."""
    return body_size[0] * HEAD_SIZE_FRACTION[0], body_size[1] * HEAD_SIZE_FRACTION[1]


def _body_crop_width(target_w: float, target_h: float, frame_w: float, frame_h: float,
                     output_ratio: float, config: ReframingConfig) -> float:
    area_ratio = (target_w * target_h) / (frame_w * frame_h)
    mult = padding_multiplier(area_ratio, orientation_of(output_ratio), config.padding)
    padded_w, padded_h = target_w * mult, target_h * mult

    # Ratio-exact box containing the padded subject
    if padded_h > 0 and padded_w / padded_h > output_ratio:
        return padded_w
    return padded_h * output_ratio


def _head_crop_width(head_w: float, head_h: float, output_ratio: float) -> float:
    if output_ratio > 1.0:
        return head_w * HEAD_FRAMING_FACTORS["landscape"]
    if output_ratio < 1.0:
        return head_h * HEAD_FRAMING_FACTORS["portrait"] * output_ratio
    return head_h * HEAD_FRAMING_FACTORS["square"]


def calculate_reframe_size(target_size: Tuple[float, float], frame_size: Tuple[float, float],
                           output_ratio: float, config: Optional[ReframingConfig] = None) -> ReframeDimensions:
    """
    Calculates the crop rectangle size for a subject of a given size.

    1. Body mode pads the subject box (tiered by subject/frame area and output
       orientation) and grows it to the output aspect ratio. Head mode takes
       `target_size` as the head size and scales it by HEAD_FRAMING_FACTORS.
    2. Apply the manual size multiplier, if any.
    3. Clamp to the largest ratio-exact crop that fits in the frame.
    4. Clamp the zoom (relative to that largest crop) to the allowed range.

    Args:
        target_size: (width, height) of the subject box (or head box) in source pixels.
        frame_size: (width, height) of the source frame.
        output_ratio: Output width / height.
        config: Reframing settings (padding, size multiplier, zoom overrides, head mode).

    Returns:
        ReframeDimensions: crop width/height, scale = frame_width / width, and zoom.
    """
    config = config or ReframingConfig()
    frame_w, frame_h = float(frame_size[0]), float(frame_size[1])
    if frame_w <= 0 or frame_h <= 0:
        raise ValueError(f"frame size must be positive, got {frame_size}")
    if output_ratio <= 0:
        raise ValueError(f"output_ratio must be positive, got {output_ratio}")

    target_w = max(0.0, float(target_size[0]))
    target_h = max(0.0, float(target_size[1]))

    if config.head_framing:
        crop_w = _head_crop_width(target_w, target_h, output_ratio)
    else:
        crop_w = _body_crop_width(target_w, target_h, frame_w, frame_h, output_ratio, config)

    if config.reframe_box_size is not None:
        crop_w *= config.reframe_box_size

    crop_w_max = min(frame_w, frame_h * output_ratio)
    crop_w = min(crop_w, crop_w_max)

    low, high = zoom_limits(orientation_of(output_ratio), config)
    zoom = crop_w_max / crop_w if crop_w > 0 else high
    zoom = max(low, min(high, zoom))

    width = crop_w_max / zoom
    height = width / output_ratio
    return ReframeDimensions(width=width, height=height, scale=frame_w / width, zoom=zoom)
