"""
cli.py
------
Runs tracking + reframing over a cached detection table.

Examples:
    autoreframe detections.parquet --width 1920 --height 1080 --ratio 9:16
    autoreframe detections.csv --width 1920 --height 1080 --preset tiktok --csv > transforms.csv
"""

import argparse
import sys
from typing import List, Optional

from loguru import logger

from .config import ASPECT_RATIOS, REFRAMING_PRESETS, TARGET_SELECTIONS, ReframingConfig, SmootherConfig, \
    TrackerConfig, get_output_dimensions, get_preset
from .pipeline import load_detections, reframe_sequence, transforms_to_frame


def setup_logging(log_level: str = "WARNING") -> None:
    """Console logging to stderr so stdout stays clean for CSV output."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autoreframe",
                                     description="Track a subject and compute a smooth reframing camera path.")
    parser.add_argument("detections", help="Detection table (.parquet or .csv) with frame,x1,y1,x2,y2,score,cls")
    parser.add_argument("--width", type=int, required=True, help="Source frame width in pixels")
    parser.add_argument("--height", type=int, required=True, help="Source frame height in pixels")
    parser.add_argument("--total-frames", type=int, default=None, help="Sequence length (default: last frame + 1)")
    parser.add_argument("--fps", type=float, default=30.0, help="Source frame rate")

    parser.add_argument("--preset", choices=sorted(REFRAMING_PRESETS), default=None, help="Start from a named preset")
    parser.add_argument("--ratio", choices=list(ASPECT_RATIOS), default=None, help="Output aspect ratio")
    parser.add_argument("--padding", type=float, default=None, help="Room around the subject, 0 to 0.5")
    parser.add_argument("--smoothness", type=float, default=None, help="0 follows closely, 1 is calmest")
    parser.add_argument("--target-selection", choices=TARGET_SELECTIONS, default=None,
                        help="How to choose the subject when --track-id is not given")
    parser.add_argument("--track-id", type=int, default=None, help="Reframe this track instead of choosing one")
    parser.add_argument("--head-framing", action="store_true",
                        help="Size the crop from the head (estimated from the person box) instead of the body")

    parser.add_argument("--track-thresh", type=float, default=0.5, help="High-confidence detection threshold")
    parser.add_argument("--track-buffer", type=int, default=30, help="Frames a lost track is kept")
    parser.add_argument("--match-thresh", type=float, default=0.8, help="Association cost threshold")
    parser.add_argument("--min-box-area", type=float, default=10.0, help="Detections with a smaller area are ignored")
    parser.add_argument("--low-thresh", type=float, default=0.1, help="Detections below this confidence are ignored")

    parser.add_argument("--csv", action="store_true", help="Write the per-frame transforms as CSV to stdout")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar while tracking")
    parser.add_argument("--log-level", default="WARNING", help="Loguru level for diagnostics on stderr")
    return parser


def _reframing_from_args(args: argparse.Namespace) -> ReframingConfig:
    base = get_preset(args.preset) if args.preset else ReframingConfig()
    overrides = {
        "output_ratio": args.ratio,
        "padding": args.padding,
        "smoothness": args.smoothness,
        "target_selection": args.target_selection,
        "head_framing": True if args.head_framing else None,
    }
    return base.with_overrides(**{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        reframing = _reframing_from_args(args)
        tracker_config = TrackerConfig(track_thresh=args.track_thresh, track_buffer=args.track_buffer,
                                       match_thresh=args.match_thresh, min_box_area=args.min_box_area,
                                       low_thresh=args.low_thresh)
        smoother_config = SmootherConfig(fps=args.fps)
        detections = load_detections(args.detections)
    except (FileNotFoundError, ValueError) as e:
        print(f"[Error] {e}", file=sys.stderr)
        return 1

    track_id, transforms = reframe_sequence(
        detections, (args.width, args.height),
        total_frames=args.total_frames,
        reframing=reframing,
        tracker_config=tracker_config,
        smoother_config=smoother_config,
        target_track_id=args.track_id,
        progress=args.progress,
    )

    if args.csv:
        transforms_to_frame(transforms).to_csv(sys.stdout, index=False)
        return 0 if transforms else 2

    if not transforms:
        print(f"[Warning] Track {track_id} could not be reframed (too few detections).")
        return 2

    out_w, out_h = get_output_dimensions(args.width, args.height, reframing.output_ratio)
    first = transforms[min(transforms)]
    print(f"[Success] Reframed track {track_id} over {len(transforms)} frames")
    print(f" - Output: {reframing.output_ratio} ({out_w}x{out_h})")
    print(f" - Scale: {first.scale:.3f}")
    print(f" - Padding: {reframing.padding} | Smoothness: {reframing.smoothness}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
