import io

import pandas as pd
import pytest

from autoreframe import cli
from autoreframe.config import ReframingConfig
from autoreframe.data_types import AnchoredBox, BoundingBox, FrameTransform
from autoreframe.pipeline import (
    TrackingSession,
    detections_from_frame,
    load_detections,
    reframe_sequence,
    select_target_track,
    transforms_to_frame,
)


def detection_table(boxes_by_frame):
    rows = []
    for frame, boxes in boxes_by_frame.items():
        for b in boxes:
            rows.append({"frame": frame, "x1": b.x, "y1": b.y, "x2": b.x + b.width, "y2": b.y + b.height,
                         "score": b.confidence, "cls": b.class_id})
    return pd.DataFrame(rows)


@pytest.fixture
def two_people(make_linear_boxes):
    small = make_linear_boxes(30, start=(1500, 500), end=(1500, 500), size=(40, 80))
    big = make_linear_boxes(30, start=(300, 500), end=(700, 500), size=(120, 240))
    return {f: [big[f], small[f]] for f in range(30)}


def test_session_records_histories(two_people):
    session = TrackingSession()
    histories = session.run(two_people)
    assert sorted(histories) == [1, 2]
    assert sorted(histories[1]) == list(range(30))
    assert session.frame_count == 30
    assert session.track_history(99) == {}

    session.reset()
    assert session.frame_count == 0 and session.histories == {}


def test_target_selection_strategies():
    frame_size = (1920, 1080)
    histories = {
        1: {0: BoundingBox(0, 0, 300, 300, confidence=0.6), 1: BoundingBox(0, 0, 300, 300, confidence=0.6)},
        2: {0: BoundingBox(910, 490, 100, 100, confidence=0.95), 1: BoundingBox(910, 490, 100, 100, confidence=0.95)},
        3: {0: BoundingBox(900, 500, 900, 500, confidence=0.99)},
    }
    assert select_target_track(histories, frame_size, "largest") == 1
    assert select_target_track(histories, frame_size, "centered") == 2
    # Track 3 is the most confident but was seen once only.
    assert select_target_track(histories, frame_size, "most-confident") == 2
    assert select_target_track({}, frame_size) is None
    with pytest.raises(ValueError):
        select_target_track(histories, frame_size, "loudest")


def test_reframe_sequence_picks_largest_subject(two_people):
    track_id, transforms = reframe_sequence(two_people, (1920, 1080), reframing=ReframingConfig())
    assert track_id == 1
    assert sorted(transforms) == list(range(30))

    track_id, transforms = reframe_sequence(two_people, (1920, 1080), target_track_id=2)
    assert track_id == 2
    assert all(t.x == pytest.approx(1500) for t in transforms.values())


def test_reframe_sequence_without_detections():
    track_id, transforms = reframe_sequence({}, (1920, 1080), total_frames=10)
    assert track_id is None
    assert transforms == {}


def test_transforms_to_frame():
    df = transforms_to_frame({1: FrameTransform(10, 20, 2.0), 0: FrameTransform(5, 6, 2.0)})
    assert list(df.columns) == ["frame", "x", "y", "scale", "rotation"]
    assert df["frame"].tolist() == [0, 1]
    assert transforms_to_frame({}).empty


def test_detections_from_frame_with_anchor():
    df = pd.DataFrame([
        {"frame": 0, "x1": 10, "y1": 20, "x2": 60, "y2": 120, "score": 0.9, "cls": 0,
         "class_name": "person", "anchor_x": 35, "anchor_y": 30},
        {"frame": 0, "x1": 100, "y1": 20, "x2": 150, "y2": 120, "score": 0.8, "cls": 0,
         "class_name": "person", "anchor_x": None, "anchor_y": None},
    ])
    per_frame = detections_from_frame(df)
    first, second = per_frame[0]
    assert isinstance(first, AnchoredBox) and first.focus() == (35.0, 30.0)
    assert not isinstance(second, AnchoredBox)
    assert (second.width, second.height) == (50.0, 100.0)


def test_load_detections_csv(tmp_path, two_people):
    path = tmp_path / "dets.csv"
    detection_table(two_people).to_csv(path, index=False)
    per_frame = load_detections(str(path))
    assert sorted(per_frame) == list(range(30))
    assert len(per_frame[0]) == 2


def test_load_detections_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_detections(str(tmp_path / "missing.csv"))
    bad = tmp_path / "bad.csv"
    pd.DataFrame([{"frame": 0, "x1": 1}]).to_csv(bad, index=False)
    with pytest.raises(ValueError):
        load_detections(str(bad))


def test_cli_writes_transform_csv(tmp_path, two_people, capsys):
    path = tmp_path / "dets.csv"
    detection_table(two_people).to_csv(path, index=False)
    code = cli.main([str(path), "--width", "1920", "--height", "1080", "--preset", "tiktok", "--csv"])
    assert code == 0
    out = pd.read_csv(io.StringIO(capsys.readouterr().out))
    assert len(out) == 30
    assert out["scale"].nunique() == 1


def test_cli_summary_and_errors(tmp_path, two_people, capsys):
    path = tmp_path / "dets.csv"
    detection_table(two_people).to_csv(path, index=False)
    assert cli.main([str(path), "--width", "1920", "--height", "1080", "--ratio", "1:1"]) == 0
    assert "Reframed track 1" in capsys.readouterr().out

    assert cli.main([str(tmp_path / "nope.csv"), "--width", "1920", "--height", "1080"]) == 1
    assert cli.main([str(path), "--width", "1920", "--height", "1080", "--padding", "0.9"]) == 1


def test_cli_tracker_filters(tmp_path, two_people, capsys):
    path = tmp_path / "dets.csv"
    detection_table(two_people).to_csv(path, index=False)
    # Both people are smaller than the minimum area: nothing to reframe
    assert cli.main([str(path), "--width", "1920", "--height", "1080", "--min-box-area", "50000", "--csv"]) == 2
    capsys.readouterr()
    # Low threshold above the high threshold is rejected
    assert cli.main([str(path), "--width", "1920", "--height", "1080", "--low-thresh", "0.7"]) == 1
    assert "[Error]" in capsys.readouterr().err


def test_cli_head_framing_zooms_in(tmp_path, two_people, capsys):
    path = tmp_path / "dets.csv"
    detection_table(two_people).to_csv(path, index=False)
    args = [str(path), "--width", "1920", "--height", "1080", "--csv"]

    assert cli.main(args) == 0
    body = pd.read_csv(io.StringIO(capsys.readouterr().out))
    assert cli.main(args + ["--head-framing"]) == 0
    head = pd.read_csv(io.StringIO(capsys.readouterr().out))
    assert head["scale"].iloc[0] > body["scale"].iloc[0]


def test_centered_strategy_uses_focus_points():
    frame_size = (1920, 1080)
    histories = {
        1: {0: BoundingBox(0, 0, 100, 100), 1: BoundingBox(0, 0, 100, 100)},
        # Box far from the center, but its anchor sits right on it
        2: {f: AnchoredBox(1500, 100, 100, 100, anchor_x=960, anchor_y=540) for f in range(2)},
    }
    assert select_target_track(histories, frame_size, "centered") == 2
