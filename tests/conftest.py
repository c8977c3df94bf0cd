import pytest

from autoreframe.data_types import BoundingBox


def linear_boxes(n_frames, start=(100.0, 100.0), end=(400.0, 100.0), size=(100.0, 200.0),
                 confidence=0.9, track_id=None):
    """Boxes whose centers move linearly from `start` to `end` over `n_frames`."""
    w, h = size
    boxes = {}
    for i in range(n_frames):
        t = i / (n_frames - 1) if n_frames > 1 else 0.0
        cx = start[0] + (end[0] - start[0]) * t
        cy = start[1] + (end[1] - start[1]) * t
        boxes[i] = BoundingBox(cx - w / 2, cy - h / 2, w, h, confidence=confidence, track_id=track_id)
    return boxes


@pytest.fixture
def make_linear_boxes():
    return linear_boxes


@pytest.fixture
def walking_person():
    """30 frames of one subject walking from (100, 100) to (400, 100)."""
    return linear_boxes(30)


@pytest.fixture
def frame_size():
    return (1920, 1080)
