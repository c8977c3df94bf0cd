import pytest

from autoreframe.config import ASPECT_RATIOS, ZOOM_LIMITS, ReframingConfig, orientation_of
from autoreframe.reframe_size import calculate_reframe_size, estimate_head_size, padding_multiplier

FRAME = (1920, 1080)
TARGETS = [(20, 40), (100, 200), (200, 400), (600, 800), (1500, 1000), (0, 0)]


@pytest.mark.parametrize("ratio_name", list(ASPECT_RATIOS))
@pytest.mark.parametrize("target", TARGETS)
def test_crop_matches_output_ratio_and_fits_frame(ratio_name, target):
    ratio = ASPECT_RATIOS[ratio_name]
    dims = calculate_reframe_size(target, FRAME, ratio, ReframingConfig(output_ratio=ratio_name))
    assert abs(dims.width / dims.height - ratio) < 1e-2
    assert dims.width <= FRAME[0] + 1e-9
    assert dims.height <= FRAME[1] + 1e-9
    assert dims.scale == pytest.approx(FRAME[0] / dims.width)
    low, high = ZOOM_LIMITS[orientation_of(ratio)]
    assert low - 1e-9 <= dims.zoom <= high + 1e-9


def test_is_deterministic():
    cfg = ReframingConfig(output_ratio="16:9", padding=0.3)
    a = calculate_reframe_size((200, 400), FRAME, 16 / 9, cfg)
    b = calculate_reframe_size((200, 400), FRAME, 16 / 9, cfg)
    assert a == b


def test_smaller_subjects_get_more_padding():
    assert padding_multiplier(0.01, "portrait", 0.0) > padding_multiplier(0.3, "portrait", 0.0)
    assert padding_multiplier(0.01, "portrait", 0.2) == pytest.approx(1.4 * 3.0)


def test_padding_widens_the_crop():
    tight = calculate_reframe_size((100, 200), FRAME, 9 / 16, ReframingConfig(padding=0.0))
    loose = calculate_reframe_size((100, 200), FRAME, 9 / 16, ReframingConfig(padding=0.1))
    assert loose.width > tight.width


def test_known_portrait_crop():
    dims = calculate_reframe_size((100, 200), FRAME, 9 / 16, ReframingConfig(padding=0.2))
    # 4.2x padding -> 420x840 subject area, grown to 9:16 at full padded height
    assert dims.height == pytest.approx(840)
    assert dims.width == pytest.approx(472.5)


def test_box_size_multiplier_and_zoom_overrides():
    base = calculate_reframe_size((100, 200), FRAME, 9 / 16, ReframingConfig(padding=0.2))
    smaller = calculate_reframe_size((100, 200), FRAME, 9 / 16,
                                     ReframingConfig(padding=0.2, reframe_box_size=0.8))
    assert smaller.width == pytest.approx(base.width * 0.8)

    capped = calculate_reframe_size((20, 40), FRAME, 9 / 16, ReframingConfig(max_zoom=1.2))
    assert capped.zoom == pytest.approx(1.2)
    assert capped.width == pytest.approx(1080 * 9 / 16 / 1.2)


def test_subject_larger_than_frame_gets_full_fit_crop():
    dims = calculate_reframe_size((1900, 1070), FRAME, 16 / 9, ReframingConfig(output_ratio="16:9"))
    assert dims.width == pytest.approx(1920)
    assert dims.height == pytest.approx(1080)
    assert dims.zoom == pytest.approx(1.0)


def test_rejects_bad_frame():
    with pytest.raises(ValueError):
        calculate_reframe_size((10, 10), (0, 1080), 1.0)


HEAD = ReframingConfig(head_framing=True)


@pytest.mark.parametrize("ratio, head, expected_width", [
    (9 / 16, (100, 120), 303.75),   # 3.5 head heights, capped at 2x zoom
    (16 / 9, (60, 60), 960.0),      # 4 head widths, capped at 2x zoom
    (1.0, (200, 300), 900.0),       # 3 head heights
    (1.0, (400, 400), 1080.0),      # larger than the frame: full-fit crop
    (4 / 3, (200, 150), 800.0),     # wider than tall uses head width
])
def test_head_framing_sizes(ratio, head, expected_width):
    dims = calculate_reframe_size(head, FRAME, ratio, HEAD)
    assert dims.width == pytest.approx(expected_width)
    assert dims.height == pytest.approx(expected_width / ratio)
    assert 1.0 - 1e-9 <= dims.zoom <= 2.0 + 1e-9


@pytest.mark.parametrize("ratio_name", list(ASPECT_RATIOS))
@pytest.mark.parametrize("head", [(10, 12), (50, 60), (300, 350), (900, 900)])
def test_head_framing_fits_frame(ratio_name, head):
    ratio = ASPECT_RATIOS[ratio_name]
    dims = calculate_reframe_size(head, FRAME, ratio, ReframingConfig(output_ratio=ratio_name, head_framing=True))
    assert abs(dims.width / dims.height - ratio) < 1e-2
    assert dims.width <= FRAME[0] + 1e-9
    assert dims.height <= FRAME[1] + 1e-9


def test_head_framing_ignores_padding_and_honours_overrides():
    loose = calculate_reframe_size((200, 300), FRAME, 1.0, ReframingConfig(head_framing=True, padding=0.4))
    tight = calculate_reframe_size((200, 300), FRAME, 1.0, ReframingConfig(head_framing=True, padding=0.0))
    assert loose == tight

    capped = calculate_reframe_size((60, 60), FRAME, 16 / 9, ReframingConfig(head_framing=True, max_zoom=1.5))
    assert capped.width == pytest.approx(1280)


def test_estimate_head_size():
    assert estimate_head_size((100, 200)) == pytest.approx((35.0, 30.0))
