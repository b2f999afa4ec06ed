import pytest

from scene_montage.formats import HORIZONTAL, SQUARE, VERTICAL, CanonicalFormat, classify


def test_exact_ratios_map_to_their_format():
    assert classify(1080, 1920) == CanonicalFormat(1080, 1920)
    assert classify(1920, 1080) == CanonicalFormat(1920, 1080)
    assert classify(1080, 1080) == CanonicalFormat(1080, 1080)


def test_ratios_within_tolerance_snap():
    # 720x1200 = 0.6, within 0.1 of 9/16
    assert classify(720, 1200) == VERTICAL
    # 1700x1000 = 1.7, within 0.1 of 16/9
    assert classify(1700, 1000) == HORIZONTAL
    # 1050x1000 = 1.05, within 0.1 of 1
    assert classify(1050, 1000) == SQUARE


def test_unmatched_portrait_falls_back_to_vertical():
    """1000x1200 has ratio 0.833, outside every tolerance band."""
    assert classify(1000, 1200) == VERTICAL


def test_unmatched_landscape_falls_back_to_horizontal():
    # 3000x1000 = 3.0
    assert classify(3000, 1000) == HORIZONTAL


def test_label():
    assert classify(1920, 1080).label == "1920x1080"


def test_rejects_non_positive_dimensions():
    with pytest.raises(ValueError):
        classify(0, 1080)
