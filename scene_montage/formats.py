"""Canonical output resolutions and aspect-ratio classification."""

from dataclasses import dataclass

from scene_montage.config import RATIO_TOLERANCE


@dataclass(frozen=True)
class CanonicalFormat:
    width: int
    height: int

    @property
    def label(self) -> str:
        return f"{self.width}x{self.height}"


VERTICAL = CanonicalFormat(1080, 1920)
HORIZONTAL = CanonicalFormat(1920, 1080)
SQUARE = CanonicalFormat(1080, 1080)


def classify(width: int, height: int) -> CanonicalFormat:
    """Pick the canonical format closest to the given dimensions.

    Ratios within RATIO_TOLERANCE of 9:16, 16:9 or 1:1 snap to that format
    (checked in that order). Anything else falls back to vertical when taller
    than wide and horizontal otherwise.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}")

    ratio = width / height
    if abs(ratio - 9 / 16) < RATIO_TOLERANCE:
        return VERTICAL
    if abs(ratio - 16 / 9) < RATIO_TOLERANCE:
        return HORIZONTAL
    if abs(ratio - 1) < RATIO_TOLERANCE:
        return SQUARE
    return VERTICAL if ratio < 1 else HORIZONTAL
