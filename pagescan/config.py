from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .errors import InvalidInputError


class ThresholdMode(str, Enum):
    RATIO = "ratio"  # low/high are fractions of the max gradient magnitude
    ABSOLUTE = "absolute"  # low/high are gradient magnitudes


class EnhanceMode(str, Enum):
    NONE = "none"
    BINARIZE = "binarize"
    BRIGHTNESS_CONTRAST = "brightness-contrast"


class DetectionMethod(str, Enum):
    ML = "ml"
    SMART_CROP = "smart-crop"
    CONTOURS = "contours"
    DEFAULT = "default"  # fixed inset rectangle, always succeeds


@dataclass(frozen=True)
class ScanConfig:
    """
    Tunable parameters of the detection and rectification pipeline.

    Brightness and contrast are integer percentages in [-50, 50]; they are
    divided by 100 before use.
    """

    threshold_mode: ThresholdMode = ThresholdMode.RATIO
    edge_low: float = 0.05
    edge_high: float = 0.15
    gaussian_sigma: float = 1.4

    dilate_size: int = 3
    min_contour_points: int = 30
    approx_epsilon: float = 0.02  # fraction of the contour perimeter

    min_area_frac: float = 0.1
    max_area_frac: float = 0.95
    max_side_ratio: float = 5.0
    diagonal_symmetry_tolerance: float = 0.3

    detection_max_size: int = 600
    inset_frac: float = 0.05
    fallback_order: tuple = (
        DetectionMethod.ML,
        DetectionMethod.SMART_CROP,
        DetectionMethod.CONTOURS,
    )

    corner_hit_radius: float = 20.0

    enhance_mode: EnhanceMode = EnhanceMode.NONE
    brightness: int = 0
    contrast: int = 0

    @classmethod
    def preset(cls, name: str, **overrides) -> "ScanConfig":
        try:
            base = PRESETS[name]
        except KeyError:
            raise InvalidInputError(
                f"unknown preset {name!r}, expected one of {sorted(PRESETS)}"
            ) from None
        config = replace(base, **overrides)
        config.validate()
        return config

    def validate(self) -> None:
        if self.threshold_mode == ThresholdMode.RATIO:
            if not (0.0 <= self.edge_low <= self.edge_high <= 1.0):
                raise InvalidInputError("ratio thresholds must satisfy 0 <= low <= high <= 1")
        elif not (0.0 <= self.edge_low <= self.edge_high):
            raise InvalidInputError("absolute thresholds must satisfy 0 <= low <= high")
        if self.gaussian_sigma <= 0:
            raise InvalidInputError("gaussian_sigma must be > 0")
        if self.dilate_size < 1 or self.dilate_size % 2 == 0:
            raise InvalidInputError("dilate_size must be a positive odd integer")
        if self.min_contour_points < 1:
            raise InvalidInputError("min_contour_points must be >= 1")
        if not (0.0 < self.approx_epsilon < 1.0):
            raise InvalidInputError("approx_epsilon must be within (0, 1)")
        if not (0.0 <= self.min_area_frac < self.max_area_frac <= 1.0):
            raise InvalidInputError("area window must satisfy 0 <= min < max <= 1")
        if self.max_side_ratio < 1.0:
            raise InvalidInputError("max_side_ratio must be >= 1")
        if not (0.0 <= self.diagonal_symmetry_tolerance <= 1.0):
            raise InvalidInputError("diagonal_symmetry_tolerance must be within [0, 1]")
        if self.detection_max_size < 16:
            raise InvalidInputError("detection_max_size must be >= 16")
        if not (0.0 <= self.inset_frac < 0.5):
            raise InvalidInputError("inset_frac must be within [0, 0.5)")
        if DetectionMethod.DEFAULT in self.fallback_order:
            raise InvalidInputError("the default inset is implicit and cannot be listed")
        if self.corner_hit_radius <= 0:
            raise InvalidInputError("corner_hit_radius must be > 0")
        if not (-50 <= self.brightness <= 50) or not (-50 <= self.contrast <= 50):
            raise InvalidInputError("brightness and contrast must be within [-50, 50]")


PRESETS = {
    "adaptive": ScanConfig(),
    "fixed": ScanConfig(threshold_mode=ThresholdMode.ABSOLUTE, edge_low=30.0, edge_high=100.0),
}
