"""Post-rectification clean-up: Otsu binarization or brightness/contrast."""

import numpy as np

from .config import EnhanceMode
from .errors import InvalidInputError
from .raster import as_raster, to_luma

DEFAULT_THRESHOLD = 128


# Luma rounded to integer grey levels 0..255
def luma_levels(img):
    return np.rint(to_luma(img)).astype(np.int64)


def luma_histogram(img):
    return np.bincount(luma_levels(img).ravel(), minlength=256)[:256]


def otsu_threshold(hist):
    """
    Threshold maximizing between-class variance of a 256-bin histogram.

    Ties go to the first threshold reaching the maximum. A histogram with a
    single occupied bin has no split and yields 128.
    """
    hist = np.asarray(hist, dtype=np.float64)
    levels = np.arange(len(hist), dtype=np.float64)
    total = hist.sum()
    weight_bg = np.cumsum(hist)
    weight_fg = total - weight_bg
    sum_bg = np.cumsum(levels * hist)
    sum_all = sum_bg[-1]

    valid = (weight_bg > 0) & (weight_fg > 0)
    if not valid.any():
        return DEFAULT_THRESHOLD
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_bg = sum_bg / weight_bg
        mean_fg = (sum_all - sum_bg) / weight_fg
        between = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
    between = np.where(valid, between, 0.0)
    if between.max() <= 0:
        return DEFAULT_THRESHOLD
    return int(np.argmax(between))


def binarize(img):
    """Pixels brighter than the Otsu threshold become white, the rest black."""
    img = as_raster(img)
    levels = luma_levels(img)
    threshold = otsu_threshold(np.bincount(levels.ravel(), minlength=256)[:256])
    value = np.where(levels > threshold, 255, 0).astype(np.uint8)
    out = img.copy()
    out[:, :, :3] = value[:, :, None]
    return out


def adjust_brightness_contrast(img, brightness=0.0, contrast=0.0):
    """
    value' = clamp((value - 128) * (1 + contrast) + 128 + brightness * 255)

    ``brightness`` and ``contrast`` are normalized to [-0.5, 0.5]. Alpha is
    left untouched.
    """
    if not (-0.5 <= brightness <= 0.5) or not (-0.5 <= contrast <= 0.5):
        raise InvalidInputError("brightness and contrast must be within [-0.5, 0.5]")
    img = as_raster(img)
    rgb = img[:, :, :3].astype(np.float64)
    rgb = (rgb - 128.0) * (1.0 + contrast) + 128.0 + brightness * 255.0
    out = img.copy()
    out[:, :, :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return out


def enhance_document(img, mode=EnhanceMode.NONE, brightness=0, contrast=0):
    """Apply the configured enhancement; brightness/contrast are percentages in [-50, 50]."""
    mode = EnhanceMode(mode)
    if mode == EnhanceMode.BINARIZE:
        return binarize(img)
    if mode == EnhanceMode.BRIGHTNESS_CONTRAST:
        return adjust_brightness_contrast(img, brightness / 100.0, contrast / 100.0)
    return as_raster(img).copy()
