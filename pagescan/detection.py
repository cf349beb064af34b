"""
Document corner detection with an ordered fallback chain.

Each strategy either returns a quadrilateral in working-image coordinates or
raises DetectionError. The controller walks ``config.fallback_order`` and,
when every strategy fails, falls back to a fixed inset rectangle. Detection
therefore always yields corners.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import DetectionMethod, ScanConfig
from .context import ScanContext
from .contours import find_contours
from .edges import canny
from .errors import DetectionError, InvalidInputError
from .morphology import dilate
from .quad import Quadrilateral, default_quad, find_document_quad, order_points
from .raster import as_raster, resize_for_detection, to_luma

logger = logging.getLogger(__name__)

# Callable taking an RGB(A) raster and returning 4 normalized (x, y) corners or None
CornerRegressor = Callable[[np.ndarray], Optional[object]]

BACKGROUND_PERCENTILE = 0.8
MIN_CONTENT_THRESHOLD = 180
BACKGROUND_MARGIN = 30


@dataclass
class DetectionResult:
    quad: Quadrilateral
    method: DetectionMethod
    attempts: List[Tuple[DetectionMethod, str]] = field(default_factory=list)
    edges: Optional[np.ndarray] = field(default=None, repr=False)
    scale: float = 1.0

    @property
    def fallback_used(self) -> bool:
        return self.method == DetectionMethod.DEFAULT


def smart_crop(img):
    """
    Bounding box of content that differs from the background.

    Background brightness is the 80th percentile of samples taken from the
    four image corners; pixels darker than ``max(180, background - 30)`` are
    content.
    """
    img = as_raster(img)
    height, width = img.shape[:2]
    brightness = img[:, :, :3].astype(np.float64).mean(axis=2)

    size = int(math.ceil(min(50, min(width, height) / 10)))
    if size < 1:
        raise DetectionError("image too small to sample background")
    samples = np.concatenate([
        brightness[:size, :size].ravel(),
        brightness[:size, width - size:].ravel(),
        brightness[height - size:, :size].ravel(),
        brightness[height - size:, width - size:].ravel(),
    ])
    samples.sort()
    background = samples[int(len(samples) * BACKGROUND_PERCENTILE)]
    threshold = max(MIN_CONTENT_THRESHOLD, background - BACKGROUND_MARGIN)

    content = brightness < threshold
    content_pixels = int(np.count_nonzero(content))
    image_area = width * height
    if content_pixels < image_area * 0.05:
        raise DetectionError(f"only {content_pixels} content pixels")
    if content_pixels == image_area:
        raise DetectionError("no background pixels left, image is featureless")

    ys, xs = np.nonzero(content)
    min_x, max_x = int(xs.min()), int(xs.max())
    min_y, max_y = int(ys.min()), int(ys.max())
    coverage = (max_x - min_x) * (max_y - min_y) / image_area
    logger.debug("smart crop: background %.1f, threshold %.1f, coverage %.3f", background, threshold, coverage)
    if coverage > 0.9 or coverage < 0.1:
        raise DetectionError(f"content coverage {coverage:.2f} out of range")

    pad_x = max(5, (max_x - min_x) * 0.02)
    pad_y = max(5, (max_y - min_y) * 0.02)
    left, right = max(0, min_x - pad_x), min(width - 1, max_x + pad_x)
    top, bottom = max(0, min_y - pad_y), min(height - 1, max_y + pad_y)
    return Quadrilateral.from_points([(left, top), (right, top), (right, bottom), (left, bottom)])


def contour_quad(img, config=None, context=None):
    """Canny edges, dilated to bridge gaps, traced into contours and searched for a quad."""
    config = config or ScanConfig()
    img = as_raster(img)
    height, width = img.shape[:2]
    edges = canny(to_luma(img), config, context)
    if context is not None:
        context.checkpoint("morphology")
    bridged = dilate(edges, config.dilate_size)
    if context is not None:
        context.checkpoint("contours")
    contours = find_contours(bridged, config.min_contour_points)
    if context is not None:
        context.checkpoint("quad selection")
    quad = find_document_quad(contours, width, height, config)
    if quad is None:
        raise DetectionError(f"no acceptable quadrilateral among {len(contours)} contours")
    return quad, edges


def regressed_quad(img, regressor):
    if regressor is None:
        raise DetectionError("no corner regressor configured")
    height, width = img.shape[:2]
    try:
        corners = regressor(img)
    except Exception as exc:
        logger.warning("corner regressor failed: %s", exc)
        raise DetectionError(f"regressor error: {exc}") from exc
    if corners is None:
        raise DetectionError("regressor returned no corners")
    pts = np.asarray(corners, dtype=np.float64).reshape(-1, 2) * (width, height)
    try:
        return Quadrilateral.from_points(order_points(pts))
    except InvalidInputError as exc:
        raise DetectionError(str(exc)) from exc


def detect_corners(img, config=None, context=None, corner_regressor=None):
    """
    Locate the document in ``img`` and return a DetectionResult in source
    pixel coordinates.
    """
    if context is None:
        context = ScanContext(config or ScanConfig())
    config = config or context.config
    img = as_raster(img)
    height, width = img.shape[:2]

    context.checkpoint("downscale")
    working, scale = resize_for_detection(img, config.detection_max_size)

    attempts = []
    edges = None
    for method in config.fallback_order:
        method = DetectionMethod(method)
        context.checkpoint(method.value)
        try:
            if method == DetectionMethod.ML:
                quad = regressed_quad(working, corner_regressor)
            elif method == DetectionMethod.SMART_CROP:
                quad = smart_crop(working)
            elif method == DetectionMethod.CONTOURS:
                quad, edges = contour_quad(working, config, context)
            else:
                raise DetectionError(f"unsupported method {method}")
        except DetectionError as exc:
            logger.debug("%s detection failed: %s", method.value, exc)
            attempts.append((method, str(exc)))
            continue
        logger.info("document detected by %s", method.value)
        return DetectionResult(quad.scaled(1.0 / scale), method, attempts, edges, scale)

    logger.warning("all detection methods failed, using the default inset")
    return DetectionResult(
        default_quad(width, height, config.inset_frac),
        DetectionMethod.DEFAULT, attempts, edges, scale,
    )
