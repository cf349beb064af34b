"""
Canny edge detection on a luma map.

blur -> Sobel gradient -> non-maximum suppression -> double threshold ->
hysteresis. The result is a uint8 map whose values are exactly 0 or 255.
"""

import logging
import math

import numpy as np

from .config import ScanConfig, ThresholdMode

logger = logging.getLogger(__name__)

STRONG = 255
WEAK = 127

NEIGHBOURS_8 = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
)


def gaussian_kernel(sigma):
    size = math.ceil(sigma * 6) | 1
    half = size // 2
    offsets = np.arange(size, dtype=np.float64) - half
    kernel = np.exp(-(offsets ** 2) / (2 * sigma * sigma))
    return kernel / kernel.sum()


def _convolve_axis(data, kernel, axis):
    half = len(kernel) // 2
    pad = [(0, 0), (0, 0)]
    pad[axis] = (half, half)
    # Clamp-to-edge borders
    padded = np.pad(data, pad, mode="edge")
    out = np.zeros_like(data, dtype=np.float64)
    length = data.shape[axis]
    for k, weight in enumerate(kernel):
        if axis == 0:
            out += weight * padded[k:k + length, :]
        else:
            out += weight * padded[:, k:k + length]
    return out


# Separable blur: horizontal pass then vertical pass
def gaussian_blur(gray, sigma=1.4):
    kernel = gaussian_kernel(sigma)
    temp = _convolve_axis(np.asarray(gray, dtype=np.float64), kernel, axis=1)
    return _convolve_axis(temp, kernel, axis=0)


def sobel(gray):
    """
    3x3 Sobel gradient.

    Returns ``(magnitude, direction)`` where direction is ``atan2(gy, gx)`` in
    radians. The one-pixel border is left at zero.
    """
    p = np.asarray(gray, dtype=np.float64)
    magnitude = np.zeros_like(p)
    direction = np.zeros_like(p)
    if p.shape[0] < 3 or p.shape[1] < 3:
        return magnitude, direction

    gx = (p[:-2, 2:] + 2 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[1:-1, :-2] + p[2:, :-2])
    gy = (p[2:, :-2] + 2 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[:-2, 1:-1] + p[:-2, 2:])
    magnitude[1:-1, 1:-1] = np.hypot(gx, gy)
    direction[1:-1, 1:-1] = np.arctan2(gy, gx)
    return magnitude, direction


def non_max_suppression(magnitude, direction):
    """Keep pixels that are not smaller than both neighbours along the gradient."""
    out = np.zeros_like(magnitude, dtype=np.float64)
    if magnitude.shape[0] < 3 or magnitude.shape[1] < 3:
        return out

    m = magnitude
    centre = m[1:-1, 1:-1]
    angle = np.degrees(direction[1:-1, 1:-1])
    angle = np.where(angle < 0, angle + 180.0, angle)

    horizontal = (angle < 22.5) | (angle >= 157.5)
    diagonal = (angle >= 22.5) & (angle < 67.5)
    vertical = (angle >= 67.5) & (angle < 112.5)
    anti_diagonal = (angle >= 112.5) & (angle < 157.5)

    n1 = np.select(
        [horizontal, diagonal, vertical, anti_diagonal],
        [m[1:-1, :-2], m[:-2, :-2], m[:-2, 1:-1], m[:-2, 2:]],
    )
    n2 = np.select(
        [horizontal, diagonal, vertical, anti_diagonal],
        [m[1:-1, 2:], m[2:, 2:], m[2:, 1:-1], m[2:, :-2]],
    )
    keep = (centre >= n1) & (centre >= n2)
    out[1:-1, 1:-1] = np.where(keep, centre, 0.0)
    return out


def resolve_thresholds(suppressed, config):
    if config.threshold_mode == ThresholdMode.RATIO:
        peak = float(suppressed.max()) if suppressed.size else 0.0
        return peak * config.edge_low, peak * config.edge_high
    return float(config.edge_low), float(config.edge_high)


# Classify pixels as STRONG / WEAK / 0; zero-magnitude pixels are never edges
def double_threshold(suppressed, low, high):
    edges = np.zeros(suppressed.shape, dtype=np.uint8)
    live = suppressed > 0
    edges[live & (suppressed >= low)] = WEAK
    edges[live & (suppressed >= high)] = STRONG
    return edges


def hysteresis(classified):
    """Promote WEAK pixels 8-connected to a STRONG pixel, drop the rest."""
    edges = classified.copy()
    height, width = edges.shape
    stack = list(zip(*np.nonzero(edges == STRONG)))
    while stack:
        y, x = stack.pop()
        for dy, dx in NEIGHBOURS_8:
            ny, nx = y + dy, x + dx
            if 0 <= ny < height and 0 <= nx < width and edges[ny, nx] == WEAK:
                edges[ny, nx] = STRONG
                stack.append((ny, nx))
    edges[edges == WEAK] = 0
    return edges


def canny(gray, config=None, context=None):
    config = config or ScanConfig()

    blurred = gaussian_blur(gray, config.gaussian_sigma)
    if context is not None:
        context.checkpoint("gradient")
    magnitude, direction = sobel(blurred)
    if context is not None:
        context.checkpoint("suppression")
    suppressed = non_max_suppression(magnitude, direction)
    if context is not None:
        context.checkpoint("hysteresis")
    low, high = resolve_thresholds(suppressed, config)
    edges = hysteresis(double_threshold(suppressed, low, high))

    logger.debug(
        "canny: thresholds %.2f/%.2f, %d edge pixels",
        low, high, int(np.count_nonzero(edges)),
    )
    return edges
