import logging

import numpy as np

from .homography import get_perspective_transform, invert_homography, target_size
from .quad import Quadrilateral
from .raster import as_raster

logger = logging.getLogger(__name__)

BAND_ROWS = 256


def _with_alpha(img):
    if img.shape[2] == 4:
        return img
    alpha = np.full(img.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([img, alpha], axis=2)


def warp_perspective(img, matrix, size):
    """
    Resample ``img`` into a ``size = (width, height)`` raster through ``matrix``.

    Every destination pixel is mapped back into the source with the inverse
    transform and bilinearly sampled across all channels. Destination pixels
    that land outside the source stay fully transparent.
    """
    src = _with_alpha(as_raster(img)).astype(np.float64)
    src_h, src_w = src.shape[:2]
    dst_w, dst_h = size
    inverse = invert_homography(matrix)
    out = np.zeros((dst_h, dst_w, 4), dtype=np.uint8)

    xs = np.arange(dst_w, dtype=np.float64)
    for top in range(0, dst_h, BAND_ROWS):
        rows = np.arange(top, min(top + BAND_ROWS, dst_h), dtype=np.float64)
        gx, gy = np.meshgrid(xs, rows)
        denom = inverse[2, 0] * gx + inverse[2, 1] * gy + inverse[2, 2]
        with np.errstate(divide="ignore", invalid="ignore"):
            sx = (inverse[0, 0] * gx + inverse[0, 1] * gy + inverse[0, 2]) / denom
            sy = (inverse[1, 0] * gx + inverse[1, 1] * gy + inverse[1, 2]) / denom

        valid = np.isfinite(sx) & np.isfinite(sy)
        valid &= (sx >= 0) & (sx <= src_w - 1) & (sy >= 0) & (sy <= src_h - 1)
        if not valid.any():
            continue

        px, py = sx[valid], sy[valid]
        x0 = np.floor(px).astype(np.int64)
        y0 = np.floor(py).astype(np.int64)
        x1 = np.minimum(x0 + 1, src_w - 1)
        y1 = np.minimum(y0 + 1, src_h - 1)
        fx = (px - x0)[:, None]
        fy = (py - y0)[:, None]

        top_row = src[y0, x0] * (1 - fx) + src[y0, x1] * fx
        bottom_row = src[y1, x0] * (1 - fx) + src[y1, x1] * fx
        values = top_row * (1 - fy) + bottom_row * fy

        band = out[top:top + len(rows)]
        band[valid] = np.clip(np.rint(values), 0, 255).astype(np.uint8)
    return out


def rectify(img, quad, context=None):
    """
    Flatten the region inside ``quad`` into an axis-aligned page.

    Returns ``(page, matrix)``; the page is RGBA and its size is the longer
    of each pair of opposite quad edges.
    """
    img = as_raster(img)
    if not isinstance(quad, Quadrilateral):
        quad = Quadrilateral.from_points(quad)
    corners = quad.as_array()
    width, height = target_size(corners)
    dst = np.array([
        [0, 0],
        [width, 0],
        [width, height],
        [0, height]], dtype=np.float64)

    matrix = get_perspective_transform(corners, dst)
    if context is not None:
        context.checkpoint("resample")
    page = warp_perspective(img, matrix, (width, height))
    logger.debug("rectified %dx%d region into %dx%d page", img.shape[1], img.shape[0], width, height)
    return page, matrix
