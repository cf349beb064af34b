from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .config import ScanConfig
from .contours import approx_poly, arc_length, contour_area
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

CORNER_NAMES = ("top-left", "top-right", "bottom-right", "bottom-left")


@dataclass(frozen=True)
class Quadrilateral:
    """Four corners in source pixel space, ordered TL, TR, BR, BL."""

    corners: tuple

    @classmethod
    def from_points(cls, points) -> Quadrilateral:
        pts = np.asarray(points, dtype=np.float64)
        if pts.shape != (4, 2):
            raise InvalidInputError(f"expected 4 corners, got array of shape {pts.shape}")
        if not np.all(np.isfinite(pts)):
            raise InvalidInputError("corners must be finite")
        corners = tuple((float(x), float(y)) for x, y in pts)
        if len(set(corners)) != 4:
            raise InvalidInputError("corners must be pairwise distinct")
        return cls(corners)

    def as_array(self) -> np.ndarray:
        return np.array(self.corners, dtype=np.float64)

    def scaled(self, factor: float) -> Quadrilateral:
        return Quadrilateral(tuple((x * factor, y * factor) for x, y in self.corners))

    def with_corner(self, index: int, point) -> Quadrilateral:
        corners = list(self.corners)
        corners[index] = (float(point[0]), float(point[1]))
        return Quadrilateral(tuple(corners))

    def ordered(self) -> Quadrilateral:
        return Quadrilateral.from_points(order_points(self.as_array()))

    @property
    def area(self) -> float:
        return contour_area(self.as_array())

    def is_convex(self) -> bool:
        return is_convex(self.as_array())


# Orders four points: top-left, top-right, bottom-right, bottom-left
def order_points(pts):
    pts = np.asarray(pts, dtype=np.float64)
    if pts.shape != (4, 2):
        raise InvalidInputError(f"expected 4 points, got array of shape {pts.shape}")
    s = pts.sum(axis=1)
    tl = int(np.argmin(s))
    br = int(np.argmax(s))
    if tl == br:
        raise InvalidInputError("cannot order degenerate corners")
    rest = [i for i in range(4) if i not in (tl, br)]
    diff = pts[rest, 0] - pts[rest, 1]
    tr = rest[int(np.argmax(diff))]
    bl = rest[1] if tr == rest[0] else rest[0]
    return pts[[tl, tr, br, bl]]


# Consecutive edge cross products must all share one (nonzero) sign
def is_convex(pts):
    pts = np.asarray(pts, dtype=np.float64)
    edges = np.roll(pts, -1, axis=0) - pts
    nxt = np.roll(edges, -1, axis=0)
    cross = edges[:, 0] * nxt[:, 1] - edges[:, 1] * nxt[:, 0]
    return bool(np.all(cross > 0) or np.all(cross < 0))


def side_lengths(pts):
    pts = np.asarray(pts, dtype=np.float64)
    return np.hypot(*(np.roll(pts, -1, axis=0) - pts).T)


def is_reasonable_quad(pts, width, height, config=None):
    """
    Geometric sanity checks on a canonically ordered quad.

    Every corner inside the image; area within the configured fraction of the
    image; longest side at most ``max_side_ratio`` times the shortest;
    diagonal lengths within ``diagonal_symmetry_tolerance`` of each other.
    """
    config = config or ScanConfig()
    pts = np.asarray(pts, dtype=np.float64)

    if np.any(pts < 0) or np.any(pts[:, 0] >= width) or np.any(pts[:, 1] >= height):
        return False

    image_area = float(width * height)
    area = contour_area(pts)
    if not (config.min_area_frac * image_area <= area <= config.max_area_frac * image_area):
        return False

    sides = side_lengths(pts)
    if sides.min() <= 0 or sides.max() / sides.min() > config.max_side_ratio:
        return False

    diag1 = float(np.hypot(*(pts[2] - pts[0])))
    diag2 = float(np.hypot(*(pts[3] - pts[1])))
    if abs(diag1 - diag2) / max(diag1, diag2) > config.diagonal_symmetry_tolerance:
        return False
    return True


def find_document_quad(contours, width, height, config=None):
    """Return the first contour (largest first) that simplifies to an acceptable quad."""
    config = config or ScanConfig()
    for contour in contours:
        perimeter = arc_length(contour, closed=True)
        approx = approx_poly(contour, config.approx_epsilon * perimeter, closed=True)
        if len(approx) != 4:
            continue
        if not is_convex(approx):
            continue
        ordered = order_points(approx)
        if is_reasonable_quad(ordered, width, height, config):
            logger.debug("accepted quad %s (contour area %.0f)", ordered.tolist(), contour_area(contour))
            return Quadrilateral.from_points(ordered)
    return None


def default_quad(width, height, inset=0.05):
    return Quadrilateral.from_points([
        (width * inset, height * inset),
        (width * (1 - inset), height * inset),
        (width * (1 - inset), height * (1 - inset)),
        (width * inset, height * (1 - inset)),
    ])
