"""
Projective transform between four point correspondences.

The eight unknowns h11..h32 (h33 = 1) are found from the standard
homogeneous equations

    u = (h11 x + h12 y + h13) / (h31 x + h32 y + 1)
    v = (h21 x + h22 y + h23) / (h31 x + h32 y + 1)

with Gaussian elimination and partial pivoting.
"""

import itertools
import math

import numpy as np

from .errors import InvalidInputError, SingularHomographyError

PIVOT_EPS = 1e-10
COLLINEAR_EPS = 1e-6


def _check_points(points, name):
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape != (4, 2):
        raise InvalidInputError(f"{name} must hold 4 points, got shape {pts.shape}")
    if not np.all(np.isfinite(pts)):
        raise InvalidInputError(f"{name} must be finite")
    for a, b, c in itertools.combinations(pts, 3):
        u, v = b - a, c - a
        cross = u[0] * v[1] - u[1] * v[0]
        # |cross| = |u||v| sin(angle): relative test, independent of scale
        if abs(cross) <= COLLINEAR_EPS * np.hypot(*u) * np.hypot(*v):
            raise SingularHomographyError(f"three {name} points are collinear or coincide")
    return pts


def solve_linear_system(a, b):
    """Solve ``a x = b`` for square ``a``; raises SingularHomographyError on a zero pivot."""
    aug = np.hstack([np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64).reshape(-1, 1)])
    n = aug.shape[0]
    scale = max(float(np.abs(aug[:, :n]).max()), 1.0)

    for i in range(n):
        pivot = i + int(np.argmax(np.abs(aug[i:, i])))
        if abs(aug[pivot, i]) <= PIVOT_EPS * scale:
            raise SingularHomographyError("linear system is singular")
        if pivot != i:
            aug[[i, pivot]] = aug[[pivot, i]]
        factors = aug[i + 1:, i] / aug[i, i]
        aug[i + 1:, i:] -= factors[:, None] * aug[i, i:]

    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (aug[i, n] - np.dot(aug[i, i + 1:n], x[i + 1:])) / aug[i, i]
    return x


def get_perspective_transform(src, dst):
    src = _check_points(src, "source")
    dst = _check_points(dst, "destination")

    a = np.zeros((8, 8))
    b = np.zeros(8)
    for i, ((x, y), (u, v)) in enumerate(zip(src, dst)):
        a[2 * i] = [x, y, 1, 0, 0, 0, -u * x, -u * y]
        a[2 * i + 1] = [0, 0, 0, x, y, 1, -v * x, -v * y]
        b[2 * i] = u
        b[2 * i + 1] = v

    h = solve_linear_system(a, b)
    matrix = np.append(h, 1.0).reshape(3, 3)
    det = float(np.linalg.det(matrix))
    if not np.all(np.isfinite(matrix)) or not math.isfinite(det) or abs(det) < 1e-12:
        raise SingularHomographyError("homography is not invertible")
    return matrix


def invert_homography(matrix):
    """Adjugate inverse of a 3x3 matrix."""
    m = np.asarray(matrix, dtype=np.float64)
    cof = np.array([
        [m[1, 1] * m[2, 2] - m[2, 1] * m[1, 2],
         m[0, 2] * m[2, 1] - m[0, 1] * m[2, 2],
         m[0, 1] * m[1, 2] - m[0, 2] * m[1, 1]],
        [m[1, 2] * m[2, 0] - m[1, 0] * m[2, 2],
         m[0, 0] * m[2, 2] - m[0, 2] * m[2, 0],
         m[1, 0] * m[0, 2] - m[0, 0] * m[1, 2]],
        [m[1, 0] * m[2, 1] - m[2, 0] * m[1, 1],
         m[2, 0] * m[0, 1] - m[0, 0] * m[2, 1],
         m[0, 0] * m[1, 1] - m[1, 0] * m[0, 1]],
    ])
    det = m[0, 0] * cof[0, 0] + m[0, 1] * cof[1, 0] + m[0, 2] * cof[2, 0]
    if not math.isfinite(det) or abs(det) < 1e-12:
        raise SingularHomographyError("homography is not invertible")
    return cof / det


def apply_homography(matrix, points):
    pts = np.asarray(points, dtype=np.float64)
    homogeneous = np.column_stack([pts, np.ones(len(pts))]) @ np.asarray(matrix).T
    return homogeneous[:, :2] / homogeneous[:, 2:3]


# Output page size from the ordered corners: longest of each opposite edge pair
def target_size(corners):
    tl, tr, br, bl = np.asarray(corners, dtype=np.float64)
    width = max(np.hypot(*(tr - tl)), np.hypot(*(br - bl)))
    height = max(np.hypot(*(bl - tl)), np.hypot(*(br - tr)))
    return int(round(width)), int(round(height))
