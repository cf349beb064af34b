"""
Contour extraction and polygon simplification.

Contours are ``(N, 2)`` integer arrays of ``(x, y)`` pixel coordinates in
boundary order.
"""

import logging

import numpy as np

from .edges import NEIGHBOURS_8

logger = logging.getLogger(__name__)

# Clockwise ring around a pixel, starting west; (dx, dy) with y pointing down
MOORE_RING = ((-1, 0), (-1, -1), (0, -1), (1, -1), (1, 0), (1, 1), (0, 1), (-1, 1))
RING_INDEX = {offset: i for i, offset in enumerate(MOORE_RING)}


def contour_area(points, signed=False):
    """Shoelace area of the closed polygon through ``points``."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 3:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    area = 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))
    return area if signed else abs(area)


def arc_length(points, closed=True):
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 2:
        return 0.0
    if closed:
        pts = np.vstack([pts, pts[:1]])
    return float(np.sum(np.hypot(*np.diff(pts, axis=0).T)))


def _label_components(edges, min_points):
    """8-connected components of nonzero pixels, flood filled with an explicit stack."""
    height, width = edges.shape
    labels = np.zeros((height, width), dtype=np.int32)
    components = []
    next_label = 1
    for sy, sx in zip(*np.nonzero(edges)):
        if labels[sy, sx]:
            continue
        labels[sy, sx] = next_label
        stack = [(sy, sx)]
        count = 0
        while stack:
            y, x = stack.pop()
            count += 1
            for dy, dx in NEIGHBOURS_8:
                ny, nx = y + dy, x + dx
                if 0 <= ny < height and 0 <= nx < width and edges[ny, nx] and not labels[ny, nx]:
                    labels[ny, nx] = next_label
                    stack.append((ny, nx))
        # (sx, sy) is the first pixel of the component in raster order
        if count >= min_points:
            components.append((next_label, (int(sx), int(sy)), count))
        next_label += 1
    return labels, components


def _trace_boundary(labels, label, start, max_steps):
    """Moore-neighbour trace of the outer boundary of one labelled component."""
    height, width = labels.shape

    def inside(x, y):
        return 0 <= x < width and 0 <= y < height and labels[y, x] == label

    sx, sy = start
    cx, cy = start
    back = 0  # the west neighbour of the raster-first pixel is background
    first_step = None
    boundary = [start]
    for _ in range(max_steps):
        for i in range(1, 9):
            d = (back + i) % 8
            nx, ny = cx + MOORE_RING[d][0], cy + MOORE_RING[d][1]
            if inside(nx, ny):
                break
        else:
            break  # isolated pixel

        px = cx + MOORE_RING[(d - 1) % 8][0]
        py = cy + MOORE_RING[(d - 1) % 8][1]
        back = RING_INDEX[(px - nx, py - ny)]

        if (cx, cy) == (sx, sy):
            if first_step is None:
                first_step = (nx, ny)
            elif (nx, ny) == first_step:
                break
        cx, cy = nx, ny
        boundary.append((cx, cy))

    if len(boundary) > 1 and boundary[-1] == boundary[0]:
        boundary.pop()
    return np.array(boundary, dtype=np.int64)


def find_contours(edges, min_points=30):
    """
    Extract the outer boundary of every 8-connected component of ``edges``.

    Components with fewer than ``min_points`` pixels are discarded as noise.
    The result is sorted by enclosed area, largest first.
    """
    edges = np.asarray(edges)
    labels, components = _label_components(edges, min_points)
    contours = [
        _trace_boundary(labels, label, start, max_steps=4 * count + 8)
        for label, start, count in components
    ]
    contours.sort(key=contour_area, reverse=True)
    logger.debug("found %d contours (min %d points)", len(contours), min_points)
    return contours


def _segment_distances(points, start, end):
    chord = end - start
    length_sq = float(np.dot(chord, chord))
    rel = points - start
    if length_sq == 0.0:
        return np.hypot(rel[:, 0], rel[:, 1])
    t = np.clip(rel @ chord / length_sq, 0.0, 1.0)
    diff = rel - t[:, None] * chord
    return np.hypot(diff[:, 0], diff[:, 1])


def approx_poly(points, epsilon, closed=True):
    """
    Douglas-Peucker simplification.

    A segment is split at its farthest point while that point lies more than
    ``epsilon`` from the chord. Closed polylines get a duplicate closing point
    for the duration of the simplification.
    """
    pts = np.asarray(points)
    if len(pts) < 3 or epsilon <= 0:
        return pts.copy()

    work = np.vstack([pts, pts[:1]]) if closed else pts
    coords = work.astype(np.float64)
    keep = np.zeros(len(work), dtype=bool)
    keep[0] = keep[-1] = True

    stack = [(0, len(work) - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        dists = _segment_distances(coords[first + 1:last], coords[first], coords[last])
        index = int(np.argmax(dists))
        if dists[index] > epsilon:
            split = first + 1 + index
            keep[split] = True
            stack.append((first, split))
            stack.append((split, last))

    result = work[keep]
    if closed:
        result = result[:-1]
    return result
