"""Binary/greyscale morphology with a square structuring element."""

import numpy as np

from .errors import InvalidInputError


def _neighbourhood(data, size, reduce):
    if size < 1 or size % 2 == 0:
        raise InvalidInputError("structuring element size must be a positive odd integer")
    data = np.asarray(data)
    half = size // 2
    # Replicated borders never win the max or min over a window holding the edge pixel
    padded = np.pad(data, half, mode="edge")
    height, width = data.shape
    out = padded[0:height, 0:width].copy()
    for dy in range(size):
        for dx in range(size):
            reduce(out, padded[dy:dy + height, dx:dx + width], out=out)
    return out


def dilate(data, size=3):
    return _neighbourhood(data, size, np.maximum)


def erode(data, size=3):
    return _neighbourhood(data, size, np.minimum)


# dilate then erode: bridges small gaps in edges
def morph_close(data, size=3):
    return erode(dilate(data, size), size)


# erode then dilate: removes specks smaller than the element
def morph_open(data, size=3):
    return dilate(erode(data, size), size)
