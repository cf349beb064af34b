"""
Raster helpers shared by every stage.

Rasters are numpy ``uint8`` arrays shaped ``(height, width, channels)`` with
RGB or RGBA channel order. Stages never write into the caller's array.
"""

import cv2
import numpy as np
from PIL import Image

from .errors import InvalidInputError

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def as_raster(img):
    """Validate ``img`` and return it as an RGB/RGBA uint8 array."""
    if img is None:
        raise InvalidInputError("no image supplied")
    img = np.asarray(img)
    if img.ndim == 2:
        img = np.repeat(img[:, :, None], 3, axis=2)
    if img.ndim != 3 or img.shape[2] not in (3, 4):
        raise InvalidInputError(f"expected an RGB or RGBA raster, got shape {img.shape}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise InvalidInputError("image has zero width or height")
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    return img


# luma = 0.299R + 0.587G + 0.114B, as float64
def to_luma(img):
    img = as_raster(img)
    return img[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS


# Downscale so the longer side is at most max_size; returns (working copy, scale)
def resize_for_detection(img, max_size):
    height, width = img.shape[:2]
    scale = min(max_size / width, max_size / height, 1.0)
    if scale >= 1.0:
        return img, 1.0
    size = (max(1, int(width * scale)), max(1, int(height * scale)))
    return cv2.resize(img, size, interpolation=cv2.INTER_AREA), scale


# Decodes an encoded image (PNG, JPEG, ...) into an RGBA raster
def decode_image(data):
    buffer = np.frombuffer(data, dtype=np.uint8)
    bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if bgr is None:
        raise InvalidInputError("could not decode image data")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)


def load_image(path):
    with open(path, "rb") as handle:
        return decode_image(handle.read())


def save_image(path, img):
    img = as_raster(img)
    code = cv2.COLOR_RGBA2BGRA if img.shape[2] == 4 else cv2.COLOR_RGB2BGR
    if not cv2.imwrite(str(path), cv2.cvtColor(img, code)):
        raise OSError(f"could not write {path}")


def to_pil(img):
    img = as_raster(img)
    return Image.fromarray(img)
