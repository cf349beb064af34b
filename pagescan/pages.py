from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .config import DetectionMethod
from .quad import Quadrilateral
from .raster import as_raster, to_pil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Page:
    """A rectified page. ``pixels`` is read-only."""

    sequence_id: int
    pixels: np.ndarray = field(repr=False)
    corners: Optional[Quadrilateral] = None
    method: Optional[DetectionMethod] = None

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class PageCollection:
    """
    Ordered, append-only store of rectified pages.

    Appends and resets are serialized so concurrent rectifications cannot
    interleave.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pages = []
        self._ids = itertools.count(1)

    def append(self, pixels, corners=None, method=None) -> Page:
        frozen = as_raster(pixels).copy()
        frozen.flags.writeable = False
        with self._lock:
            page = Page(next(self._ids), frozen, corners, method)
            self._pages.append(page)
        logger.info("collected page %d (%dx%d)", page.sequence_id, page.width, page.height)
        return page

    def reset(self) -> None:
        with self._lock:
            self._pages = []
            self._ids = itertools.count(1)

    def __len__(self):
        return len(self._pages)

    def __iter__(self):
        return iter(list(self._pages))

    def __getitem__(self, index):
        return self._pages[index]

    # Hands the pages to an external renderer (e.g. Pillow's PDF writer)
    def to_pil_images(self):
        return [to_pil(page.pixels).convert("RGB") for page in self]
