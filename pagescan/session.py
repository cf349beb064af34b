"""
Interactive scan workflow as an explicit state machine.

    IDLE -> DETECTING -> AWAITING_ADJUSTMENT -> RECTIFYING -> ENHANCING -> COLLECTED

``load`` runs detection, the pointer methods adjust corners, ``rectify``
flattens, enhances and collects the page. ``reset`` returns to IDLE and drops
every collected page.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import DetectionMethod, ScanConfig
from .context import ScanContext
from .detection import DetectionResult, detect_corners
from .enhance import enhance_document
from .errors import InvalidInputError, ScanError
from .pages import Page, PageCollection
from .quad import Quadrilateral
from .raster import as_raster
from .warp import rectify

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    AWAITING_ADJUSTMENT = "awaiting-adjustment"
    RECTIFYING = "rectifying"
    ENHANCING = "enhancing"
    COLLECTED = "collected"


class Outcome(str, Enum):
    SUCCESS = "success"
    FALLBACK_USED = "fallback-used"  # page produced from the default inset corners
    FAILED = "failed"


@dataclass(frozen=True)
class ScanResult:
    outcome: Outcome
    page: Optional[Page] = None
    corners: Optional[Quadrilateral] = None
    method: Optional[DetectionMethod] = None
    error: Optional[ScanError] = None

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.FAILED


def prepare_corners(quad: Quadrilateral) -> Quadrilateral:
    """
    Re-sort hand-edited corners canonically before solving.

    Raises InvalidInputError if the re-sorted corners still do not form a
    convex quadrilateral.
    """
    ordered = quad.ordered()
    if not ordered.is_convex():
        raise InvalidInputError("corners do not form a convex quadrilateral")
    return ordered


class ScanSession:
    def __init__(self, config: Optional[ScanConfig] = None, pages: Optional[PageCollection] = None,
                 corner_regressor=None):
        self.config = config or ScanConfig()
        self.config.validate()
        self.pages = pages if pages is not None else PageCollection()
        self.corner_regressor = corner_regressor
        self.state = ScanState.IDLE
        self.image = None
        self.detection: Optional[DetectionResult] = None
        self.corners: Optional[Quadrilateral] = None
        self.dragging: Optional[int] = None
        self.context: Optional[ScanContext] = None
        self._lock = threading.RLock()

    def _require(self, *states):
        if self.state not in states:
            raise InvalidInputError(f"not allowed in state {self.state.value}")

    def load(self, image) -> DetectionResult:
        """Take a new source image and detect its corners."""
        image = as_raster(image)
        with self._lock:
            self.image = image
            self.context = ScanContext(self.config)
            self.state = ScanState.DETECTING
            try:
                result = detect_corners(image, self.config, self.context, self.corner_regressor)
            except ScanError:
                self._clear_pending()
                raise
            self.detection = result
            self.corners = result.quad
            self.dragging = None
            self.state = ScanState.AWAITING_ADJUSTMENT
        return result

    def cancel(self) -> None:
        if self.context is not None:
            self.context.cancel()

    def hit_test(self, point) -> Optional[int]:
        """Index of the first corner within ``corner_hit_radius`` of ``point``."""
        with self._lock:
            if self.corners is None:
                return None
            x, y = point
            for index, (cx, cy) in enumerate(self.corners.corners):
                if math.hypot(x - cx, y - cy) < self.config.corner_hit_radius:
                    return index
            return None

    def press(self, point) -> Optional[int]:
        with self._lock:
            self._require(ScanState.AWAITING_ADJUSTMENT)
            self.dragging = self.hit_test(point)
            return self.dragging

    def drag(self, point) -> None:
        with self._lock:
            if self.dragging is not None:
                self.move_corner(self.dragging, point)

    def release(self) -> None:
        with self._lock:
            self.dragging = None

    def move_corner(self, index: int, point) -> Quadrilateral:
        """Move one corner; the other three are left untouched and nothing is re-ordered."""
        with self._lock:
            self._require(ScanState.AWAITING_ADJUSTMENT)
            if not 0 <= index < 4:
                raise InvalidInputError(f"corner index {index} out of range")
            self.corners = self.corners.with_corner(index, point)
            return self.corners

    def rectify(self) -> ScanResult:
        """Flatten, enhance and collect the current image; failures leave the pages untouched."""
        with self._lock:
            self._require(ScanState.AWAITING_ADJUSTMENT)
            method = self.detection.method if self.detection else None
            corners = self.corners
            try:
                self.state = ScanState.RECTIFYING
                corners = prepare_corners(Quadrilateral.from_points(corners.corners))
                flat, _ = rectify(self.image, corners, self.context)
                self.state = ScanState.ENHANCING
                self.context.checkpoint("enhance")
                enhanced = enhance_document(
                    flat, self.config.enhance_mode, self.config.brightness, self.config.contrast,
                )
            except ScanError as exc:
                logger.warning("rectification failed: %s", exc)
                self.state = ScanState.AWAITING_ADJUSTMENT
                return ScanResult(Outcome.FAILED, corners=corners, method=method, error=exc)

            page = self.pages.append(enhanced, corners, method)
            self._clear_pending()
            self.state = ScanState.COLLECTED
            outcome = Outcome.FALLBACK_USED if method == DetectionMethod.DEFAULT else Outcome.SUCCESS
            return ScanResult(outcome, page=page, corners=corners, method=method)

    def _clear_pending(self):
        self.image = None
        self.detection = None
        self.corners = None
        self.dragging = None
        self.state = ScanState.IDLE

    def reset(self) -> None:
        with self._lock:
            self._clear_pending()
            self.pages.reset()
            self.context = None
