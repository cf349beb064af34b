from .config import DetectionMethod, EnhanceMode, ScanConfig, ThresholdMode
from .context import ScanContext
from .detection import DetectionResult, detect_corners
from .errors import (
    DetectionError,
    InvalidInputError,
    ScanCancelledError,
    ScanError,
    SingularHomographyError,
)
from .pages import Page, PageCollection
from .pipeline import process_image
from .quad import Quadrilateral, order_points
from .session import Outcome, ScanResult, ScanSession, ScanState
from .warp import rectify

__version__ = "0.2.0"
