import logging

from .config import ScanConfig
from .context import ScanContext
from .detection import detect_corners
from .enhance import enhance_document
from .warp import rectify

logger = logging.getLogger(__name__)


# Full document processing pipeline: detect, flatten, enhance
def process_image(img, config=None, context=None, corner_regressor=None):
    config = config or ScanConfig()
    config.validate()
    context = context or ScanContext(config)

    detection = detect_corners(img, config, context, corner_regressor)
    flat, _ = rectify(img, detection.quad, context)
    context.checkpoint("enhance")
    enhanced = enhance_document(flat, config.enhance_mode, config.brightness, config.contrast)
    logger.info("page %dx%d via %s", enhanced.shape[1], enhanced.shape[0], detection.method.value)
    return enhanced, detection
