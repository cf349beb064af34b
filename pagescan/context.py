import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from .config import ScanConfig
from .errors import ScanCancelledError

logger = logging.getLogger(__name__)


@dataclass
class ScanContext:
    """
    Per-request state threaded through every pipeline stage.

    ``checkpoint`` is called between stages; setting ``cancel_event`` from
    another thread stops the request at the next checkpoint.
    """

    config: ScanConfig = field(default_factory=ScanConfig)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    stage: Optional[str] = None

    def cancel(self) -> None:
        self.cancel_event.set()

    def checkpoint(self, stage: str) -> None:
        if self.cancel_event.is_set():
            raise ScanCancelledError(f"cancelled before {stage}")
        self.stage = stage
        logger.debug("stage: %s", stage)
