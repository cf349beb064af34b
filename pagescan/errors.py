"""Exceptions raised by the scanning pipeline."""


class ScanError(Exception):
    """Base class for every pipeline failure."""


class InvalidInputError(ScanError, ValueError):
    """Zero-sized image, bad corner list or an out-of-range option."""


class SingularHomographyError(ScanError):
    """The corner correspondences do not define an invertible transform."""


class DetectionError(ScanError):
    """A detection stage found no acceptable quadrilateral.

    Recovered by the fallback chain, never raised to callers of
    ``detect_corners``.
    """


class ScanCancelledError(ScanError):
    """The request was cancelled between two pipeline stages."""
