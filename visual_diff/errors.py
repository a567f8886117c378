"""
Error types raised by the visual diff pipeline
"""


class VisualDiffError(Exception):
    """Base class for all diff engine failures"""


class ImageLoadError(VisualDiffError):
    """Source image could not be read or decoded"""

    def __init__(self, source, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"Could not load image from {source}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EmptyImageError(VisualDiffError):
    """Normalized image has a zero width or height"""

    def __init__(self, size):
        self.size = size
        super().__init__(f"Normalized image is empty: {size[0]}x{size[1]}")


class WriteError(VisualDiffError):
    """Composite image could not be persisted"""

    def __init__(self, path, reason: str = ""):
        self.path = path
        message = f"Could not write diff image to {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DimensionMismatchWarning(UserWarning):
    """Baseline and candidate sizes differ; both were resized for comparison"""
