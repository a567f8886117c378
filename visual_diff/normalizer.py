"""
Image loading and size normalization
"""

import io
import logging
import warnings
from pathlib import Path
from typing import Tuple, Union, BinaryIO

from PIL import Image, UnidentifiedImageError

from .errors import ImageLoadError, EmptyImageError, DimensionMismatchWarning

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, bytearray, BinaryIO, Image.Image]


def _describe(source: ImageSource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    if isinstance(source, Image.Image):
        return f"<{source.mode} image {source.size[0]}x{source.size[1]}>"
    return str(getattr(source, 'name', source))


def load_image(source: ImageSource) -> Image.Image:
    """
    Decode an image source into an RGBA image

    Args:
        source: File path, raw bytes, binary file object or PIL image

    Returns:
        Fully loaded RGBA image

    Raises:
        ImageLoadError: if the source cannot be read or decoded
    """
    description = _describe(source)
    if isinstance(source, Image.Image):
        image = source
    else:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(bytes(source))
        try:
            image = Image.open(source)
            image.load()
        except FileNotFoundError as e:
            raise ImageLoadError(description, "file not found") from e
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageLoadError(description, str(e)) from e

    # Convert to RGBA for consistent processing
    if image.mode != 'RGBA':
        image = image.convert('RGBA')

    logger.debug(f"Loaded {description} as {image.size[0]}x{image.size[1]} RGBA")
    return image


def normalize_images(baseline: Image.Image, candidate: Image.Image) -> Tuple[Image.Image, Image.Image, bool]:
    """
    Bring two images to a common size

    Equal sizes pass through untouched. Otherwise both are resized down to
    the smallest common width and height with bilinear resampling, and a
    DimensionMismatchWarning is emitted.

    Args:
        baseline: Baseline image
        candidate: Candidate image

    Returns:
        Tuple of (baseline, candidate, resized)

    Raises:
        EmptyImageError: if either normalized dimension is zero
    """
    w1, h1 = baseline.size
    w2, h2 = candidate.size

    resized = (w1, h1) != (w2, h2)
    if resized:
        target = (min(w1, w2), min(h1, h2))
        message = (f"Images have different dimensions: {w1}x{h1} vs {w2}x{h2}. "
                   f"Both resized to {target[0]}x{target[1]} for comparison")
        logger.warning(message)
        warnings.warn(message, DimensionMismatchWarning, stacklevel=2)

        if target[0] == 0 or target[1] == 0:
            raise EmptyImageError(target)

        if baseline.size != target:
            baseline = baseline.resize(target, Image.Resampling.BILINEAR)
        if candidate.size != target:
            candidate = candidate.resize(target, Image.Resampling.BILINEAR)

    width, height = baseline.size
    if width == 0 or height == 0:
        raise EmptyImageError((width, height))

    return baseline, candidate, resized
