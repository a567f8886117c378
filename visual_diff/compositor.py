"""
Side-by-side composite rendering with translucent region highlights
"""

import io
import os
import logging
import tempfile
from pathlib import Path
from typing import Sequence, Tuple

import numpy as np
from PIL import Image

from .errors import WriteError
from .layers import LayerTag
from .regions import Region
from utils.path_manager import DiffPathManager

logger = logging.getLogger(__name__)

# mkstemp creates owner-only files; composites get the mode a plain open() would give
_UMASK = os.umask(0)
os.umask(_UMASK)
FILE_MODE = 0o666 & ~_UMASK

# Highlights reach this many pixels past the region box on every side
HIGHLIGHT_MARGIN = 2


def highlight_mask(region: Region, width: int, height: int,
                   margin: int = HIGHLIGHT_MARGIN) -> Tuple[Tuple[slice, slice], np.ndarray]:
    """
    Pixels covered by the rounded highlight box of a region

    The box is the region grown by `margin` and clamped to one image half.
    The four corner pixels of the grown box are left out where they survive
    clamping, which rounds the corners.

    Returns:
        Tuple of ((row slice, column slice), boolean mask of that window)
    """
    gx1, gy1 = region.x1 - margin, region.y1 - margin
    gx2, gy2 = region.x2 + margin, region.y2 + margin

    cx1, cy1 = max(gx1, 0), max(gy1, 0)
    cx2, cy2 = min(gx2, width - 1), min(gy2, height - 1)

    window = (slice(cy1, cy2 + 1), slice(cx1, cx2 + 1))
    covered = np.ones((cy2 - cy1 + 1, cx2 - cx1 + 1), dtype=bool)
    for corner_x in (gx1, gx2):
        for corner_y in (gy1, gy2):
            if cx1 <= corner_x <= cx2 and cy1 <= corner_y <= cy2:
                covered[corner_y - cy1, corner_x - cx1] = False
    return window, covered


def blend(pixels: np.ndarray, color: Sequence[int], alpha: float) -> np.ndarray:
    """
    Alpha-blend a highlight color over RGBA pixels

    Each RGB channel becomes round(orig * (1 - alpha) + color * alpha) with
    halves rounded up; alpha is forced opaque.
    """
    rgb = pixels[..., :3].astype(np.float64) * (1 - alpha) + np.asarray(color, dtype=np.float64) * alpha
    out = np.empty_like(pixels)
    out[..., :3] = np.floor(rgb + 0.5).astype(np.uint8)
    out[..., 3] = 255
    return out


class Compositor:
    """
    Renders and persists the annotated baseline | candidate composite

    Each call to render() builds its own canvas; a Compositor holds no
    per-comparison state and can be shared between threads.
    """

    def __init__(self, output_dir: str = "diffimage", margin: int = HIGHLIGHT_MARGIN):
        self.path_manager = DiffPathManager(output_dir)
        self.margin = margin

    def render(self, baseline: Image.Image, candidate: Image.Image,
               classified: Sequence[Tuple[Region, Sequence[LayerTag]]]) -> Image.Image:
        """
        Build the composite in memory

        Args:
            baseline: Normalized baseline image
            candidate: Normalized candidate image (same size)
            classified: (region, tags) pairs; blended in the given order,
                        tags in the given order within a region

        Returns:
            RGBA image of size (2 * width, height)
        """
        if baseline.size != candidate.size:
            raise ValueError(f"Images have different sizes: {baseline.size} vs {candidate.size}")

        width, height = baseline.size
        canvas = np.empty((height, width * 2, 4), dtype=np.uint8)
        canvas[:, :width] = np.asarray(baseline.convert('RGBA'))
        canvas[:, width:] = np.asarray(candidate.convert('RGBA'))

        left = canvas[:, :width]
        right = canvas[:, width:]

        for region, tags in classified:
            window, covered = highlight_mask(region, width, height, self.margin)
            for tag in tags:
                for half in (left, right):
                    area = half[window]
                    area[covered] = blend(area[covered], tag.color, tag.opacity)

        return Image.fromarray(canvas, 'RGBA')

    def write(self, composite: Image.Image) -> Path:
        """
        Persist a composite as a timestamped PNG

        The PNG is encoded in memory, written to a temporary file in the
        output directory and renamed into place, so readers only ever see a
        complete file.

        Returns:
            Path of the written composite

        Raises:
            WriteError: if the directory or file cannot be written
        """
        buffer = io.BytesIO()
        composite.save(buffer, 'PNG')
        data = buffer.getvalue()

        try:
            target = self.path_manager.reserve_diff_path()
        except OSError as e:
            raise WriteError(self.path_manager.output_dir, str(e)) from e

        temp_name = None
        try:
            fd, temp_name = tempfile.mkstemp(prefix='.diff-', suffix='.tmp', dir=target.parent)
            with os.fdopen(fd, 'wb') as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_name, FILE_MODE)
            os.replace(temp_name, target)
            temp_name = None
        except OSError as e:
            raise WriteError(target, str(e)) from e
        finally:
            if temp_name is not None and os.path.exists(temp_name):
                os.unlink(temp_name)
            self.path_manager.release(target)

        logger.info(f"Diff image saved to {target} ({len(data)} bytes)")
        return target

    def compose(self, baseline: Image.Image, candidate: Image.Image,
                classified: Sequence[Tuple[Region, Sequence[LayerTag]]]) -> Path:
        """Render and write in one step; returns the output path"""
        return self.write(self.render(baseline, candidate, classified))
