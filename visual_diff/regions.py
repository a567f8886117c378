"""
Connected-component extraction over a diff mask
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple, Dict, Any

import numpy as np

from .mask import DiffMask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """Inclusive bounding box of one 4-connected group of differing pixels"""

    x1: int
    y1: int
    x2: int
    y2: int
    pixel_count: int = 1

    @property
    def width(self) -> int:
        return self.x2 - self.x1 + 1

    @property
    def height(self) -> int:
        return self.y2 - self.y1 + 1

    @property
    def area(self) -> int:
        """Bounding box area (not the number of differing pixels)"""
        return self.width * self.height

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return (self.x1, self.y1, self.x2, self.y2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'x': self.x1,
            'y': self.y1,
            'width': self.width,
            'height': self.height,
            'x1': self.x1,
            'y1': self.y1,
            'x2': self.x2,
            'y2': self.y2,
            'pixel_count': self.pixel_count,
        }


def label_regions(mask: DiffMask, min_pixels: int = 0) -> Tuple[List[Region], np.ndarray]:
    """
    Label 4-connected components of a diff mask

    Seeds are taken in row-major order and each component is flooded
    breadth-first, so regions come back in discovery order. Diagonal
    neighbours are not connected.

    Args:
        mask: Difference mask
        min_pixels: Drop regions with fewer differing pixels than this

    Returns:
        Tuple of (regions, labels) where labels is a flat int32 buffer with
        0 for unchanged pixels and n for pixels of the n-th returned region
    """
    width, height = mask.width, mask.height
    area = width * height
    labels = np.zeros(area, dtype=np.int32)
    regions: List[Region] = []

    seeds = np.flatnonzero(mask.cells).tolist()
    if not seeds:
        return regions, labels

    cells = mask.cells.tobytes()
    visited = bytearray(area)
    # Each cell is queued at most once, so the worklist never outgrows the true-cell count
    worklist = [0] * len(seeds)

    for seed in seeds:
        if visited[seed]:
            continue

        visited[seed] = 1
        worklist[0] = seed
        head, tail = 0, 1
        y1, x1 = divmod(seed, width)
        x2, y2 = x1, y1

        while head < tail:
            idx = worklist[head]
            head += 1

            y, x = divmod(idx, width)
            if x < x1:
                x1 = x
            elif x > x2:
                x2 = x
            if y > y2:
                y2 = y

            if x > 0:
                n = idx - 1
                if cells[n] and not visited[n]:
                    visited[n] = 1
                    worklist[tail] = n
                    tail += 1
            if x < width - 1:
                n = idx + 1
                if cells[n] and not visited[n]:
                    visited[n] = 1
                    worklist[tail] = n
                    tail += 1
            if y > 0:
                n = idx - width
                if cells[n] and not visited[n]:
                    visited[n] = 1
                    worklist[tail] = n
                    tail += 1
            if y < height - 1:
                n = idx + width
                if cells[n] and not visited[n]:
                    visited[n] = 1
                    worklist[tail] = n
                    tail += 1

        if tail < min_pixels:
            continue

        regions.append(Region(x1, y1, x2, y2, tail))
        labels[worklist[:tail]] = len(regions)

    logger.debug(f"Found {len(regions)} regions over {len(seeds)} differing pixels")
    return regions, labels


def extract_regions(mask: DiffMask, min_pixels: int = 0) -> List[Region]:
    """
    Extract bounding boxes of connected components from a diff mask

    Args:
        mask: Difference mask
        min_pixels: Drop regions with fewer differing pixels than this

    Returns:
        Regions in discovery order
    """
    regions, _ = label_regions(mask, min_pixels)
    return regions
