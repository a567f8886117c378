"""
Per-pixel difference mask
"""

from typing import Iterable, Tuple

import numpy as np
from PIL import Image

# Standard luminance weights, closer to human vision than a plain channel max
LUMINANCE_WEIGHTS = (0.299, 0.587, 0.114)


class DiffMask:
    """
    Boolean difference grid stored as a flat buffer indexed by y * width + x
    """

    __slots__ = ('width', 'height', 'cells')

    def __init__(self, width: int, height: int, cells: np.ndarray = None):
        self.width = width
        self.height = height
        if cells is None:
            cells = np.zeros(width * height, dtype=bool)
        cells = np.asarray(cells, dtype=bool).reshape(-1)
        if cells.size != width * height:
            raise ValueError(f"Mask buffer has {cells.size} cells, expected {width * height}")
        self.cells = cells

    @classmethod
    def from_rows(cls, rows: Iterable[str]) -> 'DiffMask':
        """
        Build a mask from text rows, '#' (or 'x') marking a differing pixel

        >>> DiffMask.from_rows(['.#', '..']).count()
        1
        """
        rows = list(rows)
        height = len(rows)
        width = len(rows[0]) if rows else 0
        cells = np.array([[ch in '#xX1' for ch in row] for row in rows], dtype=bool)
        return cls(width, height, cells.reshape(-1))

    @classmethod
    def from_points(cls, width: int, height: int, points: Iterable[Tuple[int, int]]) -> 'DiffMask':
        mask = cls(width, height)
        for x, y in points:
            mask.cells[y * width + x] = True
        return mask

    def __getitem__(self, xy: Tuple[int, int]) -> bool:
        x, y = xy
        return bool(self.cells[y * self.width + x])

    def count(self) -> int:
        """Number of differing pixels"""
        return int(np.count_nonzero(self.cells))

    def any(self) -> bool:
        return bool(self.cells.any())

    def to_array(self) -> np.ndarray:
        """2-D (height, width) view of the mask"""
        return self.cells.reshape(self.height, self.width)

    def to_image(self) -> Image.Image:
        """Mask as an L mode image (0 / 255)"""
        return Image.fromarray(self.to_array().astype(np.uint8) * 255, mode='L')


def build_diff_mask(baseline: Image.Image, candidate: Image.Image,
                    tolerance: int = 0, mode: str = 'channel') -> DiffMask:
    """
    Compute the pixel-level difference mask between two equal-size images

    Args:
        baseline: Normalized baseline image
        candidate: Normalized candidate image
        tolerance: A pixel differs when its delta is greater than this (0 = any change)
        mode: 'channel' compares the largest RGB channel delta,
              'luminance' compares the perceptually weighted delta

    Returns:
        DiffMask with True where the images differ

    Raises:
        ValueError: if sizes differ or mode is unknown
    """
    if baseline.size != candidate.size:
        raise ValueError(f"Images have different sizes: {baseline.size} vs {candidate.size}")

    width, height = baseline.size

    # Alpha is ignored; compare RGB only
    baseline_rgb = np.asarray(baseline.convert('RGB'), dtype=np.int16)
    candidate_rgb = np.asarray(candidate.convert('RGB'), dtype=np.int16)
    delta = np.abs(baseline_rgb - candidate_rgb)

    if mode == 'channel':
        score = delta.max(axis=-1)
    elif mode == 'luminance':
        score = delta.astype(np.float32) @ np.array(LUMINANCE_WEIGHTS, dtype=np.float32)
    else:
        raise ValueError(f"Invalid compare mode: {mode}")

    return DiffMask(width, height, (score > tolerance).reshape(-1))
