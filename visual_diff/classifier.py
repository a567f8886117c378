"""
Layer classifiers: assign semantic tags to diff regions

Every classifier is stateless. Given the same region and the same normalized
RGB arrays it always returns the same non-empty tuple of tags, ordered by tag
declaration order.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Set, Tuple

import numpy as np
from scipy import ndimage

from .layers import LayerTag, ordered_tags
from .mask import LUMINANCE_WEIGHTS
from .regions import Region

Tags = Tuple[LayerTag, ...]


def _crop(array: np.ndarray, region: Region) -> np.ndarray:
    return array[region.y1:region.y2 + 1, region.x1:region.x2 + 1]


def _luminance(array: np.ndarray) -> np.ndarray:
    return array.astype(np.float32) @ np.array(LUMINANCE_WEIGHTS, dtype=np.float32)


class LayerClassifier(ABC):
    """Strategy interface for region classification"""

    name = 'base'

    # Shape heuristics shared by the pixel-based classifiers
    layout_share = 0.25
    text_max_height = 48
    icon_max_side = 48

    def __init__(self, max_tags: int = 2):
        if max_tags < 1:
            raise ValueError(f"max_tags must be >= 1, got {max_tags}")
        self.max_tags = max_tags

    @abstractmethod
    def detect(self, region: Region, baseline: Optional[np.ndarray],
               candidate: Optional[np.ndarray]) -> Iterable[LayerTag]:
        """Return every tag whose rule matches; may be empty"""

    def classify(self, region: Region, baseline: Optional[np.ndarray] = None,
                 candidate: Optional[np.ndarray] = None) -> Tags:
        """
        Classify one region

        Args:
            region: Region to classify
            baseline: Normalized baseline as a (height, width, 3) RGB array
            candidate: Normalized candidate as a (height, width, 3) RGB array

        Returns:
            Non-empty tuple of tags in declaration order, at most max_tags long
        """
        tags = ordered_tags(self.detect(region, baseline, candidate))
        if not tags:
            return (LayerTag.MISC,)
        return tags[:self.max_tags]

    __call__ = classify

    # Shape helpers

    def is_layout(self, region: Region, image_shape) -> bool:
        height, width = image_shape[:2]
        return region.area >= self.layout_share * width * height

    @staticmethod
    def is_strip(region: Region) -> bool:
        return min(region.width, region.height) <= 2 and max(region.width, region.height) >= 8

    def is_text_shaped(self, region: Region) -> bool:
        return region.height <= self.text_max_height and region.width >= 2 * region.height

    def is_icon_shaped(self, region: Region) -> bool:
        if max(region.width, region.height) > self.icon_max_side or region.area < 16:
            return False
        return 0.5 <= region.width / region.height <= 2.0

    def __repr__(self) -> str:
        return f"{type(self).__name__}(max_tags={self.max_tags})"


class FixedClassifier(LayerClassifier):
    """Returns the same tags for every region"""

    name = 'fixed'

    def __init__(self, tags: Iterable[LayerTag] = (LayerTag.MISC,), max_tags: Optional[int] = None):
        tags = ordered_tags(tags)
        if not tags:
            raise ValueError("FixedClassifier needs at least one tag")
        super().__init__(max_tags or len(tags))
        self.tags = tags

    def detect(self, region, baseline, candidate):
        return self.tags

    def __repr__(self) -> str:
        return f"FixedClassifier({', '.join(tag.label for tag in self.tags)})"


class ChannelDeltaClassifier(LayerClassifier):
    """
    Heuristic classifier over the signed RGB delta inside the region box
    """

    name = 'channel'

    uniform_spread = 8        # max per-channel std for a uniform colour shift
    gray_tolerance = 4        # max channel disagreement for a grayscale delta
    soft_magnitude = 64       # mean delta below this counts as a soft change
    ink_contrast = 20         # luminance std that means text/graphics are present
    image_min_area = 1024
    image_variance = 40
    max_shift = 4
    max_shift_area = 250000

    def detect(self, region, baseline, candidate):
        tags: Set[LayerTag] = set()
        if baseline is None or candidate is None:
            return tags

        base = _crop(baseline, region).astype(np.int16)
        cand = _crop(candidate, region).astype(np.int16)
        delta = cand - base
        changed = np.any(delta != 0, axis=-1)
        if not changed.any():
            return tags
        d = delta[changed]

        if self.is_layout(region, baseline.shape):
            tags.add(LayerTag.LAYOUT)

        if self.is_strip(region):
            tags.add(LayerTag.BORDER)

        if region.area <= self.max_shift_area and self._is_shifted(baseline, candidate, region):
            tags.add(LayerTag.SPACING)

        uniform = d.std(axis=0).max() <= self.uniform_spread
        gray = np.abs(d - d.mean(axis=1, keepdims=True)).max() <= self.gray_tolerance
        soft = np.abs(d).max(axis=1).mean() < self.soft_magnitude

        if uniform:
            tags.add(LayerTag.COLOR)
        elif gray and soft:
            tags.add(LayerTag.SHADOW)

        coverage = changed.mean()
        if self.is_text_shaped(region) and coverage < 0.6:
            had_ink = _luminance(base).std() > self.ink_contrast
            has_ink = _luminance(cand).std() > self.ink_contrast
            tags.add(LayerTag.FONT if had_ink and has_ink else LayerTag.TEXT)
        elif self.is_icon_shaped(region) and not uniform:
            tags.add(LayerTag.ICON)

        if region.area >= self.image_min_area and cand.reshape(-1, 3).std(axis=0).mean() > self.image_variance:
            tags.add(LayerTag.IMAGE)

        return tags

    def _is_shifted(self, baseline: np.ndarray, candidate: np.ndarray, region: Region) -> bool:
        """True when the candidate box equals the baseline displaced by a few pixels on one axis"""
        height, width = baseline.shape[:2]
        target = _crop(candidate, region)
        for distance in range(1, self.max_shift + 1):
            for dx, dy in ((distance, 0), (-distance, 0), (0, distance), (0, -distance)):
                sx1, sy1 = region.x1 - dx, region.y1 - dy
                sx2, sy2 = region.x2 - dx, region.y2 - dy
                if sx1 < 0 or sy1 < 0 or sx2 >= width or sy2 >= height:
                    continue
                if np.array_equal(baseline[sy1:sy2 + 1, sx1:sx2 + 1], target):
                    return True
        return False


class EdgeClassifier(LayerClassifier):
    """
    Pattern classifier driven by Sobel edges of the grayscale difference
    """

    name = 'edge'

    edge_threshold = 32.0
    dense_edges = 0.35
    sparse_edges = 0.15
    ring_fraction = 0.8
    ring_width = 2
    uniform_spread = 4.0
    soft_magnitude = 64.0
    image_min_area = 1024

    def detect(self, region, baseline, candidate):
        tags: Set[LayerTag] = set()
        if baseline is None or candidate is None:
            return tags

        gray_delta = np.abs(_luminance(_crop(candidate, region)) - _luminance(_crop(baseline, region)))
        if not gray_delta.any():
            return tags

        gradient = np.hypot(ndimage.sobel(gray_delta, axis=1), ndimage.sobel(gray_delta, axis=0))
        edges = gradient > self.edge_threshold
        density = edges.mean()

        if self.is_layout(region, baseline.shape):
            tags.add(LayerTag.LAYOUT)

        if self.is_strip(region) or self._edges_on_ring(edges):
            tags.add(LayerTag.BORDER)

        if density >= self.dense_edges:
            if self.is_text_shaped(region):
                tags.add(LayerTag.TEXT)
            elif self.is_icon_shaped(region):
                tags.add(LayerTag.ICON)
            elif region.area >= self.image_min_area:
                tags.add(LayerTag.IMAGE)
        elif density < self.sparse_edges:
            changed = gray_delta[gray_delta > 0]
            if changed.std() <= self.uniform_spread:
                tags.add(LayerTag.COLOR)
            elif changed.max() < self.soft_magnitude:
                tags.add(LayerTag.SHADOW)
        elif region.area >= self.image_min_area:
            tags.add(LayerTag.IMAGE)

        return tags

    def _edges_on_ring(self, edges: np.ndarray) -> bool:
        """True when edges hug the box perimeter (an outline changed, not its content)"""
        height, width = edges.shape
        ring = self.ring_width
        if min(height, width) <= 3 * ring or not edges.any():
            return False
        inner = edges[ring:-ring, ring:-ring]
        on_ring = edges.sum() - inner.sum()
        return on_ring / edges.sum() >= self.ring_fraction


CLASSIFIERS = {
    ChannelDeltaClassifier.name: ChannelDeltaClassifier,
    EdgeClassifier.name: EdgeClassifier,
}


def get_classifier(name: str, max_tags: int = 2) -> LayerClassifier:
    """
    Resolve a classifier by name

    Args:
        name: 'channel', 'edge', or 'fixed:<tag>[,<tag>...]'
        max_tags: Maximum tags per region

    Returns:
        Classifier instance
    """
    name = name.strip().lower()
    if name.startswith('fixed'):
        _, _, labels = name.partition(':')
        tags = [LayerTag.from_label(label) for label in labels.split(',') if label.strip()]
        return FixedClassifier(tags or (LayerTag.MISC,), max_tags=max_tags)

    if name not in CLASSIFIERS:
        raise ValueError(f"Unknown classifier: {name}. Must be one of: {list(CLASSIFIERS) + ['fixed:<tags>']}")
    return CLASSIFIERS[name](max_tags=max_tags)
