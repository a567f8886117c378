"""
Semantic layer tags assigned to diff regions
"""

from enum import Enum
from typing import Iterable, Tuple

# Every highlight is blended at the same opacity regardless of tag
HIGHLIGHT_OPACITY = 0.4


class LayerTag(Enum):
    """Closed set of visual layers; declaration order is the blend order"""

    LAYOUT = ('layout', (255, 99, 71))       # Tomato
    COLOR = ('color', (30, 144, 255))        # DodgerBlue
    FONT = ('font', (255, 215, 0))           # Gold
    TEXT = ('text', (50, 205, 50))           # LimeGreen
    BORDER = ('border', (138, 43, 226))      # BlueViolet
    SHADOW = ('shadow', (255, 20, 147))      # DeepPink
    ICON = ('icon', (0, 206, 209))           # DarkTurquoise
    SPACING = ('spacing', (255, 140, 0))     # DarkOrange
    IMAGE = ('image', (70, 130, 180))        # SteelBlue
    MISC = ('misc', (220, 20, 60))           # Crimson

    def __init__(self, label: str, color: Tuple[int, int, int]):
        self.label = label
        self.color = color

    @property
    def opacity(self) -> float:
        return HIGHLIGHT_OPACITY

    @property
    def order(self) -> int:
        return _DECLARATION_ORDER[self]

    @classmethod
    def from_label(cls, label: str) -> 'LayerTag':
        """
        Look up a tag by its lowercase label

        Raises:
            ValueError: if the label is not a known layer
        """
        normalized = label.strip().lower()
        for tag in cls:
            if tag.label == normalized:
                return tag
        valid = ', '.join(tag.label for tag in cls)
        raise ValueError(f"Unknown layer tag: {label!r}. Must be one of: {valid}")

    def __str__(self) -> str:
        return self.label


_DECLARATION_ORDER = {tag: index for index, tag in enumerate(LayerTag)}


def ordered_tags(tags: Iterable[LayerTag]) -> Tuple[LayerTag, ...]:
    """De-duplicate tags and sort them into declaration order"""
    return tuple(sorted(set(tags), key=lambda tag: tag.order))
