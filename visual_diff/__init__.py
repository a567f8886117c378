"""
Visual diff generation module for UI regression testing
"""

from .config import DiffConfig, get_preset_config
from .diff_engine import VisualDiffEngine, DiffResult, ClassifiedRegion, ComparisonStage
from .classifier import (LayerClassifier, FixedClassifier, ChannelDeltaClassifier,
                         EdgeClassifier, get_classifier)
from .errors import (VisualDiffError, ImageLoadError, EmptyImageError, WriteError,
                     DimensionMismatchWarning)
from .layers import LayerTag
from .mask import DiffMask, build_diff_mask
from .regions import Region, extract_regions, label_regions

__all__ = [
    'VisualDiffEngine', 'DiffConfig', 'get_preset_config', 'DiffResult', 'ClassifiedRegion',
    'ComparisonStage', 'LayerClassifier', 'FixedClassifier', 'ChannelDeltaClassifier',
    'EdgeClassifier', 'get_classifier', 'VisualDiffError', 'ImageLoadError', 'EmptyImageError',
    'WriteError', 'DimensionMismatchWarning', 'LayerTag', 'DiffMask', 'build_diff_mask',
    'Region', 'extract_regions', 'label_regions',
]
