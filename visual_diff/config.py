"""
Configuration settings for the visual diff engine
"""

import os
from typing import Dict, Any

from dotenv import load_dotenv

load_dotenv()

COMPARE_MODES = ('channel', 'luminance')


class DiffConfig:
    """Configuration for diff generation"""

    def __init__(self):
        # Pixel comparison
        self.tolerance = int(os.getenv('DIFF_TOLERANCE', '0'))
        self.compare_mode = os.getenv('DIFF_COMPARE_MODE', 'channel').lower()
        self.min_region_pixels = int(os.getenv('DIFF_MIN_REGION_PIXELS', '0'))

        # Output
        self.output_dir = os.getenv('DIFF_OUTPUT_DIR', './diffimage')

        # Classification
        self.classifier = os.getenv('DIFF_CLASSIFIER', 'channel')
        self.max_tags = int(os.getenv('DIFF_MAX_TAGS', '2'))

        # Pass/fail verdict
        self.fail_threshold_pct = float(os.getenv('DIFF_FAIL_THRESHOLD_PCT', '5.0'))

        # Background comparisons
        self.max_workers = int(os.getenv('DIFF_MAX_WORKERS', '4'))

    def validate(self) -> 'DiffConfig':
        """
        Check that settings are usable

        Returns:
            The config itself, for chaining

        Raises:
            ValueError: if any setting is out of range
        """
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.compare_mode not in COMPARE_MODES:
            raise ValueError(f"Invalid compare mode: {self.compare_mode}. Must be one of: {COMPARE_MODES}")
        if self.min_region_pixels < 0:
            raise ValueError(f"min_region_pixels must be >= 0, got {self.min_region_pixels}")
        if self.max_tags < 1:
            raise ValueError(f"max_tags must be >= 1, got {self.max_tags}")
        # Written so NaN fails the range check
        if not 0 <= self.fail_threshold_pct <= 100:
            raise ValueError(f"fail_threshold_pct must be between 0 and 100, got {self.fail_threshold_pct}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))


# Preset configurations for different comparison scenarios
PRESET_CONFIGS = {
    'strict': {
        'tolerance': 0,
        'compare_mode': 'channel',
        'min_region_pixels': 0,
        'fail_threshold_pct': 0.1,
    },
    'balanced': {
        'tolerance': 0,
        'compare_mode': 'channel',
        'min_region_pixels': 0,
        'fail_threshold_pct': 5.0,
    },
    'tolerant': {
        # Ignores faint rendering noise and specks
        'tolerance': 12,
        'compare_mode': 'luminance',
        'min_region_pixels': 4,
        'fail_threshold_pct': 10.0,
    },
}


def get_preset_config(preset_name: str) -> DiffConfig:
    """
    Get a preset configuration

    Args:
        preset_name: Name of the preset ('strict', 'balanced', 'tolerant')

    Returns:
        DiffConfig with environment defaults overridden by the preset
    """
    if preset_name not in PRESET_CONFIGS:
        raise ValueError(f"Unknown preset: {preset_name}. Must be one of: {list(PRESET_CONFIGS)}")

    config = DiffConfig()
    for key, value in PRESET_CONFIGS[preset_name].items():
        setattr(config, key, value)
    return config
