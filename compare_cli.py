#!/usr/bin/env python3
"""
Command line entry point for the visual diff engine

Usage:
    pixelpulse-diff baseline.png candidate.png --output-dir diffimage --json
"""

import sys
import json
import logging
import argparse

from visual_diff import (VisualDiffEngine, DiffConfig, VisualDiffError, get_classifier,
                         get_preset_config)
from visual_diff.config import COMPARE_MODES, PRESET_CONFIGS

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Compare a baseline and a candidate screenshot and write an annotated diff image'
    )
    parser.add_argument('baseline', help='Baseline image (PNG/JPEG)')
    parser.add_argument('candidate', help='Candidate image (PNG/JPEG)')
    parser.add_argument('--output-dir', help='Directory for the diff image (default: DIFF_OUTPUT_DIR)')
    parser.add_argument('--preset', choices=sorted(PRESET_CONFIGS), help='Start from a preset configuration')
    parser.add_argument('--tolerance', type=int, help='Per-pixel tolerance (0 = any change)')
    parser.add_argument('--mode', choices=COMPARE_MODES, help='Pixel comparison mode')
    parser.add_argument('--classifier', help="Layer classifier: channel, edge or fixed:<tag>[,<tag>]")
    parser.add_argument('--json', action='store_true', help='Print metrics as JSON')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    return parser


def build_config(args) -> DiffConfig:
    config = get_preset_config(args.preset) if args.preset else DiffConfig()
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.tolerance is not None:
        config.tolerance = args.tolerance
    if args.mode:
        config.compare_mode = args.mode
    if args.classifier:
        config.classifier = args.classifier
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger('compare_cli')

    try:
        config = build_config(args)
        engine = VisualDiffEngine(config, get_classifier(config.classifier, config.max_tags))
        result = engine.compare(args.baseline, args.candidate)
    except (VisualDiffError, ValueError) as e:
        logger.error(str(e))
        return EXIT_ERROR

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Diff image: {result.output_path}")
        print(f"Status: {result.status.upper()} "
              f"({result.diff_mismatch_pct}% changed, {result.diff_pixels_changed} pixels, "
              f"{len(result.regions)} regions)")
        for item in result.regions:
            region = item.region
            tags = ', '.join(tag.label for tag in item.tags)
            print(f"  - ({region.x1},{region.y1})-({region.x2},{region.y2}) [{tags}]")

    return EXIT_PASSED if result.passed else EXIT_FAILED


if __name__ == '__main__':
    sys.exit(main())
