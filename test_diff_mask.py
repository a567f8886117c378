#!/usr/bin/env python3
"""
Unit tests for image loading, normalization and the diff mask
"""

import io
import os
import sys
import shutil
import tempfile
import unittest
import warnings
from pathlib import Path
from unittest.mock import patch

import numpy as np
from PIL import Image

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from visual_diff import DiffMask, build_diff_mask, ImageLoadError, EmptyImageError, DimensionMismatchWarning
from visual_diff.normalizer import load_image, normalize_images


class TestLoadImage(unittest.TestCase):
    """Test cases for load_image"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_load_from_path_converts_to_rgba(self):
        path = Path(self.test_dir) / "baseline.png"
        Image.new('RGB', (10, 6), 'white').save(path)

        image = load_image(path)

        self.assertEqual(image.mode, 'RGBA')
        self.assertEqual(image.size, (10, 6))

    def test_load_from_bytes(self):
        buffer = io.BytesIO()
        Image.new('RGB', (3, 2), 'red').save(buffer, 'JPEG')

        image = load_image(buffer.getvalue())

        self.assertEqual(image.size, (3, 2))
        self.assertEqual(image.mode, 'RGBA')

    def test_load_from_pil_image(self):
        original = Image.new('L', (5, 5), 128)
        image = load_image(original)
        self.assertEqual(image.mode, 'RGBA')
        self.assertEqual(original.mode, 'L')

    def test_missing_file_raises(self):
        with self.assertRaises(ImageLoadError):
            load_image(Path(self.test_dir) / "missing.png")

    def test_undecodable_bytes_raise(self):
        with self.assertRaises(ImageLoadError) as ctx:
            load_image(b"definitely not an image")
        self.assertIn("bytes", str(ctx.exception))

    def test_oversized_image_raises_load_error(self):
        buffer = io.BytesIO()
        Image.new('RGB', (100, 100)).save(buffer, 'PNG')

        # Pillow refuses images over twice MAX_IMAGE_PIXELS
        with patch('PIL.Image.MAX_IMAGE_PIXELS', 10):
            with self.assertRaises(ImageLoadError):
                load_image(buffer.getvalue())


class TestNormalizeImages(unittest.TestCase):
    """Test cases for normalize_images"""

    def test_equal_sizes_pass_through(self):
        baseline = Image.new('RGBA', (20, 10), (0, 0, 0, 255))
        candidate = Image.new('RGBA', (20, 10), (255, 255, 255, 255))

        with warnings.catch_warnings():
            warnings.simplefilter('error')
            out_baseline, out_candidate, resized = normalize_images(baseline, candidate)

        self.assertIs(out_baseline, baseline)
        self.assertIs(out_candidate, candidate)
        self.assertFalse(resized)

    def test_mismatched_sizes_use_smallest_common_size(self):
        baseline = Image.new('RGBA', (100, 100), (0, 0, 0, 255))
        candidate = Image.new('RGBA', (80, 120), (0, 0, 0, 255))

        with self.assertWarns(DimensionMismatchWarning):
            out_baseline, out_candidate, resized = normalize_images(baseline, candidate)

        self.assertTrue(resized)
        self.assertEqual(out_baseline.size, (80, 100))
        self.assertEqual(out_candidate.size, (80, 100))

    def test_resize_is_order_independent(self):
        first = Image.new('RGBA', (100, 100), (10, 20, 30, 255))
        second = Image.new('RGBA', (80, 120), (200, 100, 50, 255))

        with warnings.catch_warnings():
            warnings.simplefilter('ignore', DimensionMismatchWarning)
            a1, b1, _ = normalize_images(first, second)
            b2, a2, _ = normalize_images(second, first)

        self.assertEqual(a1.tobytes(), a2.tobytes())
        self.assertEqual(b1.tobytes(), b2.tobytes())

    def test_zero_dimension_raises(self):
        baseline = Image.new('RGBA', (0, 10))
        candidate = Image.new('RGBA', (10, 10))

        with warnings.catch_warnings():
            warnings.simplefilter('ignore', DimensionMismatchWarning)
            with self.assertRaises(EmptyImageError):
                normalize_images(baseline, candidate)


class TestDiffMask(unittest.TestCase):
    """Test cases for build_diff_mask"""

    def test_identical_images_produce_empty_mask(self):
        image = Image.new('RGBA', (16, 9), (12, 34, 56, 255))

        mask = build_diff_mask(image, image.copy())

        self.assertEqual((mask.width, mask.height), (16, 9))
        self.assertEqual(mask.cells.size, 16 * 9)
        self.assertFalse(mask.any())

    def test_single_pixel_difference(self):
        baseline = Image.new('RGBA', (5, 4), (0, 0, 0, 255))
        candidate = baseline.copy()
        candidate.putpixel((3, 2), (0, 0, 1, 255))

        mask = build_diff_mask(baseline, candidate)

        self.assertEqual(mask.count(), 1)
        self.assertTrue(mask[3, 2])
        self.assertTrue(mask.cells[2 * 5 + 3])

    def test_alpha_is_ignored(self):
        baseline = Image.new('RGBA', (4, 4), (100, 100, 100, 255))
        candidate = Image.new('RGBA', (4, 4), (100, 100, 100, 10))

        self.assertFalse(build_diff_mask(baseline, candidate).any())

    def test_tolerance_is_strictly_greater_than(self):
        baseline = Image.new('RGBA', (2, 1), (100, 100, 100, 255))
        candidate = baseline.copy()
        candidate.putpixel((0, 0), (105, 100, 100, 255))
        candidate.putpixel((1, 0), (106, 100, 100, 255))

        mask = build_diff_mask(baseline, candidate, tolerance=5)

        self.assertFalse(mask[0, 0])
        self.assertTrue(mask[1, 0])

    def test_luminance_mode_weights_channels(self):
        baseline = Image.new('RGBA', (2, 1), (0, 0, 0, 255))
        candidate = baseline.copy()
        candidate.putpixel((0, 0), (0, 0, 40, 255))   # 0.114 * 40 = 4.56
        candidate.putpixel((1, 0), (0, 40, 0, 255))   # 0.587 * 40 = 23.48

        mask = build_diff_mask(baseline, candidate, tolerance=10, mode='luminance')

        self.assertFalse(mask[0, 0])
        self.assertTrue(mask[1, 0])

    def test_size_mismatch_rejected(self):
        with self.assertRaises(ValueError):
            build_diff_mask(Image.new('RGBA', (2, 2)), Image.new('RGBA', (3, 2)))

    def test_unknown_mode_rejected(self):
        image = Image.new('RGBA', (2, 2))
        with self.assertRaises(ValueError):
            build_diff_mask(image, image, mode='ssim')

    def test_from_rows_and_to_image(self):
        mask = DiffMask.from_rows([
            '#..',
            '.#.',
        ])

        self.assertEqual((mask.width, mask.height), (3, 2))
        self.assertEqual(mask.count(), 2)
        array = np.array(mask.to_image())
        self.assertEqual(array[0, 0], 255)
        self.assertEqual(array[0, 1], 0)
        self.assertEqual(array[1, 1], 255)


if __name__ == '__main__':
    unittest.main()
