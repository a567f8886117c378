#!/usr/bin/env python3
"""
Unit tests for the side-by-side compositor
"""

import os
import sys
import shutil
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np
from PIL import Image

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from visual_diff import LayerTag, Region, WriteError
from visual_diff.compositor import Compositor, blend, highlight_mask


class TestBlend(unittest.TestCase):
    """Test cases for highlight blending"""

    def test_blend_formula(self):
        pixels = np.array([[0, 0, 0, 255]], dtype=np.uint8)

        out = blend(pixels, LayerTag.LAYOUT.color, 0.4)

        # 255*0.4 = 102, 99*0.4 = 39.6, 71*0.4 = 28.4
        np.testing.assert_array_equal(out, [[102, 40, 28, 255]])

    def test_half_rounds_up(self):
        pixels = np.array([[1, 3, 0, 255]], dtype=np.uint8)
        out = blend(pixels, (0, 0, 1), 0.5)
        np.testing.assert_array_equal(out, [[1, 2, 1, 255]])

    def test_alpha_forced_opaque(self):
        pixels = np.array([[10, 10, 10, 0]], dtype=np.uint8)
        self.assertEqual(blend(pixels, (0, 0, 0), 0.4)[0, 3], 255)


class TestHighlightMask(unittest.TestCase):
    """Test cases for the rounded highlight box"""

    def test_corners_skipped_inside_image(self):
        window, covered = highlight_mask(Region(5, 5, 5, 5), 20, 20)

        self.assertEqual(window, (slice(3, 8), slice(3, 8)))
        self.assertEqual(covered.shape, (5, 5))
        self.assertEqual(int(covered.sum()), 21)
        for row, col in ((0, 0), (0, 4), (4, 0), (4, 4)):
            self.assertFalse(covered[row, col])

    def test_clamped_box_keeps_edges(self):
        window, covered = highlight_mask(Region(1, 1, 1, 2), 4, 4)

        # Grown box (-1..3, -1..4) clamped to the 4x4 image; every corner fell outside
        self.assertEqual(window, (slice(0, 4), slice(0, 4)))
        self.assertTrue(covered.all())

    def test_only_surviving_corners_are_skipped(self):
        # Grown box x -2..4, y 3..9 in a 10x10 image: left corners clipped away
        window, covered = highlight_mask(Region(0, 5, 2, 7), 10, 10)

        self.assertEqual(window, (slice(3, 10), slice(0, 5)))
        self.assertFalse(covered[0, 4])
        self.assertFalse(covered[6, 4])
        self.assertTrue(covered[0, 0])
        self.assertEqual(int(covered.sum()), covered.size - 2)


class TestCompositor(unittest.TestCase):
    """Test cases for Compositor"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.output_dir = Path(self.test_dir) / "diffimage"
        self.compositor = Compositor(str(self.output_dir))

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_no_regions_is_plain_side_by_side(self):
        baseline = Image.new('RGBA', (3, 2), (10, 20, 30, 255))
        candidate = Image.new('RGBA', (3, 2), (200, 100, 50, 255))

        composite = self.compositor.render(baseline, candidate, [])

        self.assertEqual(composite.size, (6, 2))
        array = np.asarray(composite)
        np.testing.assert_array_equal(array[:, :3], np.asarray(baseline))
        np.testing.assert_array_equal(array[:, 3:], np.asarray(candidate))

    def test_highlight_applied_to_both_halves(self):
        baseline = Image.new('RGBA', (4, 4), (0, 0, 0, 255))
        candidate = baseline.copy()
        candidate.putpixel((1, 1), (255, 255, 255, 255))
        candidate.putpixel((1, 2), (255, 255, 255, 255))

        composite = self.compositor.render(baseline, candidate, [(Region(1, 1, 1, 2, 2), (LayerTag.LAYOUT,))])
        array = np.asarray(composite)

        self.assertEqual(composite.size, (8, 4))
        np.testing.assert_array_equal(array[:, :4], np.full((4, 4, 4), [102, 40, 28, 255]))
        np.testing.assert_array_equal(array[0, 4:], np.full((4, 4), [102, 40, 28, 255]))
        # Changed pixels on the right started white: 255*0.6 + color*0.4
        np.testing.assert_array_equal(array[1, 5], [255, 193, 181, 255])

    def test_overlapping_tags_blend_cumulatively_in_order(self):
        baseline = Image.new('RGBA', (4, 4), (0, 0, 0, 255))

        composite = self.compositor.render(
            baseline, baseline, [(Region(1, 1, 1, 1), (LayerTag.LAYOUT, LayerTag.COLOR))]
        )

        np.testing.assert_array_equal(np.asarray(composite)[1, 1], [73, 82, 119, 255])

    def test_highlight_does_not_bleed_across_halves(self):
        baseline = Image.new('RGBA', (4, 4), (0, 0, 0, 255))
        candidate = Image.new('RGBA', (4, 4), (255, 255, 255, 255))

        composite = self.compositor.render(baseline, candidate, [(Region(3, 0, 3, 0), (LayerTag.MISC,))])
        array = np.asarray(composite)

        # Candidate column 0 is outside the clamped box of a region on the last column
        np.testing.assert_array_equal(array[0, 4], [255, 255, 255, 255])
        self.assertNotEqual(array[0, 3].tolist(), [0, 0, 0, 255])

    def test_write_creates_directory_and_png(self):
        composite = Image.new('RGBA', (8, 4), (1, 2, 3, 255))

        path = self.compositor.write(composite)

        self.assertTrue(path.exists())
        self.assertEqual(path.parent, self.output_dir)
        self.assertRegex(path.name, r'^diff-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z\.png$')
        with Image.open(path) as written:
            self.assertEqual(written.format, 'PNG')
            self.assertEqual(written.size, (8, 4))
        self.assertEqual([item.name for item in self.output_dir.iterdir()], [path.name])

    @unittest.skipUnless(os.name == 'posix', "POSIX file modes")
    def test_written_file_honours_umask(self):
        old_umask = os.umask(0o022)
        os.umask(old_umask)

        path = self.compositor.write(Image.new('RGBA', (2, 2)))

        mode = stat.S_IMODE(path.stat().st_mode)
        self.assertEqual(mode, 0o666 & ~old_umask)
        self.assertTrue(mode & stat.S_IRUSR)

    def test_write_failure_leaves_no_file(self):
        composite = Image.new('RGBA', (8, 4))

        with patch('visual_diff.compositor.os.replace', side_effect=OSError("disk full")):
            with self.assertRaises(WriteError) as ctx:
                self.compositor.write(composite)

        self.assertIn("disk full", str(ctx.exception))
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_unwritable_output_dir(self):
        blocker = Path(self.test_dir) / "not_a_dir"
        blocker.write_text("file")
        compositor = Compositor(str(blocker / "diffs"))

        with self.assertRaises(WriteError):
            compositor.write(Image.new('RGBA', (2, 2)))

    def test_consecutive_writes_get_distinct_names(self):
        composite = Image.new('RGBA', (2, 2))
        with patch('utils.path_manager.generate_filename_timestamp', return_value='2025-06-19T05-21-29-123456Z'):
            first = self.compositor.write(composite)
            second = self.compositor.write(composite)

        self.assertNotEqual(first, second)
        self.assertEqual(first.name, 'diff-2025-06-19T05-21-29-123456Z.png')
        self.assertEqual(second.name, 'diff-2025-06-19T05-21-29-123457Z.png')


if __name__ == '__main__':
    unittest.main()
