"""
Path Manager for diff artifacts
Handles the output directory and timestamped composite filenames
"""

import re
import logging
import threading
from pathlib import Path
from typing import List, Optional

from utils.timestamp_utils import (generate_filename_timestamp, next_filename_timestamp,
                                   parse_filename_timestamp)

logger = logging.getLogger(__name__)


class DiffPathManager:
    """
    Manages composite image paths inside a flat output directory:

    /diffimage/
      diff-2025-06-19T05-21-29-123456Z.png
      diff-2025-06-19T05-22-03-004511Z.png
    """

    PREFIX = 'diff-'
    EXTENSION = '.png'
    FILENAME_PATTERN = re.compile(r'^diff-(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z)\.png$')

    # Shared by every manager so concurrent comparisons never pick the same name
    _reserve_lock = threading.Lock()
    _reserved = set()

    def __init__(self, output_dir: str = "diffimage"):
        """
        Initialize path manager

        Args:
            output_dir: Directory that receives composite images
        """
        self.output_dir = Path(output_dir)

    def ensure_output_dir(self) -> Path:
        """Create the output directory if it is missing"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir

    def diff_filename(self, timestamp: Optional[str] = None) -> str:
        """
        Build a composite filename

        Args:
            timestamp: Filename-safe timestamp (defaults to now)

        Returns:
            str: Filename like "diff-2025-06-19T05-21-29-123456Z.png"
        """
        if timestamp is None:
            timestamp = generate_filename_timestamp()
        return f"{self.PREFIX}{timestamp}{self.EXTENSION}"

    def reserve_diff_path(self) -> Path:
        """
        Pick a composite path that no other file or in-flight comparison uses

        Nothing is written to disk; the name stays reserved until release()
        is called for it. A taken name moves the timestamp forward one
        microsecond at a time, so file names still sort in creation order.
        """
        self.ensure_output_dir()
        with self._reserve_lock:
            timestamp = generate_filename_timestamp()
            path = self.output_dir / self.diff_filename(timestamp)
            while path.exists() or path.resolve() in self._reserved:
                timestamp = next_filename_timestamp(timestamp)
                path = self.output_dir / self.diff_filename(timestamp)
            self._reserved.add(path.resolve())
        return path

    def release(self, path: Path):
        """Forget a reservation made by reserve_diff_path"""
        with self._reserve_lock:
            self._reserved.discard(Path(path).resolve())

    def list_diffs(self) -> List[Path]:
        """
        List composite images, newest first

        Returns:
            list: Paths of files matching the diff naming convention
        """
        if not self.output_dir.exists():
            return []

        diffs = [item for item in self.output_dir.iterdir()
                 if item.is_file() and self.FILENAME_PATTERN.match(item.name)]
        diffs.sort(key=lambda item: item.name, reverse=True)
        return diffs

    def generated_at(self, path: Path):
        """Timestamp encoded in a composite filename, or None"""
        match = self.FILENAME_PATTERN.match(Path(path).name)
        if not match:
            return None
        return parse_filename_timestamp(match.group(1))

    def cleanup_diffs(self, keep_latest: int = 0) -> int:
        """
        Delete old composite images

        Args:
            keep_latest: Number of latest composites to keep (0 = delete all)

        Returns:
            int: Number of files deleted
        """
        deleted = 0
        for path in self.list_diffs()[keep_latest:]:
            path.unlink()
            deleted += 1

        if deleted:
            logger.info(f"Removed {deleted} old diff images from {self.output_dir}")
        return deleted
