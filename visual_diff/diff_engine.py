"""
Visual Diff Engine for UI Regression Testing
Compares a baseline and a candidate screenshot and writes an annotated
side-by-side composite with metrics
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Any

import numpy as np
from PIL import Image

from .classifier import LayerClassifier, get_classifier
from .compositor import Compositor
from .config import DiffConfig
from .layers import LayerTag
from .mask import DiffMask, build_diff_mask
from .normalizer import ImageSource, load_image, normalize_images
from .regions import Region, extract_regions
from utils.timestamp_utils import utc_now


class ComparisonStage(Enum):
    """Lifecycle of one comparison call"""

    IDLE = 'idle'
    NORMALIZING = 'normalizing'
    MASK_BUILDING = 'mask_building'
    EXTRACTING = 'extracting'
    CLASSIFYING = 'classifying'
    COMPOSITING = 'compositing'
    WRITTEN = 'written'
    FAILED = 'failed'


@dataclass(frozen=True)
class ClassifiedRegion:
    """A diff region together with the layers it was tagged with"""

    region: Region
    tags: Tuple[LayerTag, ...]

    def to_dict(self) -> Dict[str, Any]:
        data = self.region.to_dict()
        data['tags'] = [tag.label for tag in self.tags]
        return data


@dataclass(frozen=True)
class DiffResult:
    """Outcome of one comparison"""

    output_path: Path
    width: int
    height: int
    resized: bool
    diff_pixels_changed: int
    diff_mismatch_pct: float
    regions: Tuple[ClassifiedRegion, ...]
    largest_region_area: int
    status: str
    generated_at: datetime = field(default_factory=utc_now)

    @property
    def passed(self) -> bool:
        return self.status == 'passed'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'output_path': str(self.output_path),
            'width': self.width,
            'height': self.height,
            'resized': self.resized,
            'diff_pixels_changed': self.diff_pixels_changed,
            'diff_mismatch_pct': self.diff_mismatch_pct,
            'diff_regions': [item.to_dict() for item in self.regions],
            'largest_region_area': self.largest_region_area,
            'status': self.status,
            'generated_at': self.generated_at.isoformat(),
        }


class VisualDiffEngine:
    """Main visual diff engine for comparing screenshots"""

    def __init__(self, config: Optional[DiffConfig] = None,
                 classifier: Optional[LayerClassifier] = None):
        """
        Initialize the diff engine

        Args:
            config: Configuration object, uses defaults if None
            classifier: Layer classifier, resolved from config.classifier if None
        """
        self.config = (config or DiffConfig()).validate()
        self.classifier = classifier or get_classifier(self.config.classifier, self.config.max_tags)
        self.logger = logging.getLogger(__name__)

    def compute_diff_mask(self, baseline: Image.Image, candidate: Image.Image) -> DiffMask:
        return build_diff_mask(baseline, candidate, self.config.tolerance, self.config.compare_mode)

    def extract_regions(self, mask: DiffMask) -> List[Region]:
        return extract_regions(mask, self.config.min_region_pixels)

    def classify_regions(self, baseline: Image.Image, candidate: Image.Image,
                         regions: List[Region]) -> Tuple[ClassifiedRegion, ...]:
        """
        Tag every region with the configured classifier

        Args:
            baseline: Normalized baseline image
            candidate: Normalized candidate image
            regions: Regions in discovery order

        Returns:
            Classified regions in the same order
        """
        if not regions:
            return ()

        baseline_rgb = np.asarray(baseline.convert('RGB'))
        candidate_rgb = np.asarray(candidate.convert('RGB'))
        return tuple(
            ClassifiedRegion(region, self.classifier.classify(region, baseline_rgb, candidate_rgb))
            for region in regions
        )

    def calculate_metrics(self, mask: DiffMask, regions: Tuple[ClassifiedRegion, ...]) -> Dict:
        """
        Calculate diff metrics from mask and regions

        Args:
            mask: Binary difference mask
            regions: Classified regions

        Returns:
            Dictionary with metrics
        """
        total_pixels = mask.width * mask.height
        changed_pixels = mask.count()

        mismatch_pct = round((changed_pixels / total_pixels) * 100, 3) if total_pixels > 0 else 0.0

        largest_area = max((item.region.area for item in regions), default=0)
        status = 'failed' if mismatch_pct >= self.config.fail_threshold_pct else 'passed'

        return {
            'diff_pixels_changed': changed_pixels,
            'diff_mismatch_pct': float(mismatch_pct),
            'largest_region_area': largest_area,
            'status': status,
        }

    def compare(self, baseline: ImageSource, candidate: ImageSource,
                output_dir: Optional[str] = None,
                progress: Optional[Callable[[ComparisonStage], None]] = None) -> DiffResult:
        """
        Run the full comparison pipeline

        Args:
            baseline: Baseline image (path, bytes, file object or PIL image)
            candidate: Candidate image (path, bytes, file object or PIL image)
            output_dir: Directory for the composite, config.output_dir if None
            progress: Optional callback invoked with each stage as it is entered

        Returns:
            DiffResult describing the written composite

        Raises:
            ImageLoadError: if either source cannot be decoded
            EmptyImageError: if a normalized dimension is zero
            WriteError: if the composite cannot be persisted
        """
        output_dir = output_dir or self.config.output_dir
        stage = ComparisonStage.IDLE

        def enter(next_stage: ComparisonStage) -> ComparisonStage:
            if progress is not None:
                progress(next_stage)
            return next_stage

        try:
            stage = enter(ComparisonStage.NORMALIZING)
            baseline_img = load_image(baseline)
            candidate_img = load_image(candidate)
            baseline_img, candidate_img, resized = normalize_images(baseline_img, candidate_img)
            width, height = baseline_img.size
            self.logger.debug(f"Comparing at {width}x{height} (resized={resized})")

            stage = enter(ComparisonStage.MASK_BUILDING)
            mask = self.compute_diff_mask(baseline_img, candidate_img)

            stage = enter(ComparisonStage.EXTRACTING)
            regions = self.extract_regions(mask)

            stage = enter(ComparisonStage.CLASSIFYING)
            classified = self.classify_regions(baseline_img, candidate_img, regions)

            stage = enter(ComparisonStage.COMPOSITING)
            metrics = self.calculate_metrics(mask, classified)
            compositor = Compositor(output_dir)
            output_path = compositor.compose(
                baseline_img, candidate_img, [(item.region, item.tags) for item in classified]
            )

            stage = enter(ComparisonStage.WRITTEN)
        except Exception as e:
            self.logger.error(f"Diff failed during {stage.value}: {str(e)}")
            enter(ComparisonStage.FAILED)
            raise

        self.logger.info(f"Successfully generated diff {output_path.name} "
                         f"({metrics['diff_mismatch_pct']}% changed, {len(classified)} regions)")

        return DiffResult(
            output_path=output_path,
            width=width,
            height=height,
            resized=resized,
            diff_pixels_changed=metrics['diff_pixels_changed'],
            diff_mismatch_pct=metrics['diff_mismatch_pct'],
            regions=classified,
            largest_region_area=metrics['largest_region_area'],
            status=metrics['status'],
        )
