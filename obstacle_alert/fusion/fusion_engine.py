# obstacle_alert/fusion/fusion_engine.py

import math
import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask, InvalidInput
from obstacle_alert.classes.class_table import ClassTable, default_class_table

logger = logging.getLogger(__name__)

CLEAR_LABEL = "clear"
NO_CLASS = -1

Point = Tuple[int, int]


def _to_fraction(value: Any) -> Fraction:
    """Parse a ROI bound given as a Fraction, a number or a string like "1/3"."""
    if isinstance(value, Fraction):
        return value
    if isinstance(value, str):
        return Fraction(value.strip())
    # 0.3333 in a config file means one third
    return Fraction(value).limit_denominator(1000)


@dataclass(frozen=True)
class FusionConfig:
    """
    Tunable parameters of the fusion engine.

    The defaults are empirical values from the handheld prototype, not sensor
    calibration.

    Attributes:
        roi_fraction: (start, end) fraction of each axis scanned for obstacles
        min_valid_distance: Distances at or below this are sensor noise (meters)
        danger_threshold: Distances strictly below this raise an alert (meters)
    """

    roi_fraction: Tuple[Fraction, Fraction] = (Fraction(1, 3), Fraction(2, 3))
    min_valid_distance: float = 0.1
    danger_threshold: float = 2.0

    def __post_init__(self):
        if len(self.roi_fraction) != 2:
            raise ValueError(f"roi_fraction needs (start, end), got {self.roi_fraction!r}")
        start, end = (_to_fraction(v) for v in self.roi_fraction)
        if not 0 <= start <= end <= 1:
            raise ValueError(f"roi_fraction must satisfy 0 <= start <= end <= 1, got {start}, {end}")
        object.__setattr__(self, 'roi_fraction', (start, end))

        object.__setattr__(self, 'min_valid_distance', float(self.min_valid_distance))
        object.__setattr__(self, 'danger_threshold', float(self.danger_threshold))
        for name in ('min_valid_distance', 'danger_threshold'):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")
        if self.min_valid_distance < 0:
            raise ValueError(f"min_valid_distance must be >= 0, got {self.min_valid_distance}")
        if self.danger_threshold <= self.min_valid_distance:
            raise ValueError(
                f"danger_threshold ({self.danger_threshold}) must exceed "
                f"min_valid_distance ({self.min_valid_distance})")

    @classmethod
    def from_dict(cls, config: Optional[Dict]) -> 'FusionConfig':
        """
        Build a config from a dictionary, ignoring unknown keys.

        Args:
            config: Dictionary with any of the attribute names as keys

        Returns:
            FusionConfig with defaults for missing keys
        """
        config = dict(config or {})
        known = {'roi_fraction', 'min_valid_distance', 'danger_threshold'}
        unknown = set(config) - known
        if unknown:
            logger.warning(f"Ignoring unknown fusion options: {sorted(unknown)}")
        kwargs = {key: config[key] for key in known if key in config}
        if 'roi_fraction' in kwargs:
            kwargs['roi_fraction'] = tuple(kwargs['roi_fraction'])
        return cls(**kwargs)


@dataclass(frozen=True)
class FusionResult:
    """
    Outcome of fusing one depth/mask pair.

    ``depth_point`` is the (x, y) pixel of the nearest obstacle in depth space,
    ``mask_point`` the (x, y) cell it was classified at. ``mask_point`` is only
    set when the mask was consulted.
    """

    distance_meters: float
    class_id: int
    label: str
    danger: bool
    depth_point: Optional[Point] = field(default=None)
    mask_point: Optional[Point] = field(default=None)

    @property
    def obstacle_found(self) -> bool:
        """Whether any valid depth sample was found in the region of interest."""
        return math.isfinite(self.distance_meters)

    @classmethod
    def no_obstacle(cls) -> 'FusionResult':
        return cls(math.inf, NO_CLASS, CLEAR_LABEL, False)


def _axis_bounds(size: int, start: Fraction, end: Fraction) -> Tuple[int, int]:
    return (size * start.numerator) // start.denominator, (size * end.numerator) // end.denominator


def _scale_index(index: int, source_size: int, target_size: int) -> int:
    # floor(index / source_size * target_size) in exact integer arithmetic
    scaled = (index * target_size) // source_size
    return min(max(scaled, 0), target_size - 1)


class FusionEngine:
    """
    Finds the nearest obstacle in a depth map and names it using a
    segmentation mask of the same camera frame.

    The engine works in three stages:
        1. Search: nearest valid depth sample inside the region of interest
        2. Remap: scale that pixel into the mask's resolution
        3. Classify: read the class id there and resolve its label

    The mask is only consulted when the nearest obstacle is closer than the
    danger threshold. ``fuse`` keeps no state between calls and can run
    concurrently from several threads.
    """

    def __init__(self,
                 config: Union[Dict, FusionConfig, None] = None,
                 class_table: Optional[ClassTable] = None):
        """
        Initialize the fusion engine.

        Args:
            config: FusionConfig or dictionary of its fields
            class_table: Labels for mask class ids (default: PASCAL VOC)
        """
        if isinstance(config, FusionConfig):
            self.config = config
        else:
            self.config = FusionConfig.from_dict(config)
        self.class_table = class_table or default_class_table()

    def region_of_interest(self, width: int, height: int) -> Tuple[int, int, int, int]:
        """
        Compute the scanned sub-rectangle of a depth map.

        Args:
            width: Depth map width
            height: Depth map height

        Returns:
            (x0, y0, x1, y1) with half-open bounds; may be empty
        """
        start, end = self.config.roi_fraction
        x0, x1 = _axis_bounds(width, start, end)
        y0, y1 = _axis_bounds(height, start, end)
        return x0, y0, x1, y1

    def find_nearest(self, depth: DepthFrame) -> Optional[Tuple[float, Point]]:
        """
        Find the nearest valid depth sample in the region of interest.

        Samples that are non-finite or at most ``min_valid_distance`` are
        skipped. Ties resolve to the first sample in row-major order.

        Args:
            depth: Depth map

        Returns:
            (distance, (x, y)) in depth coordinates, or None if nothing qualifies
        """
        x0, y0, x1, y1 = self.region_of_interest(depth.width, depth.height)
        if x1 <= x0 or y1 <= y0:
            return None

        roi = depth.as_array()[y0:y1, x0:x1]
        # Compare at buffer precision so a stored 0.1 counts as 0.1
        min_valid = roi.dtype.type(self.config.min_valid_distance)
        with np.errstate(invalid='ignore'):
            valid = np.isfinite(roi) & (roi > min_valid)
        if not valid.any():
            return None

        candidates = np.where(valid, roi, np.inf)
        # argmin returns the first minimum in row-major order
        flat_index = int(np.argmin(candidates))
        row, col = divmod(flat_index, roi.shape[1])
        return float(roi[row, col]), (x0 + col, y0 + row)

    @staticmethod
    def remap_point(point: Point, depth_size: Tuple[int, int], mask_size: Tuple[int, int]) -> Point:
        """
        Scale a depth pixel into mask coordinates, clamped to the mask.

        Args:
            point: (x, y) in depth space
            depth_size: (width, height) of the depth map
            mask_size: (width, height) of the mask

        Returns:
            (x, y) in mask space
        """
        x_d, y_d = point
        depth_width, depth_height = depth_size
        mask_width, mask_height = mask_size
        return (_scale_index(x_d, depth_width, mask_width),
                _scale_index(y_d, depth_height, mask_height))

    def classify(self,
                 mask: SegmentationMask,
                 point: Point,
                 class_table: Optional[ClassTable] = None) -> Tuple[int, str]:
        """
        Read the class id at a mask cell and resolve its label.

        Args:
            mask: Segmentation mask
            point: (x, y) in mask space
            class_table: Labels to use (default: the engine's table)

        Returns:
            (class_id, label)
        """
        table = class_table or self.class_table
        class_id = mask.class_at(*point)
        return class_id, table.lookup(class_id)

    def fuse(self,
             depth: DepthFrame,
             mask: SegmentationMask,
             class_table: Optional[ClassTable] = None) -> FusionResult:
        """
        Fuse a depth map and a segmentation mask into an alert decision.

        Args:
            depth: Depth map of the frame
            mask: Segmentation mask of the same frame, any resolution
            class_table: Labels to use (default: the engine's table)

        Returns:
            FusionResult

        Raises:
            InvalidInput: If either buffer does not match its dimensions
        """
        if not isinstance(depth, DepthFrame):
            raise InvalidInput(f"Expected DepthFrame, got {type(depth).__name__}")
        if not isinstance(mask, SegmentationMask):
            raise InvalidInput(f"Expected SegmentationMask, got {type(mask).__name__}")
        depth.validate()
        mask.validate()

        nearest = self.find_nearest(depth)
        if nearest is None:
            logger.debug("No valid depth in region of interest")
            return FusionResult.no_obstacle()

        distance, depth_point = nearest
        if np.float32(distance) >= np.float32(self.config.danger_threshold):
            logger.debug(f"Nearest obstacle at {distance:.2f} m, beyond threshold")
            return FusionResult(distance, NO_CLASS, CLEAR_LABEL, False, depth_point=depth_point)

        mask_point = self.remap_point(depth_point,
                                      (depth.width, depth.height),
                                      (mask.width, mask.height))
        class_id, label = self.classify(mask, mask_point, class_table)

        logger.debug(f"Obstacle '{label}' (class {class_id}) at {distance:.2f} m, "
                     f"depth {depth_point} -> mask {mask_point}")

        return FusionResult(distance, class_id, label, True,
                            depth_point=depth_point, mask_point=mask_point)


def fuse(depth: DepthFrame,
         mask: SegmentationMask,
         class_table: Optional[ClassTable] = None,
         config: Union[Dict, FusionConfig, None] = None) -> FusionResult:
    """
    Fuse one depth/mask pair with a throwaway engine.

    Args:
        depth: Depth map
        mask: Segmentation mask of the same frame
        class_table: Labels for mask class ids (default: PASCAL VOC)
        config: FusionConfig or dictionary of its fields

    Returns:
        FusionResult
    """
    return FusionEngine(config, class_table).fuse(depth, mask)
