# pipeline/data_sources.py

import os
import zipfile
import cv2
import numpy as np
import logging
from abc import ABC, abstractmethod
from typing import Iterator, Tuple, Optional, Dict, List

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask

logger = logging.getLogger(__name__)

FramePair = Tuple[DepthFrame, SegmentationMask, float]


class FramePairSource(ABC):
    """
    Abstract base class for sources of co-registered depth/mask pairs.

    All source implementations should inherit from this class and
    implement the required methods.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the data source.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.is_initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the data source."""
        pass

    @abstractmethod
    def get_pair(self) -> Tuple[bool, Optional[DepthFrame], Optional[SegmentationMask], Optional[float]]:
        """
        Get the next frame pair.

        Returns:
            Tuple of (success, depth, mask, timestamp)
        """
        pass

    def release(self) -> None:
        """Release resources."""
        pass

    def __iter__(self) -> Iterator[FramePair]:
        """
        Create an iterator that yields frame pairs.

        Yields:
            Tuple of (depth, mask, timestamp)
        """
        while True:
            success, depth, mask, timestamp = self.get_pair()
            if not success:
                break
            yield depth, mask, timestamp

    def __enter__(self):
        """Context manager entry."""
        if not self.is_initialized:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()


class NpzSequenceSource(FramePairSource):
    """
    Recorded sequence of ``.npz`` files, one per frame.

    Each file holds a ``depth`` array (H x W, meters), a ``mask`` array
    (h x w, class ids) and optionally a scalar ``timestamp``.
    """

    def __init__(self, path: str, config: Dict = None):
        """
        Initialize the sequence source.

        Args:
            path: Path to an .npz file or a directory of them
            config: Configuration dictionary
        """
        super().__init__(config)
        self.path = path
        self.file_paths: List[str] = []
        self.current_idx = 0

    def initialize(self) -> None:
        """Collect the frame files."""
        if os.path.isdir(self.path):
            self.file_paths = sorted(
                os.path.join(self.path, f) for f in os.listdir(self.path)
                if f.lower().endswith('.npz')
            )
            logger.info(f"Found {len(self.file_paths)} frames in directory: {self.path}")
        else:
            if not os.path.exists(self.path):
                raise FileNotFoundError(f"Sequence file not found: {self.path}")
            self.file_paths = [self.path]
            logger.info(f"Loading single frame: {self.path}")

        self.current_idx = 0
        self.is_initialized = True

    def _load(self, file_path: str) -> Optional[FramePair]:
        try:
            with np.load(file_path) as data:
                depth = DepthFrame.from_array(data['depth'])
                mask = SegmentationMask.from_array(data['mask'])
                if 'timestamp' in data.files:
                    timestamp = float(data['timestamp'])
                else:
                    timestamp = float(self.current_idx)
        except (OSError, EOFError, zipfile.BadZipFile, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load frame {file_path}: {e}")
            return None
        return depth, mask, timestamp

    def get_pair(self):
        if not self.is_initialized:
            self.initialize()

        while self.current_idx < len(self.file_paths):
            pair = self._load(self.file_paths[self.current_idx])
            self.current_idx += 1
            if pair is not None:
                depth, mask, timestamp = pair
                return True, depth, mask, timestamp

        return False, None, None, None

    def reset(self) -> None:
        """Reset to the first frame."""
        self.current_idx = 0


class DepthImageSequenceSource(FramePairSource):
    """
    Recorded sequence of PNG images.

    Depth frames are 16-bit single-channel PNGs in millimetres named
    ``<stem>_depth.png``; masks are 8-bit single-channel PNGs of class ids
    named ``<stem>_mask.png``. Stems without both files are ignored.
    """

    DEPTH_SUFFIX = "_depth.png"
    MASK_SUFFIX = "_mask.png"

    def __init__(self, path: str, config: Dict = None):
        """
        Initialize the image sequence source.

        Args:
            path: Directory holding the image pairs
            config: Configuration dictionary with keys:
                - depth_scale: Meters per depth unit (default: 0.001)
        """
        super().__init__(config)
        self.path = path
        self.depth_scale = float(self.config.get('depth_scale', 0.001))
        self.stems: List[str] = []
        self.current_idx = 0

    def initialize(self) -> None:
        """Collect the image pairs."""
        if not os.path.isdir(self.path):
            raise FileNotFoundError(f"Image sequence directory not found: {self.path}")

        files = set(os.listdir(self.path))
        stems = [f[:-len(self.DEPTH_SUFFIX)] for f in files if f.endswith(self.DEPTH_SUFFIX)]
        self.stems = sorted(s for s in stems if s + self.MASK_SUFFIX in files)
        logger.info(f"Found {len(self.stems)} depth/mask image pairs in: {self.path}")

        self.current_idx = 0
        self.is_initialized = True

    def get_pair(self):
        if not self.is_initialized:
            self.initialize()

        while self.current_idx < len(self.stems):
            stem = self.stems[self.current_idx]
            self.current_idx += 1

            depth_path = os.path.join(self.path, stem + self.DEPTH_SUFFIX)
            mask_path = os.path.join(self.path, stem + self.MASK_SUFFIX)
            raw_depth = cv2.imread(depth_path, cv2.IMREAD_ANYDEPTH)
            raw_mask = cv2.imread(mask_path, cv2.IMREAD_GRAYSCALE)

            if raw_depth is None or raw_mask is None:
                logger.warning(f"Failed to load image pair: {stem}")
                continue

            depth = DepthFrame.from_array(raw_depth.astype(np.float32) * self.depth_scale)
            mask = SegmentationMask.from_array(raw_mask)
            timestamp = os.path.getmtime(depth_path)
            return True, depth, mask, timestamp

        return False, None, None, None

    def reset(self) -> None:
        """Reset to the first pair."""
        self.current_idx = 0


class SyntheticSource(FramePairSource):
    """
    Generated scene: a flat background with one close patch.

    Useful for demos and smoke tests without recorded data.
    """

    def __init__(self, config: Dict = None):
        """
        Initialize the synthetic source.

        Args:
            config: Configuration dictionary with keys:
                - depth_size: (width, height) of the depth map (default: (300, 300))
                - mask_size: (width, height) of the mask (default: (100, 100))
                - background_distance: Meters (default: 5.0)
                - obstacle_distance: Meters (default: 1.2)
                - obstacle_center: (x, y) in depth space (default: map center)
                - obstacle_radius: Half-size of the patch in pixels (default: 0)
                - class_id: Class id painted under the obstacle (default: 15)
                - num_frames: Frames to produce (default: 1)
                - approach_speed: Meters the obstacle moves closer per frame (default: 0.0)
        """
        super().__init__(config)
        self.depth_size = tuple(self.config.get('depth_size', (300, 300)))
        self.mask_size = tuple(self.config.get('mask_size', (100, 100)))
        self.background_distance = float(self.config.get('background_distance', 5.0))
        self.obstacle_distance = float(self.config.get('obstacle_distance', 1.2))
        width, height = self.depth_size
        self.obstacle_center = tuple(self.config.get('obstacle_center', (width // 2, height // 2)))
        self.obstacle_radius = int(self.config.get('obstacle_radius', 0))
        self.class_id = int(self.config.get('class_id', 15))
        self.num_frames = int(self.config.get('num_frames', 1))
        self.approach_speed = float(self.config.get('approach_speed', 0.0))
        self.frame_idx = 0

    def initialize(self) -> None:
        self.frame_idx = 0
        self.is_initialized = True

    def make_pair(self, obstacle_distance: float) -> Tuple[DepthFrame, SegmentationMask]:
        """
        Build one depth/mask pair with the obstacle at the given distance.

        Returns:
            Tuple of (depth, mask)
        """
        depth_w, depth_h = self.depth_size
        mask_w, mask_h = self.mask_size
        cx, cy = self.obstacle_center
        r = self.obstacle_radius

        depth = np.full((depth_h, depth_w), self.background_distance, dtype=np.float32)
        depth[max(cy - r, 0):cy + r + 1, max(cx - r, 0):cx + r + 1] = obstacle_distance

        mask = np.zeros((mask_h, mask_w), dtype=np.int32)
        mx0 = (max(cx - r, 0) * mask_w) // depth_w
        my0 = (max(cy - r, 0) * mask_h) // depth_h
        mx1 = ((cx + r) * mask_w) // depth_w
        my1 = ((cy + r) * mask_h) // depth_h
        mask[my0:my1 + 1, mx0:mx1 + 1] = self.class_id

        return DepthFrame.from_array(depth), SegmentationMask.from_array(mask)

    def get_pair(self):
        if not self.is_initialized:
            self.initialize()

        if self.frame_idx >= self.num_frames:
            return False, None, None, None

        distance = max(self.obstacle_distance - self.approach_speed * self.frame_idx, 0.0)
        depth, mask = self.make_pair(distance)
        timestamp = float(self.frame_idx)
        self.frame_idx += 1
        return True, depth, mask, timestamp
