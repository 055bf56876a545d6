# tests/conftest.py

import os
import sys

import numpy as np
import pytest

# Add project root to path to resolve imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask
from obstacle_alert.fusion.fusion_engine import FusionEngine


def make_scene(depth_size=(300, 300), mask_size=(100, 100), background=5.0,
               obstacles=(), labels=()):
    """
    Build a depth/mask pair.

    Args:
        depth_size: (width, height) of the depth map
        mask_size: (width, height) of the mask
        background: Distance of every other depth pixel
        obstacles: Iterable of ((x, y), distance) in depth space
        labels: Iterable of ((x, y), class_id) in mask space
    """
    depth_w, depth_h = depth_size
    mask_w, mask_h = mask_size
    depth = np.full((depth_h, depth_w), background, dtype=np.float32)
    for (x, y), distance in obstacles:
        depth[y, x] = distance
    mask = np.zeros((mask_h, mask_w), dtype=np.int32)
    for (x, y), class_id in labels:
        mask[y, x] = class_id
    return DepthFrame.from_array(depth), SegmentationMask.from_array(mask)


@pytest.fixture
def engine():
    return FusionEngine()


@pytest.fixture
def person_scene():
    """300x300 depth with one 1.2 m pixel at (150, 150); person at mask (50, 50)."""
    return make_scene(obstacles=[((150, 150), 1.2)], labels=[((50, 50), 15)])
