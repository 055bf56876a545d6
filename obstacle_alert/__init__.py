# obstacle_alert/__init__.py
"""
Obstacle alerting by fusing a depth map with a semantic segmentation mask.
"""

from obstacle_alert.frames import DepthFrame, SegmentationMask, InvalidInput
from obstacle_alert.classes import ClassTable, PASCAL_VOC_CLASSES
from obstacle_alert.fusion import FusionEngine, FusionConfig, FusionResult, fuse

__version__ = "0.1.0"

__all__ = [
    'DepthFrame', 'SegmentationMask', 'InvalidInput',
    'ClassTable', 'PASCAL_VOC_CLASSES',
    'FusionEngine', 'FusionConfig', 'FusionResult', 'fuse',
]
