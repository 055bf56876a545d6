# obstacle_alert/frames/__init__.py
"""
Buffer containers for depth maps and segmentation masks.
"""

from obstacle_alert.frames.frame_types import DepthFrame, SegmentationMask, InvalidInput

__all__ = ['DepthFrame', 'SegmentationMask', 'InvalidInput']
