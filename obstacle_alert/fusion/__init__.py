# obstacle_alert/fusion/__init__.py
"""
Depth and segmentation fusion for nearest-obstacle alerts.
"""

from obstacle_alert.fusion.fusion_engine import (
    FusionEngine,
    FusionConfig,
    FusionResult,
    fuse,
    CLEAR_LABEL,
    NO_CLASS,
)

__all__ = ['FusionEngine', 'FusionConfig', 'FusionResult', 'fuse', 'CLEAR_LABEL', 'NO_CLASS']
