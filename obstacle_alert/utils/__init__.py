# obstacle_alert/utils/__init__.py
"""
Utility functions for configuration and visualization.
"""

from obstacle_alert.utils.config import load_config, setup_logging
from obstacle_alert.utils.visualization import FusionVisualizer

__all__ = ['load_config', 'setup_logging', 'FusionVisualizer']
