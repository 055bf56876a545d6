# obstacle_alert/classes/__init__.py
"""
Class id to label mapping for segmentation masks.
"""

from obstacle_alert.classes.class_table import (
    ClassTable,
    PASCAL_VOC_CLASSES,
    UNKNOWN_LABEL,
    default_class_table,
)

__all__ = ['ClassTable', 'PASCAL_VOC_CLASSES', 'UNKNOWN_LABEL', 'default_class_table']
