# obstacle_alert/utils/config.py

import os
import copy
import logging
from typing import Any, Dict, Optional

import yaml

from obstacle_alert.classes.class_table import ClassTable
from obstacle_alert.fusion.fusion_engine import FusionConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

DEFAULT_CONFIG = {
    'fusion': {
        'roi_fraction': ["1/3", "2/3"],
        'min_valid_distance': 0.1,
        'danger_threshold': 2.0,
    },
    'pipeline': {
        'process_interval': 10,
        'alert_cooldown': 2.0,
    },
    'classes': {},
    'logging': {
        'level': 'INFO',
    },
}

# fusion keys are checked by FusionConfig.from_dict
SECTION_KEYS = {
    'pipeline': {'process_interval', 'alert_cooldown'},
    'classes': {'labels', 'mapping'},
    'logging': {'level'},
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file, filling in defaults.

    Args:
        config_path: Path to a YAML file, or None for defaults only

    Returns:
        Configuration dictionary with every known section present
    """
    loaded = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")
        logger.info(f"Loaded configuration from {config_path}")

    unknown = set(loaded) - set(DEFAULT_CONFIG)
    if unknown:
        logger.warning(f"Ignoring unknown config sections: {sorted(unknown)}")

    config = {}
    for section, defaults in DEFAULT_CONFIG.items():
        values = loaded.get(section) or {}
        if not isinstance(values, dict):
            raise ValueError(f"Config section '{section}' must be a mapping, got {values!r}")
        known = SECTION_KEYS.get(section)
        if known is not None:
            unknown = set(values) - known
            if unknown:
                logger.warning(f"Ignoring unknown {section} options: {sorted(unknown)}")
        config[section] = {**copy.deepcopy(defaults), **values}
    return config


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """Write a configuration dictionary to a YAML file."""
    with open(config_path, "w") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)


def fusion_config_from(config: Dict[str, Any]) -> FusionConfig:
    """Build a FusionConfig from the ``fusion`` section."""
    return FusionConfig.from_dict(config.get('fusion'))


def class_table_from(config: Dict[str, Any]) -> ClassTable:
    """Build a ClassTable from the ``classes`` section."""
    return ClassTable.from_config(config.get('classes'))


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()]
    )
