"""
Configuration for the waste forecasting service.

Settings are read from a YAML file (``config/config.yaml`` by default) and
merged over the built-in defaults below, so a missing file or a partial file
still yields a complete configuration.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "WASTE_FORECAST_CONFIG"
DEFAULT_CONFIG_PATH = "config/config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "data_feed": {
        "enabled": True,
        "base_url": "http://localhost:8000/api",
        "waste_path": "/waste-data/",
        "inventory_path": "/inventory/inventory/",
        "create_inventory_path": "/inventory/",
        "timeout": 10.0,
        "refresh_interval": 300.0,
    },
    "model": {
        "path": "models/saved_models/waste_model.pkl",
        "random_state": 42,
        "confidence_scale": 10.0,
        "network": {
            "hidden_units": [16, 8],
            "dropout": 0.2,
            "epochs": 150,
            "batch_size": 32,
            "learning_rate": 0.01,
            "validation_split": 0.2,
        },
        "category_network": {
            "hidden_units": [12, 6],
            "dropout": 0.0,
            "epochs": 100,
            "batch_size": 16,
            "learning_rate": 0.01,
            "validation_split": 0.2,
        },
    },
    "prediction_defaults": {"temperature": 25.0, "humidity": 60.0},
    "expiry": {"critical_days": 3, "warning_days": 7},
    "logging": {"level": "INFO"},
}


def _deep_merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict] = None) -> Dict[str, Any]:
    """Load configuration from YAML, falling back to defaults

    Args:
        config_path: Path to the YAML file. Defaults to ``$WASTE_FORECAST_CONFIG``
            or ``config/config.yaml``.
        overrides: Extra settings merged last (used by tests and scripts).

    Returns:
        dict: Complete configuration
    """
    config_path = config_path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    config = copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_path, "r") as file:
            loaded = yaml.safe_load(file) or {}
        config = _deep_merge(config, loaded)
        logger.info(f"Loaded configuration from {config_path}")
    except FileNotFoundError:
        logger.warning(f"Config file {config_path} not found. Using defaults.")

    if overrides:
        config = _deep_merge(config, overrides)

    return config
