import logging
import os
from typing import Optional

import joblib

from forecasting.ensemble import WastePredictionModel

logger = logging.getLogger(__name__)


def save_model(model: WastePredictionModel, path: str) -> None:
    """Save the trained components of a forecaster"""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    joblib.dump(
        {
            "linear_model": model.linear_model,
            "network_model": model.network_model,
            "category_models": dict(model.category_models),
        },
        path,
    )
    logger.info(f"Saved waste model to {path} (categories: {model.categories})")


def load_model(path: str, model: Optional[WastePredictionModel] = None) -> Optional[WastePredictionModel]:
    """
    Load saved components into ``model`` (or a fresh forecaster)

    Returns None when nothing is saved at ``path`` or the file cannot be
    loaded. ``model`` is only modified when all components were read.
    """
    if not os.path.exists(path):
        logger.warning(f"Waste model not found at {path}")
        return None

    try:
        state = joblib.load(path)
        linear_model = state["linear_model"]
        network_model = state["network_model"]
        category_models = dict(state["category_models"])
    except Exception as e:
        logger.error(f"❌ Error loading waste model from {path}: {e}")
        return None

    model = model or WastePredictionModel()
    model.linear_model = linear_model
    model.network_model = network_model
    model.category_models = category_models

    logger.info(f"Waste model loaded from {path}")
    return model
