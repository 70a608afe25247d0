from .domain import InventoryItem, Observation, PredictionResult, WasteRecord
from .ensemble import WastePredictionModel, variance_confidence
from .exceptions import ForecastError, NotTrainedError, TrainingFailure, ValidationError

__version__ = "1.0.0"

__all__ = [
    "InventoryItem",
    "Observation",
    "PredictionResult",
    "WasteRecord",
    "WastePredictionModel",
    "variance_confidence",
    "ForecastError",
    "NotTrainedError",
    "TrainingFailure",
    "ValidationError",
]
