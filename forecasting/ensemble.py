"""
Ensemble waste forecaster

Combines a linear regression, a general feed-forward network and optional
per-category networks. Predictions are averaged and a confidence score is
derived from how much the estimators disagree.
"""

import asyncio
import logging
import math
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from forecasting.domain import Observation, PredictionResult
from forecasting.estimators import LinearWasteRegressor, NetworkRegressor
from forecasting.exceptions import NotTrainedError, TrainingFailure, ValidationError
from forecasting.features import build_feature_matrix, build_feature_vector

logger = logging.getLogger(__name__)

ConfidenceReducer = Callable[[Sequence[float]], float]


def variance_confidence(predictions: Sequence[float], scale: float = 10.0) -> float:
    """
    Confidence from the spread of the estimates

    ``max(0, 100 - variance * scale)`` where variance is the population
    variance around the mean. Agreement between estimators reads as high
    confidence; this is a heuristic score, not a prediction interval.
    """
    values = np.asarray(predictions, dtype=np.float64)
    if np.all(values == values[0]):
        return 100.0

    variance = float(np.mean((values - values.mean()) ** 2))
    return max(0.0, 100.0 - variance * scale)


class WastePredictionModel:
    """
    Ensemble forecaster for daily food waste

    Untrained until ``train`` (or ``update_model``) succeeds. Training runs in a
    worker thread so callers on an event loop are not blocked; calls on one
    instance must not overlap.

    Args:
        linear_factory: Builds the linear component
        network_factory: Builds the general network component
        category_factory: Builds a per-category network component
        confidence_reducer: Maps the list of available predictions to a score
    """

    def __init__(
        self,
        linear_factory: Optional[Callable[[], Any]] = None,
        network_factory: Optional[Callable[[], Any]] = None,
        category_factory: Optional[Callable[[], Any]] = None,
        confidence_reducer: Optional[ConfidenceReducer] = None,
    ):
        self.linear_factory = linear_factory or LinearWasteRegressor
        self.network_factory = network_factory or NetworkRegressor
        self.category_factory = category_factory or partial(
            NetworkRegressor, hidden_units=(12, 6), dropout=0.0, epochs=100, batch_size=16
        )
        self.confidence_reducer = confidence_reducer or variance_confidence

        self.linear_model = None
        self.network_model = None
        self.category_models: Dict[str, Any] = {}

    @classmethod
    def from_config(cls, model_config: Dict) -> "WastePredictionModel":
        """Build a forecaster from the ``model`` section of the configuration"""
        random_state = model_config.get("random_state")
        network = dict(model_config["network"])
        category_network = dict(model_config["category_network"])

        return cls(
            network_factory=partial(NetworkRegressor, random_state=random_state, **network),
            category_factory=partial(NetworkRegressor, random_state=random_state, **category_network),
            confidence_reducer=partial(variance_confidence, scale=model_config["confidence_scale"]),
        )

    @property
    def is_trained(self) -> bool:
        return self.linear_model is not None and self.network_model is not None

    @property
    def categories(self) -> List[str]:
        return list(self.category_models)

    @staticmethod
    def _prepare_batch(samples: Sequence[Observation], targets: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """Validate a training batch and convert it to arrays"""
        if len(samples) == 0 or len(targets) == 0:
            raise ValidationError("Training batch must not be empty")
        if len(samples) != len(targets):
            raise ValidationError(f"Got {len(samples)} samples but {len(targets)} targets")

        for i, sample in enumerate(samples):
            if not isinstance(sample, Observation):
                raise ValidationError(f"Sample {i} is {type(sample).__name__}, expected Observation")

        try:
            y = np.array([float(t) for t in targets], dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Targets must be numeric: {e}") from e
        if not np.all(np.isfinite(y)):
            raise ValidationError("Targets must be finite")

        return build_feature_matrix(samples), y

    def _fit(self, factory: Callable[[], Any], X: np.ndarray, y: np.ndarray):
        try:
            return factory().fit(X, y)
        except TrainingFailure:
            raise
        except (ValueError, RuntimeError) as e:
            raise TrainingFailure(f"Model fit failed: {e}") from e

    def _fit_general(self, X: np.ndarray, y: np.ndarray):
        return self._fit(self.linear_factory, X, y), self._fit(self.network_factory, X, y)

    async def train(self, samples: Sequence[Observation], targets: Sequence[float]) -> None:
        """Fit the linear and network components from scratch"""
        X, y = self._prepare_batch(samples, targets)

        logger.info(f"Training general models on {len(y)} samples...")
        linear_model, network_model = await asyncio.to_thread(self._fit_general, X, y)

        self.linear_model = linear_model
        self.network_model = network_model
        logger.info("General models trained")

    async def train_category_model(
        self, category: str, samples: Sequence[Observation], targets: Sequence[float]
    ) -> None:
        """Fit a category network and store it under ``category``, replacing any previous one"""
        if not category:
            raise ValidationError("Category name must not be empty")
        X, y = self._prepare_batch(samples, targets)

        logger.info(f"Training category model '{category}' on {len(y)} samples...")
        model = await asyncio.to_thread(self._fit, self.category_factory, X, y)
        self.category_models[category] = model

    async def update_model(self, samples: Sequence[Observation], targets: Sequence[float]) -> None:
        """
        Retrain on a new batch

        The general components are refit on this batch alone. Each category in
        the batch then gets its component refit from its own samples; other
        categories keep theirs. Uncategorised samples only feed the general fit.
        """
        self._prepare_batch(samples, targets)
        await self.train(samples, targets)

        indices_by_category: Dict[str, List[int]] = {}
        for index, sample in enumerate(samples):
            if sample.category:
                indices_by_category.setdefault(sample.category, []).append(index)

        for category, indices in indices_by_category.items():
            await self.train_category_model(
                category,
                [samples[i] for i in indices],
                [targets[i] for i in indices],
            )

    def predict(self, observation: Observation) -> PredictionResult:
        if not self.is_trained:
            raise NotTrainedError("Model not trained")

        features = np.array([build_feature_vector(observation)], dtype=np.float64)

        nn_result = float(self.network_model.predict(features)[0])
        mlr_result = float(self.linear_model.predict(features)[0])

        category_result = None
        category_model = self.category_models.get(observation.category) if observation.category else None
        if category_model is not None:
            category_result = float(category_model.predict(features)[0])

        predictions = [nn_result, mlr_result]
        if category_result is not None:
            predictions.append(category_result)

        confidence = float(self.confidence_reducer(predictions))
        if math.isnan(confidence):
            confidence = 0.0

        return PredictionResult(
            nn_prediction=nn_result,
            mlr_prediction=mlr_result,
            category_prediction=category_result,
            confidence=min(100.0, max(0.0, confidence)),
        )
