"""Errors raised by the forecasting core."""


class ForecastError(Exception):
    """Base class for recoverable forecasting errors."""


class ValidationError(ForecastError, ValueError):
    """Raised when training inputs have the wrong shape or content."""


class NotTrainedError(ForecastError, RuntimeError):
    """Raised when predicting with a forecaster that has not been trained."""


class TrainingFailure(ForecastError):
    """Raised when a fit diverges or the underlying estimator fails."""
