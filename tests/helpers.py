from datetime import date

import numpy as np

from forecasting.domain import InventoryItem, Observation
from forecasting.exceptions import TrainingFailure


class ConstantRegressor:
    """Stand-in estimator that always predicts the same value and records its fits"""

    def __init__(self, value: float = 1.0):
        self.value = value
        self.fitted_targets = None

    def fit(self, X, y):
        self.fitted_targets = list(y)
        return self

    def predict(self, X):
        return np.full(len(X), self.value, dtype=np.float64)


class ExplodingRegressor:
    def fit(self, X, y):
        raise AssertionError("fit should not be reached")


def make_observation(day_of_week=1, temperature=25.0, humidity=60.0, stock_level=205.0, previous_day_waste=150.0, category=None):
    return Observation(
        day_of_week=day_of_week,
        temperature=temperature,
        humidity=humidity,
        stock_level=stock_level,
        previous_day_waste=previous_day_waste,
        category=category,
    )


def make_item(item_id="1", quantity=10.0, cost_per_kg=50.0, expiry_date=date(2024, 3, 20), category="Produce"):
    return InventoryItem(
        id=item_id,
        name=f"Item {item_id}",
        quantity=quantity,
        expiry_date=expiry_date,
        category=category,
        cost_per_kg=cost_per_kg,
    )


class DivergingRegressor:
    def fit(self, X, y):
        raise TrainingFailure("diverged")
