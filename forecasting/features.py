"""
Feature construction for the waste forecaster

Turns observations into the fixed 5-column feature layout and derives
observations from inventory / waste history.
"""

from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

import numpy as np

from forecasting.domain import InventoryItem, Observation, WasteRecord

FEATURE_COLUMNS = [
    "day_of_week",
    "temperature",
    "humidity",
    "stock_level",
    "previous_day_waste",
]


def day_of_week(day: date) -> int:
    """Day index with Sunday as 0"""
    return day.isoweekday() % 7


def build_feature_vector(observation: Observation) -> Tuple[float, float, float, float, float]:
    """Feature tuple in FEATURE_COLUMNS order. Category is not part of it."""
    return (
        float(observation.day_of_week),
        float(observation.temperature),
        float(observation.humidity),
        float(observation.stock_level),
        float(observation.previous_day_waste),
    )


def build_feature_matrix(observations: Sequence[Observation]) -> np.ndarray:
    """Stack feature vectors into an (n, 5) float array"""
    if len(observations) == 0:
        return np.empty((0, len(FEATURE_COLUMNS)), dtype=np.float64)
    return np.array([build_feature_vector(obs) for obs in observations], dtype=np.float64)


def observations_from_waste_history(
    records: Sequence[WasteRecord],
    stock_level: float,
    temperature: float = 25.0,
    humidity: float = 60.0,
) -> Tuple[List[Observation], List[float]]:
    """
    Build a training set from waste history

    Each record becomes one observation whose target is the record's amount.
    Previous-day waste is the amount of the preceding record in date order.

    Args:
        records: Waste history, any order
        stock_level: Stock level assigned to every sample
        temperature: Ambient temperature assigned to every sample
        humidity: Relative humidity assigned to every sample

    Returns:
        tuple: (observations, targets) paired by index
    """
    ordered = sorted(records, key=lambda r: r.date)

    observations = []
    targets = []
    previous_amount = 0.0
    for record in ordered:
        observations.append(
            Observation(
                day_of_week=day_of_week(record.date),
                temperature=temperature,
                humidity=humidity,
                stock_level=stock_level,
                previous_day_waste=previous_amount,
                category=record.category,
            )
        )
        targets.append(float(record.amount))
        previous_amount = float(record.amount)

    return observations, targets


def build_prediction_input(
    inventory: Sequence[InventoryItem],
    waste_history: Sequence[WasteRecord],
    category: Optional[str] = None,
    now: Optional[datetime] = None,
    temperature: float = 25.0,
    humidity: float = 60.0,
) -> Observation:
    """Observation describing the current state, for forecasting the next day's waste"""
    now = now or datetime.now()
    previous_day_waste = float(waste_history[-1].amount) if waste_history else 0.0

    return Observation(
        day_of_week=day_of_week(now.date() if isinstance(now, datetime) else now),
        temperature=temperature,
        humidity=humidity,
        stock_level=float(sum(item.quantity for item in inventory)),
        previous_day_waste=previous_day_waste,
        category=category,
    )
