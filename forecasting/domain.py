"""Records shared by the feature builder, the forecaster and the aggregations."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional

import pandas as pd


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record:
            return record[key]
    if default is not None:
        return default
    raise KeyError(f"record is missing field {keys[0]!r}")


@dataclass(frozen=True)
class Observation:
    """One feature sample used for training or prediction.

    ``day_of_week`` counts from Sunday (0) to Saturday (6).
    """

    day_of_week: int
    temperature: float
    humidity: float
    stock_level: float
    previous_day_waste: float
    category: Optional[str] = None


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    quantity: float
    expiry_date: date
    category: str
    cost_per_kg: float

    @property
    def value(self) -> float:
        return self.quantity * self.cost_per_kg

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "InventoryItem":
        """Build an item from an upstream record (camelCase or snake_case keys)."""
        return cls(
            id=str(_pick(record, "id")),
            name=str(_pick(record, "name")),
            quantity=float(_pick(record, "quantity")),
            expiry_date=_parse_date(_pick(record, "expiryDate", "expiry_date")),
            category=str(_pick(record, "category")),
            cost_per_kg=float(_pick(record, "costPerKg", "cost_per_kg")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "expiryDate": self.expiry_date.isoformat(),
            "category": self.category,
            "costPerKg": self.cost_per_kg,
        }


@dataclass(frozen=True)
class WasteRecord:
    date: date
    amount: float
    category: str
    cost: float

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "WasteRecord":
        return cls(
            date=_parse_date(_pick(record, "date")),
            amount=float(_pick(record, "amount")),
            category=str(_pick(record, "category")),
            cost=float(_pick(record, "cost", default=0.0)),
        )


@dataclass(frozen=True)
class PredictionResult:
    """Outputs of one ensemble prediction.

    Attributes:
        nn_prediction: General network estimate
        mlr_prediction: Linear regression estimate
        category_prediction: Category network estimate, when one was available
        confidence: Dispersion-based confidence score in [0, 100]
    """

    nn_prediction: float
    mlr_prediction: float
    category_prediction: Optional[float]
    confidence: float

    @property
    def ensemble_prediction(self) -> float:
        values = [self.nn_prediction, self.mlr_prediction]
        if self.category_prediction is not None:
            values.append(self.category_prediction)
        return sum(values) / len(values)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["ensemble_prediction"] = self.ensemble_prediction
        return result
