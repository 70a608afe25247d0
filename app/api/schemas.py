from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from forecasting.domain import InventoryItem, Observation


class ObservationIn(BaseModel):
    day_of_week: int
    temperature: float
    humidity: float
    stock_level: float
    previous_day_waste: float
    category: Optional[str] = None

    def to_observation(self) -> Observation:
        return Observation(
            day_of_week=self.day_of_week,
            temperature=self.temperature,
            humidity=self.humidity,
            stock_level=self.stock_level,
            previous_day_waste=self.previous_day_waste,
            category=self.category,
        )


class TrainingBatch(BaseModel):
    samples: List[ObservationIn]
    targets: List[float]

    def to_observations(self) -> List[Observation]:
        return [sample.to_observation() for sample in self.samples]


class PredictionOut(BaseModel):
    nn_prediction: float
    mlr_prediction: float
    category_prediction: Optional[float] = None
    confidence: float
    ensemble_prediction: float


class TrainingStatus(BaseModel):
    trained: bool
    categories: List[str]


class InventoryItemIn(BaseModel):
    id: Optional[str] = None
    name: str
    quantity: float = Field(..., ge=0)
    expiry_date: date
    category: str
    cost_per_kg: float = Field(..., ge=0)


class InventoryItemOut(BaseModel):
    id: str
    name: str
    quantity: float
    expiry_date: date
    category: str
    cost_per_kg: float

    @classmethod
    def from_item(cls, item: InventoryItem) -> "InventoryItemOut":
        return cls(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            expiry_date=item.expiry_date,
            category=item.category,
            cost_per_kg=item.cost_per_kg,
        )


class WasteRecordOut(BaseModel):
    date: date
    amount: float
    category: str
    cost: float


class AddInventoryResponse(BaseModel):
    item: InventoryItemOut
    synced: bool
    predicted_waste: Optional[WasteRecordOut] = None


class CategoryRow(BaseModel):
    category: str
    quantity: float
    value: float


class ExpiryRow(BaseModel):
    status: str
    value: float


class DashboardSummary(BaseModel):
    total_inventory_value: float
    total_stock_quantity: float
    total_waste_cost: float
    at_risk_value: float
    categories: List[CategoryRow]
    expiry: List[ExpiryRow]
