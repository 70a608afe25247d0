import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.schemas import (
    AddInventoryResponse,
    CategoryRow,
    DashboardSummary,
    ExpiryRow,
    InventoryItemIn,
    InventoryItemOut,
    ObservationIn,
    PredictionOut,
    TrainingBatch,
    TrainingStatus,
    WasteRecordOut,
)
from app.service import WasteForecastService
from forecasting.domain import InventoryItem, Observation
from forecasting.exceptions import ForecastError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> WasteForecastService:
    service = getattr(request.app.state, "forecast_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Forecast service not ready")
    return service


def _status(service: WasteForecastService) -> TrainingStatus:
    return TrainingStatus(trained=service.model.is_trained, categories=service.model.categories)


@router.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": "Food Waste Forecasting Service",
        "status": "active",
        "endpoints": {
            "api_docs": "/docs",
            "health": "/health",
            "inventory": "/inventory",
            "waste_data": "/waste-data",
            "summary": "/analytics/summary",
            "predict": "/predict",
        },
    }


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    service = getattr(request.app.state, "forecast_service", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "engine_ready": service is not None,
        "model_trained": service is not None and service.model.is_trained,
        "data_source": service.data_source if service else None,
    }


@router.get("/inventory", response_model=List[InventoryItemOut])
async def get_inventory(service: WasteForecastService = Depends(get_service)):
    return [InventoryItemOut.from_item(item) for item in service.inventory]


@router.post("/inventory", response_model=AddInventoryResponse)
async def add_inventory_item(payload: InventoryItemIn, service: WasteForecastService = Depends(get_service)):
    """Add an item; falls back to local-only state when the upstream write fails"""
    item = InventoryItem(
        id=payload.id or uuid.uuid4().hex,
        name=payload.name,
        quantity=payload.quantity,
        expiry_date=payload.expiry_date,
        category=payload.category,
        cost_per_kg=payload.cost_per_kg,
    )
    synced, predicted = await service.add_inventory_item(item)

    return AddInventoryResponse(
        item=InventoryItemOut.from_item(item),
        synced=synced,
        predicted_waste=WasteRecordOut.model_validate(predicted, from_attributes=True) if predicted else None,
    )


@router.get("/waste-data", response_model=List[WasteRecordOut])
async def get_waste_data(service: WasteForecastService = Depends(get_service)):
    return [WasteRecordOut.model_validate(record, from_attributes=True) for record in service.waste_history]


@router.post("/refresh")
async def refresh_data(service: WasteForecastService = Depends(get_service)):
    """Re-fetch waste history and inventory from the data feed"""
    await service.refresh_data()
    return {
        "data_source": service.data_source,
        "waste_records": len(service.waste_history),
        "inventory_items": len(service.inventory),
    }


@router.get("/analytics/summary", response_model=DashboardSummary)
async def get_summary(service: WasteForecastService = Depends(get_service)):
    """Inventory value, stock, waste cost, at-risk value, category and expiry rows"""
    return service.summary()


@router.get("/analytics/categories", response_model=List[CategoryRow])
async def get_category_rollup(service: WasteForecastService = Depends(get_service)):
    return service.summary()["categories"]


@router.get("/analytics/expiry", response_model=List[ExpiryRow])
async def get_expiry_buckets(service: WasteForecastService = Depends(get_service)):
    return service.summary()["expiry"]


def _predict(service: WasteForecastService, observation: Observation):
    try:
        return service.predict(observation).to_dict()
    except ForecastError:
        raise
    except Exception as e:
        logger.error(f"Error generating prediction: {e}")
        raise HTTPException(status_code=500, detail=f"Prediction failed: {str(e)}")


@router.post("/predict", response_model=PredictionOut)
def predict(observation: ObservationIn, service: WasteForecastService = Depends(get_service)):
    return _predict(service, observation.to_observation())


@router.get("/predict/next", response_model=PredictionOut)
def predict_next_day(category: Optional[str] = None, service: WasteForecastService = Depends(get_service)):
    """Predict tomorrow's waste from the current inventory and waste history"""
    return _predict(service, service.prediction_input(category=category))


@router.post("/train", response_model=TrainingStatus)
async def train(batch: TrainingBatch, service: WasteForecastService = Depends(get_service)):
    await service.train(batch.to_observations(), batch.targets)
    return _status(service)


@router.post("/update-model", response_model=TrainingStatus)
async def update_model(batch: TrainingBatch, service: WasteForecastService = Depends(get_service)):
    await service.update_model(batch.to_observations(), batch.targets)
    return _status(service)


@router.post("/category-models/{category}", response_model=TrainingStatus)
async def train_category_model(category: str, batch: TrainingBatch, service: WasteForecastService = Depends(get_service)):
    await service.train_category_model(category, batch.to_observations(), batch.targets)
    return _status(service)


@router.get("/model/status", response_model=TrainingStatus)
async def get_model_status(service: WasteForecastService = Depends(get_service)):
    return _status(service)
