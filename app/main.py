# app/main.py
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import router
from app.service import WasteForecastService
from forecasting.config import load_config
from forecasting.data_sources import DataFeedClient
from forecasting.exceptions import NotTrainedError, TrainingFailure, ValidationError

logger = logging.getLogger(__name__)


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def not_trained_handler(request: Request, exc: NotTrainedError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "hint": "Train the model first"})


async def training_failure_handler(request: Request, exc: TrainingFailure):
    logger.error(f"❌ Training failed: {exc}")
    return JSONResponse(status_code=500, content={"detail": f"Training failed: {exc}"})


async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=404,
        content={
            "detail": "Endpoint not found",
            "available_endpoints": ["/", "/health", "/inventory", "/waste-data", "/analytics/summary", "/predict", "/docs"],
        },
    )


def create_app(config: Optional[Dict] = None, feed_client: Optional[DataFeedClient] = None) -> FastAPI:
    """Build the API around one WasteForecastService"""
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application startup and shutdown events"""
        logger.info("🔄 Initializing Waste Forecast Service...")
        service = WasteForecastService(config, feed_client)
        await service.initialize()
        app.state.forecast_service = service

        refresh_task = None
        refresh_interval = config["data_feed"].get("refresh_interval", 0)
        if refresh_interval and refresh_interval > 0:
            refresh_task = asyncio.create_task(service.refresh_periodically(refresh_interval))

        logger.info("✅ Waste Forecast Service initialized successfully")
        yield
        logger.info("🔴 Shutting down Waste Forecast Service...")
        if refresh_task is not None:
            refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await refresh_task
        app.state.forecast_service = None

    app = FastAPI(
        title="Food Waste Forecasting",
        description="Inventory valuation, expiry risk and ensemble waste prediction",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotTrainedError, not_trained_handler)
    app.add_exception_handler(TrainingFailure, training_failure_handler)
    app.add_exception_handler(404, not_found_handler)

    app.include_router(router)
    return app


settings = load_config()
logging.basicConfig(level=settings["logging"]["level"])

app = create_app(settings)


if __name__ == "__main__":
    logger.info("🚀 Starting Food Waste Forecasting API...")
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
