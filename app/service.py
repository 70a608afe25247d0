import asyncio
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from forecasting.aggregation import dashboard_summary
from forecasting.data_sources import FEED_ERRORS, DataFeedClient
from forecasting.domain import InventoryItem, Observation, PredictionResult, WasteRecord
from forecasting.ensemble import WastePredictionModel
from forecasting.exceptions import ForecastError
from forecasting.features import build_prediction_input, observations_from_waste_history
from forecasting.model_store import load_model

logger = logging.getLogger(__name__)


class WasteForecastService:
    """Holds one forecaster plus the current inventory and waste snapshot"""

    def __init__(self, config: Dict, feed_client: Optional[DataFeedClient] = None):
        self.config = config
        self.feed = feed_client or DataFeedClient(config["data_feed"])
        self.model = WastePredictionModel.from_config(config["model"])

        self.inventory: List[InventoryItem] = []
        self.waste_history: List[WasteRecord] = []
        self.data_source: Optional[str] = None

        self._training_lock = asyncio.Lock()

    async def initialize(self):
        """Load data, then load the saved model or train one from the waste history"""
        await self.refresh_data()

        model_path = self.config["model"].get("path")
        if model_path and load_model(model_path, self.model) is not None:
            logger.info("✅ Saved waste model loaded")
            return

        await self.train_from_history()

    async def refresh_data(self):
        self.waste_history, self.inventory, self.data_source = await self.feed.load_dashboard_data()
        logger.info(
            f"✅ Data loaded ({self.data_source}): {len(self.waste_history)} waste records, "
            f"{len(self.inventory)} inventory items"
        )

    async def refresh_periodically(self, interval: float):
        """Re-fetch the data snapshot every ``interval`` seconds until cancelled"""
        while True:
            await asyncio.sleep(interval)
            await self.refresh_data()

    def training_set(self) -> Tuple[List[Observation], List[float]]:
        defaults = self.config["prediction_defaults"]
        stock_level = sum(item.quantity for item in self.inventory)
        return observations_from_waste_history(
            self.waste_history,
            stock_level=stock_level,
            temperature=defaults["temperature"],
            humidity=defaults["humidity"],
        )

    async def train_from_history(self):
        if not self.waste_history:
            logger.warning("⚠️ No waste history available, model left untrained")
            return

        observations, targets = self.training_set()
        try:
            await self.update_model(observations, targets)
            logger.info(f"✅ Waste model trained on {len(targets)} records (categories: {self.model.categories})")
        except ForecastError as e:
            logger.error(f"❌ Error training waste model: {e}")

    async def train(self, samples: Sequence[Observation], targets: Sequence[float]):
        async with self._training_lock:
            await self.model.train(samples, targets)

    async def update_model(self, samples: Sequence[Observation], targets: Sequence[float]):
        async with self._training_lock:
            await self.model.update_model(samples, targets)

    async def train_category_model(self, category: str, samples: Sequence[Observation], targets: Sequence[float]):
        async with self._training_lock:
            await self.model.train_category_model(category, samples, targets)

    def prediction_input(self, category: Optional[str] = None, now: Optional[datetime] = None) -> Observation:
        defaults = self.config["prediction_defaults"]
        return build_prediction_input(
            self.inventory,
            self.waste_history,
            category=category,
            now=now,
            temperature=defaults["temperature"],
            humidity=defaults["humidity"],
        )

    def predict(self, observation: Observation) -> PredictionResult:
        return self.model.predict(observation)

    async def add_inventory_item(self, item: InventoryItem) -> Tuple[bool, Optional[WasteRecord]]:
        """
        Add an item upstream, or locally if the write fails

        When the model is trained, tomorrow's waste for the item's category is
        predicted and appended to the waste history.

        Returns:
            tuple: (synced upstream, predicted waste record or None)
        """
        synced = await self.feed.create_inventory_item(item)
        if synced:
            try:
                self.inventory = await self.feed.fetch_inventory()
            except FEED_ERRORS as e:
                logger.warning(f"Could not refresh inventory after write: {e}")
                self.inventory = [*self.inventory, item]
        else:
            self.inventory = [*self.inventory, item]

        if not self.model.is_trained:
            return synced, None

        prediction = self.predict(self.prediction_input(category=item.category))
        # waste amounts are never negative
        amount = max(0.0, prediction.nn_prediction)
        predicted = WasteRecord(
            date=date.today(),
            amount=amount,
            category=item.category,
            cost=amount * item.cost_per_kg,
        )
        self.waste_history = [*self.waste_history, predicted]
        return synced, predicted

    def summary(self, now: Optional[datetime] = None) -> Dict:
        expiry = self.config["expiry"]
        return dashboard_summary(
            self.inventory,
            self.waste_history,
            now=now,
            critical_days=expiry["critical_days"],
            warning_days=expiry["warning_days"],
        )
