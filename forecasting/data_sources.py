"""
Client for the upstream inventory / waste API

Reads fall back to a built-in dataset when the upstream service cannot be
reached or returns something unusable, so the forecaster and the aggregations
always receive records of the same shape.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import httpx

from forecasting.domain import InventoryItem, WasteRecord

logger = logging.getLogger(__name__)

FALLBACK_WASTE_DATA: List[Dict[str, Any]] = [
    {"date": "2024-03-01", "amount": 150, "category": "Produce", "cost": 4500},
    {"date": "2024-03-02", "amount": 120, "category": "Dairy", "cost": 6000},
    {"date": "2024-03-03", "amount": 180, "category": "Meat", "cost": 18000},
    {"date": "2024-03-04", "amount": 90, "category": "Bakery", "cost": 2700},
    {"date": "2024-03-05", "amount": 200, "category": "Produce", "cost": 6000},
    {"date": "2024-03-06", "amount": 160, "category": "Dairy", "cost": 8000},
    {"date": "2024-03-07", "amount": 140, "category": "Meat", "cost": 14000},
]

FALLBACK_INVENTORY: List[Dict[str, Any]] = [
    {"id": "1", "name": "Organic Apples", "quantity": 100, "expiryDate": "2024-03-20", "category": "Produce", "costPerKg": 80},
    {"id": "2", "name": "Fresh Milk", "quantity": 50, "expiryDate": "2024-03-15", "category": "Dairy", "costPerKg": 60},
    {"id": "3", "name": "Chicken Breast", "quantity": 30, "expiryDate": "2024-03-12", "category": "Meat", "costPerKg": 280},
    {"id": "4", "name": "Whole Grain Bread", "quantity": 25, "expiryDate": "2024-03-10", "category": "Bakery", "costPerKg": 100},
]

# Failures that trigger the fallback dataset
FEED_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError)


def fallback_waste_data() -> List[WasteRecord]:
    return [WasteRecord.from_record(record) for record in FALLBACK_WASTE_DATA]


def fallback_inventory() -> List[InventoryItem]:
    return [InventoryItem.from_record(record) for record in FALLBACK_INVENTORY]


class DataFeedClient:
    """
    Async client for the waste / inventory endpoints

    Args:
        feed_config: The ``data_feed`` section of the configuration
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(self, feed_config: Dict, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.enabled = feed_config.get("enabled", True)
        self.base_url = feed_config["base_url"].rstrip("/")
        self.waste_path = feed_config["waste_path"]
        self.inventory_path = feed_config["inventory_path"]
        self.create_inventory_path = feed_config["create_inventory_path"]
        self.timeout = feed_config.get("timeout", 10.0)
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _get_records(self, client: httpx.AsyncClient, path: str) -> List[Dict[str, Any]]:
        response = await client.get(path)
        response.raise_for_status()
        records = response.json()
        if not isinstance(records, list):
            raise ValueError(f"Expected a list from {path}, got {type(records).__name__}")
        return records

    async def fetch_waste_data(self) -> List[WasteRecord]:
        async with self._client() as client:
            records = await self._get_records(client, self.waste_path)
        return [WasteRecord.from_record(record) for record in records]

    async def fetch_inventory(self) -> List[InventoryItem]:
        async with self._client() as client:
            records = await self._get_records(client, self.inventory_path)
        return [InventoryItem.from_record(record) for record in records]

    async def load_dashboard_data(self) -> Tuple[List[WasteRecord], List[InventoryItem], str]:
        """
        Fetch waste history and inventory, or the fallback dataset on any failure

        Returns:
            tuple: (waste records, inventory items, source) where source is
            ``"live"`` or ``"fallback"``
        """
        if not self.enabled:
            logger.info("Data feed disabled. Using fallback data.")
            return fallback_waste_data(), fallback_inventory(), "fallback"

        try:
            waste = await self.fetch_waste_data()
            inventory = await self.fetch_inventory()
        except FEED_ERRORS as e:
            logger.warning(f"Using fallback data due to backend connection error: {e}")
            return fallback_waste_data(), fallback_inventory(), "fallback"

        logger.info(f"Loaded {len(waste)} waste records and {len(inventory)} inventory items from {self.base_url}")
        return waste, inventory, "live"

    async def create_inventory_item(self, item: InventoryItem) -> bool:
        """Post a new item upstream. Returns False when the write did not go through."""
        if not self.enabled:
            return False

        payload = item.to_record()
        payload["date"] = date.today().isoformat()
        try:
            async with self._client() as client:
                response = await client.post(self.create_inventory_path, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Inventory write failed, keeping item locally: {e}")
            return False

        return True
