"""
Inventory and waste aggregations for the dashboard

Pure functions over snapshots: nothing here mutates its inputs. Rows are
returned as plain dicts ready for charting.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from forecasting.domain import InventoryItem, WasteRecord

EXPIRY_STATUSES = ["expired", "critical", "warning", "safe"]

Instant = Union[datetime, date]


def _inventory_frame(inventory: Sequence[InventoryItem]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "category": [item.category for item in inventory],
            "quantity": [float(item.quantity) for item in inventory],
            "value": [float(item.value) for item in inventory],
            "expiry_date": pd.to_datetime([pd.Timestamp(item.expiry_date) for item in inventory]),
        }
    )


def days_until_expiry(frame: pd.DataFrame, now: Optional[Instant] = None) -> pd.Series:
    """Whole days from ``now`` to each expiry date (at midnight), rounded up"""
    now = pd.Timestamp(now if now is not None else datetime.now())
    return np.ceil((frame["expiry_date"] - now) / pd.Timedelta(days=1))


def total_inventory_value(inventory: Sequence[InventoryItem]) -> float:
    return float(sum(item.quantity * item.cost_per_kg for item in inventory))


def total_stock_quantity(inventory: Sequence[InventoryItem]) -> float:
    return float(sum(item.quantity for item in inventory))


def total_waste_cost(waste_history: Sequence[WasteRecord]) -> float:
    return float(sum(record.cost for record in waste_history))


def category_rollup(inventory: Sequence[InventoryItem]) -> List[Dict]:
    """Quantity and value per category, in order of first appearance"""
    if not inventory:
        return []

    frame = _inventory_frame(inventory)
    rollup = frame.groupby("category", sort=False).agg(quantity=("quantity", "sum"), value=("value", "sum"))

    return [
        {"category": category, "quantity": float(row["quantity"]), "value": float(row["value"])}
        for category, row in rollup.iterrows()
    ]


def expiry_buckets(
    inventory: Sequence[InventoryItem],
    now: Optional[Instant] = None,
    critical_days: int = 3,
    warning_days: int = 7,
) -> List[Dict]:
    """
    Inventory value by expiry risk

    Each item lands in exactly one bucket: expired (<= 0 days left), critical
    (up to ``critical_days``), warning (up to ``warning_days``) or safe. All four
    buckets are always returned.
    """
    totals = dict.fromkeys(EXPIRY_STATUSES, 0.0)

    if inventory:
        frame = _inventory_frame(inventory)
        frame["status"] = pd.cut(
            days_until_expiry(frame, now),
            bins=[-np.inf, 0, critical_days, warning_days, np.inf],
            labels=EXPIRY_STATUSES,
        )
        by_status = frame.groupby("status", observed=False)["value"].sum()
        for status, value in by_status.items():
            totals[str(status)] = float(value)

    return [{"status": status, "value": totals[status]} for status in EXPIRY_STATUSES]


def at_risk_value(inventory: Sequence[InventoryItem], now: Optional[Instant] = None, critical_days: int = 3) -> float:
    """Value of stock that is expired or expires within ``critical_days``"""
    if not inventory:
        return 0.0

    frame = _inventory_frame(inventory)
    at_risk = days_until_expiry(frame, now) <= critical_days
    return float(frame.loc[at_risk, "value"].sum())


def dashboard_summary(
    inventory: Sequence[InventoryItem],
    waste_history: Sequence[WasteRecord],
    now: Optional[Instant] = None,
    critical_days: int = 3,
    warning_days: int = 7,
) -> Dict:
    now = now if now is not None else datetime.now()
    return {
        "total_inventory_value": total_inventory_value(inventory),
        "total_stock_quantity": total_stock_quantity(inventory),
        "total_waste_cost": total_waste_cost(waste_history),
        "at_risk_value": at_risk_value(inventory, now, critical_days),
        "categories": category_rollup(inventory),
        "expiry": expiry_buckets(inventory, now, critical_days, warning_days),
    }
