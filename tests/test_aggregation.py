import os
import sys
from datetime import date, datetime, timedelta

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from forecasting.aggregation import (
    EXPIRY_STATUSES,
    at_risk_value,
    category_rollup,
    dashboard_summary,
    expiry_buckets,
    total_inventory_value,
    total_stock_quantity,
    total_waste_cost,
)
from forecasting.data_sources import fallback_inventory, fallback_waste_data
from helpers import make_item

NOW = datetime(2024, 3, 10, 15, 0)


def _bucket_map(rows):
    return {row["status"]: row["value"] for row in rows}


def _expiring_in(days, item_id="1", quantity=10.0, cost_per_kg=50.0, category="Produce"):
    return make_item(
        item_id=item_id,
        quantity=quantity,
        cost_per_kg=cost_per_kg,
        expiry_date=(NOW + timedelta(days=days)).date(),
        category=category,
    )


def test_total_inventory_value_single_item():
    assert total_inventory_value([make_item(quantity=10, cost_per_kg=50)]) == 500


def test_totals_on_fallback_data():
    inventory = fallback_inventory()
    assert total_inventory_value(inventory) == 21900
    assert total_stock_quantity(inventory) == 205
    assert total_waste_cost(fallback_waste_data()) == 59200


def test_empty_snapshot():
    assert total_inventory_value([]) == 0
    assert category_rollup([]) == []
    assert _bucket_map(expiry_buckets([], now=NOW)) == dict.fromkeys(EXPIRY_STATUSES, 0.0)
    assert at_risk_value([], now=NOW) == 0


def test_category_rollup_keeps_first_occurrence_order():
    inventory = [
        make_item("1", quantity=5, cost_per_kg=10, category="Meat"),
        make_item("2", quantity=3, cost_per_kg=20, category="Dairy"),
        make_item("3", quantity=2, cost_per_kg=10, category="Meat"),
    ]

    rows = category_rollup(inventory)

    assert [row["category"] for row in rows] == ["Meat", "Dairy"]
    assert rows[0] == {"category": "Meat", "quantity": 7.0, "value": 70.0}
    assert rows[1] == {"category": "Dairy", "quantity": 3.0, "value": 60.0}


def test_category_rollup_matches_total_value():
    inventory = fallback_inventory() + [make_item("9", quantity=12.5, cost_per_kg=33.3, category="Dairy")]

    rollup_total = sum(row["value"] for row in category_rollup(inventory))

    assert rollup_total == pytest.approx(total_inventory_value(inventory))


def test_item_expiring_in_two_days_is_critical():
    buckets = _bucket_map(expiry_buckets([_expiring_in(2)], now=NOW))

    assert buckets["critical"] == 500
    assert buckets["expired"] == buckets["warning"] == buckets["safe"] == 0


@pytest.mark.parametrize("days", [0, -1, -30])
def test_item_expiring_today_or_earlier_is_expired(days):
    buckets = _bucket_map(expiry_buckets([_expiring_in(days)], now=NOW))

    assert buckets["expired"] == 500
    assert buckets["critical"] == buckets["warning"] == buckets["safe"] == 0


@pytest.mark.parametrize(
    "days, status",
    [(1, "critical"), (3, "critical"), (4, "warning"), (7, "warning"), (8, "safe"), (60, "safe")],
)
def test_bucket_boundaries(days, status):
    buckets = _bucket_map(expiry_buckets([_expiring_in(days)], now=NOW))
    assert buckets[status] == 500


def test_bucket_boundaries_at_midnight():
    midnight = datetime(2024, 3, 10)
    items = [
        make_item("1", expiry_date=date(2024, 3, 10)),
        make_item("2", expiry_date=date(2024, 3, 13)),
        make_item("3", expiry_date=date(2024, 3, 17)),
        make_item("4", expiry_date=date(2024, 3, 18)),
    ]

    buckets = _bucket_map(expiry_buckets(items, now=midnight))

    assert buckets == {"expired": 500.0, "critical": 500.0, "warning": 500.0, "safe": 500.0}


def test_buckets_are_exhaustive():
    inventory = [
        _expiring_in(days, item_id=str(i), quantity=1 + i, cost_per_kg=10 + i)
        for i, days in enumerate([-3, 0, 1, 2, 3, 5, 7, 8, 20])
    ]

    rows = expiry_buckets(inventory, now=NOW)

    assert [row["status"] for row in rows] == EXPIRY_STATUSES
    assert sum(row["value"] for row in rows) == pytest.approx(total_inventory_value(inventory))


def test_custom_thresholds():
    buckets = _bucket_map(expiry_buckets([_expiring_in(5)], now=NOW, critical_days=5, warning_days=10))
    assert buckets["critical"] == 500


def test_at_risk_value_matches_expired_and_critical():
    inventory = [_expiring_in(days, item_id=str(i)) for i, days in enumerate([-1, 0, 2, 3, 4, 10])]

    buckets = _bucket_map(expiry_buckets(inventory, now=NOW))

    assert at_risk_value(inventory, now=NOW) == pytest.approx(buckets["expired"] + buckets["critical"])
    assert at_risk_value(inventory, now=NOW) == 2000


def test_aggregations_do_not_mutate_snapshot():
    inventory = fallback_inventory()
    before = list(inventory)

    dashboard_summary(inventory, fallback_waste_data(), now=NOW)

    assert inventory == before


def test_dashboard_summary_on_fallback_data():
    summary = dashboard_summary(fallback_inventory(), fallback_waste_data(), now=datetime(2024, 3, 9))

    assert summary["total_inventory_value"] == 21900
    assert summary["total_waste_cost"] == 59200
    buckets = _bucket_map(summary["expiry"])
    # Bread expires on 03-10, chicken on 03-12, milk on 03-15, apples on 03-20
    assert buckets == {"expired": 0.0, "critical": 10900.0, "warning": 3000.0, "safe": 8000.0}
    assert summary["at_risk_value"] == 10900
    assert [row["category"] for row in summary["categories"]] == ["Produce", "Dairy", "Meat", "Bakery"]


if __name__ == "__main__":
    pytest.main([__file__])
