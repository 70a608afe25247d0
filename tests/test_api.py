import asyncio
import os
import sys
import time

import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from app.main import create_app
from forecasting.data_sources import DataFeedClient
from forecasting.ensemble import WastePredictionModel
from helpers import ConstantRegressor, DivergingRegressor, make_observation

OBSERVATION = {
    "day_of_week": 2,
    "temperature": 25.0,
    "humidity": 60.0,
    "stock_level": 205.0,
    "previous_day_waste": 140.0,
    "category": "Produce",
}


@pytest.fixture
def client(test_config):
    with TestClient(create_app(test_config)) as client:
        yield client


def test_health_reports_trained_model(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["engine_ready"] is True
    assert body["model_trained"] is True
    assert body["data_source"] == "fallback"


def test_root_and_unknown_endpoint(client):
    assert client.get("/").json()["status"] == "active"

    response = client.get("/forecast")
    assert response.status_code == 404
    assert "/predict" in response.json()["available_endpoints"]


def test_startup_trains_category_models(client):
    status = client.get("/model/status").json()
    assert status["trained"] is True
    assert set(status["categories"]) == {"Produce", "Dairy", "Meat", "Bakery"}


def test_summary_on_fallback_data(client):
    summary = client.get("/analytics/summary").json()

    assert summary["total_inventory_value"] == 21900
    assert summary["total_stock_quantity"] == 205
    assert summary["total_waste_cost"] == 59200
    assert sum(row["value"] for row in summary["expiry"]) == pytest.approx(21900)
    assert [row["status"] for row in summary["expiry"]] == ["expired", "critical", "warning", "safe"]


def test_category_rollup_endpoint(client):
    rows = client.get("/analytics/categories").json()
    assert rows[0] == {"category": "Produce", "quantity": 100.0, "value": 8000.0}
    assert len(client.get("/analytics/expiry").json()) == 4


def test_predict(client):
    response = client.post("/predict", json=OBSERVATION)

    assert response.status_code == 200
    body = response.json()
    assert body["category_prediction"] is not None
    assert 0.0 <= body["confidence"] <= 100.0
    expected = (body["nn_prediction"] + body["mlr_prediction"] + body["category_prediction"]) / 3
    assert body["ensemble_prediction"] == pytest.approx(expected)


def test_predict_next_day_from_current_state(client):
    response = client.get("/predict/next", params={"category": "Unknown"})

    assert response.status_code == 200
    assert response.json()["category_prediction"] is None


def test_predict_before_training_returns_409(client):
    client.app.state.forecast_service.model = WastePredictionModel()

    response = client.post("/predict", json=OBSERVATION)

    assert response.status_code == 409


def test_train_with_mismatched_batch_returns_400(client):
    response = client.post("/train", json={"samples": [OBSERVATION, OBSERVATION], "targets": [1.0]})

    assert response.status_code == 400
    assert "targets" in response.json()["detail"]


def test_train_category_model(client):
    batch = {"samples": [dict(OBSERVATION, category="Seafood")] * 3, "targets": [10.0, 12.0, 11.0]}

    response = client.post("/category-models/Seafood", json=batch)

    assert response.status_code == 200
    assert "Seafood" in response.json()["categories"]


def test_update_model(client):
    batch = {"samples": [OBSERVATION, dict(OBSERVATION, category="Frozen")], "targets": [100.0, 80.0]}

    response = client.post("/update-model", json=batch)

    assert response.status_code == 200
    assert "Frozen" in response.json()["categories"]


def test_add_inventory_item_falls_back_to_local_state(client):
    payload = {
        "name": "Greek Yogurt",
        "quantity": 20,
        "expiry_date": "2024-03-18",
        "category": "Dairy",
        "cost_per_kg": 150,
    }

    response = client.post("/inventory", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["synced"] is False
    assert body["item"]["id"]
    predicted = body["predicted_waste"]
    assert predicted["category"] == "Dairy"
    assert predicted["cost"] == pytest.approx(predicted["amount"] * 150)

    assert len(client.get("/inventory").json()) == 5
    assert len(client.get("/waste-data").json()) == 8
    assert client.get("/analytics/summary").json()["total_inventory_value"] == 21900 + 3000


def test_add_inventory_item_rejects_negative_quantity(client):
    payload = {"name": "Bad", "quantity": -1, "expiry_date": "2024-03-18", "category": "Dairy", "cost_per_kg": 1}
    assert client.post("/inventory", json=payload).status_code == 422


def test_saved_model_is_loaded_on_startup(test_config):
    from forecasting.model_store import save_model

    with TestClient(create_app(test_config)) as client:
        save_model(client.app.state.forecast_service.model, test_config["model"]["path"])

    with TestClient(create_app(test_config)) as client:
        status = client.get("/model/status").json()

    assert status["trained"] is True
    assert "Bakery" in status["categories"]


def test_corrupt_saved_model_falls_back_to_training(test_config):
    model_path = test_config["model"]["path"]
    os.makedirs(os.path.dirname(model_path), exist_ok=True)
    with open(model_path, "wb") as f:
        f.write(b"not a pickle")

    with TestClient(create_app(test_config)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["engine_ready"] is True
    assert response.json()["model_trained"] is True


def test_train_failure_returns_500(client):
    client.app.state.forecast_service.model = WastePredictionModel(network_factory=DivergingRegressor)

    response = client.post("/train", json={"samples": [OBSERVATION], "targets": [100.0]})

    assert response.status_code == 500
    assert response.json()["detail"].startswith("Training failed")
    assert client.get("/model/status").json()["trained"] is False


def test_startup_training_failure_keeps_service_up(test_config):
    test_config["model"]["network"]["learning_rate"] = 1e30

    with TestClient(create_app(test_config)) as client:
        health = client.get("/health").json()
        predict = client.post("/predict", json=OBSERVATION)

    assert health["engine_ready"] is True
    assert health["model_trained"] is False
    assert predict.status_code == 409


def test_negative_network_prediction_is_recorded_as_zero_waste(client):
    model = WastePredictionModel(
        linear_factory=lambda: ConstantRegressor(-5.0),
        network_factory=lambda: ConstantRegressor(-5.0),
    )
    asyncio.run(model.train([make_observation()], [1.0]))
    client.app.state.forecast_service.model = model

    payload = {"name": "Rocket", "quantity": 4, "expiry_date": "2024-03-18", "category": "Produce", "cost_per_kg": 90}
    predicted = client.post("/inventory", json=payload).json()["predicted_waste"]

    assert predicted["amount"] == 0.0
    assert predicted["cost"] == 0.0


def test_refresh_reloads_feed_data(client):
    payload = {"name": "Local Only", "quantity": 5, "expiry_date": "2024-03-18", "category": "Dairy", "cost_per_kg": 10}
    client.post("/inventory", json=payload)
    assert len(client.get("/inventory").json()) == 5

    response = client.post("/refresh")

    assert response.status_code == 200
    assert response.json() == {"data_source": "fallback", "waste_records": 7, "inventory_items": 4}
    assert len(client.get("/inventory").json()) == 4


class CountingFeedClient(DataFeedClient):
    def __init__(self, feed_config):
        super().__init__(feed_config)
        self.loads = 0

    async def load_dashboard_data(self):
        self.loads += 1
        return await super().load_dashboard_data()


def test_data_is_refreshed_periodically(test_config):
    test_config["data_feed"]["refresh_interval"] = 0.05
    feed = CountingFeedClient(test_config["data_feed"])

    with TestClient(create_app(test_config, feed_client=feed)):
        time.sleep(0.5)

    assert feed.loads >= 3


if __name__ == "__main__":
    pytest.main([__file__])
