import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(os.path.dirname(__file__))

from forecasting.config import load_config
from helpers import make_observation


@pytest.fixture
def training_batch():
    """Ten observations across three categories, with targets paired by index"""
    categories = ["Produce", "Dairy", "Meat", "Produce", "Dairy", "Meat", "Produce", None, "Dairy", "Meat"]
    samples = [
        make_observation(day_of_week=i % 7, temperature=20.0 + i, previous_day_waste=100.0 + 10 * i, category=category)
        for i, category in enumerate(categories)
    ]
    targets = [120.0 + 5 * i for i in range(len(samples))]
    return samples, targets


@pytest.fixture
def test_config(tmp_path):
    """Offline configuration with short training runs"""
    return load_config(
        config_path=str(tmp_path / "missing.yaml"),
        overrides={
            "data_feed": {"enabled": False},
            "model": {
                "path": str(tmp_path / "saved_models" / "waste_model.pkl"),
                "random_state": 0,
                "network": {"epochs": 20},
                "category_network": {"epochs": 20},
            },
        },
    )
