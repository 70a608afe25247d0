import argparse
import asyncio
import json
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

from forecasting.config import load_config
from forecasting.data_sources import DataFeedClient
from forecasting.domain import InventoryItem, Observation, WasteRecord
from forecasting.ensemble import WastePredictionModel
from forecasting.features import observations_from_waste_history
from forecasting.model_store import save_model

logger = logging.getLogger(__name__)


class ModelTrainer:
    def __init__(self, config_path: Optional[str] = None, results_dir: str = "results"):
        self.config = load_config(config_path)
        self.results_dir = results_dir
        self.model = WastePredictionModel.from_config(self.config["model"])

    def load_data(self) -> Tuple[List[WasteRecord], List[InventoryItem], str]:
        """Load waste history and inventory from the feed (or the fallback dataset)"""
        client = DataFeedClient(self.config["data_feed"])
        waste, inventory, source = asyncio.run(client.load_dashboard_data())
        logger.info(f"Loaded {len(waste)} waste records and {len(inventory)} inventory items ({source})")
        return waste, inventory, source

    def prepare_data(self, waste: List[WasteRecord], inventory: List[InventoryItem]) -> Tuple[List[Observation], List[float]]:
        """Build training observations and targets"""
        defaults = self.config["prediction_defaults"]
        observations, targets = observations_from_waste_history(
            waste,
            stock_level=sum(item.quantity for item in inventory),
            temperature=defaults["temperature"],
            humidity=defaults["humidity"],
        )
        logger.info(f"Prepared {len(observations)} training samples")
        return observations, targets

    def evaluate_model(self, observations: List[Observation], targets: List[float]) -> Dict[str, Dict[str, float]]:
        """In-sample error of each ensemble member"""
        predictions = [self.model.predict(obs) for obs in observations]
        y_true = np.array(targets)

        members = {
            "neural_network": np.array([p.nn_prediction for p in predictions]),
            "linear_regression": np.array([p.mlr_prediction for p in predictions]),
            "ensemble": np.array([p.ensemble_prediction for p in predictions]),
        }

        metrics = {}
        for name, y_pred in members.items():
            metrics[name] = {
                "mae": float(mean_absolute_error(y_true, y_pred)),
                "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
                "mse": float(mean_squared_error(y_true, y_pred)),
            }
            logger.info(f"{name} Metrics:")
            for metric, value in metrics[name].items():
                logger.info(f"  {metric.upper()}: {value:.4f}")

        metrics["mean_confidence"] = float(np.mean([p.confidence for p in predictions]))
        return metrics

    def train_models(self) -> Tuple[WastePredictionModel, Dict]:
        """Train the general and per-category models and save them"""
        try:
            waste, inventory, source = self.load_data()
            observations, targets = self.prepare_data(waste, inventory)

            logger.info("\n" + "=" * 50)
            logger.info("STARTING MODEL TRAINING")
            logger.info("=" * 50)

            asyncio.run(self.model.update_model(observations, targets))

            logger.info("\n" + "=" * 50)
            logger.info("MODEL EVALUATION")
            logger.info("=" * 50)

            metrics = self.evaluate_model(observations, targets)

            model_path = self.config["model"]["path"]
            save_model(self.model, model_path)

            training_info = {
                "training_date": datetime.now().isoformat(),
                "data_source": source,
                "samples": len(targets),
                "categories": self.model.categories,
                "metrics": metrics,
                "model_path": model_path,
            }
            os.makedirs(self.results_dir, exist_ok=True)
            with open(os.path.join(self.results_dir, "training_info.json"), "w") as f:
                json.dump(training_info, f, indent=2)

            logger.info("\n" + "=" * 50)
            logger.info("TRAINING SUMMARY")
            logger.info("=" * 50)
            logger.info(f"Ensemble RMSE: {metrics['ensemble']['rmse']:.4f}")
            logger.info(f"Category models: {self.model.categories}")
            logger.info(f"Model saved to: {model_path}")

            return self.model, metrics

        except Exception as e:
            logger.error(f"Error in model training: {e}")
            raise


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Train the waste forecasting ensemble")
    parser.add_argument("--config", default=None, help="Path to config YAML")
    parser.add_argument("--results-dir", default="results", help="Where to write training_info.json")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    print("\nStarting Model Training...")
    trainer = ModelTrainer(config_path=args.config, results_dir=args.results_dir)
    trainer.train_models()
    print("\n[SUCCESS] Model training completed successfully!")


if __name__ == "__main__":
    main()
