"""
Regression components used by the ensemble forecaster

Both components expose the same ``fit(X, y)`` / ``predict(X)`` surface, so the
forecaster can swap them for alternative implementations.
"""

import contextlib
import logging
import threading
from typing import Dict, List, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from sklearn.linear_model import LinearRegression
from torch.utils.data import DataLoader, TensorDataset

from forecasting.exceptions import TrainingFailure

logger = logging.getLogger(__name__)

# Fits draw from the process-global torch RNG (weight init, dropout masks).
_TORCH_RNG_LOCK = threading.Lock()


class LinearWasteRegressor:
    """Multivariate linear regression over the feature matrix"""

    def __init__(self):
        self.model: Optional[LinearRegression] = None

    def fit(self, X: np.ndarray, y: np.ndarray) -> "LinearWasteRegressor":
        model = LinearRegression()
        model.fit(X, y)

        if not (np.all(np.isfinite(model.coef_)) and np.isfinite(model.intercept_)):
            raise TrainingFailure("Linear regression produced non-finite coefficients")

        self.model = model
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.model.predict(X)


class WasteNetwork(nn.Module):
    """Feed-forward regressor: dense ReLU layers, dropout after the first, scalar output"""

    def __init__(self, n_features: int = 5, hidden_units: Sequence[int] = (16, 8), dropout: float = 0.2):
        super().__init__()
        layers: List[nn.Module] = []
        in_features = n_features
        for i, units in enumerate(hidden_units):
            layers.append(nn.Linear(in_features, units))
            layers.append(nn.ReLU())
            if i == 0 and dropout > 0:
                layers.append(nn.Dropout(dropout))
            in_features = units
        layers.append(nn.Linear(in_features, 1))
        self.layers = nn.Sequential(*layers)

    def forward(self, x):
        return self.layers(x)


class NetworkRegressor:
    """
    Trains a WasteNetwork with Adam on mean squared error.

    The last ``validation_split`` share of the samples is held out and only
    scored, never trained on; the remaining samples are reshuffled every epoch.
    The hold-out is skipped when it would leave either side empty.

    With ``random_state`` set, weight initialisation, dropout masks and the
    shuffle order are seeded, so repeated fits on the same data give the same
    network. Seeded fits leave the global torch RNG untouched, and fits hold a
    process-wide lock while training so concurrent fits cannot interleave
    their draws from it.
    """

    def __init__(
        self,
        hidden_units: Sequence[int] = (16, 8),
        dropout: float = 0.2,
        epochs: int = 150,
        batch_size: int = 32,
        learning_rate: float = 0.01,
        validation_split: float = 0.2,
        shuffle: bool = True,
        random_state: Optional[int] = None,
    ):
        self.hidden_units = tuple(hidden_units)
        self.dropout = dropout
        self.epochs = epochs
        self.batch_size = batch_size
        self.learning_rate = learning_rate
        self.validation_split = validation_split
        self.shuffle = shuffle
        self.random_state = random_state

        self.network: Optional[WasteNetwork] = None
        self.history: Dict[str, List[float]] = {"loss": [], "val_loss": []}

    def _split_sizes(self, n_samples: int):
        n_val = int(n_samples * self.validation_split)
        if n_val < 1 or n_val >= n_samples:
            n_val = 0
        return n_samples - n_val, n_val

    def fit(self, X: np.ndarray, y: np.ndarray) -> "NetworkRegressor":
        X_t = torch.as_tensor(np.asarray(X, dtype=np.float32))
        y_t = torch.as_tensor(np.asarray(y, dtype=np.float32).reshape(-1, 1))

        n_train, n_val = self._split_sizes(len(X_t))
        X_train, y_train = X_t[:n_train], y_t[:n_train]
        X_val, y_val = X_t[n_train:], y_t[n_train:]

        history: Dict[str, List[float]] = {"loss": [], "val_loss": []}

        generator = torch.Generator()
        if self.random_state is None:
            generator.seed()
            rng_scope = contextlib.nullcontext()
        else:
            generator.manual_seed(self.random_state)
            rng_scope = torch.random.fork_rng(devices=[])

        with _TORCH_RNG_LOCK, rng_scope:
            if self.random_state is not None:
                torch.manual_seed(self.random_state)

            network = WasteNetwork(X_t.shape[1], self.hidden_units, self.dropout)
            loader = DataLoader(
                TensorDataset(X_train, y_train),
                batch_size=self.batch_size,
                shuffle=self.shuffle,
                generator=generator,
            )
            optimizer = optim.Adam(network.parameters(), lr=self.learning_rate)
            criterion = nn.MSELoss()

            for epoch in range(self.epochs):
                network.train()
                total_loss = 0.0
                for xb, yb in loader:
                    optimizer.zero_grad()
                    loss = criterion(network(xb), yb)
                    if not torch.isfinite(loss):
                        raise TrainingFailure(f"Network loss diverged at epoch {epoch + 1}")
                    loss.backward()
                    optimizer.step()
                    total_loss += loss.item() * len(xb)

                history["loss"].append(total_loss / n_train)

                if n_val:
                    network.eval()
                    with torch.no_grad():
                        history["val_loss"].append(criterion(network(X_val), y_val).item())

        network.eval()
        with torch.no_grad():
            if not torch.all(torch.isfinite(network(X_t))):
                raise TrainingFailure("Network produced non-finite predictions after training")

        logger.debug(
            f"Network {self.hidden_units} trained for {self.epochs} epochs on {n_train} samples "
            f"(validation: {n_val}), final loss {history['loss'][-1]:.4f}"
        )

        self.network = network
        self.history = history
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        self.network.eval()
        with torch.no_grad():
            output = self.network(torch.as_tensor(np.asarray(X, dtype=np.float32)))
        return output.numpy().reshape(-1).astype(np.float64)
