"""
ant_system/desirability.py
──────────────────────────
Per-iteration desirability table: the unnormalised weight of each leg.

    w[i][j] = τ[i][j]^α × η[i][j]^β,   η = 1 / d,   w[i][i] = 0

The table is rebuilt from scratch at the start of every iteration and
then frozen: all ants of that iteration read the same weights, and none
of them writes to it. η is derived from the DistanceTable once, when the
table object is created, since the geometry never changes during a run.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ant_system.distance import DistanceTable
from ant_system.pheromone import PheromoneField


class DesirabilityTable:
    """
    Holds η (fixed) and the current weights w (recomputed each iteration).

    Usage:
        table = DesirabilityTable(distances)
        table.recompute(field, alpha=1.0, beta=2.0)
        row = table.row(current_city)      # read-only view
    """

    def __init__(self, distances: DistanceTable) -> None:
        """
        Raises:
            DegenerateGeometryError: if two cities coincide (η would be inf).
        """
        self._distances = distances
        self._eta: NDArray[np.float64] = distances.inverse()
        self._eta.flags.writeable = False
        self._weights: NDArray[np.float64] = np.zeros_like(self._eta)
        self._weights.flags.writeable = False

    @classmethod
    def from_field(
        cls,
        field: PheromoneField,
        distances: DistanceTable,
        alpha: float,
        beta: float,
    ) -> "DesirabilityTable":
        """Build and immediately compute a table (one-shot use in tests and tools)."""
        table = cls(distances)
        table.recompute(field, alpha, beta)
        return table

    def recompute(self, field: PheromoneField, alpha: float, beta: float) -> None:
        """
        Rebuild every weight from the current pheromone field.

        A fresh array is allocated and swapped in, so a reader still
        holding the previous iteration's row keeps a consistent view.

        NumPy operations:
            np.power(τ, α) * np.power(η, β)    elementwise, whole matrix.
            np.fill_diagonal(w, 0.0)           0^α is 1 for α = 0; the
                                               diagonal must stay 0.
        """
        weights = np.power(field.matrix, alpha) * np.power(self._eta, beta)
        np.fill_diagonal(weights, 0.0)
        weights.flags.writeable = False
        self._weights = weights

    def row(self, city: int) -> NDArray[np.float64]:
        """Weights for leaving `city`. View into a read-only array."""
        return self._weights[city]

    @property
    def weights(self) -> NDArray[np.float64]:
        return self._weights

    @property
    def eta(self) -> NDArray[np.float64]:
        return self._eta

    @property
    def distances(self) -> DistanceTable:
        return self._distances

    def __getitem__(self, key):
        return self._weights[key]

    def __repr__(self) -> str:
        return f"DesirabilityTable(n_cities={self._distances.n_cities})"
