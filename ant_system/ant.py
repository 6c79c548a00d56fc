"""
ant_system/ant.py
─────────────────
One ant: walks one complete tour per iteration.

What does an ant do?
─────────────────────
Starting from a random city, the ant repeatedly picks the next city
among those it has not visited yet. The pick is probabilistic: cities
with a higher desirability weight w[current][c] are more likely, but any
city with w > 0 can be chosen. Twenty ants sampling slightly different
tours, then reinforcing the shorter ones, is what lets the colony learn.

The selection rule
───────────────────
P(current → c) = w[current][c] / Σ_{k ∈ remaining} w[current][k]

  w = τ^α × η^β, precomputed once per iteration by the DesirabilityTable.

Roulette wheel
──────────────
  remaining = unvisited cities in ascending index order
  r         = uniform draw in [0, 1) from the ant's own generator
  cumulative[k] = Σ_{m ≤ k} w[remaining[m]] / weight_sum
  choose the first k with cumulative[k] ≥ r

Floating-point rounding can leave cumulative[-1] slightly below 1.0. When
r falls in that gap no index satisfies the test, and the last remaining
city is chosen directly. This floor guarantees that every step terminates.

Randomness
──────────
Each ant owns a numpy Generator. Nothing in this module touches global
random state, so a colony seeded once is reproducible, including when
ants construct their tours on separate threads.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from ant_system.desirability import DesirabilityTable


def roulette_wheel(weights: NDArray[np.float64], r: float) -> int:
    """
    Position of the first cumulative normalised weight that reaches r.

    Args:
        weights: Non-negative weights in enumeration order. Must have a
                 positive sum.
        r:       Draw in [0, 1).

    Returns:
        Index into `weights`. Falls back to the last index when rounding
        keeps the running sum below r.

    NumPy operations:
        np.cumsum accumulates left to right, one addition at a time, which
        is exactly the running sum of a hand-written loop.
        np.searchsorted(side="left") returns the first index whose value
        is ≥ r.
    """
    cumulative = np.cumsum(weights / weights.sum())
    chosen = int(np.searchsorted(cumulative, r, side="left"))
    return min(chosen, weights.size - 1)


class Ant:
    """
    A single walker with its own random stream and personal best.

    Lifecycle (per iteration):
        1. reset()        → random start city, empty tour, path_length 0.
        2. construct()    → visit every city, close the tour.
        3. Read results:  → ant.tour, ant.path_length, ant.best_length.

    Attributes:
        ant_id       : int        — position in the colony's pool.
        start_city   : int        — first city of the current tour.
        current_city : int        — where the ant stands right now.
        tour         : List[int]  — visited cities in order (grows 1 → n).
        path_length  : float      — accumulated length, closing leg included
                                    once construct() returns.
        best_length  : float      — shortest path_length over all iterations.
    """

    def __init__(
        self,
        n_cities: int,
        rng: Optional[np.random.Generator] = None,
        ant_id: int = 0,
    ) -> None:
        if n_cities < 1:
            raise ValueError(f"Ant requires n_cities≥1, got {n_cities}")
        self.ant_id = ant_id
        self._n_cities = n_cities
        self._rng: np.random.Generator = (
            rng if rng is not None else np.random.default_rng()
        )
        self._visited: NDArray[np.bool_] = np.zeros(n_cities, dtype=bool)

        self.start_city: int = 0
        self.current_city: int = 0
        self.tour: List[int] = []
        self.path_length: float = 0.0
        self.best_length: float = float("inf")

    # ── Per-iteration state ────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget the previous tour and stand on a uniformly random city."""
        self._visited[:] = False
        self.start_city = int(self._rng.integers(self._n_cities))
        self.current_city = self.start_city
        self._visited[self.start_city] = True
        self.tour = [self.start_city]
        self.path_length = 0.0

    def _move_to(self, city: int, leg: float) -> None:
        self.tour.append(city)
        self._visited[city] = True
        self.path_length += leg
        self.current_city = city

    # ── Next-city selection ────────────────────────────────────────────────────

    def remaining(self) -> NDArray[np.intp]:
        """Unvisited cities in ascending index order."""
        return np.flatnonzero(~self._visited)

    def _select_next(self, weight_row: NDArray[np.float64]) -> int:
        """
        Roulette-wheel pick among the remaining cities.

        Zero total:
            With extreme α/β every remaining weight can underflow to 0.0.
            The wheel is undefined then, so the ant falls back to a uniform
            pick among the remaining cities, still from its own generator.

        Overflow:
            A very large β on a very short leg can push a weight to +inf.
            Such legs dominate every finite one, so the pick is made
            uniformly among the +inf candidates only.
        """
        remaining = self.remaining()
        weights = weight_row[remaining]

        overflowed = np.isposinf(weights)
        if overflowed.any():
            dominant = remaining[overflowed]
            return int(dominant[self._rng.integers(dominant.size)])

        weight_sum = float(weights.sum())
        if not weight_sum > 0.0 or not np.isfinite(weight_sum):
            return int(remaining[self._rng.integers(remaining.size)])

        r = float(self._rng.random())
        return int(remaining[roulette_wheel(weights, r)])

    # ── Tour construction ──────────────────────────────────────────────────────

    def construct(self, table: DesirabilityTable) -> float:
        """
        Build a complete closed tour from the current start city.

        Must be called after reset(): the tour holds only the start city.

        Algorithm:
            repeat n − 1 times:
                c = _select_next(table.row(current_city))
                append c, add d[current][c], mark visited
            add the closing leg d[last][start]
            best_length = min(best_length, path_length)

        Returns:
            path_length of the finished tour.

        Raises:
            RuntimeError: if reset() was not called since the last tour.
        """
        if len(self.tour) != 1:
            raise RuntimeError(
                f"Ant {self.ant_id}: construct() requires a fresh reset()"
            )

        d = table.distances.matrix
        for _ in range(self._n_cities - 1):
            nxt = self._select_next(table.row(self.current_city))
            self._move_to(nxt, float(d[self.current_city, nxt]))

        self.path_length += float(d[self.current_city, self.start_city])

        if self.path_length < self.best_length:
            self.best_length = self.path_length
        return self.path_length

    # ── Inspection ─────────────────────────────────────────────────────────────

    @property
    def is_complete(self) -> bool:
        return len(self.tour) == self._n_cities

    def legs(self) -> Iterator[Tuple[int, int]]:
        """Every leg of the closed tour, closing leg last."""
        n = len(self.tour)
        for k in range(n):
            yield self.tour[k], self.tour[(k + 1) % n]

    def __repr__(self) -> str:
        return (
            f"Ant(id={self.ant_id}, visited={len(self.tour)}/{self._n_cities}, "
            f"length={self.path_length:.4f}, best={self.best_length:.4f})"
        )
