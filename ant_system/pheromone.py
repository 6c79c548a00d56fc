"""
ant_system/pheromone.py
───────────────────────
The pheromone field: the colony's shared, mutable memory.

What is pheromone?
──────────────────
Ants deposit pheromone on the legs they walk. Legs that belong to short
tours receive more pheromone per ant (deposit = Q / tour length), so over
iterations the colony converges on short tours without any ant having a
global view of the problem.

  τ[i][j] = trail strength on the undirected leg between city i and city j.

Lifecycle within one run
────────────────────────
  1. seed()      — once. A greedy nearest-neighbour tour sets the baseline
                   τ0 = n_ants / L_nn on every off-diagonal cell.
  2. update()    — once per iteration, after every ant has finished:
                     a. evaporate: τ ← τ × (1 − ρ) on the whole matrix.
                     b. deposit:   every ant adds Q / L_ant to both
                                   directions of each leg of its tour.
                   Evaporation always completes before the first deposit,
                   so every ant deposits against the same baseline.

Matrix layout
─────────────
  Shape : (n_cities, n_cities), float64.
  Symmetric, non-negative, diagonal fixed at 0.0.

Ownership
─────────
The Colony owns the field. Ants never see it directly; they read the
DesirabilityTable derived from it at the start of each iteration. The
field is therefore read-only during tour construction and written only
by update(), never both at once.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, Sequence

import numpy as np
from numpy.typing import NDArray

from ant_system.distance import DistanceTable

logger = logging.getLogger(__name__)

# ── Pheromone constants ────────────────────────────────────────────────────────

Q: float = 1.0
"""Deposit numerator.

Deposit amount for one leg = Q / tour_length.
A tour of length 4 deposits 0.25 on each of its legs; a tour of length 8
deposits 0.125. Shorter tours reinforce their legs more strongly.
"""

TAU_FLOOR: float = 0.0
"""Lower bound applied after evaporation.

Only reachable with an evaporation rate above 1.0, which would otherwise
turn the field negative and the desirability table into NaN for
fractional alpha.
"""


class TourHolder(Protocol):
    """Anything with a closed tour and its length (in practice: an Ant)."""

    tour: Sequence[int]
    path_length: float


class PheromoneField:
    """
    A symmetric (n_cities × n_cities) numpy array of trail strengths.

    Used by:
        Colony.__init__()       → seed() once.
        DesirabilityTable       → reads matrix each iteration.
        Colony.iterate()        → update() once per iteration.
        Tests                   → snapshot() to inspect state.

    Thread safety:
        Not thread-safe. Writes only happen in update(), which the Colony
        calls after every construction task has returned.
    """

    def __init__(self, n_cities: int) -> None:
        """
        Create an all-zero field. Call seed() before the first iteration.

        Raises:
            ValueError: if n_cities < 2.
        """
        if n_cities < 2:
            raise ValueError(
                f"PheromoneField requires n_cities≥2, got n_cities={n_cities}"
            )
        self._n_cities = n_cities
        self._matrix: NDArray[np.float64] = np.zeros(
            (n_cities, n_cities), dtype=np.float64
        )
        self._off_diagonal: NDArray[np.bool_] = ~np.eye(n_cities, dtype=bool)
        self.seed_tour_length: float = 0.0

    # ── Seeding ────────────────────────────────────────────────────────────────

    @staticmethod
    def nearest_neighbour_tour(
        distances: DistanceTable,
        rng: np.random.Generator,
    ) -> tuple[list[int], float]:
        """
        Greedy nearest-neighbour tour from a uniformly random start city.

        Algorithm:
            start = rng.integers(n)
            repeat n − 1 times:
                next = argmin over unvisited cities of d[current][c]
            close the tour back to start.

        Tie-break:
            np.argmin returns the FIRST minimum, so among equidistant
            candidates the lowest city index wins. This is the same result
            as scanning cities in index order with a strict `<` comparison.

        Returns:
            (tour, length) — tour is a permutation of 0..n−1, length
            includes the closing leg.
        """
        d = distances.matrix
        n = distances.n_cities
        start = int(rng.integers(n))

        visited = np.zeros(n, dtype=bool)
        visited[start] = True
        tour = [start]
        current = start
        total = 0.0

        for _ in range(n - 1):
            candidates = np.where(visited, np.inf, d[current])
            nxt = int(np.argmin(candidates))
            total += float(d[current, nxt])
            visited[nxt] = True
            tour.append(nxt)
            current = nxt

        total += float(d[current, start])
        return tour, total

    def seed(
        self,
        distances: DistanceTable,
        n_ants: int,
        rng: np.random.Generator,
    ) -> float:
        """
        Initialise every off-diagonal cell to n_ants / L_nn.

        L_nn is the length of a nearest-neighbour tour (see
        nearest_neighbour_tour). The tour itself is discarded: it only
        calibrates the baseline so that the first deposits are of the same
        order of magnitude as the initial trail.

        Args:
            distances: DistanceTable with the same n_cities as this field.
            n_ants:    Colony size (numerator of τ0).
            rng:       Generator for the random start city.

        Returns:
            The nearest-neighbour tour length L_nn.
        """
        if distances.n_cities != self._n_cities:
            raise ValueError(
                f"DistanceTable has {distances.n_cities} cities, "
                f"field has {self._n_cities}"
            )
        _, length = self.nearest_neighbour_tour(distances, rng)
        tau0 = n_ants / length

        self._matrix.fill(0.0)
        self._matrix[self._off_diagonal] = tau0
        self.seed_tour_length = length

        logger.debug(
            "Pheromone seeded: L_nn=%.4f, tau0=%.6g (%d ants)",
            length, tau0, n_ants,
        )
        return length

    # ── Core operations ────────────────────────────────────────────────────────

    def evaporate(self, evaporation_rate: float) -> None:
        """
        τ ← max(τ × (1 − ρ), TAU_FLOOR) on the whole matrix, in place.

        The diagonal is zero and stays zero under multiplication.
        """
        self._matrix *= (1.0 - evaporation_rate)
        np.clip(self._matrix, TAU_FLOOR, None, out=self._matrix)

    def deposit(self, tour: Sequence[int], path_length: float) -> None:
        """
        Add Q / path_length to both directions of every leg of a closed tour.

        Legs are (tour[k], tour[k+1]) for k < n−1 plus the closing leg
        (tour[n−1], tour[0]).

        Guards:
            path_length ≤ 0 → skip (no division by zero).

        NumPy operation:
            np.add.at(τ, (src, dst), amount)
            Unbuffered add: correct even when the same cell appears twice,
            which happens for the two legs of a 2-city tour.
        """
        if path_length <= 0.0:
            return
        order = np.asarray(tour, dtype=np.intp)
        if order.size < 2:
            return
        nxt = np.roll(order, -1)
        amount = Q / path_length
        np.add.at(self._matrix, (order, nxt), amount)
        np.add.at(self._matrix, (nxt, order), amount)

    def update(
        self,
        ants: Iterable[TourHolder],
        evaporation_rate: float,
    ) -> float:
        """
        One full pheromone update: evaporate, then deposit for every ant.

        Args:
            ants:             Every ant of the iteration, tours complete.
            evaporation_rate: ρ, fraction removed before deposits.

        Returns:
            The shortest path_length among the ants (best of iteration),
            or +inf if no ants were given.
        """
        ants = list(ants)
        self.evaporate(evaporation_rate)

        best = float("inf")
        for ant in ants:
            self.deposit(ant.tour, ant.path_length)
            if ant.path_length < best:
                best = ant.path_length
        return best

    # ── Inspection & testing ───────────────────────────────────────────────────

    @property
    def matrix(self) -> NDArray[np.float64]:
        """
        The live matrix.

        ⚠️ Not a copy: readers must not modify it. Use snapshot() when a
        stable copy is needed.
        """
        return self._matrix

    def snapshot(self) -> NDArray[np.float64]:
        """Deep copy of the current matrix state."""
        return self._matrix.copy()

    @property
    def n_cities(self) -> int:
        return self._n_cities

    @property
    def shape(self) -> tuple[int, int]:
        return (self._n_cities, self._n_cities)

    def __repr__(self) -> str:
        off = self._matrix[self._off_diagonal]
        return (
            f"PheromoneField(n_cities={self._n_cities}, "
            f"min={off.min():.4g}, max={off.max():.4g}, "
            f"mean={off.mean():.4g})"
        )
