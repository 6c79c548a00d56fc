"""
ant_system/colony.py
────────────────────
The Colony: orchestrates all ants across all iterations.

How the colony works
─────────────────────
  Initializing (constructor)
    1. Validate the configuration (ConfigurationError).
    2. Build the DistanceTable once (InputError on bad coordinates).
    3. Reject coincident cities (DegenerateGeometryError), before any
       desirability is computed.
    4. Seed the PheromoneField from a nearest-neighbour tour.
    5. Create the fixed pool of N_ANTS ants, each with its own generator.

  Iterating (step(), repeated)
    a. Recompute the DesirabilityTable from the current pheromone.
    b. Reset every ant to a random start city.
    c. Every ant constructs a full tour. Ants are independent: they all
       read the same frozen desirability table and nothing else.
    d. Barrier. Then PheromoneField.update(): evaporate, deposit for all
       ants, return the best-of-iteration length.
    e. Update the best-overall length, tour and iteration.
    f. Emit an IterationRecord and evaluate termination.

  Terminated
    No further mutation. run() returns the RunResult.

Termination modes
─────────────────
  FIXED_ITERATIONS → stop when the counter reaches n_iterations.
  TARGET_CUTOFF    → stop as soon as best / known_optimal < target ratio.
                     There is no iteration ceiling in this mode.

Randomness
──────────
One SeedSequence(config.seed) is spawned into n_ants + 1 children: one
for the seeding tour, one per ant. Streams never interleave, so the
result for a given seed does not depend on max_workers.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Union

import numpy as np

from tsp_runner.shared.models import (
    City,
    ColonyConfig,
    IterationRecord,
    RunResult,
    TerminationMode,
)
from ant_system.ant import Ant
from ant_system.desirability import DesirabilityTable
from ant_system.distance import CoordinateInput, DistanceTable, InputError
from ant_system.pheromone import PheromoneField

logger = logging.getLogger(__name__)


class ColonyState(str, Enum):
    """Lifecycle of one optimisation run."""
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    TERMINATED = "terminated"


class ConfigurationError(Exception):
    """
    Raised when a ColonyConfig cannot drive a run.

    When is this raised?
        • n_ants < 1.
        • FIXED_ITERATIONS without a positive n_iterations.
        • TARGET_CUTOFF without a positive target_cutoff_ratio or
          known_optimal_length.
        • max_workers < 1.

    Attributes:
        field: Name of the offending ColonyConfig field.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


def validate_config(config: ColonyConfig) -> None:
    """
    Check that `config` describes a runnable colony.

    Raises:
        ConfigurationError: on the first problem found.
    """
    if config.n_ants < 1:
        raise ConfigurationError("n_ants", f"must be ≥ 1, got {config.n_ants}")
    if config.max_workers < 1:
        raise ConfigurationError(
            "max_workers", f"must be ≥ 1, got {config.max_workers}"
        )

    if config.termination == TerminationMode.FIXED_ITERATIONS:
        if config.n_iterations is None or config.n_iterations < 1:
            raise ConfigurationError(
                "n_iterations",
                f"fixed-iterations mode needs n_iterations ≥ 1, got {config.n_iterations}",
            )
    else:
        if config.target_cutoff_ratio is None or config.target_cutoff_ratio <= 0.0:
            raise ConfigurationError(
                "target_cutoff_ratio",
                f"target-cutoff mode needs a ratio > 0, got {config.target_cutoff_ratio}",
            )
        if config.known_optimal_length is None or config.known_optimal_length <= 0.0:
            raise ConfigurationError(
                "known_optimal_length",
                f"target-cutoff mode needs a positive optimum, got {config.known_optimal_length}",
            )


def _as_coordinates(
    cities: Union[CoordinateInput, Sequence[City]],
) -> CoordinateInput:
    """
    Unpack City models into (x, y) pairs; pass anything else through.

    Raises:
        InputError: if City indices are not exactly 0..N-1.
    """
    if isinstance(cities, np.ndarray):
        return cities
    cities = list(cities)
    if cities and isinstance(cities[0], City):
        indices = sorted(c.index for c in cities)
        if indices != list(range(len(cities))):
            raise InputError(
                f"City indices must be exactly 0..{len(cities) - 1}, got {indices}"
            )
        return [(c.x, c.y) for c in sorted(cities, key=lambda c: c.index)]
    return cities


class Colony:
    """
    Runs Ant System on one problem and returns the best tour found.

    Usage:
        colony = Colony(coordinates, ColonyConfig(n_iterations=50, seed=7))
        result = colony.run()                 # RunResult

        # or, to observe progress:
        for record in colony.iterate():
            print(record.iteration, record.best_length)

    Attributes:
        best_length    : float      — shortest tour so far (+inf before step 1).
        best_tour      : List[int]  — that tour.
        best_iteration : int        — 1-based iteration that found it.
        iteration      : int        — iterations completed.
        history        : List[float]— best-of-iteration lengths.
    """

    def __init__(
        self,
        coordinates: Union[CoordinateInput, Sequence[City]],
        config: Optional[ColonyConfig] = None,
    ) -> None:
        """
        Initialise the colony: geometry, seeded pheromone, ant pool.

        Raises:
            ConfigurationError:      invalid config.
            InputError:              malformed coordinates.
            DegenerateGeometryError: two cities share coordinates.
        """
        self._state = ColonyState.INITIALIZING
        self._config = config if config is not None else ColonyConfig()
        validate_config(self._config)

        self._distances = DistanceTable(_as_coordinates(coordinates))
        self._distances.check_degenerate()
        self._desirability = DesirabilityTable(self._distances)
        n_cities = self._distances.n_cities

        seed_seq = np.random.SeedSequence(self._config.seed)
        seeding_seq, *ant_seqs = seed_seq.spawn(self._config.n_ants + 1)

        self._pheromone = PheromoneField(n_cities)
        self._seed_tour_length = self._pheromone.seed(
            self._distances,
            self._config.n_ants,
            np.random.default_rng(seeding_seq),
        )

        self._ants: List[Ant] = [
            Ant(n_cities, np.random.default_rng(seq), ant_id=i)
            for i, seq in enumerate(ant_seqs)
        ]
        logger.debug(
            "Colony ready: %d cities, %d ants, seed tour length %.4f",
            n_cities, len(self._ants), self._seed_tour_length,
        )

        self.best_length: float = float("inf")
        self.best_tour: List[int] = []
        self.best_iteration: int = 0
        self.iteration: int = 0
        self.history: List[float] = []
        self.target_reached: bool = False

        # Created on the first parallel step, shut down on termination.
        self._pool: Optional[ThreadPoolExecutor] = None

    # ── One iteration ──────────────────────────────────────────────────────────

    def _construct_tours(self) -> None:
        """Reset and run every ant. Returns only when all tours are complete."""
        for ant in self._ants:
            ant.reset()

        if self._config.max_workers == 1:
            for ant in self._ants:
                ant.construct(self._desirability)
            return

        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self._config.max_workers,
                thread_name_prefix="ant",
            )
        futures = [
            self._pool.submit(ant.construct, self._desirability) for ant in self._ants
        ]
        for future in futures:
            future.result()

    def step(self) -> IterationRecord:
        """
        Execute exactly one iteration and evaluate termination.

        Returns:
            IterationRecord for the iteration just completed.

        Raises:
            RuntimeError: if the colony has already terminated.
        """
        if self._state == ColonyState.TERMINATED:
            raise RuntimeError("Colony has terminated; no further iterations")
        self._state = ColonyState.ITERATING
        cfg = self._config

        self._desirability.recompute(self._pheromone, cfg.alpha, cfg.beta)
        self._construct_tours()

        # Barrier passed: every tour is complete before pheromone changes.
        iteration_best = self._pheromone.update(self._ants, cfg.evaporation_rate)
        self.iteration += 1
        self.history.append(iteration_best)

        if iteration_best < self.best_length:
            best_ant = min(self._ants, key=lambda a: a.path_length)
            self.best_length = best_ant.path_length
            self.best_tour = list(best_ant.tour)
            self.best_iteration = self.iteration

        logger.debug(
            "Iteration %d: best of iteration %.4f, best overall %.4f",
            self.iteration, iteration_best, self.best_length,
        )

        if self._termination_reached():
            self._terminate()

        return IterationRecord(
            iteration=self.iteration,
            iteration_best_length=iteration_best,
            best_length=self.best_length,
        )

    def _termination_reached(self) -> bool:
        cfg = self._config
        if cfg.termination == TerminationMode.TARGET_CUTOFF:
            ratio = self.best_length / cfg.known_optimal_length
            if ratio < cfg.target_cutoff_ratio:
                self.target_reached = True
                return True
            return False
        return self.iteration >= cfg.n_iterations

    def _terminate(self) -> None:
        self._state = ColonyState.TERMINATED
        self.close()
        if self.target_reached:
            logger.info(
                "Target cutoff %.4gx of optimal reached at iteration %d "
                "(best %.4f)",
                self._config.target_cutoff_ratio, self.iteration, self.best_length,
            )
        else:
            logger.info(
                "Completed %d iterations (best %.4f found at iteration %d)",
                self.iteration, self.best_length, self.best_iteration,
            )

    # ── Main loop ──────────────────────────────────────────────────────────────

    def iterate(self) -> Iterator[IterationRecord]:
        """Yield one IterationRecord per iteration until termination."""
        while self._state != ColonyState.TERMINATED:
            yield self.step()

    def run(self) -> RunResult:
        """
        Run to termination and return the result.

        Calling run() on a terminated colony returns the same result
        again without touching any state.
        """
        for _ in self.iterate():
            pass
        return self.result()

    def close(self) -> None:
        """
        Release the construction thread pool, if one was started.

        Called automatically on termination. Call it yourself when
        abandoning a run early; a later step() starts a new pool.
        """
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def result(self) -> RunResult:
        """Current best state as a RunResult (final once terminated)."""
        return RunResult(
            best_length=self.best_length,
            best_tour=list(self.best_tour),
            best_iteration=self.best_iteration,
            iterations_run=self.iteration,
            history=list(self.history),
            seed_tour_length=self._seed_tour_length,
            target_reached=self.target_reached,
        )

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def state(self) -> ColonyState:
        return self._state

    @property
    def config(self) -> ColonyConfig:
        return self._config

    @property
    def distances(self) -> DistanceTable:
        return self._distances

    @property
    def pheromone(self) -> PheromoneField:
        return self._pheromone

    @property
    def desirability(self) -> DesirabilityTable:
        return self._desirability

    @property
    def ants(self) -> List[Ant]:
        return list(self._ants)

    @property
    def seed_tour_length(self) -> float:
        return self._seed_tour_length

    def __repr__(self) -> str:
        return (
            f"Colony(cities={self._distances.n_cities}, ants={len(self._ants)}, "
            f"state={self._state.value}, iteration={self.iteration}, "
            f"best={self.best_length:.4f})"
        )
