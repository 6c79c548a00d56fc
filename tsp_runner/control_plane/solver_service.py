"""
tsp_runner/control_plane/solver_service.py
──────────────────────────────────────────
SolverService: the layer between a caller (CLI, notebook, test) and the
ant_system Colony.

Pipeline for one solve() call
──────────────────────────────
  1. validate_config()      — ConfigurationError before any work.
  2. Colony(...)            — InputError / DegenerateGeometryError.
  3. colony.iterate()       — each IterationRecord goes to the optional
                              progress callback and to the DEBUG log.
  4. RunSummary             — result + ratio to optimum + wall-clock time.

Errors from steps 1–2 propagate unchanged: they describe the caller's
input and the caller decides how to report them.

Thread safety
──────────────
A SolverService holds only the bounded run history; concurrent solve()
calls on one instance are not supported.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Union

from ant_system import Colony, validate_config
from ant_system.distance import CoordinateInput
from tsp_runner.shared.models import (
    City,
    ColonyConfig,
    IterationRecord,
    RunSummary,
    TerminationMode,
    TSPProblem,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[IterationRecord], None]

HISTORY_SIZE: int = 50
"""Number of recent RunSummary objects kept by a service instance."""


class SolverService:
    """
    Runs colonies and reports RunSummary objects.

    Public API:
        solve(problem, config)         → RunSummary
        solve_coordinates(coords, ...) → RunSummary (no TSPProblem needed)
        get_recent_runs(limit)         → List[RunSummary], newest first

    Attributes:
        on_iteration : optional callback invoked with every IterationRecord.
        recent_runs  : deque(maxlen=HISTORY_SIZE) of past summaries.
    """

    def __init__(self, on_iteration: Optional[ProgressCallback] = None) -> None:
        self.on_iteration = on_iteration
        self.recent_runs: Deque[RunSummary] = deque(maxlen=HISTORY_SIZE)

    def solve(self, problem: TSPProblem, config: ColonyConfig) -> RunSummary:
        """Run a colony on a loaded problem."""
        return self._run(problem.name, problem.cities, config)

    def solve_coordinates(
        self,
        coordinates: Union[CoordinateInput, Sequence[City]],
        config: ColonyConfig,
        name: str = "coordinates",
    ) -> RunSummary:
        """Run a colony on raw coordinates."""
        return self._run(name, coordinates, config)

    def get_recent_runs(self, limit: int = 10) -> List[RunSummary]:
        """Most recent summaries, newest first."""
        return list(reversed(self.recent_runs))[:limit]

    # ── Internals ──────────────────────────────────────────────────────────────

    def _run(
        self,
        name: str,
        coordinates: Union[CoordinateInput, Sequence[City]],
        config: ColonyConfig,
    ) -> RunSummary:
        validate_config(config)
        if (
            config.termination == TerminationMode.TARGET_CUTOFF
            and config.target_cutoff_ratio <= 1.0
        ):
            logger.warning(
                "%s: target cutoff ratio %.4g ≤ 1.0 can only be met by a tour "
                "shorter than the known optimum; the run may never terminate.",
                name, config.target_cutoff_ratio,
            )

        start = time.perf_counter()
        colony = Colony(coordinates, config)
        n_cities = colony.distances.n_cities
        logger.info(
            "Solving %s: %d cities, %d ants, alpha=%.3g beta=%.3g rho=%.3g, %s",
            name, n_cities, config.n_ants, config.alpha, config.beta,
            config.evaporation_rate, config.termination.value,
        )

        for record in colony.iterate():
            if self.on_iteration is not None:
                self.on_iteration(record)

        result = colony.result()
        elapsed = time.perf_counter() - start

        ratio: Optional[float] = None
        if config.known_optimal_length:
            ratio = result.best_length / config.known_optimal_length

        summary = RunSummary(
            problem_name=name,
            n_cities=n_cities,
            result=result,
            ratio_to_optimal=ratio,
            elapsed_sec=elapsed,
        )
        self.recent_runs.append(summary)

        logger.info(
            "Solved %s: best %.4f at iteration %d/%d in %.3fs",
            name, result.best_length, result.best_iteration,
            result.iterations_run, elapsed,
        )
        return summary
