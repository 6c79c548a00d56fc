"""
tsp_runner/shared/models.py
───────────────────────────
The single source of truth for every data structure exchanged between
the problem loader, the colony and the solver service.

Design philosophy
-----------------
Every model answers one question: "What does the colony (or its caller)
need to know about this thing?" Algorithm internals (matrices, per-ant
state) stay inside ant_system as numpy arrays; only what crosses a
boundary is a model here.

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class TerminationMode(str, Enum):
    """
    How the colony decides to stop.

    FIXED_ITERATIONS → run exactly `n_iterations` iterations.
    TARGET_CUTOFF    → run until best / known_optimal < target_cutoff_ratio,
                       with no iteration ceiling. An unreachable cutoff
                       never terminates.
    """
    FIXED_ITERATIONS = "fixed-iterations"
    TARGET_CUTOFF = "target-cutoff"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: PROBLEM MODELS
# ─────────────────────────────────────────────────────────────────────────────

class City(BaseModel):
    """
    One city of the problem: a dense index and a point in the plane.

    Indices run 0..N−1 in file order. The TSPLIB node id (usually 1-based)
    is not kept; the index is the only identity the colony uses.
    """
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Dense position 0..N-1")
    x: float = Field(..., description="X coordinate")
    y: float = Field(..., description="Y coordinate")


class TSPProblem(BaseModel):
    """
    A loaded problem instance.

    Fields:
        name      → NAME header, or the file stem when absent.
        dimension → Declared city count. Always equals len(cities) once
                    the loader has accepted the file.
        cities    → Cities in index order.
        comment   → COMMENT header, if any.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Problem name")
    dimension: int = Field(..., ge=0, description="Number of cities")
    cities: List[City] = Field(default_factory=list)
    comment: Optional[str] = Field(None, description="Free-text COMMENT header")

    def coordinates(self) -> List[tuple[float, float]]:
        """(x, y) pairs in index order, the form DistanceTable accepts."""
        return [(c.x, c.y) for c in self.cities]


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

class ColonyConfig(BaseModel):
    """
    Everything the colony needs besides the coordinates.

    Both termination fields are always present; `termination` selects
    which one is consulted. Semantic checks (positive ant count, the
    selected mode being fully configured) are performed by
    ant_system.colony.validate_config() and reported as
    ConfigurationError, not by pydantic.

    Defaults:
        alpha=1.5, beta=3.5, evaporation_rate=0.5, n_ants=20 are the
        classic Ant System settings this package was tuned with.
    """
    n_ants: int = Field(20, description="Number of ants per iteration")
    alpha: float = Field(1.5, description="Pheromone exponent")
    beta: float = Field(3.5, description="Inverse-distance exponent")
    evaporation_rate: float = Field(
        0.5,
        description="Fraction of pheromone removed each iteration (conventionally 0..1)",
    )

    termination: TerminationMode = Field(
        TerminationMode.FIXED_ITERATIONS,
        description="Which termination field is consulted",
    )
    n_iterations: Optional[int] = Field(
        100, description="Iteration count in FIXED_ITERATIONS mode"
    )
    target_cutoff_ratio: Optional[float] = Field(
        None, description="Stop when best / known_optimal drops below this"
    )
    known_optimal_length: Optional[float] = Field(
        None, description="Reference optimum for the cutoff ratio and reporting"
    )

    seed: Optional[int] = Field(
        None, description="Root seed. None draws fresh OS entropy."
    )
    max_workers: int = Field(
        1, description="Threads used for tour construction. 1 = sequential."
    )


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: RESULTS
# ─────────────────────────────────────────────────────────────────────────────

class IterationRecord(BaseModel):
    """What the colony emits at the end of each iteration."""
    iteration: int = Field(..., ge=1, description="1-based iteration number")
    iteration_best_length: float = Field(..., description="Shortest tour this iteration")
    best_length: float = Field(..., description="Shortest tour so far")


class RunResult(BaseModel):
    """
    Final state of a terminated colony.

    Fields:
        best_length      → Shortest tour found in the whole run.
        best_tour        → That tour, as city indices (closing leg implied).
        best_iteration   → 1-based iteration in which best_length was found.
        iterations_run   → Iterations executed before termination.
        history          → iteration_best_length for every iteration.
        seed_tour_length → Nearest-neighbour tour used to seed pheromone.
        target_reached   → TARGET_CUTOFF only: whether the cutoff fired.
    """
    best_length: float
    best_tour: List[int] = Field(default_factory=list)
    best_iteration: int = 0
    iterations_run: int = 0
    history: List[float] = Field(default_factory=list)
    seed_tour_length: float = 0.0
    target_reached: bool = False


class RunSummary(BaseModel):
    """Solver-service report: the result plus problem and timing context."""
    problem_name: str
    n_cities: int
    result: RunResult
    ratio_to_optimal: Optional[float] = Field(
        None, description="best_length / known_optimal_length, if known"
    )
    elapsed_sec: float = Field(0.0, ge=0.0)
