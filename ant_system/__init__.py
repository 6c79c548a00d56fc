"""
ant_system — Ant System core for the Euclidean Traveling Salesman Problem.

Public API:
    Colony                  — run the colony, returns RunResult
    ColonyState             — INITIALIZING / ITERATING / TERMINATED
    ConfigurationError      — ColonyConfig cannot drive a run
    InputError              — coordinates cannot describe a problem
    DegenerateGeometryError — two cities share coordinates

Building blocks (exposed for tests and tooling):
    DistanceTable, PheromoneField, DesirabilityTable, Ant, roulette_wheel

Usage:
    from ant_system import Colony
    from tsp_runner.shared.models import ColonyConfig

    colony = Colony(coords, ColonyConfig(n_ants=20, n_iterations=200, seed=1))
    result = colony.run()        # result.best_length, result.best_tour
"""

from ant_system.ant import Ant, roulette_wheel
from ant_system.colony import (
    Colony,
    ColonyState,
    ConfigurationError,
    validate_config,
)
from ant_system.desirability import DesirabilityTable
from ant_system.distance import DegenerateGeometryError, DistanceTable, InputError
from ant_system.pheromone import PheromoneField

__all__ = [
    "Ant",
    "Colony",
    "ColonyState",
    "ConfigurationError",
    "DegenerateGeometryError",
    "DesirabilityTable",
    "DistanceTable",
    "InputError",
    "PheromoneField",
    "roulette_wheel",
    "validate_config",
]
