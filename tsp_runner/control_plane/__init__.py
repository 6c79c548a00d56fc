"""
tsp_runner/control_plane — runs the colony for a caller.

Public API:
    SolverService  — validate, run, time and summarise one colony run
"""

from tsp_runner.control_plane.solver_service import SolverService

__all__ = ["SolverService"]
