"""
tsp_runner — application shell around the ant_system core.

Subpackages:
    tsp_runner.shared         — pydantic models shared with ant_system
    tsp_runner.problem        — TSPLIB coordinate loader
    tsp_runner.control_plane  — SolverService (timing, logging, summary)
    tsp_runner.cli            — command-line entry point

Keep this module import-free: ant_system imports tsp_runner.shared.models.
"""

__version__ = "0.1.0"
