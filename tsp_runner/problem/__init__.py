"""
tsp_runner/problem — reading problem instances.

Public API:
    load_problem()   — parse a TSPLIB file into a TSPProblem
    parse_problem()  — same, from already-read text
"""

from tsp_runner.problem.loader import load_problem, parse_problem

__all__ = ["load_problem", "parse_problem"]
