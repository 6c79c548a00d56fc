"""
tsp_runner/cli.py
─────────────────
Command-line entry point: load a TSPLIB file, run Ant System, print a summary.

    ant-system berlin52.tsp --iterations 200 --optimal 7542
    ant-system berlin52.tsp --target-cutoff 1.10 --optimal 7542 --seed 3

Exit codes:
    0  success
    2  unreadable/malformed problem or coincident cities
    3  invalid configuration
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, TextIO

from ant_system import ConfigurationError, DegenerateGeometryError, InputError
from tsp_runner.control_plane.solver_service import SolverService
from tsp_runner.problem.loader import load_problem
from tsp_runner.shared.models import (
    ColonyConfig,
    IterationRecord,
    RunSummary,
    TerminationMode,
)

logger = logging.getLogger(__name__)

EXIT_INPUT_ERROR = 2
EXIT_CONFIGURATION_ERROR = 3

_DEFAULTS = ColonyConfig()


def build_argparser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    p = argparse.ArgumentParser(
        prog="ant-system",
        description="Ant System for two-dimensional Euclidean TSPLIB instances.",
    )
    p.add_argument("problem", help="Path to a TSPLIB file (EUC_2D, NODE_COORD_SECTION)")

    aco = p.add_argument_group("Ant System parameters")
    aco.add_argument("--ants", type=int, default=_DEFAULTS.n_ants, help="Number of ants")
    aco.add_argument("--alpha", type=float, default=_DEFAULTS.alpha, help="Pheromone exponent")
    aco.add_argument("--beta", type=float, default=_DEFAULTS.beta, help="Inverse-distance exponent")
    aco.add_argument("--rho", type=float, default=_DEFAULTS.evaporation_rate, help="Evaporation rate (0..1)")
    aco.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")
    aco.add_argument("--workers", type=int, default=1, help="Threads for tour construction")

    stop = p.add_argument_group("Termination")
    stop.add_argument(
        "--iterations", type=int, default=_DEFAULTS.n_iterations,
        help="Fixed number of iterations (ignored with --target-cutoff)",
    )
    stop.add_argument(
        "--target-cutoff", type=float, default=None,
        help="Stop once best/optimal drops below this ratio (requires --optimal)",
    )
    stop.add_argument("--optimal", type=float, default=None, help="Known optimal tour length")

    out = p.add_argument_group("Output")
    out.add_argument("--quiet", action="store_true", help="Do not print per-iteration lines")
    out.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return p


def config_from_args(args: argparse.Namespace) -> ColonyConfig:
    """Map parsed flags onto a ColonyConfig. --target-cutoff selects cutoff mode."""
    mode = (
        TerminationMode.TARGET_CUTOFF
        if args.target_cutoff is not None
        else TerminationMode.FIXED_ITERATIONS
    )
    return ColonyConfig(
        n_ants=args.ants,
        alpha=args.alpha,
        beta=args.beta,
        evaporation_rate=args.rho,
        termination=mode,
        n_iterations=args.iterations,
        target_cutoff_ratio=args.target_cutoff,
        known_optimal_length=args.optimal,
        seed=args.seed,
        max_workers=args.workers,
    )


def print_summary(summary: RunSummary, config: ColonyConfig, stream: TextIO) -> None:
    result = summary.result
    print(file=stream)
    if result.target_reached:
        print(
            f"Target cutoff {config.target_cutoff_ratio}x greater than optimal reached. "
            f"Occurred at iteration {result.iterations_run}.",
            file=stream,
        )
    print(f"Best overall tour: {result.best_length:.2f}", file=stream)
    print(f"Found at iteration: {result.best_iteration} of {result.iterations_run}", file=stream)
    if summary.ratio_to_optimal is not None:
        print(f"Ratio to optimal: {summary.ratio_to_optimal:.4f}", file=stream)
    print("Tour: " + " ".join(str(c) for c in result.best_tour), file=stream)
    print(f"Execution time: {summary.elapsed_sec:.3f} seconds", file=stream)


def main(argv: Optional[List[str]] = None, stream: Optional[TextIO] = None) -> int:
    """Entry point for the `ant-system` console script."""
    stream = stream or sys.stdout
    args = build_argparser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    def _progress(record: IterationRecord) -> None:
        print(
            f"Best tour in iteration {record.iteration}: "
            f"{record.iteration_best_length:.2f}",
            file=stream,
        )

    service = SolverService(on_iteration=None if args.quiet else _progress)

    try:
        config = config_from_args(args)
        problem = load_problem(args.problem)
        print(f"Running Ant System on {problem.name} ({problem.dimension} cities)", file=stream)
        summary = service.solve(problem, config)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIGURATION_ERROR
    except (InputError, DegenerateGeometryError) as exc:
        logger.error("Invalid problem %s: %s", args.problem, exc)
        return EXIT_INPUT_ERROR

    print_summary(summary, config, stream)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
