"""
tsp_runner/problem/loader.py
────────────────────────────
TSPLIB reader for two-dimensional Euclidean instances.

Accepted layout
───────────────
    NAME : berlin52
    COMMENT : 52 locations in Berlin (Groetschel)
    TYPE : TSP
    DIMENSION : 52
    EDGE_WEIGHT_TYPE : EUC_2D
    NODE_COORD_SECTION
    1 565.0 575.0
    2 25.0 185.0
    ...
    EOF

Header keys may use "KEY: value" or "KEY : value". Unknown keys are kept
out of the model and ignored. The node id column is read but not used:
cities are indexed 0..N−1 in file order.

Error contract
──────────────
Every problem with the source raises ant_system.InputError:
  • file missing, unreadable or not valid UTF-8
  • DIMENSION missing or not a positive integer
  • EDGE_WEIGHT_TYPE present and not EUC_2D
  • NODE_COORD_SECTION missing
  • a coordinate line without three fields, or with non-numeric values
  • DIMENSION differs from the number of coordinate lines
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Union

from ant_system.distance import InputError
from tsp_runner.shared.models import City, TSPProblem

logger = logging.getLogger(__name__)

COORD_SECTION = "NODE_COORD_SECTION"
EOF_MARKER = "EOF"
SUPPORTED_EDGE_WEIGHT_TYPES = frozenset({"EUC_2D"})


def _parse_header(line: str) -> tuple[str, str]:
    key, _, value = line.partition(":")
    return key.strip().upper(), value.strip()


def parse_problem(text: str, default_name: str = "problem") -> TSPProblem:
    """
    Parse TSPLIB text into a TSPProblem.

    Args:
        text:         Whole file contents.
        default_name: Used when the NAME header is absent.

    Raises:
        InputError: see module docstring.
    """
    headers: Dict[str, str] = {}
    cities: List[City] = []
    in_section = False

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        if line == EOF_MARKER:
            break

        if not in_section:
            if line.upper().startswith(COORD_SECTION):
                in_section = True
                continue
            key, value = _parse_header(line)
            headers[key] = value
            continue

        parts = line.split()
        if len(parts) < 3:
            raise InputError(
                f"line {lineno}: expected 'id x y', got {line!r}"
            )
        try:
            x, y = float(parts[1]), float(parts[2])
        except ValueError as exc:
            raise InputError(f"line {lineno}: non-numeric coordinate in {line!r}") from exc
        cities.append(City(index=len(cities), x=x, y=y))

    if "DIMENSION" not in headers:
        raise InputError("missing DIMENSION header")
    try:
        dimension = int(headers["DIMENSION"])
    except ValueError as exc:
        raise InputError(f"DIMENSION is not an integer: {headers['DIMENSION']!r}") from exc
    if dimension < 1:
        raise InputError(f"DIMENSION must be positive, got {dimension}")

    edge_type = headers.get("EDGE_WEIGHT_TYPE")
    if edge_type is not None and edge_type.upper() not in SUPPORTED_EDGE_WEIGHT_TYPES:
        raise InputError(
            f"unsupported EDGE_WEIGHT_TYPE {edge_type!r}; only EUC_2D is supported"
        )

    if not in_section:
        raise InputError(f"missing {COORD_SECTION}")
    if len(cities) != dimension:
        raise InputError(
            f"DIMENSION declares {dimension} cities but "
            f"{COORD_SECTION} lists {len(cities)}"
        )

    return TSPProblem(
        name=headers.get("NAME") or default_name,
        dimension=dimension,
        cities=cities,
        comment=headers.get("COMMENT"),
    )


def load_problem(path: Union[str, Path]) -> TSPProblem:
    """
    Read and parse a TSPLIB file.

    Raises:
        InputError: if the file cannot be read or is malformed.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"cannot read problem file {path}: {exc}") from exc

    problem = parse_problem(text, default_name=path.stem)
    logger.debug("Loaded %s: %d cities from %s", problem.name, problem.dimension, path)
    return problem
