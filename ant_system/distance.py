"""
ant_system/distance.py
──────────────────────
The distance table: pairwise Euclidean distances between cities.

Computed once per colony from the city coordinates and never mutated
afterwards. Every other component reads it:

  • PheromoneField.seed()      → nearest-neighbour seeding tour.
  • DesirabilityTable          → η = 1 / d, the heuristic term.
  • Ant.construct()            → accumulates leg lengths.

Matrix layout
─────────────
  Shape : (n_cities, n_cities)
  d[i][j]: straight-line distance between city i and city j.
  d[i][i] = 0, d[i][j] == d[j][i].

The underlying array is marked read-only (``flags.writeable = False``),
so an accidental in-place write raises instead of silently corrupting
every ant's view of the geometry.
"""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

CoordinateInput = Union[NDArray[np.float64], Sequence[Tuple[float, float]]]

MIN_CITIES: int = 2
"""Smallest problem the colony accepts.
With one city there is no leg to walk, the seeding tour has length 0
and the initial pheromone level n_ants / 0 is undefined.
"""


class InputError(Exception):
    """
    Raised when the coordinate source cannot describe a valid problem.

    When is this raised?
        • Coordinates are not an (N, 2) array of finite numbers.
        • Fewer than MIN_CITIES cities were supplied.
        • A problem file declares N cities but provides a different count
          (raised by tsp_runner.problem.loader).

    Fatal: the run never starts, no partial result is produced.
    """
    pass


class DegenerateGeometryError(Exception):
    """
    Raised when two or more cities share identical coordinates.

    A zero off-diagonal distance makes η = 1 / d infinite. Letting that
    propagate would turn whole rows of the desirability table into inf/NaN
    and silently break every probability the ants compute, so it is
    reported as an input problem before the colony starts iterating.

    Attributes:
        pairs: List of (i, j) index pairs (i < j) with zero distance.
    """

    def __init__(self, pairs: Sequence[Tuple[int, int]], message: str = "") -> None:
        self.pairs = list(pairs)
        shown = ", ".join(f"({i}, {j})" for i, j in self.pairs[:5])
        more = f" and {len(self.pairs) - 5} more" if len(self.pairs) > 5 else ""
        default_msg = (
            f"Degenerate geometry: {len(self.pairs)} city pair(s) share "
            f"identical coordinates: {shown}{more}."
        )
        super().__init__(message or default_msg)


class DistanceTable:
    """
    Symmetric (n_cities × n_cities) Euclidean distance matrix.

    Usage:
        table = DistanceTable([(0, 0), (0, 1), (1, 1), (1, 0)])
        table[0, 2]          # → 1.4142...
        table.tour_length([0, 1, 2, 3])   # → 4.0

    Attributes:
        coordinates : NDArray (n_cities, 2) — read-only copy of the input.
        matrix      : NDArray (n_cities, n_cities) — read-only distances.
    """

    def __init__(self, coordinates: CoordinateInput) -> None:
        """
        Build the table from city coordinates.

        Args:
            coordinates: Anything numpy can turn into an (N, 2) float array:
                         a list of (x, y) tuples, a list of City models
                         already unpacked by the caller, or an ndarray.

        Raises:
            InputError: if the input is not (N, 2), contains NaN/inf,
                        or has fewer than MIN_CITIES rows.

        NumPy operation:
            diff = coords[:, None, :] - coords[None, :, :]   # (N, N, 2)
            d    = np.hypot(diff[..., 0], diff[..., 1])

            Broadcasting computes all N² differences in one vectorised step.
            np.hypot gives an exact 0.0 on the diagonal and identical values
            for (i, j) and (j, i), so symmetry holds bit-for-bit.
        """
        try:
            coords = np.array(coordinates, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InputError(f"Coordinates are not numeric: {exc}") from exc

        if coords.ndim != 2 or coords.shape[1] != 2:
            raise InputError(
                f"Coordinates must have shape (n_cities, 2), got {coords.shape}"
            )
        if coords.shape[0] < MIN_CITIES:
            raise InputError(
                f"At least {MIN_CITIES} cities are required, got {coords.shape[0]}"
            )
        if not np.all(np.isfinite(coords)):
            raise InputError("Coordinates contain NaN or infinite values")

        diff = coords[:, None, :] - coords[None, :, :]
        matrix = np.hypot(diff[..., 0], diff[..., 1])

        coords.flags.writeable = False
        matrix.flags.writeable = False
        self._coordinates: NDArray[np.float64] = coords
        self._matrix: NDArray[np.float64] = matrix
        self._n_cities = coords.shape[0]

    @classmethod
    def build(cls, coordinates: CoordinateInput) -> "DistanceTable":
        """Alias constructor: ``DistanceTable.build(coords)``."""
        return cls(coordinates)

    # ── Degenerate-geometry guard ──────────────────────────────────────────────

    def zero_distance_pairs(self) -> list[tuple[int, int]]:
        """Return every (i, j), i < j, whose cities coincide."""
        upper = np.triu(self._matrix == 0.0, k=1)
        return [(int(i), int(j)) for i, j in zip(*np.nonzero(upper))]

    def check_degenerate(self) -> None:
        """
        Raise DegenerateGeometryError if any two cities coincide.

        Called by the Colony during initialisation, before the first
        desirability table is built.
        """
        pairs = self.zero_distance_pairs()
        if pairs:
            raise DegenerateGeometryError(pairs)

    def inverse(self) -> NDArray[np.float64]:
        """
        Return η = 1 / d with a zero diagonal.

        Raises:
            DegenerateGeometryError: if an off-diagonal distance is zero.

        Returns:
            New (n_cities, n_cities) float64 array (safe to modify).
        """
        self.check_degenerate()
        eta = np.zeros_like(self._matrix)
        off_diag = ~np.eye(self._n_cities, dtype=bool)
        eta[off_diag] = 1.0 / self._matrix[off_diag]
        return eta

    # ── Tour helpers ───────────────────────────────────────────────────────────

    def tour_length(self, tour: Sequence[int]) -> float:
        """Length of the closed tour, closing leg included."""
        order = np.asarray(tour, dtype=np.intp)
        if order.size == 0:
            return 0.0
        return float(self._matrix[order, np.roll(order, -1)].sum())

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def matrix(self) -> NDArray[np.float64]:
        """Read-only distance matrix."""
        return self._matrix

    @property
    def coordinates(self) -> NDArray[np.float64]:
        """Read-only (n_cities, 2) coordinate array."""
        return self._coordinates

    @property
    def n_cities(self) -> int:
        return self._n_cities

    def __getitem__(self, key):
        return self._matrix[key]

    def __len__(self) -> int:
        return self._n_cities

    def __repr__(self) -> str:
        return (
            f"DistanceTable(n_cities={self._n_cities}, "
            f"max={self._matrix.max():.4f})"
        )
