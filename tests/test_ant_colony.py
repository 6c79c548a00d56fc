"""
tests/test_ant_colony.py
────────────────────────
Ant and Colony test suite.

Reading guide
─────────────
Group 1 — roulette_wheel
    The selection rule in isolation: first cumulative weight ≥ r, and the
    last-city floor when rounding never reaches r.

Group 2 — Ant construction
    Tours are permutations, path_length equals the leg sum, personal best
    never increases, fixed generators reproduce tours.

Group 3 — Configuration and input errors
    ConfigurationError, InputError, DegenerateGeometryError are raised
    during initialisation.

Group 4 — Colony integration
    Unit-square scenarios, termination modes, best-so-far monotonicity,
    pheromone invariants after every iteration, reproducibility across
    worker counts, lifecycle states.
"""

from __future__ import annotations

import math
from types import SimpleNamespace

import numpy as np
import pytest

import ant_system.colony as colony_module
from ant_system import (
    Ant,
    Colony,
    ColonyState,
    ConfigurationError,
    DegenerateGeometryError,
    DesirabilityTable,
    DistanceTable,
    InputError,
    PheromoneField,
    roulette_wheel,
)
from tsp_runner.shared.models import City, ColonyConfig, TerminationMode

CROSSING = 2.0 + 2.0 * math.sqrt(2.0)


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS — fixture factories
# ─────────────────────────────────────────────────────────────────────────────

def _square():
    return [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0)]


def _random_coords(n: int = 12, seed: int = 5):
    return np.random.default_rng(seed).uniform(0.0, 100.0, size=(n, 2))


def _config(**overrides) -> ColonyConfig:
    """ColonyConfig with small, fast defaults. Tests override what they test."""
    values = dict(
        n_ants=5,
        alpha=1.0,
        beta=2.0,
        evaporation_rate=0.5,
        termination=TerminationMode.FIXED_ITERATIONS,
        n_iterations=10,
        seed=1234,
    )
    values.update(overrides)
    return ColonyConfig(**values)


def _table(coords, alpha: float = 1.0, beta: float = 2.0, n_ants: int = 5) -> DesirabilityTable:
    distances = DistanceTable(coords)
    field = PheromoneField(distances.n_cities)
    field.seed(distances, n_ants, np.random.default_rng(0))
    return DesirabilityTable.from_field(field, distances, alpha, beta)


def _assert_permutation(tour, n: int) -> None:
    assert len(tour) == n, f"tour has {len(tour)} cities, expected {n}"
    assert sorted(tour) == list(range(n)), f"tour is not a permutation: {tour}"


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 1 — roulette_wheel
# ─────────────────────────────────────────────────────────────────────────────

class TestRouletteWheel:

    def test_first_cumulative_at_or_above_r(self):
        """
        weights [1, 1, 2] → cumulative [0.25, 0.5, 1.0].
        r = 0.0 → 0, r = 0.3 → 1, r = 0.5 → 1 (≥ is inclusive), r = 0.6 → 2.
        """
        w = np.array([1.0, 1.0, 2.0])
        assert roulette_wheel(w, 0.0) == 0
        assert roulette_wheel(w, 0.3) == 1
        assert roulette_wheel(w, 0.5) == 1
        assert roulette_wheel(w, 0.6) == 2

    def test_zero_weight_entries_are_skipped(self):
        w = np.array([0.0, 3.0, 0.0, 1.0])
        assert roulette_wheel(w, 0.1) == 1
        assert roulette_wheel(w, 0.74) == 1
        assert roulette_wheel(w, 0.76) == 3

    def test_last_city_floor(self):
        """
        r just below 1.0 with ten equal weights: whether or not the rounded
        cumulative sum reaches r, the last position is returned and the
        index never runs past the end.
        """
        w = np.full(10, 0.1)
        assert roulette_wheel(w, float(np.nextafter(1.0, 0.0))) == 9

    def test_single_candidate(self):
        assert roulette_wheel(np.array([2.5]), 0.99) == 0

    def test_deterministic(self):
        w = np.random.default_rng(3).uniform(0.0, 1.0, size=20)
        picks = [roulette_wheel(w, r) for r in np.linspace(0.0, 0.999, 50)]
        again = [roulette_wheel(w, r) for r in np.linspace(0.0, 0.999, 50)]
        assert picks == again
        assert picks == sorted(picks), "larger r must never select an earlier city"


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 2 — Ant construction
# ─────────────────────────────────────────────────────────────────────────────

class TestAnt:

    def test_reset_state(self):
        ant = Ant(6, np.random.default_rng(0))
        ant.reset()
        assert ant.tour == [ant.start_city]
        assert ant.current_city == ant.start_city
        assert ant.path_length == 0.0
        assert 0 <= ant.start_city < 6
        assert list(ant.remaining()) == [c for c in range(6) if c != ant.start_city]

    def test_tour_is_permutation_and_length_matches(self):
        coords = _random_coords(15)
        table = _table(coords)
        ant = Ant(15, np.random.default_rng(7))
        ant.reset()
        length = ant.construct(table)

        _assert_permutation(ant.tour, 15)
        assert ant.tour[0] == ant.start_city
        assert np.isclose(length, table.distances.tour_length(ant.tour))
        assert np.isclose(ant.path_length, length)
        assert ant.is_complete

    def test_legs_include_closing_leg(self):
        table = _table(_square())
        ant = Ant(4, np.random.default_rng(1))
        ant.reset()
        ant.construct(table)
        legs = list(ant.legs())
        assert len(legs) == 4
        assert legs[-1] == (ant.tour[-1], ant.start_city)
        d = table.distances
        assert np.isclose(sum(d[a, b] for a, b in legs), ant.path_length)

    def test_best_length_non_increasing(self):
        table = _table(_random_coords(10))
        ant = Ant(10, np.random.default_rng(2))
        previous = float("inf")
        for _ in range(15):
            ant.reset()
            length = ant.construct(table)
            assert ant.best_length <= previous
            assert ant.best_length <= length
            previous = ant.best_length

    def test_same_generator_same_tour(self):
        table = _table(_random_coords(20))
        a = Ant(20, np.random.default_rng(99))
        b = Ant(20, np.random.default_rng(99))
        for _ in range(3):
            a.reset()
            b.reset()
            a.construct(table)
            b.construct(table)
            assert a.tour == b.tour
            assert a.path_length == b.path_length

    def test_construct_requires_reset(self):
        table = _table(_square())
        ant = Ant(4, np.random.default_rng(0))
        with pytest.raises(RuntimeError):
            ant.construct(table)
        ant.reset()
        ant.construct(table)
        with pytest.raises(RuntimeError):
            ant.construct(table)

    def test_all_zero_weights_fall_back_to_uniform_pick(self):
        """An unseeded (all-zero) field gives zero weights; tours still complete."""
        distances = DistanceTable(_random_coords(8))
        table = DesirabilityTable.from_field(PheromoneField(8), distances, 1.0, 2.0)
        assert np.all(table.weights == 0.0)

        ant = Ant(8, np.random.default_rng(4))
        ant.reset()
        ant.construct(table)
        _assert_permutation(ant.tour, 8)

    def test_overflowed_weight_is_always_taken(self):
        """
        A +inf weight (huge β on a tiny leg) dominates every finite weight:
        an ant standing on city 0 must move to city 2, never to city 1.
        """
        distances = DistanceTable([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)])
        weights = np.array([
            [0.0, 1.0, np.inf],
            [1.0, 0.0, 1.0],
            [1.0, 1.0, 0.0],
        ])
        table = SimpleNamespace(distances=distances, row=lambda city: weights[city])

        ant = Ant(3, np.random.default_rng(6))
        trials = 0
        for _ in range(60):
            ant.reset()
            ant.construct(table)
            _assert_permutation(ant.tour, 3)
            if ant.start_city == 0:
                trials += 1
                assert ant.tour[1] == 2
        assert trials > 0

    def test_strong_preference_is_followed(self):
        """
        Cities 0, 1 close together and 2, 3 far away. With β = 10 the
        weight of the short leg dwarfs the others, so an ant starting at 0
        moves to 1 essentially always.
        """
        coords = [(0.0, 0.0), (0.1, 0.0), (50.0, 0.0), (50.0, 50.0)]
        table = _table(coords, alpha=1.0, beta=10.0)
        rng = np.random.default_rng(8)
        ant = Ant(4, rng)
        hits = 0
        trials = 0
        for _ in range(200):
            ant.reset()
            if ant.start_city != 0:
                continue
            ant.construct(table)
            trials += 1
            hits += ant.tour[1] == 1
        assert trials > 0
        assert hits == trials


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 3 — Configuration and input errors
# ─────────────────────────────────────────────────────────────────────────────

class TestInitialisationErrors:

    def test_non_positive_ants(self):
        with pytest.raises(ConfigurationError) as info:
            Colony(_square(), _config(n_ants=0))
        assert info.value.field == "n_ants"

    def test_fixed_mode_without_iterations(self):
        with pytest.raises(ConfigurationError) as info:
            Colony(_square(), _config(n_iterations=None))
        assert info.value.field == "n_iterations"

    def test_fixed_mode_zero_iterations(self):
        with pytest.raises(ConfigurationError):
            Colony(_square(), _config(n_iterations=0))

    def test_cutoff_mode_without_ratio(self):
        cfg = _config(termination=TerminationMode.TARGET_CUTOFF, known_optimal_length=4.0)
        with pytest.raises(ConfigurationError) as info:
            Colony(_square(), cfg)
        assert info.value.field == "target_cutoff_ratio"

    def test_cutoff_mode_without_optimum(self):
        cfg = _config(termination=TerminationMode.TARGET_CUTOFF, target_cutoff_ratio=1.5)
        with pytest.raises(ConfigurationError) as info:
            Colony(_square(), cfg)
        assert info.value.field == "known_optimal_length"

    def test_invalid_worker_count(self):
        with pytest.raises(ConfigurationError):
            Colony(_square(), _config(max_workers=0))

    def test_single_city_is_input_error(self):
        with pytest.raises(InputError):
            Colony([(1.0, 2.0)], _config())

    def test_malformed_coordinates_are_input_error(self):
        with pytest.raises(InputError):
            Colony([(1.0, 2.0, 3.0), (4.0, 5.0, 6.0)], _config())

    def test_duplicate_coordinates_raise_before_desirability(self, monkeypatch):
        """
        Two identical cities must be reported as DegenerateGeometryError
        before any desirability table is created.
        """
        def _must_not_run(*args, **kwargs):
            raise AssertionError("desirability computed for degenerate input")

        monkeypatch.setattr(colony_module, "DesirabilityTable", _must_not_run)
        coords = [(0.0, 0.0), (3.0, 4.0), (0.0, 0.0), (5.0, 5.0)]
        with pytest.raises(DegenerateGeometryError) as info:
            Colony(coords, _config())
        assert info.value.pairs == [(0, 2)]


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 4 — Colony integration
# ─────────────────────────────────────────────────────────────────────────────

class TestColonyScenarios:

    def test_unit_square_one_iteration(self):
        """
        5 ants, α=1, β=2, ρ=0.5, one fixed iteration on the unit square.
        Best overall must be no worse than the crossing tour 2 + 2√2 and
        no better than the optimum 4.0.
        """
        colony = Colony(_square(), _config(n_iterations=1))
        result = colony.run()

        assert result.iterations_run == 1
        assert result.best_length <= CROSSING + 1e-9
        assert result.best_length >= 4.0 - 1e-9
        assert result.best_iteration == 1
        _assert_permutation(result.best_tour, 4)
        assert colony.state == ColonyState.TERMINATED

    def test_unit_square_target_cutoff_stops_at_first_iteration(self):
        """
        optimum 4.0, ratio 1.5 → any tour ≤ 6.0 qualifies. Every tour on the
        square is ≤ 2 + 2√2 ≈ 4.83, so the run stops after iteration 1.
        """
        cfg = _config(
            termination=TerminationMode.TARGET_CUTOFF,
            target_cutoff_ratio=1.5,
            known_optimal_length=4.0,
            n_iterations=None,
        )
        result = Colony(_square(), cfg).run()

        assert result.iterations_run == 1
        assert result.target_reached is True
        assert result.best_length / 4.0 < 1.5

    def test_target_cutoff_ignores_iteration_counter(self):
        """n_iterations=1 is present but irrelevant in cutoff mode."""
        coords = _random_coords(8, seed=21)
        distances = DistanceTable(coords)
        generous = distances.tour_length(list(range(8))) * 10.0
        cfg = _config(
            termination=TerminationMode.TARGET_CUTOFF,
            target_cutoff_ratio=1.0,
            known_optimal_length=generous,
            n_iterations=1,
        )
        result = Colony(coords, cfg).run()
        assert result.target_reached
        assert result.iterations_run >= 1

    def test_fixed_iterations_runs_exactly_n(self):
        result = Colony(_random_coords(10), _config(n_iterations=7)).run()
        assert result.iterations_run == 7
        assert len(result.history) == 7
        assert result.target_reached is False

    def test_best_tour_matches_best_length(self):
        coords = _random_coords(14)
        colony = Colony(coords, _config(n_iterations=15))
        result = colony.run()
        _assert_permutation(result.best_tour, 14)
        assert np.isclose(colony.distances.tour_length(result.best_tour), result.best_length)
        assert result.best_length == min(result.history)
        assert result.history[result.best_iteration - 1] == result.best_length

    def test_best_overall_non_increasing(self):
        colony = Colony(_random_coords(12), _config(n_iterations=25))
        previous = float("inf")
        for record in colony.iterate():
            assert record.best_length <= previous
            assert record.best_length <= record.iteration_best_length
            previous = record.best_length

    def test_iteration_records_are_numbered(self):
        records = list(Colony(_square(), _config(n_iterations=4)).iterate())
        assert [r.iteration for r in records] == [1, 2, 3, 4]

    def test_pheromone_invariants_after_every_iteration(self):
        colony = Colony(_random_coords(9), _config(n_iterations=10))
        for _ in colony.iterate():
            m = colony.pheromone.snapshot()
            assert np.allclose(m, m.T)
            assert np.all(m >= 0.0)
            assert np.all(np.diag(m) == 0.0)
            for ant in colony.ants:
                _assert_permutation(ant.tour, 9)
                assert np.isclose(ant.path_length, colony.distances.tour_length(ant.tour))

    def test_initial_pheromone_baseline(self):
        colony = Colony(_random_coords(10), _config(n_ants=8))
        m = colony.pheromone.snapshot()
        off = m[~np.eye(10, dtype=bool)]
        assert np.allclose(off, 8 / colony.seed_tour_length)

    def test_ant_personal_bests_bound_colony_best(self):
        colony = Colony(_random_coords(10), _config(n_iterations=8))
        result = colony.run()
        assert result.best_length == min(ant.best_length for ant in colony.ants)

    def test_accepts_city_models(self):
        cities = [City(index=i, x=x, y=y) for i, (x, y) in enumerate(_square())]
        result = Colony(cities, _config(n_iterations=2)).run()
        assert result.best_length >= 4.0 - 1e-9

    def test_duplicate_city_index_is_input_error(self):
        cities = [
            City(index=0, x=0.0, y=0.0),
            City(index=0, x=1.0, y=0.0),
            City(index=5, x=1.0, y=1.0),
        ]
        with pytest.raises(InputError, match="indices"):
            Colony(cities, _config())

    def test_gap_in_city_indices_is_input_error(self):
        cities = [City(index=i, x=x, y=y) for i, (x, y) in zip((0, 1, 2, 4), _square())]
        with pytest.raises(InputError):
            Colony(cities, _config())

    def test_city_models_in_any_order(self):
        cities = [City(index=i, x=x, y=y) for i, (x, y) in enumerate(_square())]
        colony = Colony(list(reversed(cities)), _config(n_iterations=1))
        assert np.array_equal(colony.distances.coordinates, np.array(_square()))

    def test_finds_optimum_on_small_circle(self):
        """Eight points on a circle: Ant System finds the polygon quickly."""
        angles = np.linspace(0.0, 2.0 * np.pi, 8, endpoint=False)
        coords = np.column_stack([np.cos(angles), np.sin(angles)])
        polygon = 8 * 2.0 * math.sin(math.pi / 8)
        result = Colony(coords, _config(n_ants=10, n_iterations=30, beta=3.0)).run()
        assert np.isclose(result.best_length, polygon)


class TestColonyReproducibility:

    def test_same_seed_same_result(self):
        coords = _random_coords(12)
        a = Colony(coords, _config(n_iterations=10, seed=42)).run()
        b = Colony(coords, _config(n_iterations=10, seed=42)).run()
        assert a.history == b.history
        assert a.best_tour == b.best_tour

    def test_thread_pool_matches_sequential(self):
        """Per-ant generators make the worker count irrelevant to the result."""
        coords = _random_coords(12)
        sequential = Colony(coords, _config(n_iterations=6, seed=5)).run()
        threaded = Colony(coords, _config(n_iterations=6, seed=5, max_workers=4)).run()
        assert sequential.history == threaded.history
        assert sequential.best_tour == threaded.best_tour


    def test_one_thread_pool_per_run(self, monkeypatch):
        """Parallel construction reuses one pool for the whole run and releases it."""
        created = []
        real_pool = colony_module.ThreadPoolExecutor

        class _CountingPool(real_pool):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                created.append(self)

        monkeypatch.setattr(colony_module, "ThreadPoolExecutor", _CountingPool)
        colony = Colony(_random_coords(8), _config(n_iterations=5, max_workers=3))
        colony.run()

        assert len(created) == 1
        assert created[0]._shutdown
        assert colony.state == ColonyState.TERMINATED

    def test_close_releases_pool_of_abandoned_run(self, monkeypatch):
        created = []
        real_pool = colony_module.ThreadPoolExecutor

        class _CountingPool(real_pool):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                created.append(self)

        monkeypatch.setattr(colony_module, "ThreadPoolExecutor", _CountingPool)
        colony = Colony(_random_coords(8), _config(n_iterations=10, max_workers=2))
        colony.step()
        colony.step()
        colony.close()

        assert len(created) == 1
        assert created[0]._shutdown
        colony.step()
        assert len(created) == 2
        colony.close()

    def test_sequential_run_starts_no_pool(self, monkeypatch):
        def _must_not_run(*args, **kwargs):
            raise AssertionError("thread pool started for max_workers=1")

        monkeypatch.setattr(colony_module, "ThreadPoolExecutor", _must_not_run)
        Colony(_square(), _config(n_iterations=3)).run()


class TestColonyLifecycle:

    def test_states(self):
        colony = Colony(_square(), _config(n_iterations=2))
        assert colony.state == ColonyState.INITIALIZING
        colony.step()
        assert colony.state == ColonyState.ITERATING
        colony.step()
        assert colony.state == ColonyState.TERMINATED

    def test_step_after_termination_raises(self):
        colony = Colony(_square(), _config(n_iterations=1))
        colony.run()
        with pytest.raises(RuntimeError):
            colony.step()

    def test_run_is_idempotent_once_terminated(self):
        colony = Colony(_random_coords(8), _config(n_iterations=3))
        first = colony.run()
        snapshot = colony.pheromone.snapshot()
        second = colony.run()
        assert first == second
        assert np.array_equal(colony.pheromone.snapshot(), snapshot)

    def test_default_config(self):
        colony = Colony(_square())
        assert colony.config.n_ants == 20
        assert len(colony.ants) == 20

    def test_repr(self):
        assert "state=initializing" in repr(Colony(_square(), _config()))
