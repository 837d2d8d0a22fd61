"""Tests for load/capacity scoring and recovery debt."""

from __future__ import annotations

import itertools

from livenew.domains.rail.domain_logic.rail_models import CheckIn
from livenew.domains.rail.domain_logic.scoring import (
    RecoveryDebtWeights,
    compute_load_capacity,
    compute_recovery_debt,
    round10,
)


class TestRound10:
    def test_half_up(self):
        assert round10(3.5) == 35
        assert round10(4.25) == 43
        assert round10(0.25) == 3

    def test_whole_numbers(self):
        assert round10(5) == 50
        assert round10(0) == 0


class TestLoadCapacity:
    def test_reference_check_in(self):
        scores = compute_load_capacity(CheckIn(stress=5, sleep_quality=5, energy=5, time_available_min=10))
        assert (scores.load, scores.capacity) == (50, 39)

    def test_depleted_example(self):
        scores = compute_load_capacity(CheckIn(stress=9, sleep_quality=5, energy=2, time_available_min=10))
        assert (scores.load, scores.capacity) == (73, 29)

    def test_bounds_over_input_grid(self):
        values = (1, 5, 10)
        for stress, sleep, energy, time_min in itertools.product(values, values, values, (5, 30, 60)):
            scores = compute_load_capacity(CheckIn(stress, sleep, energy, time_min))
            assert 0 <= scores.load <= 100
            assert 0 <= scores.capacity <= 100

    def test_more_stress_raises_load(self):
        low = compute_load_capacity(CheckIn(stress=3))
        high = compute_load_capacity(CheckIn(stress=8))
        assert high.load > low.load
        assert high.capacity == low.capacity

    def test_more_time_raises_capacity(self):
        short = compute_load_capacity(CheckIn(time_available_min=5))
        long = compute_load_capacity(CheckIn(time_available_min=60))
        assert long.capacity > short.capacity
        assert long.load == short.load


class TestRecoveryDebt:
    def test_no_history(self):
        assert compute_recovery_debt({}, "2026-10-19") == 0

    def test_hard_day_accumulates(self):
        check_ins = {"2026-10-19": CheckIn(stress=9, sleep_quality=3)}
        # stress (9 - 6) * 4 + sleep (6 - 3) * 4
        assert compute_recovery_debt(check_ins, "2026-10-19") == 24

    def test_decay_and_good_day(self):
        check_ins = {
            "2026-10-17": CheckIn(stress=9, sleep_quality=3),
            "2026-10-18": CheckIn(stress=3, sleep_quality=8),
        }
        # 24, then decay 2 and a good-day bonus of 4
        assert compute_recovery_debt(check_ins, "2026-10-18") == 18

    def test_ignores_future_dates(self):
        check_ins = {"2026-10-20": CheckIn(stress=10, sleep_quality=1)}
        assert compute_recovery_debt(check_ins, "2026-10-19") == 0

    def test_window_limits_days(self):
        check_ins = {f"2026-10-{d:02d}": CheckIn(stress=10, sleep_quality=1) for d in range(1, 20)}
        weights = RecoveryDebtWeights(window_days=1)
        # one day: (10 - 6) * 4 + (6 - 1) * 4
        assert compute_recovery_debt(check_ins, "2026-10-19", weights) == 36

    def test_capped(self):
        check_ins = {f"2026-10-{d:02d}": CheckIn(stress=10, sleep_quality=1) for d in range(10, 20)}
        assert compute_recovery_debt(check_ins, "2026-10-19") == 100
