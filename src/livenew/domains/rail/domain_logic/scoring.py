"""Deterministic load/capacity scoring and recovery debt.

All functions are pure and total. Inputs are normalized CheckIn values,
so no clamping of raw wire data happens here.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass

from livenew.domains.rail.domain_logic.rail_models import CheckIn, Scores

SCORE_MIN = 0
SCORE_MAX = 100


def round10(value: float) -> int:
    """Scale a 0-10 value to 0-100, rounding half up."""
    return math.floor(value * 10 + 0.5)


def _clamp_score(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, value))


def compute_load_capacity(check_in: CheckIn) -> Scores:
    """Compute bounded load and capacity scores.

    load     = round10((stress + (10 - sleep) + (10 - energy)) / 3)
    capacity = round10((energy + sleep + time_min / 60 * 10) / 3)

    Higher stress, poorer sleep or lower energy raise ``load``; more time,
    energy or sleep raise ``capacity``.
    """
    stress = check_in.stress
    sleep = check_in.sleep_quality
    energy = check_in.energy
    time_min = check_in.time_available_min

    load = round10((stress + (10 - sleep) + (10 - energy)) / 3)
    capacity = round10((energy + sleep + time_min / 60 * 10) / 3)
    return Scores(load=_clamp_score(load), capacity=_clamp_score(capacity))


# ---------------------------------------------------------------------------
# Recovery debt
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecoveryDebtWeights:
    """How hard days accumulate into debt and easy days pay it back."""

    window_days: int = 7
    decay_per_day: int = 2
    stress_high_min: int = 7
    stress_low_max: int = 4
    sleep_low_max: int = 5
    sleep_high_min: int = 7
    stress_weight: int = 4
    sleep_weight: int = 4
    good_day_bonus: int = 4
    max_debt: int = 100


def compute_recovery_debt(
    check_ins: Mapping[str, CheckIn],
    date_key: str,
    weights: RecoveryDebtWeights | None = None,
) -> int:
    """Accumulated recovery debt (0..max_debt) up to and including ``date_key``.

    Walks the last ``window_days`` dated check-ins oldest first. Each day
    first decays the running debt, then adds stress and sleep penalties;
    a low-stress, well-slept day pays some of it back.
    """
    w = weights or RecoveryDebtWeights()
    if not check_ins:
        return 0

    dates = sorted(d for d in check_ins if d <= date_key)
    recent = dates[-w.window_days:] if w.window_days > 0 else []

    debt = 0
    for day in recent:
        debt = max(0, debt - w.decay_per_day)
        check_in = check_ins[day]
        stress = check_in.stress
        sleep = check_in.sleep_quality
        if stress >= w.stress_high_min:
            debt += (stress - (w.stress_high_min - 1)) * w.stress_weight
        if sleep <= w.sleep_low_max:
            debt += ((w.sleep_low_max + 1) - sleep) * w.sleep_weight
        if stress <= w.stress_low_max and sleep >= w.sleep_high_min:
            debt = max(0, debt - w.good_day_bonus)

    return min(w.max_debt, max(0, debt))
