"""Profile classification with hysteresis against the prior day's label.

Decision order (first match wins) is load-bearing: the bands overlap, so
reordering the checks changes outcomes.

    1. sleep <= 4 and load >= 70                  -> Poor Sleep
    2. load >= 70 and capacity <= 40              -> Depleted/Burned Out
    3. load >= 70 and capacity > 40               -> Wired/Overstimulated
    4. load >= 50 and capacity <= 50, energy <= 5 -> Restless/Anxious
    5. otherwise                                  -> Balanced
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from livenew.domains.rail.domain_logic.rail_models import (
    PROFILE_BALANCED,
    PROFILE_DEPLETED,
    PROFILE_LABELS,
    PROFILE_POOR_SLEEP,
    PROFILE_RESTLESS,
    PROFILE_WIRED,
    CheckIn,
    Scores,
)
from livenew.domains.rail.domain_logic.scoring import compute_load_capacity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileThresholds:
    """Decision thresholds. Deployments may override, experiments may not."""

    load_high: int = 70
    capacity_low: int = 40
    load_restless: int = 50
    capacity_restless: int = 50
    sleep_poor_max: int = 4
    energy_low_max: int = 5
    stress_high_min: int = 7
    # Band labels used in rationale and focus decisions
    load_band_high: int = 70
    load_band_medium: int = 40
    capacity_band_high: int = 70
    capacity_band_medium: int = 40


@dataclass(frozen=True)
class HysteresisBands:
    """Tolerance around each decision threshold inside which a prior label sticks.

    The widths are a product decision; see DESIGN.md.
    """

    enabled: bool = True
    load_high: int = 2
    capacity_low: int = 2
    load_restless: int = 3
    capacity_restless: int = 3
    sleep: int = 1
    energy: int = 1


@dataclass
class StressProfile:
    """Classifier output with the reasons behind it."""

    profile: str
    scores: Scores
    load_band: str
    capacity_band: str
    held_prior: bool = False
    drivers: list[str] = field(default_factory=list)


def _near(value: int, target: int, delta: int) -> bool:
    return abs(value - target) <= delta


def should_hold_prior_profile(
    load: int,
    capacity: int,
    sleep: int,
    energy: int,
    thresholds: ProfileThresholds,
    hysteresis: HysteresisBands,
) -> bool:
    """True when any input sits within its band of a decision threshold."""
    if not hysteresis.enabled:
        return False
    t, h = thresholds, hysteresis
    return (
        _near(load, t.load_high, h.load_high)
        or _near(capacity, t.capacity_low, h.capacity_low)
        or _near(load, t.load_restless, h.load_restless)
        or _near(capacity, t.capacity_restless, h.capacity_restless)
        or _near(sleep, t.sleep_poor_max, h.sleep)
        or _near(energy, t.energy_low_max, h.energy)
    )


def classify(load: int, capacity: int, sleep: int, energy: int, thresholds: ProfileThresholds) -> str:
    """Threshold table without hysteresis."""
    t = thresholds
    if sleep <= t.sleep_poor_max and load >= t.load_high:
        return PROFILE_POOR_SLEEP
    if load >= t.load_high and capacity <= t.capacity_low:
        return PROFILE_DEPLETED
    if load >= t.load_high and capacity > t.capacity_low:
        return PROFILE_WIRED
    if load >= t.load_restless and capacity <= t.capacity_restless and energy <= t.energy_low_max:
        return PROFILE_RESTLESS
    return PROFILE_BALANCED


def assign_profile(
    load: int,
    capacity: int,
    sleep: int,
    energy: int,
    prior_profile: str | None = None,
    thresholds: ProfileThresholds | None = None,
    hysteresis: HysteresisBands | None = None,
) -> str:
    """Map scores plus raw sleep/energy to one of the five profile labels.

    An unrecognized ``prior_profile`` is ignored.
    """
    thresholds = thresholds or ProfileThresholds()
    hysteresis = hysteresis or HysteresisBands()
    prior = prior_profile if prior_profile in PROFILE_LABELS else None
    if prior and should_hold_prior_profile(load, capacity, sleep, energy, thresholds, hysteresis):
        return prior
    return classify(load, capacity, sleep, energy, thresholds)


def load_band(load: int, thresholds: ProfileThresholds | None = None) -> str:
    t = thresholds or ProfileThresholds()
    if load >= t.load_band_high:
        return "high"
    if load >= t.load_band_medium:
        return "medium"
    return "low"


def capacity_band(capacity: int, thresholds: ProfileThresholds | None = None) -> str:
    t = thresholds or ProfileThresholds()
    if capacity >= t.capacity_band_high:
        return "high"
    if capacity >= t.capacity_band_medium:
        return "medium"
    return "low"


def _drivers(check_in: CheckIn, scores: Scores, t: ProfileThresholds) -> list[str]:
    drivers: list[str] = []
    if check_in.stress >= t.stress_high_min:
        drivers.append(f"High stress ({check_in.stress}/10)")
    if check_in.sleep_quality <= t.sleep_poor_max:
        drivers.append(f"Poor sleep quality ({check_in.sleep_quality}/10)")
    if check_in.energy <= t.energy_low_max:
        drivers.append(f"Low energy ({check_in.energy}/10)")
    if scores.capacity <= t.capacity_low:
        drivers.append(f"Limited capacity ({scores.capacity}/100)")
    if check_in.time_available_min <= 10:
        drivers.append(f"Short time window ({check_in.time_available_min} min)")
    if not drivers:
        drivers.append("Inputs in a steady range")
    return drivers


def assign_stress_profile(
    check_in: CheckIn,
    thresholds: ProfileThresholds | None = None,
    prior_profile: str | None = None,
    hysteresis: HysteresisBands | None = None,
) -> StressProfile:
    """Score ``check_in`` and classify it, returning bands and drivers."""
    thresholds = thresholds or ProfileThresholds()
    hysteresis = hysteresis or HysteresisBands()
    scores = compute_load_capacity(check_in)
    fresh = classify(scores.load, scores.capacity, check_in.sleep_quality, check_in.energy, thresholds)
    profile = assign_profile(
        scores.load,
        scores.capacity,
        check_in.sleep_quality,
        check_in.energy,
        prior_profile=prior_profile,
        thresholds=thresholds,
        hysteresis=hysteresis,
    )
    held = profile != fresh
    if held:
        logger.debug("Holding prior profile %r near threshold (fresh: %r)", profile, fresh)
    return StressProfile(
        profile=profile,
        scores=scores,
        load_band=load_band(scores.load, thresholds),
        capacity_band=capacity_band(scores.capacity, thresholds),
        held_prior=held,
        drivers=_drivers(check_in, scores, thresholds),
    )
