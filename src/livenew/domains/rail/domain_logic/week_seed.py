"""Seven-day seed plan used as the second continuity source for each day."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from livenew.domains.rail.content.index import LibraryIndex
from livenew.domains.rail.domain_logic.filters import build_eligible_pools, recent_novelty_groups
from livenew.domains.rail.domain_logic.parameters import Parameters
from livenew.domains.rail.domain_logic.profiles import assign_stress_profile
from livenew.domains.rail.domain_logic.rail_models import CheckIn, Constraints, DayState, WeekSeedEntry
from livenew.domains.rail.domain_logic.selector import pick_by_seed, slot_seed

logger = logging.getLogger(__name__)

WEEK_DAYS = 7
SEED_CHECK_IN = CheckIn(stress=5, sleep_quality=6, energy=6, time_available_min=20)


def build_week_seed(
    user_id: str,
    start_date_key: str,
    constraints: Constraints,
    index: LibraryIndex,
    *,
    timezone: str = "",
    day_boundary_hour: int | None = None,
    lib_version: str | None = None,
    params: Parameters | None = None,
) -> list[WeekSeedEntry]:
    """Seed one entry per day starting at ``start_date_key``.

    Every day uses the neutral seed check-in, so the profile is the same
    all week; variety comes from the per-day seed and from novelty
    avoidance against the days already seeded.

    Raises:
        ValueError: ``start_date_key`` is not an ISO date.
    """
    params = params or Parameters()
    lib_version = lib_version or index.version
    start = date.fromisoformat(start_date_key)
    stress_profile = assign_stress_profile(
        SEED_CHECK_IN,
        thresholds=params.profile_thresholds,
        hysteresis=params.hysteresis,
    )
    boundary = "" if day_boundary_hour is None else str(day_boundary_hour)

    seeded: dict[str, DayState] = {}
    entries: list[WeekSeedEntry] = []
    for offset in range(WEEK_DAYS):
        date_key = (start + timedelta(days=offset)).isoformat()
        pools = build_eligible_pools(
            index,
            constraints,
            SEED_CHECK_IN,
            scores=stress_profile.scores,
            profile=stress_profile.profile,
            recent_groups=recent_novelty_groups(seeded, date_key, index, params.novelty_window_days),
        )
        base = "|".join([user_id, date_key, stress_profile.profile, timezone, boundary, lib_version])
        reset = pick_by_seed(pools.reset, slot_seed(base, "reset"))
        movement = pick_by_seed(pools.movement, slot_seed(base, "movement"))
        nutrition = pick_by_seed(pools.nutrition, slot_seed(base, "nutrition"))
        entry = WeekSeedEntry(
            date_key=date_key,
            reset_id=reset.id if reset else None,
            movement_id=movement.id if movement else None,
            nutrition_id=nutrition.id if nutrition else None,
        )
        seeded[date_key] = DayState(
            reset_id=entry.reset_id,
            movement_id=entry.movement_id,
            nutrition_id=entry.nutrition_id,
        )
        entries.append(entry)

    logger.debug("Seeded week from %s for profile %s", start_date_key, stress_profile.profile)
    return entries
