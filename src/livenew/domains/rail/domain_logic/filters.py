"""Constraint and novelty filtering of library items.

Steps, in order, for each item kind:

1. Injury contraindications (hard). Diet ``avoid_tags`` are also hard for
   movement and nutrition.
2. Movement equipment must match the user's equipment set.
3. Time budget: resets 120..300 s (<= 180 s when time <= 5), movement
   ``duration_min <= time``.
4. Low capacity or a Depleted/Poor Sleep profile keeps only gentle
   (``downshift``/``light``) movement.
5. Time of day: with a morning/midday/evening preference, items whose
   ``ideal_time_of_day`` names another slot are dropped, unless that would
   empty the pool.
6. Novelty: drop items whose novelty group was used recently, unless that
   would empty the pool.

Steps 1-4 may legitimately return an empty pool; the caller reports that
as a missing item rather than relaxing a safety filter.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta

from livenew.domains.rail.content.index import LibraryIndex
from livenew.domains.rail.content.models import (
    CONTENT_KINDS,
    RESET_MAX_SEC,
    RESET_MIN_SEC,
    ContentItem,
    ContentKind,
)
from livenew.domains.rail.domain_logic.rail_models import (
    PROFILE_DEPLETED,
    PROFILE_POOR_SLEEP,
    CheckIn,
    Constraints,
    DayState,
    Scores,
)

logger = logging.getLogger(__name__)

RESET_SHORT_MAX_SEC = 180
SHORT_WINDOW_MIN = 5
LOW_CAPACITY = 40
GENTLE_TAGS = frozenset({"downshift", "light"})
RESTRICTED_PROFILES = frozenset({PROFILE_DEPLETED, PROFILE_POOR_SLEEP})


# ---------------------------------------------------------------------------
# Per-item predicates
# ---------------------------------------------------------------------------

def injury_safe(item: ContentItem, constraints: Constraints) -> bool:
    return not (set(item.contra_tags) & constraints.injury_contra_tags)


def diet_safe(item: ContentItem, constraints: Constraints) -> bool:
    if item.kind == "reset" or not constraints.avoid_tags:
        return True
    return not (set(item.tags) & set(constraints.avoid_tags))


def equipment_allowed(item: ContentItem, constraints: Constraints) -> bool:
    """Items without ``eq:*`` tags always pass; an empty set allows only ``eq:none``."""
    required = item.equipment_tags
    if not required:
        return True
    allowed = constraints.equipment_tags
    if not allowed:
        return "eq:none" in required
    return bool(required & allowed)


def reset_max_seconds(check_in: CheckIn) -> int:
    return RESET_SHORT_MAX_SEC if check_in.time_available_min <= SHORT_WINDOW_MIN else RESET_MAX_SEC


def within_time_budget(item: ContentItem, check_in: CheckIn) -> bool:
    if item.kind == "reset":
        seconds = item.duration_sec or 0
        return RESET_MIN_SEC <= seconds <= reset_max_seconds(check_in)
    if item.kind == "movement":
        return (item.duration_min or 0) <= check_in.time_available_min
    return True


def is_gentle(item: ContentItem) -> bool:
    return bool(set(item.tags) & GENTLE_TAGS)


def suits_time_of_day(item: ContentItem, preference: str) -> bool:
    """Items without ``ideal_time_of_day`` suit every slot."""
    if preference == "any" or not item.ideal_time_of_day:
        return True
    return preference in item.ideal_time_of_day


def movement_restricted(scores: Scores, profile: str) -> bool:
    """Whether only gentle movement is allowed today."""
    return scores.capacity < LOW_CAPACITY or profile in RESTRICTED_PROFILES


def hard_safe(item: ContentItem, constraints: Constraints) -> bool:
    """Checks no later stage may relax: injury, diet and equipment."""
    if not injury_safe(item, constraints) or not diet_safe(item, constraints):
        return False
    return item.kind != "movement" or equipment_allowed(item, constraints)


# ---------------------------------------------------------------------------
# Pool filtering
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterResult:
    """Eligible pool for one kind, sorted by id."""

    pool: tuple[ContentItem, ...]
    novelty_applied: bool = False
    novelty_fallback: bool = False


def eligible(
    items: Iterable[ContentItem],
    constraints: Constraints,
    check_in: CheckIn,
    *,
    scores: Scores,
    profile: str,
    recent_groups: frozenset[str] = frozenset(),
    keep_ids: frozenset[str] = frozenset(),
) -> FilterResult:
    """Apply steps 1-6 to ``items`` (all of one kind).

    ``keep_ids`` are exempt from the novelty step: an item already chosen
    for today is not a repeat of itself.
    """
    pool = [i for i in items if hard_safe(i, constraints)]
    pool = [i for i in pool if within_time_budget(i, check_in)]
    if movement_restricted(scores, profile):
        pool = [i for i in pool if i.kind != "movement" or is_gentle(i)]
    pool.sort(key=lambda i: i.id)

    preferred = [i for i in pool if suits_time_of_day(i, constraints.time_of_day_preference)]
    if preferred:
        pool = preferred

    if not recent_groups or not pool:
        return FilterResult(pool=tuple(pool))

    fresh = [i for i in pool if i.id in keep_ids or i.novelty_group not in recent_groups]
    if not fresh:
        return FilterResult(pool=tuple(pool), novelty_fallback=True)
    return FilterResult(pool=tuple(fresh), novelty_applied=len(fresh) < len(pool))


@dataclass(frozen=True)
class EligiblePools:
    """Eligible pools for all three kinds plus novelty bookkeeping."""

    reset: tuple[ContentItem, ...] = ()
    movement: tuple[ContentItem, ...] = ()
    nutrition: tuple[ContentItem, ...] = ()
    novelty_applied: frozenset[str] = field(default_factory=frozenset)

    def pool(self, kind: ContentKind) -> tuple[ContentItem, ...]:
        if kind == "reset":
            return self.reset
        if kind == "movement":
            return self.movement
        return self.nutrition


def build_eligible_pools(
    index: LibraryIndex,
    constraints: Constraints,
    check_in: CheckIn,
    *,
    scores: Scores,
    profile: str,
    recent_groups: Mapping[str, frozenset[str]] | None = None,
    panic: bool = False,
    keep_ids: frozenset[str] = frozenset(),
) -> EligiblePools:
    """Filter every kind in ``index``. Panic empties the movement pool."""
    recent_groups = recent_groups or {}
    pools: dict[str, tuple[ContentItem, ...]] = {}
    novelty: set[str] = set()
    for kind in CONTENT_KINDS:
        if kind == "movement" and panic:
            pools[kind] = ()
            continue
        result = eligible(
            index.items(kind),
            constraints,
            check_in,
            scores=scores,
            profile=profile,
            recent_groups=recent_groups.get(kind, frozenset()),
            keep_ids=keep_ids,
        )
        pools[kind] = result.pool
        if result.novelty_applied:
            novelty.add(kind)
        if not result.pool:
            logger.info("No eligible %s items for this check-in", kind)
    return EligiblePools(
        reset=pools["reset"],
        movement=pools["movement"],
        nutrition=pools["nutrition"],
        novelty_applied=frozenset(novelty),
    )


# ---------------------------------------------------------------------------
# Novelty history
# ---------------------------------------------------------------------------

def recent_novelty_groups(
    days: Mapping[str, DayState],
    date_key: str,
    index: LibraryIndex,
    window_days: int = 2,
) -> dict[str, frozenset[str]]:
    """Novelty groups selected in the ``window_days`` days before ``date_key``."""
    empty = {kind: frozenset() for kind in CONTENT_KINDS}
    if window_days <= 0 or not days:
        return empty
    try:
        today = date.fromisoformat(date_key)
    except (TypeError, ValueError):
        logger.debug("Unparseable date key %r, skipping novelty history", date_key)
        return empty

    window = {(today - timedelta(days=n)).isoformat() for n in range(1, window_days + 1)}
    groups: dict[str, set[str]] = {kind: set() for kind in CONTENT_KINDS}
    for day_key in sorted(window & set(days)):
        state = days[day_key]
        for kind, item_id in zip(CONTENT_KINDS, state.ids()):
            group = index.novelty_group_of(kind, item_id)
            if group:
                groups[kind].add(group)
    return {kind: frozenset(found) for kind, found in groups.items()}
