"""Quick-signal adapter: one-tap hints that can only reduce today's demand.

Guards:
    * a reset is only ever replaced by one no longer than the current one;
    * movement is only kept or removed, except ``more_energy`` which may add
      a light movement when there is none and capacity allows it;
    * every candidate respects injury, diet and equipment constraints;
    * applying a signal to its own output changes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from livenew.domains.rail.content.index import LibraryIndex
from livenew.domains.rail.content.models import RESET_MAX_SEC, RESET_MIN_SEC, ContentItem
from livenew.domains.rail.domain_logic.filters import hard_safe
from livenew.domains.rail.domain_logic.rail_models import (
    QUICK_SIGNALS,
    Constraints,
    DayState,
    Scores,
    Selection,
)
from livenew.domains.rail.domain_logic.safety import SIMPLE_TAG, simple_nutrition

logger = logging.getLogger(__name__)

DOWNSHIFT_TAG = "downshift"
LIGHT_TAG = "light"
MORE_ENERGY_CAPACITY_MIN = 70
STRESSED_KEEP_MOVEMENT_CAPACITY_MIN = 70


def _safe_resets(index: LibraryIndex, constraints: Constraints) -> list[ContentItem]:
    return [
        item for item in index.items("reset")
        if hard_safe(item, constraints)
        and RESET_MIN_SEC <= (item.duration_sec or 0) <= RESET_MAX_SEC
    ]


def _reset_key(item: ContentItem) -> tuple[int, str]:
    return (item.duration_sec or 0, item.id)


def _no_longer_than(pool: Sequence[ContentItem], current: ContentItem | None) -> list[ContentItem]:
    if current is None:
        return list(pool)
    limit = current.duration_sec or 0
    return [item for item in pool if (item.duration_sec or 0) <= limit]


def _downshift_reset(current: ContentItem | None, pool: Sequence[ContentItem]) -> ContentItem | None:
    """Keep a downshift reset; otherwise the shortest downshift one allowed."""
    if current is not None and current.has_tag(DOWNSHIFT_TAG):
        return current
    candidates = [i for i in _no_longer_than(pool, current) if i.has_tag(DOWNSHIFT_TAG)]
    return min(candidates, key=_reset_key) if candidates else current


def _shortest_reset(current: ContentItem | None, pool: Sequence[ContentItem]) -> ContentItem | None:
    candidates = _no_longer_than(pool, current)
    return min(candidates, key=_reset_key) if candidates else current


def _simple_nutrition(current: ContentItem | None, index: LibraryIndex, constraints: Constraints) -> ContentItem | None:
    if current is not None and current.has_tag(SIMPLE_TAG):
        return current
    pool = [item for item in index.items("nutrition") if hard_safe(item, constraints)]
    return simple_nutrition(pool) or current


def _added_movement(
    index: LibraryIndex,
    constraints: Constraints,
    time_min: int | None,
) -> ContentItem | None:
    """A light movement if one fits, else the easiest one that does."""
    pool = [
        item for item in index.items("movement")
        if hard_safe(item, constraints)
        and (time_min is None or (item.duration_min or 0) <= time_min)
    ]
    if not pool:
        return None
    light = [item for item in pool if item.has_tag(LIGHT_TAG)] or pool
    return min(light, key=lambda i: (i.intensity or 0, i.duration_min or 0, i.id))


def transform_selection(
    signal: str,
    selection: Selection,
    *,
    scores: Scores,
    constraints: Constraints,
    index: LibraryIndex,
    time_min: int | None = None,
    panic: bool = False,
    more_energy_capacity_min: int = MORE_ENERGY_CAPACITY_MIN,
) -> Selection:
    """Apply ``signal`` to a resolved selection. Unknown signals are a no-op."""
    if signal not in QUICK_SIGNALS:
        logger.warning("Ignoring unknown quick signal %r", signal)
        return selection

    resets = _safe_resets(index, constraints)
    reset, movement, nutrition = selection.reset, selection.movement, selection.nutrition
    # Unsafe or panic-blocked movement counts as missing before any signal looks at it.
    if panic or (movement is not None and not hard_safe(movement, constraints)):
        movement = None

    if signal == "stressed":
        reset = _downshift_reset(reset, resets)
        if scores.capacity < STRESSED_KEEP_MOVEMENT_CAPACITY_MIN:
            movement = None
    elif signal == "exhausted":
        reset = _downshift_reset(reset, resets)
        movement = None
        nutrition = _simple_nutrition(nutrition, index, constraints)
    elif signal == "ten_minutes":
        reset = _shortest_reset(reset, resets)
        movement = None
        nutrition = _simple_nutrition(nutrition, index, constraints)
    elif signal == "more_energy":
        if movement is None and not panic and scores.capacity >= more_energy_capacity_min:
            movement = _added_movement(index, constraints, time_min)

    return replace(
        selection,
        reset=reset,
        movement=movement,
        nutrition=nutrition,
        last_quick_signal=signal,
    )


def resolve_selection(state: DayState, index: LibraryIndex) -> Selection:
    """Look up a DayState's ids in ``index``; unknown ids resolve to None."""
    return Selection(
        reset=index.get("reset", state.reset_id),
        movement=index.get("movement", state.movement_id),
        nutrition=index.get("nutrition", state.nutrition_id),
        last_quick_signal=state.last_quick_signal,
    )


def apply_quick_signal(
    signal: str,
    selection: DayState,
    scores: Scores,
    profile: str,
    constraints: Constraints,
    index: LibraryIndex,
    *,
    time_min: int | None = None,
    panic: bool = False,
    more_energy_capacity_min: int = MORE_ENERGY_CAPACITY_MIN,
) -> DayState:
    """Apply a quick signal to an already-built day state.

    ``profile`` is carried for logging only; signals never re-run scoring.
    Unknown signals return ``selection`` unchanged.
    """
    if signal not in QUICK_SIGNALS:
        logger.warning("Ignoring unknown quick signal %r", signal)
        return selection

    resolved = resolve_selection(selection, index)
    updated = transform_selection(
        signal,
        resolved,
        scores=scores,
        constraints=constraints,
        index=index,
        time_min=time_min,
        panic=panic,
        more_energy_capacity_min=more_energy_capacity_min,
    )
    result = updated.to_day_state()
    logger.debug("Applied quick signal %s (profile %s): %s -> %s", signal, profile, selection.ids(), result.ids())
    return result