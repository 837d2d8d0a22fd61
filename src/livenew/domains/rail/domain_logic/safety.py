"""Safety assessment and panic mode.

Panic is the highest-priority invariant of the engine: whenever it is on,
movement is ``None`` and nutrition is narrowed to the ``simple`` group.
It is applied before the rule pipeline and re-asserted after it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Literal

from livenew.domains.rail.content.models import ContentItem
from livenew.domains.rail.domain_logic.rail_models import CheckIn, Selection

logger = logging.getLogger(__name__)

SafetyLevel = Literal["ok", "caution", "block"]

VERY_LOW_SLEEP_MAX = 2
BLOCK_STRESS_MIN = 7
CAUTION_STRESS_MIN = 9

SIMPLE_TAG = "simple"
PANIC_RATIONALE = "Safety first: movement is paused today. Take the smallest safe step."


@dataclass(frozen=True)
class SafetyAssessment:
    level: SafetyLevel = "ok"
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def blocks_movement(self) -> bool:
        return self.level == "block"


def evaluate_safety(check_in: CheckIn) -> SafetyAssessment:
    """Grade the check-in.

    block:   panic, or very low sleep together with high stress
    caution: very low sleep, or very high stress
    """
    reasons: list[str] = []
    very_low_sleep = check_in.sleep_quality <= VERY_LOW_SLEEP_MAX
    if check_in.panic:
        reasons.append("panic")
    if very_low_sleep:
        reasons.append("very_low_sleep")
    if check_in.stress >= CAUTION_STRESS_MIN:
        reasons.append("very_high_stress")

    level: SafetyLevel = "ok"
    if check_in.panic or (very_low_sleep and check_in.stress >= BLOCK_STRESS_MIN):
        level = "block"
    elif very_low_sleep or check_in.stress >= CAUTION_STRESS_MIN:
        level = "caution"
    return SafetyAssessment(level=level, reasons=tuple(reasons))


def is_panic(check_in: CheckIn, panic_mode: bool = False) -> bool:
    """Panic from the check-in's safety flag or an explicit request flag."""
    return bool(check_in.panic or panic_mode)


def simple_nutrition(pool: Sequence[ContentItem]) -> ContentItem | None:
    """First ``simple`` item by id, else the first item by id."""
    simple = [item for item in pool if item.has_tag(SIMPLE_TAG)]
    candidates = sorted(simple or pool, key=lambda item: item.id)
    return candidates[0] if candidates else None


def enforce_panic(selection: Selection, nutrition_pool: Sequence[ContentItem]) -> Selection:
    """Drop movement and narrow nutrition to the simple group."""
    nutrition = selection.nutrition
    if nutrition is None or not nutrition.has_tag(SIMPLE_TAG):
        nutrition = simple_nutrition(nutrition_pool) or nutrition
    if selection.movement is not None:
        logger.info("Panic mode: removing movement %s", selection.movement.id)
    return replace(selection, movement=None, nutrition=nutrition)
