"""Rule pipeline: named overlays applied to a base draft in canonical order.

Each overlay takes the current ``Draft`` and the read-only ``RuleContext``
and returns a new ``Draft``. When an overlay changes something it records
its rule name (and usually a rationale note). Overlays only narrow the
plan: re-selection always happens inside the already-eligible pools, and
movement is never added back once removed.

Order of application (``OVERLAYS``) matches ``RULES_ORDER``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from livenew.domains.rail.content.index import LibraryIndex
from livenew.domains.rail.content.models import MAX_INTENSITY, RESET_MAX_SEC, ContentItem, ContentKind
from livenew.domains.rail.domain_logic.filters import (
    RESET_SHORT_MAX_SEC,
    SHORT_WINDOW_MIN,
    EligiblePools,
    is_gentle,
    movement_restricted,
)
from livenew.domains.rail.domain_logic.parameters import Parameters
from livenew.domains.rail.domain_logic.profiles import StressProfile
from livenew.domains.rail.domain_logic.quick_signal import transform_selection
from livenew.domains.rail.domain_logic.rail_models import (
    FOCUS_DOWNSHIFT,
    FOCUS_REBUILD,
    FOCUS_STABILIZE,
    FOCUSES,
    PROFILE_BALANCED,
    PROFILE_DEPLETED,
    PROFILE_LABELS,
    PROFILE_POOR_SLEEP,
    PROFILE_WIRED,
    QUICK_SIGNALS,
    CheckIn,
    Constraints,
    DayState,
    PlanOverrides,
    Scores,
    Selection,
    WeekSeedEntry,
)
from livenew.domains.rail.domain_logic.safety import SafetyAssessment, simple_nutrition
from livenew.domains.rail.domain_logic.selector import choose, slot_seed

logger = logging.getLogger(__name__)

DOWNSHIFT_INTENSITY_CAP = 4
BUSY_DAY_TIME_CAP = 15
SHORT_DAY_TIME_MAX = 10
POOR_SLEEP_INTENSITY_CAP = 3
WIRED_INTENSITY_CAP = 4
DEPLETED_INTENSITY_CAP = 4
DEPLETED_MOVEMENT_MAX_MIN = 15
BAD_DAY_INTENSITY_CAP = 2
BAD_DAY_TIME_CAP = 10
EMERGENCY_INTENSITY_CAP = 2
FEEDBACK_TIME_STEP = 5
FEEDBACK_TIME_FLOOR = 5


# ---------------------------------------------------------------------------
# Draft and context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Draft:
    """The plan as it moves through the overlays."""

    profile: str
    focus: str
    time_min: int
    intensity_cap: int
    selection: Selection
    applied: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()
    movement_allowed: bool = True
    bad_day: bool = False
    # Running limits every later re-pick must honour
    reset_max_sec: int = RESET_MAX_SEC
    reset_tags: tuple[str, ...] = ()
    gentle_only: bool = False

    @property
    def reset_limit(self) -> int:
        """Longest reset allowed so far; only ever shrinks."""
        return min(self.reset_max_sec, _reset_limit(self.time_min))


@dataclass(frozen=True)
class RuleContext:
    """Read-only inputs shared by every overlay."""

    index: LibraryIndex
    pools: EligiblePools
    check_in: CheckIn
    constraints: Constraints
    stress_profile: StressProfile
    params: Parameters
    safety: SafetyAssessment
    date_key: str
    seed_base: str
    overrides: PlanOverrides = field(default_factory=PlanOverrides)
    day_state: DayState | None = None
    week_seed: WeekSeedEntry | None = None
    panic: bool = False
    recovery_debt: int = 0
    params_overridden: tuple[str, ...] = ()

    @property
    def scores(self) -> Scores:
        return self.stress_profile.scores

    def continuity_ids(self, kind: ContentKind) -> tuple[str | None, str | None]:
        attr = f"{kind}_id"
        day_id = getattr(self.day_state, attr) if self.day_state else None
        week_id = getattr(self.week_seed, attr) if self.week_seed else None
        return day_id, week_id


def focus_from_profile(profile: str, capacity: int, rebuild_capacity_min: int = 65) -> str:
    if profile in (PROFILE_WIRED, PROFILE_POOR_SLEEP):
        return FOCUS_DOWNSHIFT
    if profile == PROFILE_BALANCED and capacity >= rebuild_capacity_min:
        return FOCUS_REBUILD
    return FOCUS_STABILIZE


def initial_draft(ctx: RuleContext, selection: Selection) -> Draft:
    """Draft before any overlay: profile focus, full time, default cap."""
    profile = ctx.stress_profile.profile
    focus = focus_from_profile(profile, ctx.scores.capacity, ctx.params.focus_bias.rebuild_capacity_min)
    return Draft(
        profile=profile,
        focus=focus,
        time_min=ctx.check_in.time_available_min,
        intensity_cap=_cap_for_focus(focus, MAX_INTENSITY),
        selection=selection,
        movement_allowed=not ctx.panic,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _cap_for_focus(focus: str, cap: int) -> int:
    return min(cap, DOWNSHIFT_INTENSITY_CAP) if focus == FOCUS_DOWNSHIFT else cap


def _fire(draft: Draft, name: str, note: str | None = None) -> Draft:
    notes = draft.notes + (note,) if note and note not in draft.notes else draft.notes
    return replace(draft, applied=draft.applied + (name,), notes=notes)


def _current(draft: Draft, kind: ContentKind) -> ContentItem | None:
    return getattr(draft.selection, kind)


def _with(draft: Draft, kind: ContentKind, item: ContentItem | None) -> Draft:
    return replace(draft, selection=replace(draft.selection, **{kind: item}))


def _reset_limit(time_min: int) -> int:
    return RESET_SHORT_MAX_SEC if time_min <= SHORT_WINDOW_MIN else RESET_MAX_SEC


def _movement_fits(item: ContentItem, draft: Draft) -> bool:
    if draft.gentle_only and not is_gentle(item):
        return False
    if draft.bad_day and not item.has_tag("downshift"):
        return False
    return (item.intensity or 0) <= draft.intensity_cap and (item.duration_min or 0) <= draft.time_min


def _fits(draft: Draft, kind: ContentKind, item: ContentItem) -> bool:
    """Today's running limits for ``kind``."""
    if kind == "reset":
        return (item.duration_sec or 0) <= draft.reset_limit and all(item.has_tag(t) for t in draft.reset_tags)
    if kind == "movement":
        return _movement_fits(item, draft)
    return True


def _carried_over(ctx: RuleContext, kind: ContentKind, item: ContentItem) -> bool:
    day_id, _ = ctx.continuity_ids(kind)
    return item.id == day_id and any(i.id == day_id for i in ctx.pools.pool(kind))


Predicate = Callable[[ContentItem], bool]


def _reselect(
    draft: Draft,
    ctx: RuleContext,
    kind: ContentKind,
    prefer: Predicate | None = None,
    *,
    require: Predicate | None = None,
) -> ContentItem | None:
    """Re-pick ``kind`` inside the eligible pool and the draft's limits.

    ``require`` is hard (safety, an explicit request). ``prefer`` is soft:
    the item carried over from ``dayState`` keeps its slot while it still
    passes the limits and ``require``. Both are ANDed with the draft's
    running reset and movement limits, so no overlay can undo an earlier
    narrowing. Re-picks follow the usual continuity order; if nothing
    qualifies the current item is kept. Movement is never added.
    """
    current = _current(draft, kind)
    if kind == "movement" and (current is None or ctx.panic or not draft.movement_allowed):
        return None

    def allowed(item: ContentItem) -> bool:
        return _fits(draft, kind, item) and (require is None or require(item))

    current_ok = current is not None and allowed(current)
    if current_ok and (prefer is None or prefer(current) or _carried_over(ctx, kind, current)):
        return current

    pool = [item for item in ctx.pools.pool(kind) if allowed(item)]
    preferred = [item for item in pool if prefer is None or prefer(item)]
    candidates = preferred or ([] if current_ok else pool)
    if not candidates:
        return current

    day_id, week_id = ctx.continuity_ids(kind)
    return choose(candidates, day_id, week_id, slot_seed(ctx.seed_base, kind)).item


def _refocus(draft: Draft, ctx: RuleContext) -> Draft:
    """Prefer items tagged with the draft's focus (rebuild resets use stabilize)."""
    reset_tag = FOCUS_STABILIZE if draft.focus == FOCUS_REBUILD else draft.focus
    draft = _with(draft, "reset", _reselect(draft, ctx, "reset", lambda i: i.has_tag(reset_tag)))
    draft = _with(draft, "nutrition", _reselect(draft, ctx, "nutrition", lambda i: i.has_tag(draft.focus)))
    return draft


# ---------------------------------------------------------------------------
# Overlays
# ---------------------------------------------------------------------------

def profile_override(draft: Draft, ctx: RuleContext) -> Draft:
    label = ctx.overrides.profile_override
    if label not in PROFILE_LABELS or label == draft.profile:
        return draft
    focus = focus_from_profile(label, ctx.scores.capacity, ctx.params.focus_bias.rebuild_capacity_min)
    draft = replace(draft, profile=label, focus=focus, intensity_cap=_cap_for_focus(focus, draft.intensity_cap))
    if movement_restricted(ctx.scores, label):
        draft = replace(draft, gentle_only=True)
        draft = _with(draft, "movement", _reselect(draft, ctx, "movement"))
        current = _current(draft, "movement")
        if current is not None and not is_gentle(current):
            draft = _with(draft, "movement", None)
    return _fire(_refocus(draft, ctx), "profile_override", "Adjusted: profile override")


def busy_day(draft: Draft, ctx: RuleContext) -> Draft:
    if ctx.date_key not in ctx.overrides.busy_days:
        return draft
    draft = replace(draft, time_min=min(draft.time_min, BUSY_DAY_TIME_CAP))
    return _fire(draft, "busy_day", "Busy day -> shorter plan")


def keep_focus(draft: Draft, ctx: RuleContext) -> Draft:
    bias = ctx.overrides.focus_bias
    if bias not in FOCUSES:
        return draft
    focus = bias
    if bias == FOCUS_REBUILD and ctx.stress_profile.load_band == "high":
        focus = FOCUS_STABILIZE
    draft = replace(draft, focus=focus, intensity_cap=_cap_for_focus(focus, draft.intensity_cap))
    return _fire(_refocus(draft, ctx), "keep_focus", "Adjusted: focus bias")


def time_min_constraint(draft: Draft, ctx: RuleContext) -> Draft:
    if draft.time_min > SHORT_DAY_TIME_MAX:
        return draft
    draft = replace(draft, reset_max_sec=min(draft.reset_max_sec, RESET_SHORT_MAX_SEC))
    draft = _with(draft, "reset", _reselect(draft, ctx, "reset"))
    draft = _with(draft, "movement", _reselect(draft, ctx, "movement"))
    return _fire(draft, "time_min_constraint", "Short window today, keep it simple.")


def poor_sleep_constraint(draft: Draft, ctx: RuleContext) -> Draft:
    if draft.profile != PROFILE_POOR_SLEEP:
        return draft
    draft = replace(
        draft,
        focus=FOCUS_DOWNSHIFT,
        intensity_cap=min(draft.intensity_cap, POOR_SLEEP_INTENSITY_CAP),
    )
    draft = _with(draft, "reset", _reselect(
        draft, ctx, "reset", lambda i: i.has_tag("sleep") or i.has_tag("downshift"),
    ))
    return _fire(draft, "poor_sleep_constraint", "Poor sleep: gentler plan and a wind-down reset")


def wired_constraint(draft: Draft, ctx: RuleContext) -> Draft:
    if draft.profile != PROFILE_WIRED:
        return draft
    draft = replace(
        draft,
        focus=FOCUS_DOWNSHIFT,
        intensity_cap=min(draft.intensity_cap, WIRED_INTENSITY_CAP),
    )
    draft = _with(draft, "reset", _reselect(
        draft, ctx, "reset",
        lambda i: i.has_tag("downshift") and (i.duration_sec or 0) <= RESET_SHORT_MAX_SEC,
    ))
    return _fire(draft, "wired_constraint", "Wired: short downshift first")


def depleted_constraint(draft: Draft, ctx: RuleContext) -> Draft:
    if draft.profile != PROFILE_DEPLETED:
        return draft
    draft = replace(
        draft,
        intensity_cap=min(draft.intensity_cap, DEPLETED_INTENSITY_CAP),
        time_min=min(draft.time_min, DEPLETED_MOVEMENT_MAX_MIN),
    )
    draft = _with(draft, "movement", _reselect(draft, ctx, "movement"))
    return _fire(draft, "depleted_constraint", "Depleted: keep movement short and easy")


def recovery_debt_bias(draft: Draft, ctx: RuleContext) -> Draft:
    debt = ctx.recovery_debt
    bias = ctx.params.focus_bias
    if debt >= bias.recovery_debt_bias_high:
        if draft.focus == FOCUS_DOWNSHIFT and draft.intensity_cap <= DOWNSHIFT_INTENSITY_CAP:
            return _fire(draft, "recovery_debt_bias", f"Recovery debt {debt}: downshift")
        draft = replace(draft, focus=FOCUS_DOWNSHIFT, intensity_cap=_cap_for_focus(FOCUS_DOWNSHIFT, draft.intensity_cap))
        return _fire(_refocus(draft, ctx), "recovery_debt_bias", f"Recovery debt {debt}: downshift")
    if debt >= bias.recovery_debt_bias_low and draft.focus == FOCUS_REBUILD:
        draft = replace(draft, focus=FOCUS_STABILIZE)
        return _fire(_refocus(draft, ctx), "recovery_debt_bias", f"Recovery debt {debt}: stabilize")
    return draft


def signal_override(draft: Draft, ctx: RuleContext) -> Draft:
    signal = draft.selection.last_quick_signal
    if signal not in QUICK_SIGNALS:
        return draft
    if signal in ("stressed", "exhausted"):
        draft = replace(draft, focus=FOCUS_DOWNSHIFT, intensity_cap=_cap_for_focus(FOCUS_DOWNSHIFT, draft.intensity_cap))
    elif signal == "ten_minutes":
        draft = replace(draft, time_min=min(draft.time_min, SHORT_DAY_TIME_MAX))
    adapted = transform_selection(
        signal,
        draft.selection,
        scores=ctx.scores,
        constraints=ctx.constraints,
        index=ctx.index,
        time_min=draft.time_min,
        panic=ctx.panic or not draft.movement_allowed,
        more_energy_capacity_min=ctx.params.movement_gate.more_energy_capacity_min,
    )
    draft = replace(draft, selection=adapted)
    return _fire(draft, "signal_override", f"Adjusted: {signal.replace('_', ' ')} signal")


def feedback_modifier(draft: Draft, ctx: RuleContext) -> Draft:
    feedback = ctx.overrides.feedback
    if feedback == "too_hard":
        draft = replace(draft, intensity_cap=max(1, draft.intensity_cap - 1))
        return _fire(draft, "feedback_modifier", "Adjusted: easier after feedback")
    if feedback == "too_long":
        draft = replace(draft, time_min=max(FEEDBACK_TIME_FLOOR, draft.time_min - FEEDBACK_TIME_STEP))
        return _fire(draft, "feedback_modifier", "Adjusted: shorter after feedback")
    return draft


def reset_focus_override(draft: Draft, ctx: RuleContext) -> Draft:
    tag = ctx.overrides.reset_focus_tag
    if not tag or not any(item.has_tag(tag) for item in ctx.pools.reset):
        return draft
    draft = _with(draft, "reset", _reselect(draft, ctx, "reset", require=lambda i: i.has_tag(tag)))
    return _fire(draft, "reset_focus_override", f"Adjusted: {tag} reset")


def bad_day_mode(draft: Draft, ctx: RuleContext) -> Draft:
    if not ctx.overrides.bad_day_mode:
        return draft
    draft = replace(
        draft,
        focus=FOCUS_DOWNSHIFT,
        intensity_cap=min(draft.intensity_cap, BAD_DAY_INTENSITY_CAP),
        time_min=min(draft.time_min, BAD_DAY_TIME_CAP),
        bad_day=True,
    )
    resets = [i for i in ctx.pools.reset if _fits(draft, "reset", i)] or list(ctx.pools.reset)
    resets = [i for i in resets if i.has_tag("downshift")] or resets
    if resets:
        draft = _with(draft, "reset", min(resets, key=lambda i: (i.duration_sec or 0, i.id)))
    draft = _with(draft, "nutrition", simple_nutrition(ctx.pools.nutrition) or _current(draft, "nutrition"))
    draft = _with(draft, "movement", _reselect(draft, ctx, "movement"))
    return _fire(draft, "bad_day_mode", "Adjusted: bad day mode")


def novelty_avoidance(draft: Draft, ctx: RuleContext) -> Draft:
    if not ctx.pools.novelty_applied:
        return draft
    return _fire(draft, "novelty_avoidance", "Skipped recently used items")


def safety_block(draft: Draft, ctx: RuleContext) -> Draft:
    if not ctx.safety.blocks_movement:
        return draft
    draft = replace(draft, movement_allowed=False)
    draft = _with(draft, "movement", None)
    return _fire(draft, "safety_block", "Safety: movement paused today")


def emergency_downshift(draft: Draft, ctx: RuleContext) -> Draft:
    if ctx.safety.level != "caution":
        return draft
    draft = replace(
        draft,
        focus=FOCUS_DOWNSHIFT,
        intensity_cap=min(draft.intensity_cap, EMERGENCY_INTENSITY_CAP),
    )
    if not draft.bad_day:
        draft = _with(draft, "reset", _reselect(draft, ctx, "reset", require=lambda i: i.has_tag("downshift")))
        current = _current(draft, "reset")
        if current is not None and current.has_tag("downshift") and "downshift" not in draft.reset_tags:
            draft = replace(draft, reset_tags=draft.reset_tags + ("downshift",))
    return _fire(draft, "emergency_downshift", "Safety: downshift only")


def quality_gate(draft: Draft, ctx: RuleContext) -> Draft:
    """Final fit check: movement within cap and time, reset within time."""
    reset = _current(draft, "reset")
    if reset is not None and not _fits(draft, "reset", reset):
        draft = _with(draft, "reset", _reselect(draft, ctx, "reset"))

    movement = _current(draft, "movement")
    if movement is None or _movement_fits(movement, draft):
        return draft
    replacement = _reselect(draft, ctx, "movement")
    if replacement is not None and _movement_fits(replacement, draft):
        return _fire(_with(draft, "movement", replacement), "quality_gate")
    return _fire(_with(draft, "movement", None), "quality_gate_fallback", "No movement fits today's limits")


def _pack_score(item: ContentItem, weights: dict[str, int]) -> int:
    return sum(weights.get(tag, 0) for tag in item.tags)


def experiment_pack(draft: Draft, ctx: RuleContext) -> Draft:
    pack_id = ctx.overrides.experiment_pack
    pack = ctx.params.content_packs.get(pack_id) if pack_id else None
    if pack is None:
        return draft
    if draft.bad_day or ctx.panic:
        return _fire(draft, "experiment_pack")

    for kind in ("reset", "nutrition"):
        weights = pack.weights_for(kind)
        current = _current(draft, kind)
        if not weights or current is None:
            continue
        limit = current.duration_sec or 0
        candidates = [
            item for item in ctx.pools.pool(kind)
            if _fits(draft, kind, item) and (kind != "reset" or (item.duration_sec or 0) <= limit)
        ]
        best = max((_pack_score(item, weights) for item in candidates), default=0)
        if best > 0 and _pack_score(current, weights) < best:
            top = {item.id for item in candidates if _pack_score(item, weights) == best}
            draft = _with(draft, kind, _reselect(draft, ctx, kind, require=lambda i, top=top: i.id in top))
    return _fire(draft, "experiment_pack", f"Content pack: {pack_id}")


def params_override(draft: Draft, ctx: RuleContext) -> Draft:
    if not ctx.params_overridden:
        return draft
    return _fire(draft, "params_override")


def rail_reset(draft: Draft, ctx: RuleContext) -> Draft:
    if not ctx.overrides.rail_reset:
        return draft
    return _fire(draft, "rail_reset", "Plan rebuilt from scratch")


Overlay = Callable[[Draft, RuleContext], Draft]

OVERLAYS: tuple[Overlay, ...] = (
    profile_override,
    busy_day,
    keep_focus,
    time_min_constraint,
    poor_sleep_constraint,
    wired_constraint,
    depleted_constraint,
    recovery_debt_bias,
    signal_override,
    feedback_modifier,
    reset_focus_override,
    bad_day_mode,
    novelty_avoidance,
    safety_block,
    emergency_downshift,
    quality_gate,
    experiment_pack,
    params_override,
    rail_reset,
)


def run_pipeline(draft: Draft, ctx: RuleContext) -> Draft:
    """Apply every overlay in canonical order."""
    for overlay in OVERLAYS:
        draft = overlay(draft, ctx)
    if draft.applied:
        logger.debug("Rules fired: %s", ", ".join(draft.applied))
    return draft
