"""Day contract builder: scoring -> profile -> filters -> selector -> rules.

``build_day_contract`` is the single entry point the outer layers call.
It is pure: the same request, library index, parameters and policy always
produce a byte-identical contract and the same ``inputHash``.

The input hash covers, joined with ``|``::

    userId, dateKey, timezone, dayBoundaryHour,
    stress, sleep, energy, timeMin, panic (1/0),
    selected reset/movement/nutrition ids, lastQuickSignal,
    prior day-state ids, prior lastQuickSignal,
    week-seed ids, priorProfile,
    stable_stringify(normalized constraints), libVersion,
    stable_stringify(normalized overrides), recovery debt,
    stable_stringify(recent novelty groups), completed reset (1/0)

History enters through what it feeds the rules (recovery debt and the
novelty groups), so an unrelated history edit keeps the hash.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from livenew.core.config.env_policy import EnvPolicy, policy_for_mode
from livenew.core.hashing.canonical import hash_parts, stable_stringify
from livenew.domains.rail.content.index import LibraryIndex
from livenew.domains.rail.content.models import ContentItem
from livenew.domains.rail.domain_logic.filters import (
    EligiblePools,
    build_eligible_pools,
    recent_novelty_groups,
)
from livenew.domains.rail.domain_logic.normalize import (
    normalize_check_in,
    normalize_constraints,
    normalize_day_state,
    normalize_history,
    normalize_overrides,
    normalize_week_seed_entry,
)
from livenew.domains.rail.domain_logic.parameters import Parameters, apply_params_override
from livenew.domains.rail.domain_logic.pipeline import RuleContext, initial_draft, run_pipeline
from livenew.domains.rail.domain_logic.profiles import StressProfile, assign_stress_profile
from livenew.domains.rail.domain_logic.rail_models import (
    PROFILE_LABELS,
    CheckIn,
    Constraints,
    DayState,
    PlanOverrides,
    RailHistory,
    Scores,
    Selection,
    WeekSeedEntry,
)
from livenew.domains.rail.domain_logic.rules import normalize_applied_rules
from livenew.domains.rail.domain_logic.safety import (
    PANIC_RATIONALE,
    enforce_panic,
    evaluate_safety,
    is_panic,
)
from livenew.domains.rail.domain_logic.scoring import compute_recovery_debt
from livenew.domains.rail.domain_logic.selector import choose, seed_base, slot_seed

logger = logging.getLogger(__name__)

RESET_COMPLETED_EVENT = "reset_completed"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanRequest:
    """Everything that determines one day's contract."""

    user_id: str
    date_key: str
    check_in: CheckIn = field(default_factory=CheckIn)
    constraints: Constraints = field(default_factory=Constraints)
    timezone: str = ""
    day_boundary_hour: int | None = None
    day_state: DayState | None = None
    week_seed: WeekSeedEntry | None = None
    prior_profile: str | None = None
    lib_version: str | None = None
    panic_mode: bool = False
    overrides: PlanOverrides = field(default_factory=PlanOverrides)
    history: RailHistory = field(default_factory=RailHistory)
    events_today: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanRequest:
        """Parse a camelCase wire request. Garbage fields degrade to defaults."""
        data = data if isinstance(data, dict) else {}
        baseline = data.get("baseline") if isinstance(data.get("baseline"), dict) else {}
        constraints_raw = baseline.get("constraints", data.get("constraints"))
        date_key = str(data.get("dateKey") or data.get("dateISO") or "")

        boundary = data.get("dayBoundaryHour")
        if isinstance(boundary, bool) or not isinstance(boundary, int):
            boundary = None

        prior = data.get("priorProfile")
        events = data.get("eventsToday") if isinstance(data.get("eventsToday"), list) else []

        return cls(
            user_id=str(data.get("userId") or ""),
            date_key=date_key,
            check_in=normalize_check_in(data.get("checkIn", data.get("latestCheckin"))),
            constraints=normalize_constraints(constraints_raw),
            timezone=str(data.get("timezone") or ""),
            day_boundary_hour=boundary,
            day_state=normalize_day_state(data.get("dayState")),
            week_seed=normalize_week_seed_entry(data.get("weekSeed"), date_key),
            prior_profile=prior if prior in PROFILE_LABELS else None,
            lib_version=str(data["libVersion"]) if data.get("libVersion") else None,
            panic_mode=bool(data.get("panicMode")),
            overrides=normalize_overrides(
                data.get("overrides"),
                busy_days=baseline.get("busyDays"),
                upstream_rules=data.get("upstreamRules"),
            ),
            history=normalize_history(data.get("recentDays"), data.get("recentCheckIns")),
            events_today=tuple(
                str(e.get("type")) for e in events if isinstance(e, dict) and e.get("type")
            ),
        )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DayContract:
    date_key: str
    profile: str
    scores: Scores
    panic_mode: bool
    reset: ContentItem | None
    movement: ContentItem | None
    nutrition: ContentItem | None
    rationale: tuple[str, ...]
    input_hash: str
    completed_reset: bool = False
    applied_rules: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateKey": self.date_key,
            "profile": self.profile,
            "scores": self.scores.to_dict(),
            "panicMode": self.panic_mode,
            "reset": self.reset.summary() if self.reset else None,
            "movement": self.movement.summary() if self.movement else None,
            "nutrition": self.nutrition.summary() if self.nutrition else None,
            "rationale": list(self.rationale),
            "meta": {
                "inputHash": self.input_hash,
                "completed": {"reset": self.completed_reset},
                "appliedRules": list(self.applied_rules),
            },
        }

    def to_json(self) -> str:
        """Compact JSON with a fixed key order."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class DayPlan:
    """Builder result: the contract plus the day state to persist."""

    contract: DayContract
    day_state: DayState
    focus: str
    stress_profile: StressProfile


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def compute_input_hash(
    request: PlanRequest,
    selection: DayState,
    lib_version: str,
    panic: bool,
    *,
    recovery_debt: int = 0,
    recent_groups: dict[str, frozenset[str]] | None = None,
    completed_reset: bool = False,
) -> str:
    prior = request.day_state or DayState()
    week = request.week_seed or WeekSeedEntry()
    check_in = request.check_in
    groups = {kind: sorted(names) for kind, names in (recent_groups or {}).items()}
    parts = [
        request.user_id,
        request.date_key,
        request.timezone,
        "" if request.day_boundary_hour is None else str(request.day_boundary_hour),
        str(check_in.stress),
        str(check_in.sleep_quality),
        str(check_in.energy),
        str(check_in.time_available_min),
        "1" if panic else "0",
        *selection.hash_parts(),
        *prior.hash_parts(),
        *week.hash_parts(),
        request.prior_profile or "",
        stable_stringify(request.constraints.to_dict()),
        lib_version,
        stable_stringify(request.overrides.to_dict()),
        str(recovery_debt),
        stable_stringify(groups),
        "1" if completed_reset else "0",
    ]
    return hash_parts(parts)


def _base_selection(
    pools: EligiblePools,
    day_state: DayState | None,
    week_seed: WeekSeedEntry | None,
    base: str,
    movement_gate_open: bool,
    panic: bool,
) -> Selection:
    ds = day_state or DayState()
    ws = week_seed or WeekSeedEntry()
    reset = choose(pools.reset, ds.reset_id, ws.reset_id, slot_seed(base, "reset"))
    nutrition = choose(pools.nutrition, ds.nutrition_id, ws.nutrition_id, slot_seed(base, "nutrition"))
    movement = None
    if not panic:
        movement_seed = slot_seed(base, "movement") if movement_gate_open else None
        movement = choose(pools.movement, ds.movement_id, ws.movement_id, movement_seed).item
    return Selection(
        reset=reset.item,
        movement=movement,
        nutrition=nutrition.item,
        last_quick_signal=ds.last_quick_signal,
    )


def _rationale(
    profile: str,
    focus: str,
    scores: Scores,
    drivers: list[str],
    notes: tuple[str, ...],
    selection: Selection,
    panic: bool,
) -> tuple[str, ...]:
    lines = [
        f"Profile: {profile}",
        f"Focus: {focus}",
        f"Load {scores.load}/100, capacity {scores.capacity}/100.",
        *drivers[:2],
        *notes,
    ]
    if selection.reset is None:
        lines.append("No reset fits your constraints today.")
    if selection.nutrition is None:
        lines.append("No nutrition tip fits your constraints today.")
    if panic:
        lines.append(PANIC_RATIONALE)
    return tuple(lines)


def build_day_contract(
    request: PlanRequest,
    index: LibraryIndex,
    *,
    params: Parameters | None = None,
    policy: EnvPolicy | None = None,
) -> DayPlan:
    """Build today's contract for ``request`` from ``index``.

    Raises:
        UnknownRuleError: an unknown upstream rule name under a non-frozen policy.
    """
    params, overridden = apply_params_override(params or Parameters(), request.overrides.params_override)
    policy = policy or policy_for_mode("internal")
    lib_version = request.lib_version or index.version
    check_in = request.check_in
    day_state = None if request.overrides.rail_reset else request.day_state

    stress_profile = assign_stress_profile(
        check_in,
        thresholds=params.profile_thresholds,
        prior_profile=request.prior_profile,
        hysteresis=params.hysteresis,
    )
    scores = stress_profile.scores
    panic = is_panic(check_in, request.panic_mode)
    safety = evaluate_safety(replace(check_in, panic=panic))

    recent_groups = recent_novelty_groups(
        request.history.days, request.date_key, index, params.novelty_window_days,
    )
    keep_ids = frozenset(i for i in (day_state.ids() if day_state else ()) if i)
    pools = build_eligible_pools(
        index,
        request.constraints,
        check_in,
        scores=scores,
        profile=stress_profile.profile,
        recent_groups=recent_groups,
        panic=panic,
        keep_ids=keep_ids,
    )

    base = seed_base(
        request.user_id,
        request.date_key,
        stress_profile.profile,
        day_state.last_quick_signal if day_state else None,
        lib_version,
        check_in.signature,
    )
    gate = params.movement_gate
    selection = _base_selection(
        pools,
        day_state,
        request.week_seed,
        base,
        movement_gate_open=scores.capacity >= gate.capacity_min and check_in.time_available_min >= gate.time_min,
        panic=panic,
    )
    if panic:
        selection = enforce_panic(selection, pools.nutrition)

    check_ins = {**request.history.check_ins, request.date_key: check_in}
    recovery_debt = compute_recovery_debt(check_ins, request.date_key, params.recovery_debt)
    ctx = RuleContext(
        index=index,
        pools=pools,
        check_in=check_in,
        constraints=request.constraints,
        stress_profile=stress_profile,
        params=params,
        safety=safety,
        date_key=request.date_key,
        seed_base=base,
        overrides=request.overrides,
        day_state=day_state,
        week_seed=request.week_seed,
        panic=panic,
        recovery_debt=recovery_debt,
        params_overridden=tuple(overridden),
    )
    draft = run_pipeline(initial_draft(ctx, selection), ctx)

    final = draft.selection
    if panic:
        if final.movement is not None:
            logger.error("Rule pipeline produced movement %s in panic mode; removing", final.movement.id)
        final = enforce_panic(final, pools.nutrition)

    applied = normalize_applied_rules([*draft.applied, *request.overrides.upstream_rules], policy)
    state = final.to_day_state()
    completed_reset = RESET_COMPLETED_EVENT in request.events_today
    contract = DayContract(
        date_key=request.date_key,
        profile=draft.profile,
        scores=scores,
        panic_mode=panic,
        reset=final.reset,
        movement=final.movement,
        nutrition=final.nutrition,
        rationale=_rationale(
            draft.profile, draft.focus, scores, stress_profile.drivers, draft.notes, final, panic,
        ),
        input_hash=compute_input_hash(
            request, state, lib_version, panic,
            recovery_debt=recovery_debt, recent_groups=recent_groups, completed_reset=completed_reset,
        ),
        completed_reset=completed_reset,
        applied_rules=tuple(applied),
    )
    logger.debug(
        "Built day contract %s profile=%s rules=%s hash=%s",
        request.date_key, draft.profile, ",".join(applied), contract.input_hash[:12],
    )
    return DayPlan(contract=contract, day_state=state, focus=draft.focus, stress_profile=stress_profile)
