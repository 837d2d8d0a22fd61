"""Tests for individual rule overlays and the pipeline order."""

from __future__ import annotations

from dataclasses import replace

import pytest

from livenew.domains.rail.domain_logic.filters import build_eligible_pools, is_gentle
from livenew.domains.rail.domain_logic.parameters import Parameters
from livenew.domains.rail.domain_logic.pipeline import (
    RuleContext,
    busy_day,
    emergency_downshift,
    feedback_modifier,
    focus_from_profile,
    initial_draft,
    keep_focus,
    poor_sleep_constraint,
    quality_gate,
    rail_reset,
    run_pipeline,
    safety_block,
    time_min_constraint,
)
from livenew.domains.rail.domain_logic.profiles import assign_stress_profile
from livenew.domains.rail.domain_logic.rail_models import (
    FOCUS_DOWNSHIFT,
    FOCUS_REBUILD,
    FOCUS_STABILIZE,
    PROFILE_BALANCED,
    PROFILE_DEPLETED,
    PROFILE_POOR_SLEEP,
    PROFILE_RESTLESS,
    PROFILE_WIRED,
    CheckIn,
    Constraints,
    DayState,
    PlanOverrides,
    Selection,
)
from livenew.domains.rail.domain_logic.safety import evaluate_safety


def _context(library, check_in, overrides=None, panic=False):
    stress_profile = assign_stress_profile(check_in)
    pools = build_eligible_pools(
        library, Constraints(), check_in,
        scores=stress_profile.scores, profile=stress_profile.profile, panic=panic,
    )
    return RuleContext(
        index=library,
        pools=pools,
        check_in=check_in,
        constraints=Constraints(),
        stress_profile=stress_profile,
        params=Parameters(),
        safety=evaluate_safety(check_in),
        date_key="2026-10-19",
        seed_base="user-1|2026-10-19",
        overrides=overrides or PlanOverrides(),
        panic=panic,
    )


@pytest.fixture
def calm_selection(library):
    return Selection(
        reset=library.get("reset", "r_orienting_240"),
        movement=library.get("movement", "m_intervals_20"),
        nutrition=library.get("nutrition", "nutrition_steady_fuel"),
    )


class TestFocus:
    @pytest.mark.parametrize(
        ("profile", "capacity", "expected"),
        [
            (PROFILE_WIRED, 80, FOCUS_DOWNSHIFT),
            (PROFILE_POOR_SLEEP, 80, FOCUS_DOWNSHIFT),
            (PROFILE_BALANCED, 65, FOCUS_REBUILD),
            (PROFILE_BALANCED, 64, FOCUS_STABILIZE),
            (PROFILE_DEPLETED, 80, FOCUS_STABILIZE),
            (PROFILE_RESTLESS, 30, FOCUS_STABILIZE),
        ],
    )
    def test_focus_from_profile(self, profile, capacity, expected):
        assert focus_from_profile(profile, capacity) == expected

    def test_initial_draft(self, library, calm_check_in, calm_selection):
        draft = initial_draft(_context(library, calm_check_in), calm_selection)
        assert draft.profile == PROFILE_BALANCED
        assert draft.focus == FOCUS_REBUILD
        assert draft.time_min == 30
        assert draft.intensity_cap == 5
        assert draft.applied == ()


class TestOverlays:
    def test_busy_day(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in, PlanOverrides(busy_days=("2026-10-19",)))
        draft = busy_day(initial_draft(ctx, calm_selection), ctx)
        assert draft.time_min == 15
        assert draft.applied == ("busy_day",)
        assert draft.notes == ("Busy day -> shorter plan",)

    def test_busy_day_other_date(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in, PlanOverrides(busy_days=("2026-10-20",)))
        draft = initial_draft(ctx, calm_selection)
        assert busy_day(draft, ctx) == draft

    def test_keep_focus_rebuild_blocked_by_high_load(self, library, stressed_check_in):
        ctx = _context(library, stressed_check_in, PlanOverrides(focus_bias="rebuild"))
        draft = keep_focus(initial_draft(ctx, Selection()), ctx)
        assert draft.focus == FOCUS_STABILIZE
        assert "keep_focus" in draft.applied

    def test_feedback_too_long(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in, PlanOverrides(feedback="too_long"))
        draft = feedback_modifier(initial_draft(ctx, calm_selection), ctx)
        assert draft.time_min == 25

    def test_feedback_too_hard(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in, PlanOverrides(feedback="too_hard"))
        draft = feedback_modifier(initial_draft(ctx, calm_selection), ctx)
        assert draft.intensity_cap == 4

    def test_safety_block(self, library, calm_selection):
        check_in = CheckIn(stress=8, sleep_quality=2, energy=6, time_available_min=30)
        ctx = _context(library, check_in)
        draft = safety_block(initial_draft(ctx, calm_selection), ctx)
        assert draft.selection.movement is None
        assert draft.movement_allowed is False
        assert draft.applied == ("safety_block",)

    def test_rail_reset(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in, PlanOverrides(rail_reset=True))
        draft = rail_reset(initial_draft(ctx, calm_selection), ctx)
        assert draft.applied == ("rail_reset",)


class TestQualityGate:
    def test_replaces_movement_over_cap(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in)
        draft = replace(initial_draft(ctx, calm_selection), intensity_cap=1)
        result = quality_gate(draft, ctx)
        assert result.applied == ("quality_gate",)
        assert result.selection.movement.intensity == 1

    def test_fallback_removes_movement(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in)
        draft = replace(initial_draft(ctx, calm_selection), intensity_cap=0)
        result = quality_gate(draft, ctx)
        assert result.applied == ("quality_gate_fallback",)
        assert result.selection.movement is None
        assert "No movement fits today's limits" in result.notes

    def test_long_reset_shortened_in_short_window(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in)
        draft = replace(initial_draft(ctx, calm_selection), time_min=5, intensity_cap=5)
        draft = replace(draft, selection=replace(draft.selection, movement=library.get("movement", "m_stretch_5")))
        result = quality_gate(draft, ctx)
        assert result.selection.reset.duration_sec <= 180

    def test_fitting_plan_untouched(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in)
        draft = initial_draft(ctx, calm_selection)
        assert quality_gate(draft, ctx) == draft


class TestRunPipeline:
    def test_calm_day_fires_nothing(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in)
        draft = run_pipeline(initial_draft(ctx, calm_selection), ctx)
        assert draft.applied == ()
        assert draft.selection == calm_selection

    def test_panic_never_adds_movement(self, library, calm_check_in):
        check_in = replace(calm_check_in, panic=True)
        ctx = _context(library, check_in, PlanOverrides(focus_bias="rebuild"), panic=True)
        draft = run_pipeline(initial_draft(ctx, Selection()), ctx)
        assert draft.selection.movement is None
        assert "safety_block" in draft.applied


class TestRunningLimits:
    def test_emergency_downshift_stays_within_short_window(self, library):
        check_in = CheckIn(stress=1, sleep_quality=1, energy=6, time_available_min=10)
        ctx = _context(library, check_in)
        draft = initial_draft(ctx, Selection(reset=library.get("reset", "r_orienting_240")))
        draft = time_min_constraint(draft, ctx)
        assert draft.reset_limit == 180
        draft = emergency_downshift(draft, ctx)
        assert draft.selection.reset.duration_sec <= 180
        assert draft.selection.reset.has_tag("downshift")
        assert draft.reset_tags == ("downshift",)

    def test_preference_keeps_carried_over_reset(self, library, calm_check_in):
        ctx = _context(library, calm_check_in)
        draft = replace(
            initial_draft(ctx, Selection(reset=library.get("reset", "r_orienting_240"))),
            profile=PROFILE_POOR_SLEEP,
        )
        carried = replace(ctx, day_state=DayState(reset_id="r_orienting_240"))
        assert poor_sleep_constraint(draft, carried).selection.reset.id == "r_orienting_240"
        fresh = poor_sleep_constraint(draft, ctx).selection.reset
        assert fresh.has_tag("sleep") or fresh.has_tag("downshift")

    def test_gentle_only_holds_in_quality_gate(self, library, calm_check_in, calm_selection):
        ctx = _context(library, calm_check_in)
        draft = replace(initial_draft(ctx, calm_selection), gentle_only=True)
        result = quality_gate(draft, ctx)
        assert result.applied == ("quality_gate",)
        assert is_gentle(result.selection.movement)
