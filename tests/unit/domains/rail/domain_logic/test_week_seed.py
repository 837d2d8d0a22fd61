"""Tests for the seven-day seed plan."""

from __future__ import annotations

import pytest

from livenew.domains.rail.domain_logic.rail_models import Constraints
from livenew.domains.rail.domain_logic.week_seed import WEEK_DAYS, build_week_seed


class TestBuildWeekSeed:
    def test_seven_consecutive_days(self, library, default_constraints):
        entries = build_week_seed("user-1", "2026-10-30", default_constraints, library)
        assert len(entries) == WEEK_DAYS
        assert [e.date_key for e in entries] == [
            "2026-10-30", "2026-10-31", "2026-11-01", "2026-11-02",
            "2026-11-03", "2026-11-04", "2026-11-05",
        ]

    def test_every_slot_filled(self, library, default_constraints):
        for entry in build_week_seed("user-1", "2026-10-19", default_constraints, library):
            assert entry.reset_id and entry.movement_id and entry.nutrition_id

    def test_deterministic(self, library, default_constraints):
        first = build_week_seed("user-1", "2026-10-19", default_constraints, library, timezone="UTC")
        second = build_week_seed("user-1", "2026-10-19", default_constraints, library, timezone="UTC")
        assert first == second

    def test_consecutive_resets_vary(self, library, default_constraints):
        entries = build_week_seed("user-1", "2026-10-19", default_constraints, library)
        groups = [library.novelty_group_of("reset", e.reset_id) for e in entries]
        for previous, current in zip(groups, groups[1:]):
            assert previous != current

    def test_respects_injuries(self, library):
        constraints = Constraints(injuries=frozenset({"knee"}))
        entries = build_week_seed("user-1", "2026-10-19", constraints, library)
        movement_ids = {e.movement_id for e in entries}
        assert not movement_ids & {"m_bodyweight_circuit_15", "m_intervals_20"}

    def test_respects_equipment(self, library, default_constraints):
        entries = build_week_seed("user-1", "2026-10-19", default_constraints, library)
        for entry in entries:
            item = library.get("movement", entry.movement_id)
            assert item.has_tag("eq:none")

    def test_user_changes_seed(self, library, default_constraints):
        first = build_week_seed("user-1", "2026-10-19", default_constraints, library)
        second = build_week_seed("user-2", "2026-10-19", default_constraints, library)
        assert first != second

    def test_empty_library_gives_empty_slots(self, make_index, default_constraints):
        entries = build_week_seed("user-1", "2026-10-19", default_constraints, make_index())
        assert len(entries) == WEEK_DAYS
        assert all(e.reset_id is None and e.movement_id is None for e in entries)

    def test_bad_date_raises(self, library, default_constraints):
        with pytest.raises(ValueError):
            build_week_seed("user-1", "next tuesday", default_constraints, library)
