"""Tests for the AuditTrail ring buffer."""

from __future__ import annotations

import logging

import pytest

from livenew.core.audit.logger import AuditEvent, AuditTrail


@pytest.fixture
def audit():
    return AuditTrail()


# ---------------------------------------------------------------------------
# log_event / log_tool_call
# ---------------------------------------------------------------------------

class TestLogEvent:
    def test_log_event_returns_uuid(self, audit):
        eid = audit.log_event(AuditEvent(action="tool_invocation", tool_name="build_today"))
        assert isinstance(eid, str)
        assert len(eid) == 36

    def test_timestamp_filled_in(self, audit):
        audit.log_tool_call("build_today")
        assert audit.get_events()[0]["timestamp"]

    def test_tool_input_is_hashed_not_stored(self, audit):
        audit.log_tool_call("build_today", tool_input={"checkIn": {"stress": 9}})
        event = audit.get_events()[0]
        assert len(event["tool_input_hash"]) == 64
        assert "stress" not in str(event)

    def test_same_input_same_hash_regardless_of_key_order(self, audit):
        audit.log_tool_call("t", tool_input={"a": 1, "b": 2})
        audit.log_tool_call("t", tool_input={"b": 2, "a": 1})
        first, second = audit.get_events()
        assert first["tool_input_hash"] == second["tool_input_hash"]

    def test_no_input_no_hash(self, audit):
        audit.log_tool_call("list_rules")
        assert audit.get_events()[0]["tool_input_hash"] == ""

    def test_rules_and_contract_hash_recorded(self, audit):
        audit.log_tool_call(
            "build_today",
            tool_input={"userId": "u"},
            contract_hash="abc",
            applied_rules=["busy_day", "quality_gate"],
            duration_ms=1.5,
        )
        event = audit.get_events()[0]
        assert event["contract_hash"] == "abc"
        assert event["applied_rules"] == ["busy_day", "quality_gate"]
        assert event["duration_ms"] == 1.5
        assert event["status"] == "success"

    def test_failure_recorded(self, audit):
        audit.log_tool_call("build_today", status="failure", error_type="UnknownRuleError")
        event = audit.get_events(status="failure")[0]
        assert event["error_type"] == "UnknownRuleError"

    def test_mirrored_to_audit_logger(self, audit, caplog):
        with caplog.at_level(logging.INFO, logger="livenew.audit"):
            audit.log_tool_call("build_week_seed", applied_rules=["busy_day"])
        assert any("build_week_seed" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# get_events / count_events
# ---------------------------------------------------------------------------

class TestGetEvents:
    def test_newest_first(self, audit):
        audit.log_tool_call("first")
        audit.log_tool_call("second")
        events = audit.get_events()
        assert [e["tool_name"] for e in events] == ["second", "first"]

    def test_filter_by_tool_name(self, audit):
        audit.log_tool_call("alpha")
        audit.log_tool_call("beta")
        audit.log_tool_call("alpha")
        assert len(audit.get_events(tool_name="alpha")) == 2
        assert audit.count_events(tool_name="alpha") == 2

    def test_limit_respected(self, audit):
        for i in range(10):
            audit.log_tool_call(f"tool_{i}")
        assert len(audit.get_events(limit=3)) == 3

    def test_count_events_empty(self, audit):
        assert audit.count_events() == 0

    def test_ring_is_bounded(self):
        audit = AuditTrail(capacity=3)
        assert audit.capacity == 3
        for i in range(5):
            audit.log_tool_call(f"tool_{i}")
        assert audit.count_events() == 3
        assert [e["tool_name"] for e in audit.get_events()] == ["tool_4", "tool_3", "tool_2"]
