"""MCP tools for the daily rail: today's contract, quick signals, week seed.

Every tool is a thin wrapper: parse the wire payload, call the pure
engine, audit the call, return JSON. No state is kept between calls;
callers pass back ``dayState``, ``weekSeed`` and ``priorProfile``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from livenew.domains.rail.domain_logic.contract_validation import DayContractError, assert_day_contract
from livenew.domains.rail.domain_logic.day_contract import PlanRequest, build_day_contract
from livenew.domains.rail.domain_logic.normalize import (
    normalize_check_in,
    normalize_constraints,
    normalize_day_state,
)
from livenew.domains.rail.domain_logic.profiles import assign_stress_profile
from livenew.domains.rail.domain_logic.quick_signal import apply_quick_signal as apply_signal
from livenew.domains.rail.domain_logic.rail_models import DayState
from livenew.domains.rail.domain_logic.rules import RULES_VERSION, UnknownRuleError, rule_catalog
from livenew.domains.rail.domain_logic.safety import is_panic
from livenew.domains.rail.domain_logic.week_seed import build_week_seed as seed_week

if TYPE_CHECKING:
    from livenew.core.audit.logger import AuditTrail
    from livenew.core.config.env_policy import EnvPolicy
    from livenew.domains.rail.content.index import LibraryIndex
    from livenew.domains.rail.domain_logic.parameters import Parameters

logger = logging.getLogger(__name__)


def _error(exc: UnknownRuleError | DayContractError, policy: EnvPolicy) -> str:
    message = str(exc) if policy.allow_verbose_errors else "Request could not be completed"
    return json.dumps({"status": "error", "code": exc.code, "message": message})


def register_day_contract_tools(
    mcp: FastMCP,
    index: LibraryIndex,
    params: Parameters,
    policy: EnvPolicy,
    audit: AuditTrail | None = None,
) -> None:
    """Register the rail engine tools on the MCP server."""

    def _audit(tool_name: str, tool_input: Any, start_time: float, **kwargs: Any) -> None:
        if audit is None:
            return
        audit.log_tool_call(
            tool_name=tool_name,
            tool_input=tool_input,
            duration_ms=(time.monotonic() - start_time) * 1000,
            **kwargs,
        )

    @mcp.tool
    async def build_today(ctx: Context, request: dict) -> str:
        """Build today's reset, movement and nutrition contract.

        Args:
            request: camelCase request with ``userId``, ``dateKey``,
                ``checkIn`` (stress, sleepQuality, energy, timeAvailableMin,
                safety.panic), ``baseline.constraints``, and optionally
                ``dayState``, ``weekSeed``, ``priorProfile``, ``overrides``,
                ``recentDays``, ``recentCheckIns``, ``eventsToday``.

        Returns:
            JSON with ``contract`` and the ``dayState`` to store for the
            next call on the same date.
        """
        start_time = time.monotonic()
        try:
            plan = build_day_contract(PlanRequest.from_dict(request), index, params=params, policy=policy)
            contract = plan.contract.to_dict()
            assert_day_contract(contract)
        except (UnknownRuleError, DayContractError) as exc:
            _audit("build_today", request, start_time, status="failure", error_type=type(exc).__name__)
            return _error(exc, policy)
        except Exception as exc:
            _audit("build_today", request, start_time, status="failure", error_type=type(exc).__name__)
            raise

        _audit(
            "build_today",
            request,
            start_time,
            contract_hash=plan.contract.input_hash,
            applied_rules=list(plan.contract.applied_rules),
            metadata={"profile": plan.contract.profile, "focus": plan.focus},
        )
        return json.dumps({
            "contract": contract,
            "dayState": plan.day_state.to_dict(),
            "focus": plan.focus,
        }, ensure_ascii=False)

    @mcp.tool
    async def apply_quick_signal(
        ctx: Context,
        signal: str,
        day_state: dict,
        check_in: dict | None = None,
        constraints: dict | None = None,
        panic_mode: bool = False,
    ) -> str:
        """Apply a one-tap signal to today's selection.

        Signals only ever make the day easier: ``stressed``, ``exhausted``,
        ``ten_minutes`` and ``more_energy`` (which may add light movement
        when capacity allows it). Unknown signals change nothing.

        Args:
            signal: One of the quick signals.
            day_state: Current ``dayState`` (resetId, movementId, nutritionId).
            check_in: Today's check-in, used for scores and time limits.
            constraints: User baseline constraints.
            panic_mode: Force panic handling (movement stays empty).
        """
        start_time = time.monotonic()
        tool_input = {"signal": signal, "dayState": day_state}
        state = normalize_day_state(day_state) or DayState()
        check = normalize_check_in(check_in)
        stress_profile = assign_stress_profile(
            check,
            thresholds=params.profile_thresholds,
            hysteresis=params.hysteresis,
        )
        updated = apply_signal(
            signal,
            state,
            stress_profile.scores,
            stress_profile.profile,
            normalize_constraints(constraints),
            index,
            time_min=check.time_available_min,
            panic=is_panic(check, panic_mode),
            more_energy_capacity_min=params.movement_gate.more_energy_capacity_min,
        )
        _audit("apply_quick_signal", tool_input, start_time, metadata={"changed": updated != state})
        return json.dumps({
            "dayState": updated.to_dict(),
            "changed": updated != state,
            "profile": stress_profile.profile,
            "scores": stress_profile.scores.to_dict(),
        })

    @mcp.tool
    async def build_week_seed(
        ctx: Context,
        user_id: str,
        start_date_key: str,
        constraints: dict | None = None,
        timezone: str = "",
        day_boundary_hour: int | None = None,
    ) -> str:
        """Seed seven days of items used as a continuity fallback.

        Args:
            user_id: Opaque user id.
            start_date_key: First day (ISO date, e.g. '2026-10-19').
            constraints: User baseline constraints.
            timezone: IANA timezone name (part of the seed).
            day_boundary_hour: Local hour at which a new day starts.
        """
        start_time = time.monotonic()
        tool_input = {"userId": user_id, "startDateKey": start_date_key}
        try:
            entries = seed_week(
                user_id,
                start_date_key,
                normalize_constraints(constraints),
                index,
                timezone=timezone,
                day_boundary_hour=day_boundary_hour,
                params=params,
            )
        except ValueError as exc:
            _audit("build_week_seed", tool_input, start_time, status="failure", error_type=type(exc).__name__)
            return json.dumps({"status": "error", "code": "invalid_date", "message": str(exc)})

        _audit("build_week_seed", tool_input, start_time)
        return json.dumps({"weekSeed": [entry.to_dict() for entry in entries]})

    @mcp.tool
    def list_rules() -> dict:
        """List rule names in the order they are reported in contracts."""
        return {
            "version": RULES_VERSION,
            "rules": rule_catalog(),
            "rulesFrozen": policy.rules_frozen,
        }

    logger.debug("Registered rail tools for library %s", index.version)
