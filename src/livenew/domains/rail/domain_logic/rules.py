"""Rule names, their canonical order, and applied-rule normalization.

Rule names are a fixed, versioned tuple. Whatever order overlays fire in,
consumers (rationale, audit, telemetry) always see them sorted by
``RULES_ORDER``. What happens to a name outside that tuple depends on the
environment policy: frozen deployments drop it with a warning, everything
else rejects it with ``UnknownRuleError``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from livenew.core.config.env_policy import EnvPolicy

logger = logging.getLogger(__name__)

RULES_VERSION = "2026.10"

RULES_ORDER: tuple[str, ...] = (
    "profile_override",
    "busy_day",
    "keep_focus",
    "time_min_constraint",
    "poor_sleep_constraint",
    "wired_constraint",
    "depleted_constraint",
    "recovery_debt_bias",
    "signal_override",
    "feedback_modifier",
    "reset_focus_override",
    "bad_day_mode",
    "novelty_avoidance",
    "safety_block",
    "emergency_downshift",
    "quality_gate",
    "quality_gate_fallback",
    "experiment_pack",
    "params_override",
    "rail_reset",
)

RULE_INDEX: dict[str, int] = {name: i for i, name in enumerate(RULES_ORDER)}


class UnknownRuleError(ValueError):
    """An applied-rule name is not part of RULES_ORDER."""

    code = "unknown_rule"

    def __init__(self, names: list[str]) -> None:
        self.names = names
        super().__init__(f"Unknown rule name(s): {', '.join(names)}")


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Applied:
    name: str


@dataclass(frozen=True)
class Dropped:
    """Unknown name tolerated under a frozen policy."""

    name: str


@dataclass(frozen=True)
class Rejected:
    """Unknown name under a non-frozen policy."""

    name: str


RuleOutcome = Applied | Dropped | Rejected


def classify_rule(name: str, policy: EnvPolicy) -> RuleOutcome:
    if name in RULE_INDEX:
        return Applied(name)
    if policy.rules_frozen:
        return Dropped(name)
    return Rejected(name)


def normalize_applied_rules(names: Iterable[str], policy: EnvPolicy) -> list[str]:
    """De-duplicate and sort ``names`` into canonical order.

    Raises:
        UnknownRuleError: an unknown name under a non-frozen policy.
    """
    outcomes = [classify_rule(str(name), policy) for name in names]

    rejected = sorted({o.name for o in outcomes if isinstance(o, Rejected)})
    if rejected:
        raise UnknownRuleError(rejected)

    for outcome in outcomes:
        if isinstance(outcome, Dropped):
            logger.warning("Dropping unknown rule %r (rules frozen in %s)", outcome.name, policy.env_mode)

    seen: dict[str, int] = {}
    for position, outcome in enumerate(outcomes):
        if isinstance(outcome, Applied) and outcome.name not in seen:
            seen[outcome.name] = position
    return sorted(seen, key=lambda name: (RULE_INDEX[name], seen[name]))


def rule_catalog() -> list[dict[str, object]]:
    """Rule names with their order index, for tooling."""
    return [{"name": name, "order": i} for i, name in enumerate(RULES_ORDER)]
