"""Day contract validator: re-checks a serialized contract before it leaves."""

from __future__ import annotations

import logging
from typing import Any

from livenew.domains.rail.content.models import MAX_INTENSITY, RESET_MAX_SEC, RESET_MIN_SEC
from livenew.domains.rail.domain_logic.rail_models import PROFILE_LABELS

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ["dateKey", "profile", "scores", "panicMode", "reset", "movement", "nutrition", "rationale", "meta"]


class DayContractError(ValueError):
    """A built contract violates its own wire shape."""

    code = "TODAY_CONTRACT_INVALID"

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _item_errors(name: str, item: Any) -> list[str]:
    if item is None:
        return []
    if not isinstance(item, dict):
        return [f"{name} must be an object or null"]
    errors: list[str] = []
    if not isinstance(item.get("id"), str) or not item["id"]:
        errors.append(f"{name}.id must be a non-empty string")
    if not isinstance(item.get("title"), str) or not item["title"]:
        errors.append(f"{name}.title must be a non-empty string")
    return errors


def validate_day_contract(contract: Any) -> list[str]:
    """Return every problem found in ``contract`` (empty when valid)."""
    if not isinstance(contract, dict):
        return ["contract must be an object"]

    errors: list[str] = []
    for key in REQUIRED_KEYS:
        if key not in contract:
            errors.append(f"Missing required key '{key}'")
    if errors:
        return errors

    if contract["profile"] not in PROFILE_LABELS:
        errors.append(f"Unknown profile {contract['profile']!r}")

    scores = contract["scores"]
    if not isinstance(scores, dict):
        errors.append("scores must be an object")
    else:
        for key in ("load", "capacity"):
            value = scores.get(key)
            if not _is_int(value) or not 0 <= value <= 100:
                errors.append(f"scores.{key} must be an integer in 0..100")

    reset = contract["reset"]
    errors.extend(_item_errors("reset", reset))
    if isinstance(reset, dict):
        duration = reset.get("durationSec")
        if not _is_int(duration) or not RESET_MIN_SEC <= duration <= RESET_MAX_SEC:
            errors.append(f"reset.durationSec must be within {RESET_MIN_SEC}..{RESET_MAX_SEC}")

    movement = contract["movement"]
    errors.extend(_item_errors("movement", movement))
    if isinstance(movement, dict):
        if not _is_int(movement.get("durationMin")) or movement["durationMin"] <= 0:
            errors.append("movement.durationMin must be a positive integer")
        intensity = movement.get("intensity")
        if intensity is not None and (not _is_int(intensity) or not 1 <= intensity <= MAX_INTENSITY):
            errors.append(f"movement.intensity must be within 1..{MAX_INTENSITY}")
    if contract["panicMode"] and movement is not None:
        errors.append("movement must be null in panic mode")

    errors.extend(_item_errors("nutrition", contract["nutrition"]))

    if not isinstance(contract["rationale"], list) or not all(isinstance(line, str) for line in contract["rationale"]):
        errors.append("rationale must be a list of strings")

    meta = contract["meta"]
    if not isinstance(meta, dict):
        errors.append("meta must be an object")
    else:
        if not isinstance(meta.get("inputHash"), str) or not meta["inputHash"]:
            errors.append("meta.inputHash must be a non-empty string")
        if not isinstance(meta.get("appliedRules"), list):
            errors.append("meta.appliedRules must be a list")

    return errors


def assert_day_contract(contract: Any) -> None:
    """Raise ``DayContractError`` if ``contract`` is malformed."""
    errors = validate_day_contract(contract)
    if errors:
        logger.error("Invalid day contract: %s", "; ".join(errors))
        raise DayContractError(errors)
