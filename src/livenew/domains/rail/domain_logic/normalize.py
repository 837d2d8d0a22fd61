"""Defensive ingestion of JSON-shaped request values.

Every function here is total: garbage degrades to a safe default and
nothing raises. Accepted wire aliases are listed next to each field.
"""

from __future__ import annotations

import math
from typing import Any

from livenew.domains.rail.domain_logic.rail_models import (
    ENERGY_RANGE,
    EQUIPMENT_KEYS,
    INJURY_KEYS,
    SLEEP_RANGE,
    STRESS_RANGE,
    TIME_OF_DAY_OPTIONS,
    TIME_RANGE,
    CheckIn,
    Constraints,
    DayState,
    PlanOverrides,
    RailHistory,
    WeekSeedEntry,
)


def clamp_int(value: Any, lo: int, hi: int, default: int) -> int:
    """Round half-up and clamp to [lo, hi]; non-numeric input gives ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(num):
        return default
    return max(lo, min(hi, math.floor(num + 0.5)))


def _first(data: dict, *keys: str) -> Any:
    """Value of the first key present with a non-None value."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_check_in(raw: Any) -> CheckIn:
    """Build a CheckIn from a wire mapping.

    Aliases: ``sleepQuality|sleep_quality|sleep``,
    ``timeAvailableMin|time_available_min|timeMin``,
    ``safety.panic|panic``.
    """
    data = raw if isinstance(raw, dict) else {}
    safety = data.get("safety") if isinstance(data.get("safety"), dict) else {}
    return CheckIn(
        stress=clamp_int(data.get("stress"), *STRESS_RANGE),
        sleep_quality=clamp_int(_first(data, "sleepQuality", "sleep_quality", "sleep"), *SLEEP_RANGE),
        energy=clamp_int(data.get("energy"), *ENERGY_RANGE),
        time_available_min=clamp_int(
            _first(data, "timeAvailableMin", "time_available_min", "timeMin"), *TIME_RANGE
        ),
        panic=bool(safety.get("panic") or data.get("panic")),
    )


def _flag_set(raw: Any, keys: tuple[str, ...]) -> set[str]:
    """Keys whose value is truthy. Accepts a mapping or a list of names."""
    if isinstance(raw, dict):
        return {key for key in keys if raw.get(key)}
    if isinstance(raw, (list, tuple, set, frozenset)):
        return {key for key in keys if key in raw}
    return set()


def normalize_constraints(raw: Any) -> Constraints:
    """Build Constraints from a baseline mapping.

    ``equipment.none`` is forced on when no other equipment flag is set.
    """
    data = raw if isinstance(raw, dict) else {}

    injuries = _flag_set(data.get("injuries"), INJURY_KEYS)

    equipment_raw = data.get("equipment")
    equipment = _flag_set(equipment_raw, EQUIPMENT_KEYS)
    opted_out = isinstance(equipment_raw, dict) and equipment_raw.get("none") is False
    if not equipment - {"none"} or not opted_out:
        equipment.add("none")

    preference = _first(data, "timeOfDayPreference", "time_of_day_preference")
    if preference not in TIME_OF_DAY_OPTIONS:
        preference = "any"

    diet = data.get("diet") if isinstance(data.get("diet"), dict) else {}
    avoid_raw = _first(diet, "avoidTags", "avoid_tags")
    avoid: set[str] = set()
    if isinstance(avoid_raw, list):
        avoid = {tag.strip() for tag in avoid_raw if isinstance(tag, str) and tag.strip()}

    return Constraints(
        injuries=frozenset(injuries),
        equipment=frozenset(equipment),
        time_of_day_preference=preference,
        avoid_tags=tuple(sorted(avoid)),
    )


def normalize_day_state(raw: Any) -> DayState | None:
    """Build a DayState; returns None for anything that is not a mapping."""
    if not isinstance(raw, dict):
        return None
    return DayState(
        reset_id=_optional_str(_first(raw, "resetId", "reset_id")),
        movement_id=_optional_str(_first(raw, "movementId", "movement_id")),
        nutrition_id=_optional_str(_first(raw, "nutritionId", "nutrition_id")),
        last_quick_signal=_optional_str(_first(raw, "lastQuickSignal", "last_quick_signal")),
    )


def normalize_week_seed_entry(raw: Any, date_key: str = "") -> WeekSeedEntry | None:
    """Build the week-seed entry for ``date_key``.

    Accepts either a single entry mapping or a list of dated entries, in
    which case the one matching ``date_key`` is used.
    """
    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, dict) and _first(entry, "dateKey", "date_key") == date_key:
                return normalize_week_seed_entry(entry, date_key)
        return None
    if not isinstance(raw, dict):
        return None
    return WeekSeedEntry(
        date_key=_optional_str(_first(raw, "dateKey", "date_key")) or date_key,
        reset_id=_optional_str(_first(raw, "resetId", "reset_id")),
        movement_id=_optional_str(_first(raw, "movementId", "movement_id")),
        nutrition_id=_optional_str(_first(raw, "nutritionId", "nutrition_id")),
    )


def normalize_history(raw_days: Any, raw_check_ins: Any) -> RailHistory:
    """Build RailHistory from ``{dateKey: dayState}`` and ``{dateKey: checkIn}`` maps."""
    history = RailHistory()
    if isinstance(raw_days, dict):
        for date_key, value in raw_days.items():
            state = normalize_day_state(value)
            if isinstance(date_key, str) and state is not None:
                history.days[date_key] = state
    if isinstance(raw_check_ins, dict):
        for date_key, value in raw_check_ins.items():
            if isinstance(date_key, str) and isinstance(value, dict):
                history.check_ins[date_key] = normalize_check_in(value)
    return history


def _string_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(v.strip() for v in value if isinstance(v, str) and v.strip())


def normalize_overrides(raw: Any, busy_days: Any = None, upstream_rules: Any = None) -> PlanOverrides:
    """Build PlanOverrides from the request's ``overrides`` mapping.

    ``busy_days`` from the user baseline are merged with the override's own
    ``busyDays``. Unrecognized values are ignored by the overlay that reads
    them, so only types are checked here.
    """
    data = raw if isinstance(raw, dict) else {}
    days = set(_string_tuple(busy_days)) | set(_string_tuple(_first(data, "busyDays", "busy_days")))
    params_override = _first(data, "paramsOverride", "params_override")
    rules = _string_tuple(upstream_rules) + _string_tuple(_first(data, "upstreamRules", "upstream_rules"))
    return PlanOverrides(
        profile_override=_optional_str(_first(data, "profileOverride", "profile_override")),
        focus_bias=_optional_str(_first(data, "focusBias", "focus_bias")),
        busy_days=tuple(sorted(days)),
        feedback=_optional_str(data.get("feedback")),
        reset_focus_tag=_optional_str(_first(data, "resetFocusTag", "reset_focus_tag")),
        bad_day_mode=bool(_first(data, "badDayMode", "forceBadDayMode", "bad_day_mode")),
        experiment_pack=_optional_str(_first(data, "experimentPack", "contentPack", "experiment_pack")),
        params_override=params_override if isinstance(params_override, dict) else {},
        rail_reset=bool(_first(data, "railReset", "rail_reset")),
        upstream_rules=rules,
    )
