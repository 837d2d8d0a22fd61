"""Daily rail data models and domain constants."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from livenew.domains.rail.content.models import ContentItem


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

PROFILE_POOR_SLEEP = "Poor Sleep"
PROFILE_DEPLETED = "Depleted/Burned Out"
PROFILE_WIRED = "Wired/Overstimulated"
PROFILE_RESTLESS = "Restless/Anxious"
PROFILE_BALANCED = "Balanced"

PROFILE_LABELS = (
    PROFILE_POOR_SLEEP,
    PROFILE_DEPLETED,
    PROFILE_WIRED,
    PROFILE_RESTLESS,
    PROFILE_BALANCED,
)

# Focus drives which tags the rule pipeline prefers for each slot.
FOCUS_DOWNSHIFT = "downshift"
FOCUS_STABILIZE = "stabilize"
FOCUS_REBUILD = "rebuild"
FOCUSES = (FOCUS_DOWNSHIFT, FOCUS_STABILIZE, FOCUS_REBUILD)

QUICK_SIGNALS = ("stressed", "exhausted", "ten_minutes", "more_energy")

INJURY_KEYS = ("knee", "shoulder", "back", "neck")
EQUIPMENT_KEYS = ("none", "dumbbells", "bands", "gym")
TIME_OF_DAY_OPTIONS = ("morning", "midday", "evening", "any")

# Ingestion bounds and defaults for check-in fields: (min, max, default)
STRESS_RANGE = (1, 10, 5)
SLEEP_RANGE = (1, 10, 6)
ENERGY_RANGE = (1, 10, 6)
TIME_RANGE = (5, 60, 10)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckIn:
    """A normalized self-report. Build via ``normalize_check_in``."""

    stress: int = 5
    sleep_quality: int = 6
    energy: int = 6
    time_available_min: int = 10
    panic: bool = False

    @property
    def signature(self) -> str:
        """Compact form used as the last seed component."""
        return f"{self.stress}-{self.sleep_quality}-{self.energy}-{self.time_available_min}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "stress": self.stress,
            "sleepQuality": self.sleep_quality,
            "energy": self.energy,
            "timeAvailableMin": self.time_available_min,
            "safety": {"panic": self.panic},
        }


@dataclass(frozen=True)
class Constraints:
    """Long-lived user baseline. Build via ``normalize_constraints``."""

    injuries: frozenset[str] = frozenset()
    equipment: frozenset[str] = frozenset({"none"})
    time_of_day_preference: str = "any"
    avoid_tags: tuple[str, ...] = ()

    @property
    def injury_contra_tags(self) -> frozenset[str]:
        return frozenset(f"injury:{name}" for name in self.injuries)

    @property
    def equipment_tags(self) -> frozenset[str]:
        return frozenset(f"eq:{name}" for name in self.equipment)

    def to_dict(self) -> dict[str, Any]:
        """Canonical wire shape (also what the input hash covers)."""
        return {
            "injuries": {key: key in self.injuries for key in INJURY_KEYS},
            "equipment": {key: key in self.equipment for key in EQUIPMENT_KEYS},
            "timeOfDayPreference": self.time_of_day_preference,
            "diet": {"avoidTags": list(self.avoid_tags)},
        }


@dataclass(frozen=True)
class Scores:
    load: int
    capacity: int

    def to_dict(self) -> dict[str, int]:
        return {"load": self.load, "capacity": self.capacity}


# ---------------------------------------------------------------------------
# Day memory
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DayState:
    """What was selected for one (user, date). Persisted by the caller."""

    reset_id: str | None = None
    movement_id: str | None = None
    nutrition_id: str | None = None
    last_quick_signal: str | None = None

    def ids(self) -> tuple[str | None, str | None, str | None]:
        return (self.reset_id, self.movement_id, self.nutrition_id)

    def hash_parts(self) -> list[str]:
        return [
            self.reset_id or "",
            self.movement_id or "",
            self.nutrition_id or "",
            self.last_quick_signal or "",
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "resetId": self.reset_id,
            "movementId": self.movement_id,
            "nutritionId": self.nutrition_id,
            "lastQuickSignal": self.last_quick_signal,
        }


@dataclass(frozen=True)
class WeekSeedEntry:
    """Precomputed continuity fallback for one date."""

    date_key: str = ""
    reset_id: str | None = None
    movement_id: str | None = None
    nutrition_id: str | None = None

    def hash_parts(self) -> list[str]:
        return [self.reset_id or "", self.movement_id or "", self.nutrition_id or ""]

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateKey": self.date_key,
            "resetId": self.reset_id,
            "movementId": self.movement_id,
            "nutritionId": self.nutrition_id,
        }


@dataclass(frozen=True)
class Selection:
    """The three items currently chosen for the day (any may be None)."""

    reset: ContentItem | None = None
    movement: ContentItem | None = None
    nutrition: ContentItem | None = None
    last_quick_signal: str | None = None

    def to_day_state(self) -> DayState:
        return DayState(
            reset_id=self.reset.id if self.reset else None,
            movement_id=self.movement.id if self.movement else None,
            nutrition_id=self.nutrition.id if self.nutrition else None,
            last_quick_signal=self.last_quick_signal,
        )


@dataclass
class RailHistory:
    """Recent per-date memory used by novelty and recovery debt.

    Keys are ISO date keys (``YYYY-MM-DD``). Novelty only looks at days
    strictly before the requested date; recovery debt also counts the
    requested date itself.
    """

    days: dict[str, DayState] = field(default_factory=dict)
    check_ins: dict[str, CheckIn] = field(default_factory=dict)


@dataclass(frozen=True)
class PlanOverrides:
    """Caller-supplied adjustments consumed by the rule pipeline."""

    profile_override: str | None = None
    focus_bias: str | None = None
    busy_days: tuple[str, ...] = ()
    feedback: str | None = None            # 'too_hard' | 'too_long'
    reset_focus_tag: str | None = None
    bad_day_mode: bool = False
    experiment_pack: str | None = None
    params_override: dict[str, Any] = field(default_factory=dict)
    rail_reset: bool = False
    # Rule names reported by upstream collaborators, normalized with ours
    upstream_rules: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Canonical shape for hashing; list fields sorted."""
        return {
            "profileOverride": self.profile_override,
            "focusBias": self.focus_bias,
            "busyDays": sorted(self.busy_days),
            "feedback": self.feedback,
            "resetFocusTag": self.reset_focus_tag,
            "badDayMode": self.bad_day_mode,
            "experimentPack": self.experiment_pack,
            "paramsOverride": dict(self.params_override),
            "railReset": self.rail_reset,
            "upstreamRules": sorted(self.upstream_rules),
        }
