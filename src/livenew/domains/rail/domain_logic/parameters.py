"""Engine parameters: thresholds, weights and gates, with override merging.

Parameters arrive as JSON/YAML-shaped mappings with camelCase keys, e.g.::

    profileThresholds:
      loadHigh: 70
    hysteresis:
      enabled: true
      loadHigh: 2
    movementGate:
      capacityMin: 55
    noveltyWindowDays: 2
    contentPackWeights:
      calm_reset:
        resetTagWeights: {downshift: 3, breath: 1}

Each section is validated on its own. An invalid section falls back to its
defaults and logs a warning; the rest of the mapping still applies.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from livenew.domains.rail.domain_logic.profiles import HysteresisBands, ProfileThresholds
from livenew.domains.rail.domain_logic.scoring import RecoveryDebtWeights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FocusBias:
    rebuild_capacity_min: int = 65
    recovery_debt_bias_low: int = 20
    recovery_debt_bias_high: int = 35


@dataclass(frozen=True)
class MovementGate:
    """When a fresh movement may be drawn (continuity picks bypass this)."""

    capacity_min: int = 55
    time_min: int = 10
    more_energy_capacity_min: int = 70


@dataclass(frozen=True)
class ContentPack:
    """Tag weights an experiment pack applies when ranking candidates."""

    reset_tag_weights: dict[str, int] = field(default_factory=dict)
    movement_tag_weights: dict[str, int] = field(default_factory=dict)
    nutrition_tag_weights: dict[str, int] = field(default_factory=dict)

    def weights_for(self, kind: str) -> dict[str, int]:
        if kind == "reset":
            return self.reset_tag_weights
        if kind == "movement":
            return self.movement_tag_weights
        return self.nutrition_tag_weights


def default_content_packs() -> dict[str, ContentPack]:
    return {
        "calm_reset": ContentPack(
            reset_tag_weights={"downshift": 3, "breath": 1},
            movement_tag_weights={"downshift": 3, "stabilize": 1},
            nutrition_tag_weights={"sleep": 2, "downshift": 2},
        ),
        "balanced_routine": ContentPack(),
        "rebuild_strength": ContentPack(
            reset_tag_weights={"stabilize": 1},
            movement_tag_weights={"rebuild": 2, "strength": 2},
            nutrition_tag_weights={"rebuild": 1},
        ),
    }


@dataclass(frozen=True)
class Parameters:
    profile_thresholds: ProfileThresholds = field(default_factory=ProfileThresholds)
    hysteresis: HysteresisBands = field(default_factory=HysteresisBands)
    recovery_debt: RecoveryDebtWeights = field(default_factory=RecoveryDebtWeights)
    focus_bias: FocusBias = field(default_factory=FocusBias)
    movement_gate: MovementGate = field(default_factory=MovementGate)
    novelty_window_days: int = 2
    content_packs: dict[str, ContentPack] = field(default_factory=default_content_packs)


# Wire section name -> (Parameters attribute, section dataclass)
_SECTIONS: dict[str, tuple[str, type]] = {
    "profileThresholds": ("profile_thresholds", ProfileThresholds),
    "hysteresis": ("hysteresis", HysteresisBands),
    "recoveryDebtWeights": ("recovery_debt", RecoveryDebtWeights),
    "focusBiasRules": ("focus_bias", FocusBias),
    "movementGate": ("movement_gate", MovementGate),
}

# Sections an experiment may never override.
OVERRIDE_DENYLIST = frozenset({"profileThresholds", "recoveryDebtWeights"})

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class ParameterError(ValueError):
    """A parameter section failed validation."""


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _coerce_section(cls: type, base: Any, raw: Any, name: str) -> Any:
    """Return ``base`` updated with ``raw`` values, or raise ParameterError."""
    if not isinstance(raw, dict):
        raise ParameterError(f"{name} must be a mapping")
    known = {f.name: f for f in fields(cls)}
    updates: dict[str, Any] = {}
    for key, value in raw.items():
        attr = _snake(str(key))
        if attr not in known:
            logger.warning("Ignoring unknown parameter %s.%s", name, key)
            continue
        default = getattr(cls(), attr)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ParameterError(f"{name}.{key} must be a boolean")
        elif isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ParameterError(f"{name}.{key} must be a non-negative integer")
        updates[attr] = value
    return replace(base, **updates)


def _coerce_weights(raw: Any, name: str) -> dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ParameterError(f"{name} must be a mapping of tag to weight")
    weights: dict[str, int] = {}
    for tag, weight in raw.items():
        if not isinstance(tag, str) or isinstance(weight, bool) or not isinstance(weight, int):
            raise ParameterError(f"{name} entries must be tag: integer")
        weights[tag] = weight
    return weights


def _coerce_packs(raw: Any) -> dict[str, ContentPack]:
    if not isinstance(raw, dict):
        raise ParameterError("contentPackWeights must be a mapping")
    packs: dict[str, ContentPack] = {}
    for pack_id, weights_raw in raw.items():
        if not isinstance(weights_raw, dict):
            raise ParameterError(f"contentPackWeights.{pack_id} must be a mapping")
        packs[str(pack_id)] = ContentPack(
            reset_tag_weights=_coerce_weights(weights_raw.get("resetTagWeights"), f"{pack_id}.resetTagWeights"),
            movement_tag_weights=_coerce_weights(
                weights_raw.get("movementTagWeights", weights_raw.get("workoutTagWeights")),
                f"{pack_id}.movementTagWeights",
            ),
            nutrition_tag_weights=_coerce_weights(
                weights_raw.get("nutritionTagWeights"), f"{pack_id}.nutritionTagWeights"
            ),
        )
    return packs


def _merge(params: Parameters, raw: dict[str, Any], sections: list[str]) -> tuple[Parameters, list[str]]:
    """Merge the named wire sections of ``raw`` into ``params``.

    Returns the updated parameters and the sections that were applied.
    """
    applied: list[str] = []
    for name in sections:
        if name not in raw:
            continue
        value = raw[name]
        try:
            if name in _SECTIONS:
                attr, cls = _SECTIONS[name]
                params = replace(params, **{attr: _coerce_section(cls, getattr(params, attr), value, name)})
            elif name == "noveltyWindowDays":
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ParameterError("noveltyWindowDays must be a non-negative integer")
                params = replace(params, novelty_window_days=value)
            elif name == "contentPackWeights":
                params = replace(params, content_packs={**params.content_packs, **_coerce_packs(value)})
        except ParameterError as exc:
            logger.warning("Invalid parameter section %s, keeping defaults: %s", name, exc)
            continue
        applied.append(name)
    return params, applied


_ALL_SECTIONS = [*_SECTIONS, "noveltyWindowDays", "contentPackWeights"]


def parameters_from_mapping(raw: Any) -> Parameters:
    """Build Parameters from a wire mapping; anything invalid keeps defaults."""
    if not raw:
        return Parameters()
    if not isinstance(raw, dict):
        logger.warning("Parameters must be a mapping, got %s; using defaults", type(raw).__name__)
        return Parameters()
    for key in raw:
        if key not in _ALL_SECTIONS:
            logger.warning("Ignoring unknown parameter section %s", key)
    params, _ = _merge(Parameters(), raw, _ALL_SECTIONS)
    return params


def apply_params_override(params: Parameters, override: Any) -> tuple[Parameters, list[str]]:
    """Merge experiment overrides into ``params``.

    Safety sections listed in OVERRIDE_DENYLIST are never applied. Returns
    the merged parameters and the list of sections actually applied.
    """
    if not override or not isinstance(override, dict):
        return params, []
    allowed: list[str] = []
    for key in override:
        if key in OVERRIDE_DENYLIST:
            logger.warning("Experiment override of %s denied", key)
        elif key in _ALL_SECTIONS:
            allowed.append(key)
        else:
            logger.warning("Ignoring unknown override section %s", key)
    return _merge(params, override, allowed)


def load_parameters_file(path: str | Path | None) -> Parameters:
    """Read Parameters from a YAML file. Missing or empty paths give defaults."""
    if not path:
        return Parameters()
    path = Path(path)
    if not path.is_file():
        logger.warning("Parameters file does not exist: %s", path)
        return Parameters()
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    params = parameters_from_mapping(raw)
    logger.info("Loaded parameters from %s", path)
    return params
