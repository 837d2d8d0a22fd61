"""Tests for engine parameters and experiment overrides."""

from __future__ import annotations

from livenew.domains.rail.domain_logic.parameters import (
    Parameters,
    apply_params_override,
    load_parameters_file,
    parameters_from_mapping,
)


class TestParametersFromMapping:
    def test_empty_gives_defaults(self):
        assert parameters_from_mapping(None) == Parameters()
        assert parameters_from_mapping([1, 2]) == Parameters()

    def test_sections_merged(self):
        params = parameters_from_mapping({
            "profileThresholds": {"loadHigh": 75},
            "hysteresis": {"enabled": False},
            "movementGate": {"capacityMin": 60},
            "noveltyWindowDays": 3,
        })
        assert params.profile_thresholds.load_high == 75
        assert params.profile_thresholds.capacity_low == 40
        assert params.hysteresis.enabled is False
        assert params.movement_gate.capacity_min == 60
        assert params.novelty_window_days == 3

    def test_invalid_section_keeps_defaults(self):
        params = parameters_from_mapping({
            "profileThresholds": {"loadHigh": "high"},
            "movementGate": {"capacityMin": 60},
        })
        assert params.profile_thresholds.load_high == 70
        assert params.movement_gate.capacity_min == 60

    def test_bool_not_accepted_as_int(self):
        params = parameters_from_mapping({"movementGate": {"capacityMin": True}})
        assert params.movement_gate.capacity_min == 55

    def test_content_packs_added(self):
        params = parameters_from_mapping({
            "contentPackWeights": {"focus_pack": {"workoutTagWeights": {"walk": 2}}},
        })
        assert params.content_packs["focus_pack"].weights_for("movement") == {"walk": 2}
        assert "calm_reset" in params.content_packs


class TestApplyOverride:
    def test_denylisted_sections_ignored(self):
        params, applied = apply_params_override(Parameters(), {
            "profileThresholds": {"loadHigh": 10},
            "recoveryDebtWeights": {"maxDebt": 1},
            "movementGate": {"timeMin": 15},
        })
        assert applied == ["movementGate"]
        assert params.profile_thresholds.load_high == 70
        assert params.recovery_debt.max_debt == 100
        assert params.movement_gate.time_min == 15

    def test_no_override(self):
        params = Parameters()
        assert apply_params_override(params, None) == (params, [])
        assert apply_params_override(params, {"unknown": 1}) == (params, [])


class TestLoadParametersFile:
    def test_missing_path(self, tmp_path):
        assert load_parameters_file(None) == Parameters()
        assert load_parameters_file(tmp_path / "absent.yaml") == Parameters()

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "params.yaml"
        path.write_text("focusBiasRules:\n  rebuildCapacityMin: 70\nnoveltyWindowDays: 0\n")
        params = load_parameters_file(path)
        assert params.focus_bias.rebuild_capacity_min == 70
        assert params.novelty_window_days == 0
