"""Tests for the content library loader and index."""

from __future__ import annotations

import pytest

from livenew.domains.rail.content.index import build_library_index
from livenew.domains.rail.content.loader import (
    library_from_mapping,
    load_library_directory,
    parse_items,
    validate_content_item,
)
from livenew.domains.rail.content.models import RESET_MAX_SEC, RESET_MIN_SEC, ContentLibrary
from livenew.domains.rail.domain_logic.filters import within_time_budget
from livenew.domains.rail.domain_logic.rail_models import CheckIn


# ---------------------------------------------------------------------------
# Bundled library
# ---------------------------------------------------------------------------

class TestBundledLibrary:
    def test_loads_all_kinds(self, library):
        assert library.version == "2026.10.1"
        assert len(library.items("reset")) == 9
        assert len(library.items("movement")) == 10
        assert len(library.items("nutrition")) == 9

    def test_resets_within_bounds(self, library):
        for item in library.items("reset"):
            assert 120 <= item.duration_sec <= 300

    def test_movement_intensity_scale(self, library):
        for item in library.items("movement"):
            assert 1 <= item.intensity <= 5
            assert item.equipment_tags

    def test_items_sorted_by_id(self, library):
        ids = [i.id for i in library.items("nutrition")]
        assert ids == sorted(ids)

    def test_has_simple_nutrition(self, library):
        assert library.by_tag("nutrition", "simple")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    def test_valid_reset(self, make_reset):
        assert validate_content_item("reset", make_reset("r1", 150)) == []

    def test_reset_out_of_bounds(self, make_reset):
        issues = validate_content_item("reset", make_reset("r1", 60))
        assert [i.field for i in issues] == ["durationSec"]

    @pytest.mark.parametrize(
        ("seconds", "valid"),
        [(RESET_MIN_SEC, True), (RESET_MAX_SEC, True), (RESET_MIN_SEC - 1, False), (RESET_MAX_SEC + 1, False)],
    )
    def test_reset_bounds_match_engine_filter(self, make_reset, seconds, valid):
        item = make_reset("r1", seconds)
        assert (validate_content_item("reset", item) == []) is valid
        if valid:
            (parsed,) = parse_items("reset", [item])
            assert within_time_budget(parsed, CheckIn(time_available_min=30))

    def test_movement_intensity_range(self, make_movement):
        issues = validate_content_item("movement", make_movement("m1", intensity=6))
        assert [i.field for i in issues] == ["intensity"]

    def test_missing_title(self):
        issues = validate_content_item("nutrition", {"id": "n1"})
        assert issues[0].field == "title"
        assert issues[0].item_id == "n1"

    def test_non_mapping(self):
        issues = validate_content_item("nutrition", "nope")
        assert issues[0].field == "item"

    def test_parse_items_skips_invalid(self, make_reset):
        items = parse_items("reset", [make_reset("ok", 150), make_reset("bad", 30)])
        assert [i.id for i in items] == ["ok"]

    def test_parse_items_non_list(self):
        assert parse_items("reset", {"id": "x"}) == ()


# ---------------------------------------------------------------------------
# Loading and indexing
# ---------------------------------------------------------------------------

class TestLoadingAndIndex:
    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_library_directory(tmp_path / "absent")

    def test_custom_directory(self, tmp_path):
        (tmp_path / "library.yaml").write_text('version: "custom-1"\n')
        (tmp_path / "resets.yaml").write_text(
            "- id: r_a\n  title: A\n  durationSec: 150\n  tags: [downshift]\n"
        )
        library = load_library_directory(tmp_path)
        assert library.version == "custom-1"
        assert [i.id for i in library.resets] == ["r_a"]
        assert library.movement == ()

    def test_mapping_without_version(self):
        assert library_from_mapping({}).version == "unversioned"

    def test_duplicate_ids_rejected(self, make_reset):
        library = ContentLibrary(
            version="v",
            resets=parse_items("reset", [make_reset("r1"), make_reset("r1")]),
        )
        with pytest.raises(ValueError, match="Duplicate"):
            build_library_index(library)

    def test_lookups(self, make_index, make_reset):
        index = make_index(resets=[
            make_reset("r_b", tags=["breath"], noveltyGroup="g1"),
            make_reset("r_a", tags=["breath", "downshift"], noveltyGroup="g1"),
        ])
        assert index.get("reset", "r_a").title == "Reset r_a"
        assert index.get("reset", None) is None
        assert [i.id for i in index.by_tag("reset", "breath")] == ["r_a", "r_b"]
        assert [i.id for i in index.by_novelty_group("reset", "g1")] == ["r_a", "r_b"]
        assert index.novelty_group_of("reset", "r_b") == "g1"
        assert index.novelty_group_of("reset", "missing") is None

    def test_candidates_fall_back_to_all(self, make_index, make_reset):
        index = make_index(resets=[make_reset("r_a", tags=["breath"]), make_reset("r_b")])
        assert [i.id for i in index.candidates("reset", "breath")] == ["r_a"]
        assert [i.id for i in index.candidates("reset", "unknown")] == ["r_a", "r_b"]

    def test_summary_shapes(self, library):
        reset = library.get("reset", "r_box_breath_120").summary()
        assert set(reset) == {"id", "title", "durationSec", "steps", "tags"}
        movement = library.get("movement", "m_easy_walk_10").summary()
        assert movement["durationMin"] == 10
        assert movement["intensity"] == 1
        nutrition = library.get("nutrition", "nutrition_hydration").summary()
        assert set(nutrition) == {"id", "title", "bullets", "tags"}
