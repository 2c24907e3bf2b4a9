"""Tests for merge resolution and non-destructive patches."""

import pytest

from mountaindb.utils.matcher import MatchKind, MatchResult
from mountaindb.utils.merge import (
    Create,
    FlagAmbiguous,
    FlagUnresolved,
    MergeResolver,
    Update,
    UpdateMultiple,
    attachment_defects,
    compute_patch,
    coordinate_defects,
    merge_attachments,
    union_list,
)
from mountaindb.utils.records import MountainRecord, is_attachment_list, is_empty
from mountaindb.utils.stable_id import stable_id_for


def existing(record_id="e1", **data):
    data.setdefault("name", "高尾山")
    return MountainRecord.from_document(record_id, data)


def incoming(**row):
    row.setdefault("name", "高尾山")
    return MountainRecord.from_row(row)


class TestComputePatch:
    """Tests for compute_patch()."""

    def test_fills_only_missing(self):
        """Test present values are kept and gaps are filled."""
        patch = compute_patch(
            existing(pref="東京都", elevation=599, tags=["関東"]),
            incoming(pref="東京都", elevation="600", tags="日本百名山|関東", lat="35.625"),
        )
        assert patch == {"tags": ["関東", "日本百名山"], "lat": 35.625}

    def test_text_coordinate_replaced(self):
        """Test a text coordinate counts as absent."""
        patch = compute_patch(existing(lat="35.36", lng=138.72), incoming(lat="35.3606", lng="138.7274"))
        assert patch == {"lat": 35.3606}

    def test_zero_and_false_filled(self):
        """Test zero and false scalars are filled."""
        patch = compute_patch(
            existing(elevation=0, has_hut=False, has_onsen=True),
            incoming(elevation="599", has_hut="true", has_onsen="0"),
        )
        assert patch == {"elevation": 599, "has_hut": True}

    def test_pipe_string_rewritten(self):
        """Test a stored pipe string becomes a list when unioned."""
        patch = compute_patch(existing(styles="hike|walk"), incoming(styles="walk|climb"))
        assert patch == {"styles": ["hike", "walk", "climb"]}

    def test_identical_is_empty(self):
        """Test nothing to write when the record already has everything."""
        row = incoming(pref="東京都", tags="関東", lat="35.625", lng="139.2437")
        current = MountainRecord.from_document("e1", row.to_document())
        assert compute_patch(current, row) == {}

    @pytest.mark.parametrize("data,row", [
        ({"pref": "東京都", "tags": ["a", "b"], "elevation": 599},
         {"pref": "", "tags": "", "elevation": "0"}),
        ({"pref": "長野県", "tags": ["日本百名山"], "lat": 36.34, "level": "上級"},
         {"pref": "岐阜県", "tags": "日本二百名山", "lat": "0", "level": "初級"}),
        ({"trailheads": [{"name": "上高地", "lat": 36.25, "parking": "なし"}]},
         {"trailheads": [{"name": "上高地", "parking": "あり", "toilet": "あり"}]}),
        ({"trailheads": {"name": "高尾山口"}},
         {"trailheads": [{"name": "相模湖"}]}),
        ({"trailheads": ["高尾山口"]},
         {"trailheads": [{"name": "相模湖"}]}),
    ])
    def test_never_destructive(self, data, row):
        """Test no non-empty field is cleared or overwritten."""
        current = existing(**data)
        patch = compute_patch(current, incoming(**row))
        merged = current.to_document()
        merged.update(patch)

        for key, value in current.to_document().items():
            if is_empty(value):
                continue
            if key == "trailheads" and is_attachment_list(value):
                for before, after in zip(value, merged[key]):
                    for field, field_value in before.items():
                        assert after[field] == field_value
            elif isinstance(value, list):
                assert set(value) <= set(merged[key])
            else:
                assert merged[key] == value

    def test_tag_set_invariant(self):
        """Test merged tags are duplicate-free supersets of both sides."""
        current = existing(tags=["関東", "日本百名山"])
        row = incoming(tags="日本百名山|花の百名山|花の百名山")
        tags = compute_patch(current, row)["tags"]
        assert len(tags) == len(set(tags))
        assert set(current.tags) <= set(tags)
        assert set(row.tags) <= set(tags)


class TestMergeAttachments:
    """Tests for trailhead merging."""

    @pytest.fixture
    def trailheads(self):
        return [{"name": "高尾山口", "lat": 35.6325, "lng": 139.2700, "parking": "なし"}]

    def test_gap_fill_by_name(self, trailheads):
        """Test a name match fills gaps only."""
        merged, changed = merge_attachments(trailheads, [{"name": "高尾山口", "parking": "あり", "toilet": "あり"}])
        assert changed
        assert merged == [{"name": "高尾山口", "lat": 35.6325, "lng": 139.2700, "parking": "なし", "toilet": "あり"}]

    def test_coordinate_match(self, trailheads):
        """Test near-equal coordinates count as the same trailhead."""
        merged, changed = merge_attachments(trailheads, [{"name": "", "lat": 35.63255, "lng": 139.27004}])
        assert not changed
        assert merged == trailheads

    def test_append_new(self, trailheads):
        """Test a distant trailhead with a new name is appended."""
        merged, changed = merge_attachments(trailheads, [{"name": "相模湖", "lat": 35.61, "lng": 139.19}])
        assert changed
        assert len(merged) == 2

    def test_input_not_mutated(self, trailheads):
        """Test the existing list is left untouched."""
        merge_attachments(trailheads, [{"name": "高尾山口", "toilet": "あり"}])
        assert "toilet" not in trailheads[0]


class TestCoordinateDefects:
    """Tests for TypeMismatch detection."""

    def test_unrepairable_text_coordinates(self):
        """Test text coordinates without a numeric source are reported."""
        current = existing("fuji", name="富士山", lat="35.36", lng="138.72")
        row = incoming(name="富士山")

        defects = coordinate_defects(current, row)
        assert [d["field"] for d in defects] == ["lat", "lng"]
        assert all(d["kind"] == "TypeMismatch" for d in defects)
        assert "lat" not in compute_patch(current, row)

    def test_repairable_not_reported(self):
        """Test an incoming number that repairs the field is not a defect."""
        current = existing(lat="35.36", lng=138.72)
        assert coordinate_defects(current, incoming(lat="35.36")) == []

    def test_malformed_trailheads_reported(self):
        """Test stored trailheads that are not a list of objects are reported and kept."""
        current = existing("t1", trailheads={"name": "高尾山口"})
        assert current.trailheads == []
        assert current.to_document()["trailheads"] == {"name": "高尾山口"}

        defect, = attachment_defects(current)
        assert defect["field"] == "trailheads"
        assert defect["kind"] == "TypeMismatch"
        assert compute_patch(current, incoming(trailheads=[{"name": "相模湖"}])) == {}

    def test_wellformed_trailheads_not_reported(self):
        """Test a list of trailhead objects is not a defect."""
        assert attachment_defects(existing(trailheads=[{"name": "高尾山口"}])) == []


class TestUnionList:
    """Tests for union_list()."""

    def test_union(self):
        """Test order and deduplication."""
        assert union_list("a|b", ["b", "c"]) == ["a", "b", "c"]
        assert union_list(None, "x") == ["x"]
        assert union_list(["a", "a"], []) == ["a"]


class TestMergeResolver:
    """Tests for MergeResolver.resolve()."""

    def test_unique_update(self):
        """Test a unique match becomes an Update."""
        target = existing(pref="東京都")
        action = MergeResolver().resolve(
            incoming(pref="東京都", lat="35.6"),
            MatchResult(MatchKind.UNIQUE, (target,), "name_region"),
        )
        assert isinstance(action, Update)
        assert action.target_id == "e1"
        assert action.patch == {"lat": 35.6}

    def test_multiple_name_region(self):
        """Test region-consistent twins are all updated."""
        targets = (existing("legacy"), existing("twin", tags=["日本百名山"]))
        action = MergeResolver().resolve(
            incoming(tags="日本百名山"),
            MatchResult(MatchKind.MULTIPLE, targets, "name_region"),
        )
        assert isinstance(action, UpdateMultiple)
        assert action.target_ids == ("legacy", "twin")
        assert action.patches == {"legacy": {"tags": ["日本百名山"]}, "twin": {}}
        assert not action.is_noop

    def test_multiple_containment_is_ambiguous(self):
        """Test fuzzy multiple matches are never written."""
        targets = (existing("a1"), existing("a2"), existing("a3"))
        action = MergeResolver().resolve(
            incoming(), MatchResult(MatchKind.MULTIPLE, targets, "containment")
        )
        assert isinstance(action, FlagAmbiguous)
        assert action.candidate_ids == ("a1", "a2", "a3")

    def test_create_durable(self):
        """Test durable mode stamps the stable id."""
        row = incoming(name="Obscure Peak", pref="Nowhere Prefecture")
        action = MergeResolver(durable_ids=True).resolve(row, MatchResult.none())
        assert isinstance(action, Create)
        assert action.record_id == stable_id_for("Obscure Peak", "Nowhere Prefecture")
        assert action.patch["pref"] == "Nowhere Prefecture"

    def test_create_opaque(self):
        """Test default mode uses an opaque id."""
        row = incoming(name="新山", pref="秋田県")
        action = MergeResolver().resolve(row, MatchResult.none())
        assert isinstance(action, Create)
        assert len(action.record_id) == 20
        assert action.record_id != stable_id_for("新山", "秋田県")

    def test_no_create(self):
        """Test tagging runs flag unmatched rows instead of creating."""
        action = MergeResolver(create_missing=False).resolve(incoming(), MatchResult.none())
        assert isinstance(action, FlagUnresolved)
