"""Command-line tools run against a JSON store in a temporary directory."""

from unittest.mock import patch

import pandas as pd
import pytest

from mountaindb.tools import (
    deduplicate,
    enrich_trailheads,
    fix_coordinates,
    fix_tags,
    import_mountains,
    import_trailheads,
    migrate_stable_ids,
)
from mountaindb.utils.stable_id import stable_id_for
from mountaindb.utils.store import JsonRecordStore


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "mountains"


@pytest.fixture
def store(data_dir):
    return JsonRecordStore(data_dir)


def store_args(data_dir, write=True):
    args = ["--store", "json", "--data-dir", str(data_dir)]
    return args + ["--write"] if write else args


def write_csv(path, rows):
    pd.DataFrame(rows).to_csv(path, index=False, encoding="utf-8-sig")
    return path


class TestImportMountains:
    """Tests for mountaindb-import."""

    @pytest.fixture
    def csv_path(self, tmp_path):
        return write_csv(tmp_path / "mountains.csv", [
            {"name": "高尾山", "pref": "東京都", "tags": "関東", "lat": "35.625", "lng": "139.2437"},
            {"name": "丹沢山", "pref": "神奈川県", "tags": "", "lat": "", "lng": ""},
        ])

    def test_import_write(self, csv_path, data_dir, store, tmp_path):
        """Test a live import creates records on stable ids and writes a report."""
        report = tmp_path / "report.csv"
        code = import_mountains.main(
            [str(csv_path), "--durable-ids", "--report", str(report)] + store_args(data_dir)
        )
        assert code == 0
        doc = store.get(stable_id_for("高尾山", "東京都"))
        assert doc["tags"] == ["関東"]
        assert doc["lat"] == 35.625
        assert store.get(stable_id_for("丹沢山", "神奈川県")) is not None
        assert report.exists()

    def test_import_dry_run(self, csv_path, data_dir):
        """Test the default dry run writes nothing."""
        assert import_mountains.main([str(csv_path)] + store_args(data_dir, write=False)) == 0
        assert not data_dir.exists()

    def test_tag_run(self, tmp_path, data_dir, store):
        """Test list tagging never creates records."""
        store.create({"name": "槍ヶ岳", "pref": "長野県・岐阜県"}, record_id="y1")
        csv_path = write_csv(tmp_path / "list.csv", [
            {"山名": "槍ヶ岳", "所在地": "長野県"},
            {"山名": "Obscure Peak", "所在地": ""},
        ])
        code = import_mountains.main(
            [str(csv_path), "--append-tag", "日本百名山", "--no-create", "--strict"] + store_args(data_dir)
        )
        assert code == 0
        assert store.get("y1")["tags"] == ["日本百名山"]
        assert len(list(store.iter_all())) == 1

    def test_unreadable_corpus(self, csv_path, tmp_path):
        """Test the run aborts when the store cannot be read."""
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("", encoding="utf-8")
        assert import_mountains.main([str(csv_path)] + store_args(not_a_dir)) == 1


def test_import_trailheads(tmp_path, data_dir, store):
    """Test trailheads are attached to matched mountains only."""
    store.create({"name": "高尾山", "pref": "東京都"}, record_id="t1")
    csv_path = write_csv(tmp_path / "trailheads.csv", [
        {"mountain_name": "高尾山", "pref": "東京都", "trailhead_name": "高尾山口",
         "lat": "35.6325", "lng": "139.27"},
        {"mountain_name": "高尾山", "pref": "東京都", "trailhead_name": "相模湖",
         "lat": "35.61", "lng": "139.19"},
        {"mountain_name": "Obscure Peak", "pref": "", "trailhead_name": "x",
         "lat": "", "lng": ""},
    ])

    assert import_trailheads.main([str(csv_path)] + store_args(data_dir)) == 0
    assert [t["name"] for t in store.get("t1")["trailheads"]] == ["高尾山口", "相模湖"]
    assert len(list(store.iter_all())) == 1


def test_migrate_stable_ids(data_dir, store):
    """Test legacy records move onto their stable id."""
    store.create({"name": "槍ヶ岳", "pref": "長野県"}, record_id="legacy1")
    sid = stable_id_for("槍ヶ岳", "長野県")

    assert migrate_stable_ids.main(["--delete-legacy"] + store_args(data_dir)) == 0
    assert [d["id"] for d in store.iter_all()] == [sid]
    assert store.get(sid)["legacy_ids"] == ["legacy1"]
    assert migrate_stable_ids.main(["--verify"] + store_args(data_dir, write=False)) == 0


def test_fix_coordinates(tmp_path, data_dir, store):
    """Test text coordinates are converted and leftovers exported."""
    store.create({"name": "富士山", "lat": "35.3606", "lng": "138.7274"}, record_id="fuji")
    store.create({"name": "新山"}, record_id="new")
    export = tmp_path / "defects.csv"

    assert fix_coordinates.main(["--export", str(export)] + store_args(data_dir)) == 0
    assert store.get("fuji")["lat"] == 35.3606
    assert pd.read_csv(export, encoding="utf-8-sig")["id"].tolist() == ["new"]


def test_fix_tags(data_dir, store):
    """Test pipe-joined tags are split and superseded tags dropped."""
    store.create({"name": "槍ヶ岳", "tags": "日本百名山|日本二百名山"}, record_id="y1")
    assert fix_tags.main(store_args(data_dir)) == 0
    assert store.get("y1")["tags"] == ["日本百名山"]


class TestDeduplicate:
    """Tests for mountaindb-dedupe."""

    @pytest.fixture
    def seeded(self, store):
        sid = stable_id_for("槍ヶ岳", "長野県")
        store.create({"name": "槍ヶ岳", "pref": "長野県", "tags": ["日本百名山"]}, record_id="legacy1")
        store.create({"name": "槍ケ岳", "pref": "長野県"}, record_id=sid)
        return sid

    def test_dedupe(self, data_dir, store, seeded):
        """Test the duplicate is folded into the stable record."""
        assert deduplicate.main(store_args(data_dir)) == 0
        assert store.get("legacy1") is None
        assert store.get(seeded)["legacy_ids"] == ["legacy1"]

    def test_dedupe_dry_run(self, data_dir, store, seeded):
        """Test the default dry run deletes nothing."""
        assert deduplicate.main(store_args(data_dir, write=False)) == 0
        assert store.get("legacy1") is not None

    def test_from_report_csv(self, tmp_path, data_dir, store, seeded):
        """Test only groups named in a report are deduplicated."""
        report = write_csv(tmp_path / "report.csv", [
            {"category": "ambiguous", "row": "3.0", "name": "槍ヶ岳", "pref": "長野県",
             "target_ids": f"legacy1|{seeded}", "detail": "", "patch_fields": ""},
            {"category": "created", "row": "4", "name": "x", "pref": "",
             "target_ids": "n1", "detail": "", "patch_fields": ""},
        ])
        assert deduplicate.main(["--from-report-csv", str(report)] + store_args(data_dir)) == 0
        assert store.get("legacy1") is None


def test_enrich_trailheads(data_dir, store):
    """Test OSM trailheads are merged into tagged mountains."""
    store.create({"name": "高尾山", "tags": ["関東"], "lat": 35.625, "lng": 139.2437}, record_id="t1")
    store.create({"name": "富士山", "lat": 35.36, "lng": 138.73}, record_id="fuji")
    found = [{"name": "高尾山口", "lat": 35.632, "lng": 139.27, "source": "osm", "osm_id": "node/1"}]

    with patch.object(enrich_trailheads, "OverpassClient"), \
            patch.object(enrich_trailheads, "osm_trailheads", return_value=found) as lookup:
        assert enrich_trailheads.main(["--tag", "関東"] + store_args(data_dir)) == 0

    assert lookup.call_count == 1
    assert store.get("t1")["trailheads"] == found
    assert "trailheads" not in store.get("fuji")


def test_enrich_trailheads_skips_loose_trailheads(data_dir, store):
    """Test mountains whose trailheads have the wrong shape are left alone."""
    doc = {"name": "高尾山", "tags": ["関東"], "lat": 35.625, "lng": 139.2437, "trailheads": {"name": "高尾山口"}}
    store.create(doc, record_id="t1")

    with patch.object(enrich_trailheads, "OverpassClient"), \
            patch.object(enrich_trailheads, "osm_trailheads") as lookup:
        assert enrich_trailheads.main(["--tag", "関東"] + store_args(data_dir)) == 0

    lookup.assert_not_called()
    assert store.get("t1")["trailheads"] == {"name": "高尾山口"}
