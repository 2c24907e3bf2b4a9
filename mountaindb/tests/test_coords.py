"""Tests for coordinate defect detection and repair."""

import pandas as pd
import pytest

from mountaindb.utils.coords import (
    classify_coordinate,
    coordinate_fix_patches,
    export_defects,
    find_coordinate_defects,
)
from mountaindb.utils.store import CorpusOverlay


@pytest.fixture
def corpus():
    return CorpusOverlay([
        {"id": "ok", "name": "高尾山", "lat": 35.625, "lng": 139.2437},
        {"id": "fuji", "name": "富士山", "lat": "35.36", "lng": "138.72"},
        {"id": "zero", "name": "丹沢山", "lat": 0, "lng": 0},
        {"id": "none", "name": "新山"},
        {"id": "swap", "name": "雲取山", "lat": 138.94, "lng": 35.85},
        {"id": "junk", "name": "謎の山", "lat": "北緯35度", "lng": 139.0},
    ])


class TestClassify:
    """Tests for classify_coordinate()."""

    @pytest.mark.parametrize("value,expected", [
        (35.6, "ok"),
        (139, "ok"),
        (0, "zero"),
        (None, "missing"),
        ("  ", "missing"),
        ("35.6", "text"),
        (True, "text"),
    ])
    def test_classify(self, value, expected):
        """Test each coordinate class."""
        assert classify_coordinate(value) == expected


class TestDefects:
    """Tests for defect listing and export."""

    def test_find_defects(self, corpus):
        """Test every bad record is listed with its problems."""
        defects = {d["id"]: d["problem"] for d in find_coordinate_defects(corpus)}
        assert defects == {
            "fuji": "lat:text;lng:text",
            "zero": "lat:zero;lng:zero",
            "none": "lat:missing;lng:missing",
            "swap": "lat:out_of_range;lng:out_of_range",
            "junk": "lat:text",
        }

    def test_export(self, corpus, tmp_path):
        """Test defects are exported to CSV."""
        path = export_defects(find_coordinate_defects(corpus), tmp_path / "defects.csv")
        df = pd.read_csv(path, encoding="utf-8-sig")
        assert list(df.columns) == ["id", "name", "pref", "lat", "lng", "problem"]
        assert len(df) == 5


class TestFixPatches:
    """Tests for coordinate_fix_patches()."""

    def test_text_parsed(self, corpus):
        """Test only parseable text coordinates are patched."""
        patches = coordinate_fix_patches(corpus)
        assert patches == {"fuji": {"lat": 35.36, "lng": 138.72}}
