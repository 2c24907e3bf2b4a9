"""Tests for mountain name normalization."""

import pytest

from mountaindb.utils.name_normalizer import (
    char_variants,
    normalize,
    normalize_kana,
    strip_parens,
)


class TestNormalize:
    """Tests for the comparison key."""

    def test_romanized_alias_and_suffix(self):
        """Test parenthetical alias and romanized suffix are removed."""
        assert normalize("Takao-san (alt. Takaosan)") == "takao"
        assert normalize("Takaosan") == "takao"

    def test_fullwidth_brackets_and_kanji_variant(self):
        """Test full-width brackets and 嶽 -> 岳 unification."""
        assert normalize("御嶽山（木曽御嶽）") == "御岳"
        assert normalize("御嶽山") == normalize("御岳山")

    def test_small_ke_unified(self):
        """Test ヶ and ケ produce the same key."""
        assert normalize("槍ヶ岳") == normalize("槍ケ岳") == "槍ケ"

    def test_suffix_run_removed(self):
        """Test a run of generic words is removed as one suffix."""
        assert normalize("立山連峰") == "立山"
        assert normalize("Obscure Peak") == "obscure"

    def test_short_names_kept(self):
        """Test names are never reduced below two characters."""
        assert normalize("立山") == "立山"
        assert normalize("岳") == "岳"
        assert normalize("Peak") == "peak"

    def test_mount_prefix(self):
        """Test Mt./Mount prefixes are dropped."""
        assert normalize("Mt. Fuji") == "fuji"
        assert normalize("Mount Fuji") == "fuji"

    def test_whitespace_and_punctuation(self):
        """Test whitespace (incl. U+3000) and mid-dots are removed."""
        assert normalize("高　尾・山") == normalize("高尾山")

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_input(self, value):
        """Test empty input yields an empty key."""
        assert normalize(value) == ""

    @pytest.mark.parametrize("name", [
        "Takao-san (alt. Takaosan)",
        "御嶽山（木曽御嶽）",
        "立山連峰",
        "Mount Fuji",
        "Asahi-dake",
        "八ヶ岳連峰",
        "Yamanashi Mountains",
        "岳山",
        "  大菩薩嶺  ",
        "【旧】赤岳",
    ])
    def test_idempotent(self, name):
        """Test normalize(normalize(x)) == normalize(x)."""
        once = normalize(name)
        assert normalize(once) == once


class TestHelpers:
    """Tests for raw-name helpers."""

    def test_strip_parens(self):
        """Test aliases are removed but the name is otherwise kept."""
        assert strip_parens("利尻山（利尻富士）") == "利尻山"
        assert strip_parens("Takao-san (alt. Takaosan)") == "Takao-san"
        assert strip_parens(None) == ""

    def test_char_variants(self):
        """Test spelling variants start with the original name."""
        variants = char_variants("槍ヶ岳")
        assert variants[0] == "槍ヶ岳"
        assert "槍ケ岳" in variants
        assert "槍ヶ嶽" in variants
        assert len(variants) == len(set(variants))

    def test_char_variants_ontake(self):
        """Test the 御嶽山/御岳山 pair."""
        assert "御岳山" in char_variants("御嶽山")
        assert "御嶽山" in char_variants("御岳山")

    def test_normalize_kana(self):
        """Test katakana folds to hiragana and spaces vanish."""
        assert normalize_kana("タカオサン") == "たかおさん"
        assert normalize_kana("たかお さん") == "たかおさん"
        assert normalize_kana(None) == ""
