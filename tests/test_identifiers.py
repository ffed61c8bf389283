"""Tests for diagram identifiers and article reference formatting."""

import pytest

from kijo_core.identifiers import (
    DiagramKind,
    format_article_number,
    format_related_article,
    get_base_article_id,
    get_diagram_kind,
    is_valid_article_id,
    is_valid_law_id,
    make_diagram_id,
    make_diagram_key,
    make_related_article_id,
    normalize_article_number,
    parse_article_ref,
)


class TestDiagramId:

    def test_paragraph(self):
        assert make_diagram_id("20_3", "2") == "A20_3_P2"

    def test_item(self):
        assert make_diagram_id("20_3", "2", "1") == "A20_3_P2_I1"

    def test_article_only(self):
        assert make_diagram_id("43") == "A43"

    def test_connective_is_normalized(self):
        assert make_diagram_id("20の3", "1") == "A20_3_P1"

    def test_empty_item_still_gets_suffix(self):
        assert make_diagram_id("5", "1", "") == "A5_P1_I"

    def test_normalize(self):
        assert normalize_article_number("52の2の3") == "52_2_3"


class TestDiagramKey:

    def test_key_strips_variant_suffix(self):
        assert make_diagram_key("325AC0000000201", "A43_P1_kijo") == "325AC0000000201/A43_P1"

    @pytest.mark.parametrize("article_id,kind", [
        ("A43_P1_kijo", DiagramKind.MECHANISM),
        ("A43_P1_flow", DiagramKind.FLOW),
        ("A43_P1", None),
    ])
    def test_diagram_kind(self, article_id, kind):
        assert get_diagram_kind(article_id) is kind

    def test_base_article_id(self):
        assert get_base_article_id("A112_P1_I2_flow") == "A112_P1_I2"
        assert get_base_article_id("A112_P1_I2") == "A112_P1_I2"


class TestValidation:

    @pytest.mark.parametrize("law_id,expected", [
        ("325AC0000000201", True),
        ("325co0000000338", True),
        ("AB", False),
        ("325-AC", False),
        ("", False),
    ])
    def test_law_id(self, law_id, expected):
        assert is_valid_law_id(law_id) is expected

    @pytest.mark.parametrize("article_id,expected", [
        ("A43", True),
        ("A43_P1", True),
        ("A20_3_P2_I1", True),
        ("A43_P1_kijo", True),
        ("A112_P1_I2_flow", True),
        ("43_P1", False),
        ("A43_P", False),
        ("A43_P1_other", False),
    ])
    def test_article_id(self, article_id, expected):
        assert is_valid_article_id(article_id) is expected


class TestFormatting:

    def test_article_number(self):
        assert format_article_number("43") == "43条"
        assert format_article_number("20_3") == "20条の3"
        assert format_article_number("20の3") == "20条の3"

    @pytest.mark.parametrize("reference,display", [
        ("法::A43:P1", "法43条1項"),
        ("令::A112:P1:I2", "令112条1項2号"),
        ("法::A20_3", "法20条の3"),
        ("not a reference", "not a reference"),
    ])
    def test_related_article(self, reference, display):
        assert format_related_article(reference) == display

    def test_make_related_article_id(self):
        assert make_related_article_id("法", "43", "1") == "法::A43:P1"
        assert make_related_article_id("令", "20の3", "1", "2") == "令::A20_3:P1:I2"
        assert make_related_article_id("法", "6") == "法::A6"


class TestParseArticleRef:

    def test_paragraph(self):
        assert parse_article_ref("法43条1項") == {
            "law_prefix": "法",
            "article": "43",
            "paragraph": "1",
            "item": None,
        }

    def test_item_and_multi_part_article(self):
        ref = parse_article_ref("令20の3条1項2号")
        assert ref["law_prefix"] == "令"
        assert ref["article"] == "20_3"
        assert ref["item"] == "2"

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_article_ref("第四十三条")
