"""Tests for Scholar operator parsing and field-tag helpers."""

from __future__ import annotations

from publication_search.application.search.query_parser import (
    has_date_filter,
    has_field_tags,
    normalize_booleans,
    parse_minus_as_not,
    parse_query,
    parse_scholar_operators,
    plain_query,
)


class TestScholarOperators:
    def test_author_quoted(self):
        assert parse_scholar_operators('author:"Smith J"') == '"Smith J"[AU]'

    def test_intitle_single_quoted_phrase(self):
        assert parse_scholar_operators("intitle:'breast cancer'") == '"breast cancer"[TI]'

    def test_intext_and_journal(self):
        assert parse_scholar_operators("intext:hypoxia journal:Lancet") == "hypoxia[TW] Lancet[TA]"

    def test_operator_case_insensitive(self):
        assert parse_scholar_operators("Author:Smith") == "Smith[AU]"


class TestMinusAndBooleans:
    def test_minus_word(self):
        assert parse_minus_as_not("cancer -treatment") == "cancer NOT treatment"

    def test_minus_phrase(self):
        assert parse_minus_as_not('cancer -"radiation therapy"') == 'cancer NOT "radiation therapy"'

    def test_hyphenated_word_untouched(self):
        assert parse_minus_as_not("long-term outcomes") == "long-term outcomes"

    def test_booleans_uppercased(self):
        assert normalize_booleans("heart  disease or stroke and not   cancer") == "heart disease OR stroke AND NOT cancer"

    def test_parse_query_pipeline(self):
        assert parse_query('author:"Smith J" intitle:glioma -pediatric') == '"Smith J"[AU] glioma[TI] NOT pediatric'

    def test_parse_query_empty(self):
        assert parse_query("") == ""


class TestFieldTags:
    def test_has_field_tags(self):
        assert has_field_tags("glioma[TI]")
        assert has_field_tags("Myocardial Infarction[mh]")
        assert not has_field_tags("glioma [1]")
        assert not has_field_tags("")

    def test_has_date_filter(self):
        assert has_date_filter("cancer AND 2020:2024[dp]")
        assert has_date_filter("cancer AND 2020:2024[ DP ]")
        assert not has_date_filter("cancer[tiab]")

    def test_plain_query(self):
        assert plain_query('("Diabetes Mellitus"[tiab]) OR (DM[tiab])') == '("Diabetes Mellitus") OR (DM)'
        assert plain_query(None) == ""
