"""Tests for the publication and query models."""

from datetime import date

import pytest

from publication_search.core.exceptions import (
    CatastrophicFailureError,
    InvalidParameterError,
    InvalidQueryError,
)
from publication_search.models import (
    SOURCE_PRIORITY,
    DateRange,
    PublicationRecord,
    QueryKind,
    QueryMeta,
    RankedPage,
    ScoredRecord,
    SearchRequest,
    SourceResult,
    UserProfile,
    normalize_doi,
    normalize_title,
)

TODAY = date(2026, 10, 19)


# ============================================================
# DateRange
# ============================================================


class TestDateRange:
    def test_partial_bounds_expand(self):
        assert DateRange("2020", "2021/02").bounds() == (date(2020, 1, 1), date(2021, 2, 28))
        assert DateRange("2020-03-05", "2020-03-05").bounds() == (date(2020, 3, 5), date(2020, 3, 5))

    def test_open_bounds(self):
        start, end = DateRange(min_date="2024").bounds(today=TODAY)
        assert start == date(2024, 1, 1)
        assert end == TODAY
        assert DateRange(max_date="2000").bounds()[0] == date(1900, 1, 1)

    def test_pubmed_and_iso_bounds(self):
        assert DateRange(min_date="2024").pubmed_bounds(today=TODAY) == ("2024/01/01", "2026/10/19")
        assert DateRange(max_date="2024/02").iso_bounds() == (None, "2024-02-29")

    def test_invalid_format(self):
        with pytest.raises(InvalidParameterError, match="min_date"):
            DateRange(min_date="June 2020")

    def test_invalid_month(self):
        with pytest.raises(InvalidParameterError, match="month"):
            DateRange(min_date="2020/13").bounds()

    def test_contains_year(self):
        window = DateRange("2020", "2021")
        assert window.contains_year(2021)
        assert not window.contains_year(2019)
        assert window.contains_year(None)
        assert DateRange().contains_year(1800)
        assert DateRange().is_empty


# ============================================================
# SearchRequest and UserProfile
# ============================================================


class TestSearchRequest:
    def test_query_stripped(self):
        request = SearchRequest(query="  glioma  ", sort="date")
        assert request.query == "glioma"
        assert request.sort == "date"

    def test_blank_query(self):
        with pytest.raises(InvalidQueryError):
            SearchRequest(query="   ")

    @pytest.mark.parametrize(
        "kwargs, param",
        [
            ({"sort": "citations"}, "sort"),
            ({"page": 0}, "page"),
            ({"page_size": 101}, "page_size"),
            ({"page_size": 0}, "page_size"),
        ],
    )
    def test_invalid_parameters(self, kwargs, param):
        with pytest.raises(InvalidParameterError, match=f"'{param}'"):
            SearchRequest(query="glioma", **kwargs)


class TestUserProfile:
    def test_terms_deduplicated(self):
        profile = UserProfile(conditions=["Migraine", " "], keywords=["migraine", "mold"], interests=["Air Quality"])
        assert profile.terms == ["migraine", "mold", "air quality"]

    def test_researcher_role(self):
        assert UserProfile(role="Researcher").is_researcher
        assert not UserProfile().is_researcher


# ============================================================
# Records
# ============================================================


class TestPublicationRecord:
    @pytest.mark.parametrize(
        "raw",
        ["10.1000/ABC", "https://doi.org/10.1000/abc", "https://dx.doi.org/10.1000/ABC", "doi: 10.1000/abc"],
    )
    def test_doi_normalized(self, raw):
        assert normalize_doi(raw) == "10.1000/abc"

    def test_doi_and_title_cleaned(self):
        with_doi = PublicationRecord(id="1", title="T", source="pubmed", doi="10.1/X")
        without = PublicationRecord(id="2", title="  Glioblastoma\n IDH1  Mutations ", source="openalex")
        assert with_doi.doi == "10.1/x"
        assert without.doi == ""
        assert without.title == "Glioblastoma IDH1 Mutations"
        assert without.normalized_title == "glioblastoma idh1 mutations"
        assert normalize_title(None) == ""

    def test_source_classes(self):
        assert PublicationRecord(id="1", title="T", source="pubmed").is_primary
        assert PublicationRecord(id="2", title="T", source="arxiv").is_preprint
        assert list(SOURCE_PRIORITY) == ["pubmed", "openalex", "semantic_scholar", "arxiv"]

    def test_failed_source_result(self):
        result = SourceResult.failed("arxiv", "arXiv: timeout")
        assert not result.ok
        assert result.items == [] and result.total_count == 0

    def test_scored_to_dict(self):
        record = PublicationRecord(id="1", title="Long title", source="pubmed")
        data = ScoredRecord(record=record, relevance_score=0.12345).to_dict()
        assert data["doi"] is None
        assert data["scores"]["relevance"] == 0.123
        assert data["simplified_title"] == "Long title"
        assert data["exposure_match_level"] == "none"


class TestRankedPage:
    def test_from_error(self):
        page = RankedPage.from_error(CatastrophicFailureError(["pubmed"]), page=2, page_size=5)
        assert page.failed
        assert page.items == []
        data = page.to_dict()
        assert data["page"] == 2
        assert data["error"]["error"] == "All publication sources failed (pubmed)"
        assert "related_weak_exposure" not in data

    def test_empty_page_is_not_failure(self):
        page = RankedPage()
        assert not page.failed
        assert "error" not in page.to_dict()


# ============================================================
# QueryMeta
# ============================================================


class TestQueryMeta:
    def test_query_for_falls_back(self):
        meta = QueryMeta(raw_query="Mold and migraine", search_query="mold migraine", source_queries={"pubmed": "x"})
        assert meta.query_for("pubmed") == "x"
        assert meta.query_for("arxiv") == "mold migraine"
        assert QueryMeta(raw_query="raw").query_for("arxiv") == "raw"

    def test_phrase_candidates(self):
        meta = QueryMeta(raw_query="Mold and migraine", search_query="mold migraine")
        assert meta.phrase_candidates == ["mold and migraine", "mold migraine"]

    def test_exposure_terms(self):
        meta = QueryMeta(raw_query="q", modifier_concept_terms=["mold", "fungi"], rare_concept_terms=["fungi", "radon"])
        assert meta.exposure_terms == ["mold", "fungi", "radon"]

    def test_exact_kinds(self):
        assert QueryMeta(raw_query="12345678", kind=QueryKind.PMID).is_exact_identifier_search
        assert QueryMeta(raw_query="t", kind=QueryKind.EXACT_TITLE).is_exact_search
        assert not QueryMeta(raw_query="t").is_exact_search
