"""End-to-end tests for PublicationDiscoveryService with in-memory adapters."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from publication_search.application.ports import CitationMetrics
from publication_search.application.search.discovery_service import PublicationDiscoveryService
from publication_search.application.search.tiered_retrieval import TieredRetrievalController
from publication_search.core.exceptions import CatastrophicFailureError
from publication_search.models.query import SearchRequest, UserProfile

FILLER = "Clinic cohort followed for two years. " * 10


@pytest.fixture
def make_service(today):
    def _create(*adapters, **kwargs) -> PublicationDiscoveryService:
        retrieval = TieredRetrievalController({a.source_name: a for a in adapters})
        return PublicationDiscoveryService(retrieval, today=today, **kwargs)

    return _create


@pytest.fixture
def weak_record(make_record):
    """Migraine only via subject headings, mold mentioned once late in the abstract."""

    def _create():
        return make_record(
            "Headache clinic cohort",
            mesh_major_topics=["Migraine Disorders"],
            abstract=f"{FILLER}Some homes had mold.",
        )

    return _create


# ============================================================
# Basic searches
# ============================================================


class TestSearch:
    async def test_single_concept(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter(
            "pubmed",
            [
                make_record("DM in youth", id="2"),
                make_record("Obesity review", abstract="Diabetes diabetes diabetes.", id="3"),
                make_record("Diabetes outcomes", id="1"),
            ],
        )

        page = await make_service(pubmed).search(SearchRequest(query="diabetes"))

        assert [i.record.id for i in page.items] == ["1", "2"]
        assert page.total_count == 2
        assert not page.has_more
        assert page.display_keywords == ["diabetes", "Diabetes Mellitus", "DM"]
        assert page.sources_used == ["pubmed"]
        assert not page.failed

    async def test_exact_title_pinned_first(self, make_service, fake_adapter, make_record):
        title = "Mold exposure and chronic migraine in adults"
        popular = make_record("Chronic migraine in adults and mold exposure", year=2026, citation_count=500, id="9")
        exact = make_record(title, year=2000, id="1")
        pubmed = fake_adapter("pubmed", [popular, exact])

        page = await make_service(pubmed).search(SearchRequest(query=title))

        assert [i.record.id for i in page.items] == ["1", "9"]
        assert page.items[0].exact_match
        assert not page.items[1].exact_match

    async def test_title_equal_to_topic_query_pinned_first(self, make_service, fake_adapter, make_record):
        popular = make_record("Diabetes outcomes among youth cohorts", year=2025, citation_count=5000, id="9")
        exact = make_record("Diabetes Outcomes in Youth", year=2010, citation_count=0, id="1")
        pubmed = fake_adapter("pubmed", [popular, exact])

        page = await make_service(pubmed).search(SearchRequest(query="diabetes outcomes in youth"))

        assert [i.record.id for i in page.items] == ["1", "9"]
        assert page.items[0].exact_title
        assert page.items[0].relevance_score == 1.0

    async def test_pubmed_query_built_when_not_requested(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter("pubmed", [])
        openalex = fake_adapter("openalex", [make_record("Heart attack in women", source="openalex")])

        await make_service(pubmed, openalex).search(SearchRequest(query="heart attack", sources=("openalex",)))

        assert [c.q for c in pubmed.calls] == [
            '((heart attack[tiab]) OR (Myocardial Infarction[mh]) OR (MI[tiab]) OR ("Acute Myocardial Infarction"[tiab]))'
        ]
        assert openalex.calls[0].q != ""

    async def test_pagination(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter("pubmed", [make_record(f"Diabetes study {i}") for i in range(15)])
        service = make_service(pubmed)

        first = await service.search(SearchRequest(query="diabetes", page=1, page_size=10))
        second = await service.search(SearchRequest(query="diabetes", page=2, page_size=10))

        assert len(first.items) == 10 and first.has_more
        assert len(second.items) == 5 and not second.has_more
        ids = [i.record.id for i in first.items + second.items]
        assert len(set(ids)) == 15

    async def test_sources_restriction(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter("pubmed", [make_record("Diabetes care")])
        openalex = fake_adapter("openalex", [make_record("Diabetes care in clinics", source="openalex")])

        page = await make_service(pubmed, openalex).search(SearchRequest(query="diabetes", sources=("pubmed",)))

        assert openalex.calls == []
        assert page.source_counts == {"pubmed": 1}

    async def test_require_abstract(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter(
            "pubmed",
            [make_record("Diabetes care", id="1"), make_record("Diabetes risk", abstract="Cohort.", id="2")],
        )

        page = await make_service(pubmed, require_abstract=True).search(SearchRequest(query="diabetes"))

        assert [i.record.id for i in page.items] == ["2"]


# ============================================================
# Failures
# ============================================================


class TestFailures:
    async def test_one_failing_source(self, make_service, fake_adapter, failing_adapter, make_record):
        pubmed = fake_adapter("pubmed", [make_record("Diabetes care")])

        page = await make_service(pubmed, failing_adapter("openalex")).search(SearchRequest(query="diabetes"))

        assert page.total_count == 1
        assert page.sources_used == ["pubmed"]

    async def test_all_sources_failing(self, make_service, failing_adapter):
        service = make_service(failing_adapter("pubmed"), failing_adapter("openalex"))

        with pytest.raises(CatastrophicFailureError) as exc_info:
            await service.search(SearchRequest(query="diabetes"))

        assert exc_info.value.failed_sources == ["pubmed", "openalex"]
        assert exc_info.value.retryable

    async def test_empty_results_are_not_an_error(self, make_service, fake_adapter):
        page = await make_service(fake_adapter("pubmed", [])).search(SearchRequest(query="diabetes"))

        assert page.items == []
        assert page.total_count == 0
        assert not page.failed


# ============================================================
# Multi-concept behavior
# ============================================================


class TestMultiConcept:
    async def test_fallback_applied(self, make_service, fake_adapter, weak_record):
        pubmed = fake_adapter("pubmed", [weak_record()])

        page = await make_service(pubmed).search(SearchRequest(query="migraine mold exposure"))

        assert page.fallback_applied
        assert page.total_count == 1
        assert page.related_weak_exposure == []

    async def test_weak_exposure_bucket(self, make_service, fake_adapter, make_record, weak_record):
        strong = make_record("Mold exposure and migraine", id="1")
        weak = weak_record()
        pubmed = fake_adapter("pubmed", [strong, weak])

        page = await make_service(pubmed).search(SearchRequest(query="migraine mold exposure"))

        assert [i.record.id for i in page.items] == ["1"]
        assert [i.record.id for i in page.related_weak_exposure] == [weak.id]
        assert not page.fallback_applied
        assert page.items[0].multi_concept_strength == 2

    async def test_nothing_relevant(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter("pubmed", [make_record("Sleep quality in nurses")])

        page = await make_service(pubmed).search(SearchRequest(query="migraine mold exposure"))

        assert page.items == []
        assert page.fallback_applied


# ============================================================
# Optional collaborators
# ============================================================


class TestCollaborators:
    async def test_profile_match(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter("pubmed", [make_record("Diabetes care", year=2025)])
        request = SearchRequest(query="diabetes", profile=UserProfile(conditions=["diabetes"]))

        page = await make_service(pubmed).search(request)

        assert page.items[0].match_score > 0.1
        assert page.items[0].match_explanation.startswith("Based on")

    async def test_no_profile_no_match(self, make_service, fake_adapter, make_record):
        page = await make_service(fake_adapter("pubmed", [make_record("Diabetes care")])).search(
            SearchRequest(query="diabetes")
        )
        assert page.items[0].match_score == 0.0
        assert page.items[0].match_explanation is None

    async def test_profile_from_store(self, make_service, fake_adapter, make_record):
        store = AsyncMock()
        store.get_profile.return_value = UserProfile(conditions=["diabetes"])
        service = make_service(fake_adapter("pubmed", [make_record("Diabetes care")]), profile_store=store)

        page = await service.search(SearchRequest(query="diabetes", user_id="u1"))

        store.get_profile.assert_awaited_once_with("u1")
        assert page.items[0].match_explanation is not None

    async def test_citation_enrichment(self, make_service, fake_adapter, make_record):
        metrics = AsyncMock()
        metrics.get_metrics.return_value = {"111": CitationMetrics(citation_count=120, influence_metric=2.5)}
        service = make_service(fake_adapter("pubmed", [make_record("Diabetes care", id="111")]), citation_metrics=metrics)

        page = await service.search(SearchRequest(query="diabetes"))

        metrics.get_metrics.assert_awaited_once_with(["111"])
        assert page.items[0].record.citation_count == 120
        assert page.items[0].record.influence_metric == 2.5

    async def test_citation_failure_tolerated(self, make_service, fake_adapter, make_record):
        metrics = AsyncMock()
        metrics.get_metrics.side_effect = RuntimeError("icite down")
        service = make_service(fake_adapter("pubmed", [make_record("Diabetes care")]), citation_metrics=metrics)

        page = await service.search(SearchRequest(query="diabetes"))

        assert page.total_count == 1

    async def test_title_simplifier(self, make_service, fake_adapter, make_record):
        simplifier = AsyncMock()
        simplifier.simplify_titles.return_value = ["Plain diabetes title"]
        service = make_service(fake_adapter("pubmed", [make_record("Diabetes care")]), title_simplifier=simplifier)

        page = await service.search(SearchRequest(query="diabetes"))

        assert page.items[0].simplified_title == "Plain diabetes title"

    async def test_title_simplifier_skipped_for_researchers(self, make_service, fake_adapter, make_record):
        simplifier = AsyncMock()
        service = make_service(fake_adapter("pubmed", [make_record("Diabetes care")]), title_simplifier=simplifier)
        request = SearchRequest(query="diabetes", profile=UserProfile(interests=["diabetes"], role="researcher"))

        page = await service.search(request)

        simplifier.simplify_titles.assert_not_awaited()
        assert page.items[0].simplified_title is None

    async def test_read_state(self, make_service, fake_adapter, make_record):
        read_state = AsyncMock()
        read_state.read_ids.return_value = {"111"}
        pubmed = fake_adapter("pubmed", [make_record("Diabetes care", id="111"), make_record("Diabetes risk", id="222")])

        page = await make_service(pubmed, read_state=read_state).search(SearchRequest(query="diabetes", user_id="u1"))

        assert {i.record.id: i.is_read for i in page.items} == {"111": True, "222": False}


# ============================================================
# Ranking scenarios
# ============================================================


class TestRankingScenarios:
    async def test_citations_decide_between_equal_matches(self, make_service, fake_adapter, make_record):
        pubmed = fake_adapter(
            "pubmed",
            [
                make_record("Diabetes Management in Older Adults", year=2020, citation_count=50, id="50"),
                make_record("Diabetes and Exercise: A Randomized Trial", year=2020, citation_count=5000, id="5000"),
            ],
        )

        page = await make_service(pubmed).search(SearchRequest(query="diabetes"))

        assert [i.record.id for i in page.items] == ["5000", "50"]
        assert page.items[0].influence_score > page.items[1].influence_score

    async def test_sparse_tier1_keeps_its_hits_and_widens(self, make_service, fake_adapter, make_record):
        def pubmed_responder(query):
            if "toxicity[tiab]" in query.q:
                return [make_record(f"Mold toxicity and migraine case {i}", id=f"t1-{i}") for i in range(3)]
            return [make_record(f"Mold exposure and migraine cohort {i}", id=f"t2-{i}") for i in range(40)]

        pubmed = fake_adapter("pubmed", pubmed_responder)

        page = await make_service(pubmed).search(
            SearchRequest(query="migraine AND mold exposure", page_size=100)
        )

        ids = [i.record.id for i in page.items]
        assert len(pubmed.calls) == 2
        assert page.total_count >= 40
        assert {"t1-0", "t1-1", "t1-2"} <= set(ids)
        assert not page.fallback_applied

    async def test_repeated_searches_rank_identically(self, make_service, fake_adapter, make_record):
        records = [
            make_record("Diabetes care", year=2021, citation_count=10, id="1"),
            make_record("Diabetes care", year=2021, citation_count=10, id="2", doi="10.1/two"),
            make_record("Diabetes risk in youth", year=2024, id="3"),
            make_record("Diabetes Mellitus and sleep", year=2018, citation_count=300, id="4"),
        ]
        openalex_records = [
            make_record("Diabetes screening", source="openalex", id="W1", year=2023, citation_count=40),
            make_record("Diabetes risk in youth", source="openalex", id="W3", year=2024),
        ]
        service = make_service(fake_adapter("pubmed", records), fake_adapter("openalex", openalex_records))

        runs = [await service.search(SearchRequest(query="diabetes")) for _ in range(3)]

        orders = [[(i.record.id, i.final_score) for i in page.items] for page in runs]
        assert orders[0] == orders[1] == orders[2]
        # duplicates collapse to the PubMed copy
        assert sorted(record_id for record_id, _ in orders[0]) == ["1", "3", "4", "W1"]
