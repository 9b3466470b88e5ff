"""Tests for QueryBuilder - concept extraction, tiers and per-source queries."""

from __future__ import annotations

import pytest

from publication_search.application.search.query_builder import (
    QueryBuilder,
    build_arxiv_query,
    build_concept_clause,
    build_exposure_clause,
    extract_concepts,
)
from publication_search.models.query import QueryKind

MIGRAINE_TIER2 = "((migraine[tiab])) AND ((mold[tiab]) OR (exposure[tiab]))"
TOXICITY_CLAUSE = (
    '((toxicity[tiab]) OR (toxic[tiab]) OR (poisoning[tiab]) OR (exposure[tiab]) OR ("environmental exposure"[tiab]))'
)


@pytest.fixture
def builder():
    return QueryBuilder()


# ============================================================
# Concept extraction
# ============================================================


class TestExtractConcepts:
    def test_disease_and_exposure(self):
        concepts = extract_concepts("migraine mold exposure")
        assert concepts.core == ["migraine"]
        assert concepts.modifier == ["mold", "exposure"]
        assert concepts.rare == ["mold", "exposure"]

    def test_exposure_phrase_kept_whole(self):
        concepts = extract_concepts("asthma indoor damp air")
        assert concepts.modifier[0] == "indoor damp air"
        assert concepts.core == ["asthma"]

    def test_demographics_set_aside(self):
        concepts = extract_concepts("pediatric migraine")
        assert concepts.core == ["migraine"]
        assert concepts.demographics == ["pediatric"]

    def test_stop_words_dropped(self):
        assert extract_concepts("cancer of the breast").core == ["cancer breast"]

    def test_intervention_from_treatment_and_trial(self):
        concepts = extract_concepts("migraine treatment randomized trial")
        assert '"drug therapy"[sh]' in concepts.intervention
        assert "randomized controlled trial[pt]" in concepts.intervention


# ============================================================
# Clause builders
# ============================================================


class TestClauses:
    def test_concept_clause_adds_synonyms(self):
        assert build_concept_clause(["diabetes"]) == '((diabetes[tiab]) OR ("Diabetes Mellitus"[tiab]) OR (DM[tiab]))'

    def test_concept_clause_adds_mesh(self):
        clause = build_concept_clause(["stroke"])
        assert "(Cerebrovascular Accident[mh])" in clause

    def test_concept_clause_without_mesh(self):
        assert "[mh]" not in build_concept_clause(["stroke"], use_mesh=False)

    def test_empty_clause(self):
        assert build_concept_clause([]) == ""
        assert build_exposure_clause(["  "]) == ""

    def test_exposure_clause_quotes_phrases(self):
        assert build_exposure_clause(["mold", "indoor damp"]) == '((mold[tiab]) OR ("indoor damp"[tiab]))'

    def test_arxiv_query_drops_generic_terms(self):
        concepts = extract_concepts("glioblastoma treatment")
        assert build_arxiv_query(concepts, "fallback") == "glioblastoma"


# ============================================================
# Topic queries
# ============================================================


class TestConceptQuery:
    def test_single_concept(self, builder):
        meta = builder.build("diabetes")
        assert meta.kind is QueryKind.TOPIC
        assert not meta.is_multi_concept
        assert meta.tier1_query is None and meta.tier2_query is None
        assert meta.query_for("pubmed") == '((diabetes[tiab]) OR ("Diabetes Mellitus"[tiab]) OR (DM[tiab]))'
        assert meta.core_concept_terms == ["diabetes", "Diabetes Mellitus", "DM"]
        assert meta.display_keywords == ["diabetes", "Diabetes Mellitus", "DM"]

    def test_multi_concept_tiers(self, builder):
        meta = builder.build("migraine mold exposure")
        assert meta.is_multi_concept
        assert meta.tier2_query == MIGRAINE_TIER2
        assert meta.tier1_query == f"{MIGRAINE_TIER2} AND {TOXICITY_CLAUSE}"
        assert meta.core_concept_terms == ["migraine"]
        assert meta.modifier_concept_terms == ["mold", "exposure"]
        assert meta.rare_concept_terms == ["mold", "exposure"]

    def test_main_query_prefers_tier1(self, builder):
        meta = builder.build("migraine mold exposure")
        assert meta.query_for("pubmed") == meta.tier1_query

    def test_secondary_source_queries(self, builder):
        meta = builder.build("migraine mold exposure")
        assert meta.query_for("openalex") == "((migraine)) AND ((mold) OR (exposure))"
        assert meta.query_for("semantic_scholar") == "migraine mold exposure"
        assert meta.query_for("arxiv") == "migraine mold exposure"

    def test_disease_and_intervention(self, builder):
        meta = builder.build("migraine treatment")
        pubmed = meta.query_for("pubmed")
        assert pubmed.startswith("((migraine treatment[tiab])) AND (")
        assert "therapeutics[mh]" in pubmed
        assert meta.intent.wants_treatment

    def test_exposure_only_query_is_not_multi_concept(self, builder):
        meta = builder.build("mold")
        assert not meta.is_multi_concept
        assert meta.core_concept_terms == []
        assert meta.query_for("pubmed") == "mold"

    def test_sources_limit_source_queries(self, builder):
        meta = builder.build("diabetes", sources=["pubmed", "arxiv"])
        assert set(meta.source_queries) == {"pubmed", "arxiv"}

    def test_full_exposure_family(self):
        meta = QueryBuilder(simplified_exposure=False).build("asthma mold")
        assert "stachybotrys[tiab]" in meta.tier2_query
        assert '"water-damaged building"[tiab]' in meta.tier2_query

    def test_full_exposure_family_fills_modifier_terms(self):
        meta = QueryBuilder(simplified_exposure=False).build("asthma damp")
        assert meta.is_multi_concept
        assert meta.modifier_concept_terms == ["damp"]
        assert "(mold[tiab])" in meta.tier2_query

    def test_full_exposure_family_ignores_unrelated_building(self):
        meta = QueryBuilder(simplified_exposure=False).build("muscle building diabetes")
        assert not meta.is_multi_concept
        assert meta.tier2_query is None
        assert meta.modifier_concept_terms == []
        assert "stachybotrys" not in meta.query_for("pubmed")

    def test_simplified_exposure_only_query_terms(self, builder):
        meta = builder.build("asthma mold")
        assert meta.tier2_query == "((asthma[tiab])) AND ((mold[tiab]))"

    def test_question_goes_through_keywords(self, builder):
        meta = builder.build("what are the latest treatments for PCOS?")
        assert meta.intent.wants_recent
        assert "latest" not in meta.core_concept_terms
        assert meta.core_concept_terms[0] == "treatments pcos"


# ============================================================
# Exact and field-tagged queries
# ============================================================


class TestExactAndPassthrough:
    def test_pmid_goes_to_pubmed_only(self, builder):
        meta = builder.build("12345678")
        assert meta.is_exact_identifier_search
        assert meta.source_queries == {"pubmed": "12345678[PMID] OR PMC12345678[PMCID]"}
        assert meta.has_field_tags

    def test_exact_title(self, builder):
        meta = builder.build("Mold exposure and chronic migraine in adults")
        assert meta.kind is QueryKind.EXACT_TITLE
        assert list(meta.source_queries) == ["pubmed"]
        assert meta.query_terms == ["mold", "exposure", "chronic", "migraine", "adults"]
        assert meta.display_keywords == ["Mold", "exposure", "chronic"]

    def test_scholar_operators_passthrough(self, builder):
        meta = builder.build('author:"Smith J" glioma')
        assert meta.has_field_tags
        assert meta.query_for("pubmed") == '"Smith J"[AU] glioma'
        assert meta.query_for("openalex") == '"Smith J" glioma'
        assert meta.query_terms == ["smith", "glioma"]
        assert not meta.is_multi_concept

    def test_long_scholar_query_passthrough(self, builder):
        meta = builder.build('author:"Smith J" intitle:glioma -pediatric')
        assert meta.kind is QueryKind.TOPIC
        assert meta.query_for("pubmed") == '"Smith J"[AU] glioma[TI] NOT pediatric'
