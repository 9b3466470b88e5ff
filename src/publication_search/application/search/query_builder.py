"""
QueryBuilder - turn a raw query into a concept-aware QueryMeta.

Pipeline:
    raw query
      -> QueryNormalizer (identifier / pasted title / topic keywords)
      -> Scholar operator parsing (author:, intitle:, -term)
      -> concept extraction (core disease concept, exposure modifier, intervention)
      -> PubMed boolean query: AND across concepts, OR within each concept
      -> per-source query strings

For a two-concept query like "migraine mold exposure" two tiers are built:

    tier2 = (disease clause) AND (exposure clause)
    tier1 = tier2 AND (toxicity clause)

Example:
    >>> meta = QueryBuilder().build("migraine mold exposure")
    >>> meta.tier2_query
    '((migraine[tiab])) AND ((mold[tiab]) OR (exposure[tiab]))'
    >>> meta.is_multi_concept
    True
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from publication_search.models.publication import SourceName
from publication_search.models.query import QueryIntent, QueryKind, QueryMeta

from .query_normalizer import TREATMENT_RE, TRIAL_RE, NormalizedQuery, QueryNormalizer
from .query_parser import has_field_tags, parse_query, plain_query
from .terminology import (
    EXPOSURE_FAMILIES,
    EXPOSURE_PHRASES,
    active_exposure_families,
    expand_with_synonyms,
    is_protected_exposure_token,
    map_to_mesh,
)

logger = logging.getLogger(__name__)

MODIFIER_TERMS_RE = re.compile(r"\b(pediatric|adult|elderly|children|geriatric|latest|recent|new)\b", re.IGNORECASE)
_TOKEN_CLEAN_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"\s+")

MEDICAL_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "its", "it", "as", "from", "that", "this",
    "than", "into", "not", "no", "about", "around", "within", "between", "across",
})

# Too broad to anchor a concept on their own
GENERIC_TERMS = frozenset({
    "treatment", "therapy", "therapeutic", "management", "drug", "medication", "intervention",
    "radiation", "trial", "randomized", "rct", "placebo", "clinical", "disease",
})

TREATMENT_CLAUSE_TERMS = ('"drug therapy"[sh]', "therapy[tiab]", "treatment[tiab]", "therapeutics[mh]")
TRIAL_CLAUSE_TERMS = ("randomized controlled trial[pt]", "clinical trial[pt]", "placebo[tiab]", "RCT[tiab]")

MAX_DISPLAY_KEYWORDS = 3


# =============================================================================
# Concept extraction
# =============================================================================

def tokenize(query: str) -> list[str]:
    """Lowercase, replace punctuation (except ``-``) with spaces, split."""
    return _TOKEN_CLEAN_RE.sub(" ", (query or "").lower()).split()


def query_terms_of(query: str) -> list[str]:
    """Tokens longer than two characters, used as the last-resort relevance terms."""
    return [t for t in tokenize(query) if len(t) > 2]


def _add_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


@dataclass
class ExtractedConcepts:
    """Output of ``extract_concepts``."""
    core: list[str] = field(default_factory=list)
    modifier: list[str] = field(default_factory=list)
    rare: list[str] = field(default_factory=list)
    intervention: list[str] = field(default_factory=list)
    demographics: list[str] = field(default_factory=list)


def extract_concepts(query: str) -> ExtractedConcepts:
    """
    Split a keyword query into concepts.

    - Demographic and recency words are set aside (they are not searchable concepts)
    - Exposure phrases and protected exposure tokens become modifier/rare concepts
    - Everything else that is not a stop word joins into one core concept
    - Treatment and trial cues add an intervention clause
    """
    concepts = ExtractedConcepts()
    q = (query or "").strip()

    concepts.demographics = [m.group(0).lower() for m in MODIFIER_TERMS_RE.finditer(q)]
    q = _WHITESPACE_RE.sub(" ", MODIFIER_TERMS_RE.sub(" ", q)).strip()

    lowered = q.lower()
    for phrase in EXPOSURE_PHRASES:
        if phrase in lowered:
            _add_unique(concepts.modifier, phrase)
            _add_unique(concepts.rare, phrase)
            q = re.sub(re.escape(phrase), " ", q, flags=re.IGNORECASE)
    q = _WHITESPACE_RE.sub(" ", q).strip()

    core_tokens = []
    for token in tokenize(q):
        if is_protected_exposure_token(token):
            _add_unique(concepts.modifier, token)
            _add_unique(concepts.rare, token)
            continue
        if token in MEDICAL_STOP_WORDS:
            continue
        core_tokens.append(token)
    if core_tokens:
        concepts.core = [" ".join(core_tokens)]

    if TREATMENT_RE.search(query or ""):
        concepts.intervention.extend(TREATMENT_CLAUSE_TERMS)
    if TRIAL_RE.search(query or ""):
        concepts.intervention.extend(TRIAL_CLAUSE_TERMS)
    return concepts


# =============================================================================
# Clause builders
# =============================================================================

def _quote(term: str) -> str:
    return f'"{term}"' if " " in term else term


def build_concept_clause(terms: Sequence[str], use_mesh: bool = True) -> str:
    """
    OR-group of one concept: each term as [tiab], its MeSH heading as [mh]
    when one is mapped, plus any synonyms not already present.

    >>> build_concept_clause(["heart attack"])
    '((heart attack[tiab]) OR (Myocardial Infarction[mh]) OR (MI[tiab]) OR ("Acute Myocardial Infarction"[tiab]))'
    """
    parts: list[str] = []
    for term in terms:
        t = term.strip()
        if not t:
            continue
        parts.append(f"({t}[tiab])")
        if use_mesh:
            mesh = map_to_mesh(t)
            if mesh != t:
                parts.append(f"({mesh}[mh])")

    joined = " ".join(terms)
    expanded = expand_with_synonyms(joined)
    if expanded and expanded != joined:
        for synonym in (s.strip() for s in expanded.split(" OR ")):
            if synonym and not any(synonym.lower() in p.lower() for p in parts):
                parts.append(f"({_quote(synonym)}[tiab])")

    return f"({' OR '.join(parts)})" if parts else ""


def build_exposure_clause(terms: Sequence[str]) -> str:
    """OR-group of exposure terms as [tiab], multi-word terms quoted."""
    parts = [f"({_quote(t.strip())}[tiab])" for t in terms if t.strip()]
    return f"({' OR '.join(parts)})" if parts else ""


def build_arxiv_query(concepts: ExtractedConcepts, fallback: str) -> str:
    """Concept tokens only; generic intervention words would make arXiv's AND query too loose."""
    tokens = []
    for concept in [*concepts.core, *concepts.modifier, *concepts.rare]:
        for token in concept.split():
            if len(token) > 1 and token.lower() not in GENERIC_TERMS:
                tokens.append(token)
    return " ".join(dict.fromkeys(tokens)) or fallback


# =============================================================================
# Builder
# =============================================================================

class QueryBuilder:
    """
    Build the QueryMeta consumed by retrieval and ranking.

    Stateless apart from configuration; safe to share between requests.

    Args:
        normalizer: Classifier for identifiers and pasted titles
        simplified_exposure: When False, an active exposure family contributes
            all of its tokens and phrases to the exposure clause instead of only
            the terms present in the query
    """

    def __init__(
        self,
        normalizer: QueryNormalizer | None = None,
        simplified_exposure: bool = True,
    ) -> None:
        self._normalizer = normalizer or QueryNormalizer()
        self._simplified_exposure = simplified_exposure

    def build(self, raw_query: str, sources: Sequence[str] | None = None) -> QueryMeta:
        """
        Build query metadata for ``raw_query``.

        ``sources`` limits which per-source query strings are produced; all
        known sources by default.
        """
        normalized = self._normalizer.normalize(raw_query)
        wanted = list(sources) if sources is not None else [s.value for s in SourceName]

        if normalized.is_exact:
            meta = self._build_exact(normalized)
        else:
            parsed = parse_query(normalized.search_query)
            if has_field_tags(parsed):
                meta = self._build_passthrough(normalized, parsed, wanted)
            else:
                meta = self._build_concept_query(normalized, wanted)

        logger.debug(
            f"Built query kind={meta.kind.value} multi_concept={meta.is_multi_concept} "
            f"pubmed={meta.search_query!r}"
        )
        return meta

    # -------------------------------------------------------------------------

    @staticmethod
    def _build_exact(normalized: NormalizedQuery) -> QueryMeta:
        """Identifier and title lookups go to PubMed only."""
        terms = (
            [t.removesuffix("[ti]").lower() for t in normalized.search_query.split(" AND ")]
            if normalized.kind is QueryKind.EXACT_TITLE
            else query_terms_of(normalized.raw_query)
        )
        return QueryMeta(
            raw_query=normalized.raw_query,
            kind=normalized.kind,
            search_query=normalized.search_query,
            source_queries={SourceName.PUBMED.value: normalized.search_query},
            query_terms=terms,
            intent=normalized.intent,
            has_field_tags=True,
            display_keywords=normalized.display_keywords,
        )

    @staticmethod
    def _build_passthrough(normalized: NormalizedQuery, parsed: str, sources: list[str]) -> QueryMeta:
        """Field-tagged input is sent as written; secondaries get the tag-free text."""
        plain = plain_query(parsed)
        source_queries = {
            source: parsed if source == SourceName.PUBMED.value else plain for source in sources
        }
        terms = query_terms_of(plain)
        return QueryMeta(
            raw_query=normalized.raw_query,
            kind=QueryKind.TOPIC,
            search_query=parsed,
            source_queries=source_queries,
            query_terms=terms,
            intent=normalized.intent,
            has_field_tags=True,
            display_keywords=terms[:MAX_DISPLAY_KEYWORDS],
        )

    def _exposure_terms(self, query: str, concepts: ExtractedConcepts) -> list[str]:
        terms = dict.fromkeys(t.strip() for t in [*concepts.modifier, *concepts.rare] if t.strip())
        if not self._simplified_exposure:
            for family in active_exposure_families(query):
                for term in family.matched_terms(query):
                    _add_unique(concepts.modifier, term)
                terms.update(dict.fromkeys([*family.tokens, *family.phrases]))
        return list(terms)

    def _build_concept_query(self, normalized: NormalizedQuery, sources: list[str]) -> QueryMeta:
        query = normalized.search_query
        intent: QueryIntent = normalized.intent
        concepts = extract_concepts(query)

        disease_clause = build_concept_clause(concepts.core)
        exposure_clause = build_exposure_clause(self._exposure_terms(query, concepts))
        toxicity_clause = build_exposure_clause(
            list(dict.fromkeys(t for family in EXPOSURE_FAMILIES for t in family.toxicity_tokens))
        )
        intervention_clause = f"({' OR '.join(concepts.intervention)})" if concepts.intervention else ""

        tier1 = tier2 = None
        if disease_clause and exposure_clause:
            tier2 = f"{disease_clause} AND {exposure_clause}"
            tier1 = f"{tier2} AND {toxicity_clause}" if toxicity_clause else tier2

        if tier1:
            pubmed_query = tier1
        elif disease_clause and intervention_clause:
            pubmed_query = f"{disease_clause} AND {intervention_clause}"
        elif disease_clause:
            pubmed_query = disease_clause
        elif intervention_clause:
            pubmed_query = intervention_clause
        else:
            pubmed_query = _WHITESPACE_RE.sub(" ", query).strip()

        core_joined = " ".join(concepts.core)
        core_terms = list(dict.fromkeys([*concepts.core, *(t for t in core_joined.lower().split() if len(t) >= 2)]))
        expanded = expand_with_synonyms(core_joined)
        if expanded and expanded != core_joined:
            for synonym in (s.strip() for s in expanded.split(" OR ")):
                if synonym and synonym not in core_terms:
                    core_terms.append(synonym)

        plain = plain_query(tier2 or pubmed_query)
        keyword_text = _WHITESPACE_RE.sub(" ", query).strip()
        candidates = {
            SourceName.PUBMED.value: pubmed_query,
            SourceName.OPENALEX.value: plain,
            SourceName.SEMANTIC_SCHOLAR.value: keyword_text,
            SourceName.ARXIV.value: build_arxiv_query(concepts, keyword_text),
        }

        return QueryMeta(
            raw_query=normalized.raw_query,
            kind=QueryKind.TOPIC,
            search_query=keyword_text,
            source_queries={s: candidates[s] for s in sources if s in candidates},
            query_terms=query_terms_of(query),
            core_concepts=list(concepts.core),
            core_concept_terms=core_terms,
            modifier_concept_terms=list(concepts.modifier),
            rare_concept_terms=list(concepts.rare),
            is_multi_concept=bool(disease_clause and exposure_clause),
            intent=intent,
            has_field_tags=False,
            tier1_query=tier1,
            tier2_query=tier2,
            display_keywords=core_terms[:MAX_DISPLAY_KEYWORDS],
        )
