"""
QueryNormalizer - classify a raw query before any source is contacted.

Detects:
1. Identifier lookups (PMID, PMC accession) - rewritten to PubMed field queries
2. Pasted titles - long, non-question text, rewritten as ANDed [ti] terms
3. Natural-language questions - reduced to topic keywords
4. Intent cues (recency, treatment, trial)

Pure local processing; no network calls.

Example:
    >>> QueryNormalizer().normalize("12345678").search_query
    '12345678[PMID] OR PMC12345678[PMCID]'
    >>> natural_language_to_keywords("what is the benefit of vitamins in cancer")
    'vitamins cancer'
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from publication_search.models.query import QueryIntent, QueryKind

# =============================================================================
# Patterns
# =============================================================================

PMID_RE = re.compile(r"^\d{7,8}$")
PMCID_RE = re.compile(r"^PMC\d{7,8}$", re.IGNORECASE)

RECENT_RE = re.compile(r"\b(latest|recent|new|updated|emerging|202[0-9]|20[3-9][0-9])\b", re.IGNORECASE)
TREATMENT_RE = re.compile(
    r"\b(treatment|therapy|therapeutic|management|drug|medication|intervention)\b", re.IGNORECASE
)
TRIAL_RE = re.compile(r"\b(trial|randomized|rct|placebo|phase\s+[i\d]+|clinical\s+trial)\b", re.IGNORECASE)

_QUESTION_START_RE = re.compile(
    r"^(what|how|which|why|when|where|who|are|is|can|does|do|did|will|would|could|should"
    r"|have|has|had|tell|show|explain|describe|list|name|give)\b",
    re.IGNORECASE,
)
_QUESTION_PHRASE_RE = re.compile(
    r"\b(what\s+are|what\s+is|what\s+vitamins|what\s+is\s+the|are\s+there|is\s+there)\b",
    re.IGNORECASE,
)
_NON_WORD_RE = re.compile(r"[^\w]")
_TITLE_PUNCT_RE = re.compile(r"[^\w\s-]")
# Operators that mark a structured query rather than a pasted title or question
_SEARCH_SYNTAX_RE = re.compile(r"\[[A-Za-z]{2,}\]|\b(?i:author|intitle|intext|journal):|(?:^|\s)-[\w\"]|\b(?:AND|OR|NOT)\b")

# Titles shorter than this are treated as topic queries
EXACT_TITLE_MIN_LENGTH = 30

QUESTION_AND_FILLER = frozenset({
    "what", "is", "are", "was", "were", "the", "a", "an", "of", "in", "on", "at", "to", "for", "with", "by",
    "how", "does", "do", "can", "could", "would", "should", "may", "might", "will", "when", "where", "which",
    "who", "why", "benefit", "benefits", "effect", "effects", "role", "evidence", "about", "related",
    "regarding", "concerning", "between", "among", "during", "into", "from", "than", "that", "this", "and",
    "or", "but", "if", "as", "it", "its", "not", "no", "yes", "just", "only", "also", "even", "so", "such",
    "there", "their", "them", "then", "been", "being", "have", "has", "had", "did", "done", "get", "gets",
    "got", "need", "needs", "used", "using", "show", "shows", "shown", "find", "finding", "found", "help",
    "helps", "work", "works", "working", "use",
})

TITLE_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "its", "it", "as", "from", "that", "this",
    "than", "into", "not", "no",
})

MIN_KEYWORD_LENGTH = 2


# =============================================================================
# Helpers
# =============================================================================

def has_search_syntax(query: str) -> bool:
    return bool(_SEARCH_SYNTAX_RE.search(query or ""))


def looks_like_question(query: str) -> bool:
    """Question mark, leading question/command word, or an embedded question phrase."""
    q = (query or "").strip()
    if not q:
        return False
    return "?" in q or bool(_QUESTION_START_RE.match(q)) or bool(_QUESTION_PHRASE_RE.search(q))


def natural_language_to_keywords(query: str) -> str:
    """
    Strip question words and fillers, keeping topic terms in order.

    Short keyword-style input (five words or fewer, no fillers) is returned
    as-is. Falls back to the trimmed input when nothing survives.
    """
    trimmed = (query or "").strip()
    if not trimmed:
        return query

    words = trimmed.split()
    normalized = [_NON_WORD_RE.sub("", w.lower()) for w in words]
    filler_count = sum(1 for w in normalized if w in QUESTION_AND_FILLER)
    if len(words) <= 5 and filler_count == 0:
        return trimmed

    kept = [
        word
        for word, norm in zip(words, normalized, strict=True)
        if len(norm) >= MIN_KEYWORD_LENGTH and norm not in QUESTION_AND_FILLER
    ]
    return " ".join(kept).strip() or trimmed


def detect_intent(query: str) -> QueryIntent:
    q = query or ""
    return QueryIntent(
        wants_recent=bool(RECENT_RE.search(q)),
        wants_treatment=bool(TREATMENT_RE.search(q)),
        wants_trial=bool(TRIAL_RE.search(q)),
    )


def build_title_query(query: str) -> str:
    """``"Mold exposure and migraine in adults"`` -> ``Mold[ti] AND exposure[ti] AND ...``."""
    keywords = natural_language_to_keywords(query)
    cleaned = _TITLE_PUNCT_RE.sub(" ", keywords)
    words = [w for w in cleaned.split() if len(w) >= 2 and w.lower() not in TITLE_STOP_WORDS]
    return " AND ".join(f"{w}[ti]" for w in words)


# =============================================================================
# Normalizer
# =============================================================================

@dataclass(frozen=True)
class NormalizedQuery:
    """Classification of a raw query."""
    raw_query: str
    kind: QueryKind
    search_query: str
    intent: QueryIntent

    @property
    def is_exact(self) -> bool:
        return self.kind is not QueryKind.TOPIC

    @property
    def display_keywords(self) -> list[str]:
        """Up to three terms echoed back to the caller for exact lookups."""
        if self.kind is QueryKind.EXACT_TITLE:
            return [part.removesuffix("[ti]") for part in self.search_query.split(" AND ")][:3]
        return [self.raw_query] if self.raw_query else []


class QueryNormalizer:
    """
    Stateless classifier for raw queries.

    Identifier and title lookups get a PubMed-native ``search_query``; topic
    queries get the keyword form used downstream by the query builder.
    """

    def __init__(self, exact_title_min_length: int = EXACT_TITLE_MIN_LENGTH) -> None:
        self._exact_title_min_length = exact_title_min_length

    def normalize(self, raw_query: str) -> NormalizedQuery:
        q = (raw_query or "").strip()
        intent = detect_intent(q)

        if PMCID_RE.match(q):
            accession = "PMC" + q[3:]
            return NormalizedQuery(q, QueryKind.PMCID, f"{accession}[PMCID]", intent)

        if PMID_RE.match(q):
            return NormalizedQuery(q, QueryKind.PMID, f"{q}[PMID] OR PMC{q}[PMCID]", intent)

        if len(q) > self._exact_title_min_length and not looks_like_question(q) and not has_search_syntax(q):
            title_query = build_title_query(q)
            if title_query:
                return NormalizedQuery(q, QueryKind.EXACT_TITLE, title_query, intent)

        keywords = q if has_search_syntax(q) else (natural_language_to_keywords(q) or q)
        return NormalizedQuery(q, QueryKind.TOPIC, keywords, intent)
