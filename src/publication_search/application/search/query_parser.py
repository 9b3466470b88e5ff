"""
Query syntax helpers.

Converts Google Scholar style operators into PubMed field tags and
normalizes boolean operators, and provides the inverse direction used for
sources that only take plain text.

Example:
    >>> parse_query('author:"Smith J" intitle:glioma -pediatric')
    '"Smith J"[AU] glioma[TI] NOT pediatric'
    >>> plain_query('((migraine[tiab]) AND (mold[tiab]))')
    '((migraine) AND (mold))'
"""

from __future__ import annotations

import re

SCHOLAR_FIELD_TAGS = {
    "author": "[AU]",
    "intitle": "[TI]",
    "intext": "[TW]",
    "journal": "[TA]",
}

_SCHOLAR_OPERATOR_RE = re.compile(
    r"\b(author|intitle|intext|journal):(?:\"([^\"]+)\"|'([^']+)'|(\S+))",
    re.IGNORECASE,
)
_MINUS_TERM_RE = re.compile(r"(^|\s)-(\w+)")
_MINUS_PHRASE_RE = re.compile(r"(^|\s)-\"([^\"]+)\"")
_BOOLEAN_RE = re.compile(r"\s*\b(and|or|not)\b\s*", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

FIELD_TAG_RE = re.compile(r"\[[A-Za-z]{2,}\]")
DATE_FILTER_RE = re.compile(r"\[\s*dp\s*\]", re.IGNORECASE)
_STRIP_TAG_RE = re.compile(r"\s*\[[a-zA-Z0-9 ]+\]")


def parse_scholar_operators(query: str) -> str:
    """``intitle:"breast cancer"`` -> ``"breast cancer"[TI]``."""

    def replace(match: re.Match[str]) -> str:
        tag = SCHOLAR_FIELD_TAGS[match.group(1).lower()]
        term = (match.group(2) or match.group(3) or match.group(4) or "").strip()
        if " " in term:
            term = f'"{term}"'
        return f"{term}{tag}"

    return _SCHOLAR_OPERATOR_RE.sub(replace, query)


def parse_minus_as_not(query: str) -> str:
    """``cancer -treatment`` -> ``cancer NOT treatment``."""
    query = _MINUS_PHRASE_RE.sub(lambda m: f'{m.group(1)}NOT "{m.group(2)}"', query)
    return _MINUS_TERM_RE.sub(lambda m: f"{m.group(1)}NOT {m.group(2)}", query)


def normalize_booleans(query: str) -> str:
    """Uppercase boolean words, space them, and collapse whitespace."""
    normalized = _BOOLEAN_RE.sub(lambda m: f" {m.group(1).upper()} ", query)
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def parse_query(query: str) -> str:
    """Scholar operators -> minus as NOT -> boolean normalization."""
    if not query:
        return query
    return normalize_booleans(parse_minus_as_not(parse_scholar_operators(query)))


def has_field_tags(query: str) -> bool:
    return bool(FIELD_TAG_RE.search(query or ""))


def has_date_filter(query: str) -> bool:
    return bool(DATE_FILTER_RE.search(query or ""))


def plain_query(query: str) -> str:
    """Drop ``[tag]`` suffixes so the string can go to plain-text sources."""
    return _WHITESPACE_RE.sub(" ", _STRIP_TAG_RE.sub("", query or "")).strip()
