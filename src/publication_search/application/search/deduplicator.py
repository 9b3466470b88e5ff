"""
Deduplicator - collapse the same publication returned by several sources.

Identity precedence:
1. Same source and same source id (tier 1 and tier 2 overlap)
2. Normalized DOI
3. Normalized title, unless both records carry different DOIs

Records are visited in source-richness order (PubMed first, arXiv last) and
the first occurrence of an identity wins, so a duplicate found in both a
richer and a thinner source keeps the richer version. Single pass with hash
lookups: O(n).

Known risk: two distinct works sharing a title and lacking DOIs (reprints,
errata) are merged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from publication_search.models.publication import SOURCE_PRIORITY, PublicationRecord

logger = logging.getLogger(__name__)


@dataclass
class DedupStats:
    """Counters from one deduplication pass."""

    total_input: int = 0
    unique_records: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    dedup_by_id: int = 0
    dedup_by_doi: int = 0
    dedup_by_title: int = 0

    @property
    def duplicates_removed(self) -> int:
        return self.total_input - self.unique_records

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_records": self.unique_records,
            "duplicates_removed": self.duplicates_removed,
            "by_source": self.by_source,
            "dedup_by_id": self.dedup_by_id,
            "dedup_by_doi": self.dedup_by_doi,
            "dedup_by_title": self.dedup_by_title,
        }


class Deduplicator:
    """
    Usage:
        unique, stats = Deduplicator().deduplicate(pubmed_items + openalex_items)
    """

    def deduplicate(self, records: list[PublicationRecord]) -> tuple[list[PublicationRecord], DedupStats]:
        stats = DedupStats(total_input=len(records))
        for record in records:
            stats.by_source[record.source] = stats.by_source.get(record.source, 0) + 1

        # Stable: within a source the retrieval order is kept
        ordered = sorted(records, key=lambda r: SOURCE_PRIORITY.get(r.source, len(SOURCE_PRIORITY)))

        seen_ids: set[tuple[str, str]] = set()
        seen_dois: set[str] = set()
        title_dois: dict[str, set[str]] = {}
        unique: list[PublicationRecord] = []

        for record in ordered:
            source_key = (record.source, record.id)
            if source_key in seen_ids:
                stats.dedup_by_id += 1
                continue
            if record.doi and record.doi in seen_dois:
                stats.dedup_by_doi += 1
                continue

            title = record.normalized_title
            known = title_dois.get(title) if title else None
            if known is not None and (not record.doi or "" in known):
                stats.dedup_by_title += 1
                continue

            seen_ids.add(source_key)
            if record.doi:
                seen_dois.add(record.doi)
            if title:
                title_dois.setdefault(title, set()).add(record.doi)
            unique.append(record)

        stats.unique_records = len(unique)
        if stats.duplicates_removed:
            logger.debug(f"Dedup removed {stats.duplicates_removed} of {stats.total_input}: {stats.to_dict()}")
        return unique, stats
