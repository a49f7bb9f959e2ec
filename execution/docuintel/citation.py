"""
Citation Extraction for Grounded Answers

Maps bracketed markers in generated text ([1], [2], ...) back to the
numbered context passages they refer to.
"""

import logging
from dataclasses import dataclass

from .clause_patterns import CITATION_MARKER_PATTERN
from .vector_store import SearchResult

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


@dataclass
class Citation:
    """A reference from an answer back to a retrieved passage."""
    chunk_id: str
    content: str
    source: str
    relevance_score: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "Citation":
        content = result.chunk.content
        preview = content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else "")
        return cls(
            chunk_id=result.chunk.chunk_id,
            content=preview,
            source=result.chunk.source,
            relevance_score=result.score,
        )

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "content": self.content,
            "source": self.source,
            "relevance_score": self.relevance_score,
        }


class CitationExtractor:
    """Extracts citations used in an answer, in first-appearance order."""

    def cited_indices(self, answer: str, context_size: int) -> list[int]:
        """
        Zero-based context indices referenced by the answer.

        Marker [n] maps to index n - 1. Out-of-range markers are discarded
        and repeats keep only their first appearance.
        """
        indices = []
        seen = set()
        for match in CITATION_MARKER_PATTERN.finditer(answer):
            idx = int(match.group(1)) - 1
            if idx < 0 or idx >= context_size:
                logger.debug(f"Discarding out-of-range citation [{idx + 1}]")
                continue
            if idx not in seen:
                seen.add(idx)
                indices.append(idx)
        return indices

    def extract(self, answer: str, context: list[SearchResult]) -> list[Citation]:
        """Build the Citation list for an answer, deduplicated by chunk id."""
        citations = []
        seen_ids = set()
        for idx in self.cited_indices(answer, len(context)):
            citation = Citation.from_result(context[idx])
            if citation.chunk_id in seen_ids:
                continue
            seen_ids.add(citation.chunk_id)
            citations.append(citation)
        return citations
