"""
Clause-Aware Chunker

Converts segmented clauses into bounded, overlapping passages suitable for
embedding. Every passage carries provenance: source id, character span in
source coordinates, inferred heading and clause category.

Chunk ids are "{source}-{n}" where n is the running passage count, so two
concurrent ingestions of the same source must be serialized by the caller.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from .clause_patterns import (
    CLAUSE_TYPE_PATTERNS,
    DEFAULT_HEADING,
    GENERAL_CLAUSE_TYPE,
    HEADING_PATTERN,
)
from .segmenter import MIN_SEGMENT_LENGTH, segment_clauses

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """A retrievable passage of a source document."""
    chunk_id: str
    source: str
    content: str
    start_char: int
    end_char: int
    clause_type: str = GENERAL_CLAUSE_TYPE
    heading: str = DEFAULT_HEADING
    page_number: Optional[int] = None
    embedding: Optional[list[float]] = field(default=None, compare=False, repr=False)

    def with_embedding(self, embedding: list[float]) -> "Chunk":
        """Return a copy carrying the given vector."""
        return replace(self, embedding=list(embedding))

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "source": self.source,
            "content": self.content,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "clause_type": self.clause_type,
            "heading": self.heading,
            "page_number": self.page_number,
        }


@dataclass
class ChunkConfig:
    """Configuration for chunking parameters (in characters)."""
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_segment_length: int = MIN_SEGMENT_LENGTH

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")


def extract_heading(content: str) -> str:
    """Return the first capitalized run after an optional label/number prefix."""
    match = HEADING_PATTERN.match(content)
    if not match:
        return DEFAULT_HEADING
    heading = match.group(1).strip()
    return heading or DEFAULT_HEADING


def classify_clause_type(content: str) -> str:
    """Return the first clause category whose pattern matches, else 'general'."""
    for clause_type, pattern in CLAUSE_TYPE_PATTERNS:
        if pattern.search(content):
            return clause_type
    return GENERAL_CLAUSE_TYPE


class ClauseChunker:
    """
    Chunks clause segments into windowed passages.

    Segments within chunk_size become a single passage. Longer segments are
    covered by a sliding window of chunk_size advancing by
    (chunk_size - chunk_overlap) until the window would start at or past the
    end of the segment.
    """

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()

    def chunk(self, segments: list[str], source: str) -> list[Chunk]:
        """
        Chunk ordered segments of one source document.

        Args:
            segments: Output of segment_clauses()
            source: Source document identifier

        Returns:
            Ordered list of Chunk objects
        """
        chunks: list[Chunk] = []
        size = self.config.chunk_size
        step = size - self.config.chunk_overlap
        char_offset = 0

        for segment in segments:
            if len(segment) <= size:
                chunks.append(self._create_chunk(
                    content=segment,
                    source=source,
                    index=len(chunks),
                    start_char=char_offset,
                ))
            else:
                start = 0
                while start < len(segment):
                    end = min(start + size, len(segment))
                    chunks.append(self._create_chunk(
                        content=segment[start:end],
                        source=source,
                        index=len(chunks),
                        start_char=char_offset + start,
                    ))
                    start += step

            char_offset += len(segment)

        logger.info(f"Created {len(chunks)} chunks from {len(segments)} segments of {source}")
        return chunks

    def chunk_text(self, text: str, source: str) -> list[Chunk]:
        """Segment raw text and chunk the result."""
        segments = segment_clauses(text, min_length=self.config.min_segment_length)
        return self.chunk(segments, source)

    def _create_chunk(self, content: str, source: str, index: int, start_char: int) -> Chunk:
        return Chunk(
            chunk_id=f"{source}-{index}",
            source=source,
            content=content,
            start_char=start_char,
            end_char=start_char + len(content),
            clause_type=classify_clause_type(content),
            heading=extract_heading(content),
        )
