"""
In-Memory Vector Store

Stores passages with their vectors and answers cosine-similarity top-k
queries. The store is shared by ingestion and query flows, so every
operation runs under a single re-entrant lock.

Entries live for the lifetime of the process; persisting them is left to
an external collaborator.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .chunker import Chunk
from .errors import IndexCorruption

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """A single search result with score."""
    chunk: Chunk
    score: float
    relevance_explanation: Optional[str] = None

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    def to_dict(self) -> dict:
        return {
            "chunk": self.chunk.to_dict(),
            "score": self.score,
            "relevance_explanation": self.relevance_explanation,
        }


def cosine_similarity(a, b) -> float:
    """Cosine similarity; 0.0 when either vector has zero magnitude or widths differ."""
    a_arr = np.asarray(a, dtype=float)
    b_arr = np.asarray(b, dtype=float)
    if a_arr.shape != b_arr.shape:
        return 0.0
    norm_a = np.linalg.norm(a_arr)
    norm_b = np.linalg.norm(b_arr)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a_arr, b_arr) / (norm_a * norm_b))


class InMemoryVectorStore:
    """
    Process-local vector index keyed by chunk id.

    Features:
    - Cosine similarity search (numpy)
    - Upsert replaces entries sharing a chunk id (position is kept)
    - Stable ordering on score ties (insertion order)
    """

    def __init__(self):
        self._entries: OrderedDict[str, Chunk] = OrderedDict()
        self._lock = threading.RLock()

    def upsert(self, chunks: list[Chunk], embeddings: Optional[list[list[float]]] = None) -> int:
        """
        Insert or replace passages.

        Args:
            chunks: Passages to store
            embeddings: Vectors aligned with chunks. When omitted each chunk
                must already carry its embedding.

        Returns:
            Number of passages inserted or updated

        Raises:
            IndexCorruption: vector and passage counts disagree
        """
        if embeddings is not None:
            if len(embeddings) != len(chunks):
                raise IndexCorruption(
                    f"Got {len(embeddings)} vectors for {len(chunks)} chunks",
                    chunks=len(chunks),
                    vectors=len(embeddings),
                )
            chunks = [c.with_embedding(e) for c, e in zip(chunks, embeddings)]

        missing = [c.chunk_id for c in chunks if c.embedding is None]
        if missing:
            raise IndexCorruption(
                f"{len(missing)} chunks have no embedding (first: {missing[0]})",
                chunks=len(chunks),
                vectors=len(chunks) - len(missing),
            )

        with self._lock:
            for chunk in chunks:
                self._entries[chunk.chunk_id] = chunk

        logger.info(f"Upserted {len(chunks)} chunks (index size: {self.count})")
        return len(chunks)

    def search(self, query_embedding: list[float], top_k: int = 5) -> list[SearchResult]:
        """
        Return the top_k most similar passages, highest score first.

        Args:
            query_embedding: Query vector
            top_k: Maximum number of results

        Returns:
            List of SearchResult, descending by score, ties in insertion order
        """
        if top_k <= 0:
            return []

        with self._lock:
            entries = list(self._entries.values())

        if not entries:
            return []

        scores = np.array([cosine_similarity(query_embedding, c.embedding) for c in entries])
        order = np.argsort(-scores, kind="stable")[:top_k]

        return [SearchResult(chunk=entries[i], score=float(scores[i])) for i in order]

    def get(self, chunk_id: str) -> Optional[Chunk]:
        with self._lock:
            return self._entries.get(chunk_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        """Index statistics."""
        with self._lock:
            sources = {c.source for c in self._entries.values()}
            count = len(self._entries)
        return {
            "document_count": count,
            "source_count": len(sources),
            "is_ready": count > 0,
        }
