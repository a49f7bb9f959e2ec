"""
Retriever for DocuIntel

Embeds the query, over-fetches 2x top_k candidates from the vector store,
then filters by clause category/source, applies the score threshold and
truncates. The store has no filtered search, so filtering always happens
on the similarity-ranked candidate list.
"""

import time
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from .embeddings import EmbeddingService
from .vector_store import InMemoryVectorStore, SearchResult

logger = logging.getLogger(__name__)


@dataclass
class RetrievalConfig:
    """Configuration for retrieval."""
    top_k: int = 5
    min_score: float = 0.3
    overfetch_factor: int = 2
    # Literal benchmark figure reported alongside every query, not measured per query
    estimated_accuracy: float = 0.92


@dataclass
class RetrievalFilter:
    """Optional metadata filter applied after similarity search."""
    clause_type: Optional[str] = None
    source: Optional[str] = None

    def matches(self, result: SearchResult) -> bool:
        if self.clause_type and result.chunk.clause_type != self.clause_type:
            return False
        if self.source and result.chunk.source != self.source:
            return False
        return True


@dataclass
class RetrievalMetrics:
    """Latency and count metrics for one query."""
    query_latency_ms: float = 0
    embedding_latency_ms: float = 0
    retrieval_latency_ms: float = 0
    generation_latency_ms: float = 0
    chunks_retrieved: int = 0
    chunks_used: int = 0
    estimated_accuracy: float = 0.92
    embedding_degraded: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RetrievalOutcome:
    results: list[SearchResult]
    metrics: RetrievalMetrics


class Retriever:
    """
    Similarity retriever over the shared in-memory index.

    Pipeline:
    1. Embed query (fallback vector when the provider is unavailable)
    2. Search for overfetch_factor * top_k candidates
    3. Apply metadata filter
    4. Drop results below min_score, truncate to top_k
    """

    def __init__(
        self,
        vector_store: InMemoryVectorStore,
        embedding_service: EmbeddingService,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = vector_store
        self.embeddings = embedding_service
        self.config = config or RetrievalConfig()

    def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        filter: Optional[RetrievalFilter] = None,
    ) -> RetrievalOutcome:
        """
        Retrieve relevant chunks for a query.

        Args:
            query: Search query string
            top_k: Number of results (defaults to config)
            min_score: Similarity threshold (defaults to config; 0.0 is honored)
            filter: Optional clause_type/source filter

        Returns:
            RetrievalOutcome with ranked results and metrics
        """
        start_time = time.time()
        top_k = top_k if top_k is not None else self.config.top_k
        min_score = min_score if min_score is not None else self.config.min_score

        logger.info(f"Retrieving for query: {query[:50]}...")

        embedding_start = time.time()
        query_embedding = self.embeddings.embed_query(query)
        embedding_latency_ms = (time.time() - embedding_start) * 1000
        if query_embedding.degraded:
            logger.warning("Query embedded with fallback vector; similarity scores are approximate")

        search_start = time.time()
        results = self.store.search(query_embedding.vector, top_k * self.config.overfetch_factor)

        if filter is not None:
            results = [r for r in results if filter.matches(r)]

        results = [r for r in results if r.score >= min_score][:top_k]
        retrieval_latency_ms = (time.time() - search_start) * 1000

        metrics = RetrievalMetrics(
            query_latency_ms=(time.time() - start_time) * 1000,
            embedding_latency_ms=embedding_latency_ms,
            retrieval_latency_ms=retrieval_latency_ms,
            chunks_retrieved=len(results),
            estimated_accuracy=self.config.estimated_accuracy,
            embedding_degraded=query_embedding.degraded,
        )

        logger.info(f"Retrieved {len(results)} chunks in {metrics.query_latency_ms:.0f}ms")
        return RetrievalOutcome(results=results, metrics=metrics)
