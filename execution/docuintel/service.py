"""
DocuIntel Service

Orchestrates the ingestion and query flows over one shared index:

    ingest: segment -> chunk -> embed -> upsert
    query:  retrieve -> generate

Components are injected so tests can swap in fakes; build_service() wires
the production set from Settings.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional

from .chunker import ClauseChunker
from .config import Settings
from .embeddings import EmbeddingService
from .errors import ValidationError
from .generator import GenerationConfig, GroundedGenerator, GroundedResponse
from .metrics import get_metrics_collector
from .retriever import RetrievalFilter, RetrievalMetrics, RetrievalOutcome, Retriever
from .vector_store import InMemoryVectorStore, SearchResult

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    chunks_indexed: int
    processing_time_ms: int
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "chunks_indexed": self.chunks_indexed,
            "processing_time_ms": self.processing_time_ms,
            "degraded": self.degraded,
        }


@dataclass
class QueryResult:
    """Grounded answer plus the metrics of the run that produced it."""
    response: GroundedResponse
    metrics: RetrievalMetrics

    def to_dict(self) -> dict:
        return {**self.response.to_dict(), "metrics": self.metrics.to_dict()}


class DocuIntelService:
    """Ingestion and query entry points over a shared in-memory index."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        vector_store: Optional[InMemoryVectorStore] = None,
        embedding_service: Optional[EmbeddingService] = None,
        generator: Optional[GroundedGenerator] = None,
        chunker: Optional[ClauseChunker] = None,
        retriever: Optional[Retriever] = None,
    ):
        self.settings = settings or Settings()
        self.store = vector_store or InMemoryVectorStore()
        self.embeddings = embedding_service or EmbeddingService(
            config=self.settings.embedding_config(),
            api_key=self.settings.openai_api_key,
        )
        self.chunker = chunker or ClauseChunker(self.settings.chunk_config())
        self.retriever = retriever or Retriever(
            self.store, self.embeddings, self.settings.retrieval_config()
        )
        self.generator = generator or GroundedGenerator(
            config=GenerationConfig(model=self.settings.completion_model)
        )
        self._metrics = get_metrics_collector()

    def ingest(self, text: str, source: str) -> IngestResult:
        """
        Segment, chunk, embed and index a document's plain text.

        Args:
            text: Document text
            source: Source label; passage ids are "{source}-{n}"

        Returns:
            IngestResult. degraded is True when any batch used fallback vectors.

        Raises:
            ValidationError: empty source label
            IndexCorruption: embedder returned a vector count that does not
                match the passage count
        """
        if not source or not source.strip():
            raise ValidationError("source must be a non-empty label")

        start_time = time.time()
        chunks = self.chunker.chunk_text(text, source)
        if not chunks:
            logger.info(f"No indexable segments in {source}")
            return IngestResult(chunks_indexed=0, processing_time_ms=round((time.time() - start_time) * 1000))

        embedded = self.embeddings.embed_documents([c.content for c in chunks])
        indexed = self.store.upsert(chunks, embedded.vectors)

        processing_time_ms = round((time.time() - start_time) * 1000)
        self._metrics.record_ingestion(indexed, processing_time_ms, degraded=embedded.degraded)
        logger.info(
            f"Indexed {indexed} passages from {source} in {processing_time_ms:.0f}ms"
            + (" (fallback embeddings)" if embedded.degraded else "")
        )
        return IngestResult(
            chunks_indexed=indexed,
            processing_time_ms=processing_time_ms,
            degraded=embedded.degraded,
        )

    def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        filter: Optional[RetrievalFilter] = None,
    ) -> RetrievalOutcome:
        return self.retriever.retrieve(query, top_k=top_k, min_score=min_score, filter=filter)

    def generate(self, query: str, context: list[SearchResult]) -> GroundedResponse:
        return self.generator.generate(query, context)

    def query(
        self,
        text: str,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        filter: Optional[RetrievalFilter] = None,
    ) -> QueryResult:
        """
        Retrieve context and generate a grounded answer.

        Returns:
            QueryResult with the response and filled-in metrics
        """
        if not text or not text.strip():
            raise ValidationError("query must not be empty")

        with self._metrics.track_query(text) as tracker:
            start_time = time.time()
            outcome = self.retrieve(text, top_k=top_k, min_score=min_score, filter=filter)

            generation_start = time.time()
            response = self.generate(text, outcome.results)

            metrics = outcome.metrics
            metrics.generation_latency_ms = (time.time() - generation_start) * 1000
            metrics.chunks_used = len(response.citations)
            metrics.query_latency_ms = (time.time() - start_time) * 1000

            tracker.set_results(
                len(outcome.results),
                embedding_degraded=metrics.embedding_degraded,
                generation_degraded=response.degraded,
            )

        logger.info(
            f"Query answered in {metrics.query_latency_ms:.0f}ms "
            f"({metrics.chunks_used}/{metrics.chunks_retrieved} passages cited, "
            f"confidence {response.confidence})"
        )
        return QueryResult(response=response, metrics=metrics)

    def index_stats(self) -> dict:
        stats = self.store.stats()
        stats["provider_available"] = self.embeddings.available
        stats["embedding_model"] = self.embeddings.config.model
        stats["dimensions"] = self.embeddings.dimensions
        return stats


def build_llm_client(settings: Settings):
    """Synchronous OpenAI client for grounded generation, or None without a key."""
    if not settings.provider_available:
        logger.warning("OPENAI_API_KEY not set. Generation will use the templated fallback.")
        return None
    from openai import OpenAI
    return OpenAI(api_key=settings.openai_api_key, timeout=settings.request_timeout)


def build_async_llm_client(settings: Settings):
    """Async OpenAI client for streaming sessions, or None (demo mode)."""
    if not settings.provider_available:
        return None
    from openai import AsyncOpenAI
    return AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.request_timeout)


def build_service(settings: Optional[Settings] = None) -> DocuIntelService:
    """Wire the production component set from settings."""
    settings = settings or Settings.from_env()
    generator = GroundedGenerator(
        llm_client=build_llm_client(settings),
        config=GenerationConfig(model=settings.completion_model),
    )
    return DocuIntelService(settings=settings, generator=generator)
