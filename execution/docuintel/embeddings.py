"""
Embedding Service for DocuIntel

Provides embeddings via OpenAI (text-embedding-3-small) with a deterministic
offline fallback. Supports batching, concurrent batch dispatch and caching.

Fallback vectors are weaker signal than provider vectors. They are never
cached, and every EmbeddingResult reports which batches were degraded.
"""

import os
import math
import hashlib
import logging
from dataclasses import dataclass, field
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .errors import ProviderUnavailable
from .fallback import call_with_fallback

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 100
    max_workers: int = 4
    timeout: float = 60.0
    use_cache: bool = True


@dataclass
class EmbeddingResult:
    """Vectors in input order plus the indices of batches that fell back."""
    vectors: list[list[float]]
    fallback_batches: list[int] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallback_batches)

    @property
    def vector(self) -> list[float]:
        """First vector (single-query convenience)."""
        return self.vectors[0] if self.vectors else []


def mock_embedding(text: str, dimensions: int = 1536) -> list[float]:
    """
    Deterministic fallback embedding.

    Character codes are folded into a fixed-width accumulator and the result
    is L2-normalized. Empty text yields the zero vector.
    """
    embedding = [0.0] * dimensions
    for i, ch in enumerate(text):
        embedding[i % dimensions] += ord(ch) / 1000

    magnitude = math.sqrt(sum(v * v for v in embedding))
    if magnitude == 0:
        return embedding
    return [v / magnitude for v in embedding]


class EmbeddingService:
    """
    Generates embeddings with the OpenAI embeddings API.

    Without OPENAI_API_KEY (or an injected client) every call degrades to
    mock_embedding, which keeps the index usable offline.
    """

    _provider_name = "OpenAI"
    _doc_input_type = "document"
    _query_input_type = "query"

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        client=None,
        api_key: Optional[str] = None,
    ):
        """
        Initialize embedding service.

        Args:
            config: Optional configuration. Uses defaults if not provided.
            client: Pre-built OpenAI client (tests inject fakes here)
            api_key: Explicit key; defaults to OPENAI_API_KEY
        """
        self.config = config or EmbeddingConfig()
        self._client = client
        self._cache: dict[str, list[float]] = {}

        if self._client is None:
            self._init_client(api_key or os.getenv("OPENAI_API_KEY"))

    def _init_client(self, api_key: Optional[str]):
        """Initialize the OpenAI client."""
        if not api_key:
            logger.warning(
                "OPENAI_API_KEY not found. Embeddings will use the offline fallback."
            )
            return

        from openai import OpenAI
        self._client = OpenAI(api_key=api_key, timeout=self.config.timeout)
        logger.info(f"OpenAI embedding client initialized with model {self.config.model}")

    @property
    def available(self) -> bool:
        return self._client is not None

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into fixed-size batches."""
        size = self.config.batch_size
        return [texts[i:i + size] for i in range(0, len(texts), size)]

    def embed_documents(self, texts: list[str]) -> EmbeddingResult:
        """
        Generate embeddings for document chunks.

        Batches are dispatched concurrently and reassembled in input order.

        Args:
            texts: List of text strings to embed

        Returns:
            EmbeddingResult with one vector per input text
        """
        if not texts:
            return EmbeddingResult(vectors=[])

        batches = self._create_batches(texts)
        logger.info(
            f"Embedding {len(texts)} documents in {len(batches)} batches"
            f" with {self._provider_name}"
        )

        workers = max(1, min(self.config.max_workers, len(batches)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(
                lambda batch: self._embed_with_fallback(batch, self._doc_input_type),
                batches,
            ))

        vectors = []
        fallback_batches = []
        for batch_idx, outcome in enumerate(outcomes):
            vectors.extend(outcome.value)
            if outcome.degraded:
                fallback_batches.append(batch_idx)

        if fallback_batches:
            logger.warning(
                f"{len(fallback_batches)}/{len(batches)} embedding batches used fallback vectors"
            )

        return EmbeddingResult(vectors=vectors, fallback_batches=fallback_batches)

    def embed_query(self, query: str) -> EmbeddingResult:
        """
        Generate embedding for a search query.

        Args:
            query: Search query string

        Returns:
            EmbeddingResult holding a single vector
        """
        outcome = self._embed_with_fallback([query], self._query_input_type)
        return EmbeddingResult(
            vectors=outcome.value,
            fallback_batches=[0] if outcome.degraded else [],
        )

    def _embed_with_fallback(self, texts: list[str], input_type: str):
        return call_with_fallback(
            primary=lambda: self._embed_batch(texts, input_type),
            fallback=lambda: [mock_embedding(t, self.config.dimensions) for t in texts],
            label=f"{self._provider_name} embedding ({len(texts)} texts)",
        )

    def _embed_batch(self, texts: list[str], input_type: str) -> list[list[float]]:
        """Embed a batch of texts using the provider API. Raises on failure."""
        if self._client is None:
            raise ProviderUnavailable(f"{self._provider_name} client not initialized")

        results: dict[int, list[float]] = {}
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cached = self._get_cached(self._get_cache_key(text, input_type))
            if cached is not None:
                results[i] = cached
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            response = self._client.embeddings.create(
                model=self.config.model,
                input=uncached_texts,
            )
            data = sorted(response.data, key=lambda d: d.index)
            if len(data) != len(uncached_texts):
                raise ProviderUnavailable(
                    f"{self._provider_name} returned {len(data)} embeddings for {len(uncached_texts)} texts"
                )

            for idx, item in zip(uncached_indices, data):
                embedding = list(item.embedding)
                self._set_cached(self._get_cache_key(texts[idx], input_type), embedding)
                results[idx] = embedding

        return [results[i] for i in range(len(texts))]

    def _get_cache_key(self, text: str, input_type: str) -> str:
        """Generate cache key for text."""
        content = f"{self.config.model}:{input_type}:{text}"
        return hashlib.sha256(content.encode()).hexdigest()[:32]

    def _get_cached(self, key: str) -> Optional[list[float]]:
        if not self.config.use_cache:
            return None
        return self._cache.get(key)

    def _set_cached(self, key: str, embedding: list[float]) -> None:
        if self.config.use_cache:
            self._cache[key] = embedding


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    service = EmbeddingService()
    query = " ".join(sys.argv[1:]) or "What are the termination clauses in this contract?"

    print(f"Query: {query}")
    result = service.embed_query(query)
    print(f"Embedding dimensions: {len(result.vector)} (fallback: {result.degraded})")
    print(f"First 10 values: {result.vector[:10]}")
