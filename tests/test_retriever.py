"""Tests for the over-fetch-then-filter retriever."""

import math
from unittest.mock import MagicMock

import pytest


def _embedder(vector, degraded=False):
    from execution.docuintel.embeddings import EmbeddingResult
    embeddings = MagicMock()
    embeddings.embed_query.return_value = EmbeddingResult(
        vectors=[vector], fallback_batches=[0] if degraded else []
    )
    return embeddings


class TestThreshold:
    def test_min_score_above_best_match_returns_empty(self, make_chunk):
        from execution.docuintel.retriever import Retriever
        from execution.docuintel.vector_store import InMemoryVectorStore

        store = InMemoryVectorStore()
        store.upsert([make_chunk("msa-0")], [[1.0, 0.0]])
        # cos([1, 0], [0.5, sqrt(0.75)]) == 0.5
        retriever = Retriever(store, _embedder([0.5, math.sqrt(0.75)]))

        outcome = retriever.retrieve("anything", min_score=0.9)
        assert outcome.results == []
        assert outcome.metrics.chunks_retrieved == 0

        outcome = retriever.retrieve("anything", min_score=0.4)
        assert len(outcome.results) == 1
        assert outcome.results[0].score == pytest.approx(0.5)

    def test_zero_min_score_is_honored(self, make_chunk):
        from execution.docuintel.retriever import Retriever
        from execution.docuintel.vector_store import InMemoryVectorStore

        store = InMemoryVectorStore()
        store.upsert([make_chunk("msa-0")], [[1.0, 0.0]])
        retriever = Retriever(store, _embedder([0.1, 1.0]))

        assert retriever.retrieve("q").results == []
        assert len(retriever.retrieve("q", min_score=0.0).results) == 1

    def test_results_bounded_by_top_k_and_threshold(self, make_chunk):
        from execution.docuintel.retriever import Retriever
        from execution.docuintel.vector_store import InMemoryVectorStore

        store = InMemoryVectorStore()
        chunks = [make_chunk(f"msa-{i}") for i in range(20)]
        vectors = [[1.0, i / 4] for i in range(20)]
        store.upsert(chunks, vectors)
        retriever = Retriever(store, _embedder([1.0, 0.0]))

        for top_k in (1, 3, 5, 8):
            for min_score in (0.0, 0.3, 0.6, 0.95):
                results = retriever.retrieve("q", top_k=top_k, min_score=min_score).results
                assert len(results) <= top_k
                assert all(r.score >= min_score for r in results)


class TestOverFetch:
    def test_searches_twice_top_k(self, make_result):
        from execution.docuintel.retriever import Retriever
        store = MagicMock()
        store.search.return_value = [make_result(f"c-{i}", 0.9 - i * 0.05) for i in range(6)]
        retriever = Retriever(store, _embedder([1.0, 0.0]))

        outcome = retriever.retrieve("q", top_k=3)

        store.search.assert_called_once_with([1.0, 0.0], 6)
        assert [r.chunk_id for r in outcome.results] == ["c-0", "c-1", "c-2"]

    def test_filter_applied_to_candidates(self, make_result):
        from execution.docuintel.retriever import RetrievalFilter, Retriever
        store = MagicMock()
        store.search.return_value = [
            make_result("c-0", 0.95, clause_type="payment"),
            make_result("c-1", 0.90, clause_type="termination"),
            make_result("c-2", 0.85, clause_type="termination", source="lease"),
            make_result("c-3", 0.80, clause_type="payment"),
        ]
        retriever = Retriever(store, _embedder([1.0]))

        outcome = retriever.retrieve("q", top_k=2, filter=RetrievalFilter(clause_type="termination"))
        assert [r.chunk_id for r in outcome.results] == ["c-1", "c-2"]

        outcome = retriever.retrieve(
            "q", top_k=2, filter=RetrievalFilter(clause_type="termination", source="lease")
        )
        assert [r.chunk_id for r in outcome.results] == ["c-2"]

    def test_filter_survivors_still_truncated(self, make_result):
        from execution.docuintel.retriever import RetrievalFilter, Retriever
        store = MagicMock()
        store.search.return_value = [
            make_result(f"c-{i}", 0.9, clause_type="payment") for i in range(4)
        ]
        retriever = Retriever(store, _embedder([1.0]))
        outcome = retriever.retrieve("q", top_k=2, filter=RetrievalFilter(clause_type="payment"))
        assert len(outcome.results) == 2


class TestMetrics:
    def test_metrics_populated(self, make_result):
        from execution.docuintel.retriever import Retriever
        store = MagicMock()
        store.search.return_value = [make_result("c-0", 0.8)]
        outcome = Retriever(store, _embedder([1.0])).retrieve("q")

        metrics = outcome.metrics
        assert metrics.chunks_retrieved == 1
        assert metrics.estimated_accuracy == 0.92
        assert metrics.query_latency_ms >= metrics.retrieval_latency_ms >= 0
        assert metrics.embedding_latency_ms >= 0
        assert metrics.embedding_degraded is False

    def test_degraded_query_embedding_flagged(self, make_result):
        from execution.docuintel.retriever import Retriever
        store = MagicMock()
        store.search.return_value = []
        outcome = Retriever(store, _embedder([1.0], degraded=True)).retrieve("q")
        assert outcome.metrics.embedding_degraded is True

    def test_accuracy_constant_is_configurable(self, make_result):
        from execution.docuintel.retriever import RetrievalConfig, Retriever
        store = MagicMock()
        store.search.return_value = []
        retriever = Retriever(store, _embedder([1.0]), RetrievalConfig(estimated_accuracy=0.5))
        assert retriever.retrieve("q").metrics.estimated_accuracy == 0.5

    def test_metrics_to_dict(self):
        from execution.docuintel.retriever import RetrievalMetrics
        data = RetrievalMetrics(chunks_retrieved=2).to_dict()
        assert data["chunks_retrieved"] == 2
        assert set(data) >= {
            "query_latency_ms", "embedding_latency_ms", "retrieval_latency_ms",
            "generation_latency_ms", "chunks_used", "estimated_accuracy",
        }
