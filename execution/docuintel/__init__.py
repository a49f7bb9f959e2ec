"""
DocuIntel - Grounded Retrieval for Legal Documents

This module provides:
- Clause-aware segmentation and sliding-window chunking
- Batched OpenAI embeddings with a deterministic offline fallback
- A lock-guarded in-memory cosine index
- Grounded answers with bracketed citations and a confidence score
- Streaming analysis sessions delivered as Server-Sent Events
"""

__version__ = "0.1.0"

from .segmenter import segment_clauses
from .chunker import Chunk, ChunkConfig, ClauseChunker
from .embeddings import EmbeddingService
from .vector_store import InMemoryVectorStore, SearchResult
from .retriever import Retriever, RetrievalFilter
from .citation import Citation, CitationExtractor
from .generator import GroundedGenerator, GroundedResponse
from .service import DocuIntelService, build_service
from .streaming import StreamEvent, StreamingSession, StreamRequest

__all__ = [
    "segment_clauses",
    "Chunk",
    "ChunkConfig",
    "ClauseChunker",
    "EmbeddingService",
    "InMemoryVectorStore",
    "SearchResult",
    "Retriever",
    "RetrievalFilter",
    "Citation",
    "CitationExtractor",
    "GroundedGenerator",
    "GroundedResponse",
    "DocuIntelService",
    "build_service",
    "StreamEvent",
    "StreamingSession",
    "StreamRequest",
]
