"""
Pydantic models for the DocuIntel FastAPI backend.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field

StreamMode = Literal["analyze", "chat", "summarize"]


class IngestRequest(BaseModel):
    """Request body for plain-text document ingestion."""
    text: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1, max_length=200)


class IngestResponse(BaseModel):
    """Response body for document ingestion."""
    chunks_indexed: int
    processing_time_ms: int
    degraded: bool = False


class QueryRequest(BaseModel):
    """Request body for grounded query endpoint."""
    query: str = Field(..., min_length=1, max_length=2000)
    top_k: Optional[int] = Field(default=None, ge=1, le=50)
    min_score: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    clause_type: Optional[str] = None
    source: Optional[str] = None


class CitationInfo(BaseModel):
    """Citation in a query response."""
    chunk_id: str
    content: str
    source: str
    relevance_score: float


class MetricsInfo(BaseModel):
    """Per-query retrieval metrics."""
    query_latency_ms: float
    embedding_latency_ms: float
    retrieval_latency_ms: float
    generation_latency_ms: float
    chunks_retrieved: int
    chunks_used: int
    estimated_accuracy: float
    embedding_degraded: bool = False


class QueryResponse(BaseModel):
    """Response body for grounded query endpoint."""
    answer: str
    citations: list[CitationInfo]
    confidence: float
    grounded_on_sources: bool
    metrics: MetricsInfo


class StreamRequest(BaseModel):
    """Request body for POST /stream."""
    prompt: Optional[str] = None
    caseReference: Optional[str] = None
    mode: StreamMode = "analyze"


class HealthResponse(BaseModel):
    """Response body for health check."""
    status: str
    version: str
    indexed_passages: int
    provider: str


class IndexStatsResponse(BaseModel):
    """Response body for index statistics."""
    document_count: int
    source_count: int
    is_ready: bool
    provider_available: bool
    embedding_model: str
    dimensions: int
