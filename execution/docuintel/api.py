"""
FastAPI Backend for DocuIntel

Provides REST endpoints for plain-text ingestion and grounded queries, plus
an SSE endpoint for streaming analysis sessions.

Run with: uvicorn execution.docuintel.api:app --host 0.0.0.0 --port 8000
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Request
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from . import __version__
from .api_models import (
    IngestRequest, IngestResponse,
    QueryRequest, QueryResponse, CitationInfo, MetricsInfo,
    StreamRequest, StreamMode,
    HealthResponse, IndexStatsResponse,
)
from .auth import Identity, authenticate, extract_bearer_token
from .cases import CaseStore, InMemoryCaseStore
from .config import Settings
from .errors import IndexCorruption, ValidationError
from .metrics import get_metrics_collector
from .retriever import RetrievalFilter
from .service import DocuIntelService, build_async_llm_client, build_service
from . import streaming

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


# =============================================================================
# Service Container
# =============================================================================

class ServiceContainer:
    """Lazily builds the process-wide service, case store and streaming client."""

    def __init__(self):
        self._settings: Optional[Settings] = None
        self._service: Optional[DocuIntelService] = None
        self._case_store: Optional[CaseStore] = None
        self._stream_client = None
        self._stream_client_ready = False

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = Settings.from_env()
        return self._settings

    def get_service(self) -> DocuIntelService:
        if self._service is None:
            self._service = build_service(self.settings)
        return self._service

    def get_case_store(self) -> CaseStore:
        if self._case_store is None:
            self._case_store = InMemoryCaseStore()
        return self._case_store

    def get_stream_client(self):
        """Cached AsyncOpenAI client, or None in demo mode."""
        if not self._stream_client_ready:
            self._stream_client = build_async_llm_client(self.settings)
            self._stream_client_ready = True
        return self._stream_client


_container = ServiceContainer()

app = FastAPI(
    title="DocuIntel API",
    description="Grounded retrieval and streaming analysis over legal documents",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_container.settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Authentication dependency
# =============================================================================

async def get_authenticated_identity(
    authorization: Optional[str] = Header(default=None),
) -> Identity:
    """Validate the bearer token and return the caller identity."""
    token = extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    try:
        identity = authenticate(token, secret=_container.settings.jwt_secret or None)
    except RuntimeError as e:
        logger.error(f"Auth misconfigured: {e}")
        raise HTTPException(status_code=401, detail="Authentication unavailable")

    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return identity


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    service = _container.get_service()
    return HealthResponse(
        status="ok",
        version=__version__,
        indexed_passages=service.store.count,
        provider="openai" if _container.settings.provider_available else "demo",
    )


@app.post("/api/v1/documents/ingest", response_model=IngestResponse)
def ingest_document(
    request: IngestRequest,
    identity: Identity = Depends(get_authenticated_identity),
):
    """Segment, chunk, embed and index plain document text."""
    service = _container.get_service()
    try:
        result = service.ingest(request.text, request.source)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IndexCorruption as e:
        logger.error(f"Index corruption during ingest of {request.source}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(f"User {identity.user_id} ingested {result.chunks_indexed} passages from {request.source}")
    return IngestResponse(**result.to_dict())


@app.post("/api/v1/query", response_model=QueryResponse)
def query_documents(
    request: QueryRequest,
    identity: Identity = Depends(get_authenticated_identity),
):
    """Grounded query with citations."""
    service = _container.get_service()
    filter = None
    if request.clause_type or request.source:
        filter = RetrievalFilter(clause_type=request.clause_type, source=request.source)

    try:
        result = service.query(
            request.query,
            top_k=request.top_k,
            min_score=request.min_score,
            filter=filter,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = result.response
    return QueryResponse(
        answer=response.answer,
        citations=[CitationInfo(**c.to_dict()) for c in response.citations],
        confidence=response.confidence,
        grounded_on_sources=response.grounded_on_sources,
        metrics=MetricsInfo(**result.metrics.to_dict()),
    )


async def _sse_stream(request: Request, session: streaming.StreamingSession) -> AsyncIterator[str]:
    """Render session events as SSE, stopping once the client goes away."""
    events = session.events()
    try:
        async for event in events:
            if await request.is_disconnected():
                session.cancel()
                break
            yield event.to_sse()
    finally:
        await events.aclose()


def _stream_response(http_request: Request, stream_request: streaming.StreamRequest) -> StreamingResponse:
    service = _container.get_service()
    session = streaming.StreamingSession(
        stream_request,
        llm_client=_container.get_stream_client(),
        settings=_container.settings,
        case_store=_container.get_case_store(),
        retriever=service.retriever,
    )
    return StreamingResponse(
        _sse_stream(http_request, session),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/api/v1/stream")
async def stream_analysis(
    request: Request,
    prompt: Optional[str] = None,
    case_reference: Optional[str] = Query(default=None, alias="caseReference"),
    mode: StreamMode = "analyze",
    identity: Identity = Depends(get_authenticated_identity),
):
    """Streaming analysis with SSE.

    Sends events:
      - connected  (once, first)
      - progress   {"progress": 0-100, "message": ...}
      - chunk      {"content": ..., "chunkIndex": n}
      - analysis   {"fullResponse": ..., "chunkCount": n, "model": ...}
      - error      {"message": ...}
      - complete   (always last)
    """
    return _stream_response(
        request,
        streaming.StreamRequest(prompt=prompt, case_reference=case_reference, mode=mode),
    )


@app.post("/api/v1/stream")
async def stream_analysis_post(
    body: StreamRequest,
    request: Request,
    identity: Identity = Depends(get_authenticated_identity),
):
    """Same protocol as GET /stream with the request in the body."""
    return _stream_response(
        request,
        streaming.StreamRequest(prompt=body.prompt, case_reference=body.caseReference, mode=body.mode),
    )


@app.get("/api/v1/index/stats", response_model=IndexStatsResponse)
async def index_stats(identity: Identity = Depends(get_authenticated_identity)):
    """Vector index statistics."""
    return IndexStatsResponse(**_container.get_service().index_stats())


@app.get("/api/v1/metrics")
async def get_metrics(identity: Identity = Depends(get_authenticated_identity)):
    """Aggregated query, ingestion, fallback and stream counters."""
    collector = get_metrics_collector()
    return {
        **collector.get_metrics_dict(),
        "uptime_seconds": round(collector.get_uptime().total_seconds(), 1),
    }
