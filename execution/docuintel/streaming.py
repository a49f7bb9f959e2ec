"""
Streaming Session for DocuIntel

Wraps generation in an incremental event protocol delivered over SSE:

    connected -> {progress | chunk}* -> analysis? -> complete

An error event can occur after connected; it is always followed by a
complete event with status "error", so every session that is not cancelled
ends in complete. Without a provider client the session replays a canned
analysis line by line (demo mode).
"""

import time
import json
import asyncio
import logging
from contextlib import aclosing
from enum import Enum
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

from .cases import CaseStore
from .clause_patterns import MOCK_ANALYSIS, STREAM_PROMPTS
from .config import SUPPORTED_MODES, Settings
from .errors import StreamTerminated, ValidationError
from .generator import build_context
from .metrics import get_metrics_collector
from .retriever import RetrievalFilter, Retriever

logger = logging.getLogger(__name__)

MOCK_PROGRESS_EVERY = 5
PROVIDER_PROGRESS_EVERY = 10
PROVIDER_PROGRESS_CEILING = 90


class StreamEventType(str, Enum):
    CONNECTED = "connected"
    PROGRESS = "progress"
    CHUNK = "chunk"
    ANALYSIS = "analysis"
    COMPLETE = "complete"
    ERROR = "error"


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


# =============================================================================
# Event payloads (one per event type)
# =============================================================================

@dataclass
class ConnectedPayload:
    mode: str
    case_reference: Optional[str] = None
    message: str = "Stream connected"

    def to_dict(self) -> dict:
        return {"message": self.message, "caseReference": self.case_reference, "mode": self.mode}


@dataclass
class ProgressPayload:
    progress: int
    message: str = ""

    def to_dict(self) -> dict:
        return {"progress": self.progress, "message": self.message}


@dataclass
class ChunkPayload:
    content: str
    chunk_index: int

    def to_dict(self) -> dict:
        return {"content": self.content, "chunkIndex": self.chunk_index}


@dataclass
class AnalysisPayload:
    full_response: str
    chunk_count: int
    model: str

    def to_dict(self) -> dict:
        return {
            "fullResponse": self.full_response,
            "chunkCount": self.chunk_count,
            "model": self.model,
        }


@dataclass
class CompletePayload:
    message: str
    status: str = "ok"
    total_chunks: Optional[int] = None
    response_length: Optional[int] = None
    mode: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"message": self.message, "status": self.status}
        if self.total_chunks is not None:
            data["totalChunks"] = self.total_chunks
        if self.response_length is not None:
            data["responseLength"] = self.response_length
        if self.mode is not None:
            data["mode"] = self.mode
        return data


@dataclass
class ErrorPayload:
    message: str

    def to_dict(self) -> dict:
        return {"message": self.message}


EventPayload = Union[
    ConnectedPayload, ProgressPayload, ChunkPayload,
    AnalysisPayload, CompletePayload, ErrorPayload,
]

_PAYLOAD_TYPES = {
    StreamEventType.CONNECTED: ConnectedPayload,
    StreamEventType.PROGRESS: ProgressPayload,
    StreamEventType.CHUNK: ChunkPayload,
    StreamEventType.ANALYSIS: AnalysisPayload,
    StreamEventType.COMPLETE: CompletePayload,
    StreamEventType.ERROR: ErrorPayload,
}


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StreamEvent:
    """A single session event. The payload type is fixed by the event type."""
    type: StreamEventType
    payload: EventPayload
    timestamp: int = field(default_factory=_now_ms)

    def __post_init__(self):
        expected = _PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.type.value} event requires {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    @property
    def data(self) -> dict:
        return self.payload.to_dict()

    def to_dict(self) -> dict:
        return {"type": self.type.value, "data": self.data, "timestamp": self.timestamp}

    def to_sse(self) -> str:
        """Format as a Server-Sent Event."""
        return f"event: {self.type.value}\ndata: {json.dumps(self.data, ensure_ascii=False)}\n\n"

    @classmethod
    def connected(cls, mode: str, case_reference: Optional[str] = None) -> "StreamEvent":
        return cls(StreamEventType.CONNECTED, ConnectedPayload(mode=mode, case_reference=case_reference))

    @classmethod
    def progress(cls, progress: int, message: str = "") -> "StreamEvent":
        return cls(StreamEventType.PROGRESS, ProgressPayload(progress=progress, message=message))

    @classmethod
    def chunk(cls, content: str, chunk_index: int) -> "StreamEvent":
        return cls(StreamEventType.CHUNK, ChunkPayload(content=content, chunk_index=chunk_index))

    @classmethod
    def analysis(cls, full_response: str, chunk_count: int, model: str) -> "StreamEvent":
        return cls(
            StreamEventType.ANALYSIS,
            AnalysisPayload(full_response=full_response, chunk_count=chunk_count, model=model),
        )

    @classmethod
    def complete(cls, message: str, **kwargs) -> "StreamEvent":
        return cls(StreamEventType.COMPLETE, CompletePayload(message=message, **kwargs))

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(StreamEventType.ERROR, ErrorPayload(message=message))


@dataclass
class StreamRequest:
    prompt: Optional[str] = None
    case_reference: Optional[str] = None
    mode: str = "analyze"


# =============================================================================
# Session
# =============================================================================

class StreamingSession:
    """
    One caller's event stream.

    Usage:
        session = StreamingSession(StreamRequest(prompt="..."), llm_client, settings)
        async for event in session.events():
            send(event.to_sse())

    llm_client is an openai.AsyncOpenAI (or compatible fake); None selects
    the demo path. Sessions share nothing but the read-only index behind
    the retriever.
    """

    def __init__(
        self,
        request: StreamRequest,
        llm_client=None,
        settings: Optional[Settings] = None,
        case_store: Optional[CaseStore] = None,
        retriever: Optional[Retriever] = None,
    ):
        self.request = request
        self.settings = settings or Settings()
        self._client = llm_client
        self._case_store = case_store
        self._retriever = retriever
        self._cancelled = False
        self._metrics = get_metrics_collector()
        self.state = SessionState.IDLE

        self.mode = request.mode
        if self.mode not in SUPPORTED_MODES:
            logger.warning(f"Unknown stream mode '{self.mode}', using analyze")
            self.mode = "analyze"

    @property
    def demo_mode(self) -> bool:
        return self._client is None

    def cancel(self):
        """Stop producing events; the generator returns at its next step."""
        self._cancelled = True

    def _check_cancelled(self):
        if self._cancelled:
            raise StreamTerminated("Stream cancelled by client")

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield the session's events in protocol order."""
        start_time = time.time()
        outcome = "completed"
        self._metrics.record_stream_started()

        try:
            self.state = SessionState.CONNECTED
            yield StreamEvent.connected(self.mode, self.request.case_reference)

            try:
                prompt = self._resolve_prompt()
                self.state = SessionState.STREAMING
                if self.demo_mode:
                    body = self._mock_events()
                else:
                    body = self._provider_events(prompt)
                async with aclosing(body):
                    async for event in body:
                        self._check_cancelled()
                        yield event
                self.state = SessionState.COMPLETE
            except StreamTerminated:
                outcome = "cancelled"
                self.state = SessionState.CANCELLED
                logger.info("Stream cancelled by client")
            except Exception as e:
                outcome = "errored"
                self.state = SessionState.ERROR
                if isinstance(e, ValidationError):
                    logger.warning(f"Stream rejected: {e}")
                else:
                    logger.error(f"Stream failed ({self.mode}): {type(e).__name__}: {e}")
                yield StreamEvent.error(str(e) or "Stream error occurred")
                yield StreamEvent.complete("Stream ended with error", status="error")
        except (GeneratorExit, asyncio.CancelledError):
            outcome = "cancelled"
            self.state = SessionState.CANCELLED
            raise
        finally:
            self._metrics.record_stream_finished(outcome)
            logger.info(
                f"Stream {outcome} (mode={self.mode}, demo={self.demo_mode}) "
                f"in {(time.time() - start_time) * 1000:.0f}ms"
            )

    def _resolve_prompt(self) -> str:
        """Return the text to send, resolving a case reference when needed."""
        prompt = self.request.prompt
        case_reference = self.request.case_reference
        if not prompt and not case_reference:
            raise ValidationError("Either prompt or caseReference is required")

        if case_reference and not prompt and self._case_store is not None:
            record = self._case_store.get_case(case_reference)
            if record is None:
                logger.info(f"Case {case_reference} not in case store; using it as a label")
            else:
                prompt = record.document_text

        prompt = prompt or STREAM_PROMPTS[self.mode]["default_input"]
        # Demo mode replays the canned analysis and never sends the prompt
        if not prompt and not self.demo_mode:
            raise ValidationError(f"Nothing to {self.mode}: case {case_reference} has no document text")
        return prompt

    async def _mock_events(self) -> AsyncIterator[StreamEvent]:
        lines = MOCK_ANALYSIS.splitlines(keepends=True)
        total = len(lines)
        for i, line in enumerate(lines):
            yield StreamEvent.chunk(line, i + 1)
            await asyncio.sleep(self.settings.stream_chunk_delay)
            if i % MOCK_PROGRESS_EVERY == 0:
                yield StreamEvent.progress(round(i / total * 100), "Generating analysis...")

        yield StreamEvent.complete("Analysis complete (Demo Mode)", mode="mock")

    async def _provider_events(self, prompt: str) -> AsyncIterator[StreamEvent]:
        params = STREAM_PROMPTS[self.mode]
        model = self.settings.completion_model

        yield StreamEvent.progress(10, "Initializing analysis...")

        if self.mode == "chat":
            prompt = await self._with_retrieved_context(prompt)

        stream = await self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": params["system"]},
                {"role": "user", "content": prompt},
            ],
            stream=True,
            temperature=params["temperature"],
            max_tokens=params["max_tokens"],
        )

        yield StreamEvent.progress(30, "Analyzing...")

        parts = []
        chunk_count = 0
        async with stream:
            async for part in stream:
                self._check_cancelled()
                content = part.choices[0].delta.content if part.choices else None
                if not content:
                    continue
                parts.append(content)
                chunk_count += 1
                yield StreamEvent.chunk(content, chunk_count)

                if chunk_count % PROVIDER_PROGRESS_EVERY == 0:
                    yield StreamEvent.progress(
                        min(30 + chunk_count * 2, PROVIDER_PROGRESS_CEILING),
                        "Streaming response...",
                    )

        full_response = "".join(parts)
        yield StreamEvent.analysis(full_response, chunk_count, model)
        yield StreamEvent.complete(
            "Analysis complete",
            total_chunks=chunk_count,
            response_length=len(full_response),
        )

    async def _with_retrieved_context(self, prompt: str) -> str:
        """Prepend numbered passages from the shared index to a chat question."""
        if self._retriever is None:
            return prompt

        case_reference = self.request.case_reference
        filter = RetrievalFilter(source=case_reference) if case_reference else None
        # Retrieval embeds the query with a blocking client
        outcome = await asyncio.to_thread(self._retriever.retrieve, prompt, None, None, filter)
        if not outcome.results:
            return prompt

        logger.info(f"Chat stream grounded on {len(outcome.results)} passages")
        return f"CONTEXT:\n{build_context(outcome.results)}\n\nQUESTION:\n{prompt}"
