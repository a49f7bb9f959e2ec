"""
Shared fixtures and test utilities for DocuIntel tests.

Provides fake OpenAI clients, sample data and reusable fixtures so that all
tests run without API keys or network access.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

TEST_JWT_SECRET = "test-secret-for-docuintel"

# ---------------------------------------------------------------------------
# Sample contracts
# ---------------------------------------------------------------------------

INDEMNIFICATION_CLAUSE = (
    "Section 1. Indemnification. The Supplier shall indemnify and hold harmless "
    "the Customer against all third-party claims arising from the Services."
)

TERMINATION_CLAUSE = (
    "Section 2. Termination. Either party may terminate this Agreement upon "
    "thirty days written notice to the other party."
)

NOISE_LINE = "Page 1 / 3"

# Two real clauses plus a 10-character noise line
SAMPLE_CONTRACT = f"{INDEMNIFICATION_CLAUSE}\n\n{TERMINATION_CLAUSE}\n\n{NOISE_LINE}"

SAMPLE_DOCUMENT = """MASTER SERVICES AGREEMENT

This Master Services Agreement is entered into by and between TechCorp Inc. and ClientCo LLC.

Section 1. Definitions. "Services" means the consulting and software services described in each Statement of Work.

Section 2. Payment. Customer shall pay each invoice within thirty (30) days of the invoice date.

Section 3. Confidentiality. Each party shall protect the confidential information of the other party.

Section 4. Governing Law. This Agreement is governed by the laws of the State of Delaware.
"""


# ---------------------------------------------------------------------------
# Deterministic keyword embeddings
# ---------------------------------------------------------------------------

KEYWORD_AXES = ["indemnif", "terminat", "confidential", "payment", "governing law"]
KEYWORD_DIMENSIONS = len(KEYWORD_AXES) + 1


def keyword_vector(text: str) -> list[float]:
    """One axis per keyword plus a small bias axis, so no vector is zero."""
    lowered = text.lower()
    return [1.0 if kw in lowered else 0.0 for kw in KEYWORD_AXES] + [0.1]


# ---------------------------------------------------------------------------
# Fake OpenAI clients
# ---------------------------------------------------------------------------

class FakeEmbeddingsAPI:
    """Stands in for client.embeddings; records every batch it receives."""

    def __init__(self, embed_fn=keyword_vector, fail=False, fail_on=None):
        self.embed_fn = embed_fn
        self.fail = fail
        self.fail_on = fail_on
        self.calls = []

    def create(self, model, input):
        self.calls.append(list(input))
        if self.fail:
            raise RuntimeError("embedding provider down")
        if self.fail_on and any(self.fail_on in t for t in input):
            raise RuntimeError(f"embedding provider rejected batch containing {self.fail_on}")
        return SimpleNamespace(data=[
            SimpleNamespace(index=i, embedding=self.embed_fn(t)) for i, t in enumerate(input)
        ])


class FakeChatCompletions:
    """Stands in for client.chat.completions (non-streaming)."""

    def __init__(self, answer="", fail=False):
        self.answer = answer
        self.fail = fail
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise RuntimeError("completion provider down")
        return SimpleNamespace(choices=[
            SimpleNamespace(message=SimpleNamespace(content=self.answer))
        ])


class FakeOpenAIClient:
    def __init__(self, answer="", fail_chat=False, fail_embeddings=False, embed_fn=keyword_vector):
        self.embeddings = FakeEmbeddingsAPI(embed_fn=embed_fn, fail=fail_embeddings)
        self.chat = SimpleNamespace(completions=FakeChatCompletions(answer=answer, fail=fail_chat))


class FakeAsyncStream:
    """Async iterator of streaming completion parts; closed on context exit."""

    def __init__(self, deltas, fail_after=None):
        self.deltas = deltas
        self.fail_after = fail_after
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def __aiter__(self):
        return self._parts()

    async def _parts(self):
        for i, delta in enumerate(self.deltas):
            if self.fail_after is not None and i == self.fail_after:
                raise RuntimeError("connection reset during stream")
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=delta))])


class FakeAsyncChatCompletions:
    def __init__(self, deltas=None, fail=False, fail_after=None):
        self.deltas = deltas if deltas is not None else []
        self.fail = fail
        self.fail_after = fail_after
        self.calls = []
        self.streams = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise RuntimeError("completion provider down")
        stream = FakeAsyncStream(self.deltas, fail_after=self.fail_after)
        self.streams.append(stream)
        return stream


class FakeAsyncOpenAIClient:
    def __init__(self, deltas=None, fail=False, fail_after=None):
        self.chat = SimpleNamespace(
            completions=FakeAsyncChatCompletions(deltas=deltas, fail=fail, fail_after=fail_after)
        )

    @property
    def calls(self):
        return self.chat.completions.calls

    @property
    def streams(self):
        return self.chat.completions.streams


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_contract():
    return SAMPLE_CONTRACT


@pytest.fixture
def sample_document_text():
    return SAMPLE_DOCUMENT


@pytest.fixture
def settings():
    """Settings with no provider key and no streaming delay."""
    from execution.docuintel.config import Settings
    return Settings(
        embedding_dimensions=KEYWORD_DIMENSIONS,
        stream_chunk_delay=0,
        jwt_secret=TEST_JWT_SECRET,
    )


@pytest.fixture
def fake_openai():
    return FakeOpenAIClient(
        answer="The Supplier must indemnify the Customer against third-party claims [1]."
    )


@pytest.fixture
def embedding_service(fake_openai):
    from execution.docuintel.embeddings import EmbeddingConfig, EmbeddingService
    return EmbeddingService(
        config=EmbeddingConfig(dimensions=KEYWORD_DIMENSIONS),
        client=fake_openai,
    )


@pytest.fixture
def service(settings, embedding_service, fake_openai):
    """DocuIntelService wired to fake providers."""
    from execution.docuintel.generator import GroundedGenerator
    from execution.docuintel.service import DocuIntelService
    return DocuIntelService(
        settings=settings,
        embedding_service=embedding_service,
        generator=GroundedGenerator(llm_client=fake_openai),
    )


@pytest.fixture
def make_chunk():
    """Factory for Chunk objects with sensible defaults."""
    from execution.docuintel.chunker import Chunk

    def _make(chunk_id, content="Placeholder clause text", source="contract", **kwargs):
        return Chunk(
            chunk_id=chunk_id,
            source=source,
            content=content,
            start_char=kwargs.pop("start_char", 0),
            end_char=kwargs.pop("end_char", len(content)),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_result(make_chunk):
    """Factory for SearchResult objects."""
    from execution.docuintel.vector_store import SearchResult

    def _make(chunk_id, score, content="Placeholder clause text", **kwargs):
        return SearchResult(chunk=make_chunk(chunk_id, content=content, **kwargs), score=score)
    return _make


# ---------------------------------------------------------------------------
# Environment and singleton resets between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _no_provider_credentials(monkeypatch):
    """Never reach a real provider, even when a developer .env sets a key."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture(autouse=True)
def _reset_metrics():
    from execution.docuintel.metrics import get_metrics_collector
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()
