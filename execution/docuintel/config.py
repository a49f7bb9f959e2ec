"""
Runtime Configuration for DocuIntel

Settings are read from the environment (a .env file is loaded by the entry
points). Component-level configs (chunking, embedding, retrieval) are built
from a single Settings instance so tests can override any knob directly.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


SUPPORTED_MODES = ("analyze", "chat", "summarize")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class Settings:
    """Process-wide configuration."""
    openai_api_key: Optional[str] = None
    completion_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_segment_length: int = 50

    # Embedding
    embedding_batch_size: int = 100
    embedding_max_workers: int = 4

    # Retrieval
    top_k: int = 5
    min_score: float = 0.3
    estimated_accuracy: float = 0.92

    # Provider calls
    request_timeout: float = 60.0

    # Streaming
    stream_chunk_delay: float = 0.05

    # Auth
    jwt_secret: str = ""
    jwt_expiry_hours: int = 24

    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            completion_model=os.getenv("DOCUINTEL_MODEL", "gpt-4o-mini"),
            embedding_model=os.getenv("DOCUINTEL_EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dimensions=_env_int("EMBEDDING_DIMENSIONS", 1536),
            chunk_size=_env_int("CHUNK_SIZE", 1000),
            chunk_overlap=_env_int("CHUNK_OVERLAP", 200),
            min_segment_length=_env_int("MIN_SEGMENT_LENGTH", 50),
            embedding_batch_size=_env_int("EMBEDDING_BATCH_SIZE", 100),
            embedding_max_workers=_env_int("EMBEDDING_MAX_WORKERS", 4),
            top_k=_env_int("RETRIEVAL_TOP_K", 5),
            min_score=_env_float("RETRIEVAL_MIN_SCORE", 0.3),
            estimated_accuracy=_env_float("ESTIMATED_ACCURACY", 0.92),
            request_timeout=_env_float("REQUEST_TIMEOUT", 60.0),
            stream_chunk_delay=_env_float("STREAM_CHUNK_DELAY", 0.05),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_expiry_hours=_env_int("JWT_EXPIRY_HOURS", 24),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    @property
    def provider_available(self) -> bool:
        """True when credentials for the OpenAI provider are configured."""
        return bool(self.openai_api_key)

    def chunk_config(self):
        from .chunker import ChunkConfig
        return ChunkConfig(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_segment_length=self.min_segment_length,
        )

    def embedding_config(self):
        from .embeddings import EmbeddingConfig
        return EmbeddingConfig(
            model=self.embedding_model,
            dimensions=self.embedding_dimensions,
            batch_size=self.embedding_batch_size,
            max_workers=self.embedding_max_workers,
            timeout=self.request_timeout,
        )

    def retrieval_config(self):
        from .retriever import RetrievalConfig
        return RetrievalConfig(
            top_k=self.top_k,
            min_score=self.min_score,
            estimated_accuracy=self.estimated_accuracy,
        )
