"""
Error taxonomy for the DocuIntel retrieval engine.

Provider failures are recovered locally (see fallback.py); validation errors
surface once as a terminal stream event; index corruption is fatal.
"""


class DocuIntelError(Exception):
    """Base class for all engine errors."""


class ValidationError(DocuIntelError):
    """Raised when a required prompt, query or case reference is missing."""


class ProviderUnavailable(DocuIntelError):
    """Raised when the embedding/generation provider fails or has no credentials."""

    def __init__(self, message: str, provider: str = "openai"):
        super().__init__(message)
        self.provider = provider


class IndexCorruption(DocuIntelError):
    """Raised when passages and vectors no longer line up. Never recovered silently."""

    def __init__(self, message: str, chunks: int = 0, vectors: int = 0):
        super().__init__(message)
        self.chunks = chunks
        self.vectors = vectors


class StreamTerminated(DocuIntelError):
    """The stream consumer went away. A cancellation, not a failure."""
