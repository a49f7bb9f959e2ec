"""
Call-with-fallback combinator.

Every best-effort provider call in the engine (batch embedding, query
embedding, answer generation) goes through call_with_fallback so the
degrade-don't-fail policy lives in one place.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FallbackOutcome(Generic[T]):
    """Result of a guarded call."""
    value: T
    degraded: bool = False
    error: Optional[Exception] = None


def call_with_fallback(
    primary: Callable[[], T],
    fallback: Callable[[], T],
    label: str,
) -> FallbackOutcome[T]:
    """
    Run primary(); on any exception run fallback() instead.

    Args:
        primary: Zero-arg callable performing the external call
        fallback: Zero-arg deterministic local substitute
        label: Name used in log lines

    Returns:
        FallbackOutcome with degraded=True when the fallback produced the value
    """
    try:
        return FallbackOutcome(value=primary())
    except Exception as e:
        logger.warning(f"{label} failed, using fallback: {type(e).__name__}: {e}")
        return FallbackOutcome(value=fallback(), degraded=True, error=e)
