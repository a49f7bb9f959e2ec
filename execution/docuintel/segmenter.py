"""
Clause Segmenter

Splits raw legal text into logical clauses using structural heuristics.
Boundary patterns cascade: every pass re-splits the segments produced by
the previous pass. Segments are never merged back together.
"""

import logging

from .clause_patterns import SEGMENT_BOUNDARY_PATTERNS

logger = logging.getLogger(__name__)

MIN_SEGMENT_LENGTH = 50


def segment_clauses(text: str, min_length: int = MIN_SEGMENT_LENGTH) -> list[str]:
    """
    Segment document text into clauses.

    Args:
        text: Raw document text
        min_length: Segments shorter than this (after trimming) are dropped

    Returns:
        Ordered list of non-empty clause strings
    """
    segments = [text]

    for pattern in SEGMENT_BOUNDARY_PATTERNS:
        refined = []
        for segment in segments:
            refined.extend(pattern.split(segment))
        segments = refined

    stripped = [s.strip() for s in segments]
    kept = [s for s in stripped if len(s) >= min_length]

    logger.debug(f"Segmented text into {len(kept)} clauses ({len(stripped) - len(kept)} dropped)")
    return kept
