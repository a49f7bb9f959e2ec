"""
Grounded Answer Generator

Answers a query strictly from numbered context passages, extracts the
citations the model actually used and scores confidence. Provider failures
degrade to a templated answer; they never reach the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .citation import Citation, CitationExtractor
from .clause_patterns import FALLBACK_ANSWER, GROUNDED_SYSTEM_PROMPT, NO_CONTEXT_ANSWER
from .errors import ProviderUnavailable
from .fallback import call_with_fallback
from .vector_store import SearchResult

logger = logging.getLogger(__name__)

FALLBACK_CITATION_COUNT = 3
FALLBACK_CONFIDENCE = 0.5


@dataclass
class GroundedResponse:
    """Answer plus the evidence it cites."""
    answer: str
    citations: list[Citation] = field(default_factory=list)
    confidence: float = 0.0
    grounded_on_sources: bool = False
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
            "confidence": self.confidence,
            "grounded_on_sources": self.grounded_on_sources,
        }


@dataclass
class GenerationConfig:
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 1500
    score_weight: float = 0.6
    citation_weight: float = 0.4


def build_context(context: list[SearchResult]) -> str:
    """Number passages as [1] ..., [2] ... separated by blank lines."""
    return "\n\n".join(f"[{i + 1}] {r.chunk.content}" for i, r in enumerate(context))


def calculate_confidence(
    context: list[SearchResult],
    citation_count: int,
    score_weight: float = 0.6,
    citation_weight: float = 0.4,
) -> float:
    """Weighted mean retrieval score and citation coverage, rounded to 2 places."""
    if not context:
        return 0.0
    avg_score = sum(r.score for r in context) / len(context)
    citation_ratio = min(citation_count / len(context), 1.0)
    confidence = round(avg_score * score_weight + citation_ratio * citation_weight, 2)
    return min(max(confidence, 0.0), 1.0)


class GroundedGenerator:
    """
    Generates answers constrained to retrieved context.

    Uses a synchronous OpenAI client; when no client is configured the call
    raises ProviderUnavailable and the templated fallback answer is returned.
    """

    def __init__(self, llm_client=None, config: Optional[GenerationConfig] = None):
        self._client = llm_client
        self.config = config or GenerationConfig()
        self._citations = CitationExtractor()

    def generate(self, query: str, context: list[SearchResult]) -> GroundedResponse:
        """
        Answer a query from ranked context.

        Args:
            query: User question
            context: Ranked retrieval results

        Returns:
            GroundedResponse (never raises on provider failure)
        """
        if not context:
            logger.info("No context passages; skipping generation")
            return GroundedResponse(answer=NO_CONTEXT_ANSWER)

        outcome = call_with_fallback(
            primary=lambda: self._answer(query, context),
            fallback=lambda: self._fallback_response(context),
            label="Grounded generation",
        )
        return outcome.value

    def _answer(self, query: str, context: list[SearchResult]) -> GroundedResponse:
        if self._client is None:
            raise ProviderUnavailable("LLM client not configured")

        system_prompt = GROUNDED_SYSTEM_PROMPT.format(context=build_context(context))
        response = self._client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": query},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        answer = response.choices[0].message.content or ""

        citations = self._citations.extract(answer, context)
        logger.info(f"Answer cites {len(citations)}/{len(context)} context passages")

        return GroundedResponse(
            answer=answer,
            citations=citations,
            confidence=calculate_confidence(
                context, len(citations),
                self.config.score_weight, self.config.citation_weight,
            ),
            grounded_on_sources=bool(citations),
        )

    def _fallback_response(self, context: list[SearchResult]) -> GroundedResponse:
        citations = [Citation.from_result(r) for r in context[:FALLBACK_CITATION_COUNT]]
        return GroundedResponse(
            answer=FALLBACK_ANSWER.format(count=len(context)),
            citations=citations,
            confidence=FALLBACK_CONFIDENCE,
            grounded_on_sources=bool(citations),
            degraded=True,
        )
