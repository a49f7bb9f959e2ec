"""Tests for the grounded answer generator."""

import pytest

from tests.conftest import FakeOpenAIClient


@pytest.fixture
def context(make_result):
    return [
        make_result("msa-0", 0.9, content="The Supplier shall indemnify the Customer."),
        make_result("msa-1", 0.7, content="Either party may terminate on notice."),
        make_result("msa-2", 0.5, content="Invoices are payable in thirty days."),
        make_result("msa-3", 0.3, content="Delaware law governs."),
    ]


class TestBuildContext:
    def test_numbered_blocks(self, context):
        from execution.docuintel.generator import build_context
        block = build_context(context[:2])
        assert block == (
            "[1] The Supplier shall indemnify the Customer.\n\n"
            "[2] Either party may terminate on notice."
        )


class TestConfidence:
    def test_weighted_formula(self, make_result):
        from execution.docuintel.generator import calculate_confidence
        ctx = [make_result("a", 0.8), make_result("b", 0.6)]
        # 0.6 * 0.7 + 0.4 * 0.5
        assert calculate_confidence(ctx, 1) == 0.62

    def test_citation_ratio_capped(self, make_result):
        from execution.docuintel.generator import calculate_confidence
        ctx = [make_result("a", 1.0)]
        assert calculate_confidence(ctx, 5) == 1.0

    def test_empty_context(self):
        from execution.docuintel.generator import calculate_confidence
        assert calculate_confidence([], 0) == 0.0

    def test_clamped_to_unit_interval(self, make_result):
        from execution.docuintel.generator import calculate_confidence
        assert calculate_confidence([make_result("a", -1.0)], 0) == 0.0
        assert calculate_confidence([make_result("a", 1.0)], 1, score_weight=1.0, citation_weight=1.0) == 1.0


class TestGenerate:
    def test_grounded_answer(self, context):
        from execution.docuintel.generator import GroundedGenerator
        client = FakeOpenAIClient(answer="The Supplier indemnifies [1]; termination needs notice [2].")
        response = GroundedGenerator(llm_client=client).generate("What are the key terms?", context)

        assert [c.chunk_id for c in response.citations] == ["msa-0", "msa-1"]
        assert response.grounded_on_sources is True
        assert response.degraded is False
        # 0.6 * mean(0.9, 0.7, 0.5, 0.3) + 0.4 * 2/4
        assert response.confidence == 0.56

    def test_single_provider_call_with_context_prompt(self, context):
        from execution.docuintel.generator import GroundedGenerator
        client = FakeOpenAIClient(answer="Answer [1].")
        GroundedGenerator(llm_client=client).generate("Who indemnifies?", context)

        calls = client.chat.completions.calls
        assert len(calls) == 1
        system, user = calls[0]["messages"]
        assert "ONLY on the provided context" in system["content"]
        assert "[1] The Supplier shall indemnify the Customer." in system["content"]
        assert "[4] Delaware law governs." in system["content"]
        assert user == {"role": "user", "content": "Who indemnifies?"}
        assert calls[0]["model"] == "gpt-4o-mini"

    def test_out_of_range_citations_dropped(self, context):
        from execution.docuintel.generator import GroundedGenerator
        client = FakeOpenAIClient(answer="Unsupported claim [9]. Nothing else [0].")
        response = GroundedGenerator(llm_client=client).generate("q", context)

        assert response.citations == []
        assert response.grounded_on_sources is False
        assert 0.0 <= response.confidence <= 1.0

    def test_provider_failure_degrades(self, context):
        from execution.docuintel.generator import GroundedGenerator
        client = FakeOpenAIClient(fail_chat=True)
        response = GroundedGenerator(llm_client=client).generate("q", context)

        assert response.degraded is True
        assert "4 relevant sections" in response.answer
        assert [c.chunk_id for c in response.citations] == ["msa-0", "msa-1", "msa-2"]
        assert response.confidence == 0.5
        assert response.grounded_on_sources is True

    def test_no_client_degrades(self, context):
        from execution.docuintel.generator import GroundedGenerator
        response = GroundedGenerator().generate("q", context[:1])
        assert response.degraded is True
        assert len(response.citations) == 1
        assert response.confidence == 0.5

    def test_empty_context_skips_provider(self):
        from execution.docuintel.clause_patterns import NO_CONTEXT_ANSWER
        from execution.docuintel.generator import GroundedGenerator
        client = FakeOpenAIClient(answer="should not be used")
        response = GroundedGenerator(llm_client=client).generate("q", [])

        assert response.answer == NO_CONTEXT_ANSWER
        assert response.citations == []
        assert response.confidence == 0.0
        assert response.grounded_on_sources is False
        assert client.chat.completions.calls == []

    def test_config_passed_to_provider(self, context):
        from execution.docuintel.generator import GenerationConfig, GroundedGenerator
        client = FakeOpenAIClient(answer="ok")
        config = GenerationConfig(model="gpt-4o", temperature=0.1, max_tokens=200)
        GroundedGenerator(llm_client=client, config=config).generate("q", context)

        call = client.chat.completions.calls[0]
        assert (call["model"], call["temperature"], call["max_tokens"]) == ("gpt-4o", 0.1, 200)

    def test_to_dict(self, context):
        from execution.docuintel.generator import GroundedGenerator
        client = FakeOpenAIClient(answer="See [1].")
        data = GroundedGenerator(llm_client=client).generate("q", context).to_dict()
        assert set(data) == {"answer", "citations", "confidence", "grounded_on_sources"}
        assert data["citations"][0]["chunk_id"] == "msa-0"
