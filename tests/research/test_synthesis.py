"""Tests for the synthesis strategies."""

import json
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from research.errors import SynthesisUnavailableError
from research.models import AGENT_SYNTHESIS_MARKER, ExtractedContent, SourceQuality, SourceType
from research.synthesis import (
    AGENT_EXCERPT_CHARS,
    TRUNCATION_MARKER,
    AgentSynthesizer,
    BasicSynthesizer,
    DirectSynthesizer,
    Synthesizer,
    build_agent_prompt,
    build_direct_prompt,
    make_synthesizer,
    parse_synthesis_response,
    truncate,
)


@pytest.fixture
def contents():
    return {
        "https://docs.python.org/3/library/asyncio.html": ExtractedContent(
            url="https://docs.python.org/3/library/asyncio.html",
            title="Python Asyncio Reference",
            content="asyncio is a library to write concurrent code. Testing covered later.",
            summary="asyncio is a library to write concurrent code.",
        ),
        "https://realpython.com/async-io-python/": ExtractedContent(
            url="https://realpython.com/async-io-python/",
            title="Async IO Walkthrough",
            description="A walkthrough of async IO",
            content="Event loops, coroutines and tasks.",
        ),
    }


@pytest.fixture
def qualities():
    return {
        "https://docs.python.org/3/library/asyncio.html": SourceQuality(
            url="https://docs.python.org/3/library/asyncio.html",
            domain="docs.python.org",
            type=SourceType.OFFICIAL_DOCS,
            authority_score=1.0,
            recency_score=0.5,
            credibility_score=0.8,
            author="Jane Doe",
        ),
    }


def _chat_client(text):
    client = MagicMock()
    message = MagicMock()
    message.content = text
    client.chat.completions.create.return_value.choices = [MagicMock(message=message)]
    return client


class TestBasicSynthesizer:
    def test_findings_and_themes(self, contents, qualities):
        synthesis = BasicSynthesizer().synthesize("python asyncio", contents, qualities)

        assert synthesis.method == "basic"
        assert synthesis.summary.startswith('Research on "python asyncio" based on 2 sources. ')
        assert synthesis.key_findings == [
            "Python Asyncio Reference: asyncio is a library to write concurrent code.",
        ]
        assert synthesis.themes == ["python", "asyncio", "reference", "walkthrough"]
        assert synthesis.focus_analysis is None
        assert not synthesis.deferred

    def test_no_summaries(self):
        contents = {"https://a.com": ExtractedContent(url="https://a.com", title="A", content="x")}
        synthesis = BasicSynthesizer().synthesize("t", contents, {})
        assert synthesis.summary.endswith("Multiple sources analyzed.")
        assert synthesis.key_findings == []

    def test_focus_analysis(self, contents, qualities):
        synthesis = BasicSynthesizer().synthesize(
            "python asyncio", contents, qualities, focus_areas=["testing", "deployment"]
        )
        testing = synthesis.focus_analysis["testing"]
        assert testing.summary == "Found 1 sources discussing testing"
        assert len(testing.findings) == 1
        assert synthesis.focus_analysis["deployment"].summary == "Limited information found on deployment"


class TestAgentSynthesizer:
    def test_defers_with_marker(self, contents, qualities):
        synthesis = AgentSynthesizer().synthesize("python asyncio", contents, qualities)

        assert synthesis.method == "agent"
        assert synthesis.summary.startswith(AGENT_SYNTHESIS_MARKER)
        assert synthesis.deferred
        assert 'You are analyzing research on: "python asyncio"' in synthesis.summary

    def test_focus_placeholders(self, contents, qualities):
        synthesis = AgentSynthesizer().synthesize(
            "python asyncio", contents, qualities, focus_areas=["testing"]
        )
        assert "Agent will provide dedicated analysis" in synthesis.focus_analysis["testing"].summary

    def test_prompt_lists_sources_and_quality(self, contents, qualities):
        prompt = build_agent_prompt("python asyncio", contents, qualities, "intermediate")
        assert "=== SOURCE 1 ===" in prompt
        assert "URL: https://realpython.com/async-io-python/" in prompt
        assert "Authority: 100%" in prompt
        assert "Author: Jane Doe" in prompt
        assert "5-7 numbered findings" in prompt
        assert "Contradictions Between Sources" not in prompt

    def test_advanced_prompt_asks_for_contradictions(self, contents, qualities):
        prompt = build_agent_prompt("python asyncio", contents, qualities, "advanced", ["testing"])
        assert "## Contradictions Between Sources" in prompt
        assert "## Recommendations" in prompt
        assert "### testing" in prompt

    def test_excerpts_are_truncated(self, qualities):
        long = {"https://a.com": ExtractedContent(url="https://a.com", title="A", content="x" * 5000)}
        prompt = build_agent_prompt("t", long, qualities, "basic")
        assert "x" * AGENT_EXCERPT_CHARS + TRUNCATION_MARKER in prompt
        assert "x" * (AGENT_EXCERPT_CHARS + 1) not in prompt


class TestTruncate:
    def test_short_content_unchanged(self):
        assert truncate("abc", 10) == "abc"

    def test_long_content_marked(self):
        assert truncate("abcdef", 3) == "abc" + TRUNCATION_MARKER


class TestParseSynthesisResponse:
    def test_json_inside_prose(self):
        text = 'Here you go:\n```json\n{"summary": "S", "key_findings": ["a", "b"], "themes": ["t"]}\n```'
        synthesis = parse_synthesis_response(text)
        assert synthesis.summary == "S"
        assert synthesis.key_findings == ["a", "b"]
        assert synthesis.themes == ["t"]
        assert synthesis.method == "direct"

    def test_focus_analysis(self):
        text = json.dumps({
            "summary": "S",
            "focus_analysis": {"testing": {"summary": "T", "findings": ["f"], "best_practices": ["p"]}},
            "contradictions": ["c"],
            "recommendations": "not a list",
        })
        synthesis = parse_synthesis_response(text)
        assert synthesis.focus_analysis["testing"].best_practices == ["p"]
        assert synthesis.contradictions == ["c"]
        assert synthesis.recommendations == []

    def test_fallback_on_invalid_json(self):
        text = "No JSON here. " * 200
        synthesis = parse_synthesis_response(text)
        assert synthesis.summary == text[:1000]
        assert synthesis.key_findings == ["Analysis completed - see summary for details"]

    def test_fallback_on_broken_json(self):
        synthesis = parse_synthesis_response("{not json}")
        assert synthesis.summary == "{not json}"


class TestDirectSynthesizer:
    def test_synthesize(self, contents, qualities):
        client = _chat_client(json.dumps({"summary": "Direct summary", "key_findings": ["k"]}))
        synthesizer = DirectSynthesizer(model="gpt-test", client=client)

        synthesis = synthesizer.synthesize("python asyncio", contents, qualities, depth="advanced")

        assert synthesis.method == "direct"
        assert synthesis.summary == "Direct summary"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["max_tokens"] == 4000
        assert "python asyncio" in kwargs["messages"][0]["content"]

    def test_api_error_becomes_unavailable(self, contents, qualities):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.OpenAIError("quota exceeded")
        synthesizer = DirectSynthesizer(model="gpt-test", client=client)

        with pytest.raises(SynthesisUnavailableError, match="quota exceeded"):
            synthesizer.synthesize("t", contents, qualities)

    def test_connection_errors_are_retried(self, contents, qualities, monkeypatch):
        monkeypatch.setattr(DirectSynthesizer._call_llm.retry, "sleep", lambda seconds: None)
        client = _chat_client('{"summary": "ok"}')
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client.chat.completions.create.side_effect = [
            openai.APIConnectionError(request=request),
            client.chat.completions.create.return_value,
        ]
        synthesizer = DirectSynthesizer(model="gpt-test", client=client)

        assert synthesizer.synthesize("t", contents, qualities).summary == "ok"
        assert client.chat.completions.create.call_count == 2

    def test_default_model(self, monkeypatch):
        monkeypatch.setenv("SYNTHESIS_MODEL", "gpt-custom")
        assert DirectSynthesizer(client=MagicMock()).model == "gpt-custom"

    def test_prompt_has_json_schema(self, contents, qualities):
        prompt = build_direct_prompt("t", contents, qualities, "basic", ["testing"])
        assert '"focus_analysis"' in prompt
        assert '"testing"' in prompt
        assert "valid JSON" in prompt


class TestMakeSynthesizer:
    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            Synthesizer()

    def test_explicit_modes(self):
        assert isinstance(make_synthesizer("basic"), BasicSynthesizer)
        assert isinstance(make_synthesizer("agent"), AgentSynthesizer)

    def test_default_is_agent(self, monkeypatch):
        monkeypatch.delenv("SYNTHESIS_MODE", raising=False)
        assert isinstance(make_synthesizer(), AgentSynthesizer)

    def test_direct_without_key_falls_back_to_agent(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert isinstance(make_synthesizer("direct"), AgentSynthesizer)

    def test_direct_with_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert isinstance(make_synthesizer("direct"), DirectSynthesizer)

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown synthesis mode"):
            make_synthesizer("magic")
