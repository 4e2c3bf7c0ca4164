"""Tests for the research pipeline with fake collaborators."""

import time

import pytest

from research.errors import ErrorKind, ExtractionError, ProviderError, SynthesisUnavailableError
from research.models import (
    AGENT_SYNTHESIS_MARKER,
    ExtractedContent,
    ProviderResponse,
    SearchResult,
    SourceType,
)
from research.orchestrator import (
    ResearchOrchestrator,
    Stage,
    alternative_queries,
    build_queries,
    per_query_count,
    resolve_source_count,
)
from research.providers.base import ProviderInfo, SearchProvider
from research.synthesis import AgentSynthesizer, BasicSynthesizer


class FakeProvider(SearchProvider):
    def __init__(self, results=None, fail=(), delays=None, crash=()):
        self.results = results or {}
        self.fail = set(fail)
        self.crash = set(crash)
        self.delays = delays or {}
        self.calls = []

    def info(self):
        return ProviderInfo(name="fake", display_name="Fake")

    def search(self, query, count=5, filters=None):
        self.calls.append((query, count))
        time.sleep(self.delays.get(query, 0))
        if query in self.fail:
            raise ProviderError(f"fake search failed for {query}", "fake", recovery_suggestions=["Try later"])
        if query in self.crash:
            raise RuntimeError("connection reset mid-response")
        return ProviderResponse(results=[
            SearchResult(title=r.title, link=r.link, snippet=r.snippet)
            for r in self.results.get(query, [])
        ])


class FakeExtractor:
    def __init__(self, fail=(), raises=None):
        self.fail = set(fail)
        self.raises = raises
        self.requested = []

    def extract_many(self, urls):
        self.requested.append(list(urls))
        if self.raises is not None:
            raise self.raises
        return {
            url: ExtractionError(url, "HTTP 404") if url in self.fail else ExtractedContent(
                url=url,
                title=f"Title for {url}",
                content=f"Content for {url}.",
                summary=f"Summary for {url}",
            )
            for url in urls
        }


class FailingSynthesizer(BasicSynthesizer):
    method = "direct"

    def __init__(self, exc):
        self.exc = exc

    def synthesize(self, *args, **kwargs):
        raise self.exc


def _r(link, snippet):
    return SearchResult(title=link, link=link, snippet=snippet)


ASYNCIO_RESULTS = {
    "python asyncio": [
        _r("https://realpython.com/async-io-python/?utm_source=x", "Guide to async IO in Python"),
        _r("https://docs.python.org/3/library/asyncio.html", "Official asyncio documentation"),
        _r("https://realpython.com/async-io-python/", "Another copy of the guide"),
        _r("https://stackoverflow.com/questions/1", "How do I use asyncio gather"),
    ],
}


def _orchestrator(provider=None, extractor=None, synthesizer=None):
    return ResearchOrchestrator(
        provider or FakeProvider(ASYNCIO_RESULTS),
        extractor or FakeExtractor(),
        synthesizer or BasicSynthesizer(),
    )


# --- helpers ---


class TestHelpers:
    def test_build_queries(self):
        assert build_queries("rust", ["async", " ", "ffi"]) == ["rust", "rust async", "rust ffi"]
        assert build_queries("rust") == ["rust"]

    def test_per_query_count(self):
        assert per_query_count(5, 1) == 7
        assert per_query_count(5, 3) == 4

    def test_resolve_source_count(self):
        assert resolve_source_count("basic") == 3
        assert resolve_source_count("intermediate") == 5
        assert resolve_source_count("advanced") == 8
        assert resolve_source_count("basic", 10) == 10
        with pytest.raises(ValueError):
            resolve_source_count("basic", 11)
        with pytest.raises(ValueError):
            resolve_source_count("expert")

    def test_alternative_queries(self):
        assert alternative_queries("python asyncio testing", ["mocking"]) == [
            "python",
            "asyncio testing",
            "python asyncio testing overview",
            "python asyncio testing",
        ]
        assert alternative_queries("rust") == ["rust overview"]


# --- search fan-out ---


class TestSearchAll:
    def test_merges_in_query_order(self):
        provider = FakeProvider(
            {"t": [_r("https://one.com", "same words here")], "t a": [_r("https://two.com", "same words here")]},
            delays={"t": 0.05},
        )
        merged = _orchestrator(provider).search_all(["t", "t a"], 3)
        assert [r.link for r in merged] == ["https://one.com", "https://two.com"]

    def test_single_query_failure_propagates(self):
        provider = FakeProvider(fail=["t"])
        with pytest.raises(ProviderError):
            _orchestrator(provider).search_all(["t"], 3)

    def test_failed_query_among_many_contributes_nothing(self):
        provider = FakeProvider({"t": [_r("https://one.com", "x")]}, fail=["t a"])
        merged = _orchestrator(provider).search_all(["t", "t a"], 3)
        assert [r.link for r in merged] == ["https://one.com"]

    def test_unexpected_error_in_one_query_contributes_nothing(self):
        provider = FakeProvider({"t": [_r("https://one.com", "x")]}, crash=["t a"])
        merged = _orchestrator(provider).search_all(["t", "t a"], 3)
        assert [r.link for r in merged] == ["https://one.com"]

    def test_gather_sources(self):
        candidates = _orchestrator().gather_sources("python asyncio", target=3)
        assert len(candidates.raw) == 4
        assert candidates.dedup.duplicates_removed == 1
        assert candidates.ranked[0].source_type == SourceType.OFFICIAL_DOCS


# --- full pipeline ---


class TestResearch:
    def test_success(self):
        provider = FakeProvider(ASYNCIO_RESULTS)
        outcome = _orchestrator(provider).research("python asyncio", depth="basic")

        assert outcome.ok
        assert outcome.stage == Stage.DONE
        assert outcome.history == [
            Stage.SEARCHING,
            Stage.DEDUPLICATING,
            Stage.RANKING,
            Stage.EXTRACTING,
            Stage.SYNTHESIZING,
            Stage.ASSEMBLING,
            Stage.DONE,
        ]
        report = outcome.report
        assert provider.calls == [("python asyncio", 5)]
        assert report.sources_retrieved == 4
        assert report.duplicates_removed == 1
        assert report.sources_analyzed == 3
        assert report.sources[0].url == "https://docs.python.org/3/library/asyncio.html"
        scores = [s.quality_score for s in report.sources]
        assert scores == sorted(scores, reverse=True)
        assert report.quality_metrics.total_sources == 3
        assert report.synthesis_method == "basic"
        assert report.warnings == []

        data = report.to_dict()
        assert data["metadata"]["depth_level"] == "basic"
        assert "focus_areas" not in data["metadata"]

    def test_no_results_with_focus_areas(self):
        provider = FakeProvider({})
        outcome = _orchestrator(provider).research(
            "obscure topic", focus_areas=["performance", "security"]
        )

        assert not outcome.ok
        assert outcome.stage == Stage.ERRORED
        assert outcome.error.kind == ErrorKind.NO_RESULTS
        assert outcome.history == [Stage.SEARCHING, Stage.ERRORED]
        assert len(provider.calls) == 3
        assert "obscure topic" in outcome.error.alternative_queries
        assert outcome.error.suggestions

    def test_all_focus_searches_failing_is_no_results(self):
        provider = FakeProvider(fail=["t", "t a"])
        outcome = _orchestrator(provider).research("t", focus_areas=["a"])
        assert outcome.error.kind == ErrorKind.NO_RESULTS

    def test_focus_search_crash_keeps_topic_results(self):
        provider = FakeProvider(ASYNCIO_RESULTS, crash=["python asyncio testing"])
        outcome = _orchestrator(provider).research("python asyncio", focus_areas=["testing"])

        assert outcome.ok
        assert outcome.stage == Stage.DONE
        assert outcome.report.sources_retrieved == 4

    def test_single_search_failure(self):
        provider = FakeProvider(fail=["python asyncio"])
        outcome = _orchestrator(provider).research("python asyncio")

        assert outcome.error.kind == ErrorKind.SEARCH_FAILED
        assert outcome.error.suggestions == ["Try later"]
        assert outcome.error.alternative_queries == ["python", "asyncio", "python asyncio overview"]

    def test_focus_area_queries(self):
        provider = FakeProvider(ASYNCIO_RESULTS)
        outcome = _orchestrator(provider).research(
            "python asyncio", depth="intermediate", focus_areas=["testing", "performance"]
        )

        assert outcome.ok
        # Calls run on a thread pool, so only the set of queries is fixed
        assert sorted(q for q, _ in provider.calls) == [
            "python asyncio", "python asyncio performance", "python asyncio testing",
        ]
        assert {c for _, c in provider.calls} == {4}
        assert outcome.report.focus_areas == ["testing", "performance"]
        assert set(outcome.report.focus_area_analysis) == {"testing", "performance"}

    def test_extracts_at_most_five(self):
        results = {"t": [_r(f"https://site{i}.com/page", f"snippet number {i}") for i in range(10)]}
        extractor = FakeExtractor()
        outcome = _orchestrator(FakeProvider(results), extractor).research("t", depth="advanced")

        assert len(extractor.requested[0]) == 5
        assert outcome.report.sources_analyzed == 5

    def test_explicit_source_count(self):
        extractor = FakeExtractor()
        outcome = _orchestrator(extractor=extractor).research("python asyncio", num_sources=1)
        assert extractor.requested == [["https://docs.python.org/3/library/asyncio.html"]]
        assert outcome.report.sources_analyzed == 1

    def test_invalid_arguments_raise(self):
        with pytest.raises(ValueError):
            _orchestrator().research("t", num_sources=0)
        with pytest.raises(ValueError):
            _orchestrator().research("t", depth="deep")

    def test_partial_extraction_failure_is_a_warning(self):
        extractor = FakeExtractor(fail=["https://stackoverflow.com/questions/1"])
        outcome = _orchestrator(extractor=extractor).research("python asyncio", depth="basic")

        assert outcome.ok
        assert outcome.report.sources_analyzed == 2
        assert outcome.report.warnings == [
            "Extraction failed for https://stackoverflow.com/questions/1: HTTP 404",
        ]

    def test_extraction_failed(self):
        urls = [r.link for r in ASYNCIO_RESULTS["python asyncio"]]
        outcome = _orchestrator(extractor=FakeExtractor(fail=urls)).research("python asyncio")

        assert outcome.error.kind == ErrorKind.EXTRACTION_FAILED
        assert outcome.history[-2:] == [Stage.EXTRACTING, Stage.ERRORED]

    def test_extractor_exception(self):
        extractor = FakeExtractor(raises=ValueError("JINA_API_KEY is not set"))
        outcome = _orchestrator(extractor=extractor).research("python asyncio")
        assert outcome.error.kind == ErrorKind.EXTRACTION_FAILED

    def test_synthesis_fallback(self):
        synthesizer = FailingSynthesizer(SynthesisUnavailableError("model down"))
        outcome = _orchestrator(synthesizer=synthesizer).research("python asyncio")

        assert outcome.ok
        assert outcome.report.synthesis_method == "basic"
        assert outcome.report.warnings == ["SYNTHESIS_UNAVAILABLE: model down; used basic synthesis"]

    def test_deferred_synthesis_passes_through(self):
        outcome = _orchestrator(synthesizer=AgentSynthesizer()).research("python asyncio")

        assert outcome.ok
        assert outcome.report.research_summary.startswith(AGENT_SYNTHESIS_MARKER)
        assert outcome.report.synthesis_method == "agent"

    def test_unexpected_error(self):
        synthesizer = FailingSynthesizer(RuntimeError("kaboom"))
        outcome = _orchestrator(synthesizer=synthesizer).research("python asyncio")

        assert outcome.error.kind == ErrorKind.UNEXPECTED
        assert "kaboom" in outcome.error.message
        assert outcome.history[-2:] == [Stage.SYNTHESIZING, Stage.ERRORED]

    def test_first_occurrence_survives_concurrent_search(self):
        provider = FakeProvider(
            {
                "t": [_r("https://one.com/a", "identical snippet text")],
                "t a": [_r("https://two.com/b", "identical snippet text")],
            },
            delays={"t": 0.05},
        )
        outcome = _orchestrator(provider).research("t", focus_areas=["a"])
        assert [s.url for s in outcome.report.sources] == ["https://one.com/a"]
        assert outcome.report.duplicates_removed == 1
