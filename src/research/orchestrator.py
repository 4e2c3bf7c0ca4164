"""Research pipeline: search, deduplicate, rank, extract, synthesize, assemble.

One ``research()`` call walks the stages in order::

    SEARCHING -> DEDUPLICATING -> RANKING -> EXTRACTING -> SYNTHESIZING
              -> ASSEMBLING -> DONE

and lands in ERRORED from any stage on failure.  Failures never escape as
exceptions; they come back as a ``ResearchError`` on the outcome, with
recovery suggestions and alternative queries.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from multiprocessing.pool import ThreadPool
from typing import Optional

from research.dedup import deduplicate
from research.errors import (
    ErrorKind,
    ExtractionError,
    ProviderError,
    ResearchError,
    SynthesisUnavailableError,
)
from research.extract import MAX_URLS, ContentExtractor
from research.models import (
    DEPTH_SOURCE_COUNTS,
    DEPTHS,
    DeduplicationResult,
    ExtractedContent,
    ReportSource,
    ResearchReport,
    SearchResult,
    SourceQuality,
    Synthesis,
)
from research.providers.base import SearchProvider
from research.quality import aggregate_metrics, assess, rank
from research.synthesis import BasicSynthesizer, Synthesizer

logger = logging.getLogger(__name__)

# Extra results per query to survive deduplication
SEARCH_OVERSHOOT = 2
MAX_SOURCES = 10


class Stage(str, Enum):
    SEARCHING = "searching"
    DEDUPLICATING = "deduplicating"
    RANKING = "ranking"
    EXTRACTING = "extracting"
    SYNTHESIZING = "synthesizing"
    ASSEMBLING = "assembling"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class ResearchOutcome:
    """Result of one request: a report, or an error and the stage it hit."""

    stage: Stage
    report: Optional[ResearchReport] = None
    error: Optional[ResearchError] = None
    # Stages entered, in order
    history: list[Stage] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.report is not None


@dataclass
class SourceCandidates:
    """Ranked candidates for one topic, before any content is fetched."""

    raw: list[SearchResult]
    dedup: DeduplicationResult
    ranked: list[SearchResult]


def build_queries(topic: str, focus_areas: Optional[list[str]] = None) -> list[str]:
    """The topic on its own, then one ``"<topic> <area>"`` query per focus area."""
    queries = [topic]
    for area in focus_areas or []:
        area = area.strip()
        if area:
            queries.append(f"{topic} {area}")
    return queries


def per_query_count(target: int, query_count: int) -> int:
    return math.ceil(target / query_count) + SEARCH_OVERSHOOT


def resolve_source_count(depth: str, num_sources: Optional[int] = None) -> int:
    if depth not in DEPTHS:
        raise ValueError(f"Unknown depth: {depth!r}. Use one of {', '.join(DEPTHS)}.")
    if num_sources is None:
        return DEPTH_SOURCE_COUNTS[depth]
    if not 1 <= num_sources <= MAX_SOURCES:
        raise ValueError(f"num_sources must be between 1 and {MAX_SOURCES}, got {num_sources}")
    return num_sources


def alternative_queries(topic: str, focus_areas: Optional[list[str]] = None) -> list[str]:
    """Broader or split variants of *topic* to suggest after a failure."""
    words = topic.split()
    alternatives = []
    if len(words) >= 2:
        half = len(words) // 2
        alternatives.append(" ".join(words[:half]))
        alternatives.append(" ".join(words[half:]))
    alternatives.append(f"{topic} overview")
    if focus_areas:
        alternatives.append(topic)
    return alternatives


class ResearchOrchestrator:
    """Coordinate one research request across the injected collaborators."""

    def __init__(
        self,
        provider: SearchProvider,
        extractor: ContentExtractor,
        synthesizer: Synthesizer,
        *,
        max_workers: int = 4,
    ):
        self.provider = provider
        self.extractor = extractor
        self.synthesizer = synthesizer
        self.max_workers = max_workers

    # ------------------------------------------------------------------
    # Searching / deduplicating / ranking
    # ------------------------------------------------------------------

    def _search_one(self, query: str, count: int) -> tuple[list[SearchResult], Optional[Exception]]:
        try:
            response = self.provider.search(query, count)
        except Exception as e:
            logger.warning("Search failed for %r: %s", query, e)
            return [], e
        logger.info("Query %r returned %d results", query, len(response.results))
        return response.results, None

    def search_all(self, queries: list[str], count: int) -> list[SearchResult]:
        """Run every query and concatenate results in query order.

        Queries run concurrently, but results are joined in the order the
        queries were given so "first occurrence wins" stays reproducible.
        A failed query contributes nothing, whatever it raised, unless it
        was the only query, in which case its exception propagates.
        """
        if len(queries) == 1:
            results, error = self._search_one(queries[0], count)
            if error is not None:
                raise error
            return results

        with ThreadPool(min(self.max_workers, len(queries))) as pool:
            outcomes = pool.starmap(self._search_one, [(q, count) for q in queries])

        merged: list[SearchResult] = []
        for results, _ in outcomes:
            merged.extend(results)
        return merged

    def gather_sources(
        self,
        topic: str,
        focus_areas: Optional[list[str]] = None,
        target: int = DEPTH_SOURCE_COUNTS["intermediate"],
    ) -> SourceCandidates:
        """Search, deduplicate and rank candidates (no truncation)."""
        queries = build_queries(topic, focus_areas)
        raw = self.search_all(queries, per_query_count(target, len(queries)))
        dedup = deduplicate(raw)
        ranked = rank(dedup.deduplicated)
        return SourceCandidates(raw=raw, dedup=dedup, ranked=ranked)

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------

    def research(
        self,
        topic: str,
        *,
        depth: str = "intermediate",
        num_sources: Optional[int] = None,
        focus_areas: Optional[list[str]] = None,
    ) -> ResearchOutcome:
        """Run the whole pipeline for *topic*.

        Raises ValueError only for invalid arguments; every failure after
        that comes back on the outcome.
        """
        target = resolve_source_count(depth, num_sources)
        focus_areas = [a.strip() for a in focus_areas or [] if a.strip()]
        outcome = ResearchOutcome(stage=Stage.SEARCHING)

        def enter(stage: Stage) -> None:
            logger.info("research %r: %s", topic, stage.value)
            outcome.stage = stage
            outcome.history.append(stage)

        def fail(kind: ErrorKind, message: str, suggestions: list[str]) -> ResearchOutcome:
            error = ResearchError(
                kind,
                message,
                suggestions=suggestions,
                alternative_queries=alternative_queries(topic, focus_areas),
            )
            logger.warning("research %r failed at %s: %s", topic, outcome.stage.value, message)
            outcome.error = error
            enter(Stage.ERRORED)
            return outcome

        try:
            enter(Stage.SEARCHING)
            queries = build_queries(topic, focus_areas)
            try:
                raw = self.search_all(queries, per_query_count(target, len(queries)))
            except ProviderError as e:
                return fail(ErrorKind.SEARCH_FAILED, str(e), e.recovery_suggestions or [
                    "Check the search provider configuration with `research env`",
                ])
            if not raw:
                return fail(ErrorKind.NO_RESULTS, f'No results found for topic "{topic}"', [
                    "Try broader search terms",
                    "Reduce the number of focus areas",
                    "Check the search provider configuration with `research env`",
                ])

            enter(Stage.DEDUPLICATING)
            dedup = deduplicate(raw)

            enter(Stage.RANKING)
            ranked = rank(dedup.deduplicated)[:target]

            enter(Stage.EXTRACTING)
            top = ranked[: min(target, MAX_URLS)]
            extracted, failures = self._extract(top)
            if not extracted:
                return fail(ErrorKind.EXTRACTION_FAILED, (
                    f"Could not extract content from any of the top {len(top)} sources"
                ), [
                    "Retry in a moment; the pages may be temporarily unavailable",
                    "Try a different content backend with --backend",
                    "Check JINA_API_KEY / SERPER_API_KEY with `research env`",
                ])

            enter(Stage.SYNTHESIZING)
            qualities = {url: assess(url, content) for url, content in extracted.items()}
            synthesis, warnings = self._synthesize(topic, extracted, qualities, depth, focus_areas)
            warnings = [f"Extraction failed for {f.url}: {f.message}" for f in failures] + warnings

            enter(Stage.ASSEMBLING)
            report = self._assemble(
                topic,
                depth=depth,
                focus_areas=focus_areas,
                raw=raw,
                dedup=dedup,
                ranked=top,
                extracted=extracted,
                qualities=qualities,
                synthesis=synthesis,
                warnings=warnings,
            )
        except Exception as e:
            logger.exception("Unexpected failure researching %r", topic)
            return fail(ErrorKind.UNEXPECTED, f"Unexpected error: {e}", [
                "Retry the request",
                "Run with --verbose and report the log if it persists",
            ])

        outcome.report = report
        enter(Stage.DONE)
        return outcome

    def _extract(
        self, sources: list[SearchResult]
    ) -> tuple[dict[str, ExtractedContent], list[ExtractionError]]:
        urls = [s.link for s in sources]
        try:
            results = self.extractor.extract_many(urls)
        except Exception as e:
            logger.warning("Content extraction failed: %s", e)
            return {}, [ExtractionError(url, str(e)) for url in urls]

        extracted: dict[str, ExtractedContent] = {}
        failures: list[ExtractionError] = []
        for url in urls:
            outcome = results.get(url)
            if isinstance(outcome, ExtractedContent):
                extracted[url] = outcome
            elif isinstance(outcome, ExtractionError):
                failures.append(outcome)
            else:
                failures.append(ExtractionError(url, "no result returned"))
        return extracted, failures

    def _synthesize(
        self,
        topic: str,
        extracted: dict[str, ExtractedContent],
        qualities: dict[str, SourceQuality],
        depth: str,
        focus_areas: list[str],
    ) -> tuple[Synthesis, list[str]]:
        try:
            synthesis = self.synthesizer.synthesize(
                topic, extracted, qualities, depth, focus_areas or None
            )
            return synthesis, []
        except SynthesisUnavailableError as e:
            logger.warning("Synthesis unavailable, using basic synthesis: %s", e)
            warning = f"{ErrorKind.SYNTHESIS_UNAVAILABLE.value}: {e}; used basic synthesis"
        fallback = BasicSynthesizer().synthesize(topic, extracted, qualities, depth, focus_areas or None)
        return fallback, [warning]

    @staticmethod
    def _assemble(
        topic: str,
        *,
        depth: str,
        focus_areas: list[str],
        raw: list[SearchResult],
        dedup: DeduplicationResult,
        ranked: list[SearchResult],
        extracted: dict[str, ExtractedContent],
        qualities: dict[str, SourceQuality],
        synthesis: Synthesis,
        warnings: list[str],
    ) -> ResearchReport:
        sources = []
        for result in ranked:
            content = extracted.get(result.link)
            if content is None:
                continue
            quality = qualities[result.link]
            sources.append(ReportSource(
                title=content.title or result.title,
                url=result.link,
                summary=content.summary or content.description or result.snippet,
                quality_score=quality.credibility_score,
                authority=quality.authority_score,
                type=quality.type,
                publication_date=quality.publication_date,
            ))
        sources.sort(key=lambda s: s.quality_score, reverse=True)

        return ResearchReport(
            topic=topic,
            sources_analyzed=len(sources),
            sources_retrieved=len(raw),
            duplicates_removed=dedup.duplicates_removed,
            research_summary=synthesis.summary,
            key_findings=list(synthesis.key_findings),
            themes=list(synthesis.themes),
            quality_metrics=aggregate_metrics([qualities[s.url] for s in sources]),
            sources=sources,
            depth_level=depth,
            retrieved_at=datetime.now(timezone.utc).isoformat(),
            synthesis_method=synthesis.method,
            focus_areas=list(focus_areas),
            focus_area_analysis=synthesis.focus_analysis,
            contradictions=list(synthesis.contradictions),
            recommendations=list(synthesis.recommendations),
            warnings=warnings,
        )
