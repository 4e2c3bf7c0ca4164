"""Data models for search results, source quality and research reports."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

DEPTHS = ("basic", "intermediate", "advanced")

# Summary prefix of a synthesis deferred to an external agent
AGENT_SYNTHESIS_MARKER = "[AGENT_SYNTHESIS_REQUIRED]"

# Default number of ranked sources kept per depth tier
DEPTH_SOURCE_COUNTS = {
    "basic": 3,
    "intermediate": 5,
    "advanced": 8,
}


class SourceType(str, Enum):
    ACADEMIC = "academic"
    OFFICIAL_DOCS = "official_documentation"
    NEWS = "news"
    BLOG = "blog"
    FORUM = "forum"
    SOCIAL = "social_media"
    COMMERCIAL = "commercial"
    UNKNOWN = "unknown"


@dataclass
class SearchResult:
    """A single search result from any provider.

    ``link`` is the identity key.  The score fields are only filled in by
    ranking, which returns scored copies rather than mutating the input.
    """

    title: str
    link: str = ""
    snippet: str = ""
    category: Optional[str] = None
    quality_score: Optional[float] = None
    authority: Optional[float] = None
    source_type: Optional[SourceType] = None

    def to_dict(self) -> dict[str, Any]:
        data = {"title": self.title, "link": self.link, "snippet": self.snippet}
        if self.category:
            data["category"] = self.category
        if self.quality_score is not None:
            data["quality_score"] = self.quality_score
        if self.authority is not None:
            data["authority"] = self.authority
        if self.source_type is not None:
            data["source_type"] = self.source_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchResult:
        return cls(
            title=data.get("title", ""),
            link=data.get("link") or data.get("url", ""),
            snippet=data.get("snippet", ""),
            category=data.get("category"),
        )


@dataclass
class SourceQuality:
    """Quality assessment for one source."""

    url: str
    domain: str
    type: SourceType
    authority_score: float
    recency_score: float
    credibility_score: float
    author: Optional[str] = None
    publication_date: Optional[str] = None


@dataclass
class DeduplicationResult:
    deduplicated: list[SearchResult]
    duplicates_removed: int
    unique_urls: int


@dataclass
class CategoryInfo:
    name: str
    count: int


@dataclass
class Pagination:
    current_page: int
    results_per_page: int
    total_results: Optional[int] = None
    has_next_page: bool = False
    has_previous_page: bool = False


@dataclass
class ProviderResponse:
    """What a search provider returns for one query."""

    results: list[SearchResult] = field(default_factory=list)
    pagination: Optional[Pagination] = None
    categories: list[CategoryInfo] = field(default_factory=list)


@dataclass
class ExtractedContent:
    """Readable content extracted from a URL."""

    url: str
    title: str = ""
    description: str = ""
    content: str = ""
    summary: str = ""
    word_count: int = 0


@dataclass
class FocusAreaAnalysis:
    summary: str
    findings: list[str] = field(default_factory=list)
    best_practices: list[str] = field(default_factory=list)


@dataclass
class Synthesis:
    """Output of a synthesizer.

    ``method`` names the synthesizer that actually produced it
    (``direct``, ``agent`` or ``basic``).
    """

    summary: str
    key_findings: list[str] = field(default_factory=list)
    themes: list[str] = field(default_factory=list)
    focus_analysis: Optional[dict[str, FocusAreaAnalysis]] = None
    contradictions: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    method: str = "basic"

    @property
    def deferred(self) -> bool:
        """True when synthesis was handed off to an external agent."""
        return self.summary.startswith(AGENT_SYNTHESIS_MARKER)


@dataclass
class QualityMetrics:
    source_diversity: float = 0.0
    average_authority: float = 0.0
    content_freshness: float = 0.0
    total_sources: int = 0


@dataclass
class ReportSource:
    title: str
    url: str
    summary: str
    quality_score: float
    authority: float
    type: SourceType
    publication_date: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        if self.publication_date is None:
            del data["publication_date"]
        return data


@dataclass
class ResearchReport:
    """Final research report handed back to the caller."""

    topic: str
    sources_analyzed: int
    sources_retrieved: int
    duplicates_removed: int
    research_summary: str
    key_findings: list[str]
    themes: list[str]
    quality_metrics: QualityMetrics
    sources: list[ReportSource]
    depth_level: str
    retrieved_at: str
    synthesis_method: str
    focus_areas: list[str] = field(default_factory=list)
    focus_area_analysis: Optional[dict[str, FocusAreaAnalysis]] = None
    contradictions: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "topic": self.topic,
            "sources_analyzed": self.sources_analyzed,
            "sources_retrieved": self.sources_retrieved,
            "duplicates_removed": self.duplicates_removed,
            "research_summary": self.research_summary,
            "key_findings": list(self.key_findings),
            "themes": list(self.themes),
            "quality_metrics": asdict(self.quality_metrics),
            "sources": [s.to_dict() for s in self.sources],
            "metadata": {
                "depth_level": self.depth_level,
                "retrieved_at": self.retrieved_at,
                "synthesis_method": self.synthesis_method,
            },
        }
        if self.focus_areas:
            data["metadata"]["focus_areas"] = list(self.focus_areas)
        if self.focus_area_analysis is not None:
            data["focus_area_analysis"] = {
                area: asdict(analysis)
                for area, analysis in self.focus_area_analysis.items()
            }
        if self.contradictions:
            data["contradictions"] = list(self.contradictions)
        if self.recommendations:
            data["recommendations"] = list(self.recommendations)
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data
