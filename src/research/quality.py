"""Source quality assessment, credibility ranking and aggregate metrics."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Mapping, Optional

from research.classify import authority, clamp, classify
from research.models import ExtractedContent, QualityMetrics, SearchResult, SourceQuality
from research.normalize import extract_domain
from research.recency import Content, extract_author, extract_publication_date, recency_score

logger = logging.getLogger(__name__)

AUTHORITY_WEIGHT = 0.6
RECENCY_WEIGHT = 0.4
SCORE_PRECISION = 4


def credibility(authority_score: float, recency: float) -> float:
    """Fixed weighted blend of authority and recency."""
    return round(AUTHORITY_WEIGHT * authority_score + RECENCY_WEIGHT * recency, SCORE_PRECISION)


def assess(url: str, content: Content = None, *, today: Optional[date] = None) -> SourceQuality:
    """Assess one source from its URL and, when available, its text."""
    domain = extract_domain(url)
    source_type = classify(url, domain)
    authority_score = clamp(authority(domain, source_type))
    recency = clamp(recency_score(content, today=today))

    return SourceQuality(
        url=url,
        domain=domain,
        type=source_type,
        authority_score=authority_score,
        recency_score=recency,
        credibility_score=credibility(authority_score, recency),
        author=extract_author(content),
        publication_date=extract_publication_date(content),
    )


def rank(
    sources: list[SearchResult],
    contents: Optional[Mapping[str, ExtractedContent]] = None,
    *,
    today: Optional[date] = None,
) -> list[SearchResult]:
    """Score every source and sort by credibility, highest first.

    Returns scored copies.  The sort is stable, so sources with equal
    scores keep their input order.
    """
    contents = contents or {}
    scored = []
    for source in sources:
        quality = assess(source.link, contents.get(source.link), today=today)
        scored.append(
            replace(
                source,
                quality_score=quality.credibility_score,
                authority=quality.authority_score,
                source_type=quality.type,
            )
        )
    scored.sort(key=lambda s: s.quality_score or 0.0, reverse=True)
    logger.debug("Ranked %d sources", len(scored))
    return scored


def aggregate_metrics(qualities: list[SourceQuality]) -> QualityMetrics:
    """Diversity, mean authority and mean freshness across a source set."""
    if not qualities:
        return QualityMetrics()

    total = len(qualities)
    unique_domains = len({q.domain for q in qualities})
    return QualityMetrics(
        source_diversity=round(unique_domains / total, 2),
        average_authority=round(sum(q.authority_score for q in qualities) / total, 2),
        content_freshness=round(sum(q.recency_score for q in qualities) / total, 2),
        total_sources=total,
    )
