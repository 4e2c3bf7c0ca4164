"""Recency estimation and byline/date scraping from page text."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

from research.models import ExtractedContent

Content = Union[ExtractedContent, str, None]

NEUTRAL_RECENCY = 0.5

# How much of the page to scan for a byline or date
HEAD_CHARS = 2000

_YEAR_RE = re.compile(r"\b(20\d{2})\b")

# Age in years matched exactly for the two newest years, then as an upper
# bound; ages past the last step score RECENCY_FLOOR
RECENCY_EXACT = {0: 1.0, 1: 0.9}
RECENCY_STEPS = (
    (2, 0.7),
    (3, 0.5),
    (5, 0.3),
)
RECENCY_FLOOR = 0.1

# Two or more capitalised words on one line
_NAME = r"([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)+)"
AUTHOR_PATTERNS = (
    re.compile(r"\b(?i:by)\s+" + _NAME),
    re.compile(r"\b(?i:author):\s*" + _NAME),
    re.compile(r"\b(?i:written\s+by)\s+" + _NAME),
)

DATE_PATTERNS = (
    re.compile(r"published[:\s]+(\w+\s+\d{1,2},?\s+\d{4})", re.IGNORECASE),
    re.compile(r"(\w+\s+\d{1,2},?\s+\d{4})"),
    re.compile(r"(\d{4}-\d{2}-\d{2})"),
    re.compile(r"(\d{1,2}/\d{1,2}/\d{4})"),
)
DATE_FORMATS = (
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%Y-%m-%d",
    "%m/%d/%Y",
)


def content_text(content: Content) -> str:
    if content is None:
        return ""
    if isinstance(content, ExtractedContent):
        return content.content
    return content


def recency_score(content: Content, *, today: Optional[date] = None) -> float:
    """Score freshness from the latest ``20xx`` year mentioned in the text.

    Unknown recency (no content, no years) is neutral, not penalised.  The
    latest year anywhere in the text stands in for the publication year,
    so a retrospective that mentions a recent year scores as recent.
    """
    text = content_text(content)
    if not text:
        return NEUTRAL_RECENCY

    years = [int(y) for y in _YEAR_RE.findall(text)]
    if not years:
        return NEUTRAL_RECENCY

    current_year = (today or date.today()).year
    # A year ahead of today (roadmap, forecast) gives a negative age, which
    # misses the exact matches and lands on the 2-year step
    age = current_year - max(years)
    if age in RECENCY_EXACT:
        return RECENCY_EXACT[age]
    for max_age, score in RECENCY_STEPS:
        if age <= max_age:
            return score
    return RECENCY_FLOOR


def extract_author(content: Content) -> Optional[str]:
    """Best-effort byline: "by Jane Doe", "Author: Jane Doe", "written by ..."."""
    head = content_text(content)[:HEAD_CHARS]
    if not head:
        return None
    for pattern in AUTHOR_PATTERNS:
        m = pattern.search(head)
        if m:
            return m.group(1)
    return None


def _parse_date(raw: str) -> Optional[str]:
    cleaned = " ".join(raw.split())
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def extract_publication_date(content: Content) -> Optional[str]:
    """First parseable date near the top of the page, as ``YYYY-MM-DD``."""
    head = content_text(content)[:HEAD_CHARS]
    if not head:
        return None
    for pattern in DATE_PATTERNS:
        for m in pattern.finditer(head):
            parsed = _parse_date(m.group(1))
            if parsed:
                return parsed
    return None
