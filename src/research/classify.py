"""Source-type classification and domain authority scoring.

Classification walks ``CLASSIFICATION_RULES`` in order and the first match
wins.  Patterns overlap (``blog.python.org`` looks like documentation and like a
blog), so the order of the table is part of the behaviour.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from research.models import SourceType


@dataclass(frozen=True)
class ClassificationRule:
    type: SourceType
    pattern: re.Pattern
    # "domain" matches against the bare host, "url" against the full URL
    target: str = "domain"
    exclude: Optional[re.Pattern] = None

    def matches(self, url: str, domain: str) -> bool:
        subject = url if self.target == "url" else domain
        if not self.pattern.search(subject):
            return False
        return not (self.exclude and self.exclude.search(subject))


def _rx(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


CLASSIFICATION_RULES = [
    ClassificationRule(
        SourceType.ACADEMIC,
        _rx(r"\.edu$|scholar|arxiv|ieee|acm\.org|pubmed|sciencedirect"),
    ),
    ClassificationRule(
        SourceType.OFFICIAL_DOCS,
        _rx(r"docs\.|documentation|developer|python\.org|mozilla\.org|w3\.org"),
    ),
    ClassificationRule(
        SourceType.OFFICIAL_DOCS,
        _rx(r"github\.com/docs|docs\.github\.com|microsoft\.com/(?:[a-z]{2}-[a-z]{2}/)?docs"),
        target="url",
    ),
    ClassificationRule(
        SourceType.NEWS,
        _rx(r"\.news|times|post|reuters|ap\.org|bbc\.|cnn\.|npr\.org|guardian|wsj|bloomberg"),
    ),
    ClassificationRule(
        SourceType.FORUM,
        _rx(r"stackoverflow|reddit|forum|discuss|community|hackernews|news\.ycombinator"),
    ),
    ClassificationRule(
        SourceType.SOCIAL,
        _rx(r"twitter|linkedin|facebook|instagram|tiktok|(^|\.)x\.com$"),
    ),
    ClassificationRule(
        SourceType.BLOG,
        _rx(r"blog|medium\.com|dev\.to|hashnode|substack"),
    ),
    ClassificationRule(
        SourceType.COMMERCIAL,
        _rx(r"\.com$"),
        exclude=_rx(r"github|gitlab"),
    ),
]

BASE_AUTHORITY = {
    SourceType.ACADEMIC: 0.95,
    SourceType.OFFICIAL_DOCS: 0.90,
    SourceType.NEWS: 0.70,
    SourceType.BLOG: 0.50,
    SourceType.FORUM: 0.45,
    SourceType.SOCIAL: 0.30,
    SourceType.COMMERCIAL: 0.40,
    SourceType.UNKNOWN: 0.35,
}

HIGH_AUTHORITY_DOMAINS = (
    "github.com", "stackoverflow.com", "microsoft.com", "python.org",
    "mozilla.org", "w3.org", "ietf.org", "arxiv.org", "ieee.org",
    "acm.org", "stanford.edu", "mit.edu", "nature.com", "science.org",
    "nytimes.com", "reuters.com", "bbc.com", "npr.org",
)
ALLOW_LIST_BOOST = 0.10

# First matching suffix applies
TLD_BOOSTS = (
    (".gov", 0.15),
    (".edu", 0.10),
    (".org", 0.05),
)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def classify(url: str, domain: str) -> SourceType:
    """Map a URL and its domain to a ``SourceType`` (``UNKNOWN`` if nothing fits)."""
    if not domain:
        return SourceType.UNKNOWN
    domain = domain.lower()
    url = (url or "").lower()
    for rule in CLASSIFICATION_RULES:
        if rule.matches(url, domain):
            return rule.type
    return SourceType.UNKNOWN


def is_high_authority(domain: str) -> bool:
    domain = domain.lower()
    return any(domain == d or domain.endswith("." + d) for d in HIGH_AUTHORITY_DOMAINS)


def authority(domain: str, source_type: SourceType) -> float:
    """Authority in [0, 1]: per-type base plus allow-list and TLD boosts."""
    score = BASE_AUTHORITY[source_type]
    domain = domain.lower()

    if is_high_authority(domain):
        score = clamp(score + ALLOW_LIST_BOOST)

    for suffix, boost in TLD_BOOSTS:
        if domain.endswith(suffix):
            score = clamp(score + boost)
            break

    return round(clamp(score), 4)
