"""Multi-pass deduplication of search results.

Passes run in order, each on the survivors of the previous one:

1. exact identity: normalised URL or snippet content hash already seen
2. thread collapse: same discussion thread reached through different URLs
3. similarity: snippet too close to an already accepted result

``group_duplicates`` clusters results without discarding anything and is
meant for inspection.  It uses a looser threshold than the pruning pass.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from research.fingerprint import content_hash, similarity
from research.models import DeduplicationResult, SearchResult
from research.normalize import extract_domain, normalize_url

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.75
GROUP_SIMILARITY_THRESHOLD = 0.7


@dataclass(frozen=True)
class ThreadRule:
    """How to pull a thread id out of a discussion platform's URLs."""

    platform: str
    host: re.Pattern
    thread_id: re.Pattern


THREAD_RULES = [
    ThreadRule(
        "reddit",
        re.compile(r"(^|\.)reddit\.com$"),
        re.compile(r"/comments/([a-z0-9]+)/", re.IGNORECASE),
    ),
    ThreadRule(
        "reddit",
        re.compile(r"^redd\.it$"),
        re.compile(r"redd\.it/([a-z0-9]+)", re.IGNORECASE),
    ),
    ThreadRule(
        "hackernews",
        re.compile(r"^news\.ycombinator\.com$"),
        re.compile(r"[?&]id=(\d+)"),
    ),
]


def thread_key(url: str) -> Optional[tuple[str, str]]:
    """Return ``(platform, thread_id)`` for discussion URLs, else None."""
    domain = extract_domain(url).lower()
    if not domain:
        return None
    for rule in THREAD_RULES:
        if not rule.host.search(domain):
            continue
        m = rule.thread_id.search(url)
        if m:
            return rule.platform, m.group(1).lower()
    return None


def dedupe_exact(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Keep a result only if neither its URL nor its snippet was seen before."""
    seen_urls: set[str] = set()
    seen_hashes: set[str] = set()
    unique = []
    for r in results:
        url_key = normalize_url(r.link)
        snippet_key = content_hash(r.snippet)
        if url_key in seen_urls or snippet_key in seen_hashes:
            logger.debug("Exact duplicate dropped: %s", r.link)
            continue
        seen_urls.add(url_key)
        seen_hashes.add(snippet_key)
        unique.append(r)
    return unique


def collapse_threads(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Drop later results that point at an already seen discussion thread."""
    seen: set[tuple[str, str]] = set()
    kept = []
    for r in results:
        key = thread_key(r.link)
        if key is not None:
            if key in seen:
                logger.debug("Duplicate %s thread dropped: %s", key[0], r.link)
                continue
            seen.add(key)
        kept.append(r)
    return kept


def dedupe_similar(
    results: Iterable[SearchResult],
    threshold: float = SIMILARITY_THRESHOLD,
) -> list[SearchResult]:
    """Drop results whose URL or snippet matches an accepted result.

    Quadratic in the number of results, which stays in the tens.
    """
    accepted: list[SearchResult] = []
    accepted_urls: list[str] = []
    for r in results:
        url_key = normalize_url(r.link)
        duplicate = False
        for other, other_url in zip(accepted, accepted_urls):
            if url_key == other_url or similarity(r.snippet, other.snippet) >= threshold:
                duplicate = True
                break
        if duplicate:
            logger.debug("Near-duplicate dropped: %s", r.link)
            continue
        accepted.append(r)
        accepted_urls.append(url_key)
    return accepted


def deduplicate(results: list[SearchResult]) -> DeduplicationResult:
    """Run all three passes and report how much was removed."""
    original_count = len(results)

    deduplicated = dedupe_exact(results)
    deduplicated = collapse_threads(deduplicated)
    deduplicated = dedupe_similar(deduplicated, SIMILARITY_THRESHOLD)

    unique_urls = len({normalize_url(r.link) for r in deduplicated})
    removed = original_count - len(deduplicated)
    logger.info(
        "Deduplicated %d results to %d (%d removed)",
        original_count, len(deduplicated), removed,
    )
    return DeduplicationResult(
        deduplicated=deduplicated,
        duplicates_removed=removed,
        unique_urls=unique_urls,
    )


def group_duplicates(
    results: Iterable[SearchResult],
    threshold: float = GROUP_SIMILARITY_THRESHOLD,
) -> list[list[SearchResult]]:
    """Cluster results that share a URL or resemble a group's first member."""
    groups: list[list[SearchResult]] = []
    for r in results:
        url_key = normalize_url(r.link)
        for group in groups:
            first = group[0]
            if url_key == normalize_url(first.link) or similarity(r.snippet, first.snippet) >= threshold:
                group.append(r)
                break
        else:
            groups.append([r])
    return groups
