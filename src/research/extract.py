"""Web content extraction via Jina Reader or Serper scrape."""

from __future__ import annotations

import logging
import re
from multiprocessing.pool import ThreadPool
from typing import Union

import httpx

from research.config import get_jina_key, get_serper_key
from research.errors import ExtractionError
from research.models import ExtractedContent

logger = logging.getLogger(__name__)

TIMEOUT = 30
MAX_URLS = 5
SUMMARY_CHARS = 300

BACKENDS = ("jina", "serper")

_HEADING_RE = re.compile(r"^\s*(#|=+$|-+$|\*\*\*|!\[|\[!\[)")


def summarize(content: str, limit: int = SUMMARY_CHARS) -> str:
    """First prose paragraph of markdown-ish content, cut to *limit* chars."""
    for block in re.split(r"\n\s*\n", content):
        block = block.strip()
        if not block or _HEADING_RE.match(block):
            continue
        text = " ".join(block.split())
        if len(text) > limit:
            text = text[:limit].rsplit(" ", 1)[0] + "..."
        return text
    return ""


def browse_jina(url: str, *, timeout: int = TIMEOUT) -> ExtractedContent:
    """Fetch webpage content using Jina Reader API."""
    api_key = get_jina_key()

    resp = httpx.get(
        f"https://r.jina.ai/{url}",
        headers={
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        },
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json().get("data") or {}

    content = data.get("content") or ""
    return ExtractedContent(
        url=data.get("url", url),
        title=data.get("title", ""),
        description=data.get("description", ""),
        content=content,
        summary=summarize(content),
        word_count=len(content.split()),
    )


def browse_serper(url: str, *, timeout: int = TIMEOUT) -> ExtractedContent:
    """Fetch webpage content using Serper scrape API."""
    api_key = get_serper_key()

    resp = httpx.post(
        "https://scrape.serper.dev",
        json={"url": url, "includeMarkdown": True},
        headers={"X-API-KEY": api_key, "Content-Type": "application/json"},
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()

    metadata = data.get("metadata", {})
    content = data.get("markdown") or data.get("text") or ""
    return ExtractedContent(
        url=url,
        title=metadata.get("title", ""),
        description=metadata.get("description", ""),
        content=content,
        summary=summarize(content),
        word_count=len(content.split()),
    )


def browse(url: str, *, backend: str = "jina", timeout: int = TIMEOUT) -> ExtractedContent:
    """Fetch webpage content using the specified backend."""
    if backend == "jina":
        return browse_jina(url, timeout=timeout)
    elif backend == "serper":
        return browse_serper(url, timeout=timeout)
    else:
        raise ValueError(f"Unknown browse backend: {backend!r}. Use 'jina' or 'serper'.")


class ContentExtractor:
    """Fetch readable content for a handful of URLs at once."""

    def __init__(self, backend: str = "jina", *, timeout: int = TIMEOUT, max_workers: int = MAX_URLS):
        if backend not in BACKENDS:
            raise ValueError(f"Unknown browse backend: {backend!r}. Use 'jina' or 'serper'.")
        self.backend = backend
        self.timeout = timeout
        self.max_workers = max_workers

    def extract(self, url: str) -> ExtractedContent:
        return browse(url, backend=self.backend, timeout=self.timeout)

    def _extract_or_error(self, url: str) -> Union[ExtractedContent, ExtractionError]:
        try:
            content = self.extract(url)
        except httpx.HTTPStatusError as e:
            return ExtractionError(url, f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            return ExtractionError(url, str(e))
        if not content.content.strip():
            return ExtractionError(url, "no readable content")
        return content

    def extract_many(self, urls: list[str]) -> dict[str, Union[ExtractedContent, ExtractionError]]:
        """Fetch *urls* in parallel; failures come back as ExtractionError values.

        The returned dict is keyed by URL in input order.
        """
        if len(urls) > MAX_URLS:
            raise ValueError(f"At most {MAX_URLS} URLs per request, got {len(urls)}")
        if not urls:
            return {}

        with ThreadPool(min(self.max_workers, len(urls))) as pool:
            outcomes = pool.map(self._extract_or_error, urls)

        results = dict(zip(urls, outcomes))
        for url, outcome in results.items():
            if isinstance(outcome, ExtractionError):
                logger.warning("Extraction failed for %s: %s", url, outcome.message)
        return results
