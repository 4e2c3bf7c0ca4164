"""Search provider contract and helpers shared by all backends."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import retry, retry_if_result, stop_after_attempt, wait_exponential

from research.errors import ProviderError
from research.models import CategoryInfo, ProviderResponse, SearchResult
from research.normalize import extract_domain

DATE_RESTRICT_RE = re.compile(r"^([dwmy])(\d+)$")


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    display_name: str
    requires_api_key: bool = True
    free_tier_limit: str = ""
    best_for: str = ""


@dataclass(frozen=True)
class SearchFilters:
    """Optional narrowing applied by providers that support it."""

    site: Optional[str] = None
    language: Optional[str] = None
    # d<N>, w<N>, m<N> or y<N>: past N days / weeks / months / years
    date_restrict: Optional[str] = None
    exact_terms: Optional[str] = None
    page: int = 1


def parse_date_restrict(value: Optional[str]) -> Optional[tuple[str, int]]:
    """Split ``"m6"`` into ``("m", 6)``; None if absent or malformed."""
    if not value:
        return None
    m = DATE_RESTRICT_RE.match(value.strip().lower())
    if not m:
        return None
    return m.group(1), int(m.group(2))


def apply_query_filters(query: str, filters: Optional[SearchFilters]) -> str:
    """Fold site and exact-phrase filters into the query string."""
    if filters is None:
        return query
    if filters.site:
        query += f" site:{filters.site}"
    if filters.exact_terms:
        query += f' "{filters.exact_terms}"'
    return query


def _last_response(retry_state):
    return retry_state.outcome.result()


# Retry rate-limited calls, then hand back the last 429 for raise_for_status
_retry_on_429 = retry(
    retry=retry_if_result(lambda r: r.status_code == 429),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry_error_callback=_last_response,
)


@_retry_on_429
def http_get(url: str, **kwargs) -> httpx.Response:
    return httpx.get(url, **kwargs)


@_retry_on_429
def http_post(url: str, **kwargs) -> httpx.Response:
    return httpx.post(url, **kwargs)


def provider_error(provider: str, exc: httpx.HTTPError, *, key_name: str) -> ProviderError:
    """Translate an httpx failure into a ProviderError with recovery steps."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return ProviderError(
                f"{provider} API rate limit exceeded",
                provider,
                recovery_suggestions=[
                    "Wait for the quota to reset or upgrade your plan",
                    "Switch provider with `research env set SEARCH_PROVIDER <name>`",
                ],
            )
        if status in (401, 403):
            return ProviderError(
                f"{provider} API rejected the credentials ({status})",
                provider,
                is_configuration_error=True,
                recovery_suggestions=[
                    f"Check {key_name} with `research env`",
                    "Ensure the key is active and has access to this endpoint",
                ],
            )
        if status == 400:
            return ProviderError(
                f"Invalid {provider} API request",
                provider,
                recovery_suggestions=["Check your search query and filters"],
            )
        return ProviderError(
            f"{provider} API error ({status})",
            provider,
            recovery_suggestions=["Retry later; the service may be degraded"],
        )
    return ProviderError(
        f"Network error reaching {provider} API: {exc}",
        provider,
        recovery_suggestions=[
            "Check your internet connection",
            "Verify firewall/proxy settings",
        ],
    )


def invalid_response_error(provider: str, exc: ValueError) -> ProviderError:
    """A 2xx response whose body is not the JSON the API documents."""
    return ProviderError(
        f"{provider} API returned an unreadable response: {exc}",
        provider,
        recovery_suggestions=[
            "Retry later; the service or a proxy may be returning an error page",
            "Verify firewall/proxy settings",
        ],
    )


def missing_key_error(provider: str, key_name: str, signup_url: str) -> ProviderError:
    return ProviderError(
        f"Missing required {provider} configuration: {key_name} is not set",
        provider,
        is_configuration_error=True,
        recovery_suggestions=[
            f"Run `research env set {key_name} <your-key>`",
            f"Get an API key: {signup_url}",
        ],
    )


# --- Result categorisation ---

_CATEGORY_RULES = (
    ("Social Media", re.compile(
        r"facebook\.com|twitter\.com|instagram\.com|linkedin\.com|pinterest\.com|tiktok\.com|reddit\.com",
        re.IGNORECASE,
    )),
    ("Video", re.compile(r"youtube\.com|vimeo\.com|dailymotion\.com|twitch\.tv", re.IGNORECASE)),
    ("News", re.compile(
        r"news|cnn\.com|bbc\.com|nytimes\.com|wsj\.com|reuters\.com|bloomberg\.com",
        re.IGNORECASE,
    )),
    ("Educational", re.compile(r"\.edu$|wikipedia\.org|khan|course|learn|study|academic", re.IGNORECASE)),
    ("Documentation", re.compile(
        r"docs|documentation|developer|github\.com|gitlab\.com|bitbucket\.org|stackoverflow\.com",
        re.IGNORECASE,
    )),
    ("Shopping", re.compile(r"amazon\.com|ebay\.com|etsy\.com|walmart\.com|shop|store|buy", re.IGNORECASE)),
)
_DOC_TITLE_RE = re.compile(r"docs|documentation|api|reference|manual", re.IGNORECASE)


def categorize_result(result: SearchResult) -> str:
    """Coarse display category for a result, from its domain and title."""
    domain = extract_domain(result.link)
    if not domain:
        return "Other"
    for name, pattern in _CATEGORY_RULES:
        if name == "Documentation" and _DOC_TITLE_RE.search(result.title or ""):
            return name
        if pattern.search(domain):
            return name
    labels = domain.split(".")
    label = labels[-2] if len(labels) >= 2 else labels[0]
    return label.capitalize() or "Other"


def category_stats(results: list[SearchResult]) -> list[CategoryInfo]:
    """Count results per category, most common first."""
    counts = Counter(r.category or "Other" for r in results)
    return [CategoryInfo(name, count) for name, count in counts.most_common()]


class SearchProvider(ABC):
    """A web search backend."""

    @abstractmethod
    def info(self) -> ProviderInfo:
        ...

    @abstractmethod
    def search(
        self,
        query: str,
        count: int = 5,
        filters: Optional[SearchFilters] = None,
    ) -> ProviderResponse:
        """Run one query; raises ProviderError on failure."""

    def _finish(self, results: list[SearchResult]) -> list[SearchResult]:
        for r in results:
            r.category = categorize_result(r)
        return results
