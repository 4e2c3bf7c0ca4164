"""Tavily search API backend, tuned for research agents."""

from __future__ import annotations

from typing import Optional

import httpx

from research.config import get_tavily_key
from research.models import Pagination, ProviderResponse, SearchResult
from research.providers.base import (
    ProviderInfo,
    SearchFilters,
    SearchProvider,
    category_stats,
    http_post,
    invalid_response_error,
    missing_key_error,
    parse_date_restrict,
    provider_error,
)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
MAX_COUNT = 10
# Advanced search depth is slow
TIMEOUT = 30

_DAYS_PER_UNIT = {"d": 1, "w": 7, "m": 30, "y": 365}


class TavilyProvider(SearchProvider):
    def __init__(self, api_key: Optional[str] = None):
        if api_key is None:
            try:
                api_key = get_tavily_key()
            except ValueError:
                raise missing_key_error(
                    "tavily", "TAVILY_API_KEY", "https://app.tavily.com/sign-in"
                ) from None
        self.api_key = api_key

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name="tavily",
            display_name="Tavily Search",
            free_tier_limit="1,000 queries/month",
            best_for="AI agents, research tasks",
        )

    def search(
        self,
        query: str,
        count: int = 5,
        filters: Optional[SearchFilters] = None,
    ) -> ProviderResponse:
        body: dict = {
            "query": query,
            "search_depth": "advanced",
            "include_answer": False,
            "max_results": min(count, MAX_COUNT),
        }
        if filters is not None:
            if filters.site:
                body["include_domains"] = [filters.site]
            if filters.exact_terms:
                body["query"] = f'{query} "{filters.exact_terms}"'
            restrict = parse_date_restrict(filters.date_restrict)
            if restrict:
                unit, n = restrict
                body["days"] = n * _DAYS_PER_UNIT[unit]

        try:
            resp = http_post(
                TAVILY_SEARCH_URL,
                json=body,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise provider_error("tavily", e, key_name="TAVILY_API_KEY") from e
        except ValueError as e:
            raise invalid_response_error("tavily", e) from e

        results = self._finish([
            SearchResult(
                title=item.get("title", ""),
                link=item.get("url", ""),
                # Tavily returns a content excerpt instead of a snippet
                snippet=item.get("content", ""),
            )
            for item in data.get("results") or []
        ])

        # No pagination: every request is independent
        return ProviderResponse(
            results=results,
            pagination=Pagination(current_page=1, results_per_page=len(results)),
            categories=category_stats(results),
        )
