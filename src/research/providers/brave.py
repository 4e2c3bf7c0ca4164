"""Brave Search API backend."""

from __future__ import annotations

from typing import Optional

import httpx

from research.config import get_api_timeout, get_brave_key
from research.models import Pagination, ProviderResponse, SearchResult
from research.providers.base import (
    ProviderInfo,
    SearchFilters,
    SearchProvider,
    apply_query_filters,
    category_stats,
    http_get,
    invalid_response_error,
    missing_key_error,
    parse_date_restrict,
    provider_error,
)

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
MAX_COUNT = 20


def _freshness(date_restrict: Optional[str]) -> Optional[str]:
    """Map ``d7``/``w1``/``m1``/``y1`` onto Brave's pd/pw/pm/py buckets."""
    restrict = parse_date_restrict(date_restrict)
    if restrict is None:
        return None
    unit, n = restrict
    if unit == "d" and n <= 1:
        return "pd"
    if (unit == "d" and n <= 7) or (unit == "w" and n <= 1):
        return "pw"
    if (unit == "d" and n <= 30) or (unit == "w" and n <= 4) or (unit == "m" and n <= 1):
        return "pm"
    if (unit == "m" and n <= 12) or (unit == "y" and n <= 1):
        return "py"
    return None


class BraveProvider(SearchProvider):
    def __init__(self, api_key: Optional[str] = None):
        if api_key is None:
            try:
                api_key = get_brave_key()
            except ValueError:
                raise missing_key_error(
                    "brave", "BRAVE_API_KEY", "https://api.search.brave.com/app/keys"
                ) from None
        self.api_key = api_key

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name="brave",
            display_name="Brave Search",
            free_tier_limit="2,000 queries/month",
            best_for="Privacy-focused independent index",
        )

    def search(
        self,
        query: str,
        count: int = 5,
        filters: Optional[SearchFilters] = None,
    ) -> ProviderResponse:
        per_page = min(count, MAX_COUNT)
        page = filters.page if filters and filters.page > 0 else 1
        params: dict = {
            "q": apply_query_filters(query, filters),
            "count": per_page,
            # Brave's offset counts pages, not results
            "offset": page - 1,
        }
        if filters and filters.language:
            params["search_lang"] = filters.language.lower()
        freshness = _freshness(filters.date_restrict if filters else None)
        if freshness:
            params["freshness"] = freshness

        try:
            resp = http_get(
                BRAVE_SEARCH_URL,
                params=params,
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self.api_key,
                },
                timeout=get_api_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise provider_error("brave", e, key_name="BRAVE_API_KEY") from e
        except ValueError as e:
            raise invalid_response_error("brave", e) from e

        items = (data.get("web") or {}).get("results") or []
        results = self._finish([
            SearchResult(
                title=item.get("title", ""),
                link=item.get("url", ""),
                snippet=item.get("description", ""),
            )
            for item in items
        ])

        more = (data.get("query") or {}).get("more_results_available")
        return ProviderResponse(
            results=results,
            pagination=Pagination(
                current_page=page,
                results_per_page=per_page,
                has_next_page=bool(more) if more is not None else len(results) >= per_page,
                has_previous_page=page > 1,
            ),
            categories=category_stats(results),
        )
