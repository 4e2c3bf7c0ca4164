"""Google web search via Serper API."""

from __future__ import annotations

from typing import Optional

import httpx

from research.config import get_api_timeout, get_serper_key
from research.models import Pagination, ProviderResponse, SearchResult
from research.providers.base import (
    ProviderInfo,
    SearchFilters,
    SearchProvider,
    apply_query_filters,
    category_stats,
    http_post,
    invalid_response_error,
    missing_key_error,
    parse_date_restrict,
    provider_error,
)

SERPER_SEARCH_URL = "https://google.serper.dev/search"


class GoogleProvider(SearchProvider):
    """Web search via Serper (Google)."""

    def __init__(self, api_key: Optional[str] = None, *, gl: str = "us", hl: str = "en"):
        if api_key is None:
            try:
                api_key = get_serper_key()
            except ValueError:
                raise missing_key_error("google", "SERPER_API_KEY", "https://serper.dev") from None
        self.api_key = api_key
        self.gl = gl
        self.hl = hl

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name="google",
            display_name="Google (Serper)",
            free_tier_limit="2,500 queries one-time",
            best_for="General web search",
        )

    def _payload(self, query: str, count: int, filters: Optional[SearchFilters]) -> dict:
        payload: dict = {
            "q": apply_query_filters(query, filters),
            "num": count,
            "gl": self.gl,
            "hl": self.hl,
        }
        if filters is None:
            return payload
        if filters.language:
            payload["hl"] = filters.language
        if filters.page > 1:
            payload["page"] = filters.page
        restrict = parse_date_restrict(filters.date_restrict)
        if restrict:
            unit, n = restrict
            payload["tbs"] = f"qdr:{unit}{n}" if n > 1 else f"qdr:{unit}"
        return payload

    def search(
        self,
        query: str,
        count: int = 5,
        filters: Optional[SearchFilters] = None,
    ) -> ProviderResponse:
        try:
            resp = http_post(
                SERPER_SEARCH_URL,
                json=self._payload(query, count, filters),
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                timeout=get_api_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise provider_error("google", e, key_name="SERPER_API_KEY") from e
        except ValueError as e:
            raise invalid_response_error("google", e) from e

        results = self._finish([
            SearchResult(
                title=item.get("title", ""),
                link=item.get("link", ""),
                snippet=item.get("snippet", ""),
            )
            for item in data.get("organic", [])
        ])

        page = filters.page if filters else 1
        return ProviderResponse(
            results=results,
            pagination=Pagination(
                current_page=page,
                results_per_page=count,
                has_next_page=len(results) >= count,
                has_previous_page=page > 1,
            ),
            categories=category_stats(results),
        )
