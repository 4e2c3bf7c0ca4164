"""Build the configured search provider."""

from __future__ import annotations

import logging
from typing import Optional

from research.config import get_cache_ttl, get_search_provider
from research.providers.base import SearchProvider
from research.providers.cached import CachedProvider

logger = logging.getLogger(__name__)


def create_provider(name: Optional[str] = None, *, cache_ttl: Optional[int] = None) -> SearchProvider:
    """Instantiate a provider by name (default: ``SEARCH_PROVIDER``).

    Raises ProviderError when the provider's API key is missing.
    """
    name = (name or get_search_provider()).strip().lower()

    if name == "google":
        from research.providers.google import GoogleProvider
        provider: SearchProvider = GoogleProvider()
    elif name == "brave":
        from research.providers.brave import BraveProvider
        provider = BraveProvider()
    elif name == "tavily":
        from research.providers.tavily import TavilyProvider
        provider = TavilyProvider()
    else:
        raise ValueError(f"Unknown search provider: {name!r}. Use 'google', 'brave' or 'tavily'.")

    info = provider.info()
    logger.info("Using %s as search provider", info.display_name)
    if info.free_tier_limit:
        logger.info("  Free tier: %s", info.free_tier_limit)

    ttl = get_cache_ttl() if cache_ttl is None else cache_ttl
    if ttl > 0:
        provider = CachedProvider(provider, ttl=ttl)
    return provider
