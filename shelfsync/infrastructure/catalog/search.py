"""Catalog search with provider fallback."""

import logging

import httpx

from shelfsync.domain.entities import SearchCandidate
from shelfsync.domain.exceptions import SearchFailed
from shelfsync.domain.repositories import ICatalogProvider, ICatalogSearch

logger = logging.getLogger(__name__)


class CatalogSearchService(ICatalogSearch):
    """Queries providers in order and returns the first successful answer.

    An empty result from a provider counts as success; only transport errors,
    non-2xx responses and malformed JSON move on to the next provider.
    """

    def __init__(self, providers: list[ICatalogProvider], limit: int = 20):
        if not providers:
            raise ValueError("At least one catalog provider is required")
        self.providers = providers
        self.limit = limit

    async def search(self, query: str) -> list[SearchCandidate]:
        if not query or not query.strip():
            return []

        errors = []
        for provider in self.providers:
            try:
                results = await provider.search(query.strip(), self.limit)
                logger.info("Search '%s' via %s: %d results", query, provider.name, len(results))
                return results[: self.limit]
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("%s search failed (%s), trying next provider", provider.name, exc)
                errors.append(f"{provider.name}: {exc}")

        logger.error("All catalog providers failed for '%s'", query)
        raise SearchFailed("; ".join(errors))
