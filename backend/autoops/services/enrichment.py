"""
External search enrichment for the synchronous pipeline.

Search results are advisory context for the model. Any failure here
degrades to a placeholder and never fails the analysis.
"""
from typing import Any, Dict, List, Optional

import httpx

from autoops.core.config import settings
from autoops.core.errors import UpstreamError
from autoops.core.logging import get_logger
from autoops.models.schemas import SearchSummary
from autoops.services.normalizer import to_utf8

logger = get_logger(__name__)

NO_CONTEXT = "No external context available."
SEARCH_UNAVAILABLE = "External search unavailable."

# Only the head of the logs is sent as a query
QUERY_MAX_CHARS = 400


class SearchClient:
    """Thin client for the You.com web search API."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_results: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url or settings.search_api_url
        self.api_key = api_key if api_key is not None else settings.search_api_key
        self.timeout = timeout or settings.search_timeout_seconds
        self.max_results = max_results or settings.search_max_results
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def search(self, query: str) -> List[SearchSummary]:
        """
        Return up to max_results summaries for the query.

        Raises UpstreamError on transport or decoding failures.
        """
        if not self.configured:
            logger.info("Search API key not set; skipping enrichment")
            return []

        logger.info(f"Search enrichment request | query_len={len(query)}")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as http:
                response = http.get(
                    self.api_url,
                    params={"query": query, "num_web_results": self.max_results},
                    headers={"X-API-Key": self.api_key},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Search request failed: {e}") from e

        hits = payload.get("hits", []) if isinstance(payload, dict) else []
        summaries = [_summary_from_hit(hit) for hit in hits if isinstance(hit, dict)]
        logger.info(f"Search enrichment response | items={len(summaries)}")
        return summaries[:self.max_results]


def _summary_from_hit(hit: Dict[str, Any]) -> SearchSummary:
    snippets = hit.get("snippets")
    snippet = ""
    if isinstance(snippets, list) and snippets:
        snippet = to_utf8(str(snippets[0]))
    elif isinstance(hit.get("description"), str):
        snippet = to_utf8(hit["description"])

    return SearchSummary(
        title=to_utf8(str(hit.get("title") or "")),
        snippet=snippet,
        url=to_utf8(str(hit.get("url") or "")),
    )


def format_summaries(summaries: List[SearchSummary]) -> str:
    return "\n\n".join(
        f"Source {i}: {s.title}\n{s.snippet}\n{s.url}"
        for i, s in enumerate(summaries, start=1)
    )


def build_external_context(logs: str, client: SearchClient) -> str:
    """Search on the head of the logs and render the results as prompt text."""
    try:
        summaries = client.search(logs[:QUERY_MAX_CHARS])
    except UpstreamError as e:
        logger.warning(f"Enrichment degraded to placeholder: {e}")
        return SEARCH_UNAVAILABLE

    if not summaries:
        return NO_CONTEXT
    return format_summaries(summaries)


def get_search_client() -> SearchClient:
    return SearchClient()
