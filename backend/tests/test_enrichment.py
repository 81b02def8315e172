import httpx
import pytest

from autoops.core.errors import UpstreamError
from autoops.services.enrichment import (
    NO_CONTEXT, SEARCH_UNAVAILABLE, SearchClient, build_external_context
)

HITS = {
    "hits": [
        {"title": "Redis eviction storms", "url": "https://example.com/redis", "snippets": ["Tune maxmemory-policy"]},
        {"title": "PgBouncer pool limits", "url": "https://example.com/pg", "description": "Pool sizing guide"},
        "not a hit",
    ]
}


def _client(handler, api_key="test-key", max_results=3):
    return SearchClient(
        api_url="https://search.test/search",
        api_key=api_key,
        timeout=1.0,
        max_results=max_results,
        transport=httpx.MockTransport(handler),
    )


class TestSearchClient:
    def test_parses_hits(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=HITS)

        summaries = _client(handler).search("redis timeout")

        assert [s.title for s in summaries] == ["Redis eviction storms", "PgBouncer pool limits"]
        assert summaries[0].snippet == "Tune maxmemory-policy"
        assert summaries[1].snippet == "Pool sizing guide"
        assert seen[0].headers["X-API-Key"] == "test-key"
        assert seen[0].url.params["query"] == "redis timeout"

    def test_respects_max_results(self):
        client = _client(lambda request: httpx.Response(200, json=HITS), max_results=1)
        assert len(client.search("q")) == 1

    def test_unconfigured_returns_nothing(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert _client(handler, api_key="").search("q") == []

    def test_http_error_raises_upstream(self):
        client = _client(lambda request: httpx.Response(503))
        with pytest.raises(UpstreamError):
            client.search("q")

    def test_bad_body_raises_upstream(self):
        client = _client(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(UpstreamError):
            client.search("q")


class TestExternalContext:
    def test_renders_sources(self):
        context = build_external_context("logs", _client(lambda request: httpx.Response(200, json=HITS)))

        assert context == (
            "Source 1: Redis eviction storms\nTune maxmemory-policy\nhttps://example.com/redis"
            "\n\n"
            "Source 2: PgBouncer pool limits\nPool sizing guide\nhttps://example.com/pg"
        )

    def test_empty_results(self):
        context = build_external_context("logs", _client(lambda request: httpx.Response(200, json={"hits": []})))
        assert context == NO_CONTEXT

    def test_failure_degrades_to_placeholder(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert build_external_context("logs", _client(handler)) == SEARCH_UNAVAILABLE

    def test_query_truncated(self):
        queries = []

        def handler(request):
            queries.append(request.url.params["query"])
            return httpx.Response(200, json={"hits": []})

        build_external_context("y" * 900, _client(handler))

        assert queries == ["y" * 400]
