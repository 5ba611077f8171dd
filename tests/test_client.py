"""Tests for OpenAlexClient against a mocked OpenAlex (httpx.MockTransport)."""

import httpx
import pytest

from conftest import list_response, make_work
from openalex_mcp.core.cache import TTLCache
from openalex_mcp.core.client import OpenAlexClient
from openalex_mcp.core.config import Settings
from openalex_mcp.core.errors import (
    ConfigurationError,
    NotFoundError,
    RetryExhaustedError,
    UpstreamError,
)
from openalex_mcp.core.models import SearchOptions


def always(payload):
    return lambda request: payload


class TestQueryParams:

    def test_mailto_when_only_email(self):
        client = OpenAlexClient(Settings(email="me@example.org"))
        assert client.identity_params() == {"mailto": "me@example.org"}

    def test_api_key_replaces_mailto(self):
        client = OpenAlexClient(Settings(email="me@example.org", api_key="secret"))
        assert client.identity_params() == {"api_key": "secret"}

    def test_no_identity(self):
        assert OpenAlexClient(Settings()).identity_params() == {}

    def test_user_agent_embeds_email(self):
        client = OpenAlexClient(Settings(email="me@example.org"))
        assert "mailto:me@example.org" in client.user_agent
        assert "mailto" not in OpenAlexClient(Settings()).user_agent

    def test_full_translation(self):
        client = OpenAlexClient(Settings(email="me@example.org"))
        params = client.build_query_params(SearchOptions(
            search="graph neural networks",
            filter={"publication_year": "2020-2023", "is_oa": True},
            sort="cited_by_count",
            page=2,
            per_page=25,
            select=["id", "title"],
        ))
        assert params == {
            "mailto": "me@example.org",
            "search": "graph neural networks",
            "filter": "publication_year:2020-2023,is_oa:true",
            "sort": "cited_by_count:desc",
            "page": "2",
            "per_page": "25",
            "select": "id,title",
        }

    def test_per_page_capped(self):
        client = OpenAlexClient(Settings())
        assert client.build_query_params(SearchOptions(per_page=500))["per_page"] == "200"

    def test_group_by_and_sample(self):
        client = OpenAlexClient(Settings())
        params = client.build_query_params(SearchOptions(group_by="publication_year", sample=5, seed=7))
        assert params == {"group_by": "publication_year", "sample": "5", "seed": "7"}


class TestFetching:

    @pytest.mark.asyncio
    async def test_entity_path_uses_normalized_doi(self, make_client):
        client, fake = make_client(always(make_work()))
        async with client:
            await client.get_work("10.1371/journal.pone.0000000")
        assert fake.paths() == ["/works/doi:10.1371/journal.pone.0000000"]

    @pytest.mark.asyncio
    async def test_entity_path_encodes_url(self, make_client):
        client, fake = make_client(always(make_work()))
        async with client:
            await client.get_work("https://doi.org/10.1371/x")
        assert fake.paths() == ["/works/https%3A%2F%2Fdoi.org%2F10.1371%2Fx"]

    @pytest.mark.asyncio
    async def test_sends_identity_and_user_agent(self, make_client):
        client, fake = make_client(always(list_response([])))
        async with client:
            await client.get_works(SearchOptions(search="x"))
        assert fake.params()["mailto"] == "researcher@example.org"
        assert "researcher@example.org" in fake.requests[0].headers["User-Agent"]

    @pytest.mark.asyncio
    async def test_unknown_entity_type_rejected(self, make_client):
        client, fake = make_client(always({}))
        async with client:
            with pytest.raises(ValueError):
                await client.get_entity("papers", "W1")
        assert fake.calls == 0

    @pytest.mark.asyncio
    async def test_autocomplete(self, make_client):
        client, fake = make_client(always({"results": [{"id": "A1"}]}))
        async with client:
            result = await client.autocomplete("authors", "hinton")
        assert result["results"][0]["id"] == "A1"
        assert fake.paths() == ["/autocomplete/authors"]
        assert fake.params()["q"] == "hinton"


class TestCaching:

    @pytest.mark.asyncio
    async def test_same_query_hits_upstream_once(self, make_client):
        client, fake = make_client(always(list_response([make_work()])))
        async with client:
            first = await client.get_works(SearchOptions(search="x", filter={"a": 1, "b": 2}))
            second = await client.get_works(SearchOptions(search="x", filter={"b": 2, "a": 1}))
        assert first == second
        assert fake.calls == 1
        assert client.cache_size() == 1

    @pytest.mark.asyncio
    async def test_disabled_cache_hits_upstream_every_time(self, make_client):
        client, fake = make_client(always(list_response([])), enable_cache=False)
        async with client:
            await client.get_works(SearchOptions(search="x"))
            await client.get_works(SearchOptions(search="x"))
        assert fake.calls == 2
        assert client.cache is None
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_per_call_bypass(self, make_client):
        client, fake = make_client(always(make_work()))
        async with client:
            await client.get_entity("works", "W1", use_cache=False)
            await client.get_entity("works", "W1", use_cache=False)
        assert fake.calls == 2

    def test_injected_empty_cache_is_kept(self, settings):
        cache = TTLCache(max_size=2, ttl=1)
        client = OpenAlexClient(settings, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})), cache=cache)
        assert client.cache is cache
        assert client.cache.max_size == 2

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, settings):
        now = [0.0]
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=make_work())

        cache = TTLCache(max_size=10, ttl=300, clock=lambda: now[0])
        async with OpenAlexClient(settings, transport=httpx.MockTransport(handler), cache=cache) as client:
            await client.get_work("W1")
            now[0] = 300.5
            await client.get_work("W1")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_unseeded_sample_not_cached(self, make_client):
        client, fake = make_client(always(list_response([])))
        async with client:
            await client.random_sample("works", 5)
            await client.random_sample("works", 5)
            await client.random_sample("works", 5, seed=1)
            await client.random_sample("works", 5, seed=1)
        assert fake.calls == 3
        assert fake.params()["sample"] == "5"

    @pytest.mark.asyncio
    async def test_clear_cache(self, make_client):
        client, fake = make_client(always(make_work()))
        async with client:
            await client.get_work("W1")
            client.clear_cache()
            await client.get_work("W1")
        assert fake.calls == 2


class TestErrors:

    @pytest.mark.asyncio
    async def test_transient_then_success(self, make_client):
        responses = [httpx.Response(503), httpx.Response(502), httpx.Response(200, json=make_work())]
        client, fake = make_client(lambda request: responses.pop(0))
        async with client:
            work = await client.get_work("W1")
        assert work["id"] == "https://openalex.org/W1"
        assert fake.calls == 3

    @pytest.mark.asyncio
    async def test_exhaustion_after_three_attempts(self, make_client):
        client, fake = make_client(lambda request: httpx.Response(500))
        async with client:
            with pytest.raises(RetryExhaustedError) as excinfo:
                await client.get_work("W1")
        assert fake.calls == 3
        assert "3 attempts" in str(excinfo.value)
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_rate_limit_flagged(self, make_client):
        client, fake = make_client(lambda request: httpx.Response(429))
        async with client:
            with pytest.raises(RetryExhaustedError) as excinfo:
                await client.get_work("W1")
        assert excinfo.value.rate_limited
        assert "Rate limit exceeded" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_not_found_not_retried(self, make_client):
        client, fake = make_client(lambda request: httpx.Response(404, json={"error": "not found"}))
        async with client:
            with pytest.raises(NotFoundError):
                await client.get_work("W0")
        assert fake.calls == 1

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self, make_client):
        client, fake = make_client(
            lambda request: httpx.Response(400, json={"message": "Invalid filter key"})
        )
        async with client:
            with pytest.raises(UpstreamError) as excinfo:
                await client.get_works(SearchOptions(filter={"nope": 1}))
        assert fake.calls == 1
        assert excinfo.value.status_code == 400
        assert "Invalid filter key" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_network_failure_retried(self, make_client):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=make_work())

        client, fake = make_client(handler)
        async with client:
            await client.get_work("W1")
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_non_json_body(self, make_client):
        client, fake = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        async with client:
            with pytest.raises(UpstreamError):
                await client.get_work("W1")


class TestFindSimilar:

    @pytest.mark.asyncio
    async def test_requires_api_key(self, make_client):
        client, fake = make_client(always({}))
        async with client:
            with pytest.raises(ConfigurationError):
                await client.find_similar_works("deep learning for proteins")
        assert fake.calls == 0

    @pytest.mark.asyncio
    async def test_query_count_and_filter(self, make_client):
        client, fake = make_client(always({"meta": {}, "results": []}), api_key="secret")
        async with client:
            await client.find_similar_works("proteins", count=500, filter={"is_oa": True})
        params = fake.params()
        assert fake.paths() == ["/find/works"]
        assert params["query"] == "proteins"
        assert params["count"] == "100"
        assert params["filter"] == "is_oa:true"
        assert params["api_key"] == "secret"
        assert "mailto" not in params
