# =============================================================================
# core/client.py  —  OpenAlexClient (Resilient Fetch Core)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   The one place that talks HTTP to OpenAlex.  Every upstream call goes
#   through the same pipeline:
#
#     cache lookup ──hit──────────────────────────────────────────► payload
#          │ miss
#          ▼
#     with_retry( limiter ─► httpx GET ─► status classification ) ─► cache set
#
# STATUS CLASSIFICATION:
#     2xx        -> JSON payload
#     404        -> NotFoundError          (not retried)
#     429        -> RateLimitError         (retried, flagged on exhaustion)
#     408 / 5xx  -> TransientUpstreamError (retried)
#     other 4xx  -> UpstreamError          (not retried)
#     network    -> TransientUpstreamError (retried)
#
# IDENTITY:
#   OpenAlex routes requests that carry a contact email (mailto) into its
#   "polite pool"; premium users send api_key instead.  Exactly one of the two
#   is sent, api_key winning when both are configured.  The email also goes
#   into the User-Agent header.
#
# CONCURRENCY:
#   A semaphore caps in-flight requests across all tool invocations, so fan-out
#   loops in research.py cannot flood the upstream.
# =============================================================================

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Mapping

import httpx

from openalex_mcp import __version__
from openalex_mcp.core.cache import TTLCache, make_cache_key
from openalex_mcp.core.config import Settings
from openalex_mcp.core.errors import (
    ConfigurationError,
    NotFoundError,
    RateLimitError,
    TransientUpstreamError,
    UpstreamError,
)
from openalex_mcp.core.filters import normalize_sort, serialize_filter
from openalex_mcp.core.identifiers import normalize_id
from openalex_mcp.core.models import SearchOptions
from openalex_mcp.core.retry import with_retry

logger = logging.getLogger(__name__)

ENTITY_TYPES = (
    "works",
    "authors",
    "institutions",
    "sources",
    "topics",
    "publishers",
    "funders",
)

# /find/works accepts at most this many results per query.
MAX_SIMILAR_RESULTS = 100


class OpenAlexClient:
    """Async OpenAlex API client with caching, retries and identifier safety.

    Args:
        settings: Server settings (identity, timeouts, cache and retry config).
        transport: Optional httpx transport.  Tests pass httpx.MockTransport.
        cache: Optional pre-built cache.  Ignored when settings.enable_cache
               is False.

    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: TTLCache | None = None,
    ):
        self.settings = settings
        self.retry_policy = settings.retry_policy()

        if settings.enable_cache:
            if cache is None:
                cache = TTLCache(settings.cache_max_size, settings.cache_ttl)
            self.cache = cache
        else:
            self.cache = None

        self._limiter = asyncio.Semaphore(max(1, settings.max_concurrent_requests))
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.timeout),
            headers={"User-Agent": self.user_agent},
            transport=transport,
        )

    async def __aenter__(self) -> "OpenAlexClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # Request building
    # =========================================================================
    @property
    def user_agent(self) -> str:
        if self.settings.email:
            return f"openalex-mcp/{__version__} (mailto:{self.settings.email})"
        return f"openalex-mcp/{__version__}"

    def identity_params(self) -> dict[str, str]:
        """mailto or api_key, never both."""
        if self.settings.api_key:
            return {"api_key": self.settings.api_key}
        if self.settings.email:
            return {"mailto": self.settings.email}
        return {}

    def build_query_params(self, options: SearchOptions | None = None) -> dict[str, str]:
        """Translate SearchOptions into OpenAlex query parameters."""
        params = self.identity_params()
        params.update(self._options_params(options or SearchOptions()))
        return params

    def _options_params(self, options: SearchOptions) -> dict[str, str]:
        params: dict[str, str] = {}
        if options.search:
            params["search"] = options.search
        filter_string = serialize_filter(options.filter)
        if filter_string:
            params["filter"] = filter_string
        sort = normalize_sort(options.sort)
        if sort:
            params["sort"] = sort
        if options.page:
            params["page"] = str(options.page)
        if options.per_page:
            params["per_page"] = str(min(options.per_page, self.settings.max_page_size))
        if options.select:
            params["select"] = ",".join(options.select)
        if options.group_by:
            params["group_by"] = options.group_by
        if options.sample:
            params["sample"] = str(options.sample)
        if options.seed is not None:
            params["seed"] = str(options.seed)
        return params

    # =========================================================================
    # Public API
    # =========================================================================
    async def get_entity(self, entity_type: str, entity_id: str, use_cache: bool = True) -> dict:
        """Fetch one entity by OpenAlex ID, DOI or URL."""
        _check_entity_type(entity_type)
        segment = normalize_id(entity_id)
        path = f"/{entity_type}/{segment}"
        key = make_cache_key("entity", entity_type, segment)
        return await self._cached(key, lambda: self._get(path, self.identity_params()), use_cache)

    async def search_entities(
        self,
        entity_type: str,
        options: SearchOptions | None = None,
        use_cache: bool = True,
    ) -> dict:
        """List/search entities of one type with filters, sort and paging."""
        _check_entity_type(entity_type)
        options = options or SearchOptions()
        query = self._options_params(options)
        # Key on the filter mapping rather than its serialized string, so
        # filter insertion order does not change the key.
        key = make_cache_key("search", entity_type, {**query, "filter": dict(options.filter)})
        params = {**self.identity_params(), **query}
        return await self._cached(key, lambda: self._get(f"/{entity_type}", params), use_cache)

    async def autocomplete(self, entity_type: str, query: str, use_cache: bool = True) -> dict:
        """Typeahead suggestions from /autocomplete/{entity_type}."""
        _check_entity_type(entity_type)
        key = make_cache_key("autocomplete", entity_type, {"q": query})
        params = {**self.identity_params(), "q": query}
        return await self._cached(key, lambda: self._get(f"/autocomplete/{entity_type}", params), use_cache)

    async def random_sample(
        self,
        entity_type: str,
        count: int,
        filter: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> dict:
        """Random sample of entities, optionally filtered and seeded."""
        options = SearchOptions(sample=count, filter=dict(filter or {}), seed=seed, per_page=count)
        # Unseeded samples differ on every call; caching them would freeze one draw.
        return await self.search_entities(entity_type, options, use_cache=seed is not None)

    async def find_similar_works(
        self,
        query: str,
        count: int | None = None,
        filter: Mapping[str, Any] | None = None,
        use_cache: bool = True,
    ) -> dict:
        """Embedding-based similarity search over /find/works.

        Raises:
            ConfigurationError: no API key is configured; the endpoint
                rejects anonymous and polite-pool requests.
        """
        if not self.settings.api_key:
            raise ConfigurationError(
                "find_similar_works requires an OpenAlex API key; set OPENALEX_API_KEY"
            )
        query_params: dict[str, str] = {"query": query}
        if count:
            query_params["count"] = str(min(count, MAX_SIMILAR_RESULTS))
        filter_string = serialize_filter(filter)
        if filter_string:
            query_params["filter"] = filter_string
        key = make_cache_key("find", "works", {**query_params, "filter": dict(filter or {})})
        params = {**self.identity_params(), **query_params}
        return await self._cached(key, lambda: self._get("/find/works", params), use_cache)

    # --- Convenience wrappers -------------------------------------------------
    async def get_works(self, options: SearchOptions | None = None) -> dict:
        return await self.search_entities("works", options)

    async def get_work(self, work_id: str) -> dict:
        return await self.get_entity("works", work_id)

    # --- Cache management -----------------------------------------------------
    def cache_size(self) -> int:
        return self.cache.size() if self.cache is not None else 0

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    # =========================================================================
    # Internals
    # =========================================================================
    async def _cached(
        self,
        key: str,
        fetch: Callable[[], Awaitable[dict]],
        use_cache: bool,
    ) -> dict:
        if self.cache is None or not use_cache:
            return await fetch()
        payload = self.cache.get(key)
        if payload is not None:
            logger.debug(f"cache hit: {key}")
            return payload
        payload = await fetch()
        self.cache.set(key, payload)
        return payload

    async def _get(self, path: str, params: dict[str, str]) -> dict:
        return await with_retry(
            lambda: self._send(path, params),
            self.retry_policy,
            label=f"GET {path}",
        )

    async def _send(self, path: str, params: dict[str, str]) -> dict:
        """One HTTP attempt: send, log, classify."""
        started = time.perf_counter()
        async with self._limiter:
            try:
                response = await self._http.get(path, params=params)
            except httpx.TimeoutException as e:
                logger.warning(f"GET {path} timed out after {_elapsed_ms(started):.0f}ms")
                raise TransientUpstreamError(f"Request to OpenAlex timed out ({path})") from e
            except httpx.TransportError as e:
                logger.warning(f"GET {path} failed: {e!r}")
                raise TransientUpstreamError(f"Could not reach OpenAlex ({path}): {e}") from e

        logger.info(
            f"GET {path} params={_redact(params)} -> {response.status_code} "
            f"in {_elapsed_ms(started):.0f}ms"
        )
        _raise_for_status(response, path)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"OpenAlex returned a non-JSON body for {path}",
                status_code=response.status_code,
            ) from e


def _check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(
            f"Unknown entity type {entity_type!r}; expected one of {', '.join(ENTITY_TYPES)}"
        )


def _raise_for_status(response: httpx.Response, path: str) -> None:
    status = response.status_code
    if status < 400:
        return
    if status == 429:
        raise RateLimitError()
    if status == 404:
        raise NotFoundError(f"Not found: {path}", status_code=404)

    detail = _error_detail(response)
    message = f"OpenAlex returned HTTP {status} for {path}" + (f": {detail}" if detail else "")
    if status == 408 or status >= 500:
        raise TransientUpstreamError(message, status_code=status)
    raise UpstreamError(message, status_code=status)


def _error_detail(response: httpx.Response) -> str:
    """Best-effort one-line reason from an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200].strip()
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or "")[:200]
    return ""


def _redact(params: Mapping[str, str]) -> dict[str, str]:
    return {k: ("***" if k == "api_key" else v) for k, v in params.items()}


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
