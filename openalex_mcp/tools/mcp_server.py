# =============================================================================
# tools/mcp_server.py  —  FastMCP Tool Server (ALL tools in one place)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Registers every OpenAlex tool with FastMCP.  Each tool is a thin typed
#   wrapper: it logs the call, hands the arguments to ToolDispatcher, and
#   returns the JSON text the dispatcher produced.
#
# HOW IT WORKS (the flow):
#   1. The AI assistant decides it needs literature (e.g., top-cited papers)
#   2. It calls a tool by name via MCP (e.g., "get_top_cited_works")
#   3. FastMCP routes the call to the decorated function below
#   4. ToolDispatcher validates the arguments, runs core/research.py and
#      serializes the result
#   5. Errors come back flagged (ToolError) with the tool name, a message
#      and a timestamp
#
# TOOL NAMING CONVENTIONS:
#   - get_*      → Read-only retrieval of one thing or one relationship
#   - search_*   → Query with filters, paginated
#   - analyze_*  → Grouped counts (per year, per country)
#   All tools are read-only and safe to retry.
#
# CONTEXT BUDGET DISCIPLINE:
#   Every list-returning work tool returns SUMMARY projections (five authors,
#   500-char abstract preview).  Only get_work / get_entity return the full
#   record.  Citation networks return reference ids, never resolved records.
#
# RUNNING THIS SERVER:
#     a) Installed script:  openalex-mcp
#     b) From a checkout:   python main.py
#   Both speak MCP over stdio.
# =============================================================================

import asyncio
import logging
import sys
from typing import Any, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from openalex_mcp.core.config import Settings
from openalex_mcp.tools.dispatch import AppContext, ToolDispatcher

# =============================================================================
# Logging Setup
# =============================================================================
# We log to STDERR because MCP uses STDOUT as its transport.  Anything
# written to stdout would corrupt the JSON-RPC stream.
#
# ANSI COLOR CODES:
#     - CYAN for incoming requests (tool name + parameters)
#     - GREEN for responses
#     - YELLOW for intermediate status messages
#     - RED for error results
# =============================================================================

_CYAN = "\033[36m"     # Requests (tool calls with params)
_GREEN = "\033[32m"    # Responses (JSON output)
_YELLOW = "\033[33m"   # Status/progress messages
_RED = "\033[31m"      # Error results
_RESET = "\033[0m"     # Reset to default terminal color

# Responses can be tens of kilobytes; the log only needs the start.
_RESPONSE_LOG_CHARS = 300

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [MCP] %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stderr,
)


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logging.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logging.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, text: str, is_error: bool = False) -> str:
    """Log the head of the tool response on one line, then return it."""
    color = _RED if is_error else _GREEN
    compact = " ".join(text.split())
    if len(compact) > _RESPONSE_LOG_CHARS:
        compact = compact[:_RESPONSE_LOG_CHARS] + "..."
    logging.info(f"{color}  ← {tool_name} response: {compact}{_RESET}")
    return text


EntityType = Literal["works", "authors", "institutions", "sources", "topics", "publishers", "funders"]


# =============================================================================
# Server factory
# =============================================================================
def create_server(context: AppContext) -> FastMCP:
    """Build the FastMCP server with every tool bound to one AppContext."""
    mcp = FastMCP("openalex-mcp")
    dispatcher = ToolDispatcher(context)

    async def _call(tool_name: str, **params: Any) -> str:
        arguments = {k: v for k, v in params.items() if v is not None}
        _log_request(tool_name, **arguments)
        result = await dispatcher.call(tool_name, arguments)
        _log_response(tool_name, result.text, result.is_error)
        if result.is_error:
            raise ToolError(result.text)
        return result.text

    # =========================================================================
    # Works: search and lookup
    # =========================================================================
    @mcp.tool()
    async def search_works(
        query: Optional[str] = None,
        from_publication_year: Optional[int] = None,
        to_publication_year: Optional[int] = None,
        cited_by_count: Optional[str] = None,
        is_oa: Optional[bool] = None,
        type: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Search scholarly works (papers, books, datasets) in OpenAlex.

        WHEN TO CALL THIS: The starting point of most literature searches.
        Combine a free-text query with year, citation, open-access and type
        filters.

        Args:
            query: Free-text search over titles, abstracts and full text.
            from_publication_year: Earliest publication year (inclusive).
            to_publication_year: Latest publication year (inclusive).
            cited_by_count: Citation filter such as ">100" or "<10".
            is_oa: Only open-access (true) or only closed (false) works.
            type: Work type, e.g. "article", "book", "dataset".
            sort: Sort field, e.g. "cited_by_count" or "publication_date:asc".
                  A bare field name sorts descending.
            page: Page number, starting at 1.
            per_page: Results per page (1-200, default 10).

        Returns:
            JSON with meta (count, page, per_page) and results: work summaries
            with at most five authors, primary topic, open-access status and
            a 500-character abstract preview.
        """
        return await _call(
            "search_works", query=query,
            from_publication_year=from_publication_year,
            to_publication_year=to_publication_year,
            cited_by_count=cited_by_count, is_oa=is_oa, type=type,
            sort=sort, page=page, per_page=per_page,
        )

    @mcp.tool()
    async def get_work(id: str) -> str:
        """Get complete details of one work.

        Args:
            id: OpenAlex id (W2741809807), DOI (10.1371/...), doi:-prefixed
                DOI, or a full URL (https://doi.org/..., https://openalex.org/W...).

        Returns:
            JSON with every author (position, ORCID, institutions, countries,
            corresponding flag), topics, keywords, grants, locations, the full
            abstract, biblio, FWCI and referenced/related work ids.
        """
        return await _call("get_work", id=id)

    @mcp.tool()
    async def get_related_works(id: str, per_page: Optional[int] = None) -> str:
        """Get works OpenAlex considers related to the given work.

        Related ids that no longer resolve are skipped.

        Args:
            id: Work identifier (OpenAlex id, DOI or URL).
            per_page: How many related works to resolve (1-200, default 10).
        """
        return await _call("get_related_works", id=id, per_page=per_page)

    @mcp.tool()
    async def search_by_topic(
        topic: str,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
        sort: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Find works on a research topic, most relevant first.

        Args:
            topic: Topic phrase, e.g. "graph neural networks".
            from_year: Earliest publication year (inclusive).
            to_year: Latest publication year (inclusive).
            sort: Sort field (default relevance_score).
            per_page: Results per page (1-200, default 10).
        """
        return await _call(
            "search_by_topic", topic=topic, from_year=from_year,
            to_year=to_year, sort=sort, per_page=per_page,
        )

    @mcp.tool()
    async def autocomplete_search(query: str, entity_type: EntityType) -> str:
        """Typeahead suggestions for a partial name.

        WHEN TO CALL THIS: To turn a fuzzy name ("stanford", "hinton") into
        an exact OpenAlex id before calling an id-based tool.

        Args:
            query: Partial name or title.
            entity_type: works, authors, institutions, sources, topics,
                         publishers or funders.
        """
        return await _call("autocomplete_search", query=query, entity_type=entity_type)

    @mcp.tool()
    async def find_similar_works(
        query: str,
        count: Optional[int] = None,
        from_publication_year: Optional[int] = None,
        to_publication_year: Optional[int] = None,
        is_oa: Optional[bool] = None,
    ) -> str:
        """Semantic search: works whose content is closest to a passage of text.

        Requires OPENALEX_API_KEY.

        Args:
            query: Text to match, up to 10,000 characters (an abstract works well).
            count: Number of results (1-100).
            from_publication_year: Earliest publication year (inclusive).
            to_publication_year: Latest publication year (inclusive).
            is_oa: Restrict to open-access works.

        Returns:
            JSON with results of the form {score, work summary}.
        """
        return await _call(
            "find_similar_works", query=query, count=count,
            from_publication_year=from_publication_year,
            to_publication_year=to_publication_year, is_oa=is_oa,
        )

    # =========================================================================
    # Citation analysis
    # =========================================================================
    @mcp.tool()
    async def get_work_citations(
        id: str,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> str:
        """Works that cite the given work (forward citations), paginated.

        Args:
            id: Work identifier (OpenAlex id, DOI or URL).
            page: Page number, starting at 1.
            per_page: Results per page (1-200, default 10).
            sort: Sort field, e.g. "cited_by_count".
        """
        return await _call("get_work_citations", id=id, page=page, per_page=per_page, sort=sort)

    @mcp.tool()
    async def get_work_references(id: str) -> str:
        """Ids of the works the given work cites (backward citations)."""
        return await _call("get_work_references", id=id)

    @mcp.tool()
    async def get_citation_network(
        id: str,
        max_citing: Optional[int] = None,
        max_references: Optional[int] = None,
    ) -> str:
        """Citation neighbourhood of one work in both directions.

        Citing works come back as summaries; referenced works come back as
        ids only (resolve interesting ones with get_work).

        Args:
            id: Work identifier (OpenAlex id, DOI or URL).
            max_citing: Citing works to include (1-200, default 50).
            max_references: Reference ids to include (1-200, default 50).
        """
        return await _call(
            "get_citation_network", id=id,
            max_citing=max_citing, max_references=max_references,
        )

    @mcp.tool()
    async def get_top_cited_works(
        query: Optional[str] = None,
        topic: Optional[str] = None,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
        min_citations: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """The most influential works on a subject, most cited first.

        Args:
            query: Free-text search.
            topic: Topic phrase (used when query is absent).
            from_year: Earliest publication year (inclusive).
            to_year: Latest publication year (inclusive).
            min_citations: Citation floor (default 50; 0 disables it).
            per_page: Results per page (1-200, default 10).
        """
        return await _call(
            "get_top_cited_works", query=query, topic=topic, from_year=from_year,
            to_year=to_year, min_citations=min_citations, per_page=per_page,
        )

    # =========================================================================
    # Authors, institutions, sources
    # =========================================================================
    @mcp.tool()
    async def search_authors(
        query: Optional[str] = None,
        works_count: Optional[str] = None,
        cited_by_count: Optional[str] = None,
        institution: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Search researchers by name, output and affiliation.

        Args:
            query: Author name.
            works_count: Output filter such as ">50".
            cited_by_count: Citation filter such as ">1000".
            institution: Institution display name.
            per_page: Results per page (1-200, default 10).
        """
        return await _call(
            "search_authors", query=query, works_count=works_count,
            cited_by_count=cited_by_count, institution=institution, per_page=per_page,
        )

    @mcp.tool()
    async def get_author_works(
        author_id: str,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
        sort: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Publications of one author, optionally within a year range.

        Args:
            author_id: OpenAlex author id (A5023888391) or ORCID.
            from_year: Earliest publication year (inclusive).
            to_year: Latest publication year (inclusive).
            sort: Sort field, e.g. "publication_date" or "cited_by_count".
            per_page: Results per page (1-200, default 10).
        """
        return await _call(
            "get_author_works", author_id=author_id, from_year=from_year,
            to_year=to_year, sort=sort, per_page=per_page,
        )

    @mcp.tool()
    async def get_author_collaborators(
        author_id: str,
        min_collaborations: Optional[int] = None,
    ) -> str:
        """Frequent co-authors of a researcher, most frequent first.

        Analyzes up to 200 of the author's works.

        Args:
            author_id: OpenAlex author id or ORCID.
            min_collaborations: Minimum shared works to be listed (default 1).
        """
        return await _call(
            "get_author_collaborators", author_id=author_id,
            min_collaborations=min_collaborations,
        )

    @mcp.tool()
    async def search_institutions(
        query: Optional[str] = None,
        country_code: Optional[str] = None,
        type: Optional[str] = None,
        works_count: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Search universities, companies and other research institutions.

        Args:
            query: Institution name.
            country_code: Two-letter ISO country code, e.g. "US".
            type: Institution type, e.g. "education", "company".
            works_count: Output filter such as ">1000".
            per_page: Results per page (1-200, default 10).
        """
        return await _call(
            "search_institutions", query=query, country_code=country_code,
            type=type, works_count=works_count, per_page=per_page,
        )

    @mcp.tool()
    async def search_sources(
        query: Optional[str] = None,
        type: Optional[str] = None,
        is_oa: Optional[bool] = None,
        works_count: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Search journals, repositories and conferences.

        Args:
            query: Source name.
            type: Source type, e.g. "journal", "repository".
            is_oa: Only fully open-access sources.
            works_count: Output filter such as ">1000".
            per_page: Results per page (1-200, default 10).
        """
        return await _call(
            "search_sources", query=query, type=type, is_oa=is_oa,
            works_count=works_count, per_page=per_page,
        )

    @mcp.tool()
    async def get_entity(entity_type: EntityType, id: str) -> str:
        """Get any OpenAlex entity by id.  Works use the full-detail format.

        Args:
            entity_type: works, authors, institutions, sources, topics,
                         publishers or funders.
            id: Entity identifier (OpenAlex id, DOI, ORCID, ROR or URL).
        """
        return await _call("get_entity", entity_type=entity_type, id=id)

    # =========================================================================
    # Research landscape
    # =========================================================================
    @mcp.tool()
    async def analyze_topic_trends(
        query: str,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
    ) -> str:
        """Publication counts per year for a research query.

        WHEN TO CALL THIS: To see whether a field is growing, peaking or
        declining.
        """
        return await _call("analyze_topic_trends", query=query, from_year=from_year, to_year=to_year)

    @mcp.tool()
    async def compare_research_areas(
        topics: list[str],
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
    ) -> str:
        """Compare publication volume across 2 to 5 research areas.

        Args:
            topics: Between two and five topic phrases.
            from_year: Earliest publication year (inclusive).
            to_year: Latest publication year (inclusive).
        """
        return await _call("compare_research_areas", topics=topics, from_year=from_year, to_year=to_year)

    @mcp.tool()
    async def get_trending_topics(
        min_works: Optional[int] = None,
        time_period_years: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> str:
        """Topics with the most recent publications.

        Args:
            min_works: Minimum works in the period (default 100).
            time_period_years: Look-back window in years (default 3).
            per_page: Number of topics to return (1-200, default 10).
        """
        return await _call(
            "get_trending_topics", min_works=min_works,
            time_period_years=time_period_years, per_page=per_page,
        )

    @mcp.tool()
    async def analyze_geographic_distribution(
        query: str,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
    ) -> str:
        """Publication counts per institution country for a research query."""
        return await _call(
            "analyze_geographic_distribution", query=query,
            from_year=from_year, to_year=to_year,
        )

    @mcp.tool()
    async def health_check() -> str:
        """Server status: API identity, cache and paging configuration."""
        return await _call("health_check")

    _log_status(f"registered {len(dispatcher.tool_names)} tools")
    return mcp


# =============================================================================
# Entry point
# =============================================================================
def main() -> None:
    settings = Settings.from_env()
    context = AppContext.create(settings)
    _log_status(
        f"OpenAlex MCP server starting (cache={'on' if settings.enable_cache else 'off'}, "
        f"email={'set' if settings.email else 'unset'}, api_key={'set' if settings.api_key else 'unset'})"
    )
    asyncio.run(_serve(context))


async def _serve(context: AppContext) -> None:
    try:
        await create_server(context).run_async()
    finally:
        await context.aclose()


if __name__ == "__main__":
    main()
