# =============================================================================
# core/research.py  —  Literature-review operations
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   One async function per tool operation.  Each function:
#     1. translates its arguments into SearchOptions (filters.py)
#     2. fetches through OpenAlexClient (cache + retry live there)
#     3. reshapes the payload (reshape.py) into a dataclass
#
#   The tools layer validates arguments BEFORE calling in here, so these
#   functions trust their inputs.  Filter parameters (from_year, is_oa,
#   cited_by_count, ...) are collected through **filter_params and handed to
#   build_filter() unchanged.
#
# COMPOSITE OPERATIONS:
#   get_citation_network      focal work + citing works, fetched concurrently;
#                             reference ids are returned unresolved
#   get_related_works         related ids resolved one by one; a missing id is
#                             skipped instead of failing the batch
#   get_author_collaborators  co-author tally over up to 200 of the author's works
#   get_top_cited_works       injects a minimum-citation floor
#
# Fan-out goes through _gather(), which cancels the remaining fetches once one
# fails.  OpenAlexClient's semaphore keeps the number of in-flight requests
# bounded.
# =============================================================================

import asyncio
from collections import Counter
from datetime import date
import logging
import re
from typing import Any, Awaitable, Mapping

from openalex_mcp.core.client import OpenAlexClient
from openalex_mcp.core.errors import OpenAlexError
from openalex_mcp.core.filters import build_filter, year_filter
from openalex_mcp.core.identifiers import classify_id, short_id
from openalex_mcp.core.models import (
    AreaComparison,
    CitationNetwork,
    CitingWorks,
    Collaborator,
    CollaboratorReport,
    EntityList,
    ReferencedWorks,
    RelatedWorks,
    SearchOptions,
    SimilarWorks,
    TrendReport,
    WorkBrief,
    WorkDetail,
    WorkList,
)
from openalex_mcp.core.reshape import (
    full_work_details,
    list_meta,
    summarize_groups,
    summarize_similar_results,
    summarize_work,
    summarize_works_list,
)

logger = logging.getLogger(__name__)

# --- Composite-operation defaults ---
DEFAULT_MAX_CITING = 50
DEFAULT_MAX_REFERENCES = 50
COLLABORATOR_WORKS_PAGE = 200           # one full page of the author's works
DEFAULT_TRENDING_MIN_WORKS = 100
DEFAULT_TRENDING_YEARS = 3

_ORCID_PATTERN = re.compile(r"\d{4}-\d{4}-\d{4}-\d{3}[\dX]$")


# =============================================================================
# Work search & lookup
# =============================================================================
async def search_works(
    client: OpenAlexClient,
    query: str | None = None,
    sort: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    **filter_params: Any,
) -> WorkList:
    """Search works with year, citation, access and type filters."""
    options = SearchOptions(
        search=query,
        filter=build_filter(filter_params),
        sort=sort,
        page=page or 1,
        per_page=per_page or client.settings.default_page_size,
    )
    return summarize_works_list(await client.get_works(options))


async def search_by_topic(
    client: OpenAlexClient,
    topic: str,
    sort: str | None = None,
    per_page: int | None = None,
    **filter_params: Any,
) -> WorkList:
    """Works matching a topic phrase, most relevant first unless told otherwise."""
    options = SearchOptions(
        search=topic,
        filter=build_filter(filter_params),
        sort=sort or "relevance_score",
        per_page=per_page or client.settings.default_page_size,
    )
    return summarize_works_list(await client.get_works(options))


async def get_work(client: OpenAlexClient, id: str) -> WorkDetail:
    return full_work_details(await client.get_work(id))


async def get_entity(client: OpenAlexClient, entity_type: str, id: str) -> WorkDetail | dict:
    """Any entity by id.  Works get the full-detail projection; others come back as-is."""
    entity = await client.get_entity(entity_type, id)
    if entity_type == "works":
        return full_work_details(entity)
    return entity


async def find_similar_works(
    client: OpenAlexClient,
    query: str,
    count: int | None = None,
    **filter_params: Any,
) -> SimilarWorks:
    """Semantic neighbours of a passage of text, with similarity scores."""
    response = await client.find_similar_works(query, count=count, filter=build_filter(filter_params))
    return summarize_similar_results(response)


async def autocomplete(client: OpenAlexClient, query: str, entity_type: str) -> dict:
    return await client.autocomplete(entity_type, query)


# =============================================================================
# Citation analysis
# =============================================================================
async def get_work_citations(
    client: OpenAlexClient,
    id: str,
    page: int | None = None,
    per_page: int | None = None,
    sort: str | None = None,
) -> WorkList:
    """Works that cite the given work (forward citations)."""
    work_id = await resolve_work_id(client, id)
    options = SearchOptions(
        filter={"cites": work_id},
        sort=sort,
        page=page or 1,
        per_page=per_page or client.settings.default_page_size,
    )
    return summarize_works_list(await client.get_works(options))


async def get_work_references(client: OpenAlexClient, id: str) -> ReferencedWorks:
    """Ids of the works the given work cites (backward citations)."""
    work = await client.get_work(id)
    reference_ids = _string_list(work.get("referenced_works"))
    return ReferencedWorks(count=len(reference_ids), work_ids=reference_ids)


async def get_citation_network(
    client: OpenAlexClient,
    id: str,
    max_citing: int | None = None,
    max_references: int | None = None,
) -> CitationNetwork:
    """Focal work plus both citation directions.

    Citing works are fetched (up to max_citing) and summarized.  Referenced
    works are returned as an id prefix of length max_references and are NOT
    resolved to records.
    """
    max_citing = max_citing or DEFAULT_MAX_CITING
    max_references = max_references or DEFAULT_MAX_REFERENCES

    work_id = short_id(id)
    if classify_id(work_id) == "native":
        # The citing query only needs the id, so both legs can run at once.
        work, citing = await _gather(
            client.get_work(work_id),
            client.get_works(_citing_options(work_id, max_citing)),
        )
    else:
        work = await client.get_work(id)
        citing = await client.get_works(
            _citing_options(short_id(work.get("id")) or work_id, max_citing)
        )

    reference_ids = _string_list(work.get("referenced_works"))[:max_references]
    return CitationNetwork(
        central_work=WorkBrief(
            id=work.get("id"),
            title=work.get("title") or work.get("display_name"),
            publication_year=work.get("publication_year"),
            cited_by_count=work.get("cited_by_count"),
        ),
        citing_works=CitingWorks(
            count=list_meta(citing).count,
            works=summarize_works_list(citing).results,
        ),
        referenced_works=ReferencedWorks(count=len(reference_ids), work_ids=reference_ids),
    )


async def get_related_works(
    client: OpenAlexClient,
    id: str,
    per_page: int | None = None,
) -> RelatedWorks:
    """Resolve the focal work's related-work ids into summaries.

    Ids that cannot be fetched (deleted upstream, transient failure that
    outlived the retries) are logged and skipped.
    """
    work = await client.get_work(id)
    limit = per_page or client.settings.default_page_size
    related_ids = _string_list(work.get("related_works"))[:limit]

    fetched = await _gather(*(_fetch_optional_work(client, rid) for rid in related_ids))
    return RelatedWorks(
        work_id=work.get("id") or id,
        requested=len(related_ids),
        related_works=[summarize_work(w) for w in fetched if w is not None],
    )


async def _fetch_optional_work(client: OpenAlexClient, work_id: str) -> dict | None:
    try:
        return await client.get_work(short_id(work_id))
    except OpenAlexError as e:
        logger.warning(f"Skipping related work {work_id}: {e}")
        return None


async def get_top_cited_works(
    client: OpenAlexClient,
    query: str | None = None,
    topic: str | None = None,
    min_citations: int | None = None,
    per_page: int | None = None,
    **filter_params: Any,
) -> WorkList:
    """Most-cited works for a query or topic, above a citation floor.

    min_citations defaults to Settings.min_citations_for_influential; 0
    disables the floor.
    """
    filter_set = build_filter(filter_params)
    floor = client.settings.min_citations_for_influential if min_citations is None else min_citations
    if floor > 0:
        filter_set["cited_by_count"] = f">{floor - 1}"

    options = SearchOptions(
        search=query or topic,
        filter=filter_set,
        sort="cited_by_count:desc",
        per_page=per_page or client.settings.default_page_size,
    )
    return summarize_works_list(await client.get_works(options))


async def resolve_work_id(client: OpenAlexClient, id: str) -> str:
    """Native OpenAlex id for any work identifier.

    Filters such as `cites:` only accept OpenAlex ids, so DOIs and URLs are
    looked up first.
    """
    candidate = short_id(id)
    if classify_id(candidate) == "native":
        return candidate
    work = await client.get_work(id)
    return short_id(work.get("id")) or candidate


def _citing_options(work_id: str, max_citing: int) -> SearchOptions:
    return SearchOptions(filter={"cites": work_id}, per_page=max_citing)


# =============================================================================
# Authors, institutions, sources
# =============================================================================
async def search_entities(
    client: OpenAlexClient,
    entity_type: str,
    query: str | None = None,
    per_page: int | None = None,
    **filter_params: Any,
) -> EntityList:
    """Generic search for authors, institutions and sources."""
    options = SearchOptions(
        search=query,
        filter=build_filter(filter_params),
        per_page=per_page or client.settings.default_page_size,
    )
    response = await client.search_entities(entity_type, options)
    return EntityList(
        meta=list_meta(response),
        results=[r for r in response.get("results") or [] if isinstance(r, dict)],
    )


async def get_author_works(
    client: OpenAlexClient,
    author_id: str,
    from_year: int | None = None,
    to_year: int | None = None,
    sort: str | None = None,
    per_page: int | None = None,
) -> WorkList:
    """An author's publications, optionally restricted to a year range."""
    filter_set = _author_filter(author_id)
    years = year_filter(from_year, to_year)
    if years is not None:
        filter_set["publication_year"] = years
    options = SearchOptions(
        filter=filter_set,
        sort=sort,
        per_page=per_page or client.settings.default_page_size,
    )
    return summarize_works_list(await client.get_works(options))


async def get_author_collaborators(
    client: OpenAlexClient,
    author_id: str,
    min_collaborations: int | None = None,
) -> CollaboratorReport:
    """Tally co-authors across one page (up to 200) of an author's works.

    The focal author is excluded whether they appear by OpenAlex id or by
    ORCID.  Collaborators below min_collaborations (default 1) are dropped;
    the rest are sorted by count, most frequent first.
    """
    minimum = min_collaborations or 1
    response = await client.get_works(
        SearchOptions(filter=_author_filter(author_id), per_page=COLLABORATOR_WORKS_PAGE)
    )
    works = [w for w in response.get("results") or [] if isinstance(w, dict)]

    counts: Counter[str] = Counter()
    names: dict[str, str] = {}
    for work in works:
        for authorship in work.get("authorships") or []:
            author = (authorship or {}).get("author") or {}
            coauthor_id = author.get("id")
            if not coauthor_id or _is_focal_author(author, author_id):
                continue
            counts[coauthor_id] += 1
            names.setdefault(coauthor_id, author.get("display_name") or "Unknown")

    collaborators = [
        Collaborator(id=cid, name=names[cid], count=n)
        for cid, n in counts.items()
        if n >= minimum
    ]
    collaborators.sort(key=lambda c: (-c.count, c.name))

    return CollaboratorReport(
        author_id=author_id,
        total_works_analyzed=len(works),
        collaborators=collaborators,
    )


def _author_filter(author_id: str) -> dict[str, Any]:
    """authorships filter for an OpenAlex author id or an ORCID."""
    if _ORCID_PATTERN.search(author_id):
        orcid = author_id.rsplit("/", 1)[-1].removeprefix("orcid:")
        return {"authorships.author.orcid": orcid}
    return {"authorships.author.id": short_id(author_id)}


def _is_focal_author(author: Mapping[str, Any], focal_id: str) -> bool:
    focal = short_id(focal_id)
    if short_id(author.get("id")) == focal:
        return True
    orcid = author.get("orcid")
    return bool(orcid) and orcid.rsplit("/", 1)[-1] == focal.rsplit("/", 1)[-1].removeprefix("orcid:")


# =============================================================================
# Research landscape (group_by queries)
# =============================================================================
async def analyze_topic_trends(
    client: OpenAlexClient,
    query: str,
    from_year: int | None = None,
    to_year: int | None = None,
) -> TrendReport:
    """Works per publication year for a query, oldest year first."""
    report = await _grouped(client, query, "publication_year", from_year, to_year)
    report.groups.sort(key=lambda g: str(g.key))
    return report


async def analyze_geographic_distribution(
    client: OpenAlexClient,
    query: str,
    from_year: int | None = None,
    to_year: int | None = None,
) -> TrendReport:
    """Works per institution country for a query, most active first."""
    report = await _grouped(client, query, "institutions.country_code", from_year, to_year)
    report.groups.sort(key=lambda g: -g.count)
    return report


async def get_trending_topics(
    client: OpenAlexClient,
    min_works: int | None = None,
    time_period_years: int | None = None,
    per_page: int | None = None,
    current_year: int | None = None,
) -> TrendReport:
    """Topics with the most works published in the last N years."""
    years_back = time_period_years or DEFAULT_TRENDING_YEARS
    threshold = min_works or DEFAULT_TRENDING_MIN_WORKS
    limit = per_page or client.settings.default_page_size
    start_year = (current_year or date.today().year) - years_back

    response = await client.get_works(SearchOptions(
        filter={"from_publication_date": f"{start_year}-01-01"},
        group_by="topics.id",
    ))
    grouped = summarize_groups(response)
    groups = sorted((g for g in grouped.groups if g.count >= threshold), key=lambda g: -g.count)
    return TrendReport(
        query=None,
        group_by="topics.id",
        total_works=grouped.total_count,
        groups=groups[:limit],
    )


async def compare_research_areas(
    client: OpenAlexClient,
    topics: list[str],
    from_year: int | None = None,
    to_year: int | None = None,
) -> list[AreaComparison]:
    """Publication volume per topic, in the order the topics were given."""
    filter_set = build_filter({"from_year": from_year, "to_year": to_year})

    async def count_for(topic: str) -> AreaComparison:
        response = await client.get_works(SearchOptions(search=topic, filter=dict(filter_set), per_page=1))
        return AreaComparison(topic=topic, total_works=list_meta(response).count)

    return list(await _gather(*(count_for(t) for t in topics)))


async def _grouped(
    client: OpenAlexClient,
    query: str,
    group_by: str,
    from_year: int | None,
    to_year: int | None,
) -> TrendReport:
    options = SearchOptions(
        search=query,
        filter=build_filter({"from_year": from_year, "to_year": to_year}),
        group_by=group_by,
    )
    grouped = summarize_groups(await client.get_works(options))
    return TrendReport(
        query=query,
        group_by=group_by,
        total_works=grouped.total_count,
        groups=grouped.groups,
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


async def _gather(*coros: Awaitable[Any]) -> list[Any]:
    """asyncio.gather that cancels the still-running tasks when one fails."""
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
