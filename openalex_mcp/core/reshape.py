# =============================================================================
# core/reshape.py  —  Response Reshaper (summary vs. full detail)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Turns raw OpenAlex work records (often 20-50 KB of nested JSON each) into
#   the two views the tools return:
#
#     summarize_work()      every list-returning tool.  Bounded: first five
#                           authors, primary topic only, abstract preview.
#     full_work_details()   single-work lookups.  Complete author roster,
#                           full abstract, topics, keywords, grants, ids.
#
# ROBUSTNESS:
#   OpenAlex records are frequently partial (no authorships, null
#   primary_location, no abstract).  Every projection substitutes None or an
#   empty list for what is missing and never fails the whole record.
#   The one exception is the full abstract: reconstruct_abstract() raises
#   AbstractReconstructionError rather than return text in the wrong order.
#
# ABSTRACTS:
#   OpenAlex stores abstracts as an inverted index {word: [positions]}.
#   Reconstruction places each word at every position it occupies and reads
#   the positions in ascending order:
#
#     {"the": [0, 4], "cat": [1], "sat": [2], "on": [3], "mat": [5]}
#       -> "the cat sat on the mat"
# =============================================================================

from typing import Any, Mapping

from openalex_mcp.core.errors import AbstractReconstructionError
from openalex_mcp.core.identifiers import short_id
from openalex_mcp.core.models import (
    AuthorDetail,
    AuthorSummary,
    GroupCount,
    GroupedCounts,
    Grant,
    InstitutionRef,
    Keyword,
    ListMeta,
    LocationDetail,
    OpenAccessDetail,
    OpenAccessInfo,
    SimilarWork,
    SimilarWorks,
    SourceDetail,
    TopicDetail,
    TopicRef,
    TopicSummary,
    WorkDetail,
    WorkList,
    WorkSummary,
)

# --- Summary limits ---
MAX_AUTHORS_IN_SUMMARY = 5
MAX_INSTITUTIONS_PER_AUTHOR = 2
PREVIEW_MAX_WORDS = 100
PREVIEW_MAX_CHARS = 500
ELLIPSIS = "..."

# --- Full-detail limits ---
MAX_TOPICS = 5
MAX_KEYWORDS = 10
MAX_GRANTS = 5


# =============================================================================
# Abstracts
# =============================================================================
def reconstruct_abstract(inverted_index: Mapping[str, Any]) -> str:
    """Rebuild abstract text from an inverted index, in exact word order.

    Raises:
        AbstractReconstructionError: the index is not a mapping, a position
            is not a non-negative integer, or two different words claim the
            same position.
    """
    if not isinstance(inverted_index, Mapping):
        raise AbstractReconstructionError(
            f"Abstract index must be a mapping, got {type(inverted_index).__name__}"
        )

    words_by_position: dict[int, str] = {}
    for word, positions in inverted_index.items():
        if not isinstance(positions, (list, tuple)):
            raise AbstractReconstructionError(f"Positions for {word!r} must be a list")
        for position in positions:
            if isinstance(position, bool) or not isinstance(position, int) or position < 0:
                raise AbstractReconstructionError(
                    f"Invalid position {position!r} for {word!r}"
                )
            existing = words_by_position.get(position)
            if existing is not None and existing != word:
                raise AbstractReconstructionError(
                    f"Position {position} claimed by both {existing!r} and {word!r}"
                )
            words_by_position[position] = word

    return " ".join(words_by_position[p] for p in sorted(words_by_position))


def abstract_preview(inverted_index: Any) -> str | None:
    """Size-bounded abstract preview for summaries.

    Uses the positional reconstruction, so the preview reads as the opening of
    the abstract.  A malformed index falls back to the index's key order,
    which keeps summaries from ever failing on a bad record.
    """
    if not inverted_index or not isinstance(inverted_index, Mapping):
        return None

    try:
        words = reconstruct_abstract(inverted_index).split()
    except AbstractReconstructionError:
        words = [str(word) for word in inverted_index.keys()]
    if not words:
        return None

    truncated = len(words) > PREVIEW_MAX_WORDS
    text = " ".join(words[:PREVIEW_MAX_WORDS])
    if len(text) > PREVIEW_MAX_CHARS:
        truncated = True
    if truncated:
        # The ellipsis counts against the character bound.
        text = text[:PREVIEW_MAX_CHARS - len(ELLIPSIS)] + ELLIPSIS
    return text


# =============================================================================
# Summary tier
# =============================================================================
def summarize_work(work: Mapping[str, Any]) -> WorkSummary:
    """Compact view of a work for list results."""
    authorships = _dicts(work.get("authorships"))
    primary_topic = _dict(work.get("primary_topic"))

    return WorkSummary(
        id=work.get("id"),
        doi=work.get("doi"),
        title=work.get("title") or work.get("display_name"),
        publication_year=work.get("publication_year"),
        publication_date=work.get("publication_date"),
        cited_by_count=work.get("cited_by_count"),
        type=work.get("type"),
        authors=[
            AuthorSummary(
                name=_dig(a, "author", "display_name"),
                institutions=[
                    i.get("display_name")
                    for i in _dicts(a.get("institutions"))[:MAX_INSTITUTIONS_PER_AUTHOR]
                ],
            )
            for a in authorships[:MAX_AUTHORS_IN_SUMMARY]
        ],
        authors_truncated=len(authorships) > MAX_AUTHORS_IN_SUMMARY,
        primary_topic=TopicSummary(
            display_name=primary_topic.get("display_name"),
            field=_dig(primary_topic, "field", "display_name"),
            subfield=_dig(primary_topic, "subfield", "display_name"),
        ) if primary_topic else None,
        open_access=_open_access(work),
        landing_page_url=_dig(work, "primary_location", "landing_page_url"),
        pdf_url=_dig(work, "best_oa_location", "pdf_url"),
        source=_dig(work, "primary_location", "source", "display_name"),
        abstract=abstract_preview(work.get("abstract_inverted_index")),
    )


def summarize_works_list(response: Mapping[str, Any]) -> WorkList:
    """Summarize a paginated /works response."""
    return WorkList(
        meta=list_meta(response),
        results=[summarize_work(w) for w in _dicts(response.get("results"))],
    )


def list_meta(response: Mapping[str, Any]) -> ListMeta:
    meta = _dict(response.get("meta"))
    return ListMeta(
        count=meta.get("count"),
        page=meta.get("page"),
        per_page=meta.get("per_page"),
    )


# =============================================================================
# Full-detail tier
# =============================================================================
def full_work_details(work: Mapping[str, Any]) -> WorkDetail:
    """Complete view of a single work.

    Raises:
        AbstractReconstructionError: the abstract index is present but
            inconsistent.
    """
    authorships = _dicts(work.get("authorships"))
    last_index = len(authorships) - 1
    primary_topic = _dict(work.get("primary_topic"))
    inverted_index = work.get("abstract_inverted_index")

    return WorkDetail(
        id=work.get("id"),
        doi=work.get("doi"),
        title=work.get("title") or work.get("display_name"),
        publication_year=work.get("publication_year"),
        publication_date=work.get("publication_date"),
        cited_by_count=work.get("cited_by_count"),
        type=work.get("type"),
        authors=[
            _author_detail(a, _position_role(index, last_index))
            for index, a in enumerate(authorships)
        ],
        primary_topic=TopicDetail(
            id=primary_topic.get("id"),
            display_name=primary_topic.get("display_name"),
            score=primary_topic.get("score"),
            field=_dig(primary_topic, "field", "display_name"),
            subfield=_dig(primary_topic, "subfield", "display_name"),
            domain=_dig(primary_topic, "domain", "display_name"),
        ) if primary_topic else None,
        topics=[
            TopicRef(id=t.get("id"), display_name=t.get("display_name"), score=t.get("score"))
            for t in _dicts(work.get("topics"))[:MAX_TOPICS]
        ],
        open_access=OpenAccessDetail(
            is_oa=_dig(work, "open_access", "is_oa"),
            oa_status=_dig(work, "open_access", "oa_status"),
            oa_url=_dig(work, "open_access", "oa_url"),
            any_repository_has_fulltext=_dig(work, "open_access", "any_repository_has_fulltext"),
        ),
        landing_page_url=_dig(work, "primary_location", "landing_page_url"),
        pdf_url=_dig(work, "best_oa_location", "pdf_url"),
        primary_location=_location_detail(work.get("primary_location")),
        abstract=reconstruct_abstract(inverted_index) if inverted_index is not None else None,
        biblio=work.get("biblio"),
        referenced_works_count=work.get("referenced_works_count"),
        cited_by_percentile_year=work.get("cited_by_percentile_year"),
        fwci=work.get("fwci"),
        keywords=[
            Keyword(keyword=k.get("keyword") or k.get("display_name"), score=k.get("score"))
            for k in _dicts(work.get("keywords"))[:MAX_KEYWORDS]
        ],
        grants=[
            Grant(
                funder=g.get("funder"),
                funder_display_name=g.get("funder_display_name"),
                award_id=g.get("award_id"),
            )
            for g in _dicts(work.get("grants"))[:MAX_GRANTS]
        ],
        referenced_works=_list(work.get("referenced_works")),
        related_works=_list(work.get("related_works")),
    )


def _position_role(index: int, last_index: int) -> str:
    if index == 0:
        return "first"
    if index == last_index:
        return "last"
    return "middle"


def _author_detail(authorship: Mapping[str, Any], position: str) -> AuthorDetail:
    return AuthorDetail(
        position=position,
        author_position=authorship.get("author_position"),
        name=_dig(authorship, "author", "display_name"),
        id=_dig(authorship, "author", "id"),
        orcid=_dig(authorship, "author", "orcid"),
        institutions=[
            InstitutionRef(
                id=i.get("id"),
                display_name=i.get("display_name"),
                ror=i.get("ror"),
                country_code=i.get("country_code"),
                type=i.get("type"),
            )
            for i in _dicts(authorship.get("institutions"))
        ],
        countries=_list(authorship.get("countries")),
        is_corresponding=authorship.get("is_corresponding"),
        raw_affiliation_strings=_list(authorship.get("raw_affiliation_strings")),
    )


def _location_detail(location: Any) -> LocationDetail | None:
    if not isinstance(location, Mapping):
        return None
    source = _dict(location.get("source"))
    return LocationDetail(
        is_oa=location.get("is_oa"),
        landing_page_url=location.get("landing_page_url"),
        pdf_url=location.get("pdf_url"),
        source=SourceDetail(
            id=source.get("id"),
            display_name=source.get("display_name"),
            issn_l=source.get("issn_l"),
            issn=source.get("issn"),
            type=source.get("type"),
            host_organization=source.get("host_organization_name"),
        ) if source else None,
        license=location.get("license"),
        version=location.get("version"),
    )


def _open_access(work: Mapping[str, Any]) -> OpenAccessInfo:
    return OpenAccessInfo(
        is_oa=_dig(work, "open_access", "is_oa"),
        oa_status=_dig(work, "open_access", "oa_status"),
        oa_url=_dig(work, "open_access", "oa_url"),
    )


# =============================================================================
# Grouped and similarity responses
# =============================================================================
def summarize_groups(response: Mapping[str, Any]) -> GroupedCounts:
    """Flatten a group_by response into {key, display_name, count} rows."""
    return GroupedCounts(
        total_count=_dict(response.get("meta")).get("count"),
        groups=[
            GroupCount(
                key=short_id(str(g["key"])) if g.get("key") is not None else None,
                display_name=g.get("key_display_name"),
                count=g.get("count") or 0,
            )
            for g in _dicts(response.get("group_by"))
        ],
    )


def summarize_similar_results(response: Mapping[str, Any]) -> SimilarWorks:
    """Summarize /find/works results, keeping each similarity score."""
    results = []
    for item in _dicts(response.get("results")):
        if isinstance(item.get("work"), Mapping):
            score, work = item.get("score"), item["work"]
        else:
            score, work = item.get("relevance_score", item.get("score")), item
        results.append(SimilarWork(score=score, work=summarize_work(work)))
    return SimilarWorks(meta=_dict(response.get("meta")), results=results)


# =============================================================================
# Safe access helpers
# =============================================================================
def _dig(obj: Any, *path: str) -> Any:
    """Follow nested keys, returning None as soon as a level is missing."""
    for key in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


def _dict(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _dicts(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _list(value: Any) -> list:
    return list(value) if isinstance(value, list) else []
