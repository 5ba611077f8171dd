# =============================================================================
# core/models.py  —  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the SHAPE of everything that crosses a module
# boundary: the options sent upstream, and the projections handed back to the
# assistant.  The tools layer converts them to dicts with asdict() right
# before serializing.
#
# Upstream records themselves stay plain dicts.  OpenAlex objects are large,
# nested and partially populated; the projections below are where we decide
# which fields the assistant actually gets.
#
# CONTEXT BUDGET:
#   Two tiers exist for works.
#     WorkSummary  used by every list-returning tool (bounded size)
#     WorkDetail   used only for single-work lookups (complete)
# =============================================================================

from dataclasses import dataclass, field
from typing import Any, Optional


# -----------------------------------------------------------------------------
# SearchOptions: one list query against /{entity_type}
# -----------------------------------------------------------------------------
# group_by and pagination are mutually exclusive upstream: a grouped response
# carries `group_by` buckets instead of `results`.
# -----------------------------------------------------------------------------
@dataclass
class SearchOptions:
    """Parameters for a list query, before translation to query params."""

    search: Optional[str] = None
    filter: dict[str, Any] = field(default_factory=dict)
    sort: Optional[str] = None          # bare field names become field:desc
    page: Optional[int] = None          # 1-based
    per_page: Optional[int] = None      # capped by Settings.max_page_size
    select: list[str] = field(default_factory=list)
    group_by: Optional[str] = None
    sample: Optional[int] = None
    seed: Optional[int] = None          # makes a sample reproducible


# -----------------------------------------------------------------------------
# Summary tier
# -----------------------------------------------------------------------------
@dataclass
class ListMeta:
    """Paging metadata of a list response."""

    count: Optional[int] = None         # total matches upstream, not len(results)
    page: Optional[int] = None
    per_page: Optional[int] = None


@dataclass
class AuthorSummary:
    name: Optional[str]
    institutions: list[str] = field(default_factory=list)   # at most two names


@dataclass
class TopicSummary:
    display_name: Optional[str]
    field: Optional[str] = None
    subfield: Optional[str] = None


@dataclass
class OpenAccessInfo:
    is_oa: Optional[bool] = None
    oa_status: Optional[str] = None     # gold, green, hybrid, bronze, closed
    oa_url: Optional[str] = None


@dataclass
class WorkSummary:
    """Compact, size-bounded view of a work for list results."""

    id: Optional[str]
    doi: Optional[str]
    title: Optional[str]
    publication_year: Optional[int]
    publication_date: Optional[str]
    cited_by_count: Optional[int]
    type: Optional[str]
    authors: list[AuthorSummary] = field(default_factory=list)
    authors_truncated: bool = False     # True when more than five authors existed
    primary_topic: Optional[TopicSummary] = None
    open_access: OpenAccessInfo = field(default_factory=OpenAccessInfo)
    landing_page_url: Optional[str] = None
    pdf_url: Optional[str] = None
    source: Optional[str] = None        # venue display name
    abstract: Optional[str] = None      # preview, at most 500 chars including "..."


@dataclass
class WorkList:
    """A page of summarized works."""

    meta: ListMeta
    results: list[WorkSummary] = field(default_factory=list)


@dataclass
class EntityList:
    """A page of non-work entities (authors, institutions, sources), as returned upstream."""

    meta: ListMeta
    results: list[dict] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Full-detail tier
# -----------------------------------------------------------------------------
@dataclass
class InstitutionRef:
    id: Optional[str]
    display_name: Optional[str]
    ror: Optional[str] = None
    country_code: Optional[str] = None
    type: Optional[str] = None


@dataclass
class AuthorDetail:
    """One authorship entry with everything needed to spot PIs and contacts."""

    position: str                       # derived: first / middle / last
    author_position: Optional[str]      # as reported upstream
    name: Optional[str]
    id: Optional[str]
    orcid: Optional[str]
    institutions: list[InstitutionRef] = field(default_factory=list)
    countries: list[str] = field(default_factory=list)
    is_corresponding: Optional[bool] = None
    raw_affiliation_strings: list[str] = field(default_factory=list)


@dataclass
class TopicDetail:
    id: Optional[str]
    display_name: Optional[str]
    score: Optional[float] = None
    field: Optional[str] = None
    subfield: Optional[str] = None
    domain: Optional[str] = None


@dataclass
class TopicRef:
    id: Optional[str]
    display_name: Optional[str]
    score: Optional[float] = None


@dataclass
class OpenAccessDetail(OpenAccessInfo):
    any_repository_has_fulltext: Optional[bool] = None


@dataclass
class SourceDetail:
    id: Optional[str]
    display_name: Optional[str]
    issn_l: Optional[str] = None
    issn: Optional[list[str]] = None
    type: Optional[str] = None
    host_organization: Optional[str] = None


@dataclass
class LocationDetail:
    is_oa: Optional[bool]
    landing_page_url: Optional[str]
    pdf_url: Optional[str]
    source: Optional[SourceDetail] = None
    license: Optional[str] = None
    version: Optional[str] = None


@dataclass
class Keyword:
    keyword: Optional[str]
    score: Optional[float] = None


@dataclass
class Grant:
    funder: Optional[str]
    funder_display_name: Optional[str] = None
    award_id: Optional[str] = None


@dataclass
class WorkDetail:
    """Complete view of a single work."""

    id: Optional[str]
    doi: Optional[str]
    title: Optional[str]
    publication_year: Optional[int]
    publication_date: Optional[str]
    cited_by_count: Optional[int]
    type: Optional[str]
    authors: list[AuthorDetail] = field(default_factory=list)
    primary_topic: Optional[TopicDetail] = None
    topics: list[TopicRef] = field(default_factory=list)           # up to five
    open_access: OpenAccessDetail = field(default_factory=OpenAccessDetail)
    landing_page_url: Optional[str] = None
    pdf_url: Optional[str] = None
    primary_location: Optional[LocationDetail] = None
    abstract: Optional[str] = None      # full text, exact word order
    biblio: Optional[dict] = None       # volume / issue / first_page / last_page
    referenced_works_count: Optional[int] = None
    cited_by_percentile_year: Optional[dict] = None
    fwci: Optional[float] = None        # field-weighted citation impact
    keywords: list[Keyword] = field(default_factory=list)          # up to ten
    grants: list[Grant] = field(default_factory=list)              # up to five
    referenced_works: list[str] = field(default_factory=list)
    related_works: list[str] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Grouped and similarity responses
# -----------------------------------------------------------------------------
@dataclass
class GroupCount:
    key: Optional[str]
    display_name: Optional[str]
    count: int = 0


@dataclass
class GroupedCounts:
    """A group_by response: total matches plus one row per bucket."""

    total_count: Optional[int]
    groups: list[GroupCount] = field(default_factory=list)


@dataclass
class SimilarWork:
    score: Optional[float]
    work: WorkSummary


@dataclass
class SimilarWorks:
    meta: dict = field(default_factory=dict)
    results: list[SimilarWork] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Composite results (core/research.py)
# -----------------------------------------------------------------------------
@dataclass
class WorkBrief:
    id: Optional[str]
    title: Optional[str]
    publication_year: Optional[int]
    cited_by_count: Optional[int]


@dataclass
class CitingWorks:
    count: Optional[int]                # total citing works upstream
    works: list[WorkSummary] = field(default_factory=list)


@dataclass
class ReferencedWorks:
    count: int
    work_ids: list[str] = field(default_factory=list)   # ids only, never resolved


@dataclass
class RelatedWorks:
    work_id: str
    requested: int                      # ids we tried to resolve
    related_works: list[WorkSummary] = field(default_factory=list)


@dataclass
class CitationNetwork:
    """Both citation directions around one work."""

    central_work: WorkBrief
    citing_works: CitingWorks
    referenced_works: ReferencedWorks


@dataclass
class Collaborator:
    id: str
    name: str
    count: int                          # co-authored works among those analyzed


@dataclass
class CollaboratorReport:
    author_id: str
    total_works_analyzed: int
    collaborators: list[Collaborator] = field(default_factory=list)


@dataclass
class AreaComparison:
    topic: str
    total_works: Optional[int]


@dataclass
class TrendReport:
    """Works per bucket for a query, e.g. per year or per country."""

    query: Optional[str]
    group_by: str
    total_works: Optional[int]
    groups: list[GroupCount] = field(default_factory=list)
