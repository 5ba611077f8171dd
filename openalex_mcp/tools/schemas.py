# =============================================================================
# tools/schemas.py  —  Tool input shapes
# =============================================================================
#
# One pydantic model per tool.  Arguments arrive from the protocol as an
# untyped JSON object; validate_arguments() checks the whole object against
# the tool's model and either returns the typed model or raises
# ToolValidationError listing EVERY violated field, e.g.
#
#   Validation error for compare_research_areas:
#       topics: List should have at least 2 items after validation, not 1,
#       from_year: Input should be greater than 0
#
# Nothing past this module sees an unvalidated argument.
#
# SHARED CONSTRAINTS:
#   per_page        1..200
#   topics          2..5 non-empty strings
#   entity_type     one of the seven OpenAlex entity kinds
#   other integers  positive
#
# Unknown keys are ignored.  Strict mode keeps "5" from passing as 5.
# =============================================================================

from typing import Annotated, Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from openalex_mcp.core.errors import ToolValidationError

PositiveInt = Annotated[int, Field(gt=0)]
PageSize = Annotated[int, Field(gt=0, le=200)]
NonEmptyStr = Annotated[str, Field(min_length=1)]
EntityType = Literal["works", "authors", "institutions", "sources", "topics", "publishers", "funders"]


class ToolInput(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")


# --- Works ------------------------------------------------------------------
class SearchWorksInput(ToolInput):
    query: Optional[str] = None
    from_publication_year: Optional[PositiveInt] = None
    to_publication_year: Optional[PositiveInt] = None
    cited_by_count: Optional[str] = None        # e.g. ">100"
    is_oa: Optional[bool] = None
    type: Optional[str] = None
    sort: Optional[str] = None
    page: Optional[PositiveInt] = None
    per_page: Optional[PageSize] = None


class GetWorkInput(ToolInput):
    id: NonEmptyStr


class GetRelatedWorksInput(ToolInput):
    id: NonEmptyStr
    per_page: Optional[PageSize] = None


class SearchByTopicInput(ToolInput):
    topic: NonEmptyStr
    from_year: Optional[PositiveInt] = None
    to_year: Optional[PositiveInt] = None
    sort: Optional[str] = None
    per_page: Optional[PageSize] = None


class AutocompleteSearchInput(ToolInput):
    query: NonEmptyStr
    entity_type: EntityType


class FindSimilarWorksInput(ToolInput):
    query: Annotated[str, Field(min_length=1, max_length=10000)]
    count: Optional[Annotated[int, Field(gt=0, le=100)]] = None
    from_publication_year: Optional[PositiveInt] = None
    to_publication_year: Optional[PositiveInt] = None
    is_oa: Optional[bool] = None


# --- Citations --------------------------------------------------------------
class GetWorkCitationsInput(ToolInput):
    id: NonEmptyStr
    page: Optional[PositiveInt] = None
    per_page: Optional[PageSize] = None
    sort: Optional[str] = None


class GetWorkReferencesInput(ToolInput):
    id: NonEmptyStr


class GetCitationNetworkInput(ToolInput):
    id: NonEmptyStr
    max_citing: Optional[PageSize] = None
    max_references: Optional[PageSize] = None


class GetTopCitedWorksInput(ToolInput):
    query: Optional[str] = None
    topic: Optional[str] = None
    from_year: Optional[PositiveInt] = None
    to_year: Optional[PositiveInt] = None
    min_citations: Optional[Annotated[int, Field(ge=0)]] = None    # 0 disables the floor
    per_page: Optional[PageSize] = None


# --- Authors & institutions -------------------------------------------------
class SearchAuthorsInput(ToolInput):
    query: Optional[str] = None
    works_count: Optional[str] = None
    cited_by_count: Optional[str] = None
    institution: Optional[str] = None
    per_page: Optional[PageSize] = None


class GetAuthorWorksInput(ToolInput):
    author_id: NonEmptyStr
    from_year: Optional[PositiveInt] = None
    to_year: Optional[PositiveInt] = None
    sort: Optional[str] = None
    per_page: Optional[PageSize] = None


class GetAuthorCollaboratorsInput(ToolInput):
    author_id: NonEmptyStr
    min_collaborations: Optional[PositiveInt] = None


class SearchInstitutionsInput(ToolInput):
    query: Optional[str] = None
    country_code: Optional[Annotated[str, Field(min_length=2, max_length=2)]] = None
    type: Optional[str] = None
    works_count: Optional[str] = None
    per_page: Optional[PageSize] = None


class SearchSourcesInput(ToolInput):
    query: Optional[str] = None
    type: Optional[str] = None
    is_oa: Optional[bool] = None
    works_count: Optional[str] = None
    per_page: Optional[PageSize] = None


# --- Research landscape -----------------------------------------------------
class YearRangeQueryInput(ToolInput):
    query: NonEmptyStr
    from_year: Optional[PositiveInt] = None
    to_year: Optional[PositiveInt] = None


class CompareResearchAreasInput(ToolInput):
    topics: Annotated[list[NonEmptyStr], Field(min_length=2, max_length=5)]
    from_year: Optional[PositiveInt] = None
    to_year: Optional[PositiveInt] = None


class GetTrendingTopicsInput(ToolInput):
    min_works: Optional[PositiveInt] = None
    time_period_years: Optional[PositiveInt] = None
    per_page: Optional[PageSize] = None


class GetEntityInput(ToolInput):
    entity_type: EntityType
    id: NonEmptyStr


class HealthCheckInput(ToolInput):
    pass


TOOL_SCHEMAS: dict[str, type[ToolInput]] = {
    "search_works": SearchWorksInput,
    "get_work": GetWorkInput,
    "get_related_works": GetRelatedWorksInput,
    "search_by_topic": SearchByTopicInput,
    "autocomplete_search": AutocompleteSearchInput,
    "find_similar_works": FindSimilarWorksInput,
    "get_work_citations": GetWorkCitationsInput,
    "get_work_references": GetWorkReferencesInput,
    "get_citation_network": GetCitationNetworkInput,
    "get_top_cited_works": GetTopCitedWorksInput,
    "search_authors": SearchAuthorsInput,
    "get_author_works": GetAuthorWorksInput,
    "get_author_collaborators": GetAuthorCollaboratorsInput,
    "search_institutions": SearchInstitutionsInput,
    "analyze_topic_trends": YearRangeQueryInput,
    "compare_research_areas": CompareResearchAreasInput,
    "get_trending_topics": GetTrendingTopicsInput,
    "analyze_geographic_distribution": YearRangeQueryInput,
    "get_entity": GetEntityInput,
    "search_sources": SearchSourcesInput,
    "health_check": HealthCheckInput,
}


def validate_arguments(tool: str, arguments: Mapping[str, Any] | None) -> ToolInput:
    """Validate a raw argument object against the named tool's input model.

    Raises:
        KeyError: unknown tool name.
        ToolValidationError: one entry per violated field, all at once.
    """
    schema = TOOL_SCHEMAS[tool]
    try:
        return schema.model_validate(dict(arguments or {}))
    except ValidationError as e:
        raise ToolValidationError(tool, [_describe(err) for err in e.errors()]) from e


def _describe(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
    return f"{location}: {error.get('msg', 'invalid value')}"
