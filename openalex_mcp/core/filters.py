# =============================================================================
# core/filters.py  —  Filter Normalizer
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Tools accept friendly parameter names (from_year, is_oa, institution, ...).
#   OpenAlex accepts exactly one `filter` query parameter written as
#   comma-joined `key:value` pairs.  This module translates the former into
#   the latter.
#
# YEAR BOUNDS:
#   OpenAlex has one publication_year key, so the two year bounds MUST be
#   folded into one expression.  Writing them separately would let the second
#   assignment silently replace the first.
#
#     from + to   ->  publication_year:2020-2023
#     from only   ->  publication_year:>2019     (inclusive of 2020)
#     to only     ->  publication_year:<2024     (inclusive of 2023)
#
# SORT:
#   OpenAlex sorts ascending when no direction is given; every tool here wants
#   "most X first", so bare field names get an explicit :desc.
#
# Nothing in this module raises.  Malformed input is rejected earlier by the
# tool schemas (tools/schemas.py); unknown parameters are simply ignored.
# =============================================================================

from typing import Any, Mapping

FilterValue = str | int | bool
FilterSet = dict[str, FilterValue]


# Tool parameter -> OpenAlex filter key, copied verbatim when present.
_PASS_THROUGH_FILTERS: dict[str, str] = {
    "cited_by_count": "cited_by_count",
    "is_oa": "is_oa",
    "type": "type",
    "works_count": "works_count",
    "country_code": "country_code",
    "institution": "institutions.display_name",
}


def year_filter(from_year: int | None, to_year: int | None) -> str | None:
    """Fold two optional year bounds into a single publication_year expression."""
    if from_year is not None and to_year is not None:
        return f"{from_year}-{to_year}"
    if from_year is not None:
        return f">{from_year - 1}"
    if to_year is not None:
        return f"<{to_year + 1}"
    return None


def build_filter(params: Mapping[str, Any]) -> FilterSet:
    """Translate validated tool parameters into an OpenAlex filter set.

    Accepts both naming styles used by the tools: from_publication_year /
    to_publication_year (search_works, find_similar_works) and from_year /
    to_year (everything else).

    Args:
        params: Tool arguments after validation.  Absent parameters may be
                missing or None; both are treated the same way.

    Returns:
        An insertion-ordered dict of filter key -> expression.  Never holds
        None values.
    """
    filter_set: FilterSet = {}

    from_year = _first_present(params, "from_publication_year", "from_year")
    to_year = _first_present(params, "to_publication_year", "to_year")
    years = year_filter(from_year, to_year)
    if years is not None:
        filter_set["publication_year"] = years

    for param_name, filter_key in _PASS_THROUGH_FILTERS.items():
        value = params.get(param_name)
        if value is None or value == "":
            continue
        filter_set[filter_key] = value

    return filter_set


def normalize_sort(sort: str | None) -> str | None:
    """Give a bare sort field an explicit descending direction."""
    if not sort:
        return None
    if ":" in sort:
        return sort
    return f"{sort}:desc"


def serialize_filter(filter_set: Mapping[str, FilterValue] | None) -> str | None:
    """Render a filter set as OpenAlex's `key:value,key:value` string."""
    if not filter_set:
        return None
    return ",".join(f"{key}:{_format_value(value)}" for key, value in filter_set.items())


def _format_value(value: FilterValue) -> str:
    # OpenAlex expects lower-case booleans; str(True) would give "True".
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _first_present(params: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = params.get(name)
        if value is not None:
            return value
    return None
