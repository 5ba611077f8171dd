# =============================================================================
# core/identifiers.py  —  Path-safe entity identifiers
# =============================================================================
#
# OpenAlex point lookups put the identifier straight into the URL path:
#
#     GET /works/{id}
#
# Users hand us three kinds of identifier, and two of them contain "/":
#
#   native       W2741809807, A5023888391, orcid:0000-0002-1825-0097
#   DOI          10.1371/journal.pone.0000000   or   doi:10.1371/...
#   URL          https://doi.org/10.1371/...,  https://openalex.org/W123
#
# A bare DOI would otherwise be split at its "/" into two path segments and
# hit the wrong resource; a URL could even replace the whole request target.
# normalize_id() applies one rule per kind:
#
#   URL           -> percent-encoded as ONE segment (quote with safe="")
#   doi:-prefixed -> passed through
#   bare DOI      -> prefixed with "doi:"
#   native        -> passed through
#   anything else containing "/" -> percent-encoded as one segment
#
# Identifiers that cannot be made safe (blank, or dot-segments that a URL
# normalizer would collapse) raise InvalidIdentifierError.
# =============================================================================

import re
from urllib.parse import quote

from openalex_mcp.core.errors import InvalidIdentifierError

OPENALEX_URL_PREFIX = "https://openalex.org/"

_DOI_PATTERN = re.compile(r"^10\.\d{4,9}/\S+$")

# Characters allowed unescaped in pass-through identifiers: every character
# RFC 3986 permits in a path.  Letters, digits and "_.-~" are never escaped
# by quote().
_PASS_THROUGH_SAFE = ":/@!$&'()*+,;="


def classify_id(value: str) -> str:
    """Return "url", "prefixed_doi", "doi" or "native" for an identifier."""
    if value.lower().startswith("http"):
        return "url"
    if value.lower().startswith("doi:"):
        return "prefixed_doi"
    if _DOI_PATTERN.match(value):
        return "doi"
    return "native"


def normalize_id(value: str) -> str:
    """Turn any supported identifier into a single safe URL path segment.

    Raises:
        InvalidIdentifierError: for blank identifiers or ones containing
            "." / ".." path segments.
    """
    if value is None or not str(value).strip():
        raise InvalidIdentifierError("Identifier must be a non-empty string")
    value = str(value).strip()

    kind = classify_id(value)
    if kind == "url":
        return quote(value, safe="")

    if kind == "doi":
        value = f"doi:{value}"
    elif kind == "native" and "/" in value:
        return quote(value, safe="")

    segments = value.split("/")
    if any(segment in (".", "..") for segment in segments):
        raise InvalidIdentifierError(f"Identifier {value!r} contains relative path segments")
    # "?", "#", spaces and "%" would otherwise leak into the query string.
    return quote(value, safe=_PASS_THROUGH_SAFE)


def short_id(value: str | None) -> str | None:
    """Strip the https://openalex.org/ prefix from an OpenAlex id."""
    if not value:
        return value
    if value.startswith(OPENALEX_URL_PREFIX):
        return value[len(OPENALEX_URL_PREFIX):]
    return value
