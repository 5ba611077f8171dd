# =============================================================================
# openalex_mcp/__init__.py
# =============================================================================
# OpenAlex MCP server: exposes the OpenAlex scholarly graph (works, authors,
# institutions, sources, topics, publishers, funders) as MCP tools.
#
# LAYOUT:
#   core/   request translation and resilience (filters, cache, retry,
#           HTTP client, response reshaping, composite research operations)
#   tools/  the protocol-facing layer (input schemas, dispatch, FastMCP wiring)
# =============================================================================

__version__ = "1.0.0"
