# =============================================================================
# core/__init__.py
# =============================================================================
# This package contains ALL request-translation and resilience logic for the
# OpenAlex MCP server.
#
# ARCHITECTURAL RULE:
#   Nothing in this package imports FastMCP or knows about the MCP protocol.
#   The only outward dependency is httpx (in client.py).  Everything else is
#   plain Python you can import and exercise in a REPL.
#
# MODULES (leaves first):
#   config.py       Settings read once at startup
#   errors.py       Exception taxonomy
#   models.py       Dataclasses for options, projections and composite results
#   filters.py      Tool parameters -> OpenAlex filter grammar
#   cache.py        Bounded, time-expiring response cache
#   identifiers.py  Path-safe entity identifiers
#   retry.py        Capped exponential backoff
#   client.py       OpenAlexClient (cache + retry + identifier safety)
#   reshape.py      Summary and full-detail projections
#   research.py     Composite operations built on the client
# =============================================================================
