# =============================================================================
# tools/__init__.py
# =============================================================================
# The protocol-facing layer of the OpenAlex MCP server.
#
#   schemas.py     one pydantic input model per tool + aggregated validation
#   dispatch.py    AppContext, ToolDispatcher, error payloads
#   mcp_server.py  FastMCP registration, logging helpers, main()
#
# This layer depends on core/; core/ never imports from here.
# =============================================================================
