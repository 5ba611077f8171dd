# =============================================================================
# main.py  —  Entry Point for the OpenAlex MCP Server
# =============================================================================
#
# HOW TO RUN:
#   uv run python main.py
#
# WHAT HAPPENS:
#   1. Loads a .env file if one exists (OPENALEX_EMAIL, OPENALEX_API_KEY, ...)
#   2. Reads Settings from the environment (openalex_mcp/core/config.py)
#   3. Builds the AppContext: one OpenAlexClient with its cache and retry policy
#   4. Registers every tool with FastMCP and serves MCP over stdio
#
# CONNECTING A CLIENT:
#   Point your MCP client at this script, e.g. in its server config:
#     {"command": "uv", "args": ["run", "python", "main.py"],
#      "env": {"OPENALEX_EMAIL": "you@example.org"}}
# =============================================================================

from dotenv import load_dotenv

# Load environment variables from .env file.  This must happen BEFORE the
# server reads Settings.from_env().
load_dotenv()

from openalex_mcp.tools.mcp_server import main


if __name__ == "__main__":
    main()
