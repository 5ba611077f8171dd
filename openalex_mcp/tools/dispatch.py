# =============================================================================
# tools/dispatch.py  —  Tool Dispatch (name + arguments -> JSON text)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Routes a tool call to its core/research.py operation and turns whatever
#   happens into a ToolResult:
#
#     ToolDispatcher.call(name, arguments)
#        1. look up the tool              unknown name     -> error result
#        2. validate_arguments()          any violation    -> error result
#        3. run the handler               any exception    -> error result
#        4. asdict() + json.dumps(indent=2)                -> ToolResult
#
# APPLICATION CONTEXT:
#   AppContext bundles the Settings and the one OpenAlexClient.  It is built
#   once at startup (mcp_server.main) and handed in explicitly, so every test
#   can build a fresh one around an httpx.MockTransport.
#
# ERROR PAYLOAD:
#   {
#     "success": false,
#     "error": "<message>",
#     "details": {
#       "tool": "<tool name>",
#       "error": "<message>",
#       "timestamp": "<ISO-8601, UTC>",
#       "type": "<exception class>",
#       "rate_limited": true,            # only when throttling caused it
#       "stack": ["<last three traceback lines>"]
#     }
#   }
# =============================================================================

from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime, timezone
import json
import logging
import traceback
from typing import Any, Awaitable, Callable, Mapping

from openalex_mcp.core import research
from openalex_mcp.core.client import OpenAlexClient
from openalex_mcp.core.config import Settings
from openalex_mcp.core.errors import RateLimitError, RetryExhaustedError
from openalex_mcp.tools.schemas import ToolInput, validate_arguments

logger = logging.getLogger(__name__)

STACK_LINES = 3


@dataclass
class AppContext:
    """Process-wide state shared by every tool call."""

    settings: Settings
    client: OpenAlexClient

    @classmethod
    def create(cls, settings: Settings, **client_kwargs: Any) -> "AppContext":
        return cls(settings=settings, client=OpenAlexClient(settings, **client_kwargs))

    async def aclose(self) -> None:
        await self.client.aclose()


@dataclass
class ToolResult:
    text: str                   # JSON document, indent=2
    is_error: bool = False


Handler = Callable[[AppContext, dict[str, Any]], Awaitable[Any]]


# =============================================================================
# Handlers: one per tool, arguments already validated
# =============================================================================
async def _health_check(ctx: AppContext, args: dict[str, Any]) -> dict:
    report = {"status": "healthy", "timestamp": _now()}
    report.update(ctx.settings.describe())
    report["cache"]["size"] = ctx.client.cache_size()
    return report


async def _compare_research_areas(ctx: AppContext, args: dict[str, Any]) -> dict:
    return {"comparisons": await research.compare_research_areas(ctx.client, **args)}


def _entity_search(entity_type: str) -> Handler:
    async def handler(ctx: AppContext, args: dict[str, Any]) -> Any:
        return await research.search_entities(ctx.client, entity_type, **args)
    return handler


def _research_call(operation: Callable[..., Awaitable[Any]]) -> Handler:
    async def handler(ctx: AppContext, args: dict[str, Any]) -> Any:
        return await operation(ctx.client, **args)
    return handler


HANDLERS: dict[str, Handler] = {
    "search_works": _research_call(research.search_works),
    "get_work": _research_call(research.get_work),
    "get_related_works": _research_call(research.get_related_works),
    "search_by_topic": _research_call(research.search_by_topic),
    "autocomplete_search": _research_call(research.autocomplete),
    "find_similar_works": _research_call(research.find_similar_works),
    "get_work_citations": _research_call(research.get_work_citations),
    "get_work_references": _research_call(research.get_work_references),
    "get_citation_network": _research_call(research.get_citation_network),
    "get_top_cited_works": _research_call(research.get_top_cited_works),
    "search_authors": _entity_search("authors"),
    "get_author_works": _research_call(research.get_author_works),
    "get_author_collaborators": _research_call(research.get_author_collaborators),
    "search_institutions": _entity_search("institutions"),
    "analyze_topic_trends": _research_call(research.analyze_topic_trends),
    "compare_research_areas": _compare_research_areas,
    "get_trending_topics": _research_call(research.get_trending_topics),
    "analyze_geographic_distribution": _research_call(research.analyze_geographic_distribution),
    "get_entity": _research_call(research.get_entity),
    "search_sources": _entity_search("sources"),
    "health_check": _health_check,
}


# =============================================================================
# Dispatcher
# =============================================================================
class ToolDispatcher:
    """Validate, run and serialize one tool call at a time."""

    def __init__(self, context: AppContext):
        self.context = context

    @property
    def tool_names(self) -> list[str]:
        return list(HANDLERS)

    async def call(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        handler = HANDLERS.get(name)
        if handler is None:
            return error_result(name, ValueError(f"Unknown tool: {name}"))

        try:
            validated = validate_arguments(name, arguments)
            result = await handler(self.context, _present(validated))
        except Exception as e:
            logger.warning(f"{name} failed: {type(e).__name__}: {e}")
            return error_result(name, e)

        return ToolResult(text=json.dumps(to_jsonable(result), indent=2))


def error_result(tool: str, error: Exception) -> ToolResult:
    message = str(error)
    details: dict[str, Any] = {
        "tool": tool,
        "error": message,
        "timestamp": _now(),
        "type": type(error).__name__,
    }
    if isinstance(error, RateLimitError) or (
        isinstance(error, RetryExhaustedError) and error.rate_limited
    ):
        details["rate_limited"] = True
    details["stack"] = _stack_excerpt(error)

    payload = {"success": False, "error": message, "details": details}
    return ToolResult(text=json.dumps(payload, indent=2), is_error=True)


def to_jsonable(value: Any) -> Any:
    """Dataclasses (and lists of them) to plain JSON-ready structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def _present(validated: ToolInput) -> dict[str, Any]:
    """Only the arguments the caller actually supplied."""
    return validated.model_dump(exclude_none=True)


def _stack_excerpt(error: Exception) -> list[str]:
    lines = "".join(traceback.format_exception(type(error), error, error.__traceback__)).splitlines()
    return [line for line in lines if line.strip()][-STACK_LINES:]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
