# =============================================================================
# core/config.py  —  Server Settings
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Collects every tunable of the server in one dataclass: the polite-pool
#   identity, paging limits, cache sizing and the retry envelope.
#
# WHERE VALUES COME FROM:
#   Settings.from_env() reads environment variables exactly once, at process
#   start (main.py calls load_dotenv() first, so a .env file works too).
#   Tests construct Settings(...) directly with whatever values they need.
#   There is no hot reload.
#
#   OPENALEX_EMAIL                contact email for the polite pool
#   OPENALEX_API_KEY              premium key (takes precedence over email)
#   OPENALEX_BASE_URL             API root (default https://api.openalex.org)
#   OPENALEX_TIMEOUT              per-request timeout in seconds
#   MCP_DEFAULT_PAGE_SIZE         results per page when a tool gets none
#   MCP_MIN_CITATIONS             citation floor for get_top_cited_works
#   OPENALEX_ENABLE_CACHE         "false" disables the response cache
#   OPENALEX_CACHE_MAX_SIZE       cache capacity (entries)
#   OPENALEX_CACHE_TTL            cache time-to-live in seconds
#   OPENALEX_MAX_RETRIES          attempts per upstream call
#   OPENALEX_RETRY_INITIAL_DELAY  first backoff delay in seconds
#   OPENALEX_RETRY_MAX_DELAY      backoff ceiling in seconds
#   OPENALEX_RETRY_BACKOFF_FACTOR backoff multiplier
#   OPENALEX_MAX_CONCURRENCY      in-flight cap for fan-out loops
# =============================================================================

from dataclasses import dataclass
import os
from typing import Mapping

from openalex_mcp.core.errors import ConfigurationError
from openalex_mcp.core.retry import RetryPolicy


DEFAULT_BASE_URL = "https://api.openalex.org"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class Settings:
    """Everything the server needs to know, read once at startup."""

    # --- Identity ---
    email: str | None = None
    api_key: str | None = None

    # --- Upstream ---
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0

    # --- Paging ---
    default_page_size: int = 10
    max_page_size: int = 200            # OpenAlex hard limit for per_page

    # --- Cache ---
    enable_cache: bool = True
    cache_max_size: int = 1000
    cache_ttl: float = 300.0            # five minutes

    # --- Retry envelope ---
    max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_backoff_factor: float = 2.0

    # --- Tool defaults ---
    min_citations_for_influential: int = 50
    max_concurrent_requests: int = 5

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build Settings from environment variables.

        Args:
            environ: Mapping to read from.  Defaults to os.environ.

        Raises:
            ConfigurationError: if a numeric or boolean variable is malformed.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            email=_str(env, "OPENALEX_EMAIL"),
            api_key=_str(env, "OPENALEX_API_KEY"),
            base_url=_str(env, "OPENALEX_BASE_URL") or DEFAULT_BASE_URL,
            timeout=_float(env, "OPENALEX_TIMEOUT", defaults.timeout),
            default_page_size=_int(env, "MCP_DEFAULT_PAGE_SIZE", defaults.default_page_size),
            enable_cache=_bool(env, "OPENALEX_ENABLE_CACHE", defaults.enable_cache),
            cache_max_size=_int(env, "OPENALEX_CACHE_MAX_SIZE", defaults.cache_max_size),
            cache_ttl=_float(env, "OPENALEX_CACHE_TTL", defaults.cache_ttl),
            max_retries=_int(env, "OPENALEX_MAX_RETRIES", defaults.max_retries),
            retry_initial_delay=_float(env, "OPENALEX_RETRY_INITIAL_DELAY", defaults.retry_initial_delay),
            retry_max_delay=_float(env, "OPENALEX_RETRY_MAX_DELAY", defaults.retry_max_delay),
            retry_backoff_factor=_float(env, "OPENALEX_RETRY_BACKOFF_FACTOR", defaults.retry_backoff_factor),
            min_citations_for_influential=_int(env, "MCP_MIN_CITATIONS", defaults.min_citations_for_influential),
            max_concurrent_requests=_int(env, "OPENALEX_MAX_CONCURRENCY", defaults.max_concurrent_requests),
        )

    def retry_policy(self) -> RetryPolicy:
        """The retry envelope applied to every upstream call."""
        return RetryPolicy(
            max_retries=self.max_retries,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            backoff_factor=self.retry_backoff_factor,
        )

    def describe(self) -> dict:
        """Non-secret view of the settings, used by the health_check tool."""
        return {
            "api": {
                "base_url": self.base_url,
                "timeout_seconds": self.timeout,
                "email_configured": bool(self.email),
                "api_key_configured": bool(self.api_key),
            },
            "cache": {
                "enabled": self.enable_cache,
                "max_size": self.cache_max_size,
                "ttl_seconds": self.cache_ttl,
            },
            "retry": {
                "max_retries": self.max_retries,
                "initial_delay_seconds": self.retry_initial_delay,
                "max_delay_seconds": self.retry_max_delay,
                "backoff_factor": self.retry_backoff_factor,
            },
            "paging": {
                "default_page_size": self.default_page_size,
                "max_page_size": self.max_page_size,
            },
        }


# -----------------------------------------------------------------------------
# Env parsing helpers.  Empty strings count as "unset".
# -----------------------------------------------------------------------------
def _str(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _str(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _str(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _str(env, name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be true or false, got {raw!r}")
