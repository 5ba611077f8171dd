# =============================================================================
# core/errors.py  —  Exception taxonomy
# =============================================================================
#
# Every failure the server can report falls into one of these classes.  The
# dispatch layer (tools/dispatch.py) turns them into error-flagged tool
# results; nothing here knows about MCP.
#
#   OpenAlexError
#   ├── ConfigurationError           bad env values, missing API key
#   ├── InvalidIdentifierError       identifier cannot be made path-safe
#   ├── AbstractReconstructionError  inverted index is inconsistent
#   ├── ToolValidationError          tool arguments violate the input shape
#   ├── RetryExhaustedError          every attempt failed
#   └── UpstreamError                OpenAlex answered with an error status
#       ├── NotFoundError            404
#       ├── RateLimitError           429
#       └── TransientUpstreamError   5xx, 408 and network failures
# =============================================================================


class OpenAlexError(Exception):
    """Base exception for the OpenAlex MCP server."""
    pass


class ConfigurationError(OpenAlexError):
    """Raised when settings are missing or malformed."""
    pass


class InvalidIdentifierError(OpenAlexError, ValueError):
    """Raised when an entity identifier cannot be turned into a safe path segment."""
    pass


class AbstractReconstructionError(OpenAlexError, ValueError):
    """Raised when an abstract inverted index cannot be laid out positionally."""
    pass


class ToolValidationError(OpenAlexError):
    """Raised when tool arguments fail validation.

    Carries every violation, not just the first one, so the caller can fix
    all of them in a single retry.
    """

    def __init__(self, tool: str, violations: list[str]):
        self.tool = tool
        self.violations = violations
        super().__init__(f"Validation error for {tool}: {', '.join(violations)}")


class UpstreamError(OpenAlexError):
    """Raised when OpenAlex answers with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(UpstreamError):
    """The requested entity does not exist upstream (HTTP 404)."""
    pass


class RateLimitError(UpstreamError):
    """OpenAlex is throttling this client (HTTP 429)."""

    def __init__(self, message: str = "Rate limit exceeded. Please wait before making more requests."):
        super().__init__(message, status_code=429)


class TransientUpstreamError(UpstreamError):
    """A failure worth retrying: server errors, timeouts, dropped connections."""
    pass


class RetryExhaustedError(OpenAlexError):
    """Raised when an upstream call failed on every allowed attempt."""

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{operation} failed after {attempts} attempts: {last_error}")

    @property
    def rate_limited(self) -> bool:
        """True when the final failure was throttling rather than unreachability."""
        return isinstance(self.last_error, RateLimitError)
