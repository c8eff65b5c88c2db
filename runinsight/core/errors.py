"""Error taxonomy shared by the tool server, the conversation loop and the HTTP API.

Codes:
- INVALID_INPUT: malformed tool arguments or insight request body (never retried)
- UPSTREAM_ERROR: activity source failure (auth, rate limit, network)
- CONNECTION_ERROR: tool server side channel unavailable
- TOOL_NOT_FOUND: tool name not in the registry
- ITERATION_LIMIT: model kept requesting tools past the loop cap
"""


class InsightError(Exception):
    """Base exception for RunInsight errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error message
    """

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)


class ValidationError(InsightError):
    """Raised when input fails validation (hard stop, no retry).

    Attributes:
        field: Name of the offending field, when known
    """

    code = "INVALID_INPUT"

    def __init__(self, message: str, *, field: str | None = None):
        self.field = field
        super().__init__(message)


class UpstreamError(InsightError):
    """Raised when the activity source fails."""

    code = "UPSTREAM_ERROR"


class StravaAPIError(UpstreamError):
    """Strava API failure.

    Attributes:
        status_code: HTTP status returned by Strava, if any
        rate_limited: True when the failure is due to rate limiting
    """

    def __init__(self, message: str, *, status_code: int | None = None, rate_limited: bool = False):
        self.status_code = status_code
        self.rate_limited = rate_limited
        super().__init__(message)


class ToolServerConnectionError(InsightError):
    """Raised when the tool server side channel cannot be established or is lost."""

    code = "CONNECTION_ERROR"


class ToolNotFoundError(InsightError):
    """Raised when a tool name is not registered."""

    code = "TOOL_NOT_FOUND"


class ConversationLimitError(InsightError):
    """Raised when the model keeps requesting tools past the iteration cap."""

    code = "ITERATION_LIMIT"
