"""Error taxonomy shared by the pipeline, the review API, and the Slack surface.

Each error carries the HTTP status it maps to; ``app.py`` registers a single
exception handler that renders ``{"error": <type>, "message": <text>}``.
"""


class DecisionHubError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_type: str = "InternalError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(DecisionHubError):
    """Bad input shape or unknown action. User-fixable."""

    status_code = 400
    error_type = "ValidationError"


class NotFoundError(DecisionHubError):
    """Unknown id."""

    status_code = 404
    error_type = "NotFound"


class InvalidStateError(DecisionHubError):
    """Transition requested out of a terminal state, or lost to a concurrent reviewer."""

    status_code = 409
    error_type = "Conflict"


class UpstreamError(DecisionHubError):
    """An LLM provider or Slack API call failed after retries."""

    status_code = 502
    error_type = "UpstreamError"


class SignatureError(DecisionHubError):
    """Webhook or callback failed signature or freshness verification."""

    status_code = 401
    error_type = "InvalidSignature"
