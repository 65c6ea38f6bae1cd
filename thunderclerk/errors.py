"""Error taxonomy for the extraction pipeline.

Every failure a single action can hit is one of these. Nothing is retried
internally; the action handler (the HTTP layer) decides what the user sees.
"""

from __future__ import annotations


class ThunderClerkError(Exception):
    """Base class for all pipeline errors."""


# ---------------------------------------------------------------------------
# Model call failures (host / network)
# ---------------------------------------------------------------------------


class ModelCallError(ThunderClerkError):
    """The model endpoint could not be reached or did not answer successfully."""


class InvalidHost(ModelCallError):
    """The configured host URL is malformed or uses a scheme other than http(s)."""

    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(f'Invalid Ollama host URL: "{host}". Check the extension settings.')


class ModelTimeout(ModelCallError):
    """The model call exceeded its wait bound."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        super().__init__(f"Ollama request timed out after {seconds:g} seconds.")


class UpstreamError(ModelCallError):
    """The model endpoint answered with a non-success HTTP status.

    ``status_code`` is 0 when the connection itself failed.
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}")


# ---------------------------------------------------------------------------
# Response structure failures
# ---------------------------------------------------------------------------


class ResponseFormatError(ThunderClerkError):
    """The model answered, but no usable JSON payload could be recovered."""


class NoJsonFound(ResponseFormatError):
    def __init__(self, message: str = "No JSON object found in model output") -> None:
        super().__init__(message)


class UnclosedJson(ResponseFormatError):
    def __init__(self, message: str = "Unclosed JSON object in model output") -> None:
        super().__init__(message)


class InvalidJson(ResponseFormatError):
    """A balanced span was found but it does not parse as JSON."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Model returned invalid JSON: {detail}")


# ---------------------------------------------------------------------------
# Semantic / lifecycle failures
# ---------------------------------------------------------------------------


class EmptyResult(ThunderClerkError):
    """Valid payload, but the field the action needs is empty."""


class ActionCancelled(ThunderClerkError):
    """The action was cancelled before its result was consumed."""
