"""Error taxonomy for NBA News Hub.

Every error carries a short ``classification`` and an HTTP-style ``status`` so
the query surface can report failures without exposing stack detail.
"""

from typing import Any


class NewsHubError(Exception):
    """Base class for all application errors."""

    classification = "server_error"
    status = 500
    retryable = False

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        """Render the error for API consumers."""
        payload: dict[str, Any] = {
            "error": self.message,
            "classification": self.classification,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ClientInputError(NewsHubError):
    """Malformed or missing client input, rejected before any side effect."""

    classification = "invalid_request"
    status = 400


class DuplicateVoteError(ClientInputError):
    """The voter already has a response recorded for the poll."""

    classification = "already_voted"

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["alreadyVoted"] = True
        return payload


class PollNotFoundError(NewsHubError):
    classification = "not_found"
    status = 404


class StoreError(NewsHubError):
    """The cache store could not be read or written."""

    classification = "store_unavailable"
    status = 503
    retryable = True


class PipelineError(NewsHubError):
    """Unexpected failure inside the news pipeline."""

    classification = "pipeline_failed"
    status = 500
    retryable = True
