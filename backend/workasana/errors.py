"""Error taxonomy for remote calls and client-side checks.

Error types:
  ValidationError  → resolved locally, no request is ever sent
  SessionExpired   → authorization rejected (401/403), session already evicted
  RequestFailed    → any other non-2xx or transport failure

A degraded auxiliary resource is not an error; see fetcher.BatchOutcome.
"""

from __future__ import annotations

import httpx

GENERIC_FAILURE_MESSAGE = "Request failed. Please check your connection and try again."

_RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


class WorkasanaError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(WorkasanaError):
    """A required field is missing or malformed before a call is issued."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(message)


class SessionExpired(WorkasanaError):
    """The remote service rejected the credential; the session was evicted."""

    def __init__(self, status_code: int, path: str = "") -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(f"Session expired (HTTP {status_code} on {path or 'request'})")


class RequestFailed(WorkasanaError):
    """Non-authorization failure of a remote call.

    ``message`` is the server-supplied ``{"error": ...}`` text when the
    response carried one, otherwise a generic message.
    """

    def __init__(
        self,
        message: str = GENERIC_FAILURE_MESSAGE,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether re-issuing the same request could plausibly succeed.

        Heuristics:
        - httpx timeouts and transport errors → retryable
        - 429 (rate limit), 502/503/504 → retryable
        - other statuses (400, 404, 500 ...) → not retryable
        """
        if isinstance(self.cause, (httpx.TimeoutException, httpx.TransportError)):
            return True
        if self.status_code is None:
            return self.cause is not None
        return self.status_code in _RETRYABLE_STATUSES

    def __repr__(self) -> str:
        return f"RequestFailed({self.status_code}: {self.message})"
