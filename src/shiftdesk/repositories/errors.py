"""Repository error taxonomy.

Every expected failure of a repository call (transport, HTTP status,
payload shape) is a :class:`RepositoryError`.  The cache core catches only
this family; anything else is a programming error and propagates.
"""

from __future__ import annotations


class RepositoryError(RuntimeError):
    """Base error for failed repository calls."""


class TransportError(RepositoryError):
    """Raised when the request never produced an HTTP response."""


class RequestError(RepositoryError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"API request failed ({status_code}): {message}")


class UnauthorizedError(RequestError):
    """Raised on HTTP 401; the session token is no longer valid."""

    def __init__(self, message: str = "unauthenticated") -> None:
        super().__init__(status_code=401, message=message)


class InvalidPayloadError(RepositoryError):
    """Raised when a response body is not JSON or has an unexpected shape."""
