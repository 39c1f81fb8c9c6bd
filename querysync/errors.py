"""
Error taxonomy for remote API failures.

The cache itself never inspects these; it stores whatever a fetcher raised.
Consumers check the type to decide between an error banner and a logout.
"""
from typing import Any, Optional


class QuerySyncError(Exception):
    """Base class for errors raised by the transport layer."""
    pass


class NetworkError(QuerySyncError):
    """Raised when a request never reached the server (DNS, timeout, reset)."""
    pass


class RemoteError(QuerySyncError):
    """Raised when the server answered with a failure status or payload."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: str = "HTTP_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status_code={self.status_code!r}, "
            f"code={self.code!r}, message={self.message!r})"
        )


class StaleAuthError(RemoteError):
    """The session token was rejected (HTTP 401); callers should log out."""
    pass
