"""Errors raised by the backend gateway.

Everything the client raises derives from BackendError, so callers can
fall back with a single ``except BackendError``.
"""


class BackendError(Exception):
    """Base class for backend round-trip failures."""


class UpstreamError(BackendError):
    """Raised when the backend returns a non-200 status."""

    def __init__(self, message: str, status_code: int, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class CircuitOpenError(BackendError):
    """Raised when the circuit breaker is open."""

    pass


class MalformedResponseError(BackendError):
    """Raised when a 200 response does not have the expected shape."""

    pass


class OfflineError(BackendError):
    """Raised by the offline backend for every request."""

    pass
