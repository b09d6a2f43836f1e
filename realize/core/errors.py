"""Realize Reporter — Error Taxonomy.

Every failure the pipeline surfaces is a ``RealizeError``. ``http_status`` is
the status the HTTP API answers with when the error reaches a route.
"""


class RealizeError(Exception):
    """Base class for all Realize Reporter errors."""

    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(RealizeError):
    """Credentials or settings required for a request are missing."""

    http_status = 500


class AuthenticationError(RealizeError):
    """The OAuth token exchange failed."""

    http_status = 401


class TransportError(RealizeError):
    """The request never produced an HTTP response (DNS, connect, timeout)."""

    http_status = 503

    def __init__(self, message: str, host_not_found: bool = False):
        self.host_not_found = host_not_found
        super().__init__(message)


class RealizeAPIError(RealizeError):
    """Raised when the Realize API answers with a non-2xx status."""

    http_status = 502

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class PayloadTooLargeError(RealizeError):
    """The response body exceeds the configured byte ceiling."""

    http_status = 413

    def __init__(self, message: str, limit_bytes: int, actual_bytes: int | None = None):
        self.limit_bytes = limit_bytes
        self.actual_bytes = actual_bytes
        super().__init__(message)


class ReportValidationError(RealizeError):
    """Report inputs were rejected before any network call."""

    http_status = 400

    def __init__(self, title: str, message: str):
        self.title = title
        super().__init__(message)


class PageOutOfRangeError(ReportValidationError):
    """Requested page lies outside the paginated window."""

    def __init__(self, page: int, max_page: int):
        self.page = page
        self.max_page = max_page
        super().__init__(
            "Page Out Of Range", f"Page {page} is outside the range 1-{max_page}"
        )
