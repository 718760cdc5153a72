"""Custom exceptions for the page fetcher."""


class FetchError(Exception):
    """Base exception for all fetch errors."""

    def __init__(self, message: str, url: str | None = None, *args, **kwargs):
        self.message = message
        self.url = url
        super().__init__(message, *args, **kwargs)


class FetchTimeoutError(FetchError):
    """Raised when a request exceeds the configured timeout."""

    pass


class HttpStatusError(FetchError):
    """Raised when the server returns a non-2xx response."""

    def __init__(self, message: str, status_code: int, url: str | None = None):
        self.status_code = status_code
        super().__init__(message, url=url)


class TransportError(FetchError):
    """Raised when the request fails below the HTTP layer."""

    def __init__(self, message: str, cause: Exception | None = None, url: str | None = None):
        self.cause = cause
        super().__init__(message, url=url)
