"""Exception taxonomy shared by document and image fetches."""


class FetcherError(Exception):
    """Base exception for fetch-related errors."""
    pass


class ApiError(FetcherError):
    """The remote service rejected the request; retrying will not help."""

    def __init__(self, message: str, status_code: int = None, summary: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.summary = summary


class TransientError(FetcherError):
    """Transport or server failure that may succeed on a later attempt."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ServiceUnavailableError(TransientError):
    """Server-side failure whose response body is a large error page and is not logged."""
    pass


class TooManyFailuresError(FetcherError):
    """An operation failed transiently on every allowed attempt."""

    def __init__(self, message: str, attempts: int, last_error: Exception = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    'FetcherError',
    'ApiError',
    'TransientError',
    'ServiceUnavailableError',
    'TooManyFailuresError',
]
