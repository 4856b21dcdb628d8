"""Fetchers package: error taxonomy and bounded retry for network operations."""

from .errors import (
    ApiError,
    FetcherError,
    ServiceUnavailableError,
    TooManyFailuresError,
    TransientError,
)
from .retrying_fetcher import RetryingFetcher

__all__ = [
    'ApiError',
    'FetcherError',
    'ServiceUnavailableError',
    'TooManyFailuresError',
    'TransientError',
    'RetryingFetcher',
]
