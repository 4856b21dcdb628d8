"""Bounded retry around a single network operation."""

import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

import requests

from .errors import ApiError, ServiceUnavailableError, TooManyFailuresError, TransientError

logger = logging.getLogger('paper_dump.fetcher')

T = TypeVar('T')

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 3.0


class RetryingFetcher:
    """
    Runs an operation up to ``max_attempts`` times.

    Each attempt ends in exactly one of three ways:

    - success: the result is returned immediately;
    - :class:`ApiError`: logged and re-raised without another attempt;
    - :class:`TransientError` or ``requests.RequestException``: logged, then
      retried after a fixed ``delay_seconds`` pause.

    When every attempt fails transiently :class:`TooManyFailuresError` is raised.
    One diagnostic line is written to ``log`` per failed attempt.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> 'RetryingFetcher':
        retry_config = config.get('retry', {})
        return cls(
            max_attempts=retry_config.get('max_attempts', DEFAULT_MAX_ATTEMPTS),
            delay_seconds=retry_config.get('delay_seconds', DEFAULT_DELAY_SECONDS),
            **kwargs
        )

    def fetch(self, operation: Callable[[], T], log=None) -> T:
        """
        Perform ``operation`` with bounded retry.

        Args:
            operation: Zero-argument callable performing one network request
            log: Logger-like sink for per-attempt diagnostics (defaults to module logger)

        Returns:
            Whatever ``operation`` returns on its first successful attempt

        Raises:
            ApiError: The remote service rejected the request
            TooManyFailuresError: All attempts failed transiently
        """
        log = log or logger
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            suffix = "; retrying" if attempt < self.max_attempts else ""
            try:
                return operation()
            except ApiError as e:
                log.error("API error: %s", e)
                raise
            except ServiceUnavailableError as e:
                last_error = e
                log.warning("HTTP %s%s", e.status_code or 503, suffix)
            except (TransientError, requests.RequestException) as e:
                last_error = e
                log.warning("HTTP transport error: %s%s", e, suffix)

            if attempt < self.max_attempts:
                self._sleep(self.delay_seconds)

        raise TooManyFailuresError(
            f"gave up after {self.max_attempts} failed attempts",
            attempts=self.max_attempts,
            last_error=last_error
        )
