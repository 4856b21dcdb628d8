"""Structured logging infrastructure with verbosity levels, per-document buffering and progress tracking."""

import copy
import logging
import logging.handlers
import threading
import time
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

import colorlog

LOGGER_NAME = 'paper_dump'
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


def resolve_log_level(verbosity: int = 0, level: Optional[str] = None) -> int:
    """
    Map CLI verbosity or an explicit level name to a logging level.

    An explicit ``level`` wins; otherwise -1 (or lower) is WARNING, 0 is INFO
    and 1 or more is DEBUG.

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    if level:
        level_upper = level.upper()
        if level_upper not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(LOG_LEVELS)}"
            )
        return getattr(logging, level_upper)

    if verbosity >= 1:
        return logging.DEBUG
    if verbosity == 0:
        return logging.INFO
    return logging.WARNING


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the ``paper_dump`` logger hierarchy.

    Safe to call more than once: the CLI calls it before the config is read
    and again once ``logging.file`` and ``logging.level`` are known.

    Args:
        verbosity: Verbosity level (-1=WARNING, 0=INFO, 1+=DEBUG)
        log_file: Optional path to a rotating log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string

    Returns:
        The configured ``paper_dump`` logger
    """
    log_level = resolve_log_level(verbosity, level)
    log_format = log_format or DEFAULT_LOG_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    # Root stays at WARNING to keep requests/urllib3 quiet
    logging.basicConfig(level=logging.WARNING, format=log_format, datefmt=date_format)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    # Replace handlers from an earlier call
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors=LOG_COLORS
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {e}")
        else:
            # No color codes in the file
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")

    logger.debug(f"Log level: {logging.getLevelName(log_level)}")

    return logger


class DocumentLog:
    """
    Buffers the diagnostics of one document and emits them as a single group.

    Documents are exported concurrently; records are held back until
    :meth:`flush` so that the lines of two documents never interleave.
    """

    _flush_lock = threading.Lock()

    def __init__(self, unit_id: str, logger: Optional[logging.Logger] = None):
        self.unit_id = unit_id
        self.logger = logger or logging.getLogger(f'{LOGGER_NAME}.documents')
        self.records: List[Tuple[int, str]] = []

    def log(self, level: int, msg: str, *args: Any) -> None:
        self.records.append((level, msg % args if args else msg))

    def debug(self, msg: str, *args: Any) -> None:
        self.log(logging.DEBUG, msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        self.log(logging.INFO, msg, *args)

    def warning(self, msg: str, *args: Any) -> None:
        self.log(logging.WARNING, msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        self.log(logging.ERROR, msg, *args)

    @property
    def messages(self) -> List[str]:
        return [message for _, message in self.records]

    def flush(self) -> None:
        """Emit all buffered records, tagged with the unit id, as one uninterrupted block."""
        if not self.records:
            return
        with DocumentLog._flush_lock:
            for level, message in self.records:
                self.logger.log(level, "[%s] %s", self.unit_id, message)
        self.records = []


class ProgressTracker:
    """Thread-safe context manager counting per-document outcomes across a run."""

    def __init__(self, total_items: int, item_type: str = "documents"):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process
            item_type: Description of item type (e.g., "documents")
        """
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.outcomes: Counter = Counter()
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)
        self._lock = threading.Lock()

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(
            f"Starting processing of {self.total_items} {self.item_type}"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time
        failed = self.outcomes.get('failed', 0)

        if failed > 0 and failed == self.total_items:
            log_method = self.logger.error
        elif failed > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(f"=== Progress Summary: {self.item_type.upper()} ===")
        log_method(f"Total: {self.total_items}")
        log_method(f"Processed: {self.processed_items}")
        for outcome, count in sorted(self.outcomes.items()):
            log_method(f"{outcome.replace('_', ' ').capitalize()}: {count}")
        log_method(f"Elapsed Time: {self._format_elapsed(elapsed)}")

    def increment(self, outcome: str) -> None:
        """
        Record one finished item.

        Args:
            outcome: Outcome label (e.g. "done", "failed")
        """
        with self._lock:
            self.processed_items += 1
            self.outcomes[outcome] += 1
            processed = self.processed_items

        if processed % 10 == 0 or outcome == 'failed':
            remaining = self.total_items - processed
            self.logger.debug(
                f"Processed {processed}/{self.total_items} {self.item_type} "
                f"({remaining} remaining) - Last: {outcome}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get current progress statistics."""
        elapsed = 0.0 if self.start_time is None else time.time() - self.start_time
        with self._lock:
            stats: Dict[str, Any] = dict(self.outcomes)
            stats['total'] = self.total_items
            stats['processed'] = self.processed_items
        stats['elapsed_time'] = elapsed
        return stats

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60

        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)

    sanitized_config = _sanitize_config(config)

    log_section("Configuration")

    dropbox = sanitized_config.get('dropbox', {})
    logger.info(f"API Base URL: {dropbox.get('api_base_url', 'Not Set')}")
    logger.info("Access Token: ***REDACTED***" if dropbox.get('access_token') else "Access Token: Not Set")
    logger.info(f"Request Timeout: {dropbox.get('timeout')}s")

    export_settings = sanitized_config.get('export', {})
    logger.info(f"Output Directory: {export_settings.get('output_directory')}")
    logger.info(f"Images Directory: {export_settings.get('images_directory')}")
    logger.info(f"Metadata Only: {export_settings.get('metadata_only', False)}")

    concurrency = sanitized_config.get('concurrency', {})
    logger.info(f"Document Workers: {concurrency.get('document_workers')}")
    logger.info(f"Resource Workers: {concurrency.get('resource_workers')}")

    retry = sanitized_config.get('retry', {})
    logger.info(f"Max Attempts: {retry.get('max_attempts')}, Delay: {retry.get('delay_seconds')}s")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sanitized = copy.deepcopy(config)

    sensitive_fields = {
        'password', 'secret', 'token', 'api_key', 'auth_header'
    }

    def mask_sensitive(data: Any) -> Any:
        """Recursively mask sensitive fields."""
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str) and value:
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        else:
            return data

    return mask_sensitive(sanitized)


__all__ = [
    'setup_logging',
    'resolve_log_level',
    'DocumentLog',
    'ProgressTracker',
    'log_section',
    'log_config'
]
