"""Shared worker pool that resolves a document's image references concurrently."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote

from ..models import ReferenceMatch, ReplacementSpan
from .image_cache import ImageCache
from .splicer import sort_spans

logger = logging.getLogger('paper_dump.exporters.image_pool')


class ImagePool:
    """
    Fans image references out to a fixed-size thread pool and joins on the results.

    One instance is shared by every document worker; ``submit`` on the
    underlying executor is thread-safe, so no extra locking is needed.
    """

    def __init__(self, image_cache: ImageCache, max_workers: int = 10):
        """
        Initialize the image pool.

        Args:
            image_cache: Cache every reference is resolved through
            max_workers: Number of concurrent image downloads across all documents
        """
        self.image_cache = image_cache
        self.max_workers = max_workers
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='image'
        )

    def resolve_all(
        self,
        matches: Sequence[ReferenceMatch],
        log=None
    ) -> Tuple[List[ReplacementSpan], int]:
        """
        Resolve every match and wait until all of them have finished.

        Failed references are logged to ``log`` and left out of the result,
        so their original bytes stay in the document.

        Args:
            matches: Image references of one document
            log: Per-document log sink

        Returns:
            Tuple of (spans sorted by start offset, number of references attempted)
        """
        log = log or logger
        future_to_match = {
            self.executor.submit(self._resolve_one, match, log): match
            for match in matches
        }

        spans = []
        for future in as_completed(future_to_match):
            match = future_to_match[future]
            try:
                spans.append(future.result())
            except Exception as e:
                log.warning("failed to fetch image %s: %s", match.target_locator, e)

        # Completion order is arbitrary; splicing needs ascending offsets
        return sort_spans(spans), len(future_to_match)

    def _resolve_one(self, match: ReferenceMatch, log) -> ReplacementSpan:
        entry = self.image_cache.resolve(match.target_locator, log=log)
        return ReplacementSpan(
            start=match.start,
            end=match.end,
            replacement=rewrite_src(match, entry.cache_path),
        )

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)

    def __enter__(self) -> 'ImagePool':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


def rewrite_src(match: ReferenceMatch, cache_path: str) -> bytes:
    """Return the tag bytes of ``match`` with its ``src`` value pointing at ``cache_path``."""
    tag = match.matched_text.encode('utf-8')
    new_src = quote(cache_path, safe='/').encode('ascii')
    return tag[:match.locator_start] + new_src + tag[match.locator_end:]
