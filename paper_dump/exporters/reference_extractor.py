"""Finds embedded image references in a document's raw HTML bytes."""

import logging
import re
from typing import List

from ..models import ReferenceMatch

logger = logging.getLogger('paper_dump.exporters.reference_extractor')

# <img ...any attributes... src="URL" ...any attributes...>
# Works on bytes so match offsets index the original body directly.
IMG_TAG_PATTERN = re.compile(rb'<img\b[^>]*?\ssrc="(?P<url>[^"]+)"[^>]*>')

INLINE_DATA_PREFIX = 'data:'


class ReferenceExtractor:
    """
    Scans HTML bytes for ``<img src="...">`` tags without parsing the markup.

    Matches are returned left to right with byte offsets into the original
    content. Tags that are not valid UTF-8 are logged and skipped; inline
    ``data:`` images are skipped silently since there is nothing to download.
    """

    def __init__(self, pattern: 're.Pattern[bytes]' = IMG_TAG_PATTERN):
        self.pattern = pattern

    def extract(self, content: bytes, log=None) -> List[ReferenceMatch]:
        """
        Extract image references from ``content``.

        Args:
            content: Raw document bytes
            log: Logger-like sink for per-match diagnostics

        Returns:
            ReferenceMatch list in scan order
        """
        log = log or logger
        matches = []

        for m in self.pattern.finditer(content):
            tag_bytes = m.group(0)
            try:
                tag = tag_bytes.decode('utf-8')
            except UnicodeDecodeError as e:
                log.warning("non-UTF8 image tag at bytes %d-%d: %s", m.start(), m.end(), e)
                continue

            url = m.group('url').decode('utf-8')
            if url.startswith(INLINE_DATA_PREFIX):
                continue

            matches.append(ReferenceMatch(
                start=m.start(),
                end=m.end(),
                matched_text=tag,
                target_locator=url,
                locator_start=m.start('url') - m.start(),
                locator_end=m.end('url') - m.start(),
            ))

        return matches
