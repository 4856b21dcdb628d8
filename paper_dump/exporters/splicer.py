"""Byte-range substitution within a document body."""

from typing import Iterable, List

from ..models import ReplacementSpan


def splice(original: bytes, spans: Iterable[ReplacementSpan]) -> bytes:
    """
    Rebuild ``original`` with each span's range replaced by its bytes.

    Spans must be sorted by start and must not overlap; the bytes between
    and after them are copied unchanged.

    Raises:
        ValueError: If spans are unsorted, overlapping or out of bounds
    """
    parts: List[bytes] = []
    last_end = 0

    for span in spans:
        if span.start < last_end:
            raise ValueError(
                f"replacement span {span.start}-{span.end} overlaps or precedes offset {last_end}"
            )
        if span.end < span.start or span.end > len(original):
            raise ValueError(f"replacement span {span.start}-{span.end} is out of bounds")
        parts.append(original[last_end:span.start])
        parts.append(span.replacement)
        last_end = span.end

    parts.append(original[last_end:])
    return b"".join(parts)


def sort_spans(spans: Iterable[ReplacementSpan]) -> List[ReplacementSpan]:
    """Order spans by start offset, as :func:`splice` requires."""
    return sorted(spans, key=lambda span: span.start)
