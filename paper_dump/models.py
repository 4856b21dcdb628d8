"""Data models for the Paper export pipeline."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger('paper_dump')

PAPER_DOC_URL = "https://paper.dropbox.com/doc/{doc_id}"


def doc_locator(doc_id: str) -> str:
    """Canonical URL of a Paper doc, used as its registry key."""
    return PAPER_DOC_URL.format(doc_id=doc_id)


class DocumentOutcome(Enum):
    """Terminal states of a single document's export."""
    DONE = "done"
    METADATA_ONLY = "metadata_only"
    SKIPPED_ALREADY_EXPORTED = "skipped_already_exported"
    SKIPPED_ALREADY_ON_DISK = "skipped_already_on_disk"
    FAILED = "failed"


@dataclass
class PaperDocument:
    """A downloaded Paper doc: export metadata plus the raw HTML body."""

    doc_id: str
    title: str
    owner: str
    body: bytes = b""
    revision: Optional[int] = None
    mime_type: Optional[str] = None

    @property
    def url(self) -> str:
        return doc_locator(self.doc_id)


@dataclass
class ExportRecord:
    """Registry entry for a document exported in this or a previous run."""

    url: str
    name: str
    owner: str
    path: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize record to dictionary."""
        return {
            'url': self.url,
            'name': self.name,
            'owner': self.owner,
            'path': self.path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExportRecord':
        """
        Deserialize record from dictionary.

        Raises:
            KeyError: If ``url`` is missing
            TypeError: If any field is present but not a string
        """
        fields = {
            'url': data['url'],
            'name': data.get('name', ''),
            'owner': data.get('owner', ''),
            'path': data.get('path', ''),
        }
        for key, value in fields.items():
            if not isinstance(value, str):
                raise TypeError(f"record field {key!r} must be a string, got {type(value).__name__}")
        return cls(**fields)


@dataclass(frozen=True)
class ReferenceMatch:
    """
    An embedded image tag found in a document body.

    ``start``/``end`` are a half-open byte range over the original body.
    ``locator_start``/``locator_end`` delimit the ``src`` value inside the
    tag bytes, relative to ``start``.
    """

    start: int
    end: int
    matched_text: str
    target_locator: str
    locator_start: int = 0
    locator_end: int = 0


@dataclass(frozen=True)
class ReplacementSpan:
    """Resolved substitution of ``original[start:end]`` by ``replacement``."""

    start: int
    end: int
    replacement: bytes


@dataclass(frozen=True)
class ImageEntry:
    """A cached image: its source URL and its path relative to the output directory."""

    source_locator: str
    cache_path: str
    downloaded: bool = field(default=False, compare=False)
