"""Output file naming, HTML wrapper and non-clobbering writes for exported docs."""

import html
import logging
from datetime import datetime
from email.utils import format_datetime
from pathlib import Path
from typing import BinaryIO, Optional

from ..models import PaperDocument

logger = logging.getLogger('paper_dump.exporters.document_writer')

UNPRINTABLE_TITLE = "(unprintable)"
UNSAFE_CHARS = {'/', '\\', ':'}

FOOTER = b"</body></html>\n"


def sanitize_filename(title: str, doc_id: str) -> str:
    """
    Build the output file name ``<title> (<doc_id>).html``.

    Non-ASCII and control characters are dropped, path separators and ``:``
    become ``_``. The doc id keeps names unique even when titles collide.
    """
    kept = []
    for char in title:
        if not char.isascii() or ord(char) < 0x20 or ord(char) == 0x7f:
            continue
        kept.append('_' if char in UNSAFE_CHARS else char)

    name = ''.join(kept).strip()
    if not name:
        name = UNPRINTABLE_TITLE

    return f"{name} ({doc_id}).html"


def render_header(document: PaperDocument, now: Optional[datetime] = None) -> bytes:
    """HTML prologue recording where and when the doc was exported from."""
    now = now or datetime.now().astimezone()
    title = html.escape(document.title)
    owner = html.escape(document.owner)
    url = html.escape(document.url)
    return (
        f"<!DOCTYPE html><html><head><title>{title}</title></head>"
        f"<body><p>downloaded on {format_datetime(now)} from <a href=\"{url}\">{url}</a><br>\n"
        f"owned by {owner}</p>\n"
    ).encode('utf-8')


class OutputReservation:
    """
    An output file created exclusively and not yet fully written.

    Unless :meth:`commit` succeeds, closing the reservation removes the file,
    so a failed export never leaves an empty or truncated document behind.
    """

    def __init__(self, path: Path, handle: BinaryIO):
        self.path = path
        self.handle = handle
        self.committed = False

    def commit(self, content: bytes) -> None:
        self.handle.write(content)
        self.handle.flush()
        self.committed = True

    def close(self) -> None:
        self.handle.close()
        if not self.committed:
            self.path.unlink(missing_ok=True)

    def __enter__(self) -> 'OutputReservation':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class DocumentWriter:
    """Creates output files under ``output_dir`` without ever overwriting one."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def reserve(self, filename: str) -> OutputReservation:
        """
        Exclusively create ``output_dir/filename``.

        Raises:
            FileExistsError: The document was exported by an earlier run
            OSError: Any other failure creating the file
        """
        path = self.output_dir / filename
        handle = open(path, 'xb')
        return OutputReservation(path, handle)

    @staticmethod
    def assemble(document: PaperDocument, body: bytes, now: Optional[datetime] = None) -> bytes:
        """Wrap the spliced body in the export header and footer."""
        return render_header(document, now) + body + FOOTER
