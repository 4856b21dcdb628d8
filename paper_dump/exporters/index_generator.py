"""Generates the HTML index page linking every exported doc."""

import html
import logging
from pathlib import Path
from typing import Iterable
from urllib.parse import quote

from ..models import ExportRecord

logger = logging.getLogger('paper_dump.exporters.index_generator')


class IndexGenerator:
    """Writes ``index.html`` listing exported docs with title, owner and source link."""

    def __init__(self, output_dir: Path, index_file: str = 'index.html'):
        self.output_dir = Path(output_dir)
        self.index_path = self.output_dir / index_file

    def render(self, records: Iterable[ExportRecord]) -> str:
        lines = ["<html><head><title>Paper Doc Index</title></head><body>"]
        for record in records:
            lines.append(
                '<p><a href="{href}">{name}</a><br><small>{owner}</small> &middot; '
                '<small><a href="{url}">link</a></small>'.format(
                    href=quote(record.path, safe=''),
                    name=html.escape(record.name),
                    owner=html.escape(record.owner),
                    url=html.escape(record.url),
                )
            )
        lines.append("</body></html>")
        return "\n".join(lines) + "\n"

    def write(self, records: Iterable[ExportRecord]) -> Path:
        """Regenerate the index page; it is rebuilt on every run, unlike doc files."""
        self.index_path.write_text(self.render(records), encoding='utf-8')
        logger.info(f"Index written to {self.index_path}")
        return self.index_path
