"""Tests for output file naming, the HTML wrapper and the index page."""

import tempfile
import unittest
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path

from paper_dump.exporters.document_writer import (
    FOOTER,
    DocumentWriter,
    render_header,
    sanitize_filename,
)
from paper_dump.exporters.index_generator import IndexGenerator
from paper_dump.models import ExportRecord, PaperDocument

FIXED_TIME = datetime(2024, 3, 5, 14, 30, 0, tzinfo=timezone.utc)


class TestSanitizeFilename(unittest.TestCase):
    def test_plain_title(self):
        self.assertEqual(sanitize_filename("Meeting notes", "abc"), "Meeting notes (abc).html")

    def test_separators_become_underscores(self):
        self.assertEqual(sanitize_filename("a/b\\c:d", "x"), "a_b_c_d (x).html")

    def test_non_ascii_and_control_characters_dropped(self):
        self.assertEqual(sanitize_filename("Café\tplan\x7f \U0001F600", "x"), "Cafplan (x).html")

    def test_surrounding_whitespace_stripped(self):
        self.assertEqual(sanitize_filename("   spaced   ", "x"), "spaced (x).html")

    def test_unprintable_title(self):
        self.assertEqual(sanitize_filename("日本語", "x"), "(unprintable) (x).html")
        self.assertEqual(sanitize_filename("", "y"), "(unprintable) (y).html")

    def test_same_title_different_ids(self):
        self.assertNotEqual(sanitize_filename("Notes", "a"), sanitize_filename("Notes", "b"))


class TestDocumentWriter(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.writer = DocumentWriter(self.dir)
        self.document = PaperDocument(doc_id="d1", title="Q&A <draft>", owner="ann@example.com")

    def tearDown(self):
        self._tmp.cleanup()

    def test_reserve_is_exclusive(self):
        with self.writer.reserve("doc.html") as reservation:
            reservation.commit(b"first")
        with self.assertRaises(FileExistsError):
            self.writer.reserve("doc.html")
        self.assertEqual((self.dir / "doc.html").read_bytes(), b"first")

    def test_uncommitted_reservation_is_removed(self):
        reservation = self.writer.reserve("doc.html")
        self.assertTrue((self.dir / "doc.html").exists())
        reservation.close()
        self.assertFalse((self.dir / "doc.html").exists())

    def test_reservation_removed_when_body_raises(self):
        with self.assertRaises(RuntimeError):
            with self.writer.reserve("doc.html"):
                raise RuntimeError("boom")
        self.assertFalse((self.dir / "doc.html").exists())

    def test_reserve_in_missing_directory(self):
        writer = DocumentWriter(self.dir / "missing")
        with self.assertRaises(OSError):
            writer.reserve("doc.html")

    def test_header_contents(self):
        header = render_header(self.document, FIXED_TIME).decode('utf-8')
        self.assertTrue(header.startswith("<!DOCTYPE html><html><head><title>Q&amp;A &lt;draft&gt;</title>"))
        self.assertIn(f"downloaded on {format_datetime(FIXED_TIME)} from", header)
        self.assertIn('<a href="https://paper.dropbox.com/doc/d1">https://paper.dropbox.com/doc/d1</a>', header)
        self.assertIn("owned by ann@example.com</p>", header)

    def test_assemble_wraps_body(self):
        body = b"<p>hello</p>"
        content = DocumentWriter.assemble(self.document, body, FIXED_TIME)
        self.assertEqual(content, render_header(self.document, FIXED_TIME) + body + FOOTER)

    def test_assemble_keeps_body_bytes_verbatim(self):
        body = b"<p>\xff\xfe not utf-8</p>"
        content = DocumentWriter.assemble(self.document, body, FIXED_TIME)
        self.assertIn(body, content)


class TestIndexGenerator(unittest.TestCase):
    def test_render_links_and_escapes(self):
        records = [
            ExportRecord(
                url="https://paper.dropbox.com/doc/a",
                name="R&D <plan>",
                owner="bob@example.com",
                path="R&D plan (a).html",
            ),
        ]
        page = IndexGenerator(Path(".")).render(records)
        self.assertIn('href="R%26D%20plan%20%28a%29.html"', page)
        self.assertIn(">R&amp;D &lt;plan&gt;</a>", page)
        self.assertIn('<a href="https://paper.dropbox.com/doc/a">link</a>', page)
        self.assertTrue(page.rstrip().endswith("</body></html>"))

    def test_write_preserves_order(self):
        with tempfile.TemporaryDirectory() as tmp:
            records = [
                ExportRecord("https://paper.dropbox.com/doc/1", "Alpha", "o", "Alpha (1).html"),
                ExportRecord("https://paper.dropbox.com/doc/2", "Beta", "o", "Beta (2).html"),
            ]
            path = IndexGenerator(Path(tmp)).write(records)
            page = path.read_text(encoding='utf-8')
            self.assertEqual(path.name, "index.html")
            self.assertLess(page.index("Alpha"), page.index("Beta"))

    def test_empty_index(self):
        page = IndexGenerator(Path(".")).render([])
        self.assertNotIn("<p>", page)


if __name__ == '__main__':
    unittest.main()
