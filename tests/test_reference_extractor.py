"""Tests for image reference extraction from raw HTML bytes."""

import unittest

from paper_dump.exporters.reference_extractor import ReferenceExtractor
from paper_dump.logger import DocumentLog


class TestReferenceExtractor(unittest.TestCase):
    def setUp(self):
        self.extractor = ReferenceExtractor()
        self.log = DocumentLog("unit")

    def test_simple_tag_byte_range(self):
        content = b'<p>before</p><img src="https://img.example.com/a.png"><p>after</p>'
        matches = self.extractor.extract(content, log=self.log)

        self.assertEqual(len(matches), 1)
        match = matches[0]
        self.assertEqual(content[match.start:match.end], b'<img src="https://img.example.com/a.png">')
        self.assertEqual(match.target_locator, "https://img.example.com/a.png")
        self.assertEqual(match.matched_text, '<img src="https://img.example.com/a.png">')

    def test_locator_offsets_are_relative_to_tag(self):
        content = b'xx<img class="c" src="http://h/i.gif" alt="i">'
        match = self.extractor.extract(content)[0]
        tag = content[match.start:match.end]
        self.assertEqual(tag[match.locator_start:match.locator_end], b"http://h/i.gif")

    def test_attributes_before_and_after_src(self):
        content = (
            b'<img class="photo" width="200" data-id="7" '
            b'src="https://img.example.com/b.jpg" alt="a picture" title="t">'
        )
        matches = self.extractor.extract(content)
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].target_locator, "https://img.example.com/b.jpg")
        self.assertEqual((matches[0].start, matches[0].end), (0, len(content)))

    def test_inline_data_images_are_skipped(self):
        content = b'<img src="data:image/png;base64,iVBORw0KGgo="><img src="https://h/x.png">'
        matches = self.extractor.extract(content, log=self.log)
        self.assertEqual([m.target_locator for m in matches], ["https://h/x.png"])
        self.assertEqual(self.log.messages, [])

    def test_non_utf8_tag_is_logged_and_skipped(self):
        content = (
            b'<img src="https://h/one.png">'
            b'<img alt="\xff\xfe" src="https://h/bad.png">'
            b'<img src="https://h/two.png">'
        )
        matches = self.extractor.extract(content, log=self.log)

        self.assertEqual([m.target_locator for m in matches], ["https://h/one.png", "https://h/two.png"])
        self.assertEqual(len(self.log.messages), 1)
        self.assertIn("non-UTF8 image tag", self.log.messages[0])

    def test_matches_in_scan_order(self):
        content = b''.join(
            b'<p>%d</p><img src="https://h/%d.png">' % (i, i) for i in range(5)
        )
        matches = self.extractor.extract(content)
        starts = [m.start for m in matches]
        self.assertEqual(starts, sorted(starts))
        self.assertEqual([m.target_locator for m in matches], [f"https://h/{i}.png" for i in range(5)])
        for earlier, later in zip(matches, matches[1:]):
            self.assertLessEqual(earlier.end, later.start)

    def test_offsets_count_bytes_not_characters(self):
        prefix = "<p>café ☕</p>".encode('utf-8')
        content = prefix + b'<img src="https://h/c.png">'
        match = self.extractor.extract(content)[0]
        self.assertEqual(match.start, len(prefix))
        self.assertEqual(match.end, len(content))

    def test_ignores_lookalike_attributes_and_tags(self):
        content = (
            b'<img data-src="https://h/lazy.png">'
            b'<imgx src="https://h/not-img.png">'
            b'<a src="https://h/anchor.png">'
        )
        self.assertEqual(self.extractor.extract(content), [])

    def test_no_images(self):
        self.assertEqual(self.extractor.extract(b"<p>plain text</p>"), [])
        self.assertEqual(self.extractor.extract(b""), [])

    def test_unterminated_tag_does_not_match(self):
        self.assertEqual(self.extractor.extract(b'<img src="https://h/a.png"'), [])


if __name__ == '__main__':
    unittest.main()
