"""Tests for byte-range splicing."""

import random
import unittest

from paper_dump.exporters.splicer import sort_spans, splice
from paper_dump.models import ReplacementSpan


class TestSplice(unittest.TestCase):
    ORIGINAL = b"0123456789abcdefghij"

    def test_no_spans_returns_original(self):
        self.assertEqual(splice(self.ORIGINAL, []), self.ORIGINAL)

    def test_replaces_middle_span(self):
        result = splice(self.ORIGINAL, [ReplacementSpan(2, 5, b"XYZW")])
        self.assertEqual(result, b"01XYZW56789abcdefghij")

    def test_replaces_at_start_and_end(self):
        spans = [ReplacementSpan(0, 2, b"<"), ReplacementSpan(18, 20, b">")]
        self.assertEqual(splice(self.ORIGINAL, spans), b"<23456789abcdefgh>")

    def test_adjacent_spans(self):
        spans = [ReplacementSpan(0, 3, b"A"), ReplacementSpan(3, 6, b"B")]
        self.assertEqual(splice(self.ORIGINAL, spans), b"AB6789abcdefghij")

    def test_gaps_and_tail_copied_verbatim(self):
        spans = [ReplacementSpan(1, 2, b"-"), ReplacementSpan(10, 11, b"+")]
        self.assertEqual(splice(self.ORIGINAL, spans), b"0-23456789+bcdefghij")

    def test_overlapping_spans_rejected(self):
        spans = [ReplacementSpan(0, 5, b"a"), ReplacementSpan(4, 6, b"b")]
        with self.assertRaises(ValueError):
            splice(self.ORIGINAL, spans)

    def test_unsorted_spans_rejected(self):
        spans = [ReplacementSpan(10, 12, b"a"), ReplacementSpan(0, 2, b"b")]
        with self.assertRaises(ValueError):
            splice(self.ORIGINAL, spans)

    def test_out_of_bounds_span_rejected(self):
        with self.assertRaises(ValueError):
            splice(self.ORIGINAL, [ReplacementSpan(15, 40, b"x")])

    def test_completion_order_does_not_change_output(self):
        spans = [ReplacementSpan(i * 4, i * 4 + 2, b"[%d]" % i) for i in range(5)]
        expected = splice(self.ORIGINAL, spans)

        rng = random.Random(1234)
        for _ in range(20):
            shuffled = spans[:]
            rng.shuffle(shuffled)
            self.assertEqual(splice(self.ORIGINAL, sort_spans(shuffled)), expected)


if __name__ == '__main__':
    unittest.main()
