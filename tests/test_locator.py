import unittest

from rgnav.errors import MalformedOutputError
from rgnav.escapes import EscapeNormalizer
from rgnav.locator import Location, locate
from rgnav.tagger import TagIndex, TagRange
from rgnav.view import ResultView


class TestLocate(unittest.TestCase):
    def test_column_skips_hidden_characters(self):
        view = ResultView()
        view.append("\x1b[35ma.txt\x1b[0m\n")
        view.append("\x1b[32m7\x1b[0m:\x1b[30;43mneedle\x1b[0m\n")

        location = view.locate(view.matches[0])
        self.assertEqual(location, Location("a.txt", 7, 1, "needle"))

    def test_nearest_preceding_context_wins(self):
        view = ResultView()
        view.append("a.txt:1:x\n")
        view.append("b.txt:2:\x1b[30;43mx\x1b[0m\n")
        view.append("5:yy \x1b[30;43mz\x1b[0m\n")

        locations = view.locations()
        self.assertEqual([(l.file, l.line) for l in locations], [("b.txt", 2), ("b.txt", 5)])
        self.assertEqual(locations[1].visible_column, 4)

    def test_str(self):
        self.assertEqual(str(Location("src/a.py", 3, 9)), "src/a.py:3:9")


class TestMalformed(unittest.TestCase):
    def setUp(self):
        self.index = TagIndex()
        self.escapes = EscapeNormalizer()

    def test_missing_file(self):
        self.index.add(TagRange("line", 0, 1, "3"))
        with self.assertRaises(MalformedOutputError):
            locate(self.index, self.escapes, TagRange("match", 5, 8))

    def test_missing_line(self):
        self.index.add(TagRange("file", 0, 5, "a.txt"))
        with self.assertRaises(MalformedOutputError):
            locate(self.index, self.escapes, TagRange("match", 8, 9))

    def test_non_numeric_line(self):
        self.index.add(TagRange("file", 0, 5, "a.txt"))
        self.index.add(TagRange("line", 6, 7, "x"))
        with self.assertRaises(MalformedOutputError):
            locate(self.index, self.escapes, TagRange("match", 9, 10))

    def test_line_zero(self):
        self.index.add(TagRange("file", 0, 5, "a.txt"))
        self.index.add(TagRange("line", 6, 7, "0"))
        with self.assertRaises(MalformedOutputError):
            locate(self.index, self.escapes, TagRange("match", 9, 10))

    def test_context_at_match_start_does_not_count(self):
        self.index.add(TagRange("file", 0, 5, "a.txt"))
        self.index.add(TagRange("line", 9, 10, "4"))
        with self.assertRaises(MalformedOutputError):
            locate(self.index, self.escapes, TagRange("match", 9, 10))
