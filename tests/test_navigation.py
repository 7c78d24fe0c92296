import unittest

import pytest

from rgnav.documents import Workspace
from rgnav.errors import MatchFileNotFoundError, NavigationExhausted, NoMatchAtPosition
from rgnav.view import ResultView


OUTPUT = (
    "\x1b[35ma.txt\x1b[0m\n"
    "\x1b[32m1\x1b[0m:\x1b[30;43mfoo\x1b[0m one\n"
    "\x1b[32m3\x1b[0m:two \x1b[30;43mfoo\x1b[0m \x1b[30;43mfoo\x1b[0m\n"
    "\n"
    "\x1b[35mb.txt\x1b[0m\n"
    "\x1b[32m2\x1b[0m:\x1b[30;43mfoo\x1b[0m\n"
)


def make_project(tmp_path):
    (tmp_path / "a.txt").write_text("foo one\nskip\ntwo foo foo\n")
    (tmp_path / "b.txt").write_text("x\nfoo\n")
    view = ResultView(directory=tmp_path)
    view.append(OUTPUT)
    return view


class TestRelativeMoves(unittest.TestCase):
    def setUp(self):
        self.view = ResultView()
        self.view.append(OUTPUT)
        self.nav = self.view.navigator
        self.starts = [m.start for m in self.view.matches]
        self.files = [t.start for t in self.view.tags.ranges("file")]

    def test_next_match_from_start(self):
        self.assertEqual(self.nav.next_match(0), self.starts[0])
        self.assertEqual(self.nav.next_match(0, 3), self.starts[2])
        self.assertEqual(self.nav.cursor, self.starts[2])

    def test_next_match_uses_cursor(self):
        self.nav.next_match(0)
        self.assertEqual(self.nav.next_match(), self.starts[1])

    def test_from_inside_a_match(self):
        inside = self.starts[1] + 1
        self.assertEqual(self.nav.next_match(inside), self.starts[2])
        self.assertEqual(self.nav.previous_match(inside), self.starts[1])

    def test_next_then_previous_returns(self):
        for i, start in enumerate(self.starts):
            for n in range(1, len(self.starts) - i):
                forward = self.nav.next_match(start, n)
                self.assertEqual(self.nav.previous_match(forward, n), start)

    def test_exhaustion(self):
        with self.assertRaisesRegex(NavigationExhausted, "Moved past last match"):
            self.nav.next_match(self.starts[-1])
        with self.assertRaisesRegex(NavigationExhausted, "Moved back before first match"):
            self.nav.previous_match(self.starts[0])
        with self.assertRaisesRegex(NavigationExhausted, "Moved past last file"):
            self.nav.next_file(self.files[-1])
        with self.assertRaisesRegex(NavigationExhausted, "Moved back before first file"):
            self.nav.previous_file(self.files[0])

    def test_failed_move_keeps_cursor(self):
        self.nav.next_match(0, 2)
        with self.assertRaises(NavigationExhausted):
            self.nav.next_match(n=10)
        self.assertEqual(self.nav.cursor, self.starts[1])

    def test_next_file_from_start_with_decorated_header(self):
        self.assertEqual(self.files[0], len("\x1b[35m"))
        self.assertEqual(self.nav.next_file(0), self.files[0])
        self.assertEqual(self.nav.next_file(0, 2), self.files[1])

    def test_next_file_at_buffer_start_is_one_step(self):
        view = ResultView()
        view.append("a.txt:1:\x1b[30;43mx\x1b[0m\nb.txt:1:\x1b[30;43mx\x1b[0m\n")
        files = [t.start for t in view.tags.ranges("file")]
        self.assertEqual(files[0], 0)
        self.assertEqual(view.navigator.next_file(0), 0)
        self.assertEqual(view.navigator.next_file(0, 2), files[1])

    def test_previous_file(self):
        self.assertEqual(self.nav.previous_file(self.starts[-1]), self.files[1])
        self.assertEqual(self.nav.previous_file(self.starts[-1], 2), self.files[0])

    def test_zero_steps_stay_put(self):
        self.assertEqual(self.nav.next_match(7, 0), 7)


def test_jump_to_resolves_and_caches(tmp_path):
    view = make_project(tmp_path)
    match = view.matches[1]

    jump = view.navigator.jump_to(match.start + 1)
    again = view.navigator.jump_to(match.start)

    assert jump.match is match
    assert jump.marker is again.marker
    assert jump.marker.position() == (3, 5)
    assert view.navigator.last_visited == match.start


def test_jump_to_without_match(tmp_path):
    view = make_project(tmp_path)
    with pytest.raises(NoMatchAtPosition):
        view.navigator.jump_to(0)


def test_jump_to_missing_file_leaves_index_usable(tmp_path):
    view = make_project(tmp_path)
    (tmp_path / "b.txt").unlink()

    with pytest.raises(MatchFileNotFoundError):
        view.navigator.jump_to(view.matches[-1].start)
    assert view.navigator.jump_to(view.matches[0].start).location.line == 1


def test_next_error_walks_matches(tmp_path):
    view = make_project(tmp_path)
    nav = view.navigator

    positions = [nav.next_error().marker.position() for _ in range(4)]
    assert positions == [(1, 1), (3, 5), (3, 9), (2, 1)]

    with pytest.raises(NavigationExhausted):
        nav.next_error()
    assert nav.next_error(-1).marker.position() == (3, 9)
    assert nav.next_error(reset=True).marker.position() == (1, 1)


def test_visit_ordinal(tmp_path):
    view = make_project(tmp_path)
    assert view.navigator.visit_ordinal(3).location.file == "b.txt"
    with pytest.raises(NoMatchAtPosition):
        view.navigator.visit_ordinal(4)


def test_eager_marker_for_open_document(tmp_path):
    (tmp_path / "a.txt").write_text("foo one\n")
    workspace = Workspace()
    workspace.open(tmp_path / "a.txt")
    view = ResultView(workspace, directory=tmp_path)

    view.append(OUTPUT)

    a_matches = [m for m in view.matches if view.locate(m).file == "a.txt"]
    b_matches = [m for m in view.matches if view.locate(m).file == "b.txt"]
    assert all(m.marker is not None for m in a_matches)
    assert all(m.marker is None for m in b_matches)


def test_end_to_end_scenario(tmp_path):
    (tmp_path / "a.txt").write_text("first\nsecond\nxx foo BARbaz\n")
    text = "./a.txt:3:foo \x1b[30;43mBAR\x1b[0mbaz\n"

    for split in (5, 17):
        view = ResultView(directory=tmp_path)
        view.append(text[:split])
        view.append(text[split:])

        assert [t.payload for t in view.tags.ranges("file")] == ["./a.txt"]
        assert [t.payload for t in view.tags.ranges("line")] == ["3"]
        assert [view.match_text(m) for m in view.matches] == ["BAR"]

        jump = view.navigator.jump_to(view.matches[0].start)
        document = jump.marker.document
        assert jump.marker.offset == document.text.index("BAR")
