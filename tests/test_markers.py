from pathlib import Path

import pytest

from rgnav.documents import Document, Workspace
from rgnav.errors import MatchFileNotFoundError
from rgnav.locator import Location
from rgnav.markers import MarkerResolver, marker_offset
from rgnav.tagger import TagRange


def new_match():
    return TagRange("match", 10, 13)


@pytest.fixture
def project(tmp_path):
    (tmp_path / "a.txt").write_text("first\nsecond\nxx foo BARbaz\n")
    return tmp_path


def test_offset_follows_line_and_column():
    doc = Document("a.txt", "first\nsecond\nfoo BARbaz\n")
    offset = marker_offset(doc, Location("a.txt", 3, 5, "BAR"))
    assert doc.text[offset:offset + 3] == "BAR"


def test_offset_realigns_to_nearest_occurrence():
    doc = Document("a.txt", "first\nsecond\nxx foo BARbaz BAR\n")
    offset = marker_offset(doc, Location("a.txt", 3, 5, "BAR"))
    assert offset == doc.text.index("BAR")


def test_offset_clamps_past_end():
    doc = Document("a.txt", "one\ntwo")
    assert marker_offset(doc, Location("a.txt", 40, 1)) == len(doc)
    assert marker_offset(doc, Location("a.txt", 1, 99)) == 3


def test_offset_ignores_narrowing():
    doc = Document("a.txt", "one\ntwo\nthree\n")
    doc.narrow(0, 3)
    offset = marker_offset(doc, Location("a.txt", 3, 2, "hr"))
    assert doc.text[offset:offset + 2] == "hr"


def test_unforced_resolve_needs_open_document(project):
    resolver = MarkerResolver(Workspace())
    match = new_match()
    location = Location("a.txt", 3, 5, "BAR")

    assert resolver.resolve(match, location, directory=project) is None
    assert match.marker is None

    resolver.workspace.open(project / "a.txt")
    marker = resolver.resolve(match, location, directory=project)
    assert marker is match.marker
    assert marker.position() == (3, 8)


def test_forced_resolve_opens_file(project):
    workspace = Workspace()
    resolver = MarkerResolver(workspace)
    marker = resolver.resolve(new_match(), Location("a.txt", 3, 5, "BAR"), force=True, directory=project)

    assert workspace.find(project / "a.txt") is marker.document
    assert marker.document.text[marker.offset:marker.offset + 3] == "BAR"


def test_marker_is_cached(project):
    resolver = MarkerResolver(Workspace())
    match = new_match()
    location = Location("a.txt", 1, 1, "first")

    first = resolver.resolve(match, location, force=True, directory=project)
    second = resolver.resolve(match, location, force=True, directory=project)
    assert first is second


def test_closed_document_gets_fresh_marker(project):
    workspace = Workspace()
    resolver = MarkerResolver(workspace)
    match = new_match()
    location = Location("a.txt", 1, 1, "first")

    first = resolver.resolve(match, location, force=True, directory=project)
    workspace.close(project / "a.txt")
    second = resolver.resolve(match, location, force=True, directory=project)

    assert second is not first
    assert second.live


def test_forced_resolve_missing_file(project):
    resolver = MarkerResolver(Workspace())
    match = new_match()
    with pytest.raises(MatchFileNotFoundError) as exc:
        resolver.resolve(match, Location("gone.txt", 1, 1), force=True, directory=project)

    assert exc.value.path == str(project / "gone.txt")
    assert match.marker is None


def test_target_path():
    assert MarkerResolver.target_path(Location("a.txt", 1, 1), "/src") == Path("/src/a.txt")
    assert MarkerResolver.target_path(Location("/abs/a.txt", 1, 1), "/src") == Path("/abs/a.txt")
