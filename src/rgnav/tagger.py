"""Incremental classification of streamed ripgrep output into tag ranges."""

from __future__ import annotations

import logging
import re
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Literal, Optional, Tuple

from .errors import MalformedOutputError
from .escapes import EscapeNormalizer, EscapeRun, visible_projection
from .locator import Location, locate

if TYPE_CHECKING:
    from .documents import Marker

logger = logging.getLogger(__name__)


TagKind = Literal["separator", "file", "line", "match"]
TAG_KINDS: Tuple[TagKind, ...] = ("separator", "file", "line", "match")

_SEPARATOR_RE = re.compile(r"\s*--\s*")
# Paths made only of digits are never accepted so that heading-mode lines
# such as "12:foo:3:" stay line-number lines.
_FILE_LINE_RE = re.compile(r"(?!\d+[:-])(.+?)([:-])(\d+)\2")
_LINE_TAIL_RE = re.compile(r"([:-])(\d+)\1")
_LINE_RE = re.compile(r"(\d+)[:-]")


@dataclass(eq=False)
class TagRange:
    """A classified span of the raw buffer.

    ``payload`` holds the decoded file path or line number; it is empty for
    separators and matches. Match ranges cache their resolved marker.
    """
    kind: TagKind
    start: int
    end: int
    payload: str = ""
    marker: Optional["Marker"] = None

    @property
    def key(self) -> Tuple[str, int, int, str]:
        return (self.kind, self.start, self.end, self.payload)

    def contains(self, pos: int) -> bool:
        return self.start <= pos < self.end or pos == self.start


class TagIndex:
    """Tag ranges of one result view, kept sorted per kind."""

    def __init__(self):
        self._ranges: Dict[str, List[TagRange]] = {k: [] for k in TAG_KINDS}
        self._starts: Dict[str, List[int]] = {k: [] for k in TAG_KINDS}

    def clear(self) -> None:
        for kind in TAG_KINDS:
            self._ranges[kind].clear()
            self._starts[kind].clear()

    def add(self, tag: TagRange) -> None:
        starts = self._starts[tag.kind]
        if starts and tag.start < starts[-1]:
            raise ValueError(f"{tag.kind} tag at {tag.start} added out of order")
        self._ranges[tag.kind].append(tag)
        starts.append(tag.start)

    def truncate(self, offset: int) -> List[TagRange]:
        """Remove and return every tag starting at or after ``offset``."""
        removed: List[TagRange] = []
        for kind in TAG_KINDS:
            i = bisect_left(self._starts[kind], offset)
            removed.extend(self._ranges[kind][i:])
            del self._ranges[kind][i:]
            del self._starts[kind][i:]
        return removed

    def ranges(self, kind: TagKind) -> List[TagRange]:
        return list(self._ranges[kind])

    def count(self, kind: TagKind) -> int:
        return len(self._ranges[kind])

    def nth(self, kind: TagKind, i: int) -> TagRange:
        return self._ranges[kind][i]

    def preceding(self, kind: TagKind, pos: int) -> Optional[TagRange]:
        """Nearest range of ``kind`` starting strictly before ``pos``."""
        i = bisect_left(self._starts[kind], pos) - 1
        return self._ranges[kind][i] if i >= 0 else None

    def at(self, kind: TagKind, pos: int) -> Optional[TagRange]:
        """Range of ``kind`` containing or starting at ``pos``."""
        i = bisect_right(self._starts[kind], pos) - 1
        if i < 0:
            return None
        tag = self._ranges[kind][i]
        return tag if tag.contains(pos) else None

    def start_after(self, kind: TagKind, pos: int, n: int = 1, inclusive: bool = False) -> Optional[int]:
        """Start of the n-th range of ``kind`` beginning after ``pos``."""
        starts = self._starts[kind]
        i = (bisect_left(starts, pos) if inclusive else bisect_right(starts, pos)) + n - 1
        return starts[i] if i < len(starts) else None

    def start_before(self, kind: TagKind, pos: int, n: int = 1) -> Optional[int]:
        """Start of the n-th range of ``kind`` beginning before ``pos``."""
        starts = self._starts[kind]
        i = bisect_left(starts, pos) - n
        return starts[i] if i >= 0 else None

    def ordinal(self, kind: TagKind, tag: TagRange) -> int:
        return bisect_left(self._starts[kind], tag.start)

    def snapshot(self) -> List[Tuple[str, int, int, str]]:
        """All tags as plain tuples, ordered by start then kind."""
        tags = [t.key for kind in TAG_KINDS for t in self._ranges[kind]]
        return sorted(tags, key=lambda k: (k[1], TAG_KINDS.index(k[0])))


@dataclass
class _Segment:
    kind: str
    vstart: int
    vend: Optional[int]  # None until the closing escape run has arrived


def _segments(runs: List[EscapeRun], offsets: List[int]) -> List[_Segment]:
    positions = [bisect_left(offsets, run.start) for run in runs]
    segments: List[_Segment] = []
    for i, run in enumerate(runs):
        if run.kind == "reset":
            continue
        vend = positions[i + 1] if i + 1 < len(runs) else None
        segments.append(_Segment(run.kind, positions[i], vend))
    return segments


MatchCallback = Callable[[TagRange, Location], None]


class IncrementalTagger:
    """Classifies the raw buffer line by line as output streams in.

    Lines terminated by a newline are final. The trailing partial line is
    tagged tentatively; its tags are dropped and rebuilt on the next update,
    reusing match objects with unchanged bounds so their markers survive.
    """

    def __init__(self, index: TagIndex, escapes: EscapeNormalizer, on_match: Optional[MatchCallback] = None):
        self.index = index
        self.escapes = escapes
        self.on_match = on_match
        self.final_end = 0

    def reset(self) -> None:
        self.final_end = 0

    def update(self, tail: str, base: int = 0) -> List[TagRange]:
        """
        Tag everything after the last final line and return the new matches.

        Args:
            tail: The buffer from ``base`` to its end. ``base`` must not be
                past ``final_end``; the escape normalizer must already have
                seen the same text.
            base: Buffer offset of ``tail[0]``.
        """
        if base > self.final_end:
            raise ValueError(f"tail starts at {base}, past final line end {self.final_end}")
        removed = self.index.truncate(self.final_end)
        reusable = {(t.start, t.end): t for t in removed if t.kind == "match"}
        if removed:
            logger.debug(f"Re-tagging tentative line at {self.final_end}")

        new_matches: List[TagRange] = []
        end = base + len(tail)
        pos = self.final_end
        while pos < end:
            newline = tail.find("\n", pos - base)
            if newline == -1:
                stable = min(end, self.escapes.stable_end)
                if stable > pos:
                    self._classify_line(tail, base, pos, stable, False, reusable, new_matches)
                break
            newline += base
            self._classify_line(tail, base, pos, newline, True, reusable, new_matches)
            pos = newline + 1
            self.final_end = pos
        return new_matches

    def _classify_line(
        self,
        tail: str,
        base: int,
        start: int,
        end: int,
        complete: bool,
        reusable: Dict[Tuple[int, int], TagRange],
        new_matches: List[TagRange],
    ) -> None:
        if complete and end > start and tail[end - 1 - base] == "\r":
            end -= 1
        runs = self.escapes.runs_in(start, end)
        visible, offsets = visible_projection(tail, start, end, runs, base)
        if not visible:
            return
        segments = _segments(runs, offsets)

        if complete and _SEPARATOR_RE.fullmatch(visible):
            self.index.add(TagRange("separator", start, end))
            return

        line_vend = self._file_and_line(visible, offsets, segments)
        if line_vend is None:
            if complete:
                self._heading(visible, offsets, segments)
            return

        for seg in segments:
            if seg.kind != "background" or seg.vend is None:
                continue
            if seg.vstart < line_vend or seg.vend <= seg.vstart:
                continue
            self._add_match(
                offsets[seg.vstart],
                offsets[seg.vend - 1] + 1,
                visible[seg.vstart:seg.vend],
                reusable,
                new_matches,
            )

    def _file_and_line(self, visible: str, offsets: List[int], segments: List[_Segment]) -> Optional[int]:
        """Tag file/line headers; return the visible index after the line number."""
        first = segments[0] if segments else None
        decorated = (
            first is not None
            and first.kind == "foreground"
            and first.vstart == 0
            and first.vend is not None
            and first.vend > 0
        )
        file_span = None
        digits = None
        if decorated and not visible[:first.vend].isdigit():
            m = _LINE_TAIL_RE.match(visible, first.vend)
            if m:
                file_span = (0, first.vend)
                digits = m.span(2)
        elif not decorated:
            m = _FILE_LINE_RE.match(visible)
            if m:
                file_span = m.span(1)
                digits = m.span(3)
        if file_span is not None:
            self._add(visible, offsets, "file", file_span)
            self._add(visible, offsets, "line", digits)
            return digits[1]

        m = _LINE_RE.match(visible)
        if m:
            self._add(visible, offsets, "line", m.span(1))
            return m.end(1)
        return None

    def _add(self, visible: str, offsets: List[int], kind: TagKind, span: Tuple[int, int]) -> None:
        start, end = span
        self.index.add(TagRange(kind, offsets[start], offsets[end - 1] + 1, visible[start:end]))

    def _heading(self, visible: str, offsets: List[int], segments: List[_Segment]) -> None:
        decorated = [s for s in segments if s.vend is None or s.vend > s.vstart]
        if len(decorated) != 1:
            return
        seg = decorated[0]
        vend = seg.vend if seg.vend is not None else len(visible)
        if seg.kind != "foreground" or seg.vstart != 0 or vend != len(visible):
            return
        self._add(visible, offsets, "file", (0, len(visible)))

    def _add_match(
        self,
        start: int,
        end: int,
        text: str,
        reusable: Dict[Tuple[int, int], TagRange],
        new_matches: List[TagRange],
    ) -> None:
        match = reusable.get((start, end))
        is_new = match is None
        if is_new:
            match = TagRange("match", start, end)
        try:
            location = locate(self.index, self.escapes, match, text)
        except MalformedOutputError as e:
            logger.debug(f"Skipping match at {start}: {e}")
            return
        self.index.add(match)
        if is_new:
            new_matches.append(match)
            if self.on_match is not None:
                self.on_match(match, location)
