"""Cursor navigation over the match index of a result view."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .documents import Marker
from .errors import NavigationExhausted, NoMatchAtPosition
from .locator import Location
from .tagger import TagKind, TagRange

if TYPE_CHECKING:
    from .view import ResultView

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Jump:
    match: TagRange
    location: Location
    marker: Marker


class Navigator:
    """
    Moves a cursor over match and file boundaries of one result view.

    Every relative move is "advance n occurrences of a tag kind from a
    position": forward lands on the n-th range starting after the position,
    backward on the n-th range starting before it. From the middle of a
    match the first backward step therefore lands on that match's own start.
    ``last_visited`` is where the host's next-error iteration resumes.
    """

    def __init__(self, view: "ResultView"):
        self.view = view
        self.cursor = 0
        self.last_visited: Optional[int] = None

    def reset(self) -> None:
        self.cursor = 0
        self.last_visited = None

    def _advance(self, kind: TagKind, pos: int, n: int, label: str, at_start_counts: bool = False) -> int:
        tags = self.view.tags
        if n == 0:
            return pos
        if n > 0:
            target = tags.start_after(kind, pos, n, inclusive=at_start_counts and pos == 0)
            if target is None:
                raise NavigationExhausted(f"Moved past last {label}")
        else:
            target = tags.start_before(kind, pos, -n)
            if target is None:
                raise NavigationExhausted(f"Moved back before first {label}")
        self.cursor = target
        return target

    def next_match(self, pos: Optional[int] = None, n: int = 1) -> int:
        return self._advance("match", self.cursor if pos is None else pos, n, "match")

    def previous_match(self, pos: Optional[int] = None, n: int = 1) -> int:
        return self._advance("match", self.cursor if pos is None else pos, -n, "match")

    def next_file(self, pos: Optional[int] = None, n: int = 1) -> int:
        # From position 0, a file range that also starts at 0 counts as one step.
        # Kept for compatibility, though it is likely a bug.
        return self._advance("file", self.cursor if pos is None else pos, n, "file", at_start_counts=True)

    def previous_file(self, pos: Optional[int] = None, n: int = 1) -> int:
        return self._advance("file", self.cursor if pos is None else pos, -n, "file")

    def match_at(self, pos: Optional[int] = None) -> Optional[TagRange]:
        return self.view.tags.at("match", self.cursor if pos is None else pos)

    def current(self) -> Optional[TagRange]:
        return self.match_at(self.cursor)

    def jump_to(self, pos: Optional[int] = None) -> Jump:
        """
        Visit the match containing or starting at ``pos``.

        Raises:
            NoMatchAtPosition: no match covers ``pos``.
            MatchFileNotFoundError: the match's file cannot be opened.
        """
        pos = self.cursor if pos is None else pos
        match = self.match_at(pos)
        if match is None:
            raise NoMatchAtPosition(f"No match at position {pos}")
        location = self.view.locate(match)
        marker = self.view.resolver.resolve(match, location, force=True, directory=self.view.directory)
        self.cursor = match.start
        self.last_visited = match.start
        logger.debug(f"Jumped to {location}")
        return Jump(match, location, marker)

    def next_error(self, n: int = 1, reset: bool = False) -> Jump:
        """Host "next error" entry point: step n matches, then jump there."""
        if reset or self.last_visited is None:
            target = self._advance("match", 0, n, "match") if n != 0 else 0
        else:
            target = self._advance("match", self.last_visited, n, "match")
        return self.jump_to(target)

    def ordinal(self, match: TagRange) -> int:
        return self.view.tags.ordinal("match", match)

    def visit_ordinal(self, ordinal: int) -> Jump:
        matches = self.view.matches
        if not 0 <= ordinal < len(matches):
            raise NoMatchAtPosition(f"No match number {ordinal + 1}")
        return self.jump_to(matches[ordinal].start)
