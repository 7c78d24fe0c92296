"""Turn a tagged match into a (file, line, column) location."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import MalformedOutputError
from .escapes import EscapeNormalizer

if TYPE_CHECKING:
    from .tagger import TagIndex, TagRange


@dataclass(frozen=True)
class Location:
    file: str
    line: int
    visible_column: int
    text: str = ""

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.visible_column}"


def locate(
    index: "TagIndex",
    escapes: EscapeNormalizer,
    match: "TagRange",
    match_text: str = "",
) -> Location:
    """
    Resolve a match range against its nearest preceding file and line tags.

    The column counts visible characters from the end of the line-number tag
    to the start of the match, so the separator after the line number makes
    it 1-based and escape sequences never count.

    Raises:
        MalformedOutputError: the match has no file or line context, or the
            line payload is not a positive integer.
    """
    file_tag = index.preceding("file", match.start)
    if file_tag is None:
        raise MalformedOutputError("match has no preceding file header")
    line_tag = index.preceding("line", match.start)
    if line_tag is None:
        raise MalformedOutputError("match has no preceding line number")
    try:
        line = int(line_tag.payload)
    except ValueError:
        raise MalformedOutputError(f"invalid line number: {line_tag.payload!r}")
    if line < 1:
        raise MalformedOutputError(f"invalid line number: {line}")

    column = escapes.visible_distance(line_tag.end, match.start)
    return Location(file=file_tag.payload, line=line, visible_column=column, text=match_text)
