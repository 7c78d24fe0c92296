"""Lazy resolution of match locations into document markers."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from .documents import Document, Marker, Workspace
from .errors import MatchFileNotFoundError
from .locator import Location

if TYPE_CHECKING:
    from .tagger import TagRange

logger = logging.getLogger(__name__)


def marker_offset(document: Document, location: Location) -> int:
    """
    Character offset of ``location`` in ``document``.

    Moves to the start of the target line in the whole text (narrowing is
    ignored), then forward by ``visible_column - 1``. Lines past the end
    clamp to the end of the document and columns past the end of the line
    clamp to the line end. When the text there no longer reads as the match
    (the file changed after the search), the nearest occurrence of the match
    text on the same line wins.
    """
    start = document.line_start(location.line)
    end = document.line_end(location.line)
    offset = min(start + max(location.visible_column - 1, 0), end)

    needle = location.text
    if needle and document.text[offset:offset + len(needle)] != needle:
        column = offset - start
        found = [m.start() for m in re.finditer(re.escape(needle), document.text[start:end])]
        if found:
            offset = start + min(found, key=lambda c: abs(c - column))
    return offset


class MarkerResolver:
    """Creates at most one marker per match, on demand."""

    def __init__(self, workspace: Workspace):
        self.workspace = workspace

    @staticmethod
    def target_path(location: Location, directory: Optional[Union[str, Path]] = None) -> Path:
        path = Path(location.file)
        if directory is not None and not path.is_absolute():
            path = Path(directory) / path
        return path

    def resolve(
        self,
        match: "TagRange",
        location: Location,
        force: bool = False,
        directory: Optional[Union[str, Path]] = None,
    ) -> Optional[Marker]:
        """
        Return the marker for ``match``, creating and caching it if needed.

        Without ``force`` only already open documents are used and ``None``
        means "not resolvable yet". With ``force`` the file is opened from
        disk.

        Raises:
            MatchFileNotFoundError: ``force`` is set and the file is missing.
        """
        cached = match.marker
        if cached is not None and cached.live:
            return cached

        path = self.target_path(location, directory)
        if force:
            try:
                document = self.workspace.open(path)
            except FileNotFoundError:
                raise MatchFileNotFoundError(str(path))
        else:
            document = self.workspace.find(path)
            if document is None:
                return None

        marker = document.create_marker(marker_offset(document, location))
        match.marker = marker
        logger.debug(f"Resolved {location} to {marker!r}")
        return marker
