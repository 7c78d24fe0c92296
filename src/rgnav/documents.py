"""Live documents and the markers that point into them."""

from __future__ import annotations

import logging
import weakref
from bisect import bisect_right
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class Marker:
    """A position in a document that follows edits made to it.

    A marker dies when its document is closed; ``live`` then turns false
    and the marker must not be reused.
    """

    def __init__(self, document: "Document", offset: int):
        self.document: Optional[Document] = document
        self.offset = offset

    @property
    def live(self) -> bool:
        return self.document is not None and self.document.is_open

    def position(self) -> Tuple[int, int]:
        """1-based (line, column) of the marker in its document."""
        if self.document is None:
            raise ValueError("marker is detached from its document")
        return self.document.position(self.offset)

    def detach(self) -> None:
        self.document = None

    def __repr__(self) -> str:
        where = self.document.path if self.document is not None else "detached"
        return f"<Marker {where}@{self.offset}>"


class Document:
    """Text of an open file, editable in place."""

    def __init__(self, path: Union[str, Path], text: str):
        self.path = Path(path)
        self._text = text
        self.is_open = True
        self.restriction: Optional[Tuple[int, int]] = None
        self._markers: "weakref.WeakSet[Marker]" = weakref.WeakSet()
        self._line_starts: Optional[List[int]] = None

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Document":
        with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
            return cls(path, f.read())

    @property
    def text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def _starts(self) -> List[int]:
        if self._line_starts is None:
            starts = [0]
            pos = self._text.find("\n")
            while pos != -1:
                starts.append(pos + 1)
                pos = self._text.find("\n", pos + 1)
            self._line_starts = starts
        return self._line_starts

    @property
    def line_count(self) -> int:
        return len(self._starts())

    def line_start(self, line: int) -> int:
        """Offset of the start of 1-based ``line``; past the end clamps to EOF.

        Narrowing is ignored: offsets always refer to the whole text.
        """
        starts = self._starts()
        if line < 1:
            return 0
        if line > len(starts):
            return len(self._text)
        return starts[line - 1]

    def line_end(self, line: int) -> int:
        starts = self._starts()
        line = max(line, 1)
        if line > len(starts):
            return len(self._text)
        end = starts[line] - 1 if line < len(starts) else len(self._text)
        if end > starts[line - 1] and self._text[end - 1] == "\r":
            end -= 1
        return end

    def line_text(self, line: int) -> str:
        return self._text[self.line_start(line):self.line_end(line)]

    def position(self, offset: int) -> Tuple[int, int]:
        starts = self._starts()
        i = bisect_right(starts, offset) - 1
        return i + 1, offset - starts[i] + 1

    def create_marker(self, offset: int) -> Marker:
        offset = max(0, min(offset, len(self._text)))
        marker = Marker(self, offset)
        self._markers.add(marker)
        return marker

    def insert(self, offset: int, text: str) -> None:
        """Insert ``text``; markers after ``offset`` move right."""
        self._text = self._text[:offset] + text + self._text[offset:]
        self._line_starts = None
        for marker in self._markers:
            if marker.offset > offset:
                marker.offset += len(text)

    def delete(self, start: int, end: int) -> None:
        """Delete ``[start, end)``; markers inside collapse onto ``start``."""
        self._text = self._text[:start] + self._text[end:]
        self._line_starts = None
        for marker in self._markers:
            if marker.offset >= end:
                marker.offset -= end - start
            elif marker.offset > start:
                marker.offset = start

    def narrow(self, start: int, end: int) -> None:
        self.restriction = (start, end)

    def widen(self) -> None:
        self.restriction = None

    @property
    def accessible_text(self) -> str:
        if self.restriction is None:
            return self._text
        start, end = self.restriction
        return self._text[start:end]

    def close(self) -> None:
        self.is_open = False
        for marker in list(self._markers):
            marker.detach()
        self._markers = weakref.WeakSet()


class Workspace:
    """The set of open documents, keyed by resolved path."""

    def __init__(self):
        self._documents: Dict[Path, Document] = {}

    @staticmethod
    def _key(path: Union[str, Path]) -> Path:
        return Path(path).expanduser().resolve()

    def find(self, path: Union[str, Path]) -> Optional[Document]:
        doc = self._documents.get(self._key(path))
        if doc is not None and not doc.is_open:
            return None
        return doc

    def add(self, document: Document) -> Document:
        self._documents[self._key(document.path)] = document
        return document

    def open(self, path: Union[str, Path]) -> Document:
        """Return the open document for ``path``, loading it from disk if needed.

        Raises:
            FileNotFoundError: the file does not exist.
        """
        doc = self.find(path)
        if doc is not None:
            return doc
        key = self._key(path)
        if not key.is_file():
            raise FileNotFoundError(str(path))
        logger.debug(f"Opening {key}")
        return self.add(Document.load(key))

    def close(self, path: Union[str, Path]) -> None:
        doc = self._documents.pop(self._key(path), None)
        if doc is not None:
            doc.close()
