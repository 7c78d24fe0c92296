"""The result view: raw search output plus its match index."""

from __future__ import annotations

import logging
from bisect import bisect_right
from pathlib import Path
from typing import List, Optional, Union

from .documents import Marker, Workspace
from .errors import MalformedOutputError
from .escapes import EscapeNormalizer
from .locator import Location, locate
from .markers import MarkerResolver
from .navigation import Navigator
from .tagger import IncrementalTagger, TagIndex, TagRange

logger = logging.getLogger(__name__)


def format_status(match_count: int, returncode: Optional[int]) -> str:
    """User-facing summary of a finished search."""
    noun = "match" if match_count == 1 else "matches"
    if returncode is None:
        return f"Search failed to start with {match_count} {noun}"
    if returncode in (0, 1):
        return f"Search finished with {match_count} {noun}"
    return f"Search failed (exit code {returncode}) with {match_count} {noun}"


class OutputSink:
    """Write handle for one search's output.

    A sink belongs to one generation of its view. Once the view is reset for
    another search the sink is dead and anything written to it is dropped.
    """

    def __init__(self, view: "ResultView", generation: int):
        self.view = view
        self.generation = generation
        self.finished = False

    @property
    def live(self) -> bool:
        return self.view.generation == self.generation and not self.finished

    def write(self, chunk: str) -> List[TagRange]:
        """Append output; return matches tagged for the first time."""
        if not self.live:
            logger.debug(f"Dropping {len(chunk)} chars of stale output")
            return []
        return self.view.append(chunk)

    def finish(self, returncode: Optional[int]) -> Optional[str]:
        """Record process exit and return the status report, if still live."""
        if not self.live:
            return None
        self.finished = True
        self.view.status = format_status(self.view.match_count, returncode)
        self.view.returncode = returncode
        logger.info(self.view.status)
        return self.view.status


class ResultView:
    """
    Owns the raw buffer of one search and everything derived from it.

    The buffer is append-only while a search is live. Only the short tail
    starting at the first non-final line is handed to the escape normalizer
    and the tagger on each append.
    """

    def __init__(self, workspace: Optional[Workspace] = None, directory: Union[str, Path] = "."):
        self.workspace = workspace if workspace is not None else Workspace()
        self.resolver = MarkerResolver(self.workspace)
        self.escapes = EscapeNormalizer()
        self.tags = TagIndex()
        self.tagger = IncrementalTagger(self.tags, self.escapes, on_match=self._eager_marker)
        self.navigator = Navigator(self)
        self.directory = Path(directory)
        self.generation = 0
        self.status: Optional[str] = None
        self.returncode: Optional[int] = None
        self._chunks: List[str] = []
        self._chunk_starts: List[int] = []
        self._length = 0
        self._text_cache: Optional[str] = ""
        self._tail = ""
        self._tail_base = 0

    @property
    def text(self) -> str:
        if self._text_cache is None:
            self._text_cache = "".join(self._chunks)
            self._chunks = [self._text_cache]
            self._chunk_starts = [0]
        return self._text_cache

    def __len__(self) -> int:
        return self._length

    def slice(self, start: int, end: int) -> str:
        """``text[start:end]`` without joining the whole buffer."""
        start = max(start, 0)
        end = min(end, self._length)
        if start >= end:
            return ""
        i = bisect_right(self._chunk_starts, start) - 1
        parts = []
        while i < len(self._chunks) and self._chunk_starts[i] < end:
            offset = self._chunk_starts[i]
            parts.append(self._chunks[i][max(0, start - offset):end - offset])
            i += 1
        return "".join(parts)

    def line_after(self, pos: int, limit: int = 4096) -> str:
        """Raw text from ``pos`` up to the end of its line."""
        return self.slice(pos, pos + limit).split("\n", 1)[0]

    def reset(self, directory: Optional[Union[str, Path]] = None) -> None:
        """Discard the buffer and every tag; kills all outstanding sinks."""
        self.generation += 1
        if directory is not None:
            self.directory = Path(directory)
        self.escapes.reset()
        self.tags.clear()
        self.tagger.reset()
        self.navigator.reset()
        self.status = None
        self.returncode = None
        self._chunks = []
        self._chunk_starts = []
        self._length = 0
        self._text_cache = ""
        self._tail = ""
        self._tail_base = 0

    def open_sink(self, directory: Optional[Union[str, Path]] = None) -> OutputSink:
        self.reset(directory)
        return OutputSink(self, self.generation)

    def append(self, chunk: str) -> List[TagRange]:
        if not chunk:
            return []
        self._chunk_starts.append(self._length)
        self._chunks.append(chunk)
        self._length += len(chunk)
        self._text_cache = None

        self._tail += chunk
        self.escapes.feed(self._tail, self._tail_base)
        new_matches = self.tagger.update(self._tail, self._tail_base)

        keep_from = min(self.tagger.final_end, self.escapes.stable_end)
        if keep_from > self._tail_base:
            self._tail = self._tail[keep_from - self._tail_base:]
            self._tail_base = keep_from
        return new_matches

    @property
    def final_end(self) -> int:
        """End of the last line whose tags are final."""
        return self.tagger.final_end

    @property
    def matches(self) -> List[TagRange]:
        return self.tags.ranges("match")

    @property
    def match_count(self) -> int:
        return self.tags.count("match")

    @property
    def file_count(self) -> int:
        return self.tags.count("file")

    def match_text(self, match: TagRange) -> str:
        return self.slice(match.start, match.end)

    def visible_distance(self, start: int, end: int) -> int:
        return self.escapes.visible_distance(start, end)

    def locate(self, match: TagRange) -> Location:
        return locate(self.tags, self.escapes, match, self.match_text(match))

    def resolve(self, match: TagRange, force: bool = False) -> Optional[Marker]:
        return self.resolver.resolve(match, self.locate(match), force=force, directory=self.directory)

    def _eager_marker(self, match: TagRange, location: Location) -> None:
        # Cheap when the document is open; otherwise deferred to first visit.
        self.resolver.resolve(match, location, force=False, directory=self.directory)

    def locations(self) -> List[Location]:
        result = []
        for match in self.matches:
            try:
                result.append(self.locate(match))
            except MalformedOutputError as e:
                logger.debug(f"Unlocatable match at {match.start}: {e}")
        return result
