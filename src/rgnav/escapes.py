"""Terminal escape recognition for streamed search output.

Escape sequences are never removed from the raw buffer: the search tool
reports columns against the text with colors stripped, so the buffer keeps
every byte and the sequences are only *marked* hidden. All offset math that
must line up with the tool goes through ``visible_distance``.
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Iterator, List, Literal, Tuple

logger = logging.getLogger(__name__)


EscapeKind = Literal["reset", "foreground", "background"]

ESC = "\x1b"

# Longest sequence we will ever recognize. Anything longer is treated as
# plain text, which keeps the result independent of how output is chunked.
MAX_PARAMS_LENGTH = 30
MAX_ESCAPE_LENGTH = len("\x1b[") + MAX_PARAMS_LENGTH + 1

_SEQUENCE_RE = re.compile(r"\x1b\[([0-9;]{0,%d})([mK])" % MAX_PARAMS_LENGTH)
_PARTIAL_RE = re.compile(r"\x1b(?:\[[0-9;]*)?\Z")


@dataclass(frozen=True)
class EscapeSequence:
    start: int
    end: int
    kind: EscapeKind


@dataclass(frozen=True)
class EscapeRun:
    """Adjacent escape sequences acting as one decoration boundary."""
    start: int
    end: int
    kind: EscapeKind


def _has_background(params: List[str]) -> bool:
    i = 0
    while i < len(params):
        p = params[i]
        if p in ("38", "48"):
            # Extended colors consume their arguments: 5;n or 2;r;g;b.
            if i + 1 < len(params) and params[i + 1] == "5":
                if p == "48":
                    return True
                i += 3
                continue
            if i + 1 < len(params) and params[i + 1] == "2":
                if p == "48":
                    return True
                i += 5
                continue
            i += 1
            continue
        if p.isdigit():
            code = int(p)
            if 40 <= code <= 47 or 100 <= code <= 107:
                return True
        i += 1
    return False


def classify_sequence(params: str, final: str) -> EscapeKind:
    """Classify one ``ESC [ params final`` sequence."""
    if final == "K":
        return "reset"
    parts = params.split(";")
    if all(p.strip("0") == "" for p in parts):
        return "reset"
    if _has_background(parts):
        return "background"
    return "foreground"


def run_kind(kinds) -> EscapeKind:
    kinds = set(kinds)
    if "background" in kinds:
        return "background"
    if "foreground" in kinds:
        return "foreground"
    return "reset"


class EscapeNormalizer:
    """Incrementally records hidden escape sequences of an append-only text.

    ``feed`` is called with the whole buffer after each append. Scanning
    resumes at ``stable_end``; an unterminated sequence prefix at the end of
    the buffer is held back there until more text arrives.
    """

    def __init__(self):
        self.sequences: List[EscapeSequence] = []
        self._starts: List[int] = []
        self._ends: List[int] = []
        self._hidden_cumulative: List[int] = []
        self.stable_end = 0

    def reset(self) -> None:
        self.sequences.clear()
        self._starts.clear()
        self._ends.clear()
        self._hidden_cumulative.clear()
        self.stable_end = 0

    def feed(self, tail: str, base: int = 0) -> List[EscapeSequence]:
        """
        Scan newly appended text and return the sequences recognized now.

        Args:
            tail: The buffer from ``base`` to its end; ``base`` must not be
                past ``stable_end``.
            base: Buffer offset of ``tail[0]``.
        """
        if base > self.stable_end:
            raise ValueError(f"tail starts at {base}, past stable end {self.stable_end}")
        found: List[EscapeSequence] = []
        pos = self.stable_end - base
        for m in _SEQUENCE_RE.finditer(tail, pos):
            seq = EscapeSequence(base + m.start(), base + m.end(), classify_sequence(m.group(1), m.group(2)))
            self._record(seq)
            found.append(seq)
            pos = m.end()

        # Hold back a possible sequence split across chunks.
        tail_start = max(pos, len(tail) - (MAX_ESCAPE_LENGTH - 1))
        partial = _PARTIAL_RE.search(tail, tail_start)
        if partial:
            self.stable_end = base + partial.start()
            logger.debug(f"Holding back partial escape at {self.stable_end}")
        else:
            self.stable_end = base + len(tail)
        return found

    def _record(self, seq: EscapeSequence) -> None:
        previous = self._hidden_cumulative[-1] if self._hidden_cumulative else 0
        self.sequences.append(seq)
        self._starts.append(seq.start)
        self._ends.append(seq.end)
        self._hidden_cumulative.append(previous + seq.end - seq.start)

    def hidden_before(self, pos: int) -> int:
        """Number of hidden characters in ``[0, pos)``."""
        i = bisect_right(self._starts, pos) - 1
        if i < 0:
            return 0
        before = self._hidden_cumulative[i - 1] if i > 0 else 0
        return before + min(pos, self._ends[i]) - self._starts[i]

    def visible_distance(self, start: int, end: int) -> int:
        """Count of non-hidden characters in ``[start, end)``."""
        if end <= start:
            return 0
        return (end - start) - (self.hidden_before(end) - self.hidden_before(start))

    def is_hidden(self, pos: int) -> bool:
        i = bisect_right(self._starts, pos) - 1
        return i >= 0 and pos < self._ends[i]

    def sequences_in(self, start: int, end: int) -> Iterator[EscapeSequence]:
        i = bisect_right(self._ends, start)
        while i < len(self.sequences) and self._starts[i] < end:
            yield self.sequences[i]
            i += 1

    def runs_in(self, start: int, end: int) -> List[EscapeRun]:
        """Merge adjacent sequences within ``[start, end)`` into runs."""
        runs: List[EscapeRun] = []
        group: List[EscapeSequence] = []
        for seq in self.sequences_in(start, end):
            if seq.end > end:
                break
            if group and group[-1].end != seq.start:
                runs.append(EscapeRun(group[0].start, group[-1].end, run_kind(s.kind for s in group)))
                group = []
            group.append(seq)
        if group:
            runs.append(EscapeRun(group[0].start, group[-1].end, run_kind(s.kind for s in group)))
        return runs


def strip_escapes(text: str) -> str:
    """Return ``text`` with every recognized escape sequence removed."""
    return _SEQUENCE_RE.sub("", text)


def visible_projection(
    text: str,
    start: int,
    end: int,
    runs: List[EscapeRun],
    base: int = 0,
) -> Tuple[str, List[int]]:
    """Visible characters of buffer span ``[start, end)`` and their offsets.

    ``text`` holds the buffer from offset ``base`` onward.
    """
    chars: List[str] = []
    offsets: List[int] = []
    pos = start
    for run in runs + [EscapeRun(end, end, "reset")]:
        chars.append(text[pos - base:run.start - base])
        offsets.extend(range(pos, run.start))
        pos = run.end
    return "".join(chars), offsets
