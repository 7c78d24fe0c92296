"""Named conditions raised by the match index and navigation engine."""

from __future__ import annotations


class RgnavError(Exception):
    """Base class for all rgnav errors."""


class MalformedOutputError(RgnavError):
    """A match candidate lacks a usable file or line-number context."""


class MatchFileNotFoundError(RgnavError):
    """A forced marker resolution could not open the match's file."""

    def __init__(self, path: str):
        super().__init__(f"File not found: {path}")
        self.path = path


class NavigationExhausted(RgnavError):
    """No more matches or files in the requested direction.

    This is expected user feedback rather than a fault, so front ends
    report it quietly instead of through their error surfaces.
    """


class NoMatchAtPosition(RgnavError):
    """There is no match at or around the requested buffer position."""


class NoSearchError(RgnavError):
    """A rerun or navigation was requested before any search was started."""
