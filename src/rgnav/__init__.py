"""rgnav - stream ripgrep results into a navigable match index."""

__version__ = "0.1.0"

from .documents import Document, Marker, Workspace
from .errors import (
    MalformedOutputError,
    MatchFileNotFoundError,
    NavigationExhausted,
    NoMatchAtPosition,
    NoSearchError,
    RgnavError,
)
from .locator import Location
from .navigation import Jump, Navigator
from .session import SearchController, Session
from .tagger import TagIndex, TagRange
from .view import OutputSink, ResultView

__all__ = [
    "Document",
    "Jump",
    "Location",
    "MalformedOutputError",
    "Marker",
    "MatchFileNotFoundError",
    "NavigationExhausted",
    "Navigator",
    "NoMatchAtPosition",
    "NoSearchError",
    "OutputSink",
    "ResultView",
    "RgnavError",
    "SearchController",
    "Session",
    "TagIndex",
    "TagRange",
    "Workspace",
]
