from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .config import SearchOptions, rgnav_home
from .errors import NoSearchError
from .view import OutputSink, ResultView

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Parameters and process of the most recently started search."""
    directory: str
    pattern: str
    is_regex: bool = False
    extra_arguments: Tuple[str, ...] = ()
    process: Optional[Any] = field(default=None, compare=False, repr=False)

    @property
    def parameters(self) -> Tuple[str, str, bool, Tuple[str, ...]]:
        return (self.directory, self.pattern, self.is_regex, self.extra_arguments)


Launcher = Callable[[Session], Any]


def process_live(process: Optional[Any]) -> bool:
    return process is not None and process.poll() is None


class SearchController:
    """Starts, re-runs and aborts the searches feeding one result view.

    ``launcher`` receives the new session and returns a process handle with
    ``poll()`` and ``terminate()``; it may raise ``FileNotFoundError`` when
    the search tool is missing.
    """

    def __init__(self, view: ResultView, launcher: Launcher):
        self.view = view
        self.launcher = launcher
        self.session: Optional[Session] = None
        self.sink: Optional[OutputSink] = None

    def start_search(
        self,
        directory: Union[str, Path],
        pattern: str,
        is_regex: bool = False,
        extra_arguments: Sequence[str] = (),
    ) -> OutputSink:
        self._terminate()
        sink = self.view.open_sink(directory)
        session = Session(str(directory), pattern, is_regex, tuple(extra_arguments))
        self.session = session
        self.sink = sink
        try:
            session.process = self.launcher(session)
        except FileNotFoundError as e:
            logger.warning(f"Cannot start search: {e}")
            sink.finish(None)
            return sink
        logger.debug(f"Started search for {pattern!r} in {directory}")
        return sink

    def rerun(self) -> OutputSink:
        if self.session is None:
            raise NoSearchError("No search to re-run")
        return self.start_search(*self.session.parameters)

    def abort(self) -> bool:
        """Stop the running search; its final report is never emitted."""
        if self.sink is not None:
            self.sink.finished = True
        return self._terminate()

    def _terminate(self) -> bool:
        process = self.session.process if self.session is not None else None
        if not process_live(process):
            return False
        logger.debug(f"Terminating search process {getattr(process, 'pid', '?')}")
        process.terminate()
        return True


# Persisted state lets separate CLI invocations re-run and keep navigating.

@dataclass
class SessionState:
    directory: Optional[str] = None
    pattern: Optional[str] = None
    is_regex: bool = False
    extra_arguments: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    last_visited: Optional[int] = None

    @property
    def has_search(self) -> bool:
        return self.directory is not None and self.pattern is not None

    def record_search(self, session: Session, options: Optional[SearchOptions] = None) -> None:
        self.directory = session.directory
        self.pattern = session.pattern
        self.is_regex = session.is_regex
        self.extra_arguments = list(session.extra_arguments)
        self.options = _options_dict(options) if options is not None else {}
        self.last_visited = None

    def record_visit(self, ordinal: Optional[int]) -> None:
        self.last_visited = ordinal

    def search_options(self, base: Optional[SearchOptions] = None) -> SearchOptions:
        """``base`` with the options the recorded search ran with."""
        base = base or SearchOptions()
        known = {k: v for k, v in self.options.items() if k in _PERSISTED_OPTIONS}
        return base.with_overrides(**known)


# The executable and read size stay machine-local.
_PERSISTED_OPTIONS = ("context", "case", "heading", "types")


def _options_dict(options: SearchOptions) -> Dict[str, Any]:
    return {
        "context": options.context,
        "case": options.case,
        "heading": options.heading,
        "types": list(options.types),
    }


def session_path() -> Path:
    return rgnav_home() / "session.json"


def load_session() -> SessionState:
    path = session_path()
    if not path.exists():
        return SessionState()
    try:
        data = json.loads(path.read_text())
        return SessionState(
            directory=data.get("directory"),
            pattern=data.get("pattern"),
            is_regex=bool(data.get("is_regex", False)),
            extra_arguments=list(data.get("extra_arguments", [])),
            options=dict(data.get("options") or {}),
            last_visited=data.get("last_visited"),
        )
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable session file {path}: {e}")
        return SessionState()


def save_session(state: SessionState) -> None:
    path = session_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "directory": state.directory,
        "pattern": state.pattern,
        "is_regex": state.is_regex,
        "extra_arguments": state.extra_arguments,
        "options": state.options,
        "last_visited": state.last_visited,
    }
    path.write_text(json.dumps(data, indent=2))
