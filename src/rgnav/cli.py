"""rgnav CLI - stream ripgrep matches and step through them."""

import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .config import SearchOptions
from .errors import MatchFileNotFoundError, NavigationExhausted, NoMatchAtPosition
from .escapes import strip_escapes
from .navigation import Jump
from .process import RipgrepLauncher, find_files, list_files, probe_version, stream_search
from .session import SearchController, SessionState, load_session, save_session
from .tagger import TagRange
from .utils.formatters import format_json_output, highlight_lines
from .utils.tree_formatter import (
    ExitCode,
    badge,
    cyan,
    dim,
    format_error_rich,
    format_files_output,
    format_jump_output,
    format_match_line,
    format_no_results,
    format_notice,
    format_search_header,
    format_summary,
    Colors,
)
from .view import ResultView

console = Console()
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def main(verbose: bool):
    """rgnav - Stream ripgrep matches and jump between them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ============================================================================
# Running searches
# ============================================================================

def run_search(
    directory: str,
    pattern: str,
    is_regex: bool,
    extra_arguments: Tuple[str, ...],
    options: SearchOptions,
    on_match=None,
) -> Tuple[ResultView, SearchController]:
    """
    Run one search to completion.

    ``on_match(view, match)`` is called once per match, in order, as soon as
    the line holding it is final.
    """
    view = ResultView(directory=directory)
    controller = SearchController(view, RipgrepLauncher(options))
    sink = controller.start_search(directory, pattern, is_regex, extra_arguments)
    if sink.finished:
        return view, controller

    reported = 0

    def report(final_only: bool) -> None:
        nonlocal reported
        if on_match is None:
            return
        while reported < view.match_count:
            match = view.tags.nth("match", reported)
            if final_only and match.start >= view.final_end:
                break
            on_match(view, match)
            reported += 1

    stream_search(
        controller.session.process,
        sink,
        chunk_size=options.chunk_size,
        on_output=lambda new_matches: report(final_only=True),
    )
    report(final_only=False)
    return view, controller


def match_record(view: ResultView, match: TagRange) -> dict:
    location = view.locate(match)
    return {
        "path": location.file,
        "line": location.line,
        "column": location.visible_column,
        "text": location.text,
    }


def print_match(view: ResultView, match: TagRange) -> None:
    location = view.locate(match)
    line_tag = view.tags.preceding("line", match.start)
    content = strip_escapes(view.line_after(line_tag.end))[1:]
    start = location.visible_column - 1
    number = view.navigator.ordinal(match) + 1
    print(format_match_line(number, str(location), content, start, start + len(location.text)))


def _no_search_error() -> None:
    format_error_rich(
        "No search to re-run",
        context="No search has been run from this machine yet",
        fixes=["rgnav search '<pattern>' -p ."],
    )
    sys.exit(ExitCode.USAGE_ERROR)


def _check_count(count: int) -> None:
    if count < 1:
        format_error_rich(
            f"Invalid step count: {count}",
            context="-n must be a positive number of steps",
            fixes=["rgnav next -n 2", "rgnav prev -n 2"],
        )
        sys.exit(ExitCode.USAGE_ERROR)


def _tool_missing_error(options: SearchOptions) -> None:
    format_error_rich(
        f"Search tool not found: {options.executable}",
        context="The search could not be started",
        why=["ripgrep is not installed", "RGNAV_EXECUTABLE points to a missing program"],
        fixes=["brew install ripgrep", "apt install ripgrep", "export RGNAV_EXECUTABLE=/path/to/rg"],
    )
    sys.exit(ExitCode.TOOL_ERROR)


def _check_directory(path: str) -> None:
    if not Path(path).is_dir():
        format_error_rich(
            f"Path not found: {path}",
            context=f"Tried to search in '{path}'",
            why=["The specified path does not exist", "Path may be misspelled"],
            fixes=["rgnav search '<pattern>' -p ."],
            tip="Use '.' to search current directory",
        )
        sys.exit(ExitCode.PATH_ERROR)


def search_and_report(state: SessionState, options: SearchOptions, json_output: bool) -> None:
    """Run the search recorded in ``state``, print results and persist it."""
    _check_directory(state.directory)
    start_time = time.time()
    if not json_output:
        print(format_search_header(state.pattern, state.directory, state.is_regex))
        print()

    view, controller = run_search(
        state.directory,
        state.pattern,
        state.is_regex,
        tuple(state.extra_arguments),
        options,
        on_match=None if json_output else print_match,
    )
    elapsed_ms = int((time.time() - start_time) * 1000)

    state.record_search(controller.session, options)
    save_session(state)

    if view.returncode is None:
        _tool_missing_error(options)
    if view.returncode not in (0, 1):
        output = strip_escapes(view.text).strip()
        format_error_rich(view.status, context=output[:500] or None)
        sys.exit(ExitCode.TOOL_ERROR)

    if json_output:
        format_json_output(
            {
                "status": view.status,
                "matches": [match_record(view, m) for m in view.matches],
                "time_ms": elapsed_ms,
            },
            raw=True,
        )
    elif view.match_count:
        print()
        print(format_summary(view.status, view.match_count, len(_distinct_files(view)), elapsed_ms))
    else:
        suggestions = []
        if options.case != "insensitive":
            suggestions.append(f"rgnav search {state.pattern!r} -i -p {state.directory}")
        if state.is_regex:
            suggestions.append(f"rgnav search {state.pattern!r} -F -p {state.directory}")
        suggestions.append(f"rgnav files -p {state.directory}")
        format_no_results(state.pattern, state.directory, suggestions)

    if not view.match_count:
        sys.exit(ExitCode.NO_MATCHES)


def _distinct_files(view: ResultView) -> List[str]:
    seen = {}
    for tag in view.tags.ranges("file"):
        seen.setdefault(tag.payload, None)
    return list(seen)


@main.command("search", context_settings={"ignore_unknown_options": True})
@click.argument("pattern")
@click.argument("extra", nargs=-1, type=click.UNPROCESSED)
@click.option("--path", "-p", default=".", help="Directory to search")
@click.option("--fixed-strings", "-F", is_flag=True, help="Treat PATTERN as a literal string")
@click.option("--context", "-C", default=None, type=int, help="Lines of context around matches")
@click.option("--ignore-case", "-i", is_flag=True, help="Case-insensitive search")
@click.option("--case-sensitive", "-s", is_flag=True, help="Case-sensitive search")
@click.option("--type", "-t", "types", multiple=True, help="Only search files of this ripgrep type")
@click.option("--heading/--no-heading", default=None, help="Group matches under file headings")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def search_cmd(
    pattern: str,
    extra: Tuple[str, ...],
    path: str,
    fixed_strings: bool,
    context: Optional[int],
    ignore_case: bool,
    case_sensitive: bool,
    types: Tuple[str, ...],
    heading: Optional[bool],
    json_output: bool,
):
    """Search PATTERN with ripgrep, streaming matches as they arrive.

    Arguments after PATTERN are passed to ripgrep unchanged.

    Usage:
        rgnav search 'fn \\w+'              # Regex search in .
        rgnav search TODO -F -p src         # Literal search in src/
        rgnav search foo -t py -C 2         # Python files, 2 lines of context
    """
    case = "insensitive" if ignore_case else "sensitive" if case_sensitive else None
    options = SearchOptions.from_env().with_overrides(
        context=context,
        case=case,
        heading=heading,
        types=types or None,
    )
    state = load_session()
    state.directory = path
    state.pattern = pattern
    state.is_regex = not fixed_strings
    state.extra_arguments = list(extra)
    search_and_report(state, options, json_output)


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def rerun(json_output: bool):
    """Re-run the last search with the same parameters."""
    state = load_session()
    if not state.has_search:
        _no_search_error()
    options = state.search_options(SearchOptions.from_env())
    search_and_report(state, options, json_output)


# ============================================================================
# Navigation
# ============================================================================

def _replay(state: SessionState) -> ResultView:
    """Silently re-run the recorded search and restore the visit cursor."""
    if not state.has_search:
        _no_search_error()
    _check_directory(state.directory)
    options = state.search_options(SearchOptions.from_env())

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Searching for {state.pattern!r}...", total=None)
        view, _ = run_search(
            state.directory,
            state.pattern,
            state.is_regex,
            tuple(state.extra_arguments),
            options,
        )
        progress.update(task, description=view.status or "Done")
    logger.debug(f"Replayed search: {view.status}")

    if view.returncode is None:
        _tool_missing_error(options)
    if view.match_count == 0:
        format_no_results(state.pattern, state.directory)
        sys.exit(ExitCode.NO_MATCHES)

    ordinal = state.last_visited
    if ordinal is not None and 0 <= ordinal < view.match_count:
        start = view.tags.nth("match", ordinal).start
        view.navigator.last_visited = start
        view.navigator.cursor = start
    return view


def show_jump(view: ResultView, jump: Jump, json_output: bool) -> None:
    document = jump.marker.document
    line, column = jump.marker.position()
    number = view.navigator.ordinal(jump.match) + 1
    path = str(document.path)

    if json_output:
        format_json_output(
            {
                "number": number,
                "total": view.match_count,
                "path": path,
                "line": line,
                "column": column,
                "text": jump.location.text,
            },
            raw=True,
        )
        return

    first = max(1, line - 2)
    last = min(document.line_count, line + 2)
    numbers = list(range(first, last + 1))
    contents = highlight_lines([document.line_text(num) for num in numbers], path)
    lines = [{"num": num, "content": content} for num, content in zip(numbers, contents)]
    format_jump_output(
        number,
        view.match_count,
        f"{path}:{line}:{column}",
        lines,
        line,
        column,
        len(jump.location.text),
    )


def _visit(state: SessionState, step, json_output: bool) -> None:
    """Replay the search, run ``step(view)`` to get a jump, show and record it."""
    view = _replay(state)
    try:
        jump = step(view)
    except NavigationExhausted as e:
        if json_output:
            format_json_output({"error": str(e)}, raw=True)
        else:
            format_notice(str(e))
        sys.exit(ExitCode.NO_MATCHES)
    except NoMatchAtPosition as e:
        format_error_rich(str(e), context=f"The last search has {view.match_count} matches")
        sys.exit(ExitCode.USAGE_ERROR)
    except MatchFileNotFoundError as e:
        format_error_rich(
            str(e),
            context="The file was listed in the search output but cannot be opened",
            why=["File may have been moved or deleted since the search"],
            fixes=["rgnav rerun"],
        )
        sys.exit(ExitCode.PATH_ERROR)

    state.record_visit(view.navigator.ordinal(jump.match))
    save_session(state)
    show_jump(view, jump, json_output)


def _step_files(view: ResultView, n: int) -> Jump:
    """
    Move ``n`` distinct files away from the cursor and visit the first
    match there. Without file headings every output line carries its own
    file tag, so consecutive tags naming the same file are one step.
    """
    navigator = view.navigator
    current = view.tags.at("file", navigator.cursor) or view.tags.preceding("file", navigator.cursor)
    name = current.payload if current is not None and navigator.last_visited is not None else None
    pos = navigator.cursor
    for _ in range(abs(n)):
        while True:
            pos = navigator.next_file(pos) if n > 0 else navigator.previous_file(pos)
            tag = view.tags.at("file", pos)
            if tag.payload != name:
                break
        name = tag.payload
    if n < 0:
        # Back up to the first header of that file's run.
        while True:
            earlier = view.tags.start_before("file", pos)
            if earlier is None or view.tags.at("file", earlier).payload != name:
                break
            pos = earlier
    target = view.tags.start_after("match", pos)
    if target is None:
        raise NavigationExhausted("Moved past last match")
    return navigator.jump_to(target)


@main.command("next")
@click.option("-n", "count", default=1, type=int, help="Number of matches to move")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def next_cmd(count: int, json_output: bool):
    """Visit the next match of the last search."""
    _check_count(count)
    _visit(load_session(), lambda view: view.navigator.next_error(count), json_output)


@main.command("prev")
@click.option("-n", "count", default=1, type=int, help="Number of matches to move")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def prev_cmd(count: int, json_output: bool):
    """Visit the previous match of the last search."""
    _check_count(count)
    _visit(load_session(), lambda view: view.navigator.next_error(-count), json_output)


@main.command("next-file")
@click.option("-n", "count", default=1, type=int, help="Number of files to move")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def next_file_cmd(count: int, json_output: bool):
    """Visit the first match in the next file."""
    _check_count(count)
    _visit(load_session(), lambda view: _step_files(view, count), json_output)


@main.command("prev-file")
@click.option("-n", "count", default=1, type=int, help="Number of files to move")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def prev_file_cmd(count: int, json_output: bool):
    """Visit the first match in the previous file."""
    _check_count(count)
    _visit(load_session(), lambda view: _step_files(view, -count), json_output)


@main.command()
@click.argument("number", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def goto(number: int, json_output: bool):
    """Visit match NUMBER (1-based) of the last search."""
    _visit(load_session(), lambda view: view.navigator.visit_ordinal(number - 1), json_output)


# ============================================================================
# Files and tool info
# ============================================================================

def _print_file_list(files: List[str], title: str, json_output: bool, empty_message: str) -> None:
    if json_output:
        format_json_output({"files": files}, raw=True)
    elif files:
        format_files_output(files, title=title)
    else:
        format_notice(empty_message)
    if not files:
        sys.exit(ExitCode.NO_MATCHES)


@main.command()
@click.option("--path", "-p", default=".", help="Directory to list")
@click.option("--type", "-t", "types", multiple=True, help="Only list files of this ripgrep type")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def files(path: str, types: Tuple[str, ...], json_output: bool):
    """List the files ripgrep would search."""
    _check_directory(path)
    options = SearchOptions.from_env().with_overrides(types=types or None)
    try:
        listed = list_files(path, options)
    except FileNotFoundError:
        _tool_missing_error(options)
    _print_file_list(listed, "FILES", json_output, "No files to search")


@main.command("find-file")
@click.argument("query")
@click.option("--path", "-p", default=".", help="Directory to list")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def find_file_cmd(query: str, path: str, json_output: bool):
    """List searchable files whose path contains QUERY."""
    _check_directory(path)
    options = SearchOptions.from_env()
    try:
        found = find_files(query, path, options)
    except FileNotFoundError:
        _tool_missing_error(options)
    _print_file_list(found, "FOUND", json_output, f"No files matching {query!r}")


@main.command()
def version():
    """Show rgnav and ripgrep versions."""
    options = SearchOptions.from_env()
    print(f"{badge('RGNAV', Colors.BRIGHT_CYAN)} {cyan(__version__)}")
    rg_version = probe_version(options)
    if rg_version is None:
        _tool_missing_error(options)
    print(f"{badge('RIPGREP', Colors.BRIGHT_MAGENTA)} {cyan(rg_version)} {dim(options.executable)}")


if __name__ == "__main__":
    main()
