"""Tree-style output formatting for the rgnav CLI."""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional


# Tree drawing characters
TREE_BRANCH = "├──"
TREE_LAST = "└──"
TREE_PIPE = "│"
TREE_SPACE = "   "
TREE_LINE = "──"

# Color codes (ANSI)
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Foreground
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"

    # Bright foreground
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"

    # Match highlight
    HIGHLIGHT = "\033[30;43m"


def supports_color() -> bool:
    """Colors are on unless NO_COLOR is set (https://no-color.org/)."""
    return not os.environ.get("NO_COLOR")


def colorize(text: str, color: str, force: bool = False) -> str:
    """Apply color to text if supported."""
    if not force and not supports_color():
        return text
    return f"{color}{text}{Colors.RESET}"


def badge(text: str, color: str = Colors.BRIGHT_CYAN) -> str:
    """Create a colored badge/label."""
    return colorize(f"{text}", color + Colors.BOLD)


def dim(text: str) -> str:
    return colorize(text, Colors.DIM)


def cyan(text: str) -> str:
    return colorize(text, Colors.CYAN)


def yellow(text: str) -> str:
    return colorize(text, Colors.YELLOW)


def red(text: str) -> str:
    return colorize(text, Colors.RED)


def highlight_span(text: str, start: int, end: int) -> str:
    """Highlight ``text[start:end]`` the way matches are shown."""
    if start >= end:
        return text
    return text[:start] + colorize(text[start:end], Colors.HIGHLIGHT) + text[end:]


@dataclass
class TreeNode:
    """A node in the tree output."""
    content: str
    children: List["TreeNode"] = None

    def __post_init__(self):
        if self.children is None:
            self.children = []


def render_tree(nodes: List[TreeNode], prefix: str = "") -> List[str]:
    """Render a list of tree nodes as formatted lines."""
    lines = []
    for i, node in enumerate(nodes):
        is_last = i == len(nodes) - 1
        connector = TREE_LAST if is_last else TREE_BRANCH

        lines.append(f"{prefix}{dim(connector)} {node.content}")

        if node.children:
            child_prefix = prefix + (TREE_SPACE if is_last else dim(TREE_PIPE) + "  ")
            lines.extend(render_tree(node.children, child_prefix))

    return lines


def print_tree(nodes: List[TreeNode], prefix: str = "") -> None:
    """Print a tree structure."""
    for line in render_tree(nodes, prefix):
        print(line)


# ============================================================================
# Command-specific formatters
# ============================================================================

def format_search_header(pattern: str, directory: str, is_regex: bool) -> str:
    """Format header printed when a search starts."""
    label = badge("REGEX" if is_regex else "SEARCH", Colors.BRIGHT_MAGENTA)
    return f"{label} {cyan(repr(pattern))} {dim(TREE_LINE)} {dim(directory)}"


def format_match_line(number: int, location: str, content: str, start: int = 0, end: int = 0) -> str:
    """One streamed match: ordinal, file:line:column and the matched line."""
    content = content.rstrip("\r\n")
    if len(content) > 100:
        content = content[:97] + "..."
        end = min(end, 97)
    return f"  {dim(f'{number:>4}')} {cyan(location)} {dim(TREE_PIPE)} {highlight_span(content, start, end)}"


def format_summary(status: str, match_count: int, file_count: int, time_ms: int = 0) -> str:
    """Footer printed when a search finishes."""
    label = badge("DONE", Colors.BRIGHT_GREEN) if match_count else badge("DONE", Colors.BRIGHT_YELLOW)
    stats = f"{match_count} {'match' if match_count == 1 else 'matches'} in {file_count} {'file' if file_count == 1 else 'files'}"
    perf = f"({time_ms}ms)" if time_ms > 0 else ""
    return f"{label} {status} {dim(TREE_LINE)} {dim(stats)} {dim(perf)}".rstrip()


def format_files_output(files: List[str], title: str = "FILES") -> None:
    """Print a file listing grouped by directory."""
    label = badge(title, Colors.BRIGHT_BLUE)
    print(f"{label} {dim(f'{len(files)} files')}")
    print()

    groups: Dict[str, List[str]] = {}
    for path in files:
        head, _, name = path.rpartition("/")
        groups.setdefault(head or ".", []).append(name)

    nodes = []
    for directory in sorted(groups):
        children = [TreeNode(name) for name in sorted(groups[directory])]
        nodes.append(TreeNode(cyan(directory + "/"), children))
    print_tree(nodes)


def format_jump_header(number: int, total: int, location: str) -> str:
    label = badge("JUMP", Colors.BRIGHT_CYAN)
    return f"{label} {cyan(location)} {dim(TREE_LINE)} {dim(f'match {number} of {total}')}"


def format_jump_output(
    number: int,
    total: int,
    location: str,
    lines: List[dict],
    target_line: int,
    column: int,
    length: int,
) -> None:
    """
    Print a visited match with surrounding source lines.

    Args:
        number: 1-based ordinal of the match
        total: Number of matches in the search
        location: file:line:column of the marker
        lines: List of {num, content} dicts, content already highlighted
        target_line: The line holding the marker
        column: 1-based column of the marker on the target line
        length: Length of the match text
    """
    print(format_jump_header(number, total, location))
    print()

    width = len(str(lines[-1]["num"])) if lines else 1
    for line_data in lines:
        num = line_data.get("num", "?")
        content = line_data.get("content", "")
        is_target = num == target_line
        line_num = yellow(f"{num:>{width}}") if is_target else dim(f"{num:>{width}}")
        marker = yellow("←") if is_target else " "
        print(f"  {line_num} {dim(TREE_PIPE)} {content} {marker}")
        if is_target and length > 0:
            pad = " " * (width + 2 + column)
            print(f"  {pad}{yellow('^' * length)}")


def format_notice(message: str) -> None:
    """Quiet feedback that is not an error (e.g. no more matches)."""
    print(f"  {dim(TREE_LAST)} {dim(message)}")


class ExitCode:
    """Exit codes for scripts driving the CLI."""
    SUCCESS = 0           # Results found or operation succeeded
    USAGE_ERROR = 1       # Bad arguments or nothing to re-run
    NO_MATCHES = 2        # Valid search, nothing found or nothing left to visit
    PATH_ERROR = 3        # Path doesn't exist (fix path)
    TOOL_ERROR = 4        # Search tool missing or failed


def format_error_rich(
    message: str,
    context: Optional[str] = None,
    why: Optional[List[str]] = None,
    fixes: Optional[List[str]] = None,
    tip: Optional[str] = None,
) -> None:
    """
    Print a 3-layer error message.

    Layer 1: Problem statement (what went wrong)
    Layer 2: Context (what was attempted)
    Layer 3: Fixes (how to resolve it)
    """
    label = badge("ERROR", Colors.BRIGHT_RED)
    print(f"{label} {red(message)}")
    print()

    if context:
        print(f"  {dim('What happened:')}")
        print(f"    {dim(context)}")
        print()

    if why:
        print(f"  {dim('Why this failed:')}")
        for reason in why:
            print(f"    {dim('•')} {dim(reason)}")
        print()

    if fixes:
        print(f"  {dim('How to fix:')}")
        for i, fix in enumerate(fixes, 1):
            print(f"    {yellow(str(i) + '.')} {cyan(fix)}")
        print()

    if tip:
        print(f"  {dim('Tip:')} {dim(tip)}")


def format_no_results(pattern: str, directory: str, suggestions: Optional[List[str]] = None) -> None:
    """Format a 'no results found' message with suggestions."""
    label = badge("SEARCH", Colors.BRIGHT_YELLOW)
    print(f"{label} {cyan(repr(pattern))} {dim(TREE_LINE)} {dim('0 matches')}")
    print()
    print(f"  {dim('Searched:')} {dim(directory)}")
    print()

    if suggestions:
        print(f"  {dim('Try instead:')}")
        for suggestion in suggestions[:3]:
            print(f"    {dim('•')} {cyan(suggestion)}")
        print()
