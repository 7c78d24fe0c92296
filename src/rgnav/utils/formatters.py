"""Output formatting utilities for the rgnav CLI."""

import json
import os
import sys
from typing import List

from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import get_lexer_by_name, get_lexer_for_filename
from pygments.util import ClassNotFound

from rich.console import Console


console = Console()


def get_lexer_for_file(file_path: str):
    """Get a Pygments lexer for a file based on its extension."""
    try:
        return get_lexer_for_filename(file_path)
    except ClassNotFound:
        try:
            return get_lexer_by_name('text')
        except ClassNotFound:
            return None


def syntax_highlight_code(code: str, file_path: str) -> str:
    """
    Apply Pygments syntax highlighting to code.

    Args:
        code: The source code to highlight
        file_path: Path to the file (for lexer detection)

    Returns:
        Highlighted code string, or ``code`` unchanged when colors are off
    """
    if os.environ.get("NO_COLOR"):
        return code
    lexer = get_lexer_for_file(file_path)
    if not lexer:
        return code

    formatter = Terminal256Formatter(style='monokai')
    return highlight(code, lexer, formatter).rstrip("\n")


def highlight_lines(lines: List[str], file_path: str) -> List[str]:
    """Highlight consecutive source lines as one block.

    Multi-line tokens such as docstrings keep their color. Falls back to the
    plain lines when the lexer changes the line count.
    """
    if not lines:
        return []
    highlighted = syntax_highlight_code("\n".join(lines), file_path).split("\n")
    if len(highlighted) != len(lines):
        return list(lines)
    return highlighted


def format_json_output(data, raw: bool = False):
    """
    Format output as JSON.

    Args:
        data: Data to serialize
        raw: If True, print JSON; if False, return formatted string

    Returns:
        JSON string if raw=False, otherwise None
    """
    json_str = json.dumps(data, indent=2)

    if raw:
        # Rich highlighting for a TTY, plain JSON when piped
        if sys.stdout.isatty() and not os.environ.get("NO_COLOR"):
            console.print_json(json_str)
        else:
            print(json_str)
    else:
        return json_str
