"""Running ripgrep: command construction, streaming, file listing, version."""

from __future__ import annotations

import codecs
import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from .config import SearchOptions
from .session import Session
from .tagger import TagRange
from .view import OutputSink

logger = logging.getLogger(__name__)


# Colors chosen so that paths and line numbers are foreground-decorated and
# matches carry a background color, which is what the tagger keys on.
COLOR_ARGS = [
    "--color=always",
    "--colors=path:none",
    "--colors=path:fg:magenta",
    "--colors=path:style:bold",
    "--colors=line:none",
    "--colors=line:fg:green",
    "--colors=line:style:bold",
    "--colors=column:none",
    "--colors=match:none",
    "--colors=match:fg:black",
    "--colors=match:bg:yellow",
]

_CASE_FLAGS = {
    "smart": "--smart-case",
    "sensitive": "--case-sensitive",
    "insensitive": "--ignore-case",
}


def build_command(
    pattern: str,
    is_regex: bool = False,
    extra_arguments: Sequence[str] = (),
    options: Optional[SearchOptions] = None,
    directory: Union[str, Path] = ".",
) -> List[str]:
    """Build the ripgrep command line for a search."""
    options = options or SearchOptions()
    cmd = [options.executable, *COLOR_ARGS, "--line-number"]
    cmd.append("--heading" if options.heading else "--no-heading")
    if not is_regex:
        cmd.append("--fixed-strings")
    cmd.append(_CASE_FLAGS.get(options.case, "--smart-case"))
    if options.context > 0:
        cmd.append(f"--context={options.context}")
    for file_type in options.types:
        cmd.extend(["--type", file_type])
    cmd.extend(extra_arguments)
    cmd.extend(["-e", pattern, str(directory)])
    return cmd


class RipgrepLauncher:
    """Default search launcher: spawns ripgrep inside the session directory."""

    def __init__(self, options: Optional[SearchOptions] = None):
        self.options = options or SearchOptions()

    def command(self, session: Session) -> List[str]:
        return build_command(
            session.pattern,
            session.is_regex,
            session.extra_arguments,
            self.options,
            directory=".",
        )

    def __call__(self, session: Session) -> subprocess.Popen:
        cmd = self.command(session)
        logger.debug(f"Running {' '.join(cmd)} in {session.directory}")
        return subprocess.Popen(
            cmd,
            cwd=session.directory,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )


OutputCallback = Callable[[List[TagRange]], None]


def stream_search(
    process,
    sink: OutputSink,
    chunk_size: int = 4096,
    on_output: Optional[OutputCallback] = None,
) -> Optional[str]:
    """
    Feed a process's stdout into ``sink`` until it exits.

    Output is decoded incrementally, so multi-byte characters split across
    reads are reassembled. Returns the final status report, or ``None`` when
    the sink went stale (the view was reused or the search aborted).
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    stream = process.stdout
    stale = False
    while True:
        data = stream.read1(chunk_size) if hasattr(stream, "read1") else stream.read(chunk_size)
        if not data:
            break
        if not sink.live:
            logger.debug("Search output no longer wanted, stopping reader")
            stale = True
            break
        new_matches = sink.write(decoder.decode(data))
        if on_output is not None:
            on_output(new_matches)
    if stale:
        process.terminate()
        process.wait()
        return None
    tail = decoder.decode(b"", final=True)
    if tail:
        sink.write(tail)
    returncode = process.wait()
    return sink.finish(returncode)


def _run(cmd: List[str], cwd: Union[str, Path], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=str(cwd), capture_output=True, timeout=timeout)


def split_null_list(output: bytes) -> List[str]:
    """Split NUL-delimited tool output into path strings."""
    return [p for p in output.decode("utf-8", errors="replace").split("\0") if p]


def list_files(
    directory: Union[str, Path] = ".",
    options: Optional[SearchOptions] = None,
    extra_arguments: Sequence[str] = (),
) -> List[str]:
    """
    List the files ripgrep would search under ``directory``.

    Raises:
        FileNotFoundError: the ripgrep executable is missing.
    """
    options = options or SearchOptions()
    cmd = [options.executable, "--files", "--null"]
    for file_type in options.types:
        cmd.extend(["--type", file_type])
    cmd.extend(extra_arguments)
    result = _run(cmd, directory)
    if result.returncode not in (0, 1):
        logger.warning(f"File listing exited with code {result.returncode}")
    return split_null_list(result.stdout)


def find_files(
    query: str,
    directory: Union[str, Path] = ".",
    options: Optional[SearchOptions] = None,
) -> List[str]:
    """Listed files whose path contains ``query``, case-insensitively."""
    needle = query.lower()
    return [p for p in list_files(directory, options) if needle in p.lower()]


def parse_version(output: str) -> Optional[str]:
    parts = output.lstrip(" ").split(None, 2)
    if not parts:
        return None
    # "ripgrep 14.1.0" carries the program name first.
    if len(parts) > 1 and not parts[0][:1].isdigit():
        return parts[1]
    return parts[0]


def probe_version(options: Optional[SearchOptions] = None) -> Optional[str]:
    """Version string of the search tool, or ``None`` if it cannot be run."""
    options = options or SearchOptions()
    try:
        result = _run([options.executable, "--version"], ".", timeout=5)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Version probe failed: {e}")
        return None
    if result.returncode != 0:
        return None
    return parse_version(result.stdout.decode("utf-8", errors="replace"))
