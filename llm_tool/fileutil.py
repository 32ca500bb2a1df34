"""
Helpers for reading edit targets.

A target is either a real path or ``-``, meaning the content arrives on
standard input and there is no fixed destination.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO

from .errors import StagingIOError

STDIN_SENTINEL = "-"
STDIN_OUTPUT_NAME = "output.txt"


def is_stdin(target: str) -> bool:
    return target == STDIN_SENTINEL


def file_exists(target: str) -> bool:
    """Return True if ``target`` names an existing regular file."""
    if is_stdin(target):
        return False
    return Path(target).is_file()


def read_file_content(target: str, stdin: Optional[TextIO] = None) -> str:
    """Read the content of ``target``, or all of stdin for ``-``."""
    if is_stdin(target):
        stream = stdin if stdin is not None else sys.stdin
        try:
            return stream.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise StagingIOError(f"failed to read from stdin: {exc}") from exc

    try:
        return Path(target).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StagingIOError(f"failed to read file {target}: {exc}") from exc


def destination_for(target: str, output_dir: Optional[str] = None) -> str:
    """
    Return the path the edited content of ``target`` should be written to.

    With an output directory the file keeps its basename inside that
    directory; stdin input is written to ``output.txt``.
    """

    if is_stdin(target):
        name = STDIN_OUTPUT_NAME
        return str(Path(output_dir) / name) if output_dir else name
    if output_dir:
        return str(Path(output_dir) / Path(target).name)
    return target
