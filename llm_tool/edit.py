"""
The edit workflow: ask a provider to rewrite files, review, then apply.

Files are processed one at a time, in the order given.  Each result is
staged; once every file is staged the diffs are shown and a single
yes/no decision applies or discards all of them.  The staging directory
is removed on every way out of :func:`run_edit`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, TextIO

from rich.console import Console
from rich.text import Text

from .errors import LLMToolError, ProviderError, StagingIOError, UserAborted
from .fileutil import destination_for, file_exists, read_file_content
from .providers.base import ContentProvider
from .staging import StagedEntry, StagingArea

logger = logging.getLogger(__name__)

APPROVAL_PROMPT = "\nApply these changes? [y/N] "
AFFIRMATIVE = frozenset({"y", "Y"})


@dataclass
class EditResult:
    """Outcome of one edit run."""

    approved: bool
    entries: List[StagedEntry] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)


def request_approval(assume_yes: bool, read_decision: Callable[[str], str]) -> None:
    """
    Block until the user decides.  Raises UserAborted unless approved.

    Only ``y`` or ``Y`` approves; anything else, including end of input,
    is a rejection.
    """

    if assume_yes:
        return
    try:
        answer = read_decision(APPROVAL_PROMPT)
    except EOFError:
        answer = ""
    if answer.strip() not in AFFIRMATIVE:
        raise UserAborted("changes not applied")


def _say(console: Console, message: str) -> None:
    console.print(Text(message), soft_wrap=True)


def _line_reader(stream: TextIO, console: Console) -> Callable[[str], str]:
    """Prompt on ``console`` and read the answer as one line of ``stream``."""

    def read(prompt: str) -> str:
        console.print(Text(prompt), end="")
        line = stream.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n")

    return read


def run_edit(
    targets: Sequence[str],
    instructions: str,
    provider: ContentProvider,
    *,
    model: Optional[str] = None,
    output_dir: Optional[str] = None,
    assume_yes: bool = False,
    read_decision: Optional[Callable[[str], str]] = None,
    console: Optional[Console] = None,
    stdin: Optional[TextIO] = None,
) -> EditResult:
    """
    Rewrite ``targets`` according to ``instructions`` and apply on approval.

    ``targets`` are paths or ``-`` for stdin.  The approval answer comes
    from ``read_decision`` when given, else from the next line of ``stdin``
    (after any piped content), else from the builtin ``input``.

    Any ProviderError or StagingIOError while staging aborts the whole run
    before anything is written.  A declined review returns ``EditResult(approved=False)``.
    """

    if not instructions.strip():
        raise LLMToolError("refactoring instructions cannot be empty")
    if not targets:
        raise LLMToolError("please provide both instructions and at least one file")

    console = console or Console()
    _say(console, f"Processing {len(targets)} files with the following instructions:\n{instructions}\n")

    with StagingArea.create(console=console) as area:
        for target in targets:
            _say(console, f"Processing file: {target}")
            content = read_file_content(target, stdin)

            try:
                new_content = provider.refactor_file(target, content, instructions, model)
            except ProviderError as exc:
                raise ProviderError(f"failed to refactor {target}: {exc}") from exc

            destination = destination_for(target, output_dir)
            is_new = not file_exists(destination)
            try:
                area.stage(destination, new_content, is_new)
            except StagingIOError as exc:
                raise StagingIOError(f"failed to stage file {destination}: {exc}") from exc

            logger.info("Staged %s -> %s (new=%s)", target, destination, is_new)
            _say(console, f"✓ Processed {target}")

        _say(console, "\nReview of changes:")
        area.show_diff()

        if read_decision is None:
            read_decision = _line_reader(stdin, console) if stdin is not None else input
        try:
            request_approval(assume_yes, read_decision)
        except UserAborted:
            _say(console, "Changes not applied.")
            return EditResult(approved=False, entries=list(area.entries))

        applied = area.apply_changes()
        _say(console, "All changes applied successfully.")
        return EditResult(approved=True, entries=list(area.entries), applied=applied)
