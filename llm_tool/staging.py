"""
Staging area for proposed file edits.

Generated replacement content is written to a private scratch directory,
shown to the user as a diff against the files on disk and only written
to the real paths once the user approves.  The in-memory content of each
entry is authoritative; the scratch copies exist so that an external
``diff`` can compare two real files.

Known limitation: scratch files are named after the basename of the
original path, so two originals sharing a basename share one scratch
file.  The scratch copy is rewritten from memory before every diff, so
the rendering stays correct, and a warning is logged when it happens.

Applying is not transactional across files.  If writing file N fails,
files before it stay written and files after it are skipped; the error
says which.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.text import Text

from .errors import PartialApplyError, StagingIOError
from .fileutil import is_stdin

logger = logging.getLogger(__name__)

STAGING_PREFIX = "llm-tool-staging-"

# diff exits 0 for identical files and 1 when they differ.
_DIFF_OK = (0, 1)


@dataclass
class StagedEntry:
    """
    One file's proposed content.

    ``original_path`` is the real destination (or ``-`` for stdin input
    with no fixed destination) and ``staged_path`` the scratch copy.
    """

    original_path: str
    staged_path: Path
    content: str
    is_new: bool


def _write_file(path: Path, content: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(content)


def _read_file(path: Path) -> str:
    with path.open("r", encoding="utf-8", newline="") as f:
        return f.read()


class StagingArea:
    """
    Ordered set of staged entries backed by a private temporary directory.

    Use :meth:`create` to allocate the directory.  The area is a context
    manager; leaving the ``with`` block removes the directory whatever
    happened inside it.
    """

    def __init__(self, staging_dir: Path, console: Optional[Console] = None) -> None:
        self.staging_dir = staging_dir
        self.console = console or Console()
        self.entries: List[StagedEntry] = []
        self._scratch_owners: Dict[Path, str] = {}
        self._cleaned = False

    @classmethod
    def create(
        cls,
        console: Optional[Console] = None,
        base_dir: Optional[Path] = None,
    ) -> "StagingArea":
        """Allocate a fresh, uniquely named staging directory."""
        try:
            staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=base_dir))
        except OSError as exc:
            raise StagingIOError(f"failed to create staging directory: {exc}") from exc
        logger.debug("Created staging directory %s", staging_dir)
        return cls(staging_dir, console=console)

    def __enter__(self) -> "StagingArea":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.cleanup()
        except StagingIOError as cleanup_exc:
            if exc_type is None:
                raise
            # Keep the original failure; the leftover directory is reported.
            logger.error("%s", cleanup_exc)

    # ----------------
    # Staging
    # ----------------
    def stage(self, original_path: str, content: str, is_new: bool) -> StagedEntry:
        """
        Write ``content`` to a scratch file and record it for review.

        Raises StagingIOError if the scratch file cannot be written, in
        which case nothing is recorded.
        """

        if is_stdin(original_path):
            # Piped input has no file on disk to compare against.
            is_new = True

        staged_path = self.staging_dir / (Path(original_path).name or "staged")
        owner = self._scratch_owners.get(staged_path)
        if owner is not None and owner != original_path:
            logger.warning(
                "%s and %s share the scratch file %s; the earlier copy is overwritten",
                owner,
                original_path,
                staged_path.name,
            )

        try:
            staged_path.parent.mkdir(parents=True, exist_ok=True)
            _write_file(staged_path, content)
        except OSError as exc:
            raise StagingIOError(f"failed to write staged file for {original_path}: {exc}") from exc

        entry = StagedEntry(
            original_path=original_path,
            staged_path=staged_path,
            content=content,
            is_new=is_new,
        )
        self.entries.append(entry)
        self._scratch_owners[staged_path] = original_path
        logger.debug("Staged %s at %s (new=%s)", original_path, staged_path, is_new)
        return entry

    # ----------------
    # Review
    # ----------------
    def show_diff(self) -> None:
        """Render every entry, in staging order, against what is on disk."""
        for entry in self.entries:
            if entry.is_new:
                self._show_new_file(entry)
                continue

            self._print(f"\nDiff for {entry.original_path}:", style="bold")
            self._display_diff(entry)

    def _show_new_file(self, entry: StagedEntry) -> None:
        # There is no original to compare with, so never touch original_path.
        self._print(f"New file: {entry.original_path}", style="bold green")
        body = "\n".join(f"+{line}" for line in entry.content.splitlines())
        if body:
            self._print(body, style="green")

    def _display_diff(self, entry: StagedEntry) -> None:
        diff_cmd = shutil.which("diff")
        if diff_cmd is None:
            logger.debug("diff executable not found; using manual rendering")
            self._manual_diff(entry)
            return

        self._materialize(entry)
        paths = [entry.original_path, str(entry.staged_path)]

        if self._use_color():
            try:
                completed = self._run_diff([diff_cmd, "--color=always", "-u", *paths])
            except OSError as exc:
                logger.debug("colour diff could not start (%s); retrying without colour", exc)
            else:
                if completed.returncode in _DIFF_OK:
                    self._emit_diff(completed.stdout)
                    return
                logger.debug(
                    "colour diff exited %s (%s); retrying without colour",
                    completed.returncode,
                    completed.stderr.strip(),
                )

        try:
            completed = self._run_diff([diff_cmd, "-u", *paths])
        except OSError as exc:
            raise StagingIOError(f"failed to run diff for {entry.original_path}: {exc}") from exc
        if completed.returncode not in _DIFF_OK:
            raise StagingIOError(
                f"diff command failed for {entry.original_path} "
                f"(exit {completed.returncode}): {completed.stderr.strip()}"
            )
        self._emit_diff(completed.stdout)

    def _manual_diff(self, entry: StagedEntry) -> None:
        """Print both versions in full when no diff tool is available."""
        try:
            original = _read_file(Path(entry.original_path))
        except (OSError, UnicodeDecodeError) as exc:
            raise StagingIOError(f"failed to read original file {entry.original_path}: {exc}") from exc

        self._print(f"--- original {entry.original_path}", style="red")
        self._print(f"+++ staged {entry.staged_path}", style="green")
        self._print("Original:", style="bold")
        self._print(original.rstrip("\n"))
        self._print("\nModified:", style="bold")
        self._print(entry.content.rstrip("\n"))

    def _materialize(self, entry: StagedEntry) -> None:
        # Another entry may have reused this scratch file since staging.
        try:
            _write_file(entry.staged_path, entry.content)
        except OSError as exc:
            raise StagingIOError(f"failed to write staged file for {entry.original_path}: {exc}") from exc

    @staticmethod
    def _run_diff(cmd: List[str]) -> "subprocess.CompletedProcess[str]":
        logger.debug("Running diff command: %s", " ".join(cmd))
        return subprocess.run(
            cmd,
            check=False,
            text=True,
            errors="replace",
            capture_output=True,
            stdin=subprocess.DEVNULL,
        )

    def _use_color(self) -> bool:
        return self.console.is_terminal and self.console.color_system is not None

    def _emit_diff(self, output: str) -> None:
        if not output.strip():
            self._print("(no changes)", style="dim")
            return
        self.console.print(Text.from_ansi(output.rstrip("\n")), soft_wrap=True)

    def _print(self, text: str, style: Optional[str] = None) -> None:
        self.console.print(Text(text, style=style or ""), soft_wrap=True)

    # ----------------
    # Apply / cleanup
    # ----------------
    def apply_changes(self) -> List[str]:
        """
        Write every entry to its real path, in staging order.

        Returns the list of paths written.  Raises PartialApplyError on
        the first failure; earlier files stay written and later ones are
        not attempted.
        """

        applied: List[str] = []
        total = len(self.entries)
        for entry in self.entries:
            if is_stdin(entry.original_path):
                # No destination on disk: hand the result back on the console.
                self.console.print(Text(entry.content), soft_wrap=True, end="")
                applied.append(entry.original_path)
                continue

            target = Path(entry.original_path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                _write_file(target, entry.content)
            except OSError as exc:
                logger.error(
                    "Apply stopped at %s after %d of %d files", entry.original_path, len(applied), total
                )
                raise PartialApplyError(entry.original_path, applied, total, cause=exc) from exc

            applied.append(entry.original_path)
            self._print(f"Applied changes to: {entry.original_path}")
        return applied

    def cleanup(self) -> None:
        """Remove the staging directory and everything in it."""
        if self._cleaned:
            return
        self._cleaned = True
        try:
            shutil.rmtree(self.staging_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StagingIOError(f"failed to remove staging directory {self.staging_dir}: {exc}") from exc
        logger.debug("Removed staging directory %s", self.staging_dir)
