"""
Git integration for llm-tool.

Only what the review workflow needs: the diff between the working tree
and another branch.
"""

from __future__ import annotations

import logging
import subprocess
from typing import List, Optional

from .errors import GitError

logger = logging.getLogger(__name__)


def _run_git(args: List[str], cwd: Optional[str] = None) -> "subprocess.CompletedProcess[str]":
    """
    Run a git command and return the completed process.

    All git invocations go through here so that error handling and
    logging are centralized.
    """

    cmd = ["git", *args]
    logger.debug("Running git command: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd or None,
            check=False,
            text=True,
            capture_output=True,
        )
    except OSError as exc:
        raise GitError(f"failed to execute git: {exc}") from exc

    if completed.returncode != 0:
        logger.debug("git stderr: %s", completed.stderr)
        raise GitError(f"git command failed: {' '.join(cmd)}: {completed.stderr.strip()}")

    return completed


def get_current_branch(repo_path: Optional[str] = None) -> str:
    return _run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=repo_path).stdout.strip()


def get_diff(branch: str, repo_path: Optional[str] = None) -> str:
    """
    Return the diff between the working tree and ``branch``.

    When that is empty (for instance when everything is committed on a
    branch that forked from ``branch``), fall back to the changes on the
    current branch since it diverged: ``git diff branch...current``.
    """

    diff = _run_git(["diff", branch], cwd=repo_path).stdout
    if diff.strip():
        return diff

    current = get_current_branch(repo_path)
    logger.debug("Empty diff against %s; comparing %s...%s", branch, branch, current)
    return _run_git(["diff", f"{branch}...{current}"], cwd=repo_path).stdout
