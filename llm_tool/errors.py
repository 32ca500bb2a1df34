"""
Exception types used across llm-tool.

Workflows raise these and the CLI is the single place that turns them
into log lines and exit codes.
"""

from __future__ import annotations

from typing import List, Optional


class LLMToolError(Exception):
    """Base class for all llm-tool specific errors."""


class ConfigError(LLMToolError):
    """Raised when configuration or provider credentials are unusable."""


class ProviderError(LLMToolError):
    """Raised when a generation call fails or returns nothing usable."""


class GitError(LLMToolError):
    """Raised when git operations fail."""


class StagingIOError(LLMToolError):
    """Raised when the staging directory, a scratch file, an original
    file or the diff tool cannot be used."""


class PartialApplyError(StagingIOError):
    """
    Raised when applying staged changes stops part way through.

    Files listed in ``applied`` were already written and are not rolled
    back; ``path`` is the file that failed and everything after it was
    skipped.
    """

    def __init__(
        self,
        path: str,
        applied: List[str],
        total: int,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.path = path
        self.applied = list(applied)
        self.total = total
        message = (
            f"failed to write {path} ({len(self.applied)} of {total} files "
            f"already applied, {total - len(self.applied) - 1} skipped)"
        )
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UserAborted(LLMToolError):
    """Raised at the approval gate when the user declines the changes."""
