"""
llm-tool package.

This package provides a command-line interface for talking to several
LLM providers through one interface.  Besides plain questions it offers:

* A code review of the git diff between the current branch and another.
* A staged edit workflow: providers rewrite whole files, the results are
  kept in a private staging directory, shown as diffs, and written to
  their real paths only after confirmation.

See `cli.py` for the entry point and `staging.py` for the staging area.
"""

__version__ = "0.1.0"

__all__ = [
    "cli",
]
