"""
Entry point for the llm-tool command-line interface.

llm-tool sends prompts to one of several LLM providers (OpenAI, Gemini,
CBOE) and builds two workflows on top of the answers: reviewing a git
diff and rewriting files with a staged, confirm-before-write edit.

Usage examples::

    # Ask a question, streaming the answer
    llm-tool ask "What does EAFP mean in Python?"

    # Review the changes of the current branch against main
    llm-tool review main --provider gemini

    # Rewrite two files, review the diffs, then confirm
    llm-tool edit "Add type hints" src/a.py src/b.py

    # Rewrite piped content without asking; the result lands in output.txt
    cat notes.md | llm-tool edit "Fix the spelling" --yes

During development the CLI can also be run with ``python -m llm_tool.cli``.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable, List, Optional, TextIO, Tuple

from rich.console import Console
from rich.text import Text

from .config import ToolConfig, get_config_path
from .edit import run_edit
from .errors import LLMToolError, PartialApplyError
from .fileutil import STDIN_SENTINEL
from .git_ops import get_diff
from .providers import PROVIDERS, new_client
from .providers.cboe_client import setup_token

logger = logging.getLogger("llm_tool.cli")


def _add_provider_args(parser: argparse.ArgumentParser, datasource: bool = False) -> None:
    parser.add_argument(
        "-p",
        "--provider",
        choices=PROVIDERS,
        default=None,
        help="LLM provider (default: defaultProvider from the config file).",
    )
    parser.add_argument(
        "-m",
        "--model",
        default=None,
        help="Model to use (defaults to the provider's model in the config file).",
    )
    if datasource:
        parser.add_argument(
            "-d",
            "--datasource",
            default=None,
            help="Datasource to use (CBOE only).",
        )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-tool",
        description="Query LLM APIs from the command line, review diffs and edit files.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.environ.get("LLM_TOOL_LOGLEVEL", "WARNING").upper(),
        help="Logging verbosity (default from env LLM_TOOL_LOGLEVEL or WARNING).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ask = commands.add_parser("ask", help="Ask a question to an LLM.")
    ask.add_argument("prompt", nargs="+", help="The question; several words are joined with spaces.")
    _add_provider_args(ask, datasource=True)

    review = commands.add_parser(
        "review",
        help="Review the code diff between the current branch and the given branch.",
    )
    review.add_argument("branch", help="Branch to compare against.")
    _add_provider_args(review)
    review.add_argument(
        "-r",
        "--repo",
        default=None,
        help="Path to git repository (defaults to current directory).",
    )

    edit = commands.add_parser(
        "edit",
        help="Edit or refactor files using an LLM.",
        description=(
            "Edit or refactor files using an LLM based on instructions. Files can be "
            "provided as arguments or piped through stdin. Changes are staged for "
            "review before being applied."
        ),
    )
    edit.add_argument("instructions", nargs="?", default=None, help="What to change.")
    edit.add_argument("files", nargs="*", help="Files to edit; '-' reads from stdin.")
    _add_provider_args(edit, datasource=True)
    edit.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Apply changes without confirmation.",
    )
    edit.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output directory for refactored files.",
    )

    config = commands.add_parser("config", help="Manage configuration.")
    config_commands = config.add_subparsers(dest="config_command", required=True)
    config_commands.add_parser("path", help="Show config file path.")
    setup = config_commands.add_parser("setup-cboe", help="Setup CBOE token for authentication.")
    setup.add_argument("-e", "--email", required=True, help="Email for CBOE authentication.")
    setup.add_argument("-t", "--token", required=True, help="Token for CBOE authentication.")
    setup.add_argument("--endpoint", default="", help="CBOE API endpoint (optional).")

    clear = commands.add_parser("clear-history", help="Clear stored chat history.")
    clear.add_argument("-p", "--provider", choices=PROVIDERS, default=None)

    return parser


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, (level_name or "WARNING").upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(asctime)s %(name)s:%(lineno)d - %(message)s",
    )
    logging.getLogger().setLevel(level)
    for name in ("httpx", "openai", "urllib3"):
        logging.getLogger(name).setLevel(level)


def _stream(console: Console, fragments: Iterable[str]) -> None:
    """Write fragments to the console as they arrive."""
    for fragment in fragments:
        console.print(Text(fragment), end="", soft_wrap=True)
    console.print()


def _cmd_ask(args: argparse.Namespace, console: Console) -> int:
    config = ToolConfig.load()
    client = new_client(args.provider, config, datasource=args.datasource)
    _stream(console, client.ask(" ".join(args.prompt), args.model))
    return 0


def _cmd_review(args: argparse.Namespace, console: Console) -> int:
    config = ToolConfig.load()
    diff = get_diff(args.branch, args.repo)
    if not diff.strip():
        raise LLMToolError(f"no diff found between current branch and {args.branch}")

    client = new_client(args.provider, config)
    console.print(Text("\n=== Code Review ==="))
    _stream(console, client.review_diff(diff, args.model))
    console.print(Text("=== End of Review ==="))
    return 0


def _edit_inputs(args: argparse.Namespace, stdin: TextIO) -> Tuple[str, List[str]]:
    """Work out instructions and targets from arguments and a possible pipe."""
    is_pipe = not stdin.isatty()
    instructions = args.instructions
    files: List[str] = list(args.files)

    if instructions is None:
        if not is_pipe:
            raise LLMToolError("no files specified and no input from pipe")
        # First piped line holds the instructions, the rest is the content.
        instructions = stdin.readline().strip()
        files = [STDIN_SENTINEL]
    elif not files:
        if not is_pipe:
            raise LLMToolError("please provide both instructions and at least one file")
        files = [STDIN_SENTINEL]

    if not instructions.strip():
        raise LLMToolError("refactoring instructions cannot be empty")
    return instructions, files


def _cmd_edit(args: argparse.Namespace, console: Console, stdin: TextIO) -> int:
    instructions, files = _edit_inputs(args, stdin)
    if STDIN_SENTINEL in files and not args.yes:
        logger.warning("Content is read from stdin, so confirmation cannot be typed; pass --yes to apply.")

    config = ToolConfig.load()
    client = new_client(args.provider, config, datasource=args.datasource)
    try:
        run_edit(
            files,
            instructions,
            client,
            model=args.model,
            output_dir=args.output,
            assume_yes=args.yes,
            console=console,
            stdin=stdin,
        )
    except PartialApplyError as exc:
        for path in exc.applied:
            logger.error("Already applied: %s", path)
        raise
    return 0


def _cmd_config(args: argparse.Namespace, console: Console) -> int:
    if args.config_command == "path":
        console.print(Text(str(get_config_path())))
        return 0

    reply = setup_token(args.email, args.token, args.endpoint)
    console.print(Text(f"Token setup successful: {reply}"))

    config = ToolConfig.load()
    config.cboe.email = args.email
    config.cboe.token = args.token
    if args.endpoint:
        config.cboe.endpoint = args.endpoint
    config.save()
    console.print(Text("CBOE credentials saved to config file"))
    return 0


def _cmd_clear_history(args: argparse.Namespace, console: Console) -> int:
    config = ToolConfig.load()
    new_client(args.provider, config).clear_chat_history()
    console.print(Text("Chat history cleared."))
    return 0


def main(
    argv: Optional[List[str]] = None,
    console: Optional[Console] = None,
    stdin: Optional[TextIO] = None,
) -> int:
    """Primary CLI entry point.  Returns an exit code."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    console = console or Console()
    stdin = stdin if stdin is not None else sys.stdin

    try:
        if args.command == "ask":
            return _cmd_ask(args, console)
        if args.command == "review":
            return _cmd_review(args, console)
        if args.command == "edit":
            return _cmd_edit(args, console, stdin)
        if args.command == "config":
            return _cmd_config(args, console)
        return _cmd_clear_history(args, console)
    except KeyboardInterrupt:
        # Graceful shutdown on Ctrl+C
        return 130
    except LLMToolError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("unexpected error")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
