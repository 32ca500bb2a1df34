"""
Prompt templates shared by every provider.

Keeping the wording here means each backend only decides how to send
messages, not what to say.
"""

from __future__ import annotations

from typing import Dict, List

Message = Dict[str, str]

REVIEW_SYSTEM = (
    "You are a helpful code reviewer. Provide clear, concise, and constructive "
    "feedback on git diffs."
)

REFACTOR_SYSTEM = (
    "You are an expert software engineer tasked with refactoring code files. "
    "Provide only the refactored code without explanations unless explicitly asked."
)

REVIEW_TEMPLATE = """Review this git diff and provide actionable feedback:

{diff}

Please analyze:
1. Code quality issues
2. Potential bugs
3. Security concerns
4. Performance considerations
5. Suggested improvements
"""

REFACTOR_TEMPLATE = """Refactor the following file based on these instructions:

Instructions:
{instructions}

Filename: {filename}

Content:
{content}

Please provide the complete refactored file content, maintaining the original functionality unless the instructions
specifically require changes. Keep all imports and package declarations."""


def ask_messages(prompt: str) -> List[Message]:
    return [{"role": "user", "content": prompt}]


def review_messages(diff: str) -> List[Message]:
    return [
        {"role": "system", "content": REVIEW_SYSTEM},
        {"role": "user", "content": REVIEW_TEMPLATE.format(diff=diff)},
    ]


def refactor_messages(filename: str, content: str, instructions: str) -> List[Message]:
    return [
        {"role": "system", "content": REFACTOR_SYSTEM},
        {
            "role": "user",
            "content": REFACTOR_TEMPLATE.format(
                instructions=instructions,
                filename=filename,
                content=content,
            ),
        },
    ]


def strip_code_fence(text: str) -> str:
    """
    Remove a single Markdown code fence wrapping the whole answer.

    Models often wrap a file in ```lang ... ``` despite being told not to;
    anything else is returned unchanged.
    """

    stripped = text.strip()
    if not stripped.startswith("```") or not stripped.endswith("```"):
        return text
    lines = stripped.splitlines()
    if len(lines) < 2:
        return text
    body = "\n".join(lines[1:-1])
    return body + "\n" if body else body
