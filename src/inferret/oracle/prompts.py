"""Prompt construction for boolean code assertions."""

from __future__ import annotations

from typing import Final

from inferret.oracle.base import VERDICT_KEY, OracleMessage

VERDICT_INSTRUCTION: Final[str] = (
    "Based on the code analysis, answer the following question with a JSON-formatted "
    f'boolean response in the format: ```{{"{VERDICT_KEY}": true}}```.'
)


def code_context_message(tag_name: str, code: str) -> OracleMessage:
    return OracleMessage(
        role="system",
        content=(
            f"Here is a code block tagged as [{tag_name}]. "
            f"Please analyze the following code: \n\n{code}"
        ),
    )


def assertion_message(assertion: str) -> OracleMessage:
    return OracleMessage(
        role="user",
        content=f"Is the following assertion about the code true? {assertion}",
    )


def build_messages(*, tag_name: str, code: str, assertion: str) -> tuple[OracleMessage, ...]:
    """Return the fixed three-message conversation for one sampling trial."""

    return (
        code_context_message(tag_name, code),
        OracleMessage(role="system", content=VERDICT_INSTRUCTION),
        assertion_message(assertion),
    )


__all__ = [
    "VERDICT_INSTRUCTION",
    "assertion_message",
    "build_messages",
    "code_context_message",
]
