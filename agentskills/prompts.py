from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, Sequence

ALL_WORDS = {"all", "*"}


@dataclass(slots=True)
class Choice:
    value: str
    label: str
    hint: str = ""


class Prompter:
    """Line-oriented terminal prompts.

    Multi-select answers are comma or space separated option numbers or
    values; ``all`` picks every option and an empty answer keeps the default.
    """

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self._input = input_fn
        self._output = output_fn

    def _ask(self, prompt: str) -> str | None:
        try:
            return self._input(prompt).strip()
        except EOFError:
            self._output("")
            return None

    def _show(self, message: str, choices: Sequence[Choice], default: Sequence[str]) -> None:
        self._output(message)
        for index, choice in enumerate(choices, start=1):
            marker = "*" if choice.value in default else " "
            hint = f"  ({choice.hint})" if choice.hint else ""
            self._output(f"  {marker} {index}. {choice.label}{hint}")

    def select(self, message: str, choices: Sequence[Choice], default: str) -> str:
        self._show(message, choices, [default])
        answer = self._ask(f"> [{default}] ")
        if not answer:
            return default
        return _lookup(answer, choices)

    def multiselect(self, message: str, choices: Sequence[Choice], default: Sequence[str]) -> list[str]:
        self._show(message, choices, default)
        shown = ",".join(default) if default else "none"
        answer = self._ask(f"> [{shown}] ")
        if not answer:
            return list(default)
        tokens = [part for part in answer.replace(",", " ").split() if part]
        if any(token.lower() in ALL_WORDS for token in tokens):
            return [choice.value for choice in choices]
        picked: list[str] = []
        for token in tokens:
            value = _lookup(token, choices)
            if value not in picked:
                picked.append(value)
        return picked

    def confirm(self, message: str, default: bool = False) -> bool:
        suffix = "[Y/n]" if default else "[y/N]"
        answer = self._ask(f"{message} {suffix} ")
        if not answer:
            return default
        return answer.lower() in {"y", "yes", "true", "1"}


def _lookup(token: str, choices: Sequence[Choice]) -> str:
    if token.isdigit():
        index = int(token) - 1
        if 0 <= index < len(choices):
            return choices[index].value
    return token


def stdin_is_interactive() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False
