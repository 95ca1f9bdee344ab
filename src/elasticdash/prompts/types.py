"""Prompt clients returned by PromptManager."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ..api.models import ChatMessage, ChatPromptModel, PromptModel, TextPromptModel


_VARIABLE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def _compile(template: str, variables: dict[str, Any]) -> str:
    """Substitute {{name}} placeholders; unknown names are left as-is."""
    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return _VARIABLE.sub(substitute, template)


@dataclass(frozen=True)
class TextPrompt:
    """A text prompt, possibly a locally built fallback."""
    model: TextPromptModel
    is_fallback: bool = False

    @property
    def name(self) -> str:
        return self.model.name

    @property
    def version(self) -> int:
        return self.model.version

    @property
    def labels(self) -> list[str]:
        return self.model.labels

    @property
    def config(self) -> dict[str, Any]:
        return self.model.config

    @property
    def prompt(self) -> str:
        return self.model.prompt

    @property
    def variables(self) -> list[str]:
        return _VARIABLE.findall(self.model.prompt)

    def compile(self, **variables: Any) -> str:
        return _compile(self.model.prompt, variables)


@dataclass(frozen=True)
class ChatPrompt:
    """A chat prompt, possibly a locally built fallback."""
    model: ChatPromptModel
    is_fallback: bool = False

    @property
    def name(self) -> str:
        return self.model.name

    @property
    def version(self) -> int:
        return self.model.version

    @property
    def labels(self) -> list[str]:
        return self.model.labels

    @property
    def config(self) -> dict[str, Any]:
        return self.model.config

    @property
    def prompt(self) -> list[ChatMessage]:
        return self.model.prompt

    @property
    def variables(self) -> list[str]:
        found: list[str] = []
        for message in self.model.prompt:
            for name in _VARIABLE.findall(message.content):
                if name not in found:
                    found.append(name)
        return found

    def compile(self, **variables: Any) -> list[dict[str, Any]]:
        return [
            {**message.model_dump(), "content": _compile(message.content, variables)}
            for message in self.model.prompt
        ]


Prompt = TextPrompt | ChatPrompt


def prompt_from_model(model: PromptModel, is_fallback: bool = False) -> Prompt:
    if isinstance(model, ChatPromptModel):
        return ChatPrompt(model, is_fallback=is_fallback)
    return TextPrompt(model, is_fallback=is_fallback)
