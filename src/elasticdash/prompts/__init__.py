"""Prompt management."""

from .manager import PromptManager, make_prompt_fetcher
from .types import ChatPrompt, Prompt, TextPrompt, prompt_from_model

__all__ = [
    "PromptManager",
    "make_prompt_fetcher",
    "ChatPrompt",
    "Prompt",
    "TextPrompt",
    "prompt_from_model",
]
