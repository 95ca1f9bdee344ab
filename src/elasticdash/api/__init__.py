"""HTTP layer for the public ElasticDash API."""

from .client import ApiClient
from .models import (
    ChatMessage,
    ChatPromptModel,
    IngestionResponse,
    ScoreBody,
    TextPromptModel,
)

__all__ = [
    "ApiClient",
    "ChatMessage",
    "ChatPromptModel",
    "IngestionResponse",
    "ScoreBody",
    "TextPromptModel",
]
