"""Prompt retrieval through the resource cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Literal

from ..api.client import ApiClient
from ..api.models import ChatPromptModel, TextPromptModel
from ..cache.resource import Fetcher, ResourceCache, ResourceKey
from .types import Prompt, prompt_from_model


logger = logging.getLogger(__name__)

MAX_RETRIES_UPPER_BOUND = 4


def make_prompt_fetcher(api: ApiClient, timeout: float | None = None) -> Fetcher:
    """Fetcher that loads a prompt from the API and wraps it in a prompt client."""
    async def fetch(key: ResourceKey) -> Prompt:
        logger.debug(f"Fetching prompt '{key}' from server...")
        model = await api.get_prompt(
            key.name, version=key.version, label=key.label, timeout=timeout
        )
        return prompt_from_model(model)

    return fetch


@dataclass
class PromptManager:
    """
    Prompt retrieval, creation and label updates.

    Usage:
        prompt = await client.prompt.get("movie-critic")
        text = prompt.compile(movie="Dune")
    """
    api: ApiClient
    cache: ResourceCache

    async def get(
        self,
        name: str,
        *,
        version: int | None = None,
        label: str | None = None,
        type: Literal["text", "chat"] = "text",
        cache_ttl_seconds: float | None = None,
        fallback: str | list[dict[str, str]] | None = None,
        max_retries: int | None = None,
        fetch_timeout_seconds: float | None = None,
    ) -> Prompt:
        """
        Get a prompt, served from cache when possible.

        A stale cached prompt is returned immediately while a refresh runs in
        the background. If nothing is cached and the fetch fails, `fallback`
        (when given) is returned as a prompt with is_fallback=True.

        Args:
            name: Prompt name
            version: Specific version (exclusive with label)
            label: Label to resolve; defaults to "production"
            type: Prompt type, used to build the fallback
            cache_ttl_seconds: TTL for this prompt; 0 disables caching
            fallback: Prompt text (or chat messages) to use if fetching fails
            max_retries: Retries on transient errors, capped at 4
            fetch_timeout_seconds: Per-attempt fetch timeout

        Raises:
            ValueError: Empty name, or both version and label given
            ResourceNotFound: No such prompt and no fallback
            FetchUnavailable: Backend unreachable, nothing cached, no fallback
        """
        key = ResourceKey(name=name, version=version, label=label)

        policy = self.cache.retry_policy
        if max_retries is not None:
            bounded = min(max(max_retries, 0), MAX_RETRIES_UPPER_BOUND)
            policy = replace(policy, max_retries=bounded)
        fetcher = None
        if fetch_timeout_seconds is not None:
            policy = replace(policy, timeout_seconds=fetch_timeout_seconds)
            fetcher = make_prompt_fetcher(self.api, timeout=fetch_timeout_seconds)

        fallback_prompt = None
        if fallback is not None:
            fallback_prompt = self._build_fallback(name, version, label, type, fallback)

        result = await self.cache.resolve(
            key,
            ttl_seconds=cache_ttl_seconds,
            fallback=fallback_prompt,
            fetcher=fetcher,
            retry_policy=policy,
        )
        logger.debug(f"Prompt '{key}' resolved ({result.status.value})")
        return result.value

    async def create(
        self,
        name: str,
        prompt: str | list[dict[str, str]],
        *,
        type: Literal["text", "chat"] | None = None,
        labels: list[str] | None = None,
        tags: list[str] | None = None,
        config: dict[str, Any] | None = None,
        commit_message: str | None = None,
    ) -> Prompt:
        """Create a new prompt version."""
        if type is None:
            type = "text" if isinstance(prompt, str) else "chat"

        body: dict[str, Any] = {
            "name": name,
            "type": type,
            "prompt": prompt,
            "labels": labels or [],
            "tags": tags or [],
            "config": config or {},
        }
        if commit_message is not None:
            body["commitMessage"] = commit_message

        model = await self.api.create_prompt(body)
        # Labels may have moved to the new version
        self.cache.invalidate_name(name)
        return prompt_from_model(model)

    async def update(self, name: str, version: int, new_labels: list[str]) -> Prompt:
        """Set labels on a prompt version."""
        model = await self.api.update_prompt_labels(name, version, new_labels)
        self.cache.invalidate_name(name)
        return prompt_from_model(model)

    def _build_fallback(
        self,
        name: str,
        version: int | None,
        label: str | None,
        type: str,
        fallback: str | list[dict[str, str]],
    ) -> Prompt:
        fields: dict[str, Any] = {
            "name": name,
            "version": version or 0,
            "labels": [label] if label else [],
            "prompt": fallback,
        }
        if type == "chat":
            return prompt_from_model(ChatPromptModel(**fields), is_fallback=True)
        return prompt_from_model(TextPromptModel(**fields), is_fallback=True)
