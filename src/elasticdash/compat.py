"""Old client method names, forwarded to the managers and the API client."""

from __future__ import annotations

import warnings
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .api.client import ApiClient
    from .prompts.manager import PromptManager
    from .prompts.types import Prompt


def _deprecated(old: str, new: str) -> None:
    warnings.warn(
        f"{old}() is deprecated, use {new}() instead",
        DeprecationWarning,
        stacklevel=3,
    )


class DeprecatedAliases:
    """Mixin keeping the pre-manager API working."""

    prompt: PromptManager
    api: ApiClient

    async def get_prompt(self, name: str, **kwargs: Any) -> Prompt:
        _deprecated("get_prompt", "prompt.get")
        return await self.prompt.get(name, **kwargs)

    async def create_prompt(self, name: str, prompt: Any, **kwargs: Any) -> Prompt:
        _deprecated("create_prompt", "prompt.create")
        return await self.prompt.create(name, prompt, **kwargs)

    async def update_prompt(self, name: str, version: int, new_labels: list[str]) -> Prompt:
        _deprecated("update_prompt", "prompt.update")
        return await self.prompt.update(name, version, new_labels)

    # Read API

    async def fetch_trace(self, trace_id: str) -> dict[str, Any]:
        _deprecated("fetch_trace", "api.get_trace")
        return await self.api.get_trace(trace_id)

    async def fetch_traces(self, **filters: Any) -> dict[str, Any]:
        _deprecated("fetch_traces", "api.list_traces")
        return await self.api.list_traces(**filters)

    async def fetch_observation(self, observation_id: str) -> dict[str, Any]:
        _deprecated("fetch_observation", "api.get_observation")
        return await self.api.get_observation(observation_id)

    async def fetch_observations(self, **filters: Any) -> dict[str, Any]:
        _deprecated("fetch_observations", "api.list_observations")
        return await self.api.list_observations(**filters)

    async def fetch_sessions(self, session_id: str) -> dict[str, Any]:
        _deprecated("fetch_sessions", "api.get_session")
        return await self.api.get_session(session_id)
