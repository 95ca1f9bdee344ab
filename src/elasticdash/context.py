"""Per-client shared state."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from .api.client import ApiClient
from .cache.resource import ResourceCache
from .config import ClientConfig
from .prompts.manager import make_prompt_fetcher
from .telemetry.dispatch import DispatchQueue
from .telemetry.transport import HttpTransport


@dataclass
class ClientContext:
    """
    Everything a client instance shares between its managers.

    Owned by one ElasticDash client, never global, so two clients in one
    process (or two tests) cannot see each other's cache or queue.
    """
    config: ClientConfig
    api: ApiClient
    prompt_cache: ResourceCache
    score_queue: DispatchQueue

    @classmethod
    def create(
        cls,
        config: ClientConfig,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> ClientContext:
        """Build the default wiring: httpx API client, prompt cache, score queue."""
        api = ApiClient(config, transport=http_transport)

        prompt_cache = ResourceCache(
            fetcher=make_prompt_fetcher(api),
            default_ttl_seconds=config.cache.default_ttl_seconds,
            stale_grace_seconds=config.cache.stale_grace_seconds,
            retry_policy=config.cache.retry_policy(config.timeout),
        )

        score_queue = DispatchQueue(
            transport=HttpTransport(api),
            config=config.dispatch,
            name="score",
        )

        return cls(
            config=config,
            api=api,
            prompt_cache=prompt_cache,
            score_queue=score_queue,
        )
