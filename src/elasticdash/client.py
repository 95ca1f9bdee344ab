"""Main client class."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from .compat import DeprecatedAliases
from .config import ClientConfig
from .context import ClientContext
from .prompts.manager import PromptManager
from .scores.manager import ScoreManager
from .telemetry.dispatch import DeliveryReport


logger = logging.getLogger(__name__)


def _configure_logging(config: ClientConfig) -> None:
    """Set the SDK logger level. Handlers are left to the application."""
    if config.debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, config.log_level.upper(), logging.WARNING)
    logging.getLogger("elasticdash").setLevel(level)


class ElasticDash(DeprecatedAliases):
    """
    Client for the ElasticDash observability platform.

    Usage:
        async with ElasticDash() as client:
            prompt = await client.prompt.get("my-prompt")
            client.score.create("quality", 0.8, trace_id=trace_id)

        # Or with explicit credentials
        client = ElasticDash(
            public_key="pk_...",
            secret_key="sk_...",
            base_url="https://your-instance.elasticdash.com",
        )
        ...
        await client.shutdown()
    """

    def __init__(
        self,
        public_key: str | None = None,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        additional_headers: dict[str, str] | None = None,
        *,
        config: ClientConfig | None = None,
        context: ClientContext | None = None,
    ):
        config = context.config if context is not None else (config or ClientConfig())
        overrides: dict[str, Any] = {
            "public_key": public_key,
            "secret_key": secret_key,
            "base_url": base_url,
            "timeout": timeout,
            "additional_headers": additional_headers,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            if context is not None:
                raise ValueError("Pass credentials through the context's config, not both")
            config = replace(config, **overrides)

        _configure_logging(config)

        if not config.public_key:
            logger.warning(
                "No public key provided in constructor or as ELASTICDASH_PUBLIC_KEY "
                "env var. Client operations will fail."
            )
        if not config.secret_key:
            logger.warning(
                "No secret key provided in constructor or as ELASTICDASH_SECRET_KEY "
                "env var. Client operations will fail."
            )

        self.config = config
        self.context = context or ClientContext.create(config)
        self.api = self.context.api
        self.prompt = PromptManager(api=self.api, cache=self.context.prompt_cache)
        self.score = ScoreManager(
            queue=self.context.score_queue, environment=config.environment
        )
        self._project_id: str | None = None

        logger.debug(
            f"Initialized ElasticDash client (public_key={config.public_key}, "
            f"base_url={config.base_url}, timeout={config.timeout}s)"
        )

    async def start(self) -> None:
        """Start the background flush timer. Optional; enqueueing also starts it."""
        await self.context.score_queue.start()

    async def flush(self) -> DeliveryReport:
        """
        Send all pending scores now instead of waiting for the flush
        interval or the batch size threshold.
        """
        return await self.score.flush()

    async def shutdown(self) -> DeliveryReport:
        """
        Flush pending data and release the HTTP client.

        Call before the application exits. Safe to call more than once.
        """
        report = await self.score.shutdown()
        await self.api.aclose()
        return report

    async def get_trace_url(self, trace_id: str) -> str:
        """URL of a trace in the ElasticDash UI."""
        if self._project_id is None:
            projects = await self.api.list_projects()
            if not projects:
                raise ValueError("No project found for the configured API keys")
            self._project_id = projects[0]["id"]

        base_url = self.config.base_url.rstrip("/")
        return f"{base_url}/project/{self._project_id}/traces/{trace_id}"

    async def __aenter__(self) -> ElasticDash:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        report = await self.shutdown()
        if not report.ok:
            logger.error(
                f"{len(report.failed_events)} event(s) were not delivered before exit"
            )
