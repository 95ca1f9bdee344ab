"""
ElasticDash Python SDK

Records scores and fetches prompts for the ElasticDash LLM-observability
platform. Telemetry is buffered and shipped to the backend in batches;
prompts are served from a per-client read-through cache.

Usage:
    from elasticdash import ElasticDash

    async with ElasticDash() as client:
        prompt = await client.prompt.get("movie-critic", label="production")
        text = prompt.compile(movie="Dune")

        client.score.create("quality", 0.8, trace_id="trace-123")
        report = await client.flush()
"""

from .client import ElasticDash
from .config import CacheConfig, ClientConfig, DispatchConfig
from .context import ClientContext
from .errors import (
    DeliveryFailed,
    ElasticDashError,
    FetchUnavailable,
    PermanentTransportError,
    QueueClosed,
    ResourceNotFound,
    TransientTransportError,
    TransportError,
)
from .prompts import ChatPrompt, TextPrompt
from .telemetry import DeliveryReport
from .version import __version__

__all__ = [
    # Client
    "ElasticDash",
    "ClientContext",
    # Configuration
    "ClientConfig",
    "DispatchConfig",
    "CacheConfig",
    # Results
    "DeliveryReport",
    "TextPrompt",
    "ChatPrompt",
    # Exceptions
    "ElasticDashError",
    "QueueClosed",
    "DeliveryFailed",
    "ResourceNotFound",
    "FetchUnavailable",
    "TransportError",
    "TransientTransportError",
    "PermanentTransportError",
    "__version__",
]
