"""Exception hierarchy for the ElasticDash SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .telemetry.events import Event


class ElasticDashError(Exception):
    """Base exception for ElasticDash SDK errors."""
    pass


class QueueClosed(ElasticDashError):
    """Raised when an event is enqueued after shutdown has begun."""
    pass


class DeliveryFailed(ElasticDashError):
    """
    A batch that could not be delivered.

    Never raised from enqueue. Collected into a DeliveryReport by
    flush/shutdown, or raised in aggregate by
    DeliveryReport.raise_for_failures().
    """
    def __init__(
        self,
        message: str,
        events: list[Event] | None = None,
        cause: BaseException | None = None,
        failures: list[DeliveryFailed] | None = None,
    ):
        super().__init__(message)
        self.events = events or []
        self.cause = cause
        self.failures = failures or []

    @property
    def event_ids(self) -> list[str]:
        return [event.id for event in self.events]


class ResourceNotFound(ElasticDashError):
    """The backend confirmed the requested resource does not exist."""
    def __init__(self, key: str):
        super().__init__(f"Resource not found: {key}")
        self.key = key


class FetchUnavailable(ElasticDashError):
    """A fetch failed transiently and no cached value exists."""
    def __init__(self, key: str, reason: str = ""):
        message = f"Resource unavailable: {key}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.key = key
        self.reason = reason


class TransportError(ElasticDashError):
    """Base class for transport failures."""
    pass


class TransientTransportError(TransportError):
    """Retryable failure: network error, timeout, 5xx or rate limiting."""
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after_seconds: float | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after_seconds = retry_after_seconds


class PermanentTransportError(TransportError):
    """Non-retryable failure: malformed request, auth failure, other 4xx."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
