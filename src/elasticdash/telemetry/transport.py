"""Transports - destinations for event batches."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .events import Event

if TYPE_CHECKING:
    from ..api.client import ApiClient


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EventRejection:
    """An event the backend refused inside an otherwise accepted batch."""
    event_id: str
    status: int
    message: str | None = None


@dataclass
class Ack:
    """Acknowledgement for a delivered batch."""
    successes: list[str] = field(default_factory=list)
    errors: list[EventRejection] = field(default_factory=list)

    @classmethod
    def all_of(cls, batch: list[Event]) -> Ack:
        return cls(successes=[event.id for event in batch])


class Transport(ABC):
    """
    Abstract base class for batch transports.

    send() delivers one batch. It raises TransientTransportError for
    failures worth retrying and PermanentTransportError otherwise.
    Batches may be resent after a transient failure, so send should be
    idempotent on event ids.
    """

    @abstractmethod
    async def send(self, batch: list[Event]) -> Ack:
        ...

    async def start(self) -> None:
        """Initialize the transport (called when the queue starts)."""
        pass

    async def stop(self) -> None:
        """Clean up the transport (called after the queue shuts down)."""
        pass


class HttpTransport(Transport):
    """Sends batches to the public ingestion endpoint."""

    def __init__(self, api: ApiClient):
        self._api = api

    async def send(self, batch: list[Event]) -> Ack:
        response = await self._api.ingest([event.to_dict() for event in batch])

        errors = [
            EventRejection(event_id=e.id, status=e.status, message=e.message)
            for e in response.errors
        ]
        if errors:
            logger.warning(
                f"Ingestion rejected {len(errors)} of {len(batch)} events: "
                f"{[f'{e.event_id}={e.status}' for e in errors]}"
            )
        return Ack(successes=[s.id for s in response.successes], errors=errors)
