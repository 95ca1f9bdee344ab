"""Telemetry event types."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Ingestion event types sent by the SDK."""
    SCORE_CREATE = "score-create"
    TRACE_CREATE = "trace-create"
    EVENT_CREATE = "event-create"
    SDK_LOG = "sdk-log"


@dataclass(frozen=True, slots=True)
class Event:
    """
    A single unit of telemetry destined for the ingestion endpoint.

    Immutable once created. The id is generated client-side so the
    backend can deduplicate retried batches.
    """
    id: str
    type: str
    timestamp: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        type: EventType | str,
        payload: dict[str, Any],
        id: str | None = None,
    ) -> Event:
        """Factory method with sensible defaults. The payload is copied."""
        return cls(
            id=id or str(uuid.uuid4()),
            type=type.value if isinstance(type, EventType) else type,
            timestamp=datetime.now(timezone.utc),
            payload=copy.deepcopy(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        """Ingestion envelope for this event."""
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "body": self.payload,
        }
