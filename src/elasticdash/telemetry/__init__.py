"""Telemetry dispatch - non-blocking, batched event delivery."""

from .events import Event, EventType
from .dispatch import DeliveryReport, DispatchQueue, QueueState
from .transport import Ack, EventRejection, HttpTransport, Transport

__all__ = [
    "Event",
    "EventType",
    "DeliveryReport",
    "DispatchQueue",
    "QueueState",
    "Ack",
    "EventRejection",
    "HttpTransport",
    "Transport",
]
