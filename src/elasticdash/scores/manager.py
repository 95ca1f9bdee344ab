"""Score creation on top of the dispatch queue."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import ValidationError

from ..api.models import ScoreBody
from ..telemetry.dispatch import DeliveryReport, DispatchQueue
from ..telemetry.events import Event, EventType


logger = logging.getLogger(__name__)


@dataclass
class ScoreManager:
    """
    Queues scores for batched delivery.

    create() never blocks on the network; call flush() (or the client's
    flush()) to send pending scores immediately.
    """
    queue: DispatchQueue
    environment: str | None = None

    def create(
        self,
        name: str,
        value: float | str,
        *,
        trace_id: str | None = None,
        observation_id: str | None = None,
        session_id: str | None = None,
        dataset_run_id: str | None = None,
        comment: str | None = None,
        data_type: Literal["NUMERIC", "CATEGORICAL", "BOOLEAN"] | None = None,
        config_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        id: str | None = None,
    ) -> str | None:
        """
        Queue a score.

        Returns the score id, or None if the score was invalid (logged,
        not raised, so scoring cannot break the caller).

        Raises:
            QueueClosed: If the client has been shut down
        """
        score_id = id or str(uuid.uuid4())
        try:
            body = ScoreBody(
                id=score_id,
                name=name,
                value=value,
                trace_id=trace_id,
                observation_id=observation_id,
                session_id=session_id,
                dataset_run_id=dataset_run_id,
                comment=comment,
                data_type=data_type,
                config_id=config_id,
                metadata=metadata,
                environment=self.environment,
            )
        except ValidationError as e:
            logger.error(f"Invalid score '{name}', not queued: {e}")
            return None

        self.queue.enqueue(Event.create(EventType.SCORE_CREATE, body.to_payload()))
        logger.debug(f"Queued score '{name}' ({score_id})")
        return score_id

    async def flush(self) -> DeliveryReport:
        """Send all pending scores now."""
        return await self.queue.flush()

    async def shutdown(self) -> DeliveryReport:
        """Send pending scores and stop accepting new ones."""
        return await self.queue.shutdown()
