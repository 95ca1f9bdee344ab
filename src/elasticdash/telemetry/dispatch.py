"""Batching dispatch queue for outbound telemetry events."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from ..config import DispatchConfig
from ..errors import DeliveryFailed, QueueClosed, TransientTransportError
from ..retry import retry_async
from .events import Event
from .transport import EventRejection, Transport


logger = logging.getLogger(__name__)


class QueueState(str, Enum):
    """Lifecycle of a dispatch queue."""
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class DeliveryReport:
    """Outcome of a flush or shutdown."""
    delivered: int = 0
    batches_sent: int = 0
    failures: list[DeliveryFailed] = field(default_factory=list)
    rejections: list[EventRejection] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_events(self) -> list[Event]:
        return [event for failure in self.failures for event in failure.events]

    def merge(self, other: DeliveryReport) -> DeliveryReport:
        self.delivered += other.delivered
        self.batches_sent += other.batches_sent
        self.failures.extend(other.failures)
        self.rejections.extend(other.rejections)
        return self

    def raise_for_failures(self) -> None:
        """Raise an aggregated DeliveryFailed if any batch failed."""
        if not self.failures:
            return
        raise DeliveryFailed(
            f"{len(self.failures)} batch(es) with {len(self.failed_events)} "
            f"event(s) were not delivered",
            events=self.failed_events,
            failures=list(self.failures),
        )


@dataclass
class DispatchQueue:
    """
    Buffers telemetry events and delivers them in batches.

    Events are sent when the buffer reaches max_batch_size, when the flush
    timer fires, or on an explicit flush()/shutdown(). Batches go out one
    at a time in enqueue order.

    enqueue() is synchronous and safe to call from any thread. Everything
    else runs on the event loop the queue is bound to (the loop that calls
    start(), or the first loop that enqueues or flushes).
    """
    transport: Transport
    config: DispatchConfig = field(default_factory=DispatchConfig)

    # Used in log messages, one queue per event category
    name: str = "telemetry"

    # Backoff sleep (injectable for tests)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    # Internal state
    _buffer: list[Event] = field(default_factory=list, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _closed: bool = field(default=False, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _timer_task: asyncio.Task | None = field(default=None, init=False)
    _inflight: asyncio.Task | None = field(default=None, init=False)
    _unsent: list[list[Event]] = field(default_factory=list, init=False)
    _drain_report: DeliveryReport = field(default_factory=DeliveryReport, init=False)
    _flush_scheduled: bool = field(default=False, init=False)
    _background: set[asyncio.Task] = field(default_factory=set, init=False)
    _shutdown_task: asyncio.Task | None = field(default=None, init=False)
    _last_flush: float = field(default_factory=time.monotonic, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "events_enqueued": 0,
            "batches_sent": 0,
            "events_sent": 0,
            "events_rejected": 0,
            "batches_failed": 0,
            "events_failed": 0,
        }

    async def start(self) -> None:
        """Bind to the running loop, start the transport and the flush timer."""
        await self.transport.start()
        self._bind_loop(asyncio.get_running_loop())

    def enqueue(self, event: Event) -> None:
        """
        Add an event to the buffer (never blocks on I/O).

        Raises:
            QueueClosed: If shutdown has begun
        """
        with self._lock:
            if self._closed:
                raise QueueClosed(f"{self.name} queue is shut down")
            self._buffer.append(event)
            self._stats["events_enqueued"] += 1
            full = len(self._buffer) >= self.config.max_batch_size

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None and self._loop in (None, running):
            self._bind_loop(running)
            if full:
                self._schedule_flush()
        elif full and self._loop is not None and not self._loop.is_closed():
            # Called from a worker thread
            self._loop.call_soon_threadsafe(self._schedule_flush)
        elif full:
            logger.debug(f"{self.name} queue has no event loop, batch waits for flush()")

    async def flush(self) -> DeliveryReport:
        """
        Deliver everything currently buffered.

        A flush already in progress is joined, not repeated, so concurrent
        callers never cause duplicate delivery.
        """
        report = DeliveryReport()
        await self._flush_into(report)
        return report

    async def _flush_into(self, report: DeliveryReport) -> None:
        """Flush, merging each finished drain into `report` as it completes."""
        self._bind_loop(asyncio.get_running_loop())

        if self._inflight is not None:
            report.merge(await self._join(self._inflight))

        if self.buffer_size:
            if self._inflight is None:
                self._inflight = asyncio.create_task(self._drain())
            report.merge(await self._join(self._inflight))

    async def shutdown(self) -> DeliveryReport:
        """
        Flush and close the queue. Further enqueue() calls raise QueueClosed.

        Idempotent: every caller awaits the same shutdown and gets the
        same report.
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown())
        return await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> DeliveryReport:
        with self._lock:
            self._closed = True

        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

        # Drains that finish before a timeout stay counted in the report
        report = DeliveryReport()
        try:
            await asyncio.wait_for(
                self._flush_into(report), timeout=self.config.shutdown_timeout_seconds
            )
        except asyncio.TimeoutError:
            self._abandon(report)

        await self.transport.stop()
        logger.info(f"{self.name} queue stopped. Stats: {self._stats}")
        return report

    def _abandon(self, report: DeliveryReport) -> None:
        """Cancel the in-flight drain and add everything still undelivered to `report`."""
        report.merge(self._drain_report)

        undelivered = [event for batch in self._unsent for event in batch]
        self._unsent = []
        if self._inflight is not None:
            self._inflight.cancel()
        with self._lock:
            undelivered.extend(self._buffer)
            self._buffer.clear()

        if undelivered:
            timeout = self.config.shutdown_timeout_seconds
            failure = DeliveryFailed(
                f"Shutdown timed out after {timeout}s with {len(undelivered)} "
                f"undelivered event(s)",
                events=undelivered,
            )
            report.failures.append(failure)
            self._stats["events_failed"] += len(undelivered)
            logger.error(str(failure))

    async def _join(self, task: asyncio.Task) -> DeliveryReport:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The drain was abandoned by a timed-out shutdown, not this caller
            if task.cancelled():
                return DeliveryReport().merge(self._drain_report)
            raise

    async def _drain(self) -> DeliveryReport:
        """Snapshot the buffer and deliver it batch by batch (caller is the flush task)."""
        with self._lock:
            pending, self._buffer = self._buffer, []

        size = self.config.max_batch_size
        self._unsent = [pending[i:i + size] for i in range(0, len(pending), size)]
        self._drain_report = report = DeliveryReport()
        self._last_flush = time.monotonic()

        try:
            while self._unsent:
                batch = self._unsent[0]
                report.merge(await self._deliver(batch))
                self._unsent.pop(0)
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

        return report

    async def _deliver(self, batch: list[Event]) -> DeliveryReport:
        """Send one batch with retries. Failures are reported, never requeued."""
        try:
            ack = await retry_async(
                lambda: self.transport.send(batch),
                self.config.retry_policy,
                is_retryable=lambda e: isinstance(e, TransientTransportError),
                retry_after=lambda e: getattr(e, "retry_after_seconds", None),
                sleep=self.sleep,
                description=f"{self.name} batch of {len(batch)}",
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = DeliveryFailed(
                f"Dropped {self.name} batch of {len(batch)} event(s): {e!r}",
                events=batch,
                cause=e,
            )
            logger.error(str(failure))
            self._stats["batches_failed"] += 1
            self._stats["events_failed"] += len(batch)
            return DeliveryReport(failures=[failure])

        delivered = len(batch) - len(ack.errors)
        self._stats["batches_sent"] += 1
        self._stats["events_sent"] += delivered
        self._stats["events_rejected"] += len(ack.errors)
        logger.debug(f"Sent {self.name} batch of {len(batch)} event(s)")
        return DeliveryReport(
            delivered=delivered,
            batches_sent=1,
            rejections=list(ack.errors),
        )

    def _bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is None or self._loop.is_closed():
            self._loop = loop
            self._timer_task = None
        if self._timer_task is None and not self._closed:
            self._timer_task = loop.create_task(self._timer_loop())

    def _schedule_flush(self) -> None:
        """Start a background flush on the bound loop (at most one pending)."""
        if self._flush_scheduled:
            return
        self._flush_scheduled = True
        task = asyncio.get_running_loop().create_task(self._background_flush())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_flush(self) -> None:
        self._flush_scheduled = False
        try:
            report = await self.flush()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{self.name} background flush error: {e}")
            return
        if not report.ok:
            logger.warning(
                f"{self.name} background flush left {len(report.failed_events)} "
                f"event(s) undelivered"
            )

    async def _timer_loop(self) -> None:
        """Flush on interval so events don't sit in the buffer during low traffic."""
        interval = self.config.flush_interval_seconds
        logger.info(f"{self.name} flush timer started (interval={interval}s)")

        delay = interval
        while not self._closed:
            try:
                await asyncio.sleep(delay)
                if self._closed:
                    break
                # A threshold or explicit flush restarts the interval
                elapsed = time.monotonic() - self._last_flush
                if elapsed < interval:
                    delay = interval - elapsed
                    continue
                delay = interval
                if self.buffer_size:
                    await self.flush()
            except asyncio.CancelledError:
                logger.debug(f"{self.name} flush timer cancelled")
                break
            except Exception as e:
                logger.error(f"{self.name} flush timer error: {e}")

    @property
    def state(self) -> QueueState:
        if self._closed:
            return QueueState.SHUTTING_DOWN
        if self._inflight is not None and not self._inflight.done():
            return QueueState.FLUSHING
        if self._buffer:
            return QueueState.ACCUMULATING
        return QueueState.IDLE

    @property
    def buffer_size(self) -> int:
        """Current buffer size."""
        return len(self._buffer)

    @property
    def stats(self) -> dict:
        """Get queue statistics."""
        return {
            **self._stats,
            "buffer_size": self.buffer_size,
            "state": self.state.value,
            "seconds_since_flush": time.monotonic() - self._last_flush,
        }
