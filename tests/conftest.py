"""Shared test fixtures for the ElasticDash SDK tests."""

import asyncio

import httpx
import pytest

from elasticdash.config import CacheConfig, ClientConfig, DispatchConfig
from elasticdash.telemetry.events import Event, EventType
from elasticdash.telemetry.transport import Ack, Transport


# =============================================================================
# Stubs
# =============================================================================

class RecordingTransport(Transport):
    """
    Transport stub that records delivered batches.

    Scripted failures are raised, in order, before any success. With
    `gate` set, send() waits for the event before completing.
    """

    def __init__(self, failures=None, gate: asyncio.Event | None = None, ack=None):
        self.failures = list(failures or [])
        self.gate = gate
        self.ack = ack
        self.attempts = 0
        self.batches: list[list[Event]] = []
        self.stopped = False

    async def send(self, batch):
        self.attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        self.batches.append(list(batch))
        return self.ack(batch) if self.ack else Ack.all_of(batch)

    async def stop(self):
        self.stopped = True

    @property
    def delivered_ids(self) -> list[str]:
        return [event.id for batch in self.batches for event in batch]


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Replacement for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def make_transport():
    return RecordingTransport


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def dispatch_config() -> DispatchConfig:
    """Large interval so the timer never fires during a test."""
    return DispatchConfig(
        max_batch_size=100,
        flush_interval_seconds=60.0,
        max_retries=3,
        backoff_base_seconds=0.1,
        backoff_max_seconds=5.0,
        request_timeout_seconds=1.0,
        shutdown_timeout_seconds=5.0,
    )


@pytest.fixture
def make_event():
    counter = iter(range(1_000_000))

    def factory(label: str | None = None) -> Event:
        n = next(counter)
        return Event.create(
            EventType.SCORE_CREATE,
            {"name": label or f"score-{n}", "value": n},
            id=label,
        )

    return factory


@pytest.fixture
def client_config() -> ClientConfig:
    """Client config that never touches the network or the environment."""
    return ClientConfig(
        public_key="pk-test",
        secret_key="sk-test",
        base_url="https://elasticdash.test",
        timeout=2.0,
        environment=None,
        debug=False,
        log_level="WARNING",
        dispatch=DispatchConfig(
            max_batch_size=10,
            flush_interval_seconds=60.0,
            max_retries=0,
            backoff_base_seconds=0.0,
            request_timeout_seconds=2.0,
            shutdown_timeout_seconds=5.0,
        ),
        cache=CacheConfig(
            default_ttl_seconds=60.0,
            stale_grace_seconds=5.0,
            fetch_max_retries=0,
            fetch_backoff_base_seconds=0.0,
        ),
    )


@pytest.fixture
def api_requests() -> list[httpx.Request]:
    """Every request seen by the mock HTTP transport."""
    return []
