"""Provider call metrics.

Provider clients report each upstream call to a bounded, non-blocking channel.
A single consumer task folds the events into per-provider counters, so a full
or slow channel never delays or fails a resolution.
"""

import asyncio
import contextlib
from dataclasses import dataclass, field

from idbridge import log

__all__ = ["MetricsChannel", "ProviderCall", "ProviderCallStats"]


@dataclass(frozen=True, slots=True)
class ProviderCall:
    """One completed upstream request."""

    provider: str
    elapsed: float
    success: bool
    status: int | None = None


@dataclass(slots=True)
class ProviderCallStats:
    """Aggregated counters for one provider."""

    calls: int = 0
    errors: int = 0
    total_latency: float = 0.0

    @property
    def mean_latency(self) -> float:
        return self.total_latency / self.calls if self.calls else 0.0


@dataclass
class MetricsChannel:
    """Bounded queue of `ProviderCall` events with an aggregating consumer."""

    maxsize: int = 1000
    dropped: int = 0
    stats: dict[str, ProviderCallStats] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._queue: asyncio.Queue[ProviderCall] = asyncio.Queue(maxsize=self.maxsize)
        self._consumer: asyncio.Task | None = None

    def record(self, event: ProviderCall) -> None:
        """Enqueue an event without waiting; drop it if the queue is full."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1

    def _aggregate(self, event: ProviderCall) -> None:
        stats = self.stats.setdefault(event.provider, ProviderCallStats())
        stats.calls += 1
        stats.total_latency += event.elapsed
        if not event.success:
            stats.errors += 1

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._aggregate(event)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume())

    def drain(self) -> None:
        """Aggregate every queued event immediately."""
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._aggregate(event)
            self._queue.task_done()

    async def stop(self) -> None:
        """Cancel the consumer and fold in whatever is still queued."""
        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        self.drain()

    def snapshot(self) -> dict[str, ProviderCallStats]:
        """Return a copy of the aggregated counters."""
        self.drain()
        return {
            name: ProviderCallStats(s.calls, s.errors, s.total_latency)
            for name, s in self.stats.items()
        }

    def log_summary(self) -> None:
        """Log the aggregated counters, one line per provider."""
        for name, stats in sorted(self.snapshot().items()):
            log.info(
                f"Provider $$'{name}'$$: $$'{stats.calls}'$$ calls, "
                f"$$'{stats.errors}'$$ errors, "
                f"$$'{stats.mean_latency * 1000:.0f}ms'$$ mean latency"
            )
        if self.dropped:
            log.warning(f"Dropped $$'{self.dropped}'$$ metrics events (queue full)")
