"""Sequential, rate-governed drain loop for one outbound channel."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..errors import ChannelRateLimited, ChannelSendError
from ..events import DispatchJob, now_ms
from .queue import BoundedPriorityQueue, EnqueueResult

logger = logging.getLogger(__name__)

SendFunc = Callable[[str], Awaitable[None]]

DEFAULT_RATE_LIMIT_PAUSE_MS = 60_000
STATUS_LOG_EVERY_MS = 60_000


class RateLimitedDispatcher:
    """Drains a :class:`BoundedPriorityQueue` into one outbound channel.

    At most one send is in flight at any time. After a 429 the job goes back
    into the queue and nothing is sent until ``paused_until_ms``; every other
    send failure drops the job. Successful sends are spaced at least
    ``min_interval_ms`` apart.

    ``clock`` (milliseconds) and ``sleep`` (seconds) are injectable so the
    loop can be driven by a fake clock.
    """

    def __init__(
        self,
        name: str,
        send: SendFunc,
        *,
        capacity: int = 500,
        min_interval_ms: int = 1200,
        rate_limit_pause_ms: int = DEFAULT_RATE_LIMIT_PAUSE_MS,
        eviction_log_level: int = logging.WARNING,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.name = name
        self.queue = BoundedPriorityQueue(capacity)
        self.min_interval_ms = min_interval_ms
        self.rate_limit_pause_ms = rate_limit_pause_ms
        self.eviction_log_level = eviction_log_level

        self.paused_until_ms: float = 0
        self.last_sent_ms: float | None = None
        self.sent_count = 0
        self.dropped_count = 0
        self.evicted_count = 0

        self._send = send
        self._clock = clock or now_ms
        self._sleep = sleep or asyncio.sleep
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._last_status_ms: float = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def paused(self) -> bool:
        return self.paused_until_ms > self._clock()

    def enqueue(self, rendered_text: str, notional_usd: float) -> EnqueueResult:
        """Queue a rendered notification ranked by its notional value."""
        job = DispatchJob(
            rendered_text=rendered_text,
            priority=float(notional_usd),
            enqueued_at_ms=int(self._clock()),
        )
        return self.enqueue_job(job)

    def enqueue_job(self, job: DispatchJob) -> EnqueueResult:
        result = self.queue.enqueue(job)
        if result.evicted is not None:
            self.evicted_count += 1
            logger.log(
                self.eviction_log_level,
                "[%s] queue full (%d), dropped job notional=%.2f: %s",
                self.name,
                self.queue.capacity,
                result.evicted.priority,
                result.evicted.rendered_text[:100],
            )
        self._wakeup.set()
        return result

    def start(self) -> None:
        if self.running:
            return
        logger.info(
            "[%s] dispatcher started capacity=%d min_interval_ms=%d",
            self.name,
            self.queue.capacity,
            self.min_interval_ms,
        )
        self._task = asyncio.create_task(self._run(), name=f"dispatcher:{self.name}")

    async def stop(self) -> None:
        """Stop the drain loop and drop whatever is still queued."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        dropped = self.queue.clear()
        if dropped:
            logger.info("[%s] dispatcher stopped, %d queued jobs dropped", self.name, len(dropped))
        else:
            logger.info("[%s] dispatcher stopped", self.name)

    async def _run(self) -> None:
        while True:
            await self.drain()
            # No await between the empty check in drain() and clear()
            self._wakeup.clear()
            logger.debug("[%s] idle", self.name)
            await self._wakeup.wait()

    async def drain(self) -> None:
        """Send queued jobs one by one until the queue is empty."""
        while True:
            now = self._clock()
            self._log_status(now)

            if self.paused_until_ms > now:
                wait_ms = self.paused_until_ms - now
                logger.info(
                    "[%s] paused for %.0f ms (queue=%d)", self.name, wait_ms, self.queue.size()
                )
                await self._sleep(wait_ms / 1000)
                continue

            spacing_ms = self._spacing_wait_ms(now)
            if spacing_ms > 0:
                await self._sleep(spacing_ms / 1000)
                continue

            job = self.queue.dequeue()
            if job is None:
                return

            await self._attempt(job)

    def _spacing_wait_ms(self, now: float) -> float:
        if self.last_sent_ms is None:
            return 0
        return max(0.0, self.min_interval_ms - (now - self.last_sent_ms))

    async def _attempt(self, job: DispatchJob) -> None:
        logger.debug(
            "[%s] sending notional=%.2f: %s", self.name, job.priority, job.rendered_text[:100]
        )
        try:
            await self._send(job.rendered_text)
        except ChannelRateLimited as exc:
            pause_ms = exc.retry_after_ms if exc.retry_after_ms and exc.retry_after_ms > 0 else None
            if pause_ms is None:
                pause_ms = self.rate_limit_pause_ms
            self.paused_until_ms = self._clock() + pause_ms
            logger.warning(
                "[%s] rate limited, pausing %d ms and requeueing (queue=%d)",
                self.name,
                pause_ms,
                self.queue.size(),
            )
            self.enqueue_job(job)
        except ChannelSendError as exc:
            self.dropped_count += 1
            logger.error("[%s] send failed, job dropped: %s", self.name, exc.reason)
        except Exception as exc:
            self.dropped_count += 1
            logger.error(
                "[%s] unexpected send error, job dropped: %s", self.name, exc, exc_info=True
            )
        else:
            self.last_sent_ms = self._clock()
            self.sent_count += 1

    def _log_status(self, now: float) -> None:
        if now - self._last_status_ms < STATUS_LOG_EVERY_MS:
            return
        self._last_status_ms = now
        logger.info(
            "[%s] queue=%d sent=%d dropped=%d evicted=%d paused=%s",
            self.name,
            self.queue.size(),
            self.sent_count,
            self.dropped_count,
            self.evicted_count,
            self.paused_until_ms > now,
        )
