"""In-process asynchronous work queue for push deliveries.

Jobs are consumed by a fixed pool of worker tasks. A job whose handler raises
is retried with exponential backoff until ``max_attempts`` is exhausted, at
which point the failure listeners are notified and the error is logged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from notifier.domain.contracts import JobHandler, PushJob

logger = logging.getLogger(__name__)

CompletionListener = Callable[[PushJob], None]
FailureListener = Callable[[PushJob, BaseException], None]


@dataclass
class QueueConfig:
    """Retry and concurrency settings of :class:`PushWorkQueue`.

    Attributes:
        max_attempts: Attempts per job before it is reported as failed
        backoff_base_delay: Delay in seconds before the first retry; doubles per retry
        max_delay: Upper bound for a single backoff delay
        concurrency: Number of worker tasks consuming the queue
    """

    max_attempts: int = 3
    backoff_base_delay: float = 2.0
    max_delay: float = 300.0
    concurrency: int = 10

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base_delay < 0:
            raise ValueError("backoff_base_delay cannot be negative")
        if self.max_delay < self.backoff_base_delay:
            raise ValueError("max_delay must be >= backoff_base_delay")
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")


@dataclass
class _Envelope:
    job: PushJob
    max_attempts: int
    backoff_base_delay: float
    attempts: int = 0


class PushWorkQueue:
    """Bounded-retry job queue backed by :class:`asyncio.Queue`."""

    def __init__(
        self,
        handler: JobHandler,
        config: QueueConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.handler = handler
        self.config = config or QueueConfig()
        self._sleep = sleep
        self._queue: asyncio.Queue[_Envelope] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._completion_listeners: list[CompletionListener] = []
        self._failure_listeners: list[FailureListener] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._completion_listeners.append(listener)

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"push-worker-{index}")
            for index in range(self.config.concurrency)
        ]
        logger.info("Push queue started with %d workers", self.config.concurrency)

    async def stop(self) -> None:
        if not self._workers:
            return
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Push queue stopped (%d jobs left pending)", self._queue.qsize())

    async def submit(
        self,
        job: PushJob,
        *,
        max_attempts: int | None = None,
        backoff_base_delay: float | None = None,
    ) -> None:
        envelope = _Envelope(
            job=job,
            max_attempts=max_attempts or self.config.max_attempts,
            backoff_base_delay=(
                self.config.backoff_base_delay
                if backoff_base_delay is None
                else backoff_base_delay
            ),
        )
        await self._queue.put(envelope)
        logger.info("Push job %s queued for recipient %s", job.id, job.recipient_id)

    async def join(self) -> None:
        """Wait until every submitted job completed or exhausted its attempts."""

        await self._queue.join()

    def backoff_delay(self, base_delay: float, attempt: int) -> float:
        """Return the delay before retrying after the ``attempt``-th failure."""

        return min(base_delay * (2 ** (attempt - 1)), self.config.max_delay)

    async def _worker(self, index: int) -> None:
        while True:
            envelope = await self._queue.get()
            try:
                await self._process(envelope)
            finally:
                self._queue.task_done()

    async def _process(self, envelope: _Envelope) -> None:
        job = envelope.job
        while True:
            envelope.attempts += 1
            try:
                await self.handler(job)
            except Exception as exc:
                if envelope.attempts >= envelope.max_attempts:
                    logger.error(
                        "Push job %s failed after %d attempts: %s",
                        job.id,
                        envelope.attempts,
                        exc,
                    )
                    self._notify_failure(job, exc)
                    return
                delay = self.backoff_delay(envelope.backoff_base_delay, envelope.attempts)
                logger.warning(
                    "Push job %s attempt %d failed, retrying in %.1fs: %s",
                    job.id,
                    envelope.attempts,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                continue

            logger.info("Push job %s completed", job.id)
            self._notify_completion(job)
            return

    def _notify_completion(self, job: PushJob) -> None:
        for listener in self._completion_listeners:
            try:
                listener(job)
            except Exception:
                logger.exception("Push queue completion listener failed for job %s", job.id)

    def _notify_failure(self, job: PushJob, error: BaseException) -> None:
        for listener in self._failure_listeners:
            try:
                listener(job, error)
            except Exception:
                logger.exception("Push queue failure listener failed for job %s", job.id)


__all__ = ["PushWorkQueue", "QueueConfig"]
