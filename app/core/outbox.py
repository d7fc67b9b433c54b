"""
Outbound delivery queue.

Side effects that must never fail or slow down the triggering request
(in-app notifications, emails, deal alerts) are enqueued here and executed
by a single background worker started in the application lifespan.

- Each job is retried with exponential backoff (``retry_with_backoff``).
- A job that exhausts its retries, or that arrives while the queue is full,
  is moved to a bounded dead-letter list and logged at ERROR.
- Queue depth, delivery counters and recent dead letters are reported by
  ``/health``.

Jobs are plain coroutine functions plus their arguments; they must not
depend on the request's database session, which is closed by the time the
worker runs them.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple

from app.core.config import settings
from app.core.resilience import retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass
class DeliveryJob:
    name: str
    func: Callable[..., Awaitable[Any]]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeadLetter:
    job: str
    error: str
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DeliveryQueue:
    """
    In-process queue drained by one worker task.

    Parameters
    ----------
    maxsize : int
        Pending-job capacity; ``enqueue`` dead-letters the job when full.
    max_retries : int
        Retries after the first attempt.
    base_delay : float
        First backoff delay in seconds (doubles per retry).
    dead_letter_size : int
        How many dead letters are kept; older ones are discarded.
    """

    def __init__(
        self,
        maxsize: int = 1000,
        max_retries: int = 3,
        base_delay: float = 0.5,
        dead_letter_size: int = 500,
    ):
        self._queue: "asyncio.Queue[DeliveryJob]" = asyncio.Queue(maxsize=maxsize)
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._dead_letters: Deque[DeadLetter] = deque(maxlen=dead_letter_size)
        self._worker: Optional[asyncio.Task] = None
        self._delivered = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def dead_letters(self) -> list:
        return list(self._dead_letters)

    def enqueue(self, name: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> bool:
        """Schedule ``func(*args, **kwargs)``.  Returns ``False`` if the job was dropped."""
        job = DeliveryJob(name=name, func=func, args=args, kwargs=kwargs)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._dead_letter(job, "delivery queue full")
            return False
        logger.debug("Enqueued delivery job %s", name, extra={"job": name})
        return True

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="delivery-worker")
        logger.info("Delivery worker started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Give pending jobs ``drain_timeout`` seconds, then cancel the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Delivery worker stopping with %d job(s) still queued", self._queue.qsize()
            )
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Delivery worker stopped")

    async def join(self) -> None:
        """Wait until every queued job has been delivered or dead-lettered."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._deliver(job)
            finally:
                self._queue.task_done()

    async def _deliver(self, job: DeliveryJob) -> None:
        attempt = retry_with_backoff(
            max_retries=self._max_retries,
            base_delay=self._base_delay,
        )(job.func)
        try:
            await attempt(*job.args, **job.kwargs)
        except Exception as exc:
            self._failed += 1
            self._dead_letter(job, f"{type(exc).__name__}: {exc}")
            return
        self._delivered += 1
        logger.debug("Delivered job %s", job.name, extra={"job": job.name})

    def _dead_letter(self, job: DeliveryJob, error: str) -> None:
        self._dead_letters.append(DeadLetter(job=job.name, error=error))
        logger.error("Delivery job %s dead-lettered: %s", job.name, error, extra={"job": job.name})

    def get_stats(self) -> dict:
        """Snapshot for the ``/health`` endpoint."""
        return {
            "running": self.running,
            "pending": self._queue.qsize(),
            "delivered": self._delivered,
            "failed": self._failed,
            "dead_letters": len(self._dead_letters),
            "recent_dead_letters": [
                {"job": d.job, "error": d.error, "failed_at": d.failed_at.isoformat()}
                for d in list(self._dead_letters)[-5:]
            ],
        }


delivery_queue = DeliveryQueue(
    maxsize=settings.DELIVERY_QUEUE_SIZE,
    max_retries=settings.DELIVERY_MAX_RETRIES,
    base_delay=settings.DELIVERY_BASE_DELAY,
    dead_letter_size=settings.DELIVERY_DEAD_LETTER_SIZE,
)


def get_delivery_queue() -> DeliveryQueue:
    """FastAPI dependency returning the process-wide delivery queue."""
    return delivery_queue
