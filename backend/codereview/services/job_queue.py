"""Background job queue for webhook-triggered pipelines."""

import asyncio
from typing import Awaitable, Callable, List, Optional

from codereview.config import settings
from codereview.utils.logger import get_delivery_id, get_logger, job_context

logger = get_logger(__name__)

JobFactory = Callable[[], Awaitable[object]]


class JobQueue:
    """Bounded queue drained by a fixed set of worker tasks.

    Webhook handlers submit and return immediately; job failures are logged
    and never reach the HTTP response.
    """

    def __init__(self, workers: Optional[int] = None, max_size: Optional[int] = None):
        self.worker_count = max(1, workers or settings.job_workers)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, max_size or settings.job_queue_size))
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [asyncio.create_task(self._worker(i)) for i in range(self.worker_count)]
        logger.info("job_queue_started", workers=self.worker_count)

    def submit(self, name: str, factory: JobFactory, **context) -> bool:
        """Queue a job. Returns False when the queue is full.

        ``context`` (e.g. ``repo``, ``pr``) is bound to every log line the job emits.
        """
        try:
            self._queue.put_nowait((name, factory, get_delivery_id(), context))
        except asyncio.QueueFull:
            logger.error("job_rejected", job=name, reason="queue_full", pending=self.pending)
            return False
        logger.info("job_queued", job=name, pending=self.pending)
        return True

    async def _worker(self, worker_id: int) -> None:
        while True:
            name, factory, delivery_id, context = await self._queue.get()
            try:
                with job_context(delivery_id, **context):
                    logger.info("job_started", job=name, worker=worker_id)
                    try:
                        await factory()
                    except Exception as e:
                        logger.exception("job_failed", job=name, worker=worker_id, error=str(e))
                    else:
                        logger.info("job_finished", job=name, worker=worker_id)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued job has run."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel workers; jobs still queued are dropped."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("job_queue_stopped", dropped=self.pending)
