"""Queue workers that run scan, match and product lookup jobs."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from cookbook_matcher.domain.errors import InvalidStateError, NotFoundError
from cookbook_matcher.domain.jobs import JobKind
from cookbook_matcher.services.lifecycle import JobLifecycle
from cookbook_matcher.services.queue import JobQueue, QueuedJob

_logger = logging.getLogger(__name__)

JobHandler = Callable[[UUID], Awaitable[None]]


@dataclass
class Worker:
    """Pulls jobs from an injected queue and dispatches them by kind.

    Each job runs to completion before the next is taken. Handlers record
    job failures themselves; an exception escaping a handler is treated as
    a lost delivery and handed back to the queue for redelivery.
    """

    queue: JobQueue
    handlers: dict[JobKind, JobHandler]
    name: str = "worker"
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    async def start(self) -> None:
        """Begin consuming the queue in a background task."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        _logger.info("Worker started: name=%s kinds=%s", self.name, sorted(self.handlers))

    async def stop(self) -> None:
        """Cancel the consumer task and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        _logger.info("Worker stopped: name=%s", self.name)

    async def run_once(self) -> QueuedJob:
        """Take one job off the queue and handle it."""
        job = await self.queue.dequeue()
        await self.handle(job)
        return job

    async def handle(self, job: QueuedJob) -> None:
        """Dispatch a job to its handler and redeliver on unexpected errors."""
        handler = self.handlers.get(job.kind)
        if handler is None:
            _logger.error("No handler for job kind: kind=%s id=%s", job.kind, job.job_id)
            return
        try:
            await handler(job.job_id)
        except (InvalidStateError, NotFoundError) as exc:
            # Already claimed, finished or deleted by someone else.
            _logger.info("Skipping job: id=%s reason=%s", job.job_id, exc.message)
        except Exception:
            _logger.exception(
                "Job handler crashed: id=%s kind=%s attempt=%s",
                job.job_id,
                job.kind,
                job.attempt,
            )
            if await self.queue.redeliver(job):
                _logger.warning(
                    "Job redelivery scheduled: id=%s attempt=%s",
                    job.job_id,
                    job.attempt + 1,
                )
            else:
                _logger.error(
                    "Job dropped after %s attempts: id=%s", job.attempt, job.job_id
                )

    async def _run(self) -> None:
        while True:
            await self.run_once()


@dataclass
class StaleJobReaper:
    """Periodically fails jobs whose worker stopped renewing the lease."""

    lifecycles: Sequence[JobLifecycle]
    interval_seconds: float = 60.0
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    def sweep(self) -> int:
        """Reclaim stale jobs across every job table once."""
        return sum(len(lifecycle.reclaim_stale()) for lifecycle in self.lifecycles)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="stale-job-reaper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                reclaimed = self.sweep()
            except Exception:
                _logger.exception("Stale job sweep failed")
                continue
            if reclaimed:
                _logger.warning("Stale jobs reclaimed: count=%s", reclaimed)
