"""Job queue abstractions shared by services and workers."""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Protocol
from uuid import UUID

from cookbook_matcher.domain.jobs import JobKind


@dataclass(frozen=True)
class QueuedJob:
    """A unit of work handed to a worker."""

    kind: JobKind
    job_id: UUID
    payload: dict[str, object] = field(default_factory=dict)
    attempt: int = 1


@dataclass(frozen=True)
class QueuePolicy:
    """Redelivery policy for deliveries whose handler raised."""

    max_attempts: int = 3
    backoff_base_ms: int = 5000

    def delay_seconds(self, attempt: int) -> float:
        """Exponential backoff before redelivering after ``attempt`` failed."""
        return self.backoff_base_ms * 2 ** max(attempt - 1, 0) / 1000

    def should_redeliver(self, attempt: int) -> bool:
        return attempt < self.max_attempts


class JobQueue(Protocol):
    """Interface for enqueueing and consuming jobs."""

    async def enqueue(self, job: QueuedJob, delay_seconds: float = 0.0) -> None:
        """Add a job, optionally after a delay."""

    async def dequeue(self) -> QueuedJob:
        """Wait for and return the next job."""

    async def redeliver(self, job: QueuedJob) -> bool:
        """Schedule another attempt; return False once attempts are used up."""

    async def close(self) -> None:
        """Release queue resources."""


@dataclass
class AsyncioJobQueue(JobQueue):
    """In-process queue backed by ``asyncio.Queue``."""

    policy: QueuePolicy = field(default_factory=QueuePolicy)
    _queue: asyncio.Queue[QueuedJob] = field(default_factory=asyncio.Queue)
    _delayed: set[asyncio.Task[None]] = field(default_factory=set)

    async def enqueue(self, job: QueuedJob, delay_seconds: float = 0.0) -> None:
        """Add a job now or schedule it after ``delay_seconds``."""
        if delay_seconds <= 0:
            await self._queue.put(job)
            return
        task = asyncio.create_task(self._put_later(job, delay_seconds))
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def dequeue(self) -> QueuedJob:
        """Wait for the next job."""
        return await self._queue.get()

    async def redeliver(self, job: QueuedJob) -> bool:
        """Schedule another attempt of ``job`` if the policy allows it."""
        if not self.policy.should_redeliver(job.attempt):
            return False
        await self.enqueue(
            replace(job, attempt=job.attempt + 1),
            delay_seconds=self.policy.delay_seconds(job.attempt),
        )
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    async def close(self) -> None:
        """Cancel delayed deliveries."""
        for task in list(self._delayed):
            task.cancel()
        self._delayed.clear()

    async def _put_later(self, job: QueuedJob, delay_seconds: float) -> None:
        await asyncio.sleep(delay_seconds)
        await self._queue.put(job)
