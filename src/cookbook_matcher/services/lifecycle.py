"""Job lifecycle state machine built on compare-and-set status updates."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from cookbook_matcher.domain.errors import (
    InvalidStateError,
    JobConflictError,
    NotFoundError,
    RetryExhaustedError,
)
from cookbook_matcher.domain.jobs import JobKind, JobRecord, JobStatus
from cookbook_matcher.services.queue import JobQueue, QueuedJob

_logger = logging.getLogger(__name__)

LEASE_EXPIRED_CODE = "LEASE_EXPIRED"

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset(
        {
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.PENDING_REVIEW,
        }
    ),
    JobStatus.PENDING_REVIEW: frozenset({JobStatus.COMPLETED}),
    JobStatus.FAILED: frozenset({JobStatus.PENDING}),
    JobStatus.COMPLETED: frozenset(),
}


class JobStore(Protocol):
    """Persistence interface for one job table."""

    def create_job(self, job: JobRecord) -> JobRecord:
        """Insert a job row and return it."""

    def get_job(self, job_id: UUID) -> JobRecord | None:
        """Return a job by id, if present."""

    def compare_and_set(
        self,
        job_id: UUID,
        expected: JobStatus,
        new: JobStatus,
        fields: dict[str, object],
        guard: dict[str, object] | None = None,
    ) -> bool:
        """Atomically set ``new`` status and ``fields`` if status is ``expected``.

        Every column in ``guard`` must also still hold the given value.
        """

    def update_job(self, job_id: UUID, fields: dict[str, object]) -> None:
        """Update non-status fields such as progress counters."""

    def list_jobs(  # noqa: PLR0913
        self,
        user_id: UUID,
        kind: JobKind | None,
        status: JobStatus | None,
        limit: int,
        offset: int,
    ) -> list[JobRecord]:
        """Return the user's jobs, newest first."""

    def delete_unless(self, job_id: UUID, status: JobStatus) -> bool:
        """Atomically delete the job unless it currently has ``status``."""

    def list_expired_leases(self, now: datetime) -> list[UUID]:
        """Return ids of processing jobs whose lease ended before ``now``."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class JobLifecycle:
    """Drives jobs of one table through their allowed transitions.

    Every status write goes through ``JobStore.compare_and_set`` so two
    workers polling the same queue cannot both start a job, and two retry
    requests cannot both requeue it.
    """

    store: JobStore
    queue: JobQueue
    lease_seconds: int = 300
    clock: Callable[[], datetime] = field(default=_utcnow)

    def create(self, job: JobRecord) -> JobRecord:
        """Persist a new job in ``pending``."""
        fresh = replace(
            job,
            status=JobStatus.PENDING,
            retry_count=0,
            result=None,
            error_message=None,
            error_code=None,
            created_at=self.clock(),
            started_at=None,
            completed_at=None,
            processing_time_ms=None,
            lease_expires_at=None,
        )
        return self.store.create_job(fresh)

    async def submit(self, job: JobRecord) -> JobRecord:
        """Persist a new job and hand it to the queue."""
        created = self.create(job)
        await self.queue.enqueue(_queued(created))
        _logger.info("Job submitted: id=%s kind=%s", created.id, created.kind)
        return created

    def get(self, job_id: UUID, user_id: UUID | None = None) -> JobRecord:
        """Return a job, optionally scoped to its owner."""
        job = self.store.get_job(job_id)
        if job is None or (user_id is not None and job.user_id != user_id):
            raise NotFoundError("Job not found")
        return job

    def list_for_user(
        self,
        user_id: UUID,
        kind: JobKind | None = None,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[JobRecord]:
        """Return a page of the user's jobs, newest first."""
        return self.store.list_jobs(user_id, kind, status, limit, offset)

    def start(self, job_id: UUID) -> JobRecord:
        """Claim a pending job for processing."""
        now = self.clock()
        self._transition(
            job_id,
            JobStatus.PENDING,
            JobStatus.PROCESSING,
            {
                "started_at": now,
                "lease_expires_at": now + timedelta(seconds=self.lease_seconds),
            },
        )
        return self.get(job_id)

    def heartbeat(self, job_id: UUID) -> bool:
        """Extend the lease of a job that is still processing."""
        lease = self.clock() + timedelta(seconds=self.lease_seconds)
        return self.store.compare_and_set(
            job_id,
            JobStatus.PROCESSING,
            JobStatus.PROCESSING,
            {"lease_expires_at": lease},
        )

    def complete(
        self,
        job_id: UUID,
        result: dict[str, object],
        fields: dict[str, object] | None = None,
    ) -> JobRecord:
        """Mark a processing job as completed and store its result."""
        job = self.get(job_id)
        now = self.clock()
        self._transition(
            job_id,
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
            {
                **(fields or {}),
                "result": result,
                "completed_at": now,
                "processing_time_ms": _elapsed_ms(job.started_at, now),
                "lease_expires_at": None,
            },
        )
        return self.get(job_id)

    def fail(
        self,
        job_id: UUID,
        message: str,
        code: str = "UNKNOWN_ERROR",
        fields: dict[str, object] | None = None,
    ) -> JobRecord:
        """Mark a processing job as failed with a message and code."""
        job = self.get(job_id)
        now = self.clock()
        self._transition(
            job_id,
            JobStatus.PROCESSING,
            JobStatus.FAILED,
            {
                **(fields or {}),
                "error_message": message,
                "error_code": code,
                "completed_at": now,
                "processing_time_ms": _elapsed_ms(job.started_at, now),
                "lease_expires_at": None,
            },
        )
        return self.get(job_id)

    def await_review(
        self, job_id: UUID, fields: dict[str, object] | None = None
    ) -> JobRecord:
        """Park a product lookup until a person picks a suggestion."""
        job = self.get(job_id)
        if job.kind != JobKind.PRODUCT_LOOKUP:
            raise InvalidStateError(f"{job.kind} jobs have no review step")
        now = self.clock()
        self._transition(
            job_id,
            JobStatus.PROCESSING,
            JobStatus.PENDING_REVIEW,
            {
                **(fields or {}),
                "completed_at": now,
                "processing_time_ms": _elapsed_ms(job.started_at, now),
                "lease_expires_at": None,
            },
        )
        return self.get(job_id)

    def resolve_review(
        self, job_id: UUID, fields: dict[str, object] | None = None
    ) -> JobRecord:
        """Close a job that was waiting for review."""
        self._transition(
            job_id, JobStatus.PENDING_REVIEW, JobStatus.COMPLETED, fields or {}
        )
        return self.get(job_id)

    async def retry(self, job_id: UUID, user_id: UUID | None = None) -> JobRecord:
        """Requeue a failed job under the same id with the same payload.

        The swap is conditioned on the retry count that was read, so two
        requests racing across a later failure cannot exceed the ceiling.
        Kind-specific progress such as scanned pages is kept for resuming.
        """
        job = self.get(job_id, user_id)
        if job.status != JobStatus.FAILED:
            raise InvalidStateError("Only failed jobs can be retried")
        if job.retry_count >= job.max_retries:
            raise RetryExhaustedError("Maximum retry attempts exceeded")
        self._transition(
            job_id,
            JobStatus.FAILED,
            JobStatus.PENDING,
            {
                "retry_count": job.retry_count + 1,
                "result": None,
                "error_message": None,
                "error_code": None,
                "started_at": None,
                "completed_at": None,
                "processing_time_ms": None,
                "lease_expires_at": None,
            },
            guard={"retry_count": job.retry_count},
        )
        retried = self.get(job_id)
        await self.queue.enqueue(_queued(retried))
        _logger.info(
            "Job retried: id=%s kind=%s retry_count=%s",
            job_id,
            retried.kind,
            retried.retry_count,
        )
        return retried

    def delete(self, job_id: UUID, user_id: UUID | None = None) -> None:
        """Delete a job that no worker is processing."""
        self.get(job_id, user_id)
        if not self.store.delete_unless(job_id, JobStatus.PROCESSING):
            raise JobConflictError("Cannot delete job that is currently processing")
        _logger.info("Job deleted: id=%s", job_id)

    def reclaim_stale(self) -> list[UUID]:
        """Fail processing jobs whose worker stopped renewing the lease."""
        now = self.clock()
        reclaimed = []
        for job_id in self.store.list_expired_leases(now):
            job = self.store.get_job(job_id)
            if job is None:
                continue
            swapped = self.store.compare_and_set(
                job_id,
                JobStatus.PROCESSING,
                JobStatus.FAILED,
                {
                    "error_message": "Worker lease expired before completion",
                    "error_code": LEASE_EXPIRED_CODE,
                    "completed_at": now,
                    "processing_time_ms": _elapsed_ms(job.started_at, now),
                    "lease_expires_at": None,
                },
            )
            if swapped:
                _logger.warning("Reclaimed stale job: id=%s", job_id)
                reclaimed.append(job_id)
        return reclaimed

    def _transition(
        self,
        job_id: UUID,
        expected: JobStatus,
        new: JobStatus,
        fields: dict[str, object],
        guard: dict[str, object] | None = None,
    ) -> None:
        if new not in ALLOWED_TRANSITIONS[expected]:
            raise InvalidStateError(f"Transition {expected} -> {new} is not allowed")
        if self.store.compare_and_set(job_id, expected, new, fields, guard):
            return
        current = self.store.get_job(job_id)
        if current is None:
            raise NotFoundError("Job not found")
        if current.status == expected:
            raise InvalidStateError(f"Job {job_id} changed while moving to {new}")
        raise InvalidStateError(
            f"Job {job_id} is {current.status}, expected {expected} to move to {new}"
        )


def _queued(job: JobRecord) -> QueuedJob:
    return QueuedJob(kind=job.kind, job_id=job.id, payload=dict(job.payload))


def _elapsed_ms(started_at: datetime | None, finished_at: datetime) -> int | None:
    if started_at is None:
        return None
    return int((finished_at - started_at).total_seconds() * 1000)
