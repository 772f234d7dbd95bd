"""Supabase-backed job tables with conditional status updates."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from supabase import Client

from cookbook_matcher.domain.jobs import (
    JobKind,
    JobRecord,
    JobStatus,
    MatchJob,
    MatchStatus,
    ProductCandidate,
    ProductLookupJob,
    ScanJob,
)
from cookbook_matcher.services.lifecycle import JobStore
from cookbook_matcher.services.lookups import LookupJobStore

_BASE_COLUMNS = (
    "id",
    "user_id",
    "kind",
    "status",
    "retry_count",
    "max_retries",
    "payload",
    "result",
    "error_message",
    "error_code",
    "created_at",
    "started_at",
    "completed_at",
    "processing_time_ms",
    "lease_expires_at",
)
_DATETIME_COLUMNS = {"created_at", "started_at", "completed_at", "lease_expires_at"}


def _serialize(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, ProductCandidate):
        return asdict(value)
    return value


def _serialize_fields(fields: dict[str, object]) -> dict[str, object]:
    return {key: _serialize(value) for key, value in fields.items()}


def _parse_datetime(raw: object) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(str(raw))


def _parse_uuid(raw: object) -> UUID | None:
    return UUID(str(raw)) if raw else None


def _int_or(raw: object, default: int) -> int:
    return default if raw is None else int(raw)


def _base_fields(row: dict[str, object]) -> dict[str, object]:
    return {
        "id": UUID(str(row["id"])),
        "user_id": UUID(str(row["user_id"])),
        "kind": JobKind(row["kind"]),
        "status": JobStatus(row["status"]),
        "retry_count": _int_or(row.get("retry_count"), 0),
        "max_retries": _int_or(row.get("max_retries"), 3),
        "payload": row.get("payload") or {},
        "result": row.get("result"),
        "error_message": row.get("error_message"),
        "error_code": row.get("error_code"),
        "created_at": _parse_datetime(row.get("created_at")),
        "started_at": _parse_datetime(row.get("started_at")),
        "completed_at": _parse_datetime(row.get("completed_at")),
        "processing_time_ms": row.get("processing_time_ms"),
        "lease_expires_at": _parse_datetime(row.get("lease_expires_at")),
    }


@dataclass
class SupabaseJobRepository(JobStore):
    """Generic job table; subclasses map their extra columns."""

    client: Client
    table_name: str = ""

    def create_job(self, job: JobRecord) -> JobRecord:
        """Insert a job row and return it."""
        response = self.client.table(self.table_name).insert(self._to_row(job)).execute()
        if not response.data:
            raise RuntimeError(f"Failed to create job in {self.table_name}")
        return self._from_row(response.data[0])

    def get_job(self, job_id: UUID) -> JobRecord | None:
        """Return a job by id, if present."""
        response = (
            self.client.table(self.table_name)
            .select("*")
            .eq("id", str(job_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return self._from_row(response.data[0])

    def compare_and_set(
        self,
        job_id: UUID,
        expected: JobStatus,
        new: JobStatus,
        fields: dict[str, object],
        guard: dict[str, object] | None = None,
    ) -> bool:
        """Set the new status only if the row still has the expected one."""
        payload = _serialize_fields({**fields, "status": new})
        query = (
            self.client.table(self.table_name)
            .update(payload)
            .eq("id", str(job_id))
            .eq("status", expected.value)
        )
        for column, value in (guard or {}).items():
            query = query.eq(column, _serialize(value))
        return bool(query.execute().data)

    def update_job(self, job_id: UUID, fields: dict[str, object]) -> None:
        """Update non-status fields such as progress counters."""
        self.client.table(self.table_name).update(_serialize_fields(fields)).eq(
            "id", str(job_id)
        ).execute()

    def list_jobs(  # noqa: PLR0913
        self,
        user_id: UUID,
        kind: JobKind | None,
        status: JobStatus | None,
        limit: int,
        offset: int,
    ) -> list[JobRecord]:
        """Return the user's jobs, newest first."""
        query = self.client.table(self.table_name).select("*").eq("user_id", str(user_id))
        if kind is not None:
            query = query.eq("kind", kind.value)
        if status is not None:
            query = query.eq("status", status.value)
        response = (
            query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        )
        return [self._from_row(row) for row in response.data or []]

    def delete_unless(self, job_id: UUID, status: JobStatus) -> bool:
        """Delete the row in one statement unless it has ``status``."""
        response = (
            self.client.table(self.table_name)
            .delete()
            .eq("id", str(job_id))
            .neq("status", status.value)
            .execute()
        )
        return bool(response.data)

    def list_expired_leases(self, now: datetime) -> list[UUID]:
        """Return ids of processing jobs whose lease has lapsed."""
        response = (
            self.client.table(self.table_name)
            .select("id")
            .eq("status", JobStatus.PROCESSING.value)
            .lt("lease_expires_at", now.isoformat())
            .execute()
        )
        return [UUID(str(row["id"])) for row in response.data or []]

    def _to_row(self, job: JobRecord) -> dict[str, object]:
        return _serialize_fields({column: getattr(job, column) for column in _BASE_COLUMNS})

    def _from_row(self, row: dict[str, object]) -> JobRecord:
        return JobRecord(**_base_fields(row))


@dataclass
class SupabaseScanJobRepository(SupabaseJobRepository):
    """Cookbook and fridge scan jobs."""

    table_name: str = "scan_jobs"

    def _to_row(self, job: JobRecord) -> dict[str, object]:
        row = super()._to_row(job)
        if isinstance(job, ScanJob):
            row.update(
                _serialize_fields(
                    {
                        "total_units": job.total_units,
                        "processed_units": job.processed_units,
                        "items_found": job.items_found,
                        "cookbook_id": job.cookbook_id,
                    }
                )
            )
        return row

    def _from_row(self, row: dict[str, object]) -> ScanJob:
        return ScanJob(
            **_base_fields(row),
            total_units=int(row.get("total_units") or 0),
            processed_units=int(row.get("processed_units") or 0),
            items_found=int(row.get("items_found") or 0),
            cookbook_id=_parse_uuid(row.get("cookbook_id")),
        )


@dataclass
class SupabaseMatchJobRepository(SupabaseJobRepository):
    """Recipe match jobs."""

    table_name: str = "match_jobs"

    def _to_row(self, job: JobRecord) -> dict[str, object]:
        row = super()._to_row(job)
        if isinstance(job, MatchJob):
            row.update(
                _serialize_fields(
                    {
                        "cookbook_id": job.cookbook_id,
                        "fridge_scan_id": job.fridge_scan_id,
                        "cookbook_name": job.cookbook_name,
                        "total_recipes": job.total_recipes,
                        "matched_recipes": job.matched_recipes,
                    }
                )
            )
        return row

    def _from_row(self, row: dict[str, object]) -> MatchJob:
        return MatchJob(
            **_base_fields(row),
            cookbook_id=UUID(str(row["cookbook_id"])),
            fridge_scan_id=UUID(str(row["fridge_scan_id"])),
            cookbook_name=row.get("cookbook_name"),
            total_recipes=int(row.get("total_recipes") or 0),
            matched_recipes=int(row.get("matched_recipes") or 0),
        )


@dataclass
class SupabaseLookupJobRepository(SupabaseJobRepository, LookupJobStore):
    """Product lookup jobs."""

    table_name: str = "product_lookup_jobs"

    def latest_for_cookbook(self, cookbook_id: UUID) -> ProductLookupJob | None:
        """Return the most recent lookup job for a cookbook."""
        response = (
            self.client.table(self.table_name)
            .select("*")
            .eq("cookbook_id", str(cookbook_id))
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return self._from_row(response.data[0])

    def _to_row(self, job: JobRecord) -> dict[str, object]:
        row = super()._to_row(job)
        if isinstance(job, ProductLookupJob):
            row.update(
                _serialize_fields(
                    {
                        "cookbook_id": job.cookbook_id,
                        "subject_title": job.subject_title,
                        "match_status": job.match_status,
                        "match_confidence": job.match_confidence,
                        "suggestions": job.suggestions,
                        "selected_id": job.selected_id,
                    }
                )
            )
        return row

    def _from_row(self, row: dict[str, object]) -> ProductLookupJob:
        match_status = row.get("match_status")
        return ProductLookupJob(
            **_base_fields(row),
            cookbook_id=UUID(str(row["cookbook_id"])),
            subject_title=str(row.get("subject_title") or ""),
            match_status=MatchStatus(match_status) if match_status else None,
            match_confidence=row.get("match_confidence"),
            suggestions=[
                ProductCandidate(**suggestion)
                for suggestion in row.get("suggestions") or []
            ],
            selected_id=row.get("selected_id"),
        )
