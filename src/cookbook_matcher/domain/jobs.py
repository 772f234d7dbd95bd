"""Domain models for asynchronous scan, match and product lookup jobs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class JobStatus(StrEnum):
    """Lifecycle status shared by every job table."""

    PENDING = "pending"
    PROCESSING = "processing"
    PENDING_REVIEW = "pending_review"
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(StrEnum):
    """Queue routing key for a job."""

    COOKBOOK_SCAN = "cookbook_scan"
    FRIDGE_SCAN = "fridge_scan"
    RECIPE_MATCH = "recipe_match"
    PRODUCT_LOOKUP = "product_lookup"


class MatchStatus(StrEnum):
    """Outcome of a product lookup."""

    PENDING_REVIEW = "pending_review"
    AUTO_MATCHED = "auto_matched"
    NO_MATCH = "no_match"
    USER_SELECTED = "user_selected"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


@dataclass(frozen=True, kw_only=True)
class JobRecord:
    """Fields common to every persisted job."""

    id: UUID
    user_id: UUID
    kind: JobKind
    status: JobStatus = JobStatus.PENDING
    retry_count: int = 0
    max_retries: int = 3
    payload: dict[str, object] = field(default_factory=dict)
    result: dict[str, object] | None = None
    error_message: str | None = None
    error_code: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    processing_time_ms: int | None = None
    lease_expires_at: datetime | None = None

    @property
    def can_retry(self) -> bool:
        return self.status == JobStatus.FAILED and self.retry_count < self.max_retries


@dataclass(frozen=True, kw_only=True)
class ScanJob(JobRecord):
    """A cookbook or fridge photo scan."""

    total_units: int = 0
    processed_units: int = 0
    items_found: int = 0
    cookbook_id: UUID | None = None

    @property
    def scan_type(self) -> str:
        return "cookbook" if self.kind == JobKind.COOKBOOK_SCAN else "fridge"


@dataclass(frozen=True, kw_only=True)
class MatchJob(JobRecord):
    """A run of every recipe in a cookbook against one fridge scan."""

    cookbook_id: UUID
    fridge_scan_id: UUID
    cookbook_name: str | None = None
    total_recipes: int = 0
    matched_recipes: int = 0


@dataclass(frozen=True)
class ProductCandidate:
    """A product returned by the external search, scored by title confidence."""

    id: str
    title: str
    confidence: int
    image_url: str | None = None
    product_url: str | None = None
    is_book: bool = False


@dataclass(frozen=True, kw_only=True)
class ProductLookupJob(JobRecord):
    """A title search for the retail product matching a cookbook."""

    cookbook_id: UUID
    subject_title: str
    match_status: MatchStatus | None = None
    match_confidence: int | None = None
    suggestions: list[ProductCandidate] = field(default_factory=list)
    selected_id: str | None = None


@dataclass(frozen=True)
class RecipeMatch:
    """Snapshot of one recipe's match result inside a match job."""

    match_job_id: UUID
    recipe_id: UUID
    recipe_name: str
    match_percentage: int
    total_ingredients: int
    available_ingredients: list[dict[str, object]]
    missing_ingredients: list[dict[str, object]]
