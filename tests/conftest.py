"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from cookbook_matcher.adapters.keepa_client import ProductSearchClient
from cookbook_matcher.config import Settings
from cookbook_matcher.containers import AppContainer
from cookbook_matcher.domain.errors import TransientIOFailure
from cookbook_matcher.domain.ingredients import IngredientRef, InventoryItem
from cookbook_matcher.domain.jobs import (
    JobKind,
    JobRecord,
    JobStatus,
    ProductLookupJob,
    RecipeMatch,
)
from cookbook_matcher.domain.recipes import Cookbook, Recipe
from cookbook_matcher.domain.vision import ExtractedFridgeItem, ExtractedRecipe
from cookbook_matcher.services.cache import InMemoryCache
from cookbook_matcher.services.inventory import InventoryRepository, InventoryService
from cookbook_matcher.services.lifecycle import JobLifecycle, JobStore
from cookbook_matcher.services.lookups import LookupJobStore, ProductLookupService
from cookbook_matcher.services.matches import MatchService, RecipeMatchRepository
from cookbook_matcher.services.queue import JobQueue, QueuedJob
from cookbook_matcher.services.recipes import RecipeRepository
from cookbook_matcher.services.scans import ImageStore, ScanService
from cookbook_matcher.services.vision import VisionClient, VisionService
from cookbook_matcher.workers import StaleJobReaper, Worker


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None, step_seconds: float = 1.0) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=UTC)
        self.step = timedelta(seconds=step_seconds)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@dataclass
class InMemoryJobStore(JobStore):
    """In-memory job table with compare-and-set semantics."""

    jobs: dict[UUID, JobRecord] = field(default_factory=dict)
    cas_calls: list[tuple[UUID, JobStatus, JobStatus]] = field(default_factory=list)

    def create_job(self, job: JobRecord) -> JobRecord:
        self.jobs[job.id] = job
        return job

    def get_job(self, job_id: UUID) -> JobRecord | None:
        return self.jobs.get(job_id)

    def compare_and_set(
        self,
        job_id: UUID,
        expected: JobStatus,
        new: JobStatus,
        fields: dict[str, object],
        guard: dict[str, object] | None = None,
    ) -> bool:
        self.cas_calls.append((job_id, expected, new))
        job = self.jobs.get(job_id)
        if job is None or job.status != expected:
            return False
        guard = guard or {}
        if any(getattr(job, column) != value for column, value in guard.items()):
            return False
        self.jobs[job_id] = replace(job, status=new, **fields)
        return True

    def update_job(self, job_id: UUID, fields: dict[str, object]) -> None:
        job = self.jobs.get(job_id)
        if job is not None:
            self.jobs[job_id] = replace(job, **fields)

    def list_jobs(  # noqa: PLR0913
        self,
        user_id: UUID,
        kind: JobKind | None,
        status: JobStatus | None,
        limit: int,
        offset: int,
    ) -> list[JobRecord]:
        matching = [
            job
            for job in self.jobs.values()
            if job.user_id == user_id
            and (kind is None or job.kind == kind)
            and (status is None or job.status == status)
        ]
        matching.sort(key=lambda job: job.created_at, reverse=True)
        return matching[offset : offset + limit]

    def delete_unless(self, job_id: UUID, status: JobStatus) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status == status:
            return False
        del self.jobs[job_id]
        return True

    def list_expired_leases(self, now: datetime) -> list[UUID]:
        return [
            job.id
            for job in self.jobs.values()
            if job.status == JobStatus.PROCESSING
            and job.lease_expires_at is not None
            and job.lease_expires_at < now
        ]


@dataclass
class InMemoryLookupJobStore(InMemoryJobStore, LookupJobStore):
    """In-memory product lookup table."""

    def latest_for_cookbook(self, cookbook_id: UUID) -> ProductLookupJob | None:
        jobs = [
            job
            for job in self.jobs.values()
            if isinstance(job, ProductLookupJob) and job.cookbook_id == cookbook_id
        ]
        if not jobs:
            return None
        return max(jobs, key=lambda job: job.created_at)


@dataclass
class RecordingQueue(JobQueue):
    """Queue fake that records deliveries without an event loop."""

    jobs: list[QueuedJob] = field(default_factory=list)
    delays: list[float] = field(default_factory=list)
    redelivered: list[QueuedJob] = field(default_factory=list)
    max_attempts: int = 3
    closed: bool = False

    async def enqueue(self, job: QueuedJob, delay_seconds: float = 0.0) -> None:
        self.jobs.append(job)
        self.delays.append(delay_seconds)

    async def dequeue(self) -> QueuedJob:
        return self.jobs.pop(0)

    async def redeliver(self, job: QueuedJob) -> bool:
        if job.attempt >= self.max_attempts:
            return False
        retried = replace(job, attempt=job.attempt + 1)
        self.redelivered.append(retried)
        self.jobs.append(retried)
        return True

    async def close(self) -> None:
        self.closed = True


@dataclass
class InMemoryRecipeRepository(RecipeRepository):
    """In-memory cookbooks and recipes."""

    cookbooks: dict[UUID, Cookbook] = field(default_factory=dict)
    recipes: dict[UUID, list[Recipe]] = field(default_factory=dict)
    products: dict[UUID, dict[str, object]] = field(default_factory=dict)
    candidates: list[Recipe] = field(default_factory=list)
    candidate_calls: list[dict[str, object]] = field(default_factory=list)

    def add_cookbook(self, user_id: UUID, name: str) -> Cookbook:
        cookbook = Cookbook(id=uuid4(), user_id=user_id, name=name, scanned_pages=1)
        self.cookbooks[cookbook.id] = cookbook
        self.recipes.setdefault(cookbook.id, [])
        return cookbook

    def add_recipe(self, cookbook_id: UUID, name: str, ingredients: list[str]) -> Recipe:
        recipe = make_recipe(name, ingredients, cookbook_id=cookbook_id)
        self.recipes.setdefault(cookbook_id, []).append(recipe)
        return recipe

    def get_cookbook(self, cookbook_id: UUID) -> Cookbook | None:
        return self.cookbooks.get(cookbook_id)

    def find_cookbook(self, user_id: UUID, name: str) -> Cookbook | None:
        for cookbook in self.cookbooks.values():
            if cookbook.user_id == user_id and cookbook.name.lower() == name.lower():
                return cookbook
        return None

    def create_cookbook(
        self, user_id: UUID, name: str, cover_image_path: str | None
    ) -> Cookbook:
        cookbook = Cookbook(
            id=uuid4(),
            user_id=user_id,
            name=name,
            scanned_pages=1,
            cover_image_path=cover_image_path,
        )
        self.cookbooks[cookbook.id] = cookbook
        self.recipes[cookbook.id] = []
        return cookbook

    def increment_scanned_pages(self, cookbook_id: UUID) -> None:
        cookbook = self.cookbooks[cookbook_id]
        self.cookbooks[cookbook_id] = replace(
            cookbook, scanned_pages=cookbook.scanned_pages + 1
        )

    def save_recipes(
        self,
        cookbook_id: UUID,
        recipes: list[ExtractedRecipe],
        page_number: int,
        image_path: str,
    ) -> int:
        stored = self.recipes.setdefault(cookbook_id, [])
        for extracted in recipes:
            stored.append(
                Recipe(
                    id=uuid4(),
                    cookbook_id=cookbook_id,
                    name=extracted.name,
                    ingredients=[
                        IngredientRef(
                            id=uuid4(),
                            name=ingredient.name,
                            quantity=ingredient.quantity,
                            unit=ingredient.unit,
                        )
                        for ingredient in extracted.ingredients
                    ],
                    instructions=extracted.instructions,
                    servings=extracted.servings,
                    page_number=page_number,
                )
            )
        return len(recipes)

    def list_recipes(self, cookbook_id: UUID) -> list[Recipe]:
        return list(self.recipes.get(cookbook_id, []))

    def count_recipes(self, cookbook_id: UUID) -> int:
        return len(self.recipes.get(cookbook_id, []))

    def list_recommendation_candidates(
        self,
        exclude_user_id: UUID,
        cuisine: str | None,
        dietary_tags: list[str] | None,
        limit: int,
    ) -> list[Recipe]:
        self.candidate_calls.append(
            {"exclude_user_id": exclude_user_id, "cuisine": cuisine, "limit": limit}
        )
        recipes = [
            recipe
            for recipe in self.candidates
            if cuisine is None or recipe.cuisine == cuisine
        ]
        return recipes[:limit]

    def update_cookbook_product(
        self, cookbook_id: UUID, fields: dict[str, object]
    ) -> None:
        self.products.setdefault(cookbook_id, {}).update(fields)


@dataclass
class InMemoryInventoryRepository(InventoryRepository):
    """In-memory fridge items keyed by owner."""

    rows: list[tuple[UUID, UUID | None, InventoryItem]] = field(default_factory=list)

    def add(self, user_id: UUID, name: str, scan_job_id: UUID | None = None) -> InventoryItem:
        item = InventoryItem(id=uuid4(), name=name)
        self.rows.insert(0, (user_id, scan_job_id, item))
        return item

    def add_scanned_items(
        self,
        user_id: UUID,
        scan_job_id: UUID,
        items: list[ExtractedFridgeItem],
        replace_existing: bool,
    ) -> list[InventoryItem]:
        if replace_existing:
            self.rows = [row for row in self.rows if row[0] != user_id]
        created = [
            InventoryItem(
                id=uuid4(), name=item.name, quantity=item.quantity, category=item.category
            )
            for item in items
        ]
        for item in created:
            self.rows.insert(0, (user_id, scan_job_id, item))
        return created

    def create_item(self, user_id: UUID, payload: dict[str, object]) -> InventoryItem:
        item = InventoryItem(
            id=uuid4(),
            name=str(payload["name"]),
            quantity=payload.get("quantity"),
            category=payload.get("category"),
        )
        self.rows.insert(0, (user_id, None, item))
        return item

    def update_item(
        self, user_id: UUID, item_id: UUID, payload: dict[str, object]
    ) -> InventoryItem | None:
        for index, (owner, scan_id, item) in enumerate(self.rows):
            if owner == user_id and item.id == item_id:
                updated = replace(item, **payload)
                self.rows[index] = (owner, scan_id, updated)
                return updated
        return None

    def delete_item(self, user_id: UUID, item_id: UUID) -> bool:
        before = len(self.rows)
        self.rows = [
            row for row in self.rows if not (row[0] == user_id and row[2].id == item_id)
        ]
        return len(self.rows) < before

    def list_items(
        self, user_id: UUID, scan_job_id: UUID | None = None
    ) -> list[InventoryItem]:
        return [
            item
            for owner, scan_id, item in self.rows
            if owner == user_id and (scan_job_id is None or scan_id == scan_job_id)
        ]


@dataclass
class InMemoryMatchRepository(RecipeMatchRepository):
    """In-memory recipe match snapshots."""

    matches: list[RecipeMatch] = field(default_factory=list)
    save_calls: int = 0

    def save_matches(self, matches: list[RecipeMatch]) -> None:
        self.save_calls += 1
        self.matches.extend(matches)

    def list_matches(self, match_job_id: UUID) -> list[RecipeMatch]:
        found = [match for match in self.matches if match.match_job_id == match_job_id]
        return sorted(found, key=lambda match: match.match_percentage, reverse=True)


@dataclass
class FakeVisionClient(VisionClient):
    """Fake vision client returning canned payloads per schema name."""

    responses: dict[str, list[dict[str, object]]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def queue(self, schema_name: str, payload: dict[str, object]) -> None:
        self.responses.setdefault(schema_name, []).append(payload)

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
        schema_name: str,
    ) -> dict[str, object]:
        self.calls.append(schema_name)
        queued = self.responses.get(schema_name) or []
        if queued:
            return queued.pop(0)
        if schema_name == "fridge":
            return {
                "items": [
                    {
                        "name": "eggs",
                        "quantity": "6",
                        "category": "dairy",
                        "freshness": "fresh",
                        "packaging": "carton",
                        "confidence": "high",
                    }
                ],
                "image_quality": "good",
                "is_valid_fridge": True,
            }
        return {
            "recipes": [
                {
                    "name": "Omelette",
                    "ingredients": [
                        {"name": "eggs", "quantity": "3", "unit": None, "notes": None},
                        {"name": "butter", "quantity": "1", "unit": "tbsp", "notes": None},
                    ],
                    "instructions": ["Whisk", "Cook"],
                    "prep_time": "5 min",
                    "cook_time": "5 min",
                    "total_time": "10 min",
                    "servings": 1,
                    "notes": None,
                }
            ],
            "page_number": "12",
            "book_title": None,
            "is_valid_cookbook": True,
        }


@dataclass
class FakeSearchClient(ProductSearchClient):
    """Fake product search returning a fixed payload or raising."""

    products: list[dict[str, object]] = field(default_factory=list)
    error: Exception | None = None
    terms: list[str] = field(default_factory=list)

    async def search_products(self, term: str) -> dict[str, object]:
        self.terms.append(term)
        if self.error is not None:
            raise self.error
        return {"products": list(self.products)}


@dataclass
class FakeImageStore(ImageStore):
    """Fake image storage keyed by path."""

    images: dict[str, bytes] = field(default_factory=dict)

    async def download(self, path: str) -> bytes:
        if path not in self.images:
            raise TransientIOFailure(f"Failed to download {path}")
        return self.images[path]


def make_recipe(
    name: str,
    ingredients: list[str],
    cookbook_id: UUID | None = None,
    cuisine: str | None = None,
) -> Recipe:
    return Recipe(
        id=uuid4(),
        cookbook_id=cookbook_id or uuid4(),
        name=name,
        ingredients=[IngredientRef(id=uuid4(), name=ingredient) for ingredient in ingredients],
        cuisine=cuisine,
    )


def make_inventory(*names: str) -> list[InventoryItem]:
    return [InventoryItem(id=uuid4(), name=name) for name in names]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        openai_api_key="openai-key",
        keepa_api_key="keepa-key",
        run_workers=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def lifecycle(
    job_store: InMemoryJobStore, queue: RecordingQueue, clock: FakeClock
) -> JobLifecycle:
    return JobLifecycle(store=job_store, queue=queue, lease_seconds=300, clock=clock)


@pytest.fixture
def container(settings: Settings, queue: RecordingQueue, clock: FakeClock) -> AppContainer:
    recipe_repository = InMemoryRecipeRepository()
    inventory_repository = InMemoryInventoryRepository()
    lookup_store = InMemoryLookupJobStore()
    cache = InMemoryCache()
    scan_lifecycle = JobLifecycle(InMemoryJobStore(), queue, clock=clock)
    match_lifecycle = JobLifecycle(InMemoryJobStore(), queue, clock=clock)
    lookup_lifecycle = JobLifecycle(lookup_store, queue, clock=clock)
    vision_service = VisionService(
        client=FakeVisionClient(),
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )
    scan_service = ScanService(
        lifecycle=scan_lifecycle,
        vision_service=vision_service,
        image_store=FakeImageStore({"pages/1.jpg": b"\xff\xd8\xffpage"}),
        recipe_repository=recipe_repository,
        inventory_repository=inventory_repository,
        cache=cache,
    )
    match_service = MatchService(
        lifecycle=match_lifecycle,
        scan_lifecycle=scan_lifecycle,
        recipe_repository=recipe_repository,
        inventory_repository=inventory_repository,
        match_repository=InMemoryMatchRepository(),
        cache=cache,
    )
    lookup_service = ProductLookupService(
        lifecycle=lookup_lifecycle,
        store=lookup_store,
        search_client=FakeSearchClient(),
        recipe_repository=recipe_repository,
    )
    worker = Worker(
        queue=queue,
        handlers={
            JobKind.COOKBOOK_SCAN: scan_service.process_cookbook_scan,
            JobKind.FRIDGE_SCAN: scan_service.process_fridge_scan,
            JobKind.RECIPE_MATCH: match_service.process_match,
            JobKind.PRODUCT_LOOKUP: lookup_service.process_lookup,
        },
    )

    async def close_resources() -> None:
        await queue.close()

    return AppContainer(
        settings=settings,
        queue=queue,
        scan_lifecycle=scan_lifecycle,
        match_lifecycle=match_lifecycle,
        lookup_lifecycle=lookup_lifecycle,
        scan_service=scan_service,
        match_service=match_service,
        lookup_service=lookup_service,
        inventory_service=InventoryService(inventory_repository),
        worker=worker,
        reaper=StaleJobReaper([scan_lifecycle, match_lifecycle, lookup_lifecycle]),
        close_resources=close_resources,
    )
