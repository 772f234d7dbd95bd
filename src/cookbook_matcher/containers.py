"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from cookbook_matcher.adapters.keepa_client import HttpxKeepaClient
from cookbook_matcher.adapters.openai_vision_client import OpenAIVisionClient
from cookbook_matcher.adapters.supabase_image_store import SupabaseImageStore
from cookbook_matcher.adapters.supabase_inventory_repository import (
    SupabaseInventoryRepository,
)
from cookbook_matcher.adapters.supabase_job_repository import (
    SupabaseLookupJobRepository,
    SupabaseMatchJobRepository,
    SupabaseScanJobRepository,
)
from cookbook_matcher.adapters.supabase_match_repository import SupabaseMatchRepository
from cookbook_matcher.adapters.supabase_recipe_repository import (
    SupabaseRecipeRepository,
)
from cookbook_matcher.config import Settings
from cookbook_matcher.domain.jobs import JobKind
from cookbook_matcher.services.cache import InMemoryCache
from cookbook_matcher.services.inventory import InventoryService
from cookbook_matcher.services.lifecycle import JobLifecycle
from cookbook_matcher.services.lookups import ProductLookupService
from cookbook_matcher.services.matches import MatchService
from cookbook_matcher.services.queue import AsyncioJobQueue, JobQueue, QueuePolicy
from cookbook_matcher.services.scans import ScanService
from cookbook_matcher.services.vision import VisionService
from cookbook_matcher.workers import StaleJobReaper, Worker


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    queue: JobQueue
    scan_lifecycle: JobLifecycle
    match_lifecycle: JobLifecycle
    lookup_lifecycle: JobLifecycle
    scan_service: ScanService
    match_service: MatchService
    lookup_service: ProductLookupService
    inventory_service: InventoryService
    worker: Worker
    reaper: StaleJobReaper
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    slow_seconds = resolved_settings.slow_query_warning_seconds
    recipe_repository = SupabaseRecipeRepository(supabase_client, slow_seconds)
    inventory_repository = SupabaseInventoryRepository(supabase_client, slow_seconds)
    match_repository = SupabaseMatchRepository(supabase_client)
    lookup_store = SupabaseLookupJobRepository(supabase_client)
    image_store = SupabaseImageStore(
        supabase_client, resolved_settings.supabase_storage_bucket
    )

    queue = AsyncioJobQueue(
        policy=QueuePolicy(
            max_attempts=resolved_settings.queue_max_attempts,
            backoff_base_ms=resolved_settings.queue_backoff_base_ms,
        )
    )
    lease_seconds = resolved_settings.job_lease_seconds
    scan_lifecycle = JobLifecycle(
        SupabaseScanJobRepository(supabase_client), queue, lease_seconds
    )
    match_lifecycle = JobLifecycle(
        SupabaseMatchJobRepository(supabase_client), queue, lease_seconds
    )
    lookup_lifecycle = JobLifecycle(lookup_store, queue, lease_seconds)

    openai_client = OpenAIVisionClient.create(resolved_settings.openai_api_key)
    vision_service = VisionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    keepa_client = HttpxKeepaClient.create(
        api_key=resolved_settings.keepa_api_key,
        base_url=resolved_settings.keepa_base_url,
    )
    cache = InMemoryCache()

    scan_service = ScanService(
        lifecycle=scan_lifecycle,
        vision_service=vision_service,
        image_store=image_store,
        recipe_repository=recipe_repository,
        inventory_repository=inventory_repository,
        cache=cache,
        max_retries=resolved_settings.job_max_retries,
    )
    match_service = MatchService(
        lifecycle=match_lifecycle,
        scan_lifecycle=scan_lifecycle,
        recipe_repository=recipe_repository,
        inventory_repository=inventory_repository,
        match_repository=match_repository,
        cache=cache,
        threshold=resolved_settings.ingredient_match_threshold,
        prefer_best=resolved_settings.ingredient_match_prefer_best,
        max_retries=resolved_settings.job_max_retries,
        cache_ttl_seconds=resolved_settings.recommendation_cache_ttl_seconds,
        candidate_limit=resolved_settings.recommendation_candidate_limit,
    )
    lookup_service = ProductLookupService(
        lifecycle=lookup_lifecycle,
        store=lookup_store,
        search_client=keepa_client,
        recipe_repository=recipe_repository,
        threshold=resolved_settings.product_confidence_threshold,
        associates_tag=resolved_settings.amazon_associates_tag,
        max_retries=resolved_settings.job_max_retries,
    )
    inventory_service = InventoryService(inventory_repository)

    worker = Worker(
        queue=queue,
        handlers={
            JobKind.COOKBOOK_SCAN: scan_service.process_cookbook_scan,
            JobKind.FRIDGE_SCAN: scan_service.process_fridge_scan,
            JobKind.RECIPE_MATCH: match_service.process_match,
            JobKind.PRODUCT_LOOKUP: lookup_service.process_lookup,
        },
    )
    reaper = StaleJobReaper(
        lifecycles=[scan_lifecycle, match_lifecycle, lookup_lifecycle],
        interval_seconds=resolved_settings.stale_job_sweep_seconds,
    )

    async def close_resources() -> None:
        await queue.close()
        await keepa_client.close()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        queue=queue,
        scan_lifecycle=scan_lifecycle,
        match_lifecycle=match_lifecycle,
        lookup_lifecycle=lookup_lifecycle,
        scan_service=scan_service,
        match_service=match_service,
        lookup_service=lookup_service,
        inventory_service=inventory_service,
        worker=worker,
        reaper=reaper,
        close_resources=close_resources,
    )
