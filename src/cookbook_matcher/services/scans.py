"""Cookbook and fridge scan processing."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

from cookbook_matcher.domain.errors import ExtractionFailure, error_code
from cookbook_matcher.domain.jobs import JobKind, ScanJob
from cookbook_matcher.services.cache import Cache
from cookbook_matcher.services.inventory import InventoryRepository
from cookbook_matcher.services.lifecycle import JobLifecycle
from cookbook_matcher.services.recipes import RecipeRepository
from cookbook_matcher.services.vision import VisionService

_logger = logging.getLogger(__name__)


class ImageStore(Protocol):
    """Interface for reading uploaded images."""

    async def download(self, path: str) -> bytes:
        """Return the bytes stored at ``path``."""


@dataclass
class ScanService:
    """Accepts scans and turns photos into recipes or inventory items."""

    lifecycle: JobLifecycle
    vision_service: VisionService
    image_store: ImageStore
    recipe_repository: RecipeRepository
    inventory_repository: InventoryRepository
    cache: Cache
    max_retries: int = 3

    async def submit_cookbook_scan(
        self, user_id: UUID, cookbook_name: str, image_paths: list[str]
    ) -> ScanJob:
        """Queue a multi-page cookbook scan."""
        job = ScanJob(
            id=uuid4(),
            user_id=user_id,
            kind=JobKind.COOKBOOK_SCAN,
            max_retries=self.max_retries,
            payload={"cookbook_name": cookbook_name, "image_paths": list(image_paths)},
            total_units=len(image_paths),
        )
        return await self.lifecycle.submit(job)

    async def submit_fridge_scan(
        self, user_id: UUID, image_path: str, replace_existing: bool = False
    ) -> ScanJob:
        """Queue a single fridge photo scan."""
        job = ScanJob(
            id=uuid4(),
            user_id=user_id,
            kind=JobKind.FRIDGE_SCAN,
            max_retries=self.max_retries,
            payload={"image_paths": [image_path], "replace_existing": replace_existing},
            total_units=1,
        )
        return await self.lifecycle.submit(job)

    async def process_cookbook_scan(self, job_id: UUID) -> None:
        """Extract recipes page by page, reporting progress after each page.

        A retried scan resumes after the last page it finished, so progress
        never goes backwards and earlier pages are not saved twice.
        """
        job = self.lifecycle.start(job_id)
        cookbook_name = str(job.payload.get("cookbook_name", ""))
        image_paths = [str(path) for path in job.payload.get("image_paths", [])]
        first_page = job.processed_units if isinstance(job, ScanJob) else 0
        _logger.info(
            "Processing cookbook scan: id=%s user=%s pages=%s resume_from=%s",
            job_id,
            job.user_id,
            len(image_paths),
            first_page + 1,
        )
        cookbook_id = job.cookbook_id if isinstance(job, ScanJob) else None
        recipes_found = job.items_found if isinstance(job, ScanJob) else 0
        try:
            for index in range(first_page, len(image_paths)):
                path = image_paths[index]
                image = await self.image_store.download(path)
                extraction = await self.vision_service.extract_recipes(image)
                if not extraction.success:
                    raise ExtractionFailure(
                        f"Page {index + 1} doesn't appear to be a cookbook page",
                        code=extraction.invalid_reason,
                    )
                if extraction.recipes:
                    cookbook_id = self._ensure_cookbook(
                        job.user_id, cookbook_name, cookbook_id, path
                    )
                    recipes_found += self.recipe_repository.save_recipes(
                        cookbook_id, extraction.recipes, index + 1, path
                    )
                else:
                    _logger.warning(
                        "No recipes found on page: id=%s page=%s", job_id, index + 1
                    )
                self.lifecycle.store.update_job(
                    job_id,
                    {
                        "processed_units": index + 1,
                        "cookbook_id": cookbook_id,
                        "items_found": recipes_found,
                    },
                )
                self.lifecycle.heartbeat(job_id)
        except Exception as exc:
            self._fail(job_id, exc)
            return

        self.lifecycle.complete(
            job_id,
            {
                "recipes_found": recipes_found,
                "cookbook_id": str(cookbook_id) if cookbook_id else None,
            },
        )
        self.cache.delete_prefix(f"recommendations:{job.user_id}:")
        _logger.info(
            "Cookbook scan completed: id=%s recipes=%s", job_id, recipes_found
        )

    async def process_fridge_scan(self, job_id: UUID) -> None:
        """Extract fridge items from one photo into the user's inventory."""
        job = self.lifecycle.start(job_id)
        image_paths = [str(path) for path in job.payload.get("image_paths", [])]
        replace_existing = bool(job.payload.get("replace_existing", False))
        _logger.info("Processing fridge scan: id=%s user=%s", job_id, job.user_id)
        try:
            image = await self.image_store.download(image_paths[0])
            extraction = await self.vision_service.extract_fridge_items(image)
            if not extraction.success:
                raise ExtractionFailure(
                    "This doesn't appear to be a refrigerator image",
                    code=extraction.invalid_reason,
                )
            items = self.inventory_repository.add_scanned_items(
                job.user_id, job_id, extraction.items, replace_existing
            )
        except Exception as exc:
            self._fail(job_id, exc)
            return

        self.lifecycle.complete(
            job_id,
            {"items_found": len(items)},
            fields={"processed_units": 1, "items_found": len(items)},
        )
        self.cache.delete_prefix(f"recommendations:{job.user_id}:")
        _logger.info("Fridge scan completed: id=%s items=%s", job_id, len(items))

    def _ensure_cookbook(
        self,
        user_id: UUID,
        cookbook_name: str,
        cookbook_id: UUID | None,
        image_path: str,
    ) -> UUID:
        if cookbook_id is not None:
            self.recipe_repository.increment_scanned_pages(cookbook_id)
            return cookbook_id
        existing = self.recipe_repository.find_cookbook(user_id, cookbook_name)
        if existing is not None:
            self.recipe_repository.increment_scanned_pages(existing.id)
            return existing.id
        created = self.recipe_repository.create_cookbook(
            user_id, cookbook_name, cover_image_path=image_path
        )
        return created.id

    def _fail(self, job_id: UUID, exc: Exception) -> None:
        _logger.exception("Scan job failed: id=%s", job_id)
        self.lifecycle.fail(job_id, str(exc) or type(exc).__name__, error_code(exc))
