"""Retail product lookup for cookbooks, gated on title confidence."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

from cookbook_matcher.adapters.keepa_client import ProductSearchClient
from cookbook_matcher.domain.errors import NotFoundError, PreconditionError, error_code
from cookbook_matcher.domain.jobs import (
    JobKind,
    JobStatus,
    MatchStatus,
    ProductCandidate,
    ProductLookupJob,
)
from cookbook_matcher.services.lifecycle import JobLifecycle, JobStore
from cookbook_matcher.services.recipes import RecipeRepository
from cookbook_matcher.services.selection import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    SUGGESTION_LIMIT,
    calculate_title_confidence,
    resolve_selection,
    select_candidate,
)

_logger = logging.getLogger(__name__)

BOOKS_ROOT_CATEGORY = 283155
IMAGE_BASE_URL = "https://m.media-amazon.com/images/I/"
PRODUCT_BASE_URL = "https://www.amazon.com/dp/"

_ACTIVE_STATUSES = {JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.PENDING_REVIEW}


class LookupJobStore(JobStore, Protocol):
    """Job store with a per-cookbook lookup query."""

    def latest_for_cookbook(self, cookbook_id: UUID) -> ProductLookupJob | None:
        """Return the most recent lookup job for a cookbook."""


@dataclass
class ProductLookupService:
    """Finds the retail listing for a cookbook title."""

    lifecycle: JobLifecycle
    store: LookupJobStore
    search_client: ProductSearchClient
    recipe_repository: RecipeRepository
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD
    associates_tag: str = "cookbookapp-20"
    max_retries: int = 3

    async def request_lookup(self, user_id: UUID, cookbook_id: UUID) -> ProductLookupJob:
        """Queue a lookup unless one is already running for the cookbook."""
        cookbook = self._owned_cookbook(user_id, cookbook_id)
        latest = self.store.latest_for_cookbook(cookbook_id)
        if latest is not None and latest.status in _ACTIVE_STATUSES:
            raise PreconditionError(
                "Product lookup already in progress for this cookbook",
                code="LOOKUP_IN_PROGRESS",
            )
        job = ProductLookupJob(
            id=uuid4(),
            user_id=user_id,
            kind=JobKind.PRODUCT_LOOKUP,
            max_retries=self.max_retries,
            payload={"cookbook_id": str(cookbook_id), "subject_title": cookbook.name},
            cookbook_id=cookbook_id,
            subject_title=cookbook.name,
        )
        return await self.lifecycle.submit(job)

    def latest(self, user_id: UUID, cookbook_id: UUID) -> ProductLookupJob:
        """Return the current lookup state for a cookbook."""
        self._owned_cookbook(user_id, cookbook_id)
        job = self.store.latest_for_cookbook(cookbook_id)
        if job is None:
            raise NotFoundError("No product lookup found for this cookbook")
        return job

    async def search_candidates(self, title: str) -> list[ProductCandidate]:
        """Search by title and score the top results by title confidence."""
        payload = await self.search_client.search_products(title)
        products = payload.get("products") or []
        candidates = [
            self._to_candidate(title, product)
            for product in products[:SUGGESTION_LIMIT]
            if product.get("asin")
        ]
        return sorted(candidates, key=lambda candidate: candidate.confidence, reverse=True)

    async def process_lookup(self, job_id: UUID) -> None:
        """Search, then auto-match, ask for review, or report no match."""
        job = self.lifecycle.start(job_id)
        cookbook_id = UUID(str(job.payload["cookbook_id"]))
        title = str(job.payload["subject_title"])
        _logger.info("Processing product lookup: id=%s title=%s", job_id, title)
        try:
            candidates = await self.search_candidates(title)
        except Exception as exc:
            _logger.exception("Product lookup failed: id=%s", job_id)
            self.lifecycle.fail(
                job_id,
                str(exc) or type(exc).__name__,
                error_code(exc),
                fields={"match_status": MatchStatus.FAILED},
            )
            self.recipe_repository.update_cookbook_product(
                cookbook_id, {"product_match_status": MatchStatus.FAILED}
            )
            return

        selection = select_candidate(candidates, self.threshold)
        if selection.match_status == MatchStatus.NO_MATCH:
            self.lifecycle.complete(
                job_id,
                {"match_status": MatchStatus.NO_MATCH},
                fields={"match_status": MatchStatus.NO_MATCH},
            )
            self.recipe_repository.update_cookbook_product(
                cookbook_id, {"product_match_status": MatchStatus.NO_MATCH}
            )
        elif selection.match_status == MatchStatus.AUTO_MATCHED:
            chosen = selection.selection
            self.lifecycle.complete(
                job_id,
                {"match_status": MatchStatus.AUTO_MATCHED, "selected_id": chosen.id},
                fields={
                    "match_status": MatchStatus.AUTO_MATCHED,
                    "match_confidence": chosen.confidence,
                    "selected_id": chosen.id,
                },
            )
            self.recipe_repository.update_cookbook_product(
                cookbook_id, _product_fields(chosen, MatchStatus.AUTO_MATCHED)
            )
        else:
            self.lifecycle.await_review(
                job_id,
                fields={
                    "match_status": MatchStatus.PENDING_REVIEW,
                    "match_confidence": selection.confidence,
                    "suggestions": selection.suggestions,
                },
            )
            self.recipe_repository.update_cookbook_product(
                cookbook_id,
                {
                    "product_match_status": MatchStatus.PENDING_REVIEW,
                    "product_match_confidence": selection.confidence,
                },
            )
        _logger.info(
            "Product lookup finished: id=%s match_status=%s confidence=%s",
            job_id,
            selection.match_status,
            selection.confidence,
        )

    def select(
        self, user_id: UUID, cookbook_id: UUID, selected_id: str
    ) -> ProductCandidate:
        """Accept one of the suggestions offered for review."""
        job = self._pending_review(user_id, cookbook_id)
        chosen = resolve_selection(job.suggestions, selected_id)
        self.lifecycle.resolve_review(
            job.id,
            {
                "match_status": MatchStatus.USER_SELECTED,
                "match_confidence": chosen.confidence,
                "selected_id": chosen.id,
                "suggestions": [],
            },
        )
        self.recipe_repository.update_cookbook_product(
            cookbook_id, _product_fields(chosen, MatchStatus.USER_SELECTED)
        )
        _logger.info("Product selected: cookbook=%s product=%s", cookbook_id, chosen.id)
        return chosen

    def skip(self, user_id: UUID, cookbook_id: UUID) -> None:
        """Dismiss the suggestions and record that nothing matched."""
        job = self._pending_review(user_id, cookbook_id)
        self.lifecycle.resolve_review(
            job.id, {"match_status": MatchStatus.NO_MATCH, "suggestions": []}
        )
        self.recipe_repository.update_cookbook_product(
            cookbook_id, {"product_match_status": MatchStatus.NO_MATCH}
        )
        _logger.info("Product lookup skipped: cookbook=%s", cookbook_id)

    def _pending_review(self, user_id: UUID, cookbook_id: UUID) -> ProductLookupJob:
        job = self.latest(user_id, cookbook_id)
        if job.match_status != MatchStatus.PENDING_REVIEW:
            raise NotFoundError("No pending product lookup found")
        return job

    def _owned_cookbook(self, user_id: UUID, cookbook_id: UUID):  # noqa: ANN202
        cookbook = self.recipe_repository.get_cookbook(cookbook_id)
        if cookbook is None or cookbook.user_id != user_id:
            raise NotFoundError("Cookbook not found")
        return cookbook

    def _to_candidate(self, title: str, product: dict[str, object]) -> ProductCandidate:
        asin = str(product["asin"])
        product_title = str(product.get("title") or "")
        image_url = None
        images = product.get("imagesCSV")
        if isinstance(images, str) and images.split(",")[0]:
            image_url = f"{IMAGE_BASE_URL}{images.split(',')[0]}"
        return ProductCandidate(
            id=asin,
            title=product_title,
            confidence=calculate_title_confidence(title, product_title),
            image_url=image_url,
            product_url=f"{PRODUCT_BASE_URL}{asin}?tag={self.associates_tag}",
            is_book=product.get("rootCategory") == BOOKS_ROOT_CATEGORY,
        )


def _product_fields(
    candidate: ProductCandidate, match_status: MatchStatus
) -> dict[str, object]:
    return {
        "product_id": candidate.id,
        "product_image_url": candidate.image_url,
        "product_url": candidate.product_url,
        "product_match_confidence": candidate.confidence,
        "product_match_status": match_status,
    }
