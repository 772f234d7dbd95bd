"""Recipe match jobs and inventory-based recommendations."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

from cookbook_matcher.domain.errors import NotFoundError, PreconditionError, error_code
from cookbook_matcher.domain.ingredients import IngredientRef
from cookbook_matcher.domain.jobs import (
    JobKind,
    JobStatus,
    MatchJob,
    RecipeMatch,
)
from cookbook_matcher.services.cache import Cache
from cookbook_matcher.services.inventory import InventoryRepository
from cookbook_matcher.services.lifecycle import JobLifecycle
from cookbook_matcher.services.matching import (
    DEFAULT_THRESHOLD,
    RankedPage,
    calculate_match,
    rank_recipes,
)
from cookbook_matcher.services.recipes import RecipeRepository

_logger = logging.getLogger(__name__)


class RecipeMatchRepository(Protocol):
    """Persistence interface for per-recipe match snapshots."""

    def save_matches(self, matches: list[RecipeMatch]) -> None:
        """Insert every snapshot of a match job in one atomic write."""

    def list_matches(self, match_job_id: UUID) -> list[RecipeMatch]:
        """Return snapshots of a match job, best match first."""


@dataclass(frozen=True)
class Recommendations:
    """A page of recommended recipes for the user's current inventory."""

    page: RankedPage
    inventory_count: int


@dataclass
class MatchService:
    """Runs cookbooks against fridge scans and ranks recommendations."""

    lifecycle: JobLifecycle
    scan_lifecycle: JobLifecycle
    recipe_repository: RecipeRepository
    inventory_repository: InventoryRepository
    match_repository: RecipeMatchRepository
    cache: Cache
    threshold: float = DEFAULT_THRESHOLD
    prefer_best: bool = False
    max_retries: int = 3
    cache_ttl_seconds: int = 300
    candidate_limit: int = 500

    async def create_match_job(
        self, user_id: UUID, cookbook_id: UUID, fridge_scan_id: UUID
    ) -> MatchJob:
        """Validate inputs and queue a match job."""
        cookbook = self.recipe_repository.get_cookbook(cookbook_id)
        if cookbook is None or cookbook.user_id != user_id:
            raise NotFoundError("Cookbook not found")
        scan = self.scan_lifecycle.get(fridge_scan_id, user_id)
        if scan.kind != JobKind.FRIDGE_SCAN:
            raise NotFoundError("Fridge scan not found")
        if scan.status != JobStatus.COMPLETED:
            raise PreconditionError(
                "Fridge scan must be completed before matching",
                code="SCAN_NOT_COMPLETED",
            )
        if self.recipe_repository.count_recipes(cookbook_id) == 0:
            raise PreconditionError(
                "Cookbook must have at least one recipe", code="NO_RECIPES"
            )
        job = MatchJob(
            id=uuid4(),
            user_id=user_id,
            kind=JobKind.RECIPE_MATCH,
            max_retries=self.max_retries,
            payload={
                "cookbook_id": str(cookbook_id),
                "fridge_scan_id": str(fridge_scan_id),
            },
            cookbook_id=cookbook_id,
            fridge_scan_id=fridge_scan_id,
            cookbook_name=cookbook.name,
        )
        return await self.lifecycle.submit(job)

    async def process_match(self, job_id: UUID) -> None:
        """Score every recipe of the cookbook against the scanned items."""
        job = self.lifecycle.start(job_id)
        cookbook_id = UUID(str(job.payload["cookbook_id"]))
        fridge_scan_id = UUID(str(job.payload["fridge_scan_id"]))
        _logger.info(
            "Processing match job: id=%s cookbook=%s scan=%s",
            job_id,
            cookbook_id,
            fridge_scan_id,
        )
        try:
            recipes = self.recipe_repository.list_recipes(cookbook_id)
            inventory = self.inventory_repository.list_items(
                job.user_id, scan_job_id=fridge_scan_id
            )
            if not inventory:
                raise PreconditionError(
                    "No fridge items found for this scan", code="NO_INVENTORY"
                )
            snapshots = []
            for recipe in recipes:
                if not recipe.ingredients:
                    continue
                outcome = calculate_match(
                    recipe.ingredients,
                    inventory,
                    self.threshold,
                    prefer_best=self.prefer_best,
                )
                snapshots.append(
                    RecipeMatch(
                        match_job_id=job_id,
                        recipe_id=recipe.id,
                        recipe_name=recipe.name,
                        match_percentage=outcome.match_percentage,
                        total_ingredients=outcome.total_ingredients,
                        available_ingredients=_serialize_ingredients(
                            outcome.available_ingredients
                        ),
                        missing_ingredients=_serialize_ingredients(
                            outcome.missing_ingredients
                        ),
                    )
                )
            matched = sum(1 for snapshot in snapshots if snapshot.match_percentage > 0)
            self.match_repository.save_matches(snapshots)
        except Exception as exc:
            _logger.exception("Match job failed: id=%s", job_id)
            self.lifecycle.fail(job_id, str(exc) or type(exc).__name__, error_code(exc))
            return

        self.lifecycle.complete(
            job_id,
            {"total_recipes": len(recipes), "matched_recipes": matched},
            fields={"total_recipes": len(recipes), "matched_recipes": matched},
        )
        _logger.info(
            "Match job completed: id=%s recipes=%s matched=%s",
            job_id,
            len(recipes),
            matched,
        )

    def get_results(self, job_id: UUID, user_id: UUID) -> list[RecipeMatch]:
        """Return the per-recipe snapshots of a user's match job."""
        self.lifecycle.get(job_id, user_id)
        return self.match_repository.list_matches(job_id)

    def recommend(  # noqa: PLR0913
        self,
        user_id: UUID,
        min_percentage: int = 30,
        offset: int = 0,
        limit: int = 20,
        cuisine: str | None = None,
        dietary_tags: list[str] | None = None,
    ) -> Recommendations:
        """Rank other users' recipes by how much of them the user can cook."""
        tags_key = ",".join(sorted(dietary_tags)) if dietary_tags else "all"
        cache_key = (
            f"recommendations:{user_id}:{cuisine or 'all'}:{tags_key}:"
            f"{min_percentage}:{limit}:{offset}"
        )
        cached = self.cache.get(cache_key)
        if isinstance(cached, Recommendations):
            return cached

        inventory = self.inventory_repository.list_items(user_id)
        if not inventory:
            return Recommendations(
                page=RankedPage(items=[], total=0, offset=offset, limit=limit),
                inventory_count=0,
            )
        candidates = self.recipe_repository.list_recommendation_candidates(
            exclude_user_id=user_id,
            cuisine=cuisine,
            dietary_tags=dietary_tags,
            limit=self.candidate_limit,
        )
        page = rank_recipes(
            candidates,
            inventory,
            min_percentage=min_percentage,
            offset=offset,
            limit=limit,
            threshold=self.threshold,
            prefer_best=self.prefer_best,
        )
        recommendations = Recommendations(page=page, inventory_count=len(inventory))
        self.cache.set(cache_key, recommendations, ttl_seconds=self.cache_ttl_seconds)
        return recommendations


def _serialize_ingredients(ingredients: list[IngredientRef]) -> list[dict[str, object]]:
    return [
        {
            "id": str(ingredient.id),
            "name": ingredient.name,
            "quantity": ingredient.quantity,
            "unit": ingredient.unit,
        }
        for ingredient in ingredients
    ]
