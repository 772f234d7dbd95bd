"""Persistence interface for cookbooks and their recipes."""

from typing import Protocol
from uuid import UUID

from cookbook_matcher.domain.recipes import Cookbook, Recipe
from cookbook_matcher.domain.vision import ExtractedRecipe


class RecipeRepository(Protocol):
    """Persistence interface for cookbooks, recipes and ingredients."""

    def get_cookbook(self, cookbook_id: UUID) -> Cookbook | None:
        """Return a cookbook by id, if present."""

    def find_cookbook(self, user_id: UUID, name: str) -> Cookbook | None:
        """Return the user's cookbook with this name, ignoring case."""

    def create_cookbook(
        self, user_id: UUID, name: str, cover_image_path: str | None
    ) -> Cookbook:
        """Create a cookbook with one scanned page and return it."""

    def increment_scanned_pages(self, cookbook_id: UUID) -> None:
        """Count one more scanned page for a cookbook."""

    def save_recipes(
        self,
        cookbook_id: UUID,
        recipes: list[ExtractedRecipe],
        page_number: int,
        image_path: str,
    ) -> int:
        """Atomically store recipes from one page and return how many."""

    def list_recipes(self, cookbook_id: UUID) -> list[Recipe]:
        """Return recipes with ingredients in their original order."""

    def count_recipes(self, cookbook_id: UUID) -> int:
        """Return how many recipes a cookbook holds."""

    def list_recommendation_candidates(
        self,
        exclude_user_id: UUID,
        cuisine: str | None,
        dietary_tags: list[str] | None,
        limit: int,
    ) -> list[Recipe]:
        """Return recent recipes from other users' cookbooks."""

    def update_cookbook_product(
        self, cookbook_id: UUID, fields: dict[str, object]
    ) -> None:
        """Store the retail product matched to a cookbook."""
