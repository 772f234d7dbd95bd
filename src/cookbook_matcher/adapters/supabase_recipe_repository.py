"""Supabase-backed cookbook and recipe repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from cookbook_matcher.adapters.supabase_session import tracked_session
from cookbook_matcher.domain.ingredients import IngredientRef
from cookbook_matcher.domain.recipes import Cookbook, Recipe
from cookbook_matcher.domain.vision import ExtractedRecipe
from cookbook_matcher.services.recipes import RecipeRepository

_RECIPE_COLUMNS = (
    "id, cookbook_id, name, instructions, prep_time, cook_time, total_time, "
    "servings, notes, page_number, cuisine, dietary_tags, "
    "recipe_ingredients(id, name, quantity, unit, position)"
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _cookbook_from_row(row: dict[str, object]) -> Cookbook:
    return Cookbook(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        name=str(row["name"]),
        scanned_pages=int(row.get("scanned_pages") or 0),
        cover_image_path=row.get("cover_image_path"),
    )


def _recipe_from_row(row: dict[str, object]) -> Recipe:
    ingredient_rows = sorted(
        row.get("recipe_ingredients") or [],
        key=lambda ingredient: ingredient.get("position") or 0,
    )
    cookbook = row.get("cookbooks") or {}
    return Recipe(
        id=UUID(str(row["id"])),
        cookbook_id=UUID(str(row["cookbook_id"])),
        name=str(row["name"]),
        ingredients=[
            IngredientRef(
                id=UUID(str(ingredient["id"])),
                name=str(ingredient["name"]),
                quantity=ingredient.get("quantity"),
                unit=ingredient.get("unit"),
            )
            for ingredient in ingredient_rows
        ],
        instructions=list(row.get("instructions") or []),
        prep_time=row.get("prep_time"),
        cook_time=row.get("cook_time"),
        total_time=row.get("total_time"),
        servings=row.get("servings"),
        notes=row.get("notes"),
        page_number=row.get("page_number"),
        cuisine=row.get("cuisine"),
        dietary_tags=list(row.get("dietary_tags") or []),
        cookbook_name=cookbook.get("name"),
    )


@dataclass
class SupabaseRecipeRepository(RecipeRepository):
    """Supabase implementation for cookbooks, recipes and ingredients."""

    client: Client
    slow_query_warning_seconds: float = 5.0

    def get_cookbook(self, cookbook_id: UUID) -> Cookbook | None:
        """Return a cookbook by id, if present."""
        response = (
            self.client.table("cookbooks")
            .select("id, user_id, name, scanned_pages, cover_image_path")
            .eq("id", str(cookbook_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _cookbook_from_row(response.data[0])

    def find_cookbook(self, user_id: UUID, name: str) -> Cookbook | None:
        """Return the user's cookbook with this name, ignoring case."""
        response = (
            self.client.table("cookbooks")
            .select("id, user_id, name, scanned_pages, cover_image_path")
            .eq("user_id", str(user_id))
            .ilike("name", _escape_like(name.strip()))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _cookbook_from_row(response.data[0])

    def create_cookbook(
        self, user_id: UUID, name: str, cover_image_path: str | None
    ) -> Cookbook:
        """Create a cookbook with one scanned page."""
        response = (
            self.client.table("cookbooks")
            .insert(
                {
                    "user_id": str(user_id),
                    "name": name,
                    "scanned_pages": 1,
                    "cover_image_path": cover_image_path,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create cookbook")
        return _cookbook_from_row(response.data[0])

    def increment_scanned_pages(self, cookbook_id: UUID) -> None:
        """Count one more scanned page."""
        self.client.rpc(
            "increment_cookbook_pages", {"p_cookbook_id": str(cookbook_id)}
        ).execute()

    def save_recipes(
        self,
        cookbook_id: UUID,
        recipes: list[ExtractedRecipe],
        page_number: int,
        image_path: str,
    ) -> int:
        """Store one page of recipes and their ingredients in a transaction."""
        params = {
            "p_cookbook_id": str(cookbook_id),
            "p_page_number": page_number,
            "p_image_path": image_path,
            "p_recipes": [recipe.model_dump() for recipe in recipes],
        }
        with tracked_session(self.client, self.slow_query_warning_seconds) as session:
            response = session.rpc("save_scanned_recipes", params).execute()
        if response.data is None:
            return len(recipes)
        return int(response.data)

    def list_recipes(self, cookbook_id: UUID) -> list[Recipe]:
        """Return recipes of a cookbook in page order."""
        response = (
            self.client.table("recipes")
            .select(_RECIPE_COLUMNS)
            .eq("cookbook_id", str(cookbook_id))
            .order("page_number")
            .execute()
        )
        return [_recipe_from_row(row) for row in response.data or []]

    def count_recipes(self, cookbook_id: UUID) -> int:
        """Return how many recipes a cookbook holds."""
        response = (
            self.client.table("recipes")
            .select("id", count="exact")
            .eq("cookbook_id", str(cookbook_id))
            .execute()
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])

    def list_recommendation_candidates(
        self,
        exclude_user_id: UUID,
        cuisine: str | None,
        dietary_tags: list[str] | None,
        limit: int,
    ) -> list[Recipe]:
        """Return the newest recipes from other users' cookbooks."""
        query = (
            self.client.table("recipes")
            .select(f"{_RECIPE_COLUMNS}, cookbooks!inner(name, user_id)")
            .neq("cookbooks.user_id", str(exclude_user_id))
        )
        if cuisine:
            query = query.eq("cuisine", cuisine)
        if dietary_tags:
            query = query.contains("dietary_tags", dietary_tags)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return [_recipe_from_row(row) for row in response.data or []]

    def update_cookbook_product(
        self, cookbook_id: UUID, fields: dict[str, object]
    ) -> None:
        """Store the product match fields on the cookbook row."""
        self.client.table("cookbooks").update(dict(fields)).eq(
            "id", str(cookbook_id)
        ).execute()
