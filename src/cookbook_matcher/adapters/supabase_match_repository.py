"""Supabase-backed recipe match snapshots."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from cookbook_matcher.domain.jobs import RecipeMatch
from cookbook_matcher.services.matches import RecipeMatchRepository


@dataclass
class SupabaseMatchRepository(RecipeMatchRepository):
    """Supabase implementation for per-recipe match results."""

    client: Client

    def save_matches(self, matches: list[RecipeMatch]) -> None:
        """Insert all snapshots with a single bulk statement."""
        if not matches:
            return
        rows = [
            {
                "match_job_id": str(match.match_job_id),
                "recipe_id": str(match.recipe_id),
                "recipe_name": match.recipe_name,
                "match_percentage": match.match_percentage,
                "total_ingredients": match.total_ingredients,
                "available_ingredients": match.available_ingredients,
                "missing_ingredients": match.missing_ingredients,
            }
            for match in matches
        ]
        self.client.table("recipe_matches").insert(rows).execute()

    def list_matches(self, match_job_id: UUID) -> list[RecipeMatch]:
        """Return snapshots of a match job, best first."""
        response = (
            self.client.table("recipe_matches")
            .select(
                "match_job_id, recipe_id, recipe_name, match_percentage, "
                "total_ingredients, available_ingredients, missing_ingredients"
            )
            .eq("match_job_id", str(match_job_id))
            .order("match_percentage", desc=True)
            .execute()
        )
        return [
            RecipeMatch(
                match_job_id=UUID(str(row["match_job_id"])),
                recipe_id=UUID(str(row["recipe_id"])),
                recipe_name=str(row["recipe_name"]),
                match_percentage=int(row["match_percentage"]),
                total_ingredients=int(row["total_ingredients"]),
                available_ingredients=list(row.get("available_ingredients") or []),
                missing_ingredients=list(row.get("missing_ingredients") or []),
            )
            for row in response.data or []
        ]
