"""Domain models for cookbooks and recipes."""

from dataclasses import dataclass, field
from uuid import UUID

from cookbook_matcher.domain.ingredients import IngredientRef


@dataclass(frozen=True)
class Cookbook:
    """A cookbook assembled from scanned pages."""

    id: UUID
    user_id: UUID
    name: str
    scanned_pages: int
    cover_image_path: str | None = None


@dataclass(frozen=True)
class Recipe:
    """A recipe and its ordered ingredient list."""

    id: UUID
    cookbook_id: UUID
    name: str
    ingredients: list[IngredientRef] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    prep_time: str | None = None
    cook_time: str | None = None
    total_time: str | None = None
    servings: int | None = None
    notes: str | None = None
    page_number: int | None = None
    cuisine: str | None = None
    dietary_tags: list[str] = field(default_factory=list)
    cookbook_name: str | None = None
