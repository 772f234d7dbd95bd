"""Domain models for recipe ingredients and fridge inventory."""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class IngredientRef:
    """An ingredient line extracted from a recipe."""

    id: UUID
    name: str
    quantity: str | None = None
    unit: str | None = None


@dataclass(frozen=True)
class InventoryItem:
    """An item the user currently has on hand."""

    id: UUID
    name: str
    quantity: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class IngredientMatch:
    """Result of matching one ingredient against an inventory."""

    matched: bool
    item: InventoryItem | None
    similarity: float


@dataclass(frozen=True)
class MatchOutcome:
    """Availability of a recipe's ingredients given an inventory."""

    match_percentage: int
    available_ingredients: list[IngredientRef] = field(default_factory=list)
    missing_ingredients: list[IngredientRef] = field(default_factory=list)

    @property
    def can_make_now(self) -> bool:
        return self.match_percentage == 100

    @property
    def total_ingredients(self) -> int:
        return len(self.available_ingredients) + len(self.missing_ingredients)
