"""Models for vision extraction results."""

from pydantic import BaseModel, Field, field_validator


class ExtractedIngredient(BaseModel):
    """Single ingredient line read from a cookbook page."""

    name: str
    quantity: str | None = None
    unit: str | None = None
    notes: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _stringify_quantity(cls, value: object) -> object:
        if isinstance(value, int | float):
            return str(value)
        return value


class ExtractedRecipe(BaseModel):
    """Single recipe read from a cookbook page."""

    name: str
    ingredients: list[ExtractedIngredient] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    prep_time: str | None = None
    cook_time: str | None = None
    total_time: str | None = None
    servings: int | None = None
    notes: str | None = None

    @field_validator("servings", mode="before")
    @classmethod
    def _parse_servings(cls, value: object) -> object:
        if isinstance(value, str):
            digits = "".join(ch if ch.isdigit() else " " for ch in value).split()
            return int(digits[0]) if digits else None
        return value


class RecipeExtract(BaseModel):
    """Structured output for cookbook page extraction."""

    recipes: list[ExtractedRecipe]
    page_number: str | None = None
    book_title: str | None = None
    is_valid_cookbook: bool = True


class ExtractedFridgeItem(BaseModel):
    """Single food item detected in a fridge photo."""

    name: str
    quantity: str | None = None
    category: str | None = None
    freshness: str | None = None
    packaging: str | None = None
    confidence: str = "medium"


class FridgeExtract(BaseModel):
    """Structured output for fridge extraction."""

    items: list[ExtractedFridgeItem]
    image_quality: str | None = None
    is_valid_fridge: bool = True
