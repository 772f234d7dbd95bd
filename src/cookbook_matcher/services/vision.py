"""Vision extraction service for cookbook pages and fridge photos."""

import base64
import logging
from dataclasses import dataclass, field
from typing import Protocol

from cookbook_matcher.domain.vision import (
    ExtractedFridgeItem,
    ExtractedRecipe,
    FridgeExtract,
    RecipeExtract,
)

_logger = logging.getLogger(__name__)

INVALID_COOKBOOK_IMAGE = "INVALID_COOKBOOK_IMAGE"
INVALID_FRIDGE_IMAGE = "INVALID_FRIDGE_IMAGE"

_NULLABLE_STRING = {"anyOf": [{"type": "string"}, {"type": "null"}]}

RECIPE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "recipes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "ingredients": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "quantity": _NULLABLE_STRING,
                                "unit": _NULLABLE_STRING,
                                "notes": _NULLABLE_STRING,
                            },
                            "required": ["name", "quantity", "unit", "notes"],
                            "additionalProperties": False,
                        },
                    },
                    "instructions": {"type": "array", "items": {"type": "string"}},
                    "prep_time": _NULLABLE_STRING,
                    "cook_time": _NULLABLE_STRING,
                    "total_time": _NULLABLE_STRING,
                    "servings": {
                        "anyOf": [{"type": "integer", "minimum": 0}, {"type": "null"}]
                    },
                    "notes": _NULLABLE_STRING,
                },
                "required": [
                    "name",
                    "ingredients",
                    "instructions",
                    "prep_time",
                    "cook_time",
                    "total_time",
                    "servings",
                    "notes",
                ],
                "additionalProperties": False,
            },
        },
        "page_number": _NULLABLE_STRING,
        "book_title": _NULLABLE_STRING,
        "is_valid_cookbook": {"type": "boolean"},
    },
    "required": ["recipes", "page_number", "book_title", "is_valid_cookbook"],
    "additionalProperties": False,
}

FRIDGE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "quantity": _NULLABLE_STRING,
                    "category": _NULLABLE_STRING,
                    "freshness": _NULLABLE_STRING,
                    "packaging": _NULLABLE_STRING,
                    "confidence": {"type": "string", "enum": ["high", "medium", "low"]},
                },
                "required": [
                    "name",
                    "quantity",
                    "category",
                    "freshness",
                    "packaging",
                    "confidence",
                ],
                "additionalProperties": False,
            },
        },
        "image_quality": _NULLABLE_STRING,
        "is_valid_fridge": {"type": "boolean"},
    },
    "required": ["items", "image_quality", "is_valid_fridge"],
    "additionalProperties": False,
}

COOKBOOK_PROMPT = (
    "Extract every recipe visible on this cookbook page. "
    "For each recipe give the exact name, every ingredient with quantity and "
    "unit as written, numbered instructions, prep/cook/total time, servings "
    "and notes when present. Return an empty recipes list if the page has no "
    "recipes, and set is_valid_cookbook to false if the image is not a "
    "cookbook page."
)

FRIDGE_PROMPT = (
    "Identify every food item and beverage visible in this refrigerator. "
    "Use specific names (e.g. 'red bell pepper'), a conservative quantity, a "
    "category such as produce, dairy or meat, and a high/medium/low "
    "confidence. Group identical items. Return an empty items list for an "
    "empty fridge and set is_valid_fridge to false if the image is not a "
    "refrigerator."
)


class VisionClient(Protocol):
    """Interface for LLM vision extraction."""

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
        schema_name: str,
    ) -> dict[str, object]:
        """Return structured vision extraction data."""


@dataclass(frozen=True)
class RecipeExtraction:
    """Recipes read from one page, or the reason the page was rejected."""

    success: bool
    recipes: list[ExtractedRecipe] = field(default_factory=list)
    invalid_reason: str | None = None


@dataclass(frozen=True)
class FridgeExtraction:
    """Items read from one fridge photo, or the reason it was rejected."""

    success: bool
    items: list[ExtractedFridgeItem] = field(default_factory=list)
    invalid_reason: str | None = None


@dataclass
class VisionService:
    """Service that prepares vision prompts and validates results."""

    client: VisionClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def extract_recipes(self, image_bytes: bytes) -> RecipeExtraction:
        """Extract recipes from a cookbook page image."""
        raw = await self._extract(image_bytes, RECIPE_SCHEMA, COOKBOOK_PROMPT, "recipes")
        extract = RecipeExtract.model_validate(raw)
        if not extract.is_valid_cookbook:
            return RecipeExtraction(
                success=False, invalid_reason=INVALID_COOKBOOK_IMAGE
            )
        _logger.info("Cookbook page processed: recipes=%s", len(extract.recipes))
        return RecipeExtraction(success=True, recipes=extract.recipes)

    async def extract_fridge_items(self, image_bytes: bytes) -> FridgeExtraction:
        """Extract food items from a fridge image."""
        raw = await self._extract(image_bytes, FRIDGE_SCHEMA, FRIDGE_PROMPT, "fridge")
        extract = FridgeExtract.model_validate(raw)
        if not extract.is_valid_fridge:
            return FridgeExtraction(success=False, invalid_reason=INVALID_FRIDGE_IMAGE)
        _logger.info("Fridge image processed: items=%s", len(extract.items))
        return FridgeExtraction(success=True, items=extract.items)

    async def _extract(
        self,
        image_bytes: bytes,
        schema: dict[str, object],
        prompt: str,
        schema_name: str,
    ) -> dict[str, object]:
        return await self.client.extract(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            image_data_url=_to_data_url(image_bytes),
            schema=schema,
            prompt=prompt,
            schema_name=schema_name,
        )


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
