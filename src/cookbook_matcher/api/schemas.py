"""Pydantic models for API request bodies."""

from uuid import UUID

from pydantic import BaseModel, Field


class CookbookScanRequest(BaseModel):
    """Uploaded cookbook pages to scan."""

    cookbook_name: str = Field(min_length=1, max_length=200)
    image_paths: list[str] = Field(min_length=1, max_length=50)


class FridgeScanRequest(BaseModel):
    """Uploaded fridge photo to scan."""

    image_path: str = Field(min_length=1)
    replace_existing: bool = False


class MatchJobRequest(BaseModel):
    """Cookbook and fridge scan to match against each other."""

    cookbook_id: UUID
    fridge_scan_id: UUID


class InventoryItemCreate(BaseModel):
    """Manually entered fridge item."""

    name: str = Field(min_length=1, max_length=200)
    quantity: str | None = None
    category: str | None = None


class InventoryItemUpdate(BaseModel):
    """Partial update of a fridge item."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    quantity: str | None = None
    category: str | None = None


class ProductSelectRequest(BaseModel):
    """Suggestion picked by the user."""

    product_id: str = Field(min_length=1)
