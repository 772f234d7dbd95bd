"""Services for managing a user's fridge inventory."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from cookbook_matcher.domain.errors import NotFoundError
from cookbook_matcher.domain.ingredients import InventoryItem
from cookbook_matcher.domain.vision import ExtractedFridgeItem


class InventoryRepository(Protocol):
    """Persistence interface for fridge items."""

    def add_scanned_items(
        self,
        user_id: UUID,
        scan_job_id: UUID,
        items: list[ExtractedFridgeItem],
        replace_existing: bool,
    ) -> list[InventoryItem]:
        """Atomically store scanned items, optionally clearing the old ones."""

    def create_item(self, user_id: UUID, payload: dict[str, object]) -> InventoryItem:
        """Create a manually entered item."""

    def update_item(
        self, user_id: UUID, item_id: UUID, payload: dict[str, object]
    ) -> InventoryItem | None:
        """Update an item owned by the user; None if it does not exist."""

    def delete_item(self, user_id: UUID, item_id: UUID) -> bool:
        """Delete an item owned by the user; False if it does not exist."""

    def list_items(
        self, user_id: UUID, scan_job_id: UUID | None = None
    ) -> list[InventoryItem]:
        """Return the user's items, newest first, optionally from one scan."""


_EDITABLE_FIELDS = {"name", "quantity", "category"}


@dataclass
class InventoryService:
    """Application service for manual inventory edits."""

    repository: InventoryRepository

    def list_items(self, user_id: UUID) -> list[InventoryItem]:
        """Return every item the user has."""
        return self.repository.list_items(user_id)

    def add_item(
        self,
        user_id: UUID,
        name: str,
        quantity: str | None = None,
        category: str | None = None,
    ) -> InventoryItem:
        """Add an item typed in by the user."""
        return self.repository.create_item(
            user_id, {"name": name, "quantity": quantity, "category": category}
        )

    def update_item(
        self, user_id: UUID, item_id: UUID, payload: dict[str, object]
    ) -> InventoryItem:
        """Edit the name, quantity or category of an item."""
        changes = {key: value for key, value in payload.items() if key in _EDITABLE_FIELDS}
        item = self.repository.update_item(user_id, item_id, changes)
        if item is None:
            raise NotFoundError("Inventory item not found")
        return item

    def delete_item(self, user_id: UUID, item_id: UUID) -> None:
        """Remove an item from the user's inventory."""
        if not self.repository.delete_item(user_id, item_id):
            raise NotFoundError("Inventory item not found")
