"""Supabase-backed fridge inventory repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from cookbook_matcher.adapters.supabase_session import tracked_session
from cookbook_matcher.domain.ingredients import InventoryItem
from cookbook_matcher.domain.vision import ExtractedFridgeItem
from cookbook_matcher.services.inventory import InventoryRepository

_ITEM_COLUMNS = "id, name, quantity, category"


def _item_from_row(row: dict[str, object]) -> InventoryItem:
    return InventoryItem(
        id=UUID(str(row["id"])),
        name=str(row["name"]),
        quantity=row.get("quantity"),
        category=row.get("category"),
    )


@dataclass
class SupabaseInventoryRepository(InventoryRepository):
    """Supabase implementation for fridge items."""

    client: Client
    slow_query_warning_seconds: float = 5.0

    def add_scanned_items(
        self,
        user_id: UUID,
        scan_job_id: UUID,
        items: list[ExtractedFridgeItem],
        replace_existing: bool,
    ) -> list[InventoryItem]:
        """Store scanned items in one transaction, optionally replacing old ones."""
        params = {
            "p_user_id": str(user_id),
            "p_scan_job_id": str(scan_job_id),
            "p_replace_existing": replace_existing,
            "p_items": [item.model_dump() for item in items],
        }
        with tracked_session(self.client, self.slow_query_warning_seconds) as session:
            response = session.rpc("save_fridge_items", params).execute()
        return [_item_from_row(row) for row in response.data or []]

    def create_item(self, user_id: UUID, payload: dict[str, object]) -> InventoryItem:
        """Create a manually entered item."""
        response = (
            self.client.table("fridge_items")
            .insert({**payload, "user_id": str(user_id)})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create fridge item")
        return _item_from_row(response.data[0])

    def update_item(
        self, user_id: UUID, item_id: UUID, payload: dict[str, object]
    ) -> InventoryItem | None:
        """Update an item owned by the user."""
        response = (
            self.client.table("fridge_items")
            .update(payload)
            .eq("id", str(item_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not response.data:
            return None
        return _item_from_row(response.data[0])

    def delete_item(self, user_id: UUID, item_id: UUID) -> bool:
        """Delete an item owned by the user."""
        response = (
            self.client.table("fridge_items")
            .delete()
            .eq("id", str(item_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        return bool(response.data)

    def list_items(
        self, user_id: UUID, scan_job_id: UUID | None = None
    ) -> list[InventoryItem]:
        """Return the user's items, newest first."""
        query = (
            self.client.table("fridge_items")
            .select(_ITEM_COLUMNS)
            .eq("user_id", str(user_id))
        )
        if scan_job_id is not None:
            query = query.eq("scan_job_id", str(scan_job_id))
        response = query.order("created_at", desc=True).execute()
        return [_item_from_row(row) for row in response.data or []]
