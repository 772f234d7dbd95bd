"""Tests for manual inventory edits."""

from uuid import uuid4

import pytest

from cookbook_matcher.domain.errors import NotFoundError
from cookbook_matcher.services.inventory import InventoryService
from tests.conftest import InMemoryInventoryRepository


def test_add_update_and_delete_item() -> None:
    service = InventoryService(InMemoryInventoryRepository())
    user_id = uuid4()

    item = service.add_item(user_id, "Milk", quantity="1 l", category="dairy")
    updated = service.update_item(
        user_id, item.id, {"quantity": "half", "scan_job_id": "ignored"}
    )

    assert updated.quantity == "half"
    assert updated.name == "Milk"
    service.delete_item(user_id, item.id)
    assert service.list_items(user_id) == []


def test_other_users_items_are_not_found() -> None:
    service = InventoryService(InMemoryInventoryRepository())
    item = service.add_item(uuid4(), "Milk")

    with pytest.raises(NotFoundError):
        service.update_item(uuid4(), item.id, {"name": "Cream"})
    with pytest.raises(NotFoundError):
        service.delete_item(uuid4(), item.id)
