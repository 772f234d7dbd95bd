"""Tests for the HTTP API."""

from datetime import UTC, datetime
from uuid import uuid4

from fastapi.testclient import TestClient

from cookbook_matcher.api.app import create_app
from cookbook_matcher.domain.jobs import (
    JobKind,
    JobStatus,
    MatchStatus,
    ProductCandidate,
    ProductLookupJob,
    ScanJob,
)
from tests.conftest import (
    InMemoryInventoryRepository,
    InMemoryLookupJobStore,
    InMemoryRecipeRepository,
    make_recipe,
)


def _headers(user_id) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return {"X-User-Id": str(user_id)}


def test_health_endpoint(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_missing_user_header_is_unauthorized(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/inventory").status_code == 401
    assert client.get("/inventory", headers={"X-User-Id": "nope"}).status_code == 401


def test_submit_fridge_scan_queues_job(container, queue) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()

    response = client.post(
        "/scans/fridge",
        json={"image_path": "fridge/1.jpg", "replace_existing": True},
        headers=_headers(user_id),
    )

    assert response.status_code == 202
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["scan_type"] == "fridge"
    assert data["progress"] == 0
    assert data["can_retry"] is False
    assert [job.kind for job in queue.jobs] == [JobKind.FRIDGE_SCAN]


def test_cookbook_scan_rejects_empty_pages(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/scans/cookbook",
        json={"cookbook_name": "Salt", "image_paths": []},
        headers=_headers(uuid4()),
    )

    assert response.status_code == 422


def test_scan_of_other_user_is_not_found(container) -> None:
    client = TestClient(create_app(container))
    owner = uuid4()
    created = client.post(
        "/scans/fridge", json={"image_path": "fridge/1.jpg"}, headers=_headers(owner)
    ).json()["data"]

    response = client.get(f"/scans/{created['id']}", headers=_headers(uuid4()))

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"code": "NOT_FOUND", "message": "Job not found"},
    }


def test_retry_of_pending_scan_is_rejected(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    created = client.post(
        "/scans/fridge", json={"image_path": "fridge/1.jpg"}, headers=_headers(user_id)
    ).json()["data"]

    response = client.post(f"/scans/{created['id']}/retry", headers=_headers(user_id))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_STATUS"


def test_delete_processing_scan_conflicts(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    job = ScanJob(
        id=uuid4(),
        user_id=user_id,
        kind=JobKind.FRIDGE_SCAN,
        status=JobStatus.PROCESSING,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )
    container.scan_lifecycle.store.create_job(job)

    response = client.delete(f"/scans/{job.id}", headers=_headers(user_id))

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "JOB_PROCESSING"


def test_list_scans_filters_by_status(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    client.post(
        "/scans/fridge", json={"image_path": "fridge/1.jpg"}, headers=_headers(user_id)
    )

    pending = client.get("/scans?status=pending", headers=_headers(user_id)).json()
    failed = client.get("/scans?status=failed", headers=_headers(user_id)).json()

    assert len(pending["data"]) == 1
    assert failed["data"] == []
    assert pending["pagination"] == {"limit": 20, "offset": 0}


def test_recommendations_are_paginated(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    recipes = container.match_service.recipe_repository
    inventory = container.match_service.inventory_repository
    assert isinstance(recipes, InMemoryRecipeRepository)
    assert isinstance(inventory, InMemoryInventoryRepository)
    inventory.add(user_id, "eggs")
    inventory.add(user_id, "butter")
    recipes.candidates = [
        make_recipe("Omelette", ["eggs", "butter"]),
        make_recipe("Fried Egg", ["eggs", "oil"]),
        make_recipe("Salad", ["lettuce", "tomato", "cucumber"]),
    ]

    response = client.get(
        "/recommendations?limit=1&offset=0", headers=_headers(user_id)
    )

    body = response.json()
    assert response.status_code == 200
    assert body["inventory_count"] == 2
    assert [item["name"] for item in body["data"]] == ["Omelette"]
    assert body["data"][0]["can_make_now"] is True
    assert body["pagination"] == {"total": 2, "limit": 1, "offset": 0, "has_more": True}


def test_inventory_crud(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()

    created = client.post(
        "/inventory", json={"name": "Milk", "quantity": "1 l"}, headers=_headers(user_id)
    )
    item_id = created.json()["data"]["id"]
    updated = client.patch(
        f"/inventory/{item_id}", json={"quantity": "2 l"}, headers=_headers(user_id)
    )
    listed = client.get("/inventory", headers=_headers(user_id))
    deleted = client.delete(f"/inventory/{item_id}", headers=_headers(user_id))
    missing = client.delete(f"/inventory/{item_id}", headers=_headers(user_id))

    assert created.status_code == 201
    assert updated.json()["data"]["quantity"] == "2 l"
    assert updated.json()["data"]["name"] == "Milk"
    assert [item["name"] for item in listed.json()["data"]] == ["Milk"]
    assert deleted.json() == {"success": True}
    assert missing.status_code == 404


def _pending_lookup(container, user_id):  # type: ignore[no-untyped-def]
    recipes = container.lookup_service.recipe_repository
    store = container.lookup_service.store
    assert isinstance(recipes, InMemoryRecipeRepository)
    assert isinstance(store, InMemoryLookupJobStore)
    cookbook = recipes.add_cookbook(user_id, "Joy of Cooking")
    store.create_job(
        ProductLookupJob(
            id=uuid4(),
            user_id=user_id,
            kind=JobKind.PRODUCT_LOOKUP,
            status=JobStatus.PENDING_REVIEW,
            cookbook_id=cookbook.id,
            subject_title=cookbook.name,
            match_status=MatchStatus.PENDING_REVIEW,
            match_confidence=55,
            suggestions=[ProductCandidate(id="B001", title="Joy", confidence=55)],
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
        )
    )
    return cookbook, recipes


def test_product_select_rejects_unknown_suggestion(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    cookbook, recipes = _pending_lookup(container, user_id)

    response = client.post(
        f"/cookbooks/{cookbook.id}/product-lookup/select",
        json={"product_id": "B999"},
        headers=_headers(user_id),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert cookbook.id not in recipes.products


def test_product_select_records_choice(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    cookbook, recipes = _pending_lookup(container, user_id)

    response = client.post(
        f"/cookbooks/{cookbook.id}/product-lookup/select",
        json={"product_id": "B001"},
        headers=_headers(user_id),
    )
    latest = client.get(f"/cookbooks/{cookbook.id}/product-lookup", headers=_headers(user_id))

    assert response.status_code == 200
    assert response.json()["data"]["id"] == "B001"
    assert recipes.products[cookbook.id]["product_match_status"] == MatchStatus.USER_SELECTED
    assert latest.json()["data"]["status"] == "completed"
    assert latest.json()["data"]["suggestions"] == []


def test_second_lookup_request_conflicts(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    cookbook, _ = _pending_lookup(container, user_id)

    response = client.post(
        f"/cookbooks/{cookbook.id}/product-lookup", headers=_headers(user_id)
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "LOOKUP_IN_PROGRESS"
