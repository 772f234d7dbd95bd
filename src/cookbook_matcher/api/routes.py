"""Job, match, inventory and product lookup endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from cookbook_matcher.api.schemas import (
    CookbookScanRequest,
    FridgeScanRequest,
    InventoryItemCreate,
    InventoryItemUpdate,
    MatchJobRequest,
    ProductSelectRequest,
)
from cookbook_matcher.domain.jobs import JobKind, JobRecord, JobStatus, ScanJob
from cookbook_matcher.services.matching import RankedRecipe

if TYPE_CHECKING:
    from cookbook_matcher.containers import AppContainer

router = APIRouter()


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def current_user(x_user_id: str | None = Header(default=None)) -> UUID:
    """Resolve the caller from the ``X-User-Id`` header set by the gateway."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        return UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc


def job_payload(job: JobRecord) -> dict[str, object]:
    """Serialize a job record for API responses."""
    payload = asdict(job)
    payload["can_retry"] = job.can_retry
    if isinstance(job, ScanJob):
        payload["scan_type"] = job.scan_type
        payload["progress"] = (
            round(100 * job.processed_units / job.total_units) if job.total_units else 0
        )
    return payload


def _ranked_payload(ranked: RankedRecipe) -> dict[str, object]:
    recipe = ranked.recipe
    outcome = ranked.outcome
    return {
        "id": recipe.id,
        "name": recipe.name,
        "cookbook_id": recipe.cookbook_id,
        "cookbook_name": recipe.cookbook_name,
        "cuisine": recipe.cuisine,
        "dietary_tags": recipe.dietary_tags,
        "prep_time": recipe.prep_time,
        "cook_time": recipe.cook_time,
        "servings": recipe.servings,
        "match_percentage": outcome.match_percentage,
        "can_make_now": outcome.can_make_now,
        "total_ingredients": outcome.total_ingredients,
        "available_ingredients": [asdict(item) for item in outcome.available_ingredients],
        "missing_ingredients": [asdict(item) for item in outcome.missing_ingredients],
    }


@router.post("/scans/cookbook", status_code=status.HTTP_202_ACCEPTED)
async def submit_cookbook_scan(
    body: CookbookScanRequest,
    request: Request,
    user_id: UUID = Depends(current_user),
) -> dict[str, object]:
    """Queue a cookbook scan of uploaded pages."""
    job = await _container(request).scan_service.submit_cookbook_scan(
        user_id, body.cookbook_name, body.image_paths
    )
    return {"success": True, "data": job_payload(job)}


@router.post("/scans/fridge", status_code=status.HTTP_202_ACCEPTED)
async def submit_fridge_scan(
    body: FridgeScanRequest,
    request: Request,
    user_id: UUID = Depends(current_user),
) -> dict[str, object]:
    """Queue a fridge photo scan."""
    job = await _container(request).scan_service.submit_fridge_scan(
        user_id, body.image_path, body.replace_existing
    )
    return {"success": True, "data": job_payload(job)}


@router.get("/scans")
async def list_scans(  # noqa: PLR0913
    request: Request,
    user_id: UUID = Depends(current_user),
    kind: JobKind | None = None,
    job_status: JobStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict[str, object]:
    """Return the caller's scan jobs, newest first."""
    jobs = _container(request).scan_lifecycle.list_for_user(
        user_id, kind, job_status, limit, offset
    )
    return {
        "success": True,
        "data": [job_payload(job) for job in jobs],
        "pagination": {"limit": limit, "offset": offset},
    }


@router.get("/scans/{job_id}")
async def get_scan(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Return one scan job with its progress."""
    job = _container(request).scan_lifecycle.get(job_id, user_id)
    return {"success": True, "data": job_payload(job)}


@router.post("/scans/{job_id}/retry")
async def retry_scan(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Requeue a failed scan job."""
    job = await _container(request).scan_lifecycle.retry(job_id, user_id)
    return {"success": True, "data": job_payload(job)}


@router.delete("/scans/{job_id}")
async def delete_scan(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Delete a scan job that is not being processed."""
    _container(request).scan_lifecycle.delete(job_id, user_id)
    return {"success": True}


@router.post("/matches", status_code=status.HTTP_202_ACCEPTED)
async def create_match(
    body: MatchJobRequest,
    request: Request,
    user_id: UUID = Depends(current_user),
) -> dict[str, object]:
    """Queue a match of a cookbook against a completed fridge scan."""
    job = await _container(request).match_service.create_match_job(
        user_id, body.cookbook_id, body.fridge_scan_id
    )
    return {"success": True, "data": job_payload(job)}


@router.get("/matches/{job_id}")
async def get_match(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Return one match job."""
    job = _container(request).match_lifecycle.get(job_id, user_id)
    return {"success": True, "data": job_payload(job)}


@router.get("/matches/{job_id}/results")
async def get_match_results(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Return per-recipe results of a match job, best first."""
    matches = _container(request).match_service.get_results(job_id, user_id)
    return {"success": True, "data": [asdict(match) for match in matches]}


@router.post("/matches/{job_id}/retry")
async def retry_match(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Requeue a failed match job."""
    job = await _container(request).match_lifecycle.retry(job_id, user_id)
    return {"success": True, "data": job_payload(job)}


@router.delete("/matches/{job_id}")
async def delete_match(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Delete a match job that is not being processed."""
    _container(request).match_lifecycle.delete(job_id, user_id)
    return {"success": True}


@router.get("/recommendations")
async def recommendations(  # noqa: PLR0913
    request: Request,
    user_id: UUID = Depends(current_user),
    min_match: int = Query(default=30, ge=0, le=100),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    cuisine: str | None = None,
    dietary_tags: list[str] | None = Query(default=None),
) -> dict[str, object]:
    """Rank other users' recipes by how much of them the caller can cook."""
    result = _container(request).match_service.recommend(
        user_id,
        min_percentage=min_match,
        offset=offset,
        limit=limit,
        cuisine=cuisine,
        dietary_tags=dietary_tags,
    )
    page = result.page
    return {
        "success": True,
        "data": [_ranked_payload(item) for item in page.items],
        "inventory_count": result.inventory_count,
        "pagination": {
            "total": page.total,
            "limit": page.limit,
            "offset": page.offset,
            "has_more": page.has_more,
        },
    }


@router.get("/inventory")
async def list_inventory(
    request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Return the caller's fridge items."""
    items = _container(request).inventory_service.list_items(user_id)
    return {"success": True, "data": [asdict(item) for item in items]}


@router.post("/inventory", status_code=status.HTTP_201_CREATED)
async def add_inventory_item(
    body: InventoryItemCreate,
    request: Request,
    user_id: UUID = Depends(current_user),
) -> dict[str, object]:
    """Add a fridge item by hand."""
    item = _container(request).inventory_service.add_item(
        user_id, body.name, body.quantity, body.category
    )
    return {"success": True, "data": asdict(item)}


@router.patch("/inventory/{item_id}")
async def update_inventory_item(
    item_id: UUID,
    body: InventoryItemUpdate,
    request: Request,
    user_id: UUID = Depends(current_user),
) -> dict[str, object]:
    """Edit a fridge item."""
    item = _container(request).inventory_service.update_item(
        user_id, item_id, body.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": asdict(item)}


@router.delete("/inventory/{item_id}")
async def delete_inventory_item(
    item_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Remove a fridge item."""
    _container(request).inventory_service.delete_item(user_id, item_id)
    return {"success": True}


@router.post(
    "/cookbooks/{cookbook_id}/product-lookup", status_code=status.HTTP_202_ACCEPTED
)
async def request_product_lookup(
    cookbook_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Queue a retail product search for a cookbook."""
    job = await _container(request).lookup_service.request_lookup(user_id, cookbook_id)
    return {"success": True, "data": job_payload(job)}


@router.get("/cookbooks/{cookbook_id}/product-lookup")
async def get_product_lookup(
    cookbook_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Return the latest product lookup and its suggestions."""
    job = _container(request).lookup_service.latest(user_id, cookbook_id)
    return {"success": True, "data": job_payload(job)}


@router.post("/cookbooks/{cookbook_id}/product-lookup/select")
async def select_product(
    cookbook_id: UUID,
    body: ProductSelectRequest,
    request: Request,
    user_id: UUID = Depends(current_user),
) -> dict[str, object]:
    """Accept one of the offered suggestions."""
    chosen = _container(request).lookup_service.select(
        user_id, cookbook_id, body.product_id
    )
    return {"success": True, "data": asdict(chosen)}


@router.post("/cookbooks/{cookbook_id}/product-lookup/skip")
async def skip_product(
    cookbook_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Dismiss the offered suggestions."""
    _container(request).lookup_service.skip(user_id, cookbook_id)
    return {"success": True}


@router.post("/product-lookups/{job_id}/retry")
async def retry_product_lookup(
    job_id: UUID, request: Request, user_id: UUID = Depends(current_user)
) -> dict[str, object]:
    """Requeue a failed product lookup."""
    job = await _container(request).lookup_lifecycle.retry(job_id, user_id)
    return {"success": True, "data": job_payload(job)}
