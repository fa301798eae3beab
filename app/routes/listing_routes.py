"""
Listing Routes Module
=====================

Listings and their child collections. ``{kind}`` is one of checklist,
milestones, enquiries, inspections, buyers or vendor-comms; every child
mutation recomputes the campaign health score.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_contacts
from app.core.dependencies.auth import get_current_actor
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.listing import ListingChildPayload, ListingCreate, ListingUpdate
from app.services import listing_service

router = APIRouter(
    prefix="/api/listings",
    tags=["Listings"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Listing not found"},
    },
)


@router.get("", summary="List listings")
def list_listings_route(
    status: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = listing_service.list_listings(db, actor.org_id, status=status)
    return ok([listing_service.serialize_listing(row) for row in rows])


@router.post("", status_code=201, summary="Create a listing")
def create_listing_route(
    body: ListingCreate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    listing = listing_service.create_listing(db, actor, body.model_dump())
    return ok(listing_service.serialize_listing(listing))


@router.get("/{listing_id}", summary="Get a listing")
def get_listing_route(
    listing_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    listing = listing_service.get_listing(db, actor.org_id, listing_id)
    return ok(listing_service.serialize_listing(listing))


@router.patch("/{listing_id}", summary="Update a listing")
def update_listing_route(
    listing_id: UUID,
    body: ListingUpdate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    listing = listing_service.update_listing(db, actor, listing_id, body.model_dump(exclude_unset=True))
    return ok(listing_service.serialize_listing(listing))


@router.post("/{listing_id}/recompute-health", summary="Recompute campaign health")
def recompute_health_route(
    listing_id: UUID,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    result = listing_service.recompute_listing_campaign_health(db, actor.org_id, listing_id)
    db.commit()
    return ok(result.to_dict())


# =====================================
# Child collections
# =====================================

@router.get("/{listing_id}/{kind}", summary="List a child collection")
def list_children_route(
    listing_id: UUID,
    kind: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = listing_service.list_listing_children(db, actor.org_id, listing_id, kind)
    return ok([listing_service.serialize_child(row) for row in rows])


@router.post("/{listing_id}/{kind}", status_code=201, summary="Add to a child collection")
def add_child_route(
    listing_id: UUID,
    kind: str,
    body: ListingChildPayload,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    row = listing_service.add_listing_child(db, actor, listing_id, kind, body.model_dump(exclude_unset=True))
    return ok(listing_service.serialize_child(row))


@router.patch("/{listing_id}/{kind}/{child_id}", summary="Update a child row")
def update_child_route(
    listing_id: UUID,
    kind: str,
    child_id: UUID,
    body: ListingChildPayload,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    row = listing_service.update_listing_child(
        db, actor, listing_id, kind, child_id, body.model_dump(exclude_unset=True)
    )
    return ok(listing_service.serialize_child(row))


@router.delete("/{listing_id}/{kind}/{child_id}", summary="Delete a child row")
def delete_child_route(
    listing_id: UUID,
    kind: str,
    child_id: UUID,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    listing_service.delete_listing_child(db, actor, listing_id, kind, child_id)
    return ok({"deleted": True})
