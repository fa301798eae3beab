"""
Material Routes Module
======================

Warehouse catalogue and stock levels.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_warehouse
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.material import MaterialCreate, MaterialUpdate, StockAdjustment
from app.services import material_service

router = APIRouter(
    prefix="/api/materials",
    tags=["Materials"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)


@router.get("", summary="List materials")
def list_materials_route(
    low_stock_only: bool = False,
    actor: Actor = Depends(require_permission(can_manage_warehouse)),
    db: Session = Depends(get_db),
) -> dict:
    rows = material_service.list_materials(db, actor.org_id, low_stock_only=low_stock_only)
    return ok([material_service.serialize_material(row) for row in rows])


@router.post("", status_code=201, summary="Create a material")
def create_material_route(
    body: MaterialCreate,
    actor: Actor = Depends(require_permission(can_manage_warehouse)),
    db: Session = Depends(get_db),
) -> dict:
    material = material_service.create_material(db, actor, body.model_dump())
    return ok(material_service.serialize_material(material))


@router.patch("/{material_id}", summary="Update a material")
def update_material_route(
    material_id: UUID,
    body: MaterialUpdate,
    actor: Actor = Depends(require_permission(can_manage_warehouse)),
    db: Session = Depends(get_db),
) -> dict:
    material = material_service.update_material(db, actor, material_id, body.model_dump(exclude_unset=True))
    return ok(material_service.serialize_material(material))


@router.post("/{material_id}/adjust", summary="Adjust stock on hand")
def adjust_stock_route(
    material_id: UUID,
    body: StockAdjustment,
    actor: Actor = Depends(require_permission(can_manage_warehouse)),
    db: Session = Depends(get_db),
) -> dict:
    material = material_service.adjust_stock(db, actor, material_id, delta=body.delta, reason=body.reason)
    return ok(material_service.serialize_material(material))
