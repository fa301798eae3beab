"""
Warehouse materials: stock levels, adjustments and job usage.

Stock at or below the reorder threshold emits ``material.stock_low`` and
a ``warehouse_alert`` notification, at most once per material per day.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import Actor, assert_job_write_access
from app.core.clock import day_key, utcnow
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.material import Material, MaterialUsageLog
from app.services.audit_service import log_audit_event_best_effort
from app.services.event_service import emit_app_event_best_effort
from app.services.job_activity import create_job_activity_event_best_effort
from app.services.job_profitability import evaluate_job_guardrails_best_effort
from app.services.job_service import get_job_for_actor
from app.services.notification_service import create_notification_best_effort

# Initialize logger
logger = get_logger(__name__)

MATERIAL_FIELDS = ("name", "sku", "unit", "unit_cost_cents", "stock_on_hand", "reorder_threshold")


def _validate_material_fields(data: Dict[str, Any]) -> None:
    if "name" in data and not (data["name"] or "").strip():
        raise ValidationError("Material name is required")
    if data.get("unit_cost_cents") is not None and data["unit_cost_cents"] < 0:
        raise ValidationError("unit_cost_cents cannot be negative")
    if data.get("reorder_threshold") is not None and data["reorder_threshold"] < 0:
        raise ValidationError("reorder_threshold cannot be negative")


def serialize_material(material: Material) -> Dict[str, Any]:
    data = material.to_dict()
    data["is_low_stock"] = material.is_low_stock
    data["updated_at"] = material.updated_at
    return data


def list_materials(db: Session, org_id: UUID, low_stock_only: bool = False) -> List[Material]:
    rows = OrgQuery(db, Material, org_id).query().order_by(Material.name).all()
    if low_stock_only:
        rows = [row for row in rows if row.is_low_stock]
    return rows


def create_material(db: Session, actor: Actor, data: Dict[str, Any]) -> Material:
    _validate_material_fields(data)
    material = Material(
        org_id=actor.org_id,
        **{field: data[field] for field in MATERIAL_FIELDS if data.get(field) is not None},
    )
    db.add(material)
    db.flush()
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "MATERIAL_CREATED", "material", material.id, after=material.to_dict()
    )
    _check_stock_low(db, material, actor.user_id)
    db.commit()
    return material


def update_material(db: Session, actor: Actor, material_id: UUID, changes: Dict[str, Any]) -> Material:
    material = OrgQuery(db, Material, actor.org_id).get_or_404(material_id, "Material")
    _validate_material_fields(changes)
    before = material.to_dict()
    for field in MATERIAL_FIELDS:
        if field in changes:
            setattr(material, field, changes[field])
    db.flush()
    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "MATERIAL_UPDATED",
        "material",
        material.id,
        before=before,
        after=material.to_dict(),
    )
    _check_stock_low(db, material, actor.user_id)
    db.commit()
    return material


def adjust_stock(
    db: Session,
    actor: Actor,
    material_id: UUID,
    delta: float,
    reason: Optional[str] = None,
) -> Material:
    """Add (positive) or remove (negative) stock; stock cannot go below zero."""
    material = OrgQuery(db, Material, actor.org_id).get_or_404(material_id, "Material")
    if not delta:
        raise ValidationError("delta must be non-zero")
    before = material.stock_on_hand
    material.stock_on_hand = max(0.0, (material.stock_on_hand or 0.0) + delta)
    db.flush()
    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "MATERIAL_STOCK_ADJUSTED",
        "material",
        material.id,
        before={"stock_on_hand": before},
        after={"stock_on_hand": material.stock_on_hand},
        metadata={"reason": reason, "delta": delta},
    )
    _check_stock_low(db, material, actor.user_id)
    db.commit()
    return material


def log_material_usage(
    db: Session,
    actor: Actor,
    job_id: UUID,
    material_id: UUID,
    quantity: float,
    unit_cost_cents: Optional[int] = None,
) -> MaterialUsageLog:
    """
    Record material used on a job and draw it down from stock.

    The material's current unit cost is captured unless one is given.
    """
    job = get_job_for_actor(db, actor, job_id)
    assert_job_write_access(job, actor)
    material = OrgQuery(db, Material, actor.org_id).get_or_404(material_id, "Material")
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be greater than zero")
    if unit_cost_cents is not None and unit_cost_cents < 0:
        raise ValidationError("unit_cost_cents cannot be negative")

    row = MaterialUsageLog(
        org_id=actor.org_id,
        job_id=job.id,
        material_id=material.id,
        quantity=quantity,
        unit_cost_cents=unit_cost_cents if unit_cost_cents is not None else material.unit_cost_cents,
        logged_by_user_id=actor.user_id,
    )
    db.add(row)
    material.stock_on_hand = max(0.0, (material.stock_on_hand or 0.0) - quantity)
    db.flush()

    create_job_activity_event_best_effort(
        db,
        actor.org_id,
        job.id,
        "material_used",
        payload={"material_id": material.id, "name": material.name, "quantity": quantity},
        actor_user_id=actor.user_id,
    )
    _check_stock_low(db, material, actor.user_id)
    db.commit()
    evaluate_job_guardrails_best_effort(db, actor.org_id, job.id, actor_user_id=actor.user_id)
    return row


def list_material_usage(db: Session, actor: Actor, job_id: UUID) -> List[MaterialUsageLog]:
    job = get_job_for_actor(db, actor, job_id)
    return (
        db.query(MaterialUsageLog)
        .filter(MaterialUsageLog.org_id == actor.org_id, MaterialUsageLog.job_id == job.id)
        .order_by(MaterialUsageLog.created_at.desc())
        .all()
    )


def _check_stock_low(db: Session, material: Material, actor_user_id: Optional[UUID]) -> bool:
    if not material.is_low_stock:
        return False

    today = day_key(utcnow())
    payload = {
        "material_id": str(material.id),
        "entity_id": f"{material.id}:{today}",
        "name": material.name,
        "stock_on_hand": material.stock_on_hand,
        "reorder_threshold": material.reorder_threshold,
    }
    emit_app_event_best_effort(
        db,
        material.org_id,
        "material.stock_low",
        payload=payload,
        actor_user_id=actor_user_id,
        event_key=f"material.stock_low:{material.id}:{today}",
    )
    create_notification_best_effort(
        db,
        org_id=material.org_id,
        type="warehouse_alert",
        title=f"Low stock: {material.name}",
        body=f"{material.stock_on_hand:g} {material.unit} on hand (reorder at {material.reorder_threshold:g}).",
        severity="warn",
        entity_type="material",
        entity_id=material.id,
        deeplink=f"/warehouse?material={material.id}",
        event_key=f"warehouse_alert:material:{material.id}:{today}",
    )
    logger.info("Material stock low", extra={"material_id": str(material.id), "stock_on_hand": material.stock_on_hand})
    return True
