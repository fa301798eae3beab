"""
Automation Routes Module
========================

Automation rule CRUD, dry runs and the run history. Org admins only.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_org_settings
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.automation import DryRunRequest, RuleCreate, RuleUpdate
from app.services import automation_service

router = APIRouter(
    prefix="/api/automations",
    tags=["Automations"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)

require_admin = require_permission(can_manage_org_settings)


@router.get("/rules", summary="List automation rules")
def list_rules_route(
    trigger_key: Optional[str] = None,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    rows = automation_service.list_rules(db, actor.org_id, trigger_key=trigger_key)
    return ok([automation_service.serialize_rule(row) for row in rows])


@router.post("/rules", status_code=201, summary="Create an automation rule")
def create_rule_route(
    body: RuleCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    data = body.model_dump(mode="json", exclude_unset=True)
    rule = automation_service.create_rule(db, actor.org_id, actor.user_id, data)
    return ok(automation_service.serialize_rule(rule))


@router.get("/rules/{rule_id}", summary="Get an automation rule")
def get_rule_route(
    rule_id: UUID,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return ok(automation_service.serialize_rule(automation_service.get_rule(db, actor.org_id, rule_id)))


@router.patch("/rules/{rule_id}", summary="Update an automation rule")
def update_rule_route(
    rule_id: UUID,
    body: RuleUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    changes = body.model_dump(mode="json", exclude_unset=True)
    rule = automation_service.update_rule(db, actor.org_id, rule_id, changes)
    return ok(automation_service.serialize_rule(rule))


@router.delete("/rules/{rule_id}", summary="Delete an automation rule")
def delete_rule_route(
    rule_id: UUID,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    automation_service.delete_rule(db, actor.org_id, rule_id)
    return ok({"deleted": True})


@router.post("/rules/{rule_id}/enable", summary="Enable a rule")
def enable_rule_route(
    rule_id: UUID,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    rule = automation_service.set_rule_enabled(db, actor.org_id, rule_id, True)
    return ok(automation_service.serialize_rule(rule))


@router.post("/rules/{rule_id}/disable", summary="Disable a rule")
def disable_rule_route(
    rule_id: UUID,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    rule = automation_service.set_rule_enabled(db, actor.org_id, rule_id, False)
    return ok(automation_service.serialize_rule(rule))


@router.post("/rules/{rule_id}/dry-run", summary="Evaluate a rule against a payload")
def dry_run_route(
    rule_id: UUID,
    body: DryRunRequest,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    rule = automation_service.get_rule(db, actor.org_id, rule_id)
    return ok(automation_service.dry_run_rule(rule, body.payload))


@router.get("/runs", summary="List automation runs")
def list_runs_route(
    rule_id: Optional[UUID] = None,
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    rows = automation_service.list_runs(db, actor.org_id, rule_id=rule_id, limit=limit)
    return ok([automation_service.serialize_run(row) for row in rows])
