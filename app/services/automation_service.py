"""
Automation Rules Service
========================

"When <trigger> and <conditions>, do <actions>" rules evaluated against
app events.

Features:
- Condition evaluation over dot paths in the event payload
- Actions: notification.create, job.add_tag, job.add_flag
- One run per (org, rule, entity), enforced by a sha256 idempotency key
- Dry runs that evaluate without side effects
"""

import hashlib
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, day_key, utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.db.session import savepoint
from app.models.automation import AutomationRule, AutomationRun
from app.models.event import AppEvent
from app.models.job import Job
from app.models.notification import NOTIFICATION_SEVERITIES
from app.models.organization import OrgSettings
from app.services.notification_service import create_notification_best_effort

# Initialize logger
logger = get_logger(__name__)


TRIGGER_KEYS = (
    "contact.created",
    "appraisal.stage_changed",
    "listing.created",
    "job.created",
    "job.status_updated",
    "job.completed",
    "invoice.issued",
    "invoice.paid",
    "invoice.overdue",
    "payment.recorded",
    "material.stock_low",
    "job.margin_warning",
    "job.margin_critical",
    "job.cost_variance_exceeded",
    "time.daily",
)

CONDITION_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "contains", "in", "exists")
ACTION_TYPES = ("notification.create", "job.add_tag", "job.add_flag")
ACTION_TEXT_FIELDS = ("title", "body", "severity", "tag", "flag")


class RunStatus:
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


# ==========================
# Validation
# ==========================

def validate_rule_definition(trigger_key: str, conditions: List[dict], actions: List[dict]) -> None:
    """
    Raises:
        ValidationError: unknown trigger, operator or action, or a
            missing action field
    """
    if trigger_key not in TRIGGER_KEYS:
        raise ValidationError(f"Unknown trigger: {trigger_key}")
    for condition in conditions:
        if not condition.get("key"):
            raise ValidationError("Condition key is required")
        if condition.get("operator") not in CONDITION_OPERATORS:
            raise ValidationError(f"Unsupported operator: {condition.get('operator')}")
    if not actions:
        raise ValidationError("At least one action is required")
    for action in actions:
        action_type = action.get("type")
        if action_type not in ACTION_TYPES:
            raise ValidationError(f"Unsupported action: {action_type}")
        for field in ACTION_TEXT_FIELDS:
            if action.get(field) is not None and not isinstance(action[field], str):
                raise ValidationError(f"{action_type} {field} must be a string")
        if action_type == "notification.create":
            if not action.get("title"):
                raise ValidationError("notification.create requires a title")
            if action.get("severity", "info") not in NOTIFICATION_SEVERITIES:
                raise ValidationError("Invalid notification severity")
        if action_type == "job.add_tag" and not action.get("tag"):
            raise ValidationError("job.add_tag requires a tag")
        if action_type == "job.add_flag" and not action.get("flag"):
            raise ValidationError("job.add_flag requires a flag")


# ==========================
# Conditions
# ==========================

def get_value_by_path(value: Any, path: str) -> Any:
    current = value
    for part in [p for p in path.split(".") if p]:
        if current is None:
            return None
        if isinstance(current, list):
            if not part.isdigit() or int(part) >= len(current):
                return None
            current = current[int(part)]
        elif isinstance(current, dict):
            current = current.get(part)
        else:
            return None
    return current


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def compare_values(operator: str, left: Any, right: Any) -> bool:
    if operator == "exists":
        return left is not None
    if operator == "eq":
        return left == right
    if operator == "neq":
        return left != right
    if operator in ("gt", "gte", "lt", "lte"):
        a, b = _as_number(left), _as_number(right)
        if a is None or b is None:
            return False
        return {
            "gt": a > b,
            "gte": a >= b,
            "lt": a < b,
            "lte": a <= b,
        }[operator]
    if operator == "in":
        return isinstance(right, list) and left in right
    if operator == "contains":
        if isinstance(left, str) and isinstance(right, str):
            return right in left
        return isinstance(left, list) and right in left
    return False


def evaluate_conditions(conditions: List[dict], payload: Dict[str, Any]) -> Tuple[bool, List[dict]]:
    """All conditions must pass; an empty list passes."""
    trace = []
    for condition in conditions:
        left = get_value_by_path(payload, condition.get("key", ""))
        result = compare_values(condition.get("operator", ""), left, condition.get("value"))
        trace.append({
            "key": condition.get("key"),
            "operator": condition.get("operator"),
            "left": left,
            "right": condition.get("value"),
            "result": result,
        })
    return all(item["result"] for item in trace), trace


# ==========================
# Idempotency
# ==========================

def build_event_entity_id(trigger_key: str, payload: Dict[str, Any], event_id: Any, created_at: datetime) -> str:
    if payload.get("entity_id"):
        return str(payload["entity_id"])
    if trigger_key == "time.daily":
        return f"time.daily:{day_key(created_at)}"
    subject = payload.get("job_id") or payload.get("invoice_id") or payload.get("material_id") or trigger_key
    return f"{subject}:{event_id}"


def build_idempotency_key(org_id: Any, rule_id: Any, entity_id: str) -> str:
    return hashlib.sha256(f"{org_id}:{rule_id}:{entity_id}".encode("utf-8")).hexdigest()


# ==========================
# Actions
# ==========================

def _render(template: Optional[str], payload: Dict[str, Any]) -> Optional[str]:
    """Substitute ``{key}`` placeholders from the payload; unknown keys stay as-is."""
    if not template:
        return template
    rendered = template
    for key, value in payload.items():
        rendered = rendered.replace("{" + key + "}", str(value))
    return rendered


def _load_job(db: Session, org_id: UUID, payload: Dict[str, Any]) -> Job:
    job_id = payload.get("job_id")
    if not job_id:
        raise ValueError("Event payload has no job_id")
    job = (
        db.query(Job)
        .filter(Job.org_id == org_id, Job.id == UUID(str(job_id)))
        .first()
    )
    if job is None:
        raise ValueError(f"Job {job_id} not found")
    return job


def _append_unique(values: Optional[list], item: str) -> Tuple[list, bool]:
    current = list(values or [])
    if item in current:
        return current, False
    return current + [item], True


def execute_action(db: Session, rule: AutomationRule, action: dict, payload: Dict[str, Any]) -> Dict[str, Any]:
    action_type = action.get("type")
    if action_type == "notification.create":
        row = create_notification_best_effort(
            db,
            org_id=rule.org_id,
            type="automation",
            title=_render(action.get("title"), payload) or rule.name,
            body=_render(action.get("body"), payload),
            severity=action.get("severity", "info"),
            recipient_user_id=UUID(str(action["recipient_user_id"])) if action.get("recipient_user_id") else None,
            entity_type="automation_rule",
            entity_id=rule.id,
        )
        return {"type": action_type, "status": "ok" if row else "skipped"}

    if action_type in ("job.add_tag", "job.add_flag"):
        job = _load_job(db, rule.org_id, payload)
        if action_type == "job.add_tag":
            job.tags, changed = _append_unique(job.tags, action["tag"])
        else:
            job.flags, changed = _append_unique(job.flags, action["flag"])
        db.flush()
        return {"type": action_type, "status": "ok" if changed else "unchanged", "job_id": str(job.id)}

    raise ValueError(f"Unsupported action: {action_type}")


# ==========================
# Dispatch
# ==========================

def automations_disabled(db: Session, org_id: UUID) -> bool:
    row = db.get(OrgSettings, org_id)
    return bool(row and row.automations_disabled)


def run_rule(db: Session, rule: AutomationRule, event: AppEvent, now: Optional[datetime] = None) -> AutomationRun:
    """Evaluate and execute one rule for one event, recording the run."""
    now = as_utc(now) if now else utcnow()
    payload = event.payload or {}
    entity_id = build_event_entity_id(rule.trigger_key, payload, event.id, event.created_at or now)
    key = build_idempotency_key(rule.org_id, rule.id, entity_id)

    existing = db.query(AutomationRun).filter(AutomationRun.idempotency_key == key).first()
    if existing is not None:
        logger.info("Automation run already recorded", extra={"rule_id": str(rule.id), "entity_id": entity_id})
        return existing

    passed, trace = evaluate_conditions(list(rule.conditions or []), payload)
    run = AutomationRun(
        org_id=rule.org_id,
        rule_id=rule.id,
        event_id=event.id,
        trigger_key=rule.trigger_key,
        idempotency_key=key,
        match_details={"entity_id": entity_id, "conditions": trace},
    )

    if not passed:
        run.status = RunStatus.SKIPPED
    else:
        results = []
        try:
            with savepoint(db):
                for action in rule.actions or []:
                    results.append(execute_action(db, rule, action, payload))
            run.status = RunStatus.SUCCESS
        except (ValueError, SQLAlchemyError) as e:
            run.status = RunStatus.FAILED
            run.error = str(e)
            logger.warning(
                "Automation action failed",
                extra={"rule_id": str(rule.id), "event_id": str(event.id), "error": str(e)},
            )
        except Exception as e:
            run.status = RunStatus.FAILED
            run.error = str(e)
            logger.exception(
                "Automation action crashed",
                extra={"rule_id": str(rule.id), "event_id": str(event.id), "error": str(e)},
            )
        run.action_results = results

    rule.last_run_at = now
    db.add(run)
    db.flush()
    return run


def dispatch_event(db: Session, event: AppEvent) -> List[AutomationRun]:
    """Run every enabled rule subscribed to the event type."""
    if automations_disabled(db, event.org_id):
        logger.info("Automations disabled for org", extra={"org_id": str(event.org_id)})
        return []

    rules = (
        db.query(AutomationRule)
        .filter(
            AutomationRule.org_id == event.org_id,
            AutomationRule.trigger_key == event.event_type,
            AutomationRule.is_enabled.is_(True),
        )
        .order_by(AutomationRule.created_at, AutomationRule.id)
        .all()
    )
    return [run_rule(db, rule, event) for rule in rules]


def dry_run_rule(rule: AutomationRule, payload: Dict[str, Any]) -> Dict[str, Any]:
    passed, trace = evaluate_conditions(list(rule.conditions or []), payload)
    return {
        "rule_id": rule.id,
        "matched": passed,
        "conditions": trace,
        "actions": list(rule.actions or []) if passed else [],
    }


def serialize_run(run: AutomationRun) -> Dict[str, Any]:
    return {
        "id": run.id,
        "rule_id": run.rule_id,
        "event_id": run.event_id,
        "trigger_key": run.trigger_key,
        "status": run.status,
        "match_details": run.match_details,
        "action_results": run.action_results,
        "error": run.error,
        "created_at": run.created_at,
    }


# ==========================
# Rules
# ==========================

RULE_FIELDS = ("name", "description", "trigger_key", "is_enabled", "conditions", "actions")


def serialize_rule(rule: AutomationRule) -> Dict[str, Any]:
    data = rule.to_dict()
    data.update({
        "description": rule.description,
        "created_by_user_id": rule.created_by_user_id,
        "last_run_at": rule.last_run_at,
        "created_at": rule.created_at,
        "updated_at": rule.updated_at,
    })
    return data


def list_rules(db: Session, org_id: UUID, trigger_key: Optional[str] = None) -> List[AutomationRule]:
    query = db.query(AutomationRule).filter(AutomationRule.org_id == org_id)
    if trigger_key:
        query = query.filter(AutomationRule.trigger_key == trigger_key)
    return query.order_by(AutomationRule.created_at, AutomationRule.id).all()


def get_rule(db: Session, org_id: UUID, rule_id: UUID) -> AutomationRule:
    rule = db.query(AutomationRule).filter(AutomationRule.org_id == org_id, AutomationRule.id == rule_id).first()
    if rule is None:
        raise NotFoundError("Automation rule", identifier=str(rule_id))
    return rule


def create_rule(db: Session, org_id: UUID, actor_user_id: Optional[UUID], data: Dict[str, Any]) -> AutomationRule:
    if not (data.get("name") or "").strip():
        raise ValidationError("Rule name is required")
    conditions = list(data.get("conditions") or [])
    actions = list(data.get("actions") or [])
    validate_rule_definition(data.get("trigger_key") or "", conditions, actions)

    rule = AutomationRule(
        org_id=org_id,
        name=data["name"].strip(),
        description=data.get("description"),
        trigger_key=data["trigger_key"],
        is_enabled=bool(data.get("is_enabled", False)),
        conditions=conditions,
        actions=actions,
        created_by_user_id=actor_user_id,
    )
    db.add(rule)
    db.commit()
    logger.info("Automation rule created", extra={"org_id": str(org_id), "rule_id": str(rule.id)})
    return rule


def update_rule(db: Session, org_id: UUID, rule_id: UUID, changes: Dict[str, Any]) -> AutomationRule:
    rule = get_rule(db, org_id, rule_id)
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("Rule name is required")
    validate_rule_definition(
        changes.get("trigger_key") or rule.trigger_key,
        list(changes["conditions"] if changes.get("conditions") is not None else rule.conditions or []),
        list(changes["actions"] if changes.get("actions") is not None else rule.actions or []),
    )
    for field in RULE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(rule, field, changes[field])
    db.commit()
    return rule


def set_rule_enabled(db: Session, org_id: UUID, rule_id: UUID, enabled: bool) -> AutomationRule:
    rule = get_rule(db, org_id, rule_id)
    rule.is_enabled = enabled
    db.commit()
    logger.info("Automation rule toggled", extra={"rule_id": str(rule.id), "enabled": enabled})
    return rule


def delete_rule(db: Session, org_id: UUID, rule_id: UUID) -> None:
    rule = get_rule(db, org_id, rule_id)
    db.delete(rule)
    db.commit()


def list_runs(db: Session, org_id: UUID, rule_id: Optional[UUID] = None, limit: int = 50) -> List[AutomationRun]:
    query = db.query(AutomationRun).filter(AutomationRun.org_id == org_id)
    if rule_id:
        query = query.filter(AutomationRun.rule_id == rule_id)
    return query.order_by(AutomationRun.created_at.desc()).limit(limit).all()
