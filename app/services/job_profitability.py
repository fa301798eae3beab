"""
Job Profitability and Margin Guardrails
=======================================

Derives revenue, cost, profit and margin for a job from the data other
features already record (hours logs, material usage, manual costs,
invoices and payments), then classifies the margin against the org's
thresholds.

Revenue precedence:
    override -> successful payments -> issued invoices -> estimate -> none

Guardrails persist the profitability status and, when a job enters
warning (from healthy) or critical (from anything else), record an
activity event, notify the job owner (or org admins) and emit an
integration event. Cost variance over threshold is reported at most
once per 24 hours.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.config import settings
from app.core.exceptions import AppException, NotFoundError
from app.core.logging import get_logger
from app.core.money import round_half_up
from app.models.invoice import JobInvoice, JobPayment
from app.models.job import Job, JobCost, JobHoursLog
from app.models.material import MaterialUsageLog
from app.models.role import CrewMember
from app.models.user import User
from app.services.event_service import emit_app_event_best_effort
from app.services.invoice_state import is_successful_payment_status
from app.services.job_activity import create_job_activity_event_best_effort, latest_job_activity
from app.services.notification_service import create_notification_best_effort
from app.services.org_service import MarginSettings, get_org_settings, margin_settings_for

# Initialize logger
logger = get_logger(__name__)

VARIANCE_DEDUP_WINDOW = timedelta(hours=24)


# ==========================
# Inputs
# ==========================

@dataclass
class ProfitabilityInputs:
    payments_total_cents: int = 0
    payments_count: int = 0
    invoices_total_cents: int = 0
    invoices_count: int = 0
    labour_cents: int = 0
    material_cents: int = 0
    subcontract_cents: int = 0
    other_cents: int = 0
    travel_cents: int = 0
    labour_minutes: int = 0
    missing_labour_rate_count: int = 0
    material_usage_count: int = 0
    missing_material_cost_count: int = 0
    manual_cost_count: int = 0


def compute_labour_cost_cents(
    minutes: float,
    rate_cents: Optional[int],
    rate_type: Optional[str],
    daily_capacity_minutes: Optional[int] = None,
    default_capacity_minutes: int = 480,
) -> int:
    """Hourly rates prorate by the hour; daily rates by the crew's daily capacity."""
    if rate_cents is None or rate_cents <= 0:
        return 0
    minutes = max(0.0, float(minutes or 0))
    if minutes <= 0:
        return 0
    if rate_type == "daily":
        capacity = daily_capacity_minutes if daily_capacity_minutes is not None else default_capacity_minutes
        return round_half_up(minutes / max(1, capacity) * rate_cents)
    return round_half_up(minutes / 60 * rate_cents)


def add_hours_logs(
    inputs: ProfitabilityInputs,
    rows: Iterable[Any],
    default_capacity_minutes: int = 480,
) -> None:
    """``rows`` are (minutes, rate_cents, rate_type, daily_capacity_minutes) tuples."""
    for minutes, rate_cents, rate_type, capacity in rows:
        minutes = int(minutes or 0)
        inputs.labour_minutes += minutes
        if rate_cents is None:
            if minutes > 0:
                inputs.missing_labour_rate_count += 1
            continue
        inputs.labour_cents += compute_labour_cost_cents(
            minutes, rate_cents, rate_type, capacity, default_capacity_minutes
        )


def add_material_usage(inputs: ProfitabilityInputs, rows: Iterable[Any]) -> None:
    """``rows`` are (quantity, unit_cost_cents) tuples."""
    for quantity, unit_cost_cents in rows:
        quantity = float(quantity or 0)
        inputs.material_usage_count += 1
        if unit_cost_cents is None:
            if quantity > 0:
                inputs.missing_material_cost_count += 1
            continue
        inputs.material_cents += round_half_up(quantity * unit_cost_cents)


def add_manual_costs(inputs: ProfitabilityInputs, rows: Iterable[Any]) -> None:
    """``rows`` are (cost_type, amount_cents) tuples."""
    for cost_type, amount_cents in rows:
        value = int(amount_cents or 0)
        inputs.manual_cost_count += 1
        if cost_type == "subcontract":
            inputs.subcontract_cents += value
        elif cost_type == "travel":
            inputs.travel_cents += value
        elif cost_type == "material":
            inputs.material_cents += value
        elif cost_type == "labour":
            inputs.labour_cents += value
        else:
            inputs.other_cents += value


def add_payments(inputs: ProfitabilityInputs, rows: Iterable[Any]) -> None:
    """``rows`` are (status, amount_cents) tuples; only successful payments count."""
    for status, amount_cents in rows:
        if is_successful_payment_status(status):
            inputs.payments_total_cents += int(amount_cents or 0)
            inputs.payments_count += 1


def add_invoices(inputs: ProfitabilityInputs, rows: Iterable[Any]) -> None:
    """``rows`` are (status, total_cents, amount_cents) tuples; draft and void are ignored."""
    for status, total_cents, amount_cents in rows:
        status = (status or "").lower()
        if status and status not in ("draft", "void"):
            inputs.invoices_total_cents += int(total_cents if total_cents is not None else amount_cents or 0)
            inputs.invoices_count += 1


# ==========================
# Derivation
# ==========================

@dataclass
class JobProfitability:
    job_id: Any
    revenue: Dict[str, Any]
    costs: Dict[str, int]
    profit_cents: int
    margin_percent: Optional[float]
    estimated: Dict[str, Any]
    variance: Dict[str, Optional[float]]
    status: str
    last_computed_at: datetime
    inputs: Dict[str, Any] = field(default_factory=dict)
    settings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def classify_margin(margin_percent: Optional[float], margins: MarginSettings) -> str:
    if margin_percent is None:
        return "healthy"
    if margin_percent <= margins.margin_critical_percent:
        return "critical"
    if margin_percent <= margins.margin_warning_percent:
        return "warning"
    return "healthy"


def derive_job_profitability(
    job: Any,
    inputs: ProfitabilityInputs,
    margins: Optional[MarginSettings] = None,
    now: Optional[datetime] = None,
) -> JobProfitability:
    """Pure derivation; ``job`` needs the estimate and override fields."""
    margins = margins or margin_settings_for(None)
    now = as_utc(now) if now else utcnow()

    estimated_revenue = job.estimated_revenue_cents
    target_margin = job.target_margin_percent
    estimated_cost = job.estimated_cost_cents
    if estimated_cost is None and estimated_revenue is not None and target_margin is not None:
        estimated_cost = round_half_up(estimated_revenue * (1 - float(target_margin) / 100))

    override = job.revenue_override_cents
    actual: Optional[int] = None
    source = "none"
    if override is not None:
        actual, source = override, "override"
    elif inputs.payments_total_cents > 0:
        actual, source = inputs.payments_total_cents, "payments"
    elif inputs.invoices_total_cents > 0:
        actual, source = inputs.invoices_total_cents, "invoices"
    elif estimated_revenue is not None:
        source = "estimate"

    if actual is not None:
        effective = actual
    elif estimated_revenue is not None:
        effective = estimated_revenue
    else:
        effective = 0

    total_cost = (
        inputs.labour_cents
        + inputs.material_cents
        + inputs.subcontract_cents
        + inputs.other_cents
        + inputs.travel_cents
    )
    profit = effective - total_cost
    margin = profit / effective * 100 if effective > 0 else None

    estimated_profit = (
        estimated_revenue - estimated_cost
        if estimated_revenue is not None and estimated_cost is not None
        else None
    )
    estimated_margin = (
        estimated_profit / estimated_revenue * 100
        if estimated_revenue and estimated_profit is not None
        else None
    )
    variance_percent = (
        (profit - estimated_profit) / estimated_profit * 100 if estimated_profit else None
    )
    cost_variance_percent = (
        (total_cost - estimated_cost) / estimated_cost * 100 if estimated_cost else None
    )

    return JobProfitability(
        job_id=job.id,
        revenue={
            "actual_cents": actual,
            "estimated_cents": estimated_revenue,
            "override_cents": override,
            "effective_cents": effective,
            "source": source,
        },
        costs={
            "labour_cents": inputs.labour_cents,
            "material_cents": inputs.material_cents,
            "subcontract_cents": inputs.subcontract_cents,
            "other_cents": inputs.other_cents,
            "travel_cents": inputs.travel_cents,
            "total_cents": total_cost,
        },
        profit_cents=profit,
        margin_percent=margin,
        estimated={
            "revenue_cents": estimated_revenue,
            "cost_cents": estimated_cost,
            "profit_cents": estimated_profit,
            "margin_percent": estimated_margin,
            "target_margin_percent": target_margin,
        },
        variance={"percent": variance_percent, "cost_percent": cost_variance_percent},
        status=classify_margin(margin, margins),
        last_computed_at=now,
        inputs={**asdict(inputs), "revenue_source": source},
        settings=margins.to_dict(),
    )


# ==========================
# Loading
# ==========================

def load_profitability_inputs(db: Session, org_id: UUID, job_id: UUID) -> ProfitabilityInputs:
    inputs = ProfitabilityInputs()
    org_settings = get_org_settings(db, org_id)
    default_capacity = org_settings.default_daily_capacity_minutes or settings.DEFAULT_DAILY_CAPACITY_MINUTES

    add_payments(
        inputs,
        db.query(JobPayment.status, JobPayment.amount_cents)
        .filter(JobPayment.org_id == org_id, JobPayment.job_id == job_id)
        .all(),
    )
    add_invoices(
        inputs,
        db.query(JobInvoice.status, JobInvoice.total_cents, JobInvoice.amount_cents)
        .filter(JobInvoice.org_id == org_id, JobInvoice.job_id == job_id)
        .all(),
    )
    add_hours_logs(
        inputs,
        db.query(
            JobHoursLog.minutes,
            CrewMember.cost_rate_cents,
            CrewMember.cost_rate_type,
            CrewMember.daily_capacity_minutes,
        )
        .outerjoin(
            CrewMember,
            (CrewMember.id == JobHoursLog.crew_member_id) & (CrewMember.org_id == JobHoursLog.org_id),
        )
        .filter(JobHoursLog.org_id == org_id, JobHoursLog.job_id == job_id)
        .all(),
        default_capacity_minutes=default_capacity,
    )
    add_material_usage(
        inputs,
        db.query(MaterialUsageLog.quantity, MaterialUsageLog.unit_cost_cents)
        .filter(MaterialUsageLog.org_id == org_id, MaterialUsageLog.job_id == job_id)
        .all(),
    )
    add_manual_costs(
        inputs,
        db.query(JobCost.cost_type, JobCost.amount_cents)
        .filter(JobCost.org_id == org_id, JobCost.job_id == job_id)
        .all(),
    )
    return inputs


def _get_job(db: Session, org_id: UUID, job_id: UUID) -> Job:
    job = db.get(Job, job_id)
    if job is None or job.org_id != org_id:
        raise NotFoundError("Job", identifier=str(job_id))
    return job


def compute_job_profitability(
    db: Session,
    org_id: UUID,
    job_id: UUID,
    now: Optional[datetime] = None,
) -> JobProfitability:
    job = _get_job(db, org_id, job_id)
    inputs = load_profitability_inputs(db, org_id, job_id)
    margins = margin_settings_for(get_org_settings(db, org_id))
    return derive_job_profitability(job, inputs, margins, now)


# ==========================
# Guardrails
# ==========================

def _guardrail_recipients(db: Session, org_id: UUID, job: Job) -> List[Optional[UUID]]:
    if job.owner_user_id:
        return [job.owner_user_id]
    admins = (
        db.query(User.id)
        .filter(User.org_id == org_id, User.role_key.in_(("owner", "admin")), User.is_active.is_(True))
        .all()
    )
    return [row.id for row in admins] or [None]


def evaluate_job_guardrails(
    db: Session,
    org_id: UUID,
    job_id: UUID,
    actor_user_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> JobProfitability:
    now = as_utc(now) if now else utcnow()
    job = _get_job(db, org_id, job_id)
    result = compute_job_profitability(db, org_id, job_id, now=now)
    previous = job.profitability_status or "healthy"

    if result.margin_percent is not None and result.status != previous:
        job.profitability_status = result.status
        db.flush()
        logger.info(
            "Job profitability status changed",
            extra={"job_id": str(job_id), "from": previous, "to": result.status},
        )

        emit_warning = result.status == "warning" and previous == "healthy"
        emit_critical = result.status == "critical" and previous != "critical"
        if emit_warning or emit_critical:
            threshold = (
                result.settings["margin_critical_percent"]
                if emit_critical
                else result.settings["margin_warning_percent"]
            )
            payload = {
                "job_id": str(job_id),
                "margin_percent": result.margin_percent,
                "profit_cents": result.profit_cents,
                "revenue_cents": result.revenue["effective_cents"],
                "cost_cents": result.costs["total_cents"],
                "threshold_percent": threshold,
                "status": result.status,
            }
            create_job_activity_event_best_effort(
                db,
                org_id,
                job_id,
                "margin_critical" if emit_critical else "margin_warning",
                payload=payload,
                actor_user_id=actor_user_id,
                now=now,
            )
            for recipient in _guardrail_recipients(db, org_id, job):
                create_notification_best_effort(
                    db,
                    org_id=org_id,
                    type="job_progress",
                    title=f"Margin {result.status} on {job.title}",
                    body=f"Margin is {result.margin_percent:.1f}% (threshold {threshold:g}%).",
                    severity="critical" if emit_critical else "warn",
                    recipient_user_id=recipient,
                    entity_type="job",
                    entity_id=job_id,
                    deeplink=f"/jobs/{job_id}?tab=profitability",
                    event_key=f"job_margin_{result.status}:{job_id}:{recipient}:{now.isoformat()}",
                )
            emit_app_event_best_effort(
                db,
                org_id,
                "job.margin_critical" if emit_critical else "job.margin_warning",
                payload=payload,
                actor_user_id=actor_user_id,
            )

    cost_variance = result.variance["cost_percent"]
    threshold = result.settings["variance_threshold_percent"]
    if cost_variance is not None and cost_variance >= threshold:
        last = latest_job_activity(db, org_id, job_id, "cost_variance_exceeded")
        if last is None or now - as_utc(last.created_at) >= VARIANCE_DEDUP_WINDOW:
            payload = {
                "job_id": str(job_id),
                "cost_variance_percent": cost_variance,
                "cost_cents": result.costs["total_cents"],
                "estimated_cost_cents": result.estimated["cost_cents"],
                "threshold_percent": threshold,
            }
            create_job_activity_event_best_effort(
                db, org_id, job_id, "cost_variance_exceeded", payload=payload, actor_user_id=actor_user_id, now=now
            )
            emit_app_event_best_effort(
                db, org_id, "job.cost_variance_exceeded", payload=payload, actor_user_id=actor_user_id
            )

    return result


def evaluate_job_guardrails_best_effort(
    db: Session,
    org_id: UUID,
    job_id: UUID,
    actor_user_id: Optional[UUID] = None,
) -> Optional[JobProfitability]:
    """Run guardrails and commit; failures are logged, never raised."""
    try:
        result = evaluate_job_guardrails(db, org_id, job_id, actor_user_id=actor_user_id)
        db.commit()
        return result
    except (AppException, SQLAlchemyError) as e:
        db.rollback()
        logger.warning("Job guardrail evaluation failed", extra={"job_id": str(job_id), "error": str(e)})
        return None
    except Exception as e:
        db.rollback()
        logger.exception("Job guardrail evaluation crashed", extra={"job_id": str(job_id), "error": str(e)})
        return None
