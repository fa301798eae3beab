"""
Dashboard rollups.

Profitability over the jobs scheduled in a date range: average margin,
totals, status counts, the five worst jobs and a margin trend bucketed
by day (or by week for ranges over 60 days).
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.authz import Actor, apply_job_visibility
from app.core.clock import as_utc
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.models.job import Job
from app.services.job_profitability import derive_job_profitability, load_profitability_inputs
from app.services.org_service import get_org_settings, margin_settings_for

# Initialize logger
logger = get_logger(__name__)

WORST_JOBS_LIMIT = 5
WEEKLY_BUCKETS_AFTER_DAYS = 60


def _average(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def margin_trend(
    rows: List[Dict[str, Any]], start_date: date, end_date: date
) -> List[Dict[str, Any]]:
    """Average margin per bucket; jobs without a margin are left out."""
    total_days = (end_date - start_date).days + 1
    bucket_size = 7 if total_days > WEEKLY_BUCKETS_AFTER_DAYS else 1
    bucket_count = -(-total_days // bucket_size)
    buckets: List[List[float]] = [[] for _ in range(bucket_count)]

    for row in rows:
        if row["margin_percent"] is None or row["scheduled_start"] is None:
            continue
        offset = (as_utc(row["scheduled_start"]).date() - start_date).days
        index = min(bucket_count - 1, max(0, offset // bucket_size))
        buckets[index].append(row["margin_percent"])

    return [
        {
            "label": (start_date + timedelta(days=index * bucket_size)).isoformat(),
            "margin_percent": _average(margins),
        }
        for index, margins in enumerate(buckets)
    ]


def profitability_dashboard(
    db: Session,
    actor: Actor,
    start_date: date,
    end_date: date,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Roll up job profitability for jobs the actor can see.

    Both dates are inclusive and read as UTC days.

    Raises:
        ValidationError: end_date is before start_date
    """
    if end_date < start_date:
        raise ValidationError("end_date cannot be before start_date")

    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
    query = db.query(Job).filter(
        Job.org_id == actor.org_id,
        Job.scheduled_start >= start,
        Job.scheduled_start < end,
    )
    jobs = apply_job_visibility(query, actor, Job).order_by(Job.scheduled_start, Job.id).all()
    margins = margin_settings_for(get_org_settings(db, actor.org_id))

    rows = []
    status_counts = {"healthy": 0, "warning": 0, "critical": 0}
    for job in jobs:
        result = derive_job_profitability(job, load_profitability_inputs(db, actor.org_id, job.id), margins, now)
        status_counts[result.status] += 1
        rows.append({
            "job_id": job.id,
            "title": job.title,
            "scheduled_start": job.scheduled_start,
            "status": result.status,
            "margin_percent": result.margin_percent,
            "profit_cents": result.profit_cents,
            "revenue_cents": result.revenue["effective_cents"],
            "cost_cents": result.costs["total_cents"],
        })

    with_margin = [row for row in rows if row["margin_percent"] is not None]
    worst = sorted(with_margin, key=lambda row: row["margin_percent"])[:WORST_JOBS_LIMIT]

    logger.info(
        "Profitability dashboard built",
        extra={"org_id": str(actor.org_id), "jobs": len(rows), "start": str(start_date), "end": str(end_date)},
    )
    return {
        "start_date": start_date,
        "end_date": end_date,
        "job_count": len(rows),
        "average_margin_percent": _average([row["margin_percent"] for row in with_margin]),
        "totals": {
            "revenue_cents": sum(row["revenue_cents"] for row in rows),
            "cost_cents": sum(row["cost_cents"] for row in rows),
            "profit_cents": sum(row["profit_cents"] for row in rows),
        },
        "status_counts": status_counts,
        "worst_jobs": worst,
        "margin_trend": margin_trend(rows, start_date, end_date),
    }
