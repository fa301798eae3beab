"""
Job Models
==========

Trades jobs and the cost inputs used by the profitability derivation:
hours logs (labour), manual costs, and the activity feed written by
guardrails and status changes.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    uuid_pk,
    org_fk,
    created_at_column,
    updated_at_column,
    json_list_column,
    json_dict_column,
)

JOB_STATUSES = ("unassigned", "scheduled", "in_progress", "completed")
JOB_PRIORITIES = ("low", "normal", "high", "urgent")
PROFITABILITY_STATUSES = ("healthy", "warning", "critical")
COST_TYPES = ("labour", "material", "subcontract", "travel", "other")


def _job_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )


class Job(Base):
    """
    Job entity.

    Attributes:
        crew_id: crew member assigned; drives crew-scoped visibility
        estimated_revenue_cents: quoted revenue
        estimated_cost_cents: quoted cost, derived from target margin when empty
        target_margin_percent: margin the quote was built for
        revenue_override_cents: manual revenue that beats payments and invoices
        profitability_status: last guardrail status (healthy/warning/critical)
    """

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()

    # ==========================
    # Details
    # ==========================
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unassigned")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    tags: Mapped[list] = json_list_column()
    flags: Mapped[list] = json_list_column()

    # ==========================
    # Assignment
    # ==========================
    crew_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("crew_members.id", ondelete="SET NULL"), nullable=True, index=True
    )
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    scheduled_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ==========================
    # Profitability
    # ==========================
    estimated_revenue_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    estimated_cost_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_margin_percent: Mapped[Optional[float]] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    revenue_override_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    profitability_status: Mapped[str] = mapped_column(String(20), nullable=False, default="healthy")

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (
        Index("ix_jobs_org_status", "org_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "crew_id": str(self.crew_id) if self.crew_id else None,
            "estimated_revenue_cents": self.estimated_revenue_cents,
            "estimated_cost_cents": self.estimated_cost_cents,
            "target_margin_percent": self.target_margin_percent,
            "revenue_override_cents": self.revenue_override_cents,
            "profitability_status": self.profitability_status,
            "tags": list(self.tags or []),
        }


class JobHoursLog(Base):
    __tablename__ = "job_hours_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    job_id: Mapped[uuid.UUID] = _job_fk()
    crew_member_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("crew_members.id", ondelete="SET NULL"), nullable=True
    )
    minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    work_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class JobCost(Base):
    """Manually entered cost line (subcontractor invoice, fuel, skip bin, ...)."""

    __tablename__ = "job_costs"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    job_id: Mapped[uuid.UUID] = _job_fk()
    cost_type: Mapped[str] = mapped_column(String(20), nullable=False, default="other")
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    incurred_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class JobActivityEvent(Base):
    __tablename__ = "job_activity_events"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    job_id: Mapped[uuid.UUID] = _job_fk()
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = json_dict_column()
    actor_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        Index("ix_job_activity_job_type", "job_id", "type"),
    )
