"""
Appraisal Models
================

An appraisal is a booked visit to value a property for a prospective
seller. Its win probability is recomputed after every change to the
appraisal, its prep checklist or its follow-ups.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    uuid_pk,
    org_fk,
    created_at_column,
    updated_at_column,
    json_list_column,
)

APPRAISAL_STAGES = ("booked", "confirmed", "prepped", "attended", "followup_sent", "won", "lost")
APPRAISAL_TIMELINES = ("asap", "days_30", "days_60_90", "unknown")
APPRAISAL_OUTCOMES = ("pending", "won", "lost")


class Appraisal(Base):
    __tablename__ = "appraisals"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    address: Mapped[str] = mapped_column(String(255), nullable=False)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    stage: Mapped[str] = mapped_column(String(30), nullable=False, default="booked")
    appointment_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    lead_source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Discovery notes captured before or at the visit
    decision_makers: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    motivation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timeline: Mapped[str] = mapped_column(String(20), nullable=False, default="unknown")
    price_expectation_min_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_expectation_max_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    objections: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    win_probability_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    win_probability_band: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    win_probability_reasons: Mapped[list] = json_list_column()

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    def __repr__(self) -> str:
        return f"<Appraisal(id={self.id}, stage={self.stage})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "contact_id": str(self.contact_id) if self.contact_id else None,
            "address": self.address,
            "stage": self.stage,
            "outcome": self.outcome,
            "appointment_at": self.appointment_at.isoformat() if self.appointment_at else None,
            "timeline": self.timeline,
            "win_probability_score": self.win_probability_score,
        }


class AppraisalChecklistItem(Base):
    __tablename__ = "appraisal_checklist_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    appraisal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("appraisals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = created_at_column()


class AppraisalFollowup(Base):
    __tablename__ = "appraisal_followups"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    appraisal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("appraisals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()
