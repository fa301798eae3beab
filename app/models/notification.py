"""
Notification Model
==================

In-app notifications. ``recipient_user_id`` NULL means the notification
is visible to every member of the org. ``event_key`` makes inserts
idempotent per org.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, uuid_pk, org_fk, created_at_column

NOTIFICATION_TYPES = (
    "job_progress",
    "warehouse_alert",
    "announcement",
    "integration",
    "automation",
    "contact_followup_overdue",
    "new_hot_prospect",
    "appraisal_upcoming",
    "appraisal_followup_due",
    "appraisal_stage_changed",
    "listing_milestone_overdue",
    "vendor_report_due",
    "vendor_update_overdue",
    "new_buyer_match",
    "listing_health_stalling",
    "inspection_scheduled",
    "report_generated",
)

NOTIFICATION_SEVERITIES = ("info", "warn", "critical")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    recipient_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="info")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    deeplink: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    event_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("org_id", "event_key", name="uq_notifications_org_event_key"),
        Index("ix_notifications_org_read", "org_id", "read_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, severity={self.severity})>"
