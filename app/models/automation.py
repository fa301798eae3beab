"""
Automation rule and run models.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
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


class AutomationRule(Base):
    """
    "When <trigger> and <conditions>, do <actions>".

    Conditions are ``{"key", "operator", "value"}`` dicts evaluated
    against the event payload; actions are ``{"type", ...}`` dicts.
    """

    __tablename__ = "automation_rules"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trigger_key: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    conditions: Mapped[list] = json_list_column()
    actions: Mapped[list] = json_list_column()
    created_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    def __repr__(self) -> str:
        return f"<AutomationRule(id={self.id}, trigger={self.trigger_key}, enabled={self.is_enabled})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "trigger_key": self.trigger_key,
            "is_enabled": self.is_enabled,
            "conditions": list(self.conditions or []),
            "actions": list(self.actions or []),
        }


class AutomationRun(Base):
    __tablename__ = "automation_runs"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("automation_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    trigger_key: Mapped[str] = mapped_column(String(80), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="queued")
    match_details: Mapped[dict] = json_dict_column()
    action_results: Mapped[list] = json_list_column()
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = created_at_column()
