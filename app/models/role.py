"""
Org role and crew member models.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    uuid_pk,
    org_fk,
    created_at_column,
    updated_at_column,
    json_list_column,
)


class OrgRole(Base):
    """A named capability bundle inside one organization."""

    __tablename__ = "org_roles"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    key: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    capabilities: Mapped[list] = json_list_column()

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (
        UniqueConstraint("org_id", "key", name="uq_org_roles_org_key"),
    )

    def __repr__(self) -> str:
        return f"<OrgRole(org_id={self.org_id}, key={self.key})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "key": self.key,
            "name": self.name,
            "capabilities": list(self.capabilities or []),
        }


class CrewMember(Base):
    """
    Field worker whose time is costed against jobs.

    ``cost_rate_type`` is ``hourly`` or ``daily``; daily rates are
    prorated over ``daily_capacity_minutes``.
    """

    __tablename__ = "crew_members"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cost_rate_type: Mapped[str] = mapped_column(String(20), nullable=False, default="hourly")
    daily_capacity_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "display_name": self.display_name,
            "cost_rate_cents": self.cost_rate_cents,
            "cost_rate_type": self.cost_rate_type,
            "daily_capacity_minutes": self.daily_capacity_minutes,
            "active": self.active,
        }
