"""
Organization Model
==================

Represents a tenant in the multi-tenant architecture.

Each organization:
- Is isolated from other organizations
- Owns users, roles and every business row
- Acts as a security boundary

Database Indexes:
- Primary key: id (UUID)
- Unique index: name
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base, uuid_pk, created_at_column, updated_at_column

if TYPE_CHECKING:
    from app.models.user import User


class Organization(Base):
    """
    Organization Entity (Tenant Root).

    Security Boundary:
        Every row in the system carries an ``org_id``. Users only ever
        see rows of their own organization.

    Attributes:
        id: UUID primary key
        name: Unique organization name
        business_type: real_estate or trades
        users: Relationship to users
    """

    __tablename__ = "organizations"

    # ==========================
    # Primary Key
    # ==========================
    id: Mapped[uuid.UUID] = uuid_pk()

    # ==========================
    # Organization Info
    # ==========================
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    business_type: Mapped[str] = mapped_column(String(50), nullable=False, default="trades")

    # ==========================
    # Timestamps
    # ==========================
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    # ==========================
    # Relationships
    # ==========================
    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    settings: Mapped[Optional["OrgSettings"]] = relationship(
        "OrgSettings",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"

    @property
    def user_count(self) -> int:
        return len(self.users) if self.users else 0

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "business_type": self.business_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "user_count": self.user_count,
        }


class OrgSettings(Base):
    """
    Org-scoped settings.

    NULL columns mean "use the application default" from ``Settings``.
    """

    __tablename__ = "org_settings"

    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    )

    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    default_daily_capacity_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    margin_warning_percent: Mapped[Optional[float]] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    margin_critical_percent: Mapped[Optional[float]] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    variance_threshold_percent: Mapped[Optional[float]] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)

    automations_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invoice_next_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    def to_dict(self) -> dict:
        return {
            "org_id": str(self.org_id),
            "company_name": self.company_name,
            "timezone": self.timezone,
            "default_daily_capacity_minutes": self.default_daily_capacity_minutes,
            "margin_warning_percent": self.margin_warning_percent,
            "margin_critical_percent": self.margin_critical_percent,
            "variance_threshold_percent": self.variance_threshold_percent,
            "automations_disabled": self.automations_disabled,
            "invoice_next_number": self.invoice_next_number,
        }
