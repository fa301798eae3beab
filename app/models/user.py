"""
User Model
==========

Security Features:
- Strict org isolation (org_id required)
- Account lock after configurable failed attempts
- Token version for JWT invalidation
- Capabilities resolved through the org's role for ``role_key``

Database Indexes:
- Primary key: id (UUID)
- Unique index: email
- Index: org_id
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base, uuid_pk, org_fk, created_at_column, updated_at_column

if TYPE_CHECKING:
    from app.models.organization import Organization


class User(Base):
    """
    User entity representing an org member.

    Attributes:
        id: UUID primary key
        org_id: Foreign key to organization
        email: Unique email address
        hashed_password: Argon2 hashed password
        role_key: Key of the org role granting capabilities
        crew_member_id: Crew member the user works as, if any
        token_version: JWT version for invalidation
    """

    __tablename__ = "users"

    def __init__(self, **kwargs):
        """Initialize User with Python-level defaults."""
        kwargs.setdefault("role_key", "staff")
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("failed_attempts", 0)
        kwargs.setdefault("is_locked", False)
        kwargs.setdefault("token_version", 1)
        super().__init__(**kwargs)

    # ==========================
    # Primary Key / Tenant
    # ==========================
    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()

    organization: Mapped["Organization"] = relationship("Organization", back_populates="users")

    # ==========================
    # Authentication
    # ==========================
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ==========================
    # Authorization
    # ==========================
    role_key: Mapped[str] = mapped_column(String(50), nullable=False, default="staff")
    crew_member_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crew_members.id", ondelete="SET NULL"),
        nullable=True,
    )

    # ==========================
    # Account Status
    # ==========================
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # ==========================
    # Timestamps
    # ==========================
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (
        Index("ix_users_org_role", "org_id", "role_key"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role_key={self.role_key})>"

    def lock_account(self) -> None:
        self.is_locked = True

    def unlock_account(self) -> None:
        self.is_locked = False
        self.failed_attempts = 0

    def invalidate_tokens(self) -> None:
        """Invalidate all tokens by incrementing version."""
        self.token_version += 1

    def to_dict(self) -> dict:
        """Serialize without sensitive fields."""
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "email": self.email,
            "full_name": self.full_name,
            "role_key": self.role_key,
            "crew_member_id": str(self.crew_member_id) if self.crew_member_id else None,
            "is_active": self.is_active,
            "is_locked": self.is_locked,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
