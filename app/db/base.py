"""
Database Base Definition
========================

Defines the SQLAlchemy Declarative Base and the column helpers shared
by every model.

All ORM models must inherit from this Base.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy.sql import func

# Base class for all database models
Base = declarative_base()


def uuid_pk() -> Mapped[uuid.UUID]:
    """UUID primary key column."""
    return mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)


def org_fk() -> Mapped[uuid.UUID]:
    """Tenant column present on every org-owned row."""
    return mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def created_at_column() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def updated_at_column() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def json_list_column() -> Mapped[list]:
    return mapped_column(JSON, nullable=False, default=list)


def json_dict_column() -> Mapped[dict]:
    return mapped_column(JSON, nullable=False, default=dict)
