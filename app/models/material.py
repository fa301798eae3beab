"""
Warehouse material models.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Float, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, uuid_pk, org_fk, created_at_column, updated_at_column


class Material(Base):
    """Stock item. ``reorder_threshold`` drives low-stock alerts."""

    __tablename__ = "materials"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    unit: Mapped[str] = mapped_column(String(30), nullable=False, default="each")
    unit_cost_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    stock_on_hand: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reorder_threshold: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_threshold is not None and self.stock_on_hand <= self.reorder_threshold

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "sku": self.sku,
            "unit": self.unit,
            "unit_cost_cents": self.unit_cost_cents,
            "stock_on_hand": self.stock_on_hand,
            "reorder_threshold": self.reorder_threshold,
        }


class MaterialUsageLog(Base):
    """
    Material consumed on a job.

    ``unit_cost_cents`` is captured at log time so later price changes
    do not rewrite historical job cost.
    """

    __tablename__ = "material_usage_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_cost_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    logged_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()
