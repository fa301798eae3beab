"""
Material Schemas Module
=======================
"""

from typing import Optional

from pydantic import BaseModel, Field


class MaterialCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: Optional[str] = Field(default=None, max_length=100)
    unit: Optional[str] = Field(default=None, max_length=30)
    unit_cost_cents: Optional[int] = Field(default=None, ge=0)
    stock_on_hand: Optional[float] = Field(default=None, ge=0)
    reorder_threshold: Optional[float] = Field(default=None, ge=0)


class MaterialUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    sku: Optional[str] = None
    unit: Optional[str] = None
    unit_cost_cents: Optional[int] = Field(default=None, ge=0)
    stock_on_hand: Optional[float] = Field(default=None, ge=0)
    reorder_threshold: Optional[float] = Field(default=None, ge=0)


class StockAdjustment(BaseModel):
    """Positive adds stock, negative removes it."""

    delta: float
    reason: Optional[str] = Field(default=None, max_length=255)
