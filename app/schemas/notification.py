"""
Notification Schemas Module
===========================
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MarkReadRequest(BaseModel):
    """Without ``ids`` every visible unread notification is marked read."""

    ids: Optional[List[UUID]] = None


class SweepRequest(BaseModel):
    dry_run: bool = Field(default=False, description="Count candidates without inserting")
