"""
Travel Time Schemas Module
==========================
"""

from typing import Optional

from pydantic import BaseModel


class TravelTimeRequest(BaseModel):
    """Blank or missing addresses are rejected by the service as VALIDATION_ERROR."""

    origin: Optional[str] = None
    destination: Optional[str] = None
