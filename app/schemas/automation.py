"""
Automation Schemas Module
=========================
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Condition(BaseModel):
    key: str = Field(..., min_length=1, description="Dot path into the event payload")
    operator: str = Field(..., description="eq, neq, gt, gte, lt, lte, contains, in or exists")
    value: Any = None


class Action(BaseModel):
    """
    One rule action.

    Which fields are required depends on ``type``; that check lives in the
    service so the error names the action. Text fields must be strings.
    """

    type: str = Field(..., description="notification.create, job.add_tag or job.add_flag")
    title: Optional[str] = Field(default=None, max_length=255)
    body: Optional[str] = None
    severity: Optional[str] = Field(default=None, description="info, warn or critical")
    recipient_user_id: Optional[UUID] = None
    tag: Optional[str] = Field(default=None, max_length=100)
    flag: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="forbid")


class RuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    trigger_key: str
    is_enabled: bool = False
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[Action] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Flag low margin jobs",
                "trigger_key": "job.margin_warning",
                "is_enabled": True,
                "conditions": [{"key": "margin_percent", "operator": "lt", "value": 25}],
                "actions": [{"type": "job.add_flag", "flag": "low_margin"}],
            }
        }
    )


class RuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    trigger_key: Optional[str] = None
    is_enabled: Optional[bool] = None
    conditions: Optional[List[Condition]] = None
    actions: Optional[List[Action]] = None


class DryRunRequest(BaseModel):
    payload: Dict[str, Any] = Field(default_factory=dict)
