"""Rule API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from crmflow.models.rule import Action, Condition, RuleMetadata
from crmflow.models.trigger import TriggerEvent


class RuleCreate(BaseModel):
    """Schema for creating a new rule."""

    name: str = Field(..., min_length=1, max_length=100, description="Rule name")
    description: str = Field(default="", max_length=500, description="Rule description")
    trigger_event: TriggerEvent = Field(..., description="Trigger the rule listens to")
    is_active: bool = Field(default=True, description="Whether rule is active")
    priority: int = Field(default=100, ge=0, le=1000, description="Rule priority")
    conditions: list[Condition] = Field(default_factory=list, description="Conditions (AND)")
    actions: list[Action] = Field(..., min_length=1, description="Ordered actions")
    created_by: str = Field(default="system", max_length=100)


class RuleUpdate(BaseModel):
    """Schema for partially updating an existing rule."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    trigger_event: TriggerEvent | None = None
    is_active: bool | None = None
    priority: int | None = Field(default=None, ge=0, le=1000)
    conditions: list[Condition] | None = None
    actions: list[Action] | None = Field(default=None, min_length=1)


class RuleStatusUpdate(BaseModel):
    """Schema for updating rule active status."""

    is_active: bool = Field(..., description="Whether rule is active")


class RuleResponse(BaseModel):
    """Schema for rule response."""

    rule_id: str
    name: str
    description: str
    trigger_event: TriggerEvent
    is_active: bool
    priority: int
    conditions: list[Condition]
    actions: list[Action]
    metadata: RuleMetadata


class RuleCreateResponse(BaseModel):
    """Schema for rule creation response."""

    rule_id: str = Field(..., description="Created rule ID")
    created_at: datetime = Field(..., description="Creation timestamp")
