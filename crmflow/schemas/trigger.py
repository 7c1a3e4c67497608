"""Trigger and action catalogue API schemas."""

from pydantic import BaseModel, Field

from crmflow.models.execution import ExecutionRecord


class TriggerInfo(BaseModel):
    name: str
    description: str


class ActionInfo(BaseModel):
    name: str
    description: str


class FireResponse(BaseModel):
    """Outcome of a manually fired trigger."""

    trigger: str
    rules_matched: int = Field(default=0, ge=0)
    rules_fired: list[str] = Field(default_factory=list)
    records: list[ExecutionRecord] = Field(default_factory=list)
