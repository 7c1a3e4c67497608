"""Execution record domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ActionOutcome(str, Enum):
    """Outcome of a single action attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"  # Unknown action kind


class ExecutionRecord(BaseModel):
    """Audit entry for one action attempt. Never updated once written."""

    execution_id: str = Field(..., description="Execution unique identifier")
    rule_id: str = Field(..., description="Rule the action belongs to")
    trigger_event: str = Field(..., description="Trigger that started the run")
    action_index: int = Field(..., ge=0, description="Position of the action in the rule")
    action_type: str = Field(..., description="Action kind as stored on the rule")
    action_config: dict[str, Any] = Field(default_factory=dict, description="Action config snapshot")
    payload: dict[str, Any] = Field(default_factory=dict, description="Payload snapshot")
    outcome: ActionOutcome = Field(..., description="Action outcome")
    detail: str = Field(default="", description="Handler result or error message")
    latency_ms: int = Field(default=0, ge=0, description="Handler latency in milliseconds")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
