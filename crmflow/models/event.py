"""Trigger event models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class TriggerMessage(BaseModel):
    """CRM event received from the message queue."""

    event_id: str = Field(..., min_length=1, description="Event unique identifier for idempotency")
    trigger: str = Field(..., min_length=1, description="Trigger name, e.g. 'lead_created'")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Event timestamp",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload data",
    )
