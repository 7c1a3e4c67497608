"""Workflow rule domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from crmflow.models.trigger import TriggerEvent


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConditionOperator(str, Enum):
    """Condition operator enumeration."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"


class ActionType(str, Enum):
    """Action kind enumeration."""

    ASSIGN_TO_USER = "assign_to_user"
    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    SEND_WHATSAPP = "send_whatsapp"
    CREATE_TASK = "create_task"
    UPDATE_STATUS = "update_status"
    ADD_TO_CAMPAIGN = "add_to_campaign"
    GENERATE_DOCUMENT = "generate_document"
    CREATE_NOTIFICATION = "create_notification"
    WEBHOOK = "webhook"


ACTION_DESCRIPTIONS: dict[ActionType, str] = {
    ActionType.ASSIGN_TO_USER: "Assign to specific user",
    ActionType.SEND_EMAIL: "Send email notification",
    ActionType.SEND_SMS: "Send SMS notification",
    ActionType.SEND_WHATSAPP: "Send WhatsApp message",
    ActionType.CREATE_TASK: "Create a task",
    ActionType.UPDATE_STATUS: "Update record status",
    ActionType.ADD_TO_CAMPAIGN: "Add to marketing campaign",
    ActionType.GENERATE_DOCUMENT: "Generate document from template",
    ActionType.CREATE_NOTIFICATION: "Create internal notification",
    ActionType.WEBHOOK: "Call external webhook",
}


class Condition(BaseModel):
    """Single comparison against the event payload."""

    field: str = Field(..., min_length=1, description="Dotted path into the payload, e.g. 'lead.status'")
    operator: ConditionOperator = Field(..., description="Comparison operator")
    value: Any = Field(default=None, description="Comparison value")

    @model_validator(mode="after")
    def validate_value(self) -> "Condition":
        """The 'in' operator compares against a list of candidates."""
        if self.operator == ConditionOperator.IN and not isinstance(self.value, (list, tuple)):
            raise ValueError("'in' conditions require a list value")
        return self


class Action(BaseModel):
    """Side-effecting step of a workflow.

    ``type`` stays a plain string so a rule carrying one unknown action kind
    still loads; the dispatcher skips that action and runs the rest.
    """

    type: str = Field(..., min_length=1, description="Action kind")
    config: dict[str, Any] = Field(default_factory=dict, description="Handler-specific configuration")

    @property
    def kind(self) -> ActionType | None:
        """Registered action kind, or None if unknown."""
        try:
            return ActionType(self.type)
        except ValueError:
            return None


class RuleMetadata(BaseModel):
    """Rule metadata."""

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    created_by: str = Field(default="system")
    version: int = Field(default=1)


class WorkflowRule(BaseModel):
    """Persisted trigger -> conditions -> actions binding."""

    rule_id: str = Field(..., description="Rule unique identifier")
    name: str = Field(..., description="Rule name")
    description: str = Field(default="", description="Rule description")
    trigger_event: TriggerEvent = Field(..., description="Trigger this rule listens to")
    is_active: bool = Field(default=True, description="Whether rule is active")
    priority: int = Field(default=100, ge=0, description="Rule priority (higher runs first)")
    conditions: list[Condition] = Field(
        default_factory=list,
        description="Conditions, all of which must hold",
    )
    actions: list[Action] = Field(
        default_factory=list,
        description="Actions, executed in order",
    )
    metadata: RuleMetadata = Field(
        default_factory=RuleMetadata,
        description="Rule metadata",
    )

    @field_validator("conditions", "actions", mode="before")
    @classmethod
    def decode_null_list(cls, value: Any) -> Any:
        """Rows written by the legacy CRM store an empty list as null."""
        return [] if value is None else value
