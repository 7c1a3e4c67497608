"""Trigger registry: the closed set of CRM events workflows can react to."""

from enum import Enum


class TriggerEvent(str, Enum):
    """Trigger event enumeration."""

    LEAD_CREATED = "lead_created"
    LEAD_STATUS_CHANGED = "lead_status_changed"
    SALE_CREATED = "sale_created"
    PAYMENT_RECEIVED = "payment_received"
    CLIENT_CREATED = "client_created"
    TASK_OVERDUE = "task_overdue"
    SITE_VISIT_SCHEDULED = "site_visit_scheduled"
    DOCUMENT_UPLOADED = "document_uploaded"
    SUPPORT_TICKET_CREATED = "support_ticket_created"


TRIGGER_DESCRIPTIONS: dict[TriggerEvent, str] = {
    TriggerEvent.LEAD_CREATED: "When a new lead is created",
    TriggerEvent.LEAD_STATUS_CHANGED: "When lead status changes",
    TriggerEvent.SALE_CREATED: "When a new sale is made",
    TriggerEvent.PAYMENT_RECEIVED: "When payment is received",
    TriggerEvent.CLIENT_CREATED: "When new client is added",
    TriggerEvent.TASK_OVERDUE: "When task becomes overdue",
    TriggerEvent.SITE_VISIT_SCHEDULED: "When site visit is scheduled",
    TriggerEvent.DOCUMENT_UPLOADED: "When document is uploaded",
    TriggerEvent.SUPPORT_TICKET_CREATED: "When support ticket is created",
}


class TriggerRegistry:
    """Read-only view of the registered triggers.

    Built once at start-up and handed to the workflow engine and the API.
    """

    def __init__(self, descriptions: dict[TriggerEvent, str] | None = None):
        self._descriptions = dict(descriptions or TRIGGER_DESCRIPTIONS)

    def list_triggers(self) -> list[tuple[str, str]]:
        """Return (name, description) pairs in declaration order."""
        return [(trigger.value, description) for trigger, description in self._descriptions.items()]

    def is_registered(self, name: str) -> bool:
        return any(trigger.value == name for trigger in self._descriptions)

    def describe(self, name: str) -> str | None:
        for trigger, description in self._descriptions.items():
            if trigger.value == name:
                return description
        return None
