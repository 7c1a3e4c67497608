"""Action handlers that create or mutate CRM records."""

from datetime import datetime, timedelta, timezone
from typing import Literal

from pydantic import BaseModel, Field

from crmflow.actions.base import ActionContext, ActionHandler, HandlerResult
from crmflow.actions.templating import TemplateRenderer
from crmflow.clients.crm import CrmClient
from crmflow.models.rule import ActionType


class RecordTarget(BaseModel):
    """Optional explicit target; defaults to the payload's entity."""

    entity_type: str | None = Field(default=None, description="Record type, e.g. 'lead'")
    entity_id: str | int | None = Field(default=None, description="Record ID")


class AssignToUserConfig(RecordTarget):
    user_id: str | int = Field(..., description="User to assign the record to")


class UpdateStatusConfig(RecordTarget):
    status: str = Field(..., min_length=1, description="New record status")


class CreateTaskConfig(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="")
    assigned_to: str | int | None = Field(
        default=None,
        description="Assignee; defaults to the payload's assigned_to",
    )
    due_in_days: int = Field(default=1, ge=0, le=365)
    priority: Literal["low", "medium", "high"] = "medium"


class AddToCampaignConfig(RecordTarget):
    campaign_id: str | int = Field(..., description="Marketing campaign ID")


class CreateNotificationConfig(BaseModel):
    user_id: str | int = Field(..., description="Recipient user")
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(default="")
    link: str | None = Field(default=None, description="Optional in-app link")


class _RecordHandler(ActionHandler):
    def __init__(self, crm: CrmClient, renderer: TemplateRenderer | None = None):
        super().__init__(renderer)
        self._crm = crm


class AssignToUserHandler(_RecordHandler):
    config_model = AssignToUserConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.ASSIGN_TO_USER

    async def execute(self, config: AssignToUserConfig, context: ActionContext) -> HandlerResult:
        entity_type, entity_id = self.resolve_entity(context, config.entity_type, config.entity_id)
        await self._crm.update_record(
            self.action_type.value,
            entity_type,
            entity_id,
            {"assigned_to": config.user_id},
        )
        return HandlerResult(success=True, detail=f"Assigned {entity_type} {entity_id} to user {config.user_id}")


class UpdateStatusHandler(_RecordHandler):
    config_model = UpdateStatusConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.UPDATE_STATUS

    async def execute(self, config: UpdateStatusConfig, context: ActionContext) -> HandlerResult:
        entity_type, entity_id = self.resolve_entity(context, config.entity_type, config.entity_id)
        await self._crm.update_record(
            self.action_type.value,
            entity_type,
            entity_id,
            {"status": config.status},
        )
        return HandlerResult(success=True, detail=f"Set {entity_type} {entity_id} status to {config.status}")


class CreateTaskHandler(_RecordHandler):
    config_model = CreateTaskConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.CREATE_TASK

    async def execute(self, config: CreateTaskConfig, context: ActionContext) -> HandlerResult:
        due_date = datetime.now(timezone.utc) + timedelta(days=config.due_in_days)
        task = {
            "title": config.title,
            "description": config.description,
            "assigned_to": config.assigned_to if config.assigned_to is not None else context.field("assigned_to"),
            "due_date": due_date.date().isoformat(),
            "priority": config.priority,
            "related_type": context.field("entity_type"),
            "related_id": context.field("entity_id"),
            "source": "workflow",
            "workflow_rule_id": context.rule_id,
        }
        created = await self._crm.create_task(self.action_type.value, task)
        task_id = created.get("id")
        return HandlerResult(success=True, detail=f"Created task {task_id}" if task_id else "Created task")


class AddToCampaignHandler(_RecordHandler):
    config_model = AddToCampaignConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.ADD_TO_CAMPAIGN

    async def execute(self, config: AddToCampaignConfig, context: ActionContext) -> HandlerResult:
        entity_type, entity_id = self.resolve_entity(context, config.entity_type, config.entity_id)
        await self._crm.add_campaign_member(
            self.action_type.value,
            str(config.campaign_id),
            entity_type,
            entity_id,
        )
        return HandlerResult(success=True, detail=f"Added {entity_type} {entity_id} to campaign {config.campaign_id}")


class CreateNotificationHandler(_RecordHandler):
    config_model = CreateNotificationConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.CREATE_NOTIFICATION

    async def execute(self, config: CreateNotificationConfig, context: ActionContext) -> HandlerResult:
        await self._crm.create_notification(
            self.action_type.value,
            {
                "user_id": config.user_id,
                "title": config.title,
                "message": config.message,
                "link": config.link,
                "type": "workflow",
            },
        )
        return HandlerResult(success=True, detail=f"Notified user {config.user_id}")
