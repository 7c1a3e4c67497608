"""Action registry: maps action kinds to their handlers."""

from collections.abc import Iterable

from crmflow.actions.base import ActionHandler
from crmflow.actions.documents import GenerateDocumentHandler
from crmflow.actions.messaging import SendEmailHandler, SendSmsHandler, SendWhatsAppHandler
from crmflow.actions.records import (
    AddToCampaignHandler,
    AssignToUserHandler,
    CreateNotificationHandler,
    CreateTaskHandler,
    UpdateStatusHandler,
)
from crmflow.actions.templating import TemplateRenderer
from crmflow.actions.webhook import WebhookHandler
from crmflow.clients.crm import CrmClient
from crmflow.clients.documents import DocumentServiceClient
from crmflow.clients.email import EmailSender
from crmflow.clients.gateway import MessagingGateway
from crmflow.core.config import Settings, get_settings
from crmflow.core.logging import get_logger
from crmflow.models.rule import ACTION_DESCRIPTIONS, ActionType

logger = get_logger(__name__)


class ActionRegistry:
    """Handlers keyed by action kind. Built once at start-up."""

    def __init__(self, handlers: Iterable[ActionHandler], shared_clients: Iterable[CrmClient] = ()):
        self._handlers: dict[ActionType, ActionHandler] = {}
        for handler in handlers:
            self._handlers[handler.action_type] = handler
        self._shared_clients = list(shared_clients)

    def get(self, action_type: ActionType) -> ActionHandler | None:
        return self._handlers.get(action_type)

    def list_actions(self) -> list[tuple[str, str]]:
        """Return (name, description) for every registered kind."""
        return [
            (kind.value, ACTION_DESCRIPTIONS[kind])
            for kind in ActionType
            if kind in self._handlers
        ]

    async def close(self) -> None:
        """Close handler and client resources."""
        for handler in self._handlers.values():
            await handler.close()
        for client in self._shared_clients:
            await client.close()


def build_action_registry(settings: Settings | None = None) -> ActionRegistry:
    """Wire every action kind to its production collaborator."""
    settings = settings or get_settings()
    renderer = TemplateRenderer()
    crm = CrmClient(settings)

    handlers: list[ActionHandler] = [
        AssignToUserHandler(crm, renderer),
        UpdateStatusHandler(crm, renderer),
        CreateTaskHandler(crm, renderer),
        AddToCampaignHandler(crm, renderer),
        CreateNotificationHandler(crm, renderer),
        SendEmailHandler(EmailSender(settings), renderer),
        SendSmsHandler(
            MessagingGateway(
                "sms",
                settings.sms_gateway_url,
                token=settings.sms_gateway_token,
                sender_id=settings.sms_sender_id,
                timeout=settings.action_timeout_seconds,
            ),
            renderer,
        ),
        SendWhatsAppHandler(
            MessagingGateway(
                "whatsapp",
                settings.whatsapp_api_url,
                token=settings.whatsapp_api_token,
                timeout=settings.action_timeout_seconds,
            ),
            renderer,
        ),
        GenerateDocumentHandler(
            DocumentServiceClient(settings.document_service_url, timeout=settings.action_timeout_seconds),
            renderer,
        ),
        WebhookHandler(settings, renderer=renderer),
    ]

    registry = ActionRegistry(handlers, shared_clients=[crm])
    logger.info("Action registry built", actions=len(handlers))
    return registry
