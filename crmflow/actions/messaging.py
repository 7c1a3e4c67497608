"""Action handlers that message leads and clients."""

from pydantic import BaseModel, Field

from crmflow.actions.base import ActionContext, ActionHandler, HandlerResult
from crmflow.actions.templating import TemplateRenderer
from crmflow.clients.email import EmailSender
from crmflow.clients.gateway import MessagingGateway
from crmflow.core.exceptions import ActionHandlerError
from crmflow.models.rule import ActionType


class RecipientConfig(BaseModel):
    """Recipients given literally, read from a payload field, or both."""

    to: str | list[str] | None = Field(default=None, description="Recipient(s)")
    to_field: str | None = Field(
        default=None,
        description="Payload field holding the recipient, e.g. 'lead.email'",
    )


class SendEmailConfig(RecipientConfig):
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    html: bool = False


class SendSmsConfig(RecipientConfig):
    message: str = Field(..., min_length=1, max_length=1600)


class SendWhatsAppConfig(RecipientConfig):
    message: str = Field(..., min_length=1)
    template: str | None = Field(default=None, description="Pre-approved provider template name")


def resolve_recipients(
    action_type: ActionType,
    config: RecipientConfig,
    context: ActionContext,
) -> list[str]:
    """Collect recipients from the config and the payload, dropping blanks and duplicates."""
    recipients: list[str] = []
    if isinstance(config.to, str):
        recipients.append(config.to)
    elif config.to:
        recipients.extend(config.to)

    if config.to_field:
        value = context.field(config.to_field)
        if isinstance(value, (list, tuple)):
            recipients.extend(str(item) for item in value)
        elif value not in (None, ""):
            recipients.append(str(value))

    unique = list(dict.fromkeys(r.strip() for r in recipients if r and r.strip()))
    if not unique:
        raise ActionHandlerError(action_type.value, "no recipients resolved")
    return unique


class SendEmailHandler(ActionHandler):
    config_model = SendEmailConfig

    def __init__(self, sender: EmailSender, renderer: TemplateRenderer | None = None):
        super().__init__(renderer)
        self._sender = sender

    @property
    def action_type(self) -> ActionType:
        return ActionType.SEND_EMAIL

    async def execute(self, config: SendEmailConfig, context: ActionContext) -> HandlerResult:
        recipients = resolve_recipients(self.action_type, config, context)
        await self._sender.send(recipients, config.subject, config.body, html=config.html)
        return HandlerResult(success=True, detail=f"Email sent to {len(recipients)} recipient(s)")


class _GatewayHandler(ActionHandler):
    def __init__(self, gateway: MessagingGateway, renderer: TemplateRenderer | None = None):
        super().__init__(renderer)
        self._gateway = gateway

    async def _send_all(
        self,
        recipients: list[str],
        message: str,
        **extra: str,
    ) -> HandlerResult:
        # Per-recipient failures are collected so one bad number doesn't hide the rest
        failures: list[str] = []
        for recipient in recipients:
            try:
                await self._gateway.send(self.action_type.value, recipient, message, **extra)
            except ActionHandlerError as e:
                failures.append(f"{recipient}: {e}")

        sent = len(recipients) - len(failures)
        if failures:
            return HandlerResult(
                success=False,
                detail=f"Sent {sent}/{len(recipients)} {self._gateway.channel} message(s); " + "; ".join(failures),
            )
        return HandlerResult(success=True, detail=f"Sent {sent} {self._gateway.channel} message(s)")

    async def close(self) -> None:
        await self._gateway.close()


class SendSmsHandler(_GatewayHandler):
    config_model = SendSmsConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.SEND_SMS

    async def execute(self, config: SendSmsConfig, context: ActionContext) -> HandlerResult:
        recipients = resolve_recipients(self.action_type, config, context)
        return await self._send_all(recipients, config.message)


class SendWhatsAppHandler(_GatewayHandler):
    config_model = SendWhatsAppConfig

    @property
    def action_type(self) -> ActionType:
        return ActionType.SEND_WHATSAPP

    async def execute(self, config: SendWhatsAppConfig, context: ActionContext) -> HandlerResult:
        recipients = resolve_recipients(self.action_type, config, context)
        if config.template:
            return await self._send_all(recipients, config.message, template=config.template)
        return await self._send_all(recipients, config.message)
