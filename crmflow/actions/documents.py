"""Document generation action handler."""

from typing import Literal

from pydantic import BaseModel, Field

from crmflow.actions.base import ActionContext, ActionHandler, HandlerResult
from crmflow.actions.templating import TemplateRenderer
from crmflow.clients.documents import DocumentServiceClient
from crmflow.models.rule import ActionType


class GenerateDocumentConfig(BaseModel):
    template_id: str | int = Field(..., description="Document template ID")
    output_format: Literal["pdf", "docx", "html"] = "pdf"
    file_name: str | None = Field(default=None, max_length=255)


class GenerateDocumentHandler(ActionHandler):
    """Render a document template with the event payload as its data."""

    config_model = GenerateDocumentConfig

    def __init__(self, client: DocumentServiceClient, renderer: TemplateRenderer | None = None):
        super().__init__(renderer)
        self._client = client

    @property
    def action_type(self) -> ActionType:
        return ActionType.GENERATE_DOCUMENT

    async def execute(self, config: GenerateDocumentConfig, context: ActionContext) -> HandlerResult:
        result = await self._client.generate(
            template_id=str(config.template_id),
            data={**context.payload, "workflow_rule_id": context.rule_id},
            output_format=config.output_format,
            file_name=config.file_name,
        )
        document_ref = result.get("document_id") or result.get("url")
        detail = f"Generated document {document_ref}" if document_ref else "Generated document"
        return HandlerResult(success=True, detail=detail)

    async def close(self) -> None:
        await self._client.close()
